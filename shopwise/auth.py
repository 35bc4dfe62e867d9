import os
import logging
from fastapi import APIRouter, Depends, HTTPException, status, Response
from sqlalchemy.orm import Session
from pydantic import EmailStr, Field

from shopwise.database import get_db
from shopwise.models import User, utcnow
from shopwise.security import (
    ACCESS_TOKEN_EXPIRE_DAYS,
    verify_password,
    hash_password,
    create_token,
    get_current_user,
)
from shopwise.serializers import CamelModel, serialize_user

router = APIRouter(prefix="/api/auth", tags=["auth"])

logger = logging.getLogger(__name__)

COOKIE_SECURE = os.getenv("COOKIE_SECURE", "true").lower() == "true"


# =====================================================
# SCHEMAS
# =====================================================

class LoginPayload(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class RegisterPayload(CamelModel):
    first_name: str = Field(min_length=1, max_length=50)
    last_name: str = Field(min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    phone: str | None = None


# =====================================================
# HELPERS
# =====================================================

def _auth_response(user: User, response: Response) -> dict:
    token = create_token(user.id, user.role)

    response.set_cookie(
        key="access_token",
        value=token,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="none" if COOKIE_SECURE else "lax",
        path="/",
        max_age=60 * 60 * 24 * ACCESS_TOKEN_EXPIRE_DAYS,
    )

    return {
        "success": True,
        "token": token,
        "user": serialize_user(user),
    }


# =====================================================
# REGISTER
# =====================================================

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterPayload,
    response: Response,
    db: Session = Depends(get_db),
):
    email = payload.email.lower()

    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="User already exists with this email",
        )

    user = User(
        first_name=payload.first_name.strip(),
        last_name=payload.last_name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        phone=payload.phone,
        role="user",
        is_active=True,
    )

    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("User registered | user_id=%s", user.id)

    return _auth_response(user, response)


# =====================================================
# LOGIN
# =====================================================

@router.post("/login")
def login(
    payload: LoginPayload,
    response: Response,
    db: Session = Depends(get_db),
):
    user = db.query(User).filter(User.email == payload.email.lower()).first()

    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account has been deactivated",
        )

    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    return _auth_response(user, response)


# =====================================================
# CURRENT USER
# =====================================================

@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    return {"success": True, "user": serialize_user(user)}


# =====================================================
# LOGOUT
# =====================================================

@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(key="access_token", path="/")
    return {"success": True, "message": "Logged out successfully"}
