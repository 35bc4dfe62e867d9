import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy.orm import Session

from shopwise import reporting
from shopwise.database import get_db
from shopwise.models import Address, Order, User
from shopwise.security import ensure_admin_or_owner, get_current_user
from shopwise.serializers import (
    CamelModel,
    ok,
    pagination,
    serialize_address,
    serialize_order,
    serialize_user,
)

router = APIRouter(prefix="/users", tags=["users"])


# =========================
# SCHEMAS
# =========================

class ProfileUpdatePayload(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = None
    avatar: Optional[str] = None
    preferences: Optional[dict] = None


class AddressPayload(CamelModel):
    type: str = Field("home", pattern="^(home|work|other)$")
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = "United States"
    is_default: bool = False


class AddressUpdatePayload(CamelModel):
    type: Optional[str] = Field(None, pattern="^(home|work|other)$")
    street: Optional[str] = Field(None, min_length=1)
    city: Optional[str] = Field(None, min_length=1)
    state: Optional[str] = Field(None, min_length=1)
    zip_code: Optional[str] = Field(None, min_length=1)
    country: Optional[str] = None
    is_default: Optional[bool] = None


def _profile(user: User) -> dict:
    data = serialize_user(user)
    data["addresses"] = [serialize_address(a) for a in user.addresses]
    return data


def _make_default(user: User, address: Address):
    for other in user.addresses:
        other.is_default = other is address


# =========================
# USER: PROFILE
# =========================

@router.get("/profile")
def get_profile(user: User = Depends(get_current_user)):
    return ok(_profile(user))


@router.put("/profile")
def update_profile(
    payload: ProfileUpdatePayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    changes = payload.model_dump(exclude_unset=True)

    if "avatar" in changes:
        changes["avatar_url"] = changes.pop("avatar")
    if changes.get("preferences") is not None:
        changes["preferences"] = {**(user.preferences or {}), **changes["preferences"]}

    for field, value in changes.items():
        setattr(user, field, value)

    db.commit()
    db.refresh(user)

    return ok(_profile(user), "Profile updated successfully")


# =========================
# USER: ADDRESSES
# =========================

@router.post("/addresses", status_code=status.HTTP_201_CREATED)
def add_address(
    payload: AddressPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """The first address, or one flagged default, becomes the only default."""
    address = Address(**payload.model_dump())
    user.addresses.append(address)

    if payload.is_default or len(user.addresses) == 1:
        _make_default(user, address)

    db.commit()
    db.refresh(user)

    return ok([serialize_address(a) for a in user.addresses], "Address added successfully")


@router.put("/addresses/{address_id}")
def update_address(
    address_id: uuid.UUID,
    payload: AddressUpdatePayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    address = next((a for a in user.addresses if a.id == address_id), None)
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")

    changes = payload.model_dump(exclude_unset=True)
    make_default = changes.pop("is_default", None)

    for field, value in changes.items():
        if value is not None:
            setattr(address, field, value)

    if make_default:
        _make_default(user, address)
    elif make_default is False:
        address.is_default = False

    db.commit()
    db.refresh(user)

    return ok([serialize_address(a) for a in user.addresses], "Address updated successfully")


@router.delete("/addresses/{address_id}")
def delete_address(
    address_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    address = next((a for a in user.addresses if a.id == address_id), None)
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")

    was_default = address.is_default
    user.addresses.remove(address)

    if was_default and user.addresses:
        _make_default(user, user.addresses[0])

    db.commit()
    db.refresh(user)

    return ok([serialize_address(a) for a in user.addresses], "Address deleted successfully")


# =========================
# USER: ORDER HISTORY / REWARDS
# =========================

@router.get("/order-history")
def order_history(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
):
    query = db.query(Order).filter(Order.user_id == user.id)
    total = query.count()

    orders = (
        query.order_by(Order.order_date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    data = []
    for o in orders:
        entry = serialize_order(o)
        entry.pop("statusHistory")
        data.append(entry)

    return ok({
        "orders": data,
        "stats": reporting.order_history_stats(db, user.id),
        "pagination": pagination(page, limit, total, "totalOrders"),
    })


@router.get("/reward-points")
def reward_points(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    recent = (
        db.query(Order)
        .filter(Order.user_id == user.id, Order.reward_points_earned > 0)
        .order_by(Order.order_date.desc())
        .limit(10)
        .all()
    )

    return ok({
        "currentBalance": user.reward_points,
        "recentEarnings": [
            {
                "orderNumber": o.order_number,
                "rewardPointsEarned": o.reward_points_earned,
                "orderDate": o.order_date,
                "total": o.total,
            }
            for o in recent
        ],
        "pointsValue": "Each point = $1.00",
    })


# =========================
# ADMIN OR OWNER
# =========================

@router.get("/{user_id}/buy-again")
def buy_again(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    limit: int = Query(5, ge=1, le=20),
):
    ensure_admin_or_owner(user, user_id)
    return ok(reporting.buy_again(db, user_id, limit))


@router.get("/{user_id}")
def get_user(
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    ensure_admin_or_owner(user, user_id)

    target = db.get(User, user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")

    return ok(_profile(target))
