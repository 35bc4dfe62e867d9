import os
import logging
from sqlalchemy.orm import Session

from shopwise.models import Cart, User, utcnow
from shopwise.security import hash_password

logger = logging.getLogger(__name__)


# =====================================================
# ADMIN BOOTSTRAP (RUNS ON STARTUP)
# =====================================================

def ensure_admin_exists(db: Session, email: str | None = None, password: str | None = None):
    """
    Make sure the configured admin account exists.

    Credentials default to ADMIN_EMAIL / ADMIN_PASSWORD. Idempotent: an
    existing user with that email is upgraded to admin, never recreated.
    """
    admin_email = (email or os.getenv("ADMIN_EMAIL") or "").lower()
    admin_password = password or os.getenv("ADMIN_PASSWORD")

    if not admin_email or not admin_password:
        logger.warning("ADMIN_EMAIL or ADMIN_PASSWORD not set, admin bootstrap skipped")
        return None

    admin = db.query(User).filter(User.email == admin_email).first()

    if admin:
        if admin.role != "admin":
            admin.role = "admin"
            admin.is_active = True
            db.commit()
            logger.warning("Existing user upgraded to admin | email=%s", admin_email)
        else:
            logger.info("Admin already exists | email=%s", admin_email)
        return admin

    admin = User(
        first_name="Admin",
        last_name="User",
        email=admin_email,
        password_hash=hash_password(admin_password),
        role="admin",
        is_active=True,
    )

    db.add(admin)
    db.commit()
    db.refresh(admin)

    logger.info("Admin user created | email=%s", admin_email)
    return admin


# =====================================================
# CART EXPIRY
# =====================================================

def purge_expired_carts(db: Session, now=None) -> int:
    """Delete carts idle past their expiry; returns how many went."""
    expired = db.query(Cart).filter(Cart.expires_at < (now or utcnow())).all()

    for cart in expired:
        db.delete(cart)
    db.commit()

    if expired:
        logger.info("Purged expired carts | count=%s", len(expired))
    return len(expired)
