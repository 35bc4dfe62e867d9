import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import Field
from sqlalchemy.orm import Session

from shopwise.checkout import cancel_order, place_order, request_return
from shopwise.database import get_db
from shopwise.models import Order, OrderStatus, PaymentMethodType, User
from shopwise.security import get_current_user
from shopwise.serializers import CamelModel, ok, pagination, serialize_order

router = APIRouter(prefix="/orders", tags=["orders"])


# =====================================================
# PYDANTIC SCHEMAS
# =====================================================

class AddressInput(CamelModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)
    country: str = "United States"
    phone: Optional[str] = None


class PaymentMethodInput(CamelModel):
    type: PaymentMethodType
    last4: Optional[str] = Field(None, pattern=r"^\d{4}$")
    brand: Optional[str] = None
    expiry_month: Optional[int] = Field(None, ge=1, le=12)
    expiry_year: Optional[int] = None


class CreateOrderPayload(CamelModel):
    shipping_address: AddressInput
    billing_address: Optional[AddressInput] = None
    payment_method: PaymentMethodInput
    customer_notes: Optional[str] = Field(None, max_length=500)
    reward_points_used: int = Field(default=0, ge=0)


class ReturnPayload(CamelModel):
    return_reason: str = Field(min_length=1, max_length=500)


# =====================================================
# HELPERS
# =====================================================

def _owned_order(db: Session, order_id: uuid.UUID, user: User, action: str, allow_admin: bool = False) -> Order:
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(404, "Order not found")

    if order.user_id != user.id and not (allow_admin and user.is_admin):
        raise HTTPException(403, f"Not authorized to {action} this order")

    return order


# =====================================================
# USER: CREATE ORDER
# =====================================================

@router.post("", status_code=201)
def create_order(
    payload: CreateOrderPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Checkout the current cart."""
    order = place_order(
        db,
        user,
        shipping_address=payload.shipping_address.model_dump(by_alias=True),
        payment_method=payload.payment_method.model_dump(by_alias=True, mode="json"),
        billing_address=(
            payload.billing_address.model_dump(by_alias=True)
            if payload.billing_address else None
        ),
        customer_notes=payload.customer_notes,
        reward_points_used=payload.reward_points_used,
    )
    return ok(serialize_order(order), "Order created successfully")


# =====================================================
# USER: LIST / DETAIL
# =====================================================

@router.get("")
def list_orders(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
):
    query = db.query(Order).filter(Order.user_id == user.id)
    if status:
        query = query.filter(Order.status == status)

    total = query.count()
    orders = (
        query.order_by(Order.order_date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return ok(
        [serialize_order(o) for o in orders],
        pagination=pagination(page, limit, total, "totalOrders"),
    )


@router.get("/{order_id}")
def get_order(
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = _owned_order(db, order_id, user, "access", allow_admin=True)
    return ok(serialize_order(order, include_admin_fields=user.is_admin))


# =====================================================
# USER: CANCEL / RETURN
# =====================================================

@router.put("/{order_id}/cancel")
def cancel(
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = _owned_order(db, order_id, user, "cancel")
    order = cancel_order(db, order, "Cancelled by customer")
    return ok(serialize_order(order), "Order cancelled successfully")


@router.post("/{order_id}/return")
def return_order(
    order_id: uuid.UUID,
    payload: ReturnPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    order = _owned_order(db, order_id, user, "return")
    order = request_return(db, order, payload.return_reason.strip())
    return ok(serialize_order(order), "Return request submitted successfully")
