import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import Field
from sqlalchemy.orm import Session

from shopwise.database import get_db
from shopwise.models import User, Cart, Product, utcnow
from shopwise.pricing import PricingError
from shopwise.security import get_current_user
from shopwise.serializers import CamelModel, ok, serialize_cart

router = APIRouter(prefix="/cart", tags=["cart"])


# =====================================================
# Pydantic Schemas
# =====================================================

class VariantChoice(CamelModel):
    name: str
    value: str


class AddToCartPayload(CamelModel):
    product_id: uuid.UUID
    quantity: int = Field(default=1, ge=1)
    selected_variants: List[VariantChoice] = []


class UpdateCartItemPayload(CamelModel):
    quantity: int = Field(ge=0)


class ApplyDiscountPayload(CamelModel):
    discount_code: str = Field(min_length=1)


# =====================================================
# HELPERS
# =====================================================

def load_cart(db: Session, user: User, create: bool = False) -> Cart | None:
    """User's cart; an expired cart comes back emptied."""
    cart = db.query(Cart).filter(Cart.user_id == user.id).first()

    if cart and cart.is_expired(utcnow()):
        cart.clear()
        db.commit()

    if not cart and create:
        cart = Cart(user_id=user.id, items=[], discounts=[])
        db.add(cart)
        db.flush()

    return cart


def _require_cart(db: Session, user: User) -> Cart:
    cart = load_cart(db, user)
    if not cart:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


# =====================================================
# USER: GET CART
# =====================================================
@router.get("", status_code=status.HTTP_200_OK)
def get_cart(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Current cart; lines whose product is gone or inactive are dropped."""
    cart = load_cart(db, user)

    if not cart:
        return ok(serialize_cart(None))

    live = [i for i in cart.items if i.product and i.product.is_active]
    if len(live) != len(cart.items):
        cart.items = live
        cart.calculate_totals()
        db.commit()
        db.refresh(cart)

    return ok(serialize_cart(cart))


# =====================================================
# USER: ADD TO CART
# =====================================================
@router.post("", status_code=status.HTTP_200_OK)
@router.post("/add", status_code=status.HTTP_200_OK)
def add_to_cart(
    payload: AddToCartPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = db.get(Product, payload.product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    cart = load_cart(db, user, create=True)

    in_cart = sum(i.quantity for i in cart.items if i.product_id == product.id)
    if not product.is_in_stock(in_cart + payload.quantity):
        raise HTTPException(status_code=400, detail="Insufficient stock available")

    try:
        cart.add_item(
            product,
            payload.quantity,
            [v.model_dump() for v in payload.selected_variants],
        )
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    db.refresh(cart)

    return ok(serialize_cart(cart), "Item added to cart successfully")


# =====================================================
# USER: UPDATE CART ITEM
# =====================================================
@router.put("/update/{item_id}", status_code=status.HTTP_200_OK)
def update_cart_item(
    item_id: uuid.UUID,
    payload: UpdateCartItemPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Set a line's quantity; zero removes the line."""
    cart = _require_cart(db, user)

    item = cart.find_item(item_id)
    if not item:
        raise HTTPException(status_code=404, detail="Item not found in cart")

    if payload.quantity > 0 and item.product:
        # other variant lines of the same product share its stock
        elsewhere = sum(
            i.quantity for i in cart.items
            if i.product_id == item.product_id and i is not item
        )
        if not item.product.is_in_stock(elsewhere + payload.quantity):
            raise HTTPException(status_code=400, detail="Insufficient stock available")

    cart.update_item_quantity(item_id, payload.quantity)
    db.commit()
    db.refresh(cart)

    return ok(serialize_cart(cart), "Cart updated successfully")


# =====================================================
# USER: REMOVE CART ITEM
# =====================================================
@router.delete("/remove/{item_id}", status_code=status.HTTP_200_OK)
def remove_cart_item(
    item_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = _require_cart(db, user)

    if not cart.find_item(item_id):
        raise HTTPException(status_code=404, detail="Item not found in cart")

    cart.remove_item(item_id)
    db.commit()
    db.refresh(cart)

    return ok(serialize_cart(cart), "Item removed from cart successfully")


# =====================================================
# USER: CLEAR CART
# =====================================================
@router.delete("/clear", status_code=status.HTTP_200_OK)
def clear_cart(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = _require_cart(db, user)

    cart.clear()
    db.commit()
    db.refresh(cart)

    return ok(serialize_cart(cart), "Cart cleared successfully")


# =====================================================
# USER: DISCOUNTS
# =====================================================
@router.post("/apply-discount", status_code=status.HTTP_200_OK)
def apply_discount(
    payload: ApplyDiscountPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    cart = _require_cart(db, user)

    try:
        cart.apply_discount(payload.discount_code)
    except PricingError as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    db.refresh(cart)

    return ok(serialize_cart(cart), "Discount applied successfully")


@router.delete("/remove-discount/{code}", status_code=status.HTTP_200_OK)
def remove_discount(
    code: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Removing a code that is not applied leaves the cart unchanged."""
    cart = _require_cart(db, user)

    cart.remove_discount(code)
    db.commit()
    db.refresh(cart)

    return ok(serialize_cart(cart), "Discount removed successfully")
