"""
Checkout and order lifecycle side effects.

Each function loads, mutates and commits within the caller's session.
Placement touches stock, reward points and the cart before a single
commit; a failure part-way through is not compensated.
"""
import logging

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from shopwise import pricing
from shopwise.models import (
    Cart,
    CartStatus,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusError,
    OrderStatusHistory,
    PaymentStatus,
    Product,
    User,
    utcnow,
)

logger = logging.getLogger(__name__)


# =====================================================
# PLACE ORDER
# =====================================================

def place_order(
    db: Session,
    user: User,
    shipping_address: dict,
    payment_method: dict,
    billing_address: dict | None = None,
    customer_notes: str | None = None,
    reward_points_used: int = 0,
) -> Order:
    """
    Turn the user's cart into a pending order.

    Validates stock and the reward point balance, freezes item snapshots,
    decrements stock, moves reward points and empties the cart.
    """
    cart = db.query(Cart).filter(Cart.user_id == user.id).first()
    # expired carts count as empty
    if not cart or not cart.items or cart.is_expired(utcnow()):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Cart is empty")

    required = {}
    for item in cart.items:
        product = item.product
        name = (item.product_snapshot or {}).get("name") or "item"
        if not product or not product.is_active:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, f"{name} is no longer available")
        required[product.id] = required.get(product.id, 0) + item.quantity

    # variant lines of one product draw on the same stock
    for item in cart.items:
        product = item.product
        if not product.is_in_stock(required[product.id]):
            raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Insufficient stock for {product.name}")

    if reward_points_used > (user.reward_points or 0):
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Insufficient reward points")

    cart.calculate_totals()
    if reward_points_used > cart.subtotal - cart.discount_amount:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Reward points exceed the order amount")

    totals = pricing.calculate_totals(
        ((item.item_price, item.quantity) for item in cart.items),
        cart.discounts,
        extra_discount=reward_points_used,
    )

    now = utcnow()
    order = Order(
        user_id=user.id,
        discounts=list(cart.discounts or []),
        shipping_address=shipping_address,
        billing_address=billing_address or shipping_address,
        payment_method=payment_method,
        payment_status=PaymentStatus.pending,
        status=OrderStatus.pending,
        reward_points_used=reward_points_used,
        customer_notes=customer_notes,
        order_date=now,
        **totals,
    )
    order.calculate_reward_points()

    for item in cart.items:
        product = item.product
        snapshot = {
            "name": product.name,
            "price": product.price,
            "image": product.primary_image,
            "sku": product.sku,
            "brand": product.brand,
            "category": product.category,
        }
        order.items.append(OrderItem(
            product_id=product.id,
            product_name=product.name,
            category=product.category,
            brand=product.brand,
            sku=product.sku,
            product_snapshot=snapshot,
            selected_variants=list(item.selected_variants or []),
            quantity=item.quantity,
            item_price=item.item_price,
            total_price=pricing.round2(item.item_price * item.quantity),
        ))

        product.stock -= item.quantity
        product.purchases = (product.purchases or 0) + item.quantity

    order.status_history.append(
        OrderStatusHistory(status=OrderStatus.pending.value, note="Order created", timestamp=now, sequence=0)
    )
    db.add(order)

    if reward_points_used > 0:
        user.use_reward_points(reward_points_used)
    user.add_reward_points(order.reward_points_earned)

    cart.clear()
    cart.status = CartStatus.converted

    db.commit()
    db.refresh(order)

    logger.info(
        "Order placed | order=%s | user=%s | total=%s | points_used=%s",
        order.order_number,
        user.id,
        order.total,
        reward_points_used,
    )
    return order


# =====================================================
# STATUS TRANSITIONS
# =====================================================

def _transition(order: Order, new_status: OrderStatus, note: str):
    try:
        order.update_status(new_status, note)
    except OrderStatusError as e:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(e))


def cancel_order(db: Session, order: Order, note: str = "Cancelled by customer") -> Order:
    """Cancel, restock every line and refund spent reward points."""
    _transition(order, OrderStatus.cancelled, note)

    for item in order.items:
        if not item.product_id:
            continue
        product = db.get(Product, item.product_id)
        if product:
            product.stock += item.quantity
            product.purchases = (product.purchases or 0) - item.quantity

    if order.reward_points_used:
        order.user.add_reward_points(order.reward_points_used)

    if order.payment_status == PaymentStatus.paid:
        order.payment_status = PaymentStatus.refunded
        order.refund_amount = order.total

    db.commit()
    db.refresh(order)

    logger.info("Order cancelled | order=%s | note=%s", order.order_number, note)
    return order


def request_return(db: Session, order: Order, reason: str) -> Order:
    _transition(order, OrderStatus.returned, f"Return requested: {reason}")
    order.return_requested = True
    order.return_reason = reason

    db.commit()
    db.refresh(order)

    logger.info("Return requested | order=%s", order.order_number)
    return order


def advance_order(db: Session, order: Order, new_status: OrderStatus, note: str = "") -> Order:
    """Admin-driven transition; cancellation keeps its side effects."""
    if new_status == OrderStatus.cancelled:
        return cancel_order(db, order, note or "Cancelled by admin")

    _transition(order, new_status, note)
    if new_status == OrderStatus.returned:
        order.return_requested = True

    db.commit()
    db.refresh(order)

    logger.info(
        "Order status changed | order=%s | status=%s",
        order.order_number,
        new_status.value,
    )
    return order
