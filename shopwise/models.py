import re
import enum
import uuid
import random
import time
from datetime import datetime, timedelta, timezone

from sqlalchemy import (
    Column,
    String,
    Text,
    Integer,
    Float,
    Boolean,
    DateTime,
    JSON,
    Enum,
    ForeignKey,
    Index,
    Uuid,
)
from sqlalchemy.orm import relationship

from shopwise.database import Base
from shopwise import pricing


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


CART_TTL = timedelta(days=30)
RETURN_WINDOW = timedelta(days=30)

PRODUCT_CATEGORIES = (
    "Electronics",
    "Clothing",
    "Home & Garden",
    "Sports & Outdoors",
    "Health & Beauty",
    "Toys & Games",
    "Books",
    "Automotive",
    "Grocery",
    "Baby & Kids",
    "Pet Supplies",
    "Office Supplies",
)


# =========================
# ENUMS
# =========================

class OrderStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    packed = "packed"
    shipped = "shipped"
    out_for_delivery = "out_for_delivery"
    delivered = "delivered"
    cancelled = "cancelled"
    returned = "returned"


# forward chain; cancelled/returned are side branches
ORDER_FLOW = (
    OrderStatus.pending,
    OrderStatus.confirmed,
    OrderStatus.processing,
    OrderStatus.packed,
    OrderStatus.shipped,
    OrderStatus.out_for_delivery,
    OrderStatus.delivered,
)
CANCELLABLE_STATUSES = (OrderStatus.pending, OrderStatus.confirmed)
REVENUE_STATUSES = (OrderStatus.shipped, OrderStatus.delivered)


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    failed = "failed"
    refunded = "refunded"
    partially_refunded = "partially_refunded"


class PaymentMethodType(str, enum.Enum):
    credit_card = "credit_card"
    debit_card = "debit_card"
    paypal = "paypal"
    apple_pay = "apple_pay"
    google_pay = "google_pay"


class CartStatus(str, enum.Enum):
    active = "active"
    abandoned = "abandoned"
    converted = "converted"


class OrderStatusError(ValueError):
    """Raised when an order cannot move to the requested status."""


# =========================
# USER
# =========================

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    phone = Column(String)
    avatar_url = Column(String)

    role = Column(String, default="user", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    reward_points = Column(Integer, default=0, nullable=False)
    preferences = Column(JSON, default=dict)

    last_login = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    addresses = relationship(
        "Address",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="Address.created_at",
    )
    cart = relationship("Cart", back_populates="user", uselist=False, cascade="all, delete-orphan")
    orders = relationship("Order", back_populates="user")
    reviews = relationship("Review", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def add_reward_points(self, points: int) -> int:
        self.reward_points = (self.reward_points or 0) + points
        return self.reward_points

    def use_reward_points(self, points: int) -> int:
        if points > (self.reward_points or 0):
            raise ValueError("Insufficient reward points")
        self.reward_points -= points
        return self.reward_points


# =========================
# ADDRESS
# =========================

class Address(Base):
    __tablename__ = "addresses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String, nullable=False, default="home")  # home/work/other
    street = Column(String, nullable=False)
    city = Column(String, nullable=False)
    state = Column(String, nullable=False)
    zip_code = Column(String, nullable=False)
    country = Column(String, nullable=False, default="United States")
    is_default = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="addresses")


# =========================
# PRODUCT
# =========================

class Product(Base):
    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    name = Column(String(100), nullable=False)
    slug = Column(String, unique=True, index=True)
    description = Column(Text, nullable=False)
    short_description = Column(String(200))

    price = Column(Float, nullable=False)
    original_price = Column(Float)

    category = Column(String, nullable=False, index=True)
    subcategory = Column(String, nullable=False)
    brand = Column(String, nullable=False, index=True)
    sku = Column(String, nullable=False, unique=True, index=True)

    images = Column(JSON, default=list)          # [{url, alt, isPrimary}]
    specifications = Column(JSON, default=list)  # [{name, value}]
    variants = Column(JSON, default=list)        # [{name, options: [{value, price, stock}]}]

    stock = Column(Integer, default=0, nullable=False)
    low_stock_threshold = Column(Integer, default=10, nullable=False)

    rating = Column(Float, default=0, nullable=False)
    num_reviews = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    is_featured = Column(Boolean, default=False, nullable=False)
    is_on_sale = Column(Boolean, default=False, nullable=False)

    views = Column(Integer, default=0, nullable=False)
    purchases = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    reviews = relationship(
        "Review",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="Review.created_at.desc()",
    )

    @staticmethod
    def slugify(name: str) -> str:
        slug = re.sub(r"[^a-zA-Z0-9]", "-", name.lower())
        slug = re.sub(r"-+", "-", slug)
        return slug.strip("-")

    @property
    def primary_image(self):
        images = self.images or []
        primary = next((img for img in images if img.get("isPrimary")), None)
        if primary:
            return primary.get("url")
        return images[0].get("url") if images else None

    @property
    def discount_percentage(self) -> int:
        if self.original_price and self.original_price > self.price:
            return round((self.original_price - self.price) / self.original_price * 100)
        return 0

    def is_in_stock(self, quantity: int = 1) -> bool:
        return (self.stock or 0) >= quantity

    def is_low_stock(self) -> bool:
        return (self.stock or 0) <= self.low_stock_threshold

    def calculate_average_rating(self):
        if not self.reviews:
            self.rating = 0
            self.num_reviews = 0
        else:
            total = sum(r.rating for r in self.reviews)
            self.rating = round(total / len(self.reviews), 1)
            self.num_reviews = len(self.reviews)
        return self.rating

    def snapshot(self) -> dict:
        return {
            "name": self.name,
            "price": self.price,
            "image": self.primary_image,
            "sku": self.sku,
        }


Index("idx_products_category_subcategory", Product.category, Product.subcategory)
Index("idx_products_price", Product.price)
Index("idx_products_rating", Product.rating)
Index("idx_products_active_featured", Product.is_active, Product.is_featured)


# =========================
# REVIEWS
# =========================

class Review(Base):
    __tablename__ = "reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    rating = Column(Integer, nullable=False)  # 1-5
    comment = Column(Text, nullable=False)
    helpful = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    product = relationship("Product", back_populates="reviews")
    user = relationship("User", back_populates="reviews")


Index("idx_reviews_product_user", Review.product_id, Review.user_id, unique=True)


# =========================
# CART
# =========================

class Cart(Base):
    __tablename__ = "carts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True, index=True)

    subtotal = Column(Float, default=0, nullable=False)
    tax = Column(Float, default=0, nullable=False)
    shipping = Column(Float, default=0, nullable=False)
    discount_amount = Column(Float, default=0, nullable=False)
    total = Column(Float, default=0, nullable=False)

    discounts = Column(JSON, default=list)  # [{code, type, value, description}]

    status = Column(
        Enum(CartStatus, name="cart_status"),
        default=CartStatus.active,
        nullable=False,
    )

    expires_at = Column(DateTime, default=lambda: utcnow() + CART_TTL, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="cart")
    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.added_at",
    )

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def is_expired(self, now=None) -> bool:
        return self.expires_at is not None and self.expires_at < (now or utcnow())

    def touch(self):
        self.expires_at = utcnow() + CART_TTL

    def calculate_totals(self):
        totals = pricing.calculate_totals(
            ((item.item_price, item.quantity) for item in self.items),
            self.discounts,
        )
        for field, value in totals.items():
            setattr(self, field, value)
        self.touch()
        return totals

    def find_item(self, item_id):
        return next((item for item in self.items if str(item.id) == str(item_id)), None)

    def add_item(self, product: "Product", quantity: int, selected_variants=None) -> "CartItem":
        item_price, resolved = pricing.resolve_item_price(
            product.price, product.variants, selected_variants
        )

        existing = next(
            (
                item for item in self.items
                if item.product_id == product.id
                and (item.selected_variants or []) == resolved
            ),
            None,
        )

        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = CartItem(
                product_id=product.id,
                quantity=quantity,
                product_snapshot=product.snapshot(),
                selected_variants=resolved,
                item_price=item_price,
            )
            self.items.append(item)

        self.status = CartStatus.active
        self.calculate_totals()
        return item

    def remove_item(self, item_id):
        self.items = [item for item in self.items if str(item.id) != str(item_id)]
        self.calculate_totals()

    def update_item_quantity(self, item_id, quantity: int):
        item = self.find_item(item_id)
        if item is None:
            raise KeyError("Item not found in cart")

        if quantity <= 0:
            self.remove_item(item_id)
            return None

        item.quantity = quantity
        self.calculate_totals()
        return item

    def clear(self):
        self.items = []
        self.discounts = []
        self.calculate_totals()

    def apply_discount(self, code: str):
        self.discounts = pricing.add_discount(self.discounts, code)
        self.calculate_totals()

    def remove_discount(self, code: str):
        self.discounts = pricing.remove_discount(self.discounts, code)
        self.calculate_totals()


class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    cart_id = Column(Uuid, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    quantity = Column(Integer, nullable=False, default=1)
    product_snapshot = Column(JSON)  # {name, price, image, sku} at add-time
    selected_variants = Column(JSON, default=list)  # [{name, value, price}]
    item_price = Column(Float, nullable=False)  # unit price incl. variant deltas

    added_at = Column(DateTime, default=utcnow, nullable=False)

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product")


# =========================
# ORDER
# =========================

def generate_order_number() -> str:
    timestamp = str(int(time.time() * 1000))
    return f"SW{timestamp[-8:]}{random.randint(0, 999):03d}"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number = Column(String, unique=True, nullable=False, default=generate_order_number)

    user_id = Column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    subtotal = Column(Float, nullable=False)
    tax = Column(Float, nullable=False, default=0)
    shipping = Column(Float, nullable=False, default=0)
    discount_amount = Column(Float, nullable=False, default=0)
    total = Column(Float, nullable=False)
    discounts = Column(JSON, default=list)

    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)

    payment_method = Column(JSON, nullable=False)  # {type, last4, brand, expiryMonth, expiryYear}
    payment_status = Column(
        Enum(PaymentStatus, name="payment_status"),
        default=PaymentStatus.pending,
        nullable=False,
    )
    payment_id = Column(String)

    status = Column(
        Enum(OrderStatus, name="order_status"),
        default=OrderStatus.pending,
        nullable=False,
    )

    carrier = Column(String)
    tracking_number = Column(String)
    tracking_url = Column(String)
    estimated_delivery = Column(DateTime)

    reward_points_earned = Column(Integer, default=0, nullable=False)
    reward_points_used = Column(Integer, default=0, nullable=False)

    customer_notes = Column(Text)
    admin_notes = Column(Text)

    order_date = Column(DateTime, default=utcnow, nullable=False)
    shipped_date = Column(DateTime)
    delivered_date = Column(DateTime)

    return_requested = Column(Boolean, default=False, nullable=False)
    return_reason = Column(Text)
    refund_amount = Column(Float, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="orders")
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
    )
    status_history = relationship(
        "OrderStatusHistory",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderStatusHistory.sequence",
    )

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def can_be_returned(self, now=None) -> bool:
        if self.status != OrderStatus.delivered or not self.delivered_date:
            return False
        return (now or utcnow()) - self.delivered_date <= RETURN_WINDOW

    def can_transition_to(self, new_status, now=None) -> bool:
        new_status = OrderStatus(new_status)

        if new_status == OrderStatus.cancelled:
            return self.can_be_cancelled()
        if new_status == OrderStatus.returned:
            return self.can_be_returned(now)
        if self.status not in ORDER_FLOW:
            return False
        return ORDER_FLOW.index(new_status) > ORDER_FLOW.index(self.status)

    def update_status(self, new_status, note: str = "", now=None) -> "OrderStatusHistory":
        """
        Move the order to ``new_status`` and append a history entry.

        Raises OrderStatusError when the transition is not allowed.
        """
        new_status = OrderStatus(new_status)
        now = now or utcnow()

        if not self.can_transition_to(new_status, now):
            if new_status == OrderStatus.cancelled:
                raise OrderStatusError("Order cannot be cancelled at this stage")
            if new_status == OrderStatus.returned:
                raise OrderStatusError(
                    "Order cannot be returned (outside return window or not delivered)"
                )
            raise OrderStatusError(
                f"Cannot change order status from '{self.status.value}' to '{new_status.value}'"
            )

        self.status = new_status
        entry = OrderStatusHistory(
            status=new_status.value,
            note=note,
            timestamp=now,
            sequence=len(self.status_history),
        )
        self.status_history.append(entry)

        if new_status == OrderStatus.shipped:
            self.shipped_date = now
        elif new_status == OrderStatus.delivered:
            self.delivered_date = now

        return entry

    def calculate_reward_points(self) -> int:
        self.reward_points_earned = int(self.total or 0)
        return self.reward_points_earned

    def summary(self) -> dict:
        return {
            "orderNumber": self.order_number,
            "total": self.total,
            "itemCount": self.total_items,
            "status": self.status.value if self.status else None,
            "orderDate": self.order_date,
            "estimatedDelivery": self.estimated_delivery,
        }


Index("idx_orders_user_order_date", Order.user_id, Order.order_date)
Index("idx_orders_status", Order.status)
Index("idx_orders_order_date", Order.order_date)


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)

    # snapshot columns, frozen at order time
    product_name = Column(String, nullable=False)
    category = Column(String, index=True)
    brand = Column(String)
    sku = Column(String)
    product_snapshot = Column(JSON)  # {name, price, image, sku, brand, category}

    selected_variants = Column(JSON, default=list)
    quantity = Column(Integer, nullable=False)
    item_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")


class OrderStatusHistory(Base):
    """Append-only log of status transitions."""
    __tablename__ = "order_status_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String, nullable=False)
    note = Column(Text)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    sequence = Column(Integer, default=0, nullable=False)

    order = relationship("Order", back_populates="status_history")
