import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field, field_validator
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from shopwise.checkout import advance_order
from shopwise.database import get_db
from shopwise.models import (
    PRODUCT_CATEGORIES,
    REVENUE_STATUSES,
    Order,
    OrderStatus,
    PaymentStatus,
    Product,
    User,
    utcnow,
)
from shopwise.security import require_admin
from shopwise.serializers import (
    CamelModel,
    ok,
    pagination,
    serialize_order,
    serialize_product,
    serialize_user,
)

router = APIRouter(prefix="/admin", tags=["admin"])

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────
# SCHEMAS
# ─────────────────────────────────────────────

class UserStatusPayload(CamelModel):
    is_active: bool


class OrderStatusPayload(CamelModel):
    status: OrderStatus
    note: str = Field("", max_length=500)
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None
    tracking_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    admin_notes: Optional[str] = Field(None, max_length=1000)


class ImageInput(CamelModel):
    url: str
    alt: Optional[str] = None
    is_primary: bool = False


class SpecificationInput(CamelModel):
    name: str
    value: str


class VariantOptionInput(CamelModel):
    value: str
    price: float = 0
    stock: int = Field(0, ge=0)


class VariantInput(CamelModel):
    name: str
    options: List[VariantOptionInput] = []


def _check_category(value):
    if value is not None and value not in PRODUCT_CATEGORIES:
        raise ValueError(f"Category must be one of: {', '.join(PRODUCT_CATEGORIES)}")
    return value


class ProductPayload(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=200)
    price: float = Field(ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: str
    subcategory: str = Field(min_length=1)
    brand: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    images: List[ImageInput] = []
    specifications: List[SpecificationInput] = []
    variants: List[VariantInput] = []
    stock: int = Field(ge=0)
    low_stock_threshold: int = Field(10, ge=0)
    is_active: bool = True
    is_featured: bool = False
    is_on_sale: bool = False

    @field_validator("category")
    @classmethod
    def check_category(cls, value):
        return _check_category(value)


class ProductUpdatePayload(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, min_length=1, max_length=2000)
    short_description: Optional[str] = Field(None, max_length=200)
    price: Optional[float] = Field(None, ge=0)
    original_price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None
    subcategory: Optional[str] = Field(None, min_length=1)
    brand: Optional[str] = Field(None, min_length=1)
    sku: Optional[str] = Field(None, min_length=1)
    images: Optional[List[ImageInput]] = None
    specifications: Optional[List[SpecificationInput]] = None
    variants: Optional[List[VariantInput]] = None
    stock: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    is_on_sale: Optional[bool] = None

    @field_validator("category")
    @classmethod
    def check_category(cls, value):
        return _check_category(value)


# JSON columns keep the camelCase keys the storefront reads
JSON_FIELDS = ("images", "specifications", "variants")


def _product_values(payload, exclude_unset: bool = False) -> dict:
    values = payload.model_dump(exclude_unset=exclude_unset, exclude=set(JSON_FIELDS))
    for field in JSON_FIELDS:
        items = getattr(payload, field)
        if items is not None and (not exclude_unset or field in payload.model_fields_set):
            values[field] = [item.model_dump(by_alias=True) for item in items]
    if values.get("sku"):
        values["sku"] = values["sku"].strip().upper()
    return values


def _unique_slug(db: Session, name: str, sku: str, product_id=None) -> str:
    slug = Product.slugify(name)
    clash = db.query(Product).filter(Product.slug == slug, Product.id != product_id).first()
    return f"{slug}-{sku.lower()}" if clash else slug


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ─────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────

@router.get("/dashboard")
def admin_dashboard(db: Session = Depends(get_db), admin=Depends(require_admin)):
    now = utcnow()
    start_of_today = now.replace(hour=0, minute=0, second=0, microsecond=0)
    start_of_month = start_of_today.replace(day=1)
    start_of_year = start_of_month.replace(month=1)

    def revenue_since(start=None):
        query = db.query(func.sum(Order.total)).filter(Order.status.in_(REVENUE_STATUSES))
        if start is not None:
            query = query.filter(Order.order_date >= start)
        return round(query.scalar() or 0, 2)

    average_order = (
        db.query(func.avg(Order.total)).filter(Order.status.in_(REVENUE_STATUSES)).scalar() or 0
    )

    recent_orders = db.query(Order).order_by(Order.order_date.desc()).limit(5).all()
    top_products = (
        db.query(Product)
        .filter(Product.is_active.is_(True))
        .order_by(Product.purchases.desc())
        .limit(5)
        .all()
    )

    return ok({
        "users": {
            "total": db.query(User).count(),
            "newToday": db.query(User).filter(User.created_at >= start_of_today).count(),
            "newThisMonth": db.query(User).filter(User.created_at >= start_of_month).count(),
        },
        "products": {
            "total": db.query(Product).filter(Product.is_active.is_(True)).count(),
            "lowStock": db.query(Product).filter(
                Product.is_active.is_(True),
                Product.stock <= Product.low_stock_threshold,
            ).count(),
        },
        "orders": {
            "total": db.query(Order).count(),
            "today": db.query(Order).filter(Order.order_date >= start_of_today).count(),
            "thisMonth": db.query(Order).filter(Order.order_date >= start_of_month).count(),
        },
        "revenue": {
            "total": revenue_since(),
            "monthly": revenue_since(start_of_month),
            "yearly": revenue_since(start_of_year),
            "averageOrderValue": round(average_order, 2),
        },
        "recentOrders": [
            {
                "id": str(o.id),
                "orderNumber": o.order_number,
                "total": o.total,
                "status": o.status.value,
                "orderDate": o.order_date,
                "user": {
                    "firstName": o.user.first_name,
                    "lastName": o.user.last_name,
                    "email": o.user.email,
                },
            }
            for o in recent_orders
        ],
        "topProducts": [
            {
                "id": str(p.id),
                "name": p.name,
                "purchases": p.purchases,
                "price": p.price,
                "image": p.primary_image,
            }
            for p in top_products
        ],
    })


# ─────────────────────────────────────────────
# USERS
# ─────────────────────────────────────────────

@router.get("/users")
def list_users(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    role: Optional[str] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if is_active is not None:
        query = query.filter(User.is_active.is_(is_active))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        )

    total = query.count()
    users = (
        query.order_by(User.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return ok(
        [serialize_user(u) for u in users],
        pagination=pagination(page, limit, total, "totalUsers"),
    )


@router.put("/users/{user_id}/status")
def update_user_status(
    user_id: uuid.UUID,
    payload: UserStatusPayload,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if user.id == admin.id and not payload.is_active:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    user.is_active = payload.is_active
    db.commit()
    db.refresh(user)

    logger.info("User status changed | user=%s | active=%s | by=%s", user.id, user.is_active, admin.id)

    state = "activated" if user.is_active else "deactivated"
    return ok(serialize_user(user), f"User {state} successfully")


# ─────────────────────────────────────────────
# ORDERS
# ─────────────────────────────────────────────

@router.get("/orders")
def list_orders(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query = db.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)

    total = query.count()
    orders = (
        query.order_by(Order.order_date.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    data = []
    for o in orders:
        entry = serialize_order(o, include_admin_fields=True)
        entry["customer"] = {
            "firstName": o.user.first_name,
            "lastName": o.user.last_name,
            "email": o.user.email,
        }
        data.append(entry)

    return ok(data, pagination=pagination(page, limit, total, "totalOrders"))


@router.put("/orders/{order_id}/status")
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusPayload,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    """
    Move an order along its lifecycle.

    Tracking fields are stored before the transition; cancelling
    restocks items and refunds reward points.
    """
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")

    for field in ("carrier", "tracking_number", "tracking_url", "admin_notes"):
        value = getattr(payload, field)
        if value is not None:
            setattr(order, field, value)
    if payload.estimated_delivery is not None:
        order.estimated_delivery = _naive_utc(payload.estimated_delivery)

    order = advance_order(db, order, payload.status, payload.note.strip())

    return ok(serialize_order(order, include_admin_fields=True), "Order status updated successfully")


# ─────────────────────────────────────────────
# PRODUCTS
# ─────────────────────────────────────────────

@router.get("/products")
def list_products(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    low_stock: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
):
    query = db.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if category:
        query = query.filter(Product.category == category)
    if is_active is not None:
        query = query.filter(Product.is_active.is_(is_active))
    if low_stock:
        query = query.filter(Product.stock <= Product.low_stock_threshold)

    total = query.count()
    products = (
        query.order_by(Product.created_at.desc(), Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return ok(
        [serialize_product(p) for p in products],
        pagination=pagination(page, limit, total, "totalProducts"),
    )


@router.post("/products", status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductPayload,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    values = _product_values(payload)

    if db.query(Product).filter(Product.sku == values["sku"]).first():
        raise HTTPException(status_code=400, detail="Product with this SKU already exists")

    product = Product(**values)
    product.slug = _unique_slug(db, product.name, product.sku)

    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info("Product created | product=%s | sku=%s", product.id, product.sku)

    return ok(serialize_product(product), "Product created successfully")


@router.put("/products/{product_id}")
def update_product(
    product_id: uuid.UUID,
    payload: ProductUpdatePayload,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    values = _product_values(payload, exclude_unset=True)
    values = {k: v for k, v in values.items() if v is not None or k == "original_price"}

    if values.get("sku") and values["sku"] != product.sku:
        clash = db.query(Product).filter(Product.sku == values["sku"], Product.id != product.id).first()
        if clash:
            raise HTTPException(status_code=400, detail="Product with this SKU already exists")

    for field, value in values.items():
        setattr(product, field, value)

    if "name" in values:
        product.slug = _unique_slug(db, product.name, product.sku, product.id)

    db.commit()
    db.refresh(product)

    return ok(serialize_product(product), "Product updated successfully")


@router.delete("/products/{product_id}")
def delete_product(
    product_id: uuid.UUID,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    """Soft delete; order history keeps pointing at the row."""
    product = db.get(Product, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")

    product.is_active = False
    db.commit()

    logger.info("Product deactivated | product=%s", product.id)

    return ok(message="Product deleted successfully")
