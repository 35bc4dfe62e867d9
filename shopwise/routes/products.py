import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from shopwise.database import get_db
from shopwise.models import Product, Review, User
from shopwise.security import get_current_user
from shopwise.serializers import CamelModel, ok, pagination, serialize_product

router = APIRouter(prefix="/products", tags=["products"])

SORTS = {
    "price_asc": Product.price.asc(),
    "price_desc": Product.price.desc(),
    "rating": Product.rating.desc(),
    "newest": Product.created_at.desc(),
    "popular": Product.purchases.desc(),
}


class ReviewPayload(CamelModel):
    rating: int = Field(ge=1, le=5)
    comment: str = Field(min_length=10, max_length=1000)


# =====================================================
# PUBLIC: LIST PRODUCTS
# =====================================================
@router.get("")
def list_products(
    db: Session = Depends(get_db),
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    brand: Optional[List[str]] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    rating: Optional[float] = Query(None, ge=0, le=5),
    search: Optional[str] = None,
    featured: Optional[bool] = None,
    on_sale: Optional[bool] = None,
    sort: Optional[str] = "newest",
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
):
    query = db.query(Product).filter(Product.is_active.is_(True))

    if category:
        query = query.filter(Product.category == category)
    if subcategory:
        query = query.filter(Product.subcategory == subcategory)
    if brand:
        query = query.filter(Product.brand.in_(brand))
    if min_price is not None:
        query = query.filter(Product.price >= min_price)
    if max_price is not None:
        query = query.filter(Product.price <= max_price)
    if rating is not None:
        query = query.filter(Product.rating >= rating)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Product.name.ilike(pattern),
                Product.description.ilike(pattern),
                Product.brand.ilike(pattern),
            )
        )
    if featured:
        query = query.filter(Product.is_featured.is_(True))
    if on_sale:
        query = query.filter(Product.is_on_sale.is_(True))

    total = query.count()

    products = (
        query.order_by(SORTS.get(sort, SORTS["newest"]), Product.id)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return ok(
        [serialize_product(p) for p in products],
        pagination=pagination(page, limit, total, "totalProducts"),
    )


# =====================================================
# PUBLIC: CATALOG FACETS
# =====================================================
@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    rows = (
        db.query(Product.category, Product.subcategory, func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category, Product.subcategory)
        .order_by(Product.category, Product.subcategory)
        .all()
    )

    categories = {}
    for category, subcategory, count in rows:
        entry = categories.setdefault(
            category, {"name": category, "count": 0, "subcategories": []}
        )
        entry["count"] += count
        entry["subcategories"].append(subcategory)

    return ok(list(categories.values()))


@router.get("/brands")
def list_brands(db: Session = Depends(get_db)):
    rows = (
        db.query(Product.brand)
        .filter(Product.is_active.is_(True))
        .distinct()
        .order_by(Product.brand)
        .all()
    )
    return ok([r.brand for r in rows])


@router.get("/featured")
def featured_products(
    db: Session = Depends(get_db),
    limit: int = Query(8, ge=1, le=50),
):
    products = (
        db.query(Product)
        .filter(Product.is_active.is_(True), Product.is_featured.is_(True))
        .order_by(Product.created_at.desc())
        .limit(limit)
        .all()
    )
    return ok([serialize_product(p) for p in products])


# =====================================================
# PUBLIC: PRODUCT DETAIL
# =====================================================
@router.get("/{product_id}")
def get_product(product_id: uuid.UUID, db: Session = Depends(get_db)):
    product = db.get(Product, product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    product.views = (product.views or 0) + 1
    db.commit()
    db.refresh(product)

    return ok(serialize_product(product, include_reviews=True))


# =====================================================
# USER: REVIEWS
# =====================================================
@router.post("/{product_id}/reviews", status_code=status.HTTP_201_CREATED)
def add_review(
    product_id: uuid.UUID,
    payload: ReviewPayload,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    product = db.get(Product, product_id)
    if not product or not product.is_active:
        raise HTTPException(status_code=404, detail="Product not found")

    if any(r.user_id == user.id for r in product.reviews):
        raise HTTPException(status_code=400, detail="You have already reviewed this product")

    product.reviews.append(
        Review(
            user_id=user.id,
            name=user.full_name,
            rating=payload.rating,
            comment=payload.comment.strip(),
        )
    )
    product.calculate_average_rating()

    db.commit()
    db.refresh(product)

    return ok(serialize_product(product, include_reviews=True), "Review added successfully")
