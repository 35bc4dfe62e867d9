"""
Read-only rollups over orders, order items and users.

Revenue figures only count orders that have shipped or been delivered.
"""
from datetime import datetime, timedelta

from sqlalchemy import extract, func, select
from sqlalchemy.orm import Session

from shopwise.models import (
    REVENUE_STATUSES,
    Order,
    OrderItem,
    Product,
    User,
    utcnow,
)
from shopwise.pricing import round2

PERIOD_DAYS = {"7days": 7, "30days": 30, "90days": 90}
PERIOD_MONTHS = {"3months": 3, "6months": 6, "12months": 12}
DEFAULT_PERIOD = "12months"


# =====================================================
# PERIODS
# =====================================================

def period_start(period: str, now: datetime | None = None) -> datetime:
    """
    Start of a reporting period.

    Day periods count back from ``now``; month periods start on the first
    day of the month N months back. Unknown periods use 12 months.
    """
    now = now or utcnow()

    if period in PERIOD_DAYS:
        return now - timedelta(days=PERIOD_DAYS[period])

    months = PERIOD_MONTHS.get(period, PERIOD_MONTHS[DEFAULT_PERIOD])
    month_index = now.year * 12 + (now.month - 1) - months
    return datetime(month_index // 12, month_index % 12 + 1, 1)


def _revenue_orders(query, start: datetime):
    return query.filter(
        Order.order_date >= start,
        Order.status.in_(REVENUE_STATUSES),
    )


def _number(value, cast=float):
    return cast(value) if value is not None else cast(0)


# =====================================================
# CUSTOMER
# =====================================================

def buy_again(db: Session, user_id, limit: int = 5) -> dict:
    """
    Products the user orders most, most frequent first.

    Ties break on the most recent order date. Deleted or inactive
    products are left out.
    """
    order_count = func.count(OrderItem.id)
    last_order_date = func.max(Order.order_date)

    rows = (
        db.query(
            OrderItem.product_id,
            order_count.label("order_count"),
            func.sum(OrderItem.quantity).label("total_quantity"),
            last_order_date.label("last_order_date"),
            func.avg(OrderItem.item_price).label("avg_price"),
        )
        .join(Order, OrderItem.order_id == Order.id)
        .join(Product, OrderItem.product_id == Product.id)
        .filter(Order.user_id == user_id, Product.is_active.is_(True))
        .group_by(OrderItem.product_id)
        .order_by(order_count.desc(), last_order_date.desc())
        .limit(limit)
        .all()
    )

    products = {
        p.id: p
        for p in db.query(Product).filter(Product.id.in_([r.product_id for r in rows]))
    } if rows else {}

    items = []
    for r in rows:
        product = products[r.product_id]
        items.append({
            "productId": str(r.product_id),
            "product": {
                "id": str(product.id),
                "name": product.name,
                "price": product.price,
                "images": product.images or [],
                "category": product.category,
                "brand": product.brand,
                "rating": product.rating,
                "stock": product.stock,
                "isActive": product.is_active,
            },
            "orderStats": {
                "orderCount": r.order_count,
                "totalQuantity": _number(r.total_quantity, int),
                "lastOrderDate": r.last_order_date,
                "avgPrice": round2(_number(r.avg_price)),
            },
        })

    recent_orders = (
        select(Order.id)
        .where(Order.user_id == user_id)
        .order_by(Order.order_date.desc())
        .limit(10)
    )
    category_count = func.count(OrderItem.id)
    categories = (
        db.query(OrderItem.category, category_count.label("count"))
        .filter(OrderItem.order_id.in_(recent_orders), OrderItem.category.isnot(None))
        .group_by(OrderItem.category)
        .order_by(category_count.desc())
        .limit(3)
        .all()
    )

    return {
        "buyAgainProducts": items,
        "recentCategories": [c.category for c in categories],
        "totalFound": len(items),
    }


def order_history_stats(db: Session, user_id) -> dict:
    total_orders, total_spent, average = (
        db.query(func.count(Order.id), func.sum(Order.total), func.avg(Order.total))
        .filter(Order.user_id == user_id)
        .one()
    )
    return {
        "totalOrders": total_orders or 0,
        "totalSpent": round2(_number(total_spent)),
        "averageOrderValue": round2(_number(average)),
    }


# =====================================================
# ADMIN ANALYTICS
# =====================================================

def revenue_by_period(db: Session, start: datetime, granularity: str = "month") -> list:
    year = extract("year", Order.order_date)
    month = extract("month", Order.order_date)
    keys = [year.label("year"), month.label("month")]
    group = [year, month]
    if granularity == "day":
        day = extract("day", Order.order_date)
        keys.append(day.label("day"))
        group.append(day)

    rows = (
        _revenue_orders(
            db.query(
                *keys,
                func.sum(Order.total).label("revenue"),
                func.count(Order.id).label("orders"),
                func.avg(Order.total).label("avg_order_value"),
            ),
            start,
        )
        .group_by(*group)
        .order_by(*group)
        .all()
    )

    data = []
    for r in rows:
        entry = {"year": int(r.year), "month": int(r.month)}
        if granularity == "day":
            entry["day"] = int(r.day)
        entry.update({
            "revenue": round2(_number(r.revenue)),
            "orders": r.orders,
            "avgOrderValue": round2(_number(r.avg_order_value)),
        })
        data.append(entry)
    return data


def revenue_by_category(db: Session, start: datetime, limit: int = 10) -> list:
    revenue = func.sum(OrderItem.quantity * OrderItem.item_price)

    rows = (
        _revenue_orders(
            db.query(
                OrderItem.category,
                revenue.label("revenue"),
                func.sum(OrderItem.quantity).label("quantity"),
                func.count(OrderItem.id).label("orders"),
            ).join(Order, OrderItem.order_id == Order.id),
            start,
        )
        .group_by(OrderItem.category)
        .order_by(revenue.desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "category": r.category,
            "revenue": round2(_number(r.revenue)),
            "quantity": _number(r.quantity, int),
            "orders": r.orders,
        }
        for r in rows
    ]


def top_products(db: Session, start: datetime, limit: int = 10, order_by: str = "quantity") -> list:
    quantity = func.sum(OrderItem.quantity)
    revenue = func.sum(OrderItem.quantity * OrderItem.item_price)
    ranking = revenue if order_by == "revenue" else quantity

    rows = (
        _revenue_orders(
            db.query(
                OrderItem.product_id,
                func.max(OrderItem.product_name).label("product_name"),
                func.max(OrderItem.category).label("category"),
                func.max(OrderItem.brand).label("brand"),
                quantity.label("total_quantity"),
                revenue.label("total_revenue"),
                func.count(OrderItem.id).label("orders"),
                func.avg(OrderItem.item_price).label("avg_price"),
            ).join(Order, OrderItem.order_id == Order.id),
            start,
        )
        .group_by(OrderItem.product_id)
        .order_by(ranking.desc())
        .limit(limit)
        .all()
    )

    return [
        {
            "productId": str(r.product_id) if r.product_id else None,
            "productName": r.product_name,
            "category": r.category,
            "brand": r.brand,
            "totalQuantity": _number(r.total_quantity, int),
            "totalRevenue": round2(_number(r.total_revenue)),
            "orders": r.orders,
            "avgPrice": round2(_number(r.avg_price)),
        }
        for r in rows
    ]


def revenue_summary(db: Session, start: datetime) -> dict:
    total, orders, average = _revenue_orders(
        db.query(func.sum(Order.total), func.count(Order.id), func.avg(Order.total)),
        start,
    ).one()
    return {
        "total": round2(_number(total)),
        "orders": orders or 0,
        "avgOrderValue": round2(_number(average)),
    }


def user_growth(db: Session, start: datetime) -> list:
    year = extract("year", User.created_at)
    month = extract("month", User.created_at)

    rows = (
        db.query(year.label("year"), month.label("month"), func.count(User.id).label("new_users"))
        .filter(User.created_at >= start)
        .group_by(year, month)
        .order_by(year, month)
        .all()
    )
    return [
        {"year": int(r.year), "month": int(r.month), "newUsers": r.new_users}
        for r in rows
    ]


def order_status_distribution(db: Session, start: datetime) -> list:
    rows = (
        db.query(Order.status, func.count(Order.id).label("count"))
        .filter(Order.order_date >= start)
        .group_by(Order.status)
        .all()
    )
    return [{"status": r.status.value, "count": r.count} for r in rows]


def recent_activity(db: Session, now: datetime | None = None, limit: int = 10) -> list:
    since = (now or utcnow()) - timedelta(hours=24)

    orders = (
        db.query(Order)
        .filter(Order.order_date >= since)
        .order_by(Order.order_date.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "orderNumber": o.order_number,
            "total": o.total,
            "status": o.status.value,
            "orderDate": o.order_date,
            "user": {
                "id": str(o.user.id),
                "firstName": o.user.first_name,
                "lastName": o.user.last_name,
                "email": o.user.email,
            },
        }
        for o in orders
    ]
