from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shopwise import reporting
from shopwise.database import get_db
from shopwise.models import utcnow
from shopwise.security import require_admin
from shopwise.serializers import ok

router = APIRouter(prefix="/analytics", tags=["analytics"])


# ─────────────────────────────────────────────
# DASHBOARD
# ─────────────────────────────────────────────

@router.get("/dashboard")
def analytics_dashboard(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    period: str = Query(reporting.DEFAULT_PERIOD),
):
    now = utcnow()
    start = reporting.period_start(period, now)

    summary = reporting.revenue_summary(db, start)
    categories = reporting.revenue_by_category(db, start)

    return ok({
        "period": period,
        "dateRange": {"start": start, "end": now},
        "revenue": {
            "monthly": reporting.revenue_by_period(db, start, "month"),
            "total": summary,
        },
        "categories": categories,
        "topProducts": reporting.top_products(db, start, limit=10, order_by="quantity"),
        "userGrowth": reporting.user_growth(db, start),
        "orderStatus": reporting.order_status_distribution(db, start),
        "recentActivity": reporting.recent_activity(db, now),
        "summary": {
            "totalRevenue": summary["total"],
            "totalOrders": summary["orders"],
            "avgOrderValue": summary["avgOrderValue"],
            "totalCategories": len(categories),
            "topCategory": categories[0]["category"] if categories else "N/A",
        },
    })


# ─────────────────────────────────────────────
# REVENUE
# ─────────────────────────────────────────────

@router.get("/revenue")
def analytics_revenue(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    period: str = Query(reporting.DEFAULT_PERIOD),
    granularity: str = Query("month", pattern="^(month|day)$"),
):
    start = reporting.period_start(period)
    return ok({
        "period": period,
        "granularity": granularity,
        "revenue": reporting.revenue_by_period(db, start, granularity),
    })


# ─────────────────────────────────────────────
# PRODUCTS
# ─────────────────────────────────────────────

@router.get("/products")
def analytics_products(
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
    period: str = Query("30days"),
    limit: int = Query(20, ge=1, le=100),
):
    start = reporting.period_start(period)
    return ok({
        "period": period,
        "products": reporting.top_products(db, start, limit=limit, order_by="revenue"),
    })
