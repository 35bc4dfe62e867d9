"""
Request and response shapes shared by several routers.

Field names use the camelCase keys the storefront client reads.
"""
import math

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from shopwise.models import Address, Cart, Order, Product, User


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also works)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def ok(data=None, message: str | None = None, **extra) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def _value(enum_value):
    return enum_value.value if enum_value is not None and hasattr(enum_value, "value") else enum_value


def serialize_user(u: User) -> dict:
    return {
        "id": str(u.id),
        "firstName": u.first_name,
        "lastName": u.last_name,
        "fullName": u.full_name,
        "email": u.email,
        "phone": u.phone,
        "avatar": u.avatar_url,
        "role": u.role,
        "isActive": u.is_active,
        "rewardPoints": u.reward_points,
        "preferences": u.preferences or {},
        "lastLogin": u.last_login,
        "createdAt": u.created_at,
    }


def serialize_address(a: Address) -> dict:
    return {
        "id": str(a.id),
        "type": a.type,
        "street": a.street,
        "city": a.city,
        "state": a.state,
        "zipCode": a.zip_code,
        "country": a.country,
        "isDefault": a.is_default,
    }


def serialize_product(p: Product, include_reviews: bool = False) -> dict:
    data = {
        "id": str(p.id),
        "name": p.name,
        "slug": p.slug,
        "description": p.description,
        "shortDescription": p.short_description,
        "price": p.price,
        "originalPrice": p.original_price,
        "discountPercentage": p.discount_percentage,
        "category": p.category,
        "subcategory": p.subcategory,
        "brand": p.brand,
        "sku": p.sku,
        "images": p.images or [],
        "specifications": p.specifications or [],
        "variants": p.variants or [],
        "stock": p.stock,
        "lowStockThreshold": p.low_stock_threshold,
        "rating": p.rating,
        "numReviews": p.num_reviews,
        "isActive": p.is_active,
        "isFeatured": p.is_featured,
        "isOnSale": p.is_on_sale,
        "views": p.views,
        "purchases": p.purchases,
        "createdAt": p.created_at,
        "updatedAt": p.updated_at,
    }
    if include_reviews:
        data["reviews"] = [
            {
                "id": str(r.id),
                "user": str(r.user_id),
                "name": r.name,
                "rating": r.rating,
                "comment": r.comment,
                "helpful": r.helpful,
                "createdAt": r.created_at,
            }
            for r in p.reviews
        ]
    return data


def serialize_cart(cart: Cart | None) -> dict:
    if cart is None:
        return {
            "id": None,
            "items": [],
            "itemCount": 0,
            "subtotal": 0,
            "discountAmount": 0,
            "tax": 0,
            "shipping": 0,
            "total": 0,
            "discounts": [],
        }

    return {
        "id": str(cart.id),
        "items": [
            {
                "id": str(i.id),
                "product": {
                    "id": str(i.product_id),
                    "name": i.product.name if i.product else None,
                    "price": i.product.price if i.product else None,
                    "image": i.product.primary_image if i.product else None,
                    "stock": i.product.stock if i.product else None,
                },
                "quantity": i.quantity,
                "productSnapshot": i.product_snapshot or {},
                "selectedVariants": i.selected_variants or [],
                "itemPrice": i.item_price,
                "lineTotal": round(i.item_price * i.quantity, 2),
                "addedAt": i.added_at,
            }
            for i in cart.items
        ],
        "itemCount": cart.item_count,
        "subtotal": cart.subtotal,
        "discountAmount": cart.discount_amount,
        "tax": cart.tax,
        "shipping": cart.shipping,
        "total": cart.total,
        "discounts": cart.discounts or [],
        "status": _value(cart.status),
        "expiresAt": cart.expires_at,
        "updatedAt": cart.updated_at,
    }


def serialize_order(o: Order, include_admin_fields: bool = False) -> dict:
    data = {
        "id": str(o.id),
        "orderNumber": o.order_number,
        "user": str(o.user_id),
        "items": [
            {
                "id": str(i.id),
                "product": str(i.product_id) if i.product_id else None,
                "quantity": i.quantity,
                "productSnapshot": i.product_snapshot or {},
                "selectedVariants": i.selected_variants or [],
                "itemPrice": i.item_price,
                "totalPrice": i.total_price,
            }
            for i in o.items
        ],
        "totalItems": o.total_items,
        "subtotal": o.subtotal,
        "tax": o.tax,
        "shipping": o.shipping,
        "discountAmount": o.discount_amount,
        "total": o.total,
        "discounts": o.discounts or [],
        "shippingAddress": o.shipping_address,
        "billingAddress": o.billing_address,
        "paymentMethod": o.payment_method,
        "paymentStatus": _value(o.payment_status),
        "status": _value(o.status),
        "statusHistory": [
            {"status": h.status, "timestamp": h.timestamp, "note": h.note}
            for h in o.status_history
        ],
        "tracking": {
            "carrier": o.carrier,
            "trackingNumber": o.tracking_number,
            "trackingUrl": o.tracking_url,
            "estimatedDelivery": o.estimated_delivery,
            "actualDelivery": o.delivered_date,
        },
        "rewardPointsEarned": o.reward_points_earned,
        "rewardPointsUsed": o.reward_points_used,
        "customerNotes": o.customer_notes,
        "orderDate": o.order_date,
        "shippedDate": o.shipped_date,
        "deliveredDate": o.delivered_date,
        "returnRequested": o.return_requested,
        "returnReason": o.return_reason,
        "refundAmount": o.refund_amount,
        "canBeCancelled": o.can_be_cancelled(),
        "canBeReturned": o.can_be_returned(),
        "createdAt": o.created_at,
        "updatedAt": o.updated_at,
    }
    if include_admin_fields:
        data["adminNotes"] = o.admin_notes
    return data


def serialize_order_summary(o: Order) -> dict:
    return {
        "id": str(o.id),
        "orderNumber": o.order_number,
        "user": str(o.user_id),
        "total": o.total,
        "status": _value(o.status),
        "paymentStatus": _value(o.payment_status),
        "itemCount": o.total_items,
        "orderDate": o.order_date,
    }


def pagination(page: int, limit: int, total: int, total_key: str) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "currentPage": page,
        "totalPages": total_pages,
        total_key: total,
        "hasNextPage": page < total_pages,
        "hasPrevPage": page > 1,
        "limit": limit,
    }
