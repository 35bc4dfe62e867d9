"""
Cart and order pricing.

Totals are always recomputed from the full list of lines and applied
discounts; nothing in here patches a previous result.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

TAX_RATE = 0.085
FREE_SHIPPING_THRESHOLD = 35
FLAT_SHIPPING_FEE = 5.99


# =====================================================
# DISCOUNT CODES
# =====================================================

DISCOUNT_CODES = {
    "SAVE10": {"type": "percentage", "value": 10, "description": "10% off your order"},
    "FREESHIP": {"type": "shipping", "value": 999, "description": "Free shipping"},
    "WELCOME20": {"type": "fixed", "value": 20, "description": "$20 off your order"},
}


class PricingError(ValueError):
    """Base for pricing rule violations; routes answer them with 400."""


class DiscountError(PricingError):
    """Unknown or already applied discount code."""


class VariantError(PricingError):
    """Selected variant or option the product does not offer."""


def round2(value) -> float:
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def lookup_discount(code: str) -> dict:
    normalized = normalize_code(code)
    discount = DISCOUNT_CODES.get(normalized)
    if not discount:
        raise DiscountError("Invalid discount code")
    return {"code": normalized, **discount}


def add_discount(discounts: Optional[List[dict]], code: str) -> List[dict]:
    discounts = list(discounts or [])
    discount = lookup_discount(code)

    if any(d.get("code") == discount["code"] for d in discounts):
        raise DiscountError("Discount code already applied")

    discounts.append(discount)
    return discounts


def remove_discount(discounts: Optional[List[dict]], code: str) -> List[dict]:
    normalized = normalize_code(code)
    return [d for d in (discounts or []) if d.get("code") != normalized]


# =====================================================
# VARIANTS
# =====================================================

def resolve_item_price(
    base_price: float,
    variants: Optional[List[dict]],
    selected: Optional[List[dict]],
) -> Tuple[float, List[dict]]:
    """
    Price of one unit with the selected variant options applied.

    Price deltas come from the product's own variant definitions; a
    selection naming an unknown variant or option raises VariantError.
    """
    item_price = float(base_price)
    resolved = []

    for choice in selected or []:
        name = choice.get("name")
        value = choice.get("value")

        variant = next((v for v in variants or [] if v.get("name") == name), None)
        if variant is None:
            raise VariantError(f"Unknown variant '{name}'")

        option = next(
            (o for o in variant.get("options") or [] if o.get("value") == value),
            None,
        )
        if option is None:
            raise VariantError(f"Unknown option '{value}' for variant '{name}'")

        delta = float(option.get("price") or 0)
        item_price += delta
        resolved.append({"name": name, "value": value, "price": delta})

    return round2(item_price), resolved


# =====================================================
# TOTALS
# =====================================================

def calculate_totals(
    lines: Iterable[Tuple[float, int]],
    discounts: Optional[List[dict]] = None,
    extra_discount: float = 0,
) -> dict:
    """
    Compute subtotal, discount, tax, shipping and total.

    ``lines`` yields ``(item_price, quantity)`` pairs where item_price
    already includes variant deltas. ``extra_discount`` is a flat amount
    added on top of the code discounts (reward point redemption). With no
    lines every figure is zero.
    """
    discounts = discounts or []
    lines = list(lines)

    subtotal = round2(sum(price * quantity for price, quantity in lines))

    discount_amount = 0.0
    for discount in discounts:
        if discount.get("type") == "percentage":
            discount_amount += subtotal * discount["value"] / 100
        elif discount.get("type") == "fixed":
            discount_amount += discount["value"]
    discount_amount += extra_discount

    # never discount below zero
    discount_amount = round2(min(discount_amount, subtotal))
    discounted = subtotal - discount_amount

    tax = round2(discounted * TAX_RATE)

    if not lines or discounted >= FREE_SHIPPING_THRESHOLD:
        shipping = 0.0
    else:
        shipping = FLAT_SHIPPING_FEE
    shipping_discount = next((d for d in discounts if d.get("type") == "shipping"), None)
    if shipping_discount:
        shipping = max(0.0, shipping - shipping_discount["value"])
    shipping = round2(shipping)

    total = round2(subtotal - discount_amount + tax + shipping)

    return {
        "subtotal": subtotal,
        "discount_amount": discount_amount,
        "tax": tax,
        "shipping": shipping,
        "total": total,
    }
