import pytest

from shopwise import pricing
from shopwise.pricing import DiscountError, PricingError, VariantError, calculate_totals, round2


def _discounts(*codes):
    discounts = []
    for code in codes:
        discounts = pricing.add_discount(discounts, code)
    return discounts


def _assert_consistent(totals):
    expected = round2(
        totals["subtotal"] - totals["discount_amount"] + totals["tax"] + totals["shipping"]
    )
    assert totals["total"] == expected


# =====================================================
# WORKED EXAMPLES
# =====================================================

def test_percentage_discount_example():
    totals = calculate_totals([(40, 2)], _discounts("SAVE10"))

    assert totals == {
        "subtotal": 80.0,
        "discount_amount": 8.0,
        "tax": 6.12,
        "shipping": 0.0,
        "total": 78.12,
    }


def test_fixed_discount_example():
    totals = calculate_totals([(40, 2)], _discounts("WELCOME20"))

    assert totals["discount_amount"] == 20.0
    assert totals["tax"] == 5.10
    assert totals["shipping"] == 0.0
    assert totals["total"] == 65.10


def test_small_order_pays_flat_shipping():
    totals = calculate_totals([(20, 1)])

    assert totals["subtotal"] == 20.0
    assert totals["shipping"] == 5.99
    assert totals["tax"] == 1.70
    assert totals["total"] == 27.69


# =====================================================
# PROPERTIES
# =====================================================

@pytest.mark.parametrize("lines", [
    [],
    [(19.99, 3)],
    [(12.5, 1), (7.25, 4), (0.99, 10)],
    [(199.99, 1), (24.99, 2)],
])
def test_subtotal_is_sum_of_lines(lines):
    totals = calculate_totals(lines)
    assert totals["subtotal"] == round2(sum(price * qty for price, qty in lines))


@pytest.mark.parametrize("price, shipping", [
    (35.0, 0.0),
    (34.99, 5.99),
    (100.0, 0.0),
])
def test_free_shipping_threshold(price, shipping):
    assert calculate_totals([(price, 1)])["shipping"] == shipping


def test_no_lines_means_zero_totals():
    totals = calculate_totals([], _discounts("SAVE10"))

    assert totals == {
        "subtotal": 0.0,
        "discount_amount": 0.0,
        "tax": 0.0,
        "shipping": 0.0,
        "total": 0.0,
    }


def test_lines_from_a_generator():
    totals = calculate_totals(((price, 1) for price in (10, 5)))

    assert totals["subtotal"] == 15.0
    assert totals["shipping"] == 5.99


def test_threshold_uses_discounted_subtotal():
    # 40 - 10% = 36 keeps free shipping, 40 - 20 = 20 loses it
    assert calculate_totals([(40, 1)], _discounts("SAVE10"))["shipping"] == 0.0
    assert calculate_totals([(40, 1)], _discounts("WELCOME20"))["shipping"] == 5.99


@pytest.mark.parametrize("codes", [
    (),
    ("SAVE10",),
    ("WELCOME20",),
    ("FREESHIP",),
    ("SAVE10", "WELCOME20"),
    ("SAVE10", "FREESHIP", "WELCOME20"),
])
@pytest.mark.parametrize("lines", [[(12.34, 1)], [(33.33, 3)], [(5.55, 7), (18.2, 2)]])
def test_total_identity_holds(codes, lines):
    _assert_consistent(calculate_totals(lines, _discounts(*codes)))


def test_shipping_discount_only_reduces_shipping():
    totals = calculate_totals([(20, 1)], _discounts("FREESHIP"))

    assert totals["discount_amount"] == 0.0
    assert totals["shipping"] == 0.0
    assert totals["total"] == 21.70


def test_discount_never_exceeds_subtotal():
    totals = calculate_totals([(10, 1)], _discounts("WELCOME20"))

    assert totals["discount_amount"] == 10.0
    assert totals["tax"] == 0.0
    assert totals["total"] == 5.99


def test_extra_discount_stacks_with_codes():
    totals = calculate_totals([(40, 2)], _discounts("SAVE10"), extra_discount=12)

    assert totals["discount_amount"] == 20.0
    assert totals["tax"] == 5.10
    assert totals["total"] == 65.10


def test_round2_rounds_half_up():
    assert round2(2.675) == 2.68
    assert round2(1.005) == 1.01
    assert round2(6.12) == 6.12


# =====================================================
# DISCOUNT CODES
# =====================================================

def test_codes_are_case_insensitive():
    discounts = pricing.add_discount([], " save10 ")
    assert discounts[0]["code"] == "SAVE10"
    assert discounts[0]["type"] == "percentage"


def test_unknown_code_is_rejected():
    with pytest.raises(DiscountError, match="Invalid discount code"):
        pricing.add_discount([], "BOGUS")


def test_same_code_twice_is_rejected():
    discounts = _discounts("SAVE10")
    with pytest.raises(DiscountError, match="already applied"):
        pricing.add_discount(discounts, "save10")


def test_add_discount_does_not_mutate_input():
    original = _discounts("SAVE10")
    pricing.add_discount(original, "WELCOME20")
    assert [d["code"] for d in original] == ["SAVE10"]


def test_removing_unapplied_code_is_noop():
    discounts = _discounts("SAVE10")
    assert pricing.remove_discount(discounts, "WELCOME20") == discounts
    assert pricing.remove_discount(discounts, "save10") == []


# =====================================================
# VARIANTS
# =====================================================

VARIANTS = [
    {"name": "Size", "options": [{"value": "M", "price": 0}, {"value": "XL", "price": 2.5}]},
    {"name": "Color", "options": [{"value": "Red", "price": 1}]},
]


def test_variant_deltas_come_from_product():
    price, resolved = pricing.resolve_item_price(
        20, VARIANTS, [{"name": "Size", "value": "XL", "price": 100}, {"name": "Color", "value": "Red"}]
    )

    assert price == 23.5
    assert resolved == [
        {"name": "Size", "value": "XL", "price": 2.5},
        {"name": "Color", "value": "Red", "price": 1.0},
    ]


def test_no_selection_keeps_base_price():
    assert pricing.resolve_item_price(19.99, VARIANTS, None) == (19.99, [])


@pytest.mark.parametrize("selected", [
    [{"name": "Material", "value": "Wool"}],
    [{"name": "Size", "value": "XXS"}],
])
def test_unknown_variant_selection_is_rejected(selected):
    with pytest.raises(VariantError):
        pricing.resolve_item_price(20, VARIANTS, selected)


def test_pricing_errors_share_a_base():
    assert issubclass(DiscountError, PricingError)
    assert issubclass(VariantError, PricingError)
    assert not issubclass(VariantError, DiscountError)
