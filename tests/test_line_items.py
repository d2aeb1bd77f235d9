from decimal import Decimal

from fieldops.services.line_items import (
    LineItem,
    PricingMode,
    calculate_margins,
    calculate_totals,
    line_item_from_payload,
    price_line_item,
    price_line_items,
    to_decimal,
)


def test_full_formula_applies_discount_then_tax():
    item = LineItem(quantity=Decimal("2"), price=Decimal("100"), discount=Decimal("10"), tax=Decimal("10"))

    priced = price_line_item(item, PricingMode.FULL)

    assert priced.net == Decimal("180.00")
    assert priced.tax_amount == Decimal("18.00")
    assert priced.total == Decimal("198.00")


def test_quick_formula_ignores_discount_and_tax_per_line():
    item = LineItem(quantity=Decimal("3"), price=Decimal("19.99"), discount=Decimal("50"), tax=Decimal("10"))

    priced = price_line_item(item, PricingMode.QUICK)

    assert priced.total == Decimal("59.97")
    assert priced.tax_amount == Decimal("0")


def test_markup_never_changes_a_total():
    plain = LineItem(quantity=Decimal("1"), price=Decimal("50"))
    marked_up = LineItem(quantity=Decimal("1"), price=Decimal("50"), markup=Decimal("25"))

    for mode in PricingMode:
        assert price_line_item(plain, mode).total == price_line_item(marked_up, mode).total


def test_totals_full_mode_sum_line_taxes():
    priced = price_line_items(
        [
            {"quantity": 1, "price": "100", "tax": "10"},
            {"quantity": 2, "price": "25", "tax": "0"},
        ],
        PricingMode.FULL,
    )

    totals = calculate_totals(priced, PricingMode.FULL)

    assert totals.subtotal == Decimal("150.00")
    assert totals.tax_amount == Decimal("10.00")
    assert totals.total_with_tax == Decimal("160.00")


def test_totals_quick_mode_charges_gst_on_subtotal():
    priced = price_line_items([{"quantity": 1, "price": "33.33"}, {"quantity": 1, "price": "66.67"}], PricingMode.QUICK)

    totals = calculate_totals(priced, PricingMode.QUICK)

    assert totals.subtotal == Decimal("100.00")
    assert totals.tax_amount == Decimal("10.00")
    assert totals.total_with_tax == Decimal("110.00")


def test_rounding_is_half_up_to_cents():
    item = LineItem(quantity=Decimal("1"), price=Decimal("0.125"), tax=Decimal("0"))
    assert price_line_item(item).total == Decimal("0.13")


def test_payload_defaults_and_bad_numbers():
    item = line_item_from_payload({"name": "Labour", "quantity": "abc", "price": None})

    assert item.name == "Labour"
    assert item.quantity == Decimal("0")
    assert item.price == Decimal("0")
    assert item.tax == Decimal("10")


def test_to_decimal_rejects_non_finite_values():
    assert to_decimal("NaN") == Decimal("0")
    assert to_decimal("inf", fallback="1") == Decimal("1")
    assert to_decimal(Decimal("2.5")) == Decimal("2.5")


def test_margins():
    items = [
        LineItem(quantity=Decimal("2"), cost=Decimal("30"), price=Decimal("50")),
        LineItem(quantity=Decimal("1"), cost=Decimal("0"), price=Decimal("100")),
    ]

    margins = calculate_margins(items, Decimal("200"))

    assert margins.total_cost == Decimal("60.00")
    assert margins.gross_profit == Decimal("140.00")
    assert margins.gross_margin == Decimal("70.00")


def test_margins_with_zero_charge():
    margins = calculate_margins([], Decimal("0"))
    assert margins.gross_margin == Decimal("0")


def test_repricing_stored_lines_is_stable():
    payloads = [
        {"quantity": "3", "price": "19.99", "discount": "12.5", "tax": "10"},
        {"quantity": "0.333", "price": "7.77", "tax": "15"},
    ]

    for mode in PricingMode:
        first = price_line_items(payloads, mode)
        stored = [
            {"quantity": line.item.quantity, "price": line.item.price, "discount": line.item.discount, "tax": line.item.tax}
            for line in first
        ]
        again = price_line_items(stored, mode)
        assert [line.total for line in again] == [line.total for line in first]
        assert calculate_totals(again, mode) == calculate_totals(first, mode)


def test_payload_values_are_rounded_to_stored_precision():
    item = line_item_from_payload({"quantity": "0.333", "price": "7.775", "tax": "12.345"})

    assert item.quantity == Decimal("0.33")
    assert item.price == Decimal("7.78")
    assert item.tax == Decimal("12.35")


def test_ten_units_at_one_hundred_with_ten_percent_tax():
    item = LineItem(quantity=Decimal("10"), price=Decimal("100"), discount=Decimal("0"), tax=Decimal("10"))

    assert price_line_item(item, PricingMode.FULL).total == Decimal("1100.00")
    assert price_line_item(item, PricingMode.QUICK).total == Decimal("1000.00")
