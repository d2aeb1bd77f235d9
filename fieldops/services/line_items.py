"""Invoice line-item arithmetic.

Two pricing formulas are in use and are kept explicit per call site:

* ``PricingMode.FULL`` (invoice create/update, the invoice edit screen):
  ``total = price * quantity * (1 - discount/100) * (1 + tax/100)``.
* ``PricingMode.QUICK`` (quick invoice and adding from a service catalog):
  ``total = price * quantity``; GST is charged once on the invoice subtotal.

Markup is stored with each line but does not take part in any total.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, List, Mapping

from fieldops.core.config import DEFAULT_TAX_RATE

CENT = Decimal("0.01")
HUNDRED = Decimal("100")
ZERO = Decimal("0")
QUICK_INVOICE_GST_RATE = Decimal("10")
# largest values the Numeric(5, 2) and Numeric(12, 2) columns hold
PERCENT_MAX = Decimal("999.99")
AMOUNT_MAX = Decimal("9999999999.99")


class PricingMode(str, Enum):
    FULL = "full"
    QUICK = "quick"


def to_decimal(value: Any, fallback: Decimal | str | int = ZERO) -> Decimal:
    if value is None or value == "":
        return Decimal(fallback)
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError):
            return Decimal(fallback)
    if not result.is_finite():
        return Decimal(fallback)
    return result


def to_cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    name: str = ""
    description: str = ""
    quantity: Decimal = ZERO
    cost: Decimal = ZERO
    price: Decimal = ZERO
    markup: Decimal = ZERO
    tax: Decimal = field(default_factory=lambda: Decimal(DEFAULT_TAX_RATE))
    discount: Decimal = ZERO

    @property
    def base(self) -> Decimal:
        return self.price * self.quantity

    @property
    def discount_amount(self) -> Decimal:
        return self.base * (self.discount / HUNDRED)

    @property
    def after_discount(self) -> Decimal:
        return self.base - self.discount_amount

    @property
    def tax_amount(self) -> Decimal:
        return self.after_discount * (self.tax / HUNDRED)


@dataclass(frozen=True)
class PricedLineItem:
    item: LineItem
    total: Decimal
    net: Decimal
    tax_amount: Decimal


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    tax_amount: Decimal
    total_with_tax: Decimal


@dataclass(frozen=True)
class InvoiceMargins:
    total_cost: Decimal
    total_charge: Decimal
    gross_profit: Decimal
    gross_margin: Decimal


def line_item_from_payload(payload: Mapping[str, Any]) -> LineItem:
    """Inputs are rounded to the two decimals the line-item columns keep, so a
    stored line prices to the same total when it is read back."""
    return LineItem(
        name=str(payload.get("name") or ""),
        description=str(payload.get("description") or ""),
        quantity=to_cents(to_decimal(payload.get("quantity"))),
        cost=to_cents(to_decimal(payload.get("cost"))),
        price=to_cents(to_decimal(payload.get("price"))),
        markup=to_cents(to_decimal(payload.get("markup"))),
        tax=to_cents(to_decimal(payload.get("tax"), fallback=DEFAULT_TAX_RATE)),
        discount=to_cents(to_decimal(payload.get("discount"))),
    )


def full_line_total(item: LineItem) -> Decimal:
    return to_cents(item.after_discount + item.tax_amount)


def quick_line_total(item: LineItem) -> Decimal:
    return to_cents(item.base)


def price_line_item(item: LineItem, mode: PricingMode = PricingMode.FULL) -> PricedLineItem:
    if mode is PricingMode.QUICK:
        total = quick_line_total(item)
        return PricedLineItem(item=item, total=total, net=total, tax_amount=ZERO)
    return PricedLineItem(
        item=item,
        total=full_line_total(item),
        net=to_cents(item.after_discount),
        tax_amount=to_cents(item.tax_amount),
    )


def price_line_items(
    payloads: Iterable[Mapping[str, Any]], mode: PricingMode = PricingMode.FULL
) -> List[PricedLineItem]:
    return [price_line_item(line_item_from_payload(payload), mode) for payload in payloads]


def calculate_totals(priced: Iterable[PricedLineItem], mode: PricingMode = PricingMode.FULL) -> InvoiceTotals:
    priced = list(priced)
    subtotal = sum((line.net for line in priced), ZERO)
    if mode is PricingMode.QUICK:
        tax_amount = to_cents(subtotal * QUICK_INVOICE_GST_RATE / HUNDRED)
    else:
        tax_amount = sum((line.tax_amount for line in priced), ZERO)
    subtotal = to_cents(subtotal)
    tax_amount = to_cents(tax_amount)
    return InvoiceTotals(subtotal=subtotal, tax_amount=tax_amount, total_with_tax=subtotal + tax_amount)


def calculate_margins(items: Iterable[LineItem], subtotal: Decimal) -> InvoiceMargins:
    total_cost = to_cents(sum((item.cost * item.quantity for item in items), ZERO))
    total_charge = to_cents(subtotal)
    gross_profit = total_charge - total_cost
    if total_charge > ZERO:
        gross_margin = to_cents(gross_profit / total_charge * HUNDRED)
    else:
        gross_margin = ZERO
    return InvoiceMargins(
        total_cost=total_cost,
        total_charge=total_charge,
        gross_profit=gross_profit,
        gross_margin=gross_margin,
    )
