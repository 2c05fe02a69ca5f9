# Overview: Quote totals calculation; pure functions shared by quote reads and previews.

"""
Quote Totals

Lines are split into hardware (one-off pricing) and software (monthly or
yearly pricing). VAT is 20% of the subtotal, kept in integer pence and
rounded half-up to the penny.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..models.inventory import format_gbp
from ..models.quotes import LINE_HARDWARE, LINE_SOFTWARE


VAT_RATE_BPS = 2000  # 20.00%


def line_category_for_pricing(pricing_type: str | None) -> str:
    """one-off products are hardware lines; recurring pricing is software."""
    if pricing_type in ("monthly", "yearly"):
        return LINE_SOFTWARE
    return LINE_HARDWARE


def compute_vat_cents(subtotal_cents: int) -> int:
    # Half-up rounding in integer arithmetic
    return (subtotal_cents * VAT_RATE_BPS + 5000) // 10000


@dataclass(frozen=True)
class QuoteTotals:
    hardware_total_cents: int
    software_total_cents: int
    subtotal_cents: int
    vat_cents: int
    total_cents: int

    def to_dict(self) -> dict:
        return {
            "hardware_total_cents": self.hardware_total_cents,
            "software_total_cents": self.software_total_cents,
            "subtotal_cents": self.subtotal_cents,
            "vat_cents": self.vat_cents,
            "total_cents": self.total_cents,
            "hardware_total": format_gbp(self.hardware_total_cents),
            "software_total": format_gbp(self.software_total_cents),
            "subtotal": format_gbp(self.subtotal_cents),
            "vat": format_gbp(self.vat_cents),
            "total": format_gbp(self.total_cents),
        }


def _line_parts(item) -> tuple[str, int, int]:
    if isinstance(item, dict):
        return item["line_category"], int(item["price_cents"]), int(item["quantity"])
    return item.line_category, item.price_cents, item.quantity


def compute_quote_totals(items: Iterable) -> QuoteTotals:
    """
    Accepts QuoteItem rows or dicts with line_category, price_cents, quantity.
    """
    hardware = 0
    software = 0
    for item in items:
        category, price_cents, quantity = _line_parts(item)
        if category == LINE_SOFTWARE:
            software += price_cents * quantity
        else:
            hardware += price_cents * quantity

    subtotal = hardware + software
    vat = compute_vat_cents(subtotal)
    return QuoteTotals(
        hardware_total_cents=hardware,
        software_total_cents=software,
        subtotal_cents=subtotal,
        vat_cents=vat,
        total_cents=subtotal + vat,
    )
