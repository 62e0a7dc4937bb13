"""Money helpers.

Internal storage unit: rupees as ``Decimal`` with two fractional digits.
Gateway unit: paise (smallest INR unit, 100 paise = ₹1) as ``int``.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

PAISE_PER_RUPEE: int = 100
CENT = Decimal("0.01")
ZERO = Decimal("0.00")


# ─── conversion helpers ───────────────────────────────────────────────────────


def quantize_money(value: Decimal | int | str) -> Decimal:
    """Round to two decimal places, half-up."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def rupees_to_paise(amount: Decimal) -> int:
    """Convert rupees to paise (round half-up). ₹1 = 100 paise."""
    return int((Decimal(amount) * PAISE_PER_RUPEE).quantize(Decimal("1"), ROUND_HALF_UP))


def paise_to_rupees(paise: int) -> Decimal:
    """Convert paise to rupees. 100 paise = ₹1."""
    return quantize_money(Decimal(paise) / PAISE_PER_RUPEE)


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """Return ``percentage``% of ``amount`` rounded to paise."""
    return quantize_money(Decimal(amount) * Decimal(percentage) / Decimal(100))
