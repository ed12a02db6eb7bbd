"""
Money and rating rules shared by the ORM and SQL backends.

Amounts and weights are stored as decimal(10,2); every computed amount is
rounded half-up to cents here, and every price is computed on the weight as
stored, so both backends produce identical values.
"""
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

CENTS = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def to_weight(value: Decimal) -> Decimal:
    """Weight in kg at the stored scale (2 places, half-up)."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def estimate_price(weight: Decimal, price_per_kg: Optional[Decimal]) -> Decimal:
    if price_per_kg is None:
        return to_money(Decimal(0))
    return to_money(to_weight(weight) * Decimal(price_per_kg))


def generate_verification_code() -> str:
    return uuid.uuid4().hex[:10].upper()


def payment_message(amount: Optional[Decimal], verification_code: Optional[str]) -> str:
    if amount is None or verification_code is None:
        return "Collection recorded successfully"
    return f"Collection recorded. Payment of Rs.{amount:.2f} pending. Code: {verification_code}"


def performance_rating(total_collections: int, complaints: int) -> str:
    """Rate an operator by complaints received per collection."""
    if total_collections == 0:
        return "No Activity"
    ratio = complaints / total_collections
    if ratio <= 0.05:
        return "Excellent"
    if ratio <= 0.15:
        return "Good"
    if ratio <= 0.30:
        return "Average"
    return "Poor"
