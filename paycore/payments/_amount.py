"""
Amount intake. Decimal and int are accepted as exact values; floats are
refused everywhere an amount enters the core.
"""

from __future__ import annotations

from decimal import Decimal

from kungfu import Result, Ok, Error

from paycore.errors import PaymentError, PaymentErrors


def as_money(value: object, name: str = "amount") -> Result[Decimal, PaymentError]:
    """Finite Decimal from a Decimal or int, else INVALID_AMOUNT."""
    if isinstance(value, (float, bool)) or not isinstance(value, (Decimal, int)):
        return Error(
            PaymentErrors.invalid_amount(f"{name} has unsupported type {type(value).__name__}")
        )
    amount = Decimal(value)
    if not amount.is_finite():
        return Error(PaymentErrors.invalid_amount(f"{name}={amount}"))
    return Ok(amount)


__all__ = ("as_money",)
