"""
Core types for paycore.

Re-exports from kungfu + payment-wide aliases.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

# Re-export from kungfu
from kungfu import Result, Ok, Error, LazyCoroResult

# ═══════════════════════════════════════════════════════════════════════════════
# Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Lazy[T, E] = LazyCoroResult[T, E]
"""Lazy async computation that may fail. Runs when awaited."""

type Money = Decimal
"""Exact decimal amount. Never a float."""

type Clock = Callable[[], datetime]
"""Source of 'now'. Injected so leases and audit stamps are testable."""


def system_clock() -> datetime:
    return datetime.now()


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    # Type aliases
    "Lazy",
    "Money",
    "Clock",
    "system_clock",
)
