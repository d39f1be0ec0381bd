"""
Creation guard graph — duplicate detection as nodnod nodes.

Architecture:
    CreationSpec (injected)
         │
         ▼
    SpecNode → LookupNode (find_by_fingerprint)
                     │
         ┌───────────┼────────────────┐
         │           │                │
         ▼           ▼                ▼
    StoreErrorNode  DuplicateNode   FreshNode
         │           │                │
         └───────────┼────────────────┘
                     │
                     ▼
          CreationOutcome (@polymorphic)
                     │
                     ▼
             FinalResultNode

The lookup is an early answer only. The store's create is the atomic step:
two concurrent creations of one fingerprint both reach FreshNode, exactly one
insert wins, the other gets Ok(None) and becomes a duplicate.

Note: no 'from __future__ import annotations' here, nodnod resolves
dependencies from runtime type hints.
"""

from dataclasses import dataclass
from typing import Any

from nodnod import NodeError, polymorphic, case

from kungfu import Result, Ok, Error

from paycore import graph as G
from paycore.errors import PaymentError, PaymentErrors
from paycore.records import PaymentRecord, NewPayment, StoreError


# ═══════════════════════════════════════════════════════════════════════════════
# Input — Spec (injected)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class CreationSpec:
    """A validated payment about to be created, plus the store to create it in."""

    payment: NewPayment
    store: Any


# ═══════════════════════════════════════════════════════════════════════════════
# Entry + Lookup
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class SpecNode:
    """Wraps CreationSpec for graph."""

    def __init__(self, spec: CreationSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, spec: CreationSpec) -> "SpecNode":
        return cls(spec)


@G.node
class LookupNode:
    """Looks up a live record holding the same fingerprint."""

    def __init__(
        self,
        existing: PaymentRecord | None,
        spec: CreationSpec,
        store_error: StoreError | None = None,
    ) -> None:
        self.existing = existing
        self.spec = spec
        self.store_error = store_error

    @classmethod
    async def __compose__(cls, spec_node: SpecNode) -> "LookupNode":
        spec = spec_node.spec
        result = await spec.store.find_by_fingerprint(spec.payment.fingerprint)

        match result:
            case Ok(existing):
                return cls(existing, spec)
            case Error(err):
                return cls(None, spec, store_error=err)


# ═══════════════════════════════════════════════════════════════════════════════
# State Nodes — mutually exclusive
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class StoreErrorNode:
    """Validates: lookup failed."""

    def __init__(self, error: StoreError) -> None:
        self.error = error

    @classmethod
    def __compose__(cls, lookup: LookupNode) -> "StoreErrorNode":
        if lookup.store_error is None:
            raise NodeError("No store error")
        return cls(lookup.store_error)


@G.node
class DuplicateNode:
    """Validates: a PENDING or COMPLETED record holds the fingerprint."""

    def __init__(self, existing: PaymentRecord) -> None:
        self.existing = existing

    @classmethod
    def __compose__(cls, lookup: LookupNode) -> "DuplicateNode":
        if lookup.existing is None:
            raise NodeError("No live record")
        return cls(lookup.existing)


@G.node
class FreshNode:
    """Validates: lookup succeeded and found nothing."""

    def __init__(self, spec: CreationSpec) -> None:
        self.spec = spec

    @classmethod
    def __compose__(cls, lookup: LookupNode) -> "FreshNode":
        if lookup.store_error is not None:
            raise NodeError("Store error")
        if lookup.existing is not None:
            raise NodeError("Live record exists")
        return cls(lookup.spec)


# ═══════════════════════════════════════════════════════════════════════════════
# Outcome Types
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class Created:
    """A new PENDING record."""

    record: PaymentRecord


@dataclass(frozen=True)
class Rejected:
    """Creation refused."""

    error: PaymentError


type Outcome = Created | Rejected


# ═══════════════════════════════════════════════════════════════════════════════
# Polymorphic Outcome
# ═══════════════════════════════════════════════════════════════════════════════


@polymorphic[Outcome]
class CreationOutcome:
    """Routes the lookup state to an outcome. Checks already done in state nodes."""

    @case
    def store_error(cls, node: StoreErrorNode) -> Outcome:
        return Rejected(PaymentErrors.internal(node.error.message))

    @case
    def duplicate(cls, node: DuplicateNode) -> Outcome:
        existing = node.existing
        return Rejected(
            PaymentErrors.duplicate(
                f"fingerprint={existing.fingerprint.key} status={existing.status.value}"
            )
        )

    @case
    async def create_new(cls, node: FreshNode) -> Outcome:
        """Insert. A lost race surfaces as Ok(None) from the store."""
        spec = node.spec
        result = await spec.store.create(spec.payment)

        match result:
            case Ok(None):
                return Rejected(
                    PaymentErrors.duplicate(
                        f"fingerprint={spec.payment.fingerprint.key} (concurrent create)"
                    )
                )
            case Ok(record):
                return Created(record)
            case Error(err):
                return Rejected(PaymentErrors.internal(err.message))


# ═══════════════════════════════════════════════════════════════════════════════
# Final Node
# ═══════════════════════════════════════════════════════════════════════════════


@G.node
class FinalResultNode:
    """Converts Outcome to typed Result."""

    def __init__(self, outcome: Outcome) -> None:
        self.outcome = outcome

    @classmethod
    def __compose__(cls, outcome: CreationOutcome) -> "FinalResultNode":
        return cls(outcome.value)

    def to_result(self) -> Result[PaymentRecord, PaymentError]:
        match self.outcome:
            case Created(record=record):
                return Ok(record)
            case Rejected(error=error):
                return Error(error)


# ═══════════════════════════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════════════════════════


async def guard_creation(spec: CreationSpec) -> Result[PaymentRecord, PaymentError]:
    """Create the payment unless its fingerprint is already live."""
    node = await G.resolve(FinalResultNode, spec)
    return node.to_result()


__all__ = (
    "CreationSpec",
    "Outcome",
    "Created",
    "Rejected",
    "SpecNode",
    "LookupNode",
    "StoreErrorNode",
    "DuplicateNode",
    "FreshNode",
    "CreationOutcome",
    "FinalResultNode",
    "guard_creation",
)
