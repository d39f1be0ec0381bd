"""
Gateway — adapters to the external payment processor.

    from paycore import gateway as GW

    gateway = GW.HTTPGateway.from_settings(get_settings())

    match await gateway.confirm(payment_key, order_id, Decimal("50000")):
        case Ok(confirmation):
            ...
        case Error(failure):
            ...  # TIMEOUT / REJECTED / UNAVAILABLE / TRANSPORT / INVALID_RESPONSE
"""

from paycore.gateway._types import (
    GatewayConfirmation,
    GatewayCancellation,
    GatewayFailureKind,
    GatewayFailure,
    GatewayFailures,
    Gateway,
    within_timeout,
)
from paycore.gateway._http import HTTPGateway
from paycore.gateway._memory import MemoryGateway

__all__ = (
    "GatewayConfirmation",
    "GatewayCancellation",
    "GatewayFailureKind",
    "GatewayFailure",
    "GatewayFailures",
    "Gateway",
    "within_timeout",
    "HTTPGateway",
    "MemoryGateway",
)
