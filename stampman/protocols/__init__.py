"""Stampman protocols."""

from stampman.protocols.messaging import GatewayError, MessagingGateway

__all__ = [
    "GatewayError",
    "MessagingGateway",
]
