"""Messaging channels."""

from .base import InboundEvent, MessagingChannel, should_ignore
from .http_gateway import HttpGatewayChannel

__all__ = ["InboundEvent", "MessagingChannel", "HttpGatewayChannel", "should_ignore"]
