"""Transports that carry assistant requests to the server."""

from ledger_assistant.infrastructure.transport.base import AssistantTransport
from ledger_assistant.infrastructure.transport.factory import close_transport, get_transport
from ledger_assistant.infrastructure.transport.http import HttpAssistantTransport

__all__ = [
    "AssistantTransport",
    "HttpAssistantTransport",
    "close_transport",
    "get_transport",
]
