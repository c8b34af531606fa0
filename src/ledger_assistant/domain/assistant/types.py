"""Conversation domain types."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import uuid4

from ledger_assistant.domain.assistant.models import MessageRole, ReferencedTransaction

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]


def new_id() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    """One turn in the conversation.

    Instances are immutable; the conversation store swaps in a copy when a
    field changes.
    """

    id: str
    role: MessageRole
    content: str
    created_at: datetime
    thinking: str | None = None
    references: tuple[ReferencedTransaction, ...] | None = None
