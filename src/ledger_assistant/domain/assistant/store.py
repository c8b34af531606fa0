"""Conversation store: the ordered message list and its change feed."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterator
from typing import Any

from ledger_assistant.domain.assistant.types import ConversationMessage
from ledger_assistant.shared.logging import get_logger

logger = get_logger(__name__)

Snapshot = tuple[ConversationMessage, ...]
Listener = Callable[[Snapshot], None]

PATCHABLE_FIELDS = frozenset({"content", "thinking", "references"})


class ConversationStore:
    """Ordered, copy-on-write list of conversation messages.

    Every mutation replaces the snapshot tuple, bumps ``version`` and hands
    the new snapshot to each subscriber. Readers can hold on to a snapshot
    without it changing underneath them.
    """

    def __init__(self) -> None:
        self._messages: Snapshot = ()
        self._version = 0
        self._listeners: list[Listener] = []

    @property
    def messages(self) -> Snapshot:
        return self._messages

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[ConversationMessage]:
        return iter(self._messages)

    def get(self, message_id: str) -> ConversationMessage | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def append(self, message: ConversationMessage) -> None:
        self._commit(self._messages + (message,))

    def patch_by_id(self, message_id: str, **fields: Any) -> bool:
        """Replace ``fields`` on the message with ``message_id``.

        Returns False and leaves the store untouched when no message matches.

        Raises:
            ValueError: If a field is immutable or unknown
        """
        invalid = set(fields) - PATCHABLE_FIELDS
        if invalid:
            raise ValueError(f"Cannot patch message fields: {', '.join(sorted(invalid))}")

        for index, message in enumerate(self._messages):
            if message.id != message_id:
                continue

            if "references" in fields and fields["references"] is not None:
                fields["references"] = tuple(fields["references"])

            patched = dataclasses.replace(message, **fields)
            self._commit(self._messages[:index] + (patched,) + self._messages[index + 1 :])
            return True

        logger.debug("conversation_patch_missed", message_id=message_id)
        return False

    def clear(self) -> None:
        self._commit(())

    def _commit(self, messages: Snapshot) -> None:
        self._messages = messages
        self._version += 1
        for listener in list(self._listeners):
            listener(messages)
