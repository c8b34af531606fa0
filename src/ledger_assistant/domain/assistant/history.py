"""Bounded conversation context for follow-up requests."""

from collections.abc import Sequence

from ledger_assistant.domain.assistant.models import HistoryItem
from ledger_assistant.domain.assistant.types import ConversationMessage

DEFAULT_HISTORY_WINDOW = 12


def build_history_payload(
    messages: Sequence[ConversationMessage],
    window_size: int = DEFAULT_HISTORY_WINDOW,
) -> list[HistoryItem]:
    """Project the last ``window_size`` messages to role/content pairs.

    Windowing happens before filtering: messages without content inside the
    window are dropped, and nothing older than the window is ever considered.
    """
    if window_size <= 0 or not messages:
        return []

    start = max(len(messages) - window_size, 0)
    return [
        HistoryItem(role=message.role, content=message.content)
        for message in messages[start:]
        if message.content
    ]
