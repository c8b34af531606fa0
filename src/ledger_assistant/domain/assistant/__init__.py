"""Assistant conversation domain module.

Modules:
- models: Wire models (referenced transactions, requests, stream chunks)
- types: ConversationMessage
- history: History window builder
- store: Conversation store
- coordinator: Request coordinator (mutual exclusion, cancellation, errors)
- stream: Stream reconciler
- session: AssistantSession orchestrator
"""

from ledger_assistant.domain.assistant.coordinator import RequestCoordinator, RequestState
from ledger_assistant.domain.assistant.history import (
    DEFAULT_HISTORY_WINDOW,
    build_history_payload,
)
from ledger_assistant.domain.assistant.models import (
    AssistantChatRequest,
    AssistantChatResponse,
    DoneChunk,
    HistoryItem,
    ReferencedTransaction,
    ReferencesChunk,
    ReplyDeltaChunk,
    StreamChunk,
    ThinkingDeltaChunk,
)
from ledger_assistant.domain.assistant.session import AssistantSession
from ledger_assistant.domain.assistant.store import ConversationStore
from ledger_assistant.domain.assistant.stream import StreamReconciler
from ledger_assistant.domain.assistant.types import ConversationMessage

__all__ = [
    "AssistantChatRequest",
    "AssistantChatResponse",
    "AssistantSession",
    "ConversationMessage",
    "ConversationStore",
    "DEFAULT_HISTORY_WINDOW",
    "DoneChunk",
    "HistoryItem",
    "ReferencedTransaction",
    "ReferencesChunk",
    "ReplyDeltaChunk",
    "RequestCoordinator",
    "RequestState",
    "StreamChunk",
    "StreamReconciler",
    "ThinkingDeltaChunk",
    "build_history_payload",
]
