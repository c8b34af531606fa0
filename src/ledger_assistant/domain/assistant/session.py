"""Assistant session - the conversation surface of the assistant feature.

The session:
1. Checks that the assistant is enabled
2. Builds the history window from the conversation
3. Appends the user's message
4. Sends a direct or streaming request through the coordinator
5. Records the assistant's reply in the conversation store
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import aclosing
from typing import TYPE_CHECKING

from ledger_assistant.config import Settings, get_settings
from ledger_assistant.domain.assistant.coordinator import RequestCoordinator
from ledger_assistant.domain.assistant.history import build_history_payload
from ledger_assistant.domain.assistant.models import (
    AssistantChatRequest,
    AssistantChatResponse,
    HistoryItem,
)
from ledger_assistant.domain.assistant.store import ConversationStore, Snapshot
from ledger_assistant.domain.assistant.stream import StreamReconciler
from ledger_assistant.domain.assistant.types import (
    Clock,
    ConversationMessage,
    IdFactory,
    new_id,
    utc_now,
)
from ledger_assistant.shared.exceptions import AssistantDisabledError, MessageTooLongError
from ledger_assistant.shared.logging import get_logger

if TYPE_CHECKING:
    from ledger_assistant.infrastructure.transport.base import AssistantTransport

logger = get_logger(__name__)


class AssistantSession:
    """One conversation with the assistant."""

    def __init__(
        self,
        transport: AssistantTransport,
        *,
        settings: Settings | None = None,
        store: ConversationStore | None = None,
        is_enabled: Callable[[], bool] | None = None,
        id_factory: IdFactory = new_id,
        clock: Clock = utc_now,
    ) -> None:
        """Initialize the session.

        Args:
            transport: Transport performing the assistant calls
            settings: Settings (uses cached settings if not provided)
            store: Conversation store to write to (a new one if not provided)
            is_enabled: Enablement check (defaults to ``assistant_enabled``)
            id_factory: Generates message ids and cancellation handles
            clock: Returns message creation timestamps
        """
        self.settings = settings or get_settings()
        self.transport = transport
        self.store = store or ConversationStore()
        self.coordinator = RequestCoordinator(transport, handle_factory=id_factory)
        self.reconciler = StreamReconciler(
            self.store,
            self.coordinator,
            id_factory=id_factory,
            clock=clock,
        )
        self._is_enabled = is_enabled or (lambda: self.settings.assistant_enabled)
        self._id_factory = id_factory
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._is_enabled()

    @property
    def messages(self) -> Snapshot:
        return self.store.messages

    @property
    def requesting(self) -> bool:
        return self.coordinator.is_busy

    def can_send_message(self, message: str) -> bool:
        return self.enabled and bool(message.strip()) and not self.requesting

    def history_payload(self) -> list[HistoryItem]:
        return build_history_payload(self.store.messages, self.settings.assistant_history_window)

    def clear_conversation(self) -> None:
        self.store.clear()

    def cancel_current_request(self) -> bool:
        return self.coordinator.cancel()

    async def send_message(
        self,
        message: str,
        *,
        stream: bool | None = None,
    ) -> ConversationMessage | None:
        """Send a chat message and return the assistant's reply message.

        Returns None without sending when a request is already active or the
        message is blank.

        Raises:
            AssistantDisabledError: If the assistant is not enabled
            MessageTooLongError: If the message exceeds the configured length
            AssistantRequestError: If the request fails or is canceled
        """
        self._ensure_enabled()
        if self.requesting:
            logger.debug("assistant_send_skipped_busy", state=self.coordinator.state.value)
            return None

        text = message.strip()
        if not text:
            return None
        if len(text) > self.settings.assistant_max_message_length:
            raise MessageTooLongError(self.settings.assistant_max_message_length)

        # History is taken before the new message so it is not sent twice
        history = self.history_payload()
        self.store.append(
            ConversationMessage(
                id=self._id_factory(),
                role="user",
                content=text,
                created_at=self._clock(),
            )
        )

        request = AssistantChatRequest(mode="chat", message=text, history=history)
        return await self._request(request, stream=stream)

    async def generate_summary(self, *, stream: bool | None = None) -> ConversationMessage | None:
        """Ask the assistant to summarize the conversation's bookkeeping data."""
        self._ensure_enabled()
        if self.requesting:
            logger.debug("assistant_summary_skipped_busy", state=self.coordinator.state.value)
            return None

        request = AssistantChatRequest(mode="summary", history=self.history_payload())
        return await self._request(request, stream=stream)

    async def _request(
        self,
        request: AssistantChatRequest,
        *,
        stream: bool | None,
    ) -> ConversationMessage:
        streaming = self.settings.assistant_streaming if stream is None else stream
        logger.info(
            "assistant_request_started",
            mode=request.mode,
            streaming=streaming,
            history_items=len(request.history or []),
        )

        if streaming:
            async with self.coordinator.request(mode=request.mode, streaming=True) as handle:
                async with aclosing(
                    self.transport.stream_chat(request, cancel_handle=handle)
                ) as chunks:
                    return await self.reconciler.reconcile(chunks)

        response = await self.coordinator.run(
            lambda handle: self.transport.chat(request, cancel_handle=handle),
            mode=request.mode,
        )
        return self._append_reply(response)

    def _append_reply(self, response: AssistantChatResponse) -> ConversationMessage:
        message = ConversationMessage(
            id=self._id_factory(),
            role="assistant",
            content=response.reply,
            created_at=self._clock(),
            references=tuple(response.references) if response.references is not None else None,
        )
        self.store.append(message)
        return message

    def _ensure_enabled(self) -> None:
        if not self.enabled:
            raise AssistantDisabledError()
