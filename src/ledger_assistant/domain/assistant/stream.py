"""Stream reconciler: applies assistant stream chunks to one message.

Per request the target message goes ``created -> (delta)* -> done ->
finalized``. Deltas are plain appends, so a partially rendered message never
has to be rolled back. A ``done`` chunk only overrides the accumulated text
when it carries non-empty text of its own, which covers servers that stream
everything as deltas as well as servers that send the full reply at the end.
"""

from __future__ import annotations

from collections.abc import AsyncIterable

from ledger_assistant.domain.assistant.coordinator import RequestCoordinator
from ledger_assistant.domain.assistant.models import (
    DoneChunk,
    ReferencesChunk,
    ReplyDeltaChunk,
    StreamChunk,
    ThinkingDeltaChunk,
)
from ledger_assistant.domain.assistant.store import ConversationStore
from ledger_assistant.domain.assistant.types import (
    Clock,
    ConversationMessage,
    IdFactory,
    new_id,
    utc_now,
)
from ledger_assistant.observability.metrics import ASSISTANT_STREAM_CHUNKS
from ledger_assistant.shared.logging import get_logger

logger = get_logger(__name__)


class StreamReconciler:
    """Turns a chunk sequence into conversation store patches."""

    def __init__(
        self,
        store: ConversationStore,
        coordinator: RequestCoordinator,
        *,
        id_factory: IdFactory = new_id,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.id_factory = id_factory
        self.clock = clock

    async def reconcile(self, chunks: AsyncIterable[StreamChunk]) -> ConversationMessage:
        """Consume ``chunks`` into a new assistant message and return it.

        The message is appended before the first chunk is awaited. If the
        stream fails or is canceled, the message stays in the store with
        whatever was applied so far and the error propagates.
        """
        message = ConversationMessage(
            id=self.id_factory(),
            role="assistant",
            content="",
            created_at=self.clock(),
            thinking="",
        )
        self.store.append(message)
        self.coordinator.mark_rendering()

        reply = ""
        thinking = ""
        finished = False

        try:
            async for chunk in chunks:
                ASSISTANT_STREAM_CHUNKS.labels(type=chunk.type).inc()

                if isinstance(chunk, ThinkingDeltaChunk):
                    thinking += chunk.delta
                    self.store.patch_by_id(message.id, thinking=thinking)
                elif isinstance(chunk, ReplyDeltaChunk):
                    reply += chunk.delta
                    self.store.patch_by_id(message.id, content=reply)
                elif isinstance(chunk, ReferencesChunk):
                    self.store.patch_by_id(message.id, references=chunk.references)
                elif isinstance(chunk, DoneChunk):
                    if chunk.reply:
                        reply = chunk.reply
                    if chunk.thinking:
                        thinking = chunk.thinking
                    self.store.patch_by_id(message.id, content=reply, thinking=thinking)
                    finished = True
                    break
                else:
                    logger.warning("assistant_stream_chunk_ignored", chunk_type=chunk.type)
        finally:
            if not reply:
                self.store.patch_by_id(message.id, content="")
            self.coordinator.finish_rendering()

        if not finished:
            logger.warning("assistant_stream_ended_without_done", message_id=message.id)

        final = self.store.get(message.id)
        # The conversation may have been cleared while the stream was running
        return final if final is not None else message
