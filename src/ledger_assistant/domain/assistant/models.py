"""Wire models exchanged with the remote assistant.

Field names are snake_case in Python and camelCase on the wire. Amounts are
integers in minor currency units, times are unix seconds.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator
from pydantic.alias_generators import to_camel

from ledger_assistant.config import MAX_HISTORY_ITEMS

AssistantMode = Literal["chat", "summary"]
MessageRole = Literal["user", "assistant"]


class WireModel(BaseModel):
    """Base model for assistant payloads.

    Unknown fields are ignored so newer servers can add data without breaking
    older clients.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Transaction Reference Model
# ============================================================================


class ReferencedTransaction(WireModel):
    """A transaction the assistant cited in its reply."""

    id: str
    time: int
    time_text: str | None = None
    type: int
    category_name: str | None = None
    source_account_name: str | None = None
    destination_account_name: str | None = None
    source_amount: int
    destination_amount: int | None = None
    currency: str | None = None
    destination_currency: str | None = None
    comment: str | None = None
    similarity_score: float | None = None


# ============================================================================
# Request / Response
# ============================================================================


class HistoryItem(WireModel):
    """One prior conversation turn sent as context."""

    role: MessageRole
    content: str


class AssistantChatRequest(WireModel):
    """Input for both the direct and the streaming assistant request."""

    mode: AssistantMode = "chat"
    message: str | None = None
    history: list[HistoryItem] | None = Field(default=None, max_length=MAX_HISTORY_ITEMS)

    @model_validator(mode="after")
    def require_message_for_chat(self) -> "AssistantChatRequest":
        if self.mode == "chat" and not (self.message and self.message.strip()):
            raise ValueError("message for ai assistant is empty")
        return self


class AssistantChatResponse(WireModel):
    """Result of a direct (non-streaming) assistant request."""

    mode: AssistantMode
    reply: str
    references: list[ReferencedTransaction] | None = None


# ============================================================================
# Stream Chunks
# ============================================================================


class ThinkingDeltaChunk(WireModel):
    type: Literal["thinking_delta"] = "thinking_delta"
    delta: str = ""


class ReplyDeltaChunk(WireModel):
    type: Literal["reply_delta"] = "reply_delta"
    delta: str = ""


class ReferencesChunk(WireModel):
    type: Literal["references"] = "references"
    references: list[ReferencedTransaction] | None = None


class DoneChunk(WireModel):
    """Terminal chunk. Non-empty ``reply``/``thinking`` override the deltas."""

    type: Literal["done"] = "done"
    mode: AssistantMode | None = None
    reply: str | None = None
    thinking: str | None = None


StreamChunk = Annotated[
    Union[ThinkingDeltaChunk, ReplyDeltaChunk, ReferencesChunk, DoneChunk],
    Field(discriminator="type"),
]

STREAM_CHUNK_TYPES = frozenset({"thinking_delta", "reply_delta", "references", "done"})

_stream_chunk_adapter: TypeAdapter[StreamChunk] = TypeAdapter(StreamChunk)


def parse_stream_chunk(payload: dict[str, Any]) -> StreamChunk | None:
    """Decode one chunk payload, returning None for unrecognized chunk types.

    Raises:
        pydantic.ValidationError: If a recognized chunk is malformed
    """
    if payload.get("type") not in STREAM_CHUNK_TYPES:
        return None
    return _stream_chunk_adapter.validate_python(payload)
