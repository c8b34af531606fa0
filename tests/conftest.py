"""
Pytest configuration and fixtures for ledger assistant tests.
"""
import asyncio
import itertools
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime, timedelta

import pytest

from ledger_assistant.config import Settings
from ledger_assistant.domain.assistant.coordinator import RequestCoordinator
from ledger_assistant.domain.assistant.models import (
    AssistantChatRequest,
    AssistantChatResponse,
    ReferencedTransaction,
    StreamChunk,
)
from ledger_assistant.domain.assistant.session import AssistantSession
from ledger_assistant.domain.assistant.store import ConversationStore
from ledger_assistant.domain.assistant.types import ConversationMessage
from ledger_assistant.infrastructure.transport.base import AssistantTransport


class ScriptedTransport(AssistantTransport):
    """In-memory transport replaying canned replies and stream chunks.

    Set ``pause_after`` to make a stream (or, for direct requests, any value)
    block before delivering that item until the call is canceled; ``paused``
    is set when the block starts.
    """

    def __init__(self) -> None:
        super().__init__()
        self.responses: list[AssistantChatResponse | Exception] = []
        self.chunks: list[StreamChunk | Exception] = []
        self.requests: list[AssistantChatRequest] = []
        self.handles: list[str] = []
        self.pause_after: int | None = None
        self.paused = asyncio.Event()
        self.closed = False

    @property
    def transport_name(self) -> str:
        return "scripted"

    async def chat(
        self,
        request: AssistantChatRequest,
        *,
        cancel_handle: str,
    ) -> AssistantChatResponse:
        self._open_handle(cancel_handle)
        self.requests.append(request)
        self.handles.append(cancel_handle)
        try:
            if self.pause_after is not None:
                await self._block(cancel_handle)
            outcome = self.responses.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            self._release_handle(cancel_handle)

    async def stream_chat(
        self,
        request: AssistantChatRequest,
        *,
        cancel_handle: str,
    ) -> AsyncIterator[StreamChunk]:
        self._open_handle(cancel_handle)
        self.requests.append(request)
        self.handles.append(cancel_handle)
        try:
            for index, item in enumerate(self.chunks):
                if self.pause_after is not None and index == self.pause_after:
                    await self._block(cancel_handle)
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            self._release_handle(cancel_handle)

    async def close(self) -> None:
        self.closed = True

    async def _block(self, cancel_handle: str) -> None:
        self.paused.set()
        await self._until_canceled(asyncio.Event().wait(), cancel_handle)


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings that ignore the environment's .env file."""
    return Settings(
        _env_file=None,
        app_env="development",
        assistant_enabled=True,
        assistant_streaming=True,
        assistant_base_url="http://assistant.test",
        assistant_api_token="test-token",
        assistant_connect_retries=1,
    )


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic id generator: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """Clock advancing one second per call."""
    start = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
    counter = itertools.count()
    return lambda: start + timedelta(seconds=next(counter))


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def coordinator(transport: ScriptedTransport, id_factory: Callable[[], str]) -> RequestCoordinator:
    return RequestCoordinator(transport, handle_factory=id_factory)


@pytest.fixture
def session(
    transport: ScriptedTransport,
    test_settings: Settings,
    id_factory: Callable[[], str],
    clock: Callable[[], datetime],
) -> AssistantSession:
    return AssistantSession(
        transport,
        settings=test_settings,
        id_factory=id_factory,
        clock=clock,
    )


@pytest.fixture
def grocery_reference() -> ReferencedTransaction:
    return ReferencedTransaction(
        id="t1",
        time=1714550400,
        time_text="2024-05-01 08:00:00",
        type=3,
        category_name="Groceries",
        source_account_name="Checking",
        source_amount=4200,
        currency="USD",
        similarity_score=0.91,
    )


@pytest.fixture
def chunk_stream() -> Callable[..., AsyncIterator[StreamChunk]]:
    """Build an async iterator over chunks that raises any exception item."""

    async def stream(*items: StreamChunk | Exception) -> AsyncIterator[StreamChunk]:
        for item in items:
            if isinstance(item, Exception):
                raise item
            yield item

    return stream


@pytest.fixture
def make_message() -> Callable[..., ConversationMessage]:
    """Build conversation messages with ids m<index>."""

    def build(index: int, *, role: str = "user", content: str | None = None) -> ConversationMessage:
        return ConversationMessage(
            id=f"m{index}",
            role=role,  # type: ignore[arg-type]
            content=f"message {index}" if content is None else content,
            created_at=datetime(2024, 5, 1, tzinfo=UTC) + timedelta(minutes=index),
        )

    return build
