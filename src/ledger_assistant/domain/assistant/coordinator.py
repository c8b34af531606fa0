"""Request coordinator: one assistant request at a time, always cleaned up."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from enum import Enum
from typing import Protocol, TypeVar

from ledger_assistant.domain.assistant.types import IdFactory, new_id
from ledger_assistant.observability.metrics import (
    ASSISTANT_REQUEST_COUNT,
    ASSISTANT_REQUEST_IN_PROGRESS,
    ASSISTANT_REQUEST_LATENCY,
)
from ledger_assistant.shared.exceptions import (
    AssistantAlreadyProcessedError,
    AssistantCanceledError,
    AssistantRequestError,
    AssistantServerMessageError,
    AssistantUnavailableError,
    RequestInProgressError,
    TransportCanceledError,
    TransportError,
)
from ledger_assistant.shared.logging import get_logger

logger = get_logger(__name__)

_T = TypeVar("_T")


class RequestState(str, Enum):
    """Lifecycle of the coordinator's single request slot."""

    IDLE = "idle"
    REQUESTING = "requesting"
    RENDERING = "rendering"


class Canceller(Protocol):
    """The part of a transport the coordinator needs for cancellation."""

    def cancel(self, cancel_handle: str) -> bool: ...


class RequestCoordinator:
    """Serializes assistant requests and guarantees handle release.

    Usage:
        async with coordinator.request(mode="chat") as handle:
            response = await transport.chat(req, cancel_handle=handle)

    Failures raised inside the block are classified into an
    ``AssistantRequestError`` subclass; the handle is released on every exit
    path.
    """

    def __init__(
        self,
        canceller: Canceller,
        *,
        handle_factory: IdFactory = new_id,
    ) -> None:
        self._canceller = canceller
        self._handle_factory = handle_factory
        self._state = RequestState.IDLE
        self._active_handle: str | None = None

    @property
    def state(self) -> RequestState:
        return self._state

    @property
    def active_handle(self) -> str | None:
        return self._active_handle

    @property
    def is_busy(self) -> bool:
        return self._state is not RequestState.IDLE

    def begin_request(self) -> str:
        """Claim the request slot and return a fresh cancellation handle.

        Raises:
            RequestInProgressError: If a request is requesting or rendering
        """
        if self.is_busy:
            raise RequestInProgressError(self._state.value)

        self._active_handle = self._handle_factory()
        self._state = RequestState.REQUESTING
        return self._active_handle

    def mark_rendering(self) -> None:
        if self._active_handle is None:
            raise RuntimeError("No active assistant request to render")
        self._state = RequestState.RENDERING

    def finish_rendering(self) -> None:
        if self._state is RequestState.RENDERING:
            self._state = RequestState.REQUESTING

    def cancel(self) -> bool:
        """Ask the transport to abort the active request, if any."""
        if self._active_handle is None:
            return False

        logger.info("assistant_request_cancel", cancel_handle=self._active_handle)
        return self._canceller.cancel(self._active_handle)

    def end_request(self) -> None:
        self._active_handle = None
        self._state = RequestState.IDLE

    @asynccontextmanager
    async def request(
        self,
        *,
        mode: str = "chat",
        streaming: bool = False,
    ) -> AsyncIterator[str]:
        handle = self.begin_request()
        labels = {"mode": mode, "streaming": "true" if streaming else "false"}
        outcome = "success"
        start = time.perf_counter()
        ASSISTANT_REQUEST_IN_PROGRESS.inc()

        try:
            yield handle
        except AssistantRequestError as exc:
            outcome = exc.kind.value
            raise
        except asyncio.CancelledError:
            outcome = "aborted"
            raise
        except Exception as exc:
            error = self.classify_failure(exc, mode=mode)
            outcome = error.kind.value
            raise error from exc
        finally:
            self.end_request()
            ASSISTANT_REQUEST_IN_PROGRESS.dec()
            ASSISTANT_REQUEST_LATENCY.labels(**labels).observe(time.perf_counter() - start)
            ASSISTANT_REQUEST_COUNT.labels(outcome=outcome, **labels).inc()

    async def run(
        self,
        call: Callable[[str], Awaitable[_T]],
        *,
        mode: str = "chat",
    ) -> _T:
        """Run ``call(handle)`` as a non-streaming request."""
        async with self.request(mode=mode) as handle:
            return await call(handle)

    def classify_failure(self, exc: Exception, *, mode: str) -> AssistantRequestError:
        """Map a failed transport call onto the closed error taxonomy.

        Cancellations and already-reported failures are not logged here.
        """
        if isinstance(exc, TransportCanceledError):
            return AssistantCanceledError(exc.message, exc.details)

        if isinstance(exc, TransportError):
            if exc.error_message:
                logger.error(
                    "assistant_request_failed",
                    mode=mode,
                    status_code=exc.status_code,
                    error=exc.error_message,
                )
                return AssistantServerMessageError(
                    exc.error_message,
                    details={"status_code": exc.status_code},
                )

            if exc.processed:
                return AssistantAlreadyProcessedError(exc.message, exc.details)

        logger.error(
            "assistant_request_failed",
            mode=mode,
            error=str(exc),
            exc_info=exc,
        )
        return AssistantUnavailableError(details={"error_type": type(exc).__name__})
