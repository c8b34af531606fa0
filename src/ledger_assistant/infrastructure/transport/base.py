"""Base class for assistant transports."""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable
from typing import TypeVar

from ledger_assistant.domain.assistant.models import (
    AssistantChatRequest,
    AssistantChatResponse,
    StreamChunk,
)
from ledger_assistant.shared.exceptions import TransportCanceledError
from ledger_assistant.shared.logging import get_logger

logger = get_logger(__name__)

_T = TypeVar("_T")


class AssistantTransport(ABC):
    """Performs assistant calls and aborts them by cancellation handle.

    Subclasses register the handle for the duration of a call with
    ``_open_handle``/``_release_handle`` and wrap every await that may block
    in ``_until_canceled`` so ``cancel`` can interrupt it.
    """

    def __init__(self) -> None:
        self._cancel_events: dict[str, asyncio.Event] = {}

    @property
    @abstractmethod
    def transport_name(self) -> str:
        """Return transport name for logging."""
        pass

    @abstractmethod
    async def chat(
        self,
        request: AssistantChatRequest,
        *,
        cancel_handle: str,
    ) -> AssistantChatResponse:
        """Send a request and wait for the complete reply.

        Raises:
            TransportCanceledError: If canceled through ``cancel_handle``
            TransportError: For any other failed call
        """
        pass

    @abstractmethod
    def stream_chat(
        self,
        request: AssistantChatRequest,
        *,
        cancel_handle: str,
    ) -> AsyncIterator[StreamChunk]:
        """Send a request and yield reply chunks as they arrive.

        Raises:
            TransportCanceledError: If canceled through ``cancel_handle``
            TransportError: For any other failed call
        """
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

    @property
    def open_handles(self) -> frozenset[str]:
        return frozenset(self._cancel_events)

    def cancel(self, cancel_handle: str) -> bool:
        """Abort the call registered under ``cancel_handle``.

        Returns False if no call with that handle is in flight.
        """
        event = self._cancel_events.get(cancel_handle)
        if event is None:
            logger.debug("transport_cancel_unknown_handle", cancel_handle=cancel_handle)
            return False

        event.set()
        return True

    def _open_handle(self, cancel_handle: str) -> None:
        self._cancel_events[cancel_handle] = asyncio.Event()

    def _release_handle(self, cancel_handle: str) -> None:
        self._cancel_events.pop(cancel_handle, None)

    async def _until_canceled(self, awaitable: Awaitable[_T], cancel_handle: str) -> _T:
        """Await ``awaitable`` unless ``cancel_handle`` is canceled first.

        Raises:
            TransportCanceledError: If the handle was canceled before the
                awaitable finished
        """
        event = self._cancel_events.get(cancel_handle)
        if event is None:
            return await awaitable

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not work.done():
                work.cancel()

        if not work.cancelled() and work.done() and not event.is_set():
            return work.result()

        await asyncio.gather(work, return_exceptions=True)
        raise TransportCanceledError(cancel_handle)
