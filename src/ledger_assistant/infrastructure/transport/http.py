"""HTTP transport for the remote bookkeeping assistant.

The server wraps every result in a JSON envelope:

    {"success": true, "result": {...}}
    {"success": false, "errorCode": 200001, "errorMessage": "..."}

The streaming endpoint answers with ``text/event-stream``; each event's
``data:`` lines form one such envelope whose result is a stream chunk.
"""

import json
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pydantic
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ledger_assistant import __version__
from ledger_assistant.config import Settings, get_settings
from ledger_assistant.domain.assistant.models import (
    AssistantChatRequest,
    AssistantChatResponse,
    StreamChunk,
    parse_stream_chunk,
)
from ledger_assistant.infrastructure.transport.base import AssistantTransport
from ledger_assistant.shared.exceptions import TransportError
from ledger_assistant.shared.logging import get_logger

logger = get_logger(__name__)

# Errors raised before the request body left the client; safe to retry
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def _decode_json(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None


def _error_message(payload: Any) -> str | None:
    if isinstance(payload, dict):
        message = payload.get("errorMessage")
        if isinstance(message, str) and message.strip():
            return message
    return None


async def _next_event_data(lines: AsyncIterator[str]) -> str | None:
    """Read one server-sent event and return its joined ``data:`` lines.

    Returns None once the stream is exhausted.
    """
    data_lines: list[str] = []
    async for line in lines:
        if not line.strip():
            if data_lines:
                return "\n".join(data_lines)
            continue
        if line.startswith("data:"):
            data_lines.append(line[len("data:") :].strip())
    return "\n".join(data_lines) if data_lines else None


class HttpAssistantTransport(AssistantTransport):
    """Assistant transport over HTTP using httpx.

    Features:
    - Bearer token authentication
    - Retry with exponential backoff for connection failures
    - Server-sent events decoding for streaming replies
    - Cancellation of in-flight calls by handle
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP transport.

        Args:
            settings: Settings to read endpoints and credentials from
            http_transport: Optional httpx transport (e.g. for tests)
        """
        super().__init__()
        self.settings = settings or get_settings()
        self.chat_url = self.settings.endpoint_url(self.settings.assistant_chat_path)
        self.stream_url = self.settings.endpoint_url(self.settings.assistant_chat_stream_path)
        self._http_transport = http_transport
        self._client: httpx.AsyncClient | None = None

    @property
    def transport_name(self) -> str:
        return "http"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {
                "Accept": "application/json",
                "User-Agent": f"ledger-assistant/{__version__}",
            }
            if self.settings.assistant_api_token:
                headers["Authorization"] = f"Bearer {self.settings.assistant_api_token}"
            if self.settings.assistant_timezone:
                headers["X-Timezone-Name"] = self.settings.assistant_timezone

            self._client = httpx.AsyncClient(
                timeout=self.settings.assistant_request_timeout,
                headers=headers,
                transport=self._http_transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def chat(
        self,
        request: AssistantChatRequest,
        *,
        cancel_handle: str,
    ) -> AssistantChatResponse:
        self._open_handle(cancel_handle)
        try:
            response = await self._until_canceled(self._post(request.to_payload()), cancel_handle)
            result = self._unwrap(response.status_code, response.content)

            try:
                return AssistantChatResponse.model_validate(result)
            except pydantic.ValidationError as exc:
                raise TransportError("Malformed assistant response") from exc
        finally:
            self._release_handle(cancel_handle)

    async def stream_chat(
        self,
        request: AssistantChatRequest,
        *,
        cancel_handle: str,
    ) -> AsyncIterator[StreamChunk]:
        self._open_handle(cancel_handle)
        try:
            client = await self._get_client()
            http_request = client.build_request(
                "POST",
                self.stream_url,
                json=request.to_payload(),
                headers={"Accept": "text/event-stream"},
            )
            try:
                response = await self._until_canceled(
                    client.send(http_request, stream=True), cancel_handle
                )
            except httpx.HTTPError as exc:
                raise TransportError(f"Assistant stream request failed: {exc}") from exc

            try:
                if response.status_code >= 400:
                    body = await self._until_canceled(response.aread(), cancel_handle)
                    self._unwrap(response.status_code, body)

                lines = response.aiter_lines()
                while True:
                    try:
                        data = await self._until_canceled(_next_event_data(lines), cancel_handle)
                    except httpx.HTTPError as exc:
                        raise TransportError(f"Assistant stream was interrupted: {exc}") from exc
                    if data is None:
                        break

                    chunk = self._decode_event(data)
                    if chunk is not None:
                        yield chunk
            finally:
                await response.aclose()
        finally:
            self._release_handle(cancel_handle)

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        client = await self._get_client()
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.settings.assistant_connect_retries),
                wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
                retry=retry_if_exception_type(RETRYABLE_ERRORS),
                reraise=True,
            ):
                with attempt:
                    return await client.post(self.chat_url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("assistant_connection_error", url=self.chat_url, error=str(exc))
            raise TransportError(f"Assistant request failed: {exc}") from exc
        raise TransportError("Assistant request was not attempted")

    def _unwrap(self, status_code: int, body: bytes) -> Any:
        """Return the envelope's result or raise ``TransportError``."""
        payload = _decode_json(body)

        if status_code == httpx.codes.UNAUTHORIZED:
            # Reported here once; callers should not surface it again
            logger.warning("assistant_unauthorized", status_code=status_code)
            raise TransportError(
                "Assistant request was not authorized",
                status_code=status_code,
                processed=True,
            )

        if status_code >= 400:
            raise TransportError(
                f"Assistant request failed with status {status_code}",
                status_code=status_code,
                error_message=_error_message(payload),
            )

        if not isinstance(payload, dict) or not payload.get("success") or not payload.get("result"):
            raise TransportError("Assistant returned no result", status_code=status_code)

        return payload["result"]

    def _decode_event(self, data: str) -> StreamChunk | None:
        payload = _decode_json(data.encode("utf-8"))
        if not isinstance(payload, dict):
            raise TransportError("Malformed assistant stream event", details={"data": data[:200]})

        if payload.get("success") is False:
            raise TransportError(
                "Assistant stream failed",
                error_message=_error_message(payload),
                details={"error_code": payload.get("errorCode")},
            )

        result = payload.get("result")
        if not isinstance(result, dict):
            raise TransportError("Assistant stream event has no result", details={"data": data[:200]})

        try:
            chunk = parse_stream_chunk(result)
        except pydantic.ValidationError as exc:
            raise TransportError("Malformed assistant stream chunk") from exc

        if chunk is None:
            logger.warning("assistant_stream_unknown_chunk", chunk_type=result.get("type"))
        return chunk
