"""Transport factory - returns the shared assistant transport."""

from functools import lru_cache

from ledger_assistant.config import Settings, get_settings
from ledger_assistant.infrastructure.transport.base import AssistantTransport
from ledger_assistant.infrastructure.transport.http import HttpAssistantTransport
from ledger_assistant.shared.logging import get_logger

logger = get_logger(__name__)


def _build_transport(settings: Settings) -> AssistantTransport:
    transport = HttpAssistantTransport(settings)
    logger.info(
        "using_assistant_transport",
        transport=transport.transport_name,
        base_url=settings.assistant_base_url,
        authenticated=bool(settings.assistant_api_token),
    )
    return transport


@lru_cache(maxsize=1)
def _get_cached_transport() -> AssistantTransport:
    return _build_transport(get_settings())


def get_transport(settings: Settings | None = None) -> AssistantTransport:
    """Get the assistant transport.

    Passing ``settings`` builds a fresh, uncached transport.
    """
    if settings is not None:
        return _build_transport(settings)
    return _get_cached_transport()


async def close_transport() -> None:
    """Close and clear the shared transport (used at shutdown)."""
    if _get_cached_transport.cache_info().currsize:
        transport = _get_cached_transport()
        await transport.close()
    _get_cached_transport.cache_clear()
