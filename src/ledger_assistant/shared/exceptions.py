"""Custom exception hierarchy for the ledger assistant client."""

from enum import Enum
from typing import Any

UNAVAILABLE_MESSAGE = "Unable to get AI assistant response"


class LedgerAssistantError(Exception):
    """Base exception for all ledger assistant errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Validation Errors -----


class ValidationError(LedgerAssistantError):
    """Input validation failed."""

    pass


class MessageTooLongError(ValidationError):
    """Message exceeds the length accepted by the assistant."""

    def __init__(self, max_length: int) -> None:
        super().__init__(
            message=f"Message is too long. Maximum length: {max_length} characters",
            details={"max_length": max_length},
        )


# ----- Session State Errors -----


class AssistantDisabledError(LedgerAssistantError):
    """The assistant feature is turned off."""

    def __init__(self) -> None:
        super().__init__(message="AI assistant is not enabled")


class RequestInProgressError(LedgerAssistantError):
    """Another assistant request is still requesting or rendering."""

    def __init__(self, state: str) -> None:
        super().__init__(
            message="An assistant request is already in progress",
            details={"state": state},
        )


# ----- External Service Errors -----


class ExternalServiceError(LedgerAssistantError):
    """Error from an external service."""

    pass


class TransportError(ExternalServiceError):
    """The transport call to the assistant failed.

    Attributes:
        status_code: HTTP status of the failed response, if one was received
        error_message: Human-readable message from the server error payload
        processed: True when the transport already reported this failure
        canceled: True when the call was aborted through its cancellation handle
    """

    canceled = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_message: str | None = None,
        processed: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code
        self.error_message = error_message
        self.processed = processed


class TransportCanceledError(TransportError):
    """The transport call was aborted via its cancellation handle."""

    canceled = True

    def __init__(self, cancel_handle: str) -> None:
        super().__init__(
            "Assistant request was canceled",
            details={"cancel_handle": cancel_handle},
        )


# ----- Assistant Request Errors -----


class AssistantErrorKind(str, Enum):
    """Closed set of failure classes for an assistant request."""

    CANCELED = "canceled"
    SERVER_MESSAGE = "server_message"
    ALREADY_PROCESSED = "already_processed"
    UNKNOWN = "unknown"


class AssistantRequestError(LedgerAssistantError):
    """Classified failure of an assistant request."""

    kind: AssistantErrorKind = AssistantErrorKind.UNKNOWN


class AssistantCanceledError(AssistantRequestError):
    """User-initiated cancellation; callers should not show an error."""

    kind = AssistantErrorKind.CANCELED


class AssistantServerMessageError(AssistantRequestError):
    """The server explained the failure; the message is meant for display."""

    kind = AssistantErrorKind.SERVER_MESSAGE


class AssistantAlreadyProcessedError(AssistantRequestError):
    """The failure was already reported by the transport."""

    kind = AssistantErrorKind.ALREADY_PROCESSED


class AssistantUnavailableError(AssistantRequestError):
    """Any other failure."""

    kind = AssistantErrorKind.UNKNOWN

    def __init__(self, details: dict[str, Any] | None = None) -> None:
        super().__init__(UNAVAILABLE_MESSAGE, details)
