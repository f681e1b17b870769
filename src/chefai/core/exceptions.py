"""Error taxonomy for the analysis pipeline.

Every failure the pipeline surfaces is a ``ChefAIError`` carrying an
``ErrorKind`` so callers can branch on the kind instead of parsing text.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Kinds of pipeline failure."""

    INVALID_INPUT = "invalid_input"
    INVALID_STATE = "invalid_state"
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NO_FOOD_DETECTED = "no_food_detected"
    NETWORK_ERROR = "network_error"
    NO_DATA = "no_data"


class ChefAIError(Exception):
    """Base exception for pipeline errors."""

    kind: ErrorKind = ErrorKind.SERVER_ERROR

    # Unauthorized/RateLimited invalidate a whole multi-image batch
    is_fatal_for_batch: bool = False

    def __init__(self, message: str, details: Any = None):
        self.message = message
        self.details = details
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """Human-readable message suitable for display."""
        return self.message


class InvalidInputError(ChefAIError):
    """No usable images or ingredients were supplied."""

    kind = ErrorKind.INVALID_INPUT


class InvalidStateError(ChefAIError):
    """Operation not allowed in the current pipeline state."""

    kind = ErrorKind.INVALID_STATE

    def __init__(self, operation: str, state: str):
        super().__init__(
            message=f"Cannot {operation} while {state}",
            details={"operation": operation, "state": state},
        )


class UnauthorizedError(ChefAIError):
    """The backend rejected the API key."""

    kind = ErrorKind.UNAUTHORIZED
    is_fatal_for_batch = True

    def __init__(self, message: str = "Unauthorized - check API key"):
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return "Unauthorized - check your API key configuration"


class RateLimitedError(ChefAIError):
    """The backend is throttling requests."""

    kind = ErrorKind.RATE_LIMITED
    is_fatal_for_batch = True

    def __init__(self, retry_after: float | None = None):
        self.retry_after = retry_after
        super().__init__(
            message=f"Rate limited (retry after {retry_after}s)",
            details={"retry_after": retry_after},
        )

    @property
    def user_message(self) -> str:
        if self.retry_after is None:
            return "Server is busy - please try again shortly"
        return f"Server is busy - retry after {int(self.retry_after)} seconds"


class ServerError(ChefAIError):
    """Non-success response from the backend."""

    kind = ErrorKind.SERVER_ERROR

    def __init__(self, status_code: int, message: str | None = None):
        self.status_code = status_code
        super().__init__(
            message=f"Server error ({status_code}): {message or 'Unknown error'}",
            details={"status_code": status_code, "body": message},
        )
        self.server_message = message

    @property
    def user_message(self) -> str:
        return self.server_message or "Server error occurred"


class NoFoodDetectedError(ServerError):
    """The backend (or every image in a batch) found no food."""

    kind = ErrorKind.NO_FOOD_DETECTED

    def __init__(self, message: str | None = "No food detected", status_code: int = 400):
        super().__init__(status_code=status_code, message=message)

    @property
    def user_message(self) -> str:
        return "No food detected in image. Try a clearer photo or add items manually."


class NetworkError(ChefAIError):
    """Transport failure or timeout."""

    kind = ErrorKind.NETWORK_ERROR

    @property
    def user_message(self) -> str:
        return "Connection failed - please check your internet connection"


class NoDataError(ChefAIError):
    """Empty or undecodable response body."""

    kind = ErrorKind.NO_DATA

    def __init__(self, message: str = "No data received from server", details: Any = None):
        super().__init__(message, details)


NO_FOOD_MARKERS = ("No food detected", "noFoodDetected")


def is_no_food_message(message: str | None) -> bool:
    """Return True when a server message signals that no food was found."""
    if not message:
        return False
    return any(marker in message for marker in NO_FOOD_MARKERS)
