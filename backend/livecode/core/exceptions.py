"""Custom exceptions for the application.

Provides standardized error handling across the store, the synchronization
server and the HTTP layer. Persistence and protocol failures are raised as
typed errors; each caller decides whether a failure is log-only or aborts the
operation.
"""
from typing import Optional, Any
from fastapi import status


class AppException(Exception):
    """Base exception for application errors."""

    http_status: int = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details
        }


class ProtocolException(AppException):
    """Inbound frame could not be turned into a protocol message."""
    pass


class MalformedMessageError(ProtocolException):
    """Raised when a frame is not a JSON object."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Malformed message: {reason}",
            code="MALFORMED_MESSAGE",
            details={"reason": reason}
        )


class UnknownMessageKindError(ProtocolException):
    """Raised when a frame carries an unsupported `type`."""

    def __init__(self, kind: Any):
        super().__init__(
            message=f"Unknown message kind: {kind!r}",
            code="UNKNOWN_MESSAGE_KIND",
            details={"kind": kind}
        )


class MissingRequiredFieldError(ProtocolException):
    """Raised when a frame lacks fields required by its kind."""

    def __init__(self, kind: str, fields: list[str]):
        super().__init__(
            message=f"Message {kind} is missing or has invalid fields: {', '.join(fields)}",
            code="MISSING_REQUIRED_FIELD",
            details={"kind": kind, "fields": fields}
        )


class StoreException(AppException):
    """Document store exceptions."""
    pass


class UnknownStreamError(StoreException):
    """Raised when a (game, stream) pair is not in the store."""

    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, game: str, stream: Optional[int] = None):
        target = f"game {game}" if stream is None else f"stream {stream} of game {game}"
        details: dict = {"game": game}
        if stream is not None:
            details["stream"] = stream
        super().__init__(
            message=f"Unknown {target}",
            code="UNKNOWN_GAME_OR_STREAM",
            details=details
        )


class InvalidRangeError(StoreException):
    """Raised when a range edit points outside the current document."""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(
            message=message,
            code="PATCH_RANGE_INVALID",
            details={"operation": index} if index is not None else {}
        )


class InvalidLanguageError(StoreException):
    """Raised when a stream spec names a language outside the catalog."""

    def __init__(self, language: Any):
        super().__init__(
            message=f"Unknown language: {language!r}",
            code="INVALID_LANGUAGE",
            details={"language": language}
        )


class InvalidGameTypeError(StoreException):
    """Raised when a create request names a game type outside the catalog."""

    def __init__(self, game_type: Any):
        super().__init__(
            message=f"Unknown game type: {game_type!r}",
            code="INVALID_GAME_TYPE",
            details={"game_type": game_type}
        )


class GuidAllocationError(StoreException):
    """Raised when no unused game guid was found within the retry cap."""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, attempts: int):
        super().__init__(
            message=f"No unused game guid after {attempts} attempts",
            code="GUID_ALLOCATION_EXHAUSTED",
            details={"attempts": attempts}
        )


class PersistenceError(StoreException):
    """Raised when a persistence operation fails."""

    http_status = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        super().__init__(
            message=f"Persistence operation {operation} failed: {reason}",
            code="PERSISTENCE_FAILURE",
            details={"operation": operation}
        )


class AuthException(AppException):
    """Authentication-related exceptions."""

    http_status = status.HTTP_401_UNAUTHORIZED


class InvalidCredentialsError(AuthException):
    """Raised when credentials are invalid."""

    def __init__(self):
        super().__init__(
            message="Invalid credentials",
            code="INVALID_CREDENTIALS"
        )


class UnauthorizedError(AuthException):
    """Raised when user is not authorized."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            code="UNAUTHORIZED"
        )


class AccountExistsError(AuthException):
    """Raised when signing up with a taken username."""

    http_status = status.HTTP_409_CONFLICT

    def __init__(self, username: str):
        super().__init__(
            message="Username already taken",
            code="ACCOUNT_EXISTS",
            details={"username": username}
        )


class AccountNotFoundError(AppException):
    """Raised when a referenced account does not exist."""

    http_status = status.HTTP_404_NOT_FOUND

    def __init__(self, account: Any):
        super().__init__(
            message=f"Unknown account: {account}",
            code="ACCOUNT_NOT_FOUND",
            details={"account": account}
        )
