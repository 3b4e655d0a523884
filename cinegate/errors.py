"""Domain error codes for rental access, tokens and pricing."""

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Domain error codes."""

    INVALID_TOKEN_FORMAT = "invalid_token_format"
    INVALID_TOKEN_SIGNATURE = "invalid_token_signature"
    TOKEN_EXPIRED = "token_expired"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"
    VALIDATION_FAILED = "validation_failed"
    PROMO_CODE_EXHAUSTED = "promo_code_exhausted"
    RENTAL_CONFLICT = "rental_conflict"
    RENTAL_UNAVAILABLE = "rental_unavailable"
    RENTAL_REQUIRED = "rental_required"
    RATE_LIMITED = "rate_limited"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class TokenError(DomainError):
    """Raised when a signed token cannot be trusted."""


class InvalidTokenFormat(TokenError):
    def __init__(self, message: str = "Invalid token format") -> None:
        super().__init__(code=ErrorCode.INVALID_TOKEN_FORMAT, message=message)


class InvalidTokenSignature(TokenError):
    def __init__(self, message: str = "Invalid token signature") -> None:
        super().__init__(code=ErrorCode.INVALID_TOKEN_SIGNATURE, message=message)


class TokenExpired(TokenError):
    def __init__(self, expired_at: int) -> None:
        super().__init__(code=ErrorCode.TOKEN_EXPIRED, message="Token expired")
        self.expired_at = expired_at


class NotFound(DomainError):
    """Raised when a movie, tier, promo code, pack or rental is absent."""

    def __init__(self, resource: str) -> None:
        super().__init__(code=ErrorCode.NOT_FOUND, message=f"{resource} not found")
        self.resource = resource


class Unauthenticated(DomainError):
    """Raised when neither a user nor an anonymous identity is available."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(code=ErrorCode.UNAUTHENTICATED, message=message)


class ValidationFailed(DomainError):
    """Raised when input fails a domain rule; ``reason`` is machine readable."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(code=ErrorCode.VALIDATION_FAILED, message=message)
        self.reason = reason


class PromoCodeExhausted(DomainError):
    def __init__(self, code_id: str) -> None:
        super().__init__(
            code=ErrorCode.PROMO_CODE_EXHAUSTED,
            message="Promo code usage limit reached",
        )
        self.code_id = code_id


class RentalConflict(DomainError):
    """Raised when the viewer already holds an active rental for the target."""

    def __init__(self, rental_id: str) -> None:
        super().__init__(
            code=ErrorCode.RENTAL_CONFLICT,
            message="An active rental already exists",
        )
        self.rental_id = rental_id


class RentalUnavailable(DomainError):
    """Raised when a movie cannot be rented (no pricing or inactive tier)."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            code=ErrorCode.RENTAL_UNAVAILABLE,
            message="Movie is not available for rent",
        )
        self.reason = reason


class RentalRequired(DomainError):
    def __init__(self) -> None:
        super().__init__(code=ErrorCode.RENTAL_REQUIRED, message="No valid rental found")


class RateLimited(DomainError):
    def __init__(self, retry_after: int) -> None:
        super().__init__(
            code=ErrorCode.RATE_LIMITED,
            message="Rate limit exceeded. Please try again later.",
        )
        self.retry_after = retry_after
