"""
Failure classification for the outbound social API.
Permanent failures are reported and never retried; rate-limit and transient
failures go back through the job's retry policy.
"""
from enum import Enum
from typing import Any


class FailureType(str, Enum):
    RATE_LIMITED = "rate_limited"            # 429
    TRANSPORT_TRANSIENT = "transport_transient"  # 5xx, timeout, connection reset
    PERMANENT = "permanent"                  # 4xx except 429: deleted post, blocked, DMs closed


class SocialAPIError(Exception):
    retryable = True
    failure_type = FailureType.TRANSPORT_TRANSIENT

    def __init__(self, message: str, status_code: int | None = None, detail: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail or {}


class TransientSocialError(SocialAPIError):
    pass


class RateLimitedError(SocialAPIError):
    failure_type = FailureType.RATE_LIMITED

    def __init__(self, message: str, retry_after: float | None = None, **kwargs: Any) -> None:
        super().__init__(message, status_code=429, **kwargs)
        self.retry_after = retry_after


class PermanentSocialError(SocialAPIError):
    retryable = False
    failure_type = FailureType.PERMANENT


def classify_failure(http_status: int | None) -> tuple[FailureType, bool]:
    """Returns (failure_type, retry_allowed)."""
    if http_status is None:
        return (FailureType.TRANSPORT_TRANSIENT, True)
    if http_status == 429:
        return (FailureType.RATE_LIMITED, True)
    if 500 <= http_status < 600:
        return (FailureType.TRANSPORT_TRANSIENT, True)
    if 400 <= http_status < 500:
        return (FailureType.PERMANENT, False)
    return (FailureType.TRANSPORT_TRANSIENT, True)


def error_for_status(
    http_status: int | None,
    message: str,
    detail: dict[str, Any] | None = None,
    retry_after: float | None = None,
) -> SocialAPIError:
    failure_type, _ = classify_failure(http_status)
    if failure_type == FailureType.RATE_LIMITED:
        return RateLimitedError(message, retry_after=retry_after, detail=detail)
    if failure_type == FailureType.PERMANENT:
        return PermanentSocialError(message, status_code=http_status, detail=detail)
    return TransientSocialError(message, status_code=http_status, detail=detail)
