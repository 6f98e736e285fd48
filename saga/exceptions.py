"""Custom exceptions shared across the relay and its client."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ProviderErrorKind(str, Enum):
    """Classification of a failed provider call."""

    QUOTA_EXCEEDED = "quota_exceeded"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


@dataclass(eq=False)
class ServiceError(Exception):
    """Base exception for service layer failures."""

    message: str
    code: str = "service_error"
    status_code: int | None = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return self.message


@dataclass(eq=False)
class ValidationError(ServiceError):
    """Raised when an inbound request body does not conform."""

    code: str = "validation_error"
    status_code: int | None = 400


@dataclass(eq=False)
class ProviderError(ServiceError):
    """Raised when the language-model provider call fails."""

    code: str = "provider_error"
    kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN

    @classmethod
    def from_kind(
        cls, kind: ProviderErrorKind, message: str, status_code: int | None = None
    ) -> "ProviderError":
        error_cls = _ERRORS_BY_KIND[kind]
        return error_cls(message, status_code=status_code)


@dataclass(eq=False)
class ProviderQuotaExceeded(ProviderError):
    """The provider account has run out of quota."""

    code: str = "quota_exceeded"
    kind: ProviderErrorKind = ProviderErrorKind.QUOTA_EXCEEDED


@dataclass(eq=False)
class ProviderRateLimited(ProviderError):
    """The provider is throttling requests."""

    code: str = "rate_limited"
    kind: ProviderErrorKind = ProviderErrorKind.RATE_LIMITED


@dataclass(eq=False)
class ProviderUnknownError(ProviderError):
    """Any provider failure that could not be classified."""

    code: str = "provider_error"
    kind: ProviderErrorKind = ProviderErrorKind.UNKNOWN


@dataclass(eq=False)
class NetworkError(ServiceError):
    """Raised client side when the gateway could not be reached."""

    code: str = "network_error"


_ERRORS_BY_KIND: dict[ProviderErrorKind, type[ProviderError]] = {
    ProviderErrorKind.QUOTA_EXCEEDED: ProviderQuotaExceeded,
    ProviderErrorKind.RATE_LIMITED: ProviderRateLimited,
    ProviderErrorKind.UNKNOWN: ProviderUnknownError,
}

_QUOTA_MARKERS = frozenset({"insufficient_quota", "quota_exceeded", "billing_hard_limit_reached"})
_RATE_LIMIT_MARKERS = frozenset({"rate_limit_exceeded", "rate_limit_error", "requests", "tokens"})


def classify_provider_error(status_code: int | None, payload: Any) -> ProviderErrorKind:
    """Map a raw provider error response onto a ``ProviderErrorKind``.

    OpenAI reports the failure class in ``error.code`` and ``error.type``.
    Quota exhaustion also arrives as HTTP 429, so the markers are checked
    before the status code.
    """

    markers: set[str] = set()
    error = payload.get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        for field in ("code", "type"):
            value = error.get(field)
            if isinstance(value, str):
                markers.add(value.lower())

    if markers & _QUOTA_MARKERS:
        return ProviderErrorKind.QUOTA_EXCEEDED
    if markers & _RATE_LIMIT_MARKERS or status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    return ProviderErrorKind.UNKNOWN
