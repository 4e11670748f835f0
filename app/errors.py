"""Exception taxonomy shared by the codec, adapters and dispatcher."""

from __future__ import annotations


class AIOListsError(Exception):
    """Base class for all errors raised by the addon."""


class ConfigDecodeError(AIOListsError, ValueError):
    """Raised when a configuration token cannot be decoded."""


class ProviderError(AIOListsError):
    """An upstream provider call failed."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class ProviderAuthError(ProviderError):
    """Credentials are missing or were rejected (401/403)."""


class ProviderNotFound(ProviderError):
    """The requested list or catalog does not exist upstream (404)."""


class ProviderRateLimited(ProviderError):
    """The provider asked us to slow down (429)."""

    def __init__(
        self, provider: str, message: str, *, retry_after: float | None = None
    ) -> None:
        super().__init__(provider, message)
        self.retry_after = retry_after


class ProviderTimeout(ProviderError):
    """The provider did not answer within the configured timeout."""


class ProviderUnavailable(ProviderError):
    """5xx responses, transport failures and unreadable payloads."""


class ResolutionMiss(AIOListsError, LookupError):
    """A catalog id did not resolve to any known list."""


class NormalizationSkip(AIOListsError, ValueError):
    """A single provider item could not be normalised and is dropped."""


TRANSIENT_ERRORS: tuple[type[ProviderError], ...] = (
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
)


def is_transient(exc: BaseException) -> bool:
    """Return ``True`` when retrying ``exc`` may succeed."""

    return isinstance(exc, TRANSIENT_ERRORS)
