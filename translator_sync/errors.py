"""Exception hierarchy shared by the parsers, the synchronizer and the dispatcher."""
from enum import Enum
from typing import Dict, List, Optional


class TranslatorSyncError(Exception):
    """Base class for every error raised by translator-sync."""


class ConfigurationError(TranslatorSyncError):
    """Raised when the merged configuration cannot be used to start a run."""


class MalformedInputError(TranslatorSyncError):
    """A file claims a supported format but its content cannot be parsed."""

    def __init__(self, message: str, file_path: Optional[str] = None):
        super().__init__(message)
        self.file_path = file_path


class UnsupportedFormatError(TranslatorSyncError):
    """The file is neither Fluent nor JSON. Callers skip it."""

    def __init__(self, file_path: str):
        super().__init__(
            f"Unsupported file format for {file_path}. Supported formats: FTL (.ftl), JSON (.json)"
        )
        self.file_path = file_path


class SyncError(TranslatorSyncError):
    """Run-level failure: there is nothing to synchronize against."""


class PrimaryLocaleMissingError(SyncError):
    def __init__(self, location: str, primary_language: str):
        super().__init__(
            f"Primary language '{primary_language}' has no translation files in '{location}'."
        )
        self.location = location
        self.primary_language = primary_language


class NoTranslationFilesError(SyncError):
    def __init__(self, location: str):
        super().__init__(f"No recognizable translation files found in '{location}'.")
        self.location = location


class SyncCancelledError(TranslatorSyncError):
    """The run was cancelled while a locale was still in progress."""


class ProviderErrorKind(str, Enum):
    """Classification used by the fallback chain to decide retry vs. fall-through."""
    RATE_LIMITED = "rate_limited"
    AUTH_FAILED = "auth_failed"
    QUOTA_EXCEEDED = "quota_exceeded"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_REQUEST = "invalid_request"
    NETWORK_ERROR = "network_error"

    @property
    def is_retryable(self) -> bool:
        return self in (
            ProviderErrorKind.RATE_LIMITED,
            ProviderErrorKind.SERVICE_UNAVAILABLE,
            ProviderErrorKind.NETWORK_ERROR,
        )

    @property
    def falls_through(self) -> bool:
        return self is not ProviderErrorKind.INVALID_REQUEST


class ProviderError(TranslatorSyncError):
    """A classified failure of a single provider call."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider: str = "unknown",
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.provider = provider
        self.retry_after = retry_after

    def __str__(self) -> str:
        return f"[{self.provider}] {self.kind.value}: {self.args[0]}"


class AllProvidersFailedError(TranslatorSyncError):
    """
    Every provider of the fallback chain failed for one batch.

    ``partial`` holds the translations that were obtained before the failure
    (cache hits and earlier chunks) so callers can still keep them.
    """

    def __init__(self, errors: List[ProviderError], partial: Optional[Dict[str, str]] = None):
        details = "; ".join(str(error) for error in errors) or "no providers configured"
        super().__init__(f"All translation providers failed: {details}")
        self.errors = errors
        self.partial = partial or {}
