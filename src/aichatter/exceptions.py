"""Domain exception hierarchy for the chat session engine."""

from __future__ import annotations

from enum import Enum


class ChatterError(RuntimeError):
    """Base class for all domain-level chat errors."""


class ConfigValidationError(ChatterError):
    """Raised when configuration cannot be validated safely."""


class ProviderErrorKind(str, Enum):
    """Failure categories reported by completion providers."""

    CONFIGURATION = "configuration"
    TRANSPORT = "transport"
    INVALID_RESPONSE = "invalid_response"
    NO_MODELS = "no_models"
    UNAVAILABLE = "unavailable"


class ProviderError(ChatterError):
    """Raised when a completion provider call does not succeed."""

    kind: ProviderErrorKind = ProviderErrorKind.TRANSPORT

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(ProviderError):
    """Raised before any request when a provider is missing a credential."""

    kind = ProviderErrorKind.CONFIGURATION


class TransportError(ProviderError):
    """Raised for network failures and non-2xx upstream responses."""

    kind = ProviderErrorKind.TRANSPORT


class InvalidResponseFormatError(ProviderError):
    """Raised when a provider payload is malformed or missing."""

    kind = ProviderErrorKind.INVALID_RESPONSE


class NoModelsAvailableError(ProviderError):
    """Raised when the local provider has zero installed models."""

    kind = ProviderErrorKind.NO_MODELS


class ProviderUnavailableError(ProviderError):
    """Raised when offline mode is active but the local provider is unreachable."""

    kind = ProviderErrorKind.UNAVAILABLE


class PersistenceError(ChatterError):
    """Raised when the backing store rejects a read or write."""


class PersistenceFormatError(PersistenceError):
    """Raised when a persisted payload cannot be decoded safely."""


class SessionError(ChatterError):
    """Base class for session state-machine violations."""


class SessionNotReadyError(SessionError):
    """Raised when an operation needs a loaded, open session."""


class SendInProgressError(SessionError):
    """Raised when a send is requested while another one is in flight."""


class ModeSwitchError(SessionError):
    """Raised when switching modes is not allowed right now."""
