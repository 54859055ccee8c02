"""Provider-agnostic exceptions raised by instance providers."""

from __future__ import annotations


class ProviderError(Exception):
    """Base class for all provider errors."""


class ProviderCredentialsError(ProviderError):
    """Raised when provider credentials are missing or rejected.

    Parameters
    ----------
    message : str
        Human readable error message
    provider : str | None
        Name of the provider that rejected the credentials
    """

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class ProviderConnectionError(ProviderError):
    """Raised when the provider API cannot be reached."""


class ProviderAPIError(ProviderError):
    """Raised when the provider API returns an error response.

    Parameters
    ----------
    message : str
        Human readable error message
    error_code : str | None
        Provider-specific error code (e.g. ``UnauthorizedOperation``)
    """

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.error_code = error_code
