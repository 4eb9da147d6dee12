# src/providers/errors.py

"""Exception hierarchy for the price sweep."""


class PriceSweepError(Exception):
    """Base class for every error raised by the price sweep."""


class ConfigurationError(PriceSweepError):
    """Fatal startup problem: missing connection string or credentials."""


class ItemTimeoutError(PriceSweepError):
    """Pricing one catalog item took longer than its time budget."""


class ProviderError(PriceSweepError):
    """A marketplace provider call failed.

    Carries the provider name, the query that was being searched and the
    last HTTP status seen (``None`` when no response was received).
    """

    def __init__(
        self,
        message: str,
        provider: str,
        query: str = "",
        status: int | None = None,
    ) -> None:
        self.provider = provider
        self.query = query
        self.status = status
        self.detail = message
        super().__init__(
            f"[{provider}] {message} "
            f"(query={query!r}, status={status})"
        )


class ProviderHTTPError(ProviderError):
    """Non-retryable HTTP status (4xx other than 429)."""


class ProviderAuthError(ProviderError):
    """Credentials missing or rejected by the token endpoint."""


class ProviderResponseError(ProviderError):
    """Payload failed its acknowledgement check or could not be decoded."""


class RetryExhaustedError(ProviderError):
    """Retry budget used up on 5xx or transport errors."""


class RateLimitExhaustedError(RetryExhaustedError):
    """Retry budget used up while the provider kept answering 429."""
