"""
TradingDesk - Error Taxonomy

Errors never cross pipeline tiers as exceptions; these types exist so the
layers below the orchestrator can signal precisely what went wrong.
"""

from __future__ import annotations


class TradingDeskError(Exception):
    """Base class for all TradingDesk errors."""


# =============================================================================
# Preconditions
# =============================================================================

class MissingCredentialError(TradingDeskError):
    """A provider API key is absent from both user input and the environment."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(
            f"{provider} API key missing. Provide one explicitly or set it in the environment."
        )


# =============================================================================
# Agent providers
# =============================================================================

class ProviderError(TradingDeskError):
    """A completion call failed."""


class EmptyCompletionError(ProviderError):
    """The provider answered without any content."""


class UnknownProviderError(TradingDeskError):
    """No backend is registered under the requested name."""


# =============================================================================
# Market data
# =============================================================================

class MarketDataError(TradingDeskError):
    """A market data source failed or returned something unusable."""


class RestrictedLocationError(MarketDataError):
    """The exchange refused service for the caller's region."""


class MalformedResponseError(MarketDataError):
    """The response parsed, but not into the expected shape."""


class FetchCancelledError(TradingDeskError):
    """The fetch belonged to a selection that is no longer active."""


class SourcesExhaustedError(MarketDataError):
    """Every source in a cascade failed."""

    def __init__(self, errors: list[tuple[str, BaseException]]):
        self.errors = errors
        detail = "; ".join(f"{name}: {err}" for name, err in errors) or "no sources"
        super().__init__(f"All sources failed ({detail})")

    @property
    def last_error(self) -> BaseException | None:
        return self.errors[-1][1] if self.errors else None


# =============================================================================
# Pipeline state
# =============================================================================

class InvalidTransitionError(TradingDeskError):
    """An agent status change outside the allowed transition table."""
