"""
TradingDesk - Source Cascade

Shared plumbing for every market data endpoint:

- CancellationToken: liveness flag owned by one instrument selection
- JsonFetcher:       direct GET with a single retry through a CORS relay
- first_success:     runs an ordered list of source strategies and returns
                     the first result that does not raise
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

import httpx

from tradingdesk.exceptions import (
    FetchCancelledError,
    MarketDataError,
    RestrictedLocationError,
    SourcesExhaustedError,
)
from tradingdesk.logging import get_logger

logger = get_logger(__name__, component="cascade")

T = TypeVar("T")

RESTRICTED_MARKERS = ("restricted location", "Service unavailable")


def is_restricted_message(message: str | None) -> bool:
    """Binance signals geo-blocking in the error message, not only the status."""
    if not message:
        return False
    return any(marker in message for marker in RESTRICTED_MARKERS)


def error_for_payload(payload: Any, source: str) -> MarketDataError:
    """Map an error payload (`{"code": ..., "msg": ...}`) to the right error type."""
    message = payload.get("msg") if isinstance(payload, dict) else None
    if is_restricted_message(message):
        return RestrictedLocationError(message)
    if message:
        return MarketDataError(f"{source} API error: {message}")
    return MarketDataError(f"Invalid response format from {source}")


class CancellationToken:
    """
    Marks whether the work started for a selection is still wanted.

    Checked after every network resumption point; once cancelled, results
    are dropped by raising FetchCancelledError.
    """

    def __init__(self, label: str = "") -> None:
        self.label = label
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise FetchCancelledError(f"Selection {self.label!r} is no longer active")


def _check(token: CancellationToken | None) -> None:
    if token is not None:
        token.raise_if_cancelled()


class JsonFetcher:
    """
    GET-and-decode with a proxy fallback.

    A direct attempt that fails (network error or non-2xx) is retried once
    through the relay. A geo-restriction on the direct attempt wins over a
    relay failure so callers can route to a regional source.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        proxy_url: str | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._proxy_url = proxy_url
        self._clock = clock

    async def get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        token: CancellationToken | None = None,
        use_proxy: bool = True,
    ) -> Any:
        target = str(httpx.URL(url, params=params)) if params else url

        try:
            return await self._direct(target, token)
        except (httpx.HTTPError, MarketDataError) as direct_error:
            if not use_proxy or not self._proxy_url:
                raise
            _check(token)

            if not isinstance(direct_error, RestrictedLocationError):
                logger.warning("direct_fetch_failed", url=target, error=str(direct_error))

            try:
                return await self._via_proxy(target, token)
            except (httpx.HTTPError, MarketDataError) as proxy_error:
                if isinstance(direct_error, RestrictedLocationError):
                    raise direct_error from proxy_error
                raise

    async def _direct(self, url: str, token: CancellationToken | None) -> Any:
        response = await self._client.get(url)
        _check(token)

        if not response.is_success:
            message = f"Direct fetch failed: {response.status_code} {response.reason_phrase}"
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict) and payload.get("msg"):
                message = payload["msg"]
            if is_restricted_message(message):
                raise RestrictedLocationError(message)
            raise MarketDataError(message)

        return _decode(response)

    async def _via_proxy(self, url: str, token: CancellationToken | None) -> Any:
        # Timestamp defeats relay caching
        response = await self._client.get(
            self._proxy_url,
            params={"url": url, "t": int(self._clock() * 1000)},
        )
        _check(token)

        if not response.is_success:
            raise MarketDataError(
                f"Proxy fetch failed: {response.status_code} {response.reason_phrase}"
            )
        return _decode(response)


def _decode(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise MarketDataError(f"Response is not JSON: {e}") from e


def always(_errors: Sequence[BaseException]) -> bool:
    return True


def after_restriction(errors: Sequence[BaseException]) -> bool:
    """Only worth trying once an earlier source reported a geo-restriction."""
    return any(isinstance(e, RestrictedLocationError) for e in errors)


@dataclass
class SourceStrategy(Generic[T]):
    """One rung of a cascade."""

    name: str
    fetch: Callable[[], Awaitable[T]]
    applies: Callable[[Sequence[BaseException]], bool] = field(default=always)


async def first_success(
    strategies: Sequence[SourceStrategy[T]],
    token: CancellationToken | None = None,
) -> T:
    """
    Run strategies in order and return the first result.

    Each strategy sees the errors raised by the ones before it through its
    `applies` predicate. Cancellation is never treated as a source failure.

    Raises:
        SourcesExhaustedError: every applicable strategy failed
        FetchCancelledError: the token was cancelled mid-cascade
    """
    errors: list[tuple[str, BaseException]] = []

    for strategy in strategies:
        _check(token)
        if not strategy.applies([e for _, e in errors]):
            continue

        try:
            result = await strategy.fetch()
        except FetchCancelledError:
            raise
        except Exception as e:
            logger.warning(
                "source_failed",
                source=strategy.name,
                error=str(e),
                error_type=type(e).__name__,
            )
            errors.append((strategy.name, e))
            continue

        _check(token)
        if errors:
            logger.info("source_recovered", source=strategy.name, failed=len(errors))
        return result

    raise SourcesExhaustedError(errors)
