"""Tests for the source cascade plumbing."""

import httpx
import pytest

from tradingdesk.exceptions import (
    FetchCancelledError,
    MarketDataError,
    RestrictedLocationError,
    SourcesExhaustedError,
)
from tradingdesk.ingestion.cascade import (
    CancellationToken,
    JsonFetcher,
    SourceStrategy,
    after_restriction,
    error_for_payload,
    first_success,
    is_restricted_message,
)

PROXY = "https://relay.test/raw"


def _fetcher(handler, proxy_url=PROXY) -> JsonFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return JsonFetcher(client, proxy_url=proxy_url, clock=lambda: 1.5)


class TestRestrictionDetection:
    def test_markers(self):
        assert is_restricted_message("Service unavailable from a restricted location")
        assert is_restricted_message("Service unavailable")
        assert not is_restricted_message("Invalid symbol.")
        assert not is_restricted_message(None)

    def test_error_for_payload(self):
        assert isinstance(
            error_for_payload({"code": 0, "msg": "restricted location"}, "Futures"),
            RestrictedLocationError,
        )
        err = error_for_payload({"code": -1121, "msg": "Invalid symbol."}, "Spot")
        assert "Spot API error: Invalid symbol." in str(err)
        assert "Invalid response format" in str(error_for_payload("nope", "Spot"))


class TestCancellationToken:
    def test_lifecycle(self):
        token = CancellationToken("BTCUSDT")
        assert token.active
        token.raise_if_cancelled()
        token.cancel()
        assert token.cancelled
        with pytest.raises(FetchCancelledError):
            token.raise_if_cancelled()


class TestJsonFetcher:
    """Direct first, then one retry through the relay."""

    @pytest.mark.asyncio
    async def test_direct_success_skips_proxy(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.host)
            return httpx.Response(200, json=[1, 2, 3])

        data = await _fetcher(handler).get_json("https://api.test/x", params={"a": 1})
        assert data == [1, 2, 3]
        assert seen == ["api.test"]

    @pytest.mark.asyncio
    async def test_proxy_retry_carries_target_and_timestamp(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            if request.url.host == "api.test":
                return httpx.Response(500)
            return httpx.Response(200, json={"ok": True})

        data = await _fetcher(handler).get_json("https://api.test/x", params={"symbol": "BTCUSDT"})
        assert data == {"ok": True}
        proxied = seen[-1]
        assert proxied.url.host == "relay.test"
        assert proxied.url.params["url"] == "https://api.test/x?symbol=BTCUSDT"
        assert proxied.url.params["t"] == "1500"

    @pytest.mark.asyncio
    async def test_restriction_survives_proxy_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.test":
                return httpx.Response(451, json={"code": 0, "msg": "Service unavailable from a restricted location"})
            return httpx.Response(502)

        with pytest.raises(RestrictedLocationError):
            await _fetcher(handler).get_json("https://api.test/x")

    @pytest.mark.asyncio
    async def test_no_proxy_raises_direct_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": -1121, "msg": "Invalid symbol."})

        with pytest.raises(MarketDataError, match="Invalid symbol"):
            await _fetcher(handler, proxy_url=None).get_json("https://api.test/x")

    @pytest.mark.asyncio
    async def test_use_proxy_false(self):
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(503)

        with pytest.raises(MarketDataError):
            await _fetcher(handler).get_json("https://api.test/x", use_proxy=False)
        assert hosts == ["api.test"]

    @pytest.mark.asyncio
    async def test_cancelled_token_drops_result(self):
        token = CancellationToken()

        def handler(request: httpx.Request) -> httpx.Response:
            token.cancel()
            return httpx.Response(200, json=[])

        with pytest.raises(FetchCancelledError):
            await _fetcher(handler).get_json("https://api.test/x", token=token)


class TestFirstSuccess:
    """Ordered strategies, first non-raising result wins."""

    @staticmethod
    def _ok(value):
        async def fetch():
            return value
        return fetch

    @staticmethod
    def _fail(exc):
        async def fetch():
            raise exc
        return fetch

    @pytest.mark.asyncio
    async def test_returns_first_success(self):
        result = await first_success([
            SourceStrategy("a", self._fail(MarketDataError("down"))),
            SourceStrategy("b", self._ok("B")),
            SourceStrategy("c", self._ok("C")),
        ])
        assert result == "B"

    @pytest.mark.asyncio
    async def test_conditional_source_skipped_without_restriction(self):
        calls = []

        async def regional():
            calls.append("regional")
            return "US"

        with pytest.raises(SourcesExhaustedError) as exc_info:
            await first_success([
                SourceStrategy("a", self._fail(MarketDataError("down"))),
                SourceStrategy("us", regional, applies=after_restriction),
            ])
        assert calls == []
        assert [name for name, _ in exc_info.value.errors] == ["a"]

    @pytest.mark.asyncio
    async def test_conditional_source_used_after_restriction(self):
        result = await first_success([
            SourceStrategy("a", self._fail(RestrictedLocationError("restricted location"))),
            SourceStrategy("b", self._fail(MarketDataError("down"))),
            SourceStrategy("us", self._ok("US"), applies=after_restriction),
        ])
        assert result == "US"

    @pytest.mark.asyncio
    async def test_cancellation_is_not_a_source_failure(self):
        calls = []

        async def second():
            calls.append("second")
            return "x"

        with pytest.raises(FetchCancelledError):
            await first_success([
                SourceStrategy("a", self._fail(FetchCancelledError("gone"))),
                SourceStrategy("b", second),
            ])
        assert calls == []

    @pytest.mark.asyncio
    async def test_exhausted_keeps_last_error(self):
        last = MarketDataError("last")
        with pytest.raises(SourcesExhaustedError) as exc_info:
            await first_success([
                SourceStrategy("a", self._fail(MarketDataError("first"))),
                SourceStrategy("b", self._fail(last)),
            ])
        assert exc_info.value.last_error is last
