"""Unit tests for the price source adapters."""

import asyncio
import json

import httpx
import pytest

from megabridge.src import fetchers
from megabridge.src.fetchers import (
    BaseFetcher,
    CodexFetcher,
    CoinGeckoAssetFetcher,
    CoinGeckoFetcher,
    DexScreenerFetcher,
    get_available_fetchers,
    get_fetcher,
    parse_price,
    select_pair,
)
from megabridge.src.tokens import MEGAETH_TOKENS


def mock_client(handler, calls: list | None = None) -> httpx.AsyncClient:
    """Build a client whose requests are answered by ``handler``."""

    def recording(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(recording))


class SlowFetcher(BaseFetcher):
    name = "slow"

    def supports_symbol(self, symbol: str) -> bool:
        return True

    async def _fetch_prices(self, symbols: set[str]) -> dict[str, float]:
        await asyncio.sleep(1)
        return {s: 1.0 for s in symbols}


class TestRegistry:
    """Test fetcher registration."""

    def test_available_fetchers(self) -> None:
        """All four adapters should be registered."""
        assert get_available_fetchers() == [
            "codex",
            "coingecko",
            "coingecko_single",
            "dexscreener",
        ]

    def test_get_fetcher_with_options(self) -> None:
        """Extra options should reach the fetcher constructor."""
        fetcher = get_fetcher("dexscreener", timeout=2.0, preferred_dex_id="kumbaya")
        assert isinstance(fetcher, DexScreenerFetcher)
        assert fetcher.timeout == 2.0
        assert fetcher.preferred_dex_id == "kumbaya"

    def test_unknown_fetcher(self) -> None:
        """Unknown names should raise ValueError listing what exists."""
        with pytest.raises(ValueError, match="Unknown fetcher 'nope'"):
            get_fetcher("nope")

    def test_exports_resolve(self) -> None:
        """Every exported name exists and errors share one base."""
        for name in fetchers.__all__:
            assert hasattr(fetchers, name), name
        assert issubclass(fetchers.FetcherHTTPError, fetchers.FetcherError)


class TestParsePrice:
    """Test payload price coercion."""

    def test_numeric_string(self) -> None:
        assert parse_price("0.00012") == pytest.approx(0.00012)

    def test_invalid_values(self) -> None:
        """Missing, malformed, NaN, zero and negative values are rejected."""
        for value in (None, "abc", "nan", float("inf"), 0, -1.5, True, {}):
            assert parse_price(value) is None


class TestCoinGeckoFetcher:
    """Test the majors basket adapter."""

    def test_batch_fetch(self) -> None:
        """One request should price every supported symbol that was asked for."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={
                "ethereum": {"usd": 3500},
                "solana": {"usd": 180.5},
            })

        fetcher = CoinGeckoFetcher(client=mock_client(handler, calls))
        prices = asyncio.run(fetcher.fetch_prices({"eth", "SOL", "MATIC", "FLUFFEY"}))

        assert prices == {"ETH": 3500.0, "SOL": 180.5}
        assert len(calls) == 1
        assert calls[0].url.path == "/api/v3/simple/price"
        assert set(calls[0].url.params["ids"].split(",")) == {
            "ethereum", "solana", "matic-network",
        }
        assert calls[0].url.params["vs_currencies"] == "usd"

    def test_no_supported_symbols_skips_request(self) -> None:
        """Nothing to price means no HTTP call at all."""
        calls: list[httpx.Request] = []
        fetcher = CoinGeckoFetcher(
            client=mock_client(lambda r: httpx.Response(200, json={}), calls)
        )
        assert asyncio.run(fetcher.fetch_prices({"FLUFFEY"})) == {}
        assert calls == []

    def test_http_error_returns_empty(self) -> None:
        """A non-2xx status should yield an empty result, not an exception."""
        fetcher = CoinGeckoFetcher(
            client=mock_client(lambda r: httpx.Response(429, text="rate limited"))
        )
        assert asyncio.run(fetcher.fetch_prices({"ETH"})) == {}

    def test_malformed_payload_returns_empty(self) -> None:
        """Unparseable JSON should yield an empty result."""
        fetcher = CoinGeckoFetcher(
            client=mock_client(lambda r: httpx.Response(200, text="<html>oops</html>"))
        )
        assert asyncio.run(fetcher.fetch_prices({"ETH"})) == {}

    def test_network_error_returns_empty(self) -> None:
        """Connection failures should yield an empty result."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = CoinGeckoFetcher(client=mock_client(handler))
        assert asyncio.run(fetcher.fetch_prices({"ETH"})) == {}

    def test_invalid_price_dropped(self) -> None:
        """Zero prices from the API should not be returned."""
        fetcher = CoinGeckoFetcher(client=mock_client(
            lambda r: httpx.Response(200, json={
                "ethereum": {"usd": 0},
                "solana": {"usd": 150},
            })
        ))
        assert asyncio.run(fetcher.fetch_prices({"ETH", "SOL"})) == {"SOL": 150.0}

    def test_demo_key(self) -> None:
        """demo: keys use the free host and the demo header."""
        calls: list[httpx.Request] = []
        fetcher = CoinGeckoFetcher(
            api_key="demo:CG-abc",
            client=mock_client(
                lambda r: httpx.Response(200, json={"ethereum": {"usd": 1}}), calls
            ),
        )
        asyncio.run(fetcher.fetch_prices({"ETH"}))

        assert calls[0].url.host == "api.coingecko.com"
        assert calls[0].headers["x-cg-demo-api-key"] == "CG-abc"

    def test_pro_key(self) -> None:
        """Keys without prefix use the pro host."""
        fetcher = CoinGeckoFetcher(api_key="pro-key")
        assert fetcher.base_url == CoinGeckoFetcher.BASE_URL_PRO
        assert fetcher.api_header == ("x-cg-pro-api-key", "pro-key")


class TestCoinGeckoAssetFetcher:
    """Test the single-asset adapter."""

    def test_fetches_only_its_asset(self) -> None:
        calls: list[httpx.Request] = []
        fetcher = CoinGeckoAssetFetcher(client=mock_client(
            lambda r: httpx.Response(200, json={"hyperliquid": {"usd": 27.3}}), calls
        ))
        prices = asyncio.run(fetcher.fetch_prices({"ETH", "HYPE"}))

        assert prices == {"HYPE": 27.3}
        assert calls[0].url.params["ids"] == "hyperliquid"

    def test_short_default_timeout(self) -> None:
        """Its timeout is shorter than the basket's."""
        assert CoinGeckoAssetFetcher().timeout < CoinGeckoFetcher().timeout


class TestCodexFetcher:
    """Test the destination-chain-token adapter."""

    def test_disabled_without_key(self) -> None:
        """Without a key the adapter is unconfigured and makes no request."""
        calls: list[httpx.Request] = []
        fetcher = CodexFetcher(client=mock_client(lambda r: httpx.Response(500), calls))

        assert not fetcher.is_configured
        assert asyncio.run(fetcher.fetch_prices({"FLUFFEY"})) == {}
        assert calls == []

    def test_matches_addresses_case_insensitively(self) -> None:
        """Returned entries map back to symbols regardless of address case."""
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": {"getTokenPrices": [
                {"address": MEGAETH_TOKENS["FLUFFEY"].upper(), "priceUsd": 0.00015},
                {"address": MEGAETH_TOKENS["MEKA"], "priceUsd": "0.00003"},
                None,
            ]}})

        fetcher = CodexFetcher(api_key="secret", client=mock_client(handler, calls))
        prices = asyncio.run(fetcher.fetch_prices({"FLUFFEY", "MEKA", "KUMA", "ETH"}))

        assert prices == {"FLUFFEY": 0.00015, "MEKA": 0.00003}
        request = calls[0]
        assert request.method == "POST"
        assert request.headers["Authorization"] == "secret"
        query = json.loads(request.content)["query"]
        assert "getTokenPrices" in query
        assert "networkId: 4326" in query
        assert MEGAETH_TOKENS["KUMA"] in query
        assert "ETH" not in query

    def test_graphql_errors_return_empty(self) -> None:
        fetcher = CodexFetcher(api_key="secret", client=mock_client(
            lambda r: httpx.Response(200, json={"errors": [{"message": "Unauthorized"}]})
        ))
        assert asyncio.run(fetcher.fetch_prices({"FLUFFEY"})) == {}


class TestSelectPair:
    """Test preferred pair selection."""

    PAIRS = [
        {"chainId": "base", "dexId": "uniswap", "priceUsd": "1"},
        {"chainId": "megaeth", "dexId": "kumbaya", "priceUsd": "2"},
        {"chainId": "ethereum", "dexId": "mania", "priceUsd": "3"},
    ]

    def test_prefers_chain(self) -> None:
        assert select_pair(self.PAIRS, "megaeth")["priceUsd"] == "2"

    def test_prefers_dex(self) -> None:
        assert select_pair(self.PAIRS, None, "mania")["priceUsd"] == "3"

    def test_first_match_of_either_wins(self) -> None:
        """The earliest pair matching either preference is chosen."""
        assert select_pair(self.PAIRS, "ethereum", "kumbaya")["priceUsd"] == "2"

    def test_defaults_to_first(self) -> None:
        assert select_pair(self.PAIRS, "solana", "raydium")["priceUsd"] == "1"

    def test_empty(self) -> None:
        assert select_pair([], "megaeth") is None


class TestDexScreenerFetcher:
    """Test the DEX-pair adapter."""

    def test_groups_pairs_by_base_token(self) -> None:
        calls: list[httpx.Request] = []
        fluffey = MEGAETH_TOKENS["FLUFFEY"]
        sigma = MEGAETH_TOKENS["SIGMA"]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"pairs": [
                {"chainId": "base", "dexId": "x", "priceUsd": "0.5",
                 "baseToken": {"address": fluffey}},
                {"chainId": "megaeth", "dexId": "y", "priceUsd": "0.0002",
                 "baseToken": {"address": fluffey.upper()}},
                {"chainId": "base", "dexId": "z", "priceUsd": "0.00001",
                 "baseToken": {"address": sigma}},
            ]})

        fetcher = DexScreenerFetcher(client=mock_client(handler, calls))
        prices = asyncio.run(fetcher.fetch_prices({"FLUFFEY", "SIGMA", "KUMA"}))

        assert prices == {"FLUFFEY": 0.0002, "SIGMA": 0.00001}
        assert len(calls) == 1
        assert fluffey in calls[0].url.path
        assert MEGAETH_TOKENS["KUMA"] in calls[0].url.path

    def test_null_pairs(self) -> None:
        """DexScreener answers unknown tokens with pairs: null."""
        fetcher = DexScreenerFetcher(
            client=mock_client(lambda r: httpx.Response(200, json={"pairs": None}))
        )
        assert asyncio.run(fetcher.fetch_prices({"FLUFFEY"})) == {}


class TestTimeout:
    """Test per-adapter timeouts."""

    def test_timeout_returns_empty(self) -> None:
        """A fetch exceeding its timeout contributes nothing."""
        fetcher = SlowFetcher(timeout=0.01)
        assert asyncio.run(fetcher.fetch_prices({"ETH"})) == {}
