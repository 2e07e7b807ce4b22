"""Unit tests for CLI configuration helpers."""

import pytest
from fastapi.testclient import TestClient

from megabridge.main import build_app, parse_api_keys, parse_env_api_keys
from megabridge.src.fetchers import CodexFetcher, DexScreenerFetcher


class TestParseApiKeys:
    """Test --api-keys parsing."""

    def test_empty(self) -> None:
        assert parse_api_keys(None) == {}
        assert parse_api_keys("") == {}

    def test_multiple(self) -> None:
        keys = parse_api_keys("Codex=abc, coingecko=demo:CG-x=y ,junk")
        assert keys == {"codex": "abc", "coingecko": "demo:CG-x=y"}


class TestParseEnvApiKeys:
    """Test API keys read from the environment."""

    def test_prefixes(self) -> None:
        keys = parse_env_api_keys({
            "API_KEY_CODEX": "abc",
            "APIKEY_COINGECKO": "xyz",
            "API_KEY_EMPTY": "",
            "PATH": "/usr/bin",
        })
        assert keys == {"codex": "abc", "coingecko": "xyz"}

    def test_alias(self) -> None:
        assert parse_env_api_keys({"CODEX_API_KEY": "abc"}) == {"codex": "abc"}

    def test_prefixed_variable_wins_over_alias(self) -> None:
        keys = parse_env_api_keys({"CODEX_API_KEY": "old", "API_KEY_CODEX": "new"})
        assert keys == {"codex": "new"}


class TestBuildApp:
    """Test service wiring."""

    def test_wires_sources_in_order(self) -> None:
        app = build_app(
            api_keys={"codex": "abc"},
            cache_ttl_ms=5_000,
            fetch_timeout=1.5,
            dex_id="kumbaya",
        )
        fetchers = app.state.aggregator.fetchers

        assert [f.name for f in fetchers] == [
            "coingecko", "coingecko_single", "codex", "dexscreener",
        ]
        assert all(f.timeout == 1.5 for f in fetchers)
        codex = next(f for f in fetchers if isinstance(f, CodexFetcher))
        assert codex.is_configured
        dex = next(f for f in fetchers if isinstance(f, DexScreenerFetcher))
        assert dex.preferred_chain_id == "megaeth"
        assert dex.preferred_dex_id == "kumbaya"
        assert app.state.price_cache.ttl_ms == 5_000

    def test_codex_disabled_without_key(self) -> None:
        app = build_app(sources=["codex"])
        assert not app.state.aggregator.fetchers[0].is_configured

    def test_unknown_source(self) -> None:
        with pytest.raises(ValueError):
            build_app(sources=["nope"])

    def test_health_route_mounted(self) -> None:
        with TestClient(build_app(sources=["coingecko"])) as client:
            response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["cache"]["populated"] is False
