"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..src.BridgeService import BridgeService
from ..src.fetchers import BaseFetcher
from ..src.PriceAggregator import PriceAggregator
from ..src.PriceCache import PriceCache
from ..src.QuoteCalculator import QuoteCalculator
from . import bridge, prices


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await BaseFetcher.close_shared_client()


def create_app(
    aggregator: PriceAggregator,
    price_cache: PriceCache,
    calculator: QuoteCalculator,
    bridge_service: BridgeService,
) -> FastAPI:
    """Build the HTTP application around already-wired services."""
    app = FastAPI(
        title="MegaBridge API",
        description="Price, quote and bridge transaction endpoints",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    app.state.aggregator = aggregator
    app.state.price_cache = price_cache
    app.state.calculator = calculator
    app.state.bridge_service = bridge_service

    app.include_router(prices.router, tags=["Prices"])
    app.include_router(bridge.router, tags=["Bridge"])

    return app
