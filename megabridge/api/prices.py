"""Price, quote and health endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Request

from ..src.QuoteCalculator import InvalidAmount
from .responses import error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/prices")
async def get_prices(request: Request):
    """Current USD price table."""
    try:
        table = await request.app.state.price_cache.get_prices()
    except Exception as e:
        logger.error(f"Failed to fetch prices: {e!r}")
        return error_response(500, "Failed to fetch prices")
    return dict(table)


@router.get("/quote")
async def get_quote(
    request: Request,
    amount: str | None = None,
    chainId: str | None = None,
    inputToken: str | None = None,
    outputToken: str | None = None,
):
    """Indicative quote for bridging ``amount`` to MegaETH."""
    if not amount:
        return error_response(400, "Amount is required")

    logger.info(
        f"Quote request: amount={amount}, chainId={chainId}, "
        f"input={inputToken}, output={outputToken}"
    )
    try:
        quote = await request.app.state.calculator.quote(
            amount,
            chain_id=chainId,
            input_token=inputToken,
            output_token=outputToken,
        )
    except InvalidAmount:
        return error_response(400, "Invalid amount")
    except Exception as e:
        logger.error(f"Quote error: {e!r}")
        return error_response(500, "Failed to calculate quote")
    return quote.to_dict()


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Cache freshness and per-source health."""
    cache = request.app.state.price_cache
    manager = request.app.state.aggregator.source_manager
    entry = cache.entry
    return {
        "cache": {
            "populated": entry is not None,
            "fresh": cache.is_fresh(),
            "ageMs": cache.age_ms(),
            "ttlMs": cache.ttl_ms,
            "stale": entry.stale if entry else False,
            "sources": list(entry.sources) if entry else [],
        },
        "sources": {
            name: status.to_dict()
            for name, status in manager.get_all_status().items()
        },
    }
