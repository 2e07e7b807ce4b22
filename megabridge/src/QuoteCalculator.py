"""QuoteCalculator: Indicative bridge quotes from cached USD prices.

The output amount is the USD-equivalent of the input in the destination
token, less slippage and the bridge fee, both taken from the gross amount:

    gross    = amount * source_price / target_price
    slippage = gross * slippage_bps / 10000
    fee      = gross * fee_percent / 100
    net      = gross - slippage - fee

Precision rule: token amounts and the exchange rate are always rendered with
6 decimal places and the USD value with 2, rounding half-up. Arithmetic is
done in Decimal and only rounded when formatting. Amounts above
MAX_AMOUNT (10^30) are rejected as invalid.

.. code-block:: python

    >>> quote = calculate_quote("1", "ETH", "ETH", {"ETH": 3500.0})
    >>> quote.output_amount
    '0.994000'
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import TYPE_CHECKING, Any, Mapping

from .tokens import DEFAULT_TOKEN, ChainId, resolve_pair

if TYPE_CHECKING:
    from .PriceCache import PriceCache

logger = logging.getLogger(__name__)

SLIPPAGE_BPS = 50
BRIDGE_FEE_PERCENT = Decimal("0.1")
ESTIMATED_TIME = "~5 minutes"

AMOUNT_DECIMALS = 6
USD_DECIMALS = 2

# Largest accepted input amount.
MAX_AMOUNT = Decimal("1e30")


class InvalidAmount(ValueError):
    """Raised when a quote amount is not a positive decimal number."""

    pass


def parse_amount(amount: Any) -> Decimal:
    """Parse a user-supplied amount.

    :param amount: Decimal string (or number) as received from the caller.
    :returns: The amount as a finite, positive Decimal.
    :raises InvalidAmount: If the value is missing, not numeric, not finite,
        not strictly positive or above MAX_AMOUNT.
    """
    if amount is None or isinstance(amount, bool):
        raise InvalidAmount("Invalid amount")
    try:
        value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmount("Invalid amount") from None
    if not value.is_finite() or value <= 0 or value > MAX_AMOUNT:
        raise InvalidAmount("Invalid amount")
    return value


def format_decimal(value: Decimal, places: int = AMOUNT_DECIMALS) -> str:
    """Render a Decimal with a fixed number of places, rounding half-up."""
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # quantize needs room for every integer digit plus the places
        ctx.prec = max(ctx.prec, value.adjusted() + places + 2)
        return f"{value.quantize(quantum, rounding=ROUND_HALF_UP):f}"


@dataclass(frozen=True)
class Quote:
    """An indicative bridge quote.

    Monetary amounts are decimal strings; see the module docstring for the
    precision rule.
    """

    input_amount: str
    input_token: str
    input_usd_value: str
    output_amount: str
    output_token: str
    slippage_bps: int
    fee_percent: Decimal
    fee_amount: str
    slippage_amount: str
    estimated_time: str
    exchange_rate: str
    prices: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON representation used by the HTTP API."""
        return {
            "inputAmount": self.input_amount,
            "inputToken": self.input_token,
            "inputUsdValue": self.input_usd_value,
            "outputAmount": self.output_amount,
            "outputToken": self.output_token,
            "slippageBps": self.slippage_bps,
            "feePercent": float(self.fee_percent),
            "feeAmount": self.fee_amount,
            "slippageAmount": self.slippage_amount,
            "estimatedTime": self.estimated_time,
            "exchangeRate": self.exchange_rate,
            "prices": dict(self.prices),
        }


def calculate_quote(
    amount: Any,
    source_token: str,
    target_token: str,
    prices: Mapping[str, float],
    *,
    slippage_bps: int = SLIPPAGE_BPS,
    fee_percent: Decimal = BRIDGE_FEE_PERCENT,
    estimated_time: str = ESTIMATED_TIME,
) -> Quote:
    """Compute a quote from a price table. Pure: touches no shared state.

    Symbols missing from ``prices`` are quoted as ETH.

    :param amount: Input amount, decimal string or number.
    :param source_token: Symbol being bridged.
    :param target_token: Symbol received on the destination chain.
    :param prices: Symbol to USD price table; must contain ETH.
    :returns: The quote.
    :raises InvalidAmount: If ``amount`` is not a positive number.
    """
    value = parse_amount(amount)

    source = source_token.upper()
    target = target_token.upper()
    if source not in prices:
        logger.debug(f"No price for {source}, quoting as {DEFAULT_TOKEN}")
        source = DEFAULT_TOKEN
    if target not in prices:
        logger.debug(f"No price for {target}, quoting as {DEFAULT_TOKEN}")
        target = DEFAULT_TOKEN

    source_price = Decimal(str(prices[source]))
    target_price = Decimal(str(prices[target]))
    rate = source_price / target_price

    usd_value = value * source_price
    gross = value * rate
    slippage = gross * Decimal(slippage_bps) / Decimal(10000)
    fee = gross * Decimal(fee_percent) / Decimal(100)
    net = gross - slippage - fee

    if source != target:
        logger.debug(f"1 {source} = {format_decimal(rate)} {target}")

    return Quote(
        input_amount=str(amount).strip(),
        input_token=source,
        input_usd_value=format_decimal(usd_value, USD_DECIMALS),
        output_amount=format_decimal(net),
        output_token=target,
        slippage_bps=slippage_bps,
        fee_percent=Decimal(fee_percent),
        fee_amount=format_decimal(fee),
        slippage_amount=format_decimal(slippage),
        estimated_time=estimated_time,
        exchange_rate=format_decimal(rate),
        prices={
            source: prices[source],
            target: prices[target],
            DEFAULT_TOKEN: prices[DEFAULT_TOKEN],
        },
    )


class QuoteCalculator:
    """Quotes bridge requests against the shared price cache.

    :ivar slippage_bps: Synthetic slippage in basis points.
    :ivar fee_percent: Bridge fee in percent.
    :ivar estimated_time: Human-readable completion estimate.
    """

    def __init__(
        self,
        price_cache: PriceCache,
        slippage_bps: int = SLIPPAGE_BPS,
        fee_percent: Decimal | str = BRIDGE_FEE_PERCENT,
        estimated_time: str = ESTIMATED_TIME,
    ) -> None:
        """Initialize the calculator.

        :param price_cache: Cache providing the current price table.
        :param slippage_bps: Slippage in basis points (default: 50).
        :param fee_percent: Fee in percent (default: 0.1).
        :param estimated_time: ETA label attached to quotes.
        :raises ValueError: If slippage or fee are out of range.
        """
        fee = Decimal(str(fee_percent))
        if not 0 <= slippage_bps < 10000:
            raise ValueError("slippage_bps must be in [0, 10000)")
        if not 0 <= fee < 100:
            raise ValueError("fee_percent must be in [0, 100)")

        self.price_cache = price_cache
        self.slippage_bps = slippage_bps
        self.fee_percent = fee
        self.estimated_time = estimated_time

    async def quote(
        self,
        amount: Any,
        *,
        chain_id: ChainId | None = None,
        input_token: str | None = None,
        output_token: str | None = None,
    ) -> Quote:
        """Quote bridging ``amount`` of the source token.

        The source token is ``input_token`` if given, else the native token of
        ``chain_id``, else ETH. The destination token defaults to ETH.

        :raises InvalidAmount: If ``amount`` is not a positive number.
        """
        # Validate before touching the cache so bad input never triggers a fetch.
        parse_amount(amount)

        source, target = resolve_pair(chain_id, input_token, output_token)
        prices = await self.price_cache.get_prices()
        return calculate_quote(
            amount,
            source,
            target,
            prices,
            slippage_bps=self.slippage_bps,
            fee_percent=self.fee_percent,
            estimated_time=self.estimated_time,
        )
