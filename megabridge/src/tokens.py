"""Static chain and token tables shared by the adapters and the quote engine.

Everything here is loaded once at import time and never mutated. Symbols are
always upper-case; chain identifiers are EVM chain IDs, plus the reserved
``"solana"`` marker for the one non-EVM source chain.

.. code-block:: python

    >>> resolve_token(chain_id=137)
    'MATIC'
    >>> resolve_pair("solana", None, None)
    ('SOL', 'ETH')
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping, Union

ChainId = Union[int, str]

SOLANA_CHAIN = "solana"
DEFAULT_SOURCE_CHAIN_ID = 8453  # Base
MEGAETH_CHAIN_ID = 4326
DEFAULT_TOKEN = "ETH"

CHAIN_TOKENS: Mapping[ChainId, str] = MappingProxyType({
    1: "ETH",
    10: "ETH",
    25: "CRO",
    56: "BNB",
    100: "XDAI",
    137: "MATIC",
    169: "ETH",
    250: "FTM",
    324: "ETH",
    999: "HYPE",
    1101: "ETH",
    5000: "MNT",
    8453: "ETH",
    34443: "ETH",
    42161: "ETH",
    43114: "AVAX",
    59144: "ETH",
    81457: "ETH",
    534352: "ETH",
    7777777: "ETH",
    MEGAETH_CHAIN_ID: "ETH",
    SOLANA_CHAIN: "SOL",
})

# Tokens native to MegaETH, priced by contract address.
MEGAETH_TOKENS: Mapping[str, str] = MappingProxyType({
    "FLUFFEY": "0xc5808cf8be4e4ce012aa65bf6f60e24a3cc82071",
    "MEKA": "0x238214f6026601d5136ed88b5905e909ba06997b",
    "KUMA": "0xd34f85ba2a331514666f3040f43d83306c7a85df",
    "SIGMA": "0x023bb18826845645b121c5dfb65d23e834158491",
})

# Pegged assets seeded into every merged table before any adapter result.
CONSTANT_PRICES: Mapping[str, float] = MappingProxyType({
    "XDAI": 1.0,
})

# Last-resort USD prices. The keys double as the required-symbol list: after a
# refresh every one of them holds a finite, strictly positive price.
FALLBACK_PRICES: Mapping[str, float] = MappingProxyType({
    "ETH": 3000.0,
    "SOL": 150.0,
    "MATIC": 0.5,
    "BNB": 600.0,
    "AVAX": 35.0,
    "FTM": 0.5,
    "CRO": 0.1,
    "MNT": 0.8,
    "HYPE": 25.0,
    "XDAI": 1.0,
    "FLUFFEY": 0.0001,  # ~$100k market cap over a 1B supply
    "MEKA": 0.00002,
    "KUMA": 0.000015,
    "SIGMA": 0.00001,
})


def normalize_symbol(raw: str | None) -> str | None:
    """Upper-case and strip a token symbol.

    :param raw: Symbol as supplied by a caller, possibly None.
    :returns: Normalized symbol, or None if nothing usable was given.
    """
    if raw is None:
        return None
    symbol = str(raw).strip().upper()
    return symbol or None


def parse_chain_id(raw: ChainId | None) -> ChainId | None:
    """Parse a chain identifier from a query string or JSON value.

    :param raw: Integer chain ID, numeric string, or the Solana marker.
    :returns: ``int`` chain ID, ``"solana"``, or None when unparseable.
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if text.lower() == SOLANA_CHAIN:
        return SOLANA_CHAIN
    try:
        return int(text)
    except ValueError:
        return None


def resolve_token(
    chain_id: ChainId | None = None,
    token: str | None = None,
    default: str = DEFAULT_TOKEN,
) -> str:
    """Resolve the token symbol for one side of a bridge.

    An explicit token wins over the chain lookup; an unmapped chain falls
    back to ``default``.
    """
    symbol = normalize_symbol(token)
    if symbol:
        return symbol
    chain = parse_chain_id(chain_id)
    if chain is None:
        return default
    return CHAIN_TOKENS.get(chain, default)


def resolve_pair(
    chain_id: ChainId | None,
    input_token: str | None,
    output_token: str | None,
) -> tuple[str, str]:
    """Resolve the (source, destination) symbols of a quote request."""
    return resolve_token(chain_id, input_token), resolve_token(token=output_token)
