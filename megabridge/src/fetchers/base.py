"""Base fetcher interface and shared HTTP client management.

Every price source adapter inherits from BaseFetcher and implements
``_fetch_prices()``. Callers only ever use :meth:`BaseFetcher.fetch_prices`,
which enforces the adapter's own timeout and turns every failure into an
empty result, so one bad provider can never break a refresh.

A shared httpx.AsyncClient is used across all fetchers to avoid connection
overhead. Tests pass their own client (e.g. one built on httpx.MockTransport).

.. code-block:: python

    @register_fetcher
    class MyFetcher(BaseFetcher):
        name = "myfetcher"
        SYMBOLS = frozenset({"ETH"})

        def supports_symbol(self, symbol: str) -> bool:
            return symbol in self.SYMBOLS

        async def _fetch_prices(self, symbols: set[str]) -> dict[str, float]:
            response = await self._get("https://api.example.com/eth")
            return {"ETH": float(response.json()["usd"])}
"""

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import ClassVar, Iterable

import httpx

logger = logging.getLogger(__name__)


class FetcherError(Exception):
    """Base exception for fetcher errors."""

    pass


class FetcherHTTPError(FetcherError):
    """Raised when HTTP request fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


def is_valid_price(value: object) -> bool:
    """Check that a value is a usable USD price (finite and > 0)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def parse_price(value: object) -> float | None:
    """Coerce a payload value (number or numeric string) into a valid price.

    :returns: The price as float, or None if missing, malformed, NaN, zero
        or negative.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    return price if is_valid_price(price) else None


class BaseFetcher(ABC):
    """Abstract base class for price source adapters.

    Subclasses must implement:
        - name: Class variable identifying the source (e.g., "coingecko")
        - supports_symbol(): Which symbols the source can price
        - _fetch_prices(): Async method returning {symbol: usd_price}; may raise

    :cvar name: Unique identifier for this fetcher.
    :cvar DEFAULT_TIMEOUT: Default timeout for one fetch, in seconds.
    :cvar requires_api_key: Whether the source is disabled without a key.
    :ivar api_key: Optional API key for authenticated endpoints.
    :ivar timeout: Fetch timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    # Fetcher identification
    name: ClassVar[str] = ""

    DEFAULT_TIMEOUT = 5.0

    requires_api_key: ClassVar[bool] = False

    def __init__(
        self,
        api_key: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the fetcher.

        :param api_key: Optional API key for authenticated endpoints.
        :param timeout: Fetch timeout in seconds (default: DEFAULT_TIMEOUT).
        :param client: Optional HTTP client; the shared client is used if None.
        """
        self.api_key = api_key
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._client = client

    @property
    def has_api_key(self) -> bool:
        """Check if this fetcher has an API key configured."""
        return self.api_key is not None and len(self.api_key) > 0

    @property
    def is_configured(self) -> bool:
        """Check if this fetcher can run (has a key if one is required)."""
        return self.has_api_key or not self.requires_api_key

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        The client is shared across all fetcher instances to reuse connections.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFetcher._shared_client is None or BaseFetcher._shared_client.is_closed:
            BaseFetcher._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(10.0, connect=5.0),
                limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
                follow_redirects=True,
                headers={"Accept": "application/json", "User-Agent": "MegaBridge/1.0"},
            )
        return BaseFetcher._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFetcher._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFetcher._shared_client = None

    @property
    def client(self) -> httpx.AsyncClient:
        """HTTP client used by this fetcher."""
        return self._client if self._client is not None else self.get_shared_client()

    @abstractmethod
    def supports_symbol(self, symbol: str) -> bool:
        """Check if this fetcher can price the given (upper-case) symbol."""
        pass

    @abstractmethod
    async def _fetch_prices(self, symbols: set[str]) -> dict[str, float]:
        """Fetch USD prices for the given supported symbols.

        May raise FetcherError or fail while parsing; fetch_prices() handles it.

        :param symbols: Non-empty set of upper-case symbols this fetcher supports.
        :returns: Partial mapping of symbol to USD price.
        """
        pass

    async def fetch_prices(self, symbols: Iterable[str]) -> dict[str, float]:
        """Fetch USD prices for whichever requested symbols this source supports.

        Never raises: timeouts, HTTP errors and malformed payloads are logged
        and yield an empty mapping.

        :param symbols: Requested symbols (any case).
        :returns: Partial mapping of symbol to a finite, positive USD price.
        """
        wanted = {s.upper() for s in symbols if self.supports_symbol(s.upper())}
        if not wanted:
            return {}

        if not self.is_configured:
            logger.debug(f"[{self.name}] Not configured, skipping")
            return {}

        try:
            prices = await asyncio.wait_for(
                self._fetch_prices(wanted),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[{self.name}] Timeout after {self.timeout}s")
            return {}
        except FetcherError as e:
            logger.warning(f"[{self.name}] Failed to fetch prices: {e}")
            return {}
        except Exception as e:
            logger.warning(f"[{self.name}] Failed to parse response: {e!r}")
            return {}

        return {
            symbol: price
            for symbol, price in prices.items()
            if symbol in wanted and is_valid_price(price)
        }

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        try:
            response = await self.client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP GET %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e

    async def _post(
        self,
        url: str,
        *,
        json: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP POST request.

        :param url: Request URL.
        :param json: Optional JSON body.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FetcherHTTPError: On non-2xx response.
        :raises FetcherError: On network/timeout errors.
        """
        try:
            response = await self.client.post(
                url,
                json=json,
                headers=headers,
                timeout=self.timeout,
            )
            if not response.is_success:
                logger.debug(
                    "HTTP POST %s failed with status %s: %s",
                    url,
                    response.status_code,
                    response.text[:200],
                )
                raise FetcherHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FetcherError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FetcherError(f"Request failed: {e}") from e


# Registry of available fetchers (populated by subclass imports)
FETCHER_REGISTRY: dict[str, type[BaseFetcher]] = {}


def register_fetcher(cls: type[BaseFetcher]) -> type[BaseFetcher]:
    """Decorator to register a fetcher class in the global registry.

    :param cls: Fetcher class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If fetcher has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Fetcher {cls.__name__} must define a 'name' class variable")
    FETCHER_REGISTRY[cls.name] = cls
    return cls


def get_fetcher(
    name: str,
    api_key: str | None = None,
    timeout: float | None = None,
    **options,
) -> BaseFetcher:
    """Get a fetcher instance by name.

    :param name: Fetcher name (e.g., "coingecko", "codex").
    :param api_key: Optional API key.
    :param timeout: Optional timeout override in seconds.
    :param options: Extra constructor arguments for the fetcher class.
    :returns: Fetcher instance.
    :raises ValueError: If fetcher name is unknown.
    """
    if name not in FETCHER_REGISTRY:
        available = ", ".join(sorted(FETCHER_REGISTRY.keys()))
        raise ValueError(f"Unknown fetcher '{name}'. Available: {available}")
    return FETCHER_REGISTRY[name](api_key=api_key, timeout=timeout, **options)


def get_available_fetchers() -> list[str]:
    """Get list of available fetcher names.

    :returns: Sorted list of registered fetcher names.
    """
    return sorted(FETCHER_REGISTRY.keys())
