"""Base feed reader interface and shared HTTP client management.

A feed reader returns the latest round of a single feed as raw integer data.
Readers never judge staleness; that is the oracle's job. HTTP-based readers
share one httpx.AsyncClient to avoid connection overhead.

.. code-block:: python

    @register_reader
    class MyReader(BaseFeedReader):
        name = "myreader"

        async def latest_round(self, feed_id: str) -> RoundData:
            response = await self._get(f"https://api.example.com/feeds/{feed_id}")
            body = response.json()
            return RoundData(body["answer"], body["decimals"], body["ts"], body["round"])
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx

logger = logging.getLogger(__name__)


class FeedReaderError(Exception):
    """Base exception for feed reader errors."""

    pass


class FeedReaderHTTPError(FeedReaderError):
    """Raised when an HTTP request to a feed provider fails.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


@dataclass(frozen=True)
class RoundData:
    """Latest round of a feed.

    :ivar answer: Price scaled by ``10 ** decimals``.
    :ivar decimals: Number of decimals in ``answer``.
    :ivar updated_at: Unix timestamp of the last update.
    :ivar round_id: Provider round identifier.
    """

    answer: int
    decimals: int
    updated_at: int
    round_id: int


class BaseFeedReader(ABC):
    """Abstract base class for feed readers.

    Subclasses must implement:
        - name: Class variable identifying the reader (e.g., "chainlink")
        - latest_round(): Async method returning the latest RoundData

    :cvar name: Unique identifier for this reader.
    :cvar DEFAULT_TIMEOUT: Default request timeout in seconds.
    :ivar timeout: Request timeout in seconds.
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""

    DEFAULT_TIMEOUT = 10.0

    def __init__(self, timeout: float | None = None):
        """Initialize the reader.

        :param timeout: Request timeout in seconds (default: 10).
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if BaseFeedReader._shared_client is None or BaseFeedReader._shared_client.is_closed:
            BaseFeedReader._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return BaseFeedReader._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        client = BaseFeedReader._shared_client
        if client is not None and not client.is_closed:
            await client.aclose()
        BaseFeedReader._shared_client = None

    @abstractmethod
    async def latest_round(self, feed_id: str) -> RoundData:
        """Read the latest round of a feed.

        :param feed_id: Feed address or provider product id.
        :returns: Latest RoundData.
        :raises FeedReaderError: If the feed cannot be read.
        """
        pass

    async def close(self) -> None:
        """Release reader resources. Override if the reader holds connections."""
        pass

    async def _get(
        self,
        url: str,
        *,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request using the shared client.

        :param url: Request URL.
        :param params: Optional query parameters.
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises FeedReaderHTTPError: On non-2xx response.
        :raises FeedReaderError: On network/timeout errors.
        """
        client = self.get_shared_client()
        try:
            response = await client.get(
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
                raise FeedReaderHTTPError(response.status_code, response.text[:200])
            return response
        except httpx.TimeoutException as e:
            raise FeedReaderError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise FeedReaderError(f"Request failed: {e}") from e


# Registry of available readers (populated by subclass imports)
READER_REGISTRY: dict[str, type[BaseFeedReader]] = {}


def register_reader(cls: type[BaseFeedReader]) -> type[BaseFeedReader]:
    """Decorator to register a reader class in the global registry.

    :param cls: Reader class to register.
    :returns: The registered class (unchanged).
    :raises ValueError: If reader has no name defined.
    """
    if not cls.name:
        raise ValueError(f"Reader {cls.__name__} must define a 'name' class variable")
    READER_REGISTRY[cls.name] = cls
    return cls


def get_reader(name: str, **kwargs: Any) -> BaseFeedReader:
    """Get a reader instance by name.

    :param name: Reader name (e.g., "chainlink", "coinbase").
    :param kwargs: Reader-specific constructor arguments.
    :returns: Reader instance.
    :raises ValueError: If reader name is unknown.
    """
    if name not in READER_REGISTRY:
        available = ", ".join(sorted(READER_REGISTRY.keys()))
        raise ValueError(f"Unknown reader '{name}'. Available: {available}")
    return READER_REGISTRY[name](**kwargs)


def get_available_readers() -> list[str]:
    """Get list of available reader names.

    :returns: Sorted list of registered reader names.
    """
    return sorted(READER_REGISTRY.keys())
