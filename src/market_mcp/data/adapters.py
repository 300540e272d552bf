"""Adapter base class: cache, circuit breaker and timeout around one upstream."""

import asyncio
import logging
import os
from time import perf_counter
from typing import Any

from market_mcp.data.cache import TTLCache
from market_mcp.data.circuit_breaker import CircuitBreaker
from market_mcp.models import FetchResult

logger = logging.getLogger(__name__)

# Timeouts (seconds)
ADAPTER_TIMEOUT = float(os.environ.get("ADAPTER_TIMEOUT", "5.0"))
HTTP_TIMEOUT = float(os.environ.get("HTTP_TIMEOUT", "4.0"))

# Cache TTLs (seconds)
CACHE_TTL_PRICE = float(os.environ.get("CACHE_TTL_PRICE", "30"))
CACHE_TTL_NEWS = float(os.environ.get("CACHE_TTL_NEWS", "120"))
CACHE_TTL_CALENDAR = float(os.environ.get("CACHE_TTL_CALENDAR", "300"))


class ConfigurationError(Exception):
    """Raised for deployment defects (bad wiring or settings), never for data conditions."""

    pass


class ServerShuttingDownError(Exception):
    """Raised when server is shutting down."""

    pass


class DataAdapter:
    """
    One upstream data source.

    Subclasses implement `fetch(**params)` returning data or None ("no data").
    `execute` wraps it with a TTL cache, a circuit breaker and a timeout and
    always returns a FetchResult instead of raising.
    """

    name: str = "adapter"
    cache_ttl: float = 60.0

    def __init__(
        self,
        name: str | None = None,
        timeout: float = ADAPTER_TIMEOUT,
        cache_ttl: float | None = None,
        breaker: CircuitBreaker | None = None,
        cache: TTLCache | None = None,
    ):
        if name is not None:
            self.name = name
        if cache_ttl is not None:
            self.cache_ttl = cache_ttl
        if timeout <= 0:
            raise ConfigurationError(f"{self.name}: timeout must be positive, got {timeout}")
        self.timeout = timeout
        self.breaker = breaker or CircuitBreaker(self.name)
        self.cache = cache or TTLCache(self._cache_namespace(), self.cache_ttl)
        self.request_count = 0

    def _cache_namespace(self) -> str:
        return self.name.lower().replace(" ", "_").replace(".", "_")

    def is_configured(self) -> bool:
        """False when the source lacks credentials and should not be called."""
        return True

    def normalize_params(self, **params: Any) -> dict[str, Any]:
        """Canonical params for cache keys. Override to uppercase symbols etc."""
        return params

    def validate_output(self, output: Any) -> bool:
        return output is not None

    def mark_cached(self, value: Any) -> Any:
        """Hook to flag a value as served from cache."""
        return value

    async def fetch(self, **params: Any) -> Any:
        raise NotImplementedError

    async def execute(self, **params: Any) -> FetchResult:
        """Run `fetch` behind cache, breaker and timeout. Never raises."""
        params = self.normalize_params(**params)

        cached = self.cache.get(params)
        if cached is not None:
            return FetchResult(data=self.mark_cached(cached), source=self.name, cached=True)

        if not self.breaker.allow_request():
            return FetchResult(
                data=None,
                source=self.name,
                error="Circuit breaker open",
                circuit_open=True,
            )

        start = perf_counter()
        try:
            result = await asyncio.wait_for(self.fetch(**params), timeout=self.timeout)
        except asyncio.TimeoutError:
            self.breaker.record_failure()
            logger.warning(f"{self.name}: timed out after {self.timeout:.1f}s ({params})")
            return FetchResult(data=None, source=self.name, error="Timeout", timed_out=True)
        except asyncio.CancelledError:
            self.breaker.release()
            raise
        except Exception as e:
            self.breaker.record_failure()
            logger.warning(f"{self.name}: fetch failed ({type(e).__name__}: {e})")
            return FetchResult(data=None, source=self.name, error=str(e) or type(e).__name__)

        if not self.validate_output(result):
            self.breaker.record_failure()
            return FetchResult(data=None, source=self.name, error="Invalid response")

        self.breaker.record_success()
        self.cache.set(params, result)
        self.request_count += 1
        logger.debug(f"{self.name}: fetched in {(perf_counter() - start) * 1000:.0f}ms")
        return FetchResult(data=result, source=self.name)

    def get_status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "configured": self.is_configured(),
            "circuit_breaker": self.breaker.get_status(),
            "request_count": self.request_count,
        }

    def close(self) -> None:
        self.cache.close()
