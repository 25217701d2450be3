"""Base HTTP client with common patterns for external services."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp
import structlog

logger = structlog.get_logger(__name__)


class APIClientError(Exception):
    """Base exception for HTTP client errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class CircuitBreakerError(APIClientError):
    """Raised when circuit breaker is open."""
    pass


@dataclass
class CircuitBreaker:
    """Simple circuit breaker implementation for client reliability."""

    failure_threshold: int = 5
    timeout: float = 60.0
    half_open_max_calls: int = 3

    def __post_init__(self):
        self.failure_count = 0
        self.last_failure_time = 0.0
        self.state = "closed"  # closed, open, half_open
        self.half_open_calls = 0

    def can_execute(self) -> bool:
        """Check if execution is allowed."""
        if self.state == "closed":
            return True

        if self.state == "open":
            if time.monotonic() - self.last_failure_time >= self.timeout:
                self.state = "half_open"
                self.half_open_calls = 0
                return True
            return False

        if self.state == "half_open":
            if self.half_open_calls < self.half_open_max_calls:
                self.half_open_calls += 1
                return True
            return False

        return False

    def record_success(self) -> None:
        """Record successful execution."""
        self.state = "closed"
        self.failure_count = 0
        self.half_open_calls = 0

    def record_failure(self) -> None:
        """Record failed execution."""
        self.failure_count += 1
        self.last_failure_time = time.monotonic()

        if self.state == "half_open":
            self.state = "open"
        elif self.state == "closed" and self.failure_count >= self.failure_threshold:
            self.state = "open"


class BaseAPIClient:
    """JSON-over-HTTP client guarded by a circuit breaker."""

    service_name = "api"

    def __init__(self, base_url: str, headers: Dict[str, str], timeout: float = 30.0):
        self.base_url = base_url
        self.headers = {
            "Content-Type": "application/json",
            "User-Agent": "Newsletter-Scheduler/1.0",
            **headers,
        }
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.circuit_breaker = CircuitBreaker()
        self.logger = logger.bind(service=self.service_name)

    async def _post_json(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a JSON payload and return the decoded JSON response.

        Raises APIClientError for non-2xx responses and open circuits.
        Timeouts propagate as ``asyncio.TimeoutError`` so callers can tell
        "no answer" apart from "rejected".
        """
        if not self.circuit_breaker.can_execute():
            raise CircuitBreakerError(
                f"Circuit breaker open for {self.service_name}",
                error_code="CIRCUIT_OPEN",
            )

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, headers=self.headers, json=payload) as response:
                    if 200 <= response.status < 300:
                        self.circuit_breaker.record_success()
                        return await response.json(content_type=None) or {}

                    error_text = await response.text()
                    # Client errors are the caller's fault, not the service's
                    if response.status >= 500 or response.status == 429:
                        self.circuit_breaker.record_failure()
                    raise APIClientError(
                        f"{self.service_name} error {response.status}: {error_text}",
                        status_code=response.status,
                        error_code="HTTP_ERROR",
                    )
        except asyncio.TimeoutError:
            self.circuit_breaker.record_failure()
            raise
        except aiohttp.ClientError as e:
            self.circuit_breaker.record_failure()
            raise APIClientError(
                f"{self.service_name} request failed: {e}",
                error_code="CONNECTION_FAILED",
            ) from e
