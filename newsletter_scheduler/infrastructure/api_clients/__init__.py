"""API clients for external services."""

from .base import APIClientError, BaseAPIClient, CircuitBreaker, CircuitBreakerError
from .collector_client import HttpContentCollector
from .resend_client import DryRunTransport, ResendClient

__all__ = [
    "APIClientError",
    "BaseAPIClient",
    "CircuitBreaker",
    "CircuitBreakerError",
    "HttpContentCollector",
    "DryRunTransport",
    "ResendClient",
]
