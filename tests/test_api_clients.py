"""Tests for the HTTP clients of external services."""

import asyncio

import aiohttp
import pytest
from aiohttp import test_utils, web

from newsletter_scheduler.infrastructure.api_clients import (
    CircuitBreaker,
    DryRunTransport,
    HttpContentCollector,
    ResendClient,
)
from newsletter_scheduler.infrastructure.config import ApplicationConfig
from newsletter_scheduler.infrastructure.error_handling import CollectorError, TransportError


def _config(**overrides) -> ApplicationConfig:
    values = {"resend_api_key": "re_test", "domain": "example.org", "log_to_file": False}
    values.update(overrides)
    return ApplicationConfig(_env_file=None, **values)


async def _serve(handler, path="/send"):
    app = web.Application()
    app.router.add_post(path, handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


class TestCircuitBreaker:
    def test_opens_after_threshold(self):
        breaker = CircuitBreaker(failure_threshold=2, timeout=60)
        breaker.record_failure()
        assert breaker.can_execute()
        breaker.record_failure()
        assert breaker.state == "open"
        assert not breaker.can_execute()

    def test_half_open_after_timeout(self):
        breaker = CircuitBreaker(failure_threshold=1, timeout=0)
        breaker.record_failure()
        assert breaker.can_execute()
        assert breaker.state == "half_open"
        breaker.record_success()
        assert breaker.state == "closed"


class TestResendClient:
    async def test_successful_send(self):
        received = {}

        async def handler(request):
            received["auth"] = request.headers["Authorization"]
            received["body"] = await request.json()
            return web.json_response({"id": "email-123"})

        server = await _serve(handler)
        try:
            client = ResendClient(_config(resend_api_url=str(server.make_url("/send"))))
            result = await client.send("reader@example.com", "Hello", "<p>Hi</p>", text="Hi")
        finally:
            await server.close()

        assert result.success
        assert result.message_id == "email-123"
        assert received["auth"] == "Bearer re_test"
        assert received["body"]["from"] == "Newsletter <newsletter@example.org>"
        assert received["body"]["to"] == ["reader@example.com"]
        assert received["body"]["text"] == "Hi"

    async def test_rejection_is_a_failure_result(self):
        async def handler(request):
            return web.json_response({"message": "domain not verified"}, status=422)

        server = await _serve(handler)
        try:
            client = ResendClient(_config(resend_api_url=str(server.make_url("/send"))))
            result = await client.send("reader@example.com", "Hello", "<p>Hi</p>")
        finally:
            await server.close()

        assert not result.success
        assert "domain not verified" in result.reason
        assert result.metadata["status_code"] == 422
        # Client errors do not count against the service
        assert client.circuit_breaker.failure_count == 0

    async def test_timeout_propagates(self):
        async def handler(request):
            await asyncio.sleep(0.5)
            return web.json_response({"id": "late"})

        server = await _serve(handler)
        try:
            client = ResendClient(_config(
                resend_api_url=str(server.make_url("/send")), request_timeout=1
            ))
            client.timeout = aiohttp.ClientTimeout(total=0.05)
            with pytest.raises(asyncio.TimeoutError):
                await client.send("reader@example.com", "Hello", "<p>Hi</p>")
        finally:
            await server.close()

    async def test_missing_api_key_raises_transport_error(self):
        client = ResendClient(_config(resend_api_key=""))

        with pytest.raises(TransportError) as exc_info:
            await client.send("reader@example.com", "Hello", "<p>Hi</p>")

        assert exc_info.value.error_code == "TRANSPORT_NOT_CONFIGURED"

    def test_validate_email_address(self):
        client = ResendClient(_config())
        assert client.validate_email_address("reader@example.com")
        assert not client.validate_email_address("not-an-email")


class TestHttpContentCollector:
    async def test_collect_returns_ids(self):
        async def handler(request):
            body = await request.json()
            assert body == {"topic": "AI", "max_items": 3}
            return web.json_response({"content_ids": ["a", "b"]})

        server = await _serve(handler, "/collect")
        try:
            collector = HttpContentCollector(_config(
                collector_url=str(server.make_url("/collect")),
                max_items_per_collection_topic=3,
            ))
            assert await collector.collect("AI") == ["a", "b"]
        finally:
            await server.close()

    async def test_server_error_raises_collector_error(self):
        async def handler(request):
            return web.Response(status=503, text="busy")

        server = await _serve(handler, "/collect")
        try:
            collector = HttpContentCollector(_config(collector_url=str(server.make_url("/collect"))))
            with pytest.raises(CollectorError) as exc_info:
                await collector.collect("AI")
        finally:
            await server.close()

        assert exc_info.value.details["status_code"] == 503
        assert collector.circuit_breaker.failure_count == 1


async def test_dry_run_transport_records_sends():
    transport = DryRunTransport()

    result = await transport.send("reader@example.com", "Hello", "<p>Hi</p>", headers={"X": "1"})

    assert result.success
    assert result.message_id.startswith("dry-run-")
    assert transport.sent[0]["to"] == "reader@example.com"
