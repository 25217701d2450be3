"""Tests for the HTTP trigger endpoints."""

from datetime import timedelta

import httpx
import pytest

from newsletter_scheduler.api import create_app
from newsletter_scheduler.models.schedule import DeliveryStatus, RenderedContent, ScheduledDelivery
from newsletter_scheduler.services.engine import ScheduleEngine
from newsletter_scheduler.services.frequency import utcnow

from conftest import OWNER_ID, FakeTransport, make_items, make_section, seed_owner

HEADERS = {"x-api-key": "test-secret"}


@pytest.fixture
async def client(engine):
    app = create_app(engine=engine)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


async def _due_delivery(database, with_content=True) -> ScheduledDelivery:
    send_date = utcnow() - timedelta(minutes=1)
    delivery = ScheduledDelivery(
        owner_id=OWNER_ID,
        schedule_section_id="s1",
        send_date=send_date,
        next_date=send_date + timedelta(days=7),
        section_refs=["s1"],
        rendered_content=RenderedContent(
            subject="Your AI Newsletter", introduction="", items=[], html="<p>Hello</p>"
        ) if with_content else None,
    )
    await database.insert_delivery(delivery)
    return delivery


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.parametrize("path", [
    "/api/scheduler/run",
    "/api/populate-content",
    "/api/emails/send",
    "/api/emails/process-queue",
    "/api/content/process-collections",
])
async def test_wrong_secret_is_rejected(client, path):
    response = await client.post(path, headers={"x-api-key": "wrong"}, json={})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}

    response = await client.post(path, json={})
    assert response.status_code == 401


async def test_empty_secret_rejects_everything(config, database, transport):
    config.api_shared_secret = ""
    engine = ScheduleEngine.from_config(config, transport=transport, database=database)
    app = create_app(engine=engine)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    ) as http_client:
        response = await http_client.post("/api/scheduler/run", headers={"x-api-key": ""})
    assert response.status_code == 401


async def test_scheduler_run_materializes(client, database):
    await seed_owner(database, [make_section("s1", anchor=utcnow() + timedelta(days=1))])

    response = await client.post("/api/scheduler/run", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["created"] == 1
    assert len(body["createdIds"]) == 1


async def test_populate_content(client, database):
    await seed_owner(database, [make_section("s1", "AI", anchor=utcnow() + timedelta(days=1))])
    await database.upsert_content_items(make_items("AI", 2))
    await client.post("/api/scheduler/run", headers=HEADERS)

    response = await client.post("/api/populate-content", headers=HEADERS)

    assert response.status_code == 200
    assert len(response.json()["populated"]) == 1


async def test_send_email(client, database, transport):
    await seed_owner(database, [make_section("s1")])
    delivery = await _due_delivery(database)

    response = await client.post("/api/emails/send", headers=HEADERS, json={"deliveryId": delivery.id})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["messageId"] == "msg-1"
    assert body["nextDeliveryId"]
    assert len(transport.sent) == 1


async def test_send_unknown_delivery_is_404(client):
    response = await client.post("/api/emails/send", headers=HEADERS, json={"deliveryId": "missing"})
    assert response.status_code == 404
    assert "error" in response.json()


async def test_send_already_sent_is_404(client, database):
    await seed_owner(database, [make_section("s1")])
    delivery = await _due_delivery(database)
    await database.update_delivery_status(delivery.id, DeliveryStatus.SENT, provider_message_id="m")

    response = await client.post("/api/emails/send", headers=HEADERS, json={"deliveryId": delivery.id})

    assert response.status_code == 404


async def test_send_without_id_is_400(client):
    response = await client.post("/api/emails/send", headers=HEADERS, json={})
    assert response.status_code == 400
    assert response.json() == {"error": "deliveryId is required"}


async def test_transport_failure_is_500(config, database):
    engine = ScheduleEngine.from_config(
        config, transport=FakeTransport(fail_reason="domain not verified"), database=database
    )
    await seed_owner(database, [make_section("s1")])
    delivery = await _due_delivery(database)

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=create_app(engine=engine)), base_url="http://testserver"
    ) as http_client:
        response = await http_client.post(
            "/api/emails/send", headers=HEADERS, json={"deliveryId": delivery.id}
        )

    assert response.status_code == 500
    assert response.json() == {"error": "domain not verified"}
    assert (await database.get_delivery(delivery.id)).status == DeliveryStatus.FAILED


async def test_collaborator_exception_is_500(client, database, monkeypatch):
    async def broken(now):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(database, "list_due_deliveries", broken)

    response = await client.post("/api/emails/process-queue", headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"error": "database unavailable"}


async def test_process_queue(client, database, transport):
    await seed_owner(database, [make_section("s1")])
    delivery = await _due_delivery(database)

    response = await client.post("/api/emails/process-queue", headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 1
    assert body["results"][0]["delivery_id"] == delivery.id
    assert body["results"][0]["outcome"] == "sent"


async def test_process_collections_without_collector(client):
    response = await client.post("/api/content/process-collections", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["completed"] == 0
