"""Tests for the persistence layer."""

import asyncio
from datetime import timedelta

from newsletter_scheduler.models.content import CollectionJob, CollectionStatus, ContentItem
from newsletter_scheduler.models.schedule import (
    DeliveryStatus,
    RenderedContent,
    ScheduledDelivery,
)

from conftest import NOW, OWNER_ID, make_items, make_section, seed_owner


def _delivery(send_date=NOW + timedelta(days=1), section_id="s1") -> ScheduledDelivery:
    return ScheduledDelivery(
        owner_id=OWNER_ID,
        schedule_section_id=section_id,
        send_date=send_date,
        next_date=send_date + timedelta(days=7),
        section_refs=[section_id],
    )


async def test_insert_delivery_reports_existing_slot(database):
    first = _delivery()
    duplicate = _delivery()

    first_id, created = await database.insert_delivery(first)
    duplicate_id, duplicate_created = await database.insert_delivery(duplicate)

    assert created is True
    assert duplicate_created is False
    assert duplicate_id == first_id
    assert len(await database.list_deliveries(OWNER_ID)) == 1


async def test_timestamps_round_trip_as_aware_utc(database):
    delivery = _delivery()
    await database.insert_delivery(delivery)

    stored = await database.get_delivery(delivery.id)

    assert stored.send_date == delivery.send_date
    assert stored.send_date.tzinfo is not None
    assert stored.created_at.tzinfo is not None


async def test_get_pending_delivery_ignores_terminal_rows(database):
    delivery = _delivery()
    await database.insert_delivery(delivery)
    assert (await database.get_pending_delivery(OWNER_ID, "s1", delivery.send_date)).id == delivery.id

    await database.update_delivery_status(delivery.id, DeliveryStatus.SENT, provider_message_id="m1")

    assert await database.get_pending_delivery(OWNER_ID, "s1", delivery.send_date) is None


async def test_save_rendered_content_only_once(database):
    delivery = _delivery()
    await database.insert_delivery(delivery)
    first = RenderedContent(subject="First", introduction="", items=[], html="<p>1</p>")
    second = RenderedContent(subject="Second", introduction="", items=[], html="<p>2</p>")

    assert await database.save_rendered_content(delivery.id, first) is True
    assert await database.save_rendered_content(delivery.id, second) is False
    assert (await database.get_delivery(delivery.id)).rendered_content.subject == "First"
    assert await database.list_pending_without_content() == []


async def test_list_due_deliveries(database):
    due = _delivery(send_date=NOW - timedelta(minutes=1), section_id="a")
    exact = _delivery(send_date=NOW, section_id="b")
    later = _delivery(send_date=NOW + timedelta(minutes=1), section_id="c")
    for delivery in (due, exact, later):
        await database.insert_delivery(delivery)

    assert [d.id for d in await database.list_due_deliveries(NOW)] == [due.id, exact.id]


async def test_spawn_next_delivery_is_idempotent(database):
    await seed_owner(database, [make_section("s1", anchor=NOW)])
    following = _delivery(send_date=NOW + timedelta(days=7))

    first = await database.spawn_next_delivery(following)
    second = await database.spawn_next_delivery(_delivery(send_date=NOW + timedelta(days=7)))

    assert first == (following.id, True)
    assert second == (following.id, False)
    section = await database.get_section(OWNER_ID, "s1")
    assert section.anchor_send_time == following.send_date
    assert section.next_anchor_time == following.next_date


async def test_replace_sections_keeps_editor_order(database):
    await seed_owner(database, [make_section("b", "Space"), make_section("a", "AI")])
    assert [s.id for s in await database.get_sections(OWNER_ID)] == ["b", "a"]

    await database.replace_sections(OWNER_ID, [make_section("c", "Climate")])
    assert [s.topic for s in await database.get_sections(OWNER_ID)] == ["Climate"]
    assert await database.list_owner_ids() == [OWNER_ID]


async def test_update_section_anchors(database):
    await seed_owner(database, [make_section("s1")])
    send = NOW + timedelta(days=10)

    assert await database.update_section_anchors(OWNER_ID, "s1", send, send + timedelta(days=7))
    assert not await database.update_section_anchors(OWNER_ID, "gone", send, send)
    assert (await database.get_section(OWNER_ID, "s1")).anchor_send_time == send


async def test_query_recent_orders_newest_first(database):
    await database.upsert_content_items(make_items("AI", 4) + make_items("Space", 2))

    items = await database.query_recent("AI", 3)

    assert [item.title for item in items] == ["AI story 0", "AI story 1", "AI story 2"]
    assert all(item.topic == "AI" for item in items)


async def test_upsert_content_deduplicates_by_url_and_keeps_summary(database):
    item = ContentItem(topic="AI", title="Old", url="https://example.com/a", summary="Summary")
    [first_id] = await database.upsert_content_items([item])

    refreshed = ContentItem(topic="AI", title="New", url="https://example.com/a")
    [second_id] = await database.upsert_content_items([refreshed])

    assert second_id == first_id
    [stored] = await database.query_recent("AI", 5)
    assert stored.title == "New"
    assert stored.summary == "Summary"


async def test_concurrent_upserts_of_one_url_converge(database):
    items = [
        ContentItem(topic="AI", title=f"Take {n}", url="https://example.com/same")
        for n in range(4)
    ]

    results = await asyncio.gather(*[database.upsert_content_items([item]) for item in items])

    assert len({ids[0] for ids in results}) == 1
    assert len(await database.query_recent("AI", 10)) == 1


async def test_claim_delivery_is_exclusive_until_released(database):
    delivery = _delivery(send_date=NOW)
    await database.insert_delivery(delivery)

    assert await database.claim_delivery(delivery.id, lease_seconds=600)
    assert not await database.claim_delivery(delivery.id, lease_seconds=600)
    assert (await database.get_delivery(delivery.id)).claimed_at is not None

    assert await database.release_claim(delivery.id)
    assert await database.claim_delivery(delivery.id, lease_seconds=600)


async def test_terminal_delivery_cannot_be_claimed(database):
    delivery = _delivery(send_date=NOW)
    await database.insert_delivery(delivery)
    await database.update_delivery_status(delivery.id, DeliveryStatus.SENT, provider_message_id="m")

    assert not await database.claim_delivery(delivery.id, lease_seconds=0)


async def test_collection_jobs_due_and_finished(database):
    due = CollectionJob(
        owner_id=OWNER_ID, topics=["AI"],
        scheduled_time=NOW - timedelta(hours=1), next_delivery_date=NOW + timedelta(days=1),
    )
    later = CollectionJob(
        owner_id=OWNER_ID, topics=["AI"],
        scheduled_time=NOW + timedelta(hours=1), next_delivery_date=NOW + timedelta(days=1),
    )
    await database.add_collection_jobs([due, later])

    assert [job.id for job in await database.get_due_collection_jobs(NOW)] == [due.id]

    await database.finish_collection_job(due.id, CollectionStatus.COMPLETED)

    assert await database.get_due_collection_jobs(NOW) == []
    finished = {job.id: job for job in await database.list_collection_jobs(OWNER_ID)}
    assert finished[due.id].status == CollectionStatus.COMPLETED
    assert finished[due.id].processed_at is not None


async def test_users(database):
    user = await database.create_user(email="someone@example.com", name="Someone", user_id="u1")

    assert user.user_id == "u1"
    assert (await database.get_user("u1")).email == "someone@example.com"
    assert await database.get_user("nobody") is None
