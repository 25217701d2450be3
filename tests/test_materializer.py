"""Tests for schedule materialization."""

import asyncio
from datetime import timedelta

from newsletter_scheduler.models.schedule import DeliveryStatus
from newsletter_scheduler.services.collection import CollectionPlanner
from newsletter_scheduler.services.materializer import ScheduleMaterializer

from conftest import NOW, OWNER_ID, make_section, seed_owner


async def test_creates_pending_delivery_for_future_anchor(database):
    anchor = NOW + timedelta(days=2)
    await seed_owner(database, [make_section("s1", "AI", "weekly", anchor)])

    report = await ScheduleMaterializer(database).materialize_owner(OWNER_ID, NOW)

    assert report.created == 1
    deliveries = await database.list_deliveries(OWNER_ID)
    assert len(deliveries) == 1
    delivery = deliveries[0]
    assert delivery.status == DeliveryStatus.PENDING
    assert delivery.send_date == anchor
    assert delivery.next_date == anchor + timedelta(days=7)
    assert delivery.section_refs == ["s1"]
    assert delivery.schedule_section_id == "s1"
    assert delivery.rendered_content is None
    assert report.created_ids == [delivery.id]


async def test_materialize_is_idempotent(database):
    await seed_owner(database, [make_section()])
    materializer = ScheduleMaterializer(database)

    first = await materializer.materialize_owner(OWNER_ID, NOW)
    second = await materializer.materialize_owner(OWNER_ID, NOW)

    assert first.created == 1
    assert second.created == 0
    assert second.existing == 1
    assert len(await database.list_deliveries(OWNER_ID)) == 1


async def test_concurrent_materialize_converges_on_one_row(database):
    await seed_owner(database, [make_section()])
    materializer = ScheduleMaterializer(database)

    reports = await asyncio.gather(*[
        materializer.materialize_owner(OWNER_ID, NOW) for _ in range(4)
    ])

    assert sum(report.created for report in reports) == 1
    assert len(await database.list_deliveries(OWNER_ID)) == 1


async def test_past_anchor_is_skipped(database):
    await seed_owner(database, [
        make_section("past", anchor=NOW - timedelta(hours=1)),
        make_section("now", anchor=NOW),
    ])

    report = await ScheduleMaterializer(database).materialize_owner(OWNER_ID, NOW)

    assert report.created == 0
    assert report.skipped_past == 2
    assert await database.list_deliveries(OWNER_ID) == []


async def test_misconfigured_sections_are_skipped_and_batch_continues(database):
    await seed_owner(database, [
        make_section("blank-topic", topic="  "),
        make_section("no-anchor", anchor=None),
        make_section("no-frequency", frequency=""),
        make_section("good", topic="Climate"),
    ])

    report = await ScheduleMaterializer(database).materialize_owner(OWNER_ID, NOW)

    assert report.skipped_invalid == 3
    assert report.created == 1
    deliveries = await database.list_deliveries(OWNER_ID)
    assert [d.schedule_section_id for d in deliveries] == ["good"]


async def test_unknown_frequency_advances_weekly(database):
    anchor = NOW + timedelta(days=1)
    await seed_owner(database, [make_section(frequency="fortnightly", anchor=anchor)])

    report = await ScheduleMaterializer(database).materialize_owner(OWNER_ID, NOW)

    assert report.created == 1
    delivery = (await database.list_deliveries(OWNER_ID))[0]
    assert delivery.next_date == anchor + timedelta(days=7)


async def test_two_sections_same_owner_get_separate_deliveries(database):
    """Scenario D: sections are scheduled independently."""
    daily_anchor = NOW + timedelta(hours=6)
    monthly_anchor = NOW + timedelta(days=3)
    await seed_owner(database, [
        make_section("daily", "AI", "daily", daily_anchor),
        make_section("monthly", "Space", "monthly", monthly_anchor),
    ])

    report = await ScheduleMaterializer(database).materialize_owner(OWNER_ID, NOW)

    assert report.created == 2
    by_section = {d.schedule_section_id: d for d in await database.list_deliveries(OWNER_ID)}
    assert by_section["daily"].next_date == daily_anchor + timedelta(days=1)
    assert by_section["monthly"].next_date.month == monthly_anchor.month + 1
    assert by_section["daily"].section_refs == ["daily"]
    assert by_section["monthly"].section_refs == ["monthly"]


async def test_materialize_all_covers_every_owner(database):
    await seed_owner(database, [make_section("a")], owner_id="owner-a", email="a@example.com")
    await seed_owner(database, [make_section("b")], owner_id="owner-b", email="b@example.com")

    report = await ScheduleMaterializer(database).materialize_all(NOW)

    assert report.created == 2
    assert len(await database.list_deliveries("owner-a")) == 1
    assert len(await database.list_deliveries("owner-b")) == 1


async def test_creation_plans_collection_jobs(database):
    anchor = NOW + timedelta(days=3)
    await seed_owner(database, [make_section("s1", "AI", anchor=anchor)])
    planner = CollectionPlanner(database, interval_hours=24, max_items_per_topic=3)

    await ScheduleMaterializer(database, planner).materialize_owner(OWNER_ID, NOW)
    await ScheduleMaterializer(database, planner).materialize_owner(OWNER_ID, NOW)

    jobs = await database.list_collection_jobs(OWNER_ID)
    assert [job.scheduled_time for job in jobs] == [
        NOW, NOW + timedelta(days=1), NOW + timedelta(days=2)
    ]
    assert all(job.topics == ["AI"] for job in jobs)
    assert all(job.next_delivery_date == anchor for job in jobs)
    assert all(job.max_items_per_topic == 3 for job in jobs)
