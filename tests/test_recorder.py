from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime

import pytest
from sqlalchemy import func, select

from onsite_redemption.database import connection
from onsite_redemption.database.models import ImmutableRecordError, ResourceUsageRecord
from onsite_redemption.errors import IneligibleError, InvalidRequestError, NotFoundError
from onsite_redemption.services.recorder import IdempotentRecorder, RecordStatus, recent_records, serialize_record


def count_records(db, option_id):
    return db.execute(
        select(func.count(ResourceUsageRecord.id)).where(ResourceUsageRecord.resource_option_id == option_id)
    ).scalar_one()


def test_second_record_is_duplicate_of_first(db, seeded):
    recorder = IdempotentRecorder(db)
    first = recorder.record(seeded.event_id, "food", seeded.lunch, "reg-1")
    second = recorder.record(seeded.event_id, "food", seeded.lunch, "reg-1")

    assert first.status is RecordStatus.RECORDED
    assert second.status is RecordStatus.DUPLICATE
    assert second.existing_record.id == first.record.id
    assert count_records(db, seeded.lunch) == 1


def test_forced_record_appends(db, seeded):
    recorder = IdempotentRecorder(db)
    first = recorder.record(seeded.event_id, "food", seeded.lunch, "reg-1")
    forced = recorder.record(seeded.event_id, "food", seeded.lunch, "reg-1", force=True, actor_id="desk-2")
    again = recorder.record(seeded.event_id, "food", seeded.lunch, "reg-1", force=True)

    assert forced.status is RecordStatus.RECORDED
    assert len({first.record.id, forced.record.id, again.record.id}) == 3
    records = recorder.records_for("reg-1", seeded.lunch)
    assert [record.forced for record in records].count(False) == 1
    assert [record.forced for record in records].count(True) == 2
    assert forced.record.actor_id == "desk-2"


def test_forced_record_without_prior_record(db, seeded):
    result = IdempotentRecorder(db).record(seeded.event_id, "kits", seeded.kit, "reg-2", force=True)
    assert result.status is RecordStatus.RECORDED
    assert result.record.forced is True
    assert result.record.resource_type == "kitBag"


def test_record_carries_display_fields(db, seeded):
    record = IdempotentRecorder(db).record(seeded.event_id, "food", "0_" + seeded.lunch, "reg-1").record
    payload = serialize_record(record)
    assert payload["registrationCode"] == "REG-001"
    assert payload["firstName"] == "Asha"
    assert payload["categoryName"] == "Delegate"
    assert payload["optionName"] == "Lunch Day 1"
    assert payload["resourceOptionId"] == seeded.lunch
    assert payload["forced"] is False


def test_eligibility_reenforced(db, seeded):
    with pytest.raises(IneligibleError):
        IdempotentRecorder(db).record(seeded.event_id, "food", seeded.dinner, "reg-4")
    assert count_records(db, seeded.dinner) == 0


def test_forced_record_still_requires_eligibility(db, seeded):
    with pytest.raises(IneligibleError):
        IdempotentRecorder(db).record(seeded.event_id, "food", seeded.lunch, "reg-5", force=True)


@pytest.mark.parametrize(
    "resource_type, option_id, error",
    [
        ("food", "opt-missing", NotFoundError),
        ("kitBag", "opt-lunch", InvalidRequestError),
        ("food", "opt-closed", InvalidRequestError),
    ],
)
def test_bad_option(db, seeded, resource_type, option_id, error):
    with pytest.raises(error):
        IdempotentRecorder(db).record(seeded.event_id, resource_type, option_id, "reg-1")


def test_concurrent_identical_scans_record_once(database, seeded):
    workers = 6
    barrier = threading.Barrier(workers)

    def scan():
        session = connection.SessionLocal()
        try:
            barrier.wait()
            result = IdempotentRecorder(session).record(seeded.event_id, "food", seeded.lunch, "reg-2")
            return result.status, (result.record or result.existing_record).id
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(lambda _: scan(), range(workers)))

    statuses = [status for status, _ in results]
    assert statuses.count(RecordStatus.RECORDED) == 1
    assert statuses.count(RecordStatus.DUPLICATE) == workers - 1
    assert len({record_id for _, record_id in results}) == 1

    session = connection.SessionLocal()
    try:
        assert count_records(session, seeded.lunch) == 1
    finally:
        session.close()


def test_records_are_immutable(db, seeded):
    record = IdempotentRecorder(db).record(seeded.event_id, "food", seeded.lunch, "reg-1").record
    record.actor_id = "someone-else"
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()

    record = db.get(ResourceUsageRecord, record.id)
    db.delete(record)
    with pytest.raises(ImmutableRecordError):
        db.flush()
    db.rollback()


def test_recent_records_newest_first(db, seeded):
    ticks = iter([datetime(2026, 3, 9, 12, minute) for minute in range(10)])
    recorder = IdempotentRecorder(db, clock=lambda: next(ticks))
    for reg_id in ("reg-1", "reg-2", "reg-3"):
        recorder.record(seeded.event_id, "food", seeded.lunch, reg_id)
    recorder.record(seeded.event_id, "food", seeded.dinner, "reg-1")

    records = recent_records(db, seeded.event_id, "food", seeded.lunch, limit=2)
    assert [record.registration_code for record in records] == ["REG-003", "REG-002"]
    assert len(recent_records(db, seeded.event_id, "food")) == 4
