import sqlite3
from datetime import date
from unittest.mock import patch

import pytest

from soru_takip.db import get_connection
from soru_takip.exceptions import StoreError
from soru_takip.models import DailyRecord, SubjectCounts
from soru_takip.store import SqliteProgressStore, merge_subjects, record_key

D = date(2024, 5, 10)


def make_record(on_date, user_id="u1", **subjects):
    counts = {name: SubjectCounts(*values) for name, values in subjects.items()}
    return DailyRecord(
        date=on_date, subjects=counts, total=sum(c.total for c in counts.values()),
        total_target=60, user_id=user_id,
    )


def test_record_key():
    assert record_key("u1", D) == "u1_2024-05-10"


def test_merge_subjects_keeps_absent_entries():
    merged = merge_subjects(
        {"A": {"correct": 1, "total": 1}, "B": {"correct": 4, "total": 4}},
        {"A": {"correct": 2, "total": 2}},
    )
    assert merged == {"A": {"correct": 2, "total": 2}, "B": {"correct": 4, "total": 4}}


@pytest.mark.asyncio
async def test_get_record_missing(tmp_db):
    store = SqliteProgressStore(tmp_db)
    assert await store.get_record("u1", D) is None


@pytest.mark.asyncio
async def test_upsert_same_date_keeps_one_row(tmp_db):
    store = SqliteProgressStore(tmp_db)
    await store.upsert_record("u1", D, make_record(D, Matematik=(1, 0, 0)))
    await store.upsert_record("u1", D, make_record(D, Matematik=(5, 2, 0)))

    conn = get_connection(tmp_db)
    count = conn.execute("SELECT COUNT(*) FROM daily_history").fetchone()[0]
    conn.close()
    assert count == 1

    record = await store.get_record("u1", D)
    assert record.subjects["Matematik"].correct == 5
    assert record.subjects["Matematik"].wrong == 2
    assert record.total == 7
    assert record.user_id == "u1"
    assert record.updated_at is not None


@pytest.mark.asyncio
async def test_upsert_merges_unspecified_subjects(tmp_db):
    store = SqliteProgressStore(tmp_db)
    await store.upsert_record("u1", D, make_record(D, Tarih=(3, 0, 0), Matematik=(1, 0, 0)))
    await store.upsert_record("u1", D, make_record(D, Matematik=(2, 0, 0)))
    record = await store.get_record("u1", D)
    assert record.subjects["Tarih"].correct == 3
    assert record.subjects["Matematik"].correct == 2


@pytest.mark.asyncio
async def test_upsert_keeps_total_target_when_absent(tmp_db):
    store = SqliteProgressStore(tmp_db)
    await store.upsert_record("u1", D, make_record(D, A=(1, 0, 0)))
    bare = DailyRecord(date=D, subjects={"A": SubjectCounts(2)}, total=2)
    await store.upsert_record("u1", D, bare)
    record = await store.get_record("u1", D)
    assert record.total_target == 60
    assert record.total == 2


@pytest.mark.asyncio
async def test_list_recent_newest_first_and_limited(tmp_db):
    store = SqliteProgressStore(tmp_db)
    for day in (3, 9, 1, 7, 5):
        d = date(2024, 5, day)
        await store.upsert_record("u1", d, make_record(d, A=(day, 0, 0)))
    await store.upsert_record("u2", date(2024, 5, 8), make_record(date(2024, 5, 8), user_id="u2", A=(1, 0, 0)))

    recent = await store.list_recent("u1", limit=3)
    assert [r.date.day for r in recent] == [9, 7, 5]


@pytest.mark.asyncio
async def test_list_recent_excludes_date_before_limit(tmp_db):
    store = SqliteProgressStore(tmp_db)
    for day in (1, 2, 3):
        d = date(2024, 5, day)
        await store.upsert_record("u1", d, make_record(d, A=(1, 0, 0)))
    recent = await store.list_recent("u1", limit=2, exclude=date(2024, 5, 3))
    assert [r.date.day for r in recent] == [2, 1]


@pytest.mark.asyncio
async def test_list_recent_zero_limit(tmp_db):
    store = SqliteProgressStore(tmp_db)
    assert await store.list_recent("u1", limit=0) == []


@pytest.mark.asyncio
async def test_sqlite_errors_surface_as_store_error(tmp_db):
    store = SqliteProgressStore(tmp_db)
    with patch("soru_takip.store.get_connection", side_effect=sqlite3.OperationalError("disk I/O error")):
        with pytest.raises(StoreError):
            await store.get_record("u1", D)
        with pytest.raises(StoreError):
            await store.upsert_record("u1", D, make_record(D, A=(1, 0, 0)))
