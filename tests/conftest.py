import asyncio
from datetime import date

import pytest

from soru_takip.exceptions import StoreError
from soru_takip.models import Catalog, DailyRecord
from soru_takip.store import merge_subjects, record_key


class FakeStore:
    """In-memory ProgressStore that records calls and can fail or stall on demand."""

    def __init__(self):
        self.catalogs: dict[str, Catalog] = {}
        self.records: dict[str, dict] = {}
        self.calls: list[str] = []
        self.upserts: list[tuple[str, date, DailyRecord]] = []
        self.catalog_saves: list[Catalog] = []
        self.fail: set[str] = set()
        self.delays: dict[str, float] = {}
        self.record_delays: dict[date, float] = {}
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, op: str, delay: float = 0.0):
        self.calls.append(op)
        delay = delay or self.delays.get(op, 0.0)
        if delay:
            await asyncio.sleep(delay)
        if op in self.fail:
            raise StoreError(f"{op} unavailable")

    async def get_catalog(self, user_id):
        await self._enter("get_catalog")
        return self.catalogs.get(user_id)

    async def save_catalog(self, user_id, catalog):
        await self._enter("save_catalog")
        self.catalogs[user_id] = catalog
        self.catalog_saves.append(catalog)

    async def get_record(self, user_id, on_date):
        await self._enter("get_record", self.record_delays.get(on_date, 0.0))
        data = self.records.get(record_key(user_id, on_date))
        return DailyRecord.from_dict(data) if data else None

    async def upsert_record(self, user_id, on_date, record):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self._enter("upsert_record")
        finally:
            self.in_flight -= 1
        key = record_key(user_id, on_date)
        payload = record.to_dict()
        existing = self.records.get(key, {})
        merged = {**existing, **payload}
        merged["subjects"] = merge_subjects(existing.get("subjects", {}), payload.get("subjects", {}))
        self.records[key] = merged
        self.upserts.append((user_id, on_date, record))

    async def list_recent(self, user_id, limit, exclude=None):
        await self._enter("list_recent")
        rows = [
            DailyRecord.from_dict(data) for data in self.records.values()
            if data.get("user_id") == user_id
        ]
        rows = [r for r in rows if r.date != exclude]
        rows.sort(key=lambda r: r.date, reverse=True)
        return rows[:limit]


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_progress.db")
    return db_path


@pytest.fixture
def fake_store():
    return FakeStore()
