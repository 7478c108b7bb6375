"""Storage adapter for catalogs and per-date daily records.

Every daily record lives under a deterministic key, ``"{user_id}_{date}"``,
so repeated writes for the same day merge into one row instead of piling up.
Writes are merge-writes: fields in the payload overwrite, fields missing from
it are left alone, and the per-subject map is merged subject by subject.

The adapter never retries. A failed call raises :class:`StoreError` and the
caller decides what to do about it.
"""
import asyncio
import json
import logging
import sqlite3
from datetime import date, datetime
from typing import Optional, Protocol

from soru_takip.db import DEFAULT_DB_PATH, get_connection, init_db
from soru_takip.exceptions import StoreError
from soru_takip.models import Catalog, DailyRecord, Subject

logger = logging.getLogger(__name__)


def record_key(user_id: str, on_date: date) -> str:
    return f"{user_id}_{on_date.isoformat()}"


class ProgressStore(Protocol):
    async def get_catalog(self, user_id: str) -> Optional[Catalog]: ...

    async def save_catalog(self, user_id: str, catalog: Catalog) -> None: ...

    async def get_record(self, user_id: str, on_date: date) -> Optional[DailyRecord]: ...

    async def upsert_record(self, user_id: str, on_date: date, record: DailyRecord) -> None: ...

    async def list_recent(
        self, user_id: str, limit: int, exclude: Optional[date] = None,
    ) -> list[DailyRecord]: ...


def merge_subjects(existing: dict, incoming: dict) -> dict:
    """Merge two per-subject maps; subjects only in ``existing`` survive."""
    merged = {name: dict(counts) for name, counts in existing.items()}
    for name, counts in incoming.items():
        merged[name] = {**merged.get(name, {}), **counts}
    return merged


class SqliteProgressStore:
    """ProgressStore backed by a local SQLite file.

    sqlite3 is blocking, so each call runs in a worker thread with its own
    connection.
    """

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        self.db_path = db_path
        init_db(db_path)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as exc:
            logger.warning("Store call %s failed: %s", func.__name__, exc)
            raise StoreError(f"Store unavailable: {exc}", {"operation": func.__name__}) from exc

    # Catalog

    def _get_catalog(self, user_id: str) -> Optional[Catalog]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT subjects FROM user_settings WHERE user_id = ?", (user_id,)
            ).fetchone()
        finally:
            conn.close()
        if not row:
            return None
        return Catalog(tuple(Subject.from_dict(s) for s in json.loads(row["subjects"])))

    def _save_catalog(self, user_id: str, catalog: Catalog) -> None:
        subjects = json.dumps([s.zeroed().to_dict() for s in catalog.subjects], ensure_ascii=False)
        now = datetime.now().isoformat()
        conn = get_connection(self.db_path)
        try:
            conn.execute(
                """INSERT INTO user_settings (user_id, subjects, total_target, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    subjects = excluded.subjects,
                    total_target = excluded.total_target,
                    updated_at = excluded.updated_at""",
                (user_id, subjects, catalog.total_target, now),
            )
            conn.commit()
        finally:
            conn.close()

    async def get_catalog(self, user_id: str) -> Optional[Catalog]:
        return await self._run(self._get_catalog, user_id)

    async def save_catalog(self, user_id: str, catalog: Catalog) -> None:
        await self._run(self._save_catalog, user_id, catalog)

    # Daily records

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> DailyRecord:
        return DailyRecord.from_dict({
            "date": row["date"],
            "subjects": json.loads(row["subjects"]),
            "total": row["total"],
            "total_target": row["total_target"],
            "user_id": row["user_id"],
            "updated_at": row["updated_at"],
        })

    def _get_record(self, user_id: str, on_date: date) -> Optional[DailyRecord]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM daily_history WHERE id = ?", (record_key(user_id, on_date),)
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_record(row) if row else None

    def _upsert_record(self, user_id: str, on_date: date, record: DailyRecord) -> None:
        key = record_key(user_id, on_date)
        payload = record.to_dict()
        now = datetime.now().isoformat()
        conn = get_connection(self.db_path)
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT subjects FROM daily_history WHERE id = ?", (key,)).fetchone()
            existing = json.loads(row["subjects"]) if row else {}
            subjects = merge_subjects(existing, payload.get("subjects", {}))
            conn.execute(
                """INSERT INTO daily_history (id, user_id, date, subjects, total, total_target, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    subjects = excluded.subjects,
                    total = excluded.total,
                    total_target = COALESCE(excluded.total_target, daily_history.total_target),
                    updated_at = excluded.updated_at""",
                (
                    key, user_id, on_date.isoformat(),
                    json.dumps(subjects, ensure_ascii=False),
                    payload["total"], payload.get("total_target"), now,
                ),
            )
            conn.commit()
        except sqlite3.Error:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _list_recent(self, user_id: str, limit: int, exclude: Optional[date]) -> list[DailyRecord]:
        sql = "SELECT * FROM daily_history WHERE user_id = ?"
        params: list = [user_id]
        if exclude is not None:
            sql += " AND date != ?"
            params.append(exclude.isoformat())
        sql += " ORDER BY date DESC LIMIT ?"
        params.append(limit)
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(sql, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_record(r) for r in rows]

    async def get_record(self, user_id: str, on_date: date) -> Optional[DailyRecord]:
        return await self._run(self._get_record, user_id, on_date)

    async def upsert_record(self, user_id: str, on_date: date, record: DailyRecord) -> None:
        await self._run(self._upsert_record, user_id, on_date, record)
        logger.debug("Upserted %s", record_key(user_id, on_date))

    async def list_recent(
        self, user_id: str, limit: int, exclude: Optional[date] = None,
    ) -> list[DailyRecord]:
        if limit <= 0:
            return []
        return await self._run(self._list_recent, user_id, limit, exclude)
