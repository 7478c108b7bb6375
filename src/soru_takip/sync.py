"""
Synchronization between the in-memory snapshot and the progress store.

The controller owns the session state for one user:

    IDLE --select_date--> LOADING --loaded--> READY --select_date--> LOADING

Mutations are only accepted in READY. Each one updates the snapshot at once
and refreshes a single pending-write token: the token carries the latest
record (and catalog, after a target change) plus a deadline. Every new
mutation replaces the payload and pushes the deadline out by the debounce
window. One timer task owns the token; when the deadline passes it clears
the token and hands the payload to the writer.

The writer runs at most one store call at a time. Payloads waiting for it
sit in an outbox keyed by date, so a newer payload for a date replaces an
unsent older one instead of queueing behind it.

Usage:
    controller = SyncController(SqliteProgressStore(path), user_id="ayse")
    await controller.select_date(date.today())
    controller.mutate("Matematik", "correct", +1)
    ...
    await controller.close()
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Optional

from soru_takip import snapshot as snap
from soru_takip.catalog import initialize_catalog, save_catalog, update_target
from soru_takip.exceptions import IdentityRequiredError, NotReadyError, StoreError
from soru_takip.models import Catalog, DailyRecord, Snapshot
from soru_takip.rollup import RollupResult, Window, rollup

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 1.0
HISTORY_LIMIT = 7


class SyncState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"


@dataclass
class PendingWrite:
    date: date
    deadline: float
    record: Optional[DailyRecord] = None
    catalog: Optional[Catalog] = None


class SyncController:
    """Owns the snapshot for the selected date and persists its changes."""

    def __init__(
        self,
        store,
        user_id: Optional[str],
        *,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        history_limit: int = HISTORY_LIMIT,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.user_id = user_id
        self.debounce_seconds = debounce_seconds
        self.history_limit = history_limit
        self._today = today

        self.state = SyncState.IDLE
        self.selected_date: Optional[date] = None
        self.catalog: Optional[Catalog] = None
        self.snapshot: Optional[Snapshot] = None
        self.history: list[DailyRecord] = []

        self._generation = 0
        self._pending: Optional[PendingWrite] = None
        self._timer: Optional[asyncio.Task] = None
        self._outbox: dict[date, DailyRecord] = {}
        self._catalog_outbox: Optional[Catalog] = None
        self._unconfirmed: dict[date, DailyRecord] = {}
        self._unconfirmed_catalog: Optional[Catalog] = None
        self._writing = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._notices: list[str] = []

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def is_syncing(self) -> bool:
        """True while a store write is in flight."""
        return self._writing

    @property
    def has_pending_write(self) -> bool:
        return self._pending is not None or bool(self._outbox) or self._catalog_outbox is not None

    def pop_notices(self) -> list[str]:
        notices, self._notices = self._notices, []
        return notices

    def _notice(self, message: str) -> None:
        self._notices.append(message)

    def _require_user(self) -> str:
        if not self.user_id:
            raise IdentityRequiredError("No signed-in user; progress cannot be loaded or saved")
        return self.user_id

    def _require_ready(self) -> Snapshot:
        self._require_user()
        if self.state is not SyncState.READY or self.snapshot is None:
            raise NotReadyError(
                f"Progress is {self.state.value}; try again once it has loaded",
                {"state": self.state.value},
            )
        return self.snapshot

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def select_date(self, on_date: date) -> Optional[Snapshot]:
        """Switch to ``on_date``; returns the new snapshot, or None if this load lost out."""
        user_id = self._require_user()
        self._generation += 1
        generation = self._generation
        self.state = SyncState.LOADING
        self.selected_date = on_date

        # Anything typed against the previous date goes out under that date's key.
        await self.flush()

        try:
            catalog = await initialize_catalog(self.store, user_id)
            record = await self.store.get_record(user_id, on_date)
            history = await self.store.list_recent(user_id, self.history_limit, exclude=on_date)
        except StoreError as exc:
            if generation != self._generation:
                return None
            logger.warning("Loading %s failed: %s", on_date, exc)
            self._notice(f"Could not load progress for {on_date.isoformat()}: {exc.message}")
            self.state = SyncState.IDLE
            return None

        if generation != self._generation:
            logger.debug("Discarding stale load for %s", on_date)
            return None

        self.catalog = catalog
        self.snapshot = snap.load(catalog, record, on_date)
        self.history = history
        self.state = SyncState.READY
        logger.info("Loaded %s for %s (%d history records)", on_date, user_id, len(history))
        return self.snapshot

    async def select_today(self) -> Optional[Snapshot]:
        return await self.select_date(self._today())

    async def refresh_history(self) -> list[DailyRecord]:
        user_id = self._require_user()
        try:
            history = await self.store.list_recent(user_id, self.history_limit, exclude=self.selected_date)
        except StoreError as exc:
            self._notice(f"Could not load history: {exc.message}")
            return self.history
        self.history = history
        return history

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def mutate(self, subject_name: str, field: str, delta: int) -> Snapshot:
        current = self._require_ready()
        self.snapshot = snap.mutate(current, subject_name, field, delta)
        self._schedule(record=snap.to_record(self.snapshot, self.user_id))
        return self.snapshot

    def update_target(self, subject_name: str, new_target) -> Snapshot:
        current = self._require_ready()
        self.catalog = update_target(self.catalog, subject_name, new_target)
        self.snapshot = snap.with_catalog(current, self.catalog)
        record = None
        if self._pending is not None and self._pending.record is not None:
            record = snap.to_record(self.snapshot, self.user_id)
        self._schedule(record=record, catalog=self.catalog)
        return self.snapshot

    # ------------------------------------------------------------------
    # Debounced persistence
    # ------------------------------------------------------------------
    def _schedule(self, record: Optional[DailyRecord] = None, catalog: Optional[Catalog] = None) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.debounce_seconds
        pending = self._pending
        if pending is not None and record is not None and pending.date != record.date:
            self._enqueue(pending)
            pending = None
        if pending is None:
            self._pending = PendingWrite(
                date=self.snapshot.date, deadline=deadline, record=record, catalog=catalog,
            )
        else:
            pending.deadline = deadline
            if record is not None:
                pending.record = record
            if catalog is not None:
                pending.catalog = catalog
        if self._timer is None or self._timer.done():
            self._timer = asyncio.create_task(self._run_timer())

    async def _run_timer(self) -> None:
        loop = asyncio.get_running_loop()
        while self._pending is not None:
            delay = self._pending.deadline - loop.time()
            if delay > 0:
                await asyncio.sleep(delay)
                continue
            pending, self._pending = self._pending, None
            self._enqueue(pending)
            await self._drain()

    def _enqueue(self, pending: PendingWrite) -> None:
        retry, self._unconfirmed = self._unconfirmed, {}
        for on_date, record in retry.items():
            self._outbox.setdefault(on_date, record)
        if self._unconfirmed_catalog is not None and self._catalog_outbox is None:
            self._catalog_outbox = self._unconfirmed_catalog
        self._unconfirmed_catalog = None

        if pending.record is not None:
            self._outbox[pending.date] = pending.record
        if pending.catalog is not None:
            self._catalog_outbox = pending.catalog

    async def _drain(self) -> None:
        if self._writing:
            return
        self._writing = True
        self._idle.clear()
        try:
            while self._catalog_outbox is not None or self._outbox:
                if self._catalog_outbox is not None:
                    catalog, self._catalog_outbox = self._catalog_outbox, None
                    await self._write_catalog(catalog)
                    continue
                on_date = next(iter(self._outbox))
                record = self._outbox.pop(on_date)
                await self._write_record(on_date, record)
        finally:
            self._writing = False
            self._idle.set()

    async def _write_catalog(self, catalog: Catalog) -> None:
        try:
            await save_catalog(self.store, self.user_id, catalog)
        except StoreError as exc:
            logger.warning("Saving targets failed: %s", exc)
            self._notice(f"Targets not saved: {exc.message}")
            if self._catalog_outbox is None:
                self._unconfirmed_catalog = catalog
            return
        self._unconfirmed_catalog = None

    async def _write_record(self, on_date: date, record: DailyRecord) -> None:
        try:
            await self.store.upsert_record(self.user_id, on_date, record)
        except StoreError as exc:
            logger.warning("Saving %s failed: %s", on_date, exc)
            self._notice(f"Progress for {on_date.isoformat()} not saved: {exc.message}")
            if on_date not in self._outbox:
                self._unconfirmed[on_date] = record
            return
        self._unconfirmed.pop(on_date, None)
        logger.debug("Saved %s (%d questions)", on_date, record.total)

    async def flush(self) -> None:
        """Write whatever is pending now instead of waiting for the deadline."""
        if self._pending is not None:
            pending, self._pending = self._pending, None
            self._enqueue(pending)
        elif self._unconfirmed or self._unconfirmed_catalog is not None:
            self._enqueue(PendingWrite(date=self.selected_date, deadline=0.0))
        while self._writing:
            await self._idle.wait()
        await self._drain()

    async def close(self) -> None:
        await self.flush()
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            try:
                await self._timer
            except asyncio.CancelledError:
                pass
        self._timer = None

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------
    def weekly(self) -> RollupResult:
        return rollup(self._require_snapshot(), self.history, Window.LAST_7_DAYS, today=self._today())

    def all_time(self) -> RollupResult:
        return rollup(self._require_snapshot(), self.history, Window.ALL, today=self._today())

    def _require_snapshot(self) -> Snapshot:
        self._require_user()
        if self.snapshot is None:
            raise NotReadyError("No progress loaded yet", {"state": self.state.value})
        return self.snapshot
