"""Weekly and all-time rollups over the live snapshot plus stored history."""
from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Iterable, Optional

from soru_takip.models import DailyRecord, Snapshot

WEEK_DAYS = 7


class Window(str, Enum):
    ALL = "all"
    LAST_7_DAYS = "last7days"


@dataclass
class Tally:
    correct: int = 0
    wrong: int = 0
    empty: int = 0
    total: int = 0

    def add(self, correct: int, wrong: int, empty: int, total: int) -> None:
        self.correct += correct
        self.wrong += wrong
        self.empty += empty
        self.total += total

    @property
    def accuracy(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total


@dataclass
class RollupResult:
    window: Window
    subjects: dict[str, Tally] = field(default_factory=dict)

    @property
    def overall(self) -> Tally:
        overall = Tally()
        for t in self.subjects.values():
            overall.add(t.correct, t.wrong, t.empty, t.total)
        return overall


def in_window(record_date: date, window: Window, today: date) -> bool:
    if window is Window.ALL:
        return True
    return record_date >= today - timedelta(days=WEEK_DAYS)


def rollup(
    snapshot: Snapshot,
    history: Iterable[DailyRecord],
    window: Window = Window.ALL,
    today: Optional[date] = None,
) -> RollupResult:
    """Fold the snapshot and the in-window history into per-subject tallies.

    The snapshot's date always counts exactly once: history records carrying
    that same date are skipped. Names not in the snapshot are ignored, never
    added as new subjects.
    """
    today = today or date.today()
    window = Window(window)
    result = RollupResult(window=window)
    for s in snapshot.subjects:
        result.subjects[s.name] = Tally(s.correct, s.wrong, s.empty, s.total)

    for record in history:
        if record.date == snapshot.date:
            continue
        if not in_window(record.date, window, today):
            continue
        for name, counts in record.subjects.items():
            tally = result.subjects.get(name)
            if tally is None:
                continue
            tally.add(counts.correct, counts.wrong, counts.empty, counts.total)
    return result
