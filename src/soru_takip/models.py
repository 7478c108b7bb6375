"""Data classes for the progress domain model."""
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Optional

COUNTER_FIELDS = ("correct", "wrong", "empty")


@dataclass(frozen=True)
class Subject:
    name: str
    icon: str = ""
    color: str = ""
    target: int = 1
    correct: int = 0
    wrong: int = 0
    empty: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.wrong + self.empty

    def zeroed(self) -> "Subject":
        return replace(self, correct=0, wrong=0, empty=0)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "icon": self.icon,
            "color": self.color,
            "target": self.target,
            "correct": self.correct,
            "wrong": self.wrong,
            "empty": self.empty,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Subject":
        return cls(
            name=data["name"],
            icon=data.get("icon", ""),
            color=data.get("color", ""),
            target=max(1, int(data.get("target", 1))),
            correct=max(0, int(data.get("correct", 0))),
            wrong=max(0, int(data.get("wrong", 0))),
            empty=max(0, int(data.get("empty", 0))),
        )


@dataclass(frozen=True)
class Catalog:
    """Subject structure and targets, independent of any date."""
    subjects: tuple[Subject, ...]

    @property
    def total_target(self) -> int:
        return sum(s.target for s in self.subjects)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self.subjects]

    def get(self, name: str) -> Optional[Subject]:
        for s in self.subjects:
            if s.name == name:
                return s
        return None


@dataclass(frozen=True)
class SubjectCounts:
    correct: int = 0
    wrong: int = 0
    empty: int = 0
    total: Optional[int] = None
    target: Optional[int] = None

    def __post_init__(self):
        # Older documents may omit the stored total.
        if self.total is None:
            object.__setattr__(self, "total", self.correct + self.wrong + self.empty)

    def to_dict(self) -> dict:
        data = {"correct": self.correct, "wrong": self.wrong, "empty": self.empty, "total": self.total}
        if self.target is not None:
            data["target"] = self.target
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "SubjectCounts":
        return cls(
            correct=int(data.get("correct", 0)),
            wrong=int(data.get("wrong", 0)),
            empty=int(data.get("empty", 0)),
            total=int(data["total"]) if data.get("total") is not None else None,
            target=int(data["target"]) if data.get("target") is not None else None,
        )


@dataclass(frozen=True)
class DailyRecord:
    """One persisted day of counts for a user, keyed by (user_id, date)."""
    date: date
    subjects: dict[str, SubjectCounts] = field(default_factory=dict)
    total: int = 0
    total_target: Optional[int] = None
    user_id: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "date": self.date.isoformat(),
            "subjects": {name: counts.to_dict() for name, counts in self.subjects.items()},
            "total": self.total,
        }
        if self.total_target is not None:
            data["total_target"] = self.total_target
        if self.user_id is not None:
            data["user_id"] = self.user_id
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DailyRecord":
        subjects = {
            name: SubjectCounts.from_dict(counts)
            for name, counts in (data.get("subjects") or {}).items()
        }
        total = data.get("total")
        return cls(
            date=date.fromisoformat(data["date"]),
            subjects=subjects,
            total=int(total) if total is not None else sum(c.total for c in subjects.values()),
            total_target=data.get("total_target"),
            user_id=data.get("user_id"),
            updated_at=data.get("updated_at"),
        )


@dataclass(frozen=True)
class Snapshot:
    """Catalog targets merged with one date's counters."""
    date: date
    subjects: tuple[Subject, ...]
    total_target: int

    def get(self, name: str) -> Optional[Subject]:
        for s in self.subjects:
            if s.name == name:
                return s
        return None
