"""In-memory progress for the selected date and the numbers derived from it."""
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from soru_takip.exceptions import UnknownSubjectError
from soru_takip.models import COUNTER_FIELDS, Catalog, DailyRecord, Snapshot, Subject, SubjectCounts


def load(catalog: Catalog, record: Optional[DailyRecord], on_date: date) -> Snapshot:
    """Merge catalog targets with the date's counters.

    Subjects missing from the record start at zero. The record's stored
    total target is ignored; the catalog's sum is what the user edits against.
    """
    counts = record.subjects if record is not None else {}
    subjects = []
    for s in catalog.subjects:
        c = counts.get(s.name)
        if c is None:
            subjects.append(s.zeroed())
        else:
            subjects.append(replace(
                s, correct=max(0, c.correct), wrong=max(0, c.wrong), empty=max(0, c.empty),
            ))
    return Snapshot(date=on_date, subjects=tuple(subjects), total_target=catalog.total_target)


def mutate(snapshot: Snapshot, subject_name: str, field: str, delta: int) -> Snapshot:
    """Step one counter by +1/-1. Counters never go below zero."""
    if field not in COUNTER_FIELDS:
        raise ValueError(f"field must be one of {COUNTER_FIELDS}, got {field!r}")
    if delta not in (-1, 1):
        raise ValueError(f"delta must be -1 or +1, got {delta!r}")
    if snapshot.get(subject_name) is None:
        raise UnknownSubjectError(f"Unknown subject: {subject_name}", {"subject": subject_name})
    subjects = tuple(
        replace(s, **{field: max(0, getattr(s, field) + delta)}) if s.name == subject_name else s
        for s in snapshot.subjects
    )
    return replace(snapshot, subjects=subjects)


def with_catalog(snapshot: Snapshot, catalog: Catalog) -> Snapshot:
    """Apply the catalog's current targets, keeping the snapshot's counters."""
    targets = {s.name: s.target for s in catalog.subjects}
    subjects = tuple(replace(s, target=targets.get(s.name, s.target)) for s in snapshot.subjects)
    return replace(snapshot, subjects=subjects, total_target=catalog.total_target)


def percentage(subject: Subject) -> float:
    if subject.target <= 0:
        return 0.0
    return min(100.0, subject.total / subject.target * 100)


def total_questions(snapshot: Snapshot) -> int:
    return sum(s.total for s in snapshot.subjects)


def overall_percentage(snapshot: Snapshot) -> float:
    if snapshot.total_target <= 0:
        return 0.0
    return total_questions(snapshot) / snapshot.total_target * 100


def remaining(snapshot: Snapshot) -> int:
    return max(0, snapshot.total_target - total_questions(snapshot))


def to_record(snapshot: Snapshot, user_id: str) -> DailyRecord:
    """Build the daily record that mirrors this snapshot."""
    subjects = {
        s.name: SubjectCounts(correct=s.correct, wrong=s.wrong, empty=s.empty, target=s.target)
        for s in snapshot.subjects
    }
    return DailyRecord(
        date=snapshot.date,
        subjects=subjects,
        total=total_questions(snapshot),
        total_target=snapshot.total_target,
        user_id=user_id,
        updated_at=datetime.now().isoformat(),
    )
