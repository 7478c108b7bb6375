"""Progress labels and table rows for the day, week and all-time views."""
from datetime import date

from soru_takip.models import Snapshot
from soru_takip.rollup import RollupResult
from soru_takip.snapshot import overall_percentage, percentage, remaining, total_questions


def get_progress_label(pct: float) -> str:
    if pct >= 100:
        return "DONE"
    elif pct >= 75:
        return "ALMOST"
    elif pct >= 40:
        return "ON TRACK"
    return "BEHIND"


def get_progress_color(pct: float) -> str:
    if pct >= 100:
        return "green"
    elif pct >= 75:
        return "yellow"
    elif pct >= 40:
        return "dark_orange"
    return "red"


def is_today(on_date: date, today: date | None = None) -> bool:
    return on_date == (today or date.today())


def get_day_summary(snapshot: Snapshot) -> dict:
    pct = overall_percentage(snapshot)
    return {
        "date": snapshot.date.isoformat(),
        "total": total_questions(snapshot),
        "total_target": snapshot.total_target,
        "remaining": remaining(snapshot),
        "percentage": round(pct, 1),
        "label": get_progress_label(pct),
    }


def get_subject_rows(snapshot: Snapshot) -> list[dict]:
    rows = []
    for s in snapshot.subjects:
        pct = percentage(s)
        rows.append({
            "name": s.name,
            "icon": s.icon,
            "color": s.color,
            "correct": s.correct,
            "wrong": s.wrong,
            "empty": s.empty,
            "total": s.total,
            "target": s.target,
            "percentage": round(pct, 1),
            "label": get_progress_label(pct),
        })
    return rows


def get_rollup_rows(result: RollupResult) -> list[dict]:
    """Per-subject rows plus a final overall row, accuracy as a percentage."""
    rows = [
        {
            "name": name,
            "correct": t.correct,
            "wrong": t.wrong,
            "empty": t.empty,
            "total": t.total,
            "accuracy": round(t.accuracy * 100, 1),
        }
        for name, t in result.subjects.items()
    ]
    overall = result.overall
    rows.append({
        "name": "Toplam",
        "correct": overall.correct,
        "wrong": overall.wrong,
        "empty": overall.empty,
        "total": overall.total,
        "accuracy": round(overall.accuracy * 100, 1),
    })
    return rows
