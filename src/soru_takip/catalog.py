"""Subject catalog: default subjects, targets, and first-use setup."""
import logging
import re
from dataclasses import replace

from soru_takip.exceptions import UnknownSubjectError
from soru_takip.models import Catalog, Subject

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")

DEFAULT_SUBJECTS = (
    Subject(name="Türkçe", icon="🇹🇷", color="red", target=10),
    Subject(name="Matematik", icon="🔢", color="blue", target=15),
    Subject(name="Sosyal Bilgiler", icon="🌍", color="green", target=8),
    Subject(name="Fen Bilimleri", icon="🔬", color="purple", target=12),
    Subject(name="İngilizce", icon="🇬🇧", color="yellow", target=10),
    Subject(name="Din Kültürü", icon="📿", color="dark_orange", target=5),
)


def default_catalog() -> Catalog:
    return Catalog(DEFAULT_SUBJECTS)


async def get_catalog(store, user_id: str) -> Catalog | None:
    """Return the user's catalog, or None if it was never created."""
    return await store.get_catalog(user_id)


async def save_catalog(store, user_id: str, catalog: Catalog) -> None:
    """Persist structure and targets only; counters are always stored as zero."""
    zeroed = Catalog(tuple(s.zeroed() for s in catalog.subjects))
    await store.save_catalog(user_id, zeroed)


async def initialize_catalog(store, user_id: str) -> Catalog:
    """Create the default catalog unless one already exists."""
    existing = await store.get_catalog(user_id)
    if existing is not None:
        return existing
    catalog = default_catalog()
    await save_catalog(store, user_id, catalog)
    logger.info("Created default catalog for %s", user_id)
    return catalog


def coerce_target(value) -> int:
    """Parse a user-entered target from its leading digits. Anything unusable becomes 1."""
    if isinstance(value, float):
        try:
            target = int(value)
        except (ValueError, OverflowError):
            return 1
    else:
        match = _LEADING_INT.match(str(value)) if value is not None else None
        if match is None:
            return 1
        target = int(match.group(1))
    return max(1, target)


def update_target(catalog: Catalog, subject_name: str, new_target) -> Catalog:
    if catalog.get(subject_name) is None:
        raise UnknownSubjectError(f"Unknown subject: {subject_name}", {"subject": subject_name})
    target = coerce_target(new_target)
    return Catalog(tuple(
        replace(s, target=target) if s.name == subject_name else s
        for s in catalog.subjects
    ))
