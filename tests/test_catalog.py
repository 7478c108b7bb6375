import pytest

from soru_takip.catalog import (
    DEFAULT_SUBJECTS, coerce_target, default_catalog, get_catalog, initialize_catalog,
    save_catalog, update_target,
)
from soru_takip.exceptions import UnknownSubjectError
from soru_takip.models import Catalog, Subject
from soru_takip.store import SqliteProgressStore


def test_default_catalog_targets():
    catalog = default_catalog()
    assert [s.target for s in catalog.subjects] == [10, 15, 8, 12, 10, 5]
    assert catalog.total_target == 60
    assert catalog.names[1] == "Matematik"
    assert all(s.total == 0 for s in DEFAULT_SUBJECTS)


@pytest.mark.asyncio
async def test_get_catalog_missing_returns_none(tmp_db):
    store = SqliteProgressStore(tmp_db)
    assert await get_catalog(store, "u1") is None


@pytest.mark.asyncio
async def test_initialize_catalog_is_idempotent(tmp_db):
    store = SqliteProgressStore(tmp_db)
    first = await initialize_catalog(store, "u1")
    assert first.total_target == 60

    # User edits a target; a second initialize must not reset it
    edited = update_target(first, "Matematik", 20)
    await save_catalog(store, "u1", edited)
    second = await initialize_catalog(store, "u1")
    assert second.get("Matematik").target == 20
    assert second.total_target == 65


@pytest.mark.asyncio
async def test_initialize_catalog_writes_once(fake_store):
    await initialize_catalog(fake_store, "u1")
    await initialize_catalog(fake_store, "u1")
    assert len(fake_store.catalog_saves) == 1


@pytest.mark.asyncio
async def test_save_catalog_zeroes_counters(fake_store):
    catalog = Catalog((Subject("A", target=3, correct=4, wrong=1, empty=2),))
    await save_catalog(fake_store, "u1", catalog)
    stored = await get_catalog(fake_store, "u1")
    assert stored.get("A").total == 0
    assert stored.get("A").target == 3


def test_update_target_recomputes_total():
    catalog = update_target(default_catalog(), "Türkçe", 25)
    assert catalog.get("Türkçe").target == 25
    assert catalog.total_target == 75


def test_update_target_clamps_to_one():
    catalog = update_target(default_catalog(), "Din Kültürü", 0)
    assert catalog.get("Din Kültürü").target == 1
    catalog = update_target(catalog, "Din Kültürü", -7)
    assert catalog.get("Din Kültürü").target == 1


def test_update_target_keeps_counters():
    catalog = Catalog((Subject("A", target=5, correct=2),))
    updated = update_target(catalog, "A", 9)
    assert updated.get("A").correct == 2


def test_update_target_unknown_subject():
    with pytest.raises(UnknownSubjectError):
        update_target(default_catalog(), "Tarih", 5)


def test_coerce_target():
    assert coerce_target(12) == 12
    assert coerce_target("8") == 8
    assert coerce_target(" 4 ") == 4
    assert coerce_target("abc") == 1
    assert coerce_target("") == 1
    assert coerce_target(None) == 1
    assert coerce_target(0) == 1
    assert coerce_target(3.9) == 3
    assert coerce_target("12.5") == 12
    assert coerce_target("7 soru") == 7
    assert coerce_target("-4") == 1
    assert coerce_target(float("nan")) == 1
