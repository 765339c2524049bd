"""Tests for AccumulationStore (replace / append / dedup)."""

from __future__ import annotations

import pytest

from usados_catalog.domain.accumulation import AccumulationStore
from usados_catalog.domain.vehicle import MappedPage, VehicleRecord


def _page(
    *ids: str,
    has_next_page: bool = True,
    next_cursor: int | None = 2,
    total_docs: int | None = 10,
) -> MappedPage:
    return MappedPage(
        vehicles=tuple(VehicleRecord(id=vehicle_id) for vehicle_id in ids),
        total_docs=total_docs,
        has_next_page=has_next_page,
        next_cursor=next_cursor if has_next_page else None,
    )


@pytest.fixture
def store() -> AccumulationStore:
    return AccumulationStore()


def _ids(store: AccumulationStore) -> list[str]:
    return [vehicle.id for vehicle in store.vehicles]


def test_new_store_is_empty(store: AccumulationStore) -> None:
    assert store.vehicles == ()
    assert store.seen_ids == frozenset()
    assert store.total_docs == 0
    assert store.has_next_page is False
    assert store.next_cursor is None
    assert store.can_load_more is False
    assert len(store) == 0


def test_append_deduplicates_across_pages(store: AccumulationStore) -> None:
    store.replace(_page("a", "b"))

    added = store.append(_page("b", "c", next_cursor=3))

    assert _ids(store) == ["a", "b", "c"]
    assert added == 1
    assert store.seen_ids == frozenset({"a", "b", "c"})


def test_append_never_reorders_existing_items(store: AccumulationStore) -> None:
    store.replace(_page("c", "a", "b"))

    store.append(_page("z", "a", "y", next_cursor=3))

    assert _ids(store) == ["c", "a", "b", "z", "y"]


def test_replace_discards_previous_items(store: AccumulationStore) -> None:
    store.replace(_page("a", "b"))
    store.append(_page("c", next_cursor=3))

    store.replace(_page("x", has_next_page=False, total_docs=1))

    assert _ids(store) == ["x"]
    assert store.seen_ids == frozenset({"x"})
    assert store.total_docs == 1
    assert store.can_load_more is False


def test_replace_deduplicates_within_page(store: AccumulationStore) -> None:
    store.replace(_page("a", "a", "b"))

    assert _ids(store) == ["a", "b"]


def test_append_takes_continuation_from_latest_page(store: AccumulationStore) -> None:
    store.replace(_page("a", next_cursor=2))

    store.append(_page("b", has_next_page=False))

    assert store.has_next_page is False
    assert store.next_cursor is None
    assert store.can_load_more is False


def test_append_on_exhausted_list_is_a_no_op(store: AccumulationStore) -> None:
    store.replace(_page("a", has_next_page=False))

    added = store.append(_page("b", next_cursor=5))

    assert added == 0
    assert _ids(store) == ["a"]
    assert store.has_next_page is False


def test_append_keeps_total_when_page_reports_none(store: AccumulationStore) -> None:
    store.replace(_page("a", total_docs=30))

    store.append(_page("b", next_cursor=3, total_docs=None))

    assert store.total_docs == 30


def test_append_takes_reported_zero_total(store: AccumulationStore) -> None:
    store.replace(_page("a", total_docs=30))

    store.append(_page("b", next_cursor=3, total_docs=0))

    assert store.total_docs == 0


def test_replace_without_reported_total_is_zero(store: AccumulationStore) -> None:
    store.replace(_page("a", total_docs=None))

    assert store.total_docs == 0


def test_clear_resets_everything(store: AccumulationStore) -> None:
    store.replace(_page("a", "b"))

    store.clear()

    assert store.vehicles == ()
    assert store.seen_ids == frozenset()
    assert store.total_docs == 0
    assert store.can_load_more is False


def test_vehicles_view_is_a_snapshot(store: AccumulationStore) -> None:
    store.replace(_page("a"))
    before = store.vehicles

    store.append(_page("b", next_cursor=3))

    assert [vehicle.id for vehicle in before] == ["a"]
