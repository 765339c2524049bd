"""
Test suite for ListingController.

Covers the listing state machine end to end against the in-memory search API
and URL navigator:
- URL-driven open, filter changes, brand toggles and "load more"
- Exactly one URL replace per successful return to IDLE
- Stale-generation discard (results and errors)
- Error retention: failures never clear the visible list
- Sort changes never fetch

Async operations are driven with asyncio.run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

import pytest

from usados_catalog.adapters.in_memory_url_navigator import InMemoryUrlNavigator
from usados_catalog.adapters.in_memory_vehicle_search_api import InMemoryVehicleSearchApi
from usados_catalog.domain.errors import FetchTimeoutError, InternalError, NetworkError
from usados_catalog.domain.filter_codec import FilterCodec
from usados_catalog.domain.filters import FilterSet, IntRange
from usados_catalog.domain.seo import CanonicalUrlPolicy
from usados_catalog.domain.sorting import SortKey
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi
from usados_catalog.use_cases.listing_controller import ListingController, ListingState

LISTING = "/usados/vehiculos"


def _doc(index: int, marca: str) -> dict[str, Any]:
    return {
        "_id": f"{marca.lower()}-{index}",
        "marca": marca,
        "modelo": "Modelo",
        "precio": 5_000_000 + index * 500_000,
        "anio": 2015,
        "kilometraje": 100_000 - index * 1_000,
        "fotoPrincipal": f"https://img.example.com/{marca.lower()}-{index}.jpg",
    }


@pytest.fixture
def documents() -> list[dict[str, Any]]:
    """10 Ford and 6 Peugeot vehicles, interleaved."""
    docs = []
    for index in range(10):
        docs.append(_doc(index, "Ford"))
        if index < 6:
            docs.append(_doc(index, "Peugeot"))
    return docs


@pytest.fixture
def api(documents: list[dict[str, Any]]) -> InMemoryVehicleSearchApi:
    return InMemoryVehicleSearchApi(documents)


@pytest.fixture
def navigator() -> InMemoryUrlNavigator:
    return InMemoryUrlNavigator()


def _controller(
    api: VehicleSearchApi, navigator: InMemoryUrlNavigator, **kwargs: Any
) -> ListingController:
    kwargs.setdefault("page_size", 4)
    return ListingController(search_api=api, navigator=navigator, **kwargs)


def _ids(controller: ListingController) -> list[str]:
    return [vehicle.id for vehicle in controller.vehicles]


class GatedSearchApi(VehicleSearchApi):
    """Wraps a search API; every call waits until the test opens its gate."""

    def __init__(self, inner: VehicleSearchApi) -> None:
        self._inner = inner
        self.gates: list[asyncio.Event] = []
        self.failures: dict[int, Exception] = {}

    async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
        call_index = len(self.gates)
        gate = asyncio.Event()
        self.gates.append(gate)
        await gate.wait()
        if call_index in self.failures:
            raise self.failures[call_index]
        return await self._inner.search(filters, limit, cursor)

    async def get_by_id(self, vehicle_id: str) -> Mapping[str, Any] | None:
        return await self._inner.get_by_id(vehicle_id)


class FailingSearchApi(VehicleSearchApi):
    """Delegates to an inner API but raises on the listed call numbers (0-based)."""

    def __init__(self, inner: VehicleSearchApi, failures: dict[int, Exception]) -> None:
        self._inner = inner
        self._failures = failures
        self.call_count = 0

    async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
        call_index = self.call_count
        self.call_count += 1
        if call_index in self._failures:
            raise self._failures[call_index]
        return await self._inner.search(filters, limit, cursor)

    async def get_by_id(self, vehicle_id: str) -> Mapping[str, Any] | None:
        return await self._inner.get_by_id(vehicle_id)


class SlowSearchApi(VehicleSearchApi):
    async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
        await asyncio.sleep(5)
        return {}

    async def get_by_id(self, vehicle_id: str) -> Mapping[str, Any] | None:
        return None


async def _wait_until(condition: Callable[[], bool]) -> None:
    for _ in range(200):
        if condition():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


# ==============================================================================
# Open
# ==============================================================================


def test_open_loads_first_page_from_url(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    loaded = asyncio.run(controller.open("marca=Peugeot"))

    assert loaded is True
    assert controller.state is ListingState.IDLE
    assert controller.filters == FilterSet(marca=frozenset({"Peugeot"}))
    assert _ids(controller) == ["peugeot-0", "peugeot-1", "peugeot-2", "peugeot-3"]
    assert controller.total_docs == 6
    assert controller.has_next_page is True
    assert controller.error is None
    assert api.calls == [(FilterSet(marca=frozenset({"Peugeot"})), 4, 1)]
    assert navigator.replacements == [f"{LISTING}?marca=Peugeot"]


def test_open_reads_navigator_url_by_default(api: InMemoryVehicleSearchApi) -> None:
    navigator = InMemoryUrlNavigator("?marca=Ford&sort=precio_desc")
    controller = _controller(api, navigator)

    asyncio.run(controller.open())

    assert controller.filters.marca == frozenset({"Ford"})
    assert controller.sort_key is SortKey.PRICE_DESC
    assert navigator.url == f"{LISTING}?marca=Ford&sort=precio_desc"


def test_open_fetches_page_named_by_url(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    asyncio.run(controller.open("marca=Ford&page=2"))

    assert api.calls[0][2] == 2
    assert _ids(controller) == ["ford-4", "ford-5", "ford-6", "ford-7"]
    assert navigator.url == f"{LISTING}?marca=Ford&page=2"


def test_open_ignores_malformed_params(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    asyncio.run(controller.open("anio=abc&caja=Turbo&utm_source=x"))

    assert controller.filters == FilterSet()
    assert navigator.replacements == [LISTING]


# ==============================================================================
# Load more
# ==============================================================================


def test_load_more_appends_next_page(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    async def scenario() -> bool:
        await controller.open("marca=Peugeot")
        return await controller.load_more()

    assert asyncio.run(scenario()) is True
    assert _ids(controller) == [f"peugeot-{index}" for index in range(6)]
    assert controller.has_next_page is False
    assert api.calls[1][2] == 2
    assert navigator.replacements == [f"{LISTING}?marca=Peugeot", f"{LISTING}?marca=Peugeot"]


def test_load_more_rejected_when_exhausted(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator, page_size=10)

    async def scenario() -> bool:
        await controller.open("marca=Peugeot")
        return await controller.load_more()

    assert asyncio.run(scenario()) is False
    assert len(api.calls) == 1
    assert len(navigator.replacements) == 1


def test_load_more_rejected_before_open(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    assert asyncio.run(controller.load_more()) is False
    assert api.calls == []


def test_load_more_rejected_while_fetching(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    gated = GatedSearchApi(api)
    controller = _controller(gated, navigator)

    async def scenario() -> None:
        await _open(gated, controller, "")
        more = asyncio.create_task(controller.load_more())
        await _wait_until(lambda: len(gated.gates) == 2)

        assert controller.state is ListingState.FETCHING_MORE
        assert await controller.load_more() is False

        gated.gates[1].set()
        assert await more is True

    asyncio.run(scenario())
    assert len(gated.gates) == 2


def test_stale_backend_cursor_still_advances(
    documents: list[dict[str, Any]], navigator: InMemoryUrlNavigator
) -> None:
    api = InMemoryVehicleSearchApi(documents, stale_cursor=True)
    controller = _controller(api, navigator)

    async def scenario() -> None:
        await controller.open("")
        while await controller.load_more():
            pass

    asyncio.run(scenario())

    assert [call[2] for call in api.calls] == [1, 2, 3, 4]
    assert len(_ids(controller)) == 16
    assert len(set(_ids(controller))) == 16
    assert controller.has_next_page is False


# ==============================================================================
# Filter changes
# ==============================================================================


def test_apply_filters_replaces_list_and_resets_page(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    async def scenario() -> None:
        await controller.open("marca=Ford&page=2")
        await controller.apply_filters(FilterSet(marca=frozenset({"Peugeot"}), page=3))

    asyncio.run(scenario())

    assert controller.filters.page == 1
    assert _ids(controller) == ["peugeot-0", "peugeot-1", "peugeot-2", "peugeot-3"]
    assert api.calls[-1][2] == 1
    assert navigator.url == f"{LISTING}?marca=Peugeot"


def test_apply_filters_increments_generation(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    async def scenario() -> None:
        await controller.open("")
        await controller.apply_filters(FilterSet(marca=frozenset({"Ford"})))

    asyncio.run(scenario())

    assert controller.generation == 2


def test_toggle_brand_adds_and_removes(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    async def scenario() -> None:
        await controller.open("")
        await controller.toggle_brand("Peugeot")
        assert controller.filters.marca == frozenset({"Peugeot"})
        await controller.toggle_brand("Peugeot")

    asyncio.run(scenario())

    assert controller.filters.marca == frozenset()
    assert navigator.replacements == [LISTING, f"{LISTING}?marca=Peugeot", LISTING]


def test_clear_filters(api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator) -> None:
    controller = _controller(api, navigator)

    async def scenario() -> None:
        await controller.open("marca=Peugeot&anio=2010,2020")
        await controller.clear_filters()

    asyncio.run(scenario())

    assert controller.filters == FilterSet()
    assert controller.total_docs == 16
    assert navigator.url == LISTING


def test_default_ranges_are_not_written_to_url(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    asyncio.run(controller.apply_filters(FilterSet(year_range=IntRange(1990, 2024))))

    assert controller.filters.year_range is None
    assert navigator.url == LISTING


def test_inverted_range_is_dropped_before_fetching(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    asyncio.run(
        controller.apply_filters(
            FilterSet(marca=frozenset({"Peugeot"}), price_range=IntRange(20_000_000, 10_000_000))
        )
    )

    assert controller.filters == FilterSet(marca=frozenset({"Peugeot"}))
    assert api.calls[-1][0].price_range is None
    assert controller.total_docs == 6
    assert navigator.url == f"{LISTING}?marca=Peugeot"
    assert FilterCodec().decode(navigator.current()) == controller.filters


# ==============================================================================
# Staleness
# ==============================================================================


async def _open(gated: GatedSearchApi, controller: ListingController, query: str) -> None:
    opened = asyncio.create_task(controller.open(query))
    await _wait_until(lambda: len(gated.gates) == 1)
    gated.gates[0].set()
    assert await opened is True


def test_stale_load_more_arriving_last_is_discarded(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    gated = GatedSearchApi(api)
    controller = _controller(gated, navigator)

    async def scenario() -> tuple[bool, bool]:
        await _open(gated, controller, "")
        more = asyncio.create_task(controller.load_more())
        await _wait_until(lambda: len(gated.gates) == 2)

        applied = asyncio.create_task(
            controller.apply_filters(FilterSet(marca=frozenset({"Peugeot"})))
        )
        await _wait_until(lambda: len(gated.gates) == 3)
        assert controller.state is ListingState.FETCHING_FILTERED

        gated.gates[2].set()
        applied_result = await applied
        gated.gates[1].set()
        more_result = await more
        return applied_result, more_result

    applied_result, more_result = asyncio.run(scenario())

    assert applied_result is True
    assert more_result is False
    assert _ids(controller) == ["peugeot-0", "peugeot-1", "peugeot-2", "peugeot-3"]
    assert controller.state is ListingState.IDLE
    assert navigator.replacements == [LISTING, f"{LISTING}?marca=Peugeot"]


def test_stale_load_more_arriving_first_is_discarded(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    gated = GatedSearchApi(api)
    controller = _controller(gated, navigator)

    async def scenario() -> None:
        await _open(gated, controller, "")
        first_page = _ids(controller)
        more = asyncio.create_task(controller.load_more())
        await _wait_until(lambda: len(gated.gates) == 2)
        applied = asyncio.create_task(
            controller.apply_filters(FilterSet(marca=frozenset({"Peugeot"})))
        )
        await _wait_until(lambda: len(gated.gates) == 3)

        gated.gates[1].set()
        assert await more is False
        assert _ids(controller) == first_page
        assert controller.state is ListingState.FETCHING_FILTERED

        gated.gates[2].set()
        assert await applied is True

    asyncio.run(scenario())

    assert _ids(controller) == ["peugeot-0", "peugeot-1", "peugeot-2", "peugeot-3"]


def test_superseded_filter_change_is_discarded(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    gated = GatedSearchApi(api)
    controller = _controller(gated, navigator)

    async def scenario() -> None:
        first = asyncio.create_task(controller.apply_filters(FilterSet(marca=frozenset({"Ford"}))))
        await _wait_until(lambda: len(gated.gates) == 1)
        second = asyncio.create_task(
            controller.apply_filters(FilterSet(marca=frozenset({"Peugeot"})))
        )
        await _wait_until(lambda: len(gated.gates) == 2)

        gated.gates[1].set()
        assert await second is True
        gated.gates[0].set()
        assert await first is False

    asyncio.run(scenario())

    assert controller.filters.marca == frozenset({"Peugeot"})
    assert all(vehicle.brand == "Peugeot" for vehicle in controller.vehicles)
    assert navigator.replacements == [f"{LISTING}?marca=Peugeot"]


def test_stale_error_is_discarded(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    gated = GatedSearchApi(api)
    gated.failures[1] = NetworkError("Search API is unreachable")
    controller = _controller(gated, navigator)

    async def scenario() -> None:
        await _open(gated, controller, "")
        more = asyncio.create_task(controller.load_more())
        await _wait_until(lambda: len(gated.gates) == 2)
        applied = asyncio.create_task(controller.toggle_brand("Ford"))
        await _wait_until(lambda: len(gated.gates) == 3)

        gated.gates[1].set()
        assert await more is False
        gated.gates[2].set()
        assert await applied is True

    asyncio.run(scenario())

    assert controller.error is None
    assert controller.filters.marca == frozenset({"Ford"})


def test_close_discards_list_and_in_flight_result(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    gated = GatedSearchApi(api)
    controller = _controller(gated, navigator)

    async def scenario() -> None:
        await _open(gated, controller, "")
        more = asyncio.create_task(controller.load_more())
        await _wait_until(lambda: len(gated.gates) == 2)

        controller.close()
        gated.gates[1].set()
        assert await more is False

    asyncio.run(scenario())

    assert controller.vehicles == ()
    assert controller.state is ListingState.IDLE
    assert len(navigator.replacements) == 1


# ==============================================================================
# Errors
# ==============================================================================


def test_network_error_keeps_list_and_is_retryable(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    failing = FailingSearchApi(api, {1: NetworkError("Search API is unreachable")})
    controller = _controller(failing, navigator)

    async def scenario() -> None:
        await controller.open("")
        before = _ids(controller)

        assert await controller.load_more() is False
        assert _ids(controller) == before
        assert isinstance(controller.error, NetworkError)
        assert controller.error.retryable is True
        assert controller.state is ListingState.IDLE
        assert len(navigator.replacements) == 1

        assert await controller.retry() is True

    asyncio.run(scenario())

    assert controller.error is None
    assert len(_ids(controller)) == 8
    assert len(navigator.replacements) == 2


def test_failures_are_stored_with_logging_enabled(
    api: InMemoryVehicleSearchApi,
    navigator: InMemoryUrlNavigator,
    caplog: pytest.LogCaptureFixture,
) -> None:
    failing = FailingSearchApi(
        api, {0: NetworkError("Search API is unreachable"), 1: RuntimeError("boom")}
    )
    controller = _controller(failing, navigator)

    async def scenario() -> None:
        assert await controller.open("") is False
        assert isinstance(controller.error, NetworkError)
        assert await controller.retry() is False
        assert isinstance(controller.error, InternalError)

    with caplog.at_level(logging.DEBUG, logger="usados_catalog.use_cases.listing_controller"):
        asyncio.run(scenario())

    warning = next(r for r in caplog.records if r.getMessage() == "Listing fetch failed")
    assert warning.error_code == "NETWORK_ERROR"
    assert warning.error_message == "Search API is unreachable"
    error = next(
        r for r in caplog.records if r.getMessage() == "Unexpected error during listing fetch"
    )
    assert error.levelno == logging.ERROR
    assert error.error_type == "RuntimeError"


def test_failed_filter_change_keeps_previous_filters(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    failing = FailingSearchApi(api, {1: NetworkError("Search API answered 503", status=503)})
    controller = _controller(failing, navigator)

    async def scenario() -> None:
        await controller.open("marca=Ford")
        await controller.apply_filters(FilterSet(marca=frozenset({"Peugeot"})))

    asyncio.run(scenario())

    assert controller.filters.marca == frozenset({"Ford"})
    assert all(vehicle.brand == "Ford" for vehicle in controller.vehicles)
    assert controller.error is not None
    assert controller.error.context["status"] == 503
    assert navigator.replacements == [f"{LISTING}?marca=Ford"]


def test_retry_reruns_failed_filter_change(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    failing = FailingSearchApi(api, {0: NetworkError("Search API is unreachable")})
    controller = _controller(failing, navigator)

    async def scenario() -> None:
        assert await controller.apply_filters(FilterSet(marca=frozenset({"Peugeot"}))) is False
        assert await controller.retry() is True

    asyncio.run(scenario())

    assert controller.filters.marca == frozenset({"Peugeot"})
    assert navigator.replacements == [f"{LISTING}?marca=Peugeot"]


def test_retry_without_failure_does_nothing(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    assert asyncio.run(controller.retry()) is False
    assert api.calls == []


def test_timeout_becomes_fetch_timeout_error(navigator: InMemoryUrlNavigator) -> None:
    controller = _controller(SlowSearchApi(), navigator, timeout_seconds=0.01)

    loaded = asyncio.run(controller.open(""))

    assert loaded is False
    assert isinstance(controller.error, FetchTimeoutError)
    assert controller.error.error_code == "UPSTREAM_TIMEOUT"
    assert controller.state is ListingState.IDLE
    assert navigator.replacements == []


def test_unexpected_error_is_stored_as_internal_error(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    failing = FailingSearchApi(api, {0: RuntimeError("boom")})
    controller = _controller(failing, navigator)

    loaded = asyncio.run(controller.open(""))

    assert loaded is False
    assert isinstance(controller.error, InternalError)
    assert controller.state is ListingState.IDLE


def test_malformed_backend_page_yields_empty_list(navigator: InMemoryUrlNavigator) -> None:
    class BrokenApi(SlowSearchApi):
        async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
            return {"allPhotos": "oops"}

    controller = _controller(BrokenApi(), navigator)

    loaded = asyncio.run(controller.open(""))

    assert loaded is True
    assert controller.vehicles == ()
    assert controller.error is None
    assert controller.has_next_page is False


# ==============================================================================
# Sorting
# ==============================================================================


def test_change_sort_never_fetches(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)
    asyncio.run(controller.open("marca=Ford"))
    calls_before = len(api.calls)

    projected = controller.change_sort(SortKey.PRICE_DESC)

    assert len(api.calls) == calls_before
    assert controller.state is ListingState.IDLE
    assert [vehicle.id for vehicle in projected] == ["ford-3", "ford-2", "ford-1", "ford-0"]
    assert navigator.url == f"{LISTING}?marca=Ford&sort=precio_desc"


def test_sort_applies_to_appended_pages(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    async def scenario() -> None:
        await controller.open("marca=Ford&sort=km_asc")
        await controller.load_more()

    asyncio.run(scenario())

    mileages = [vehicle.mileage for vehicle in controller.vehicles]
    assert mileages == sorted(mileages)
    assert len(mileages) == 8
    assert navigator.url == f"{LISTING}?marca=Ford&sort=km_asc"


def test_change_sort_accepts_raw_strings(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    controller = _controller(api, navigator)

    controller.change_sort("bogus")

    assert controller.sort_key is SortKey.NONE
    assert navigator.url == LISTING


# ==============================================================================
# Read views
# ==============================================================================


def test_snapshot(api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator) -> None:
    controller = _controller(api, navigator)
    asyncio.run(controller.open("marca=Peugeot&sort=precio_asc"))

    snapshot = controller.snapshot()

    assert snapshot.state is ListingState.IDLE
    assert snapshot.sort_key is SortKey.PRICE_ASC
    assert snapshot.total_docs == 6
    assert snapshot.has_next_page is True
    assert snapshot.next_cursor == 2
    assert snapshot.error is None
    assert snapshot.query == "marca=Peugeot&sort=precio_asc"
    assert snapshot.vehicles == controller.vehicles


def test_seo_reflects_current_url(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    policy = CanonicalUrlPolicy(base_url="https://autos.example.com")
    controller = _controller(api, navigator, seo_policy=policy)

    asyncio.run(controller.open("marca=Peugeot"))
    indexable = controller.seo()
    controller.change_sort(SortKey.KM_DESC)
    sorted_view = controller.seo()

    assert indexable is not None and indexable.index is True
    assert indexable.canonical_url == "https://autos.example.com/usados/vehiculos?marca=Peugeot"
    assert sorted_view is not None and sorted_view.robots == "noindex, follow"
    assert sorted_view.canonical_url == indexable.canonical_url


def test_seo_without_policy_is_none(
    api: InMemoryVehicleSearchApi, navigator: InMemoryUrlNavigator
) -> None:
    assert _controller(api, navigator).seo() is None
