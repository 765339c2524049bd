"""Listing controller: URL-driven filter, sort and "load more" orchestration.

Single writer, cooperative asyncio. Exactly one logical fetch is active per
controller; every fetch is tagged with the request generation it belongs to
and its outcome (result or error) is dropped on arrival when a newer filter
change has superseded it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial

from usados_catalog.domain.accumulation import AccumulationStore
from usados_catalog.domain.errors import DomainError, FetchTimeoutError, InternalError
from usados_catalog.domain.filter_codec import FilterCodec, QueryParams
from usados_catalog.domain.filters import FilterSet
from usados_catalog.domain.page_mapper import PageMapper
from usados_catalog.domain.seo import LISTING_PATH, CanonicalUrlPolicy, SeoDirectives
from usados_catalog.domain.sorting import SortKey, SortProjector
from usados_catalog.domain.vehicle import MappedPage, VehicleRecord
from usados_catalog.infra.config import DEFAULT_API_TIMEOUT_MS, DEFAULT_LIST_PAGE_SIZE
from usados_catalog.ports.url_navigator import UrlNavigator
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi

logger = logging.getLogger(__name__)


class ListingState(str, Enum):
    IDLE = "idle"
    FETCHING_INITIAL = "fetching_initial"
    FETCHING_FILTERED = "fetching_filtered"
    FETCHING_MORE = "fetching_more"


@dataclass(frozen=True, slots=True)
class ListingSnapshot:
    """Read-only view handed to the rendering layer."""

    state: ListingState
    filters: FilterSet
    sort_key: SortKey
    vehicles: tuple[VehicleRecord, ...]
    total_docs: int
    has_next_page: bool
    next_cursor: int | None
    error: DomainError | None
    query: str


class ListingController:
    """
    Orchestrates FilterCodec, PageMapper, AccumulationStore and SortProjector.

    State machine:
    - open()                         -> FETCHING_INITIAL
    - apply_filters()/clear_filters() -> FETCHING_FILTERED (from any state,
      page 1, generation + 1)
    - load_more()                    -> FETCHING_MORE (only from IDLE with a
      next page; rejected otherwise)
    - change_sort()                  -> no transition, no fetch

    Every successful return to IDLE performs exactly one URL replace.
    Failures are stored on the controller (never raised) and leave the
    accumulated list untouched.
    """

    def __init__(
        self,
        search_api: VehicleSearchApi,
        navigator: UrlNavigator,
        codec: FilterCodec | None = None,
        page_size: int = DEFAULT_LIST_PAGE_SIZE,
        timeout_seconds: float = DEFAULT_API_TIMEOUT_MS / 1000,
        path: str = LISTING_PATH,
        seo_policy: CanonicalUrlPolicy | None = None,
    ) -> None:
        self._search_api = search_api
        self._navigator = navigator
        self._codec = codec or FilterCodec()
        self._page_size = page_size
        self._timeout_seconds = timeout_seconds
        self._path = path
        self._seo_policy = seo_policy

        self._store = AccumulationStore()
        self._state = ListingState.IDLE
        self._generation = 0
        self._filters = FilterSet()
        self._requested_filters = FilterSet()
        self._sort_key = SortKey.NONE
        self._error: DomainError | None = None
        self._retry: Callable[[], Awaitable[bool]] | None = None

    # ------------------------------------------------------------------
    # read views
    # ------------------------------------------------------------------

    @property
    def state(self) -> ListingState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def filters(self) -> FilterSet:
        return self._filters

    @property
    def sort_key(self) -> SortKey:
        return self._sort_key

    @property
    def error(self) -> DomainError | None:
        return self._error

    @property
    def has_next_page(self) -> bool:
        return self._store.has_next_page

    @property
    def total_docs(self) -> int:
        return self._store.total_docs

    @property
    def vehicles(self) -> tuple[VehicleRecord, ...]:
        # Re-derived on every read so it never lags behind the store
        return SortProjector.project(self._store.vehicles, self._sort_key)

    def query(self) -> str:
        return self._codec.encode(self._filters, self._sort_key)

    def snapshot(self) -> ListingSnapshot:
        return ListingSnapshot(
            state=self._state,
            filters=self._filters,
            sort_key=self._sort_key,
            vehicles=self.vehicles,
            total_docs=self._store.total_docs,
            has_next_page=self._store.has_next_page,
            next_cursor=self._store.next_cursor,
            error=self._error,
            query=self.query(),
        )

    def seo(self) -> SeoDirectives | None:
        if self._seo_policy is None:
            return None
        return self._seo_policy.evaluate(self._navigator.current())

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    async def open(self, query: QueryParams | None = None) -> bool:
        """Load the page described by the URL (current navigator URL by default)."""
        if query is None:
            query = self._navigator.current()
        self._sort_key = self._codec.decode_sort(query)
        filters = self._codec.decode(query)
        return await self._load_first_page(filters, ListingState.FETCHING_INITIAL)

    async def apply_filters(self, filters: FilterSet) -> bool:
        return await self._load_first_page(
            self._codec.normalize(filters).with_page(1), ListingState.FETCHING_FILTERED
        )

    async def clear_filters(self) -> bool:
        return await self.apply_filters(FilterSet())

    async def toggle_brand(self, brand: str) -> bool:
        # Based on the latest requested filters, not the last committed ones
        return await self.apply_filters(self._requested_filters.toggle_brand(brand))

    async def load_more(self) -> bool:
        """
        Fetch and append the next page.

        Returns:
            True when a page was merged, False when rejected, failed or stale
        """
        if self._state is not ListingState.IDLE or not self._store.can_load_more:
            logger.info(
                "Load more rejected",
                extra={
                    "state": self._state.value,
                    "has_next_page": self._store.has_next_page,
                    "next_cursor": self._store.next_cursor,
                },
            )
            return False

        generation = self._generation
        cursor = self._store.next_cursor
        if cursor is None:
            return False

        self._state = ListingState.FETCHING_MORE
        self._error = None
        try:
            page = await self._fetch_page(generation, self._filters, cursor)
        except Exception as exc:
            self._fail(exc, retry=self.load_more)
            return False

        if page is None:
            return False

        added = self._store.append(page)
        logger.debug(
            "Appended page",
            extra={"cursor": cursor, "added": added, "total_loaded": len(self._store)},
        )
        self._settle()
        return True

    def change_sort(self, sort_key: SortKey | str | None) -> tuple[VehicleRecord, ...]:
        """Re-order the loaded list and record the sort in the URL. Never fetches."""
        self._sort_key = sort_key if isinstance(sort_key, SortKey) else SortKey.parse(sort_key)
        self._replace_url()
        return self.vehicles

    async def retry(self) -> bool:
        """Re-run the last failed operation, if any."""
        if self._retry is None:
            return False
        retry, self._retry = self._retry, None
        return await retry()

    def close(self) -> None:
        """Discard the accumulated list (view unmounted). In-flight results become stale."""
        self._generation += 1
        self._store.clear()
        self._state = ListingState.IDLE
        self._error = None
        self._retry = None

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    async def _load_first_page(self, filters: FilterSet, state: ListingState) -> bool:
        self._generation += 1
        generation = self._generation
        self._state = state
        self._requested_filters = filters
        self._error = None

        try:
            page = await self._fetch_page(generation, filters, filters.page)
        except Exception as exc:
            self._fail(exc, retry=partial(self._load_first_page, filters, state))
            return False

        if page is None:
            return False

        self._store.replace(page)
        self._filters = filters
        self._settle()
        return True

    async def _fetch_page(
        self, generation: int, filters: FilterSet, cursor: int
    ) -> MappedPage | None:
        """
        Fetch and map one page.

        Returns:
            The mapped page, or None when the generation went stale meanwhile

        Raises:
            FetchTimeoutError: If the fetch exceeded its time budget
            Exception: Whatever the search API raised (current generation only)
        """
        try:
            raw = await asyncio.wait_for(
                self._search_api.search(filters, self._page_size, cursor),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            if self._is_stale(generation, cursor):
                return None
            raise FetchTimeoutError(self._timeout_seconds, cursor=cursor) from None
        except Exception:
            if self._is_stale(generation, cursor):
                return None
            raise

        if self._is_stale(generation, cursor):
            return None
        return PageMapper.map(raw, requested_cursor=cursor)

    def _is_stale(self, generation: int, cursor: int) -> bool:
        if generation == self._generation:
            return False
        logger.debug(
            "Discarding stale response",
            extra={"generation": generation, "current_generation": self._generation, "cursor": cursor},
        )
        return True

    def _settle(self) -> None:
        self._state = ListingState.IDLE
        self._error = None
        self._retry = None
        self._replace_url()

    def _fail(self, exc: Exception, retry: Callable[[], Awaitable[bool]]) -> None:
        if isinstance(exc, DomainError):
            error = exc
            logger.warning(
                "Listing fetch failed",
                extra={
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "retryable": exc.retryable,
                    "state": self._state.value,
                },
            )
        else:
            error = InternalError("Unexpected error loading vehicles")
            logger.error(
                "Unexpected error during listing fetch",
                exc_info=exc,
                extra={"error_type": type(exc).__name__, "state": self._state.value},
            )

        self._state = ListingState.IDLE
        self._error = error
        self._retry = retry

    def _replace_url(self) -> None:
        self._navigator.replace(self._path, self.query())
