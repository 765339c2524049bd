from __future__ import annotations

import logging

from usados_catalog.domain.vehicle import MappedPage, VehicleRecord

logger = logging.getLogger(__name__)


class AccumulationStore:
    """
    The vehicle list currently on display.

    - replace(): first page of a filter configuration (resets everything)
    - append(): "load more" page, merged after the existing items
    - No id ever appears twice
    - append() never reorders items that were already present
    - The latest merged page is authoritative for "is there more", and for
      the total whenever it reports one

    Owned and mutated by the listing controller only; everything else reads
    the tuple/frozenset views.
    """

    def __init__(self) -> None:
        self._vehicles: list[VehicleRecord] = []
        self._seen_ids: set[str] = set()
        self._total_docs = 0
        self._has_next_page = False
        self._next_cursor: int | None = None

    @property
    def vehicles(self) -> tuple[VehicleRecord, ...]:
        return tuple(self._vehicles)

    @property
    def seen_ids(self) -> frozenset[str]:
        return frozenset(self._seen_ids)

    @property
    def total_docs(self) -> int:
        return self._total_docs

    @property
    def has_next_page(self) -> bool:
        return self._has_next_page

    @property
    def next_cursor(self) -> int | None:
        return self._next_cursor

    @property
    def can_load_more(self) -> bool:
        return self._has_next_page and self._next_cursor is not None

    def __len__(self) -> int:
        return len(self._vehicles)

    def replace(self, page: MappedPage) -> None:
        self._vehicles = []
        self._seen_ids = set()
        self._merge(page.vehicles)
        self._total_docs = page.total_docs or 0
        self._has_next_page = page.has_next_page
        self._next_cursor = page.next_cursor

    def append(self, page: MappedPage) -> int:
        """
        Merge a "load more" page.

        Returns:
            Number of vehicles actually added (0 when the list is exhausted)
        """
        if not self.can_load_more:
            logger.debug(
                "Ignoring append on exhausted list",
                extra={"has_next_page": self._has_next_page, "next_cursor": self._next_cursor},
            )
            return 0

        added = self._merge(page.vehicles)
        self._has_next_page = page.has_next_page
        self._next_cursor = page.next_cursor
        if page.total_docs is not None:
            self._total_docs = page.total_docs
        return added

    def clear(self) -> None:
        self.replace(MappedPage.empty())

    def _merge(self, vehicles: tuple[VehicleRecord, ...]) -> int:
        added = 0
        for vehicle in vehicles:
            if vehicle.id in self._seen_ids:
                continue
            self._seen_ids.add(vehicle.id)
            self._vehicles.append(vehicle)
            added += 1
        return added
