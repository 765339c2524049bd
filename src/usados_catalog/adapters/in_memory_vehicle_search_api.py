from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from usados_catalog.domain.filters import FilterSet, IntRange
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi


class InMemoryVehicleSearchApi(VehicleSearchApi):
    """
    Canonical contract implementation for tests.

    - Stores raw documents in insertion order
    - Applies AND-semantics filtering
    - Applies 1-based cursor paging AFTER filtering
    - Answers with the photos endpoint envelope ({"allPhotos": {...}})
    - stale_cursor=True reproduces the backend quirk of echoing the requested
      cursor as nextPage instead of advancing it
    """

    def __init__(self, documents: list[Mapping[str, Any]], stale_cursor: bool = False) -> None:
        self._documents = documents
        self._stale_cursor = stale_cursor
        self.calls: list[tuple[FilterSet, int, int]] = []

    async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
        self.calls.append((filters, limit, cursor))

        matches = [doc for doc in self._documents if self._matches(doc, filters)]
        start = (cursor - 1) * limit
        docs = matches[start : start + limit]
        has_next_page = start + limit < len(matches)

        if not has_next_page:
            next_page = None
        elif self._stale_cursor:
            next_page = cursor
        else:
            next_page = cursor + 1

        return {
            "allPhotos": {
                "docs": docs,
                "totalDocs": len(matches),
                "hasNextPage": has_next_page,
                "nextPage": next_page,
            }
        }

    async def get_by_id(self, vehicle_id: str) -> Mapping[str, Any] | None:
        for doc in self._documents:
            if str(doc.get("_id") or doc.get("id")) == vehicle_id:
                return doc
        return None

    def _matches(self, doc: Mapping[str, Any], filters: FilterSet) -> bool:
        if filters.marca and str(doc.get("marca", "")).lower() not in {
            brand.lower() for brand in filters.marca
        }:
            return False
        if filters.caja and doc.get("caja") not in {member.value for member in filters.caja}:
            return False
        if filters.combustible and doc.get("combustible") not in {
            member.value for member in filters.combustible
        }:
            return False
        if not _in_range(doc.get("anio"), filters.year_range):
            return False
        if not _in_range(doc.get("precio"), filters.price_range):
            return False
        if not _in_range(doc.get("kilometraje"), filters.km_range):
            return False
        return True


def _in_range(value: Any, rng: IntRange | None) -> bool:
    if rng is None:
        return True
    if not isinstance(value, (int, float)):
        return False
    return rng.min <= value <= rng.max
