from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from usados_catalog.domain.errors import FetchTimeoutError, PagingValidationError
from usados_catalog.domain.filters import FilterSet
from usados_catalog.domain.page_mapper import PageMapper
from usados_catalog.domain.sorting import SortKey, SortProjector
from usados_catalog.domain.vehicle import MappedPage, VehicleRecord
from usados_catalog.infra.config import DEFAULT_API_TIMEOUT_MS
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi

logger = logging.getLogger(__name__)

MAX_LIMIT = 200


@dataclass(frozen=True, slots=True)
class SearchVehiclesRequest:
    filters: FilterSet
    limit: int
    sort_key: SortKey = SortKey.NONE

    def validate(self) -> None:
        """
        Raises:
            PagingValidationError: If limit is outside 1..MAX_LIMIT
            FilterValidationError: If a filter is invalid
        """
        if self.limit < 1 or self.limit > MAX_LIMIT:
            raise PagingValidationError(
                errors=[
                    {
                        "field": "limit",
                        "message": f"Must be between 1 and {MAX_LIMIT}",
                        "code": "OUT_OF_RANGE",
                    }
                ],
                limit=self.limit,
            )
        self.filters.validate()


@dataclass(frozen=True, slots=True)
class SearchVehiclesResponse:
    page: MappedPage
    vehicles: tuple[VehicleRecord, ...]  # page.vehicles projected through sort_key


class SearchVehicles:
    """
    One-shot listing page: fetch, normalize, sort.

    The cursor is the filter's page. Stateless; the accumulated "load more"
    flow lives in ListingController.
    """

    def __init__(
        self,
        search_api: VehicleSearchApi,
        timeout_seconds: float = DEFAULT_API_TIMEOUT_MS / 1000,
    ) -> None:
        self._search_api = search_api
        self._timeout_seconds = timeout_seconds

    async def execute(self, request: SearchVehiclesRequest) -> SearchVehiclesResponse:
        """
        Raises:
            PagingValidationError: If limit is invalid
            FilterValidationError: If filters are invalid
            NetworkError: If the backend is unreachable
            FetchTimeoutError: If the backend did not answer in time
        """
        request.validate()
        cursor = request.filters.page

        try:
            raw = await asyncio.wait_for(
                self._search_api.search(request.filters, request.limit, cursor),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise FetchTimeoutError(self._timeout_seconds, cursor=cursor) from None

        page = PageMapper.map(raw, requested_cursor=cursor)
        logger.debug(
            "Vehicle page loaded",
            extra={"cursor": cursor, "count": len(page.vehicles), "total_docs": page.total_docs},
        )
        return SearchVehiclesResponse(
            page=page,
            vehicles=SortProjector.project(page.vehicles, request.sort_key),
        )
