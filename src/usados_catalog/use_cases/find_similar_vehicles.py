from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from usados_catalog.domain.errors import FetchTimeoutError
from usados_catalog.domain.filters import FilterSet, IntRange
from usados_catalog.domain.page_mapper import PageMapper
from usados_catalog.domain.vehicle import VehicleRecord
from usados_catalog.infra.config import DEFAULT_API_TIMEOUT_MS
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi

logger = logging.getLogger(__name__)

FETCH_LIMIT = 6
MAX_RESULTS = 5
PRICE_WINDOW = 1_000_000


class SimilarBy(str, Enum):
    BRAND = "brand"
    PRICE = "price"


@dataclass(frozen=True, slots=True)
class FindSimilarVehiclesRequest:
    vehicle: VehicleRecord
    by: SimilarBy = SimilarBy.BRAND


@dataclass(frozen=True, slots=True)
class FindSimilarVehiclesResponse:
    vehicles: tuple[VehicleRecord, ...]


class FindSimilarVehicles:
    """
    Suggestions shown next to a vehicle detail.

    - brand: same brand
    - price: price within +/- PRICE_WINDOW (lower bound clamped at 0)

    Fetches FETCH_LIMIT candidates, drops the reference vehicle and keeps at
    most MAX_RESULTS. A reference without the needed attribute yields no
    suggestions and no fetch.
    """

    def __init__(
        self,
        search_api: VehicleSearchApi,
        timeout_seconds: float = DEFAULT_API_TIMEOUT_MS / 1000,
    ) -> None:
        self._search_api = search_api
        self._timeout_seconds = timeout_seconds

    async def execute(self, request: FindSimilarVehiclesRequest) -> FindSimilarVehiclesResponse:
        filters = self._filters_for(request.vehicle, request.by)
        if filters is None:
            logger.debug(
                "No similarity criteria for vehicle",
                extra={"vehicle_id": request.vehicle.id, "by": request.by.value},
            )
            return FindSimilarVehiclesResponse(vehicles=())

        try:
            raw = await asyncio.wait_for(
                self._search_api.search(filters, FETCH_LIMIT, 1),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError:
            raise FetchTimeoutError(self._timeout_seconds, vehicle_id=request.vehicle.id) from None

        page = PageMapper.map(raw, requested_cursor=1)
        similar = [vehicle for vehicle in page.vehicles if vehicle.id != request.vehicle.id]
        return FindSimilarVehiclesResponse(vehicles=tuple(similar[:MAX_RESULTS]))

    @staticmethod
    def _filters_for(vehicle: VehicleRecord, by: SimilarBy) -> FilterSet | None:
        if by is SimilarBy.BRAND:
            if not vehicle.brand:
                return None
            return FilterSet(marca=frozenset({vehicle.brand}))

        if vehicle.price is None or vehicle.price <= 0:
            return None
        price = int(vehicle.price)
        return FilterSet(
            price_range=IntRange(max(0, price - PRICE_WINDOW), price + PRICE_WINDOW)
        )
