"""Get vehicle by ID use case."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from usados_catalog.domain.errors import FetchTimeoutError, NotFoundError, ValidationError
from usados_catalog.domain.page_mapper import PageMapper
from usados_catalog.domain.vehicle import VehicleRecord
from usados_catalog.infra.config import DEFAULT_API_TIMEOUT_MS
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi


@dataclass(frozen=True, slots=True)
class GetVehicleByIdRequest:
    """Request to get a vehicle by ID."""

    vehicle_id: str


@dataclass(frozen=True, slots=True)
class GetVehicleByIdResponse:
    """Response containing the requested vehicle (with every image resolved)."""

    vehicle: VehicleRecord


class GetVehicleById:
    """
    Use case for retrieving a single vehicle by ID.

    Responsibilities:
    - Reject blank ids
    - Delegate to the search API
    - Raise NotFoundError if the backend does not know the id or the
      document cannot be mapped
    """

    def __init__(
        self,
        search_api: VehicleSearchApi,
        timeout_seconds: float = DEFAULT_API_TIMEOUT_MS / 1000,
    ) -> None:
        self._search_api = search_api
        self._timeout_seconds = timeout_seconds

    async def execute(self, request: GetVehicleByIdRequest) -> GetVehicleByIdResponse:
        """
        Execute the get vehicle by ID use case.

        Raises:
            ValidationError: If vehicle_id is blank
            NotFoundError: If the vehicle doesn't exist
            NetworkError: If the backend is unreachable
        """
        vehicle_id = request.vehicle_id.strip()
        if not vehicle_id:
            raise ValidationError(
                errors=[
                    {
                        "field": "vehicle_id",
                        "message": "Must not be blank",
                        "code": "BLANK_ID",
                    }
                ]
            )

        try:
            raw = await asyncio.wait_for(
                self._search_api.get_by_id(vehicle_id), timeout=self._timeout_seconds
            )
        except asyncio.TimeoutError:
            raise FetchTimeoutError(self._timeout_seconds, vehicle_id=vehicle_id) from None

        vehicle = PageMapper.map_vehicle(raw, include_extras=True) if raw is not None else None
        if vehicle is None:
            raise NotFoundError(resource="Vehicle", identifier=vehicle_id)

        return GetVehicleByIdResponse(vehicle=vehicle)
