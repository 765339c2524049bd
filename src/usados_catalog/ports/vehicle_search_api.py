from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from usados_catalog.domain.filters import FilterSet


class VehicleSearchApi(ABC):
    """
    Port for the remote inventory.

    Pages come back as raw, untrusted mappings; PageMapper is responsible for
    normalizing them. Only documents/totalDocs/hasNextPage/nextPageCursor are
    load-bearing, and nextPageCursor is known to be unreliable.

    Contract:
        - filters, limit and cursor are pre-validated by the caller
        - Transport failures raise NetworkError, timeouts FetchTimeoutError
    """

    @abstractmethod
    async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
        """
        Fetch one page of vehicles.

        Args:
            filters: Filter criteria (AND semantics) - pre-validated
            limit: Page size
            cursor: Page index to fetch (1-based)

        Returns:
            Raw backend page
        """
        ...

    @abstractmethod
    async def get_by_id(self, vehicle_id: str) -> Mapping[str, Any] | None:
        """
        Fetch a single raw vehicle document.

        Returns:
            Raw document, or None when the backend does not know the id
        """
        ...
