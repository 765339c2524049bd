from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from numbers import Number

from usados_catalog.domain.vehicle import VehicleRecord


class SortKey(str, Enum):
    PRICE_DESC = "precio_desc"
    PRICE_ASC = "precio_asc"
    KM_DESC = "km_desc"
    KM_ASC = "km_asc"
    NONE = "none"

    @classmethod
    def parse(cls, value: str | None) -> SortKey:
        """Unknown or empty values mean "no sorting"."""
        if not value:
            return cls.NONE
        try:
            return cls(value.strip())
        except ValueError:
            return cls.NONE


# sort key -> (VehicleRecord attribute, descending)
_SORT_FIELDS: dict[SortKey, tuple[str, bool]] = {
    SortKey.PRICE_DESC: ("price", True),
    SortKey.PRICE_ASC: ("price", False),
    SortKey.KM_DESC: ("mileage", True),
    SortKey.KM_ASC: ("mileage", False),
}


def _numeric(value: object) -> float:
    # Missing or non-numeric values compare as 0.
    if isinstance(value, bool) or not isinstance(value, Number):
        return 0
    return value  # type: ignore[return-value]


class SortProjector:
    """
    Stateless re-ordering of an already materialized vehicle list.

    - Never mutates the input and never triggers a fetch
    - Stable: ties keep their original relative order
    - A missing or non-numeric price/mileage compares as 0
    """

    @staticmethod
    def project(
        vehicles: Sequence[VehicleRecord], sort_key: SortKey | str | None
    ) -> tuple[VehicleRecord, ...]:
        key = sort_key if isinstance(sort_key, SortKey) else SortKey.parse(sort_key)
        if key is SortKey.NONE:
            return tuple(vehicles)

        attribute, descending = _SORT_FIELDS[key]
        # sorted() is stable in both directions when reverse=True
        return tuple(
            sorted(
                vehicles,
                key=lambda vehicle: _numeric(getattr(vehicle, attribute, None)),
                reverse=descending,
            )
        )
