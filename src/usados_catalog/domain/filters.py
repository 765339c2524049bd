from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from usados_catalog.domain.errors import FilterValidationError


class Gearbox(str, Enum):
    MANUAL = "Manual"
    AUTOMATIC = "Automático"
    SEQUENTIAL = "Secuencial"


class Fuel(str, Enum):
    NAFTA = "Nafta"
    DIESEL = "Diesel"
    GAS = "Gas"


@dataclass(frozen=True, slots=True)
class IntRange:
    min: int
    max: int

    def validate(self) -> None:
        """
        Validate range bounds.

        Raises:
            FilterValidationError: If min is greater than max
        """
        if self.min > self.max:
            raise FilterValidationError(
                "range min cannot be greater than max", min=self.min, max=self.max
            )


@dataclass(frozen=True, slots=True)
class FilterDefaults:
    """
    Default bounds for every range filter.

    A range equal to its default is treated as "unset": it is never encoded
    in the URL and decodes back to None. Passed explicitly to FilterCodec so
    deployments (and tests) can tune it.
    """

    year: IntRange = IntRange(1990, 2024)
    price: IntRange = IntRange(5_000_000, 100_000_000)
    km: IntRange = IntRange(0, 200_000)


@dataclass(frozen=True, slots=True)
class FilterSet:
    marca: frozenset[str] = field(default_factory=frozenset)
    caja: frozenset[Gearbox] = field(default_factory=frozenset)
    combustible: frozenset[Fuel] = field(default_factory=frozenset)
    year_range: IntRange | None = None
    price_range: IntRange | None = None
    km_range: IntRange | None = None
    page: int = 1

    def validate(self) -> None:
        """
        Validate filter parameters.

        Raises:
            FilterValidationError: If a range is inverted or page is not positive
        """
        for rng in (self.year_range, self.price_range, self.km_range):
            if rng is not None:
                rng.validate()
        if self.page < 1:
            raise FilterValidationError("page must be >= 1", page=self.page)

    def has_any_filter(self) -> bool:
        """True when at least one filter (not counting page) is active."""
        return bool(
            self.marca
            or self.caja
            or self.combustible
            or self.year_range
            or self.price_range
            or self.km_range
        )

    def with_page(self, page: int) -> FilterSet:
        return replace(self, page=page)

    def toggle_brand(self, brand: str) -> FilterSet:
        """Add the brand if absent, remove it if present. Resets to page 1."""
        if brand in self.marca:
            brands = self.marca - {brand}
        else:
            brands = self.marca | {brand}
        return replace(self, marca=frozenset(brands), page=1)
