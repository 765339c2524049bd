from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class VehicleImages:
    principal: str | None = None
    hover: str | None = None
    extra: tuple[str, ...] = ()

    def all_urls(self) -> tuple[str, ...]:
        """Principal, hover and extras in display order, without duplicates."""
        urls: list[str] = []
        for url in (self.principal, self.hover, *self.extra):
            if url and url not in urls:
                urls.append(url)
        return tuple(urls)


@dataclass(frozen=True, slots=True)
class VehicleRecord:
    id: str
    brand: str | None = None
    model: str | None = None
    version: str | None = None
    price: int | float | None = None
    year: int | None = None
    mileage: int | float | None = None
    transmission: str | None = None
    fuel: str | None = None
    images: VehicleImages = field(default_factory=VehicleImages)

    @property
    def title(self) -> str:
        parts = [part.strip() for part in (self.brand or "", self.model or "") if part.strip()]
        return " ".join(parts)


@dataclass(frozen=True, slots=True)
class MappedPage:
    """
    One backend page normalized for display.

    total_docs is None when the backend did not report a total.

    next_cursor is the corrected pagination cursor: None whenever
    has_next_page is False, and strictly greater than requested_cursor
    whenever has_next_page is True and a cursor was requested.
    """

    vehicles: tuple[VehicleRecord, ...] = ()
    total_docs: int | None = None
    has_next_page: bool = False
    next_cursor: int | None = None
    requested_cursor: int | None = None

    @classmethod
    def empty(cls, requested_cursor: int | None = None) -> MappedPage:
        return cls(total_docs=0, requested_cursor=requested_cursor)

    @property
    def ids(self) -> list[str]:
        return [vehicle.id for vehicle in self.vehicles]
