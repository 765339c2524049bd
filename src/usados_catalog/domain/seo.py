"""Canonical URL and robots policy for the listing page.

Only "valuable" filters participate in the canonical URL. Pagination, sorting
and UX parameters, as well as anything unknown, make the URL non-indexable so
temporary or injected variants never get indexed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from usados_catalog.domain.filter_codec import QueryParams, flatten_query
from usados_catalog.domain.vehicle import VehicleRecord

LISTING_PATH = "/usados/vehiculos"

INDEXABLE_PARAMS: frozenset[str] = frozenset(
    {
        "marca",
        "modelo",
        "anio",
        "anioDesde",
        "anioHasta",
        "combustible",
        "transmision",
        "caja",
        "precio",
        "precioDesde",
        "precioHasta",
    }
)

NON_INDEXABLE_PARAMS: frozenset[str] = frozenset(
    {"page", "pagina", "sort", "order", "orden", "view", "layout"}
)


def absolute_url(base_url: str, path: str) -> str:
    base = base_url.rstrip("/")
    return f"{base}{path if path.startswith('/') else '/' + path}"


@dataclass(frozen=True, slots=True)
class SeoDirectives:
    canonical_url: str
    index: bool = True
    follow: bool = True

    @property
    def robots(self) -> str:
        return f"{'index' if self.index else 'noindex'}, {'follow' if self.follow else 'nofollow'}"


class CanonicalUrlPolicy:
    """
    Allow-list canonical policy.

    - Canonical keeps allow-listed keys only, alphabetically, first value,
      trimmed, empty values skipped
    - Any deny-listed or unknown key forces noindex (follow is kept)
    """

    def __init__(self, base_url: str, path: str = LISTING_PATH) -> None:
        self._base_url = base_url
        self._path = path

    @property
    def base_url(self) -> str:
        return self._base_url

    def indexable_params(self, params: QueryParams) -> dict[str, str]:
        values = flatten_query(params)
        picked: dict[str, str] = {}
        for key in sorted(values):
            if key not in INDEXABLE_PARAMS:
                continue
            value = values[key].strip()
            if value:
                picked[key] = value
        return picked

    def has_non_indexable_params(self, params: QueryParams) -> bool:
        """True for any deny-listed key, and for any key the allow-list does not know."""
        return any(
            key in NON_INDEXABLE_PARAMS or key not in INDEXABLE_PARAMS
            for key in flatten_query(params)
        )

    def canonical_url(self, params: QueryParams) -> str:
        picked = self.indexable_params(params)
        if not picked:
            return absolute_url(self._base_url, self._path)
        return absolute_url(self._base_url, f"{self._path}?{urlencode(picked, safe=',')}")

    def evaluate(self, params: QueryParams) -> SeoDirectives:
        return SeoDirectives(
            canonical_url=self.canonical_url(params),
            index=not self.has_non_indexable_params(params),
        )


def build_item_list_json_ld(
    vehicles: Sequence[VehicleRecord], base_url: str
) -> dict[str, Any] | None:
    """schema.org ItemList for the listing, or None when there is nothing to list."""
    if not vehicles:
        return None

    elements = []
    for position, vehicle in enumerate(vehicles, start=1):
        name = vehicle.title or "Vehículo usado"
        if vehicle.year:
            name = f"{name} {vehicle.year}"
        elements.append(
            {
                "@type": "ListItem",
                "position": position,
                "url": absolute_url(base_url, f"/usados/{vehicle.id}"),
                "name": name,
            }
        )

    return {
        "@context": "https://schema.org",
        "@type": "ItemList",
        "name": "Catálogo de Vehículos Usados Multimarca",
        "itemListElement": elements,
        "numberOfItems": len(elements),
    }
