"""Encode/decode between FilterSet and the listing URL query string.

The query string is the single source of truth for the listing state, so the
encoding must be canonical: the same filters always produce the same string.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from enum import Enum
from typing import TypeVar
from urllib.parse import parse_qsl, urlencode

from usados_catalog.domain.errors import FilterValidationError
from usados_catalog.domain.filters import FilterDefaults, FilterSet, Fuel, Gearbox, IntRange
from usados_catalog.domain.sorting import SortKey

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

QueryParams = str | Mapping[str, str | Sequence[str]]

# URL keys, in the order they are emitted
ANIO = "anio"
CAJA = "caja"
COMBUSTIBLE = "combustible"
KM = "km"
MARCA = "marca"
PAGE = "page"
PRECIO = "precio"
SORT = "sort"


class FilterCodec:
    """
    Pure, stateless codec between FilterSet and a canonical query string.

    Encoding:
    - Keys in fixed alphabetical order
    - Set fields joined with commas (elements sorted)
    - Ranges as "min,max", omitted when unset or equal to their default
    - page omitted when 1, sort omitted when none

    Decoding never raises: malformed values are dropped silently.
    """

    def __init__(self, defaults: FilterDefaults | None = None) -> None:
        self._defaults = defaults or FilterDefaults()

    @property
    def defaults(self) -> FilterDefaults:
        return self._defaults

    # ------------------------------------------------------------------
    # encode
    # ------------------------------------------------------------------

    def encode(self, filters: FilterSet, sort: SortKey = SortKey.NONE) -> str:
        return urlencode(self.to_params(filters, sort), safe=",")

    def to_params(self, filters: FilterSet, sort: SortKey = SortKey.NONE) -> dict[str, str]:
        """Ordered key/value pairs for the query string."""
        filters = self.normalize(filters)
        params: dict[str, str] = {}

        if filters.year_range is not None:
            params[ANIO] = _format_range(filters.year_range)
        if filters.caja:
            params[CAJA] = _join(member.value for member in filters.caja)
        if filters.combustible:
            params[COMBUSTIBLE] = _join(member.value for member in filters.combustible)
        if filters.km_range is not None:
            params[KM] = _format_range(filters.km_range)
        if filters.marca:
            params[MARCA] = _join(filters.marca)
        if filters.page > 1:
            params[PAGE] = str(filters.page)
        if filters.price_range is not None:
            params[PRECIO] = _format_range(filters.price_range)
        if sort is not SortKey.NONE:
            params[SORT] = sort.value

        return params

    def to_backend_params(self, filters: FilterSet) -> dict[str, str]:
        """Filter params for the search backend (no page, no sort)."""
        params = self.to_params(filters)
        params.pop(PAGE, None)
        return params

    # ------------------------------------------------------------------
    # decode
    # ------------------------------------------------------------------

    def decode(self, params: QueryParams) -> FilterSet:
        values = flatten_query(params)

        return FilterSet(
            marca=frozenset(_split(values.get(MARCA))),
            caja=_decode_members(Gearbox, CAJA, values.get(CAJA)),
            combustible=_decode_members(Fuel, COMBUSTIBLE, values.get(COMBUSTIBLE)),
            year_range=self._decode_range(ANIO, values.get(ANIO), self._defaults.year),
            price_range=self._decode_range(PRECIO, values.get(PRECIO), self._defaults.price),
            km_range=self._decode_range(KM, values.get(KM), self._defaults.km),
            page=_decode_page(values.get(PAGE)),
        )

    def decode_sort(self, params: QueryParams) -> SortKey:
        return SortKey.parse(flatten_query(params).get(SORT))

    def normalize(self, filters: FilterSet) -> FilterSet:
        """Canonical form: inverted ranges are dropped, ranges equal to their default become None."""
        return replace(
            filters,
            year_range=_canonical_range(ANIO, filters.year_range, self._defaults.year),
            price_range=_canonical_range(PRECIO, filters.price_range, self._defaults.price),
            km_range=_canonical_range(KM, filters.km_range, self._defaults.km),
        )

    def _decode_range(self, key: str, raw: str | None, default: IntRange) -> IntRange | None:
        if raw is None:
            return None
        parts = raw.split(",")
        try:
            if len(parts) != 2:
                raise FilterValidationError("range must have exactly two bounds")
            rng = IntRange(min=_parse_int(parts[0]), max=_parse_int(parts[1]))
            rng.validate()
        except FilterValidationError as exc:
            # Whole range dropped, never partially applied
            logger.debug(
                "Dropping malformed range filter",
                extra={"param": key, "value": raw, "reason": exc.message},
            )
            return None
        return _unset_if_default(rng, default)


def flatten_query(params: QueryParams) -> dict[str, str]:
    """First value per key, from either a raw query string or a mapping."""
    if isinstance(params, str):
        flat: dict[str, str] = {}
        for key, value in parse_qsl(params.lstrip("?"), keep_blank_values=True):
            flat.setdefault(key, value)
        return flat

    flat = {}
    for key, value in params.items():
        if isinstance(value, str):
            flat[key] = value
        elif isinstance(value, Sequence) and value and isinstance(value[0], str):
            flat[key] = value[0]
    return flat


def _split(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _join(items: Iterable[str]) -> str:
    return ",".join(sorted(items))


def _decode_members(enum_cls: type[E], key: str, raw: str | None) -> frozenset[E]:
    members = set()
    for item in _split(raw):
        try:
            members.add(enum_cls(item))
        except ValueError:
            logger.debug("Dropping unknown filter value", extra={"param": key, "value": item})
    return frozenset(members)


def _parse_int(raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise FilterValidationError("range bound is not an integer", value=raw) from None


def _decode_page(raw: str | None) -> int:
    if raw is None:
        return 1
    try:
        page = int(raw.strip())
    except ValueError:
        return 1
    return page if page > 0 else 1


def _format_range(rng: IntRange) -> str:
    return f"{rng.min},{rng.max}"


def _unset_if_default(rng: IntRange | None, default: IntRange) -> IntRange | None:
    if rng is None or rng == default:
        return None
    return rng


def _canonical_range(key: str, rng: IntRange | None, default: IntRange) -> IntRange | None:
    if rng is None:
        return None
    try:
        rng.validate()
    except FilterValidationError as exc:
        logger.debug(
            "Dropping invalid range filter",
            extra={"param": key, "min": rng.min, "max": rng.max, "reason": exc.message},
        )
        return None
    return _unset_if_default(rng, default)
