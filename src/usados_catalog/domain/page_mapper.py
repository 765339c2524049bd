"""Backend page -> MappedPage normalization.

The search backend is only partially reliable: documents arrive in several
legacy shapes and the pagination cursor it returns has been observed not to
advance. Everything here is fail-soft; nothing raises to the caller.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from usados_catalog.domain.errors import MappingError
from usados_catalog.domain.images import resolve_images
from usados_catalog.domain.vehicle import MappedPage, VehicleRecord

logger = logging.getLogger(__name__)

# Envelope key used by the photos endpoint
ENVELOPE_KEY = "allPhotos"


class RawPage(BaseModel):
    """Untrusted backend page. Only the pagination fields are load-bearing."""

    model_config = ConfigDict(extra="ignore")

    documents: list[Any] = Field(
        default_factory=list,
        validation_alias=AliasChoices("docs", "documents"),
    )
    total_docs: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("totalDocs", "total_docs"),
    )
    has_next_page: bool = Field(
        default=False,
        validation_alias=AliasChoices("hasNextPage", "has_next_page"),
    )
    next_cursor: int | None = Field(
        default=None,
        validation_alias=AliasChoices("nextPageCursor", "nextPage"),
    )

    @field_validator("documents", mode="before")
    @classmethod
    def _null_documents_is_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("has_next_page", mode="before")
    @classmethod
    def _null_flag_is_false(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("next_cursor", mode="before")
    @classmethod
    def _unparseable_cursor_is_absent(cls, value: Any) -> int | None:
        if isinstance(value, bool) or value is None:
            return None
        if isinstance(value, float) and not value.is_integer():
            # NaN, infinities and fractional cursors
            return None
        try:
            return int(value)
        except (TypeError, ValueError, OverflowError):
            return None


def correct_next_cursor(
    has_next_page: bool,
    backend_cursor: int | None,
    requested_cursor: int | None,
) -> int | None:
    """
    Pick the cursor for the next "load more".

    - No next page: always None, whatever the backend sent
    - Backend cursor strictly ahead of the requested one: trust it
    - Otherwise: requested + 1 (the backend cursor did not advance)
    - No requested cursor: fall back to the backend value as-is
    """
    if not has_next_page:
        return None
    if requested_cursor is None:
        return backend_cursor
    if backend_cursor is not None and backend_cursor > requested_cursor:
        return backend_cursor

    logger.warning(
        "Backend returned a non-advancing cursor, correcting it",
        extra={
            "backend_cursor": backend_cursor,
            "requested_cursor": requested_cursor,
            "corrected_cursor": requested_cursor + 1,
        },
    )
    return requested_cursor + 1


class PageMapper:
    """
    Maps raw backend pages and documents to domain records.

    - Malformed page -> empty page (logged, never raised)
    - Document without a usable id -> dropped
    - Duplicate ids inside one page -> first occurrence kept
    """

    @staticmethod
    def map(raw_page: Any, requested_cursor: int | None = None) -> MappedPage:
        try:
            page = PageMapper._parse_page(raw_page)
        except MappingError as exc:
            logger.warning(
                "Malformed backend page, returning empty page",
                extra={
                    "error_code": exc.error_code,
                    "error_message": exc.message,
                    "requested_cursor": requested_cursor,
                },
            )
            return MappedPage.empty(requested_cursor)

        vehicles: list[VehicleRecord] = []
        seen: set[str] = set()
        for document in page.documents:
            vehicle = PageMapper.map_vehicle(document, include_extras=False)
            if vehicle is None:
                continue
            if vehicle.id in seen:
                logger.debug("Dropping duplicate vehicle in page", extra={"vehicle_id": vehicle.id})
                continue
            seen.add(vehicle.id)
            vehicles.append(vehicle)

        return MappedPage(
            vehicles=tuple(vehicles),
            total_docs=page.total_docs,
            has_next_page=page.has_next_page,
            next_cursor=correct_next_cursor(
                page.has_next_page, page.next_cursor, requested_cursor
            ),
            requested_cursor=requested_cursor,
        )

    @staticmethod
    def map_vehicle(raw: Any, include_extras: bool = True) -> VehicleRecord | None:
        """
        Normalize a single backend document.

        Args:
            raw: Backend document (untrusted)
            include_extras: Resolve fotosExtra too (detail view only)

        Returns:
            VehicleRecord, or None when the document has no usable id
        """
        if not isinstance(raw, Mapping):
            logger.debug("Dropping non-object document", extra={"type": type(raw).__name__})
            return None

        vehicle_id = _resolve_id(raw)
        if vehicle_id is None:
            logger.warning(
                "Dropping document without id",
                extra={"keys": sorted(str(key) for key in raw.keys())},
            )
            return None

        return VehicleRecord(
            id=vehicle_id,
            brand=_text(raw.get("marca")),
            model=_text(raw.get("modelo")),
            version=_text(raw.get("version")),
            price=_number(raw.get("precio")),
            year=_integer(raw.get("anio")),
            mileage=_number(raw.get("kilometraje")),
            transmission=_text(raw.get("caja")),
            fuel=_text(raw.get("combustible")),
            images=resolve_images(raw, include_extras=include_extras),
        )

    @staticmethod
    def _parse_page(raw_page: Any) -> RawPage:
        if not isinstance(raw_page, Mapping):
            raise MappingError("backend page is not an object", type=type(raw_page).__name__)

        envelope = raw_page.get(ENVELOPE_KEY, raw_page)
        if not isinstance(envelope, Mapping):
            raise MappingError(f"'{ENVELOPE_KEY}' is not an object")

        try:
            return RawPage.model_validate(dict(envelope))
        except PydanticValidationError as exc:
            raise MappingError("backend page has invalid fields", errors=exc.error_count()) from exc


def _resolve_id(raw: Mapping[str, Any]) -> str | None:
    for key in ("_id", "id"):
        value = raw.get(key)
        if value is None or isinstance(value, bool):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
        try:
            parsed = float(value)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _integer(value: Any) -> int | None:
    number = _number(value)
    if number is None:
        return None
    return int(number)
