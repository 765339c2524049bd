"""Image URL resolution for raw backend vehicles.

The backend has stored images under several historical keys and shapes:
a plain URL string, or an object carrying ``url`` or ``secure_url``
(Cloudinary uploads). Resolution is an ordered list of accessor rules; the
first rule that yields a non-empty URL wins.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from usados_catalog.domain.vehicle import VehicleImages

ShapeReader = Callable[[Any], str | None]


def _clean(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def read_string(value: Any) -> str | None:
    return _clean(value)


def read_object_url(value: Any) -> str | None:
    if isinstance(value, Mapping):
        return _clean(value.get("url"))
    return None


def read_object_secure_url(value: Any) -> str | None:
    if isinstance(value, Mapping):
        return _clean(value.get("secure_url"))
    return None


# Shapes tried for every key, in priority order
IMAGE_SHAPES: tuple[ShapeReader, ...] = (read_string, read_object_url, read_object_secure_url)


@dataclass(frozen=True, slots=True)
class ImageRule:
    key: str
    shapes: tuple[ShapeReader, ...] = IMAGE_SHAPES

    def resolve(self, raw: Mapping[str, Any]) -> str | None:
        return extract_image_url(raw.get(self.key), self.shapes)


PRINCIPAL_RULES: tuple[ImageRule, ...] = (ImageRule("fotoPrincipal"), ImageRule("imagen"))
HOVER_RULES: tuple[ImageRule, ...] = (ImageRule("fotoHover"),)
EXTRA_KEY = "fotosExtra"


def extract_image_url(value: Any, shapes: Sequence[ShapeReader] = IMAGE_SHAPES) -> str | None:
    for shape in shapes:
        url = shape(value)
        if url:
            return url
    return None


def first_match(raw: Mapping[str, Any], rules: Sequence[ImageRule]) -> str | None:
    for rule in rules:
        url = rule.resolve(raw)
        if url:
            return url
    return None


def resolve_images(raw: Mapping[str, Any], include_extras: bool = False) -> VehicleImages:
    principal = first_match(raw, PRINCIPAL_RULES)
    hover = first_match(raw, HOVER_RULES)
    if hover == principal:
        hover = None

    extra: list[str] = []
    if include_extras:
        items = raw.get(EXTRA_KEY)
        if isinstance(items, Sequence) and not isinstance(items, str):
            seen = {principal, hover}
            for item in items:
                url = extract_image_url(item)
                if url and url not in seen:
                    seen.add(url)
                    extra.append(url)

    return VehicleImages(principal=principal, hover=hover, extra=tuple(extra))
