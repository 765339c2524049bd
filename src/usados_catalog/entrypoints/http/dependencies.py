"""
Dependency injection for FastAPI routes.

Only stateless singletons use lru_cache. The search API adapter opens a
short-lived HTTP client per call, so a single instance can be shared.
Use cases are cheap and built per request.
"""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends

from usados_catalog.adapters.http_vehicle_search_api import HttpVehicleSearchApi
from usados_catalog.domain.filter_codec import FilterCodec
from usados_catalog.domain.seo import CanonicalUrlPolicy
from usados_catalog.infra import config
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi
from usados_catalog.use_cases.find_similar_vehicles import FindSimilarVehicles
from usados_catalog.use_cases.get_vehicle_by_id import GetVehicleById
from usados_catalog.use_cases.search_vehicles import SearchVehicles


@lru_cache
def get_filter_codec() -> FilterCodec:
    return FilterCodec()


@lru_cache
def get_search_api() -> VehicleSearchApi:
    """
    Search API adapter configured from API_URL / API_TIMEOUT.

    Returns:
        HttpVehicleSearchApi sharing the listing FilterCodec
    """
    return HttpVehicleSearchApi(
        base_url=config.api_base_url(),
        timeout_seconds=config.api_timeout_seconds(),
        codec=get_filter_codec(),
    )


@lru_cache
def get_canonical_url_policy() -> CanonicalUrlPolicy:
    """
    Canonical policy bound to SITE_URL.

    Raises:
        RuntimeError: If SITE_URL is missing in production
    """
    return CanonicalUrlPolicy(base_url=config.site_url())


def get_page_size() -> int:
    return config.list_page_size()


def get_search_vehicles_use_case(
    search_api: VehicleSearchApi = Depends(get_search_api),
) -> SearchVehicles:
    return SearchVehicles(search_api=search_api, timeout_seconds=config.api_timeout_seconds())


def get_vehicle_by_id_use_case(
    search_api: VehicleSearchApi = Depends(get_search_api),
) -> GetVehicleById:
    return GetVehicleById(search_api=search_api, timeout_seconds=config.api_timeout_seconds())


def get_find_similar_vehicles_use_case(
    search_api: VehicleSearchApi = Depends(get_search_api),
) -> FindSimilarVehicles:
    return FindSimilarVehicles(
        search_api=search_api, timeout_seconds=config.api_timeout_seconds()
    )
