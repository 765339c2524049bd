from fastapi import APIRouter, Depends, Query, Request

from usados_catalog.domain.filter_codec import FilterCodec
from usados_catalog.domain.seo import CanonicalUrlPolicy, build_item_list_json_ld
from usados_catalog.entrypoints.http.dependencies import (
    get_canonical_url_policy,
    get_filter_codec,
    get_find_similar_vehicles_use_case,
    get_page_size,
    get_search_vehicles_use_case,
    get_vehicle_by_id_use_case,
)
from usados_catalog.entrypoints.http.dtos.vehicles import (
    SimilarVehiclesResponseDTO,
    VehicleListQueryDTO,
    VehicleListResponseDTO,
    VehicleResponseDTO,
)
from usados_catalog.entrypoints.http.error_responses import ErrorResponse
from usados_catalog.entrypoints.http.mappers.vehicle_mapper import VehicleMapper
from usados_catalog.use_cases.find_similar_vehicles import (
    FindSimilarVehicles,
    FindSimilarVehiclesRequest,
    SimilarBy,
)
from usados_catalog.use_cases.get_vehicle_by_id import GetVehicleById, GetVehicleByIdRequest
from usados_catalog.use_cases.search_vehicles import SearchVehicles

router = APIRouter(tags=["Vehicles"])

UPSTREAM_ERRORS = {
    502: {"model": ErrorResponse, "description": "Search backend unreachable"},
    504: {"model": ErrorResponse, "description": "Search backend timeout"},
}


@router.get(
    "/vehicles",
    response_model=VehicleListResponseDTO,
    summary="Vehicle listing",
    description="""
    One page of the used-vehicle listing, driven by the same query string as
    the public listing URL.

    ## Filters
    - All filters use AND semantics
    - Set filters (marca, caja, combustible) are comma-separated
    - Ranges (anio, precio, km) are 'min,max'; a range equal to its default
      is ignored
    - Malformed values are ignored, never rejected

    ## Sorting
    Applied to the returned page only (price or mileage, asc/desc).

    ## SEO
    `seo` carries the canonical URL and robots directive for the request URL.

    ## Example
    ```
    GET /v1/vehicles?marca=Ford,Peugeot&anio=2015,2020&sort=precio_asc
    ```
    """,
    responses={422: {"model": ErrorResponse}, **UPSTREAM_ERRORS},
)
async def list_vehicles(
    request: Request,
    query: VehicleListQueryDTO = Depends(),
    limit: int | None = Query(
        default=None, ge=1, le=200, description="Page size (defaults to LIST_PAGE_SIZE)"
    ),
    use_case: SearchVehicles = Depends(get_search_vehicles_use_case),
    codec: FilterCodec = Depends(get_filter_codec),
    policy: CanonicalUrlPolicy = Depends(get_canonical_url_policy),
    page_size: int = Depends(get_page_size),
) -> VehicleListResponseDTO:
    """Listing endpoint following parse → execute → map → return pattern."""
    # 1. Map to domain request
    domain_request = VehicleMapper.to_domain_request(query, codec, limit=limit or page_size)

    # 2. Execute use case
    result = await use_case.execute(domain_request)

    # 3. SEO over the full URL (unknown keys included, API-only limit excluded)
    url_params = {
        key: request.query_params.getlist(key) for key in request.query_params if key != "limit"
    }
    seo = policy.evaluate(url_params)
    json_ld = build_item_list_json_ld(result.vehicles, policy.base_url)

    # 4. Map to response
    return VehicleMapper.to_list_response(
        result=result,
        request=domain_request,
        codec=codec,
        seo=seo,
        json_ld=json_ld,
    )


@router.get(
    "/vehicles/{vehicle_id}",
    response_model=VehicleResponseDTO,
    summary="Vehicle detail",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, **UPSTREAM_ERRORS},
)
async def get_vehicle(
    vehicle_id: str,
    use_case: GetVehicleById = Depends(get_vehicle_by_id_use_case),
) -> VehicleResponseDTO:
    result = await use_case.execute(GetVehicleByIdRequest(vehicle_id=vehicle_id))
    return VehicleMapper.to_vehicle_response(result.vehicle)


@router.get(
    "/vehicles/{vehicle_id}/similar",
    response_model=SimilarVehiclesResponseDTO,
    summary="Similar vehicles",
    description="""
    Up to 5 suggestions for a vehicle detail page.

    - by=brand: same brand
    - by=price: price within ±1,000,000
    """,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}, **UPSTREAM_ERRORS},
)
async def get_similar_vehicles(
    vehicle_id: str,
    by: SimilarBy = Query(default=SimilarBy.BRAND, description="Similarity criterion"),
    get_by_id: GetVehicleById = Depends(get_vehicle_by_id_use_case),
    use_case: FindSimilarVehicles = Depends(get_find_similar_vehicles_use_case),
) -> SimilarVehiclesResponseDTO:
    reference = await get_by_id.execute(GetVehicleByIdRequest(vehicle_id=vehicle_id))
    result = await use_case.execute(FindSimilarVehiclesRequest(vehicle=reference.vehicle, by=by))
    return VehicleMapper.to_similar_response(reference.vehicle.id, by, result)
