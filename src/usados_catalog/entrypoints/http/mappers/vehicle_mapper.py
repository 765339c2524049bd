from __future__ import annotations

from usados_catalog.domain.filter_codec import FilterCodec
from usados_catalog.domain.seo import SeoDirectives
from usados_catalog.domain.vehicle import VehicleRecord
from usados_catalog.entrypoints.http.dtos.vehicles import (
    SeoDTO,
    SimilarVehiclesResponseDTO,
    VehicleImagesDTO,
    VehicleListQueryDTO,
    VehicleListResponseDTO,
    VehicleResponseDTO,
)
from usados_catalog.use_cases.find_similar_vehicles import FindSimilarVehiclesResponse, SimilarBy
from usados_catalog.use_cases.search_vehicles import (
    SearchVehiclesRequest,
    SearchVehiclesResponse,
)


class VehicleMapper:
    """Maps between REST DTOs and domain models for the vehicle routes."""

    @staticmethod
    def to_domain_request(
        dto: VehicleListQueryDTO, codec: FilterCodec, limit: int
    ) -> SearchVehiclesRequest:
        """
        Decode listing URL parameters with the same codec the listing URL uses.

        Args:
            dto: Query parameters
            codec: Filter codec (owns the range defaults)
            limit: Page size

        Returns:
            SearchVehiclesRequest with normalized filters and sort
        """
        params = dto.url_params()
        return SearchVehiclesRequest(
            filters=codec.decode(params),
            limit=limit,
            sort_key=codec.decode_sort(params),
        )

    @staticmethod
    def to_vehicle_response(vehicle: VehicleRecord) -> VehicleResponseDTO:
        return VehicleResponseDTO(
            id=vehicle.id,
            title=vehicle.title,
            brand=vehicle.brand,
            model=vehicle.model,
            version=vehicle.version,
            price=vehicle.price,
            year=vehicle.year,
            mileage=vehicle.mileage,
            transmission=vehicle.transmission,
            fuel=vehicle.fuel,
            images=VehicleImagesDTO(
                principal=vehicle.images.principal,
                hover=vehicle.images.hover,
                extra=list(vehicle.images.extra),
            ),
        )

    @staticmethod
    def to_seo(directives: SeoDirectives) -> SeoDTO:
        return SeoDTO(
            canonical_url=directives.canonical_url,
            robots=directives.robots,
            index=directives.index,
            follow=directives.follow,
        )

    @staticmethod
    def to_list_response(
        result: SearchVehiclesResponse,
        request: SearchVehiclesRequest,
        codec: FilterCodec,
        seo: SeoDirectives,
        json_ld: dict | None = None,
    ) -> VehicleListResponseDTO:
        """
        Converts a listing result to the REST response with paging metadata.

        Args:
            result: Mapped and sorted page
            request: The domain request (echoed filters, limit and sort)
            codec: Codec used to render the canonical query string
            seo: Canonical URL and robots directives for the request URL
            json_ld: Optional schema.org ItemList
        """
        return VehicleListResponseDTO(
            vehicles=[VehicleMapper.to_vehicle_response(vehicle) for vehicle in result.vehicles],
            total=result.page.total_docs or 0,
            page=request.filters.page,
            limit=request.limit,
            has_next_page=result.page.has_next_page,
            next_cursor=result.page.next_cursor,
            sort=request.sort_key.value,
            query=codec.encode(request.filters, request.sort_key),
            seo=VehicleMapper.to_seo(seo),
            json_ld=json_ld,
        )

    @staticmethod
    def to_similar_response(
        vehicle_id: str, by: SimilarBy, result: FindSimilarVehiclesResponse
    ) -> SimilarVehiclesResponseDTO:
        return SimilarVehiclesResponseDTO(
            vehicle_id=vehicle_id,
            by=by.value,
            vehicles=[VehicleMapper.to_vehicle_response(vehicle) for vehicle in result.vehicles],
        )
