from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VehicleImagesDTO(BaseModel):
    principal: str | None = None
    hover: str | None = None
    extra: list[str] = Field(default_factory=list)


class VehicleResponseDTO(BaseModel):
    id: str
    title: str
    brand: str | None = None
    model: str | None = None
    version: str | None = None
    price: int | float | None = None
    year: int | None = None
    mileage: int | float | None = None
    transmission: str | None = None
    fuel: str | None = None
    images: VehicleImagesDTO


class VehicleListQueryDTO(BaseModel):
    """
    Listing URL parameters, documented for OpenAPI.

    Values are decoded by FilterCodec exactly as they appear in the listing
    URL; malformed values are ignored rather than rejected.
    """

    marca: str | None = Field(
        default=None,
        description="Comma-separated brands",
        examples=["Ford,Peugeot"],
    )
    caja: str | None = Field(
        default=None,
        description="Comma-separated gearboxes (Manual, Automático, Secuencial)",
        examples=["Manual"],
    )
    combustible: str | None = Field(
        default=None,
        description="Comma-separated fuels (Nafta, Diesel, Gas)",
        examples=["Nafta,Diesel"],
    )
    anio: str | None = Field(default=None, description="Year range 'min,max'", examples=["2015,2020"])
    precio: str | None = Field(
        default=None, description="Price range 'min,max'", examples=["8000000,20000000"]
    )
    km: str | None = Field(default=None, description="Mileage range 'min,max'", examples=["0,80000"])
    page: str | None = Field(default=None, description="1-based page", examples=["2"])
    sort: str | None = Field(
        default=None,
        description="precio_desc, precio_asc, km_desc, km_asc (unknown values mean no sorting)",
        examples=["precio_asc"],
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "marca": "Ford,Peugeot",
                "anio": "2015,2020",
                "sort": "precio_asc",
                "page": "2",
            }
        }
    )

    def url_params(self) -> dict[str, str]:
        return self.model_dump(exclude_none=True)


class SeoDTO(BaseModel):
    canonical_url: str
    robots: str
    index: bool
    follow: bool


class VehicleListResponseDTO(BaseModel):
    vehicles: list[VehicleResponseDTO]
    total: int
    page: int
    limit: int
    has_next_page: bool
    next_cursor: int | None = None
    sort: str
    query: str = Field(description="Canonical listing query string for these filters and sort")
    seo: SeoDTO
    json_ld: dict[str, Any] | None = None


class SimilarVehiclesResponseDTO(BaseModel):
    vehicle_id: str
    by: str
    vehicles: list[VehicleResponseDTO]
