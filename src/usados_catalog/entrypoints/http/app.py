from fastapi import FastAPI

from usados_catalog.entrypoints.http.exception_handlers import register_exception_handlers
from usados_catalog.entrypoints.http.routes.health import router as health_router
from usados_catalog.entrypoints.http.routes.vehicles import router as vehicles_router


def build_app() -> FastAPI:
    app = FastAPI(
        title="Usados Catalog API",
        description="""
        Used-vehicle catalog API backing the dealership listing pages.

        ## Features
        - URL-driven vehicle listing (filters, sorting, pagination)
        - Canonical URL and robots directives for every listing URL
        - Vehicle details and similar-vehicle suggestions

        ## Error Handling
        All errors return structured JSON responses with error codes.
        Upstream failures are flagged as retryable.
        """,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        contact={
            "name": "Usados Catalog Team",
        },
        license_info={
            "name": "Proprietary",
        },
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(vehicles_router, prefix="/v1")

    return app


app = build_app()
