"""httpx implementation of VehicleSearchApi."""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from usados_catalog.domain.errors import FetchTimeoutError, NetworkError
from usados_catalog.domain.filter_codec import FilterCodec
from usados_catalog.domain.filters import FilterSet
from usados_catalog.ports.vehicle_search_api import VehicleSearchApi

logger = logging.getLogger(__name__)

SEARCH_PATH = "/photos/getallphotos"
DETAIL_PATH = "/photos/getonephoto/{vehicle_id}"


class HttpVehicleSearchApi(VehicleSearchApi):
    """
    Remote inventory over HTTP.

    - One short-lived AsyncClient per call (no shared connection state)
    - Filters encoded with the same FilterCodec as the listing URL; the
      backend expects 'cursor', not 'page'
    - httpx timeouts -> FetchTimeoutError, other transport or status
      failures -> NetworkError
    - Body is returned as-is; shape validation belongs to PageMapper
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float,
        codec: FilterCodec | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Backend root, e.g. http://localhost:3001
            timeout_seconds: Budget for each request
            codec: Filter codec (defaults to FilterCodec())
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._codec = codec or FilterCodec()
        self._transport = transport

    async def search(self, filters: FilterSet, limit: int, cursor: int) -> Mapping[str, Any]:
        params = self._codec.to_backend_params(filters)
        params["limit"] = str(limit)
        params["cursor"] = str(cursor)

        response = await self._get(SEARCH_PATH, params=params)
        return self._json(response)

    async def get_by_id(self, vehicle_id: str) -> Mapping[str, Any] | None:
        path = DETAIL_PATH.format(vehicle_id=quote(vehicle_id, safe=""))
        response = await self._get(path, allow_not_found=True)
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        return self._json(response)

    async def _get(
        self,
        path: str,
        params: Mapping[str, str] | None = None,
        allow_not_found: bool = False,
    ) -> httpx.Response:
        started = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_seconds,
                headers={"Accept": "application/json"},
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=params)
        except httpx.TimeoutException as exc:
            logger.error(
                "Search API timeout",
                extra={"path": path, "timeout_seconds": self._timeout_seconds},
            )
            raise FetchTimeoutError(self._timeout_seconds, path=path) from exc
        except httpx.HTTPError as exc:
            logger.error(
                "Search API transport error",
                extra={"path": path, "error_type": type(exc).__name__, "error_message": str(exc)},
            )
            raise NetworkError("Search API is unreachable", path=path) from exc

        duration_ms = round((time.perf_counter() - started) * 1000)
        if allow_not_found and response.status_code == httpx.codes.NOT_FOUND:
            return response
        if response.is_error:
            log = logger.error if response.status_code >= 500 else logger.warning
            log(
                "Search API error response",
                extra={"path": path, "status": response.status_code, "duration_ms": duration_ms},
            )
            raise NetworkError(
                f"Search API answered {response.status_code}",
                path=path,
                status=response.status_code,
            )

        logger.debug(
            "Search API response",
            extra={"path": path, "status": response.status_code, "duration_ms": duration_ms},
        )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        # Non-JSON bodies are handed over as None; PageMapper turns them
        # into an empty page.
        try:
            return response.json()
        except ValueError:
            logger.warning(
                "Search API returned a non-JSON body",
                extra={"path": response.request.url.path, "status": response.status_code},
            )
            return None
