from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Dict, List

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from sqlmodel import Session

from .config import default_zoom, provider_settings_from_env
from .database import get_session, init_db
from .errors import ErrorType, TileMosaicError
from .services.addressing import TileScheme
from .services.tms import TmsProvider
from .services.usage import record_tile_usage, usage_summary

app = FastAPI(title="Tile Mosaic Service", version="0.1.0")

logger = logging.getLogger(__name__)

ERROR_STATUS: Dict[ErrorType, int] = {
    ErrorType.MAXIMUM_TILE_COUNT_EXCEEDED: 400,
    ErrorType.UNKNOWN_TASK: 404,
    ErrorType.MISSING_INPUT_FIELD: 422,
    ErrorType.IMAGE_LOAD_FAILED: 502,
}


class ProviderSettings(BaseModel):
    base_url: str | None = None
    extension: str | None = None
    api_key: str | None = None
    attribution: str | None = None
    tile_size: int | None = None
    headers: Dict[str, str] | None = None
    scheme: TileScheme | None = None


class PolygonTaskRequest(BaseModel):
    polygon: Dict[str, Any] = Field(..., description="GeoJSON Feature or Polygon geometry")
    zoom: int | None = None
    strict: bool = True
    provider: ProviderSettings | None = None


TaskHandler = Callable[[TmsProvider, PolygonTaskRequest], Awaitable[Response]]


def _build_provider(settings: ProviderSettings | None) -> TmsProvider:
    merged: Dict[str, Any] = provider_settings_from_env()
    if settings is not None:
        merged.update(settings.model_dump(exclude_none=True))

    base_url = merged.pop("base_url", "")
    return TmsProvider(base_url, **merged)


async def _image_task(provider: TmsProvider, payload: PolygonTaskRequest) -> Response:
    try:
        mosaic = await provider.get_image(payload.polygon, payload.zoom, strict=payload.strict)
    except TileMosaicError as exc:
        if exc.type == ErrorType.IMAGE_LOAD_FAILED:
            total = exc.tile_count or 0
            record_tile_usage(provider.attribution, requested=total, failed=total)
        raise

    total = (mosaic.width // provider.tile_size) * (mosaic.height // provider.tile_size)
    record_tile_usage(provider.attribution, requested=total, failed=mosaic.missing_tiles)

    headers = {
        "X-Mosaic-Bounds": json.dumps(mosaic.get_bounds().as_dict()),
        "X-Mosaic-Attribution": mosaic.attribution or "",
        "X-Mosaic-Missing-Tiles": str(mosaic.missing_tiles),
    }
    return Response(content=mosaic.to_png_bytes(), media_type="image/png", headers=headers)


async def _tile_urls_task(provider: TmsProvider, payload: PolygonTaskRequest) -> Response:
    zoom = default_zoom() if payload.zoom is None else payload.zoom
    requests = provider.tile_requests(payload.polygon, zoom)
    rows: List[List[Dict[str, object]]] = [
        [
            {
                "x": request.coordinate.x,
                "y": request.coordinate.y,
                "z": request.coordinate.z,
                "url": request.url,
                "bounds": request.footprint.as_dict(),
            }
            for request in row
        ]
        for row in requests
    ]
    return JSONResponse({"zoom": zoom, "scheme": provider.scheme.value, "rows": rows})


TASK_HANDLERS: Dict[str, TaskHandler] = {
    "image": _image_task,
    "tile-urls": _tile_urls_task,
}


@app.exception_handler(TileMosaicError)
async def tile_mosaic_error_handler(request: Request, exc: TileMosaicError) -> JSONResponse:
    status_code = ERROR_STATUS.get(exc.type, 500)
    logger.warning(
        "%s %s failed with %s (%d): %s",
        request.method,
        request.url.path,
        exc.type.value,
        exc.code,
        exc,
    )
    return JSONResponse(status_code=status_code, content=exc.to_payload())


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.on_event("startup")
def on_startup() -> None:
    init_db()


@app.post("/tasks/{task}")
async def run_task(task: str, payload: PolygonTaskRequest) -> Response:
    handler = TASK_HANDLERS.get(task)
    if handler is None:
        raise TileMosaicError(
            ErrorType.UNKNOWN_TASK,
            f"Unknown task '{task}'. Supported tasks: {', '.join(sorted(TASK_HANDLERS))}.",
        )

    provider = _build_provider(payload.provider)
    return await handler(provider, payload)


@app.get("/usage")
def read_usage(session: Session = Depends(get_session)) -> Dict[str, object]:
    return {"providers": usage_summary(session)}
