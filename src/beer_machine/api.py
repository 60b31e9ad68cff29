"""FastAPI web server for the beer pairing machine."""
from __future__ import annotations

import math
from datetime import datetime, timezone
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from beer_machine.catalog import StyleCatalog, paginate_styles
from beer_machine.config import Settings
from beer_machine.errors import CatalogUnavailableError, StyleNotFoundError
from beer_machine.factory import build_catalog, build_pairing_service
from beer_machine.logging import get_logger
from beer_machine.models import BeerPairing, StyleCandidate
from beer_machine.pairing import PairingService

logger = get_logger(__name__)

app = FastAPI(title="Beer Machine")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class PlaylistTracksInfo(_CamelModel):
    href: str | None = None
    total: int | None = None


class PlaylistInfo(_CamelModel):
    name: str
    url: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    owner: str | None = None
    tracks: PlaylistTracksInfo | None = None


class BeerPairingInfo(_CamelModel):
    beer_style: str = Field(alias="beerStyle")
    playlist: PlaylistInfo | None = None


class BeerStyleInfo(_CamelModel):
    id: int | None = None
    name: str
    min_temperature: float | None = Field(default=None, alias="minTemperature")
    max_temperature: float | None = Field(default=None, alias="maxTemperature")
    average_temperature: float | None = Field(default=None, alias="averageTemperature")
    description: str | None = None


class PaginationMeta(_CamelModel):
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")


class PairingResponse(_CamelModel):
    status: str = "success"
    message: str = "Request successful"
    data: BeerPairingInfo


class BeerStylesResponse(_CamelModel):
    status: str = "success"
    message: str = "Request successful"
    data: list[BeerStyleInfo]
    meta: PaginationMeta


@lru_cache
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache
def get_catalog() -> StyleCatalog:
    return build_catalog(get_settings())


@lru_cache
def get_pairing_service() -> PairingService:
    return build_pairing_service(get_settings(), catalog=get_catalog())


def _error_body(status_code: int, message: str, request: Request) -> dict:
    return {
        "status": "error",
        "message": message,
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
    }


@app.exception_handler(StyleNotFoundError)
async def _style_not_found(request: Request, exc: StyleNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=_error_body(404, str(exc), request))


@app.exception_handler(CatalogUnavailableError)
async def _catalog_unavailable(request: Request, exc: CatalogUnavailableError) -> JSONResponse:
    logger.error("Beer catalog unavailable", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=503, content=_error_body(503, str(exc), request))


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.status_code, str(exc.detail), request))


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())
    return JSONResponse(status_code=422, content=_error_body(422, messages, request))


@app.exception_handler(Exception)
async def _unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error("Unhandled error", path=request.url.path)
    return JSONResponse(status_code=500, content=_error_body(500, "Internal server error", request))


def _pairing_info(pairing: BeerPairing) -> BeerPairingInfo:
    return BeerPairingInfo.model_validate(pairing.to_dict())


def _style_info(style: StyleCandidate) -> BeerStyleInfo:
    return BeerStyleInfo.model_validate(style.to_dict())


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "ok"}


@app.get("/beer-pairings", response_model=PairingResponse, response_model_by_alias=True)
async def get_beer_pairing(
    temperature: float = Query(..., description="Temperature in Celsius"),
    service: PairingService = Depends(get_pairing_service),
):
    """Best beer style for the temperature, with a matching Spotify playlist when one exists."""
    if not math.isfinite(temperature):
        raise HTTPException(status_code=422, detail="temperature must be a finite number")

    pairing = await service.get_pairing(temperature)
    return PairingResponse(data=_pairing_info(pairing))


@app.get("/beer-styles", response_model=BeerStylesResponse, response_model_by_alias=True)
async def list_beer_styles(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    name: str | None = Query(None, description="Case-insensitive name filter"),
    catalog: StyleCatalog = Depends(get_catalog),
):
    styles = await catalog.find_all_styles()
    page_styles, meta = paginate_styles(styles, page=page, limit=limit, name=name)
    if not page_styles:
        raise HTTPException(status_code=404, detail="No beer styles found")
    return BeerStylesResponse(
        data=[_style_info(style) for style in page_styles],
        meta=PaginationMeta.model_validate(meta),
    )
