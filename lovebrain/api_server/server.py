"""
FastAPI server — access-code check and percentile rankings.

GET  /                        health (running, database connected/disconnected)
POST /api/check-access-code   compare {accessCode} against ACCESS_CODE
POST /api/lovebrain-rankings  rank the five dimension scores
GET  /api/status              service status, configured vs actual population size

Every error response is {"success": false, "message": ...}. The population store,
ranking config and access gate are built once in the lifespan and read from
app.state; tests may replace them there.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from lovebrain import __version__
from lovebrain.access import AccessGate
from lovebrain.api_server.middleware import RequestLoggingMiddleware
from lovebrain.config import Settings, get_settings
from lovebrain.core.exceptions import ValidationError
from lovebrain.database import PopulationStore, UnavailableStore, connect_population_store
from lovebrain.lovebrain_logging import get_logger
from lovebrain.ranking import RankingConfig, rank

logger = get_logger(__name__)


# -----------------------------------------------------------------------------
# Request / response models
# -----------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET / response."""

    status: str = Field("running", description="Always 'running' when the process answers")
    message: str = Field(..., description="Service banner")
    timestamp: str = Field(..., description="ISO 8601 server time (UTC)")
    database: str = Field(..., description="'connected' or 'disconnected'")
    version: str = Field(..., description="Service version")


class AccessCodeRequest(BaseModel):
    """POST /api/check-access-code body."""

    accessCode: str | None = Field(None, max_length=256, description="Code entered by the user")


class MessageResponse(BaseModel):
    success: bool
    message: str


class RankingsResponse(BaseModel):
    """POST /api/lovebrain-rankings response."""

    success: bool = True
    message: str = Field(..., description="Human-readable outcome")
    rankings: dict[str, int] = Field(..., description="Percentile per dimension (1-99)")
    userScores: dict[str, Any] = Field(..., description="Scores echoed back as received")
    source: str = Field(..., description="'database' (population counts) or 'mock' (estimated)")


class StatusResponse(BaseModel):
    """GET /api/status response."""

    success: bool = True
    status: str = "running"
    database: str = Field(..., description="'connected' or 'disconnected'")
    accessCodeConfigured: bool = Field(..., description="True when ACCESS_CODE is set")
    totalSimulations: int = Field(..., description="Configured population size (percentile denominator)")
    populationSize: int | None = Field(None, description="Actual record count; null when unknown")
    port: int
    timestamp: str
    environment: str


# -----------------------------------------------------------------------------
# State accessors (dependency injection through app.state)
# -----------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        settings = get_settings()
        request.app.state.settings = settings
    return settings


def get_population_store(request: Request) -> PopulationStore:
    """Store opened in the lifespan; UnavailableStore when none was opened."""
    store = getattr(request.app.state, "population_store", None)
    return store if store is not None else UnavailableStore("population store not initialized")


def get_ranking_config(request: Request) -> RankingConfig:
    config = getattr(request.app.state, "ranking_config", None)
    if config is None:
        config = RankingConfig.from_settings(_settings(request))
        request.app.state.ranking_config = config
    return config


def get_access_gate(request: Request) -> AccessGate:
    gate = getattr(request.app.state, "access_gate", None)
    if gate is None:
        gate = AccessGate(_settings(request).access_code)
        request.app.state.access_gate = gate
    return gate


def _population_size(store: PopulationStore) -> int | None:
    if not store.available:
        return None
    try:
        return store.count_records()
    except Exception as e:
        logger.warning("population_size_unavailable", error=str(e))
        return None


# -----------------------------------------------------------------------------
# Lifespan: open the population store once; close it on shutdown
# -----------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build settings, store, ranking config and access gate; warn on population size drift."""
    settings = get_settings()
    store = connect_population_store(settings.database_url, settings.query_timeout_sec)
    app.state.settings = settings
    app.state.population_store = store
    config = RankingConfig.from_settings(settings)
    app.state.ranking_config = config
    app.state.access_gate = AccessGate(settings.access_code)

    size = _population_size(store)
    if size is not None and size != settings.total_simulations:
        logger.warning(
            "population_size_mismatch",
            total_simulations=settings.total_simulations,
            population_size=size,
            hint="re-run lovebrain-seed or adjust TOTAL_SIMULATIONS",
        )
    if not app.state.access_gate.configured:
        logger.warning("access_code_not_configured", hint="set ACCESS_CODE")
    logger.info(
        "api_started",
        database="connected" if store.available else "disconnected",
        total_simulations=settings.total_simulations,
        environment=settings.environment,
    )

    yield

    config.close()
    store.close()
    logger.info("api_stopped")


# -----------------------------------------------------------------------------
# App, error envelopes, routes
# -----------------------------------------------------------------------------

app = FastAPI(
    title="Lovebrain Ranking API",
    description="Percentile rankings for the relationship-dependency self-assessment.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message})


@app.exception_handler(ValidationError)
async def _validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("request_rejected", path=request.url.path, dimension=exc.dimension, error=exc.message)
    return _error(400, exc.message)


@app.exception_handler(RequestValidationError)
async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("request_malformed", path=request.url.path, errors=len(exc.errors()))
    return _error(400, "Malformed request body")


@app.exception_handler(StarletteHTTPException)
async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error(404, f"Endpoint not found: {request.method} {request.url.path}")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("request_failed", path=request.url.path, error=str(exc))
    return _error(500, "Internal server error")


@app.get("/", response_model=HealthResponse)
def health(request: Request) -> HealthResponse:
    store = get_population_store(request)
    return HealthResponse(
        message="Lovebrain test backend API is running",
        timestamp=_now_iso(),
        database="connected" if store.available else "disconnected",
        version=__version__,
    )


@app.post(
    "/api/check-access-code",
    response_model=MessageResponse,
    responses={400: {"model": MessageResponse}, 401: {"model": MessageResponse}},
)
def check_access_code(body: AccessCodeRequest, request: Request):
    """Return 200 when the code matches ACCESS_CODE, 401 otherwise, 400 when no code was sent."""
    if not body.accessCode:
        return _error(400, "Access code not provided")
    if get_access_gate(request).verify(body.accessCode):
        return MessageResponse(success=True, message="Access code accepted")
    return _error(401, "Invalid access code")


@app.post(
    "/api/lovebrain-rankings",
    response_model=RankingsResponse,
    responses={400: {"model": MessageResponse}},
)
def lovebrain_rankings(request: Request, scores: Any = Body(None)) -> RankingsResponse:
    """
    Rank the five dimension scores. Always answers with a complete ranking;
    source tells whether it came from the population or the fallback estimator.
    """
    result = rank(scores, get_population_store(request), get_ranking_config(request))
    return RankingsResponse(
        message="Rankings calculated",
        rankings=result.rankings,
        userScores=scores,
        source=result.source,
    )


@app.get("/api/status", response_model=StatusResponse)
def status(request: Request) -> StatusResponse:
    settings = _settings(request)
    store = get_population_store(request)
    config = get_ranking_config(request)
    return StatusResponse(
        database="connected" if store.available else "disconnected",
        accessCodeConfigured=get_access_gate(request).configured,
        totalSimulations=config.total_simulations,
        populationSize=_population_size(store),
        port=settings.api_port,
        timestamp=_now_iso(),
        environment=settings.environment,
    )
