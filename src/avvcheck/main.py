import logging
from typing import Any, Callable, TypeVar

from fastapi import FastAPI, HTTPException
from fastapi.responses import PlainTextResponse

from avvcheck.api.analysis import router as analysis_router
from avvcheck.logging_config import configure_logging
from avvcheck.services.analysis import get_analysis_service
from avvcheck.telemetry import emit_app_startup_event

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="AVV Check API")
app.include_router(analysis_router)


@app.on_event("startup")
async def _startup_event() -> None:
    emit_app_startup_event()


T = TypeVar("T")


def _resolve_dependency(factory: Callable[[], T]) -> T:
    """Resolve a dependency while respecting FastAPI overrides."""

    override: Any | None = app.dependency_overrides.get(factory)
    resolved: Any = override if override is not None else factory
    return resolved() if callable(resolved) else resolved


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Report whether a usable oracle backend is configured."""
    status = _resolve_dependency(get_analysis_service).status()
    if not status.configured:
        raise HTTPException(status_code=503, detail=status.error or "Oracle is not configured")
    return "ok"


@app.get("/readyz", response_class=PlainTextResponse)
def readiness_probe() -> str:
    """Readiness probe that ensures the analysis service can be built."""

    try:
        _resolve_dependency(get_analysis_service)
    except Exception as exc:
        LOGGER.exception("Analysis service is not ready")
        raise HTTPException(status_code=503, detail=f"analysis_service_unavailable: {exc}") from exc
    return "ok"


@app.get("/oracle/status")
def oracle_status() -> dict[str, object]:
    """Expose which oracle backend serves the analysis."""

    status = _resolve_dependency(get_analysis_service).status()
    payload: dict[str, object] = {
        "configured": status.configured,
        "provider": status.provider,
        "model": status.model,
    }
    if status.error:
        payload["reason"] = status.error
    return payload
