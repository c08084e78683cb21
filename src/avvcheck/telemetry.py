"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import sys
import time
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional


LOGGER = logging.getLogger("avvcheck.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "ORACLE_PROVIDER",
    "OPENAI_MODEL",
    "OPENAI_BASE_URL",
    "ORACLE_MAX_RETRIES",
    "ORACLE_BASE_DELAY",
    "ORACLE_MAX_DELAY",
    "AVV_TARGET_TOKENS",
    "AVV_HARD_MAX_TOKENS",
    "AVV_MAX_CHUNKS",
    "AVV_CHUNK_CONCURRENCY",
    "AVV_INCLUDE_HINTS",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    if extra:
        event.update(extra)
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    log_event(LOGGER, "app.startup", details=details, extra={"pid": os.getpid()})


def emit_oracle_init(*, provider: str, model: str, configured: bool, error: str | None = None) -> None:
    details = {"provider": provider, "model": model, "configured": configured, "error": error}
    log_event(LOGGER, "oracle.init", level="info" if configured else "warning", details=details)


def emit_analysis_request(*, req_id: str, source: str, chars: int, pages: int | None) -> None:
    details = {"source": source, "chars": chars, "pages": pages}
    log_event(LOGGER, "analysis.request", req_id=req_id, details=details)


def emit_chunking_event(*, req_id: str, chars: int, chunks: int, estimated_tokens: list[int]) -> None:
    details = {"chars": chars, "chunks": chunks, "estimated_tokens": estimated_tokens}
    log_event(LOGGER, "chunking.complete", req_id=req_id, details=details)


def emit_oracle_call(
    *,
    req_id: str | None,
    label: str,
    attempts: int,
    duration_ms: float,
    prompt_len: int,
    output_preview: str,
) -> None:
    details = {
        "label": label,
        "attempts": attempts,
        "prompt_len": prompt_len,
        "output_preview": output_preview[:120],
    }
    log_event(LOGGER, "oracle.call", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_oracle_retry(*, label: str, attempt: int, delay_seconds: float, kind: str | None) -> None:
    details = {"label": label, "attempt": attempt, "delay_s": round(delay_seconds, 3), "kind": kind}
    log_event(LOGGER, "oracle.retry", level="warning", details=details)


def emit_chunk_skipped(*, req_id: str, index: int, total: int, reason: str) -> None:
    details = {"index": index, "total": total, "reason": reason}
    log_event(LOGGER, "chunk.skipped", level="warning", req_id=req_id, details=details)


def emit_analysis_scored(
    *,
    req_id: str,
    duration_ms: float,
    overall: int,
    risk: float,
    risk_source: str,
    chunks: int,
    skipped: int,
) -> None:
    details = {
        "overall": overall,
        "risk": risk,
        "risk_source": risk_source,
        "chunks": chunks,
        "skipped": skipped,
    }
    log_event(LOGGER, "analysis.scored", req_id=req_id, duration_ms=duration_ms, details=details)


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    phase: str | None = None,
    suggestion: str | None = None,
) -> None:
    details: dict[str, Any] = {"module": module}
    if phase:
        details["phase"] = phase
    if suggestion:
        details["suggestion"] = suggestion
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        details=details,
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, logger: Optional[logging.Logger] = None, **fields: Any) -> Iterator[None]:
    start = time.perf_counter()
    log_event(logger or LOGGER, f"{step}.start", details=fields)
    try:
        yield
    except Exception as error:
        log_event(logger or LOGGER, f"{step}.error", level="error", details=fields, exc=error)
        raise
    finally:
        end = time.perf_counter()
        log_event(
            logger or LOGGER,
            f"{step}.complete",
            duration_ms=(end - start) * 1000.0,
            details=fields,
        )


__all__ = [
    "emit_analysis_request",
    "emit_analysis_scored",
    "emit_app_startup_event",
    "emit_chunk_skipped",
    "emit_chunking_event",
    "emit_exception",
    "emit_oracle_call",
    "emit_oracle_init",
    "emit_oracle_retry",
    "log_event",
    "traced_duration",
]
