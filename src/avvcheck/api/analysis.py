"""API router exposing the contract analysis endpoint."""
from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.datastructures import UploadFile

from avvcheck.analysis.orchestrator import AnalysisOutcome
from avvcheck.errors import (
    AnalysisError,
    ExtractionFailedError,
    InputEmptyError,
    MalformedOutputError,
    NoUsableResultsError,
    OracleFatalError,
    OracleTransientError,
)
from avvcheck.services.analysis import AnalysisService, get_analysis_service

router = APIRouter(tags=["analysis"])

_ERROR_RESPONSES: dict[type[AnalysisError], tuple[int, str]] = {
    InputEmptyError: (400, "input_empty"),
    ExtractionFailedError: (400, "extraction_failed"),
    OracleTransientError: (503, "oracle_unavailable"),
    OracleFatalError: (502, "oracle_failed"),
    MalformedOutputError: (502, "malformed_output"),
    NoUsableResultsError: (502, "no_usable_results"),
}


class RunSummary(BaseModel):
    request_id: str
    chunks: int
    skipped_chunks: list[int]
    oracle_attempts: int


class AnalysisResponse(BaseModel):
    """Response payload for the analysis endpoint."""

    record: dict[str, Any]
    score: dict[str, Any]
    run: RunSummary


class ErrorResponse(BaseModel):
    error: str
    detail: str
    phase: str | None = None


def error_response(error: AnalysisError) -> JSONResponse:
    status_code, code = 500, "analysis_failed"
    for error_type in type(error).__mro__:
        if error_type in _ERROR_RESPONSES:
            status_code, code = _ERROR_RESPONSES[error_type]
            break
    body = ErrorResponse(error=code, detail=str(error), phase=error.phase)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _serialise(outcome: AnalysisOutcome) -> AnalysisResponse:
    run = outcome.run
    return AnalysisResponse(
        record=outcome.record.to_dict(),
        score=outcome.breakdown.to_dict(),
        run=RunSummary(
            request_id=run.request_id,
            chunks=run.chunk_count,
            skipped_chunks=list(run.skipped_chunks),
            oracle_attempts=run.oracle_attempts,
        ),
    )


async def _read_text_payload(request: Request) -> str:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise InputEmptyError("Request body is not valid JSON", cause=exc) from exc
    if not isinstance(payload, dict):
        return ""
    text = payload.get("text")
    return text.strip() if isinstance(text, str) else ""


@router.post(
    "/analyze-document",
    response_model=AnalysisResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)
async def analyze_document(
    request: Request,
    analysis_service: AnalysisService = Depends(get_analysis_service),
) -> AnalysisResponse | JSONResponse:
    """Analyse an uploaded file (multipart ``file``), form ``text`` or JSON ``{"text": ...}``."""

    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
            form = await request.form()
            upload = form.get("file")
            text = form.get("text")
            if isinstance(upload, UploadFile) and upload.filename:
                outcome = await analysis_service.analyze_upload(upload)
            elif isinstance(text, str) and text.strip():
                outcome = await analysis_service.analyze_text(text)
            else:
                raise InputEmptyError("Kein Text übergeben.")
        else:
            outcome = await analysis_service.analyze_text(await _read_text_payload(request))
    except AnalysisError as exc:
        return error_response(exc)

    return _serialise(outcome)


__all__ = ["AnalysisResponse", "ErrorResponse", "error_response", "router"]
