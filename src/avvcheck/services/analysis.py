from __future__ import annotations

import asyncio
import logging
import time
import uuid
from functools import lru_cache

from fastapi import UploadFile

from avvcheck.analysis.models import Document
from avvcheck.analysis.orchestrator import AnalysisOrchestrator, AnalysisOutcome
from avvcheck.config import AnalysisConfig
from avvcheck.errors import AnalysisError
from avvcheck.ingest import extract_document, normalize_text
from avvcheck.logging_config import AUDIT_LOGGER_NAME
from avvcheck.oracle.backoff import SleepFunc
from avvcheck.oracle.base import Oracle, OracleStatus
from avvcheck.oracle.factory import build_oracle
from avvcheck.telemetry import emit_analysis_request, emit_exception, traced_duration

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)


class AnalysisService:
    """Entry point used by the HTTP layer and the CLI to analyse one contract."""

    def __init__(
        self,
        *,
        oracle: Oracle | None = None,
        config: AnalysisConfig | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.oracle = oracle or build_oracle()
        self.config = config or AnalysisConfig.from_env()
        self._orchestrator = AnalysisOrchestrator(self.oracle, self.config, sleep=sleep)

    def status(self) -> OracleStatus:
        return self.oracle.status()

    async def analyze_upload(self, upload: UploadFile) -> AnalysisOutcome:
        data = await upload.read()
        file_name = upload.filename or "upload"
        try:
            with traced_duration("ingest.extract", file_name=file_name, size=len(data)):
                document = extract_document(data, file_name, upload.content_type)
        except AnalysisError as error:
            emit_exception(module=__name__, error=error, suggestion="Upload a PDF, DOCX or text file")
            raise
        return await self.analyze_document(document, source=file_name)

    async def analyze_text(self, text: str) -> AnalysisOutcome:
        return await self.analyze_document(Document(text=normalize_text(text or "")), source="text")

    async def analyze_document(self, document: Document, *, source: str = "document") -> AnalysisOutcome:
        request_id = uuid.uuid4().hex
        emit_analysis_request(
            req_id=request_id,
            source=source,
            chars=len(document.text),
            pages=len(document.page_starts) or None,
        )
        started = time.perf_counter()
        outcome = await self._orchestrator.run(document, request_id=request_id)

        AUDIT_LOGGER.info(
            {
                "step": "analysis.audit",
                "req_id": request_id,
                "source": source,
                "oracle": self.oracle.provider,
                "chunks": outcome.run.chunk_count,
                "skipped_chunks": outcome.run.skipped_chunks,
                "oracle_attempts": outcome.run.oracle_attempts,
                "compliance": outcome.breakdown.overall,
                "risk": outcome.breakdown.risk,
                "risk_source": outcome.breakdown.risk_source,
                "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
            }
        )
        return outcome


@lru_cache(maxsize=1)
def get_analysis_service() -> AnalysisService:
    """FastAPI dependency returning the shared :class:`AnalysisService` instance."""

    return AnalysisService()


__all__ = ["AnalysisService", "get_analysis_service"]
