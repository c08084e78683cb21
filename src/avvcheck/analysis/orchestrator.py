"""Drive one document through chunk analysis, merge, reconcile and scoring."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from avvcheck.config import AnalysisConfig
from avvcheck.errors import AnalysisError, InputEmptyError, MalformedOutputError, NoUsableResultsError
from avvcheck.oracle.backoff import SleepFunc, call_with_backoff
from avvcheck.oracle.base import Oracle
from avvcheck.prompt_builder import build_chunk_prompt, build_merge_prompt
from avvcheck.telemetry import (
    emit_analysis_scored,
    emit_chunk_skipped,
    emit_chunking_event,
    emit_exception,
    emit_oracle_call,
)

from .chunking import SemanticTextChunker
from .extraction import extract_json
from .hints import build_snippets, render_hints
from .models import AnalysisRecord, Chunk, Document, ScoreBreakdown
from .reconciliation import reconcile
from .scoring import score

LOGGER = logging.getLogger(__name__)


class AnalysisPhase(str, Enum):
    CHUNKING = "chunking"
    ANALYZING = "analyzing"
    MERGING = "merging"
    EXTRACTING = "extracting"
    RECONCILING = "reconciling"
    SCORED = "scored"
    FAILED = "failed"


@dataclass(slots=True)
class AnalysisRun:
    """Bookkeeping for one pass through the pipeline."""

    request_id: str
    phase: AnalysisPhase = AnalysisPhase.CHUNKING
    transitions: List[AnalysisPhase] = field(default_factory=lambda: [AnalysisPhase.CHUNKING])
    chunk_count: int = 0
    skipped_chunks: List[int] = field(default_factory=list)
    oracle_attempts: int = 0
    failure_reason: Optional[str] = None

    def enter(self, phase: AnalysisPhase) -> None:
        LOGGER.debug("Run %s: %s -> %s", self.request_id, self.phase.value, phase.value)
        self.phase = phase
        self.transitions.append(phase)

    def fail(self, error: AnalysisError) -> None:
        if error.phase is None:
            error.phase = self.phase.value
        self.failure_reason = str(error)
        self.enter(AnalysisPhase.FAILED)

    @property
    def analyzed_chunks(self) -> int:
        return self.chunk_count - len(self.skipped_chunks)


@dataclass(slots=True)
class AnalysisOutcome:
    record: AnalysisRecord
    breakdown: ScoreBreakdown
    run: AnalysisRun

    def to_dict(self) -> Dict[str, Any]:
        return {"record": self.record.to_dict(), "score": self.breakdown.to_dict()}


class AnalysisOrchestrator:
    """Run the analysis state machine against an injected oracle.

    Chunks are analysed in document order. Output of a chunk that cannot be
    parsed is dropped with a warning; every other failure aborts the run.
    """

    def __init__(
        self,
        oracle: Oracle,
        config: Optional[AnalysisConfig] = None,
        *,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self._oracle = oracle
        self._config = config or AnalysisConfig()
        self._chunker = SemanticTextChunker(self._config.chunking)
        self._sleep = sleep

    @property
    def config(self) -> AnalysisConfig:
        return self._config

    async def run(self, document: Document | str, *, request_id: str | None = None) -> AnalysisOutcome:
        if isinstance(document, str):
            document = Document(text=document)
        run = AnalysisRun(request_id=request_id or uuid.uuid4().hex)
        started = time.perf_counter()
        try:
            record, breakdown = await self._run(document, run)
        except AnalysisError as error:
            run.fail(error)
            emit_exception(module=__name__, error=error, req_id=run.request_id, phase=error.phase)
            raise

        emit_analysis_scored(
            req_id=run.request_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            overall=breakdown.overall,
            risk=breakdown.risk,
            risk_source=breakdown.risk_source,
            chunks=run.chunk_count,
            skipped=len(run.skipped_chunks),
        )
        return AnalysisOutcome(record=record, breakdown=breakdown, run=run)

    async def _run(self, document: Document, run: AnalysisRun) -> Tuple[AnalysisRecord, ScoreBreakdown]:
        if len(document.text.strip()) < self._config.min_text_chars:
            raise InputEmptyError("Document contains no usable text")

        chunks = self._chunker.chunk(document.text)
        run.chunk_count = len(chunks)
        emit_chunking_event(
            req_id=run.request_id,
            chars=len(document.text),
            chunks=len(chunks),
            estimated_tokens=[chunk.estimated_tokens for chunk in chunks],
        )

        run.enter(AnalysisPhase.ANALYZING)
        partials = await self._analyze_chunks(document, chunks, run)
        if not partials:
            raise NoUsableResultsError(f"All {len(chunks)} chunk analyses were unusable")

        run.enter(AnalysisPhase.MERGING)
        merged_output = await self._call(build_merge_prompt(partials), run, label="merge")

        run.enter(AnalysisPhase.EXTRACTING)
        merged = extract_json(merged_output)

        run.enter(AnalysisPhase.RECONCILING)
        record = reconcile(merged)
        breakdown = score(record)

        run.enter(AnalysisPhase.SCORED)
        return replace(record, compliance=breakdown), breakdown

    async def _analyze_chunks(
        self, document: Document, chunks: List[Chunk], run: AnalysisRun
    ) -> List[Dict[str, Any]]:
        concurrency = self._config.chunk_concurrency
        if concurrency <= 1 or len(chunks) <= 1:
            results = [await self._analyze_chunk(document, chunk, run) for chunk in chunks]
        else:
            semaphore = asyncio.Semaphore(concurrency)

            async def guarded(chunk: Chunk) -> Optional[Dict[str, Any]]:
                async with semaphore:
                    return await self._analyze_chunk(document, chunk, run)

            try:
                async with asyncio.TaskGroup() as group:
                    tasks = [group.create_task(guarded(chunk)) for chunk in chunks]
            except ExceptionGroup as errors:
                raise errors.exceptions[0]
            results = [task.result() for task in tasks]
            run.skipped_chunks.sort()

        return [result for result in results if result is not None]

    async def _analyze_chunk(
        self, document: Document, chunk: Chunk, run: AnalysisRun
    ) -> Optional[Dict[str, Any]]:
        hints = ""
        if self._config.include_hints:
            hints = render_hints(build_snippets(document, chunk))
        output = await self._call(
            build_chunk_prompt(chunk, hints), run, label=f"chunk-{chunk.index}/{chunk.total}"
        )
        try:
            return extract_json(output)
        except MalformedOutputError as error:
            LOGGER.warning("Skipping chunk %s/%s: %s", chunk.index, chunk.total, error)
            run.skipped_chunks.append(chunk.index)
            emit_chunk_skipped(
                req_id=run.request_id,
                index=chunk.index,
                total=chunk.total,
                reason=str(error),
            )
            return None

    async def _call(self, prompt: str, run: AnalysisRun, *, label: str) -> str:
        started = time.perf_counter()
        call = await call_with_backoff(
            self._oracle,
            prompt,
            policy=self._config.backoff,
            sleep=self._sleep,
            label=label,
        )
        run.oracle_attempts += call.attempts
        emit_oracle_call(
            req_id=run.request_id,
            label=label,
            attempts=call.attempts,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            prompt_len=len(prompt),
            output_preview=call.text,
        )
        return call.text


__all__ = ["AnalysisOrchestrator", "AnalysisOutcome", "AnalysisPhase", "AnalysisRun"]
