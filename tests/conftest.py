"""Shared fixtures for the analysis test-suite."""
from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest

from avvcheck.analysis.categories import CORE_CATEGORIES, SUPPLEMENTARY_CATEGORIES
from avvcheck.analysis.chunking import ChunkingConfig
from avvcheck.config import AnalysisConfig
from avvcheck.oracle.backoff import BackoffPolicy


class RecordingSleep:
    """Awaitable stand-in for ``asyncio.sleep`` that only records delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def make_record(
    core: Optional[str] = "met",
    supplementary: Optional[str] = "met",
    *,
    overrides: Optional[Mapping[str, str]] = None,
    actions: Iterable[Mapping[str, Any]] = (),
    **extra: Any,
) -> Dict[str, Any]:
    """Build an oracle-shaped record with uniform statuses."""

    overrides = dict(overrides or {})
    record: Dict[str, Any] = {
        "executive_summary": "Prüfergebnis",
        "article_28_analysis": {},
        "additional_clauses": {},
        "recommended_actions": list(actions),
    }
    for category in CORE_CATEGORIES:
        status = overrides.get(category.value, core)
        if status is not None:
            record["article_28_analysis"][category.value] = {"status": status, "evidence": []}
    for category in SUPPLEMENTARY_CATEGORIES:
        status = overrides.get(category.value, supplementary)
        if status is not None:
            record["additional_clauses"][category.value] = {"status": status, "evidence": []}
    record.update(extra)
    return record


def as_output(record: Mapping[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False)


def sectioned_contract(sections: int = 4, filler_words: int = 10) -> str:
    """German contract text with one ``§`` heading per section."""

    body = " ".join(["Vertragstext"] * filler_words)
    return "\n".join(f"§ {index} Abschnitt\n{body}" for index in range(1, sections + 1))


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def small_chunk_config() -> AnalysisConfig:
    return AnalysisConfig(
        chunking=ChunkingConfig(target_tokens=50, hard_max_tokens=60, max_chunks=8),
        backoff=BackoffPolicy(max_retries=3, base_delay=0.8, max_delay=10.0),
        include_hints=False,
    )


@pytest.fixture(autouse=True)
def _clean_oracle_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ORACLE_PROVIDER", "OPENAI_API_KEY", "OPENAI_MODEL", "OPENAI_BASE_URL"):
        monkeypatch.delenv(name, raising=False)
