"""Oracles that never leave the process: mock, scripted and stub."""
from __future__ import annotations

import json
from collections import deque
from typing import Deque, Iterable, List, Union

from avvcheck.analysis.categories import CORE_CATEGORIES, SUPPLEMENTARY_CATEGORIES, Status

from .base import Oracle, OracleErrorKind, OracleResult, OracleStatus

ScriptedResponse = Union[OracleResult, str, BaseException]

NOT_CONFIGURED_MESSAGE = "Oracle is not configured"


class MockOracle(Oracle):
    """Return a deterministic, schema-shaped record for any prompt."""

    provider = "mock"
    model = "mock"

    async def analyze(self, prompt: str) -> OracleResult:
        payload = {
            "executive_summary": f"MOCK_ANALYSIS: {prompt[:100]}",
            "contract_metadata": {"title": "", "date": "", "parties": []},
            "article_28_analysis": {
                category.value: {"status": Status.MISSING.value, "evidence": []}
                for category in CORE_CATEGORIES
            },
            "additional_clauses": {
                category.value: {"status": Status.NOT_FOUND.value, "evidence": []}
                for category in SUPPLEMENTARY_CATEGORIES
            },
            "recommended_actions": [],
            "risk_score": {"rationale": "Mock-Analyse ohne Bewertung."},
        }
        return OracleResult.success(json.dumps(payload, ensure_ascii=False))


class ScriptedOracle(Oracle):
    """Replay a fixed sequence of responses and record every prompt.

    Strings are returned as successful output, :class:`OracleResult` values
    are returned as-is and exceptions are raised.
    """

    provider = "scripted"
    model = "scripted"

    def __init__(self, responses: Iterable[ScriptedResponse]) -> None:
        self._responses: Deque[ScriptedResponse] = deque(responses)
        self.prompts: List[str] = []

    @property
    def remaining(self) -> int:
        return len(self._responses)

    async def analyze(self, prompt: str) -> OracleResult:
        self.prompts.append(prompt)
        if not self._responses:
            raise AssertionError(f"ScriptedOracle exhausted after {len(self.prompts) - 1} calls")
        response = self._responses.popleft()
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, OracleResult):
            return response
        return OracleResult.success(response)


class StubOracle(Oracle):
    """Placeholder used when no real backend can be built."""

    provider = "stub"
    model = "none"

    def __init__(self, reason: str = NOT_CONFIGURED_MESSAGE) -> None:
        self.reason = reason

    async def analyze(self, prompt: str) -> OracleResult:
        del prompt
        return OracleResult.failed(OracleErrorKind.OTHER, self.reason)

    def status(self) -> OracleStatus:
        return OracleStatus(configured=False, provider=self.provider, model=self.model, error=self.reason)


__all__ = ["MockOracle", "NOT_CONFIGURED_MESSAGE", "ScriptedOracle", "StubOracle"]
