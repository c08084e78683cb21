"""End-to-end tests for the analysis state machine with scripted oracles."""
from __future__ import annotations

import asyncio
import json
import re
from dataclasses import replace

import pytest

from avvcheck.analysis.categories import Category, Status
from avvcheck.analysis.orchestrator import AnalysisOrchestrator, AnalysisPhase
from avvcheck.errors import (
    InputEmptyError,
    MalformedOutputError,
    NoUsableResultsError,
    OracleFatalError,
    OracleTransientError,
)
from avvcheck.oracle import Oracle, OracleErrorKind, OracleResult, ScriptedOracle

from conftest import as_output, make_record, sectioned_contract

CONTRACT = (
    "§ 1 Gegenstand\nDer Auftragsverarbeiter verarbeitet personenbezogene Daten "
    "ausschließlich auf dokumentierte Weisung des Verantwortlichen."
)


def _run(oracle, config, text=CONTRACT, sleep=None):
    kwargs = {"sleep": sleep} if sleep is not None else {}
    orchestrator = AnalysisOrchestrator(oracle, config, **kwargs)
    return asyncio.run(orchestrator.run(text, request_id="req-test"))


def test_single_chunk_contract_is_analysed_and_merged(small_chunk_config):
    partial = as_output(make_record("met", "met"))
    oracle = ScriptedOracle([partial, f"Gesamtergebnis:\n```json\n{partial}\n```"])

    outcome = _run(oracle, small_chunk_config)

    chunk_prompt, merge_prompt = oracle.prompts
    assert chunk_prompt.startswith("Teil 1/1:\n\n")
    assert CONTRACT in chunk_prompt
    assert merge_prompt.startswith("Hier sind 1 JSON-Ergebnisse")
    assert outcome.breakdown.overall == 100
    assert outcome.record.compliance == outcome.breakdown
    assert outcome.record.risk_score == 0
    assert outcome.record.status_of(Category.AUDIT_RIGHTS) is Status.MET
    assert outcome.run.transitions == [
        AnalysisPhase.CHUNKING,
        AnalysisPhase.ANALYZING,
        AnalysisPhase.MERGING,
        AnalysisPhase.EXTRACTING,
        AnalysisPhase.RECONCILING,
        AnalysisPhase.SCORED,
    ]
    assert outcome.run.oracle_attempts == 2


def test_outcome_serialises_record_and_score(small_chunk_config):
    partial = as_output(make_record("met", "met"))
    outcome = _run(ScriptedOracle([partial, partial]), small_chunk_config)

    payload = outcome.to_dict()

    assert payload["score"]["overall"] == 100
    assert payload["record"]["compliance_score"] == payload["score"]
    assert payload["record"]["risk_score"]["source"] == "derived"


def test_blank_input_fails_before_any_oracle_call(small_chunk_config):
    oracle = ScriptedOracle([])

    with pytest.raises(InputEmptyError) as excinfo:
        _run(oracle, small_chunk_config, text="  kurz \n")

    assert excinfo.value.phase == "chunking"
    assert oracle.prompts == []


def test_unparseable_chunk_is_skipped(small_chunk_config):
    text = sectioned_contract(sections=3)
    partial = as_output(make_record("partial", None))
    oracle = ScriptedOracle([partial, "Entschuldigung, keine Analyse.", partial, partial])

    outcome = _run(oracle, small_chunk_config, text=text)

    assert outcome.run.chunk_count == 3
    assert outcome.run.skipped_chunks == [2]
    assert outcome.run.analyzed_chunks == 2
    assert oracle.prompts[-1].startswith("Hier sind 2 JSON-Ergebnisse")
    assert outcome.breakdown.base == 50


def test_all_chunks_unparseable_skips_merge(small_chunk_config):
    text = sectioned_contract(sections=2)
    oracle = ScriptedOracle(["kein json", "auch kein json", "unused"])

    with pytest.raises(NoUsableResultsError) as excinfo:
        _run(oracle, small_chunk_config, text=text)

    assert excinfo.value.phase == "analyzing"
    assert len(oracle.prompts) == 2
    assert oracle.remaining == 1


def test_unparseable_merge_output_is_fatal(small_chunk_config):
    oracle = ScriptedOracle([as_output(make_record()), "Zusammenfassung leider nicht möglich"])

    with pytest.raises(MalformedOutputError) as excinfo:
        _run(oracle, small_chunk_config)

    assert excinfo.value.phase == "extracting"


def test_rate_limits_are_retried_with_backoff(small_chunk_config, recording_sleep):
    limited = OracleResult.failed(OracleErrorKind.RATE_LIMITED, "429")
    partial = as_output(make_record())
    oracle = ScriptedOracle([limited, partial, partial])

    outcome = _run(oracle, small_chunk_config, sleep=recording_sleep)

    assert recording_sleep.delays == pytest.approx([0.8])
    assert outcome.run.oracle_attempts == 3


def test_exhausted_retries_abort_the_run(small_chunk_config, recording_sleep):
    overloaded = OracleResult.failed(OracleErrorKind.OVERLOADED, "overloaded")
    oracle = ScriptedOracle([overloaded] * 4)

    with pytest.raises(OracleTransientError) as excinfo:
        _run(oracle, small_chunk_config, sleep=recording_sleep)

    assert excinfo.value.phase == "analyzing"
    assert excinfo.value.attempts == 4
    assert recording_sleep.delays == pytest.approx([0.8, 1.6, 3.2])


def test_fatal_merge_failure_reports_merging_phase(small_chunk_config):
    oracle = ScriptedOracle(
        [as_output(make_record()), OracleResult.failed(OracleErrorKind.OTHER, "invalid api key")]
    )

    with pytest.raises(OracleFatalError) as excinfo:
        _run(oracle, small_chunk_config)

    assert excinfo.value.phase == "merging"


class SlowFirstOracle(Oracle):
    """Answers later chunks before earlier ones."""

    provider = "test"

    def __init__(self, unparseable: tuple[int, ...] = ()) -> None:
        self.merge_prompt = None
        self.unparseable = unparseable

    async def analyze(self, prompt: str) -> OracleResult:
        match = re.match(r"Teil (\d+)/(\d+):", prompt)
        if match is None:
            self.merge_prompt = prompt
            return OracleResult.success(as_output(make_record()))
        index, total = int(match.group(1)), int(match.group(2))
        await asyncio.sleep(0.01 * (total - index))
        if index in self.unparseable:
            return OracleResult.success("keine Angaben")
        return OracleResult.success(json.dumps({"executive_summary": f"Teilergebnis {index}"}))


def test_concurrent_chunks_keep_document_order(small_chunk_config):
    config = replace(small_chunk_config, chunk_concurrency=3)
    oracle = SlowFirstOracle()

    outcome = _run(oracle, config, text=sectioned_contract(sections=3))

    assert outcome.run.chunk_count == 3
    positions = [oracle.merge_prompt.index(f"Teilergebnis {index}") for index in (1, 2, 3)]
    assert positions == sorted(positions)


def test_concurrent_skipped_chunks_are_listed_in_document_order(small_chunk_config):
    config = replace(small_chunk_config, chunk_concurrency=3)
    oracle = SlowFirstOracle(unparseable=(1, 2))

    outcome = _run(oracle, config, text=sectioned_contract(sections=3))

    assert outcome.run.skipped_chunks == [1, 2]
    assert oracle.merge_prompt.startswith("Hier sind 1 JSON-Ergebnisse")


def test_keyword_hints_are_appended_when_enabled(small_chunk_config):
    partial = as_output(make_record())
    with_hints = ScriptedOracle([partial, partial])
    without_hints = ScriptedOracle([partial, partial])

    _run(with_hints, replace(small_chunk_config, include_hints=True))
    _run(without_hints, small_chunk_config)

    assert "Hinweise (Snippets je Kategorie" in with_hints.prompts[0]
    assert "- instructions_only:" in with_hints.prompts[0]
    assert "Hinweise" not in without_hints.prompts[0]


def test_mixed_contract_end_to_end(small_chunk_config):
    merged = make_record(
        "missing",
        None,
        overrides={"instructions_only": "met", "security_TOMs": "partial", "liability_cap": "not_found"},
        actions=[{"category": "audit_rights", "severity": "high", "description": "Prüfrechte ergänzen"}],
    )
    oracle = ScriptedOracle([as_output(merged), as_output(merged)])

    outcome = _run(oracle, small_chunk_config)

    assert outcome.breakdown.base == 25
    assert outcome.breakdown.corrections == 10
    assert outcome.breakdown.overall == 15
    assert outcome.record.risk_score == 85
