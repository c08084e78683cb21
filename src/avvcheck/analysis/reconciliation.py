"""Normalise oracle records of any known shape into an :class:`AnalysisRecord`.

Every alternative field name accepted from the oracle is listed in one of
the tables below; the normalisation pass only ever consults those tables.
"""
from __future__ import annotations

import logging
import math
import re
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .categories import (
    CATEGORY_ORDER,
    CATEGORY_RANK,
    SEVERITY_RANK,
    STATUS_STRENGTH,
    Category,
    Status,
    canonical_category,
    canonical_severity,
    canonical_status,
    infer_category,
)
from .models import (
    RISK_SOURCE_DERIVED,
    ActionItem,
    AnalysisRecord,
    ContractMetadata,
    Evidence,
    Finding,
    Party,
)

LOGGER = logging.getLogger(__name__)

MAX_EVIDENCE_PER_FINDING = 2
MAX_QUOTE_CHARS = 240
DEFAULT_COUNTRY = "DE"

CONTROLLER_LABEL = "Verantwortlicher"
PROCESSOR_LABEL = "Auftragsverarbeiter"

_FINDING_GROUPS: Tuple[Tuple[str, ...], ...] = (
    ("findings",),
    ("findings", "art_28"),
    ("findings", "additional_clauses"),
    ("article_28_analysis",),
    ("additional_clauses",),
    ("prüfung", "art_28"),
    ("prüfung", "zusatzklauseln"),
)
_STATUS_FIELDS = ("status",)
_EVIDENCE_FIELDS = ("evidence", "belege")
_QUOTE_FIELDS = ("quote", "zitat")
_PAGE_FIELDS = ("page", "seite")

_SUMMARY_FIELDS = ("executive_summary", "summary", "zusammenfassung")
_METADATA_FIELDS = ("contract_metadata", "vertrag_metadata")
_TITLE_FIELDS = ("title", "titel")
_DATE_FIELDS = ("date", "datum")
_PARTIES_FIELDS = ("parties", "parteien")
_PARTY_ROLE_FIELDS = ("role", "rolle")
_PARTY_NAME_FIELDS = ("name",)
_PARTY_COUNTRY_FIELDS = ("country", "land")
_DPO_FIELDS = ("processor_dpo",)

_ACTION_LIST_FIELDS = ("recommended_actions", "actions", "massnahmen", "maßnahmen")
_ACTION_CATEGORY_FIELDS = ("category", "key", "type", "kategorie")
_ACTION_SEVERITY_FIELDS = ("severity", "priority", "schweregrad")
_ACTION_TEXT_FIELDS = (
    "description",
    "action",
    "recommendation",
    "issue",
    "suggested_clause",
    "massnahme",
)

_RISK_FIELDS = ("risk_score", "risiko_score")
_RISK_VALUE_FIELDS = ("overall", "gesamt")
_RISK_RATIONALE_FIELDS = ("rationale",)
_TOP_LEVEL_RATIONALE_FIELDS = ("risk_rationale",)

_ROLE_LABELS: Mapping[str, str] = {
    "controller": CONTROLLER_LABEL,
    "verantwortlicher": CONTROLLER_LABEL,
    "processor": PROCESSOR_LABEL,
    "auftragsverarbeiter": PROCESSOR_LABEL,
}
_DPO_ROLES = frozenset({"processor_dpo", "dpo", "data_protection_officer", "datenschutzbeauftragter"})

_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_GERMAN_DATE_RE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")


def _first(source: Any, fields: Iterable[str]) -> Any:
    if not isinstance(source, Mapping):
        return None
    for name in fields:
        value = source.get(name)
        if value is not None:
            return value
    return None


def _nested(source: Any, path: Sequence[str]) -> Any:
    node = source
    for name in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(name)
    return node


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _collapse(value: str) -> str:
    return " ".join(value.split())


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def trim_quote(value: str) -> str:
    return _collapse(value)[:MAX_QUOTE_CHARS].rstrip()


def _page_number(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def _evidence_item(value: Any) -> Optional[Evidence]:
    if isinstance(value, str):
        quote, page = value, None
    elif isinstance(value, Mapping):
        quote, page = _text(_first(value, _QUOTE_FIELDS)), _first(value, _PAGE_FIELDS)
    else:
        return None
    trimmed = trim_quote(quote)
    if not trimmed:
        return None
    return Evidence(quote=trimmed, page=_page_number(page))


def _evidence_list(value: Any) -> List[Evidence]:
    if isinstance(value, Mapping):
        value = [value]
    if not isinstance(value, list):
        return []
    items = (_evidence_item(entry) for entry in value)
    return [item for item in items if item is not None]


def _dedupe_evidence(items: Iterable[Evidence]) -> List[Evidence]:
    seen: set[str] = set()
    unique: List[Evidence] = []
    for item in items:
        key = item.quote.casefold()
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
        if len(unique) == MAX_EVIDENCE_PER_FINDING:
            break
    return unique


def _stronger(current: Optional[Status], candidate: Optional[Status]) -> Optional[Status]:
    if current is None:
        return candidate
    if candidate is None:
        return current
    return candidate if STATUS_STRENGTH[candidate] > STATUS_STRENGTH[current] else current


def _collect_findings(record: Mapping[str, Any]) -> Dict[Category, Finding]:
    collected: Dict[Category, Finding] = {}
    for path in _FINDING_GROUPS:
        group = _nested(record, path)
        if not isinstance(group, Mapping):
            continue
        for key, value in group.items():
            category = canonical_category(key)
            if category is None:
                LOGGER.debug("Ignoring finding key %r under %s", key, ".".join(path))
                continue
            if isinstance(value, str):
                status, evidence = canonical_status(value, category), []
            elif isinstance(value, Mapping):
                status = canonical_status(_first(value, _STATUS_FIELDS), category)
                evidence = _evidence_list(_first(value, _EVIDENCE_FIELDS))
            else:
                continue

            existing = collected.get(category)
            if existing is None:
                collected[category] = Finding(category=category, status=status, evidence=evidence)
            else:
                existing.status = _stronger(existing.status, status)
                existing.evidence.extend(evidence)

    findings: Dict[Category, Finding] = {}
    for category in CATEGORY_ORDER:
        finding = collected.get(category) or Finding(category=category)
        finding.evidence = _dedupe_evidence(finding.evidence)
        findings[category] = finding
    return findings


def _party_name_and_country(value: Any) -> Tuple[str, str]:
    if isinstance(value, Mapping):
        return _text(_first(value, _PARTY_NAME_FIELDS)), _text(_first(value, _PARTY_COUNTRY_FIELDS))
    return _text(value), ""


def _normalise_parties(raw: Any) -> Tuple[List[Party], Optional[str]]:
    parties: List[Party] = []
    dpo: Optional[str] = None

    if isinstance(raw, Mapping):
        shared_country = _text(_first(raw, _PARTY_COUNTRY_FIELDS))
        for role_key, label in (("controller", CONTROLLER_LABEL), ("processor", PROCESSOR_LABEL)):
            name, country = _party_name_and_country(raw.get(role_key))
            if name:
                parties.append(Party(role=label, name=name, country=country or shared_country))
        dpo_name, _ = _party_name_and_country(raw.get("processor_dpo"))
        dpo = dpo_name or None
    elif isinstance(raw, list):
        for entry in raw:
            if not isinstance(entry, Mapping):
                continue
            name = _text(_first(entry, _PARTY_NAME_FIELDS))
            if not name:
                continue
            role = _text(_first(entry, _PARTY_ROLE_FIELDS))
            if role.casefold() in _DPO_ROLES:
                dpo = dpo or name
                continue
            parties.append(
                Party(
                    role=_ROLE_LABELS.get(role.casefold(), role),
                    name=name,
                    country=_text(_first(entry, _PARTY_COUNTRY_FIELDS)),
                )
            )

    unique: List[Party] = []
    seen: set[Tuple[str, str]] = set()
    for party in parties:
        key = (party.role, party.name.casefold())
        if key not in seen:
            seen.add(key)
            unique.append(party)

    for party in unique:
        if party.country:
            continue
        others = [other.country for other in unique if other is not party and other.country]
        party.country = others[0] if others else DEFAULT_COUNTRY
    return unique, dpo


def _iso_date(value: Any) -> str:
    text = _text(value)
    if not text:
        return ""
    try:
        iso = _ISO_DATE_RE.match(text)
        if iso:
            return date(int(iso.group(1)), int(iso.group(2)), int(iso.group(3))).isoformat()
        german = _GERMAN_DATE_RE.match(text)
        if german:
            return date(int(german.group(3)), int(german.group(2)), int(german.group(1))).isoformat()
    except ValueError:
        LOGGER.debug("Discarding invalid contract date %r", text)
    return ""


def _normalise_metadata(record: Mapping[str, Any]) -> ContractMetadata:
    raw = _first(record, _METADATA_FIELDS)
    raw = raw if isinstance(raw, Mapping) else {}
    raw_parties = _first(raw, _PARTIES_FIELDS)
    if raw_parties is None:
        raw_parties = _first(record, _PARTIES_FIELDS)
    parties, dpo = _normalise_parties(raw_parties)
    return ContractMetadata(
        title=_text(_first(raw, _TITLE_FIELDS)),
        date=_iso_date(_first(raw, _DATE_FIELDS)),
        parties=parties,
        processor_dpo=_text(_first(raw, _DPO_FIELDS)) or dpo,
    )


def _normalise_actions(record: Mapping[str, Any]) -> List[ActionItem]:
    raw_items: List[Any] = []
    for name in _ACTION_LIST_FIELDS:
        value = record.get(name)
        if isinstance(value, list):
            raw_items.extend(value)

    actions: List[ActionItem] = []
    seen: set[Tuple[Category, str, str]] = set()
    for item in raw_items:
        if not isinstance(item, Mapping):
            continue
        texts = [_collapse(_text(item.get(name))) for name in _ACTION_TEXT_FIELDS]
        description = next((text for text in texts if text), "")
        if not description:
            continue
        category = canonical_category(_first(item, _ACTION_CATEGORY_FIELDS))
        if category is None:
            category = infer_category(" ".join(text for text in texts if text))
        severity = canonical_severity(_first(item, _ACTION_SEVERITY_FIELDS))
        key = (category, severity.value, description)
        if key in seen:
            continue
        seen.add(key)
        actions.append(ActionItem(category=category, severity=severity, description=description))

    actions.sort(key=lambda action: (SEVERITY_RANK[action.severity], CATEGORY_RANK[action.category]))
    return actions


def _risk_fields(record: Mapping[str, Any]) -> Tuple[Optional[float], str]:
    raw = _first(record, _RISK_FIELDS)
    override: Optional[float] = None
    rationale = ""
    if isinstance(raw, Mapping):
        if raw.get("source") != RISK_SOURCE_DERIVED:
            override = _number(_first(raw, _RISK_VALUE_FIELDS))
        rationale = _text(_first(raw, _RISK_RATIONALE_FIELDS))
    else:
        override = _number(raw)
    if not rationale:
        rationale = _text(_first(record, _TOP_LEVEL_RATIONALE_FIELDS))
    return override, rationale


def reconcile(record: Mapping[str, Any] | AnalysisRecord | None) -> AnalysisRecord:
    """Build the canonical record from any structurally valid oracle record.

    Never raises; unknown fields and categories are ignored. Scores are not
    computed here, see :func:`avvcheck.analysis.scoring.score_record`.
    """

    if isinstance(record, AnalysisRecord):
        record = record.to_dict()
    if not isinstance(record, Mapping):
        record = {}

    risk_override, risk_rationale = _risk_fields(record)
    return AnalysisRecord(
        summary=_text(_first(record, _SUMMARY_FIELDS)),
        metadata=_normalise_metadata(record),
        findings=_collect_findings(record),
        actions=_normalise_actions(record),
        risk_override=risk_override,
        risk_rationale=risk_rationale,
    )


__all__ = ["MAX_EVIDENCE_PER_FINDING", "MAX_QUOTE_CHARS", "reconcile", "trim_quote"]
