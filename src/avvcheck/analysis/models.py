"""Data models shared by the analysis pipeline."""
from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .categories import CORE_CATEGORIES, SUPPLEMENTARY_CATEGORIES, Category, Severity, Status

RISK_SOURCE_DERIVED = "derived"
RISK_SOURCE_ORACLE = "oracle"


@dataclass(frozen=True, slots=True)
class Document:
    """Contract text handed to the pipeline.

    ``page_starts`` holds the character offset at which each page begins
    (page ``n`` starts at ``page_starts[n - 1]``). It is empty when the text
    did not come from a paginated source.
    """

    text: str
    page_starts: Tuple[int, ...] = ()

    def page_at(self, offset: int) -> Optional[int]:
        if not self.page_starts:
            return None
        return max(bisect.bisect_right(self.page_starts, offset), 1)


@dataclass(frozen=True, slots=True)
class Chunk:
    """Contiguous slice of a document sent to the oracle in one call."""

    index: int
    total: int
    text: str
    char_start: int
    char_end: int
    estimated_tokens: int


@dataclass(slots=True)
class Evidence:
    quote: str
    page: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"quote": self.quote}
        if self.page is not None:
            payload["page"] = self.page
        return payload


@dataclass(slots=True)
class Finding:
    category: Category
    status: Optional[Status] = None
    evidence: List[Evidence] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value if self.status is not None else None,
            "evidence": [item.to_dict() for item in self.evidence],
        }


@dataclass(slots=True)
class Party:
    role: str
    name: str
    country: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "name": self.name, "country": self.country}


@dataclass(slots=True)
class ContractMetadata:
    title: str = ""
    date: str = ""
    parties: List[Party] = field(default_factory=list)
    processor_dpo: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "title": self.title,
            "date": self.date,
            "parties": [party.to_dict() for party in self.parties],
        }
        if self.processor_dpo:
            payload["processor_dpo"] = self.processor_dpo
        return payload


@dataclass(slots=True)
class ActionItem:
    category: Category
    severity: Severity
    description: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "category": self.category.value,
            "severity": self.severity.value,
            "description": self.description,
        }


@dataclass(slots=True)
class ScoreBreakdown:
    """Deterministic compliance score and the risk figure derived from it."""

    per_category_points: Dict[Category, float]
    base: float
    bonus: int
    corrections: int
    overall: int
    risk: float
    risk_source: str = RISK_SOURCE_DERIVED

    def to_dict(self) -> Dict[str, Any]:
        details: Dict[str, Any] = {
            category.value: points for category, points in self.per_category_points.items()
        }
        details.update(base=self.base, bonus=self.bonus, corrections=self.corrections)
        return {"overall": self.overall, "details": details}


@dataclass(slots=True)
class AnalysisRecord:
    """Canonical result of one contract analysis."""

    summary: str = ""
    metadata: ContractMetadata = field(default_factory=ContractMetadata)
    findings: Dict[Category, Finding] = field(default_factory=dict)
    actions: List[ActionItem] = field(default_factory=list)
    risk_override: Optional[float] = None
    risk_rationale: str = ""
    compliance: Optional[ScoreBreakdown] = None

    @property
    def risk_score(self) -> Optional[float]:
        if self.compliance is not None:
            return self.compliance.risk
        return self.risk_override

    def status_of(self, category: Category) -> Optional[Status]:
        finding = self.findings.get(category)
        return finding.status if finding is not None else None

    def to_dict(self) -> Dict[str, Any]:
        if self.risk_override is not None:
            risk_source: Optional[str] = RISK_SOURCE_ORACLE
        elif self.compliance is not None:
            risk_source = RISK_SOURCE_DERIVED
        else:
            risk_source = None

        return {
            "executive_summary": self.summary,
            "contract_metadata": self.metadata.to_dict(),
            "article_28_analysis": {
                category.value: self._finding(category).to_dict() for category in CORE_CATEGORIES
            },
            "additional_clauses": {
                category.value: self._finding(category).to_dict()
                for category in SUPPLEMENTARY_CATEGORIES
            },
            "recommended_actions": [action.to_dict() for action in self.actions],
            "compliance_score": self.compliance.to_dict() if self.compliance is not None else None,
            "risk_score": {
                "overall": self.risk_score,
                "rationale": self.risk_rationale,
                "source": risk_source,
            },
        }

    def _finding(self, category: Category) -> Finding:
        return self.findings.get(category) or Finding(category=category)


__all__ = [
    "ActionItem",
    "AnalysisRecord",
    "Chunk",
    "ContractMetadata",
    "Document",
    "Evidence",
    "Finding",
    "Party",
    "RISK_SOURCE_DERIVED",
    "RISK_SOURCE_ORACLE",
    "ScoreBreakdown",
]
