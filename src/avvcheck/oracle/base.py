"""Oracle contract: prompt text in, raw text or a classified failure out."""
from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

__all__ = [
    "Oracle",
    "OracleErrorKind",
    "OracleFailure",
    "OracleResult",
    "OracleStatus",
    "classify_error_message",
]


class OracleErrorKind(str, Enum):
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    OTHER = "other"


_RETRYABLE_KINDS = frozenset({OracleErrorKind.RATE_LIMITED, OracleErrorKind.OVERLOADED})
_OVERLOADED_RE = re.compile(r"overloaded|server is busy|capacity", re.IGNORECASE)
_RATE_LIMIT_RE = re.compile(
    r"too_many_requests|too many requests|rate.?limit|tokens per min|\btpm\b|\brpm\b",
    re.IGNORECASE,
)
_QUOTA_RE = re.compile(r"insufficient_quota|billing", re.IGNORECASE)


def classify_error_message(message: str) -> OracleErrorKind:
    """Classify a provider error from its message text alone."""

    if _QUOTA_RE.search(message):
        return OracleErrorKind.OTHER
    if _OVERLOADED_RE.search(message):
        return OracleErrorKind.OVERLOADED
    if _RATE_LIMIT_RE.search(message):
        return OracleErrorKind.RATE_LIMITED
    return OracleErrorKind.OTHER


@dataclass(frozen=True, slots=True)
class OracleFailure:
    kind: OracleErrorKind
    message: str

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS


@dataclass(frozen=True, slots=True)
class OracleResult:
    """Outcome of a single oracle call; exactly one of the fields is set."""

    text: Optional[str] = None
    failure: Optional[OracleFailure] = None

    @classmethod
    def success(cls, text: str) -> "OracleResult":
        return cls(text=text)

    @classmethod
    def failed(cls, kind: OracleErrorKind, message: str) -> "OracleResult":
        return cls(failure=OracleFailure(kind=kind, message=message))

    @property
    def retryable(self) -> bool:
        return self.failure is not None and self.failure.retryable


@dataclass(slots=True)
class OracleStatus:
    """Structured status information about the configured oracle backend."""

    configured: bool
    provider: str
    model: str
    error: Optional[str] = None


class Oracle(ABC):
    """Abstract interface for the external analysis capability."""

    provider = "abstract"
    model = "none"

    @abstractmethod
    async def analyze(self, prompt: str) -> OracleResult:
        """Run the analysis prompt and return the raw output or a classified failure."""

    def status(self) -> OracleStatus:
        return OracleStatus(configured=True, provider=self.provider, model=self.model)
