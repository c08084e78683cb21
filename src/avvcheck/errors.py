"""Exception hierarchy for the contract analysis pipeline."""
from __future__ import annotations


class AnalysisError(RuntimeError):
    """Base class for failures surfaced by the analysis pipeline."""

    def __init__(
        self,
        message: str,
        *,
        phase: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.phase = phase
        self.__cause__ = cause


class InputEmptyError(AnalysisError):
    """Raised when the document carries no usable text."""


class ExtractionFailedError(AnalysisError):
    """Raised when text cannot be extracted from the uploaded document."""


class OracleTransientError(AnalysisError):
    """Raised when rate limiting or overload persists past the retry ceiling."""

    def __init__(self, message: str, *, attempts: int, **kwargs) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts


class OracleFatalError(AnalysisError):
    """Raised for non-retryable oracle failures."""


class MalformedOutputError(AnalysisError):
    """Raised when no structured record can be recovered from oracle output."""


class NoUsableResultsError(AnalysisError):
    """Raised when every chunk analysis had to be skipped."""


__all__ = [
    "AnalysisError",
    "ExtractionFailedError",
    "InputEmptyError",
    "MalformedOutputError",
    "NoUsableResultsError",
    "OracleFatalError",
    "OracleTransientError",
]
