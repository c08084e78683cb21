"""Oracle interface and in-process implementations."""

from .base import Oracle, OracleErrorKind, OracleFailure, OracleResult, OracleStatus
from .mock import MockOracle, ScriptedOracle, StubOracle

__all__ = [
    "MockOracle",
    "Oracle",
    "OracleErrorKind",
    "OracleFailure",
    "OracleResult",
    "OracleStatus",
    "ScriptedOracle",
    "StubOracle",
]
