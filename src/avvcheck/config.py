"""Environment-driven configuration for the analysis pipeline and oracle."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from avvcheck.analysis.chunking import ChunkingConfig
from avvcheck.oracle.backoff import BackoffPolicy

LOGGER = logging.getLogger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}
_TRUE_VALUES = {"1", "true", "yes", "on"}


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _flag_from_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    LOGGER.warning("Invalid flag for %s: %s; using default %s", name, value, default)
    return default


@dataclass(slots=True)
class OracleConfig:
    provider: str = "openai"
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 4000
    timeout_seconds: float = 120.0

    @classmethod
    def from_env(cls) -> "OracleConfig":
        defaults = cls()
        return cls(
            provider=(os.getenv("ORACLE_PROVIDER") or defaults.provider).strip().lower(),
            api_key=os.getenv("OPENAI_API_KEY") or None,
            model=os.getenv("OPENAI_MODEL") or defaults.model,
            base_url=os.getenv("OPENAI_BASE_URL") or None,
            temperature=_float_from_env("ORACLE_TEMPERATURE", defaults.temperature),
            max_tokens=_int_from_env("ORACLE_MAX_TOKENS", defaults.max_tokens),
            timeout_seconds=_float_from_env("ORACLE_TIMEOUT", defaults.timeout_seconds),
        )


@dataclass(slots=True)
class AnalysisConfig:
    """Tunables of one analysis run."""

    chunking: ChunkingConfig = field(default_factory=ChunkingConfig)
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    min_text_chars: int = 20
    chunk_concurrency: int = 1
    include_hints: bool = True

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        defaults = cls()
        chunking_defaults = ChunkingConfig()
        backoff_defaults = BackoffPolicy()
        config = cls(
            chunking=ChunkingConfig(
                target_tokens=_int_from_env("AVV_TARGET_TOKENS", chunking_defaults.target_tokens),
                hard_max_tokens=_int_from_env("AVV_HARD_MAX_TOKENS", chunking_defaults.hard_max_tokens),
                max_chunks=_int_from_env("AVV_MAX_CHUNKS", chunking_defaults.max_chunks),
            ),
            backoff=BackoffPolicy(
                max_retries=max(0, _int_from_env("ORACLE_MAX_RETRIES", backoff_defaults.max_retries)),
                base_delay=max(0.0, _float_from_env("ORACLE_BASE_DELAY", backoff_defaults.base_delay)),
                max_delay=max(0.0, _float_from_env("ORACLE_MAX_DELAY", backoff_defaults.max_delay)),
            ),
            min_text_chars=max(1, _int_from_env("AVV_MIN_TEXT_CHARS", defaults.min_text_chars)),
            chunk_concurrency=max(1, _int_from_env("AVV_CHUNK_CONCURRENCY", defaults.chunk_concurrency)),
            include_hints=_flag_from_env("AVV_INCLUDE_HINTS", defaults.include_hints),
        )
        try:
            config.chunking.validate()
        except ValueError as error:
            LOGGER.warning("Invalid chunking configuration (%s); using defaults", error)
            config.chunking = chunking_defaults
        return config


__all__ = ["AnalysisConfig", "OracleConfig"]
