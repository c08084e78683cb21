"""Build the oracle selected through ``ORACLE_PROVIDER``."""
from __future__ import annotations

import logging
from typing import Optional

from avvcheck.config import OracleConfig
from avvcheck.telemetry import emit_oracle_init

from .base import Oracle
from .mock import MockOracle, StubOracle

LOGGER = logging.getLogger(__name__)


def build_oracle(config: Optional[OracleConfig] = None) -> Oracle:
    config = config or OracleConfig.from_env()
    provider = config.provider

    if provider == "mock":
        oracle: Oracle = MockOracle()
    elif provider == "stub":
        oracle = StubOracle()
    elif provider == "openai":
        if not config.api_key:
            LOGGER.warning("OPENAI_API_KEY is not set; falling back to the stub oracle")
            oracle = StubOracle("OPENAI_API_KEY is not set")
        else:
            from .openai_oracle import OpenAIOracle

            oracle = OpenAIOracle(config)
    else:
        LOGGER.warning("Unknown ORACLE_PROVIDER %r; falling back to the stub oracle", provider)
        oracle = StubOracle(f"Unknown oracle provider: {provider}")

    status = oracle.status()
    emit_oracle_init(
        provider=status.provider,
        model=status.model,
        configured=status.configured,
        error=status.error,
    )
    return oracle


__all__ = ["build_oracle"]
