"""Exponential backoff around oracle calls."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, List

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_exponential

from avvcheck.errors import AnalysisError, OracleFatalError, OracleTransientError
from avvcheck.telemetry import emit_oracle_retry

from .base import Oracle, OracleResult

LOGGER = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class BackoffPolicy:
    max_retries: int = 3
    base_delay: float = 0.8
    max_delay: float = 10.0

    def delays(self) -> List[float]:
        """Sleep durations between attempts, in order."""

        return [min(self.base_delay * 2**attempt, self.max_delay) for attempt in range(self.max_retries)]


@dataclass(frozen=True, slots=True)
class OracleCall:
    text: str
    attempts: int


def _should_retry(result: OracleResult) -> bool:
    return result.retryable


def _last_result(retry_state: RetryCallState) -> OracleResult:
    return retry_state.outcome.result()


async def call_with_backoff(
    oracle: Oracle,
    prompt: str,
    *,
    policy: BackoffPolicy | None = None,
    sleep: SleepFunc = asyncio.sleep,
    label: str = "oracle",
) -> OracleCall:
    """Call *oracle* and retry rate-limit/overload failures with doubling delays.

    Raises :class:`OracleTransientError` once the retry ceiling is reached and
    :class:`OracleFatalError` immediately for any other failure, including
    exceptions raised by the oracle itself.
    """

    policy = policy or BackoffPolicy()
    attempts = 0

    async def attempt() -> OracleResult:
        nonlocal attempts
        attempts += 1
        return await oracle.analyze(prompt)

    def before_sleep(retry_state: RetryCallState) -> None:
        failure = retry_state.outcome.result().failure
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        LOGGER.warning(
            "%s: oracle %s (attempt %s), retrying in %.2fs",
            label,
            failure.kind.value if failure else "failure",
            retry_state.attempt_number,
            delay,
        )
        emit_oracle_retry(
            label=label,
            attempt=retry_state.attempt_number,
            delay_seconds=delay,
            kind=failure.kind.value if failure else None,
        )

    retrying = AsyncRetrying(
        retry=retry_if_result(_should_retry),
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
        sleep=sleep,
        before_sleep=before_sleep,
        retry_error_callback=_last_result,
    )
    try:
        result: OracleResult = await retrying(attempt)
    except AnalysisError:
        raise
    except Exception as error:
        raise OracleFatalError(
            f"{label}: oracle raised {error.__class__.__name__}: {error}", cause=error
        ) from error

    if result.failure is None:
        return OracleCall(text=result.text or "", attempts=attempts)

    failure = result.failure
    if failure.retryable:
        raise OracleTransientError(
            f"{label}: oracle still {failure.kind.value} after {attempts} attempts: {failure.message}",
            attempts=attempts,
        )
    raise OracleFatalError(f"{label}: oracle call failed: {failure.message}")


__all__ = ["BackoffPolicy", "OracleCall", "call_with_backoff"]
