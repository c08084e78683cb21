"""Oracle backed by the OpenAI chat completions API."""
from __future__ import annotations

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from avvcheck.config import OracleConfig
from avvcheck.prompt_builder import SYSTEM_PROMPT

from .base import Oracle, OracleErrorKind, OracleResult, OracleStatus, classify_error_message

LOGGER = logging.getLogger(__name__)

_OVERLOADED_STATUS_CODES = frozenset({503, 529})


def classify_api_error(error: openai.APIError) -> OracleErrorKind:
    """Map an SDK exception onto the oracle failure kinds."""

    message = str(error)
    if isinstance(error, openai.RateLimitError):
        # quota exhaustion arrives as 429 too but does not clear by waiting
        if "insufficient_quota" in message:
            return OracleErrorKind.OTHER
        return OracleErrorKind.RATE_LIMITED
    if isinstance(error, openai.APIStatusError) and error.status_code in _OVERLOADED_STATUS_CODES:
        return OracleErrorKind.OVERLOADED
    return classify_error_message(message)


class OpenAIOracle(Oracle):
    """Send each prompt as a single user turn under the fixed system prompt."""

    provider = "openai"

    def __init__(
        self,
        config: OracleConfig,
        *,
        client: Optional[AsyncOpenAI] = None,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self._config = config
        self.model = config.model
        self._system_prompt = system_prompt
        # retries are owned by the backoff loop, not the SDK
        self._client = client or AsyncOpenAI(
            api_key=config.api_key,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=0,
        )

    async def analyze(self, prompt: str) -> OracleResult:
        try:
            response = await self._client.chat.completions.create(
                model=self._config.model,
                temperature=self._config.temperature,
                max_tokens=self._config.max_tokens,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
            )
        except openai.APIError as error:
            kind = classify_api_error(error)
            LOGGER.debug("OpenAI call failed (%s): %s", kind.value, error)
            return OracleResult.failed(kind, str(error))

        if not response.choices:
            return OracleResult.failed(OracleErrorKind.OTHER, "response contained no choices")
        content = response.choices[0].message.content
        return OracleResult.success(content or "")

    def status(self) -> OracleStatus:
        return OracleStatus(configured=True, provider=self.provider, model=self.model)


__all__ = ["OpenAIOracle", "classify_api_error"]
