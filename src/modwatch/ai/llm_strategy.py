"""Analysis strategy backed by an OpenAI-compatible chat completion API.

Works with OpenAI itself and with local servers that speak the same protocol
(vLLM, LM Studio, Ollama). API failures are not raised: they come back as
text that cannot be parsed, so the detector skips the category for the cycle.
"""

from __future__ import annotations

from typing import Any, Dict

from openai import AsyncOpenAI

from modwatch.configuration.ai_settings import AISettings
from modwatch.util.logger import get_logger

logger = get_logger("llm_strategy")


class OpenAIAnalysisStrategy:
    """Send each analysis prompt as one chat completion request."""

    def __init__(self, ai_settings: AISettings, client: AsyncOpenAI | None = None) -> None:
        self._client = client or AsyncOpenAI(
            api_key=ai_settings.api_key,
            base_url=ai_settings.base_url,
        )
        self._model_name = ai_settings.model_name
        self._system_prompt = ai_settings.system_prompt
        self._sampling: Dict[str, Any] = dict(ai_settings.sampling_parameters)
        logger.info(
            "[LLM STRATEGY] Initialized with base_url=%s, model=%s",
            ai_settings.base_url,
            self._model_name,
        )

    async def analyze(self, prompt: str) -> str:
        try:
            response = await self._client.chat.completions.create(
                model=self._model_name,
                messages=[
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
                **self._sampling,
            )
            response_text = response.choices[0].message.content or ""
        except Exception as exc:
            logger.error("[LLM STRATEGY] API request failed: %s", exc)
            return f"null: api error - {exc}"

        logger.debug("[LLM STRATEGY] Response (%d chars): %s", len(response_text), response_text[:200])
        return response_text

    async def close(self) -> None:
        await self._client.close()
