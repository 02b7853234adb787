"""
AI gateway backed by the OpenAI chat completions API.

Four narrow operations: intent classification, single-field validation,
yes/no interpretation and FAQ answering. Every call is best-effort: API
failures are logged and surface as "no answer" so the conversation can
carry on.
"""

import json
import logging
import re
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from admission_bot.config import ModelConfig, settings
from admission_bot.prompts.system_prompts import (
    FAQ_PROMPT_TEMPLATE,
    FAQ_SYSTEM_PROMPT,
    GENERIC_VALIDATION_PROMPT,
    INTENT_PROMPT_TEMPLATE,
    INTENT_SYSTEM_PROMPT,
    VALIDATION_PROMPTS,
    VALIDATION_SYSTEM_PROMPT,
    YES_NO_PROMPT_TEMPLATE,
    YES_NO_SYSTEM_PROMPT,
)
from admission_bot.schemas.admission_schema import Intent

logger = logging.getLogger(__name__)

VALIDATION_UNAVAILABLE = "Validation service is unavailable. Please try again."

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def _strip_code_fence(text: str) -> str:
    match = _CODE_FENCE.search(text)
    return (match.group(1) if match else text).strip()


def _normalize_yes_no(text: str) -> str:
    return re.sub(r"[^\w\s]|_", "", text).strip().lower()


class AIService:
    """Thin async wrapper around chat completions for the admission flow."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model_config: ModelConfig = settings.model,
    ) -> None:
        self._client = client
        self.config = model_config

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.config.api_key or None,
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def _complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> Optional[str]:
        """Run one chat completion; returns None when the API call fails."""
        try:
            response = await self.client.chat.completions.create(
                model=self.config.llm_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except OpenAIError as exc:
            logger.error("OpenAI request failed: %s", exc)
            return None
        content = response.choices[0].message.content if response.choices else None
        return content.strip() if content else None

    async def determine_intent(self, message: str, context: str = "") -> Intent:
        """Classify ``message``; anything unparseable is ``Intent.UNKNOWN``."""
        result = await self._complete(
            INTENT_SYSTEM_PROMPT,
            INTENT_PROMPT_TEMPLATE.format(message=message, context=context),
            max_tokens=100,
            temperature=self.config.classification_temperature,
        )
        if not result:
            logger.warning("No response for intent determination")
            return Intent.UNKNOWN
        try:
            label = json.loads(_strip_code_fence(result)).get("intent")
            return Intent(label)
        except (ValueError, AttributeError):
            logger.warning("Failed to parse intent from response: %r", result)
            return Intent.UNKNOWN

    async def validate_input(self, validation_type: str, value: str) -> str:
        """Return ``"valid <normalized>"`` or the validator's rejection text."""
        template = VALIDATION_PROMPTS.get(validation_type, GENERIC_VALIDATION_PROMPT)
        result = await self._complete(
            VALIDATION_SYSTEM_PROMPT,
            template.format(value=value, validation_type=validation_type),
            max_tokens=150,
            temperature=self.config.classification_temperature,
        )
        if not result:
            return VALIDATION_UNAVAILABLE
        return _strip_code_fence(result)

    async def interpret_yes_no(self, message: str) -> str:
        """Return ``"yes"``, ``"no"`` or ``"unknown"``; literal answers skip the API."""
        normalized = _normalize_yes_no(message)
        if normalized in ("yes", "no"):
            return normalized
        result = await self._complete(
            YES_NO_SYSTEM_PROMPT,
            YES_NO_PROMPT_TEMPLATE.format(message=message),
            max_tokens=20,
            temperature=self.config.classification_temperature,
        )
        if not result:
            return "unknown"
        verdict = _normalize_yes_no(result)
        return verdict if verdict in ("yes", "no") else "unknown"

    async def answer_question(self, question: str, document: str = "") -> Optional[str]:
        """Answer an FAQ from the school document, or None if no answer came back."""
        return await self._complete(
            FAQ_SYSTEM_PROMPT,
            FAQ_PROMPT_TEMPLATE.format(document=document, question=question),
            max_tokens=600,
            temperature=self.config.answer_temperature,
        )
