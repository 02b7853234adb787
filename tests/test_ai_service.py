"""Tests for the AI gateway, using a scripted chat completions client."""

from types import SimpleNamespace
from typing import Optional

import pytest
from openai import OpenAIError

from admission_bot.config import ModelConfig
from admission_bot.schemas.admission_schema import Intent
from admission_bot.tools.ai_service import VALIDATION_UNAVAILABLE, AIService

MODEL = ModelConfig(
    llm_model="test-model",
    api_key="",
    classification_temperature=0.0,
    answer_temperature=0.5,
    timeout_seconds=5.0,
)


class ScriptedCompletions:
    """Returns queued replies in order; an exception in the queue is raised."""

    def __init__(self, *replies) -> None:
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _service(*replies: Optional[str]) -> tuple[AIService, ScriptedCompletions]:
    completions = ScriptedCompletions(*replies)
    client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return AIService(client=client, model_config=MODEL), completions


class TestDetermineIntent:
    @pytest.mark.asyncio
    async def test_admission_intent(self):
        ai, completions = _service('{"intent": "AdmissionFlow"}')
        assert await ai.determine_intent("I want to apply") == Intent.ADMISSION_FLOW
        call = completions.calls[0]
        assert call["model"] == "test-model"
        assert call["temperature"] == 0.0
        assert "I want to apply" in call["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_faq_intent_in_code_fence(self):
        ai, _ = _service('```json\n{"intent": "AskFAQ"}\n```')
        assert await ai.determine_intent("What are the fees?") == Intent.ASK_FAQ

    @pytest.mark.asyncio
    async def test_context_included_in_prompt(self):
        ai, completions = _service('{"intent": "AdmissionFlow"}')
        await ai.determine_intent("Jane Doe", "admission_displayname")
        assert "admission_displayname" in completions.calls[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_unknown(self):
        ai, _ = _service("AdmissionFlow, probably")
        assert await ai.determine_intent("hello") == Intent.UNKNOWN

    @pytest.mark.asyncio
    async def test_unexpected_label_is_unknown(self):
        ai, _ = _service('{"intent": "Complaint"}')
        assert await ai.determine_intent("hello") == Intent.UNKNOWN

    @pytest.mark.asyncio
    async def test_non_object_json_is_unknown(self):
        ai, _ = _service('["AskFAQ"]')
        assert await ai.determine_intent("hello") == Intent.UNKNOWN

    @pytest.mark.asyncio
    async def test_api_failure_is_unknown(self):
        ai, _ = _service(OpenAIError("service down"))
        assert await ai.determine_intent("hello") == Intent.UNKNOWN

    @pytest.mark.asyncio
    async def test_empty_reply_is_unknown(self):
        ai, _ = _service(None)
        assert await ai.determine_intent("hello") == Intent.UNKNOWN


class TestValidateInput:
    @pytest.mark.asyncio
    async def test_valid_verdict_returned(self):
        ai, completions = _service("valid jane@example.com")
        assert await ai.validate_input("email", "Jane@Example.com") == "valid jane@example.com"
        assert "Jane@Example.com" in completions.calls[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_rejection_returned_verbatim(self):
        ai, _ = _service("Please provide a valid email address.")
        assert await ai.validate_input("email", "nope") == "Please provide a valid email address."

    @pytest.mark.asyncio
    async def test_unknown_type_uses_generic_prompt(self):
        ai, completions = _service("valid")
        await ai.validate_input("postcode", "12345")
        assert "as postcode" in completions.calls[0]["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_api_failure_is_not_a_valid_verdict(self):
        ai, _ = _service(OpenAIError("timeout"))
        assert await ai.validate_input("name", "Jane Doe") == VALIDATION_UNAVAILABLE


class TestInterpretYesNo:
    @pytest.mark.asyncio
    async def test_literal_yes_skips_api(self):
        ai, completions = _service()
        assert await ai.interpret_yes_no("Yes!") == "yes"
        assert completions.calls == []

    @pytest.mark.asyncio
    async def test_literal_no_skips_api(self):
        ai, completions = _service()
        assert await ai.interpret_yes_no(" no. ") == "no"
        assert completions.calls == []

    @pytest.mark.asyncio
    async def test_paraphrase_interpreted(self):
        ai, _ = _service("Yes.")
        assert await ai.interpret_yes_no("sure, go ahead") == "yes"

    @pytest.mark.asyncio
    async def test_odd_reply_is_unknown(self):
        ai, _ = _service("It depends")
        assert await ai.interpret_yes_no("hmm") == "unknown"

    @pytest.mark.asyncio
    async def test_api_failure_is_unknown(self):
        ai, _ = _service(OpenAIError("down"))
        assert await ai.interpret_yes_no("sure") == "unknown"


class TestAnswerQuestion:
    @pytest.mark.asyncio
    async def test_document_and_question_in_prompt(self):
        ai, completions = _service("- Tuition is 5,200 per semester.")
        answer = await ai.answer_question("What are the fees?", "Tuition: 5,200 per semester.")
        assert answer == "- Tuition is 5,200 per semester."
        prompt = completions.calls[0]["messages"][1]["content"]
        assert "Tuition: 5,200 per semester." in prompt
        assert "What are the fees?" in prompt
        assert completions.calls[0]["temperature"] == 0.5

    @pytest.mark.asyncio
    async def test_api_failure_is_none(self, caplog):
        ai, _ = _service(OpenAIError("rate limited"))
        assert await ai.answer_question("What are the fees?") is None
        assert "OpenAI request failed" in caplog.text
