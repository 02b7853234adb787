"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""


class TestSchemaImports:
    def test_import_admission_schema(self):
        from admission_bot.schemas.admission_schema import (
            AdmissionRecord, AppointmentRecord, IdentityMatch, InboundMessage, Intent, Slot,
        )
        assert Intent.ADMISSION_FLOW == "AdmissionFlow"
        assert Intent.ASK_FAQ == "AskFAQ"

    def test_import_session_schema(self):
        from admission_bot.schemas.session_schema import AdmissionData, Session
        session = Session(conversation_id="whatsapp:+1")
        assert session.data.displayname is None
        assert session.intent_disabled is False
        assert session.state.value == "admission_displayname"


class TestConversationImports:
    def test_package_reexports(self):
        from admission_bot.conversation import (
            ConversationStateMachine, InvalidTransitionError, SessionState, TransitionTrigger,
        )
        assert len(SessionState) == 11
        assert ConversationStateMachine().current_state == SessionState.ADMISSION_DISPLAYNAME

    def test_import_controller(self):
        from admission_bot.conversation.controller import EXIT_COMMAND, MessageController
        assert EXIT_COMMAND == "exit"

    def test_import_guardrails(self):
        from admission_bot.conversation.guardrails import (
            GuardrailPipeline, InputSanitizer, RateLimiter, StaleMessageGuardrail,
        )
        assert callable(InputSanitizer().sanitize)


class TestToolImports:
    def test_import_admissions(self):
        from admission_bot.tools.admissions import AdmissionStore
        assert callable(AdmissionStore.create_admission)

    def test_import_appointments(self):
        from admission_bot.tools.appointments import AppointmentBook, section_for_grade
        assert section_for_grade(1) == "Section 1"

    def test_import_ai_service(self):
        from admission_bot.tools.ai_service import AIService
        assert callable(AIService.determine_intent)

    def test_import_messaging(self):
        from admission_bot.tools.messaging import ConsoleMessenger, MessagingGateway, TwilioMessenger
        assert issubclass(TwilioMessenger, MessagingGateway)


class TestPromptImports:
    def test_import_system_prompts(self):
        from admission_bot.prompts.system_prompts import (
            FAQ_PROMPT_TEMPLATE, INTENT_PROMPT_TEMPLATE, VALIDATION_PROMPTS,
        )
        assert set(VALIDATION_PROMPTS) == {"name", "email", "grade_level", "semester", "referral_source"}
        assert "{question}" in FAQ_PROMPT_TEMPLATE
        assert "{message}" in INTENT_PROMPT_TEMPLATE

    def test_import_prompt_templates(self):
        from admission_bot.prompts.prompt_templates import (
            build_review_prompt, build_slot_listing, prompt_for_state,
        )
        assert callable(build_slot_listing)


class TestConfigImport:
    def test_import_config(self):
        from admission_bot.config import settings
        assert settings.school.name is not None
        assert settings.model.llm_model is not None
        assert settings.guardrails.rate_limit_max_messages >= 1


class TestEntryPoints:
    def test_build_app(self, controller):
        from admission_bot.webhook import build_app
        routes = {route.path for route in build_app(controller).routes}
        assert {"/whatsapp", "/healthz"} <= routes

    def test_console_session_imports(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert len(session.sessions) == 0
        assert set(session.SCENARIOS) == {"admission", "faq", "detour"}
