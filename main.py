"""
WhatsApp admission bot entry point.

Builds the message controller from configuration and serves the Twilio
webhook. Also supports the offline console mode for development.

Usage:
    Webhook server: python main.py serve
    Console mode:   python main.py console
    Data removal:   python main.py delete-admission <phone>
"""

import logging
import sys
from datetime import datetime

from admission_bot.config import AppConfig, settings

logger = logging.getLogger(__name__)


def build_controller(config: AppConfig = settings):
    """Assemble the controller with the production gateways."""
    from admission_bot.conversation.controller import MessageController
    from admission_bot.conversation.guardrails import GuardrailPipeline, RateLimiter
    from admission_bot.conversation.session_store import SessionStore
    from admission_bot.db import build_engine, build_session_factory, init_db
    from admission_bot.tools.admissions import AdmissionStore
    from admission_bot.tools.ai_service import AIService
    from admission_bot.tools.appointments import AppointmentBook
    from admission_bot.tools.faq_document import load_faq_document
    from admission_bot.tools.messaging import TwilioMessenger

    engine = build_engine(config.database.url)
    init_db(engine)
    session_factory = build_session_factory(engine)

    guardrails = GuardrailPipeline(
        started_at=datetime.now(),
        rate_limiter=RateLimiter(
            max_messages=config.guardrails.rate_limit_max_messages,
            window_seconds=config.guardrails.rate_limit_window_seconds,
        ),
    )
    return MessageController(
        ai=AIService(model_config=config.model),
        messenger=TwilioMessenger(config.messaging),
        admissions=AdmissionStore(session_factory),
        appointments=AppointmentBook(session_factory, config.scheduling, config.school),
        sessions=SessionStore(idle_ttl_seconds=config.guardrails.session_idle_ttl_seconds),
        guardrails=guardrails,
        faq_document=load_faq_document(config.school.faq_document_path),
        scheduling=config.scheduling,
    )


def remove_admission(phone: str, database_url: str = settings.database.url) -> bool:
    """Delete the admission, contact and appointments stored for ``phone``."""
    from admission_bot.db import build_engine, build_session_factory, init_db
    from admission_bot.tools.admissions import AdmissionStore

    engine = build_engine(database_url)
    try:
        init_db(engine)
        return AdmissionStore(build_session_factory(engine)).delete_admission(phone)
    finally:
        engine.dispose()


def _run_server_mode() -> None:
    """Serve the WhatsApp webhook (requires OpenAI and Twilio credentials)."""
    import uvicorn

    from admission_bot.webhook import build_app

    app = build_app(build_controller())
    logger.info("%s listening on port %d", settings.school.bot_name, settings.port)
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level=settings.log_level.lower())


def _run_console_mode() -> None:
    """Start the offline console demo (no API keys required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


def _run_delete_mode(phone: str) -> None:
    """Remove one applicant's stored admission on request."""
    if remove_admission(phone):
        print(f"Deleted admission for {phone}.")
    else:
        print(f"No admission found for {phone}.")
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "console":
        _run_console_mode()
    elif len(sys.argv) > 2 and sys.argv[1] == "delete-admission":
        _run_delete_mode(sys.argv[2])
    else:
        _run_server_mode()
