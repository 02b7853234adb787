"""Conversation ID logging context for tracing a sender across modules.

Each inbound WhatsApp message is processed inside ``conversation_scope`` so
that every record logged while handling it carries the sender's
conversation id. Phone numbers are masked down to their last four digits
before they reach a log line.

Usage:
    from admission_bot.logging_context import conversation_scope, get_conversation_logger

    logger = get_conversation_logger(__name__)
    with conversation_scope("whatsapp:+15551234567"):
        logger.info("Processing message")  # -> [whatsapp:+*******4567] Processing message
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

NO_CONVERSATION = "-"
VISIBLE_DIGITS = 4

_conversation_id: ContextVar[str] = ContextVar("conversation_id", default=NO_CONVERSATION)


def mask_conversation_id(conversation_id: str) -> str:
    """Hide all but the trailing digits of the sender's number.

    Examples:
        >>> mask_conversation_id("whatsapp:+15551234567")
        'whatsapp:+*******4567'
        >>> mask_conversation_id("15551234567@c.us")
        '*******4567@c.us'
    """
    to_hide = max(sum(ch.isdigit() for ch in conversation_id) - VISIBLE_DIGITS, 0)
    masked = []
    for ch in conversation_id:
        if ch.isdigit() and to_hide:
            masked.append("*")
            to_hide -= 1
        else:
            masked.append(ch)
    return "".join(masked)


@contextmanager
def conversation_scope(conversation_id: str) -> Iterator[None]:
    """Bind ``conversation_id`` to log records until the block exits."""
    token = _conversation_id.set(conversation_id)
    try:
        yield
    finally:
        _conversation_id.reset(token)


def get_conversation_id() -> str:
    """Retrieve the current conversation ID, unmasked."""
    return _conversation_id.get()


class ConversationIdFilter(logging.Filter):
    """Stamps the masked conversation id onto every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.conversation_id = mask_conversation_id(_conversation_id.get())  # type: ignore[attr-defined]
        return True


def get_conversation_logger(name: str) -> logging.Logger:
    """Return a logger with the ConversationIdFilter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, ConversationIdFilter) for f in logger.filters):
        logger.addFilter(ConversationIdFilter())
    return logger
