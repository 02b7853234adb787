"""
Inbound guardrails applied before any conversational logic runs.

Three independent layers, each checking a different concern:
1. InputSanitizer        strips characters outside a conservative allow-list
2. StaleMessageGuardrail drops messages sent before the process started
3. RateLimiter           throttles senders who message too quickly

These are composed into a GuardrailPipeline that the message controller
runs on every inbound WhatsApp message.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from admission_bot.config import settings

logger = logging.getLogger(__name__)

RATE_LIMITED_REPLY = "You are sending messages too quickly."


@dataclass
class GuardrailResult:
    """Outcome of a single guardrail check."""
    passed: bool
    violation_type: Optional[str] = None
    message: Optional[str] = None
    severity: str = "warning"  # "warning" | "drop" | "block"


class InputSanitizer:
    """Keeps letters, digits, spaces and the punctuation names and emails need."""

    DISALLOWED = re.compile(r"[^a-zA-Z0-9 .,!?@\-_+']")

    def sanitize(self, text: Optional[str]) -> str:
        if not text:
            return ""
        return self.DISALLOWED.sub("", text).strip()


def sanitize_input(text: Optional[str]) -> str:
    """Module-level shortcut for :class:`InputSanitizer`."""
    return InputSanitizer().sanitize(text)


class StaleMessageGuardrail:
    """Rejects messages timestamped before the service came up."""

    def __init__(self, started_at: datetime) -> None:
        self.started_at = started_at

    def check(self, sent_at: datetime) -> GuardrailResult:
        if sent_at < self.started_at:
            return GuardrailResult(
                passed=False,
                violation_type="stale_message",
                message=f"Message sent at {sent_at.isoformat()} predates startup.",
                severity="drop",
            )
        return GuardrailResult(passed=True)


@dataclass
class _Bucket:
    count: int = 0
    expires_at: float = field(default=0.0)


class RateLimiter:
    """
    Per-sender message counter with a sliding expiry.

    Each accepted message bumps the count and pushes the expiry a full
    window forward; once the count reaches the limit the sender is refused
    until the window lapses without further accepted messages.
    """

    def __init__(
        self,
        max_messages: int = settings.guardrails.rate_limit_max_messages,
        window_seconds: float = settings.guardrails.rate_limit_window_seconds,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self._clock = clock
        self._buckets: dict[str, _Bucket] = {}
        self._next_sweep = clock() + window_seconds

    def is_limited(self, sender: str) -> bool:
        now = self._clock()
        self._sweep(now)
        bucket = self._buckets.get(sender)
        if bucket is None or bucket.expires_at <= now:
            bucket = _Bucket()
            self._buckets[sender] = bucket
        if bucket.count >= self.max_messages:
            return True
        bucket.count += 1
        bucket.expires_at = now + self.window_seconds
        return False

    def _sweep(self, now: float) -> None:
        """Forget lapsed senders, at most once per window."""
        if now < self._next_sweep:
            return
        self._buckets = {s: b for s, b in self._buckets.items() if b.expires_at > now}
        self._next_sweep = now + self.window_seconds

    def __len__(self) -> int:
        return len(self._buckets)

    def check(self, sender: str) -> GuardrailResult:
        if self.is_limited(sender):
            logger.warning("Rate limit exceeded (%d per %.0fs)", self.max_messages, self.window_seconds)
            return GuardrailResult(
                passed=False,
                violation_type="rate_limited",
                message=RATE_LIMITED_REPLY,
                severity="block",
            )
        return GuardrailResult(passed=True)


class GuardrailPipeline:
    """Composes the inbound guardrails in the order they must run."""

    def __init__(
        self,
        started_at: datetime,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self.sanitizer = InputSanitizer()
        self.staleness = StaleMessageGuardrail(started_at)
        self.rate_limiter = rate_limiter or RateLimiter()

    def check_inbound(self, sender: str, sent_at: datetime) -> list[GuardrailResult]:
        """Return failed checks; a stale message short-circuits the rate counter."""
        stale = self.staleness.check(sent_at)
        if not stale.passed:
            return [stale]
        results = [self.rate_limiter.check(sender)]
        return [r for r in results if not r.passed]

    def sanitize(self, text: Optional[str]) -> str:
        return self.sanitizer.sanitize(text)
