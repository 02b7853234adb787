"""Static school information used to answer FAQs."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def load_faq_document(path: str) -> str:
    """Read the FAQ document once at startup; a missing file yields empty content."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Error reading FAQ document %s: %s", path, exc)
        return ""
    logger.info("Loaded FAQ document %s (%d chars)", path, len(content))
    return content
