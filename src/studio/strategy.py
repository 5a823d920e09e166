import logging
from pathlib import Path

from .config import settings

logger = logging.getLogger(__name__)

# (file name, placeholder used when the file cannot be read)
MASTER_NARRATIVE = ("01-master-narrative.md", "Master narrative not available.")
NEWSLETTER_FORMAT = ("06-newsletter-format.md", "Newsletter format not available.")
EDITORIAL_RULES = ("07-editorial-rules.md", "Editorial rules not available.")


def load_strategy_document(document: tuple[str, str], base_path: str | None = None) -> str:
    """Read one strategy document, falling back to its placeholder text.

    A missing or unreadable file never fails the caller: generation keeps
    going with the placeholder in the prompt.
    """
    filename, placeholder = document
    root = Path(base_path if base_path is not None else settings.strategy_path)
    path = root / filename
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.warning(f"Strategy document unavailable: {path}")
        return placeholder


def load_strategy_documents(base_path: str | None = None) -> dict[str, str]:
    return {
        "master_narrative": load_strategy_document(MASTER_NARRATIVE, base_path),
        "editorial_rules": load_strategy_document(EDITORIAL_RULES, base_path),
        "newsletter_format": load_strategy_document(NEWSLETTER_FORMAT, base_path),
    }
