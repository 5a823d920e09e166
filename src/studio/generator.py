import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import anthropic

from . import db
from .config import settings
from .context import assemble_context
from .errors import ConflictError, NotFoundError, ValidationError
from .llm import complete, get_client
from .models import ContentStatus, GenerationResult
from .prompts import SECTION_PROMPTS

logger = logging.getLogger(__name__)

# Sections with a generation request currently in flight (this process only).
_in_flight: set[str] = set()
_in_flight_lock = threading.Lock()


@contextmanager
def section_guard(section_id: str) -> Iterator[None]:
    """Allow at most one generation per section at a time.

    A second request for the same section is rejected instead of racing the
    first one to the write-back.
    """
    with _in_flight_lock:
        if section_id in _in_flight:
            raise ConflictError("Generation already in progress for this section")
        _in_flight.add(section_id)
    try:
        yield
    finally:
        with _in_flight_lock:
            _in_flight.discard(section_id)


def generate_section(
    db_path: str,
    newsletter_id: str,
    section_id: str,
    build_log_ids: list[str] | None = None,
    reading_ids: list[str] | None = None,
    theme: str | None = None,
    client: anthropic.Anthropic | None = None,
) -> GenerationResult:
    """Generate the body of one newsletter section and store it.

    Preconditions are checked before anything else: the newsletter exists,
    the section belongs to it, and the section title has a prompt. A failed
    precondition makes no completion call and writes nothing.
    """
    newsletter = db.get_newsletter(db_path, newsletter_id)
    if newsletter is None:
        raise NotFoundError("Newsletter not found")

    section = next((s for s in newsletter.sections if s.id == section_id), None)
    if section is None:
        raise NotFoundError("Section not found")

    prompt = SECTION_PROMPTS.get(section.title)
    if prompt is None:
        raise ValidationError(f"Unknown section type: {section.title}")

    if client is None:
        client = get_client()
    if theme is None and newsletter.metadata is not None:
        theme = newsletter.metadata.theme

    with section_guard(section_id):
        context = assemble_context(
            db_path,
            build_log_ids or [],
            reading_ids or [],
            theme=theme,
        )
        text, tokens_used = complete(
            client,
            system=prompt.system,
            user=prompt.user(context),
            max_tokens=settings.section_max_tokens,
            temperature=settings.section_temperature,
            step=f"section:{section.title}",
            db_path=db_path,
        )
        db.update_section_body(db_path, section_id, text, ContentStatus.GENERATED.value)

    logger.info(f"Generated '{section.title}' for newsletter {newsletter_id} ({len(text)} chars)")
    return GenerationResult(content=text, tokens_used=tokens_used)
