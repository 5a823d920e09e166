import json
import logging

import anthropic
from pydantic import ValidationError as PydanticValidationError

from . import db
from .config import settings
from .errors import GenerationError, NotFoundError
from .llm import complete, get_client
from .models import Reading, ReadingAnalysis
from .prompts import ANALYSIS_SYSTEM_PROMPT, analysis_prompt

logger = logging.getLogger(__name__)

SUPPORT_CATEGORIES = ["narrative", "book", "pattern"]


def gather_support_context(db_path: str) -> dict[str, str]:
    """Latest snapshot excerpts of the narrative, book TOC and pattern sources."""
    narrative = ""
    book_toc = ""
    patterns = ""
    for source in db.list_sources(db_path, categories=SUPPORT_CATEGORIES):
        content = source.latest_snapshot.content if source.latest_snapshot else ""
        if source.category == "narrative" and not narrative:
            narrative = content[: settings.analysis_narrative_chars]
        elif source.category == "book" and not book_toc:
            book_toc = content[: settings.analysis_toc_chars]
        elif source.category == "pattern":
            patterns += content[: settings.analysis_pattern_chars] + "\n---\n"
    return {
        "master_narrative": narrative or "No master narrative loaded",
        "book_toc": book_toc or "No book TOC loaded",
        "patterns": patterns or "No patterns loaded",
    }


def text_to_analyze(reading: Reading) -> str:
    """Full content if captured, else the excerpt, else the title."""
    return reading.content or reading.excerpt or reading.title


def parse_analysis(text: str) -> ReadingAnalysis:
    """Parse a reply that must be exactly one JSON object.

    A surrounding markdown code fence is tolerated; any other text around
    the object is not.
    """
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise GenerationError("Analysis response is not valid JSON") from exc
    if not isinstance(data, dict):
        raise GenerationError("Analysis response is not a JSON object")
    try:
        return ReadingAnalysis.model_validate(data)
    except PydanticValidationError as exc:
        raise GenerationError("Analysis response has an unexpected shape") from exc


def analyze_reading(
    db_path: str,
    reading_id: str,
    client: anthropic.Anthropic | None = None,
) -> Reading:
    """Run one analysis call and overwrite the reading's AI fields."""
    reading = db.get_reading(db_path, reading_id)
    if reading is None:
        raise NotFoundError("Reading not found")
    if client is None:
        client = get_client()

    support = gather_support_context(db_path)
    user_message = analysis_prompt(
        title=reading.title,
        url=reading.url,
        content=text_to_analyze(reading),
        **support,
    )

    text, _ = complete(
        client,
        system=ANALYSIS_SYSTEM_PROMPT,
        user=user_message,
        max_tokens=settings.analysis_max_tokens,
        temperature=settings.analysis_temperature,
        step="reading_analysis",
        db_path=db_path,
    )
    try:
        analysis = parse_analysis(text)
    except GenerationError:
        logger.exception(f"Failed to parse analysis for reading {reading_id}")
        raise

    db.update_reading_analysis(db_path, reading_id, analysis)
    logger.info(f"Analyzed reading {reading_id}: {len(analysis.tags)} tags, {len(analysis.chapters)} chapters")
    return db.get_reading(db_path, reading_id)
