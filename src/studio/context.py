from pydantic import BaseModel

from .db import get_build_logs_by_ids, get_readings_by_ids
from .models import BuildLogEntry, Reading
from .strategy import load_strategy_documents

NO_BUILD_LOGS = "No build logs selected."
NO_READINGS = "No readings selected."


class NewsletterContext(BaseModel):
    master_narrative: str
    editorial_rules: str
    newsletter_format: str
    build_logs: str
    readings: str
    theme: str | None = None


def render_build_log(entry: BuildLogEntry) -> str:
    return "\n".join([
        f"### Week of {entry.week_start.isoformat()}",
        f"**Client Work:** {entry.client_work or 'N/A'}",
        f"**Software Development:** {entry.software_dev or 'N/A'}",
        f"**Prototyping:** {entry.prototyping or 'N/A'}",
        f"**Reading:** {entry.reading or 'N/A'}",
    ])


def render_reading(reading: Reading) -> str:
    lines = [f"### {reading.title}", f"URL: {reading.url}"]
    if reading.ai_relevance:
        lines.append(f"Relevance: {reading.ai_relevance}")
    if reading.ai_angle:
        lines.append(f"Angle: {reading.ai_angle}")
    if reading.excerpt:
        lines.append(f"Excerpt: {reading.excerpt}")
    return "\n".join(lines)


def render_build_logs(entries: list[BuildLogEntry]) -> str:
    if not entries:
        return NO_BUILD_LOGS
    return "\n\n".join(render_build_log(e) for e in entries)


def render_readings(readings: list[Reading]) -> str:
    if not readings:
        return NO_READINGS
    return "\n\n".join(render_reading(r) for r in readings)


def assemble_context(
    db_path: str,
    build_log_ids: list[str],
    reading_ids: list[str],
    theme: str | None = None,
    base_path: str | None = None,
) -> NewsletterContext:
    """Gather strategy documents and the selected build logs/readings for one section.

    Items keep the order of the id lists. Nothing is deduplicated or truncated here.
    """
    documents = load_strategy_documents(base_path)
    return NewsletterContext(
        **documents,
        build_logs=render_build_logs(get_build_logs_by_ids(db_path, build_log_ids)),
        readings=render_readings(get_readings_by_ids(db_path, reading_ids)),
        theme=theme,
    )
