import hashlib
import logging
from pathlib import Path

from . import db
from .config import settings
from .errors import NotFoundError
from .models import Source, SourceSnapshot, SourceSyncItem, SyncReport

logger = logging.getLogger(__name__)

DEFAULT_SOURCES = [
    {
        "name": "Master Narrative",
        "path": "01-master-narrative.md",
        "category": "narrative",
        "description": "Source of truth for thesis, sub-theses, and all content generation",
    },
    {
        "name": "Book TOC",
        "path": "05-book-toc.md",
        "category": "book",
        "description": "Book table of contents",
    },
    {
        "name": "Newsletter Format",
        "path": "06-newsletter-format.md",
        "category": "format",
        "description": "Newsletter structure template (5 sections)",
    },
    {
        "name": "Editorial Rules",
        "path": "07-editorial-rules.md",
        "category": "format",
        "description": "Tone, vocabulary, and editorial guardrails",
    },
    {
        "name": "O2A Spec",
        "path": "O2A and Data Model/02-o2a-thin-waist-spec.md",
        "category": "spec",
        "description": "Thin-waist specification (Node, Offering, Contract, Milestone)",
    },
    {
        "name": "Configuration Patterns",
        "path": "O2A and Data Model/o2a-configuration-patterns-v0.2.md",
        "category": "pattern",
        "description": "Configuration patterns library",
    },
]


def compute_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def seed_sources(db_path: str) -> int:
    """Register the default strategy documents. Returns how many were new."""
    added = 0
    for source in DEFAULT_SOURCES:
        if db.insert_source(db_path, type="file", **source):
            logger.info(f"Created source: {source['name']}")
            added += 1
    return added


def list_sources(db_path: str) -> list[Source]:
    return db.list_sources(db_path)


def get_source_content(db_path: str, source_id: str) -> SourceSnapshot | None:
    """Most recent snapshot of a source, or None if it was never synced."""
    if db.get_source(db_path, source_id) is None:
        raise NotFoundError("Source not found")
    return db.get_latest_snapshot(db_path, source_id)


def sync_source(db_path: str, source: Source, base_path: Path) -> SourceSyncItem:
    """Snapshot one source if its content hash changed. Always advances last_synced."""
    content = (base_path / source.path).read_text(encoding="utf-8")
    content_hash = compute_hash(content)
    if content_hash != source.last_hash:
        db.record_snapshot(db_path, source.id, content, content_hash)
        return SourceSyncItem(id=source.id, name=source.name, status="updated")
    db.touch_source_synced(db_path, source.id)
    return SourceSyncItem(id=source.id, name=source.name, status="unchanged")


def sync_sources(db_path: str, base_path: str | None = None) -> SyncReport:
    """Sync every watched file source. A failing source is reported, not fatal."""
    root = Path(base_path if base_path is not None else settings.strategy_path)
    report = SyncReport()
    for source in db.get_watched_file_sources(db_path):
        try:
            item = sync_source(db_path, source, root)
        except (OSError, UnicodeDecodeError) as exc:
            logger.exception(f"Failed to sync source {source.name}")
            item = SourceSyncItem(id=source.id, name=source.name, status="error", error=str(exc))
        report.results.append(item)

    report.synced = sum(1 for r in report.results if r.status == "updated")
    report.unchanged = sum(1 for r in report.results if r.status == "unchanged")
    report.errors = sum(1 for r in report.results if r.status == "error")
    logger.info(
        f"Source sync: {report.synced} updated, {report.unchanged} unchanged, {report.errors} errors"
    )
    return report
