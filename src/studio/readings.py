import logging
from datetime import datetime, timezone

from . import db
from .errors import NotFoundError, ValidationError
from .models import Reading, ReadingStatus, ReadingUpdate

logger = logging.getLogger(__name__)


def capture_reading(
    db_path: str,
    url: str,
    title: str,
    excerpt: str | None = None,
    description: str | None = None,
) -> tuple[Reading, bool]:
    """Store a bookmarked article. Returns (reading, created).

    Capturing a URL that is already stored returns the existing reading.
    """
    url = (url or "").strip()
    title = (title or "").strip()
    if not url or not title:
        raise ValidationError("URL and title are required")

    created = db.insert_reading(db_path, url, title, excerpt or description or None)
    reading = db.get_reading_by_url(db_path, url)
    if created:
        logger.info(f"Captured reading {reading.id}: {url}")
    return reading, created


def get_reading(db_path: str, reading_id: str) -> Reading:
    reading = db.get_reading(db_path, reading_id)
    if reading is None:
        raise NotFoundError("Reading not found")
    return reading


def list_readings(
    db_path: str,
    status: str | None = None,
    tag: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Reading], int]:
    return db.list_readings(db_path, status=status, tag=tag, limit=limit, offset=offset)


def count_readings(db_path: str) -> dict[str, int]:
    counts = db.count_readings_by_status(db_path)
    result = {status.value: counts.get(status.value, 0) for status in ReadingStatus}
    result["total"] = sum(counts.values())
    return result


def update_reading(db_path: str, reading_id: str, update: ReadingUpdate) -> Reading:
    get_reading(db_path, reading_id)
    fields = update.model_dump(exclude_unset=True)
    if fields.get("status") is None:
        fields.pop("status", None)
    if "user_tags" in fields and fields["user_tags"] is None:
        fields["user_tags"] = []
    if fields.get("status") == ReadingStatus.ACCEPTED.value:
        fields["accepted_at"] = datetime.now(timezone.utc).isoformat()
    db.update_reading(db_path, reading_id, **fields)
    return get_reading(db_path, reading_id)


def delete_reading(db_path: str, reading_id: str) -> None:
    if not db.delete_reading(db_path, reading_id):
        raise NotFoundError("Reading not found")
