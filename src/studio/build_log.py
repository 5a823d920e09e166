import logging
import sqlite3
from datetime import date, timedelta

from . import db
from .errors import ConflictError, NotFoundError
from .models import BuildLogEntry, BuildLogStatus, BuildLogUpdate

logger = logging.getLogger(__name__)


def week_end_for(week_start: date) -> date:
    return week_start + timedelta(days=6)


def monday_of(day: date) -> date:
    return day - timedelta(days=day.weekday())


def create_entry(db_path: str, week_start: date) -> BuildLogEntry:
    """Create a draft entry for the week. Raises ConflictError if one exists."""
    existing = db.get_build_log_by_week(db_path, week_start)
    if existing is not None:
        raise ConflictError(
            "Build log entry for this week already exists",
            entry=existing.model_dump(mode="json", by_alias=True),
        )
    try:
        entry = db.insert_build_log(db_path, week_start, week_end_for(week_start))
    except sqlite3.IntegrityError:
        existing = db.get_build_log_by_week(db_path, week_start)
        raise ConflictError(
            "Build log entry for this week already exists",
            entry=existing.model_dump(mode="json", by_alias=True) if existing else None,
        )
    logger.info(f"Created build log entry for week of {week_start.isoformat()}")
    return entry


def create_current_week(db_path: str, today: date | None = None) -> BuildLogEntry:
    """Entry for the week containing `today` (Monday start), reusing an existing one."""
    week_start = monday_of(today or date.today())
    existing = db.get_build_log_by_week(db_path, week_start)
    if existing is not None:
        return existing
    return create_entry(db_path, week_start)


def get_entry(db_path: str, entry_id: str) -> BuildLogEntry:
    entry = db.get_build_log(db_path, entry_id)
    if entry is None:
        raise NotFoundError("Build log entry not found")
    return entry


def list_entries(db_path: str) -> list[BuildLogEntry]:
    return db.list_build_logs(db_path)


def update_entry(db_path: str, entry_id: str, update: BuildLogUpdate) -> BuildLogEntry:
    """Partial update. A finalized entry only accepts being reopened as draft."""
    entry = get_entry(db_path, entry_id)
    fields = {k: v for k, v in update.model_dump(exclude_unset=True).items() if v is not None}

    if entry.status == BuildLogStatus.FINALIZED.value:
        edits = set(fields) - {"status"}
        if edits:
            raise ConflictError("Build log entry is finalized; reopen it as draft before editing")

    db.update_build_log(db_path, entry_id, **fields)
    return get_entry(db_path, entry_id)


def delete_entry(db_path: str, entry_id: str) -> None:
    if not db.delete_build_log(db_path, entry_id):
        raise NotFoundError("Build log entry not found")
