import json
import sqlite3
import uuid
from datetime import date, datetime, timezone

from .models import (
    BuildLogEntry,
    Content,
    ContentStatus,
    ContentType,
    NewsletterMetadata,
    Reading,
    ReadingAnalysis,
    Source,
    SourceSnapshot,
)


def get_connection(db_path: str) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


def init_db(db_path: str) -> None:
    conn = get_connection(db_path)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS content (
            id TEXT PRIMARY KEY,
            type TEXT NOT NULL,
            title TEXT NOT NULL,
            slug TEXT,
            body_markdown TEXT DEFAULT '',
            body_json TEXT,
            status TEXT NOT NULL DEFAULT 'draft',
            published_at TEXT,
            sequence_order INTEGER DEFAULT 0,
            parent_id TEXT REFERENCES content(id) ON DELETE CASCADE,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("CREATE INDEX IF NOT EXISTS idx_content_parent ON content(parent_id)")
    conn.execute("""
        CREATE TABLE IF NOT EXISTS sources (
            id TEXT PRIMARY KEY,
            name TEXT NOT NULL UNIQUE,
            path TEXT NOT NULL,
            type TEXT NOT NULL DEFAULT 'file',
            category TEXT DEFAULT '',
            description TEXT DEFAULT '',
            last_hash TEXT,
            last_synced TEXT,
            watch_enabled INTEGER DEFAULT 1
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS source_snapshots (
            id TEXT PRIMARY KEY,
            source_id TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
            content TEXT NOT NULL,
            content_hash TEXT NOT NULL,
            extracted_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS content_sources (
            content_id TEXT NOT NULL REFERENCES content(id) ON DELETE CASCADE,
            source_id TEXT NOT NULL REFERENCES sources(id) ON DELETE CASCADE,
            PRIMARY KEY (content_id, source_id)
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS build_log_entries (
            id TEXT PRIMARY KEY,
            week_start TEXT NOT NULL UNIQUE,
            week_end TEXT NOT NULL,
            client_work TEXT DEFAULT '',
            software_dev TEXT DEFAULT '',
            prototyping TEXT DEFAULT '',
            reading TEXT DEFAULT '',
            voice_transcript TEXT DEFAULT '',
            status TEXT NOT NULL DEFAULT 'draft',
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS readings (
            id TEXT PRIMARY KEY,
            url TEXT NOT NULL UNIQUE,
            title TEXT NOT NULL,
            excerpt TEXT,
            content TEXT,
            ai_relevance TEXT,
            ai_chapters TEXT DEFAULT '[]',
            ai_tags TEXT DEFAULT '[]',
            ai_angle TEXT,
            user_note TEXT,
            user_tags TEXT DEFAULT '[]',
            used_in_content_id TEXT,
            status TEXT NOT NULL DEFAULT 'inbox',
            created_at TEXT NOT NULL,
            processed_at TEXT,
            accepted_at TEXT
        )
    """)
    conn.execute("""
        CREATE TABLE IF NOT EXISTS api_usage (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            model TEXT NOT NULL,
            input_tokens INTEGER NOT NULL,
            output_tokens INTEGER NOT NULL,
            estimated_cost_usd REAL NOT NULL,
            step TEXT DEFAULT '',
            created_at TEXT NOT NULL
        )
    """)
    conn.commit()
    conn.close()


# ---------------------------------------------------------------------------
# Content (newsletters and their sections)
# ---------------------------------------------------------------------------

def insert_newsletter(
    db_path: str,
    title: str,
    slug: str,
    metadata: NewsletterMetadata,
    section_titles: list[str],
) -> str:
    """Insert a newsletter and its sections in one transaction. Returns the newsletter id."""
    newsletter_id = _new_id()
    now = _now()
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO content
               (id, type, title, slug, body_markdown, body_json, status,
                sequence_order, parent_id, created_at, updated_at)
               VALUES (?, ?, ?, ?, '', ?, ?, 0, NULL, ?, ?)""",
            (
                newsletter_id,
                ContentType.NEWSLETTER.value,
                title,
                slug,
                metadata.model_dump_json(),
                ContentStatus.DRAFT.value,
                now,
                now,
            ),
        )
        conn.executemany(
            """INSERT INTO content
               (id, type, title, body_markdown, status, sequence_order,
                parent_id, created_at, updated_at)
               VALUES (?, ?, ?, '', ?, ?, ?, ?, ?)""",
            [
                (
                    _new_id(),
                    ContentType.NEWSLETTER_SECTION.value,
                    section_title,
                    ContentStatus.DRAFT.value,
                    order,
                    newsletter_id,
                    now,
                    now,
                )
                for order, section_title in enumerate(section_titles, 1)
            ],
        )
        conn.commit()
    finally:
        conn.close()
    return newsletter_id


def get_sections(db_path: str, parent_id: str) -> list[Content]:
    conn = get_connection(db_path)
    try:
        return _fetch_sections(conn, parent_id)
    finally:
        conn.close()


def get_newsletter(db_path: str, newsletter_id: str) -> Content | None:
    """Get a newsletter with its ordered sections and linked sources."""
    conn = get_connection(db_path)
    try:
        row = conn.execute(
            "SELECT * FROM content WHERE id = ? AND type = ?",
            (newsletter_id, ContentType.NEWSLETTER.value),
        ).fetchone()
        if row is None:
            return None
        newsletter = _row_to_content(row)
        newsletter.sections = _fetch_sections(conn, newsletter_id)
        source_rows = conn.execute(
            """SELECT s.* FROM sources s
               JOIN content_sources cs ON cs.source_id = s.id
               WHERE cs.content_id = ?
               ORDER BY s.name ASC""",
            (newsletter_id,),
        ).fetchall()
        newsletter.sources = [_row_to_source(r) for r in source_rows]
        return newsletter
    finally:
        conn.close()


def list_newsletters(
    db_path: str, status: str | None = None, limit: int = 20, offset: int = 0
) -> tuple[list[Content], int]:
    """List newsletters newest first, each with its ordered sections. Returns (page, total)."""
    where = "type = ?"
    params: list = [ContentType.NEWSLETTER.value]
    if status:
        where += " AND status = ?"
        params.append(status)

    conn = get_connection(db_path)
    try:
        total = conn.execute(f"SELECT COUNT(*) FROM content WHERE {where}", params).fetchone()[0]
        rows = conn.execute(
            f"""SELECT * FROM content WHERE {where}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?""",
            [*params, limit, offset],
        ).fetchall()
        newsletters = []
        for row in rows:
            newsletter = _row_to_content(row)
            newsletter.sections = _fetch_sections(conn, newsletter.id)
            newsletters.append(newsletter)
        return newsletters, total
    finally:
        conn.close()


CONTENT_COLUMNS = {"title", "status", "body_markdown", "body_json", "published_at"}


def update_newsletter(
    db_path: str,
    newsletter_id: str,
    fields: dict,
    section_edits: list[tuple[str, str, str]] | None = None,
) -> None:
    """Apply field updates and (section_id, body, status) edits in one transaction."""
    unknown = set(fields) - CONTENT_COLUMNS
    if unknown:
        raise ValueError(f"Unknown content columns: {', '.join(sorted(unknown))}")
    now = _now()
    conn = get_connection(db_path)
    try:
        for section_id, body, status in section_edits or []:
            conn.execute(
                """UPDATE content SET body_markdown = ?, status = ?, updated_at = ?
                   WHERE id = ? AND parent_id = ?""",
                (body, status, now, section_id, newsletter_id),
            )
        if fields:
            sets = ", ".join(f"{k} = ?" for k in fields)
            conn.execute(
                f"UPDATE content SET {sets}, updated_at = ? WHERE id = ?",
                [*fields.values(), now, newsletter_id],
            )
        conn.commit()
    finally:
        conn.close()


def update_section_body(db_path: str, section_id: str, body: str, status: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "UPDATE content SET body_markdown = ?, status = ?, updated_at = ? WHERE id = ?",
        (body, status, _now(), section_id),
    )
    conn.commit()
    conn.close()


def delete_newsletter(db_path: str, newsletter_id: str) -> bool:
    """Delete sections first, then the newsletter. Returns True if the newsletter existed."""
    conn = get_connection(db_path)
    try:
        conn.execute("DELETE FROM content WHERE parent_id = ?", (newsletter_id,))
        conn.execute("DELETE FROM content_sources WHERE content_id = ?", (newsletter_id,))
        cursor = conn.execute(
            "DELETE FROM content WHERE id = ? AND type = ?",
            (newsletter_id, ContentType.NEWSLETTER.value),
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def link_content_source(db_path: str, content_id: str, source_id: str) -> None:
    conn = get_connection(db_path)
    conn.execute(
        "INSERT OR IGNORE INTO content_sources (content_id, source_id) VALUES (?, ?)",
        (content_id, source_id),
    )
    conn.commit()
    conn.close()


def get_newsletter_stats(db_path: str) -> dict:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT status, body_json FROM content WHERE type = ?",
        (ContentType.NEWSLETTER.value,),
    ).fetchall()
    conn.close()
    issue_numbers = [_parse_metadata(r["body_json"]).issue_number for r in rows]
    by_status: dict[str, int] = {}
    for r in rows:
        by_status[r["status"]] = by_status.get(r["status"], 0) + 1
    return {
        "total": len(rows),
        "by_status": by_status,
        "next_issue": max(issue_numbers, default=0) + 1,
    }


def _fetch_sections(conn: sqlite3.Connection, parent_id: str) -> list[Content]:
    rows = conn.execute(
        """SELECT * FROM content WHERE parent_id = ? AND type = ?
           ORDER BY sequence_order ASC""",
        (parent_id, ContentType.NEWSLETTER_SECTION.value),
    ).fetchall()
    return [_row_to_content(r) for r in rows]


# ---------------------------------------------------------------------------
# Build log
# ---------------------------------------------------------------------------

def insert_build_log(db_path: str, week_start: date, week_end: date) -> BuildLogEntry:
    """Insert a draft entry. Raises sqlite3.IntegrityError if the week already exists."""
    entry_id = _new_id()
    now = _now()
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO build_log_entries
               (id, week_start, week_end, status, created_at, updated_at)
               VALUES (?, ?, ?, 'draft', ?, ?)""",
            (entry_id, week_start.isoformat(), week_end.isoformat(), now, now),
        )
        conn.commit()
        row = conn.execute("SELECT * FROM build_log_entries WHERE id = ?", (entry_id,)).fetchone()
    finally:
        conn.close()
    return _row_to_build_log(row)


def get_build_log(db_path: str, entry_id: str) -> BuildLogEntry | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM build_log_entries WHERE id = ?", (entry_id,)).fetchone()
    conn.close()
    return _row_to_build_log(row) if row else None


def get_build_log_by_week(db_path: str, week_start: date) -> BuildLogEntry | None:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM build_log_entries WHERE week_start = ?", (week_start.isoformat(),)
    ).fetchone()
    conn.close()
    return _row_to_build_log(row) if row else None


def get_build_logs_by_ids(db_path: str, ids: list[str]) -> list[BuildLogEntry]:
    """Fetch entries in the order of `ids`. Unknown ids are skipped, repeats kept."""
    if not ids:
        return []
    unique = list(dict.fromkeys(ids))
    placeholders = ", ".join("?" for _ in unique)
    conn = get_connection(db_path)
    rows = conn.execute(
        f"SELECT * FROM build_log_entries WHERE id IN ({placeholders})", unique
    ).fetchall()
    conn.close()
    by_id = {r["id"]: _row_to_build_log(r) for r in rows}
    return [by_id[i] for i in ids if i in by_id]


def list_build_logs(db_path: str) -> list[BuildLogEntry]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT * FROM build_log_entries ORDER BY week_start DESC").fetchall()
    conn.close()
    return [_row_to_build_log(r) for r in rows]


BUILD_LOG_COLUMNS = {
    "client_work",
    "software_dev",
    "prototyping",
    "reading",
    "voice_transcript",
    "status",
}


def update_build_log(db_path: str, entry_id: str, **kwargs) -> None:
    """Update fields on a build log entry. Accepts any editable column as kwarg."""
    if not kwargs:
        return
    unknown = set(kwargs) - BUILD_LOG_COLUMNS
    if unknown:
        raise ValueError(f"Unknown build log columns: {', '.join(sorted(unknown))}")
    sets = ", ".join(f"{k} = ?" for k in kwargs)
    vals = [*kwargs.values(), _now(), entry_id]
    conn = get_connection(db_path)
    conn.execute(f"UPDATE build_log_entries SET {sets}, updated_at = ? WHERE id = ?", vals)
    conn.commit()
    conn.close()


def delete_build_log(db_path: str, entry_id: str) -> bool:
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("DELETE FROM build_log_entries WHERE id = ?", (entry_id,))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------

def insert_reading(db_path: str, url: str, title: str, excerpt: str | None) -> bool:
    """Insert a reading. Returns True if inserted, False if the URL already exists."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """INSERT OR IGNORE INTO readings (id, url, title, excerpt, status, created_at)
               VALUES (?, ?, ?, ?, 'inbox', ?)""",
            (_new_id(), url, title, excerpt, _now()),
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def get_reading(db_path: str, reading_id: str) -> Reading | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM readings WHERE id = ?", (reading_id,)).fetchone()
    conn.close()
    return _row_to_reading(row) if row else None


def get_reading_by_url(db_path: str, url: str) -> Reading | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM readings WHERE url = ?", (url,)).fetchone()
    conn.close()
    return _row_to_reading(row) if row else None


def get_readings_by_ids(db_path: str, ids: list[str]) -> list[Reading]:
    """Fetch readings in the order of `ids`. Unknown ids are skipped, repeats kept."""
    if not ids:
        return []
    unique = list(dict.fromkeys(ids))
    placeholders = ", ".join("?" for _ in unique)
    conn = get_connection(db_path)
    rows = conn.execute(f"SELECT * FROM readings WHERE id IN ({placeholders})", unique).fetchall()
    conn.close()
    by_id = {r["id"]: _row_to_reading(r) for r in rows}
    return [by_id[i] for i in ids if i in by_id]


def list_readings(
    db_path: str,
    status: str | None = None,
    tag: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Reading], int]:
    clauses = []
    params: list = []
    if status:
        clauses.append("status = ?")
        params.append(status)
    if tag:
        # Tags are stored as JSON arrays; match the quoted element.
        pattern = f"%{json.dumps(tag)}%"
        clauses.append("(ai_tags LIKE ? OR user_tags LIKE ?)")
        params.extend([pattern, pattern])
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

    conn = get_connection(db_path)
    try:
        total = conn.execute(f"SELECT COUNT(*) FROM readings {where}", params).fetchone()[0]
        rows = conn.execute(
            f"""SELECT * FROM readings {where}
                ORDER BY created_at DESC, rowid DESC
                LIMIT ? OFFSET ?""",
            [*params, limit, offset],
        ).fetchall()
    finally:
        conn.close()
    return [_row_to_reading(r) for r in rows], total


def count_readings_by_status(db_path: str) -> dict[str, int]:
    conn = get_connection(db_path)
    rows = conn.execute("SELECT status, COUNT(*) FROM readings GROUP BY status").fetchall()
    conn.close()
    return {r[0]: r[1] for r in rows}


READING_COLUMNS = {"status", "user_note", "user_tags", "used_in_content_id", "accepted_at"}


def update_reading(db_path: str, reading_id: str, **kwargs) -> None:
    if not kwargs:
        return
    unknown = set(kwargs) - READING_COLUMNS
    if unknown:
        raise ValueError(f"Unknown reading columns: {', '.join(sorted(unknown))}")
    if "user_tags" in kwargs:
        kwargs["user_tags"] = json.dumps(kwargs["user_tags"])
    sets = ", ".join(f"{k} = ?" for k in kwargs)
    conn = get_connection(db_path)
    conn.execute(f"UPDATE readings SET {sets} WHERE id = ?", [*kwargs.values(), reading_id])
    conn.commit()
    conn.close()


def update_reading_analysis(db_path: str, reading_id: str, analysis: ReadingAnalysis) -> None:
    """Overwrite all AI-derived fields. User-entered fields are left alone."""
    conn = get_connection(db_path)
    conn.execute(
        """UPDATE readings
           SET ai_relevance = ?, ai_chapters = ?, ai_tags = ?, ai_angle = ?,
               processed_at = ?
           WHERE id = ?""",
        (
            analysis.relevance,
            json.dumps(analysis.chapters),
            json.dumps(analysis.tags),
            analysis.angle,
            _now(),
            reading_id,
        ),
    )
    conn.commit()
    conn.close()


def delete_reading(db_path: str, reading_id: str) -> bool:
    conn = get_connection(db_path)
    try:
        cursor = conn.execute("DELETE FROM readings WHERE id = ?", (reading_id,))
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Sources and snapshots
# ---------------------------------------------------------------------------

def insert_source(
    db_path: str,
    name: str,
    path: str,
    type: str = "file",
    category: str = "",
    description: str = "",
    watch_enabled: bool = True,
) -> bool:
    """Insert a source. Returns True if inserted, False if the name already exists."""
    conn = get_connection(db_path)
    try:
        cursor = conn.execute(
            """INSERT OR IGNORE INTO sources
               (id, name, path, type, category, description, watch_enabled)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (_new_id(), name, path, type, category, description, int(watch_enabled)),
        )
        conn.commit()
        return cursor.rowcount > 0
    finally:
        conn.close()


def get_source(db_path: str, source_id: str) -> Source | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM sources WHERE id = ?", (source_id,)).fetchone()
    conn.close()
    return _row_to_source(row) if row else None


def list_sources(db_path: str, categories: list[str] | None = None) -> list[Source]:
    """List sources by name, each with its most recent snapshot."""
    conn = get_connection(db_path)
    try:
        if categories:
            placeholders = ", ".join("?" for _ in categories)
            rows = conn.execute(
                f"SELECT * FROM sources WHERE category IN ({placeholders}) ORDER BY name ASC",
                categories,
            ).fetchall()
        else:
            rows = conn.execute("SELECT * FROM sources ORDER BY name ASC").fetchall()
        sources = []
        for row in rows:
            source = _row_to_source(row)
            source.latest_snapshot = _fetch_latest_snapshot(conn, source.id)
            sources.append(source)
        return sources
    finally:
        conn.close()


def get_watched_file_sources(db_path: str) -> list[Source]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM sources WHERE type = 'file' AND watch_enabled = 1 ORDER BY name ASC"
    ).fetchall()
    conn.close()
    return [_row_to_source(r) for r in rows]


def get_latest_snapshot(db_path: str, source_id: str) -> SourceSnapshot | None:
    conn = get_connection(db_path)
    try:
        return _fetch_latest_snapshot(conn, source_id)
    finally:
        conn.close()


def count_snapshots(db_path: str, source_id: str) -> int:
    conn = get_connection(db_path)
    count = conn.execute(
        "SELECT COUNT(*) FROM source_snapshots WHERE source_id = ?", (source_id,)
    ).fetchone()[0]
    conn.close()
    return count


def record_snapshot(db_path: str, source_id: str, content: str, content_hash: str) -> None:
    """Append a snapshot and move the source's hash and sync time forward together."""
    now = _now()
    conn = get_connection(db_path)
    try:
        conn.execute(
            """INSERT INTO source_snapshots (id, source_id, content, content_hash, extracted_at)
               VALUES (?, ?, ?, ?, ?)""",
            (_new_id(), source_id, content, content_hash, now),
        )
        conn.execute(
            "UPDATE sources SET last_hash = ?, last_synced = ? WHERE id = ?",
            (content_hash, now, source_id),
        )
        conn.commit()
    finally:
        conn.close()


def touch_source_synced(db_path: str, source_id: str) -> None:
    conn = get_connection(db_path)
    conn.execute("UPDATE sources SET last_synced = ? WHERE id = ?", (_now(), source_id))
    conn.commit()
    conn.close()


def _fetch_latest_snapshot(conn: sqlite3.Connection, source_id: str) -> SourceSnapshot | None:
    row = conn.execute(
        """SELECT * FROM source_snapshots WHERE source_id = ?
           ORDER BY extracted_at DESC, rowid DESC LIMIT 1""",
        (source_id,),
    ).fetchone()
    if row is None:
        return None
    return SourceSnapshot(**dict(row))


# ---------------------------------------------------------------------------
# API usage / cost tracking
# ---------------------------------------------------------------------------

MODEL_PRICING = {
    # (input $/M tokens, output $/M tokens)
    "claude-sonnet-4-20250514": (3.00, 15.00),
    "claude-sonnet-4-5-20250929": (3.00, 15.00),
    "claude-opus-4-1-20250805": (15.00, 75.00),
    "claude-haiku-4-5-20251001": (1.00, 5.00),
}


def estimate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Estimate USD cost for a Claude API call."""
    for key, (inp_price, out_price) in MODEL_PRICING.items():
        if key in model:
            return (input_tokens * inp_price + output_tokens * out_price) / 1_000_000
    # Fallback to Sonnet pricing
    return (input_tokens * 3.00 + output_tokens * 15.00) / 1_000_000


def log_api_usage(
    db_path: str,
    *,
    model: str,
    input_tokens: int,
    output_tokens: int,
    step: str = "",
) -> None:
    cost = estimate_cost(model, input_tokens, output_tokens)
    conn = get_connection(db_path)
    conn.execute(
        """INSERT INTO api_usage
           (model, input_tokens, output_tokens, estimated_cost_usd, step, created_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (model, input_tokens, output_tokens, cost, step, _now()),
    )
    conn.commit()
    conn.close()


def get_api_usage_stats(db_path: str) -> dict:
    conn = get_connection(db_path)
    total_cost = conn.execute("SELECT COALESCE(SUM(estimated_cost_usd), 0) FROM api_usage").fetchone()[0]
    month_start = datetime.now(timezone.utc).replace(day=1, hour=0, minute=0, second=0, microsecond=0).isoformat()
    monthly_cost = conn.execute(
        "SELECT COALESCE(SUM(estimated_cost_usd), 0) FROM api_usage WHERE created_at >= ?",
        (month_start,),
    ).fetchone()[0]
    total_tokens = conn.execute(
        "SELECT COALESCE(SUM(input_tokens), 0), COALESCE(SUM(output_tokens), 0) FROM api_usage"
    ).fetchone()
    by_step = conn.execute(
        """SELECT step, COUNT(*) as calls, SUM(estimated_cost_usd) as cost
           FROM api_usage GROUP BY step ORDER BY cost DESC"""
    ).fetchall()
    conn.close()
    return {
        "total_cost_usd": round(total_cost, 4),
        "monthly_cost_usd": round(monthly_cost, 4),
        "total_input_tokens": total_tokens[0],
        "total_output_tokens": total_tokens[1],
        "by_step": [{"step": r[0], "calls": r[1], "cost": round(r[2], 4)} for r in by_step],
    }


# ---------------------------------------------------------------------------
# Row mapping
# ---------------------------------------------------------------------------

def _parse_metadata(raw: str | None) -> NewsletterMetadata:
    if not raw:
        return NewsletterMetadata()
    return NewsletterMetadata.model_validate_json(raw)


def _row_to_content(row: sqlite3.Row) -> Content:
    d = dict(row)
    is_newsletter = d["type"] == ContentType.NEWSLETTER.value
    return Content(
        id=d["id"],
        type=d["type"],
        title=d["title"],
        slug=d["slug"],
        body_markdown=d["body_markdown"] or "",
        metadata=_parse_metadata(d["body_json"]) if is_newsletter else None,
        status=d["status"],
        published_at=d["published_at"],
        sequence_order=d["sequence_order"],
        parent_id=d["parent_id"],
        created_at=d["created_at"],
        updated_at=d["updated_at"],
    )


def _row_to_build_log(row: sqlite3.Row) -> BuildLogEntry:
    d = dict(row)
    for key in ("client_work", "software_dev", "prototyping", "reading", "voice_transcript"):
        d[key] = d[key] or ""
    return BuildLogEntry(**d)


def _row_to_reading(row: sqlite3.Row) -> Reading:
    d = dict(row)
    for key in ("ai_chapters", "ai_tags", "user_tags"):
        d[key] = json.loads(d[key]) if d[key] else []
    return Reading(**d)


def _row_to_source(row: sqlite3.Row) -> Source:
    d = dict(row)
    d["watch_enabled"] = bool(d["watch_enabled"])
    return Source(**d)
