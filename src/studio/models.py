from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ContentType(str, Enum):
    NEWSLETTER = "newsletter"
    NEWSLETTER_SECTION = "newsletter_section"


class ContentStatus(str, Enum):
    DRAFT = "draft"
    GENERATED = "generated"
    REVIEW = "review"
    APPROVED = "approved"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"


class BuildLogStatus(str, Enum):
    DRAFT = "draft"
    FINALIZED = "finalized"


class ReadingStatus(str, Enum):
    INBOX = "inbox"
    ACCEPTED = "accepted"
    ARCHIVED = "archived"
    USED = "used"


class SourceType(str, Enum):
    FILE = "file"
    FOLDER = "folder"


class ApiModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

class SourceSnapshot(ApiModel):
    id: str
    source_id: str
    content: str
    content_hash: str
    extracted_at: datetime


class Source(ApiModel):
    id: str
    name: str
    path: str
    type: SourceType = SourceType.FILE
    category: str = ""
    description: str = ""
    last_hash: str | None = None
    last_synced: datetime | None = None
    watch_enabled: bool = True
    latest_snapshot: SourceSnapshot | None = None


class SourceSyncItem(ApiModel):
    id: str
    name: str
    status: str  # "updated" | "unchanged" | "error"
    error: str | None = None


class SyncReport(ApiModel):
    synced: int = 0
    unchanged: int = 0
    errors: int = 0
    results: list[SourceSyncItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Newsletters
# ---------------------------------------------------------------------------

class NewsletterMetadata(ApiModel):
    issue_number: int = 1
    selected_build_logs: list[str] = Field(default_factory=list)
    selected_readings: list[str] = Field(default_factory=list)
    theme: str | None = None


class Content(ApiModel):
    id: str
    type: ContentType
    title: str
    slug: str | None = None
    body_markdown: str = ""
    metadata: NewsletterMetadata | None = None
    status: ContentStatus = ContentStatus.DRAFT
    published_at: datetime | None = None
    sequence_order: int = 0
    parent_id: str | None = None
    created_at: datetime
    updated_at: datetime
    sections: list["Content"] = Field(default_factory=list)
    sources: list[Source] = Field(default_factory=list)


class SectionEdit(ApiModel):
    id: str
    body_markdown: str = ""


class NewsletterUpdate(ApiModel):
    """Partial update. Only fields present in the request are applied."""

    title: str | None = None
    status: ContentStatus | None = None
    body_markdown: str | None = None
    metadata: NewsletterMetadata | None = None
    sections: list[SectionEdit] | None = None


class GenerationResult(ApiModel):
    content: str
    tokens_used: int = 0


# ---------------------------------------------------------------------------
# Build log
# ---------------------------------------------------------------------------

class BuildLogEntry(ApiModel):
    id: str
    week_start: date
    week_end: date
    client_work: str = ""
    software_dev: str = ""
    prototyping: str = ""
    reading: str = ""
    voice_transcript: str = ""
    status: BuildLogStatus = BuildLogStatus.DRAFT
    created_at: datetime
    updated_at: datetime


class BuildLogUpdate(ApiModel):
    client_work: str | None = None
    software_dev: str | None = None
    prototyping: str | None = None
    reading: str | None = None
    voice_transcript: str | None = None
    status: BuildLogStatus | None = None


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------

class Reading(ApiModel):
    id: str
    url: str
    title: str
    excerpt: str | None = None
    content: str | None = None
    ai_relevance: str | None = None
    ai_chapters: list[str] = Field(default_factory=list)
    ai_tags: list[str] = Field(default_factory=list)
    ai_angle: str | None = None
    user_note: str | None = None
    user_tags: list[str] = Field(default_factory=list)
    used_in_content_id: str | None = None
    status: ReadingStatus = ReadingStatus.INBOX
    created_at: datetime
    processed_at: datetime | None = None
    accepted_at: datetime | None = None


class ReadingUpdate(ApiModel):
    status: ReadingStatus | None = None
    user_note: str | None = None
    user_tags: list[str] | None = None
    used_in_content_id: str | None = None


class ReadingAnalysis(BaseModel):
    relevance: str
    chapters: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    angle: str | None = None
