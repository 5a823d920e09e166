import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from . import db
from .errors import NotFoundError, ValidationError
from .models import Content, ContentStatus, NewsletterMetadata, NewsletterUpdate
from .prompts import SECTION_TITLES

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
jinja_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=True,
)

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def slugify(title: str) -> str:
    """Lower-case, collapse non-alphanumeric runs to one hyphen, trim hyphens."""
    return _NON_ALNUM_RE.sub("-", title.lower()).strip("-")


def create_newsletter(
    db_path: str,
    title: str,
    issue_number: int | None = None,
    slug: str | None = None,
) -> Content:
    """Create a newsletter with its five draft sections."""
    if not title or not title.strip():
        raise ValidationError("Title is required")
    title = title.strip()

    full_title = f"Issue #{issue_number}: {title}" if issue_number else title
    metadata = NewsletterMetadata(issue_number=issue_number or 1)
    newsletter_id = db.insert_newsletter(
        db_path,
        title=full_title,
        slug=slug or slugify(title),
        metadata=metadata,
        section_titles=SECTION_TITLES,
    )
    logger.info(f"Created newsletter {newsletter_id}: {full_title}")
    return get_newsletter(db_path, newsletter_id)


def get_newsletter(db_path: str, newsletter_id: str) -> Content:
    newsletter = db.get_newsletter(db_path, newsletter_id)
    if newsletter is None:
        raise NotFoundError("Newsletter not found")
    return newsletter


def list_newsletters(
    db_path: str, status: str | None = None, limit: int = 20, offset: int = 0
) -> tuple[list[Content], int]:
    return db.list_newsletters(db_path, status=status, limit=limit, offset=offset)


def update_newsletter(db_path: str, newsletter_id: str, update: NewsletterUpdate) -> Content:
    """Apply a partial update. Fields absent from the request are left untouched."""
    newsletter = get_newsletter(db_path, newsletter_id)
    requested = update.model_fields_set

    fields: dict = {}
    if "title" in requested and update.title is not None:
        if not update.title.strip():
            raise ValidationError("Title cannot be empty")
        fields["title"] = update.title
    if "status" in requested and update.status is not None:
        fields["status"] = update.status
        if update.status == ContentStatus.PUBLISHED.value:
            fields["published_at"] = datetime.now(timezone.utc).isoformat()
    if "body_markdown" in requested and update.body_markdown is not None:
        fields["body_markdown"] = update.body_markdown
    if "metadata" in requested and update.metadata is not None:
        fields["body_json"] = update.metadata.model_dump_json()

    section_edits = []
    if "sections" in requested and update.sections:
        section_ids = {s.id for s in newsletter.sections}
        for edit in update.sections:
            if edit.id not in section_ids:
                raise NotFoundError(f"Section not found: {edit.id}")
            status = ContentStatus.GENERATED if edit.body_markdown else ContentStatus.DRAFT
            section_edits.append((edit.id, edit.body_markdown, status.value))

    db.update_newsletter(db_path, newsletter_id, fields, section_edits)
    return get_newsletter(db_path, newsletter_id)


def delete_newsletter(db_path: str, newsletter_id: str) -> None:
    if not db.delete_newsletter(db_path, newsletter_id):
        raise NotFoundError("Newsletter not found")
    logger.info(f"Deleted newsletter {newsletter_id}")


def link_source(db_path: str, newsletter_id: str, source_id: str) -> Content:
    """Record that a source document informed this newsletter."""
    get_newsletter(db_path, newsletter_id)
    if db.get_source(db_path, source_id) is None:
        raise NotFoundError("Source not found")
    db.link_content_source(db_path, newsletter_id, source_id)
    return get_newsletter(db_path, newsletter_id)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def export_markdown(newsletter: Content) -> str:
    """Full issue as markdown. Sections without a body are skipped."""
    sections = [
        f"## {s.title}\n\n{s.body_markdown}"
        for s in sorted(newsletter.sections, key=lambda s: s.sequence_order)
        if s.body_markdown
    ]
    return f"# {newsletter.title}\n\n" + "\n\n---\n\n".join(sections)


def export_filename(newsletter: Content) -> str:
    return f"{newsletter.slug or slugify(newsletter.title) or 'newsletter'}.md"


def render_preview_html(newsletter: Content) -> str:
    template = jinja_env.get_template("preview.html")
    complete = sum(1 for s in newsletter.sections if s.body_markdown)
    return template.render(
        newsletter=newsletter,
        sections=sorted(newsletter.sections, key=lambda s: s.sequence_order),
        complete_sections=complete,
        total_sections=len(newsletter.sections),
    )
