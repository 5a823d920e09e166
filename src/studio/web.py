import logging
from contextlib import asynccontextmanager
from datetime import date

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import Field

from . import build_log, newsletters, readings, sources
from .analyzer import analyze_reading
from .config import settings
from .db import get_api_usage_stats, get_newsletter_stats, init_db
from .errors import StudioError, ValidationError
from .generator import generate_section
from .models import ApiModel, BuildLogUpdate, NewsletterUpdate, ReadingUpdate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db(settings.database_path)
    logger.info(f"Database ready at {settings.database_path}")
    yield


app = FastAPI(title="Content Studio", lifespan=lifespan)

# Readings are captured by a bookmarklet running on arbitrary pages.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _dump(model: ApiModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@app.exception_handler(StudioError)
async def studio_error_handler(request: Request, exc: StudioError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message, **exc.extra})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()
    )
    headers = CORS_HEADERS if request.url.path == "/api/readings" else None
    return JSONResponse(
        status_code=400, content={"error": f"Invalid request: {details}"}, headers=headers
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"{request.method} {request.url.path} failed", exc_info=exc)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.get("/health")
async def health():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

@app.get("/api/dashboard/stats")
async def dashboard_stats():
    db_path = settings.database_path
    all_sources = sources.list_sources(db_path)
    synced = [s for s in all_sources if s.last_synced is not None]
    last_sync = max((s.last_synced for s in synced), default=None)

    week_start = build_log.monday_of(date.today())
    current = next((e for e in build_log.list_entries(db_path) if e.week_start == week_start), None)

    newsletter_stats = get_newsletter_stats(db_path)

    return {
        "sources": {
            "total": len(all_sources),
            "synced": len(synced),
            "lastSync": last_sync.isoformat() if last_sync else None,
        },
        "readings": readings.count_readings(db_path),
        "buildLog": {
            "currentWeek": week_start.isoformat(),
            "status": current.status if current else "not_started",
        },
        "newsletters": {
            "total": newsletter_stats["total"],
            "byStatus": newsletter_stats["by_status"],
            "nextIssue": newsletter_stats["next_issue"],
        },
    }


@app.get("/api/dashboard/api-costs")
async def api_costs():
    return get_api_usage_stats(settings.database_path)


# ---------------------------------------------------------------------------
# Newsletters
# ---------------------------------------------------------------------------

class NewsletterCreateRequest(ApiModel):
    title: str = ""
    issue_number: int | None = None
    slug: str | None = None


class GenerateRequest(ApiModel):
    section_id: str
    selected_build_logs: list[str] = Field(default_factory=list)
    selected_readings: list[str] = Field(default_factory=list)
    theme: str | None = None


class LinkSourceRequest(ApiModel):
    source_id: str


@app.get("/api/newsletter")
async def list_newsletters(status: str | None = None, limit: int = 20, offset: int = 0):
    items, total = newsletters.list_newsletters(
        settings.database_path, status=status, limit=limit, offset=offset
    )
    return {
        "newsletters": [_dump(n) for n in items],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@app.post("/api/newsletter", status_code=201)
async def create_newsletter(req: NewsletterCreateRequest):
    newsletter = newsletters.create_newsletter(
        settings.database_path, req.title, issue_number=req.issue_number, slug=req.slug
    )
    return {"id": newsletter.id, "newsletter": _dump(newsletter)}


@app.get("/api/newsletter/{newsletter_id}")
async def get_newsletter(newsletter_id: str):
    newsletter = newsletters.get_newsletter(settings.database_path, newsletter_id)
    return {"newsletter": _dump(newsletter), "metadata": _dump(newsletter.metadata)}


@app.patch("/api/newsletter/{newsletter_id}")
async def update_newsletter(newsletter_id: str, update: NewsletterUpdate):
    newsletter = newsletters.update_newsletter(settings.database_path, newsletter_id, update)
    return {"newsletter": _dump(newsletter)}


@app.delete("/api/newsletter/{newsletter_id}")
async def delete_newsletter(newsletter_id: str):
    newsletters.delete_newsletter(settings.database_path, newsletter_id)
    return {"success": True}


@app.post("/api/newsletter/{newsletter_id}/generate")
def generate(newsletter_id: str, req: GenerateRequest):
    # Sync handler: runs in the threadpool while the completion call blocks.
    result = generate_section(
        settings.database_path,
        newsletter_id,
        req.section_id,
        build_log_ids=req.selected_build_logs,
        reading_ids=req.selected_readings,
        theme=req.theme,
    )
    return _dump(result)


@app.post("/api/newsletter/{newsletter_id}/sources")
async def link_newsletter_source(newsletter_id: str, req: LinkSourceRequest):
    newsletter = newsletters.link_source(settings.database_path, newsletter_id, req.source_id)
    return {"newsletter": _dump(newsletter)}


@app.get("/api/newsletter/{newsletter_id}/export")
async def export_newsletter(newsletter_id: str):
    newsletter = newsletters.get_newsletter(settings.database_path, newsletter_id)
    filename = newsletters.export_filename(newsletter)
    return Response(
        content=newsletters.export_markdown(newsletter),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/newsletter/{newsletter_id}/preview", response_class=HTMLResponse)
async def preview_newsletter(newsletter_id: str):
    try:
        newsletter = newsletters.get_newsletter(settings.database_path, newsletter_id)
    except StudioError:
        return HTMLResponse("<h1>Newsletter not found</h1>", status_code=404)
    return HTMLResponse(newsletters.render_preview_html(newsletter))


# ---------------------------------------------------------------------------
# Readings
# ---------------------------------------------------------------------------

class CaptureRequest(ApiModel):
    url: str = ""
    title: str = ""
    excerpt: str | None = None
    description: str | None = None


@app.options("/api/readings")
async def readings_preflight():
    return JSONResponse({}, headers=CORS_HEADERS)


@app.get("/api/readings")
async def list_readings(
    status: str | None = None, tag: str | None = None, limit: int = 50, offset: int = 0
):
    items, total = readings.list_readings(
        settings.database_path, status=status, tag=tag, limit=limit, offset=offset
    )
    return JSONResponse(
        {
            "readings": [_dump(r) for r in items],
            "total": total,
            "limit": limit,
            "offset": offset,
        },
        headers=CORS_HEADERS,
    )


@app.post("/api/readings")
async def capture_reading(req: CaptureRequest):
    try:
        reading, created = readings.capture_reading(
            settings.database_path,
            req.url,
            req.title,
            excerpt=req.excerpt,
            description=req.description,
        )
    except ValidationError as exc:
        return JSONResponse({"error": exc.message}, status_code=400, headers=CORS_HEADERS)

    body = {"id": reading.id, "status": reading.status, "reading": _dump(reading)}
    if not created:
        body["message"] = "Reading already exists"
        return JSONResponse(body, headers=CORS_HEADERS)
    return JSONResponse(body, status_code=201, headers=CORS_HEADERS)


@app.get("/api/readings/count")
async def count_readings():
    return readings.count_readings(settings.database_path)


@app.get("/api/readings/{reading_id}")
async def get_reading(reading_id: str):
    return _dump(readings.get_reading(settings.database_path, reading_id))


@app.patch("/api/readings/{reading_id}")
async def update_reading(reading_id: str, update: ReadingUpdate):
    return _dump(readings.update_reading(settings.database_path, reading_id, update))


@app.delete("/api/readings/{reading_id}")
async def delete_reading(reading_id: str):
    readings.delete_reading(settings.database_path, reading_id)
    return {"success": True}


@app.post("/api/readings/{reading_id}/analyze")
def analyze(reading_id: str):
    reading = analyze_reading(settings.database_path, reading_id)
    return {"success": True, "reading": _dump(reading)}


# ---------------------------------------------------------------------------
# Build log
# ---------------------------------------------------------------------------

class BuildLogCreateRequest(ApiModel):
    week_start: date


@app.get("/api/build-log")
async def list_build_log():
    return [_dump(e) for e in build_log.list_entries(settings.database_path)]


@app.post("/api/build-log", status_code=201)
async def create_build_log(req: BuildLogCreateRequest):
    return _dump(build_log.create_entry(settings.database_path, req.week_start))


@app.post("/api/build-log/current")
async def current_build_log():
    return _dump(build_log.create_current_week(settings.database_path))


@app.get("/api/build-log/{entry_id}")
async def get_build_log(entry_id: str):
    return _dump(build_log.get_entry(settings.database_path, entry_id))


@app.patch("/api/build-log/{entry_id}")
async def update_build_log(entry_id: str, update: BuildLogUpdate):
    return _dump(build_log.update_entry(settings.database_path, entry_id, update))


@app.delete("/api/build-log/{entry_id}")
async def delete_build_log(entry_id: str):
    build_log.delete_entry(settings.database_path, entry_id)
    return {"success": True}


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------

@app.get("/api/sources")
async def list_sources():
    return [_dump(s) for s in sources.list_sources(settings.database_path)]


@app.get("/api/sources/{source_id}/content")
async def source_content(source_id: str):
    snapshot = sources.get_source_content(settings.database_path, source_id)
    if snapshot is None:
        return {"content": None, "message": "No content synced yet"}
    return {
        "content": snapshot.content,
        "extractedAt": snapshot.extracted_at.isoformat(),
        "contentHash": snapshot.content_hash,
    }


@app.post("/api/sources/sync")
def sync_sources():
    return _dump(sources.sync_sources(settings.database_path))


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

BOOKMARKLET_TEMPLATE = (
    "javascript:(function(){{var d={{url:location.href,title:document.title,"
    "excerpt:getSelection().toString().slice(0,500),"
    "description:(document.querySelector('meta[name=\"description\"]')||{{}}).content||''}};"
    "fetch('{base_url}/api/readings',{{method:'POST',headers:{{'Content-Type':'application/json'}},"
    "body:JSON.stringify(d)}}).then(r=>r.json()).then(x=>alert((x.reading&&x.reading.title)||x.message||x.error))"
    ".catch(e=>alert(e))}})();"
)


@app.get("/api/settings/bookmarklet")
async def bookmarklet():
    return {"bookmarklet": BOOKMARKLET_TEMPLATE.format(base_url=settings.base_url.rstrip("/"))}
