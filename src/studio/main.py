import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from . import newsletters, sources
from .analyzer import analyze_reading
from .config import settings
from .db import init_db
from .errors import NotFoundError, StudioError
from .generator import generate_section

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def cmd_serve(args: argparse.Namespace) -> None:
    uvicorn.run("src.studio.web:app", host=args.host, port=args.port, reload=args.reload)


def cmd_init_db(args: argparse.Namespace) -> None:
    # Tables are created before any command runs.
    logger.info(f"Initialized database at {settings.database_path}")


def cmd_seed_sources(args: argparse.Namespace) -> None:
    added = sources.seed_sources(settings.database_path)
    logger.info(f"Seeded {added} new sources")


def cmd_sync(args: argparse.Namespace) -> None:
    report = sources.sync_sources(settings.database_path)
    for item in report.results:
        suffix = f" ({item.error})" if item.error else ""
        print(f"{item.status:>10}  {item.name}{suffix}")


def cmd_new_newsletter(args: argparse.Namespace) -> None:
    newsletter = newsletters.create_newsletter(
        settings.database_path, args.title, issue_number=args.issue, slug=args.slug
    )
    print(newsletter.id)
    for section in newsletter.sections:
        print(f"  {section.sequence_order}. {section.title} [{section.id}]")


def cmd_generate(args: argparse.Namespace) -> None:
    newsletter = newsletters.get_newsletter(settings.database_path, args.newsletter_id)
    if args.section:
        targets = [s for s in newsletter.sections if s.id == args.section or s.title == args.section]
        if not targets:
            raise NotFoundError(f"No section matching '{args.section}'")
    else:
        targets = newsletter.sections

    for section in targets:
        result = generate_section(
            settings.database_path,
            newsletter.id,
            section.id,
            build_log_ids=args.build_log or [],
            reading_ids=args.reading or [],
            theme=args.theme,
        )
        logger.info(f"{section.title}: {result.tokens_used} tokens")


def cmd_analyze(args: argparse.Namespace) -> None:
    reading = analyze_reading(settings.database_path, args.reading_id)
    print(f"Relevance: {reading.ai_relevance}")
    print(f"Tags: {', '.join(reading.ai_tags)}")


def cmd_export(args: argparse.Namespace) -> None:
    newsletter = newsletters.get_newsletter(settings.database_path, args.newsletter_id)
    markdown = newsletters.export_markdown(newsletter)
    if args.output:
        Path(args.output).write_text(markdown, encoding="utf-8")
        logger.info(f"Wrote {args.output}")
    else:
        print(markdown)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Content Studio")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the web dashboard")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")
    serve.set_defaults(func=cmd_serve)

    sub.add_parser("init-db", help="Create database tables").set_defaults(func=cmd_init_db)
    sub.add_parser("seed-sources", help="Register default strategy documents").set_defaults(
        func=cmd_seed_sources
    )
    sub.add_parser("sync", help="Snapshot changed strategy documents").set_defaults(func=cmd_sync)

    new = sub.add_parser("new-newsletter", help="Create a newsletter with its five sections")
    new.add_argument("title")
    new.add_argument("--issue", type=int, default=None)
    new.add_argument("--slug", default=None)
    new.set_defaults(func=cmd_new_newsletter)

    gen = sub.add_parser("generate", help="Generate section content")
    gen.add_argument("newsletter_id")
    gen.add_argument("--section", help="Section id or title (default: all sections)")
    gen.add_argument("--build-log", action="append", help="Build log entry id (repeatable)")
    gen.add_argument("--reading", action="append", help="Reading id (repeatable)")
    gen.add_argument("--theme", default=None)
    gen.set_defaults(func=cmd_generate)

    analyze = sub.add_parser("analyze", help="Analyze a reading")
    analyze.add_argument("reading_id")
    analyze.set_defaults(func=cmd_analyze)

    export = sub.add_parser("export", help="Export a newsletter as markdown")
    export.add_argument("newsletter_id")
    export.add_argument("-o", "--output", default=None)
    export.set_defaults(func=cmd_export)

    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    init_db(settings.database_path)
    try:
        args.func(args)
    except StudioError as exc:
        logger.error(exc.message)
        sys.exit(1)


if __name__ == "__main__":
    main()
