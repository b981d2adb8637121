"""CLI entrypoint: python -m covergen {generate|classify|init-db|stats}."""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import os
import sys
import uuid
from pathlib import Path

from covergen.config import get_db_path, get_image_settings, load_config
from covergen.db import get_connection, get_recent_runs, init_db
from covergen.errors import GenerationError, InvalidRequest
from covergen.models import GenerationRequest, SourceRef


def setup_logging(config: dict) -> None:
    """Configure logging with console + rotating file output."""
    root = logging.getLogger()
    root.setLevel(logging.INFO)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console = logging.StreamHandler()
    console.setFormatter(fmt)
    root.addHandler(console)

    # File handler (rotate at 5MB, keep 3 backups)
    log_dir = Path(get_db_path(config)).parent
    log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = logging.handlers.RotatingFileHandler(
        str(log_dir / "covergen.log"), maxBytes=5 * 1024 * 1024, backupCount=3,
    )
    file_handler.setFormatter(fmt)
    root.addHandler(file_handler)

    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("trafilatura").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


logger = logging.getLogger("covergen")


def _request_parser(prog: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=f"python -m covergen {prog}")
    parser.add_argument("title")
    parser.add_argument("--summary", default="")
    parser.add_argument("--content", default="")
    parser.add_argument("--category", default="")
    parser.add_argument("--tags", default="", help="Comma-separated tags")
    parser.add_argument("--source-url", action="append", default=[])
    parser.add_argument("--provider", default=None)
    parser.add_argument("--mode", choices=["raw", "minimal", "augmented"], default=None)
    parser.add_argument("--theme", default=None)
    parser.add_argument("--prompt", default=None, help="Custom prompt text")
    parser.add_argument("--id", default=None, help="Request id (default: random)")
    return parser


def _build_request(config: dict, args: argparse.Namespace) -> GenerationRequest:
    settings = get_image_settings(config)
    try:
        return GenerationRequest(
            request_id=args.id or uuid.uuid4().hex[:12],
            title=args.title,
            summary=args.summary,
            content=args.content,
            tags=tuple(t.strip() for t in args.tags.split(",") if t.strip()),
            category=args.category,
            sources=tuple(SourceRef(url=u) for u in args.source_url),
            locale=settings["default_locale"],
            mode=args.mode,
            force_provider=args.provider,
            force_theme=args.theme,
            custom_prompt=args.prompt,
        )
    except InvalidRequest as exc:
        print(f"Error [{exc.code}]: {exc.message}")
        sys.exit(1)


def cmd_init_db(config: dict, argv: list[str]) -> None:
    """Initialize the SQLite database."""
    db_path = get_db_path(config)
    init_db(db_path)
    print(f"Database initialized at {db_path}")


def cmd_classify(config: dict, argv: list[str]) -> None:
    """Print the analysis and prompt ladder for an article without generating."""
    from covergen.classify import analyze_request
    from covergen.prompts import build_prompt_plan

    args = _request_parser("classify").parse_args(argv)
    request = _build_request(config, args)
    settings = get_image_settings(config)
    analysis = analyze_request(request, settings)

    c = analysis.classification
    print(f"Theme:    {c.theme} ({c.confidence:.2f}) subtype={c.scene_subtype}")
    print(f"Reasons:  {', '.join(c.reasons)}")
    print(f"Country:  {analysis.country.name} [{analysis.country.tier}]")
    if analysis.entity.event_type:
        print(f"Event:    {analysis.entity.event_type} ({analysis.entity.event_name})")
    elif analysis.entity.is_person:
        print(f"Person:   {analysis.entity.primary_person}")
    print(f"Context:  {analysis.context.context_id} ({analysis.context.score})")

    plan = build_prompt_plan(
        request, settings, c, analysis.country, analysis.entity, analysis.context,
    )
    for attempt in plan.attempts:
        print(f"\n[{attempt.index + 1}] {attempt.level}\n  {attempt.prompt}")


async def cmd_generate(config: dict, argv: list[str]) -> None:
    """Generate and persist a cover for one article."""
    from covergen.pipeline import Orchestrator

    args = _request_parser("generate").parse_args(argv)
    request = _build_request(config, args)

    db_path = get_db_path(config)
    init_db(db_path)
    conn = get_connection(db_path)
    orchestrator = Orchestrator(config, conn=conn)
    try:
        result = await orchestrator.generate(request)
    except GenerationError as exc:
        print(f"Error [{exc.code}]: {exc.message}")
        sys.exit(1)
    finally:
        await orchestrator.media.wait_for_cleanups()
        conn.close()

    print(f"Request:  {request.request_id}")
    print(f"Provider: {result.provider} ({result.kind})")
    if result.error_code:
        print(f"Degraded: {result.error_code} {result.error_message}")
    if result.asset:
        print(f"Primary:  {result.asset.primary_path}")
        print(f"Fallback: {result.asset.fallback_path}")
        print(f"Hash:     {result.asset.content_hash}")


def cmd_stats(config: dict, argv: list[str]) -> None:
    """Show recent batch run stats."""
    db_path = get_db_path(config)
    conn = get_connection(db_path)
    runs = get_recent_runs(conn, limit=10)
    conn.close()

    if not runs:
        print("No generation runs yet.")
        return

    header = (
        f"{'Run':>4} {'Tenant':<16} {'Status':<10} {'OK':>4} "
        f"{'Ph':>4} {'Fail':>4} {'Cost':>8} {'Started'}"
    )
    print(header)
    print("-" * 78)
    for r in runs:
        print(
            f"{r['id']:>4} {r['tenant']:<16} {r['status']:<10} "
            f"{r['succeeded']:>4} {r['placeholders']:>4} {r['failed']:>4} "
            f"${r['cost_usd']:>7.3f} {r['started_at']}"
        )


COMMANDS = {
    "generate": cmd_generate,
    "classify": cmd_classify,
    "init-db": cmd_init_db,
    "stats": cmd_stats,
}


def main() -> None:
    if len(sys.argv) < 2 or sys.argv[1] not in COMMANDS:
        available = ", ".join(COMMANDS)
        print(f"Usage: python -m covergen {{{available}}}")
        sys.exit(1)

    command = sys.argv[1]
    config = load_config(os.environ.get("CONFIG_PATH", "config.yaml"))
    setup_logging(config)
    handler = COMMANDS[command]

    if asyncio.iscoroutinefunction(handler):
        asyncio.run(handler(config, sys.argv[2:]))
    else:
        handler(config, sys.argv[2:])


if __name__ == "__main__":
    main()
