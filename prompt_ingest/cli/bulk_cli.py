"""
Command-line interface for bulk prompt ingestion.

Usage:
    prompt-ingest check <file> [--no-detect]
    prompt-ingest publish [--input <file>] [--append] [--status Review]
    prompt-ingest drafts show|clear
    prompt-ingest watch
"""

import argparse
import asyncio
import mimetypes
import sys
from pathlib import Path

from prompt_ingest.batch import BatchOrchestrator, FileReader, Publisher
from prompt_ingest.categories import CategoryRegistry
from prompt_ingest.config import PipelineSettings, load_settings
from prompt_ingest.core.constants import PROMPT_STATUSES, get_field
from prompt_ingest.core.errors import FileRejectedError, NothingToPublishError, PipelineError
from prompt_ingest.core.models import ChangeEvent, ModerationView, UploadRow
from prompt_ingest.core.ratio import RatioInferrer
from prompt_ingest.core.rules import RuleConfigLoader, RuleEngine, default_engine
from prompt_ingest.observability.logger import configure_logging, get_logger
from prompt_ingest.observability.metrics import start_metrics_server
from prompt_ingest.store import JsonFileDraftStore
from prompt_ingest.store.connection import DatabaseConnectionPool
from prompt_ingest.store.ports import DraftStore
from prompt_ingest.store.postgres import (
    PostgresCategoryMetaStore,
    PostgresDraftStore,
    PostgresPromptStore,
)
from prompt_ingest.streaming import ModerationSync, PgNotifySource
from prompt_ingest.utils.validation import validate_file_path

logger = get_logger(__name__)

RULE = "=" * 60
THIN_RULE = "-" * 60


# =======================
# WIRING
# =======================

def build_engine(settings: PipelineSettings) -> RuleEngine | None:
    """Rule engine from the configured YAML rules, or None for the built-in rules."""
    if settings.validation_rules_path is None:
        return None
    loader = RuleConfigLoader(settings.validation_rules_path)
    return RuleEngine(loader.load_rules())


def require_database(settings: PipelineSettings) -> str:
    if not settings.database_url:
        raise PipelineError(
            "No database configured: set PROMPT_INGEST_DATABASE_URL or database_url in the config file"
        )
    return settings.database_url


def build_draft_store(settings: PipelineSettings, pool: DatabaseConnectionPool | None) -> DraftStore:
    if pool is not None:
        return PostgresDraftStore(pool)
    return JsonFileDraftStore(settings.drafts_path)


def read_input(path: str) -> tuple[bytes, str, str | None]:
    input_path = Path(validate_file_path(path, "input"))
    if not input_path.is_file():
        raise PipelineError(f"Input file not found: {path}")
    content_type, _ = mimetypes.guess_type(input_path.name)
    return input_path.read_bytes(), input_path.name, content_type


def _title_of(raw: dict) -> str:
    title = raw.get("title")
    return title.strip() if isinstance(title, str) and title.strip() else "(untitled)"


def _image_url(raw: dict) -> str | None:
    value = get_field(raw, "preview_image_url")
    return value.strip() if isinstance(value, str) and value.strip() else None


# =======================
# COMMANDS
# =======================

async def check_command(args, settings: PipelineSettings) -> int:
    """
    Parse and validate a file without touching any store.

    Returns:
        0 if every row is valid, 1 otherwise
    """
    content, filename, content_type = read_input(args.input)
    reader = FileReader(max_file_bytes=settings.max_file_bytes)
    records = reader.read(content, filename, content_type)
    engine = build_engine(settings) or default_engine()

    outcomes = engine.validate_batch(records)
    results = [(raw, outcome.error_messages) for raw, outcome in zip(records, outcomes)]

    ratios: dict[int, str] = {}
    if not args.no_detect:
        inferrer = RatioInferrer(timeout=settings.ratio_timeout_seconds)
        try:
            pending = {
                index: _image_url(raw)
                for index, (raw, errors) in enumerate(results)
                if not errors and _image_url(raw)
            }
            detected = await asyncio.gather(*(inferrer.infer(url) for url in pending.values()))
            ratios = dict(zip(pending.keys(), detected))
        finally:
            await inferrer.aclose()

    invalid = 0
    print(RULE)
    print(f"CHECK: {filename}")
    print(f"Rules: {engine.get_rule_summary()['total_rules']}")
    print(RULE)
    for index, (raw, errors) in enumerate(results):
        if errors:
            invalid += 1
            print(f"Row {index + 1}: INVALID {_title_of(raw)}: {'; '.join(errors)}")
        elif index in ratios:
            print(f"Row {index + 1}: OK {_title_of(raw)} (ratio {ratios[index]})")
        else:
            print(f"Row {index + 1}: OK {_title_of(raw)}")
    print(THIN_RULE)
    print(f"Total rows: {len(results)}")
    print(f"Valid rows: {len(results) - invalid}")
    print(f"Invalid rows: {invalid}")
    print(RULE)

    return 1 if invalid else 0


async def publish_command(args, settings: PipelineSettings) -> int:
    """
    Restore the draft batch, optionally ingest a file, and publish every valid row.

    Returns:
        0 if every create succeeded, 1 otherwise
    """
    pool = DatabaseConnectionPool(require_database(settings))
    await pool.open()
    prompt_store = PostgresPromptStore(pool)
    registry = CategoryRegistry(
        source=prompt_store,
        meta_store=PostgresCategoryMetaStore(pool),
        ttl_seconds=settings.category_cache_ttl_seconds,
    )
    inferrer = None if args.no_detect else RatioInferrer(timeout=settings.ratio_timeout_seconds)
    orchestrator = BatchOrchestrator(
        draft_store=PostgresDraftStore(pool),
        publisher=Publisher(prompt_store, registry, batch_size=settings.publish_batch_size),
        inferrer=inferrer,
        file_reader=FileReader(max_file_bytes=settings.max_file_bytes),
        engine=build_engine(settings),
        autosave_delay=settings.autosave_delay_seconds,
    )

    try:
        restored = await orchestrator.restore()
        if restored:
            print(f"Restored {len(restored)} draft rows")

        if args.input:
            content, filename, content_type = read_input(args.input)
            await orchestrator.ingest_file(content, filename, content_type, append=args.append)

        for row in orchestrator.invalid_rows:
            print(f"Skipping invalid row {_title_of(row.raw)}: {'; '.join(row.validation_errors)}")

        try:
            summary = await orchestrator.publish_all(status=args.status)
        except NothingToPublishError as e:
            print(str(e))
            return 1

        for result in summary.results:
            if not result.success:
                print(f"Failed: {result.title}: {result.error}")
        if summary.new_categories:
            print(f"New categories: {', '.join(summary.new_categories)}")
        print(summary.message)
        return 1 if summary.failed else 0
    finally:
        await orchestrator.close()
        if inferrer is not None:
            await inferrer.aclose()
        await pool.close()


def _describe(row: UploadRow) -> str:
    state = row.state.value
    detail = f" ({'; '.join(row.validation_errors)})" if row.validation_errors else ""
    return f"{row.row_id}  {state:<10}  {_title_of(row.raw)}{detail}"


async def drafts_command(args, settings: PipelineSettings) -> int:
    """Show or clear the persisted draft batch."""
    pool = None
    if settings.database_url:
        pool = DatabaseConnectionPool(settings.database_url)
        await pool.open()
    store = build_draft_store(settings, pool)

    try:
        if args.action == "clear":
            await store.clear()
            print("Drafts cleared")
            return 0

        drafts = await store.load()
        if not drafts:
            print("No drafts")
            return 0
        for draft in drafts:
            print(_describe(UploadRow.from_draft(draft)))
        print(THIN_RULE)
        print(f"{len(drafts)} draft rows")
        return 0
    finally:
        if pool is not None:
            await pool.close()


def _print_change(view: ModerationView, event: ChangeEvent, action: str) -> None:
    print(f"{event.kind:<6} {event.record_id}  {action:<8}  queue size {len(view)}", flush=True)


async def watch_command(args, settings: PipelineSettings) -> int:
    """Seed the moderation queue and follow changes until interrupted."""
    pool = DatabaseConnectionPool(require_database(settings))
    await pool.open()
    try:
        sync = ModerationSync(PostgresPromptStore(pool), on_change=_print_change)
        view = await sync.seed()
        print(f"Moderation queue: {len(view)} records")
        for item in view.items:
            print(f"  {item.id}  {item.status:<9}  {item.title}")
        source = PgNotifySource(pool, channel=settings.notify_channel)
        await sync.run(source.events())
        return 0
    finally:
        await pool.close()


COMMANDS = {
    "check": check_command,
    "publish": publish_command,
    "drafts": drafts_command,
    "watch": watch_command,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="prompt-ingest",
        description="Bulk ingestion of prompt records",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Validate a file and detect image ratios
  prompt-ingest check data/prompts.csv

  # Validate only
  prompt-ingest check data/prompts.json --no-detect

  # Publish a file, keeping previously saved drafts
  prompt-ingest publish --input data/prompts.csv --append

  # Send everything to moderation instead of publishing
  prompt-ingest publish --input data/prompts.csv --status Review

  # Follow the moderation queue
  prompt-ingest watch
        """
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to pipeline settings YAML (default: config/pipeline.yaml if present)"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser("check", help="Parse and validate a file")
    check_parser.add_argument("input", help="Path to a JSON or CSV file")
    check_parser.add_argument(
        "--no-detect",
        action="store_true",
        help="Skip image ratio detection"
    )

    publish_parser = subparsers.add_parser("publish", help="Publish valid rows to the database")
    publish_parser.add_argument(
        "--input",
        default=None,
        help="File to ingest before publishing (default: publish the saved drafts)"
    )
    publish_parser.add_argument(
        "--append",
        action="store_true",
        help="Add the file's rows to the saved drafts instead of replacing them"
    )
    publish_parser.add_argument(
        "--status",
        default=None,
        choices=list(PROMPT_STATUSES),
        help="Status to create records with (default: each record's own status)"
    )
    publish_parser.add_argument(
        "--no-detect",
        action="store_true",
        help="Skip image ratio detection"
    )

    drafts_parser = subparsers.add_parser("drafts", help="Inspect or discard saved drafts")
    drafts_parser.add_argument("action", choices=["show", "clear"])

    subparsers.add_parser("watch", help="Follow the moderation queue")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_logging(args.log_level or settings.log_level, settings.log_format)
    if settings.metrics_port and args.command in ("publish", "watch"):
        start_metrics_server(settings.metrics_port)

    try:
        return asyncio.run(COMMANDS[args.command](args, settings))
    except FileRejectedError as e:
        print(f"Rejected: {e.message}", file=sys.stderr)
        return 1
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
