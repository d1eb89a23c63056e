"""
cli.py -- Command-line entry point for the lesson planner core.

Commands:
    import   Parse a CSV/JSON sheet export into a class's base dataset
    show     Print the merged lesson view for a class
    export   Write a JSON backup of the whole local cache
    restore  Load a JSON backup back into the local cache
    flush    Retry remote writes that failed earlier in this process

Usage:
    python -m planner.cli import --sheet LKG lessons.csv
    python -m planner.cli show --sheet UKG
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from planner.adapters.tabular import read_rows
from planner.aggregator import AggregationEngine
from planner.config import DEFAULT_SHEET
from planner.gateway import PersistenceGateway
from planner.models import SHEETS

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("planner.cli")


async def run_import(gateway: PersistenceGateway, sheet: str, path: str) -> int:
    try:
        rows = read_rows(path)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("Cannot read %s: %s", path, exc)
        return 1

    engine = AggregationEngine(gateway, sheet)
    summary = await engine.import_rows(rows)

    logger.info("=" * 60)
    logger.info("IMPORT COMPLETE")
    logger.info("=" * 60)
    logger.info("Class:               %s", summary.sheet)
    logger.info("Rows read:           %d", summary.rows_read)
    logger.info("Activities parsed:   %d", summary.activities_parsed)
    logger.info("Lessons:             %d", summary.lessons)
    logger.info("Local cache:         %s", "saved" if summary.local_saved else "NOT SAVED")
    if summary.remote is not None:
        logger.info("Remote:              %s", "saved" if summary.remote.ok else f"FAILED ({summary.remote.error})")
    logger.info("Elapsed time:        %.2fs", summary.elapsed_seconds)
    return 1 if summary.degraded else 0


async def run_show(gateway: PersistenceGateway, sheet: str) -> int:
    engine = AggregationEngine(gateway, sheet)
    snapshot = await engine.load()
    print(f"{snapshot.sheet.display} ({snapshot.sheet.sheet}) -- base data from {snapshot.origin.value}")
    for lesson_id in snapshot.lesson_ids:
        lesson = snapshot.lesson_data[lesson_id]
        source = snapshot.sources[lesson_id]
        marker = " [plan]" if source.kind == "plan" else ""
        print(f"  Lesson {lesson_id}: {lesson.title} ({lesson.total_time} mins){marker}")
        for category in lesson.category_order:
            names = ", ".join(a.name for a in lesson.grouped[category])
            print(f"      {category}: {names}")
        if lesson.eyfs_statements:
            print(f"      EYFS: {len(lesson.eyfs_statements)} statements")
    return 0


async def run_flush(gateway: PersistenceGateway) -> int:
    results = await gateway.flush_outbox()
    failed = [r for r in results if not r.ok]
    logger.info("Flushed %d pending writes, %d still failing", len(results), len(failed))
    return 1 if failed else 0


def run_export(gateway: PersistenceGateway, out: str) -> int:
    bundle = gateway.local.export_all()
    with open(out, "w", encoding="utf-8") as f:
        json.dump(bundle, f, indent=2, ensure_ascii=False)
    logger.info("Exported %d cache entries to %s", len(bundle), out)
    return 0


def run_restore(gateway: PersistenceGateway, path: str) -> int:
    with open(path, "r", encoding="utf-8") as f:
        bundle = json.load(f)
    if not isinstance(bundle, dict):
        logger.error("Backup %s is not a JSON object", path)
        return 1
    gateway.local.import_all(bundle)
    return 0


async def main_async(args: argparse.Namespace) -> int:
    gateway = PersistenceGateway.from_config()
    try:
        if args.command == "import":
            return await run_import(gateway, args.sheet, args.path)
        if args.command == "show":
            return await run_show(gateway, args.sheet)
        if args.command == "flush":
            return await run_flush(gateway)
        if args.command == "export":
            return run_export(gateway, args.out)
        if args.command == "restore":
            return run_restore(gateway, args.path)
        return 2
    finally:
        await gateway.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Lesson planner -- data tools")
    sub = parser.add_subparsers(dest="command", required=True)

    p_import = sub.add_parser("import", help="Import a sheet export into a class")
    p_import.add_argument("path", help="Path to a .csv or .json sheet export")
    p_import.add_argument("--sheet", default=DEFAULT_SHEET, help=f"Class code ({', '.join(SHEETS)})")

    p_show = sub.add_parser("show", help="Print the merged lessons of a class")
    p_show.add_argument("--sheet", default=DEFAULT_SHEET, help=f"Class code ({', '.join(SHEETS)})")

    sub.add_parser("flush", help="Retry pending remote writes")

    p_export = sub.add_parser("export", help="Back up the local cache to a JSON file")
    p_export.add_argument("--out", default="planner-backup.json")

    p_restore = sub.add_parser("restore", help="Restore the local cache from a JSON backup")
    p_restore.add_argument("path")
    return parser


def main() -> None:
    args = build_parser().parse_args()
    sys.exit(asyncio.run(main_async(args)))


if __name__ == "__main__":
    main()
