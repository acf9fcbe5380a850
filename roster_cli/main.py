"""Main entry point for the roster CLI."""
from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from roster.config import settings
from roster.kernel.csv_codec import template_csv, to_csv
from roster.kernel.errors import DocumentStructureError, RemoteOperationError
from roster.kernel.importer import import_csv
from roster.kernel.pipeline import PipelineController, ViewState
from roster.kernel.query import SortSpec, page_window
from roster.kernel.types import ImportOptions
from roster_cli import __version__
from roster_cli.client import HttpStudentApi

COMMANDS = ("list", "stats", "export", "import", "template", "delete", "clear")


def print_help():
    """Print help message."""
    print(f"""
Roster CLI v{__version__}

Usage:
  roster [options] <command>

Commands:
  list              Show one page of students
  stats             Show analytics and insights
  export FILE       Write students to CSV
  import FILE       Create/update students from CSV
  template FILE     Write a blank import template
  delete ID         Delete one student
  clear --yes       Delete every student

List options:
  --search TEXT     Match code, name, email or hometown
  --hometown NAME   Exact hometown
  --grade A-F       Exact grade
  --sort KEY        Sort key (default: student_code)
  --desc            Sort descending
  --page N          Page number (default: 1)
  --page-size N     Rows per page (default: {settings.PAGE_SIZE})

Other options:
  --ids 1,2,3       export: only these ids
  --no-update       import: skip students that already exist
  --strict          import: import nothing if any row is invalid
  --api-url URL     Override API endpoint (default: {settings.API_URL})
  -h, --help        Show this help
  -v, --version     Show version

Environment:
  ROSTER_API_URL    Override API endpoint (same as --api-url)
  ROSTER_LOG_LEVEL  Logging level (default: WARNING)
""")


def _usage_error(message: str):
    print(f"Error: {message}")
    print("Run 'roster --help' for usage.")
    sys.exit(1)


def _int_option(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        _usage_error(f"{name} requires a number, got {value!r}")


def parse_args(args: list[str]) -> dict:
    """
    Parse command line arguments.

    Returns dict with:
        command: str | None
        target: str | None (FILE or ID)
        api_url, search, hometown, grade, sort: str | None
        desc, update_existing, strict, yes: bool
        page, page_size: int | None
        ids: list[int] | None
        show_help, show_version: bool
    """
    result = {
        "command": None,
        "target": None,
        "api_url": None,
        "search": None,
        "hometown": None,
        "grade": None,
        "sort": None,
        "desc": False,
        "page": None,
        "page_size": None,
        "ids": None,
        "update_existing": True,
        "strict": False,
        "yes": False,
        "show_help": False,
        "show_version": False,
    }
    valued = {
        "--api-url": "api_url",
        "--search": "search",
        "--hometown": "hometown",
        "--grade": "grade",
        "--sort": "sort",
        "--page": "page",
        "--page-size": "page_size",
        "--ids": "ids",
    }

    i = 0
    while i < len(args):
        arg = args[i]

        if arg in valued:
            if i + 1 >= len(args):
                _usage_error(f"{arg} requires a value")
            value = args[i + 1]
            key = valued[arg]
            if key in ("page", "page_size"):
                result[key] = _int_option(arg, value)
            elif key == "ids":
                result[key] = [_int_option(arg, v.strip()) for v in value.split(",") if v.strip()]
            else:
                result[key] = value
            i += 1
        elif arg == "--desc":
            result["desc"] = True
        elif arg == "--no-update":
            result["update_existing"] = False
        elif arg == "--strict":
            result["strict"] = True
        elif arg == "--yes":
            result["yes"] = True
        elif arg in ("--help", "-h"):
            result["show_help"] = True
        elif arg in ("--version", "-v"):
            result["show_version"] = True
        elif arg.startswith("-"):
            _usage_error(f"Unknown option: {arg}")
        elif result["command"] is None:
            if arg not in COMMANDS:
                _usage_error(f"Unknown command: {arg}")
            result["command"] = arg
        elif result["target"] is None:
            result["target"] = arg
        else:
            _usage_error(f"Unexpected argument: {arg}")

        i += 1

    return result


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def _view_from(args: dict) -> ViewState:
    view = ViewState()
    for key in ("search", "hometown", "grade"):
        if args[key]:
            view = view.with_filter(key, args[key])
    view = replace(view, sort=SortSpec(args["sort"] or view.sort.key, "desc" if args["desc"] else "asc"))
    if args["page_size"] is not None:
        view = view.with_page_size(args["page_size"])
    if args["page"] is not None:
        view = view.with_page(args["page"])
    return view


def _fmt(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


async def cmd_list(api: HttpStudentApi, args: dict) -> None:
    controller = PipelineController()
    result = await controller.refresh(api, _view_from(args), max_pages=settings.MAX_LIST_PAGES)
    meta = result.page.meta

    print(f"{'ID':>5}  {'Code':<12}  {'Name':<28}  {'Hometown':<16}  {'Avg':>5}  Grade")
    for r in result.page.items:
        print(
            f"{_fmt(r.id):>5}  {r.student_code:<12}  {r.full_name[:28]:<28}  "
            f"{(r.hometown or '-')[:16]:<16}  {_fmt(r.average_score):>5}  {r.grade or '-'}"
        )

    pages = " ".join("..." if p is None else (f"[{p}]" if p == meta.page else str(p)) for p in page_window(meta))
    print(f"\nShowing {meta.start_item}-{meta.end_item} of {meta.total_items}  |  pages: {pages}")


async def cmd_stats(api: HttpStudentApi, args: dict) -> None:
    controller = PipelineController()
    await controller.refresh(api, ViewState(), max_pages=settings.MAX_LIST_PAGES)
    report = controller.analytics()
    overview = report.overview

    print(f"Students:            {overview.total_students}")
    print(f"With scores:         {overview.students_with_scores}")
    print(f"Average age:         {_fmt(overview.average_age)}")
    print(f"Excellent (A):       {report.excellent_count}")

    extremes = report.subject_extremes
    if extremes:
        (best, best_avg), (worst, worst_avg) = extremes
        print(f"Best subject:        {best} ({best_avg:.2f})")
        print(f"Weakest subject:     {worst} ({worst_avg:.2f})")

    print("\nGrades:")
    for label, count in report.grade_distribution.items():
        print(f"  {label}: {count}")

    print("\nSubject averages:")
    for subject, avg in report.average_scores_by_subject.items():
        print(f"  {subject:<11} {_fmt(avg)}")

    print("\nScore ranges:")
    for label, count in report.score_ranges.items():
        print(f"  {label:<7} {count}")

    if report.hometown_distribution:
        print("\nTop hometowns:")
        for town, count in report.top_hometowns():
            print(f"  {town:<20} {count:>4}  avg {_fmt(report.scores_by_hometown.get(town))}")

    if report.top_performers:
        print("\nTop performers:")
        for r in report.top_performers:
            print(f"  {r.student_code:<12} {r.full_name:<28} {_fmt(r.average_score)}")

    if report.insights:
        print("\nInsights:")
        for insight in report.insights:
            print(f"  [{insight.level}] {insight.title}: {insight.description}")


async def cmd_export(api: HttpStudentApi, args: dict) -> None:
    controller = PipelineController()
    await controller.refresh(api, ViewState(), max_pages=settings.MAX_LIST_PAGES)
    records = controller.store.select(args["ids"]) if args["ids"] else controller.store.all()
    Path(args["target"]).write_text(to_csv(records), encoding="utf-8")
    print(f"Exported {len(records)} students to {args['target']}")


async def cmd_import(api: HttpStudentApi, args: dict) -> None:
    text = Path(args["target"]).read_text(encoding="utf-8")
    options = ImportOptions(update_existing=args["update_existing"], skip_errors=not args["strict"])
    result = await import_csv(
        text,
        api,
        options,
        batch_size=settings.IMPORT_BATCH_SIZE,
        batch_delay=settings.IMPORT_BATCH_DELAY,
        max_pages=settings.MAX_LIST_PAGES,
    )
    print(
        f"Processed: {result.processed}  Created: {result.created}  "
        f"Updated: {result.updated}  Skipped: {result.skipped}"
    )
    if result.errors:
        print(f"Errors ({len(result.errors)}):")
        for error in result.errors:
            print(f"  line {error.line_number}: {error.message}")


async def cmd_delete(api: HttpStudentApi, args: dict) -> None:
    await api.delete(args["target"])
    print(f"Deleted student {args['target']}")


async def cmd_clear(api: HttpStudentApi, args: dict) -> None:
    count = await api.bulk_delete()
    print(f"Deleted {count} students")


HANDLERS = {
    "list": cmd_list,
    "stats": cmd_stats,
    "export": cmd_export,
    "import": cmd_import,
    "delete": cmd_delete,
    "clear": cmd_clear,
}


async def run_command(args: dict, api: HttpStudentApi) -> None:
    async with api:
        await HANDLERS[args["command"]](api, args)


def main():
    """Main entry point."""
    args = parse_args(sys.argv[1:])
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(levelname)s %(name)s: %(message)s")

    # Handle help and version first
    if args["show_help"]:
        print_help()
        return

    if args["show_version"]:
        print(f"roster {__version__}")
        return

    command = args["command"]
    if command is None:
        print_help()
        sys.exit(1)

    if command in ("export", "import", "template", "delete") and not args["target"]:
        _usage_error(f"{command} requires an argument")

    if command == "clear" and not args["yes"]:
        _usage_error("clear deletes every student; pass --yes to confirm")

    # template needs no server
    if command == "template":
        Path(args["target"]).write_text(template_csv(), encoding="utf-8")
        print(f"Template written to {args['target']}")
        return

    api = HttpStudentApi(api_url=args["api_url"])
    try:
        asyncio.run(run_command(args, api))
    except DocumentStructureError as e:
        print(f"Error: {e}")
        if e.missing_columns:
            print(f"Missing columns: {', '.join(e.missing_columns)}")
        sys.exit(1)
    except RemoteOperationError as e:
        print(f"Error: {e.describe()}")
        sys.exit(1)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
