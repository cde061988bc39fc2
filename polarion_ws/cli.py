"""
Polarion WS CLI - Command-line interface over the SDK.

This layer handles:
- Argument parsing, with POLARION_* environment fallbacks
- TTY detection for human vs machine output
- JSON output for piping/automation
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict, is_dataclass
from typing import Any

from polarion_ws.core.errors import PolarionError
from polarion_ws.sdk import Polarion

# =============================================================================
# Output Helpers
# =============================================================================


def is_tty() -> bool:
    """Check if stdout is a TTY (human) or pipe (machine)."""
    return sys.stdout.isatty()


def _jsonable(data: Any) -> Any:
    if is_dataclass(data) and not isinstance(data, type):
        return asdict(data)
    if isinstance(data, list):
        return [_jsonable(item) for item in data]
    if isinstance(data, dict):
        return {key: _jsonable(value) for key, value in data.items()}
    return data


def json_output(data: Any, pretty: bool = False) -> None:
    """Print JSON output."""
    indent = 2 if pretty or is_tty() else None
    print(json.dumps(_jsonable(data), indent=indent, default=str))


def error_output(error: PolarionError) -> None:
    """Print error and exit."""
    json_output(error.to_dict())
    sys.exit(1)


def list_output(items: list[Any]) -> None:
    """Print a list result with its count."""
    json_output({"data": items, "total_count": len(items)})


def table_output(
    headers: list[str],
    rows: list[list[str]],
    widths: list[int],
) -> None:
    """Print a formatted table for human output."""
    header_line = "  ".join(h.ljust(w) for h, w in zip(headers, widths))
    print(header_line)
    print("-" * len(header_line))

    for row in rows:
        print("  ".join(str(v if v is not None else "")[:w].ljust(w) for v, w in zip(row, widths)))


def work_items_output(items: list[Any]) -> None:
    """Print work items as a table on a TTY, JSON otherwise."""
    if not is_tty():
        list_output(items)
        return
    if not items:
        print("No work items found.")
        return
    table_output(
        ["ID", "Type", "Status", "Title"],
        [[wi.id, wi.type, wi.status, wi.title] for wi in items],
        [16, 14, 14, 60],
    )


# =============================================================================
# CLI Commands
# =============================================================================


def cmd_session_check(client: Polarion, args: argparse.Namespace) -> None:
    """Check whether the session is logged in."""
    json_output({"logged_in": client.is_logged_in(), "username": client.username})


def cmd_wi_get(client: Polarion, args: argparse.Namespace) -> None:
    """Get a work item by id."""
    json_output(client.get_work_item_by_id(args.project_id, args.work_item_id))


def cmd_wi_query(client: Polarion, args: argparse.Namespace) -> None:
    """Query work items."""
    work_items_output(client.query_work_items(args.query, args.sort or "", args.fields))


def cmd_wi_sql(client: Polarion, args: argparse.Namespace) -> None:
    """Query work items by SQL."""
    work_items_output(client.query_work_items_by_sql(args.sql, args.fields))


def cmd_wi_count(client: Polarion, args: argparse.Namespace) -> None:
    """Count work items."""
    json_output({"query": args.query, "count": client.get_work_items_count(args.query)})


def cmd_wi_baseline(client: Polarion, args: argparse.Namespace) -> None:
    """Query work items in a baseline."""
    work_items_output(
        client.query_work_items_in_baseline(args.revision, args.query, args.sort or "", args.fields)
    )


def cmd_wi_baseline_sql(client: Polarion, args: argparse.Namespace) -> None:
    """Query work items in a baseline by SQL."""
    work_items_output(client.query_work_items_in_baseline_by_sql(args.revision, args.sql, args.fields))


def cmd_wi_custom_field(client: Polarion, args: argparse.Namespace) -> None:
    """Get a custom field value."""
    json_output(client.get_custom_field(args.work_item_uri, args.key))


def cmd_baselines(client: Polarion, args: argparse.Namespace) -> None:
    """Query baselines."""
    list_output(client.query_baselines(args.query, args.sort or ""))


def cmd_revisions(client: Polarion, args: argparse.Namespace) -> None:
    """Query revisions."""
    list_output(client.query_revisions(args.query, args.fields, args.sort or ""))


def cmd_testrun_get(client: Polarion, args: argparse.Namespace) -> None:
    """Get a test run by id."""
    json_output(client.get_test_run_by_id(args.project_id, args.test_run_id))


def cmd_testrun_query(client: Polarion, args: argparse.Namespace) -> None:
    """Query test runs."""
    list_output(client.query_test_runs(args.query, args.sort or "", args.fields))


def cmd_records_query(client: Polarion, args: argparse.Namespace) -> None:
    """Search test records."""
    list_output(client.query_test_records(args.query, args.sort or "", args.limit or 0))


def cmd_records_case(client: Polarion, args: argparse.Namespace) -> None:
    """Get the records of one test case in a run."""
    list_output(client.get_test_case_records(args.test_run_uri, args.test_case_uri))


# =============================================================================
# Parser
# =============================================================================


def _add_fields(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--field",
        "-f",
        dest="fields",
        action="append",
        help="Field to load (repeatable)",
    )


def _add_sort(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--sort", "-s", help="Field to sort by")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="polarion-ws",
        description="Query Polarion work items, baselines and test runs over SOAP",
    )
    parser.add_argument("--url", help="Polarion base URL (or POLARION_URL env var)")
    parser.add_argument("--user", help="Username (or POLARION_USERNAME env var)")
    parser.add_argument("--token", help="Personal access token (or POLARION_TOKEN env var)")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (or POLARION_TIMEOUT)")
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip TLS certificate verification",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests to stderr")

    subparsers = parser.add_subparsers(dest="command")

    # ========== Session ==========
    session = subparsers.add_parser("session", help="Session commands")
    session.set_defaults(func=lambda _c, _a: session.print_help())
    session_sub = session.add_subparsers(dest="subcommand")

    s_check = session_sub.add_parser("check", help="Check the session is logged in")
    s_check.set_defaults(func=cmd_session_check)

    # ========== Work items ==========
    wi = subparsers.add_parser("wi", help="Query work items")
    wi.set_defaults(func=lambda _c, _a: wi.print_help())
    wi_sub = wi.add_subparsers(dest="subcommand")

    w_get = wi_sub.add_parser("get", help="Get a work item by id")
    w_get.add_argument("project_id", help="Project ID")
    w_get.add_argument("work_item_id", help="Work item ID")
    w_get.set_defaults(func=cmd_wi_get)

    w_query = wi_sub.add_parser("query", help="Query work items (Lucene)")
    w_query.add_argument("query", help="Lucene query")
    _add_sort(w_query)
    _add_fields(w_query)
    w_query.set_defaults(func=cmd_wi_query)

    w_sql = wi_sub.add_parser("sql", help="Query work items by SQL")
    w_sql.add_argument("sql", help="SQL query")
    _add_fields(w_sql)
    w_sql.set_defaults(func=cmd_wi_sql)

    w_count = wi_sub.add_parser("count", help="Count work items")
    w_count.add_argument("query", help="Lucene query")
    w_count.set_defaults(func=cmd_wi_count)

    w_baseline = wi_sub.add_parser("baseline", help="Query work items in a baseline")
    w_baseline.add_argument("revision", help="Baseline revision")
    w_baseline.add_argument("query", help="Lucene query")
    _add_sort(w_baseline)
    _add_fields(w_baseline)
    w_baseline.set_defaults(func=cmd_wi_baseline)

    w_baseline_sql = wi_sub.add_parser("baseline-sql", help="Query work items in a baseline by SQL")
    w_baseline_sql.add_argument("revision", help="Baseline revision")
    w_baseline_sql.add_argument("sql", help="SQL query")
    _add_fields(w_baseline_sql)
    w_baseline_sql.set_defaults(func=cmd_wi_baseline_sql)

    w_custom = wi_sub.add_parser("custom-field", help="Get a custom field value")
    w_custom.add_argument("work_item_uri", help="Work item URI")
    w_custom.add_argument("key", help="Custom field id")
    w_custom.set_defaults(func=cmd_wi_custom_field)

    # ========== Baselines / Revisions ==========
    baselines = subparsers.add_parser("baselines", help="Query baselines")
    baselines.add_argument("query", help="Lucene query")
    _add_sort(baselines)
    baselines.set_defaults(func=cmd_baselines)

    revisions = subparsers.add_parser("revisions", help="Query revisions")
    revisions.add_argument("query", help="Lucene query")
    _add_sort(revisions)
    _add_fields(revisions)
    revisions.set_defaults(func=cmd_revisions)

    # ========== Test runs ==========
    testrun = subparsers.add_parser("testrun", help="Query test runs")
    testrun.set_defaults(func=lambda _c, _a: testrun.print_help())
    testrun_sub = testrun.add_subparsers(dest="subcommand")

    t_get = testrun_sub.add_parser("get", help="Get a test run by id")
    t_get.add_argument("project_id", help="Project ID")
    t_get.add_argument("test_run_id", help="Test run ID")
    t_get.set_defaults(func=cmd_testrun_get)

    t_query = testrun_sub.add_parser("query", help="Query test runs")
    t_query.add_argument("query", help="Lucene query")
    _add_sort(t_query)
    _add_fields(t_query)
    t_query.set_defaults(func=cmd_testrun_query)

    # ========== Test records ==========
    records = subparsers.add_parser("records", help="Query test records")
    records.set_defaults(func=lambda _c, _a: records.print_help())
    records_sub = records.add_subparsers(dest="subcommand")

    r_query = records_sub.add_parser("query", help="Search test records")
    r_query.add_argument("query", help="Lucene query (must name the project)")
    _add_sort(r_query)
    r_query.add_argument("--limit", "-l", type=int, help="Max records")
    r_query.set_defaults(func=cmd_records_query)

    r_case = records_sub.add_parser("case", help="Records of a test case in a run")
    r_case.add_argument("test_run_uri", help="Test run URI")
    r_case.add_argument("test_case_uri", help="Test case URI")
    r_case.set_defaults(func=cmd_records_case)

    return parser


def create_client(args: argparse.Namespace) -> Polarion:
    """Log in using flags, falling back to POLARION_* env vars."""
    return Polarion.from_env(
        base_url=args.url,
        username=args.user,
        access_token=args.token,
        timeout=args.timeout,
        verify_tls=False if args.insecure else None,
    )


def main(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    # A command group without its subcommand only prints help, no login
    if getattr(args, "subcommand", "") is None:
        args.func(None, args)
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        client = create_client(args)
    except PolarionError as e:
        error_output(e)
        return

    with client:
        try:
            args.func(client, args)
        except PolarionError as e:
            error_output(e)


if __name__ == "__main__":
    main()
