#!/usr/bin/env python3
"""
devops-cli - CLI tool for Azure DevOps work items

Environment:
    DEVOPS_CLI_PAT      - Required: Personal Access Token (Work Items R/W)
    DEVOPS_CLI_ORG      - Required: Organization name
    DEVOPS_CLI_PROJECT  - Optional: Default for --project
    AGENTS_ENV_PATH     - Optional: Path to env file (default: ~/AGENTS.env)
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from . import commands
from .client import DevOpsClient
from .config import get_config, get_org_config, load_env
from .errors import DevOpsError
from .output import (
    FORMATS,
    NO_ITEMS,
    format_empty,
    format_json,
    format_pairs,
    format_rows,
    item_count,
    output_format,
)
from .project import GROUP_BY_FIELDS
from .tree import render_lines
from .wiql import FilterSet

LIST_COLUMNS = ["id", "type", "state", "priority", "title"]
QUERY_COLUMNS = ["id", "type", "state", "title"]
ORG_LIST_COLUMNS = ["id", "project", "type", "state", "priority", "title"]

HEADERS = {
    "id": "ID",
    "project": "Project",
    "type": "Type",
    "state": "State",
    "priority": "Pri",
    "title": "Title",
}


def print_work_items(rows, columns: List[str], fmt: str) -> None:
    if fmt == "json":
        print(format_json([r.as_dict(columns) for r in rows]))
        return
    if not rows:
        print(NO_ITEMS)
        return
    table = [[getattr(r, c) for c in columns] for r in rows]
    print(format_rows([HEADERS[c] for c in columns], table, fmt, footer=item_count(len(rows))))


# Command handlers
def cmd_wi_list(client: DevOpsClient, args: argparse.Namespace) -> int:
    """List work items in the project."""
    rows = commands.list_work_items(client, FilterSet.from_args(args))
    print_work_items(rows, LIST_COLUMNS, output_format(args))
    return 0


def cmd_wi_query(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Execute a raw WIQL query."""
    rows = commands.query_work_items(client, args.wiql)
    print_work_items(rows, QUERY_COLUMNS, output_format(args))
    return 0


def cmd_wi_tree(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Show the hierarchy under a work item."""
    tree = commands.work_item_tree(client, args.id, max_depth=args.depth)
    if output_format(args) == "json":
        print(format_json(tree.to_dict()))
    else:
        print("\n".join(render_lines(tree)))
    return 0


def cmd_wi_show(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Show a work item, or its comments."""
    fmt = output_format(args)
    if args.comments:
        comments = commands.list_comments(client, args.id)
        if fmt == "json":
            print(format_json(comments))
        elif not comments:
            print("No comments.")
        else:
            print(format_pairs([
                (
                    "comment",
                    (c.get("createdDate") or "")[:10],
                    (c.get("createdBy") or {}).get("displayName", ""),
                    commands.collapse_html(c.get("text") or ""),
                )
                for c in comments
            ], fmt))
        return 0

    item = commands.get_work_item(client, args.id)
    if fmt == "json":
        print(format_json(item))
        return 0
    lines = list(commands.show_pairs(item))
    lines.extend(("relation", label, rel_id, title) for label, rel_id, title in commands.relation_titles(client, item))
    print(format_pairs(lines, fmt))
    return 0


def cmd_wi_create(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Create a work item."""
    item = commands.create_work_item(client, args)
    if output_format(args) == "json":
        print(format_json(item))
    else:
        print(f"Created #{item.get('id')}: {(item.get('fields') or {}).get('System.Title', '')}")
    return 0


def cmd_wi_update(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Update one or more work items."""
    fmt = output_format(args)

    def _echo(item):
        if fmt != "json":
            fields = item.get("fields") or {}
            print(f"updated\t{item.get('id')}\t{fields.get('System.State', '')}\t{fields.get('System.Title', '')}")

    outcome = commands.update_work_items(client, args.id, args, on_updated=_echo)
    if fmt == "json":
        print(format_json({"results": outcome.results, "errors": outcome.errors}))
    return 1 if outcome.errors else 0


def cmd_wi_comment(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Add a comment to a work item."""
    result = commands.add_comment(client, args.id, args.text)
    if output_format(args) == "json":
        print(format_json(result))
    else:
        author = (result.get("createdBy") or {}).get("displayName", "")
        print(f"comment\t{result.get('id')}\t{args.id}\t{author}")
    return 0


def cmd_org_list(client: DevOpsClient, args: argparse.Namespace) -> int:
    """List work items across all projects."""
    rows = commands.org_list_work_items(client, FilterSet.from_args(args))
    print_work_items(rows, ORG_LIST_COLUMNS, output_format(args))
    return 0


def cmd_org_status(client: DevOpsClient, args: argparse.Namespace) -> int:
    """Org-wide status overview grouped by project, area or iteration."""
    fmt = output_format(args)
    report = commands.org_status(client, FilterSet.from_args(args), by=args.by)
    if not report.item_count:
        print(format_empty(fmt))
        return 0
    if fmt == "json":
        print(format_json([g.as_dict() for g in report.groups]))
        return 0
    headers = ["group"] + report.types + ["total", "newest"]
    rows = [
        [g.group] + [g.counts.get(t, 0) for t in report.types] + [g.total, g.newest]
        for g in report.groups
    ]
    footer = (
        f"{report.item_count} item(s) in {len(report.groups)} group(s)"
        f" (changed within {report.since} days)"
    )
    print(format_rows(headers, rows, fmt, footer=footer))
    return 0


def make_client(args: argparse.Namespace) -> DevOpsClient:
    """Project-scoped client, or org-scoped for org commands.

    ``show`` and ``comment`` fall back to the org scope when no project is set.
    """
    scope = getattr(args, "scope", "project")
    if scope == "org":
        return DevOpsClient(get_org_config())
    if scope == "item" and not (args.project or os.environ.get("DEVOPS_CLI_PROJECT")):
        return DevOpsClient(get_org_config())
    return DevOpsClient(get_config(args.project))


def _add_filters(p: argparse.ArgumentParser, types: bool = True, paths: bool = True) -> None:
    p.add_argument("--state", help="Filter by state (e.g. Active, Closed)")
    if types:
        p.add_argument("--type", help="Filter by work item type (e.g. Bug, Task)")
    p.add_argument("--assigned-to", help='Filter by assigned user ("me" for yourself)')
    if paths:
        p.add_argument("--area-path", help="Filter by area path (UNDER)")
        p.add_argument("--iteration", help="Filter by iteration path (UNDER)")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="devops-cli",
        description="Azure DevOps work items CLI - TSV by default, --json for JSON",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project", help="Azure DevOps project; else DEVOPS_CLI_PROJECT")
    parser.add_argument("--env", help="Path to AGENTS.env (default ~/AGENTS.env)")
    parser.add_argument(
        "--format", "-f",
        choices=FORMATS,
        default="tsv",
        help="Output format (default: tsv)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Work item commands
    wi_parser = subparsers.add_parser("wi", help="Work item commands (project-level)")
    wi_sub = wi_parser.add_subparsers(dest="subcommand")

    # wi list
    wi_list = wi_sub.add_parser("list", help="List work items")
    _add_filters(wi_list)
    wi_list.add_argument("--parent", help="List children of work item")
    wi_list.add_argument("--top", type=int, help="Limit output to first N items")
    wi_list.add_argument("--json", action="store_true", help="Output as JSON array")
    wi_list.set_defaults(func=cmd_wi_list, scope="project")

    # wi show
    wi_show = wi_sub.add_parser("show", help="Show a work item")
    wi_show.add_argument("id", help="Work item ID")
    wi_show.add_argument("--comments", action="store_true", help="Show comment history instead")
    wi_show.add_argument("--json", action="store_true", help="Output raw JSON")
    wi_show.set_defaults(func=cmd_wi_show, scope="item")

    # wi create
    wi_create = wi_sub.add_parser("create", help="Create a work item")
    wi_create.add_argument("--type", required=True, help="Work item type (Bug, User Story, Task, Feature, Epic)")
    wi_create.add_argument("--title", required=True, help="Work item title")
    wi_create.add_argument("--description", required=True, help="Work item description (HTML allowed)")
    wi_create.add_argument("--acceptance-criteria", help="Acceptance criteria (required for User Story)")
    wi_create.add_argument("--parent", help="Parent work item ID")
    wi_create.add_argument("--block", help="Block another work item (set dependency)")
    wi_create.add_argument("--area-path", help="Area path")
    wi_create.add_argument("--iteration", help="Iteration path")
    wi_create.add_argument("--tags", help="Comma-separated tags")
    wi_create.add_argument("--json", action="store_true", help="Output raw JSON")
    wi_create.set_defaults(func=cmd_wi_create, scope="project")

    # wi update
    wi_update = wi_sub.add_parser("update", help="Update work items")
    wi_update.add_argument("id", help="Work item ID, or comma-separated IDs")
    wi_update.add_argument("--state", help="Set state")
    wi_update.add_argument("--title", help="Set title")
    wi_update.add_argument("--assign", help="Set assigned to")
    wi_update.add_argument("--tags", help="Set tags (comma-separated)")
    wi_update.add_argument("--description", help="Set description")
    wi_update.add_argument("--acceptance-criteria", help="Set acceptance criteria")
    wi_update.add_argument("--area-path", help="Set area path")
    wi_update.add_argument("--iteration", help="Set iteration path")
    wi_update.add_argument("--block", help="Add dependency (this blocks given ID)")
    wi_update.add_argument("--unblock", help="Remove dependency to given ID")
    wi_update.add_argument("--json", action="store_true", help="Output raw JSON")
    wi_update.set_defaults(func=cmd_wi_update, scope="project")

    # wi tree
    wi_tree = wi_sub.add_parser("tree", help="Show work item hierarchy")
    wi_tree.add_argument("id", help="Work item ID")
    wi_tree.add_argument("--depth", type=int, help="Limit tree depth")
    wi_tree.add_argument("--json", action="store_true", help="Output as JSON tree")
    wi_tree.set_defaults(func=cmd_wi_tree, scope="project")

    # wi query
    wi_query = wi_sub.add_parser("query", help="Execute a raw WIQL query")
    wi_query.add_argument("wiql", help="Full WIQL query string")
    wi_query.add_argument("--json", action="store_true", help="Output as JSON array")
    wi_query.set_defaults(func=cmd_wi_query, scope="project")

    # wi comment
    wi_comment = wi_sub.add_parser("comment", help="Add a comment to a work item")
    wi_comment.add_argument("id", help="Work item ID")
    wi_comment.add_argument("text", help="Comment text")
    wi_comment.add_argument("--json", action="store_true", help="Output raw JSON")
    wi_comment.set_defaults(func=cmd_wi_comment, scope="item")

    # Organization commands
    org_parser = subparsers.add_parser("org", help="Organization-wide commands (no --project)")
    org_sub = org_parser.add_subparsers(dest="subcommand")

    # org status
    org_status = org_sub.add_parser("status", help="Org-wide work item status overview")
    org_status.add_argument(
        "--by",
        choices=sorted(GROUP_BY_FIELDS),
        default="project",
        help="Group by project, area or iteration (default: project)",
    )
    _add_filters(org_status, types=False, paths=False)
    org_status.add_argument("--since", type=int, help="Changed within N days (default: 90, 0 with --assigned-to)")
    org_status.add_argument("--json", action="store_true", help="Output as JSON")
    org_status.set_defaults(func=cmd_org_status, scope="org")

    # org list
    org_list = org_sub.add_parser("list", help="List work items across all projects")
    _add_filters(org_list)
    org_list.add_argument("--since", type=int, help="Changed within N days (default: 90, 0 with --assigned-to)")
    org_list.add_argument("--top", type=int, help="Limit output to first N items")
    org_list.add_argument("--json", action="store_true", help="Output as JSON array")
    org_list.set_defaults(func=cmd_org_list, scope="org")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    # Check for command
    if not args.command:
        parser.print_help()
        return 1

    # Check for subcommand
    if not hasattr(args, "func"):
        parser.parse_args([args.command, "--help"])
        return 1

    load_env(args.env)

    try:
        client = make_client(args)
        return args.func(client, args)
    except DevOpsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
    except KeyboardInterrupt:
        print("\nOperation cancelled.", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
