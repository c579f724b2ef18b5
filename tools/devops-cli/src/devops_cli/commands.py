"""Work item pipelines: search, hydrate, then project, aggregate or build trees.

These functions return data. Printing is left to the CLI handlers, except
for the per-id notices ``update_work_items`` writes to stderr.
"""

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

from . import fields as f
from .client import JSON_PATCH
from .errors import ApiError, DevOpsError, ValidationError
from .hydrate import fetch_map, iter_items
from .patch import (
    USER_STORY,
    build_create_ops,
    build_field_ops,
    find_relation_index,
    relation_op,
    remove_relation_op,
)
from .project import DisplayRow, GroupAggregate, aggregate, post_filter, project_rows
from .resolve import CHILD_EDGES, ROOT_EDGES, apply_cap, resolve_ids
from .tree import TreeNode, build_tree
from .wiql import ORG_SCOPE, PROJECT_SCOPE, FilterSet, build_query, parse_positive_id

log = logging.getLogger(__name__)

LIST_FIELDS = ",".join([f.ID, f.TITLE, f.STATE, f.TYPE, f.PRIORITY])
QUERY_FIELDS = ",".join([f.ID, f.TITLE, f.STATE, f.TYPE])
ORG_LIST_FIELDS = ",".join([f.ID, f.TITLE, f.STATE, f.TYPE, f.PROJECT, f.PRIORITY])
STATUS_FIELDS = ",".join([f.TYPE, f.PROJECT, f.AREA_PATH, f.ITERATION_PATH, f.CHANGED_DATE])

COMMENTS_API_VERSION = "7.1-preview.4"


def list_work_items(client, filters: FilterSet) -> List[DisplayRow]:
    """Project-scoped list.

    With a parent filter the ids come from a link query, state/type are
    applied after hydration and ``top`` caps the filtered rows. Otherwise
    ``top`` caps the ids before hydration.
    """
    query = build_query(filters, PROJECT_SCOPE)
    if filters.parent is not None:
        ids = resolve_ids(client, query, edges=CHILD_EDGES)
    else:
        ids = resolve_ids(client, query)
    if not ids:
        return []

    if filters.parent is None:
        return project_rows(iter_items(client, apply_cap(ids, filters.top), LIST_FIELDS))

    rows = project_rows(iter_items(client, ids, LIST_FIELDS))
    log.debug("filtering %d child row(s) of #%s", len(rows), filters.parent)
    rows = post_filter(rows, state=filters.state, item_type=filters.item_type)
    return apply_cap(rows, filters.top)


def query_work_items(client, wiql: str) -> List[DisplayRow]:
    """Run user-supplied WIQL; link queries keep only their top-level targets."""
    ids = resolve_ids(client, wiql, edges=ROOT_EDGES)
    if not ids:
        return []
    return project_rows(iter_items(client, ids, QUERY_FIELDS))


def org_list_work_items(client, filters: FilterSet) -> List[DisplayRow]:
    ids = resolve_ids(client, build_query(filters, ORG_SCOPE, ordered=True))
    if not ids:
        return []
    return project_rows(iter_items(client, apply_cap(ids, filters.top), ORG_LIST_FIELDS))


@dataclass
class StatusReport:
    groups: List[GroupAggregate] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    item_count: int = 0
    since: int = 0


def org_status(client, filters: FilterSet, by: str = "project") -> StatusReport:
    since = filters.effective_since()
    ids = resolve_ids(client, build_query(filters, ORG_SCOPE, ordered=False))
    if not ids:
        return StatusReport(since=since)
    groups, types = aggregate(iter_items(client, ids, STATUS_FIELDS), by=by)
    return StatusReport(groups=groups, types=types, item_count=len(ids), since=since)


def get_work_item(client, item_id: Any) -> Dict[str, Any]:
    return client.execute(f"/wit/workitems/{item_id}?$expand=relations")


def work_item_tree(client, item_id: Any, max_depth: Optional[int] = None) -> TreeNode:
    root = get_work_item(client, item_id)
    return build_tree(client, root, max_depth=max_depth)


def relation_titles(client, item: Dict[str, Any]) -> List[Tuple[str, int, str]]:
    """(label, id, title) for every relation with a known link type."""
    relations = [r for r in item.get("relations") or [] if r.get("rel") in f.LINK_TYPE_LABELS]
    if not relations:
        return []
    ids = [i for i in (f.id_from_url(r.get("url")) for r in relations) if i > 0]
    titles: Dict[int, str] = {}
    if ids:
        for rel_id, rel_item in fetch_map(client, list(dict.fromkeys(ids)), fields=f.TITLE).items():
            titles[rel_id] = f.text(f.item_fields(rel_item), f.TITLE)
    out = []
    for r in relations:
        rel_id = f.id_from_url(r.get("url"))
        out.append((f.LINK_TYPE_LABELS[r["rel"]], rel_id, titles.get(rel_id, "")))
    return out


def collapse_html(html: str) -> str:
    return f.strip_html(html).replace("\n", "\\n")


def show_pairs(item: Dict[str, Any]) -> List[Tuple[str, str]]:
    """Key/value lines for ``wi show``; optional fields only when present."""
    bag = f.item_fields(item)
    pairs = [
        ("id", str(item.get("id", ""))),
        ("project", f.text(bag, f.PROJECT)),
        ("type", f.text(bag, f.TYPE)),
        ("state", f.text(bag, f.STATE)),
        ("title", f.text(bag, f.TITLE)),
    ]
    optional = [
        ("priority", str(f.number(bag, f.PRIORITY)) if f.number(bag, f.PRIORITY) else ""),
        ("areaPath", f.text(bag, f.AREA_PATH)),
        ("iterationPath", f.text(bag, f.ITERATION_PATH)),
        ("assigned", f.text(bag, f.ASSIGNED_TO)),
        ("createdBy", f.text(bag, f.CREATED_BY)),
        ("created", f.date_text(bag, f.CREATED_DATE)),
        ("changed", f.date_text(bag, f.CHANGED_DATE)),
        ("comments", str(f.number(bag, f.COMMENT_COUNT)) if f.number(bag, f.COMMENT_COUNT) else ""),
        ("tags", f.text(bag, f.TAGS)),
        ("description", collapse_html(f.text(bag, f.DESCRIPTION))),
        ("acceptanceCriteria", collapse_html(f.text(bag, f.ACCEPTANCE_CRITERIA))),
    ]
    pairs.extend((k, v) for k, v in optional if v)
    return pairs


def list_comments(client, item_id: Any) -> List[Dict[str, Any]]:
    result = client.execute(
        f"/wit/workitems/{item_id}/comments", api_version=COMMENTS_API_VERSION
    )
    return result.get("comments") or []


def add_comment(client, item_id: Any, text: str) -> Dict[str, Any]:
    return client.execute(
        f"/wit/workitems/{item_id}/comments",
        "POST",
        {"text": text},
        api_version=COMMENTS_API_VERSION,
    )


def create_work_item(client, args) -> Dict[str, Any]:
    if args.type == USER_STORY and not args.acceptance_criteria:
        raise ValidationError("--acceptance-criteria is required for User Story.")
    ops = build_create_ops(client.config, args)
    return client.execute(f"/wit/workitems/${quote(args.type, safe='')}", "POST", ops, JSON_PATCH)


@dataclass
class UpdateOutcome:
    results: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def split_ids(id_arg: str) -> List[str]:
    return [s.strip() for s in id_arg.split(",") if s.strip()]


def update_work_items(client, id_arg: str, args, on_updated=None) -> UpdateOutcome:
    """Apply the same update to every id in ``id_arg``.

    Input is validated up front. A failure on one id is reported and
    recorded, and the remaining ids are still attempted. Any non-2xx
    response (``ApiError``) stops the whole run.
    """
    field_ops = build_field_ops(args)
    block = getattr(args, "block", None)
    unblock = getattr(args, "unblock", None)
    if not field_ops and not block and not unblock:
        raise ValidationError(
            "No update options specified. Use --state, --title, --assign, --tags, --description, "
            "--acceptance-criteria, --area-path, --iteration, --block, or --unblock."
        )
    block_id = parse_positive_id(block, "block") if block else None
    unblock_id = parse_positive_id(unblock, "unblock") if unblock else None

    outcome = UpdateOutcome()
    for item_id in split_ids(id_arg):
        try:
            ops = list(field_ops)
            if block_id is not None:
                ops.append(relation_op(client.config, f.DEPENDENCY_FORWARD, block_id))
            if unblock_id is not None:
                current = get_work_item(client, item_id)
                index = find_relation_index(current, f.DEPENDENCY_FORWARD, unblock_id)
                if index is not None:
                    ops.append(remove_relation_op(index))
                else:
                    print(f"Error: No dependency link to #{unblock_id} found.", file=sys.stderr)
            if not ops:
                continue
            item = client.execute(f"/wit/workitems/{item_id}", "PATCH", ops, JSON_PATCH)
        except ApiError:
            raise
        except DevOpsError as e:
            outcome.errors.append(f"#{item_id}: {e}")
            print(f"Error updating #{item_id}: {e}", file=sys.stderr)
            continue
        outcome.results.append(item)
        if on_updated is not None:
            on_updated(item)
    return outcome
