"""JSON Patch documents for creating and updating work items."""

from typing import Any, Dict, List, Optional

from . import fields as f
from .config import OrgConfig
from .wiql import parse_positive_id

PatchOp = Dict[str, Any]

USER_STORY = "User Story"

# (args attribute, field reference) in the order ops are emitted
FIELD_OPTIONS = [
    ("state", f.STATE),
    ("title", f.TITLE),
    ("assign", f.ASSIGNED_TO),
    ("tags", f.TAGS),
    ("description", f.DESCRIPTION),
    ("acceptance_criteria", f.ACCEPTANCE_CRITERIA),
    ("area_path", f.AREA_PATH),
    ("iteration", f.ITERATION_PATH),
]


def normalize_tags(tags: str) -> str:
    return "; ".join(t.strip() for t in tags.split(",") if t.strip())


def field_op(op: str, name: str, value: Any) -> PatchOp:
    if name == f.TAGS:
        value = normalize_tags(value)
    return {"op": op, "path": f"/fields/{name}", "value": value}


def relation_op(config: OrgConfig, rel: str, target_id: int) -> PatchOp:
    return {
        "op": "add",
        "path": "/relations/-",
        "value": {"rel": rel, "url": config.work_item_url(target_id)},
    }


def build_create_ops(config: OrgConfig, args) -> List[PatchOp]:
    """``add`` ops for a new work item. Ids are validated before anything is built."""
    parent_id = parse_positive_id(args.parent, "parent") if getattr(args, "parent", None) else None
    block_id = parse_positive_id(args.block, "block") if getattr(args, "block", None) else None

    ops = [
        field_op("add", f.TITLE, args.title),
        field_op("add", f.DESCRIPTION, args.description),
    ]
    for attr, name in FIELD_OPTIONS:
        if attr in ("state", "title", "assign", "description"):
            continue
        value = getattr(args, attr, None)
        if value:
            ops.append(field_op("add", name, value))
    if parent_id is not None:
        ops.append(relation_op(config, f.HIERARCHY_REVERSE, parent_id))
    if block_id is not None:
        ops.append(relation_op(config, f.DEPENDENCY_FORWARD, block_id))
    return ops


def build_field_ops(args) -> List[PatchOp]:
    """``replace`` ops for every field option given on an update."""
    ops = []
    for attr, name in FIELD_OPTIONS:
        value = getattr(args, attr, None)
        if value:
            ops.append(field_op("replace", name, value))
    return ops


def find_relation_index(item: Dict[str, Any], rel: str, target_id: int) -> Optional[int]:
    suffix = f"/workItems/{target_id}"
    for index, relation in enumerate(item.get("relations") or []):
        if relation.get("rel") == rel and (relation.get("url") or "").endswith(suffix):
            return index
    return None


def remove_relation_op(index: int) -> PatchOp:
    return {"op": "remove", "path": f"/relations/{index}"}
