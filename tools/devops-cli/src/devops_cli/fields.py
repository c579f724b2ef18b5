"""Field names, typed accessors for work item field bags, and relation helpers.

Field bags come straight from the API and are never assumed complete, so
every accessor returns a fixed default when the field is absent.
"""

import re
from typing import Any, Dict, Iterable, List, Optional

ID = "System.Id"
TITLE = "System.Title"
STATE = "System.State"
TYPE = "System.WorkItemType"
PROJECT = "System.TeamProject"
AREA_PATH = "System.AreaPath"
ITERATION_PATH = "System.IterationPath"
ASSIGNED_TO = "System.AssignedTo"
CREATED_BY = "System.CreatedBy"
CREATED_DATE = "System.CreatedDate"
CHANGED_DATE = "System.ChangedDate"
TAGS = "System.Tags"
DESCRIPTION = "System.Description"
COMMENT_COUNT = "System.CommentCount"
PRIORITY = "Microsoft.VSTS.Common.Priority"
ACCEPTANCE_CRITERIA = "Microsoft.VSTS.Common.AcceptanceCriteria"

HIERARCHY_FORWARD = "System.LinkTypes.Hierarchy-Forward"
HIERARCHY_REVERSE = "System.LinkTypes.Hierarchy-Reverse"
RELATED = "System.LinkTypes.Related"
DEPENDENCY_FORWARD = "System.LinkTypes.Dependency-Forward"
DEPENDENCY_REVERSE = "System.LinkTypes.Dependency-Reverse"

LINK_TYPE_LABELS = {
    HIERARCHY_FORWARD: "Child",
    HIERARCHY_REVERSE: "Parent",
    RELATED: "Related",
    DEPENDENCY_FORWARD: "Successor",
    DEPENDENCY_REVERSE: "Predecessor",
}

FieldBag = Dict[str, Any]

_WORK_ITEM_URL = re.compile(r"workItems/(\d+)$")


def display_name(identity: Any) -> str:
    """Identity references are objects; older payloads use plain strings."""
    if isinstance(identity, str):
        return identity
    if isinstance(identity, dict):
        return str(identity.get("displayName") or "")
    return ""


def text(fields: FieldBag, name: str, default: str = "") -> str:
    value = fields.get(name)
    if value is None:
        return default
    if isinstance(value, dict):
        return display_name(value)
    return str(value)


def number(fields: FieldBag, name: str, default: int = 0) -> int:
    value = fields.get(name)
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def date_text(fields: FieldBag, name: str) -> str:
    """Date portion (YYYY-MM-DD) of an ISO-8601 field, or ''."""
    value = fields.get(name)
    if not isinstance(value, str):
        return ""
    return value[:10]


def item_fields(item: Dict[str, Any]) -> FieldBag:
    return item.get("fields") or {}


def id_from_url(url: Optional[str]) -> int:
    """Work item id at the end of a relation URL; 0 when the URL does not match."""
    match = _WORK_ITEM_URL.search(url or "")
    return int(match.group(1)) if match else 0


def relation_ids(relations: Optional[Iterable[Dict[str, Any]]], rel: str) -> List[int]:
    if not relations:
        return []
    ids = [id_from_url(r.get("url")) for r in relations if r.get("rel") == rel]
    return [i for i in ids if i > 0]


def strip_html(html: str) -> str:
    s = re.sub(r"<br\s*/?>", "\n", html, flags=re.IGNORECASE)
    s = re.sub(r"</?(p|div|li|ul|ol|h[1-6])[^>]*>", "\n", s, flags=re.IGNORECASE)
    s = re.sub(r"<[^>]+>", "", s)
    for entity, char in (
        ("&amp;", "&"),
        ("&lt;", "<"),
        ("&gt;", ">"),
        ("&quot;", '"'),
        ("&#39;", "'"),
        ("&nbsp;", " "),
    ):
        s = s.replace(entity, char)
    s = re.sub(r"\n{3,}", "\n\n", s)
    return s.strip()
