"""WIQL query construction.

Filter values are interpolated verbatim, without quote escaping, so the
generated text stays identical to what earlier releases sent. A value that
contains a single quote produces a broken or altered predicate.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from . import fields as f
from .errors import ValidationError

DEFAULT_SINCE = 90
TERMINAL_STATES = ("Closed", "Removed", "Done")

PROJECT_SCOPE = "project"
ORG_SCOPE = "org"


def parse_positive_id(value: Any, label: str) -> int:
    """Parse an id argument strictly; raises before anything is sent."""
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {label} ID "{value}".')
    if parsed <= 0:
        raise ValidationError(f'Invalid {label} ID "{value}".')
    return parsed


@dataclass(frozen=True)
class FilterSet:
    state: Optional[str] = None
    item_type: Optional[str] = None
    assigned_to: Optional[str] = None
    area_path: Optional[str] = None
    iteration: Optional[str] = None
    parent: Optional[int] = None
    since: Optional[int] = None
    top: Optional[int] = None

    @classmethod
    def from_args(cls, args) -> "FilterSet":
        parent = getattr(args, "parent", None)
        return cls(
            state=getattr(args, "state", None) or None,
            item_type=getattr(args, "type", None) or None,
            assigned_to=getattr(args, "assigned_to", None) or None,
            area_path=getattr(args, "area_path", None) or None,
            iteration=getattr(args, "iteration", None) or None,
            parent=parse_positive_id(parent, "parent") if parent is not None else None,
            since=getattr(args, "since", None),
            top=getattr(args, "top", None),
        )

    def effective_since(self) -> int:
        """Lookback in days: explicit value, else 0 with an assignee, else 90."""
        if self.since is not None:
            return self.since
        return 0 if self.assigned_to else DEFAULT_SINCE


def assignee_value(name: str) -> str:
    if name.lower() == "me":
        return "@me"
    return "'" + name + "'"


def _common_predicates(filters: FilterSet) -> List[str]:
    clauses = []
    if filters.item_type:
        clauses.append(f"[{f.TYPE}] = '" + filters.item_type + "'")
    if filters.assigned_to:
        clauses.append(f"[{f.ASSIGNED_TO}] = " + assignee_value(filters.assigned_to))
    if filters.area_path:
        clauses.append(f"[{f.AREA_PATH}] UNDER '" + filters.area_path + "'")
    if filters.iteration:
        clauses.append(f"[{f.ITERATION_PATH}] UNDER '" + filters.iteration + "'")
    return clauses


def project_query(filters: FilterSet) -> str:
    clauses = [f"[{f.PROJECT}] = @project"]
    if filters.state:
        clauses.append(f"[{f.STATE}] = '" + filters.state + "'")
    clauses.extend(_common_predicates(filters))
    return "SELECT [System.Id] FROM WorkItems WHERE " + " AND ".join(clauses)


def org_query(filters: FilterSet, ordered: bool = True) -> str:
    """Cross-project query; ``ordered`` adds priority/changed-date ordering."""
    clauses = [f"[{f.STATE}] <> ''"]
    if filters.state:
        clauses.append(f"[{f.STATE}] = '" + filters.state + "'")
    else:
        excluded = ", ".join(f"'{s}'" for s in TERMINAL_STATES)
        clauses.append(f"[{f.STATE}] NOT IN ({excluded})")
    since = filters.effective_since()
    if since > 0:
        clauses.append(f"[{f.CHANGED_DATE}] >= @Today - {since}")
    clauses.extend(_common_predicates(filters))
    query = "SELECT [System.Id] FROM WorkItems WHERE " + " AND ".join(clauses)
    if ordered:
        query += f" ORDER BY [{f.PRIORITY}] ASC, [{f.CHANGED_DATE}] DESC"
    return query


def link_query(parent_id: int) -> str:
    """Direct hierarchy children of ``parent_id``."""
    return (
        "SELECT [System.Id] FROM WorkItemLinks"
        f" WHERE ([Source].[System.Id] = {parent_id})"
        f" AND ([System.Links.LinkType] = '{f.HIERARCHY_FORWARD}')"
        " MODE (MustContain)"
    )


def build_query(filters: FilterSet, scope: str = PROJECT_SCOPE, ordered: bool = True) -> str:
    """Query for ``filters`` in the given scope.

    A parent filter in project scope selects link mode; its state and type
    filters are not part of the query and must be applied to the results.
    """
    if scope == ORG_SCOPE:
        return org_query(filters, ordered=ordered)
    if filters.parent is not None:
        return link_query(filters.parent)
    return project_query(filters)
