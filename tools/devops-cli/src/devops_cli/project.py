"""Project hydrated work items into display rows and status groups."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from . import fields as f

GROUP_BY_FIELDS = {
    "project": f.PROJECT,
    "area": f.AREA_PATH,
    "iteration": f.ITERATION_PATH,
}


@dataclass
class DisplayRow:
    id: int
    type: str
    state: str
    priority: int
    title: str
    project: str = ""

    def as_dict(self, columns: Sequence[str]) -> Dict[str, Any]:
        return {c: getattr(self, c) for c in columns}


def to_row(item: Dict[str, Any]) -> DisplayRow:
    bag = f.item_fields(item)
    return DisplayRow(
        id=f.number(bag, f.ID, item.get("id", 0)),
        type=f.text(bag, f.TYPE),
        state=f.text(bag, f.STATE),
        priority=f.number(bag, f.PRIORITY, 0),
        title=f.text(bag, f.TITLE),
        project=f.text(bag, f.PROJECT),
    )


def project_rows(items: Iterable[Dict[str, Any]]) -> List[DisplayRow]:
    return [to_row(item) for item in items]


def post_filter(rows: Iterable[DisplayRow], state: Optional[str] = None, item_type: Optional[str] = None) -> List[DisplayRow]:
    """Exact-match state/type filters for results the query could not filter."""
    out = list(rows)
    if state:
        out = [r for r in out if r.state == state]
    if item_type:
        out = [r for r in out if r.type == item_type]
    return out


@dataclass
class GroupAggregate:
    group: str
    counts: Dict[str, int] = field(default_factory=dict)
    total: int = 0
    newest: str = ""

    def add(self, item_type: str, changed: str) -> None:
        self.counts[item_type] = self.counts.get(item_type, 0) + 1
        self.total += 1
        # ISO dates compare chronologically as strings
        if changed > self.newest:
            self.newest = changed

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def group_key(bag: f.FieldBag, by: str = "project") -> str:
    return f.text(bag, GROUP_BY_FIELDS.get(by, f.PROJECT))


def aggregate(items: Iterable[Dict[str, Any]], by: str = "project") -> Tuple[List[GroupAggregate], List[str]]:
    """Fold items into per-group aggregates.

    Returns the groups sorted by key and every type name seen, sorted.
    """
    groups: Dict[str, GroupAggregate] = {}
    types = set()
    for item in items:
        bag = f.item_fields(item)
        key = group_key(bag, by)
        item_type = f.text(bag, f.TYPE)
        types.add(item_type)
        if key not in groups:
            groups[key] = GroupAggregate(group=key)
        groups[key].add(item_type, f.date_text(bag, f.CHANGED_DATE))
    return [groups[k] for k in sorted(groups)], sorted(types)
