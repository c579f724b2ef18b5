"""Run a WIQL query and turn the response into a list of work item ids."""

import logging
from typing import Any, Dict, List, Optional, Sequence, TypeVar

log = logging.getLogger(__name__)

ROOT_EDGES = "root"
CHILD_EDGES = "child"

T = TypeVar("T")


def ids_from_response(result: Dict[str, Any], edges: str = ROOT_EDGES) -> List[int]:
    """Extract ids from a flat (``workItems``) or link (``workItemRelations``) response.

    For link responses ``edges`` picks which edges count: ``root`` keeps edges
    without a source (the query's top-level matches), ``child`` keeps edges
    that have one (the linked targets). Targets are deduplicated in first-seen
    order.
    """
    if "workItems" in result:
        return [w["id"] for w in result.get("workItems") or []]
    relations = result.get("workItemRelations") or []
    if edges == CHILD_EDGES:
        targets = [r["target"]["id"] for r in relations if r.get("source") is not None]
    else:
        targets = [r["target"]["id"] for r in relations if r.get("source") is None]
    return list(dict.fromkeys(targets))


def resolve_ids(client, query: str, edges: str = ROOT_EDGES) -> List[int]:
    """One search call per invocation: no retry, no pagination."""
    result = client.execute("/wit/wiql", "POST", {"query": query})
    ids = ids_from_response(result, edges)
    log.debug("query matched %d work item(s)", len(ids))
    return ids


def apply_cap(items: Sequence[T], top: Optional[int]) -> List[T]:
    if top is None:
        return list(items)
    log.debug("capping %d item(s) at %d", len(items), top)
    return list(items[:top])
