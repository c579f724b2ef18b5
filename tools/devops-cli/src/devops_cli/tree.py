"""Work item hierarchy trees built from Hierarchy-Forward relations."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

from . import fields as f
from .hydrate import fetch_map

log = logging.getLogger(__name__)


@dataclass
class TreeNode:
    id: int
    type: str
    state: str
    title: str
    children: List["TreeNode"] = field(default_factory=list)

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "TreeNode":
        bag = f.item_fields(item)
        return cls(
            id=item["id"],
            type=f.text(bag, f.TYPE),
            state=f.text(bag, f.STATE),
            title=f.text(bag, f.TITLE),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "state": self.state,
            "title": self.title,
            "children": [c.to_dict() for c in self.children],
        }


def child_ids(item: Dict[str, Any]) -> List[int]:
    return f.relation_ids(item.get("relations"), f.HIERARCHY_FORWARD)


def build_tree(
    client,
    root: Dict[str, Any],
    max_depth: Optional[int] = None,
    visited: Optional[Set[int]] = None,
) -> TreeNode:
    """Build the tree under ``root``, which must carry its relations.

    Depth-first, children in relation order. Each node's children are fetched
    as one batch when the node is expanded. An id already placed in the tree
    is skipped, so cycles terminate and a node reachable along two paths
    appears once, under the path found first. Nodes at ``max_depth`` are kept
    but not expanded.
    """
    if visited is None:
        visited = set()

    root_node = TreeNode.from_item(root)
    visited.add(root_node.id)
    # (item, depth, parent) frames waiting to be placed in the tree
    pending: List[Tuple[Dict[str, Any], int, TreeNode]] = []

    def expand_node(item: Dict[str, Any], depth: int, node: TreeNode) -> None:
        if max_depth is not None and depth >= max_depth:
            return
        ids = child_ids(item)
        if not ids:
            return
        log.debug("expanding #%s at depth %d: %d child link(s)", node.id, depth, len(ids))
        batch = fetch_map(client, ids, expand="relations")
        # reversed so the first child is popped first
        for cid in reversed(ids):
            child = batch.get(cid)
            if child is not None:
                pending.append((child, depth + 1, node))

    expand_node(root, 0, root_node)
    while pending:
        item, depth, parent = pending.pop()
        if item["id"] in visited:
            log.debug("skipping #%s: already in tree", item["id"])
            continue
        visited.add(item["id"])
        node = TreeNode.from_item(item)
        parent.children.append(node)
        expand_node(item, depth, node)

    return root_node


def walk(node: TreeNode, depth: int = 0) -> Iterator[Tuple[int, TreeNode]]:
    """Pre-order (depth, node) pairs."""
    yield depth, node
    for child in node.children:
        yield from walk(child, depth + 1)


def render_lines(node: TreeNode) -> List[str]:
    return [
        "  " * depth + f"{n.id}\t{n.type}\t{n.state}\t{n.title}"
        for depth, n in walk(node)
    ]
