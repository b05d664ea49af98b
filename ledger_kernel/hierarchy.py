"""
Ledger Kernel — Hierarchy Utilities

Pure dict-based parent-pointer analysis. No external dependencies.
Every traversal is iterative and tracks visited ids, so self references
and manager cycles can never loop.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set, Tuple

from .domain_types import Position, TreeNode


# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------

def build_children_index(
    positions: Sequence[Position],
) -> Dict[Optional[str], List[Position]]:
    """manager_id -> [direct reports], each list in source order."""
    index: Dict[Optional[str], List[Position]] = {}
    for p in positions:
        index.setdefault(p.manager_id, []).append(p)
    return index


def count_direct_reports(positions: Sequence[Position]) -> Dict[str, int]:
    """position id -> number of positions whose manager_id is that id."""
    counts = {p.id: 0 for p in positions}
    for p in positions:
        if p.manager_id in counts:
            counts[p.manager_id] += 1
    return counts


# ---------------------------------------------------------------------------
# Forest
# ---------------------------------------------------------------------------

def build_forest(
    positions: Sequence[Position], promote_orphans: bool = False,
) -> List[TreeNode]:
    """
    Derive the forest from the flat list.

    Roots are positions with no manager. Children keep their source order.
    A position whose manager id does not exist is unreachable and left out,
    unless *promote_orphans* is set, in which case it becomes a root.
    Positions caught in a cycle are never reachable from a root.
    """
    ids = {p.id for p in positions}
    index = build_children_index(positions)

    roots = [
        p for p in positions
        if p.manager_id is None
        or (promote_orphans and p.manager_id not in ids)
    ]

    forest: List[TreeNode] = []
    visited: Set[str] = set()
    stack: List[TreeNode] = []

    for root in roots:
        if root.id in visited:
            continue
        visited.add(root.id)
        node = TreeNode(position=root, depth=0)
        forest.append(node)
        stack.append(node)

    while stack:
        node = stack.pop()
        for child in index.get(node.position.id, []):
            if child.id in visited:
                continue
            visited.add(child.id)
            child_node = TreeNode(position=child, depth=node.depth + 1)
            node.children.append(child_node)
            stack.append(child_node)

    return forest


def flatten_forest(forest: Sequence[TreeNode]) -> List[Position]:
    """Pre-order walk back to a flat list of positions."""
    result: List[Position] = []
    stack: List[TreeNode] = list(reversed(forest))
    while stack:
        node = stack.pop()
        result.append(node.position)
        stack.extend(reversed(node.children))
    return result


def find_unreachable(positions: Sequence[Position]) -> List[str]:
    """Ids that build_forest leaves out: dangling, self or cyclic managers."""
    reachable = {p.id for p in flatten_forest(build_forest(positions))}
    return [p.id for p in positions if p.id not in reachable]


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------

def management_chain(
    positions: Sequence[Position], position_id: str,
) -> Tuple[List[str], bool]:
    """
    Walk manager pointers upward from *position_id*.

    Returns ``(chain, cyclic)`` where chain starts with position_id and
    cyclic is True if the walk revisited an id.
    """
    by_id = {p.id: p for p in positions}
    chain: List[str] = []
    seen: Set[str] = set()
    current: Optional[str] = position_id

    while current is not None and current in by_id:
        if current in seen:
            return chain, True
        seen.add(current)
        chain.append(current)
        current = by_id[current].manager_id

    return chain, False


def would_create_cycle(
    positions: Sequence[Position], position_id: str, manager_id: Optional[str],
) -> bool:
    """
    True if setting position_id's manager to manager_id closes a loop,
    i.e. position_id already sits in manager_id's management chain.
    """
    if manager_id is None:
        return False
    if manager_id == position_id:
        return True
    chain, cyclic = management_chain(positions, manager_id)
    return cyclic or position_id in chain
