"""Flattened-row <-> tree conversion for the hierarchy layout, plus row edits.

Rows are the pre-order projection of a tree: one ``HierarchyRow`` per node,
``level`` being its depth. Every edit returns a new row list; an edit that
would break the row invariants returns the input unchanged.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

try:
    from .content_codec import decode_hierarchy, encode_hierarchy
    from .models import HierarchyNode, HierarchyRow
except Exception:
    from content_codec import decode_hierarchy, encode_hierarchy
    from models import HierarchyNode, HierarchyRow

logger = logging.getLogger("deckstudio")

NEW_NODE_NAME = "New node"
NEW_ROOT_NAME = "Root"


def flatten(root: Optional[HierarchyNode]) -> List[HierarchyRow]:
    """Pre-order walk of ``root``; children are visited in list order."""
    if root is None:
        return []
    rows: List[HierarchyRow] = []
    stack = [(root, 0)]
    while stack:
        node, level = stack.pop()
        rows.append(HierarchyRow(name=node.name, level=level))
        for child in reversed(node.children):
            stack.append((child, level + 1))
    return rows


def normalize_rows(rows: Sequence[HierarchyRow]) -> List[HierarchyRow]:
    """Bring an arbitrary row list back to a single-rooted, gap-free shape.

    - rows with a blank name are dropped together with the deeper rows that
      immediately follow them;
    - the first kept row becomes the root (level 0);
    - any later row is clamped to ``1 <= level <= previous level + 1``, so
      extra level-0 rows are attached under the root and level jumps shrink
      to a single step.
    """
    out: List[HierarchyRow] = []
    skip_deeper_than: Optional[int] = None
    for row in rows:
        if skip_deeper_than is not None:
            if row.level > skip_deeper_than:
                continue
            skip_deeper_than = None
        if not row.name.strip():
            skip_deeper_than = row.level
            continue
        if not out:
            level = 0
        else:
            level = max(1, min(row.level, out[-1].level + 1))
        if level != row.level:
            logger.debug("Hierarchy row %r moved from level %s to %s", row.name, row.level, level)
        out.append(HierarchyRow(name=row.name, level=level))
    return out


def unflatten(rows: Sequence[HierarchyRow]) -> Optional[HierarchyNode]:
    """Rebuild the tree from rows using a stack of open ancestors.

    Returns ``None`` when no usable row remains.
    """
    rows = normalize_rows(rows)
    if not rows:
        return None
    root = HierarchyNode(name=rows[0].name)
    stack = [(root, 0)]
    for row in rows[1:]:
        while stack and stack[-1][1] >= row.level:
            stack.pop()
        node = HierarchyNode(name=row.name)
        # normalize_rows keeps every later row at level >= 1, so the root stays on the stack
        stack[-1][0].children.append(node)
        stack.append((node, row.level))
    return root


def rows_from_content(content: Sequence[str]) -> List[HierarchyRow]:
    return flatten(decode_hierarchy(content).root)


def rows_to_content(rows: Sequence[HierarchyRow]) -> List[str]:
    return encode_hierarchy(unflatten(rows))


def _in_range(rows: Sequence[HierarchyRow], index: int) -> bool:
    return 0 <= index < len(rows)


def rename(rows: Sequence[HierarchyRow], index: int, name: str) -> List[HierarchyRow]:
    rows = list(rows)
    if not _in_range(rows, index) or not (name or "").strip():
        return rows
    rows[index] = HierarchyRow(name=name, level=rows[index].level)
    return rows


def indent(rows: Sequence[HierarchyRow], index: int) -> List[HierarchyRow]:
    """Push one row a level deeper. The first row and rows already one level
    below their predecessor stay put."""
    rows = list(rows)
    if index <= 0 or index >= len(rows):
        return rows
    row = rows[index]
    if row.level > rows[index - 1].level:
        return rows
    rows[index] = HierarchyRow(name=row.name, level=row.level + 1)
    return rows


def outdent(rows: Sequence[HierarchyRow], index: int) -> List[HierarchyRow]:
    """Pull one row a level up.

    Level-0 rows cannot move, and a level-1 row cannot become a second root.
    Deeper rows that follow are re-clamped so the list stays gap-free.
    """
    rows = list(rows)
    if not _in_range(rows, index):
        return rows
    row = rows[index]
    if row.level == 0 or (index > 0 and row.level == 1):
        return rows
    rows[index] = HierarchyRow(name=row.name, level=row.level - 1)
    return normalize_rows(rows)


def insert_after(rows: Sequence[HierarchyRow], index: int, name: str = NEW_NODE_NAME) -> List[HierarchyRow]:
    """Insert a sibling right after ``index``; after the root it becomes a child."""
    rows = list(rows)
    if not _in_range(rows, index):
        return rows
    level = rows[index].level or 1
    rows.insert(index + 1, HierarchyRow(name=name, level=level))
    return rows


def remove_with_subtree(rows: Sequence[HierarchyRow], index: int) -> List[HierarchyRow]:
    rows = list(rows)
    if not _in_range(rows, index):
        return rows
    end = index + 1
    while end < len(rows) and rows[end].level > rows[index].level:
        end += 1
    return rows[:index] + rows[end:]


def create_root(rows: Sequence[HierarchyRow], name: str = NEW_ROOT_NAME) -> List[HierarchyRow]:
    rows = list(rows)
    if rows:
        return rows
    return [HierarchyRow(name=name, level=0)]
