"""Structural edits on the canonical concept tree.

Every edit returns a new ``MindMapTree``; the input tree is never touched.
Only the nodes on the path from the root to the edited node are rebuilt,
untouched sibling subtrees are shared with the previous tree.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from studymind.model import (
    MAX_DEPTH, ConceptNode, IdGenerator, MindMapTree, NodeStyle, UuidIdGenerator,
)

logger = logging.getLogger(__name__)


class EditStatus(Enum):
    """Outcome of an edit."""
    APPLIED = "applied"
    NOOP = "noop"
    BLOCKED = "blocked"


class EditKind(Enum):
    ADD_CHILD = "add_child"
    RENAME = "rename"
    DELETE = "delete"
    REPOSITION = "reposition"
    STYLE = "style"
    CLEAR_POSITIONS = "clear_positions"


@dataclass(frozen=True)
class EditResult:
    """The tree after an edit plus what happened."""
    tree: MindMapTree
    status: EditStatus
    kind: EditKind
    node_id: Optional[str] = None
    reason: str = ""

    @property
    def changed(self) -> bool:
        return self.status is EditStatus.APPLIED


def _rebuild_path(tree: MindMapTree, node_id: str,
                  transform: Callable[[ConceptNode], ConceptNode]) -> MindMapTree:
    """Replace `node_id` with `transform(node)` and copy its ancestors."""
    path = tree.path_to(node_id)
    updated = transform(tree.get(node_id))
    for depth in range(len(path) - 2, -1, -1):
        ancestor = tree.get(path[depth])
        child_id = path[depth + 1]
        children = tuple(
            updated if child.id == child_id else child
            for child in ancestor.children
        )
        updated = replace(ancestor, children=children)
    return MindMapTree(updated)


class MutationEngine:
    """Applies add/rename/delete/reposition/style edits by node id."""

    def __init__(self, id_generator: Optional[IdGenerator] = None):
        self.id_generator = id_generator or UuidIdGenerator()

    def _fresh_id(self, tree: MindMapTree) -> str:
        node_id = self.id_generator.next()
        while tree.contains(node_id):
            node_id = self.id_generator.next()
        return node_id

    @staticmethod
    def _noop(tree: MindMapTree, kind: EditKind, node_id: Optional[str],
              reason: str) -> EditResult:
        return EditResult(tree, EditStatus.NOOP, kind, node_id, reason)

    def add_child(self, tree: MindMapTree, parent_id: str, text: str) -> EditResult:
        """Append a new leaf as the last child of `parent_id`."""
        concept = (text or "").strip()
        if not concept:
            return self._noop(tree, EditKind.ADD_CHILD, parent_id, "empty text")
        if not tree.contains(parent_id):
            return self._noop(tree, EditKind.ADD_CHILD, parent_id, "node not found")
        if tree.depth_of(parent_id) + 1 >= MAX_DEPTH:
            return EditResult(tree, EditStatus.BLOCKED, EditKind.ADD_CHILD, parent_id,
                              f"mind maps are limited to {MAX_DEPTH} levels")

        child = ConceptNode(id=self._fresh_id(tree), concept=concept)
        new_tree = _rebuild_path(
            tree, parent_id,
            lambda node: replace(node, children=node.children + (child,)),
        )
        return EditResult(new_tree, EditStatus.APPLIED, EditKind.ADD_CHILD, child.id)

    def rename(self, tree: MindMapTree, node_id: str, text: str) -> EditResult:
        """Replace the concept text of `node_id`."""
        concept = (text or "").strip()
        node = tree.get(node_id)
        if node is None:
            return self._noop(tree, EditKind.RENAME, node_id, "node not found")
        if not concept:
            return self._noop(tree, EditKind.RENAME, node_id, "empty text")
        if concept == node.concept:
            return self._noop(tree, EditKind.RENAME, node_id, "unchanged text")

        new_tree = _rebuild_path(tree, node_id, lambda n: replace(n, concept=concept))
        return EditResult(new_tree, EditStatus.APPLIED, EditKind.RENAME, node_id)

    def delete(self, tree: MindMapTree, node_id: str) -> EditResult:
        """Remove `node_id` and its whole subtree. The root is never deleted."""
        if node_id == tree.root_id:
            logger.info("Refused to delete root node %s", node_id)
            return EditResult(tree, EditStatus.BLOCKED, EditKind.DELETE, node_id,
                              "the root node cannot be deleted")
        if not tree.contains(node_id):
            return self._noop(tree, EditKind.DELETE, node_id, "node not found")

        parent_id = tree.parent_of(node_id)
        new_tree = _rebuild_path(
            tree, parent_id,
            lambda node: replace(
                node, children=tuple(c for c in node.children if c.id != node_id)
            ),
        )
        return EditResult(new_tree, EditStatus.APPLIED, EditKind.DELETE, node_id)

    def reposition(self, tree: MindMapTree, node_id: str,
                   x: float, y: float) -> EditResult:
        """Pin `node_id` at a manual world position."""
        node = tree.get(node_id)
        if node is None:
            return self._noop(tree, EditKind.REPOSITION, node_id, "node not found")
        if node.position_x == x and node.position_y == y:
            return self._noop(tree, EditKind.REPOSITION, node_id, "unchanged position")

        new_tree = _rebuild_path(
            tree, node_id, lambda n: replace(n, position_x=float(x), position_y=float(y))
        )
        return EditResult(new_tree, EditStatus.APPLIED, EditKind.REPOSITION, node_id)

    def update_style(self, tree: MindMapTree, node_id: str, *,
                     color: Optional[str] = None,
                     text_color: Optional[str] = None,
                     is_bold: Optional[bool] = None,
                     is_italic: Optional[bool] = None) -> EditResult:
        """Change some style fields of `node_id`; `None` leaves a field as is."""
        node = tree.get(node_id)
        if node is None:
            return self._noop(tree, EditKind.STYLE, node_id, "node not found")

        changes = {}
        if color is not None:
            changes["color"] = color or None
        if text_color is not None:
            changes["text_color"] = text_color or None
        if is_bold is not None:
            changes["is_bold"] = bool(is_bold)
        if is_italic is not None:
            changes["is_italic"] = bool(is_italic)

        style: NodeStyle = replace(node.style, **changes)
        if style == node.style:
            return self._noop(tree, EditKind.STYLE, node_id, "unchanged style")

        new_tree = _rebuild_path(tree, node_id, lambda n: replace(n, style=style))
        return EditResult(new_tree, EditStatus.APPLIED, EditKind.STYLE, node_id)

    def clear_positions(self, tree: MindMapTree) -> EditResult:
        """Drop every manual position so the layout places all nodes."""
        if not any(node.has_manual_position for node in tree.iter_nodes()):
            return self._noop(tree, EditKind.CLEAR_POSITIONS, None, "no manual positions")

        def strip(node: ConceptNode) -> ConceptNode:
            return replace(
                node,
                position_x=None,
                position_y=None,
                children=tuple(strip(child) for child in node.children),
            )

        return EditResult(MindMapTree(strip(tree.root)), EditStatus.APPLIED,
                          EditKind.CLEAR_POSITIONS)
