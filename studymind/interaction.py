"""Hover, selection and focus state plus highlight/dimming rules."""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import FrozenSet, List, Optional

from studymind.layout import LayoutResult, PositionedNode
from studymind.model import MindMapTree
from studymind.mutation import EditKind, EditResult, EditStatus, MutationEngine

logger = logging.getLogger(__name__)

HOVER_DIM_OPACITY = 0.3
FOCUS_DIM_OPACITY = 0.2
EDGE_DIM_OPACITY = 0.1


class InteractionMode(Enum):
    IDLE = "idle"
    HOVERING = "hovering"
    FOCUSED = "focused"


@dataclass(frozen=True)
class InteractionState:
    """Selection, hover and focus ids.

    A focused node is always the selected node; hover is independent.
    """
    selected_id: Optional[str] = None
    hovered_id: Optional[str] = None
    focused_id: Optional[str] = None

    @property
    def mode(self) -> InteractionMode:
        if self.focused_id is not None:
            return InteractionMode.FOCUSED
        if self.hovered_id is not None:
            return InteractionMode.HOVERING
        return InteractionMode.IDLE


@dataclass(frozen=True)
class NodeFlags:
    """Per-node render flags for the rendering adapter."""
    is_selected: bool = False
    is_highlighted: bool = False
    is_dimmed: bool = False
    opacity: float = 1.0


@dataclass(frozen=True)
class NodeControls:
    """Which edit controls a node shows."""
    add: bool = False
    rename: bool = False
    delete: bool = False
    style: bool = False

    @property
    def any(self) -> bool:
        return self.add or self.rename or self.delete or self.style


class InteractionEngine:
    """Tracks interaction state against the current layout.

    Call `bind` after every layout pass; the parent map it reads is built
    once per pass by the layout.
    """

    def __init__(self, mutations: Optional[MutationEngine] = None,
                 deep_focus: bool = False):
        self.mutations = mutations or MutationEngine()
        self.deep_focus = deep_focus
        self.state = InteractionState()
        self.layout = LayoutResult([])
        self._highlight: FrozenSet[str] = frozenset()
        self._focus: FrozenSet[str] = frozenset()

    # ==================== Layout binding ====================

    def bind(self, layout: LayoutResult):
        """Attach a fresh layout and drop ids that no longer exist."""
        old_parents = self.layout.parents
        self.layout = layout
        self.reconcile(old_parents)

    def reconcile(self, old_parents: Optional[dict] = None):
        state = self.state
        selected = state.selected_id
        if selected is not None and selected not in self.layout.by_id:
            # Fall back to the closest surviving ancestor
            selected = None
            current = (old_parents or {}).get(state.selected_id)
            while current is not None:
                if current in self.layout.by_id:
                    selected = current
                    break
                current = (old_parents or {}).get(current)
        focused = state.focused_id if state.focused_id in self.layout.by_id else None
        if focused is not None and focused != selected:
            focused = None
        hovered = state.hovered_id if state.hovered_id in self.layout.by_id else None
        self._set_state(InteractionState(selected, hovered, focused))

    def reset(self):
        self._set_state(InteractionState())

    def _set_state(self, state: InteractionState):
        self.state = state
        self._highlight = frozenset(self.ancestor_path(state.hovered_id))
        self._focus = frozenset(self.focus_set(state.focused_id))

    # ==================== Transitions ====================

    def hover(self, node_id: Optional[str]) -> bool:
        """Enter or leave hover. Returns True when the state changed."""
        if node_id is not None and node_id not in self.layout.by_id:
            node_id = None
        if node_id == self.state.hovered_id:
            return False
        self._set_state(replace(self.state, hovered_id=node_id))
        return True

    def leave(self) -> bool:
        return self.hover(None)

    def click_node(self, node_id: str) -> bool:
        """Select a node and focus it."""
        if node_id not in self.layout.by_id:
            return False
        new_state = replace(self.state, selected_id=node_id, focused_id=node_id)
        if new_state == self.state:
            return False
        self._set_state(new_state)
        return True

    def click_background(self) -> bool:
        """Clear selection and focus."""
        if self.state.selected_id is None and self.state.focused_id is None:
            return False
        self._set_state(replace(self.state, selected_id=None, focused_id=None))
        return True

    def select(self, node_id: Optional[str]) -> bool:
        """Select without entering focus mode (keyboard navigation)."""
        if node_id is not None and node_id not in self.layout.by_id:
            return False
        focused = self.state.focused_id if self.state.focused_id == node_id else None
        new_state = replace(self.state, selected_id=node_id, focused_id=focused)
        if new_state == self.state:
            return False
        self._set_state(new_state)
        return True

    def set_deep_focus(self, deep: bool):
        self.deep_focus = deep
        self._set_state(self.state)

    # ==================== Path queries ====================

    def ancestor_path(self, node_id: Optional[str]) -> List[str]:
        """`node_id` followed by its ancestors up to the root."""
        if node_id is None or node_id not in self.layout.by_id:
            return []
        path = [node_id]
        current = self.layout.parents.get(node_id)
        while current is not None:
            path.append(current)
            current = self.layout.parents.get(current)
        return path

    def focus_set(self, node_id: Optional[str]) -> List[str]:
        """`node_id` plus its direct children (or all descendants when deep)."""
        if node_id is None or node_id not in self.layout.by_id:
            return []
        result = [node_id]
        pending = list(self.layout.children.get(node_id, []))
        if not self.deep_focus:
            return result + pending
        while pending:
            current = pending.pop(0)
            result.append(current)
            pending.extend(self.layout.children.get(current, []))
        return result

    @property
    def highlighted_ids(self) -> FrozenSet[str]:
        return self._highlight

    @property
    def focused_ids(self) -> FrozenSet[str]:
        return self._focus

    # ==================== Render flags ====================

    def node_flags(self, node_id: str) -> NodeFlags:
        is_selected = node_id == self.state.selected_id
        is_highlighted = node_id in self._highlight
        if self.state.focused_id is not None and node_id not in self._focus:
            return NodeFlags(is_selected, is_highlighted, True, FOCUS_DIM_OPACITY)
        if self.state.hovered_id is not None and not is_highlighted:
            return NodeFlags(is_selected, False, False, HOVER_DIM_OPACITY)
        return NodeFlags(is_selected, is_highlighted, False, 1.0)

    def edge_is_active(self, parent_id: str, child_id: str) -> bool:
        if self.state.focused_id is not None:
            return parent_id in self._focus and child_id in self._focus
        if self.state.hovered_id is not None:
            return parent_id in self._highlight and child_id in self._highlight
        return False

    def edge_opacity(self, parent_id: str, child_id: str) -> float:
        if self.state.focused_id is None and self.state.hovered_id is None:
            return 1.0
        return 1.0 if self.edge_is_active(parent_id, child_id) else EDGE_DIM_OPACITY

    def controls_for(self, node_id: str) -> NodeControls:
        """Edit controls only show on the selected node; never delete on root."""
        pn = self.layout.get(node_id)
        if pn is None or node_id != self.state.selected_id:
            return NodeControls()
        return NodeControls(add=True, rename=True, delete=not pn.is_root, style=True)

    # ==================== Keyboard navigation ====================

    def navigate(self, direction: str) -> bool:
        """Move the selection: up/down between siblings, left to parent, right to child."""
        layout = self.layout
        if not layout.nodes:
            return False
        current = self.state.selected_id
        if current is None:
            return self.select(layout.root.id)

        parent_id = layout.parents.get(current)
        target: Optional[str] = None
        if direction == "left":
            target = parent_id
        elif direction == "right":
            children = layout.children.get(current, [])
            target = children[0] if children else None
        elif direction in ("up", "down"):
            if parent_id is None:
                children = layout.children.get(current, [])
                target = children[0] if children and direction == "down" else None
            else:
                siblings = layout.children[parent_id]
                idx = siblings.index(current) + (1 if direction == "down" else -1)
                target = siblings[idx] if 0 <= idx < len(siblings) else None
        if target is None:
            return False
        return self.select(target)

    # ==================== Commands ====================

    def _selected(self, kind: EditKind, tree: MindMapTree) -> Optional[EditResult]:
        if self.state.selected_id is None or self.state.selected_id not in self.layout.by_id:
            return EditResult(tree, EditStatus.NOOP, kind, None, "nothing selected")
        return None

    def add_child(self, tree: MindMapTree, text: str) -> EditResult:
        return self._selected(EditKind.ADD_CHILD, tree) or \
            self.mutations.add_child(tree, self.state.selected_id, text)

    def rename(self, tree: MindMapTree, text: str) -> EditResult:
        return self._selected(EditKind.RENAME, tree) or \
            self.mutations.rename(tree, self.state.selected_id, text)

    def delete(self, tree: MindMapTree) -> EditResult:
        return self._selected(EditKind.DELETE, tree) or \
            self.mutations.delete(tree, self.state.selected_id)

    def update_style(self, tree: MindMapTree, **style) -> EditResult:
        return self._selected(EditKind.STYLE, tree) or \
            self.mutations.update_style(tree, self.state.selected_id, **style)

    def drag(self, tree: MindMapTree, node_id: str, x: float, y: float) -> EditResult:
        """Pin a dragged node at world position (x, y)."""
        return self.mutations.reposition(tree, node_id, x, y)

    def node_at(self, wx: float, wy: float) -> Optional[PositionedNode]:
        return self.layout.find_node_at(wx, wy)
