"""Application state for one open mind map.

The session owns the canonical tree and everything derived from it: the
current layout, the viewport and the interaction state. Every applied edit
goes through `apply`, which replaces the tree, recomputes the layout and
re-emits the tree through `on_tree_changed`.
"""

import logging
from typing import Any, Callable, List, Optional

from studymind.config import LAYOUT_RADIAL, LayoutConfig, MapSettings, ViewportConfig
from studymind.generation import GenerationOptions, StudyData, StudyGenerator
from studymind.interaction import InteractionEngine
from studymind.layout import LayoutResult, PositionedNode, compute_layout
from studymind.model import (
    IdGenerator, MindMapTree, MindMapValidationError, UuidIdGenerator, ingest,
)
from studymind.mutation import EditKind, EditResult, EditStatus, MutationEngine
from studymind.viewport import ZOOM_IN, ZOOM_OUT, Viewport

logger = logging.getLogger(__name__)


class MindMapSession:
    """Tree, layout, viewport and interaction state for one mind map."""

    def __init__(self, tree: Optional[MindMapTree] = None,
                 settings: Optional[MapSettings] = None,
                 layout_config: Optional[LayoutConfig] = None,
                 viewport_config: Optional[ViewportConfig] = None,
                 id_generator: Optional[IdGenerator] = None):
        self.settings = settings or MapSettings()
        self.layout_config = layout_config or LayoutConfig()
        self.id_generator = id_generator or UuidIdGenerator()
        self.mutations = MutationEngine(self.id_generator)
        self.viewport = Viewport(config=viewport_config)
        self.interaction = InteractionEngine(self.mutations, self.settings.deep_focus)

        self.tree = MindMapTree.empty()
        self.layout = LayoutResult([], self.settings.layout_mode)
        self.study_data: Optional[StudyData] = None

        # Callbacks
        self.on_tree_changed: Optional[Callable[[MindMapTree], None]] = None
        self.on_layout_changed: Optional[Callable[[LayoutResult], None]] = None

        if tree is not None:
            self.replace_tree(tree)

    # ==================== Tree replacement ====================

    def replace_tree(self, tree: MindMapTree):
        """Swap in a whole new tree and reset interaction state."""
        logger.debug("Replacing tree: %r", tree)
        self.tree = tree
        self.interaction.reset()
        self._relayout()

    def load_payload(self, payload: Any) -> MindMapTree:
        """Ingest an external mind map payload and make it current.

        On validation failure the current tree is left untouched and the
        error propagates.
        """
        try:
            tree = ingest(payload, self.id_generator)
        except MindMapValidationError as exc:
            logger.warning("Rejected mind map payload: %s", exc)
            raise
        self.replace_tree(tree)
        return tree

    def load_study_data(self, data: StudyData) -> MindMapTree:
        tree = self.load_payload(data.mind_map)
        self.study_data = data
        return tree

    def load_document(self, data: Any) -> MindMapTree:
        """Load an imported JSON document.

        An object is read as generated `StudyData`, anything else as a bare
        mind map payload. Shape errors propagate and keep the current tree.
        """
        if isinstance(data, dict):
            return self.load_study_data(StudyData.from_dict(data))
        return self.load_payload(data)

    def generate_from_text(self, generator: StudyGenerator, text: str,
                           options: Optional[GenerationOptions] = None) -> MindMapTree:
        """Ask a generator for study material and load its mind map."""
        data = generator.generate(text, options or GenerationOptions())
        return self.load_study_data(data)

    def _relayout(self):
        self.layout = compute_layout(self.tree, self.settings.layout_mode, self.layout_config)
        self.interaction.bind(self.layout)
        logger.debug("Layout recomputed (%s, %d nodes)", self.layout.mode, len(self.layout))
        if self.on_layout_changed:
            self.on_layout_changed(self.layout)

    # ==================== Edits ====================

    def apply(self, result: EditResult) -> bool:
        """Adopt the tree of an applied edit. Returns True if it changed."""
        if not result.changed:
            if result.status is EditStatus.BLOCKED:
                logger.debug("Edit %s blocked: %s", result.kind.value, result.reason)
            return False
        self.tree = result.tree
        self._relayout()
        if self.on_tree_changed:
            self.on_tree_changed(self.tree)
        return True

    def add_child(self, text: str) -> EditResult:
        """Add a child under the selected node; the selection stays put."""
        result = self.interaction.add_child(self.tree, text)
        self.apply(result)
        return result

    def rename(self, text: str) -> EditResult:
        result = self.interaction.rename(self.tree, text)
        self.apply(result)
        return result

    def delete(self) -> EditResult:
        """Delete the selected node; the selection moves to its parent."""
        result = self.interaction.delete(self.tree)
        self.apply(result)
        return result

    def update_style(self, **style) -> EditResult:
        result = self.interaction.update_style(self.tree, **style)
        self.apply(result)
        return result

    def drag_node(self, node_id: str, wx: float, wy: float) -> EditResult:
        """Pin a node at a world position. Ignored in radial mode."""
        if self.settings.layout_mode == LAYOUT_RADIAL:
            return EditResult(self.tree, EditStatus.NOOP, EditKind.REPOSITION, node_id,
                              "repositioning is disabled in radial mode")
        result = self.interaction.drag(self.tree, node_id, wx, wy)
        self.apply(result)
        return result

    def clear_positions(self) -> EditResult:
        result = self.mutations.clear_positions(self.tree)
        self.apply(result)
        return result

    # ==================== Settings ====================

    def set_layout_mode(self, mode: str) -> bool:
        settings = MapSettings(mode, self.settings.deep_focus, self.settings.show_grid)
        if settings.layout_mode == self.settings.layout_mode:
            return False
        self.settings = settings
        self._relayout()
        return True

    def set_deep_focus(self, deep: bool):
        self.settings.deep_focus = deep
        self.interaction.set_deep_focus(deep)

    # ==================== Pointer input ====================

    def hit_test(self, sx: float, sy: float) -> Optional[PositionedNode]:
        """Return the node under a screen point, if any."""
        wx, wy = self.viewport.screen_to_world(sx, sy)
        return self.layout.find_node_at(wx, wy)

    def pointer_moved(self, sx: float, sy: float) -> bool:
        hit = self.hit_test(sx, sy)
        return self.interaction.hover(hit.id if hit else None)

    def pointer_left(self) -> bool:
        return self.interaction.leave()

    def pointer_clicked(self, sx: float, sy: float) -> bool:
        hit = self.hit_test(sx, sy)
        if hit is None:
            return self.interaction.click_background()
        return self.interaction.click_node(hit.id)

    # ==================== View ====================

    @property
    def selected_node(self) -> Optional[PositionedNode]:
        return self.layout.get(self.interaction.state.selected_id)

    def fit_to_view(self) -> bool:
        return self.viewport.fit_to_content(self.layout.nodes)

    def zoom_in(self) -> bool:
        return self.viewport.zoom_step(ZOOM_IN, self.selected_node)

    def zoom_out(self) -> bool:
        return self.viewport.zoom_step(ZOOM_OUT, self.selected_node)

    def visible_nodes(self) -> List[PositionedNode]:
        return self.viewport.visible_nodes(self.layout.nodes)
