"""Tree layout engine: turns a concept tree into positioned nodes.

Two strategies share the same sizing, coloring and manual-position rules:

* ``HierarchicalLayout`` puts every depth level on its own row and packs
  sibling subtrees left to right so their horizontal extents never
  intersect (a two-pass, Reingold-Tilford style walk).
* ``RadialLayout`` puts the root at the origin and hands each child a
  disjoint slice of its parent's angular sweep.

Both are pure functions of the tree: the same structure and text always
produce the same coordinates.
"""

import logging
import math
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

from studymind.config import LayoutConfig, LAYOUT_HIERARCHICAL, LAYOUT_RADIAL
from studymind.model import ConceptNode, MindMapTree
from studymind.wrapping import wrap_text

logger = logging.getLogger(__name__)

# (fill, text) pairs
ROOT_COLORS = ("#e2e8f0", "#0f172a")
NEUTRAL_COLORS = ("#f1f5f9", "#1e293b")
PALETTE = [
    ("#fef08a", "#422006"),   # yellow
    ("#bae6fd", "#082f49"),   # sky
    ("#a7f3d0", "#022c22"),   # emerald
    ("#fecaca", "#450a0a"),   # red
    ("#ddd6fe", "#2e1065"),   # violet
    ("#fbcfe8", "#500724"),   # pink
]


@dataclass
class PositionedNode:
    """A concept node with a computed position and box.

    `x`/`y` are the world coordinates of the node center.
    """
    node: ConceptNode
    x: float
    y: float
    width: float
    height: float
    level: int
    color: str
    text_color: str
    lines: List[str] = field(default_factory=list)
    palette_index: Optional[int] = None
    parent_id: Optional[str] = None
    sector_start: float = 0.0  # radial only
    sector_sweep: float = 0.0  # radial only

    @property
    def id(self) -> str:
        return self.node.id

    @property
    def concept(self) -> str:
        return self.node.concept

    @property
    def is_root(self) -> bool:
        return self.level == 0

    @property
    def is_bold(self) -> bool:
        # Root labels are always bold
        return self.node.style.is_bold or self.is_root

    @property
    def is_italic(self) -> bool:
        return self.node.style.is_italic

    @property
    def left(self) -> float:
        return self.x - self.width / 2

    @property
    def right(self) -> float:
        return self.x + self.width / 2

    @property
    def top(self) -> float:
        return self.y - self.height / 2

    @property
    def bottom(self) -> float:
        return self.y + self.height / 2

    def contains_point(self, px: float, py: float) -> bool:
        """Check if a world point is inside this node's box."""
        return (self.left <= px <= self.right and
                self.top <= py <= self.bottom)


@dataclass
class LayoutResult:
    """Positioned nodes in pre-order plus lookups derived from them."""
    nodes: List[PositionedNode]
    mode: str = LAYOUT_HIERARCHICAL
    by_id: Dict[str, PositionedNode] = field(init=False)
    parents: Dict[str, str] = field(init=False)
    children: Dict[str, List[str]] = field(init=False)

    def __post_init__(self):
        self.by_id = {}
        self.parents = {}
        self.children = {}
        for pn in self.nodes:
            self.by_id[pn.id] = pn
            self.children[pn.id] = [child.id for child in pn.node.children]
            if pn.parent_id is not None:
                self.parents[pn.id] = pn.parent_id

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[PositionedNode]:
        return iter(self.nodes)

    def get(self, node_id: Optional[str]) -> Optional[PositionedNode]:
        if node_id is None:
            return None
        return self.by_id.get(node_id)

    @property
    def root(self) -> Optional[PositionedNode]:
        return self.nodes[0] if self.nodes else None

    def edges(self) -> List[Tuple[PositionedNode, PositionedNode]]:
        """(parent, child) pairs in pre-order."""
        return [(self.by_id[pn.parent_id], pn) for pn in self.nodes
                if pn.parent_id is not None]

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """(min_x, min_y, max_x, max_y) over every node box."""
        if not self.nodes:
            return None
        return (
            min(pn.left for pn in self.nodes),
            min(pn.top for pn in self.nodes),
            max(pn.right for pn in self.nodes),
            max(pn.bottom for pn in self.nodes),
        )

    def moved(self, node_id: str, x: float, y: float) -> "LayoutResult":
        """A copy with one node drawn at (x, y); this layout is left as is."""
        nodes = [replace(pn, x=x, y=y) if pn.id == node_id else pn for pn in self.nodes]
        return LayoutResult(nodes, self.mode)

    def find_node_at(self, wx: float, wy: float) -> Optional[PositionedNode]:
        """Return the top-most node under a world point."""
        # Later nodes are drawn on top
        for pn in reversed(self.nodes):
            if pn.contains_point(wx, wy):
                return pn
        return None


class TreeLayout:
    """Shared sizing, coloring and manual-position handling."""

    mode = ""

    def __init__(self, config: Optional[LayoutConfig] = None):
        self.config = config or LayoutConfig()

    def compute(self, tree: MindMapTree) -> LayoutResult:
        if tree.is_empty:
            return LayoutResult([], self.mode)
        nodes = self._place(tree.root)
        self._apply_manual_positions(nodes)
        logger.debug("%s layout placed %d nodes", self.mode, len(nodes))
        return LayoutResult(nodes, self.mode)

    def _place(self, root: ConceptNode) -> List[PositionedNode]:
        raise NotImplementedError

    def measure(self, node: ConceptNode) -> Tuple[float, float, List[str]]:
        """Return (width, height, wrapped lines) for a node."""
        cfg = self.config
        lines = wrap_text(node.concept, cfg.wrap_width, cfg.glyph_width)
        height = max(cfg.base_height, len(lines) * cfg.line_height + cfg.vertical_padding)
        return cfg.node_width, height, lines

    @staticmethod
    def colors_for(node: ConceptNode, level: int,
                   palette_index: Optional[int]) -> Tuple[str, str]:
        if level == 0:
            fill, text = ROOT_COLORS
        elif level >= 2 or palette_index is None:
            fill, text = NEUTRAL_COLORS
        else:
            fill, text = PALETTE[palette_index % len(PALETTE)]
        return node.style.color or fill, node.style.text_color or text

    def _positioned(self, node: ConceptNode, x: float, y: float, level: int,
                    palette_index: Optional[int],
                    parent_id: Optional[str]) -> PositionedNode:
        width, height, lines = self.measure(node)
        fill, text = self.colors_for(node, level, palette_index)
        return PositionedNode(
            node=node, x=x, y=y, width=width, height=height, level=level,
            color=fill, text_color=text, lines=lines,
            palette_index=palette_index, parent_id=parent_id,
        )

    @staticmethod
    def _apply_manual_positions(nodes: List[PositionedNode]):
        """Replace computed coordinates with manual overrides.

        Runs after placement, so overrides never influence other nodes.
        """
        for pn in nodes:
            if pn.node.position_x is not None:
                pn.x = pn.node.position_x
            if pn.node.position_y is not None:
                pn.y = pn.node.position_y


class HierarchicalLayout(TreeLayout):
    """Rows per depth level, sibling subtrees packed without overlap."""

    mode = LAYOUT_HIERARCHICAL

    def _place(self, root: ConceptNode) -> List[PositionedNode]:
        cfg = self.config
        half = cfg.node_width / 2
        offsets: Dict[str, float] = {}

        def first_walk(node: ConceptNode, is_root: bool) -> Tuple[float, float]:
            """Lay out children relative to `node`; return the subtree extent."""
            if not node.children:
                return -half, half

            positions: List[float] = []
            first_left = 0.0
            right_edge: Optional[float] = None
            for child in node.children:
                left, right = first_walk(child, False)
                if right_edge is None:
                    pos = 0.0
                    first_left = left
                else:
                    # Shift right until the subtree clears everything placed so far
                    pos = right_edge + cfg.min_horizontal_gap - left
                positions.append(pos)
                right_edge = pos + right

            if is_root:
                center = (first_left + right_edge) / 2
            else:
                center = (positions[0] + positions[-1]) / 2

            for child, pos in zip(node.children, positions):
                offsets[child.id] = pos - center

            return min(-half, first_left - center), max(half, right_edge - center)

        first_walk(root, True)

        placed: List[PositionedNode] = []

        def second_walk(node: ConceptNode, x: float, level: int,
                        palette_index: Optional[int], parent_id: Optional[str]):
            placed.append(self._positioned(
                node, x, level * cfg.row_spacing, level, palette_index, parent_id
            ))
            for index, child in enumerate(node.children):
                child_palette = index % len(PALETTE) if level == 0 else palette_index
                second_walk(child, x + offsets[child.id], level + 1, child_palette, node.id)

        second_walk(root, 0.0, 0, None, None)

        # Center the whole tree horizontally on x = 0
        min_x = min(pn.left for pn in placed)
        max_x = max(pn.right for pn in placed)
        shift = -(min_x + max_x) / 2
        for pn in placed:
            pn.x += shift
        return placed


class RadialLayout(TreeLayout):
    """Root at the origin, children spread over angular sectors."""

    mode = LAYOUT_RADIAL

    def _place(self, root: ConceptNode) -> List[PositionedNode]:
        cfg = self.config
        placed: List[PositionedNode] = []

        def layout_node(node: ConceptNode, level: int, cx: float, cy: float,
                        start_angle: float, sweep: float,
                        palette_index: Optional[int], parent_id: Optional[str]):
            positioned = self._positioned(node, cx, cy, level, palette_index, parent_id)
            positioned.sector_start = start_angle
            positioned.sector_sweep = sweep
            placed.append(positioned)

            if not node.children:
                return

            if level == 0:
                radius = max(cfg.node_width, cfg.radial_root_radius)
            else:
                radius = max(cfg.node_width, cfg.radial_level_radius)

            step = sweep / len(node.children)
            for index, child in enumerate(node.children):
                angle = start_angle + (index + 0.5) * step
                child_x = cx + radius * math.cos(angle)
                child_y = cy + radius * math.sin(angle)

                # Each child gets a shrunken slice of its own step
                child_sweep = step * cfg.radial_sweep_shrink
                child_start = angle - child_sweep / 2
                child_palette = index % len(PALETTE) if level == 0 else palette_index
                layout_node(child, level + 1, child_x, child_y,
                            child_start, child_sweep, child_palette, node.id)

        layout_node(root, 0, 0.0, 0.0, -math.pi / 2, 2 * math.pi, None, None)
        return placed


_STRATEGIES = {
    LAYOUT_HIERARCHICAL: HierarchicalLayout,
    LAYOUT_RADIAL: RadialLayout,
}


def get_layout(mode: str, config: Optional[LayoutConfig] = None) -> TreeLayout:
    """Return the layout strategy for `mode` (hierarchical when unknown)."""
    strategy = _STRATEGIES.get(mode)
    if strategy is None:
        logger.warning("Unknown layout mode %r, using %s", mode, LAYOUT_HIERARCHICAL)
        strategy = HierarchicalLayout
    return strategy(config)


def compute_layout(tree: MindMapTree, mode: str = LAYOUT_HIERARCHICAL,
                   config: Optional[LayoutConfig] = None) -> LayoutResult:
    """Dispatch to the appropriate layout algorithm."""
    return get_layout(mode, config).compute(tree)
