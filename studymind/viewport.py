"""Pan/zoom transform between screen and world coordinates."""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from studymind.config import ViewportConfig
from studymind.layout import PositionedNode

ZOOM_IN = 1
ZOOM_OUT = -1


@dataclass
class ViewState:
    """Screen = world * zoom + pan."""
    pan_x: float = 0.0
    pan_y: float = 0.0
    zoom: float = 1.0


class Viewport:
    """Holds the view transform and the size of the drawing area."""

    def __init__(self, width: float = 0.0, height: float = 0.0,
                 config: Optional[ViewportConfig] = None):
        self.config = config or ViewportConfig()
        self.state = ViewState()
        self.width = width
        self.height = height

    @property
    def pan_x(self) -> float:
        return self.state.pan_x

    @property
    def pan_y(self) -> float:
        return self.state.pan_y

    @property
    def zoom(self) -> float:
        return self.state.zoom

    def resize(self, width: float, height: float):
        self.width = width
        self.height = height

    def reset(self):
        self.state = ViewState()

    # ==================== Transforms ====================

    def screen_to_world(self, sx: float, sy: float) -> Tuple[float, float]:
        return (sx - self.state.pan_x) / self.state.zoom, (sy - self.state.pan_y) / self.state.zoom

    def world_to_screen(self, wx: float, wy: float) -> Tuple[float, float]:
        return wx * self.state.zoom + self.state.pan_x, wy * self.state.zoom + self.state.pan_y

    # ==================== Pan / zoom ====================

    def pan(self, dx: float, dy: float):
        self.state.pan_x += dx
        self.state.pan_y += dy

    def set_zoom_at_point(self, sx: float, sy: float, new_zoom: float) -> bool:
        """Set the zoom while keeping the world point under (sx, sy) fixed.

        Returns False when the clamped zoom did not change.
        """
        old_zoom = self.state.zoom
        clamped = self.config.clamp(new_zoom)
        if clamped == old_zoom:
            return False

        world_x, world_y = self.screen_to_world(sx, sy)
        self.state.zoom = clamped
        self.state.pan_x = sx - world_x * clamped
        self.state.pan_y = sy - world_y * clamped
        return True

    def zoom_at_point(self, sx: float, sy: float, direction: int,
                      factor: Optional[float] = None) -> bool:
        """Zoom one wheel notch in (`direction` > 0) or out towards a point."""
        factor = factor or self.config.wheel_factor
        if direction > 0:
            new_zoom = self.state.zoom * factor
        else:
            new_zoom = self.state.zoom / factor
        return self.set_zoom_at_point(sx, sy, new_zoom)

    def zoom_step(self, direction: int, target: Optional[PositionedNode] = None) -> bool:
        """Button zoom, centered on `target` when given, else the view center."""
        if target is not None:
            sx, sy = self.world_to_screen(target.x, target.y)
        else:
            sx, sy = self.width / 2, self.height / 2
        return self.zoom_at_point(sx, sy, direction, self.config.button_factor)

    def center_on(self, wx: float, wy: float):
        """Scroll so the world point sits in the middle of the view."""
        self.state.pan_x = self.width / 2 - wx * self.state.zoom
        self.state.pan_y = self.height / 2 - wy * self.state.zoom

    def fit_to_content(self, nodes: Iterable[PositionedNode]) -> bool:
        """Zoom and center so every node fits inside the padded view.

        Never zooms past 100% just to fit. Returns False when there is
        nothing to fit.
        """
        nodes = list(nodes)
        if not nodes or self.width <= 0 or self.height <= 0:
            return False

        min_x = min(n.left for n in nodes)
        max_x = max(n.right for n in nodes)
        min_y = min(n.top for n in nodes)
        max_y = max(n.bottom for n in nodes)

        tree_width = max_x - min_x
        tree_height = max_y - min_y
        if tree_width <= 0 or tree_height <= 0:
            return False

        padding = self.config.fit_padding
        zoom = min(
            (self.width - padding) / tree_width,
            (self.height - padding) / tree_height,
            1.0  # Don't zoom in beyond 100%
        )
        self.state.zoom = self.config.clamp(zoom)
        self.center_on(min_x + tree_width / 2, min_y + tree_height / 2)
        return True

    # ==================== Virtualization ====================

    def visible_rect(self) -> Tuple[float, float, float, float]:
        """World rectangle (x, y, w, h) covering the view plus a margin."""
        margin = self.config.visible_margin
        zoom = self.state.zoom
        return (
            (-self.state.pan_x - margin) / zoom,
            (-self.state.pan_y - margin) / zoom,
            (self.width + margin * 2) / zoom,
            (self.height + margin * 2) / zoom,
        )

    def visible_nodes(self, nodes: Iterable[PositionedNode]) -> List[PositionedNode]:
        """Nodes whose box intersects the visible rectangle."""
        if self.width <= 0 or self.height <= 0:
            return []
        vx, vy, vw, vh = self.visible_rect()
        return [
            n for n in nodes
            if n.right > vx and n.left < vx + vw and n.bottom > vy and n.top < vy + vh
        ]


class PanCoalescer:
    """Collects drag deltas and applies them at most once per frame."""

    def __init__(self):
        self._dx = 0.0
        self._dy = 0.0
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def add(self, dx: float, dy: float):
        self._dx += dx
        self._dy += dy
        self._pending = True

    def flush(self, viewport: Viewport) -> bool:
        """Apply the accumulated delta. Returns True if anything moved."""
        if not self._pending:
            return False
        viewport.pan(self._dx, self._dy)
        self.clear()
        return True

    def clear(self):
        self._dx = 0.0
        self._dy = 0.0
        self._pending = False
