"""Cairo drawing for positioned mind maps.

Used both by the interactive canvas and by PNG/PDF export. Everything here
draws in world coordinates; callers set up the pan/zoom transform.
"""

import math
from typing import Dict, Iterable, List, Optional, Tuple

import cairo

from studymind.interaction import InteractionEngine, NodeControls, NodeFlags
from studymind.layout import LayoutResult, PositionedNode

Point = Tuple[float, float]
RGB = Tuple[float, float, float]

CONTROL_RADIUS = 14


def parse_hex_color(value: Optional[str], fallback: RGB = (0.0, 0.0, 0.0)) -> RGB:
    """Parse `#rrggbb` or `#rgb` into cairo floats."""
    if not value:
        return fallback
    color = value.lstrip('#')
    if len(color) == 3:
        color = "".join(c * 2 for c in color)
    try:
        r = int(color[0:2], 16) / 255
        g = int(color[2:4], 16) / 255
        b = int(color[4:6], 16) / 255
    except (ValueError, IndexError):
        return fallback
    if len(color) != 6:
        return fallback
    return r, g, b


def edge_control_points(parent: PositionedNode,
                        child: PositionedNode) -> Tuple[Point, Point, Point]:
    """Quadratic curve from parent center to child center.

    The control point sits at (parent.x, child.y), so edges leave the
    parent vertically and arrive at the child horizontally.
    """
    return (parent.x, parent.y), (parent.x, child.y), (child.x, child.y)


def quadratic_to_cubic(start: Point, control: Point, end: Point) -> Tuple[Point, Point, Point]:
    """Convert a quadratic Bezier into the two cubic control points cairo needs."""
    c1 = (start[0] + 2 / 3 * (control[0] - start[0]),
          start[1] + 2 / 3 * (control[1] - start[1]))
    c2 = (end[0] + 2 / 3 * (control[0] - end[0]),
          end[1] + 2 / 3 * (control[1] - end[1]))
    return c1, c2, end


def control_positions(pn: PositionedNode, controls: NodeControls) -> Dict[str, Point]:
    """World centers of the visible edit buttons around a node."""
    positions: Dict[str, Point] = {}
    if controls.add:
        positions["add"] = (pn.right, pn.y)
    if controls.rename:
        positions["rename"] = (pn.x, pn.bottom)
    if controls.delete:
        positions["delete"] = (pn.left, pn.y)
    return positions


def control_at(pn: PositionedNode, controls: NodeControls,
               wx: float, wy: float) -> Optional[str]:
    """Name of the edit button under a world point, if any."""
    for name, (cx, cy) in control_positions(pn, controls).items():
        if math.hypot(wx - cx, wy - cy) <= CONTROL_RADIUS:
            return name
    return None


class MindMapRenderer:
    """Draws edges, nodes and edit controls with cairo."""

    COLORS = {
        'bg_primary': (0.039, 0.039, 0.039),      # #0a0a0a
        'grid_dots': (0.12, 0.12, 0.12),
        'edge': (0.267, 0.298, 0.337),            # #444c56
        'edge_active': (0.204, 0.827, 0.600),     # #34d399
        'selection': (0.063, 0.725, 0.506),       # #10b981
        'node_border': (0.0, 0.0, 0.0),
        'control_add': (0.133, 0.773, 0.369),     # #22c55e
        'control_rename': (0.231, 0.510, 0.965),  # #3b82f6
        'control_delete': (0.937, 0.267, 0.267),  # #ef4444
        'control_glyph': (1.0, 1.0, 1.0),
    }

    FONT_FAMILY = "Sans"
    FONT_SIZE = 13
    LINE_HEIGHT = 16
    EDGE_WIDTH = 2
    GRID_SIZE = 30

    def draw(self, cr, width: float, height: float, layout: LayoutResult,
             viewport=None, interaction: Optional[InteractionEngine] = None,
             show_grid: bool = True):
        """Draw a full frame for a widget of `width` x `height` pixels."""
        cr.save()
        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.paint()

        if viewport is not None:
            if show_grid:
                self._draw_grid(cr, width, height, viewport)
            cr.translate(viewport.pan_x, viewport.pan_y)
            cr.scale(viewport.zoom, viewport.zoom)
            nodes = viewport.visible_nodes(layout.nodes)
        else:
            nodes = layout.nodes

        self.draw_layout(cr, layout, interaction, nodes)
        cr.restore()

    def draw_layout(self, cr, layout: LayoutResult,
                    interaction: Optional[InteractionEngine] = None,
                    nodes: Optional[Iterable[PositionedNode]] = None):
        """Draw edges then nodes in world coordinates."""
        nodes = list(layout.nodes if nodes is None else nodes)
        visible = {pn.id for pn in nodes}

        # Connections first (behind nodes)
        for parent, child in layout.edges():
            if parent.id not in visible and child.id not in visible:
                continue
            self.draw_edge(cr, parent, child, interaction)

        for pn in nodes:
            flags = interaction.node_flags(pn.id) if interaction else NodeFlags()
            self.draw_node(cr, pn, flags)

        if interaction is not None:
            selected = layout.get(interaction.state.selected_id)
            if selected is not None and selected.id in visible:
                self.draw_controls(cr, selected, interaction.controls_for(selected.id))

    def _draw_grid(self, cr, width: float, height: float, viewport):
        """Draw dot grid pattern."""
        cr.save()
        cr.set_source_rgb(*self.COLORS['grid_dots'])

        effective_grid = self.GRID_SIZE * viewport.zoom
        if effective_grid < 4:
            cr.restore()
            return
        offset_x = viewport.pan_x % effective_grid
        offset_y = viewport.pan_y % effective_grid

        x = offset_x
        while x < width:
            y = offset_y
            while y < height:
                cr.arc(x, y, 1.5, 0, 2 * math.pi)
                cr.fill()
                y += effective_grid
            x += effective_grid
        cr.restore()

    def draw_edge(self, cr, parent: PositionedNode, child: PositionedNode,
                  interaction: Optional[InteractionEngine] = None):
        active = False
        opacity = 1.0
        if interaction is not None:
            active = interaction.edge_is_active(parent.id, child.id)
            opacity = interaction.edge_opacity(parent.id, child.id)

        start, control, end = edge_control_points(parent, child)
        c1, c2, end = quadratic_to_cubic(start, control, end)

        color = self.COLORS['edge_active'] if active else self.COLORS['edge']
        cr.set_source_rgba(*color, opacity)
        cr.set_line_width(self.EDGE_WIDTH)
        cr.set_line_cap(cairo.LINE_CAP_ROUND)
        cr.move_to(*start)
        cr.curve_to(c1[0], c1[1], c2[0], c2[1], end[0], end[1])
        cr.stroke()

    def draw_node(self, cr, pn: PositionedNode, flags: NodeFlags = NodeFlags()):
        """Draw a pill-shaped node with its wrapped label."""
        cr.save()
        cr.push_group()

        self._draw_rounded_rect(cr, pn.left, pn.top, pn.width, pn.height, pn.height / 2)
        cr.set_source_rgb(*parse_hex_color(pn.color))
        cr.fill_preserve()
        if flags.is_selected:
            cr.set_source_rgb(*self.COLORS['selection'])
            cr.set_line_width(2.5)
        else:
            cr.set_source_rgba(*self.COLORS['node_border'], 0.1)
            cr.set_line_width(1)
        cr.stroke()

        cr.set_source_rgb(*parse_hex_color(pn.text_color))
        cr.select_font_face(
            self.FONT_FAMILY,
            cairo.FONT_SLANT_ITALIC if pn.is_italic else cairo.FONT_SLANT_NORMAL,
            cairo.FONT_WEIGHT_BOLD if pn.is_bold else cairo.FONT_WEIGHT_NORMAL,
        )
        cr.set_font_size(self.FONT_SIZE)
        for line_x, line_y, line in self.line_origins(cr, pn):
            cr.move_to(line_x, line_y)
            cr.show_text(line)

        cr.pop_group_to_source()
        cr.paint_with_alpha(flags.opacity)
        cr.restore()

    def line_origins(self, cr, pn: PositionedNode) -> List[Tuple[float, float, str]]:
        """Baseline origins that center every wrapped line on the node."""
        origins = []
        count = len(pn.lines)
        for i, line in enumerate(pn.lines):
            extents = cr.text_extents(line)
            center_y = pn.y + i * self.LINE_HEIGHT - (count - 1) * self.LINE_HEIGHT / 2
            origins.append((
                pn.x - extents.x_advance / 2,
                center_y - (extents.y_bearing + extents.height / 2),
                line,
            ))
        return origins

    def draw_controls(self, cr, pn: PositionedNode, controls: NodeControls):
        """Draw the add (+), rename and delete (x) buttons of a node."""
        glyph = self.COLORS['control_glyph']
        for name, (cx, cy) in control_positions(pn, controls).items():
            cr.save()
            cr.arc(cx, cy, CONTROL_RADIUS, 0, 2 * math.pi)
            cr.set_source_rgb(*self.COLORS[f'control_{name}'])
            cr.fill()

            cr.set_source_rgb(*glyph)
            cr.set_line_width(2)
            cr.set_line_cap(cairo.LINE_CAP_ROUND)
            arm = 5
            if name == "add":
                cr.move_to(cx - arm, cy)
                cr.line_to(cx + arm, cy)
                cr.move_to(cx, cy - arm)
                cr.line_to(cx, cy + arm)
            elif name == "delete":
                cr.move_to(cx - arm, cy - arm)
                cr.line_to(cx + arm, cy + arm)
                cr.move_to(cx + arm, cy - arm)
                cr.line_to(cx - arm, cy + arm)
            else:
                # Pencil
                cr.move_to(cx - arm, cy + arm)
                cr.line_to(cx + arm, cy - arm)
            cr.stroke()
            cr.restore()

    def _draw_rounded_rect(self, cr, x: float, y: float, w: float, h: float, radius: float):
        """Draw a rounded rectangle path."""
        radius = min(radius, w / 2, h / 2)
        cr.new_path()
        cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
        cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
        cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
        cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
        cr.close_path()


def render_to_surface(layout: LayoutResult, scale: float = 2.0, padding: float = 50,
                      transparent: bool = False,
                      renderer: Optional[MindMapRenderer] = None) -> Optional[cairo.ImageSurface]:
    """Render a whole layout offscreen. Returns None for an empty layout."""
    bounds = layout.bounds()
    if bounds is None:
        return None
    renderer = renderer or MindMapRenderer()
    min_x, min_y, max_x, max_y = bounds

    width = max(1, int(math.ceil((max_x - min_x + padding * 2) * scale)))
    height = max(1, int(math.ceil((max_y - min_y + padding * 2) * scale)))

    surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, width, height)
    cr = cairo.Context(surface)
    cr.scale(scale, scale)

    if not transparent:
        cr.set_source_rgb(*renderer.COLORS['bg_primary'])
        cr.paint()

    cr.translate(-min_x + padding, -min_y + padding)
    renderer.draw_layout(cr, layout)
    surface.flush()
    return surface
