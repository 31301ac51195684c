"""Canvas widget that draws a mind map session and routes input to it."""

import logging
import math
from typing import Callable, Optional

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk, GLib

from studymind.config import LAYOUT_RADIAL
from studymind.layout import LayoutResult, PositionedNode
from studymind.render import MindMapRenderer, control_at
from studymind.session import MindMapSession
from studymind.viewport import ZOOM_IN, ZOOM_OUT, PanCoalescer
from studymind.widgets import StylePopover

logger = logging.getLogger(__name__)


class MindMapCanvas(Gtk.DrawingArea):
    """Custom canvas widget for rendering and editing a mind map."""

    SCROLL_PAN_STEP = 40

    def __init__(self, session: Optional[MindMapSession] = None):
        super().__init__()

        self.session = session or MindMapSession()
        self.renderer = MindMapRenderer()
        self.pan_coalescer = PanCoalescer()
        self._tick_id: Optional[int] = None
        self._fit_pending = True

        # Pointer state
        self.last_mouse_x = 0.0
        self.last_mouse_y = 0.0
        self.is_panning = False
        self._pan_last_x = 0.0
        self._pan_last_y = 0.0

        # Dragging state
        self._drag_threshold = 5
        self._drag_exceeded_threshold = False
        self._drag_pending_node: Optional[PositionedNode] = None
        self.dragging_node: Optional[PositionedNode] = None
        self._preview_layout: Optional[LayoutResult] = None
        self.drag_start_node_x = 0.0
        self.drag_start_node_y = 0.0

        self._style_popover: Optional[StylePopover] = None

        # Callbacks
        self.on_add_requested: Optional[Callable[[PositionedNode], None]] = None
        self.on_rename_requested: Optional[Callable[[PositionedNode], None]] = None
        self.on_delete_requested: Optional[Callable[[PositionedNode], None]] = None
        self.on_selection_changed: Optional[Callable[[Optional[PositionedNode]], None]] = None

        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_hexpand(True)
        self.set_vexpand(True)
        self.connect("resize", self._on_resize)

        self._setup_event_controllers()

    def _setup_event_controllers(self):
        """Setup mouse and keyboard event controllers."""
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        self.add_controller(click_ctrl)

        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        motion_ctrl.connect("leave", self._on_leave)
        self.add_controller(motion_ctrl)

        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.BOTH_AXES)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(1)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_ctrl)

        right_click = Gtk.GestureClick()
        right_click.set_button(3)
        right_click.connect("pressed", self._on_right_click)
        self.add_controller(right_click)

    # ==================== Session ====================

    def set_session(self, session: MindMapSession):
        """Show another session; the view is fitted once the size is known."""
        self.session = session
        self.session.viewport.resize(self.get_width(), self.get_height())
        self.pan_coalescer.clear()
        self._preview_layout = None
        self._fit_pending = True
        self._fit_if_ready()
        self.queue_draw()

    def _fit_if_ready(self):
        if self._fit_pending and self.session.fit_to_view():
            self._fit_pending = False

    def _on_resize(self, area, width, height):
        self.session.viewport.resize(width, height)
        self._fit_if_ready()

    def _notify_selection(self):
        if self.on_selection_changed:
            self.on_selection_changed(self.session.selected_node)

    # ==================== Drawing ====================

    def _on_draw(self, area, cr, width, height):
        """Main drawing function."""
        layout = self._preview_layout if self._preview_layout is not None else self.session.layout
        self.renderer.draw(
            cr, width, height, layout,
            viewport=self.session.viewport,
            interaction=self.session.interaction,
            show_grid=self.session.settings.show_grid,
        )

    # ==================== Pointer ====================

    def _control_hit(self, x: float, y: float) -> Optional[str]:
        selected = self.session.selected_node
        if selected is None:
            return None
        wx, wy = self.session.viewport.screen_to_world(x, y)
        controls = self.session.interaction.controls_for(selected.id)
        return control_at(selected, controls, wx, wy)

    def _on_click(self, gesture, n_press, x, y):
        """Handle left click: edit controls, selection, double-click rename."""
        self.grab_focus()

        control = self._control_hit(x, y)
        if control is not None:
            selected = self.session.selected_node
            callback = {
                "add": self.on_add_requested,
                "rename": self.on_rename_requested,
                "delete": self.on_delete_requested,
            }[control]
            if callback:
                callback(selected)
            return

        if self.session.pointer_clicked(x, y):
            self._notify_selection()
            self.queue_draw()

        if n_press == 2 and self.on_rename_requested:
            hit = self.session.hit_test(x, y)
            if hit is not None:
                self.on_rename_requested(hit)

    def _on_motion(self, controller, x, y):
        self.last_mouse_x = x
        self.last_mouse_y = y
        if self.session.pointer_moved(x, y):
            self.queue_draw()

    def _on_leave(self, controller):
        if self.session.pointer_left():
            self.queue_draw()

    def _on_scroll(self, controller, dx, dy):
        """Ctrl+wheel zooms at the cursor, plain wheel pans."""
        state = controller.get_current_event_state()
        if state & Gdk.ModifierType.CONTROL_MASK:
            direction = ZOOM_IN if dy < 0 else ZOOM_OUT
            if self.session.viewport.zoom_at_point(self.last_mouse_x, self.last_mouse_y, direction):
                self.queue_draw()
            return True

        self._schedule_pan(-dx * self.SCROLL_PAN_STEP, -dy * self.SCROLL_PAN_STEP)
        return True

    # ==================== Drag (pan / reposition) ====================

    def _on_drag_begin(self, gesture, start_x, start_y):
        """Start either a node drag or a pan."""
        if self._control_hit(start_x, start_y) is not None:
            gesture.set_state(Gtk.EventSequenceState.DENIED)
            return

        hit = self.session.hit_test(start_x, start_y)
        self._drag_exceeded_threshold = False
        self.dragging_node = None
        if hit is not None:
            # Don't commit to drag yet; wait for threshold
            self._drag_pending_node = hit
            self.drag_start_node_x = hit.x
            self.drag_start_node_y = hit.y
            self.is_panning = False
        else:
            self._drag_pending_node = None
            self.is_panning = True
            self._pan_last_x = 0.0
            self._pan_last_y = 0.0

    def _on_drag_update(self, gesture, offset_x, offset_y):
        if self._drag_pending_node and not self._drag_exceeded_threshold:
            if math.hypot(offset_x, offset_y) < self._drag_threshold:
                return
            self._drag_exceeded_threshold = True
            if self.session.settings.layout_mode != LAYOUT_RADIAL:
                self.dragging_node = self._drag_pending_node

        if self.dragging_node:
            # Preview only; the tree is updated on release
            zoom = self.session.viewport.zoom
            self._preview_layout = self.session.layout.moved(
                self.dragging_node.id,
                self.drag_start_node_x + offset_x / zoom,
                self.drag_start_node_y + offset_y / zoom,
            )
            self.queue_draw()
        elif self.is_panning:
            self._schedule_pan(offset_x - self._pan_last_x, offset_y - self._pan_last_y)
            self._pan_last_x = offset_x
            self._pan_last_y = offset_y

    def _on_drag_end(self, gesture, offset_x, offset_y):
        if self.dragging_node and self._preview_layout is not None:
            node = self._preview_layout.by_id[self.dragging_node.id]
            logger.debug("Dropped %s at (%.1f, %.1f)", node.id, node.x, node.y)
            self.session.drag_node(node.id, node.x, node.y)
            self.queue_draw()
        self._preview_layout = None
        self._drag_pending_node = None
        self.dragging_node = None
        self.is_panning = False

    def _schedule_pan(self, dx: float, dy: float):
        """Queue a pan delta; it is applied on the next frame."""
        self.pan_coalescer.add(dx, dy)
        if self._tick_id is None:
            self._tick_id = self.add_tick_callback(self._on_tick)

    def _on_tick(self, widget, frame_clock) -> bool:
        self._tick_id = None
        if self.pan_coalescer.flush(self.session.viewport):
            self.queue_draw()
        return GLib.SOURCE_REMOVE

    # ==================== Context menu ====================

    def _on_right_click(self, gesture, n_press, x, y):
        """Select the node under the pointer and offer style options."""
        hit = self.session.hit_test(x, y)
        if hit is None:
            return
        if self.session.interaction.state.selected_id != hit.id:
            self.session.pointer_clicked(x, y)
            self._notify_selection()
            self.queue_draw()

        if self._style_popover is not None:
            self._style_popover.unparent()
        style = hit.node.style
        popover = StylePopover(bold=style.is_bold, italic=style.is_italic)
        popover.set_parent(self)
        popover.set_pointing_to(Gdk.Rectangle(int(x), int(y), 1, 1))
        popover.on_style = self._apply_style
        self._style_popover = popover
        popover.popup()

    def _apply_style(self, **style):
        if self.session.update_style(**style).changed:
            self.queue_draw()

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        """Handle keyboard input."""
        ctrl = state & Gdk.ModifierType.CONTROL_MASK
        selected = self.session.selected_node

        arrows = {
            Gdk.KEY_Up: "up",
            Gdk.KEY_Down: "down",
            Gdk.KEY_Left: "left",
            Gdk.KEY_Right: "right",
        }
        if keyval in arrows:
            if self.session.interaction.navigate(arrows[keyval]):
                self._notify_selection()
                self.queue_draw()
            return True

        if keyval == Gdk.KEY_Tab:
            if selected and self.on_add_requested:
                self.on_add_requested(selected)
            return True
        elif keyval in (Gdk.KEY_F2, Gdk.KEY_Return):
            if selected and self.on_rename_requested:
                self.on_rename_requested(selected)
            return True
        elif keyval in (Gdk.KEY_Delete, Gdk.KEY_BackSpace):
            if selected and not selected.is_root and self.on_delete_requested:
                self.on_delete_requested(selected)
            return True
        elif keyval == Gdk.KEY_Escape:
            if self.session.interaction.click_background():
                self._notify_selection()
                self.queue_draw()
            return True

        # Zoom shortcuts
        if ctrl:
            if keyval in (Gdk.KEY_plus, Gdk.KEY_equal, Gdk.KEY_KP_Add):
                self.zoom_in()
                return True
            elif keyval in (Gdk.KEY_minus, Gdk.KEY_KP_Subtract):
                self.zoom_out()
                return True
            elif keyval == Gdk.KEY_0:
                self.zoom_to_fit()
                return True
        return False

    # ==================== View ====================

    def zoom_in(self):
        if self.session.zoom_in():
            self.queue_draw()

    def zoom_out(self):
        if self.session.zoom_out():
            self.queue_draw()

    def zoom_to_fit(self):
        """Zoom to fit all nodes."""
        self.session.fit_to_view()
        self.queue_draw()

    def zoom_to_100(self):
        """Reset zoom to 100% around the view center."""
        viewport = self.session.viewport
        viewport.set_zoom_at_point(viewport.width / 2, viewport.height / 2, 1.0)
        self.queue_draw()

    def center_view(self):
        """Center the view on the root node."""
        root = self.session.layout.root
        if root is not None:
            self.session.viewport.center_on(root.x, root.y)
            self.queue_draw()
