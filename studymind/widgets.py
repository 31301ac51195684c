"""Custom widgets for the StudyMind application."""

import math
from typing import Optional, Callable, List
import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
from gi.repository import Gtk, Gdk, GLib, Gio, Adw, Pango

from studymind.database import Database, SavedMap
from studymind.export import mind_map_to_markdown
from studymind.layout import PALETTE
from studymind.model import MindMapTree


class MapListRow(Gtk.Box):
    """A row in the maps list sidebar."""

    def __init__(self, saved: SavedMap):
        super().__init__(orientation=Gtk.Orientation.VERTICAL, spacing=4)
        self.saved = saved

        self.set_margin_start(12)
        self.set_margin_end(12)
        self.set_margin_top(8)
        self.set_margin_bottom(8)

        self.title_label = Gtk.Label(label=saved.title)
        self.title_label.set_halign(Gtk.Align.START)
        self.title_label.set_ellipsize(Pango.EllipsizeMode.END)
        self.append(self.title_label)

        self.info_label = Gtk.Label(label=self._info(saved))
        self.info_label.set_halign(Gtk.Align.START)
        self.info_label.add_css_class("dim-label")
        self.append(self.info_label)

    @staticmethod
    def _info(saved: SavedMap) -> str:
        date_str = saved.modified_at[:10] if saved.modified_at else ""
        return f"{len(saved.tree)} concepts · {date_str}"


class MapsSidebar(Gtk.Box):
    """Left sidebar showing the saved mind maps."""

    def __init__(self, db: Database):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)
        self.db = db
        self.set_size_request(260, -1)

        # Callbacks
        self.on_map_selected: Optional[Callable[[SavedMap], None]] = None
        self.on_new_map: Optional[Callable[[], None]] = None
        self.on_map_delete: Optional[Callable[[SavedMap], None]] = None
        self.on_map_rename: Optional[Callable[[SavedMap], None]] = None

        # Right-click target
        self._right_click_map: Optional[SavedMap] = None
        self._context_popover: Optional[Gtk.PopoverMenu] = None

        # Header
        header = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=8)
        header.set_margin_start(16)
        header.set_margin_end(8)
        header.set_margin_top(12)
        header.set_margin_bottom(12)

        title = Gtk.Label(label="MIND MAPS")
        title.set_hexpand(True)
        title.set_halign(Gtk.Align.START)
        title.add_css_class("heading")
        header.append(title)

        new_btn = Gtk.Button()
        new_btn.set_icon_name("list-add-symbolic")
        new_btn.set_tooltip_text("New Map (Ctrl+N)")
        new_btn.add_css_class("flat")
        new_btn.connect("clicked", self._on_new_clicked)
        header.append(new_btn)

        self.append(header)

        # Filter entry
        self.search_entry = Gtk.SearchEntry()
        self.search_entry.set_placeholder_text("Search maps and concepts...")
        self.search_entry.set_margin_start(12)
        self.search_entry.set_margin_end(12)
        self.search_entry.set_margin_bottom(8)
        self.search_entry.connect("search-changed", self._on_search_changed)
        self.append(self.search_entry)

        self.append(Gtk.Separator(orientation=Gtk.Orientation.HORIZONTAL))

        scrolled = Gtk.ScrolledWindow()
        scrolled.set_vexpand(True)
        scrolled.set_policy(Gtk.PolicyType.NEVER, Gtk.PolicyType.AUTOMATIC)

        self.listbox = Gtk.ListBox()
        self.listbox.set_selection_mode(Gtk.SelectionMode.SINGLE)
        self.listbox.add_css_class("navigation-sidebar")
        self.listbox.connect("row-selected", self._on_row_selected)
        self.listbox.set_filter_func(self._filter_func)

        right_click = Gtk.GestureClick()
        right_click.set_button(3)
        right_click.connect("pressed", self._on_right_click)
        self.listbox.add_controller(right_click)

        scrolled.set_child(self.listbox)
        self.append(scrolled)

        self.rows: List[Gtk.ListBoxRow] = []
        self.filter_text = ""
        self._suppress_selection = False

        self.refresh()

    def refresh(self):
        """Reload the maps list from the database."""
        self._suppress_selection = True
        while True:
            row = self.listbox.get_row_at_index(0)
            if row is None:
                break
            self.listbox.remove(row)
        self.rows.clear()

        maps = self.db.get_all_maps()
        for saved in maps:
            row = Gtk.ListBoxRow()
            row.set_child(MapListRow(saved))
            row.saved_map = saved
            self.listbox.append(row)
            self.rows.append(row)

        if not maps:
            self._show_empty_state()
        self._suppress_selection = False

    def _show_empty_state(self):
        empty_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)
        empty_box.set_valign(Gtk.Align.CENTER)
        empty_box.set_margin_top(40)
        empty_box.set_margin_bottom(40)

        label = Gtk.Label(label="No mind maps yet")
        label.add_css_class("dim-label")
        empty_box.append(label)

        hint = Gtk.Label(label="Press Ctrl+N or import a generated map")
        hint.add_css_class("dim-label")
        hint.set_opacity(0.6)
        empty_box.append(hint)

        row = Gtk.ListBoxRow()
        row.set_child(empty_box)
        row.set_selectable(False)
        row.set_activatable(False)
        self.listbox.append(row)

    def _filter_func(self, row: Gtk.ListBoxRow) -> bool:
        if not hasattr(row, "saved_map"):
            return True
        return row.saved_map.matches(self.filter_text)

    def _on_search_changed(self, entry):
        self.filter_text = entry.get_text()
        self.listbox.invalidate_filter()

    def _on_row_selected(self, listbox, row):
        if self._suppress_selection:
            return
        if row and hasattr(row, 'saved_map') and self.on_map_selected:
            self.on_map_selected(row.saved_map)

    def _on_new_clicked(self, button):
        if self.on_new_map:
            self.on_new_map()

    def _on_right_click(self, gesture, n_press, x, y):
        """Show the rename/delete context menu for a row."""
        row = self.listbox.get_row_at_y(int(y))
        if not row or not hasattr(row, 'saved_map'):
            return

        self._right_click_map = row.saved_map
        self.listbox.select_row(row)

        menu = Gio.Menu()
        menu.append("Rename", "sidebar.rename-map")
        menu.append("Delete", "sidebar.delete-map")

        action_group = Gio.SimpleActionGroup()
        rename_action = Gio.SimpleAction.new("rename-map", None)
        rename_action.connect("activate", self._on_rename_map)
        action_group.add_action(rename_action)
        delete_action = Gio.SimpleAction.new("delete-map", None)
        delete_action.connect("activate", self._on_delete_map)
        action_group.add_action(delete_action)
        self.insert_action_group("sidebar", action_group)

        if self._context_popover is not None:
            self._context_popover.unparent()
            self._context_popover = None

        popover = Gtk.PopoverMenu.new_from_model(menu)
        popover.set_parent(self.listbox)
        popover.set_has_arrow(True)
        popover.set_pointing_to(Gdk.Rectangle(int(x), int(y), 1, 1))

        # Defer unparent to idle so the action callback fires first
        def _on_popover_closed(p):
            def _do_unparent():
                if self._context_popover is p:
                    p.unparent()
                    self._context_popover = None
                return False
            GLib.idle_add(_do_unparent)
        popover.connect("closed", _on_popover_closed)

        self._context_popover = popover
        popover.popup()

    def _on_rename_map(self, action, param):
        if self._right_click_map and self.on_map_rename:
            self.on_map_rename(self._right_click_map)

    def _on_delete_map(self, action, param):
        if self._right_click_map and self.on_map_delete:
            self.on_map_delete(self._right_click_map)

    def select_map(self, map_id: int):
        """Select a map by ID without re-emitting `on_map_selected`."""
        self._suppress_selection = True
        for row in self.rows:
            if row.saved_map.id == map_id:
                self.listbox.select_row(row)
                break
        self._suppress_selection = False


class ConceptPromptDialog(Adw.MessageDialog):
    """Asks for the text of a new or renamed concept.

    `on_submit` receives the entered text; empty input is passed through
    and left for the edit to reject.
    """

    def __init__(self, parent: Gtk.Window, heading: str, initial: str = "",
                 action_label: str = "Save"):
        super().__init__(transient_for=parent, heading=heading)
        self.on_submit: Optional[Callable[[str], None]] = None

        self.entry = Gtk.Entry()
        self.entry.set_text(initial)
        self.entry.set_margin_start(16)
        self.entry.set_margin_end(16)
        self.entry.set_activates_default(True)
        self.set_extra_child(self.entry)

        self.add_response("cancel", "Cancel")
        self.add_response("ok", action_label)
        self.set_response_appearance("ok", Adw.ResponseAppearance.SUGGESTED)
        self.set_default_response("ok")
        self.set_close_response("cancel")
        self.connect("response", self._on_response)

    def _on_response(self, dialog, response):
        if response == "ok" and self.on_submit:
            self.on_submit(self.entry.get_text())

    def present(self):
        super().present()
        self.entry.grab_focus()
        self.entry.select_region(0, -1)


class OutlineView(Gtk.Box):
    """Read-only indented outline of the current mind map."""

    def __init__(self):
        super().__init__(orientation=Gtk.Orientation.VERTICAL)

        self.scrolled = Gtk.ScrolledWindow()
        self.scrolled.set_vexpand(True)
        self.scrolled.set_policy(Gtk.PolicyType.AUTOMATIC, Gtk.PolicyType.AUTOMATIC)

        self.text_view = Gtk.TextView()
        self.text_view.set_editable(False)
        self.text_view.set_cursor_visible(False)
        self.text_view.set_wrap_mode(Gtk.WrapMode.WORD_CHAR)
        self.text_view.set_left_margin(24)
        self.text_view.set_right_margin(24)
        self.text_view.set_top_margin(24)
        self.text_view.set_bottom_margin(24)
        self.text_view.set_monospace(True)
        self.text_buffer = self.text_view.get_buffer()

        self.scrolled.set_child(self.text_view)
        self.append(self.scrolled)

        self.empty_label = Gtk.Label(label="No concepts yet")
        self.empty_label.add_css_class("dim-label")
        self.empty_label.set_vexpand(True)
        self.empty_label.set_valign(Gtk.Align.CENTER)
        self.append(self.empty_label)

        self.show_tree(MindMapTree.empty())

    def show_tree(self, tree: MindMapTree):
        text = mind_map_to_markdown(tree)
        self.text_buffer.set_text(text)
        self.scrolled.set_visible(bool(text))
        self.empty_label.set_visible(not text)


def confirm_delete(parent: Gtk.Window, heading: str, body: str,
                   on_confirm: Callable[[], None]):
    """Show a destructive confirmation dialog."""
    dialog = Adw.MessageDialog(transient_for=parent, heading=heading, body=body)
    dialog.add_response("cancel", "Cancel")
    dialog.add_response("delete", "Delete")
    dialog.set_response_appearance("delete", Adw.ResponseAppearance.DESTRUCTIVE)
    dialog.set_default_response("cancel")
    dialog.set_close_response("cancel")
    dialog.connect("response", lambda d, r: on_confirm() if r == "delete" else None)
    dialog.present()


class StylePopover(Gtk.Popover):
    """Palette swatches plus bold/italic toggles for the selected concept."""

    def __init__(self, bold: bool = False, italic: bool = False):
        super().__init__()
        self.on_style: Optional[Callable[..., None]] = None

        box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL, spacing=8)
        box.set_margin_start(8)
        box.set_margin_end(8)
        box.set_margin_top(8)
        box.set_margin_bottom(8)

        swatches = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        for fill, text in PALETTE:
            swatches.append(self._swatch(fill, text))
        reset_btn = Gtk.Button(icon_name="edit-clear-symbolic")
        reset_btn.set_tooltip_text("Default colors")
        reset_btn.connect("clicked", lambda b: self._emit(color="", text_color=""))
        swatches.append(reset_btn)
        box.append(swatches)

        toggles = Gtk.Box(orientation=Gtk.Orientation.HORIZONTAL, spacing=4)
        bold_btn = Gtk.ToggleButton(label="B")
        bold_btn.set_active(bold)
        bold_btn.connect("toggled", lambda b: self._emit(is_bold=b.get_active()))
        toggles.append(bold_btn)
        italic_btn = Gtk.ToggleButton(label="I")
        italic_btn.set_active(italic)
        italic_btn.connect("toggled", lambda b: self._emit(is_italic=b.get_active()))
        toggles.append(italic_btn)
        box.append(toggles)

        self.set_child(box)

    def _swatch(self, fill: str, text: str) -> Gtk.Button:
        button = Gtk.Button()
        button.set_size_request(24, 24)
        button.set_tooltip_text(fill)

        area = Gtk.DrawingArea()
        area.set_content_width(16)
        area.set_content_height(16)
        rgba = Gdk.RGBA()
        rgba.parse(fill)

        def draw(_area, cr, width, height):
            cr.set_source_rgb(rgba.red, rgba.green, rgba.blue)
            cr.arc(width / 2, height / 2, min(width, height) / 2, 0, 2 * math.pi)
            cr.fill()

        area.set_draw_func(draw)
        button.set_child(area)
        button.connect("clicked", lambda b: self._emit(color=fill, text_color=text))
        return button

    def _emit(self, **style):
        if self.on_style:
            self.on_style(**style)
