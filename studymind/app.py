"""Main StudyMind application."""

import json
import logging
import sqlite3
import sys
from typing import Callable, Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, GLib, Adw

from studymind import __version__, __app_id__
from studymind.canvas import MindMapCanvas
from studymind.config import LAYOUT_HIERARCHICAL, LAYOUT_MODES, get_export_dir
from studymind.database import Database, SavedMap
from studymind.export import MindMapExporter
from studymind.generation import StudyDataError
from studymind.layout import PositionedNode
from studymind.model import MindMapTree, MindMapValidationError
from studymind.session import MindMapSession
from studymind.widgets import ConceptPromptDialog, MapsSidebar, OutlineView, confirm_delete

logger = logging.getLogger(__name__)

LAYOUT_LABELS = ["Hierarchical", "Radial"]


class StudyMindWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, db: Database):
        super().__init__(application=app)
        self.db = db
        self.current_map: Optional[SavedMap] = None
        self.exporter = MindMapExporter()

        self.set_title("StudyMind")
        self.set_default_size(1400, 900)

        self._build_ui()
        self._setup_shortcuts()

        maps = self.db.get_all_maps()
        if maps:
            self._load_map(maps[0])
        else:
            self._show_welcome()

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.main_paned = Gtk.Paned(orientation=Gtk.Orientation.HORIZONTAL)
        self.main_paned.set_vexpand(True)

        # Left sidebar
        self.sidebar = MapsSidebar(self.db)
        self.sidebar.on_map_selected = self._on_map_selected
        self.sidebar.on_new_map = self._on_new_map
        self.sidebar.on_map_delete = self._on_map_delete
        self.sidebar.on_map_rename = self._on_map_rename

        self.sidebar_revealer = Gtk.Revealer()
        self.sidebar_revealer.set_transition_type(Gtk.RevealerTransitionType.SLIDE_RIGHT)
        self.sidebar_revealer.set_reveal_child(True)
        self.sidebar_revealer.set_child(self.sidebar)

        self.main_paned.set_start_child(self.sidebar_revealer)
        self.main_paned.set_shrink_start_child(False)
        self.main_paned.set_resize_start_child(False)

        # Canvas
        self.canvas = MindMapCanvas()
        self.canvas.on_add_requested = self._prompt_add_child
        self.canvas.on_rename_requested = self._prompt_rename
        self.canvas.on_delete_requested = self._confirm_node_delete

        canvas_frame = Gtk.Frame()
        canvas_frame.set_child(self.canvas)

        # Map and outline pages, switched from the header
        self.outline_view = OutlineView()
        self.view_stack = Gtk.Stack()
        self.view_stack.set_transition_type(Gtk.StackTransitionType.CROSSFADE)
        self.view_stack.add_titled(canvas_frame, "map", "Map")
        self.view_stack.add_titled(self.outline_view, "outline", "Outline")
        self.view_stack.connect("notify::visible-child-name", lambda s, p: self._refresh_outline())
        self.view_switcher.set_stack(self.view_stack)
        self.main_paned.set_end_child(self.view_stack)

        # Wrap in toast overlay for in-app notifications
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(self.main_paned)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()

        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")

        menu = Gio.Menu()

        file_section = Gio.Menu()
        file_section.append("New Map", "win.new-map")
        file_section.append("Import Mind Map...", "win.import-json")
        file_section.append("Delete Map", "win.delete-map")
        menu.append_section(None, file_section)

        export_section = Gio.Menu()
        export_menu = Gio.Menu()
        export_menu.append("Export as PNG...", "win.export-png")
        export_menu.append("Export as PDF...", "win.export-pdf")
        export_menu.append("Export as Markdown...", "win.export-md")
        export_menu.append("Export as Text...", "win.export-txt")
        export_menu.append("Export as JSON...", "win.export-json")
        export_section.append_submenu("Export", export_menu)
        menu.append_section(None, export_section)

        view_section = Gio.Menu()
        view_section.append("Toggle Sidebar", "win.toggle-sidebar")
        view_section.append("Toggle Grid", "win.toggle-grid")
        view_section.append("Toggle Deep Focus", "win.toggle-deep-focus")
        view_section.append("Auto-balance Layout", "win.auto-balance")
        view_section.append("Zoom to Fit", "win.zoom-fit")
        view_section.append("Zoom to 100%", "win.zoom-100")
        view_section.append("Center on Root", "win.center-view")
        menu.append_section(None, view_section)

        help_section = Gio.Menu()
        help_section.append("About StudyMind", "win.show-about")
        menu.append_section(None, help_section)

        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_start(menu_btn)

        sidebar_btn = Gtk.ToggleButton()
        sidebar_btn.set_icon_name("sidebar-show-symbolic")
        sidebar_btn.set_tooltip_text("Toggle Sidebar (Ctrl+B)")
        sidebar_btn.set_active(True)
        sidebar_btn.connect("toggled", self._on_sidebar_toggled)
        self.sidebar_btn = sidebar_btn
        header.pack_start(sidebar_btn)

        # Title (editable map title)
        self.title_entry = Gtk.Entry()
        self.title_entry.set_text("StudyMind")
        self.title_entry.set_max_width_chars(25)
        self.title_entry.add_css_class("flat")
        self.title_entry.connect("activate", self._on_title_changed)
        focus_ctrl = Gtk.EventControllerFocus()
        focus_ctrl.connect("leave", lambda c: self._on_title_changed(self.title_entry))
        self.title_entry.add_controller(focus_ctrl)
        header.pack_start(self.title_entry)

        self.view_switcher = Gtk.StackSwitcher()
        header.set_title_widget(self.view_switcher)

        # Zoom controls
        for icon, tooltip, callback in (
            ("zoom-fit-best-symbolic", "Fit to View (Ctrl+0)", self._zoom_fit),
            ("zoom-in-symbolic", "Zoom In (Ctrl++)", self._zoom_in),
            ("zoom-out-symbolic", "Zoom Out (Ctrl+-)", self._zoom_out),
        ):
            button = Gtk.Button()
            button.set_icon_name(icon)
            button.set_tooltip_text(tooltip)
            button.add_css_class("flat")
            button.connect("clicked", lambda b, cb=callback: cb())
            header.pack_end(button)

        # Layout mode dropdown
        self.layout_dropdown = Gtk.DropDown(model=Gtk.StringList.new(LAYOUT_LABELS))
        self.layout_dropdown.set_tooltip_text("Layout mode")
        self.layout_dropdown.set_selected(0)
        self._layout_handler = self.layout_dropdown.connect(
            "notify::selected", self._on_layout_changed
        )
        header.pack_end(self.layout_dropdown)

        return header

    def _setup_shortcuts(self):
        """Setup window actions and keyboard shortcuts."""
        actions = [
            ("new-map", self._on_new_map, "<Control>n"),
            ("import-json", self._import_json, "<Control>o"),
            ("delete-map", self._on_delete_map, None),
            ("toggle-sidebar", self._toggle_sidebar, "<Control>b"),
            ("toggle-grid", self._toggle_grid, None),
            ("toggle-deep-focus", self._toggle_deep_focus, None),
            ("auto-balance", self._auto_balance_layout, None),
            ("zoom-fit", self._zoom_fit, "<Control>0"),
            ("zoom-100", self._zoom_100, "<Control>1"),
            ("center-view", self._center_view, "<Control>Home"),
            ("show-about", self._show_about, None),
            ("export-png", lambda: self._export("png"), None),
            ("export-pdf", lambda: self._export("pdf"), None),
            ("export-md", lambda: self._export("md"), "<Control>e"),
            ("export-txt", lambda: self._export("txt"), None),
            ("export-json", lambda: self._export("json"), None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]

        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)
            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

    # ==================== Maps ====================

    def _new_session(self, saved: SavedMap) -> MindMapSession:
        session = MindMapSession(saved.tree, settings=saved.settings)
        session.on_tree_changed = lambda tree: self._persist_tree(saved, tree)
        return session

    def _load_map(self, saved: SavedMap, session: Optional[MindMapSession] = None):
        """Show a saved map in the canvas."""
        self.current_map = saved
        if session is None:
            session = self._new_session(saved)
        else:
            session.set_layout_mode(saved.settings.layout_mode)
            saved.settings = session.settings
            session.on_tree_changed = lambda tree: self._persist_tree(saved, tree)
        self.canvas.set_session(session)
        self.title_entry.set_text(saved.title)
        self._refresh_outline()
        self.sidebar.select_map(saved.id)

        # Sync layout dropdown to map settings without re-triggering it
        self.layout_dropdown.handler_block(self._layout_handler)
        self.layout_dropdown.set_selected(LAYOUT_MODES.index(saved.settings.layout_mode))
        self.layout_dropdown.handler_unblock(self._layout_handler)

    def _show_welcome(self):
        """Show the empty state when no maps exist."""
        self.current_map = None
        self.title_entry.set_text("StudyMind")
        self.canvas.set_session(MindMapSession())
        self._refresh_outline()

    def _persist_tree(self, saved: SavedMap, tree: MindMapTree):
        saved.tree = tree
        self._save_map(saved)
        self._refresh_outline()

    def _refresh_outline(self):
        if self.view_stack.get_visible_child_name() == "outline":
            self.outline_view.show_tree(self.canvas.session.tree)

    def _save_map(self, saved: SavedMap) -> bool:
        try:
            self.db.update_map(saved)
        except sqlite3.Error as exc:
            logger.error("Failed to save map %d: %s", saved.id, exc)
            self._show_toast(f"Could not save: {exc}")
            return False
        self.sidebar.refresh()
        self.sidebar.select_map(saved.id)
        return True

    def _on_map_selected(self, saved: SavedMap):
        if self.current_map and self.current_map.id == saved.id:
            return
        self._load_map(saved)

    def _on_new_map(self, *args):
        """Create a new map with a single root concept."""
        session = MindMapSession()
        session.load_payload([{"concept": "Central Topic"}])
        saved = self.db.create_map("Untitled Map", session.tree)
        self.sidebar.refresh()
        self._load_map(saved, session)

        self.title_entry.grab_focus()
        self.title_entry.select_region(0, -1)

    def _on_delete_map(self):
        if self.current_map:
            self._on_map_delete(self.current_map)

    def _on_map_delete(self, saved: SavedMap):
        confirm_delete(
            self, "Delete Map?",
            f"Are you sure you want to delete \"{saved.title}\"? This cannot be undone.",
            lambda: self._delete_map(saved),
        )

    def _delete_map(self, saved: SavedMap):
        self.db.delete_map(saved.id)
        self.sidebar.refresh()
        if self.current_map and self.current_map.id == saved.id:
            maps = self.db.get_all_maps()
            if maps:
                self._load_map(maps[0])
            else:
                self._show_welcome()

    def _on_map_rename(self, saved: SavedMap):
        dialog = ConceptPromptDialog(self, "Rename Map", saved.title, "Rename")
        dialog.on_submit = lambda text: self._rename_map(saved, text)
        dialog.present()

    def _rename_map(self, saved: SavedMap, title: str):
        title = title.strip()
        if not title or title == saved.title:
            return
        saved.title = title
        if self._save_map(saved) and self.current_map and self.current_map.id == saved.id:
            self.title_entry.set_text(title)

    def _on_title_changed(self, entry):
        if self.current_map:
            self._rename_map(self.current_map, entry.get_text())

    def _on_layout_changed(self, dropdown, _param):
        index = dropdown.get_selected()
        mode = LAYOUT_MODES[index] if index < len(LAYOUT_MODES) else LAYOUT_HIERARCHICAL
        session = self.canvas.session
        if session.set_layout_mode(mode):
            self.canvas.zoom_to_fit()
            if self.current_map:
                self.current_map.settings = session.settings
                self._save_map(self.current_map)

    # ==================== Concept edits ====================

    def _prompt_add_child(self, parent: PositionedNode):
        dialog = ConceptPromptDialog(self, f"Add a concept under \"{parent.concept}\"",
                                     action_label="Add")
        dialog.on_submit = lambda text: self._after_edit(self.canvas.session.add_child(text))
        dialog.present()

    def _prompt_rename(self, node: PositionedNode):
        dialog = ConceptPromptDialog(self, "Rename Concept", node.concept, "Rename")
        dialog.on_submit = lambda text: self._after_edit(self.canvas.session.rename(text))
        dialog.present()

    def _confirm_node_delete(self, node: PositionedNode):
        count = len(self.canvas.session.tree.descendants(node.id))
        body = f"Delete \"{node.concept}\""
        body += f" and its {count} sub-concepts?" if count else "?"
        confirm_delete(self, "Delete Concept?", body,
                       lambda: self._after_edit(self.canvas.session.delete()))

    def _after_edit(self, result):
        if result.reason and not result.changed:
            logger.debug("Edit %s not applied: %s", result.kind.value, result.reason)
        self.canvas.queue_draw()

    # ==================== Import ====================

    def _import_json(self):
        """Import a generated mind map (or full study data) from JSON."""
        dialog = Gtk.FileDialog()
        dialog.set_title("Import Mind Map")

        filter_json = Gtk.FileFilter()
        filter_json.set_name("JSON Files")
        filter_json.add_pattern("*.json")
        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(filter_json)
        dialog.set_filters(filters)

        dialog.open(self, None, self._on_import_response)

    def _on_import_response(self, dialog, result):
        try:
            file = dialog.open_finish(result)
        except GLib.Error:
            return  # User cancelled
        if not file or not file.get_path():
            return

        path = file.get_path()
        session = MindMapSession()
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            session.load_document(data)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, RecursionError,
                MindMapValidationError, StudyDataError) as exc:
            logger.warning("Import of %s failed: %s", path, exc)
            self._show_toast(f"Import failed: {exc}")
            return

        title = session.tree.root.concept if not session.tree.is_empty else file.get_basename()
        saved = self.db.create_map(title, session.tree)
        self.sidebar.refresh()
        self._load_map(saved, session)
        self._show_toast(f"Imported {len(session.tree)} concepts")

    # ==================== Export ====================

    EXPORT_FORMATS = {
        "png": ("PNG Images", "*.png"),
        "pdf": ("PDF Documents", "*.pdf"),
        "md": ("Markdown Files", "*.md"),
        "txt": ("Text Files", "*.txt"),
        "json": ("JSON Files", "*.json"),
    }

    def _export(self, fmt: str):
        """Ask for a target file and export the current map."""
        if not self.current_map:
            return

        name, pattern = self.EXPORT_FORMATS[fmt]
        dialog = Gtk.FileDialog()
        dialog.set_title(f"Export as {fmt.upper()}")
        dialog.set_initial_name(f"{self.current_map.title}.{fmt}")
        dialog.set_initial_folder(Gio.File.new_for_path(str(get_export_dir())))

        file_filter = Gtk.FileFilter()
        file_filter.set_name(name)
        file_filter.add_pattern(pattern)
        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(file_filter)
        dialog.set_filters(filters)

        dialog.save(self, None, lambda d, r: self._on_export_response(d, r, fmt))

    def _exporter_for(self, fmt: str) -> Callable[[str], bool]:
        session = self.canvas.session
        return {
            "png": lambda path: self.exporter.export_png(session.layout, path),
            "pdf": lambda path: self.exporter.export_pdf(session.layout, path,
                                                         title=self.current_map.title),
            "md": lambda path: self.exporter.export_markdown(session.tree, path,
                                                             session.study_data),
            "txt": lambda path: self.exporter.export_text(session.tree, path),
            "json": lambda path: self.exporter.export_json(session.tree, path),
        }[fmt]

    def _on_export_response(self, dialog, result, fmt: str):
        try:
            file = dialog.save_finish(result)
        except GLib.Error:
            return  # User cancelled
        if not file or not self.current_map:
            return

        filepath = file.get_path()
        if not filepath:
            self._show_toast("Export failed: selected location is not a local file")
            return
        try:
            ok = self._exporter_for(fmt)(filepath)
        except (OSError, MemoryError) as exc:
            logger.error("Export to %s failed: %s", filepath, exc)
            ok = False
        self._show_toast(f"Exported to {filepath}" if ok else "Export failed")

    # ==================== Actions ====================

    def _on_sidebar_toggled(self, button):
        self.sidebar_revealer.set_reveal_child(button.get_active())

    def _toggle_sidebar(self):
        revealed = self.sidebar_revealer.get_reveal_child()
        self.sidebar_revealer.set_reveal_child(not revealed)
        self.sidebar_btn.set_active(not revealed)

    def _toggle_grid(self):
        settings = self.canvas.session.settings
        settings.show_grid = not settings.show_grid
        if self.current_map:
            self._save_map(self.current_map)
        self.canvas.queue_draw()

    def _toggle_deep_focus(self):
        session = self.canvas.session
        session.set_deep_focus(not session.settings.deep_focus)
        if self.current_map:
            self._save_map(self.current_map)
        self.canvas.queue_draw()

    def _auto_balance_layout(self):
        """Drop every manual position."""
        if self.canvas.session.clear_positions().changed:
            self.canvas.zoom_to_fit()

    def _zoom_fit(self):
        self.canvas.zoom_to_fit()

    def _zoom_100(self):
        self.canvas.zoom_to_100()

    def _center_view(self):
        self.canvas.center_view()

    def _zoom_in(self):
        self.canvas.zoom_in()

    def _zoom_out(self):
        self.canvas.zoom_out()

    def _show_about(self):
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="StudyMind",
            application_icon="accessories-dictionary",
            developer_name="StudyMind Project",
            version=__version__,
            license_type=Gtk.License.MIT_X11,
            comments="Interactive concept maps for studying",
        )
        about.present()

    def _show_toast(self, message: str):
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class StudyMindApp(Adw.Application):
    """Main application class."""

    def __init__(self):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.db: Optional[Database] = None
        self.window: Optional[StudyMindWindow] = None

    def do_startup(self):
        Adw.Application.do_startup(self)
        self.db = Database()

    def do_activate(self):
        if not self.window:
            self.window = StudyMindWindow(self, self.db)
        self.window.present()

    def do_shutdown(self):
        if self.db:
            self.db.close()
        Adw.Application.do_shutdown(self)


def main() -> int:
    """Application entry point."""
    app = StudyMindApp()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())
