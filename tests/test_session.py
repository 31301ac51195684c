"""
Tests for the per-map session that ties tree, layout, view and
interaction state together.
"""

import logging

import pytest

from studymind.config import LAYOUT_HIERARCHICAL, LAYOUT_RADIAL, MapSettings
from studymind.generation import GenerationOptions, StudyData, StudyDataError
from studymind.model import MindMapValidationError
from studymind.mutation import EditStatus
from studymind.session import MindMapSession


def _click(session, node_id):
    pn = session.layout.by_id[node_id]
    sx, sy = session.viewport.world_to_screen(pn.x, pn.y)
    return session.pointer_clicked(sx, sy)


class _CannedGenerator:
    """Returns the same study data for every request."""

    def __init__(self, data):
        self.data = data
        self.calls = []

    def generate(self, text, options):
        self.calls.append((text, options))
        return StudyData.from_dict(self.data)

    def answer(self, question, context):
        return ""


class TestLoading:
    """Replacing the whole tree."""

    def test_empty_session(self):
        session = MindMapSession()
        assert session.tree.is_empty
        assert len(session.layout) == 0
        assert session.selected_node is None

    def test_initial_layout(self, session):
        assert len(session.layout) == 8
        assert session.layout.mode == LAYOUT_HIERARCHICAL

    def test_load_payload_resets_interaction(self, session, sample_payload):
        _click(session, "g")
        session.load_payload(sample_payload)
        assert session.interaction.state.selected_id is None

    def test_invalid_payload_keeps_current_tree(self, session, caplog):
        before = session.tree
        with caplog.at_level(logging.WARNING, logger="studymind.session"):
            with pytest.raises(MindMapValidationError):
                session.load_payload([{"concept": ""}])
        assert session.tree is before
        assert "Rejected" in caplog.text

    def test_load_study_data(self, sample_payload):
        session = MindMapSession()
        data = StudyData.from_dict({"summary": "Life", "mindMap": sample_payload})
        session.load_study_data(data)
        assert session.study_data is data
        assert session.tree.root.concept == "Biology"

    def test_generate_from_text(self, sample_payload):
        generator = _CannedGenerator({"keyInsight": "Cells", "mindMap": sample_payload})
        session = MindMapSession()
        tree = session.generate_from_text(generator, "Notes on biology")
        assert generator.calls == [("Notes on biology", GenerationOptions())]
        assert tree is session.tree
        assert len(session.tree) == 8
        assert session.study_data.key_insight == "Cells"

    def test_generated_bad_map_keeps_current_tree(self, session):
        before = session.tree
        generator = _CannedGenerator({"mindMap": [{"concept": "  "}]})
        with pytest.raises(MindMapValidationError):
            session.generate_from_text(generator, "text")
        assert session.tree is before
        assert session.study_data is None

    def test_load_document_reads_study_data_object(self, sample_payload):
        session = MindMapSession()
        session.load_document({"summary": "Life", "mindMap": sample_payload})
        assert session.study_data.summary == "Life"
        assert len(session.tree) == 8

    def test_load_document_reads_bare_payload(self, sample_payload):
        session = MindMapSession()
        session.load_document(sample_payload)
        assert session.study_data is None
        assert session.tree.root.concept == "Biology"

    @pytest.mark.parametrize("document, error", [
        ({"mindMap": [{"concept": "X"}], "flashcards": ["oops"]}, StudyDataError),
        ({"mindMap": {"concept": "X"}}, MindMapValidationError),
        ("Biology", MindMapValidationError),
        ([{"concept": "X", "color": 5}], MindMapValidationError),
    ])
    def test_bad_document_keeps_current_tree(self, session, document, error):
        before = session.tree
        with pytest.raises(error):
            session.load_document(document)
        assert session.tree is before
        assert session.study_data is None

    def test_layout_callback(self, session, sample_payload):
        seen = []
        session.on_layout_changed = seen.append
        session.load_payload(sample_payload)
        assert seen == [session.layout]


class TestEdits:
    """Edits run through the selection and relayout on success."""

    def test_add_child_relayouts_and_notifies(self, session):
        changed = []
        session.on_tree_changed = changed.append
        _click(session, "e")
        result = session.add_child("Natural selection")
        assert result.changed
        assert changed == [session.tree]
        assert "new-1" in session.layout.by_id
        assert session.selected_node.id == "e"

    def test_noop_does_not_notify(self, session):
        changed = []
        session.on_tree_changed = changed.append
        _click(session, "e")
        assert session.rename("Evolution").status is EditStatus.NOOP
        assert changed == []

    def test_blocked_root_delete_is_logged(self, session, caplog):
        _click(session, "root")
        with caplog.at_level(logging.INFO, logger="studymind.mutation"):
            result = session.delete()
        assert result.status is EditStatus.BLOCKED
        assert len(session.tree) == 8
        assert "Refused to delete root" in caplog.text

    def test_delete_selects_parent(self, session):
        _click(session, "g1")
        session.delete()
        assert "g1" not in session.tree
        assert session.selected_node.id == "g"

    def test_style(self, session):
        _click(session, "a")
        session.update_style(color="#fecaca")
        assert session.layout.by_id["a"].color == "#fecaca"

    def test_drag_pins_node(self, session):
        result = session.drag_node("e", 500, 90)
        assert result.changed
        assert (session.layout.by_id["e"].x, session.layout.by_id["e"].y) == (500, 90)
        assert session.clear_positions().changed
        assert session.layout.by_id["e"].x == pytest.approx(285)

    def test_drag_ignored_in_radial_mode(self, session):
        session.set_layout_mode(LAYOUT_RADIAL)
        result = session.drag_node("e", 500, 90)
        assert result.status is EditStatus.NOOP
        assert not session.tree.get("e").has_manual_position


class TestSettings:
    """Layout mode and deep focus."""

    def test_switch_layout_mode(self, session):
        assert session.set_layout_mode(LAYOUT_RADIAL)
        assert session.layout.mode == LAYOUT_RADIAL
        assert (session.layout.root.x, session.layout.root.y) == (0, 0)
        assert not session.set_layout_mode(LAYOUT_RADIAL)

    def test_switch_keeps_selection(self, session):
        _click(session, "g")
        session.set_layout_mode(LAYOUT_RADIAL)
        assert session.selected_node.id == "g"

    def test_deep_focus(self, session):
        _click(session, "a")
        session.set_deep_focus(True)
        assert session.settings.deep_focus
        assert session.interaction.focused_ids == {"a", "b", "c"}

    def test_settings_from_map(self, sample_tree):
        session = MindMapSession(sample_tree, settings=MapSettings(LAYOUT_RADIAL, True))
        assert session.layout.mode == LAYOUT_RADIAL
        assert session.interaction.deep_focus


class TestPointer:
    """Screen-space input."""

    def test_hit_test_uses_view_transform(self, session):
        session.viewport.pan(100, 50)
        e = session.layout.by_id["e"]
        assert session.hit_test(e.x + 100, e.y + 50) is e
        assert session.hit_test(e.x, e.y - 60) is None

    def test_hover_and_leave(self, session):
        g1 = session.layout.by_id["g1"]
        assert session.pointer_moved(g1.x, g1.y)
        assert session.interaction.highlighted_ids == {"g1", "g", "root"}
        assert session.pointer_left()

    def test_click_background_clears_selection(self, session):
        _click(session, "g")
        assert session.pointer_clicked(-5000, -5000)
        assert session.selected_node is None


class TestView:
    """Viewport helpers."""

    def test_fit_then_visible(self, session):
        assert session.fit_to_view()
        assert len(session.visible_nodes()) == 8

    def test_zoom_buttons_keep_selected_node_in_place(self, session):
        _click(session, "e")
        e = session.layout.by_id["e"]
        before = session.viewport.world_to_screen(e.x, e.y)
        assert session.zoom_in()
        assert session.viewport.world_to_screen(e.x, e.y) == pytest.approx(before)
        assert session.zoom_out()
        assert session.viewport.zoom == pytest.approx(1.0)
