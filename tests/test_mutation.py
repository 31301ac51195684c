"""
Tests for structural edits.

Every edit must leave the input tree untouched and share unchanged
subtrees with the result.
"""

import pytest

from studymind.model import MAX_DEPTH, SequentialIdGenerator, ingest
from studymind.mutation import EditKind, EditStatus, MutationEngine


@pytest.fixture
def engine(id_generator):
    return MutationEngine(id_generator)


def _all_ids(node):
    """Every id in the subtree, duplicates included."""
    return [node.id] + [i for child in node.children for i in _all_ids(child)]


class TestAddChild:
    """Appending new leaves."""

    def test_appends_last_child(self, engine, sample_tree):
        result = engine.add_child(sample_tree, "g", "  Proteins ")
        assert result.status is EditStatus.APPLIED
        assert result.kind is EditKind.ADD_CHILD
        assert result.node_id == "new-1"
        g = result.tree.get("g")
        assert [c.concept for c in g.children] == ["DNA", "RNA", "Proteins"]
        assert result.tree.get("new-1").is_leaf

    def test_input_tree_is_unchanged(self, engine, sample_tree):
        before = sample_tree.to_payload()
        engine.add_child(sample_tree, "g", "Proteins")
        assert sample_tree.to_payload() == before
        assert len(sample_tree) == 8

    def test_untouched_subtrees_are_shared(self, engine, sample_tree):
        result = engine.add_child(sample_tree, "g", "Proteins")
        assert result.tree.get("a") is sample_tree.get("a")
        assert result.tree.get("e") is sample_tree.get("e")
        assert result.tree.get("g") is not sample_tree.get("g")
        assert result.tree.root is not sample_tree.root

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_text_is_a_noop(self, engine, sample_tree, text):
        result = engine.add_child(sample_tree, "g", text)
        assert result.status is EditStatus.NOOP
        assert result.tree is sample_tree

    def test_unknown_parent_is_a_noop(self, engine, sample_tree):
        result = engine.add_child(sample_tree, "missing", "Orphan")
        assert result.status is EditStatus.NOOP
        assert result.reason == "node not found"

    def test_fresh_id_skips_existing_ids(self, engine, sample_tree):
        first = engine.add_child(sample_tree, "e", "Natural selection")
        restarted = MutationEngine(SequentialIdGenerator(prefix="new"))
        second = restarted.add_child(first.tree, "e", "Genetic drift")
        assert first.node_id == "new-1"
        assert second.node_id == "new-2"

    def test_depth_limit_blocks_deeper_children(self, engine):
        payload = {"id": "deepest", "concept": "Leaf"}
        for level in range(MAX_DEPTH - 1):
            payload = {"concept": f"Level {level}", "subConcepts": [payload]}
        tree = ingest([payload])
        result = engine.add_child(tree, "deepest", "Too deep")
        assert result.status is EditStatus.BLOCKED
        assert result.tree is tree
        assert engine.add_child(tree, tree.parent_of("deepest"), "Sibling").changed


class TestRename:
    """Changing concept text."""

    def test_renames(self, engine, sample_tree):
        result = engine.rename(sample_tree, "c", "Chloroplast")
        assert result.changed
        assert result.tree.get("c").concept == "Chloroplast"
        assert sample_tree.get("c").concept == "Mitochondria"

    def test_same_text_is_a_noop(self, engine, sample_tree):
        result = engine.rename(sample_tree, "c", " Mitochondria ")
        assert result.status is EditStatus.NOOP
        assert result.tree is sample_tree

    def test_empty_text_is_a_noop(self, engine, sample_tree):
        assert engine.rename(sample_tree, "c", " ").status is EditStatus.NOOP

    def test_root_can_be_renamed(self, engine, sample_tree):
        result = engine.rename(sample_tree, "root", "Life Science")
        assert result.tree.root.concept == "Life Science"

    def test_children_are_kept(self, engine, sample_tree):
        result = engine.rename(sample_tree, "g", "Heredity")
        assert result.tree.get("g").children is sample_tree.get("g").children


class TestDelete:
    """Removing subtrees."""

    def test_removes_whole_subtree(self, engine, sample_tree):
        result = engine.delete(sample_tree, "a")
        assert result.changed
        for gone in ("a", "b", "c"):
            assert gone not in result.tree
        assert len(result.tree) == 5

    def test_root_is_protected(self, engine, sample_tree):
        result = engine.delete(sample_tree, "root")
        assert result.status is EditStatus.BLOCKED
        assert result.tree is sample_tree
        assert not result.changed

    def test_unknown_node_is_a_noop(self, engine, sample_tree):
        assert engine.delete(sample_tree, "missing").status is EditStatus.NOOP

    def test_delete_twice(self, engine, sample_tree):
        once = engine.delete(sample_tree, "g1")
        twice = engine.delete(once.tree, "g1")
        assert twice.status is EditStatus.NOOP
        assert twice.tree is once.tree

    def test_add_then_delete_restores_structure(self, engine, sample_tree):
        added = engine.add_child(sample_tree, "b", "Ribosome")
        removed = engine.delete(added.tree, added.node_id)
        assert removed.tree == sample_tree

    def test_sibling_order_is_kept(self, engine, sample_tree):
        result = engine.delete(sample_tree, "g")
        assert [c.id for c in result.tree.root.children] == ["a", "e"]


class TestReposition:
    """Manual positions."""

    def test_pins_node(self, engine, sample_tree):
        result = engine.reposition(sample_tree, "e", 10, 20.5)
        node = result.tree.get("e")
        assert (node.position_x, node.position_y) == (10.0, 20.5)
        assert not sample_tree.get("e").has_manual_position

    def test_same_position_is_a_noop(self, engine, sample_tree):
        pinned = engine.reposition(sample_tree, "e", 10, 20).tree
        assert engine.reposition(pinned, "e", 10, 20).status is EditStatus.NOOP

    def test_clear_positions(self, engine, sample_tree):
        pinned = engine.reposition(sample_tree, "c", 1, 2).tree
        pinned = engine.reposition(pinned, "root", 3, 4).tree
        cleared = engine.clear_positions(pinned)
        assert cleared.changed
        assert not any(n.has_manual_position for n in cleared.tree.iter_nodes())
        assert cleared.tree == sample_tree

    def test_clear_without_positions_is_a_noop(self, engine, sample_tree):
        assert engine.clear_positions(sample_tree).status is EditStatus.NOOP


class TestUpdateStyle:
    """Style overrides."""

    def test_sets_fields(self, engine, sample_tree):
        result = engine.update_style(sample_tree, "a", color="#fecaca", is_bold=True)
        style = result.tree.get("a").style
        assert style.color == "#fecaca"
        assert style.is_bold
        assert not style.is_italic

    def test_empty_string_resets_color(self, engine, sample_tree):
        colored = engine.update_style(sample_tree, "a", color="#fecaca").tree
        reset = engine.update_style(colored, "a", color="", text_color="")
        assert reset.tree.get("a").style.color is None

    def test_unchanged_style_is_a_noop(self, engine, sample_tree):
        result = engine.update_style(sample_tree, "a", is_bold=False)
        assert result.status is EditStatus.NOOP
        assert result.reason == "unchanged style"

    def test_unknown_node_is_a_noop(self, engine, sample_tree):
        assert engine.update_style(sample_tree, "zz", is_bold=True).status is EditStatus.NOOP


class TestEditSequences:
    """Properties that hold across many edits."""

    def test_ids_stay_unique_and_root_is_stable(self, engine, sample_tree):
        tree = sample_tree
        for parent in ("root", "a", "g1", "root", "e"):
            tree = engine.add_child(tree, parent, f"Under {parent}").tree
        tree = engine.delete(tree, "g").tree
        tree = engine.rename(tree, "new-1", "Renamed").tree
        tree = engine.add_child(tree, "new-1", "Grandchild").tree

        ids = _all_ids(tree.root)
        assert len(ids) == len(set(ids))
        assert tree.root_id == "root"

    def test_add_then_delete_on_lone_root(self, engine):
        lone = ingest([{"id": "root", "concept": "Topic"}])
        added = engine.add_child(lone, "root", "X")
        assert [c.concept for c in added.tree.root.children] == ["X"]
        assert added.node_id != "root"
        removed = engine.delete(added.tree, added.node_id)
        assert removed.tree == lone
        assert len(removed.tree) == 1
