"""
Tests for the concept tree model and payload ingestion.
"""

import logging

import pytest

from studymind.model import (
    MAX_DEPTH, ConceptNode, MindMapTree, MindMapValidationError, NodeStyle,
    SequentialIdGenerator, UuidIdGenerator, ingest,
)


# ============================================================
# INGESTION
# ============================================================

class TestIngest:
    """Building trees from the external list form."""

    def test_keeps_explicit_ids_and_order(self, sample_tree):
        assert sample_tree.root_id == "root"
        assert [c.id for c in sample_tree.root.children] == ["a", "g", "e"]
        assert len(sample_tree) == 8

    def test_assigns_missing_ids(self, id_generator):
        tree = ingest([{"concept": "Root", "subConcepts": [{"concept": "Child"}]}],
                      id_generator)
        assert tree.root_id == "new-1"
        assert tree.root.children[0].id == "new-2"

    def test_generated_ids_skip_ids_already_in_payload(self, id_generator):
        payload = [{"concept": "Root", "subConcepts": [{"id": "new-1", "concept": "Pinned"}]}]
        tree = ingest(payload, id_generator)
        assert tree.root_id == "new-2"
        assert tree.root.children[0].id == "new-1"

    def test_empty_list_gives_empty_tree(self):
        tree = ingest([])
        assert tree.is_empty
        assert len(tree) == 0
        assert tree.root_id is None

    def test_only_first_root_is_used(self, caplog):
        with caplog.at_level(logging.WARNING, logger="studymind.model"):
            tree = ingest([{"concept": "One"}, {"concept": "Two"}], SequentialIdGenerator())
        assert tree.root.concept == "One"
        assert len(tree) == 1
        assert "only the first" in caplog.text

    def test_concept_text_is_trimmed(self):
        tree = ingest([{"concept": "  Photosynthesis \n"}], SequentialIdGenerator())
        assert tree.root.concept == "Photosynthesis"

    def test_reads_style_and_position(self):
        payload = [{
            "id": "r", "concept": "Root", "color": "#fef08a", "textColor": "#422006",
            "isBold": True, "isItalic": True, "x": 12, "y": -4.5,
        }]
        root = ingest(payload).root
        assert root.style == NodeStyle("#fef08a", "#422006", True, True)
        assert (root.position_x, root.position_y) == (12.0, -4.5)
        assert root.has_manual_position

    def test_uuid_ids_by_default(self):
        tree = ingest([{"concept": "Root"}])
        assert tree.root_id.startswith("id-")
        assert UuidIdGenerator().next() != UuidIdGenerator().next()

    @pytest.mark.parametrize("payload", [
        {"concept": "not a list"},
        "Biology",
        None,
        ["not an object"],
        [{"concept": ""}],
        [{"concept": "   "}],
        [{"name": "missing concept"}],
        [{"concept": 42}],
        [{"concept": "Root", "subConcepts": "Cells"}],
        [{"concept": "Root", "id": 7}],
        [{"concept": "Root", "x": "left"}],
        [{"concept": "Root", "y": True}],
        [{"concept": "Root", "color": 5}],
        [{"concept": "Root", "textColor": ["#ffffff"]}],
        [{"concept": "Root", "isBold": "false"}],
        [{"concept": "Root", "isItalic": 1}],
    ])
    def test_rejects_malformed_payloads(self, payload):
        with pytest.raises(MindMapValidationError):
            ingest(payload)

    def test_rejects_duplicate_ids(self):
        payload = [{"id": "x", "concept": "Root", "subConcepts": [
            {"id": "y", "concept": "A"},
            {"id": "y", "concept": "B"},
        ]}]
        with pytest.raises(MindMapValidationError, match="duplicate id 'y'"):
            ingest(payload)

    def test_error_names_the_bad_node(self):
        payload = [{"concept": "Root", "subConcepts": [{"concept": "A"}, {"concept": ""}]}]
        with pytest.raises(MindMapValidationError, match=r"subConcepts\[1\]"):
            ingest(payload)

    def test_blank_colors_and_null_flags_mean_unset(self):
        payload = [{"concept": "Root", "color": "", "textColor": None,
                    "isBold": None, "isItalic": False}]
        assert ingest(payload).root.style == NodeStyle()

    def test_rejects_overly_deep_nesting(self):
        payload = {"concept": "Leaf"}
        for level in range(3000):
            payload = {"concept": f"Level {level}", "subConcepts": [payload]}
        with pytest.raises(MindMapValidationError, match="nested deeper"):
            ingest([payload])

    def test_accepts_nesting_up_to_the_limit(self):
        payload = {"concept": "Leaf"}
        for level in range(MAX_DEPTH - 1):
            payload = {"concept": f"Level {level}", "subConcepts": [payload]}
        tree = ingest([payload])
        assert len(tree) == MAX_DEPTH
        assert max(tree.depth_of(n.id) for n in tree.iter_nodes()) == MAX_DEPTH - 1


# ============================================================
# TREE QUERIES
# ============================================================

class TestTreeIndex:
    """Id lookups on an ingested tree."""

    def test_get_and_contains(self, sample_tree):
        assert sample_tree.get("c").concept == "Mitochondria"
        assert sample_tree.get("missing") is None
        assert "g1" in sample_tree
        assert not sample_tree.contains("missing")

    def test_parent_and_depth(self, sample_tree):
        assert sample_tree.parent_of("root") is None
        assert sample_tree.parent_of("c") == "b"
        assert sample_tree.depth_of("root") == 0
        assert sample_tree.depth_of("c") == 3

    def test_ancestors_and_path(self, sample_tree):
        assert sample_tree.ancestors("c") == ["b", "a", "root"]
        assert sample_tree.path_to("c") == ["root", "a", "b", "c"]
        assert sample_tree.path_to("missing") == []

    def test_descendants_in_pre_order(self, sample_tree):
        assert sample_tree.descendants("root") == ["a", "b", "c", "g", "g1", "g2", "e"]
        assert sample_tree.descendants("e") == []

    def test_iter_nodes_is_pre_order(self, sample_tree):
        assert [n.id for n in sample_tree.iter_nodes()] == [
            "root", "a", "b", "c", "g", "g1", "g2", "e",
        ]

    def test_parent_map_skips_root(self, sample_tree):
        parents = sample_tree.parent_map()
        assert "root" not in parents
        assert parents["g2"] == "g"

    def test_first_duplicate_wins_in_index(self):
        dup = ConceptNode("x", "Second")
        tree = MindMapTree(ConceptNode("r", "Root", (ConceptNode("x", "First"), dup)))
        assert tree.get("x").concept == "First"

    def test_equality_follows_structure(self, sample_payload):
        one = ingest(sample_payload)
        two = ingest(sample_payload)
        assert one == two
        assert hash(one) == hash(two)

    def test_search_matches_concepts_case_insensitively(self, sample_tree):
        assert sample_tree.search("rna") == ["g2"]
        assert sample_tree.search("  GEN ") == ["g"]
        assert sample_tree.search("o") == ["root", "b", "c", "e"]

    def test_search_with_no_match_or_blank_query(self, sample_tree):
        assert sample_tree.search("photosynthesis") == []
        assert sample_tree.search("   ") == []
        assert MindMapTree.empty().search("cell") == []


class TestSerialization:
    """External list form and JSON."""

    def test_payload_uses_camel_case(self):
        payload = [{"id": "r", "concept": "Root", "textColor": "#000000", "isBold": True,
                    "subConcepts": [{"id": "c", "concept": "Child"}]}]
        out = ingest(payload).to_payload()
        assert out == [{
            "id": "r", "concept": "Root", "textColor": "#000000", "isBold": True,
            "subConcepts": [{"id": "c", "concept": "Child", "subConcepts": []}],
        }]

    def test_empty_tree_payload(self):
        assert MindMapTree.empty().to_payload() == []
        assert MindMapTree.from_json(None).is_empty
        assert MindMapTree.from_json("").is_empty

    def test_from_json_restores_tree(self, sample_tree):
        assert MindMapTree.from_json(sample_tree.to_json()) == sample_tree

    def test_from_json_rejects_garbage(self):
        with pytest.raises(MindMapValidationError, match="not valid JSON"):
            MindMapTree.from_json("{not json")

    def test_from_json_rejects_runaway_nesting(self):
        with pytest.raises(MindMapValidationError):
            MindMapTree.from_json("[" * 100000)

    def test_from_payload_matches_ingest(self, sample_payload, sample_tree):
        assert MindMapTree.from_payload(sample_payload) == sample_tree
