"""Concept tree model, id generation and ingestion for StudyMind."""

import itertools
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)

# Deepest level a mind map may reach; keeps every recursive walk well inside
# the interpreter stack
MAX_DEPTH = 100


class MindMapValidationError(ValueError):
    """Raised when an incoming mind map payload is malformed."""


# ==================== Id generation ====================

class IdGenerator:
    """Source of unique node ids."""

    def next(self) -> str:
        raise NotImplementedError


class UuidIdGenerator(IdGenerator):
    """Random ids, the default for interactive use."""

    def next(self) -> str:
        return f"id-{uuid.uuid4().hex[:12]}"


class SequentialIdGenerator(IdGenerator):
    """Deterministic ids (`node-1`, `node-2`, ...)."""

    def __init__(self, prefix: str = "node", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def next(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"


# ==================== Nodes ====================

@dataclass(frozen=True)
class NodeStyle:
    """Per-node style overrides."""
    color: Optional[str] = None
    text_color: Optional[str] = None
    is_bold: bool = False
    is_italic: bool = False


@dataclass(frozen=True)
class ConceptNode:
    """A node of the canonical concept tree.

    Nodes are immutable; edits build new nodes along the changed path.
    """
    id: str
    concept: str
    children: Tuple["ConceptNode", ...] = ()
    style: NodeStyle = field(default_factory=NodeStyle)
    position_x: Optional[float] = None
    position_y: Optional[float] = None

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def has_manual_position(self) -> bool:
        return self.position_x is not None or self.position_y is not None


class MindMapTree:
    """A rooted concept tree plus a lazily built id index.

    The index maps every id to its node, parent id and depth. It is built
    in pre-order, so the first node carrying a given id wins.
    """

    def __init__(self, root: Optional[ConceptNode] = None):
        self._root = root
        self._nodes: Optional[Dict[str, ConceptNode]] = None
        self._parents: Dict[str, Optional[str]] = {}
        self._depths: Dict[str, int] = {}

    @classmethod
    def empty(cls) -> "MindMapTree":
        return cls(None)

    @property
    def root(self) -> Optional[ConceptNode]:
        return self._root

    @property
    def root_id(self) -> Optional[str]:
        return self._root.id if self._root else None

    @property
    def is_empty(self) -> bool:
        return self._root is None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MindMapTree):
            return NotImplemented
        return self._root == other._root

    def __hash__(self) -> int:
        return hash(self._root)

    def __repr__(self) -> str:
        return f"MindMapTree(root={self.root_id!r}, nodes={len(self)})"

    def __len__(self) -> int:
        return len(self._index())

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._index()

    # ==================== Index ====================

    def _index(self) -> Dict[str, ConceptNode]:
        if self._nodes is None:
            nodes: Dict[str, ConceptNode] = {}
            if self._root is not None:
                stack: List[Tuple[ConceptNode, Optional[str], int]] = [(self._root, None, 0)]
                while stack:
                    node, parent_id, depth = stack.pop()
                    if node.id not in nodes:
                        nodes[node.id] = node
                        self._parents[node.id] = parent_id
                        self._depths[node.id] = depth
                    for child in reversed(node.children):
                        stack.append((child, node.id, depth + 1))
            self._nodes = nodes
        return self._nodes

    def iter_nodes(self) -> Iterator[ConceptNode]:
        """Yield nodes in pre-order."""
        return iter(self._index().values())

    def get(self, node_id: str) -> Optional[ConceptNode]:
        return self._index().get(node_id)

    def contains(self, node_id: str) -> bool:
        return node_id in self._index()

    def parent_of(self, node_id: str) -> Optional[str]:
        self._index()
        return self._parents.get(node_id)

    def depth_of(self, node_id: str) -> Optional[int]:
        self._index()
        return self._depths.get(node_id)

    def parent_map(self) -> Dict[str, str]:
        """Child id -> parent id for every non-root node."""
        self._index()
        return {cid: pid for cid, pid in self._parents.items() if pid is not None}

    def ancestors(self, node_id: str) -> List[str]:
        """Ids from the node's parent up to the root."""
        result = []
        current = self.parent_of(node_id)
        while current is not None:
            result.append(current)
            current = self.parent_of(current)
        return result

    def path_to(self, node_id: str) -> List[str]:
        """Ids from the root down to `node_id` (inclusive)."""
        if not self.contains(node_id):
            return []
        return list(reversed(self.ancestors(node_id))) + [node_id]

    def descendants(self, node_id: str) -> List[str]:
        """Ids of every node below `node_id`, in pre-order."""
        node = self.get(node_id)
        if node is None:
            return []
        result = []
        stack = list(reversed(node.children))
        while stack:
            current = stack.pop()
            result.append(current.id)
            stack.extend(reversed(current.children))
        return result

    def search(self, query: str) -> List[str]:
        """Ids of nodes whose concept contains `query` (case-insensitive), in pre-order."""
        needle = (query or "").strip().casefold()
        if not needle:
            return []
        return [node.id for node in self.iter_nodes() if needle in node.concept.casefold()]

    # ==================== Serialization ====================

    def to_payload(self) -> List[Dict[str, Any]]:
        """Emit the external list form (camelCase keys)."""
        if self._root is None:
            return []
        return [node_to_dict(self._root)]

    def to_json(self) -> str:
        return json.dumps(self.to_payload())

    @classmethod
    def from_payload(cls, payload: Any,
                     id_generator: Optional[IdGenerator] = None) -> "MindMapTree":
        """Same as `ingest`; stored payloads already carry unique ids."""
        return ingest(payload, id_generator)

    @classmethod
    def from_json(cls, data: Optional[str],
                  id_generator: Optional[IdGenerator] = None) -> "MindMapTree":
        if not data:
            return cls.empty()
        try:
            payload = json.loads(data)
        except (json.JSONDecodeError, RecursionError) as exc:
            raise MindMapValidationError(f"Mind map is not valid JSON: {exc}") from exc
        return cls.from_payload(payload, id_generator)


def node_to_dict(node: ConceptNode) -> Dict[str, Any]:
    data: Dict[str, Any] = {"id": node.id, "concept": node.concept}
    if node.style.color:
        data["color"] = node.style.color
    if node.style.text_color:
        data["textColor"] = node.style.text_color
    if node.style.is_bold:
        data["isBold"] = True
    if node.style.is_italic:
        data["isItalic"] = True
    if node.position_x is not None:
        data["x"] = node.position_x
    if node.position_y is not None:
        data["y"] = node.position_y
    data["subConcepts"] = [node_to_dict(child) for child in node.children]
    return data


# ==================== Ingestion ====================

def _optional_number(raw: Dict[str, Any], key: str, where: str) -> Optional[float]:
    value = raw.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MindMapValidationError(f"{where}: '{key}' must be a number")
    return float(value)


def _optional_str(raw: Dict[str, Any], key: str, where: str) -> Optional[str]:
    value = raw.get(key)
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise MindMapValidationError(f"{where}: '{key}' must be a string")
    return value


def _flag(raw: Dict[str, Any], key: str, where: str) -> bool:
    value = raw.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MindMapValidationError(f"{where}: '{key}' must be true or false")
    return value


def _collect_ids(raw: Any, taken: set, where: str, depth: int = 0) -> None:
    """Check node shapes and reserve every id the payload already carries."""
    if depth >= MAX_DEPTH:
        raise MindMapValidationError(f"Mind map is nested deeper than {MAX_DEPTH} levels")
    if not isinstance(raw, dict):
        raise MindMapValidationError(f"{where}: expected an object, got {type(raw).__name__}")

    node_id = raw.get("id")
    if node_id not in (None, ""):
        if not isinstance(node_id, str):
            raise MindMapValidationError(f"{where}: 'id' must be a string")
        if node_id in taken:
            raise MindMapValidationError(f"{where}: duplicate id '{node_id}'")
        taken.add(node_id)

    raw_children = raw.get("subConcepts")
    if raw_children is None:
        return
    if not isinstance(raw_children, list):
        raise MindMapValidationError(f"{where}: 'subConcepts' must be a list")
    for i, child in enumerate(raw_children):
        _collect_ids(child, taken, f"{where}.subConcepts[{i}]", depth + 1)


def _build_node(raw: Dict[str, Any], id_generator: IdGenerator, taken: set,
                where: str) -> ConceptNode:
    concept = raw.get("concept")
    if not isinstance(concept, str) or not concept.strip():
        raise MindMapValidationError(f"{where}: missing or empty 'concept'")

    node_id = raw.get("id")
    if node_id in (None, ""):
        node_id = id_generator.next()
        while node_id in taken:
            node_id = id_generator.next()
        taken.add(node_id)

    children = tuple(
        _build_node(child, id_generator, taken, f"{where}.subConcepts[{i}]")
        for i, child in enumerate(raw.get("subConcepts") or [])
    )

    style = NodeStyle(
        color=_optional_str(raw, "color", where),
        text_color=_optional_str(raw, "textColor", where),
        is_bold=_flag(raw, "isBold", where),
        is_italic=_flag(raw, "isItalic", where),
    )

    return ConceptNode(
        id=node_id,
        concept=concept.strip(),
        children=children,
        style=style,
        position_x=_optional_number(raw, "x", where),
        position_y=_optional_number(raw, "y", where),
    )


def ingest(payload: Any, id_generator: Optional[IdGenerator] = None) -> MindMapTree:
    """Validate an external mind map payload and build a tree.

    Nodes without ids get fresh ones from `id_generator`; existing ids are
    kept and must be unique. Nothing is returned unless the whole payload
    is valid.
    """
    if not isinstance(payload, list):
        raise MindMapValidationError(
            f"Mind map must be a list of root nodes, got {type(payload).__name__}"
        )
    if not payload:
        return MindMapTree.empty()
    if len(payload) > 1:
        logger.warning("Mind map has %d top-level nodes; only the first is used", len(payload))

    taken: set = set()
    _collect_ids(payload[0], taken, "mindMap[0]")
    root = _build_node(payload[0], id_generator or UuidIdGenerator(), taken, "mindMap[0]")
    return MindMapTree(root)
