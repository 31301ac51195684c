"""
Pytest configuration and fixtures for StudyMind testing.

This module provides:
- Deterministic id generation
- A small sample concept tree
- A throwaway database per test
"""

import copy

import pytest

from studymind.database import Database
from studymind.model import SequentialIdGenerator, ingest
from studymind.session import MindMapSession


# ============================================================
# TREE FIXTURES
# ============================================================

SAMPLE_PAYLOAD = [
    {
        "id": "root",
        "concept": "Biology",
        "subConcepts": [
            {
                "id": "a",
                "concept": "Cells",
                "subConcepts": [
                    {
                        "id": "b",
                        "concept": "Organelles",
                        "subConcepts": [{"id": "c", "concept": "Mitochondria"}],
                    },
                ],
            },
            {
                "id": "g",
                "concept": "Genetics",
                "subConcepts": [
                    {"id": "g1", "concept": "DNA"},
                    {"id": "g2", "concept": "RNA"},
                ],
            },
            {"id": "e", "concept": "Evolution"},
        ],
    }
]


@pytest.fixture
def id_generator():
    """Ids `new-1`, `new-2`, ... so tests can predict fresh ids."""
    return SequentialIdGenerator(prefix="new")


@pytest.fixture
def sample_payload():
    return copy.deepcopy(SAMPLE_PAYLOAD)


@pytest.fixture
def sample_tree(sample_payload, id_generator):
    """
    Biology
    ├── Cells
    │   └── Organelles
    │       └── Mitochondria
    ├── Genetics
    │   ├── DNA
    │   └── RNA
    └── Evolution
    """
    return ingest(sample_payload, id_generator)


@pytest.fixture
def session(sample_tree, id_generator):
    """A session over the sample tree with a 1000x800 view."""
    s = MindMapSession(sample_tree, id_generator=id_generator)
    s.viewport.resize(1000, 800)
    return s


# ============================================================
# DATABASE FIXTURES
# ============================================================

@pytest.fixture
def db(tmp_path):
    """A fresh database file for each test function."""
    database = Database(tmp_path / "studymind-test.db")
    yield database
    database.close()
