"""
Tests for study data read from a generator's output.
"""

import pytest

from studymind.generation import (
    Flashcard, GenerationOptions, QuizQuestion, StudyData, StudyDataError,
)
from studymind.model import MindMapValidationError


class TestStudyData:
    """Parsing the generator's camelCase JSON."""

    def test_from_dict(self):
        data = StudyData.from_dict({
            "summary": "Cells make up living things.",
            "keyInsight": "Structure follows function.",
            "mindMap": [{"concept": "Cells"}],
            "flashcards": [{"question": "What is ATP?", "answer": "Energy currency"}],
            "quiz": [{
                "question": "Powerhouse of the cell?",
                "options": ["Nucleus", "Mitochondria"],
                "correctAnswer": "Mitochondria",
            }],
        })
        assert data.key_insight == "Structure follows function."
        assert data.mind_map == [{"concept": "Cells"}]
        assert data.flashcards == [Flashcard("What is ATP?", "Energy currency")]
        assert data.quiz[0].correct_answer == "Mitochondria"
        assert data.quiz[0].is_answerable

    def test_missing_sections(self):
        data = StudyData.from_dict({})
        assert data.summary is None
        assert data.key_insight is None
        assert data.mind_map == []
        assert data.flashcards == []
        assert data.quiz == []

    def test_quiz_answer_outside_options(self):
        question = QuizQuestion("Q?", ["A", "B"], "C")
        assert not question.is_answerable

    def test_default_options_generate_everything(self):
        options = GenerationOptions()
        assert options.generate_summary
        assert options.generate_mind_map
        assert options.generate_flashcards


class TestStudyDataShapes:
    """Malformed generator output is rejected with a clear error."""

    @pytest.mark.parametrize("data", [
        {"flashcards": ["oops"]},
        {"flashcards": {"question": "Q", "answer": "A"}},
        {"quiz": [None]},
        {"quiz": [{"question": "Q", "options": "A, B"}]},
        {"summary": ["not", "text"]},
        ["not an object"],
    ])
    def test_rejects_bad_sections(self, data):
        with pytest.raises(StudyDataError):
            StudyData.from_dict(data)

    @pytest.mark.parametrize("mind_map", [{"concept": "Cells"}, "Cells", 3])
    def test_mind_map_must_be_a_list(self, mind_map):
        with pytest.raises(MindMapValidationError, match="'mindMap' must be a list"):
            StudyData.from_dict({"mindMap": mind_map})

    def test_both_errors_are_value_errors(self):
        assert issubclass(StudyDataError, ValueError)
        assert issubclass(MindMapValidationError, ValueError)
