"""Data exchanged with the study-material generator.

StudyMind only consumes what a generator produces; it ships no client.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from studymind.model import MindMapValidationError


class StudyDataError(ValueError):
    """Raised when generated study data has the wrong shape."""


def _entries(data: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    entries = data.get(key) or []
    if not isinstance(entries, list):
        raise StudyDataError(f"'{key}' must be a list")
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise StudyDataError(f"{key}[{i}]: expected an object, got {type(entry).__name__}")
    return entries


def _text(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise StudyDataError(f"'{key}' must be a string")
    return value


@dataclass
class Flashcard:
    question: str
    answer: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Flashcard":
        return cls(question=str(data.get("question", "")), answer=str(data.get("answer", "")))


@dataclass
class QuizQuestion:
    question: str
    options: List[str] = field(default_factory=list)
    correct_answer: str = ""

    @property
    def is_answerable(self) -> bool:
        return self.correct_answer in self.options

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QuizQuestion":
        options = data.get("options") or []
        if not isinstance(options, list):
            raise StudyDataError("quiz 'options' must be a list")
        return cls(
            question=str(data.get("question", "")),
            options=[str(o) for o in options],
            correct_answer=str(data.get("correctAnswer", "")),
        )


@dataclass
class StudyData:
    """Everything a generator returns for one source text.

    `mind_map` stays in the external list form until a session ingests it.
    """
    summary: Optional[str] = None
    key_insight: Optional[str] = None
    mind_map: List[Dict[str, Any]] = field(default_factory=list)
    flashcards: List[Flashcard] = field(default_factory=list)
    quiz: List[QuizQuestion] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StudyData":
        """Read the generator's camelCase JSON.

        A mind map that is not a list raises `MindMapValidationError`; other
        shape problems raise `StudyDataError`.
        """
        if not isinstance(data, dict):
            raise StudyDataError(f"Study data must be an object, got {type(data).__name__}")
        mind_map = data.get("mindMap")
        if mind_map is None:
            mind_map = []
        if not isinstance(mind_map, list):
            raise MindMapValidationError(
                f"'mindMap' must be a list of root nodes, got {type(mind_map).__name__}"
            )
        return cls(
            summary=_text(data, "summary"),
            key_insight=_text(data, "keyInsight"),
            mind_map=list(mind_map),
            flashcards=[Flashcard.from_dict(f) for f in _entries(data, "flashcards")],
            quiz=[QuizQuestion.from_dict(q) for q in _entries(data, "quiz")],
        )


@dataclass
class GenerationOptions:
    generate_summary: bool = True
    generate_mind_map: bool = True
    generate_flashcards: bool = True


class StudyGenerator(Protocol):
    """Anything that can turn source text into study material."""

    def generate(self, text: str, options: GenerationOptions) -> StudyData:
        ...

    def answer(self, question: str, context: str) -> str:
        ...
