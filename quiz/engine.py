"""
Quiz progression state machine.

A run walks a fixed, ordered list of questions. Every answer moves the index
forward by one and adds a point when it matches the correct option. Answering
the last question completes the run: the result is handed to the persistence
collaborator once and the completion callback fires once with the final score.
"""
import logging
import uuid
from dataclasses import asdict, dataclass
from typing import Callable, Optional

logger = logging.getLogger("kidslearn")

DIFFICULTIES = ("easy", "medium", "hard")


class QuizNotActive(Exception):
    """Raised when an answer arrives for a run that is finished or never had questions."""


@dataclass(frozen=True)
class Question:
    id: int
    question: str
    options: tuple
    correct_answer: int
    difficulty: str

    def __post_init__(self):
        if self.difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty {self.difficulty!r}")
        if not 0 <= self.correct_answer < len(self.options):
            raise ValueError(f"Question {self.id} has no option {self.correct_answer}")

    @classmethod
    def from_row(cls, row: dict):
        return cls(
            id=int(row["id"]),
            question=row["question"],
            options=tuple(row["options"]),
            correct_answer=int(row["correct_answer"]),
            difficulty=row["difficulty"],
        )

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "options": list(self.options),
            "correct_answer": self.correct_answer,
            "difficulty": self.difficulty,
        }


@dataclass
class QuizState:
    current_question: int = 0
    score: int = 0
    is_complete: bool = False


class QuizProgression:
    """
    ``persist(quiz_id, score)`` is called once when the run completes; errors
    from it are logged and do not stop ``on_complete(score)`` from firing.
    """

    def __init__(self, persist: Optional[Callable] = None, on_complete: Optional[Callable] = None):
        self.persist = persist
        self.on_complete = on_complete
        self.questions = []
        self.run_id = None
        self.state = QuizState()

    def load(self, questions):
        self.questions = list(questions)
        self.run_id = uuid.uuid4().hex
        self.state = QuizState()

    @property
    def is_available(self) -> bool:
        return len(self.questions) > 0

    @property
    def is_complete(self) -> bool:
        return self.state.is_complete

    @property
    def score(self) -> int:
        return self.state.score

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> Optional[Question]:
        if self.state.is_complete or self.state.current_question >= len(self.questions):
            return None
        return self.questions[self.state.current_question]

    def submit_answer(self, selected_option: int) -> bool:
        """Record an answer for the current question and return whether it was right."""
        question = self.current
        if question is None:
            raise QuizNotActive("There is no question waiting for an answer")

        answered = self.state.current_question
        correct = selected_option == question.correct_answer

        if correct:
            self.state.score += 1
        self.state.current_question = answered + 1
        self.state.is_complete = answered == len(self.questions) - 1

        if self.state.is_complete:
            self._finish(question)

        return correct

    def _finish(self, last_question: Question):
        score = self.state.score

        if self.persist is not None:
            try:
                self.persist(last_question.id, score)
            except Exception as e:
                logger.error(f"Error saving progress for quiz {last_question.id}")
                logger.error(e)

        if self.on_complete is not None:
            self.on_complete(score)

    def to_session(self) -> dict:
        return {
            "run_id": self.run_id,
            "questions": [q.to_row() for q in self.questions],
            "state": asdict(self.state),
        }

    @classmethod
    def from_session(cls, data: dict, persist=None, on_complete=None):
        engine = cls(persist=persist, on_complete=on_complete)
        engine.run_id = data.get("run_id")
        engine.questions = [Question.from_row(row) for row in data["questions"]]
        engine.state = QuizState(**data["state"])
        return engine
