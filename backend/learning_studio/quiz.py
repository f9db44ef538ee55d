"""
Quiz view state machine.

A ``QuizSession`` walks the user through a fixed, immutable list of questions
with an index cursor, records one answer per question, and flips into a
read-only results mode once every question is answered and the quiz is
submitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .errors import IllegalTransition
from .schemas import QuizQuestion


@dataclass(frozen=True)
class FeedbackTier:
    name: str
    message: str
    # Strict lower bound on the score percentage
    above: int


FEEDBACK_TIERS: List[FeedbackTier] = [
    FeedbackTier("excellent", "Excellent work!", 80),
    FeedbackTier("good", "Good job!", 50),
    FeedbackTier("effort", "Great effort!", -1),
]


def feedback_for(percentage: int) -> FeedbackTier:
    for tier in FEEDBACK_TIERS:
        if percentage > tier.above:
            return tier
    return FEEDBACK_TIERS[-1]


def score_answers(questions: Sequence[QuizQuestion], answers: Dict[int, str]) -> int:
    return sum(1 for i, q in enumerate(questions) if answers.get(i) == q.correct_answer)


@dataclass(frozen=True)
class ReviewItem:
    number: int
    question: str
    your_answer: Optional[str]
    correct_answer: str
    is_correct: bool
    explanation: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "question": self.question,
            "your_answer": self.your_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "explanation": self.explanation,
        }


class QuizSession:
    def __init__(self, questions: Sequence[QuizQuestion]) -> None:
        if not questions:
            raise ValueError("A quiz needs at least one question")
        self.questions = tuple(questions)
        self.index = 0
        self.answers: Dict[int, str] = {}
        self.show_results = False

    @property
    def total(self) -> int:
        return len(self.questions)

    @property
    def current(self) -> QuizQuestion:
        return self.questions[self.index]

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def is_last(self) -> bool:
        return self.index == self.total - 1

    @property
    def can_submit(self) -> bool:
        return not self.show_results and len(self.answers) == self.total

    @property
    def progress(self) -> float:
        return (self.index + 1) / self.total

    def select(self, option: str) -> None:
        if self.show_results:
            raise IllegalTransition("Quiz already submitted")
        if option not in self.current.options:
            raise ValueError(f"{option!r} is not an option for question {self.index + 1}")
        self.answers[self.index] = option

    def next(self) -> None:
        if self.index < self.total - 1:
            self.index += 1

    def prev(self) -> None:
        if self.index > 0:
            self.index -= 1

    def submit(self) -> None:
        if self.show_results:
            raise IllegalTransition("Quiz already submitted")
        if len(self.answers) != self.total:
            raise IllegalTransition(f"Answer all {self.total} questions before submitting")
        self.show_results = True

    def retake(self) -> None:
        self.answers = {}
        self.index = 0
        self.show_results = False

    @property
    def score(self) -> int:
        return score_answers(self.questions, self.answers)

    @property
    def percentage(self) -> int:
        return round(self.score / self.total * 100)

    @property
    def feedback(self) -> FeedbackTier:
        return feedback_for(self.percentage)

    def review(self) -> List[ReviewItem]:
        items = []
        for i, q in enumerate(self.questions):
            answer = self.answers.get(i)
            items.append(ReviewItem(
                number=i + 1,
                question=q.question,
                your_answer=answer,
                correct_answer=q.correct_answer,
                is_correct=answer == q.correct_answer,
                explanation=q.explanation,
            ))
        return items

    def snapshot(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "total": self.total,
            "answered": self.answered_count,
            "show_results": self.show_results,
        }
        if self.show_results:
            tier = self.feedback
            data.update({
                "score": self.score,
                "percentage": self.percentage,
                "feedback": {"tier": tier.name, "message": tier.message},
                "review": [item.as_dict() for item in self.review()],
            })
        else:
            # Correct answers stay server-side until the quiz is submitted
            data.update({
                "index": self.index,
                "question": self.current.question,
                "options": list(self.current.options),
                "selected": self.answers.get(self.index),
                "is_last": self.is_last,
                "can_submit": self.can_submit,
                "progress": self.progress,
            })
        return data
