"""
Quiz session state machine.

Sessions are immutable; every transition returns a new QuizSession and
leaves the one passed in untouched, so a rejected call has no effect.
"""
from dataclasses import replace
from typing import List, Sequence

from .models import (
    AnswerRecord,
    Question,
    QuizSession,
    SessionState,
    TrackQuizError,
)

DEFAULT_POINTS_PER_CORRECT = 10


class QuizSessionError(TrackQuizError):
    """Base exception for session transition errors."""
    pass


class InvalidSessionStateError(QuizSessionError):
    """Raised when a transition is not allowed in the current state."""

    def __init__(self, operation: str, state: SessionState):
        super().__init__(f"Cannot {operation} while session is {state.value}")
        self.operation = operation
        self.state = state


class InvalidAnswerError(QuizSessionError):
    """Raised when a chosen index does not point at a choice."""
    pass


def start_session(
    questions: Sequence[Question],
    points_per_correct: int = DEFAULT_POINTS_PER_CORRECT
) -> QuizSession:
    """
    Create a session for a built quiz.

    An empty quiz yields a session that is already completed.
    """
    if points_per_correct < 0:
        raise ValueError(f"points_per_correct must be non-negative, got {points_per_correct}")
    return QuizSession(questions=tuple(questions), points_per_correct=points_per_correct)


def submit_answer(session: QuizSession, index: int) -> QuizSession:
    """
    Record the player's choice for the current question.

    Args:
        session: Session in the IN_PROGRESS state
        index: Position of the chosen option

    Returns:
        New session in the AWAITING_NEXT state

    Raises:
        InvalidSessionStateError: If the current question was already answered
            or the session is completed
        InvalidAnswerError: If index is out of range
    """
    if session.state is not SessionState.IN_PROGRESS:
        raise InvalidSessionStateError("submit an answer", session.state)

    question = session.questions[session.cursor]
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(question.choices):
        raise InvalidAnswerError(
            f"Answer index {index!r} out of range for {len(question.choices)} choices"
        )

    answered = replace(question, user_answer_index=index)
    questions = list(session.questions)
    questions[session.cursor] = answered

    score = session.score
    if answered.is_correct:
        score += session.points_per_correct

    return replace(session, questions=tuple(questions), score=score, awaiting_next=True)


def advance(session: QuizSession) -> QuizSession:
    """
    Move past an answered question.

    Raises:
        InvalidSessionStateError: Unless the session is AWAITING_NEXT
    """
    if session.state is not SessionState.AWAITING_NEXT:
        raise InvalidSessionStateError("advance", session.state)

    return replace(session, cursor=session.cursor + 1, awaiting_next=False)


def answer_records(session: QuizSession) -> List[AnswerRecord]:
    """Build the answer log handed to history persistence."""
    return [
        AnswerRecord(
            text=question.text,
            choices=question.choices,
            correct_index=question.correct_index,
            category=question.category,
            user_answer_index=question.user_answer_index
        )
        for question in session.questions
    ]


def correct_count(session: QuizSession) -> int:
    return sum(1 for question in session.questions if question.is_correct)


def max_score(session: QuizSession) -> int:
    return session.points_per_correct * len(session.questions)
