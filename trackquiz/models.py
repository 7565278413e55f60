"""
Core data models for the Track Trivia Quiz.
"""
from dataclasses import dataclass, field
from enum import Enum
import uuid
from typing import List, Optional, Tuple, Dict, Any
from datetime import datetime


RANDOM_CATEGORY = "random"


class Category(str, Enum):
    """Track attribute a question probes."""
    RELEASE_DATE = "release_date"
    ARTIST = "artist"
    POPULARITY = "popularity"
    ALBUM_COVER = "album_cover"

    @property
    def is_image(self) -> bool:
        """True when the choice values of this category are image URLs."""
        return self is Category.ALBUM_COVER


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    IN_PROGRESS = "in_progress"
    AWAITING_NEXT = "awaiting_next"
    COMPLETED = "completed"


class TrackQuizError(Exception):
    """Base exception for track quiz errors."""
    pass


class TrackSourceUnavailableError(TrackQuizError):
    """Raised when the track catalogue cannot be retrieved."""
    pass


class InvalidCategoryError(TrackQuizError):
    """Raised when a category is outside the known enumeration."""
    pass


class IncompleteTrackDataError(TrackQuizError):
    """Raised when a track lacks the field a question category needs."""

    def __init__(self, track_id: str, field_name: str):
        super().__init__(f"Track {track_id} has no usable '{field_name}' value")
        self.track_id = track_id
        self.field_name = field_name


class InsufficientDistractorsError(TrackQuizError):
    """Raised when the pool cannot supply enough distinct wrong answers."""

    def __init__(self, category: "Category", needed: int, available: int):
        super().__init__(
            f"Need {needed} distinct distractors for category '{category.value}', "
            f"only {available} available"
        )
        self.category = category
        self.needed = needed
        self.available = available


class PersistenceFailureError(TrackQuizError):
    """Raised when a score or history write fails."""
    pass


@dataclass(frozen=True)
class Track:
    """A favourite track, as delivered by the track source."""
    id: str
    title: Optional[str] = None
    artists: Tuple[str, ...] = ()
    release_date: Optional[str] = None
    popularity: Optional[int] = None
    album_cover_url: Optional[str] = None

    @property
    def primary_artist(self) -> Optional[str]:
        return self.artists[0] if self.artists else None


@dataclass(frozen=True)
class Question:
    """Represents a single multiple-choice quiz question."""
    text: str
    choices: Tuple[str, ...]
    correct_index: int
    category: Category
    track: Optional[Track] = None
    user_answer_index: Optional[int] = None

    @property
    def correct_answer(self) -> str:
        return self.choices[self.correct_index]

    @property
    def is_answered(self) -> bool:
        return self.user_answer_index is not None

    @property
    def is_correct(self) -> bool:
        return self.user_answer_index == self.correct_index


@dataclass(frozen=True)
class QuizSession:
    """
    Immutable snapshot of one playthrough.

    Transitions live in quiz_session.py and always return a new snapshot.
    """
    questions: Tuple[Question, ...]
    cursor: int = 0
    score: int = 0
    awaiting_next: bool = False
    points_per_correct: int = 10

    @property
    def state(self) -> SessionState:
        if self.cursor >= len(self.questions):
            return SessionState.COMPLETED
        if self.awaiting_next:
            return SessionState.AWAITING_NEXT
        return SessionState.IN_PROGRESS

    @property
    def is_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def current_question(self) -> Optional[Question]:
        if self.cursor >= len(self.questions):
            return None
        return self.questions[self.cursor]


@dataclass(frozen=True)
class AnswerRecord:
    """Persisted record of one question plus the player's chosen response."""
    text: str
    choices: Tuple[str, ...]
    correct_index: int
    category: Category
    user_answer_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'text': self.text,
            'choices': list(self.choices),
            'correct_index': self.correct_index,
            'category': self.category.value,
            'user_answer_index': self.user_answer_index,
        }


@dataclass
class HistoryQuestion:
    """Read model for the answered-questions review screen."""
    id: int
    text: str
    choices: List[str]
    correct_index: int
    user_answer_index: Optional[int]
    category: Category


@dataclass
class QuizSettings:
    """Configuration settings for building a quiz."""
    question_count: int = 2
    category: str = RANDOM_CATEGORY
    option_count: int = 4
    points_per_correct: int = 10


@dataclass
class Player:
    """The user taking a quiz."""
    user_id: int
    credential: Optional[str]
    display_name: str = ""
    points: int = 0


@dataclass
class ActiveQuiz:
    """Controller bookkeeping for a player's running quiz."""
    player: Player
    session: QuizSession
    settings: QuizSettings
    start_time: datetime = field(default_factory=datetime.now)
    completion_reported: bool = False
    # Identifies this run so messages from an earlier quiz can be told apart
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
