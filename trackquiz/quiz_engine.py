"""
Quiz engine core logic for the Track Trivia Quiz.
Handles question generation, distractor selection and quiz assembly.
"""
import random
import logging
import time
from typing import List, Optional, Sequence, Tuple, Union

from .models import (
    Category,
    Question,
    Track,
    RANDOM_CATEGORY,
    InvalidCategoryError,
    IncompleteTrackDataError,
    InsufficientDistractorsError,
)

logger = logging.getLogger(__name__)

DEFAULT_OPTION_COUNT = 4


def resolve_category(category: Union[str, Category]) -> Category:
    """
    Coerce a boundary string into a Category.

    Raises:
        InvalidCategoryError: If the value is not one of the four categories
    """
    if isinstance(category, Category):
        return category
    try:
        return Category(category)
    except ValueError:
        raise InvalidCategoryError(f"Unknown question category: {category!r}") from None


class QuizEngine:
    """Turns a pool of tracks into an ordered list of multiple-choice questions."""

    def __init__(self, rng: Optional[random.Random] = None):
        """
        Initialize the quiz engine.

        Args:
            rng: Random source used for sampling and shuffling. Pass a seeded
                random.Random to get reproducible quizzes.
        """
        self.rng = rng if rng is not None else random.Random()

    @staticmethod
    def answer_value(track: Track, category: Category) -> Optional[str]:
        """
        Extract the answer value a category asks about, or None if missing.
        """
        if category is Category.RELEASE_DATE:
            if not track.release_date or len(track.release_date) < 4:
                return None
            return track.release_date[:4]
        if category is Category.ARTIST:
            artist = track.primary_artist
            return artist.strip() if artist and artist.strip() else None
        if category is Category.POPULARITY:
            if track.popularity is None:
                return None
            return str(track.popularity)
        if category is Category.ALBUM_COVER:
            return track.album_cover_url or None
        raise InvalidCategoryError(f"Unknown question category: {category!r}")

    def generate_question(self, track: Track, category: Union[str, Category]) -> Tuple[str, str]:
        """
        Produce the prompt and correct answer for one track.

        Args:
            track: Subject track
            category: Category to ask about

        Returns:
            Tuple of (prompt text, correct answer value)

        Raises:
            InvalidCategoryError: If category is not a known category
            IncompleteTrackDataError: If the track lacks the required field
        """
        category = resolve_category(category)
        correct = self.answer_value(track, category)
        if correct is None:
            raise IncompleteTrackDataError(track.id, category.value)

        title = track.title or "this track"
        artist = track.primary_artist

        if category is Category.RELEASE_DATE:
            prompt = f'In which year was "{title}" released?'
        elif category is Category.ARTIST:
            prompt = f'Who performs "{title}"?'
        elif category is Category.POPULARITY:
            by = f" by {artist}" if artist else ""
            prompt = f'How popular is "{title}"{by} on a scale of 0 to 100?'
        else:
            by = f" by {artist}" if artist else ""
            prompt = f'Which album cover belongs to "{title}"{by}?'

        return prompt, correct

    def generate_options(
        self,
        correct_value: str,
        category: Union[str, Category],
        pool: Sequence[Track],
        option_count: int = DEFAULT_OPTION_COUNT
    ) -> List[str]:
        """
        Build a shuffled option list containing the correct value once.

        Distractors are drawn from other tracks in the pool and are distinct
        from each other and from the correct value.

        Args:
            correct_value: The right answer
            category: Category the values belong to
            pool: Full candidate track pool
            option_count: Total number of options, including the correct one

        Returns:
            List of option values in random order

        Raises:
            ValueError: If option_count is below 2
            InsufficientDistractorsError: If the pool has too few distinct values
        """
        if option_count < 2:
            raise ValueError(f"option_count must be at least 2, got {option_count}")

        category = resolve_category(category)
        needed = option_count - 1

        alternatives: List[str] = []
        seen = {correct_value}
        for track in pool:
            value = self.answer_value(track, category)
            if value is None or value in seen:
                continue
            seen.add(value)
            alternatives.append(value)

        if len(alternatives) < needed:
            raise InsufficientDistractorsError(category, needed, len(alternatives))

        options = self.rng.sample(alternatives, needed)
        options.append(correct_value)
        self.rng.shuffle(options)
        return options

    def select_tracks(self, pool: Sequence[Track], count: int) -> List[Track]:
        """
        Sample subject tracks without replacement.

        Args:
            pool: Available tracks
            count: Number of tracks wanted

        Returns:
            Up to count distinct tracks in random order. Empty if count < 1.
        """
        if count < 1:
            return []

        shuffled = list(pool)
        self.rng.shuffle(shuffled)
        return shuffled[:count]

    def pick_category(self, category_choice: Union[str, Category]) -> Category:
        """Resolve the per-question category, drawing uniformly for 'random'."""
        if category_choice == RANDOM_CATEGORY:
            return self.rng.choice(list(Category))
        return resolve_category(category_choice)

    def build_quiz(
        self,
        track_pool: Sequence[Track],
        category_choice: Union[str, Category],
        question_count: int,
        option_count: int = DEFAULT_OPTION_COUNT
    ) -> List[Question]:
        """
        Build an ordered quiz from a track pool.

        Args:
            track_pool: Tracks to ask about and draw distractors from
            category_choice: A category value or 'random' (drawn per question)
            question_count: Requested number of questions

        Returns:
            List of questions, min(question_count, len(track_pool)) long

        Raises:
            InvalidCategoryError: If category_choice is unknown
            IncompleteTrackDataError: If a subject track lacks the needed field
            InsufficientDistractorsError: If the pool is too small for a category
        """
        if category_choice != RANDOM_CATEGORY:
            resolve_category(category_choice)

        if not track_pool:
            logger.info("Empty track pool, building empty quiz")
            return []

        build_start_time = time.time()
        subjects = self.select_tracks(track_pool, question_count)

        questions: List[Question] = []
        for track in subjects:
            category = self.pick_category(category_choice)
            prompt, correct = self.generate_question(track, category)
            options = self.generate_options(correct, category, track_pool, option_count)
            questions.append(Question(
                text=prompt,
                choices=tuple(options),
                correct_index=options.index(correct),
                category=category,
                track=track
            ))

        logger.info(
            f"Built quiz with {len(questions)} questions from {len(track_pool)} tracks",
            extra={
                'event_type': 'quiz_built',
                'question_count': len(questions),
                'pool_size': len(track_pool),
                'category_choice': str(getattr(category_choice, 'value', category_choice)),
                'build_duration': time.time() - build_start_time
            }
        )
        return questions
