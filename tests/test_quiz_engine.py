"""
Unit tests for the QuizEngine class.
"""
import unittest
import random
from collections import Counter

from trackquiz.quiz_engine import QuizEngine, resolve_category
from trackquiz.models import (
    Category,
    Track,
    InvalidCategoryError,
    IncompleteTrackDataError,
    InsufficientDistractorsError,
)
from tests.test_fixtures import TestFixtures, TestDataValidation


class TestQuestionGeneration(unittest.TestCase):
    """Test cases for prompt and correct answer generation."""

    def setUp(self):
        self.engine = QuizEngine(random.Random(1))
        self.track = TestFixtures.create_sample_tracks()[4]

    def test_release_date_uses_year(self):
        prompt, answer = self.engine.generate_question(self.track, Category.RELEASE_DATE)

        self.assertEqual(answer, "1991")
        self.assertIn("Smells Like Teen Spirit", prompt)

    def test_release_date_year_only_value(self):
        track = Track("x", "Song", ("A",), "1999", 5, "https://img.example.com/x.jpg")
        _, answer = self.engine.generate_question(track, "release_date")
        self.assertEqual(answer, "1999")

    def test_artist_uses_primary_artist(self):
        prompt, answer = self.engine.generate_question(self.track, Category.ARTIST)

        self.assertEqual(answer, "Nirvana")
        self.assertTrue(prompt.startswith("Who performs"))

    def test_popularity_is_string(self):
        _, answer = self.engine.generate_question(self.track, Category.POPULARITY)
        self.assertEqual(answer, "80")

    def test_popularity_zero_is_valid(self):
        track = Track("x", "Obscure", ("A",), "2000", 0, "https://img.example.com/x.jpg")
        _, answer = self.engine.generate_question(track, Category.POPULARITY)
        self.assertEqual(answer, "0")

    def test_album_cover_is_url(self):
        _, answer = self.engine.generate_question(self.track, "album_cover")
        self.assertEqual(answer, "https://img.example.com/t5.jpg")

    def test_invalid_category(self):
        with self.assertRaises(InvalidCategoryError):
            self.engine.generate_question(self.track, "genre")

    def test_random_is_not_a_question_category(self):
        with self.assertRaises(InvalidCategoryError):
            self.engine.generate_question(self.track, "random")

    def test_missing_field_raises(self):
        cases = [
            (Track("x", "Song", (), "2000", 5, "https://img.example.com/x.jpg"), Category.ARTIST),
            (Track("x", "Song", ("A",), None, 5, "https://img.example.com/x.jpg"), Category.RELEASE_DATE),
            (Track("x", "Song", ("A",), "2000", None, "https://img.example.com/x.jpg"), Category.POPULARITY),
            (Track("x", "Song", ("A",), "2000", 5, None), Category.ALBUM_COVER),
            (Track("x", "Song", ("  ",), "2000", 5, "u"), Category.ARTIST),
        ]
        for track, category in cases:
            with self.subTest(category=category):
                with self.assertRaises(IncompleteTrackDataError) as context:
                    self.engine.generate_question(track, category)
                self.assertEqual(context.exception.field_name, category.value)

    def test_resolve_category(self):
        self.assertIs(resolve_category("artist"), Category.ARTIST)
        self.assertIs(resolve_category(Category.POPULARITY), Category.POPULARITY)
        with self.assertRaises(InvalidCategoryError):
            resolve_category("")


class TestDistractorGeneration(unittest.TestCase):
    """Test cases for answer option generation."""

    def setUp(self):
        self.engine = QuizEngine(random.Random(7))
        self.tracks = TestFixtures.create_sample_tracks()

    def test_options_contain_correct_once(self):
        options = self.engine.generate_options("Nirvana", Category.ARTIST, self.tracks)

        self.assertEqual(len(options), 4)
        self.assertEqual(options.count("Nirvana"), 1)
        self.assertEqual(len(set(options)), 4)

    def test_distractors_come_from_pool(self):
        pool_artists = {t.primary_artist for t in self.tracks}
        options = self.engine.generate_options("Nirvana", Category.ARTIST, self.tracks)
        self.assertTrue(set(options) <= pool_artists)

    def test_duplicate_values_filtered(self):
        tracks = TestFixtures.create_same_artist_tracks() + [
            Track("s6", "Song 6", ("Artist D",), "2006", 60, "https://img.example.com/s6.jpg")
        ]
        options = self.engine.generate_options("Artist A", Category.ARTIST, tracks)

        self.assertEqual(sorted(options), ["Artist A", "Artist B", "Artist C", "Artist D"])

    def test_insufficient_distractors(self):
        tracks = TestFixtures.create_same_artist_tracks()

        with self.assertRaises(InsufficientDistractorsError) as context:
            self.engine.generate_options("Artist A", Category.ARTIST, tracks)

        self.assertEqual(context.exception.needed, 3)
        self.assertEqual(context.exception.available, 2)
        self.assertIs(context.exception.category, Category.ARTIST)

    def test_tracks_missing_field_are_skipped(self):
        tracks = self.tracks + [Track("nx", "No Cover", ("Someone",), "2000", 1, None)]
        options = self.engine.generate_options(
            "https://img.example.com/t1.jpg", Category.ALBUM_COVER, tracks, option_count=5
        )
        self.assertNotIn(None, options)
        self.assertEqual(len(options), 5)

    def test_smaller_option_count(self):
        tracks = TestFixtures.create_same_artist_tracks()
        options = self.engine.generate_options("Artist A", Category.ARTIST, tracks, option_count=3)
        self.assertEqual(sorted(options), ["Artist A", "Artist B", "Artist C"])

    def test_option_count_too_small(self):
        with self.assertRaises(ValueError):
            self.engine.generate_options("Nirvana", Category.ARTIST, self.tracks, option_count=1)

    def test_correct_position_varies(self):
        positions = Counter(
            self.engine.generate_options("Nirvana", Category.ARTIST, self.tracks).index("Nirvana")
            for _ in range(200)
        )
        self.assertEqual(set(positions), {0, 1, 2, 3})

    def test_seeded_rng_is_reproducible(self):
        first = QuizEngine(random.Random(99)).generate_options("Nirvana", Category.ARTIST, self.tracks)
        second = QuizEngine(random.Random(99)).generate_options("Nirvana", Category.ARTIST, self.tracks)
        self.assertEqual(first, second)


class TestQuizBuilding(unittest.TestCase):
    """Test cases for quiz assembly."""

    def setUp(self):
        self.engine = QuizEngine(random.Random(42))
        self.tracks = TestFixtures.create_sample_tracks()

    def test_artist_quiz_of_two(self):
        quiz = self.engine.build_quiz(self.tracks, "artist", 2)

        self.assertEqual(len(quiz), 2)
        for question in quiz:
            self.assertTrue(TestDataValidation.validate_question(question))
            self.assertEqual(len(question.choices), 4)
            self.assertIs(question.category, Category.ARTIST)
            self.assertEqual(question.correct_answer, question.track.primary_artist)
            self.assertIsNone(question.user_answer_index)

    def test_length_is_min_of_pool_and_count(self):
        for count in (1, 3, 5, 8):
            with self.subTest(count=count):
                quiz = self.engine.build_quiz(self.tracks, "popularity", count)
                self.assertEqual(len(quiz), min(count, len(self.tracks)))

    def test_no_repeated_subject_track(self):
        quiz = self.engine.build_quiz(self.tracks, "release_date", 5)
        track_ids = [q.track.id for q in quiz]
        self.assertEqual(len(track_ids), len(set(track_ids)))

    def test_correct_index_matches_track_value(self):
        quiz = self.engine.build_quiz(self.tracks, "random", 5)
        for question in quiz:
            expected = QuizEngine.answer_value(question.track, question.category)
            self.assertEqual(question.choices[question.correct_index], expected)
            self.assertEqual(question.choices.count(expected), 1)

    def test_random_category_drawn_per_question(self):
        categories = set()
        for seed in range(20):
            quiz = QuizEngine(random.Random(seed)).build_quiz(self.tracks, "random", 5)
            categories.update(q.category for q in quiz)
        self.assertEqual(categories, set(Category))

    def test_empty_pool_gives_empty_quiz(self):
        self.assertEqual(self.engine.build_quiz([], "artist", 2), [])

    def test_zero_count_gives_empty_quiz(self):
        self.assertEqual(self.engine.build_quiz(self.tracks, "artist", 0), [])

    def test_invalid_category_rejected_even_with_empty_pool(self):
        with self.assertRaises(InvalidCategoryError):
            self.engine.build_quiz([], "genre", 2)

    def test_insufficient_distractors_propagates(self):
        with self.assertRaises(InsufficientDistractorsError):
            self.engine.build_quiz(TestFixtures.create_same_artist_tracks(), "artist", 2)

    def test_distractors_drawn_from_full_pool(self):
        # A single question still needs three distractors from the other tracks
        quiz = self.engine.build_quiz(self.tracks, "artist", 1)
        self.assertEqual(len(quiz[0].choices), 4)

    def test_incomplete_subject_track_aborts_build(self):
        tracks = [Track(t.id, t.title, t.artists, t.release_date, t.popularity, None) for t in self.tracks]
        with self.assertRaises(IncompleteTrackDataError):
            self.engine.build_quiz(tracks, "album_cover", 2)

    def test_select_tracks_preserves_original(self):
        original = list(self.tracks)
        self.engine.select_tracks(self.tracks, 3)
        self.assertEqual(self.tracks, original)

    def test_seeded_build_is_reproducible(self):
        first = QuizEngine(random.Random(5)).build_quiz(self.tracks, "random", 4)
        second = QuizEngine(random.Random(5)).build_quiz(self.tracks, "random", 4)
        self.assertEqual(first, second)


if __name__ == '__main__':
    unittest.main()
