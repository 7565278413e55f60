"""
Unit tests for ConfigManager class.
"""
import unittest
import logging

from trackquiz.config_manager import ConfigManager
from trackquiz.models import Category


class TestConfigManager(unittest.TestCase):
    """Test cases for ConfigManager functionality."""

    def setUp(self):
        """Set up test fixtures before each test method."""
        self.config_manager = ConfigManager()

        # Suppress logging during tests
        logging.disable(logging.CRITICAL)

    def tearDown(self):
        """Clean up after each test method."""
        logging.disable(logging.NOTSET)

    def test_initialization_with_defaults(self):
        """Test that ConfigManager initializes with correct default values."""
        settings = self.config_manager.get_quiz_settings()

        self.assertEqual(settings.question_count, 2)
        self.assertEqual(settings.category, "random")
        self.assertEqual(settings.option_count, 4)
        self.assertEqual(settings.points_per_correct, 10)
        self.assertEqual(self.config_manager.get_tracks_directory(), "./tracks/")
        self.assertEqual(self.config_manager.get_data_directory(), "./data/")

    def test_get_quiz_settings_returns_copy(self):
        settings = self.config_manager.get_quiz_settings()
        settings.question_count = 40

        self.assertEqual(self.config_manager.get_question_count(), 2)

    def test_set_question_count_valid_values(self):
        for count in (1, 5, ConfigManager.MAX_QUESTION_COUNT):
            with self.subTest(count=count):
                result = self.config_manager.set_question_count(count)
                self.assertTrue(result['success'])
                self.assertEqual(self.config_manager.get_question_count(), count)

    def test_set_question_count_invalid_values(self):
        for value in ("5", 5.5, None, True, 0, -1, ConfigManager.MAX_QUESTION_COUNT + 1):
            with self.subTest(value=value):
                result = self.config_manager.set_question_count(value)
                self.assertFalse(result['success'])
                self.assertIn('error', result)
                self.assertTrue(result['user_message'].startswith("❌"))

        self.assertEqual(self.config_manager.get_question_count(), 2)

    def test_set_category(self):
        for category in ("release_date", "artist", "popularity", "album_cover", "random"):
            with self.subTest(category=category):
                result = self.config_manager.set_category(category)
                self.assertTrue(result['success'])
                self.assertEqual(self.config_manager.get_category(), category)

    def test_set_category_accepts_enum(self):
        result = self.config_manager.set_category(Category.POPULARITY)

        self.assertTrue(result['success'])
        self.assertEqual(self.config_manager.get_category(), "popularity")

    def test_set_category_invalid(self):
        result = self.config_manager.set_category("genre")

        self.assertFalse(result['success'])
        self.assertEqual(self.config_manager.get_category(), "random")

    def test_set_option_count(self):
        self.assertTrue(self.config_manager.set_option_count(3)['success'])
        self.assertEqual(self.config_manager.get_option_count(), 3)

        self.assertFalse(self.config_manager.set_option_count(1)['success'])
        self.assertFalse(self.config_manager.set_option_count(11)['success'])
        self.assertEqual(self.config_manager.get_option_count(), 3)

    def test_set_points_per_correct(self):
        self.assertTrue(self.config_manager.set_points_per_correct(25)['success'])
        self.assertEqual(self.config_manager.get_points_per_correct(), 25)

        self.assertFalse(self.config_manager.set_points_per_correct(0)['success'])
        self.assertEqual(self.config_manager.get_points_per_correct(), 25)

    def test_set_directories(self):
        result = self.config_manager.set_tracks_directory("./some/tracks")
        self.assertTrue(result['success'])
        self.assertTrue(self.config_manager.get_tracks_directory().endswith("tracks"))

        self.assertFalse(self.config_manager.set_data_directory("   ")['success'])
        self.assertFalse(self.config_manager.set_data_directory(42)['success'])
        self.assertEqual(self.config_manager.get_data_directory(), "./data/")

    def test_apply_config(self):
        errors = self.config_manager.apply_config({
            'quiz': {
                'default_question_count': 5,
                'default_category': 'artist',
                'option_count': 3,
                'points_per_correct': 20
            }
        })

        self.assertEqual(errors, [])
        settings = self.config_manager.get_quiz_settings()
        self.assertEqual(settings.question_count, 5)
        self.assertEqual(settings.category, "artist")
        self.assertEqual(settings.option_count, 3)
        self.assertEqual(settings.points_per_correct, 20)

    def test_apply_config_skips_invalid_values(self):
        errors = self.config_manager.apply_config({
            'quiz': {'default_question_count': "lots", 'default_category': 'genre', 'option_count': 6}
        })

        self.assertEqual(len(errors), 2)
        self.assertEqual(self.config_manager.get_question_count(), 2)
        self.assertEqual(self.config_manager.get_category(), "random")
        self.assertEqual(self.config_manager.get_option_count(), 6)

    def test_apply_empty_config(self):
        self.assertEqual(self.config_manager.apply_config({}), [])
        self.assertEqual(self.config_manager.apply_config(None), [])

    def test_reset_to_defaults(self):
        self.config_manager.set_question_count(9)
        self.config_manager.set_category("artist")
        self.config_manager.set_tracks_directory("./elsewhere")

        self.config_manager.reset_to_defaults()

        self.assertEqual(self.config_manager.get_question_count(), 2)
        self.assertEqual(self.config_manager.get_category(), "random")
        self.assertEqual(self.config_manager.get_tracks_directory(), "./tracks/")

    def test_validate_settings(self):
        self.assertTrue(self.config_manager.validate_settings()['valid'])

        self.config_manager._global_settings.option_count = 0
        self.config_manager._global_settings.category = "genre"
        result = self.config_manager.validate_settings()

        self.assertFalse(result['valid'])
        self.assertEqual(len(result['issues']), 2)

    def test_settings_summary(self):
        summary = self.config_manager.get_settings_summary()

        self.assertIn("Questions: 2", summary)
        self.assertIn("Category: random", summary)
        self.assertIn("Points per correct answer: 10", summary)


if __name__ == '__main__':
    unittest.main()
