"""
Configuration manager for Track Trivia Quiz settings and parameters.
"""
import logging
from typing import Dict, Any, List, Optional
from pathlib import Path

from .models import QuizSettings, Category, RANDOM_CATEGORY


class ConfigManager:
    """Manages quiz configuration constants and defaults."""

    # Default configuration values
    DEFAULT_QUESTION_COUNT = 2
    DEFAULT_CATEGORY = RANDOM_CATEGORY
    DEFAULT_OPTION_COUNT = 4
    DEFAULT_POINTS_PER_CORRECT = 10
    DEFAULT_TRACKS_DIRECTORY = "./tracks/"
    DEFAULT_DATA_DIRECTORY = "./data/"

    # Validation limits
    MIN_QUESTION_COUNT = 1
    MAX_QUESTION_COUNT = 50
    MIN_OPTION_COUNT = 2
    MAX_OPTION_COUNT = 10
    MIN_POINTS_PER_CORRECT = 1
    MAX_POINTS_PER_CORRECT = 1000

    CATEGORY_CHOICES = [category.value for category in Category] + [RANDOM_CATEGORY]

    def __init__(self):
        """Initialize ConfigManager with default settings."""
        self.logger = logging.getLogger(__name__)
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            category=self.DEFAULT_CATEGORY,
            option_count=self.DEFAULT_OPTION_COUNT,
            points_per_correct=self.DEFAULT_POINTS_PER_CORRECT
        )
        self._tracks_directory = self.DEFAULT_TRACKS_DIRECTORY
        self._data_directory = self.DEFAULT_DATA_DIRECTORY

    def get_quiz_settings(self) -> QuizSettings:
        """
        Get current quiz settings.

        Returns:
            A copy of the current QuizSettings
        """
        return QuizSettings(
            question_count=self._global_settings.question_count,
            category=self._global_settings.category,
            option_count=self._global_settings.option_count,
            points_per_correct=self._global_settings.points_per_correct
        )

    def _validate_int(self, value: Any, label: str, minimum: int, maximum: int) -> Optional[Dict[str, Any]]:
        """Return an error result if value is not an int within range, else None."""
        if isinstance(value, bool) or not isinstance(value, int):
            error_msg = f"{label} must be an integer, got {type(value).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a number, got {type(value).__name__}"
            }

        if value < minimum:
            error_msg = f"{label} must be at least {minimum}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too small: Minimum is {minimum}"
            }

        if value > maximum:
            error_msg = f"{label} cannot exceed {maximum}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ {label} too large: Maximum is {maximum}"
            }

        return None

    def set_question_count(self, count: int) -> Dict[str, Any]:
        """
        Set the number of questions for quizzes.

        Args:
            count: Number of questions per quiz

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        error = self._validate_int(count, "Question count", self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT)
        if error:
            return error

        self._global_settings.question_count = count
        self.logger.info(f"Question count set to {count}")
        return {
            'success': True,
            'message': f"Question count set to {count}",
            'user_message': f"✅ Question count set to {count}"
        }

    def get_question_count(self) -> int:
        return self._global_settings.question_count

    def set_category(self, category: str) -> Dict[str, Any]:
        """
        Set the default question category.

        Args:
            category: One of the category literals or 'random'

        Returns:
            Dictionary with success status, error message, and user-friendly message
        """
        if isinstance(category, Category):
            category = category.value

        if category not in self.CATEGORY_CHOICES:
            error_msg = f"Unknown category: {category!r}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Unknown category. Choose one of: {', '.join(self.CATEGORY_CHOICES)}"
            }

        self._global_settings.category = category
        self.logger.info(f"Default category set to {category}")
        return {
            'success': True,
            'message': f"Default category set to {category}",
            'user_message': f"✅ Questions will be about: {category.replace('_', ' ')}"
        }

    def get_category(self) -> str:
        return self._global_settings.category

    def set_option_count(self, count: int) -> Dict[str, Any]:
        """Set how many choices each question offers."""
        error = self._validate_int(count, "Option count", self.MIN_OPTION_COUNT, self.MAX_OPTION_COUNT)
        if error:
            return error

        self._global_settings.option_count = count
        self.logger.info(f"Option count set to {count}")
        return {
            'success': True,
            'message': f"Option count set to {count}",
            'user_message': f"✅ Each question will offer {count} choices"
        }

    def get_option_count(self) -> int:
        return self._global_settings.option_count

    def set_points_per_correct(self, points: int) -> Dict[str, Any]:
        """Set the score awarded for each correct answer."""
        error = self._validate_int(
            points, "Points per correct answer", self.MIN_POINTS_PER_CORRECT, self.MAX_POINTS_PER_CORRECT
        )
        if error:
            return error

        self._global_settings.points_per_correct = points
        self.logger.info(f"Points per correct answer set to {points}")
        return {
            'success': True,
            'message': f"Points per correct answer set to {points}",
            'user_message': f"✅ Each correct answer is worth {points} points"
        }

    def get_points_per_correct(self) -> int:
        return self._global_settings.points_per_correct

    def _set_directory(self, directory: Any, label: str) -> Dict[str, Any]:
        """Validate a directory path and return the normalised form in the result."""
        if not isinstance(directory, str):
            error_msg = f"{label} must be a string, got {type(directory).__name__}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid input: Expected a path string, got {type(directory).__name__}"
            }

        if not directory.strip():
            error_msg = f"{label} cannot be empty"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': "❌ Directory path cannot be empty"
            }

        try:
            normalized_path = str(Path(directory).resolve())
        except (OSError, ValueError) as e:
            error_msg = f"Invalid directory path format: {e}"
            self.logger.error(error_msg)
            return {
                'success': False,
                'error': error_msg,
                'user_message': f"❌ Invalid path format: {directory}"
            }

        self.logger.info(f"{label} set to {normalized_path}")
        return {
            'success': True,
            'path': normalized_path,
            'message': f"{label} set to {normalized_path}",
            'user_message': f"✅ {label} set to {normalized_path}"
        }

    def set_tracks_directory(self, directory: str) -> Dict[str, Any]:
        """Set the directory holding per-user track catalogues."""
        result = self._set_directory(directory, "Tracks directory")
        if result['success']:
            self._tracks_directory = result['path']
        return result

    def get_tracks_directory(self) -> str:
        return self._tracks_directory

    def set_data_directory(self, directory: str) -> Dict[str, Any]:
        """Set the directory holding scores and quiz history."""
        result = self._set_directory(directory, "Data directory")
        if result['success']:
            self._data_directory = result['path']
        return result

    def get_data_directory(self) -> str:
        return self._data_directory

    def apply_config(self, config: Dict[str, Any]) -> List[str]:
        """
        Apply the 'quiz' section of a loaded config.json.

        Invalid values are logged and skipped so the defaults stay in effect.

        Returns:
            List of error messages for values that were rejected
        """
        quiz_config = (config or {}).get('quiz', {})
        setters = [
            ('default_question_count', self.set_question_count),
            ('default_category', self.set_category),
            ('option_count', self.set_option_count),
            ('points_per_correct', self.set_points_per_correct),
            ('tracks_directory', self.set_tracks_directory),
            ('data_directory', self.set_data_directory),
        ]

        errors = []
        for key, setter in setters:
            if key not in quiz_config:
                continue
            result = setter(quiz_config[key])
            if not result['success']:
                errors.append(f"{key}: {result['error']}")

        if errors:
            self.logger.warning(f"Ignored {len(errors)} invalid configuration values")
        else:
            self.logger.info("Configuration applied successfully")
        return errors

    def reset_to_defaults(self) -> None:
        """Reset all settings to their default values."""
        self._global_settings = QuizSettings(
            question_count=self.DEFAULT_QUESTION_COUNT,
            category=self.DEFAULT_CATEGORY,
            option_count=self.DEFAULT_OPTION_COUNT,
            points_per_correct=self.DEFAULT_POINTS_PER_CORRECT
        )
        self._tracks_directory = self.DEFAULT_TRACKS_DIRECTORY
        self._data_directory = self.DEFAULT_DATA_DIRECTORY
        self.logger.info("All settings reset to default values")

    def validate_settings(self) -> Dict[str, Any]:
        """
        Validate current settings and return validation results.

        Returns:
            Dictionary with validation results and any issues found
        """
        validation_result = {
            "valid": True,
            "issues": []
        }
        settings = self._global_settings

        ranges = [
            ("question count", settings.question_count, self.MIN_QUESTION_COUNT, self.MAX_QUESTION_COUNT),
            ("option count", settings.option_count, self.MIN_OPTION_COUNT, self.MAX_OPTION_COUNT),
            ("points per correct answer", settings.points_per_correct,
             self.MIN_POINTS_PER_CORRECT, self.MAX_POINTS_PER_CORRECT),
        ]
        for label, value, minimum, maximum in ranges:
            if not isinstance(value, int) or value < minimum or value > maximum:
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {label}: {value}")

        if settings.category not in self.CATEGORY_CHOICES:
            validation_result["valid"] = False
            validation_result["issues"].append(f"Invalid category: {settings.category}")

        for label, directory in (("tracks directory", self._tracks_directory),
                                 ("data directory", self._data_directory)):
            if not isinstance(directory, str) or not directory.strip():
                validation_result["valid"] = False
                validation_result["issues"].append(f"Invalid {label}: {directory}")

        return validation_result

    def get_settings_summary(self) -> str:
        """
        Get a formatted summary of current settings.

        Returns:
            Human-readable string describing current settings
        """
        settings = self._global_settings
        return (
            f"Quiz Settings:\n"
            f"• Questions: {settings.question_count}\n"
            f"• Category: {settings.category.replace('_', ' ')}\n"
            f"• Choices per question: {settings.option_count}\n"
            f"• Points per correct answer: {settings.points_per_correct}\n"
            f"• Tracks Directory: {self._tracks_directory}"
        )
