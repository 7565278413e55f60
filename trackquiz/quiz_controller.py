"""
Quiz session controller for the Track Trivia Quiz.
Manages active quiz sessions per player, answer handling and completion.
"""
import logging
import time
from typing import Dict, Optional, Any, Union

from .models import (
    ActiveQuiz,
    Category,
    Player,
    Question,
    SessionState,
    TrackQuizError,
    TrackSourceUnavailableError,
    InvalidCategoryError,
    IncompleteTrackDataError,
    InsufficientDistractorsError,
    PersistenceFailureError,
    RANDOM_CATEGORY,
)
from .quiz_engine import QuizEngine, resolve_category
from .quiz_session import (
    InvalidAnswerError,
    InvalidSessionStateError,
    start_session,
    submit_answer,
    advance,
    answer_records,
    correct_count,
    max_score,
)
from .data_manager import DataManager
from .config_manager import ConfigManager


class QuizControllerError(TrackQuizError):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when a player already has a quiz running."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when operating on a player with no running quiz."""
    pass


class StaleQuestionError(QuizControllerError):
    """Raised when an action targets a question that is no longer the current one."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions for players.

    Each player can have at most one running quiz. A finished quiz is handed
    to the data manager (score first, then the answer log) exactly once and
    then dropped from the active set.
    """

    def __init__(
        self,
        data_manager: DataManager,
        config_manager: ConfigManager,
        quiz_engine: Optional[QuizEngine] = None
    ):
        """
        Initialize the quiz controller.

        Args:
            data_manager: Track source and persistence collaborator
            config_manager: Source of quiz settings
            quiz_engine: Engine used to build quizzes, a default one if None
        """
        self.logger = logging.getLogger(__name__)
        self.data_manager = data_manager
        self.config_manager = config_manager
        self.quiz_engine = quiz_engine or QuizEngine()

        # Running quizzes mapped by player id
        self._active_sessions: Dict[int, ActiveQuiz] = {}

        self.logger.info("QuizController initialized")

    def get_active_quiz(self, player_id: int) -> Optional[ActiveQuiz]:
        return self._active_sessions.get(player_id)

    def has_active_session(self, player_id: int) -> bool:
        return player_id in self._active_sessions

    def get_session_state(self, player_id: int) -> Optional[SessionState]:
        """
        Get the state of a player's running quiz.

        Returns:
            Current SessionState, or None if the player has no running quiz
        """
        active = self._active_sessions.get(player_id)
        return active.session.state if active else None

    def get_current_question(self, player_id: int) -> Optional[Question]:
        active = self._active_sessions.get(player_id)
        return active.session.current_question if active else None

    def get_session_progress(self, player_id: int) -> Optional[Dict[str, Any]]:
        """
        Get progress information for a running quiz.

        Returns:
            Dictionary with progress info, None if no running quiz
        """
        active = self._active_sessions.get(player_id)
        if active is None:
            return None

        session = active.session
        return {
            'player_id': player_id,
            'current_question': min(session.cursor + 1, len(session.questions)),
            'total_questions': len(session.questions),
            'score': session.score,
            'max_score': max_score(session),
            'state': session.state.value,
            'start_time': active.start_time,
            'settings': {
                'question_count': active.settings.question_count,
                'category': active.settings.category,
                'option_count': active.settings.option_count,
                'points_per_correct': active.settings.points_per_correct
            }
        }

    async def start_quiz(
        self,
        player: Player,
        category: Optional[Union[str, Category]] = None,
        question_count: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Fetch the player's tracks, build a quiz and start a session.

        Args:
            player: Player taking the quiz
            category: Category literal or 'random', config default if None
            question_count: Number of questions, config default if None

        Returns:
            Dictionary with operation results and error information. When the
            quiz is empty it is completed immediately and the result carries
            the completion report under 'completion'.
        """
        try:
            if self.has_active_session(player.user_id):
                raise SessionConflictError(f"Quiz already running for player {player.user_id}")

            settings = self.config_manager.get_quiz_settings()
            if category is not None:
                settings.category = category.value if isinstance(category, Category) else category
            if question_count is not None:
                settings.question_count = question_count

            if settings.category != RANDOM_CATEGORY:
                resolve_category(settings.category)

            tracks = await self.data_manager.fetch_tracks(player.credential)

            questions = self.quiz_engine.build_quiz(
                tracks,
                settings.category,
                settings.question_count,
                settings.option_count
            )

            active = ActiveQuiz(
                player=player,
                session=start_session(questions, settings.points_per_correct),
                settings=settings
            )
            self._active_sessions[player.user_id] = active

            self.logger.info(
                f"Started quiz for player {player.user_id}: "
                f"category='{settings.category}', questions={len(questions)}"
            )

            result = {
                'success': True,
                'message': f"Quiz started with {len(questions)} questions",
                'session_info': self.get_session_progress(player.user_id)
            }

            if active.session.is_completed:
                self.logger.info(f"No tracks available for player {player.user_id}, quiz completed at start")
                result['completion'] = await self._complete_quiz(active)

            return result

        except Exception as e:
            return self._handle_session_error(player.user_id, e, "start_quiz")

    def submit_answer(
        self,
        player_id: int,
        index: int,
        quiz_token: Optional[str] = None,
        position: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Record the player's choice for the current question.

        Args:
            player_id: Player answering
            index: Chosen option index
            quiz_token: Token of the quiz the answer was given in, unchecked if None
            position: Question position the answer was given for, unchecked if None

        Returns:
            Dictionary with success status, correctness and running score
        """
        try:
            active = self._require_session(player_id, quiz_token, position)
            session = submit_answer(active.session, index)
            active.session = session

            answered = session.questions[session.cursor]
            self.logger.debug(
                f"Player {player_id} answered question {session.cursor + 1}: "
                f"{'correct' if answered.is_correct else 'wrong'}"
            )
            return {
                'success': True,
                'is_correct': answered.is_correct,
                'correct_index': answered.correct_index,
                'selected_index': index,
                'score': session.score,
                'is_last_question': session.cursor == len(session.questions) - 1
            }

        except Exception as e:
            return self._handle_session_error(player_id, e, "submit_answer")

    async def advance_question(
        self,
        player_id: int,
        quiz_token: Optional[str] = None,
        position: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Move to the next question, completing the quiz after the last one.

        quiz_token and position, when given, must match the running quiz and
        its current question.

        Returns:
            Dictionary with 'completed' and either 'question' or 'completion'
        """
        try:
            active = self._require_session(player_id, quiz_token, position)
            active.session = advance(active.session)

            if active.session.is_completed:
                completion = await self._complete_quiz(active)
                return {'success': True, 'completed': True, 'completion': completion}

            self.logger.debug(f"Advanced to question {active.session.cursor + 1} for player {player_id}")
            return {
                'success': True,
                'completed': False,
                'question': active.session.current_question,
                'session_info': self.get_session_progress(player_id)
            }

        except Exception as e:
            return self._handle_session_error(player_id, e, "advance_question")

    def stop_quiz(self, player_id: int, quiz_token: Optional[str] = None) -> Dict[str, Any]:
        """
        Abandon a running quiz without saving anything.

        Args:
            player_id: Player whose quiz is stopped
            quiz_token: Only stop the quiz carrying this token, any quiz if None

        Returns:
            Dictionary with operation results and the final progress
        """
        try:
            self._require_session(player_id, quiz_token)
        except QuizControllerError as e:
            return self._handle_session_error(player_id, e, "stop_quiz")

        session_info = self.get_session_progress(player_id)
        del self._active_sessions[player_id]
        self.logger.info(f"Stopped quiz for player {player_id} at question {session_info['current_question']}")
        return {
            'success': True,
            'message': "Quiz stopped",
            'session_info': session_info
        }

    def get_session_status_summary(self, player_id: int) -> str:
        """Human-readable one-liner of a player's quiz status."""
        info = self.get_session_progress(player_id)
        if info is None:
            return "No quiz running"

        state = SessionState(info['state'])
        status = "Waiting for next question" if state is SessionState.AWAITING_NEXT else "Answering"
        return (
            f"Status: {status} | Progress: {info['current_question']}/{info['total_questions']} | "
            f"Score: {info['score']}/{info['max_score']}"
        )

    def _require_session(
        self,
        player_id: int,
        quiz_token: Optional[str] = None,
        position: Optional[int] = None
    ) -> ActiveQuiz:
        active = self.get_active_quiz(player_id)
        if active is None:
            raise SessionNotFoundError(f"No running quiz for player {player_id}")
        if quiz_token is not None and quiz_token != active.token:
            raise StaleQuestionError(f"Quiz {quiz_token} is no longer running for player {player_id}")
        if position is not None and position != active.session.cursor:
            raise StaleQuestionError(
                f"Question {position + 1} is not the current question for player {player_id}"
            )
        return active

    async def _complete_quiz(self, active: ActiveQuiz) -> Dict[str, Any]:
        """
        Hand a completed session to persistence.

        The score update runs first. A failure in either call is logged and
        reported, never raised; the session score stands regardless.
        """
        player = active.player
        session = active.session

        if active.completion_reported:
            raise InvalidSessionStateError("report completion", session.state)
        active.completion_reported = True
        self._active_sessions.pop(player.user_id, None)

        report = {
            'score': session.score,
            'max_score': max_score(session),
            'correct_count': correct_count(session),
            'total_questions': len(session.questions),
            'new_total': player.points + session.score,
            'score_saved': False,
            'history_saved': False,
            'quiz_id': None,
            'errors': []
        }

        try:
            updated = await self.data_manager.update_score(player.user_id, player.points + session.score)
            player.points = updated['score']
            report['new_total'] = player.points
            report['score_saved'] = True
        except PersistenceFailureError as e:
            self.logger.error(f"Failed to update score for player {player.user_id}: {e}")
            report['errors'].append(f"score: {e}")
        except Exception as e:
            self.logger.error(f"Unexpected error updating score for player {player.user_id}: {e}", exc_info=True)
            report['errors'].append(f"score: {e}")

        try:
            report['quiz_id'] = await self.data_manager.submit_answered_questions(
                answer_records(session), player.user_id
            )
            report['history_saved'] = True
        except PersistenceFailureError as e:
            self.logger.error(f"Failed to store answered questions for player {player.user_id}: {e}")
            report['errors'].append(f"history: {e}")
        except Exception as e:
            self.logger.error(
                f"Unexpected error storing answered questions for player {player.user_id}: {e}", exc_info=True
            )
            report['errors'].append(f"history: {e}")

        self.logger.info(
            f"Quiz completed for player {player.user_id}: {session.score}/{report['max_score']}",
            extra={
                'event_type': 'quiz_completed',
                'player_id': player.user_id,
                'score': session.score,
                'score_saved': report['score_saved'],
                'history_saved': report['history_saved'],
                'timestamp': time.time()
            }
        )
        return report

    def _handle_session_error(self, player_id: int, error: Exception, operation: str) -> Dict[str, Any]:
        """
        Turn an exception into an error result.

        Expected errors are logged as warnings; anything else is logged with
        its traceback.
        """
        if isinstance(error, TrackQuizError):
            self.logger.warning(f"{operation} failed for player {player_id}: {error}")
        else:
            self.logger.error(f"Error in {operation} for player {player_id}: {error}", exc_info=True)

        return {
            'success': False,
            'error': str(error),
            'error_type': type(error).__name__,
            'operation': operation,
            'user_message': self._get_user_friendly_error_message(error, operation)
        }

    def _get_user_friendly_error_message(self, error: Exception, operation: str) -> str:
        """
        Generate user-friendly error messages.

        Args:
            error: The exception that occurred
            operation: Description of the operation that failed

        Returns:
            User-friendly error message
        """
        if isinstance(error, SessionConflictError):
            return "❌ You already have a quiz running. Finish it or stop it with `/stop`."

        elif isinstance(error, SessionNotFoundError):
            return "❌ You have no quiz running. Start one with `/trackquiz`."

        elif isinstance(error, StaleQuestionError):
            return "❌ This question is no longer active. Use the latest quiz message."

        elif isinstance(error, InvalidSessionStateError):
            if operation == "submit_answer":
                return "❌ You already answered this question. Press **Next question** to continue."
            return "❌ Answer the current question before moving on."

        elif isinstance(error, InvalidAnswerError):
            return "❌ That choice is not available for this question."

        elif isinstance(error, TrackSourceUnavailableError):
            return "❌ Could not load your favourite tracks. Please try again later."

        elif isinstance(error, InvalidCategoryError):
            return "❌ Unknown category. Choose release date, artist, popularity, album cover or random."

        elif isinstance(error, InsufficientDistractorsError):
            return (
                f"❌ Not enough different {error.category.value.replace('_', ' ')} values in your tracks "
                "to build answer choices. Try another category."
            )

        elif isinstance(error, IncompleteTrackDataError):
            return "❌ Some of your tracks are missing the data this category needs. Try another category."

        else:
            return f"❌ An unexpected error occurred during {operation}. Please try again."
