"""
Data manager for JSON track catalogues, user scores and quiz history.
"""
import json
import os
import logging
import tempfile
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from pathlib import Path

from .models import (
    AnswerRecord,
    Category,
    HistoryQuestion,
    Track,
    PersistenceFailureError,
    TrackSourceUnavailableError,
)


class DataManager:
    """Loads track catalogues and persists scores and answered quizzes."""

    USERS_FILE = "users.json"
    HISTORY_FILE = "history.json"

    def __init__(self, tracks_directory: str = "./tracks/", data_directory: str = "./data/"):
        """
        Initialize DataManager with its directories.

        Args:
            tracks_directory: Directory containing one <credential>.json catalogue per user
            data_directory: Directory where scores and history are written
        """
        self.tracks_directory = Path(tracks_directory)
        self.data_directory = Path(data_directory)
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []

    # Track source

    async def fetch_tracks(self, user_credential: Optional[str]) -> List[Track]:
        """
        Fetch the favourite tracks for a user.

        Args:
            user_credential: Credential naming the user's catalogue

        Returns:
            List of Track objects, possibly empty

        Raises:
            TrackSourceUnavailableError: If there is no credential or the
                catalogue cannot be read
        """
        self.load_errors.clear()

        if not user_credential or not str(user_credential).strip():
            raise TrackSourceUnavailableError("No credential available for track retrieval")

        file_path = self.tracks_directory / f"{Path(str(user_credential)).name}.json"
        data = self._load_single_file(file_path)
        if data is None:
            raise TrackSourceUnavailableError(f"Could not load track catalogue {file_path.name}")

        if not self.validate_catalogue_structure(data):
            raise TrackSourceUnavailableError(f"Invalid track catalogue structure in {file_path.name}")

        tracks = self._parse_tracks(data)
        self.logger.info(f"Loaded {len(tracks)} tracks from {file_path}")
        if self.load_errors:
            self.logger.warning(f"Skipped {len(self.load_errors)} malformed track entries")
        return tracks

    def _load_single_file(self, file_path: Path) -> Optional[Any]:
        """
        Load and parse a single JSON file.

        Returns:
            Parsed JSON data or None if loading failed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {file_path}: {e}")
            return None
        except FileNotFoundError:
            self.logger.error(f"Track catalogue not found: {file_path}")
            return None
        except OSError as e:
            self.logger.error(f"Failed to read {file_path}: {e}")
            return None

    def validate_catalogue_structure(self, data: Any) -> bool:
        """
        Validate that JSON data has the track catalogue structure.

        Expected structure:
        {
            "tracks": [
                {
                    "id": str,
                    "name": str,
                    "artists": [{"name": str}],
                    "album": {"release_date": str, "images": [{"url": str}]},
                    "popularity": int
                }
            ]
        }

        Entries wrapped as {"track": {...}} are accepted too.
        """
        if not isinstance(data, dict):
            self.logger.error("Track catalogue must be a JSON object")
            return False

        if "tracks" not in data:
            self.logger.error("Track catalogue must contain a 'tracks' key")
            return False

        if not isinstance(data["tracks"], list):
            self.logger.error("'tracks' must be an array")
            return False

        return True

    def _parse_tracks(self, data: Dict[str, Any]) -> List[Track]:
        """Parse catalogue entries into Track objects, skipping unusable entries."""
        tracks = []
        for i, entry in enumerate(data["tracks"]):
            if isinstance(entry, dict) and isinstance(entry.get("track"), dict):
                entry = entry["track"]

            if not isinstance(entry, dict) or not entry.get("id"):
                self.load_errors.append(f"Track {i}: missing 'id'")
                continue

            tracks.append(self._parse_track(entry))
        return tracks

    @staticmethod
    def _parse_track(entry: Dict[str, Any]) -> Track:
        album = entry.get("album") if isinstance(entry.get("album"), dict) else {}

        artists = tuple(
            artist["name"]
            for artist in entry.get("artists") or []
            if isinstance(artist, dict) and isinstance(artist.get("name"), str)
        )

        cover_url = None
        images = album.get("images") or []
        if images and isinstance(images[0], dict):
            cover_url = images[0].get("url")

        popularity = entry.get("popularity")
        if isinstance(popularity, bool) or not isinstance(popularity, int):
            popularity = None

        release_date = album.get("release_date")
        if not isinstance(release_date, str):
            release_date = None

        return Track(
            id=str(entry["id"]),
            title=entry.get("name"),
            artists=artists,
            release_date=release_date,
            popularity=popularity,
            album_cover_url=cover_url
        )

    # Score persistence

    def get_user_score(self, user_id: int) -> int:
        """Return the stored points total for a user, 0 if unknown."""
        users = self._read_store(self.USERS_FILE, {})
        return int(users.get(str(user_id), {}).get("score", 0))

    async def update_score(self, user_id: int, new_total: int) -> Dict[str, Any]:
        """
        Store a user's new points total.

        Returns:
            The updated user record {"user_id", "score"}

        Raises:
            PersistenceFailureError: If the store cannot be written
        """
        users = self._read_store(self.USERS_FILE, {})
        record = {"user_id": user_id, "score": int(new_total)}
        users[str(user_id)] = record
        self._write_store(self.USERS_FILE, users)
        self.logger.info(f"Updated score for user {user_id} to {new_total}")
        return record

    # History persistence

    async def submit_answered_questions(self, records: Sequence[AnswerRecord], user_id: int) -> int:
        """
        Store the answer log of a completed quiz.

        Returns:
            Id of the stored quiz

        Raises:
            PersistenceFailureError: If the store cannot be written
        """
        history = self._read_store(self.HISTORY_FILE, {"next_question_id": 1, "quizzes": []})
        quiz_id = max((quiz["id"] for quiz in history["quizzes"]), default=0) + 1

        questions = []
        next_question_id = history.get("next_question_id", 1)
        for record in records:
            question = record.to_dict()
            question["id"] = next_question_id
            next_question_id += 1
            questions.append(question)

        history["quizzes"].append({
            "id": quiz_id,
            "user_id": user_id,
            "created_at": datetime.now().isoformat(timespec="seconds"),
            "questions": questions
        })
        history["next_question_id"] = next_question_id

        self._write_store(self.HISTORY_FILE, history)
        self.logger.info(f"Stored quiz {quiz_id} with {len(questions)} questions for user {user_id}")
        return quiz_id

    # History retrieval

    def get_quiz_questions(self, quiz_id: int, user_id: Optional[int] = None) -> List[HistoryQuestion]:
        """
        Retrieve the answered questions of a stored quiz.

        Args:
            quiz_id: Id of the stored quiz
            user_id: Only return the quiz if it belongs to this user, any owner if None

        Returns:
            List of HistoryQuestion objects, empty if the quiz is unknown
        """
        history = self._read_store(self.HISTORY_FILE, {"quizzes": []})
        for quiz in history["quizzes"]:
            if quiz["id"] == quiz_id:
                if user_id is not None and quiz.get("user_id") != user_id:
                    return []
                return [
                    HistoryQuestion(
                        id=question["id"],
                        text=question["text"],
                        choices=list(question["choices"]),
                        correct_index=question["correct_index"],
                        user_answer_index=question.get("user_answer_index"),
                        category=Category(question["category"])
                    )
                    for question in quiz["questions"]
                ]
        return []

    def list_user_quizzes(self, user_id: int) -> List[Dict[str, Any]]:
        """
        List a user's stored quizzes, newest first.

        Returns:
            List of {"id", "created_at", "question_count", "correct_count"}
        """
        history = self._read_store(self.HISTORY_FILE, {"quizzes": []})
        summaries = []
        for quiz in history["quizzes"]:
            if quiz.get("user_id") != user_id:
                continue
            questions = quiz["questions"]
            summaries.append({
                "id": quiz["id"],
                "created_at": quiz.get("created_at"),
                "question_count": len(questions),
                "correct_count": sum(
                    1 for q in questions if q.get("user_answer_index") == q["correct_index"]
                )
            })
        summaries.sort(key=lambda summary: summary["id"], reverse=True)
        return summaries

    # Storage helpers

    def _read_store(self, filename: str, default: Any) -> Any:
        """Read a JSON store file, returning default if it does not exist yet."""
        path = self.data_directory / filename
        if not path.exists():
            return default

        try:
            with open(path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise PersistenceFailureError(f"Failed to read {path}: {e}") from e

    def _write_store(self, filename: str, data: Any) -> None:
        """Atomically replace a JSON store file."""
        path = self.data_directory / filename
        try:
            self.data_directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.data_directory, prefix=f".{filename}.", suffix=".tmp")
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                Path(tmp_name).replace(path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            self.logger.error(f"Failed to write {path}: {e}")
            raise PersistenceFailureError(f"Failed to write {path}: {e}") from e
