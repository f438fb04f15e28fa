"""
Question sources: Google Sheets and local JSON quiz files.

Both sources hand out fresh QuizQuestion objects on every fetch, so hint
progress from one session never leaks into another.
"""
import json
import os
import logging
import random
import time
from typing import Any, Callable, Dict, List, Optional, Tuple
from pathlib import Path
from urllib.parse import quote

import httpx

from .models import QuizQuestion, QuizTopic
from .sheets_auth import SheetsAuthError

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"
QUESTION_RANGE = "3:1000"
DESCRIPTION_CELL = "B1"


class QuestionSourceError(Exception):
    """Raised when questions or topics cannot be retrieved."""
    pass


class TopicNotFoundError(QuestionSourceError):
    """Raised when a topic is unknown or holds no usable questions."""
    pass


def quote_sheet_name(name: str) -> str:
    """Quote a sheet title for use in A1 notation."""
    return "'" + name.replace("'", "''") + "'"


def parse_question_row(row: List[Any]) -> Optional[QuizQuestion]:
    """
    Build a question from one sheet row.

    Row layout is ``[prompt, image_url, answer, answer, ...]``; blank cells
    are ignored.

    Returns:
        QuizQuestion, or None if the row has no prompt or no answers
    """
    cells = [str(cell).strip() for cell in row]
    if not cells or not cells[0]:
        return None

    image_url = cells[1] if len(cells) > 1 and cells[1] else None
    answers = [cell for cell in cells[2:] if cell]
    if not answers:
        return None

    return QuizQuestion(prompt=cells[0], accepted_answers=answers, image_url=image_url)


class SheetsQuestionSource:
    """
    Loads quiz topics and questions from a Google Sheets spreadsheet.

    Every sheet is one topic; cell B1 holds its description and rows from 3
    onward hold questions. Responses are cached for ``cache_ttl`` seconds.
    """

    def __init__(
        self,
        spreadsheet_id: str,
        credentials,
        cache_ttl: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None
    ):
        """
        Args:
            spreadsheet_id: Spreadsheet to read from
            credentials: Object with an async ``get_access_token()`` method
            cache_ttl: Seconds a fetched sheet stays valid
            transport: Optional httpx transport (used by tests)
            clock: Monotonic time source for cache expiry
            rng: Random generator used to sample questions
        """
        self.logger = logging.getLogger(__name__)
        self.spreadsheet_id = spreadsheet_id
        self.credentials = credentials
        self.cache_ttl = cache_ttl
        self._transport = transport
        self._clock = clock
        self._rng = rng or random.Random()
        self._rows_cache: Dict[str, Tuple[float, List[List[Any]]]] = {}
        self._topics_cache: Optional[Tuple[float, List[QuizTopic]]] = None

    async def fetch_questions(self, topic: str, count: int) -> List[QuizQuestion]:
        """
        Fetch a random batch of questions for a topic.

        Args:
            topic: Sheet title
            count: Maximum number of questions to return

        Returns:
            Up to ``count`` questions in random order

        Raises:
            TopicNotFoundError: If the sheet does not exist or has no questions
            QuestionSourceError: On any other API failure
        """
        rows = await self._get_rows(topic)
        questions = [question for question in map(parse_question_row, rows) if question]
        skipped = len(rows) - len(questions)
        if skipped:
            self.logger.warning(f"Skipped {skipped} incomplete rows in sheet '{topic}'")

        if not questions:
            raise TopicNotFoundError(f"No questions found in sheet '{topic}'")

        return self._rng.sample(questions, min(count, len(questions)))

    async def list_topics(self) -> List[QuizTopic]:
        """
        List every sheet in the spreadsheet with its description.

        Raises:
            QuestionSourceError: If the spreadsheet cannot be read
        """
        if self._topics_cache and self._is_fresh(self._topics_cache[0]):
            self.logger.debug("Using cached topic list")
            return list(self._topics_cache[1])

        async with self._client() as client:
            metadata = await self._get_json(
                client, f"{SHEETS_API_URL}/{self.spreadsheet_id}",
                params={"fields": "sheets.properties.title"}
            )
            titles = [
                sheet.get("properties", {}).get("title", "")
                for sheet in metadata.get("sheets", [])
            ]
            titles = [title for title in titles if title]
            if not titles:
                raise QuestionSourceError("No sheets found in spreadsheet")

            ranges = [f"{quote_sheet_name(title)}!{DESCRIPTION_CELL}" for title in titles]
            descriptions = await self._get_json(
                client, f"{SHEETS_API_URL}/{self.spreadsheet_id}/values:batchGet",
                params=[("ranges", value_range) for value_range in ranges]
            )

        value_ranges = descriptions.get("valueRanges", [])
        topics = []
        for index, title in enumerate(titles):
            values = value_ranges[index].get("values") if index < len(value_ranges) else None
            description = values[0][0] if values and values[0] else ""
            topics.append(QuizTopic(name=title, description=str(description)))

        self._topics_cache = (self._clock(), topics)
        self.logger.info(f"Loaded {len(topics)} quiz topics from spreadsheet")
        return list(topics)

    def clear_cache(self) -> None:
        self._rows_cache.clear()
        self._topics_cache = None

    async def _get_rows(self, topic: str) -> List[List[Any]]:
        cached = self._rows_cache.get(topic)
        if cached and self._is_fresh(cached[0]):
            self.logger.debug(f"Using cached rows for sheet '{topic}'")
            return cached[1]

        value_range = quote(f"{quote_sheet_name(topic)}!{QUESTION_RANGE}", safe="")
        async with self._client() as client:
            data = await self._get_json(
                client, f"{SHEETS_API_URL}/{self.spreadsheet_id}/values/{value_range}"
            )

        rows = data.get("values") or []
        if not rows:
            raise TopicNotFoundError(f"No data found in sheet '{topic}'")

        self._rows_cache[topic] = (self._clock(), rows)
        self.logger.info(f"Fetched {len(rows)} rows from sheet '{topic}'")
        return rows

    def _is_fresh(self, timestamp: float) -> bool:
        return self._clock() - timestamp < self.cache_ttl

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=30.0, transport=self._transport)

    async def _get_json(self, client: httpx.AsyncClient, url: str, params=None) -> Dict[str, Any]:
        try:
            token = await self.credentials.get_access_token()
        except SheetsAuthError as exc:
            self.logger.error(f"Cannot authenticate to Sheets API: {exc}")
            raise QuestionSourceError(f"Cannot authenticate to Sheets API: {exc}") from exc
        headers = {"Authorization": f"Bearer {token}"}
        try:
            response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (400, 404):
                raise TopicNotFoundError(f"Sheets API rejected {exc.request.url.path}: {status}") from exc
            self.logger.error(f"Sheets API error {status} for {exc.request.url.path}")
            raise QuestionSourceError(f"Sheets API error {status}") from exc
        except httpx.HTTPError as exc:
            self.logger.error(f"Failed to reach Sheets API: {exc}")
            raise QuestionSourceError(f"Failed to reach Sheets API: {exc}") from exc
        return response.json()


class DirectoryQuestionSource:
    """Loads quiz topics from JSON files in a local directory."""

    MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

    def __init__(self, quiz_directory: str = "./quizzes/", rng: Optional[random.Random] = None):
        """
        Initialize the source with a quiz directory path.

        Args:
            quiz_directory: Path to directory containing JSON quiz files
            rng: Random generator used to sample questions
        """
        self.quiz_directory = Path(quiz_directory)
        self.loaded_quizzes: Dict[str, dict] = {}
        self.logger = logging.getLogger(__name__)
        self.load_errors: List[str] = []
        self._loaded = False
        self._rng = rng or random.Random()

    async def fetch_questions(self, topic: str, count: int) -> List[QuizQuestion]:
        if not self._loaded:
            self.load_quiz_files()

        quiz_data = self.loaded_quizzes.get(topic)
        if quiz_data is None:
            raise TopicNotFoundError(f"Quiz '{topic}' not found in {self.quiz_directory}")

        questions = self._parse_questions(quiz_data)
        return self._rng.sample(questions, min(count, len(questions)))

    async def list_topics(self) -> List[QuizTopic]:
        if not self._loaded:
            self.load_quiz_files()
        return [
            QuizTopic(name=name, description=data.get("description", ""))
            for name, data in sorted(self.loaded_quizzes.items())
        ]

    def load_quiz_files(self) -> Dict[str, dict]:
        """
        Load all JSON files from the quiz directory.

        Files that fail to load are recorded in ``load_errors`` and skipped.

        Returns:
            Dictionary mapping quiz names to validated quiz data
        """
        self.loaded_quizzes.clear()
        self.load_errors.clear()
        self._loaded = True

        if not self.quiz_directory.is_dir():
            self.logger.warning(f"Quiz directory {self.quiz_directory} does not exist")
            self.load_errors.append(f"Quiz directory not found: {self.quiz_directory}")
            return self.loaded_quizzes

        for json_file in sorted(self.quiz_directory.glob("*.json")):
            error = self._load_quiz_file_safely(json_file)
            if error:
                self.load_errors.append(f"{json_file.name}: {error}")

        self.logger.info(f"Successfully loaded {len(self.loaded_quizzes)} quiz files")
        if self.load_errors:
            self.logger.warning(f"Encountered {len(self.load_errors)} loading errors")

        return self.loaded_quizzes

    def validate_quiz_structure(self, data: dict) -> bool:
        """
        Validate that JSON data has the correct quiz structure.

        Expected structure:
        {
            "description": str,  # Optional
            "quiz": [
                {
                    "question": str,
                    "answers": [str, ...],  # or "answer": str
                    "image": str  # Optional
                }
            ]
        }

        Args:
            data: Parsed JSON data to validate

        Returns:
            True if structure is valid, False otherwise
        """
        if not isinstance(data, dict):
            self.logger.error("Quiz data must be a JSON object")
            return False

        if not isinstance(data.get("description", ""), str):
            self.logger.error("'description' must be a string")
            return False

        quiz_array = data.get("quiz")
        if not isinstance(quiz_array, list) or not quiz_array:
            self.logger.error("Quiz data must contain a non-empty 'quiz' array")
            return False

        for i, question_data in enumerate(quiz_array):
            if not isinstance(question_data, dict):
                self.logger.error(f"Question {i} must be an object")
                return False

            if not isinstance(question_data.get("question"), str) or not question_data["question"].strip():
                self.logger.error(f"Question {i} 'question' field must be a non-empty string")
                return False

            if not self._answers_of(question_data):
                self.logger.error(f"Question {i} needs an 'answer' string or a non-empty 'answers' array")
                return False

            if "image" in question_data and not isinstance(question_data["image"], str):
                self.logger.error(f"Question {i} 'image' field must be a string")
                return False

        return True

    def get_load_errors(self) -> List[str]:
        return self.load_errors.copy()

    def get_loading_summary(self) -> Dict[str, Any]:
        """
        Get a summary of the last loading operation.

        Returns:
            Dictionary with loading statistics and status
        """
        return {
            'total_quizzes': len(self.loaded_quizzes),
            'has_errors': bool(self.load_errors),
            'errors': self.get_load_errors(),
            'quiz_directory': str(self.quiz_directory),
            'available_quizzes': sorted(self.loaded_quizzes.keys())
        }

    @staticmethod
    def _answers_of(question_data: dict) -> List[str]:
        answers = question_data.get("answers")
        if answers is None and isinstance(question_data.get("answer"), str):
            answers = [question_data["answer"]]
        if not isinstance(answers, list):
            return []
        return [answer.strip() for answer in answers if isinstance(answer, str) and answer.strip()]

    def _parse_questions(self, quiz_data: dict) -> List[QuizQuestion]:
        return [
            QuizQuestion(
                prompt=question_data["question"].strip(),
                accepted_answers=self._answers_of(question_data),
                image_url=question_data.get("image") or None
            )
            for question_data in quiz_data["quiz"]
        ]

    def _load_quiz_file_safely(self, json_file: Path) -> Optional[str]:
        """
        Load a single quiz file.

        Returns:
            None on success, otherwise a description of the failure
        """
        try:
            if not os.access(json_file, os.R_OK):
                return "Permission denied: Cannot read file"

            file_size = json_file.stat().st_size
            if file_size > self.MAX_FILE_SIZE:
                return f"File too large ({file_size / 1024 / 1024:.1f}MB)"

            with open(json_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            self.logger.error(f"Invalid JSON in {json_file}: {e}")
            return f"Invalid JSON: {e}"
        except OSError as e:
            self.logger.error(f"Failed to read quiz file {json_file}: {e}")
            return f"System error: {e}"

        if not self.validate_quiz_structure(data):
            return "Invalid quiz structure"

        self.loaded_quizzes[json_file.stem] = data
        self.logger.info(f"Loaded quiz '{json_file.stem}' with {len(data['quiz'])} questions")
        return None
