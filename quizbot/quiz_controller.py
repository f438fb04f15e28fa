"""
Quiz session controller for the Sheet Quiz Bot.
Creates sessions, routes operations to the quiz engine and removes sessions
from the store once they end.
"""
import logging
import time
from typing import Any, Dict, List, Optional

from .answer_matcher import suggest_candidates
from .data_manager import QuestionSourceError
from .models import (
    PayloadKind,
    QuizSession,
    QuizTopic,
    RenderPayload,
    SessionKey,
)
from .quiz_engine import QuizEngine
from .session_store import SessionStore


class QuizControllerError(Exception):
    """Base exception for quiz controller errors."""
    pass


class SessionConflictError(QuizControllerError):
    """Raised when attempting to create a session that conflicts with existing session."""
    pass


class SessionNotFoundError(QuizControllerError):
    """Raised when attempting to operate on a non-existent session."""
    pass


class QuizController:
    """
    Orchestrates quiz sessions across Discord channels.

    Each channel can have at most one session at a time. Operations return
    the render payloads the transport should display; operations on a
    channel without a session return nothing.
    """

    def __init__(self, store: SessionStore, question_source, quiz_engine: Optional[QuizEngine] = None):
        """
        Initialize the quiz controller.

        Args:
            store: Registry holding the active sessions
            question_source: Object with async ``fetch_questions`` and ``list_topics``
            quiz_engine: State machine driving each session
        """
        self.logger = logging.getLogger(__name__)
        self.store = store
        self.question_source = question_source
        self.quiz_engine = quiz_engine or QuizEngine()

        self.logger.info("QuizController initialized")

    async def start(self, key: SessionKey, topic: str, count: int) -> List[RenderPayload]:
        """
        Start a quiz in a channel.

        The key is reserved before questions are fetched so a second start
        for the same channel is rejected while the first is still loading.

        Args:
            key: Channel the quiz runs in
            topic: Name of the question set
            count: Requested number of questions

        Returns:
            First question, or a notice/suggestion/help listing on failure
        """
        try:
            self._reserve(key)
        except SessionConflictError as e:
            self.logger.info(str(e), extra={
                'event_type': 'session_conflict',
                'session_key': str(key),
                'timestamp': time.time()
            })
            return [RenderPayload(kind=PayloadKind.ALREADY_ACTIVE_NOTICE)]

        try:
            questions = await self.question_source.fetch_questions(topic, count)
        except QuestionSourceError as e:
            self.store.release(key)
            self.logger.info(f"Could not start quiz '{topic}' in {key}: {e}")
            return await self._topic_fallback(topic)
        except BaseException:
            # Includes cancellation of the handler while the fetch is pending
            self.store.release(key)
            raise

        session = QuizSession(
            key=key,
            topic=topic,
            questions=self.quiz_engine.select_questions(questions, count)
        )
        self.store.create(key, session)

        self.logger.info(
            f"Created quiz session for {key}: topic='{topic}', questions={len(session.questions)}",
            extra={
                'event_type': 'session_created',
                'session_key': str(key),
                'topic': topic,
                'question_count': len(session.questions),
                'timestamp': time.time()
            }
        )
        return self._settle(session, self.quiz_engine.begin(session))

    def submit(self, key: SessionKey, participant_id: str, text: str) -> List[RenderPayload]:
        """Score an answer for the channel's current question."""
        return self._run(key, self.quiz_engine.submit, participant_id, text)

    def hint(self, key: SessionKey) -> List[RenderPayload]:
        return self._run(key, self.quiz_engine.hint)

    def skip(self, key: SessionKey) -> List[RenderPayload]:
        return self._run(key, self.quiz_engine.skip)

    def end(self, key: SessionKey) -> List[RenderPayload]:
        return self._run(key, self.quiz_engine.end)

    def question_render_failed(self, key: SessionKey) -> List[RenderPayload]:
        """Advance past a question the transport could not display."""
        return self._run(key, self.quiz_engine.advance_after_render_failure)

    def get_session(self, key: SessionKey) -> Optional[QuizSession]:
        return self.store.get(key)

    def has_active_session(self, key: SessionKey) -> bool:
        return self.store.get(key) is not None

    def get_session_progress(self, key: SessionKey) -> Optional[Dict[str, Any]]:
        """
        Get progress information for an active session.

        Args:
            key: Channel identifier

        Returns:
            Dictionary with progress info, None if no active session
        """
        session = self.store.get(key)
        if session is None:
            return None

        return {
            'topic': session.topic,
            'current_question': session.current_index + 1,
            'total_questions': len(session.questions),
            'participants': len(session.scores),
            'state': session.state.value,
            'start_time': session.start_time
        }

    def get_all_active_sessions(self) -> Dict[SessionKey, Dict[str, Any]]:
        return {key: self.get_session_progress(key) for key in self.store.active_keys()}

    def _reserve(self, key: SessionKey) -> None:
        if not self.store.reserve(key):
            raise SessionConflictError(f"Quiz already running in {key}")

    def _require_session(self, key: SessionKey) -> QuizSession:
        session = self.store.get(key)
        if session is None:
            raise SessionNotFoundError(f"No active quiz in {key}")
        return session

    def _run(self, key: SessionKey, transition, *args) -> List[RenderPayload]:
        try:
            session = self._require_session(key)
        except SessionNotFoundError as e:
            self.logger.debug(str(e))
            return []
        return self._settle(session, transition(session, *args))

    def _settle(self, session: QuizSession, payloads: List[RenderPayload]) -> List[RenderPayload]:
        if session.is_ended:
            self.store.delete(session.key)
            self.logger.info(
                f"Removed session for {session.key}",
                extra={
                    'event_type': 'session_removed',
                    'session_key': str(session.key),
                    'timestamp': time.time()
                }
            )
        return payloads

    async def _topic_fallback(self, topic: str) -> List[RenderPayload]:
        try:
            topics: List[QuizTopic] = await self.question_source.list_topics()
        except QuestionSourceError as e:
            self.logger.error(f"Failed to list quiz topics: {e}")
            return [RenderPayload(kind=PayloadKind.HELP_LISTING)]

        suggestions = suggest_candidates(topic, [t.name for t in topics], self.quiz_engine.tolerance_ratio)
        if suggestions:
            return [RenderPayload(kind=PayloadKind.TOPIC_SUGGESTION, suggestions=suggestions)]
        return [RenderPayload(kind=PayloadKind.HELP_LISTING, topics=topics)]
