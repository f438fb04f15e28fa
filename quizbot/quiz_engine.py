"""
Quiz engine core logic for the Sheet Quiz Bot.
Handles question selection and the per-session state machine.

Every transition mutates the session it is given and returns the render
payloads the transport should display, in order.
"""
import random
import logging
import time
from typing import List, Optional

from .answer_matcher import DEFAULT_TOLERANCE_RATIO, matches_any
from .models import (
    PayloadKind,
    QuizQuestion,
    QuizSession,
    RenderPayload,
    SessionState,
    Tally,
)

logger = logging.getLogger(__name__)

DEFAULT_HINT_PLACEHOLDER = "❓"


class QuizEngine:
    """Question selection and session transitions."""

    def __init__(
        self,
        tolerance_ratio: float = DEFAULT_TOLERANCE_RATIO,
        hint_placeholder: str = DEFAULT_HINT_PLACEHOLDER,
        rng: Optional[random.Random] = None
    ):
        self.tolerance_ratio = tolerance_ratio
        self.hint_placeholder = hint_placeholder
        self._rng = rng or random.Random()

    def select_questions(self, questions: List[QuizQuestion], count: int) -> List[QuizQuestion]:
        """
        Pick a freshly shuffled subset of questions.

        Args:
            questions: Questions returned by the question source
            count: Requested number of questions

        Returns:
            New list of at most ``count`` questions in random order
        """
        selected_questions = self.shuffle_questions(questions)
        return self.limit_question_count(selected_questions, count)

    def shuffle_questions(self, questions: List[QuizQuestion]) -> List[QuizQuestion]:
        """
        Shuffle questions randomly.

        Args:
            questions: List of questions to shuffle

        Returns:
            New list with questions in random order
        """
        shuffled = questions.copy()
        self._rng.shuffle(shuffled)
        return shuffled

    def limit_question_count(self, questions: List[QuizQuestion], count: int) -> List[QuizQuestion]:
        """
        Limit the number of questions to the specified count.

        Args:
            questions: List of questions
            count: Maximum number of questions to return

        Returns:
            List limited to the specified count
        """
        if count <= 0:
            return []
        return questions[:count]

    # Transitions

    def begin(self, session: QuizSession) -> List[RenderPayload]:
        """Enter the first question, or end at once if there are none."""
        if session.is_ended:
            return []
        session.current_index = 0
        if not session.questions:
            return self._finish(session)
        return [self._question_payload(session)]

    def submit(self, session: QuizSession, participant_id: str, text: str) -> List[RenderPayload]:
        """
        Score a free-text answer against the current question.

        Every submission counts toward the participant's tally; a match
        advances the session.
        """
        question = session.current_question
        if question is None:
            return []

        is_correct = matches_any(question.accepted_answers, text, self.tolerance_ratio)
        tally = session.scores.setdefault(participant_id, Tally())

        if not is_correct:
            tally.wrong += 1
            return [RenderPayload(kind=PayloadKind.INCORRECT_SIGNAL, participant_id=participant_id)]

        tally.correct += 1
        logger.info(
            f"Correct answer in session {session.key} for question {session.current_index + 1}",
            extra={
                'event_type': 'answer_correct',
                'session_key': str(session.key),
                'participant_id': participant_id,
                'question_index': session.current_index,
                'timestamp': time.time()
            }
        )
        payloads = [RenderPayload(
            kind=PayloadKind.CORRECT_RESULT,
            participant_id=participant_id,
            answers=list(question.accepted_answers)
        )]
        return payloads + self._advance(session)

    def hint(self, session: QuizSession) -> List[RenderPayload]:
        """
        Reveal one more leading character of the canonical answer.

        Once all but the last character are revealed the question is
        skipped instead.
        """
        question = session.current_question
        if question is None:
            return []

        answer = question.canonical_answer
        revealed = question.hint_index
        if revealed >= len(answer) - 1:
            return self.skip(session)

        hint_text = answer[:revealed + 1] + self.hint_placeholder * (len(answer) - revealed - 1)
        question.hint_index += 1
        return [RenderPayload(kind=PayloadKind.HINT, text=hint_text)]

    def skip(self, session: QuizSession) -> List[RenderPayload]:
        """Reveal the answers of the current question and move on."""
        question = session.current_question
        if question is None:
            return []

        payloads = [RenderPayload(kind=PayloadKind.SKIPPED, answers=list(question.accepted_answers))]
        return payloads + self._advance(session)

    def end(self, session: QuizSession) -> List[RenderPayload]:
        """End the session and summarize every participant's tally."""
        if session.is_ended:
            return []
        return self._finish(session)

    def advance_after_render_failure(self, session: QuizSession) -> List[RenderPayload]:
        """Move past a question the transport failed to display."""
        if session.current_question is None:
            return []
        logger.warning(
            f"Question {session.current_index + 1} could not be displayed in session {session.key}, advancing",
            extra={
                'event_type': 'question_render_failed',
                'session_key': str(session.key),
                'question_index': session.current_index,
                'timestamp': time.time()
            }
        )
        return self._advance(session)

    # Helpers

    def _advance(self, session: QuizSession) -> List[RenderPayload]:
        session.current_index += 1
        if session.current_index >= len(session.questions):
            return self._finish(session)
        return [self._question_payload(session)]

    def _finish(self, session: QuizSession) -> List[RenderPayload]:
        session.state = SessionState.ENDED
        logger.info(
            f"Session {session.key} ended after {session.current_index}/{len(session.questions)} questions",
            extra={
                'event_type': 'session_ended',
                'session_key': str(session.key),
                'participants': len(session.scores),
                'timestamp': time.time()
            }
        )
        scores = {participant: Tally(tally.correct, tally.wrong)
                  for participant, tally in session.scores.items()}
        return [RenderPayload(kind=PayloadKind.SUMMARY, scores=scores)]

    def _question_payload(self, session: QuizSession) -> RenderPayload:
        question = session.questions[session.current_index]
        return RenderPayload(
            kind=PayloadKind.QUESTION,
            text=question.prompt,
            image_url=question.image_url,
            question_number=session.current_index + 1,
            total_questions=len(session.questions)
        )
