"""
Core data models for the Sheet Quiz Bot.
"""
from dataclasses import dataclass, field
from typing import Dict, List, NamedTuple, Optional
from datetime import datetime
from enum import Enum


class SessionKey(NamedTuple):
    """Identifies a quiz session: one per (guild, channel) pair."""
    guild_id: int
    channel_id: int

    def __str__(self) -> str:
        return f"{self.guild_id}-{self.channel_id}"


@dataclass
class QuizQuestion:
    """Represents a single quiz question."""
    prompt: str
    accepted_answers: List[str]
    image_url: Optional[str] = None
    hint_index: int = 0

    @property
    def canonical_answer(self) -> str:
        return self.accepted_answers[0]


@dataclass
class QuizTopic:
    """A question set the bot can start a quiz from."""
    name: str
    description: str = ""


@dataclass
class Tally:
    """Correct/wrong answer counts for one participant."""
    correct: int = 0
    wrong: int = 0


@dataclass
class QuizSettings:
    """Configuration settings for quiz sessions."""
    default_question_count: int = 5
    max_question_count: int = 100
    match_tolerance: float = 0.25
    hint_placeholder: str = "❓"


class SessionState(Enum):
    """Enumeration of possible quiz session states."""
    AWAITING_ANSWER = "awaiting_answer"
    ENDED = "ended"


@dataclass
class QuizSession:
    """Represents an active quiz session in a Discord channel."""
    key: SessionKey
    topic: str
    questions: List[QuizQuestion]
    current_index: int = 0
    scores: Dict[str, Tally] = field(default_factory=dict)
    state: SessionState = SessionState.AWAITING_ANSWER
    start_time: datetime = field(default_factory=datetime.now)

    @property
    def is_ended(self) -> bool:
        return self.state is SessionState.ENDED

    @property
    def current_question(self) -> Optional[QuizQuestion]:
        if self.is_ended or self.current_index >= len(self.questions):
            return None
        return self.questions[self.current_index]


class PayloadKind(Enum):
    """Kinds of output the quiz core asks the transport to display."""
    QUESTION = "question"
    HINT = "hint"
    CORRECT_RESULT = "correct_result"
    INCORRECT_SIGNAL = "incorrect_signal"
    SKIPPED = "skipped"
    SUMMARY = "summary"
    ALREADY_ACTIVE_NOTICE = "already_active_notice"
    TOPIC_SUGGESTION = "topic_suggestion"
    HELP_LISTING = "help_listing"


@dataclass
class RenderPayload:
    """A render request produced by a quiz transition."""
    kind: PayloadKind
    text: str = ""
    image_url: Optional[str] = None
    question_number: int = 0
    total_questions: int = 0
    participant_id: Optional[str] = None
    answers: List[str] = field(default_factory=list)
    scores: Dict[str, Tally] = field(default_factory=dict)
    suggestions: List[str] = field(default_factory=list)
    topics: List[QuizTopic] = field(default_factory=list)
