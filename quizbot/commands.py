"""
Routing of raw chat messages to quiz operations.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class CommandType(Enum):
    """What a chat message asks the quiz bot to do."""
    START = "start"
    HINT = "hint"
    SKIP = "skip"
    END = "end"
    SUBMIT = "submit"


KEYWORDS = {
    "hint": CommandType.HINT,
    "skip": CommandType.SKIP,
    "end": CommandType.END,
}


@dataclass
class ParsedCommand:
    """A chat message classified by command type."""
    type: CommandType
    topic: Optional[str] = None
    count: Optional[int] = None
    text: str = ""


def parse_count(token: Optional[str], default: int, maximum: int) -> int:
    """
    Parse the optional question count of a start command.

    Missing, non-numeric or non-positive values fall back to ``default``;
    larger values are capped at ``maximum``.
    """
    if token is None:
        return default
    try:
        count = int(token)
    except ValueError:
        return default
    if count < 1:
        return default
    return min(count, maximum)


def parse_command(
    content: str,
    prefix: str = "!",
    default_count: int = 5,
    max_count: int = 100
) -> ParsedCommand:
    """
    Classify a chat message.

    ``!hint``, ``!skip`` and ``!end`` control the running quiz; any other
    prefixed token names a topic, optionally followed by a question count.
    Everything else is an answer.

    Args:
        content: Raw message text
        prefix: Command prefix
        default_count: Question count when none is given
        max_count: Upper bound for the question count

    Returns:
        ParsedCommand describing the message
    """
    args = content.strip().split()
    if not args or not args[0].startswith(prefix) or len(args[0]) == len(prefix):
        return ParsedCommand(CommandType.SUBMIT, text=content.strip())

    keyword = args[0][len(prefix):]
    if keyword in KEYWORDS:
        return ParsedCommand(KEYWORDS[keyword])

    count_token = args[1] if len(args) > 1 else None
    return ParsedCommand(
        CommandType.START,
        topic=keyword,
        count=parse_count(count_token, default_count, max_count)
    )
