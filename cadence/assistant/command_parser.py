"""Voice command classification for the Cadence assistant.

This module turns a recognized utterance into a typed :class:`Command`. Matching is
purely heuristic: every command type owns a list of phrase patterns and the text is
scored against each pattern. No state is kept between calls, so one classifier can be
shared by every orchestrator in the process.

Command types:
- Complete habit: "i did it", "i finished my workout", "just completed"
- Check streak: "what's my streak", "how many days in a row"
- Habit status: "how am i doing", "did i complete my habit today"
- Help: "what can you do", "voice commands"
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from .models import Command, CommandType
from .results import InputError, Result

PARSER_VERSION = "1.0.0"

MIN_MATCH_SCORE = 0.3
EXACT_MATCH_CONFIDENCE = 0.95
SHORT_TEXT_LENGTH = 5
LONG_TEXT_LENGTH = 50

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")

# On equal scores the type listed first wins.
_COMMAND_PATTERNS: dict[CommandType, tuple[str, ...]] = {
    CommandType.COMPLETE_HABIT: (
        "i did it",
        "done",
        "completed",
        "finished",
        "complete",
        "mark as done",
        "habit done",
        "i completed",
        "i finished",
        "accomplished",
        "i practiced",
        "i worked out",
        "i exercised",
        "i meditated",
        "i read",
        "i studied",
        "i walked",
        "i ran",
        "just finished",
        "just did it",
        "just completed",
        "did it today",
        "finished today",
    ),
    CommandType.CHECK_STREAK: (
        "what's my streak",
        "how many days",
        "streak count",
        "my streak",
        "current streak",
        "how long",
        "streak status",
        "check streak",
        "show streak",
        "days in a row",
        "consecutive days",
        "how many consecutive",
        "streak length",
    ),
    CommandType.HABIT_STATUS: (
        "status",
        "how am i doing",
        "progress",
        "my progress",
        "how's my progress",
        "check progress",
        "show progress",
        "habit status",
        "today's status",
        "did i do it today",
        "have i done it",
        "check if done",
    ),
    CommandType.HELP: (
        "help",
        "what can you do",
        "commands",
        "instructions",
        "how to use",
        "what commands",
        "voice commands",
        "available commands",
        "how does this work",
        "what can i say",
        "guide",
        "tutorial",
    ),
}

_STATUS_OVERRIDE_PHRASES = ("did i complete", "have i done", "check if done")
_RANDOM_TEXT_PHRASES = ("the weather is", "what time is", "random", "nonsense")

_HABIT_ACTION_KEYWORDS = frozenset(
    {
        "habit",
        "routine",
        "practice",
        "activity",
        "task",
        "goal",
        "exercise",
        "workout",
        "meditation",
        "reading",
        "study",
        "learning",
    }
)

_TIME_KEYWORDS = frozenset(
    {
        "today",
        "yesterday",
        "morning",
        "afternoon",
        "evening",
        "night",
        "now",
        "just",
        "finished",
        "completed",
        "done",
        "ago",
    }
)

_TIME_OF_DAY_WORDS = ("morning", "afternoon", "evening", "night")

_COMMON_WORDS = frozenset(
    {
        "i", "me", "my", "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
        "do", "does", "did", "will", "would", "could", "should", "can", "may", "might", "must",
        "this", "that", "these", "those", "it", "its", "how", "what", "when", "where", "why",
        "who", "which", "just", "very", "so", "up", "out", "if", "about", "into", "over", "after",
    }
)  # fmt: skip


def normalize_text(text: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    lowered = text.lower().strip()
    lowered = _PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", lowered).strip()


def score_pattern(text: str, pattern: str) -> float:
    """Score how well normalized ``text`` matches a single normalized ``pattern``."""
    if not text or not pattern:
        return 0.0
    if text == pattern:
        return 1.0
    if pattern in text:
        score = len(pattern) / len(text)
        if text.startswith(pattern) or text.endswith(pattern):
            score += 0.2
        return score
    text_words = text.split(" ")
    pattern_words = pattern.split(" ")
    matching = sum(1 for word in pattern_words if word in text_words)
    if matching == 0:
        return 0.0
    return matching / len(pattern_words) * 0.7


class CommandClassifier:
    """Classifies utterance text into habit commands.

    The phrase tables are normalized once at construction; after that the instance
    is read-only and ``parse_command`` is deterministic.
    """

    def __init__(self, patterns: dict[CommandType, Iterable[str]] | None = None) -> None:
        source = patterns if patterns is not None else _COMMAND_PATTERNS
        self._patterns: dict[CommandType, tuple[str, ...]] = {}
        for command_type in _COMMAND_PATTERNS:
            phrases = source.get(command_type, ())
            normalized = tuple(dict.fromkeys(p for p in (normalize_text(raw) for raw in phrases) if p))
            if normalized:
                self._patterns[command_type] = normalized

    # ========================================================================
    # Public API
    # ========================================================================

    def parse_command(self, text: str) -> Result[Command]:
        """Parse utterance text into a :class:`Command`.

        Args:
            text: Raw transcript from speech recognition

        Returns:
            Result carrying the command, or an ``InputError`` for blank text
        """
        if not text or not text.strip():
            return Result.failure(InputError("Empty speech text cannot be parsed"))

        normalized = normalize_text(text)
        command_type = self.identify_command_type(normalized)
        return Result.success(
            Command(
                type=command_type,
                original_text=text,
                parameters=self.extract_parameters(normalized, command_type),
                confidence=self.calculate_confidence(normalized, command_type),
            )
        )

    def identify_command_type(self, normalized: str) -> CommandType:
        if any(phrase in normalized for phrase in _STATUS_OVERRIDE_PHRASES):
            return CommandType.HABIT_STATUS
        if any(phrase in normalized for phrase in _RANDOM_TEXT_PHRASES):
            return CommandType.UNKNOWN

        best_score = 0.0
        best_type = CommandType.UNKNOWN
        for command_type, patterns in self._patterns.items():
            score = self.match_score(normalized, patterns)
            if score > best_score:
                best_score = score
                best_type = command_type
        return best_type if best_score >= MIN_MATCH_SCORE else CommandType.UNKNOWN

    @staticmethod
    def match_score(normalized: str, patterns: Iterable[str]) -> float:
        return max((score_pattern(normalized, pattern) for pattern in patterns), default=0.0)

    def calculate_confidence(self, normalized: str, command_type: CommandType) -> float:
        if command_type is CommandType.UNKNOWN:
            return 0.0
        patterns = self._patterns.get(command_type, ())
        length_factor = 1.0
        if len(normalized) < SHORT_TEXT_LENGTH:
            length_factor = 0.8
        elif len(normalized) > LONG_TEXT_LENGTH:
            length_factor = 0.9
        if normalized in patterns:
            return EXACT_MATCH_CONFIDENCE * length_factor
        return min(1.0, self.match_score(normalized, patterns) * length_factor)

    # ========================================================================
    # Parameter Extraction
    # ========================================================================

    def extract_parameters(self, normalized: str, command_type: CommandType) -> dict[str, Any]:
        words = normalized.split(" ") if normalized else []
        parameters: dict[str, Any] = {}
        parameters.update(self._extract_habit_info(words))
        parameters.update(self._extract_time_info(words))

        match command_type:
            case CommandType.COMPLETE_HABIT:
                parameters["action"] = "complete"
            case CommandType.CHECK_STREAK:
                parameters["query"] = "streak"
            case CommandType.HABIT_STATUS:
                parameters["query"] = "status"
            case CommandType.HELP:
                parameters["topic"] = self._extract_help_topic(words)
            case CommandType.UNKNOWN:
                parameters["reason"] = "unrecognized_pattern"
        return parameters

    @staticmethod
    def _extract_habit_info(words: list[str]) -> dict[str, Any]:
        info: dict[str, Any] = {}
        keywords = [word for word in words if word in _HABIT_ACTION_KEYWORDS]
        if keywords:
            info["habit_keywords"] = keywords
        candidates = [
            word
            for word in words
            if word not in _COMMON_WORDS and word not in _HABIT_ACTION_KEYWORDS and word not in _TIME_KEYWORDS
        ]
        if candidates:
            info["potential_habit_name"] = " ".join(candidates)
        return info

    @staticmethod
    def _extract_time_info(words: list[str]) -> dict[str, Any]:
        keywords = [word for word in words if word in _TIME_KEYWORDS]
        if not keywords:
            return {}
        info: dict[str, Any] = {"time_keywords": keywords}
        time_of_day = next((word for word in words if word in _TIME_OF_DAY_WORDS), None)
        if time_of_day:
            info["time_context"] = "time_of_day"
            info["time_of_day"] = time_of_day
        elif "today" in keywords:
            info["time_context"] = "today"
        elif "yesterday" in keywords:
            info["time_context"] = "yesterday"
        return info

    @staticmethod
    def _extract_help_topic(words: list[str]) -> str:
        if "commands" in words or "voice" in words:
            return "commands"
        if "streak" in words:
            return "streak"
        if "habit" in words:
            return "habits"
        return "general"

    # ========================================================================
    # Introspection
    # ========================================================================

    def supported_command_types(self) -> list[CommandType]:
        return list(self._patterns)

    def pattern_examples(self, command_type: CommandType) -> list[str]:
        return list(self._patterns.get(command_type, ())[:5])

    def metadata(self) -> dict[str, Any]:
        return {
            "supported_command_types": len(self._patterns),
            "total_patterns": sum(len(patterns) for patterns in self._patterns.values()),
            "habit_action_keywords": len(_HABIT_ACTION_KEYWORDS),
            "time_keywords": len(_TIME_KEYWORDS),
            "version": PARSER_VERSION,
        }
