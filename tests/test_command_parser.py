"""Tests for utterance classification (cadence/assistant/command_parser.py)."""

from __future__ import annotations

import pytest
from cadence.assistant.command_parser import (
    CommandClassifier,
    normalize_text,
    score_pattern,
)
from cadence.assistant.models import CommandType


@pytest.fixture
def classifier():
    return CommandClassifier()


def _parse(classifier, text):
    result = classifier.parse_command(text)
    assert result.ok, result.message
    return result.unwrap()


# ============================================================================
# Normalization and scoring
# ============================================================================


class TestNormalizeText:
    def test_lowercases_and_strips_punctuation(self):
        assert normalize_text("  What's   my STREAK?! ") == "whats my streak"

    def test_punctuation_only_becomes_empty(self):
        assert normalize_text("?!...") == ""


class TestScorePattern:
    def test_exact_match_scores_one(self):
        assert score_pattern("done", "done") == 1.0

    def test_substring_at_start_gets_boost(self):
        text = "i finished my workout"
        assert score_pattern(text, "i finished") == pytest.approx(10 / 21 + 0.2)

    def test_substring_in_middle_has_no_boost(self):
        text = "so i ran fast"
        assert score_pattern(text, "i ran") == pytest.approx(5 / 13)

    def test_word_overlap_is_scaled(self):
        assert score_pattern("check the habit", "habit status") == pytest.approx(0.35)

    def test_no_overlap_scores_zero(self):
        assert score_pattern("blah", "how long") == 0.0

    def test_empty_inputs_score_zero(self):
        assert score_pattern("", "done") == 0.0
        assert score_pattern("done", "") == 0.0


# ============================================================================
# Classification
# ============================================================================


class TestParseCommand:
    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_text_is_rejected(self, classifier, text):
        result = classifier.parse_command(text)
        assert not result.ok
        assert result.error.code == "EmptyInput"

    def test_exact_completion_phrase(self, classifier):
        command = _parse(classifier, "I did it")
        assert command.type is CommandType.COMPLETE_HABIT
        assert command.confidence == pytest.approx(0.95)
        assert command.original_text == "I did it"
        assert command.parameters["action"] == "complete"

    @pytest.mark.parametrize("text", ["completed", "finished", "complete"])
    def test_single_completion_words(self, classifier, text):
        command = _parse(classifier, text)
        assert command.type is CommandType.COMPLETE_HABIT
        assert command.confidence == pytest.approx(0.95)

    def test_short_exact_phrase_is_penalized(self, classifier):
        command = _parse(classifier, "done")
        assert command.type is CommandType.COMPLETE_HABIT
        assert command.confidence == pytest.approx(0.95 * 0.8)

    def test_finished_my_workout(self, classifier):
        command = _parse(classifier, "I finished my workout")
        assert command.type is CommandType.COMPLETE_HABIT
        assert command.confidence > 0.5
        assert command.parameters["habit_keywords"] == ["workout"]
        assert command.parameters["time_keywords"] == ["finished"]
        assert "potential_habit_name" not in command.parameters

    def test_apostrophe_patterns_match_after_normalization(self, classifier):
        command = _parse(classifier, "What's my streak?")
        assert command.type is CommandType.CHECK_STREAK
        assert command.confidence == pytest.approx(0.95)
        assert command.parameters["query"] == "streak"

    def test_status_question(self, classifier):
        command = _parse(classifier, "How am I doing?")
        assert command.type is CommandType.HABIT_STATUS
        assert command.parameters["query"] == "status"

    def test_status_override_beats_completion_words(self, classifier):
        command = _parse(classifier, "Did I complete my habit today?")
        assert command.type is CommandType.HABIT_STATUS
        assert 0.0 < command.confidence <= 1.0
        assert command.parameters["time_context"] == "today"

    def test_help_general_topic(self, classifier):
        command = _parse(classifier, "what can you do")
        assert command.type is CommandType.HELP
        assert command.parameters["topic"] == "general"

    def test_help_commands_topic(self, classifier):
        command = _parse(classifier, "voice commands")
        assert command.type is CommandType.HELP
        assert command.parameters["topic"] == "commands"

    def test_random_text_is_unknown(self, classifier):
        command = _parse(classifier, "The weather is nice")
        assert command.type is CommandType.UNKNOWN
        assert command.confidence == 0.0
        assert command.parameters["reason"] == "unrecognized_pattern"

    def test_gibberish_is_unknown(self, classifier):
        command = _parse(classifier, "blah")
        assert command.type is CommandType.UNKNOWN
        assert command.confidence == 0.0

    def test_punctuation_only_is_unknown(self, classifier):
        command = _parse(classifier, "?!")
        assert command.type is CommandType.UNKNOWN

    def test_parsing_is_deterministic(self, classifier):
        first = _parse(classifier, "just finished my reading")
        for _ in range(99):
            assert _parse(classifier, "just finished my reading") == first


class TestParameterExtraction:
    def test_time_of_day_and_habit_name(self, classifier):
        command = _parse(classifier, "I meditated this morning")
        assert command.type is CommandType.COMPLETE_HABIT
        assert command.parameters["time_of_day"] == "morning"
        assert command.parameters["time_context"] == "time_of_day"
        assert command.parameters["potential_habit_name"] == "meditated"

    def test_yesterday_context(self, classifier):
        command = _parse(classifier, "I completed it yesterday")
        assert command.type is CommandType.COMPLETE_HABIT
        assert command.parameters["time_context"] == "yesterday"
        assert command.parameters["time_keywords"] == ["completed", "yesterday"]


# ============================================================================
# Custom tables and introspection
# ============================================================================


class TestCustomPatterns:
    def test_ties_resolve_in_fixed_type_order(self):
        classifier = CommandClassifier(
            patterns={
                CommandType.HELP: ["alpha"],
                CommandType.CHECK_STREAK: ["alpha"],
            }
        )
        command = _parse(classifier, "alpha")
        assert command.type is CommandType.CHECK_STREAK

    def test_below_threshold_is_unknown(self):
        classifier = CommandClassifier(patterns={CommandType.HELP: ["one two three four"]})
        # one of four words -> 0.25 * 0.7, below the 0.3 minimum
        command = _parse(classifier, "one")
        assert command.type is CommandType.UNKNOWN


class TestIntrospection:
    def test_supported_types(self, classifier):
        assert classifier.supported_command_types() == [
            CommandType.COMPLETE_HABIT,
            CommandType.CHECK_STREAK,
            CommandType.HABIT_STATUS,
            CommandType.HELP,
        ]

    def test_pattern_examples_are_normalized(self, classifier):
        examples = classifier.pattern_examples(CommandType.CHECK_STREAK)
        assert len(examples) == 5
        assert examples[0] == "whats my streak"

    def test_pattern_examples_for_unknown(self, classifier):
        assert classifier.pattern_examples(CommandType.UNKNOWN) == []

    def test_metadata(self, classifier):
        metadata = classifier.metadata()
        assert metadata["supported_command_types"] == 4
        assert metadata["total_patterns"] > 0
        assert metadata["version"] == "1.0.0"
