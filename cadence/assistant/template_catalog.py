"""Response template catalog.

Templates use a small mustache-like syntax rendered by :mod:`cadence.assistant.template_engine`:

- ``{{name}}`` substitutes a variable (unknown names are left untouched)
- ``{{#if name}}...{{/if}}`` keeps its content when ``name`` is present and truthy
- ``{{#unless name}}...{{/unless}}`` keeps its content when ``name`` is absent or falsy

The catalog is an immutable value built once at startup and handed to the engine.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from .models import ResponseType, Template

CATALOG_VERSION = "1.0.0"


@dataclass(frozen=True, slots=True)
class TemplateCatalog:
    name: str
    description: str
    templates: Mapping[ResponseType, tuple[Template, ...]]
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_lists(
        cls,
        name: str,
        description: str,
        templates: Mapping[ResponseType, Sequence[Template]],
        metadata: Mapping[str, Any] | None = None,
    ) -> TemplateCatalog:
        frozen = {response_type: tuple(entries) for response_type, entries in templates.items()}
        return cls(
            name=name,
            description=description,
            templates=MappingProxyType(frozen),
            metadata=MappingProxyType(dict(metadata or {})),
        )

    def templates_for(self, response_type: ResponseType) -> tuple[Template, ...]:
        return self.templates.get(response_type, ())

    def has_templates_for(self, response_type: ResponseType) -> bool:
        return bool(self.templates_for(response_type))

    @property
    def response_types(self) -> list[ResponseType]:
        return [response_type for response_type, entries in self.templates.items() if entries]

    @property
    def total_templates(self) -> int:
        return sum(len(entries) for entries in self.templates.values())

    def validate(self) -> list[str]:
        """Return a list of problems (duplicate ids, non-positive weights)."""
        problems: list[str] = []
        seen: set[str] = set()
        for response_type, entries in self.templates.items():
            for template in entries:
                if template.id in seen:
                    problems.append(f"duplicate template id {template.id!r}")
                seen.add(template.id)
                if template.weight <= 0:
                    problems.append(f"template {template.id!r} ({response_type}) has non-positive weight")
        return problems


def _t(
    template_id: str,
    body: str,
    *,
    required: Sequence[str] = (),
    optional: Sequence[str] = (),
    weight: int = 1,
) -> Template:
    return Template(
        id=template_id,
        body=body,
        required_vars=tuple(required),
        optional_vars=tuple(optional),
        weight=weight,
    )


_DEFAULT_TEMPLATES: dict[ResponseType, list[Template]] = {
    # ------------------------------------------------------------------
    # Acknowledgments
    # ------------------------------------------------------------------
    ResponseType.CONFIRMATION_POSITIVE: [
        _t("confirm_pos_1", "Yes, that's correct!", weight=2),
        _t("confirm_pos_2", "Absolutely! You got it right.", weight=2),
        _t("confirm_pos_3", "That's right! {{#if userName}}{{userName}}, {{/if}}you nailed it.", optional=["userName"]),
    ],
    ResponseType.CONFIRMATION_NEGATIVE: [
        _t("confirm_neg_1", "No, that's not quite right.", weight=2),
        _t("confirm_neg_2", "Actually, that's not correct. Let me help you.", weight=2),
        _t("confirm_neg_3", "Not exactly{{#if userName}}, {{userName}}{{/if}}. Let's try again.", optional=["userName"]),
    ],
    ResponseType.ACKNOWLEDGED: [
        _t("ack_1", "Got it!", weight=3),
        _t("ack_2", "Understood.", weight=2),
        _t("ack_3", "Okay, I hear you.", weight=2),
        _t("ack_4", "Thanks for letting me know{{#if userName}}, {{userName}}{{/if}}.", optional=["userName"]),
    ],
    # ------------------------------------------------------------------
    # Habit
    # ------------------------------------------------------------------
    ResponseType.HABIT_COMPLETED: [
        _t(
            "habit_complete_1",
            "Awesome! You completed {{habitName}} today. Keep up the great work!",
            required=["habitName"],
            weight=3,
        ),
        _t(
            "habit_complete_2",
            "Well done! {{habitName}} is now checked off for today.",
            required=["habitName"],
            weight=2,
        ),
        _t(
            "habit_complete_3",
            "Fantastic work on {{habitName}}! {{#if streakCount}}That makes {{streakCount}} in a row!{{/if}}",
            required=["habitName"],
            optional=["streakCount"],
            weight=2,
        ),
        _t(
            "habit_complete_4",
            "Yes! Another day of {{habitName}} completed. You're building amazing consistency!",
            required=["habitName"],
        ),
        _t(
            "habit_complete_record",
            "{{habitName}} logged at {{completionTime}}.{{#if isNewRecord}} New personal best: "
            "{{streakCount}} in a row!{{/if}}",
            required=["habitName", "completionTime"],
            optional=["isNewRecord", "streakCount"],
            weight=2,
        ),
    ],
    ResponseType.HABIT_REMINDER: [
        _t("habit_reminder_1", "Don't forget about {{habitName}} today!", required=["habitName"], weight=3),
        _t("habit_reminder_2", "Time for {{habitName}}! You've got this.", required=["habitName"], weight=2),
        _t(
            "habit_reminder_3",
            "Hey{{#if userName}} {{userName}}{{/if}}, ready to tackle {{habitName}}?",
            required=["habitName"],
            optional=["userName"],
            weight=2,
        ),
    ],
    ResponseType.HABIT_STREAK: [
        _t(
            "streak_1",
            "You're on a {{streakCount}}-day streak with {{habitName}}! Amazing!",
            required=["streakCount", "habitName"],
            weight=3,
        ),
        _t(
            "streak_2",
            "Wow! {{habitName}} streak: {{streakCount}} in a row. You're unstoppable!",
            required=["streakCount", "habitName"],
            weight=2,
        ),
        _t(
            "streak_3",
            "Your {{habitName}} streak stands at {{streakCount}}. Keep the momentum going!",
            required=["streakCount", "habitName"],
            weight=2,
        ),
    ],
    ResponseType.HABIT_MOTIVATION: [
        _t("motivation_1", "Every small step counts. You're building something amazing!", weight=3),
        _t("motivation_2", "Consistency is key, and you're proving that every day!", weight=2),
        _t(
            "motivation_3",
            "Remember{{#if userName}} {{userName}}{{/if}}, progress beats perfection every time.",
            optional=["userName"],
            weight=2,
        ),
        _t(
            "motivation_4",
            "Every day brings you closer to your goal{{#if streakCount}}, and your streak is at "
            "{{streakCount}}{{/if}}. Don't stop now!",
            optional=["streakCount"],
        ),
    ],
    ResponseType.HABIT_PROGRESS: [
        _t(
            "progress_1",
            "You've completed {{completedDays}} out of {{totalDays}} days this month. Great job!",
            required=["completedDays", "totalDays"],
            weight=3,
        ),
        _t(
            "progress_2",
            "Your completion rate for {{habitName}} is {{completionRate}}%. Keep it up!",
            required=["habitName", "completionRate"],
            weight=2,
        ),
        _t(
            "progress_3",
            "You're making steady progress! Days completed so far: {{completedDays}}.",
            required=["completedDays"],
            weight=2,
        ),
    ],
    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------
    ResponseType.STREAK_UPDATE: [
        _t(
            "streak_update_1",
            "{{#if streakCount}}Your {{habitName}} streak stands at {{streakCount}} in a row. Keep it going!{{/if}}"
            "{{#unless streakCount}}You don't have an active {{habitName}} streak yet. Today is a great day to "
            "start one.{{/unless}}",
            required=["habitName", "streakCount"],
            weight=3,
        ),
        _t(
            "streak_update_2",
            "{{habitName}} streak: {{streakCount}}.{{#if longestStreak}} Your best run so far is "
            "{{longestStreak}}.{{/if}}{{#if lastCompletion}} Last done {{lastCompletion}}.{{/if}}",
            required=["habitName", "streakCount"],
            optional=["longestStreak", "lastCompletion"],
            weight=2,
        ),
        _t(
            "streak_update_3",
            "Current streak: {{streakCount}} in a row. Keep it going!",
            required=["streakCount"],
        ),
    ],
    ResponseType.PROGRESS_REPORT: [
        _t(
            "progress_report_1",
            "This week you completed {{completedDays}} out of {{totalDays}} days. "
            "{{#if improvementTip}}{{improvementTip}}{{/if}}",
            required=["completedDays", "totalDays"],
            optional=["improvementTip"],
            weight=2,
        ),
        _t(
            "progress_report_status",
            "{{#if completedToday}}You've already done {{habitName}} today, nice work.{{/if}}"
            "{{#unless completedToday}}You haven't done {{habitName}} yet today. There's still time this "
            "{{timeOfDay}}.{{/unless}}{{#if streakCount}} Current streak: {{streakCount}} in a row.{{/if}}",
            required=["habitName", "completedToday", "timeOfDay"],
            optional=["streakCount"],
            weight=3,
        ),
    ],
    ResponseType.DAILY_SUMMARY: [
        _t(
            "daily_summary_1",
            "Today you completed {{completedHabits}} habits. {{#if pendingHabits}}You still have "
            "{{pendingHabits}} habits to complete.{{/if}}",
            required=["completedHabits"],
            optional=["pendingHabits"],
            weight=3,
        ),
    ],
    ResponseType.WEEKLY_REPORT: [
        _t(
            "weekly_report_1",
            "This week's summary: {{completionRate}}% completion rate with {{totalCompletions}} habits completed.",
            required=["completionRate", "totalCompletions"],
            weight=3,
        ),
    ],
    # ------------------------------------------------------------------
    # Errors and help
    # ------------------------------------------------------------------
    ResponseType.COMMAND_NOT_UNDERSTOOD: [
        _t("not_understood_1", "I didn't quite catch that. Could you try again?", weight=3),
        _t("not_understood_2", 'I\'m not sure what you meant. Try saying "help" for commands.', weight=2),
        _t("not_understood_3", "Sorry, I didn't understand that command. What would you like to do?", weight=2),
    ],
    ResponseType.HELP_GENERAL: [
        _t(
            "help_general_1",
            'I can help you track habits and build streaks. Try saying "I did it" or "what\'s my streak?"',
            weight=3,
        ),
        _t(
            "help_general_2",
            "I'm here to support your habit building journey. You can ask about your progress, complete habits, "
            "or check your streak.",
            weight=2,
        ),
    ],
    ResponseType.HELP_VOICE_COMMANDS: [
        _t(
            "help_commands_1",
            'Try these commands: "I did it", "check my streak", "how am I doing?", or "help".',
            weight=3,
        ),
        _t(
            "help_commands_2",
            "Voice commands include: habit completion, streak checking, and progress reports.",
            weight=2,
        ),
    ],
    ResponseType.ERROR_GENERIC: [
        _t("error_generic_1", "Something went wrong. Let me try that again.", weight=3),
        _t("error_generic_2", "Oops! There was an issue. Please try your request again.", weight=2),
    ],
    ResponseType.ERROR_PERMISSION: [
        _t(
            "error_permission_1",
            "I need microphone permission to hear you. Please enable it in settings.",
            weight=3,
        ),
        _t("error_permission_2", "To use voice commands, please allow microphone access.", weight=2),
    ],
    ResponseType.ERROR_NETWORK: [
        _t("error_network_1", "I'm having trouble connecting. Please check your network connection.", weight=3),
        _t("error_network_2", "Network issue detected. Some features may be limited.", weight=2),
    ],
    # ------------------------------------------------------------------
    # Conversation
    # ------------------------------------------------------------------
    ResponseType.GREETING: [
        _t(
            "greeting_1",
            "Hello{{#if userName}} {{userName}}{{/if}}! Ready to work on your habits today?",
            optional=["userName"],
            weight=3,
        ),
        _t("greeting_2", "Hi there! Let's make today count with your habit building.", weight=2),
        _t(
            "greeting_3",
            "Good {{timeOfDay}}! What habit would you like to work on?",
            required=["timeOfDay"],
            weight=2,
        ),
    ],
    ResponseType.GOODBYE: [
        _t(
            "goodbye_1",
            "Goodbye{{#if userName}} {{userName}}{{/if}}! Keep up the great work with your habits.",
            optional=["userName"],
            weight=3,
        ),
        _t("goodbye_2", "See you later! Remember, consistency is key.", weight=2),
        _t("goodbye_3", "Until next time! You're doing amazing with your habit journey."),
    ],
    ResponseType.CONVERSATION_STARTER: [
        _t("conversation_1", "How are you feeling about your habit progress today?", weight=3),
    ],
    ResponseType.ENCOURAGEMENT: [
        _t("encouragement_1", "You're doing great! Every day of progress matters.", weight=3),
    ],
    # ------------------------------------------------------------------
    # System
    # ------------------------------------------------------------------
    ResponseType.SYSTEM_READY: [
        _t("system_ready_1", "I'm ready to help you with your habits!", weight=3),
        _t("system_ready_2", "All systems ready. What can I help you with today?", weight=2),
    ],
    ResponseType.SYSTEM_BUSY: [
        _t("system_busy_1", "I'm processing your request. Please wait a moment.", weight=3),
        _t("system_busy_2", "Working on that for you. Just a second...", weight=2),
    ],
    ResponseType.SYSTEM_ERROR: [
        _t("system_error_1", "System error occurred. Restarting services...", weight=3),
    ],
    ResponseType.PERMISSION_REQUEST: [
        _t(
            "permission_request_1",
            "I need permission to access your microphone for voice commands. Would you like to enable it?",
            weight=3,
        ),
    ],
    # ------------------------------------------------------------------
    # Context-specific
    # ------------------------------------------------------------------
    ResponseType.FIRST_TIME_USER: [
        _t(
            "first_time_1",
            "Welcome to your habit tracking journey! I'm here to help you build consistent habits. "
            "Let's start by setting up your first habit.",
            weight=3,
        ),
    ],
    ResponseType.RETURNING_USER: [
        _t(
            "returning_user_1",
            "Welcome back{{#if userName}}, {{userName}}{{/if}}! Ready to continue building those amazing habits?",
            optional=["userName"],
            weight=3,
        ),
    ],
    ResponseType.ACHIEVEMENT_UNLOCKED: [
        _t(
            "achievement_1",
            "Achievement unlocked: {{achievementName}}! {{#if achievementDescription}}{{achievementDescription}}{{/if}}",
            required=["achievementName"],
            optional=["achievementDescription"],
            weight=3,
        ),
    ],
    ResponseType.MILESTONE: [
        _t(
            "milestone_1",
            "Milestone reached! You've completed {{milestoneCount}} {{milestoneType}}. This is a huge accomplishment!",
            required=["milestoneCount", "milestoneType"],
            weight=3,
        ),
    ],
}


def build_default_catalog() -> TemplateCatalog:
    """Build the catalog of spoken replies shipped with the assistant."""
    return TemplateCatalog.from_lists(
        name="Default Templates",
        description="Core templates for voice interactions",
        templates=_DEFAULT_TEMPLATES,
        metadata={
            "version": CATALOG_VERSION,
            "variable_format": "{{variableName}}",
            "conditional_format": "{{#if variable}}content{{/if}}",
        },
    )
