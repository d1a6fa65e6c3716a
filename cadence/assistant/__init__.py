"""
Voice habit assistant built around a single interaction orchestrator

This package provides:

- Command classification: heuristic phrase matching into habit commands
- Response templates: a weighted catalog rendered with a small mustache-like syntax
- Streak logic: consecutive-day counters updated from completions
- Orchestration: the listen, process, respond state machine with session history
- Adapters: Wyoming speech-to-text and text-to-speech, console text I/O,
  JSON habit storage and MQTT telemetry/remote control

Key modules:
- config: Configuration management from environment variables
- command_parser: CommandClassifier
- template_engine: TemplateEngine and the renderer
- streaks: update_with_completion
- orchestrator: InteractionOrchestrator
- daemon: command-line entry point
"""

from __future__ import annotations

__all__ = [
    "audio",
    "command_parser",
    "config",
    "daemon",
    "events",
    "models",
    "mqtt",
    "mqtt_publisher",
    "orchestrator",
    "results",
    "speech",
    "storage",
    "streaks",
    "template_catalog",
    "template_engine",
    "wyoming",
]
