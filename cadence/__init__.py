"""
Cadence - voice habit assistant package

Root package for Cadence, a small voice assistant that records habit completions,
tracks consecutive-day streaks and answers with templated spoken replies.

Core modules:
- utils: Environment parsing helpers, async timeouts, byte chunking
- datetime_utils: Local-time helpers, calendar-day arithmetic and spoken wording
- assistant: Command classification, template rendering, streak logic and the
  interaction orchestrator with its speech, storage and MQTT adapters
"""

__version__ = "0.4.2"
