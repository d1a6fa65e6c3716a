"""Render spoken replies from the template catalog."""

from __future__ import annotations

import logging
import random
import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from ..datetime_utils import describe_duration, describe_relative_day
from .models import ResponseContext, ResponseType, Template
from .results import NotInitializedError, NoUsableTemplateError, Result
from .template_catalog import TemplateCatalog

ENGINE_VERSION = "1.0.0"

_VARIABLE_TOKEN = re.compile(r"\{\{(\w+)\}\}")
_IF_BLOCK = re.compile(r"\{\{#if\s+(\w+)\}\}(.*?)\{\{/if\}\}", re.DOTALL)
_UNLESS_BLOCK = re.compile(r"\{\{#unless\s+(\w+)\}\}(.*?)\{\{/unless\}\}", re.DOTALL)


def is_truthy(value: Any) -> bool:
    """Truthiness used by ``#if``/``#unless`` blocks.

    Dates, datetimes and durations always count as present, even ``timedelta(0)``.
    """
    if value is None or value is False:
        return False
    if isinstance(value, (datetime, date, timedelta)):
        return True
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, (str, bytes, Sequence, Mapping, set, frozenset)):
        return len(value) > 0
    return True


def format_value(value: Any, *, now: datetime | None = None) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return describe_relative_day(value, now)
    if isinstance(value, timedelta):
        return describe_duration(value)
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.1f}"
    if isinstance(value, str):
        return value
    if isinstance(value, (Sequence, set, frozenset)):
        return ", ".join(format_value(item, now=now) for item in value)
    return str(value)


def render(body: str, variables: Mapping[str, Any], *, now: datetime | None = None) -> str:
    """Render a template body: variables, then ``#if`` blocks, then ``#unless`` blocks."""

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return format_value(variables[name], now=now)

    def keep_if(match: re.Match[str]) -> str:
        return match.group(2) if is_truthy(variables.get(match.group(1))) else ""

    def keep_unless(match: re.Match[str]) -> str:
        return "" if is_truthy(variables.get(match.group(1))) else match.group(2)

    text = _VARIABLE_TOKEN.sub(substitute, body)
    text = _IF_BLOCK.sub(keep_if, text)
    text = _UNLESS_BLOCK.sub(keep_unless, text)
    return text.strip()


class TemplateEngine:
    """Pick and render a template for a :class:`ResponseContext`.

    The engine holds no per-request state. ``initialize()`` must run once before
    responses can be generated; afterwards the engine can be shared freely.
    """

    def __init__(
        self,
        catalog: TemplateCatalog,
        *,
        rng: random.Random | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._catalog = catalog
        self._rng = rng or random.Random()
        self._logger = logger or logging.getLogger(__name__)
        self._templates: dict[ResponseType, tuple[Template, ...]] = {}
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> Result[None]:
        if self._initialized:
            return Result.success()
        for problem in self._catalog.validate():
            self._logger.warning("[templates] %s", problem)
        self._templates = {
            response_type: tuple(template for template in entries if template.weight > 0)
            for response_type, entries in self._catalog.templates.items()
        }
        self._initialized = True
        self._logger.debug(
            "[templates] Loaded %d templates for %d response types from %s",
            self._catalog.total_templates,
            len(self._catalog.response_types),
            self._catalog.name,
        )
        return Result.success()

    # ========================================================================
    # Responses
    # ========================================================================

    def validate_context(self, context: ResponseContext) -> Result[None]:
        usable = self._usable_templates(context)
        if not usable.ok:
            return Result.failure(usable.error)  # type: ignore[arg-type]
        return Result.success()

    def get_response(self, context: ResponseContext) -> Result[str]:
        usable = self._usable_templates(context)
        if not usable.ok:
            return Result.failure(usable.error)  # type: ignore[arg-type]
        template = self._select(usable.unwrap())
        text = render(template.body, context.variables, now=context.timestamp)
        self._logger.debug("[templates] %s -> %s", context.response_type, template.id)
        return Result.success(text)

    def get_random_response(
        self,
        response_type: ResponseType,
        variables: Mapping[str, Any] | None = None,
    ) -> Result[str]:
        return self.get_response(ResponseContext.now(response_type, dict(variables or {})))

    def _usable_templates(self, context: ResponseContext) -> Result[list[Template]]:
        if not self._initialized:
            return Result.failure(NotInitializedError("Template engine has not been initialized"))
        templates = self._templates.get(context.response_type, ())
        if not templates:
            return Result.failure(NoUsableTemplateError(f"No templates registered for {context.response_type}"))
        usable = [template for template in templates if template.can_render(context.variables)]
        if not usable:
            missing = sorted({name for template in templates for name in template.missing_vars(context.variables)})
            return Result.failure(
                NoUsableTemplateError(
                    f"No template for {context.response_type} can render; missing variables: {', '.join(missing)}"
                )
            )
        return Result.success(usable)

    def _select(self, templates: list[Template]) -> Template:
        if len(templates) == 1:
            return templates[0]
        total = sum(template.weight for template in templates)
        draw = self._rng.randrange(total)
        cumulative = 0
        for template in templates:
            cumulative += template.weight
            if draw < cumulative:
                return template
        return templates[-1]

    # ========================================================================
    # Introspection
    # ========================================================================

    def has_templates_for(self, response_type: ResponseType) -> bool:
        return bool(self._templates.get(response_type))

    def available_response_types(self) -> list[ResponseType]:
        return [response_type for response_type, entries in self._templates.items() if entries]

    def metadata(self) -> dict[str, Any]:
        return {
            "catalog": self._catalog.name,
            "initialized": self._initialized,
            "response_types": len(self.available_response_types()),
            "total_templates": sum(len(entries) for entries in self._templates.values()),
            "version": ENGINE_VERSION,
        }
