"""Scripted UI interactions.

An interaction is applied to exactly one page and yields exactly one
resulting page. Three kinds exist: filling in and submitting a form,
following a link, and activating any other element.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from webssotest.core.errors import ConfigurationError


class InteractionType(StrEnum):
    """Interaction kinds as written in target configuration files."""

    FORM = "form"
    LINK = "link"
    ELEMENT = "element"


@dataclass(frozen=True)
class FormInteraction:
    """Fill in the fields of a form and submit it."""

    selector: str
    values: dict[str, str] = field(default_factory=dict)
    submit: str | None = None

    type = InteractionType.FORM

    def describe(self) -> str:
        # Field names only; values are typically credentials
        fields = ", ".join(self.values) or "no fields"
        via = f" via {self.submit!r}" if self.submit else ""
        return f"submit form {self.selector!r} ({fields}){via}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value, "selector": self.selector, "values": dict(self.values)}
        if self.submit:
            result["submit"] = self.submit
        return result


@dataclass(frozen=True)
class LinkInteraction:
    """Follow a link matched by CSS selector and/or link text."""

    selector: str | None = None
    text: str | None = None

    type = InteractionType.LINK

    def describe(self) -> str:
        if self.selector and self.text:
            return f"follow link {self.selector!r} containing {self.text!r}"
        if self.text:
            return f"follow link containing {self.text!r}"
        return f"follow link {self.selector!r}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.type.value}
        if self.selector:
            result["selector"] = self.selector
        if self.text:
            result["text"] = self.text
        return result


@dataclass(frozen=True)
class ElementInteraction:
    """Activate (click) an arbitrary element."""

    selector: str

    type = InteractionType.ELEMENT

    def describe(self) -> str:
        return f"click element {self.selector!r}"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "selector": self.selector}


Interaction = FormInteraction | LinkInteraction | ElementInteraction


def _parse_type(raw: Any) -> InteractionType:
    if not isinstance(raw, str):
        raise ConfigurationError(f"Interaction type must be a string, got {raw!r}")
    # Accept "FormInteraction" style names too
    name = raw.strip().lower().removesuffix("interaction")
    try:
        return InteractionType(name)
    except ValueError:
        valid = ", ".join(t.value for t in InteractionType)
        raise ConfigurationError(f"Unknown interaction type {raw!r} (expected one of: {valid})") from None


def _require_str(data: dict[str, Any], key: str, kind: InteractionType) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"A {kind.value} interaction requires a non-empty '{key}'")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(f"Interaction field '{key}' must be a string")
    return value


def interaction_from_dict(data: Any) -> Interaction:
    """Parse one interaction entry from a target configuration.

    Args:
        data: Mapping with a ``type`` (or ``interactionType``) key and the
            kind-specific fields.

    Raises:
        ConfigurationError: On unknown types or missing fields.
    """
    if not isinstance(data, dict):
        raise ConfigurationError(f"Interaction entries must be mappings, got {type(data).__name__}")

    kind = _parse_type(data.get("type", data.get("interactionType")))

    if kind == InteractionType.FORM:
        values = data.get("values", {})
        if not isinstance(values, dict):
            raise ConfigurationError("Form interaction 'values' must be a mapping of field names to values")
        return FormInteraction(
            selector=_require_str(data, "selector", kind),
            values={str(k): "" if v is None else str(v) for k, v in values.items()},
            submit=_optional_str(data, "submit"),
        )

    if kind == InteractionType.LINK:
        selector = _optional_str(data, "selector")
        text = _optional_str(data, "text")
        if not selector and not text:
            raise ConfigurationError("A link interaction requires a 'selector' or a 'text'")
        return LinkInteraction(selector=selector, text=text)

    return ElementInteraction(selector=_require_str(data, "selector", kind))
