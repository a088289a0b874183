"""
fieldguard — message templates.

File: src/fieldguard/templates.py

Purpose
- Hold unformatted violation messages with ``${name}`` placeholders and substitute values only
  when a message is rendered.

Functional requirements
- Strict formatting fails listing every unresolved placeholder, in first-seen order.
- Lenient formatting leaves unresolved placeholders untouched.
- Substitution is literal and single-pass: substituted values are never re-scanned.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Final

from fieldguard.errors import TemplateFormatError, UnsupportedPlaceholderError

_OPEN: Final[str] = "${"
_CLOSE: Final[str] = "}"


def _scan(template: str) -> Iterator[tuple[int, int, str]]:
    """Yield ``(start, end, name)`` for every ``${name}`` token, left to right."""

    start = template.find(_OPEN)
    while start != -1:
        close = template.find(_CLOSE, start + len(_OPEN))
        if close == -1:
            return
        if close > start + len(_OPEN):
            yield start, close + len(_CLOSE), template[start + len(_OPEN) : close]
            start = template.find(_OPEN, close + len(_CLOSE))
        else:
            start = template.find(_OPEN, start + 1)


def extract_placeholders(template: str) -> tuple[str, ...]:
    """Return the distinct placeholder names of ``template`` in first-seen order."""

    names: list[str] = []
    for _, _, name in _scan(template):
        if name not in names:
            names.append(name)
    return tuple(names)


class Placeholder(StrEnum):
    FIELD_PATH = "field.path"
    FIELD_TYPE = "field.type"
    FIELD_VALUE = "field.value"
    FIELD_DUPLICATES = "field.duplicates"
    PARENT_TYPE = "parent.type"
    MESSAGE_TYPE = "message.type"
    RANGE_VALUE = "range.value"
    MIN_VALUE = "min.value"
    MIN_OPERATOR = "min.operator"
    MAX_VALUE = "max.value"
    MAX_OPERATOR = "max.operator"
    REGEX_PATTERN = "regex.pattern"
    REGEX_MODIFIERS = "regex.modifiers"
    GOES_COMPANION = "goes.companion"
    REQUIRE_FIELDS = "require.fields"
    GROUP_PATH = "group.path"
    ANY_TYPE_URL = "any.type_url"

    @property
    def token(self) -> str:
        return "${" + self.value + "}"


def check_placeholders(template: str, supported: Collection[str], *, owner: str) -> None:
    """Raise ``UnsupportedPlaceholderError`` when ``template`` uses a name not in ``supported``."""

    unsupported = [name for name in extract_placeholders(template) if name not in supported]
    if unsupported:
        tokens = ", ".join("${" + name + "}" for name in unsupported)
        allowed = ", ".join("${" + name + "}" for name in sorted(supported)) or "none"
        raise UnsupportedPlaceholderError(
            f"{owner} message uses unsupported placeholders {tokens}; supported: {allowed}"
        )


def format_template(template: str, values: Mapping[str, str]) -> str:
    """Substitute every placeholder, failing if any has no value."""

    missing = [name for name in extract_placeholders(template) if name not in values]
    if missing:
        raise TemplateFormatError(template, ["${" + name + "}" for name in missing])
    return format_template_unsafe(template, values)


def format_template_unsafe(template: str, values: Mapping[str, str]) -> str:
    """Substitute the placeholders that have values and leave the rest as written."""

    pieces: list[str] = []
    position = 0
    for start, end, name in _scan(template):
        value = values.get(name)
        if value is None:
            continue
        pieces.append(template[position:start])
        pieces.append(str(value))
        position = end
    pieces.append(template[position:])
    return "".join(pieces)


@dataclass(frozen=True, slots=True)
class TemplateString:
    """An unformatted message together with the values for its placeholders."""

    template: str
    values: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not isinstance(self.template, str):
            raise TypeError("TemplateString.template: expected str")
        normalized: dict[str, str] = {}
        for key, value in dict(self.values).items():
            if not isinstance(key, str) or not key:
                raise ValueError("TemplateString.values: keys must be non-empty strings")
            normalized[str(key)] = value if isinstance(value, str) else str(value)
        object.__setattr__(self, "values", MappingProxyType(normalized))

    def format(self) -> str:
        return format_template(self.template, self.values)

    def format_unsafe(self) -> str:
        return format_template_unsafe(self.template, self.values)

    def with_values(self, **values: str) -> TemplateString:
        merged = dict(self.values)
        merged.update(values)
        return TemplateString(self.template, merged)

    def with_placeholders(self, values: Mapping[Placeholder | str, object]) -> TemplateString:
        merged = dict(self.values)
        merged.update({str(key): str(value) for key, value in values.items()})
        return TemplateString(self.template, merged)

    def placeholders(self) -> tuple[str, ...]:
        return extract_placeholders(self.template)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TemplateString):
            return NotImplemented
        return self.template == other.template and dict(self.values) == dict(other.values)

    def __hash__(self) -> int:
        return hash((self.template, tuple(sorted(self.values.items()))))

    def __str__(self) -> str:
        return self.format_unsafe()


__all__ = [
    "Placeholder",
    "TemplateString",
    "check_placeholders",
    "extract_placeholders",
    "format_template",
    "format_template_unsafe",
]
