"""
fieldguard — error types.

File: src/fieldguard/errors.py

Purpose
- Define the exception hierarchy shared by the numeric domain, bound parsing, the constraint
  model, templates and the evaluator.

Functional requirements
- Constraint definition problems are fatal and raised immediately; data-quality failures are
  never raised, they become violations.
- Template errors surface only when a message is rendered.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fieldguard.violations import ConstraintViolation, ValidationError


class ConstraintDefinitionError(ValueError):
    """Raised when a constraint definition itself is broken."""


class NumberParseError(ConstraintDefinitionError):
    """Raised when numeric text does not fit the grammar or range of a numeric kind."""


class BoundParseError(ConstraintDefinitionError):
    """Raised when a bound or range notation cannot be turned into a numeric bound."""


class UnsupportedPlaceholderError(ConstraintDefinitionError):
    """Raised when an error message template uses placeholders a constraint cannot supply."""


class UnknownFieldError(ConstraintDefinitionError, LookupError):
    """Raised when a constraint names a field the record type does not declare."""


class NumericTypeMismatchError(ConstraintDefinitionError, TypeError):
    """Raised when two numeric kinds cannot be compared without loss of precision."""


class TemplateFormatError(ValueError):
    """Raised when a template is formatted strictly and some placeholders have no value."""

    def __init__(self, template: str, missing: Sequence[str]) -> None:
        self.template = template
        self.missing = tuple(missing)
        super().__init__(
            f"cannot format template {template!r}: "
            f"missing values for placeholders {list(self.missing)}"
        )


class ValidationDepthError(RuntimeError):
    """Raised when nested validation goes deeper than the configured limit."""


class UnknownTypeError(LookupError):
    """Raised in strict mode when a packed payload names a type nobody registered."""


class PayloadDecodeError(ValueError):
    """Raised when a packed payload does not fit the record type its URL names."""


class ConfigLoadError(ValueError):
    """Raised when settings cannot be loaded or coerced."""


class ValidationException(Exception):
    """Raised by ``check()`` when a record violates its constraints."""

    def __init__(self, error: ValidationError) -> None:
        self.error = error
        rendered = "; ".join(error.messages())
        super().__init__(f"record is invalid: {rendered}")

    @property
    def violations(self) -> tuple[ConstraintViolation, ...]:
        return self.error.violations


__all__ = [
    "BoundParseError",
    "ConfigLoadError",
    "ConstraintDefinitionError",
    "NumberParseError",
    "NumericTypeMismatchError",
    "PayloadDecodeError",
    "TemplateFormatError",
    "UnknownFieldError",
    "UnknownTypeError",
    "UnsupportedPlaceholderError",
    "ValidationDepthError",
    "ValidationException",
]
