"""
fieldguard — public validation surface.

File: src/fieldguard/validator.py

Purpose
- Validate whole records (or packed payloads) against the constraints an injected resolver
  supplies, and report the outcome as ``None`` or a ValidationError.

Functional requirements
- A packed top-level payload is unpacked first; an unknown type is valid when the policy is
  lenient and raises UnknownTypeError when it is strict.
- ``check`` returns the record unchanged or raises ValidationException.
"""

from __future__ import annotations

from typing import Any

import structlog

from fieldguard.access import RecordView
from fieldguard.config import DEFAULT_SETTINGS, ValidationSettings
from fieldguard.errors import UnknownTypeError, ValidationException
from fieldguard.evaluator import ConstraintSetResolver, MessageValidator
from fieldguard.records import AnyPayload, Record
from fieldguard.schema import TypeRegistry
from fieldguard.violations import ConstraintViolation, ValidationError


class Validator:
    """Validates records of the types a TypeRegistry knows."""

    def __init__(
        self,
        resolver: ConstraintSetResolver,
        *,
        types: TypeRegistry | None = None,
        settings: ValidationSettings | None = None,
        logger: Any | None = None,
    ) -> None:
        self._resolver = resolver
        self._types = types if types is not None else TypeRegistry()
        self._settings = settings if settings is not None else DEFAULT_SETTINGS
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    @property
    def settings(self) -> ValidationSettings:
        return self._settings

    @property
    def types(self) -> TypeRegistry:
        return self._types

    def validate(self, record: Record | AnyPayload) -> ValidationError | None:
        """Return ``None`` when ``record`` satisfies its constraints, else every violation."""

        return self._run(record, custom_only=False)

    def violations_of(self, record: Record | AnyPayload) -> tuple[ConstraintViolation, ...]:
        error = self.validate(record)
        return () if error is None else error.violations

    def violations_of_custom_constraints(
        self, record: Record | AnyPayload
    ) -> tuple[ConstraintViolation, ...]:
        error = self._run(record, custom_only=True)
        return () if error is None else error.violations

    def check(self, record: Record | AnyPayload) -> Record | AnyPayload:
        error = self.validate(record)
        if error is not None:
            raise ValidationException(error)
        return record

    def _run(self, record: Record | AnyPayload, *, custom_only: bool) -> ValidationError | None:
        target = self._unpack_top_level(record)
        if target is None:
            return None
        constraint_set = self._resolver.resolve(target.type_name)
        if custom_only:
            constraint_set = constraint_set.only_custom()
        evaluator = MessageValidator(
            RecordView.top_level(target),
            resolver=self._resolver,
            types=self._types,
            settings=self._settings,
            logger=self._logger,
        )
        error = evaluator.run(constraint_set)
        if self._settings.log_results:
            self._logger.debug(
                "record_validation_finished",
                type_name=target.type_name,
                constraint_count=len(constraint_set),
                violation_count=0 if error is None else len(error),
            )
        return error

    def _unpack_top_level(self, record: Record | AnyPayload) -> Record | None:
        if isinstance(record, Record):
            return record
        if not isinstance(record, AnyPayload):
            raise TypeError(f"cannot validate {type(record).__name__}: expected Record")
        unpacked = self._types.unpack(record)
        if unpacked is not None:
            return unpacked
        if self._settings.strict_any:
            raise UnknownTypeError(f"cannot validate a payload of unknown type `{record.type_url}`")
        self._logger.warning(
            "any_payload_unresolved",
            type_url=record.type_url,
            field_path="",
            policy=self._settings.unknown_any_policy.value,
        )
        return None


def validate(
    record: Record | AnyPayload,
    resolver: ConstraintSetResolver,
    *,
    types: TypeRegistry | None = None,
    settings: ValidationSettings | None = None,
    logger: Any | None = None,
) -> ValidationError | None:
    return Validator(resolver, types=types, settings=settings, logger=logger).validate(record)


def check(
    record: Record | AnyPayload,
    resolver: ConstraintSetResolver,
    *,
    types: TypeRegistry | None = None,
    settings: ValidationSettings | None = None,
    logger: Any | None = None,
) -> Record | AnyPayload:
    return Validator(resolver, types=types, settings=settings, logger=logger).check(record)


__all__ = ["Validator", "check", "validate"]
