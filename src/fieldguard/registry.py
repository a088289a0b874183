"""Process-wide cache of constraint sets keyed by record type name."""

from __future__ import annotations

import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

import structlog

from fieldguard.constraints import Constraint, ConstraintSet


class ConstraintRegistry:
    """Read-optimized resolver of constraint sets.

    Reads go to an immutable snapshot without taking the lock; each registration builds a new
    snapshot under the lock and publishes it with one assignment. Registrations are logged at
    debug level only when ``log_registrations`` is set.
    """

    __slots__ = ("_lock", "_log_registrations", "_logger", "_snapshot")

    def __init__(
        self,
        constraint_sets: Iterable[ConstraintSet] = (),
        *,
        logger: Any | None = None,
        log_registrations: bool = False,
    ) -> None:
        self._lock = threading.Lock()
        self._log_registrations = log_registrations
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._snapshot: Mapping[str, ConstraintSet] = MappingProxyType({})
        for constraint_set in constraint_sets:
            self.register(constraint_set)

    def resolve(self, type_name: str) -> ConstraintSet:
        found = self._snapshot.get(type_name)
        if found is None:
            return ConstraintSet.empty(type_name)
        return found

    def register(self, constraint_set: ConstraintSet, *, replace: bool = False) -> None:
        if not isinstance(constraint_set, ConstraintSet):
            raise TypeError("ConstraintRegistry.register: expected ConstraintSet")
        with self._lock:
            current = self._snapshot
            if constraint_set.type_name in current and not replace:
                raise ValueError(
                    f"constraints for `{constraint_set.type_name}` are already registered"
                )
            updated = dict(current)
            updated[constraint_set.type_name] = constraint_set
            self._snapshot = MappingProxyType(updated)
        self._registered(constraint_set, replaced=constraint_set.type_name in current)

    def extend(self, type_name: str, *constraints: Constraint) -> ConstraintSet:
        """Append constraints to the set of ``type_name`` and return the new set."""

        with self._lock:
            current = self._snapshot
            base = current.get(type_name) or ConstraintSet.empty(type_name)
            extended = base.with_constraints(*constraints)
            updated = dict(current)
            updated[type_name] = extended
            self._snapshot = MappingProxyType(updated)
        self._registered(extended, replaced=type_name in current)
        return extended

    def snapshot(self) -> Mapping[str, ConstraintSet]:
        return self._snapshot

    @property
    def type_names(self) -> tuple[str, ...]:
        return tuple(sorted(self._snapshot))

    def __contains__(self, type_name: object) -> bool:
        return type_name in self._snapshot

    def __len__(self) -> int:
        return len(self._snapshot)

    def _registered(self, constraint_set: ConstraintSet, *, replaced: bool) -> None:
        if not self._log_registrations:
            return
        self._logger.debug(
            "constraint_set_registered",
            type_name=constraint_set.type_name,
            constraint_count=len(constraint_set),
            replaced=replaced,
        )


__all__ = ["ConstraintRegistry"]
