"""Shared record types and builders for evaluation tests."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Final

from fieldguard.constraints import Constraint, ConstraintSet
from fieldguard.schema import Cardinality, FieldDescriptor, FieldKind, RecordType, TypeRegistry

ADDRESS: Final[RecordType] = RecordType.define(
    "Address",
    FieldDescriptor("first_line", FieldKind.STRING),
    FieldDescriptor("city", FieldKind.STRING),
    FieldDescriptor("zip", FieldKind.UINT32),
)

RECEIVER: Final[RecordType] = RecordType.define(
    "Receiver",
    FieldDescriptor("name", FieldKind.STRING),
    FieldDescriptor("address", FieldKind.MESSAGE, message_type="Address"),
    FieldDescriptor(
        "previous", FieldKind.MESSAGE, cardinality=Cardinality.REPEATED, message_type="Address"
    ),
    FieldDescriptor("attachment", FieldKind.ANY),
    FieldDescriptor("age", FieldKind.INT32),
    FieldDescriptor("max_age", FieldKind.INT64),
    FieldDescriptor("ratio", FieldKind.DOUBLE),
    FieldDescriptor("scores", FieldKind.INT32, cardinality=Cardinality.REPEATED),
    FieldDescriptor("tags", FieldKind.STRING, cardinality=Cardinality.REPEATED),
    FieldDescriptor(
        "aliases", FieldKind.STRING, cardinality=Cardinality.MAP, key_kind=FieldKind.INT32
    ),
    FieldDescriptor("email", FieldKind.STRING, oneof="contact"),
    FieldDescriptor("phone", FieldKind.STRING, oneof="contact"),
    FieldDescriptor("note", FieldKind.STRING),
    FieldDescriptor("signature", FieldKind.BYTES),
)

TREE_NODE: Final[RecordType] = RecordType.define(
    "TreeNode",
    FieldDescriptor("label", FieldKind.STRING),
    FieldDescriptor(
        "children", FieldKind.MESSAGE, cardinality=Cardinality.REPEATED, message_type="TreeNode"
    ),
)

TYPES: Final[TypeRegistry] = TypeRegistry([RECEIVER, ADDRESS, TREE_NODE])


def receiver_field(name: str) -> FieldDescriptor:
    return RECEIVER.require_field(name)


def address_field(name: str) -> FieldDescriptor:
    return ADDRESS.require_field(name)


@dataclass(slots=True)
class RecordingLogger:
    events: list[tuple[str, str, dict[str, object]]] = field(default_factory=list)

    def debug(self, event: str, **kwargs: object) -> None:
        self.events.append(("debug", event, dict(kwargs)))

    def info(self, event: str, **kwargs: object) -> None:
        self.events.append(("info", event, dict(kwargs)))

    def warning(self, event: str, **kwargs: object) -> None:
        self.events.append(("warning", event, dict(kwargs)))

    def error(self, event: str, **kwargs: object) -> None:
        self.events.append(("error", event, dict(kwargs)))

    def named(self, event: str) -> list[tuple[str, dict[str, object]]]:
        return [(level, payload) for level, name, payload in self.events if name == event]


class MappingResolver:
    """Resolver over a fixed mapping; unknown types resolve to an empty set."""

    def __init__(self, constraint_sets: Iterable[ConstraintSet] = ()) -> None:
        self._sets = {item.type_name: item for item in constraint_sets}
        self.requested: list[str] = []

    def resolve(self, type_name: str) -> ConstraintSet:
        self.requested.append(type_name)
        return self._sets.get(type_name) or ConstraintSet.empty(type_name)


def resolver_for(record_type: RecordType, *constraints: Constraint) -> MappingResolver:
    return MappingResolver([ConstraintSet.for_type(record_type, *constraints)])


__all__ = [
    "ADDRESS",
    "RECEIVER",
    "TREE_NODE",
    "TYPES",
    "MappingResolver",
    "RecordingLogger",
    "address_field",
    "receiver_field",
    "resolver_for",
]
