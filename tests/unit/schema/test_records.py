"""
fieldguard — unit tests for record types, records and record views

File: tests/unit/schema/test_records.py

Purpose
- Validate field declarations, the type registry, record construction and path-tracking reads.

What this test file should cover
- Declaration errors are raised at construction.
- Unset fields read as zero values; explicit presence is tracked separately.
- Oneof exclusivity and packed payloads.
"""

from __future__ import annotations

import pytest

from fieldguard.access import FieldValue, RecordView
from fieldguard.errors import PayloadDecodeError, UnknownFieldError, UnknownTypeError
from fieldguard.records import AnyPayload, Record, zero_value
from fieldguard.schema import (
    Cardinality,
    FieldDescriptor,
    FieldKind,
    RecordType,
    TypeRegistry,
    type_name_from_url,
    type_url_for,
)

_ADDRESS = RecordType.define(
    "Address",
    FieldDescriptor("first_line", FieldKind.STRING),
    FieldDescriptor("zip", FieldKind.UINT32),
)
_CONTACT = RecordType.define(
    "Contact",
    FieldDescriptor("name", FieldKind.STRING),
    FieldDescriptor("address", FieldKind.MESSAGE, message_type="Address"),
    FieldDescriptor("tags", FieldKind.STRING, cardinality=Cardinality.REPEATED),
    FieldDescriptor(
        "labels", FieldKind.INT32, cardinality=Cardinality.MAP, key_kind=FieldKind.STRING
    ),
    FieldDescriptor("email", FieldKind.STRING, oneof="channel"),
    FieldDescriptor("phone", FieldKind.STRING, oneof="channel"),
    FieldDescriptor("active", FieldKind.BOOL),
    FieldDescriptor("score", FieldKind.FLOAT),
    FieldDescriptor("extra", FieldKind.ANY),
)
_TYPES = TypeRegistry([_CONTACT, _ADDRESS])


def test_fields_are_bound_and_numbered_by_position() -> None:
    address = _CONTACT.require_field("address")

    assert address.declaring_type == "Contact"
    assert address.number == 2
    assert address.qualified_name == "Contact.address"
    assert _CONTACT.field_names()[:3] == ("name", "address", "tags")


def test_field_lookup_is_private_to_each_type() -> None:
    empty = RecordType("Empty")
    other = RecordType.define("Other", FieldDescriptor("id", FieldKind.STRING))

    assert empty.find_field("id") is None
    assert other.find_field("id") is other.fields[0]
    assert empty == RecordType("Empty")
    assert hash(empty) == hash(RecordType("Empty"))


def test_type_labels() -> None:
    assert _CONTACT.require_field("name").type_label == "string"
    assert _CONTACT.require_field("address").type_label == "Address"
    assert _CONTACT.require_field("tags").type_label == "repeated string"
    assert _CONTACT.require_field("labels").type_label == "map<string, int32>"


@pytest.mark.parametrize(
    ("kwargs", "message"),
    [
        ({"name": "1bad", "kind": FieldKind.STRING}, "invalid field name"),
        ({"name": "child", "kind": FieldKind.MESSAGE}, "require a type name"),
        ({"name": "n", "kind": FieldKind.INT32, "message_type": "X"}, "only message fields"),
        (
            {"name": "m", "kind": FieldKind.INT32, "cardinality": "map", "key_kind": "double"},
            "cannot be a map key",
        ),
        ({"name": "n", "kind": FieldKind.INT32, "key_kind": "string"}, "only map fields"),
        (
            {"name": "n", "kind": FieldKind.INT32, "cardinality": "repeated", "oneof": "g"},
            "cannot belong to a oneof",
        ),
        ({"name": "n", "kind": FieldKind.INT32, "number": -1}, "non-negative"),
    ],
)
def test_invalid_field_declarations_are_rejected(kwargs: dict[str, object], message: str) -> None:
    with pytest.raises(ValueError, match=message):
        FieldDescriptor(**kwargs)  # type: ignore[arg-type]


def test_record_type_rejects_duplicates() -> None:
    with pytest.raises(ValueError, match="duplicate field name"):
        RecordType.define("T", FieldDescriptor("a", "int32"), FieldDescriptor("a", "string"))
    with pytest.raises(ValueError, match="duplicate field number"):
        RecordType.define(
            "T",
            FieldDescriptor("a", "int32", number=2),
            FieldDescriptor("b", "int32"),
        )


def test_oneof_cases_and_unknown_fields() -> None:
    assert _CONTACT.oneof_names() == ("channel",)
    assert _CONTACT.oneof_cases("channel") == ("email", "phone")
    with pytest.raises(UnknownFieldError, match="does not declare a oneof"):
        _CONTACT.oneof_cases("missing")
    with pytest.raises(UnknownFieldError, match="does not declare a field `nope`"):
        _CONTACT.require_field("nope")
    assert _CONTACT.find_field("nope") is None


def test_declares_checks_owner_and_number() -> None:
    assert _CONTACT.declares(_CONTACT.require_field("name"))
    assert not _CONTACT.declares(_ADDRESS.require_field("zip"))
    assert not _CONTACT.declares(FieldDescriptor("name", FieldKind.STRING))


def test_type_registry_lookups() -> None:
    assert "Contact" in _TYPES
    assert len(_TYPES) == 2
    assert _TYPES.names == ("Contact", "Address")
    assert _TYPES.require("Address") is _ADDRESS
    with pytest.raises(UnknownTypeError, match="unknown record type"):
        _TYPES.require("Missing")
    with pytest.raises(ValueError, match="duplicate record type"):
        _TYPES.with_types(_ADDRESS)
    assert _TYPES.resolve_field_path("Contact", ("address", "zip")).qualified_name == "Address.zip"


def test_type_urls() -> None:
    url = type_url_for("Address")

    assert url == "type.fieldguard.dev/Address"
    assert type_name_from_url(url) == "Address"
    assert type_name_from_url("Address") == "Address"
    assert _TYPES.find_by_url("example.com/Address") is _ADDRESS


def test_unset_fields_read_as_zero_values() -> None:
    contact = Record(_CONTACT)

    assert contact.get("name") == ""
    assert contact.get("address") is None
    assert contact.get("tags") == ()
    assert dict(contact.get("labels")) == {}  # type: ignore[call-overload]
    assert contact.get("active") is False
    assert zero_value(_CONTACT.require_field("score")) == 0.0
    assert all(contact.is_default(name) for name in _CONTACT.field_names())


def test_explicit_zero_is_present_but_default() -> None:
    contact = Record(_CONTACT, name="", active=False)

    assert contact.has("name")
    assert contact.is_default("name")
    assert not contact.has("address")
    assert Record(_CONTACT, name=None) == Record(_CONTACT)


@pytest.mark.parametrize(
    ("values", "error", "message"),
    [
        ({"nope": 1}, ValueError, "has no such field"),
        ({"name": 3}, TypeError, "Contact.name: expected str"),
        ({"tags": "abc"}, TypeError, "take a sequence"),
        ({"tags": ["a", 1]}, TypeError, r"Contact.tags\[1\]"),
        ({"labels": {"a": 2**31}}, ValueError, "out of range"),
        ({"labels": {1: 1}}, TypeError, "expected str"),
        ({"address": Record(_CONTACT)}, TypeError, "expected a `Address` record"),
        ({"active": 1}, TypeError, "expected bool"),
        ({"score": 1.0e39}, ValueError, "out of range"),
        ({"extra": Record(_ADDRESS)}, TypeError, "expected an AnyPayload"),
    ],
)
def test_bad_values_are_rejected_with_their_path(
    values: dict[str, object], error: type[Exception], message: str
) -> None:
    with pytest.raises(error, match=message):
        Record(_CONTACT, values)


def test_oneof_allows_a_single_case() -> None:
    contact = Record(_CONTACT, email="a@example.com")

    assert contact.active_case("channel") == "email"
    assert Record(_CONTACT).active_case("channel") is None
    with pytest.raises(ValueError, match="oneof `channel` already has `email` set"):
        Record(_CONTACT, email="a@example.com", phone="555")


def test_replace_returns_a_new_record() -> None:
    contact = Record(_CONTACT, name="Ada")
    renamed = contact.replace(name="Grace", tags=["x"])

    assert contact.get("name") == "Ada"
    assert renamed.get("name") == "Grace"
    assert renamed.get("tags") == ("x",)
    assert repr(contact) == "Contact(name='Ada')"


def test_float_fields_store_single_precision() -> None:
    contact = Record(_CONTACT, score=0.1)

    assert contact.get("score") != 0.1
    assert contact.get("score") == pytest.approx(0.1)


def test_any_payload_pack_and_unpack() -> None:
    address = Record(_ADDRESS, first_line="1 Main St")
    payload = AnyPayload.pack(address)

    assert payload.type_url == "type.fieldguard.dev/Address"
    assert _TYPES.unpack(payload) == address
    assert TypeRegistry().unpack(payload) is None
    assert payload == AnyPayload("type.fieldguard.dev/Address", {"first_line": "1 Main St"})
    with pytest.raises(ValueError, match="non-empty"):
        AnyPayload("  ")


def test_payload_with_undeclared_field_fails_to_unpack() -> None:
    payload = AnyPayload("type.fieldguard.dev/Address", {"planet": "Mars"})

    with pytest.raises(PayloadDecodeError, match="cannot unpack .*Address.*planet"):
        _TYPES.unpack(payload)


def test_view_tracks_paths_into_nested_records() -> None:
    address = Record(_ADDRESS, zip=12345)
    view = RecordView.top_level(Record(_CONTACT, address=address))

    nested = view.nested_in("address", address)
    assert nested.path == ("address",)
    assert nested.type_name == "Address"
    assert nested.field_path("zip") == ("address", "zip")
    assert view.value_at("address.zip").single_value() == 12345
    assert view.value_at(("address", "zip")).field_path == ("address", "zip")


def test_view_reads_zero_through_unset_message_with_a_registry() -> None:
    view = RecordView.top_level(Record(_CONTACT))

    assert view.value_at("address.zip", types=_TYPES).single_value() == 0
    with pytest.raises(UnknownFieldError, match="without a type registry"):
        view.value_at("address.zip")
    with pytest.raises(UnknownFieldError, match="not a singular message field"):
        view.value_at("name.zip")


def test_value_of_rejects_foreign_descriptors() -> None:
    view = RecordView.top_level(Record(_CONTACT))

    with pytest.raises(UnknownFieldError, match="is not declared by `Contact`"):
        view.value_of(_ADDRESS.require_field("zip"))


def test_field_value_of_collections() -> None:
    contact = Record(_CONTACT, tags=["", "a"], labels={"x": 0, "y": 2})
    view = RecordView.top_level(contact)

    tags = view.value_of("tags")
    assert isinstance(tags, FieldValue)
    assert not tags.is_default
    assert list(tags.non_default()) == ["a"]
    assert list(tags.non_default()) == ["a"]
    assert len(tags) == 2
    assert list(view.value_of("labels")) == [0, 2]
    assert bool(view.value_of("labels").non_default())
    with pytest.raises(ValueError, match="has no single value"):
        tags.single_value()

    empty = view.value_of("address")
    assert empty.is_default
    assert not empty.non_default()
