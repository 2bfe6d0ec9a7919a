"""Tests for constraint compilation and Type.validate semantics."""

from __future__ import annotations

from typing import Any

import pytest

from objectschema.compiler import ConstraintCompiler
from objectschema.constraints import ValidationContext
from objectschema.errors import (
    ObjectValidationError,
    TypeArgsMisuseError,
    UnknownTypeError,
    UnsupportedConstraintError,
)
from objectschema.model import ObjectSchema, Type
from objectschema.types import ViolationCode


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _c(method: str, *args: Any) -> dict:
    return {"method": method, "args": list(args)}


def _type(properties: dict, **flags: Any) -> Type:
    return Type.model_validate({"name": "T", "properties": properties, **flags})


def _prop(kind: str, *constraints: dict) -> dict:
    return {"type": kind, "constraints": list(constraints)}


def _violations(type_: Type, value: Any) -> list:
    with pytest.raises(ObjectValidationError) as exc_info:
        type_.validate(value)
    return exc_info.value.violations


EMAIL_ELEMENT = {"type": "String", "constraints": [_c("email")]}


# ---------------------------------------------------------------------------
# End-to-end Person example
# ---------------------------------------------------------------------------


class TestPersonExample:
    def test_conforming_person(self, person_schema_data):
        person = ObjectSchema(person_schema_data).get_type("Person")
        assert person.validate({"name": "Ann", "age": 30}) is None

    def test_one_violation_names_the_field(self, person_schema_data):
        person = ObjectSchema(person_schema_data).get_type("Person")
        violations = _violations(person, {"name": "Ann", "age": -1})
        assert len(violations) == 1
        assert violations[0].path == "age"
        assert violations[0].constraint == "min"
        assert violations[0].value == -1

    def test_violations_accumulate_across_properties(self, person_schema_data):
        person = ObjectSchema(person_schema_data).get_type("Person")
        with pytest.raises(ObjectValidationError) as exc_info:
            person.validate({"age": "old"})
        assert exc_info.value.paths == ["name", "age"]
        codes = [v.code for v in exc_info.value.violations]
        assert codes == [ViolationCode.REQUIRED, ViolationCode.KIND]
        assert exc_info.value.type_name == "Person"
        assert "Validation failed for Person" in str(exc_info.value)

    def test_schema_validate_by_type_name(self, person_schema_data):
        schema = ObjectSchema(person_schema_data)
        schema.validate("Person", {"name": "Ann", "age": 1})
        with pytest.raises(UnknownTypeError) as exc_info:
            schema.validate("Robot", {})
        assert isinstance(exc_info.value, KeyError)
        assert exc_info.value.name == "Robot"
        assert str(exc_info.value) == "Unknown type in ns://acme/1.0.0: 'Robot'"

    def test_non_mapping_value(self, person_schema_data):
        person = ObjectSchema(person_schema_data).get_type("Person")
        violations = _violations(person, ["Ann", 30])
        assert [(v.path, v.code) for v in violations] == [("", ViolationCode.KIND)]

    def test_error_to_dict(self, person_schema_data):
        person = ObjectSchema(person_schema_data).get_type("Person")
        with pytest.raises(ObjectValidationError) as exc_info:
            person.validate({"name": "Ann"})
        assert exc_info.value.to_dict() == {
            "type": "Person",
            "error_count": 1,
            "errors": [
                {
                    "path": "age",
                    "message": "is required",
                    "code": "any.required",
                    "constraint": "required",
                    "value": None,
                }
            ],
        }


# ---------------------------------------------------------------------------
# Base validator semantics
# ---------------------------------------------------------------------------


class TestBaseSemantics:
    def test_optional_by_default(self):
        _type({"a": _prop("String")}).validate({})

    def test_null_rejected_unless_null_ok(self):
        assert _violations(_type({"a": _prop("String")}), {"a": None})[0].code == ViolationCode.NULL
        _type({"a": _prop("String", _c("nullOk"))}).validate({"a": None})

    def test_allowed_null(self):
        _type({"a": _prop("String", _c("allow", None))}).validate({"a": None})

    def test_empty_string_rejected_unless_empty_ok(self):
        assert _violations(_type({"a": _prop("String")}), {"a": ""})[0].code == ViolationCode.EMPTY
        _type({"a": _prop("String", _c("emptyOk"))}).validate({"a": ""})

    def test_kind_mismatch_stops_later_rules(self):
        type_ = _type({"a": _prop("String", _c("min", 3), _c("email"))})
        violations = _violations(type_, {"a": 5})
        assert [v.code for v in violations] == [ViolationCode.KIND]

    def test_rules_report_in_declared_order(self):
        type_ = _type({"a": _prop("String", _c("email"), _c("min", 10))})
        violations = _violations(type_, {"a": "short"})
        assert [v.constraint for v in violations] == ["email", "min"]

    @pytest.mark.parametrize(
        "kind,good,bad",
        [
            ("String", "x", 1),
            ("Number", 1.5, True),
            ("Boolean", False, 0),
            ("Array", [1], {"a": 1}),
            ("Object", {"a": 1}, [1]),
            ("Function", len, "len"),
        ],
    )
    def test_kind_checks(self, kind, good, bad):
        type_ = _type({"a": _prop(kind)}, skipConversions=True)
        type_.validate({"a": good})
        assert _violations(type_, {"a": bad})[0].code == ViolationCode.KIND

    def test_any_accepts_anything(self):
        type_ = _type({"a": _prop("Any")})
        for value in ("x", 1, [], {}, len):
            type_.validate({"a": value})

    def test_non_finite_number_rejected(self):
        type_ = _type({"a": _prop("Number")})
        assert _violations(type_, {"a": float("nan")})[0].code == ViolationCode.KIND


class TestAllowDeny:
    def test_valid_restricts_values(self):
        type_ = _type({"a": _prop("String", _c("valid", "red", "blue"))})
        type_.validate({"a": "red"})
        assert _violations(type_, {"a": "green"})[0].code == ViolationCode.NOT_VALID

    def test_later_allow_wins_over_deny(self):
        type_ = _type({"a": _prop("String", _c("deny", "x"), _c("allow", "x"))})
        type_.validate({"a": "x"})

    def test_later_deny_wins_over_allow(self):
        type_ = _type({"a": _prop("String", _c("allow", "x"), _c("deny", "x"))})
        assert _violations(type_, {"a": "x"})[0].code == ViolationCode.DENIED

    def test_invalid_after_valid_removes_value(self):
        type_ = _type({"a": _prop("String", _c("valid", "a", "b"), _c("invalid", "a"))})
        type_.validate({"a": "b"})
        assert _violations(type_, {"a": "a"})[0].code == ViolationCode.DENIED

    def test_allow_bypasses_kind_check(self):
        type_ = _type({"a": _prop("Number", _c("allow", "n/a"))})
        type_.validate({"a": "n/a"})

    def test_boolean_not_confused_with_number(self):
        type_ = _type({"a": _prop("Number", _c("deny", 1))})
        assert _violations(type_, {"a": 1})[0].code == ViolationCode.DENIED
        assert _violations(type_, {"a": True})[0].code == ViolationCode.KIND

    def test_valid_matches_converted_value(self):
        type_ = _type({"n": _prop("Number", _c("valid", 1, 2))})
        type_.validate({"n": "1"})
        assert _violations(type_, {"n": "3"})[0].code == ViolationCode.NOT_VALID

    def test_deny_matches_converted_value(self):
        type_ = _type({"n": _prop("Number", _c("deny", 1))})
        assert _violations(type_, {"n": "1"})[0].code == ViolationCode.DENIED
        type_.validate({"n": "2"})

    def test_valid_value_saved_after_conversion(self):
        value = {"n": "2"}
        _type({"n": _prop("Number", _c("valid", 1, 2))}, saveConversions=True).validate(value)
        assert value == {"n": 2}

    def test_valid_without_conversion_needs_exact_value(self):
        type_ = _type({"n": _prop("Number", _c("valid", 1, 2))}, skipConversions=True)
        assert _violations(type_, {"n": "1"})[0].code == ViolationCode.NOT_VALID


class TestPeers:
    def test_with_requires_peer(self):
        type_ = _type({"a": _prop("String", _c("with", "b")), "b": _prop("String")})
        type_.validate({"a": "x", "b": "y"})
        type_.validate({"b": "y"})
        violations = _violations(type_, {"a": "x"})
        assert [(v.path, v.code) for v in violations] == [("a", ViolationCode.WITH)]

    def test_without_forbids_peer(self):
        type_ = _type({"a": _prop("String", _c("without", "b")), "b": _prop("String")})
        type_.validate({"a": "x"})
        violations = _violations(type_, {"a": "x", "b": "y"})
        assert [(v.path, v.code) for v in violations] == [("a", ViolationCode.WITHOUT)]


# ---------------------------------------------------------------------------
# Kind-specific methods
# ---------------------------------------------------------------------------


class TestStringMethods:
    @pytest.mark.parametrize(
        "constraint,good,bad",
        [
            (_c("min", 3), "abc", "ab"),
            (_c("max", 3), "abc", "abcd"),
            (_c("length", 2), "ab", "abc"),
            (_c("regex", "^[a-z]+$"), "abc", "abc1"),
            (_c("alphanum"), "abc123", "abc 123"),
            (_c("alphanum", True), "abc 123", "abc-123"),
            (_c("email"), "a@example.com", "not-an-email"),
            (_c("date"), "2024-01-31", "31/01/2024"),
        ],
    )
    def test_string_constraint(self, constraint, good, bad):
        type_ = _type({"a": _prop("String", constraint)})
        type_.validate({"a": good})
        violations = _violations(type_, {"a": bad})
        assert len(violations) == 1
        assert violations[0].constraint == constraint["method"]
        assert violations[0].code == ViolationCode.CONSTRAINT


class TestNumberMethods:
    @pytest.mark.parametrize(
        "constraint,good,bad",
        [
            (_c("min", 0), 0, -0.5),
            (_c("max", 10), 10, 11),
            (_c("integer"), 4, 4.5),
            (_c("float"), 4.5, 4),
        ],
    )
    def test_number_constraint(self, constraint, good, bad):
        type_ = _type({"a": _prop("Number", constraint)})
        type_.validate({"a": good})
        violations = _violations(type_, {"a": bad})
        assert [v.constraint for v in violations] == [constraint["method"]]


class TestArrayMethods:
    def test_length_limits(self):
        type_ = _type({"a": _prop("Array", _c("min", 1), _c("max", 2))})
        type_.validate({"a": ["x"]})
        assert [v.constraint for v in _violations(type_, {"a": []})] == ["min"]
        assert [v.constraint for v in _violations(type_, {"a": [1, 2, 3]})] == ["max"]

    def test_includes_email(self):
        type_ = _type({"emails": _prop("Array", _c("includes", EMAIL_ELEMENT))})
        type_.validate({"emails": ["a@example.com"]})

        violations = _violations(type_, {"emails": ["not-an-email"]})
        assert len(violations) == 1
        assert violations[0].path == "emails[0]"

        violations = _violations(type_, {"emails": [123]})
        assert len(violations) == 1
        assert violations[0].path == "emails[0]"
        assert violations[0].code == ViolationCode.KIND

    def test_includes_any_of_several_elements(self):
        type_ = _type(
            {"a": _prop("Array", _c("includes", {"type": "String"}, {"type": "Number"}))},
            skipConversions=True,
        )
        type_.validate({"a": ["x", 1]})
        violations = _violations(type_, {"a": ["x", True]})
        assert [(v.path, v.code) for v in violations] == [("a[1]", ViolationCode.INCLUDES)]

    def test_excludes(self):
        type_ = _type({"a": _prop("Array", _c("excludes", {"type": "Number"}))})
        type_.validate({"a": ["x", "y"]})
        violations = _violations(type_, {"a": ["x", 1]})
        assert [(v.path, v.code) for v in violations] == [("a[1]", ViolationCode.EXCLUDES)]

    def test_malformed_element_description(self):
        with pytest.raises(UnsupportedConstraintError) as exc_info:
            _type({"a": _prop("Array", _c("includes", {"constraints": []}))})
        assert "malformed element description" in exc_info.value.reason

    def test_illegal_method_inside_element(self):
        element = {"type": "String", "constraints": [_c("integer")]}
        with pytest.raises(UnsupportedConstraintError) as exc_info:
            _type({"a": _prop("Array", _c("includes", element))})
        assert (exc_info.value.kind, exc_info.value.method) == ("String", "integer")


# ---------------------------------------------------------------------------
# Type flags
# ---------------------------------------------------------------------------


class TestTypeFlags:
    def test_extra_keys_rejected_by_default(self):
        type_ = _type({"a": _prop("String")})
        violations = _violations(type_, {"a": "x", "b": 1})
        assert [(v.path, v.code) for v in violations] == [("b", ViolationCode.EXTRA_KEY)]

    def test_allow_extra_keys(self):
        _type({"a": _prop("String")}, allowExtraKeys=True).validate({"a": "x", "b": 1})

    def test_strip_extra_keys(self):
        value = {"a": "x", "b": 1}
        _type({"a": _prop("String")}, stripExtraKeys=True).validate(value)
        assert value == {"a": "x"}

    def test_skip_functions(self):
        value = {"a": "x", "callback": lambda: None}
        _type({"a": _prop("String")}, skipFunctions=True).validate(value)
        assert "callback" in value

    def test_conversions_on_by_default(self):
        value = {"n": "42", "b": "true"}
        _type({"n": _prop("Number", _c("min", 40)), "b": _prop("Boolean")}).validate(value)
        assert value == {"n": "42", "b": "true"}

    def test_save_conversions(self):
        value = {"n": "42", "b": "false"}
        _type({"n": _prop("Number"), "b": _prop("Boolean")}, saveConversions=True).validate(value)
        assert value == {"n": 42, "b": False}

    def test_skip_conversions(self):
        type_ = _type({"n": _prop("Number")}, skipConversions=True)
        assert _violations(type_, {"n": "42"})[0].code == ViolationCode.KIND

    def test_rules_see_converted_value(self):
        type_ = _type({"n": _prop("Number", _c("max", 5))})
        assert [v.constraint for v in _violations(type_, {"n": "6"})] == ["max"]


# ---------------------------------------------------------------------------
# typeArgs
# ---------------------------------------------------------------------------


class TestTypeArgs:
    INLINE = {"properties": {"x": _prop("Number", _c("required"))}}

    def test_inline_type_is_validated(self):
        type_ = _type({"p": {"type": "Object", "typeArgs": [self.INLINE]}})
        type_.validate({"p": {"x": 1}})
        violations = _violations(type_, {"p": {}})
        assert [(v.path, v.code) for v in violations] == [("p.x", ViolationCode.REQUIRED)]

    def test_only_on_object(self):
        with pytest.raises(TypeArgsMisuseError):
            _type({"p": {"type": "Array", "typeArgs": [self.INLINE]}})

    def test_exactly_one_inline_type(self):
        with pytest.raises(TypeArgsMisuseError):
            _type({"p": {"type": "Object", "typeArgs": [self.INLINE, self.INLINE]}})

    def test_not_combined_with_object_schema_type(self):
        ref = {"namespace": "ns://a", "version": "1.0.0", "type": "Connection"}
        prop = {
            "type": "Object",
            "constraints": [_c("objectSchemaType", ref)],
            "typeArgs": [self.INLINE],
        }
        with pytest.raises(TypeArgsMisuseError):
            _type({"p": prop})

    def test_to_definition_keeps_type_args(self):
        type_ = _type({"p": {"type": "Object", "typeArgs": [self.INLINE]}})
        definition = type_.to_definition()
        inline = definition["properties"]["p"]["typeArgs"][0]
        assert inline["properties"]["x"]["type"] == "Number"


# ---------------------------------------------------------------------------
# Compiler
# ---------------------------------------------------------------------------


class TestConstraintCompiler:
    def test_compiled_validator_collects_without_raising(self):
        type_ = _type({"a": _prop("String", _c("required"))})
        validator = ConstraintCompiler().compile_type(type_)
        violations = validator.collect({}, ValidationContext())
        assert [v.path for v in violations] == ["a"]

    def test_references_are_exposed(self):
        ref = {"namespace": "ns://a", "version": "1.0.0", "type": "Connection"}
        type_ = _type({"c": _prop("Object", _c("objectSchemaType", ref))})
        assert [str(r) for r in type_.compiled.references] == ["ns://a/1.0.0#Connection"]
