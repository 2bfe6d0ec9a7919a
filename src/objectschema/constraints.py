"""
Constraint application: the building blocks compiled validators are made of.

A Property compiles into a ``PropertyValidator``.  Compilation starts from
the base check for the property's kind and folds each declared
constraint onto it through an *applier*, looked up in a fixed
``(kind, method) -> applier`` table.  Folding is order sensitive:
``allow``/``valid`` and ``deny``/``invalid`` move values between the
accepted and rejected sets, so the later call wins, and rules report in
the order they were declared.

At validate time a ``ValidationContext`` travels through every rule.  It
carries the resolver used for cross-schema references together with
the in-flight reference set and depth that guard against runaway
recursion.

The table is checked against ``DEFAULT_CAPABILITIES`` at import, so a
method that is legal to author but has no implementation fails loudly
before any schema is built.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Mapping,
    Optional,
    Protocol,
    Sequence,
)

from pydantic import BaseModel, ConfigDict, Field

from objectschema.capabilities import (
    DEFAULT_CAPABILITIES,
    REFERENCE_METHOD,
    CapabilityRegistry,
)
from objectschema.errors import (
    ResolutionDepthError,
    SchemaCycleError,
    UnresolvedSchemaTypeError,
    Violation,
    join_path,
)
from objectschema.types import Kind, SchemaTypeRef, ViolationCode

if TYPE_CHECKING:
    from objectschema.model import Type

logger = logging.getLogger(__name__)

Resolver = Callable[[str, str, str], Optional["Type"]]
Rule = Callable[[Any, "ValidationContext", str], list[Violation]]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_ALPHANUM_RE = re.compile(r"^[a-zA-Z0-9]+$")
_ALPHANUM_SPACES_RE = re.compile(r"^[a-zA-Z0-9 ]+$")


# ---------------------------------------------------------------------------
# Declarative constraint data
# ---------------------------------------------------------------------------


class Constraint(BaseModel):
    """One ``{method, args}`` refinement of a property."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: str = Field(..., min_length=1)
    args: list[Any] = Field(default_factory=list)


class ElementSpec(BaseModel):
    """Kind plus constraints describing an array element (``includes``/``excludes``)."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    kind: str = Field(..., min_length=1, alias="type")
    constraints: list[Constraint] = Field(default_factory=list)
    description: Optional[str] = None


# ---------------------------------------------------------------------------
# Validation context
# ---------------------------------------------------------------------------


class CollectsViolations(Protocol):
    def collect_violations(
        self, value: Any, context: "ValidationContext", path: str = ""
    ) -> list[Violation]:
        ...


@dataclass(frozen=True)
class ValidationContext:
    """State threaded through one ``validate`` call."""

    resolver: Optional[Resolver] = None
    max_depth: int = 64
    convert: bool = True
    depth: int = 0
    in_flight: frozenset = frozenset()

    def with_conversions(self, convert: bool) -> "ValidationContext":
        if convert == self.convert:
            return self
        return replace(self, convert=convert)

    def resolve_reference(
        self, ref: SchemaTypeRef, value: Any, path: str
    ) -> list[Violation]:
        """Resolve ``ref`` and collect the referenced Type's violations for ``value``."""
        resolved: Optional[CollectsViolations] = None
        if self.resolver is not None:
            resolved = self.resolver(ref.namespace, ref.version, ref.type_name)
        if resolved is None:
            return [_caused(path, value, UnresolvedSchemaTypeError(ref), ViolationCode.UNRESOLVED)]

        marker = (ref, id(value))
        if marker in self.in_flight:
            return [_caused(path, value, SchemaCycleError(ref, path), ViolationCode.CYCLE)]
        if self.depth >= self.max_depth:
            return [_caused(path, value, ResolutionDepthError(ref, self.max_depth), ViolationCode.DEPTH)]

        logger.debug("Resolving %s at %s (depth %d)", ref, path or "<root>", self.depth + 1)
        nested = replace(
            self, depth=self.depth + 1, in_flight=self.in_flight | {marker}
        )
        return resolved.collect_violations(value, nested, path)


def _caused(
    path: str, value: Any, error: Exception, code: ViolationCode
) -> Violation:
    return Violation(
        path=path,
        message=str(error),
        code=code,
        value=value,
        constraint=REFERENCE_METHOD,
        cause=error,
    )


# ---------------------------------------------------------------------------
# Base kind checks
# ---------------------------------------------------------------------------


def _same(a: Any, b: Any) -> bool:
    if isinstance(a, bool) != isinstance(b, bool):
        return False
    return bool(a == b)


def _contains(values: Sequence[Any], value: Any) -> bool:
    return any(_same(v, value) for v in values)


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _coerce_string(value: Any, convert: bool) -> tuple[bool, Any]:
    return isinstance(value, str), value


def _coerce_number(value: Any, convert: bool) -> tuple[bool, Any]:
    if _is_finite_number(value):
        return True, value
    if convert and isinstance(value, str):
        text = value.strip()
        try:
            number: float = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return False, value
        if math.isfinite(number):
            return True, number
    return False, value


def _coerce_boolean(value: Any, convert: bool) -> tuple[bool, Any]:
    if isinstance(value, bool):
        return True, value
    if convert and isinstance(value, str) and value.lower() in ("true", "false"):
        return True, value.lower() == "true"
    return False, value


def _coerce_array(value: Any, convert: bool) -> tuple[bool, Any]:
    return isinstance(value, (list, tuple)), value


def _coerce_object(value: Any, convert: bool) -> tuple[bool, Any]:
    return isinstance(value, Mapping), value


def _coerce_function(value: Any, convert: bool) -> tuple[bool, Any]:
    return callable(value), value


def _coerce_any(value: Any, convert: bool) -> tuple[bool, Any]:
    return True, value


BASE_CHECKS: dict[str, Callable[[Any, bool], tuple[bool, Any]]] = {
    Kind.STRING.value: _coerce_string,
    Kind.NUMBER.value: _coerce_number,
    Kind.BOOLEAN.value: _coerce_boolean,
    Kind.ARRAY.value: _coerce_array,
    Kind.OBJECT.value: _coerce_object,
    Kind.FUNCTION.value: _coerce_function,
    Kind.ANY.value: _coerce_any,
}


# ---------------------------------------------------------------------------
# Property validator
# ---------------------------------------------------------------------------


@dataclass
class PropertyValidator:
    """Executable validator for one property (or one array element)."""

    kind: str
    required: bool = False
    null_ok: bool = False
    empty_ok: bool = False
    only_valid: bool = False
    allowed: list[Any] = field(default_factory=list)
    denied: list[Any] = field(default_factory=list)
    peers_with: list[str] = field(default_factory=list)
    peers_without: list[str] = field(default_factory=list)
    rules: list[tuple[str, Rule]] = field(default_factory=list)
    references: list[SchemaTypeRef] = field(default_factory=list)

    def add_rule(self, method: str, rule: Rule) -> None:
        self.rules.append((method, rule))

    def allow_value(self, value: Any) -> None:
        self.denied = [v for v in self.denied if not _same(v, value)]
        if not _contains(self.allowed, value):
            self.allowed.append(value)

    def deny_value(self, value: Any) -> None:
        self.allowed = [v for v in self.allowed if not _same(v, value)]
        if not _contains(self.denied, value):
            self.denied.append(value)

    def collect(
        self,
        value: Any,
        context: ValidationContext,
        path: str = "",
        *,
        present: bool = True,
        parent: Optional[Mapping[str, Any]] = None,
    ) -> tuple[list[Violation], Any]:
        """Check ``value``; return its violations and the converted value.

        Presence, null, allow/deny and kind failures stop the remaining
        rules for this value; every later rule runs and reports.  The
        allow/deny sets match either the raw or the converted value.
        """
        if not present:
            if self.required:
                return [_violation(path, "is required", ViolationCode.REQUIRED, None, "required")], value
            return [], value

        if value is None:
            if self.null_ok or _contains(self.allowed, None):
                return [], value
            return [_violation(path, "must not be null", ViolationCode.NULL, None, "nullOk")], value

        ok, converted = BASE_CHECKS[self.kind](value, context.convert)
        candidates = (value, converted) if ok and converted is not value else (value,)

        if any(_contains(self.allowed, c) for c in candidates):
            return [], converted if ok else value
        if any(_contains(self.denied, c) for c in candidates):
            return [_violation(path, f"value {value!r} is not allowed", ViolationCode.DENIED, value, "deny")], value
        if self.only_valid:
            return [
                _violation(
                    path,
                    f"must be one of {self.allowed!r}",
                    ViolationCode.NOT_VALID,
                    value,
                    "valid",
                )
            ], value

        if not ok:
            return [_violation(path, f"must be of type {self.kind}", ViolationCode.KIND, value, self.kind)], value
        if converted == "" and self.kind == Kind.STRING.value and not self.empty_ok:
            return [_violation(path, "must not be empty", ViolationCode.EMPTY, value, "emptyOk")], value

        violations: list[Violation] = []
        if parent is not None:
            for peer in self.peers_with:
                if peer not in parent:
                    violations.append(
                        _violation(path, f"requires peer {peer!r}", ViolationCode.WITH, value, "with")
                    )
            for peer in self.peers_without:
                if peer in parent:
                    violations.append(
                        _violation(path, f"conflicts with peer {peer!r}", ViolationCode.WITHOUT, value, "without")
                    )
        for _, rule in self.rules:
            violations.extend(rule(converted, context, path))
        return violations, converted


def _violation(
    path: str,
    message: str,
    code: ViolationCode,
    value: Any,
    constraint: Optional[str],
) -> Violation:
    return Violation(path=path, message=message, code=code, value=value, constraint=constraint)


def _predicate(method: str, check: Callable[[Any], bool], message: str) -> Rule:
    def rule(value: Any, context: ValidationContext, path: str) -> list[Violation]:
        if check(value):
            return []
        return [_violation(path, message, ViolationCode.CONSTRAINT, value, method)]

    return rule


# ---------------------------------------------------------------------------
# Appliers
# ---------------------------------------------------------------------------


class ElementCompiler(Protocol):
    """What an applier needs from the compiler to recurse into element specs."""

    capabilities: CapabilityRegistry

    def compile_element(self, spec: Mapping[str, Any], method: str) -> PropertyValidator:
        ...


Applier = Callable[[PropertyValidator, list[Any], ElementCompiler], None]


def _apply_required(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.required = True


def _apply_null_ok(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.null_ok = True


def _apply_allow(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    for value in args:
        builder.allow_value(value)


def _apply_valid(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    _apply_allow(builder, args, compiler)
    builder.only_valid = True


def _apply_deny(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    for value in args:
        builder.deny_value(value)


def _apply_with(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.peers_with.extend(args)


def _apply_without(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.peers_without.extend(args)


def _apply_empty_ok(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.empty_ok = True


def _length_applier(method: str, unit: str) -> Applier:
    def apply(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
        limit = args[0]
        if method == "min":
            check, message = (lambda v: len(v) >= limit), f"length must be at least {limit} {unit}"
        elif method == "max":
            check, message = (lambda v: len(v) <= limit), f"length must be at most {limit} {unit}"
        else:
            check, message = (lambda v: len(v) == limit), f"length must be {limit} {unit}"
        builder.add_rule(method, _predicate(method, check, message))

    return apply


def _apply_regex(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    pattern = re.compile(args[0])
    builder.add_rule(
        "regex",
        _predicate("regex", lambda v: pattern.search(v) is not None, f"must match pattern {args[0]!r}"),
    )


def _apply_alphanum(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    spaces = bool(args[0]) if args else False
    pattern = _ALPHANUM_SPACES_RE if spaces else _ALPHANUM_RE
    builder.add_rule(
        "alphanum",
        _predicate("alphanum", lambda v: pattern.match(v) is not None, "must only contain alpha-numeric characters"),
    )


def _apply_email(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.add_rule(
        "email",
        _predicate("email", lambda v: _EMAIL_RE.match(v) is not None, "must be a valid email"),
    )


def _is_date(value: str) -> bool:
    try:
        datetime.fromisoformat(value)
    except ValueError:
        return False
    return True


def _apply_date(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.add_rule("date", _predicate("date", _is_date, "must be a valid ISO 8601 date"))


def _apply_integer(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.add_rule("integer", _predicate("integer", lambda v: v % 1 == 0, "must be an integer"))


def _apply_float(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    builder.add_rule("float", _predicate("float", lambda v: v % 1 != 0, "must be a float"))


def _apply_number_min(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    limit = args[0]
    builder.add_rule("min", _predicate("min", lambda v: v >= limit, f"must be greater than or equal to {limit}"))


def _apply_number_max(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    limit = args[0]
    builder.add_rule("max", _predicate("max", lambda v: v <= limit, f"must be less than or equal to {limit}"))


def _apply_includes(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    elements = [compiler.compile_element(spec, "includes") for spec in args]
    for element in elements:
        builder.references.extend(element.references)

    def rule(value: Any, context: ValidationContext, path: str) -> list[Violation]:
        violations: list[Violation] = []
        for index, item in enumerate(value):
            item_path = join_path(path, index)
            attempts = [element.collect(item, context, item_path)[0] for element in elements]
            if any(not found for found in attempts):
                continue
            if len(attempts) == 1:
                violations.extend(attempts[0])
                continue
            reasons = "; ".join(v.message for found in attempts for v in found[:1])
            violations.append(
                _violation(
                    item_path,
                    f"does not match any allowed element type ({reasons})",
                    ViolationCode.INCLUDES,
                    item,
                    "includes",
                )
            )
        return violations

    builder.add_rule("includes", rule)


def _apply_excludes(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    elements = [compiler.compile_element(spec, "excludes") for spec in args]
    for element in elements:
        builder.references.extend(element.references)

    def rule(value: Any, context: ValidationContext, path: str) -> list[Violation]:
        violations = []
        for index, item in enumerate(value):
            item_path = join_path(path, index)
            if any(not element.collect(item, context, item_path)[0] for element in elements):
                violations.append(
                    _violation(item_path, "matches an excluded element type", ViolationCode.EXCLUDES, item, "excludes")
                )
        return violations

    builder.add_rule("excludes", rule)


def _apply_object_schema_type(builder: PropertyValidator, args: list[Any], compiler: ElementCompiler) -> None:
    ref = args[0] if isinstance(args[0], SchemaTypeRef) else SchemaTypeRef.model_validate(args[0])
    builder.references.append(ref)

    def rule(value: Any, context: ValidationContext, path: str) -> list[Violation]:
        return context.resolve_reference(ref, value, path)

    builder.add_rule(REFERENCE_METHOD, rule)


BASE_APPLIERS: dict[str, Applier] = {
    "required": _apply_required,
    "allow": _apply_allow,
    "deny": _apply_deny,
    "valid": _apply_valid,
    "invalid": _apply_deny,
    "with": _apply_with,
    "without": _apply_without,
    "nullOk": _apply_null_ok,
}

KIND_APPLIERS: dict[str, dict[str, Applier]] = {
    Kind.STRING.value: {
        "emptyOk": _apply_empty_ok,
        "min": _length_applier("min", "characters"),
        "max": _length_applier("max", "characters"),
        "length": _length_applier("length", "characters"),
        "regex": _apply_regex,
        "alphanum": _apply_alphanum,
        "email": _apply_email,
        "date": _apply_date,
    },
    Kind.NUMBER.value: {
        "integer": _apply_integer,
        "float": _apply_float,
        "min": _apply_number_min,
        "max": _apply_number_max,
    },
    Kind.BOOLEAN.value: {},
    Kind.ARRAY.value: {
        "includes": _apply_includes,
        "excludes": _apply_excludes,
        "min": _length_applier("min", "items"),
        "max": _length_applier("max", "items"),
        "length": _length_applier("length", "items"),
    },
    Kind.OBJECT.value: {REFERENCE_METHOD: _apply_object_schema_type},
    Kind.FUNCTION.value: {},
    Kind.ANY.value: {},
}


def applier_for(kind: str, method: str) -> Optional[Applier]:
    """Return the applier for ``(kind, method)``; kind-specific wins over base."""
    own = KIND_APPLIERS.get(kind, {})
    if method in own:
        return own[method]
    return BASE_APPLIERS.get(method)


def missing_appliers(capabilities: CapabilityRegistry) -> list[tuple[str, str]]:
    """Legal ``(kind, method)`` pairs in ``capabilities`` with no implementation."""
    missing = []
    for kind in capabilities.kind_names():
        if kind not in BASE_CHECKS:
            missing.append((kind, "<base>"))
            continue
        for method in capabilities.methods_for(kind):
            if applier_for(kind, method) is None:
                missing.append((kind, method))
    return missing


_UNIMPLEMENTED = missing_appliers(DEFAULT_CAPABILITIES)
if _UNIMPLEMENTED:  # pragma: no cover
    raise RuntimeError(f"Capabilities without an implementation: {_UNIMPLEMENTED}")
