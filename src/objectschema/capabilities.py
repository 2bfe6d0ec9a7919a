"""
Type capability registry: which constraint methods each kind accepts.

The registry is an immutable value built once (``DEFAULT_CAPABILITIES``)
and passed by reference to whoever compiles schemas.  Each entry maps a
method name to the ``ArgShape`` its arguments must have, so illegal
schema authoring fails when the schema is built rather than when data
is first validated.

Usage::

    from objectschema.capabilities import DEFAULT_CAPABILITIES

    DEFAULT_CAPABILITIES.check("String", "min", [3])        # ok
    DEFAULT_CAPABILITIES.check("String", "integer", [])     # UnsupportedConstraintError
    DEFAULT_CAPABILITIES.require_kind("Date")               # UnsupportedTypeError
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from objectschema.errors import UnsupportedConstraintError, UnsupportedTypeError
from objectschema.types import Kind, SchemaTypeRef

logger = logging.getLogger(__name__)

# Methods that need the compiler's recursive handling rather than a
# plain rule.
REFERENCE_METHOD = "objectSchemaType"
ELEMENT_METHODS = frozenset({"includes", "excludes"})


# ---------------------------------------------------------------------------
# Argument shapes
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ArgShape(str, Enum):
    """Expected shape of a constraint method's argument list."""

    NONE = "none"
    COUNT = "count"
    NUMBER = "number"
    PATTERN = "pattern"
    OPTIONAL_FLAG = "optional_flag"
    VALUES = "values"
    KEYS = "keys"
    ELEMENT_SPECS = "element_specs"
    SCHEMA_TYPE_REF = "schema_type_ref"

    def problem(self, args: Sequence[Any]) -> Optional[str]:
        """Describe why ``args`` does not fit this shape, or ``None``."""
        count = len(args)
        if self is ArgShape.NONE:
            return None if count == 0 else f"takes no arguments, got {count}"
        if self is ArgShape.COUNT:
            if count != 1 or not isinstance(args[0], int) or isinstance(args[0], bool):
                return "expects one integer argument"
            return None if args[0] >= 0 else "expects a non-negative integer"
        if self is ArgShape.NUMBER:
            if count != 1 or not _is_number(args[0]):
                return "expects one numeric argument"
            return None
        if self is ArgShape.PATTERN:
            if count != 1 or not isinstance(args[0], str):
                return "expects one regular expression string"
            try:
                re.compile(args[0])
            except re.error as exc:
                return f"invalid regular expression: {exc}"
            return None
        if self is ArgShape.OPTIONAL_FLAG:
            if count == 0 or (count == 1 and isinstance(args[0], bool)):
                return None
            return "expects at most one boolean argument"
        if self is ArgShape.VALUES:
            return None if count else "expects at least one value"
        if self is ArgShape.KEYS:
            if not count or not all(isinstance(a, str) and a for a in args):
                return "expects one or more key names"
            return None
        if self is ArgShape.ELEMENT_SPECS:
            if not count or not all(isinstance(a, Mapping) for a in args):
                return "expects one or more {type, constraints} element descriptions"
            return None
        if self is ArgShape.SCHEMA_TYPE_REF:
            if count != 1 or not isinstance(args[0], (Mapping, SchemaTypeRef)):
                return "expects one {namespace, version, type} reference"
            if isinstance(args[0], SchemaTypeRef):
                return None
            try:
                SchemaTypeRef.model_validate(args[0])
            except ValidationError as exc:
                fields = ", ".join(
                    ".".join(str(p) for p in e["loc"]) for e in exc.errors()
                )
                return f"malformed reference ({fields})"
            return None
        raise AssertionError(f"unhandled shape {self!r}")


BASE_METHODS: Mapping[str, ArgShape] = MappingProxyType(
    {
        "required": ArgShape.NONE,
        "allow": ArgShape.VALUES,
        "deny": ArgShape.VALUES,
        "valid": ArgShape.VALUES,
        "invalid": ArgShape.VALUES,
        "with": ArgShape.KEYS,
        "without": ArgShape.KEYS,
        "nullOk": ArgShape.NONE,
    }
)

KIND_METHODS: Mapping[str, Mapping[str, ArgShape]] = MappingProxyType(
    {
        Kind.STRING.value: MappingProxyType(
            {
                "emptyOk": ArgShape.NONE,
                "min": ArgShape.COUNT,
                "max": ArgShape.COUNT,
                "length": ArgShape.COUNT,
                "regex": ArgShape.PATTERN,
                "alphanum": ArgShape.OPTIONAL_FLAG,
                "email": ArgShape.NONE,
                "date": ArgShape.NONE,
            }
        ),
        Kind.NUMBER.value: MappingProxyType(
            {
                "integer": ArgShape.NONE,
                "float": ArgShape.NONE,
                "min": ArgShape.NUMBER,
                "max": ArgShape.NUMBER,
            }
        ),
        Kind.BOOLEAN.value: MappingProxyType({}),
        Kind.ARRAY.value: MappingProxyType(
            {
                "includes": ArgShape.ELEMENT_SPECS,
                "excludes": ArgShape.ELEMENT_SPECS,
                "min": ArgShape.COUNT,
                "max": ArgShape.COUNT,
                "length": ArgShape.COUNT,
            }
        ),
        Kind.OBJECT.value: MappingProxyType(
            {REFERENCE_METHOD: ArgShape.SCHEMA_TYPE_REF}
        ),
        Kind.FUNCTION.value: MappingProxyType({}),
        Kind.ANY.value: MappingProxyType({}),
    }
)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapabilityRegistry:
    """Immutable table of legal constraint methods per kind.

    ``kinds`` maps a kind name to its own methods; ``base_methods`` are
    legal on every kind.  A kind's own entry wins over a base method of
    the same name.
    """

    kinds: Mapping[str, Mapping[str, ArgShape]] = field(default_factory=lambda: KIND_METHODS)
    base_methods: Mapping[str, ArgShape] = field(default_factory=lambda: BASE_METHODS)

    def __post_init__(self) -> None:
        # Freeze caller-supplied dicts so the value stays read-only.
        frozen = {
            name: MappingProxyType(dict(methods))
            for name, methods in self.kinds.items()
        }
        object.__setattr__(self, "kinds", MappingProxyType(frozen))
        object.__setattr__(self, "base_methods", MappingProxyType(dict(self.base_methods)))

    def kind_names(self) -> list[str]:
        return list(self.kinds)

    def has_kind(self, kind: str) -> bool:
        return isinstance(kind, str) and kind in self.kinds

    def require_kind(self, kind: Any) -> str:
        """Return ``kind`` if registered, else raise ``UnsupportedTypeError``."""
        if not self.has_kind(kind):
            raise UnsupportedTypeError(kind, self.kinds)
        return kind

    def methods_for(self, kind: str) -> dict[str, ArgShape]:
        """All methods legal for ``kind``, base methods included."""
        methods = dict(self.base_methods)
        methods.update(self.kinds[self.require_kind(kind)])
        return methods

    def lookup(self, kind: str, method: str) -> ArgShape:
        """Return the argument shape for ``(kind, method)``.

        Raises:
            UnsupportedTypeError: If ``kind`` is not registered.
            UnsupportedConstraintError: If ``method`` is not legal for it.
        """
        own = self.kinds[self.require_kind(kind)]
        if method in own:
            return own[method]
        if method in self.base_methods:
            return self.base_methods[method]
        raise UnsupportedConstraintError(kind, method, "unknown method for this kind")

    def check(self, kind: str, method: str, args: Sequence[Any]) -> ArgShape:
        """Check legality of a constraint and the shape of its arguments."""
        shape = self.lookup(kind, method)
        problem = shape.problem(args)
        if problem:
            raise UnsupportedConstraintError(kind, method, problem, list(args))
        return shape


DEFAULT_CAPABILITIES = CapabilityRegistry()
