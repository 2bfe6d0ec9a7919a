"""
Exception hierarchy and violation records for objectschema.

Every exception derives from ``ObjectSchemaError``.  None of them derive
from ``ValueError``: they are raised from inside pydantic validators and
must propagate unchanged instead of being folded into a pydantic
``ValidationError``.

Construction-time errors (raised while building a schema):

- ``StructuralValidationError``: malformed declarative shape
- ``UnsupportedTypeError`` / ``UnsupportedConstraintError`` /
  ``TypeArgsMisuseError``: illegal schema authoring

Validation-time errors are collected as ``Violation`` records and raised
together as one ``ObjectValidationError``.  Reference failures
(``UnresolvedSchemaTypeError``, ``SchemaCycleError``,
``ResolutionDepthError``) travel inside a violation as its ``cause``.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from objectschema.types import SchemaTypeRef, ViolationCode

_SUMMARY_LIMIT = 3


def join_path(parent: str, key: str | int) -> str:
    """Append a key (or array index) to a dotted key path."""
    if isinstance(key, int):
        return f"{parent}[{key}]"
    if not parent:
        return key
    return f"{parent}.{key}"


class Violation(BaseModel):
    """A single failed check found while validating a value."""

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    path: str = Field("", description="Dotted key path; empty for the root value")
    message: str
    code: ViolationCode = ViolationCode.CONSTRAINT
    value: Any = None
    constraint: Optional[str] = Field(
        None, description="Constraint method or check that failed"
    )
    cause: Optional[Exception] = Field(None, exclude=True)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "message": self.message,
            "code": self.code.value,
            "constraint": self.constraint,
            "value": self.value,
        }

    def __str__(self) -> str:
        return f"{self.path or '<root>'}: {self.message}"


def violations_from_pydantic(
    exc: PydanticValidationError, prefix: str = ""
) -> list[Violation]:
    """Convert a pydantic ``ValidationError`` into violation records."""
    violations = []
    for error in exc.errors():
        path = prefix
        for part in error["loc"]:
            path = join_path(path, part)
        violations.append(
            Violation(
                path=path,
                message=error["msg"],
                code=ViolationCode.STRUCTURE,
                value=error.get("input"),
                constraint=error["type"],
            )
        )
    return violations


def _summarise(violations: list[Violation]) -> str:
    summary = "; ".join(str(v) for v in violations[:_SUMMARY_LIMIT])
    if len(violations) > _SUMMARY_LIMIT:
        summary += f" (and {len(violations) - _SUMMARY_LIMIT} more)"
    return summary


class ObjectSchemaError(Exception):
    """Base class for all objectschema errors."""


# ---------------------------------------------------------------------------
# Construction-time errors
# ---------------------------------------------------------------------------


class StructuralValidationError(ObjectSchemaError):
    """
    Raised when declarative schema data has the wrong shape.

    Attributes:
        subject: What was being built (e.g. ``"ObjectSchema"``).
        violations: Every violating field found in one pass.
    """

    def __init__(self, subject: str, violations: Iterable[Violation]) -> None:
        self.subject = subject
        self.violations = list(violations)
        super().__init__(
            f"Invalid {subject} definition: {_summarise(self.violations)}"
        )

    @property
    def paths(self) -> list[str]:
        return [v.path for v in self.violations]


class SchemaAuthoringError(ObjectSchemaError):
    """Base for errors caused by illegal kinds, methods or arguments.

    ``location`` starts empty and is filled in by the enclosing
    ``ObjectSchema`` (e.g. ``types.Person``) as the error propagates.
    """

    def __init__(self, message: str) -> None:
        self.location = ""
        self._message = message
        super().__init__(message)

    def locate(self, location: str) -> "SchemaAuthoringError":
        self.location = join_path(location, self.location) if self.location else location
        self.args = (f"{self.location}: {self._message}",)
        return self


class UnsupportedTypeError(SchemaAuthoringError):
    """Raised when a Property declares a kind the capability registry lacks."""

    def __init__(self, kind: Any, known: Iterable[str] = ()) -> None:
        self.kind = kind
        known = sorted(known)
        message = f"Unsupported type: {kind!r}"
        if known:
            message += f" (expected one of: {', '.join(known)})"
        super().__init__(message)


class UnsupportedConstraintError(SchemaAuthoringError):
    """Raised when a constraint method is unknown for a kind, or its
    arguments do not match the registered shape."""

    def __init__(
        self,
        kind: str,
        method: str,
        reason: str = "",
        args: Optional[list[Any]] = None,
    ) -> None:
        self.kind = kind
        self.method = method
        self.reason = reason
        self.constraint_args = args
        message = f"Unsupported constraint for {kind}: {method!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class TypeArgsMisuseError(SchemaAuthoringError):
    """Raised when ``typeArgs`` is declared where it is not legal."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"typeArgs misuse on {kind} property: {reason}")


class DuplicateTypeError(ObjectSchemaError):
    """Raised by ``ObjectSchema.add_type`` when the name is taken."""

    def __init__(self, schema_key: str, name: str) -> None:
        self.schema_key = schema_key
        self.name = name
        super().__init__(f"Type already exists in {schema_key}: {name!r}")


class UnknownTypeError(ObjectSchemaError, KeyError):
    """Raised by ``ObjectSchema.validate`` for a type name the schema lacks.

    Also a ``KeyError``, as for any failed lookup by name.
    """

    def __init__(self, schema_key: str, name: str) -> None:
        self.schema_key = schema_key
        self.name = name
        super().__init__(f"Unknown type in {schema_key}: {name!r}")

    def __str__(self) -> str:
        return str(self.args[0])


# ---------------------------------------------------------------------------
# Registry errors
# ---------------------------------------------------------------------------


class InvalidLookupKeyError(ObjectSchemaError):
    """Raised when a registry lookup key is malformed."""

    def __init__(self, key: Any, violations: Iterable[Violation]) -> None:
        self.key = key
        self.violations = list(violations)
        super().__init__(
            f"Invalid schema type lookup key {key!r}: {_summarise(self.violations)}"
        )


class InterfaceContractError(ObjectSchemaError):
    """Raised when a substituted schema store lacks required operations."""

    def __init__(self, implementation: Any, missing: Iterable[str]) -> None:
        self.implementation = implementation
        self.missing = list(missing)
        super().__init__(
            f"{type(implementation).__name__} does not implement the schema store "
            f"interface; missing callable(s): {', '.join(self.missing)}"
        )


# ---------------------------------------------------------------------------
# Validation-time errors
# ---------------------------------------------------------------------------


class UnresolvedSchemaTypeError(ObjectSchemaError):
    """A cross-schema reference could not be resolved at validate time."""

    def __init__(self, ref: SchemaTypeRef) -> None:
        self.ref = ref
        self.namespace = ref.namespace
        self.version = ref.version
        self.type_name = ref.type_name
        super().__init__(f"Unresolved schema type: {ref}")


class SchemaCycleError(ObjectSchemaError):
    """The same reference was re-entered for the same value object."""

    def __init__(self, ref: SchemaTypeRef, path: str) -> None:
        self.ref = ref
        self.path = path
        super().__init__(f"Cyclic reference to {ref} at {path or '<root>'}")


class ResolutionDepthError(ObjectSchemaError):
    """Nested cross-schema resolution went deeper than allowed."""

    def __init__(self, ref: SchemaTypeRef, max_depth: int) -> None:
        self.ref = ref
        self.max_depth = max_depth
        super().__init__(
            f"Resolution depth {max_depth} exceeded while resolving {ref}"
        )


class ObjectValidationError(ObjectSchemaError):
    """
    Aggregate error raised by ``Type.validate``.

    Attributes:
        type_name: Name of the validated Type (if known).
        violations: Every violation found in the validate call.
    """

    def __init__(self, type_name: Optional[str], violations: Iterable[Violation]) -> None:
        self.type_name = type_name
        self.violations = list(violations)
        subject = type_name or "value"
        super().__init__(
            f"Validation failed for {subject}: {_summarise(self.violations)}"
        )

    @property
    def paths(self) -> list[str]:
        return [v.path for v in self.violations]

    def causes(self) -> list[Exception]:
        """Exceptions recorded as the cause of individual violations."""
        return [v.cause for v in self.violations if v.cause is not None]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type_name,
            "error_count": len(self.violations),
            "errors": [v.to_dict() for v in self.violations],
        }
