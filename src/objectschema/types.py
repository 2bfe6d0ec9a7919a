"""
Shared enums and value models for objectschema.

Centralises the identifiers every other module agrees on:

- ``Kind``: the base validator categories a Property may declare
- ``ViolationCode``: machine-readable reason attached to each violation
- ``SchemaTypeRef``: the (namespace, version, type) triple used for
  cross-schema references and registry lookups

Example:
    from objectschema.types import Kind, SchemaTypeRef

    ref = SchemaTypeRef.parse("ns://acme/1.0.0#Connection")
    ref.namespace   # "ns://acme"
    str(ref)        # "ns://acme/1.0.0#Connection"
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

NAMESPACE_PATTERN = r"^ns://.+$"
VERSION_PATTERN = r"^\d+\.\d+\.\d+$"


class Kind(str, Enum):
    """Base kinds a Property can declare."""

    STRING = "String"
    NUMBER = "Number"
    BOOLEAN = "Boolean"
    ARRAY = "Array"
    OBJECT = "Object"
    FUNCTION = "Function"
    ANY = "Any"


class ViolationCode(str, Enum):
    """Reason codes carried by validation violations."""

    REQUIRED = "any.required"
    NULL = "any.null"
    KIND = "any.kind"
    NOT_VALID = "any.valid"
    DENIED = "any.invalid"
    WITH = "any.with"
    WITHOUT = "any.without"
    EMPTY = "any.empty"
    CONSTRAINT = "any.constraint"
    EXTRA_KEY = "object.extra_key"
    UNRESOLVED = "object.unresolved_schema_type"
    CYCLE = "object.cycle"
    DEPTH = "object.depth"
    INCLUDES = "array.includes"
    EXCLUDES = "array.excludes"
    STRUCTURE = "schema.structure"


class SchemaTypeRef(BaseModel):
    """A weak, name-only reference to a Type in a (possibly other) schema."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    namespace: str = Field(..., pattern=NAMESPACE_PATTERN)
    version: str = Field(..., pattern=VERSION_PATTERN)
    type_name: str = Field(..., min_length=1, alias="type")

    @property
    def schema_key(self) -> str:
        """Registry key of the schema holding the referenced type."""
        return f"{self.namespace}/{self.version}"

    def as_tuple(self) -> tuple[str, str, str]:
        return (self.namespace, self.version, self.type_name)

    def to_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)

    @classmethod
    def parse(cls, text: str) -> "SchemaTypeRef":
        """Parse the ``<namespace>/<version>#<type>`` textual form.

        Raises:
            pydantic.ValidationError: If a part does not match its format.
            ValueError: If the text has no ``#`` or no version segment.
        """
        schema_part, sep, type_name = text.partition("#")
        if not sep:
            raise ValueError(f"Schema type reference must contain '#': {text!r}")
        namespace, sep, version = schema_part.rpartition("/")
        if not sep:
            raise ValueError(f"Schema type reference has no version: {text!r}")
        return cls(namespace=namespace, version=version, type_name=type_name)

    def __str__(self) -> str:
        return f"{self.schema_key}#{self.type_name}"
