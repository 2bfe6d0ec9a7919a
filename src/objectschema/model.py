"""
Declarative schema model: ObjectSchema, Type and Property.

Schemas are authored as plain data and validated eagerly:

- ``Property`` and ``Type`` are frozen pydantic models.  Building one
  checks its shape (``extra="forbid"``) and compiles it against the
  capability registry, so illegal kinds, methods and arguments fail at
  construction.
- ``ObjectSchema`` is the mutable, namespaced and versioned container of
  named Types.  Its header is checked in one pass and every structural
  problem is reported together in a ``StructuralValidationError``.

The declarative format uses camelCase keys (``allowExtraKeys``,
``typeArgs``); the Python attributes are snake_case and either spelling
is accepted on input.

Usage::

    from objectschema.model import ObjectSchema

    schema = ObjectSchema({
        "namespace": "ns://acme",
        "version": "1.0.0",
        "description": "Acme people",
        "types": {
            "Person": {
                "properties": {
                    "age": {
                        "type": "Number",
                        "constraints": [
                            {"method": "required", "args": []},
                            {"method": "min", "args": [0]},
                        ],
                    },
                },
            },
        },
    })
    schema.get_type("Person").validate({"age": 30})
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    ValidationError,
    ValidationInfo,
    model_validator,
)

from objectschema.capabilities import DEFAULT_CAPABILITIES, CapabilityRegistry
from objectschema.compiler import ConstraintCompiler, TypeValidator
from objectschema.config import get_config
from objectschema.constraints import (
    Constraint,
    PropertyValidator,
    Resolver,
    ValidationContext,
)
from objectschema.errors import (
    DuplicateTypeError,
    ObjectValidationError,
    SchemaAuthoringError,
    StructuralValidationError,
    UnknownTypeError,
    Violation,
    violations_from_pydantic,
)
from objectschema.identity import (
    IdentityFactory,
    IdentityMetadata,
    rehydrate_identity,
)
from objectschema.logger import schema_events
from objectschema.otel import emit_validation_result
from objectschema.types import NAMESPACE_PATTERN, VERSION_PATTERN, ViolationCode

logger = logging.getLogger(__name__)

CAPABILITIES_CONTEXT_KEY = "capabilities"


def _compiler_for(info: ValidationInfo) -> ConstraintCompiler:
    context = info.context or {}
    return ConstraintCompiler(context.get(CAPABILITIES_CONTEXT_KEY, DEFAULT_CAPABILITIES))


# ---------------------------------------------------------------------------
# Property
# ---------------------------------------------------------------------------


class Property(BaseModel):
    """A named slot of a Type: base kind plus ordered constraints."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    description: Optional[str] = None
    kind: str = Field(..., min_length=1, alias="type")
    constraints: list[Constraint] = Field(default_factory=list)
    type_args: Optional[list[Type]] = Field(None, alias="typeArgs")

    _compiled: PropertyValidator = PrivateAttr()

    @model_validator(mode="after")
    def _compile(self, info: ValidationInfo) -> "Property":
        self._compiled = _compiler_for(info).compile_property(self)
        return self

    @property
    def compiled(self) -> PropertyValidator:
        return self._compiled


# ---------------------------------------------------------------------------
# Type
# ---------------------------------------------------------------------------


class Type(BaseModel):
    """An object shape: leniency flags plus named properties."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    name: Optional[str] = None
    description: Optional[str] = None
    allow_extra_keys: bool = Field(False, alias="allowExtraKeys", strict=True)
    skip_functions: bool = Field(False, alias="skipFunctions", strict=True)
    save_conversions: bool = Field(False, alias="saveConversions", strict=True)
    skip_conversions: bool = Field(False, alias="skipConversions", strict=True)
    strip_extra_keys: bool = Field(False, alias="stripExtraKeys", strict=True)
    properties: dict[str, Property] = Field(default_factory=dict)

    _compiled: TypeValidator = PrivateAttr()

    @model_validator(mode="after")
    def _compile(self, info: ValidationInfo) -> "Type":
        self._compiled = _compiler_for(info).compile_type(self)
        return self

    @property
    def compiled(self) -> TypeValidator:
        return self._compiled

    def collect_violations(
        self, value: Any, context: ValidationContext, path: str = ""
    ) -> list[Violation]:
        """Collect violations without raising; used for nested resolution."""
        return self._compiled.collect(value, context, path)

    def validate(
        self,
        value: Any,
        resolver: Optional[Resolver] = None,
        *,
        max_depth: Optional[int] = None,
    ) -> None:
        """Validate ``value`` against this Type.

        Args:
            value: Candidate object (a mapping).  ``stripExtraKeys`` and
                ``saveConversions`` modify it in place.
            resolver: ``(namespace, version, type) -> Type | None`` used for
                ``objectSchemaType`` references, e.g.
                ``ObjectSchemaRegistry.resolve``.
            max_depth: Bound on nested reference resolution; defaults to
                ``max_resolution_depth`` from configuration.

        Raises:
            ObjectValidationError: Listing every violation found.
        """
        if max_depth is None:
            max_depth = get_config().max_resolution_depth
        context = ValidationContext(resolver=resolver, max_depth=max_depth)
        violations = self.collect_violations(value, context)
        emit_validation_result(self.name, violations)
        if violations:
            schema_events.log_validation_failed(self.name, violations)
            raise ObjectValidationError(self.name, violations)

    def to_definition(self) -> dict[str, Any]:
        """Render back to the declarative (camelCase) format."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"name"})


Property.model_rebuild()
Type.model_rebuild()


# ---------------------------------------------------------------------------
# ObjectSchema
# ---------------------------------------------------------------------------


class _SchemaHeader(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    namespace: str = Field(..., pattern=NAMESPACE_PATTERN)
    version: str = Field(..., pattern=VERSION_PATTERN)
    description: str = Field(..., min_length=1)
    types: dict[str, Any] = Field(default_factory=dict)
    id: Optional[str] = Field(None, min_length=1)
    entity_type: Optional[str] = Field(None, alias="entityType")
    created_on: Optional[datetime] = Field(None, alias="createdOn")
    updated_on: Optional[datetime] = Field(None, alias="updatedOn")


class ObjectSchema:
    """
    Namespaced, versioned collection of named Types.

    Attributes:
        namespace: ``ns://...`` namespace.
        version: ``major.minor.patch`` version.
        description: Human readable description.
        types: Mapping of type name to ``Type``; mutated in place by
            ``add_type``/``remove_type``/``set_type``.
        identity: Id and timestamps from the identity factory.
    """

    ENTITY_TYPE = "ObjectSchema"

    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        *,
        capabilities: Optional[CapabilityRegistry] = None,
        identity_factory: Optional[IdentityFactory] = None,
        **fields: Any,
    ) -> None:
        data = dict(options or {})
        data.update(fields)
        try:
            header = _SchemaHeader.model_validate(data)
        except ValidationError as exc:
            raise StructuralValidationError(self.ENTITY_TYPE, violations_from_pydantic(exc)) from exc

        self.namespace = header.namespace
        self.version = header.version
        self.description = header.description
        self.capabilities = capabilities or DEFAULT_CAPABILITIES
        self.types: dict[str, Type] = {
            name: self._build_type(name, definition)
            for name, definition in header.types.items()
        }
        self.identity: IdentityMetadata = rehydrate_identity(
            self.ENTITY_TYPE,
            {"id": header.id, "createdOn": header.created_on, "updatedOn": header.updated_on},
            identity_factory,
        )
        logger.debug("Built schema %s with types %s", self.key, list(self.types))

    @property
    def key(self) -> str:
        """Registry identity: ``namespace + "/" + version``."""
        return f"{self.namespace}/{self.version}"

    @property
    def id(self) -> str:
        return self.identity.id

    def _build_type(self, name: str, definition: Any) -> Type:
        location = f"types.{name}"
        if isinstance(definition, Type):
            if definition.name == name:
                return definition
            return definition.model_copy(update={"name": name})
        if not isinstance(definition, Mapping):
            raise StructuralValidationError(
                f"type {name!r}",
                [
                    Violation(
                        path=location,
                        message="Input should be a valid dictionary",
                        code=ViolationCode.STRUCTURE,
                        value=definition,
                        constraint="dict_type",
                    )
                ],
            )
        try:
            return Type.model_validate(
                {**definition, "name": name},
                context={CAPABILITIES_CONTEXT_KEY: self.capabilities},
            )
        except ValidationError as exc:
            raise StructuralValidationError(
                f"type {name!r}", violations_from_pydantic(exc, location)
            ) from exc
        except SchemaAuthoringError as exc:
            exc.locate(location)
            raise

    def _touch(self) -> None:
        self.identity = self.identity.touched()

    def get_type_names(self) -> list[str]:
        return list(self.types)

    def get_type(self, name: str) -> Optional[Type]:
        return self.types.get(name)

    def add_type(self, name: str, definition: Any) -> Type:
        """Add a new type.

        Raises:
            DuplicateTypeError: If ``name`` already exists; use ``set_type``
                to replace.
        """
        if name in self.types:
            raise DuplicateTypeError(self.key, name)
        type_ = self._build_type(name, definition)
        self.types[name] = type_
        self._touch()
        schema_events.log_type_changed("schema.type.added", self.key, name)
        return type_

    def remove_type(self, name: str) -> Optional[Type]:
        """Remove a type; returns it, or ``None`` if it did not exist."""
        removed = self.types.pop(name, None)
        if removed is not None:
            self._touch()
            schema_events.log_type_changed("schema.type.removed", self.key, name)
        return removed

    def set_type(self, name: str, definition: Any) -> Optional[Type]:
        """Add or replace a type; returns the prior one or ``None``."""
        type_ = self._build_type(name, definition)
        previous = self.types.get(name)
        self.types[name] = type_
        self._touch()
        schema_events.log_type_changed(
            "schema.type.replaced" if previous is not None else "schema.type.added",
            self.key,
            name,
        )
        return previous

    def validate(
        self, type_name: str, value: Any, resolver: Optional[Resolver] = None
    ) -> None:
        """Validate ``value`` against one of this schema's types.

        References into this schema resolve locally when no resolver is
        given.

        Raises:
            UnknownTypeError: If the schema has no type named ``type_name``.
        """
        type_ = self.types.get(type_name)
        if type_ is None:
            raise UnknownTypeError(self.key, type_name)
        type_.validate(value, resolver or self._local_resolver)

    def _local_resolver(self, namespace: str, version: str, type_name: str) -> Optional[Type]:
        if namespace == self.namespace and version == self.version:
            return self.types.get(type_name)
        return None

    def to_dict(self) -> dict[str, Any]:
        """Render back to the declarative format, identity included."""
        return {
            "namespace": self.namespace,
            "version": self.version,
            "description": self.description,
            "types": {name: t.to_definition() for name, t in self.types.items()},
            **self.identity.model_dump(by_alias=True, mode="json"),
        }

    def __repr__(self) -> str:
        return f"ObjectSchema(key={self.key!r}, types={list(self.types)!r})"
