"""
Schema registry: namespace+version keyed storage and reference resolution.

``ObjectSchemaRegistry`` is a facade over a pluggable ``SchemaStore``.
Any object exposing callable ``get_schema_type`` and ``register_schema``
can stand in for the default in-memory store; anything else is rejected
when the registry is built.

Policies:

- Re-registering the same ``namespace/version`` replaces the stored
  schema (last write wins).
- ``get_schema_type`` returns ``None`` both when the schema is missing
  and when the schema exists but lacks the type.

Usage::

    from objectschema.registry import ObjectSchemaRegistry

    registry = ObjectSchemaRegistry()
    registry.register_schema(connection_schema)
    person_type.validate(data, registry.resolve)
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Iterable, Mapping, Optional, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from objectschema.dependencies import extract_dependencies, extract_schema_dependencies
from objectschema.errors import InterfaceContractError, InvalidLookupKeyError, Violation, violations_from_pydantic
from objectschema.logger import schema_events
from objectschema.model import ObjectSchema, Type
from objectschema.otel import emit_schema_registered
from objectschema.types import SchemaTypeRef, ViolationCode

logger = logging.getLogger(__name__)

LookupKey = Union[SchemaTypeRef, Mapping[str, Any], str]

_STORE_OPERATIONS = ("get_schema_type", "register_schema")


def parse_lookup_key(key: LookupKey) -> SchemaTypeRef:
    """Normalise a lookup key into a ``SchemaTypeRef``.

    Accepts a ``SchemaTypeRef``, a ``{namespace, version, type}`` mapping
    or the textual ``ns://acme/1.0.0#Type`` form.

    Raises:
        InvalidLookupKeyError: If the key is malformed.
    """
    if isinstance(key, SchemaTypeRef):
        return key
    try:
        if isinstance(key, str):
            return SchemaTypeRef.parse(key)
        if isinstance(key, Mapping):
            return SchemaTypeRef.model_validate(dict(key))
    except ValidationError as exc:
        raise InvalidLookupKeyError(key, violations_from_pydantic(exc)) from exc
    except ValueError as exc:
        raise InvalidLookupKeyError(
            key,
            [Violation(path="", message=str(exc), code=ViolationCode.STRUCTURE, value=key)],
        ) from exc
    raise InvalidLookupKeyError(
        key,
        [
            Violation(
                path="",
                message="expected a {namespace, version, type} mapping",
                code=ViolationCode.STRUCTURE,
                value=key,
            )
        ],
    )


def _as_schema(schema: Union[ObjectSchema, Mapping[str, Any]]) -> ObjectSchema:
    if isinstance(schema, ObjectSchema):
        return schema
    return ObjectSchema(schema)


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@runtime_checkable
class SchemaStore(Protocol):
    """
    Protocol defining the schema store interface.

    All store implementations must provide these methods.
    """

    def get_schema_type(self, key: SchemaTypeRef) -> Optional[Type]:
        """Return the referenced Type, or None if schema or type is missing."""
        ...

    def register_schema(self, schema: ObjectSchema) -> None:
        """Store a schema under its ``namespace/version`` key."""
        ...


class InMemorySchemaStore:
    """Dict-backed store.  Not guarded; share across threads at your own risk."""

    def __init__(self) -> None:
        self._schemas: dict[str, ObjectSchema] = {}

    def get_schema(self, schema_key: str) -> Optional[ObjectSchema]:
        return self._schemas.get(schema_key)

    def get_schema_type(self, key: SchemaTypeRef) -> Optional[Type]:
        schema = self._schemas.get(key.schema_key)
        if schema is None:
            return None
        return schema.get_type(key.type_name)

    def register_schema(self, schema: ObjectSchema) -> None:
        if schema.key in self._schemas:
            logger.debug("Replacing registered schema %s", schema.key)
        self._schemas[schema.key] = schema

    def schema_keys(self) -> list[str]:
        return list(self._schemas)

    def __len__(self) -> int:
        return len(self._schemas)


class ThreadSafeSchemaStore(InMemorySchemaStore):
    """In-memory store whose operations are serialised by a re-entrant lock."""

    def __init__(self) -> None:
        super().__init__()
        self._lock = threading.RLock()

    def get_schema(self, schema_key: str) -> Optional[ObjectSchema]:
        with self._lock:
            return super().get_schema(schema_key)

    def get_schema_type(self, key: SchemaTypeRef) -> Optional[Type]:
        with self._lock:
            return super().get_schema_type(key)

    def register_schema(self, schema: ObjectSchema) -> None:
        with self._lock:
            super().register_schema(schema)

    def schema_keys(self) -> list[str]:
        with self._lock:
            return super().schema_keys()


def _missing_operations(store: Any) -> list[str]:
    return [name for name in _STORE_OPERATIONS if not callable(getattr(store, name, None))]


# ---------------------------------------------------------------------------
# Registry facade
# ---------------------------------------------------------------------------


class ObjectSchemaRegistry:
    """
    Facade over a ``SchemaStore`` that also supplies the resolver.

    Args:
        store: Backing store; defaults to a fresh ``InMemorySchemaStore``.

    Raises:
        InterfaceContractError: If ``store`` lacks a required operation.
    """

    def __init__(self, store: Optional[SchemaStore] = None) -> None:
        if store is None:
            store = InMemorySchemaStore()
        missing = _missing_operations(store)
        if missing:
            raise InterfaceContractError(store, missing)
        self.store = store

    def register_schema(self, schema: Union[ObjectSchema, Mapping[str, Any]]) -> ObjectSchema:
        """Store ``schema`` (or build it from its declarative mapping first)."""
        schema = _as_schema(schema)
        self.store.register_schema(schema)
        type_names = schema.get_type_names()
        schema_events.log_schema_registered(schema.key, type_names)
        emit_schema_registered(schema.key, type_names)
        return schema

    def get_schema_type(self, key: LookupKey) -> Optional[Type]:
        """Look up a Type by ``{namespace, version, type}``.

        Raises:
            InvalidLookupKeyError: If the key is malformed.
        """
        return self.store.get_schema_type(parse_lookup_key(key))

    def resolve(self, namespace: str, version: str, type_name: str) -> Optional[Type]:
        """Resolver for ``Type.validate``.

        A triple that cannot form a valid key resolves to ``None`` so the
        caller reports it as an unresolved reference.
        """
        try:
            ref = SchemaTypeRef(namespace=namespace, version=version, type_name=type_name)
        except ValidationError:
            logger.debug("Unresolvable reference %s/%s#%s", namespace, version, type_name)
            return None
        return self.store.get_schema_type(ref)

    def missing_dependencies(
        self, target: Union[Type, ObjectSchema]
    ) -> set[SchemaTypeRef]:
        """References from ``target`` that this registry cannot resolve.

        References back into ``target`` itself (when it is a schema) count
        as resolvable.
        """
        if isinstance(target, ObjectSchema):
            refs: Iterable[SchemaTypeRef] = extract_schema_dependencies(target)
        else:
            refs = extract_dependencies(target)
        missing = set()
        for ref in refs:
            if isinstance(target, ObjectSchema) and ref.schema_key == target.key:
                if target.get_type(ref.type_name) is not None:
                    continue
            if self.store.get_schema_type(ref) is None:
                missing.add(ref)
        return missing
