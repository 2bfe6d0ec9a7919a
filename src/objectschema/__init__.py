"""
objectschema - Declarative, namespaced, versioned object schemas.

Schemas are plain data: types, properties and ``{method, args}``
constraints.  Building an ``ObjectSchema`` checks the data against the
capability registry and compiles it into validators; a registry resolves
references from one schema's properties to types in another.

Example:
    from objectschema import ObjectSchema, ObjectSchemaRegistry

    registry = ObjectSchemaRegistry()
    registry.register_schema(ObjectSchema({
        "namespace": "ns://acme",
        "version": "1.0.0",
        "description": "Acme people",
        "types": {"Person": {"properties": {"age": {"type": "Number"}}}},
    }))
    person = registry.get_schema_type(
        {"namespace": "ns://acme", "version": "1.0.0", "type": "Person"}
    )
    person.validate({"age": 30}, registry.resolve)
"""

from objectschema.capabilities import DEFAULT_CAPABILITIES, ArgShape, CapabilityRegistry
from objectschema.compiler import ConstraintCompiler, TypeValidator
from objectschema.config import ObjectSchemaConfig, get_config, reset_config
from objectschema.constraints import Constraint, ElementSpec, PropertyValidator, ValidationContext
from objectschema.dependencies import extract_dependencies, extract_schema_dependencies
from objectschema.errors import (
    DuplicateTypeError,
    InterfaceContractError,
    InvalidLookupKeyError,
    ObjectSchemaError,
    ObjectValidationError,
    ResolutionDepthError,
    SchemaAuthoringError,
    SchemaCycleError,
    StructuralValidationError,
    TypeArgsMisuseError,
    UnknownTypeError,
    UnresolvedSchemaTypeError,
    UnsupportedConstraintError,
    UnsupportedTypeError,
    Violation,
)
from objectschema.identity import IdentityMetadata, default_identity_factory
from objectschema.loader import SchemaLoader
from objectschema.logger import configure_logging
from objectschema.model import ObjectSchema, Property, Type
from objectschema.registry import (
    InMemorySchemaStore,
    ObjectSchemaRegistry,
    SchemaStore,
    ThreadSafeSchemaStore,
    parse_lookup_key,
)
from objectschema.types import Kind, SchemaTypeRef, ViolationCode

__version__ = "0.1.0"

__all__ = [
    # Model
    "ObjectSchema",
    "Type",
    "Property",
    "Constraint",
    "ElementSpec",
    "IdentityMetadata",
    "default_identity_factory",
    # Types
    "Kind",
    "SchemaTypeRef",
    "ViolationCode",
    # Capabilities and compilation
    "ArgShape",
    "CapabilityRegistry",
    "DEFAULT_CAPABILITIES",
    "ConstraintCompiler",
    "TypeValidator",
    "PropertyValidator",
    "ValidationContext",
    # Registry
    "ObjectSchemaRegistry",
    "SchemaStore",
    "InMemorySchemaStore",
    "ThreadSafeSchemaStore",
    "parse_lookup_key",
    "extract_dependencies",
    "extract_schema_dependencies",
    "SchemaLoader",
    # Config and logging
    "ObjectSchemaConfig",
    "get_config",
    "reset_config",
    "configure_logging",
    # Errors
    "ObjectSchemaError",
    "StructuralValidationError",
    "SchemaAuthoringError",
    "UnsupportedTypeError",
    "UnsupportedConstraintError",
    "TypeArgsMisuseError",
    "DuplicateTypeError",
    "InvalidLookupKeyError",
    "UnknownTypeError",
    "InterfaceContractError",
    "UnresolvedSchemaTypeError",
    "SchemaCycleError",
    "ResolutionDepthError",
    "ObjectValidationError",
    "Violation",
]
