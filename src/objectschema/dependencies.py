"""
Dependency extraction: which external types a Type or schema references.

Walks the declarative data (not the compiled validators), so the result
only depends on what the author wrote.  References inside ``includes``/
``excludes`` element descriptions and inline ``typeArgs`` types are
included; references are never followed into other schemas.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Mapping

from objectschema.capabilities import ELEMENT_METHODS, REFERENCE_METHOD
from objectschema.constraints import Constraint
from objectschema.types import SchemaTypeRef

if TYPE_CHECKING:
    from objectschema.model import ObjectSchema, Type


def _as_ref(arg: Any) -> SchemaTypeRef:
    if isinstance(arg, SchemaTypeRef):
        return arg
    return SchemaTypeRef.model_validate(arg)


def _from_constraints(constraints: Iterable[Any], found: set[SchemaTypeRef]) -> None:
    for constraint in constraints:
        if not isinstance(constraint, Constraint):
            constraint = Constraint.model_validate(constraint)
        if constraint.method == REFERENCE_METHOD:
            found.add(_as_ref(constraint.args[0]))
        elif constraint.method in ELEMENT_METHODS:
            for spec in constraint.args:
                if isinstance(spec, Mapping):
                    _from_constraints(spec.get("constraints", ()), found)


def _from_type(type_: "Type", found: set[SchemaTypeRef]) -> None:
    for prop in type_.properties.values():
        _from_constraints(prop.constraints, found)
        for inline in prop.type_args or ():
            _from_type(inline, found)


def extract_dependencies(type_: "Type") -> set[SchemaTypeRef]:
    """Return the distinct ``(namespace, version, type)`` refs used by ``type_``."""
    found: set[SchemaTypeRef] = set()
    _from_type(type_, found)
    return found


def extract_schema_dependencies(schema: "ObjectSchema") -> set[SchemaTypeRef]:
    """Union of ``extract_dependencies`` over every type of ``schema``."""
    found: set[SchemaTypeRef] = set()
    for type_ in schema.types.values():
        _from_type(type_, found)
    return found
