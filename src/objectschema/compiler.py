"""
Constraint compiler: turns declarative Type/Property data into validators.

``ConstraintCompiler`` is bound to one ``CapabilityRegistry``.  Compiling
a property checks the kind, checks each constraint's legality and
argument shape, and folds it onto a ``PropertyValidator`` in declared
order.  ``includes``/``excludes`` arguments are compiled recursively as
element validators; ``objectSchemaType`` becomes a deferred reference
resolved at validate time; ``typeArgs`` wires in an inline nested Type.

All authoring errors surface here, once, at compile time.  Only
registry-dependent failures (unresolved references) wait for
``Type.validate``.

Usage::

    from objectschema.compiler import ConstraintCompiler

    compiler = ConstraintCompiler()
    validator = compiler.compile_type(person_type)
    violations = validator.collect({"age": -1}, ValidationContext())
"""

from __future__ import annotations

import logging
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping, Optional, Sequence

from pydantic import ValidationError

from objectschema.capabilities import (
    DEFAULT_CAPABILITIES,
    REFERENCE_METHOD,
    CapabilityRegistry,
)
from objectschema.constraints import (
    BASE_CHECKS,
    Constraint,
    ElementSpec,
    PropertyValidator,
    ValidationContext,
    applier_for,
)
from objectschema.errors import (
    TypeArgsMisuseError,
    UnsupportedConstraintError,
    UnsupportedTypeError,
    Violation,
    join_path,
)
from objectschema.types import Kind, SchemaTypeRef, ViolationCode

if TYPE_CHECKING:
    from objectschema.model import Property, Type

logger = logging.getLogger(__name__)


@dataclass
class TypeValidator:
    """Executable validator for a whole Type."""

    name: Optional[str]
    properties: dict[str, PropertyValidator] = field(default_factory=dict)
    allow_extra_keys: bool = False
    skip_functions: bool = False
    save_conversions: bool = False
    skip_conversions: bool = False
    strip_extra_keys: bool = False

    @property
    def references(self) -> list[SchemaTypeRef]:
        refs: list[SchemaTypeRef] = []
        for validator in self.properties.values():
            refs.extend(validator.references)
        return refs

    def collect(
        self, value: Any, context: ValidationContext, path: str = ""
    ) -> list[Violation]:
        """Run every property validator against ``value``; never short-circuits."""
        if not isinstance(value, Mapping):
            return [
                Violation(
                    path=path,
                    message="must be an object",
                    code=ViolationCode.KIND,
                    value=value,
                    constraint=Kind.OBJECT.value,
                )
            ]

        context = context.with_conversions(not self.skip_conversions)
        mutable = isinstance(value, MutableMapping)
        violations: list[Violation] = []

        for key in list(value):
            if key in self.properties:
                continue
            if self.skip_functions and callable(value[key]):
                continue
            if self.strip_extra_keys and mutable:
                del value[key]
                continue
            if not self.allow_extra_keys:
                violations.append(
                    Violation(
                        path=join_path(path, str(key)),
                        message="is not allowed",
                        code=ViolationCode.EXTRA_KEY,
                        value=value[key],
                        constraint="allowExtraKeys",
                    )
                )

        for name, validator in self.properties.items():
            present = name in value
            found, converted = validator.collect(
                value.get(name),
                context,
                join_path(path, name),
                present=present,
                parent=value,
            )
            violations.extend(found)
            if (
                present
                and mutable
                and self.save_conversions
                and context.convert
                and not found
                and converted is not value[name]
            ):
                value[name] = converted

        return violations


class ConstraintCompiler:
    """Compiles declarative properties and types against a capability registry."""

    def __init__(self, capabilities: CapabilityRegistry = DEFAULT_CAPABILITIES) -> None:
        self.capabilities = capabilities

    def compile_property(self, prop: "Property") -> PropertyValidator:
        return self._compile(prop.kind, prop.constraints, prop.type_args)

    def compile_element(self, spec: Mapping[str, Any], method: str) -> PropertyValidator:
        """Compile an ``includes``/``excludes`` element description."""
        try:
            element = ElementSpec.model_validate(spec)
        except ValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
            raise UnsupportedConstraintError(
                Kind.ARRAY.value,
                method,
                f"malformed element description ({fields})",
                [dict(spec)],
            ) from exc
        return self._compile(element.kind, element.constraints, None)

    def compile_type(self, type_: "Type") -> TypeValidator:
        validator = TypeValidator(
            name=type_.name,
            properties={
                name: prop.compiled for name, prop in type_.properties.items()
            },
            allow_extra_keys=type_.allow_extra_keys,
            skip_functions=type_.skip_functions,
            save_conversions=type_.save_conversions,
            skip_conversions=type_.skip_conversions,
            strip_extra_keys=type_.strip_extra_keys,
        )
        logger.debug(
            "Compiled type %s: properties=%d, references=%d",
            type_.name or "<anonymous>",
            len(validator.properties),
            len(validator.references),
        )
        return validator

    def _compile(
        self,
        kind: str,
        constraints: Sequence[Constraint],
        type_args: Optional[Sequence["Type"]],
    ) -> PropertyValidator:
        kind = self.capabilities.require_kind(kind)
        if kind not in BASE_CHECKS:
            raise UnsupportedTypeError(kind, BASE_CHECKS)

        builder = PropertyValidator(kind=kind)
        for constraint in constraints:
            self.capabilities.check(kind, constraint.method, constraint.args)
            applier = applier_for(kind, constraint.method)
            if applier is None:
                raise UnsupportedConstraintError(
                    kind, constraint.method, "no validator implementation"
                )
            applier(builder, list(constraint.args), self)

        if type_args is not None:
            self._apply_type_args(kind, builder, type_args)
        return builder

    def _apply_type_args(
        self,
        kind: str,
        builder: PropertyValidator,
        type_args: Sequence["Type"],
    ) -> None:
        if kind != Kind.OBJECT.value:
            raise TypeArgsMisuseError(kind, "typeArgs is only legal on Object properties")
        if len(type_args) != 1:
            raise TypeArgsMisuseError(
                kind, f"typeArgs takes exactly one inline type, got {len(type_args)}"
            )
        if any(method == REFERENCE_METHOD for method, _ in builder.rules):
            raise TypeArgsMisuseError(
                kind, f"typeArgs cannot be combined with {REFERENCE_METHOD}"
            )
        inline = type_args[0]
        builder.references.extend(inline.compiled.references)

        def rule(value: Any, context: ValidationContext, path: str) -> list[Violation]:
            return inline.collect_violations(value, context, path)

        builder.add_rule("typeArgs", rule)
