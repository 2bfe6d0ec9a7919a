"""
OTel span event emission helpers for objectschema.

Each helper logs and, when the current span is recording, adds a span
event so validation outcomes show up alongside the caller's traces.

Usage::

    from objectschema.otel import emit_validation_result, emit_schema_registered

    emit_validation_result("Person", violations)
    emit_schema_registered("ns://acme/1.0.0", ["Person"])
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional, Sequence

from opentelemetry import trace as otel_trace

if TYPE_CHECKING:
    from objectschema.errors import Violation

logger = logging.getLogger(__name__)

_MAX_PATH_ATTRIBUTES = 3


def _add_span_event(name: str, attributes: dict[str, str | int | float | bool]) -> None:
    """Add an event to the current OTel span if it is recording."""
    span = otel_trace.get_current_span()
    if span and span.is_recording():
        span.add_event(name=name, attributes=attributes)


def emit_validation_result(
    type_name: Optional[str], violations: Sequence["Violation"]
) -> None:
    """Emit a span event for a validate call.

    Event name: ``objectschema.validation.passed`` or
    ``objectschema.validation.failed``.
    """
    passed = not violations
    event_name = f"objectschema.validation.{'passed' if passed else 'failed'}"

    attrs: dict[str, str | int | float | bool] = {
        "objectschema.type": type_name or "<anonymous>",
        "objectschema.passed": passed,
        "objectschema.violation_count": len(violations),
    }

    # Include first 3 violated paths for quick filtering
    for i, violation in enumerate(violations[:_MAX_PATH_ATTRIBUTES]):
        attrs[f"objectschema.violation.{i}.path"] = violation.path
        attrs[f"objectschema.violation.{i}.code"] = violation.code.value

    if passed:
        logger.debug("Validation of %s passed", type_name)
    else:
        logger.warning(
            "Validation of %s FAILED: %d violation(s) at %s",
            type_name,
            len(violations),
            [v.path for v in violations],
        )

    _add_span_event(event_name, attrs)


def emit_schema_registered(schema_key: str, type_names: Sequence[str]) -> None:
    """Emit ``objectschema.schema.registered`` for a registry write."""
    logger.debug("Registered schema %s (%d types)", schema_key, len(type_names))
    _add_span_event(
        "objectschema.schema.registered",
        {
            "objectschema.schema_key": schema_key,
            "objectschema.type_count": len(type_names),
        },
    )
