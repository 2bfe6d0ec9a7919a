"""
Structured logging for schema lifecycle and validation events.

Outputs JSON-formatted lines on the ``objectschema.events`` logger.
Only state changes and failures are logged:

- schema.registered
- schema.type.added
- schema.type.removed
- schema.type.replaced
- validation.failed

Nothing is printed until a handler is installed; ``configure_logging()``
installs one on stderr using the configured level and format.

Usage:
    from objectschema.logger import configure_logging, schema_events

    configure_logging()
    schema_events.log_schema_registered("ns://acme/1.0.0", ["Person"])
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional, Sequence

from objectschema.config import get_config

if TYPE_CHECKING:
    from objectschema.errors import Violation

_events_logger = logging.getLogger("objectschema.events")

_TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """Install a stderr handler on the ``objectschema`` logger.

    Args:
        level: Log level name; defaults to ``log_level`` from configuration.
        log_format: ``"json"`` (bare JSON event lines) or ``"text"``;
            defaults to ``log_format`` from configuration.
    """
    config = get_config()
    level = (level or config.log_level).upper()
    log_format = log_format or config.log_format

    root = logging.getLogger("objectschema")
    root.setLevel(level)
    for handler in list(root.handlers):
        if getattr(handler, "_objectschema", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter("%(message)s" if log_format == "json" else _TEXT_FORMAT)
    )
    handler._objectschema = True  # type: ignore[attr-defined]
    root.addHandler(handler)


class SchemaEventLogger:
    """
    Structured logger for schema events.

    Each entry carries the event type, the schema key and
    event-specific fields, serialized as a single JSON line.
    """

    def __init__(self, service_name: str = "objectschema") -> None:
        self.service_name = service_name
        self._logger = _events_logger

    def _emit(self, event: str, level: str = "info", **fields: Any) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": level,
            "event": event,
            "service": self.service_name,
        }
        entry.update(fields)

        log_line = json.dumps(entry, default=str)

        if level == "warn":
            self._logger.warning(log_line)
        else:
            self._logger.info(log_line)

    def log_schema_registered(self, schema_key: str, type_names: Sequence[str]) -> None:
        """Log that a schema was stored (or overwritten) in a registry."""
        self._emit(
            "schema.registered",
            schema_key=schema_key,
            type_names=list(type_names),
        )

    def log_type_changed(self, event: str, schema_key: str, type_name: str) -> None:
        """Log an add/remove/replace of a type within a schema."""
        self._emit(event, schema_key=schema_key, type_name=type_name)

    def log_validation_failed(
        self, type_name: Optional[str], violations: Sequence["Violation"]
    ) -> None:
        """Log a failed validate call with the violated paths."""
        self._emit(
            "validation.failed",
            level="warn",
            type_name=type_name,
            error_count=len(violations),
            paths=[v.path for v in violations],
        )


schema_events = SchemaEventLogger()
