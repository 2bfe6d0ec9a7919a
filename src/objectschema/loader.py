"""
Schema document loader with per-path caching.

Reads declarative schema documents (YAML, or JSON which is parsed the
same way) into ``ObjectSchema`` instances.  Centralises:

- Per-path caching via a class-level dict, separate per capability registry
- File existence checks
- Mapping-root validation
- Bulk loading and registration of a directory of schemas

Usage::

    from pathlib import Path
    from objectschema.loader import SchemaLoader
    from objectschema.registry import ObjectSchemaRegistry

    registry = ObjectSchemaRegistry()
    SchemaLoader().load_directory(Path("schemas/"), registry)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Optional

import yaml

from objectschema.capabilities import DEFAULT_CAPABILITIES, CapabilityRegistry
from objectschema.dependencies import extract_schema_dependencies
from objectschema.model import ObjectSchema

if TYPE_CHECKING:
    from objectschema.registry import ObjectSchemaRegistry

SCHEMA_SUFFIXES = (".yaml", ".yml", ".json")


class SchemaLoader:
    """Loads ``ObjectSchema`` documents from files or strings.

    Args:
        capabilities: Capability registry passed to every schema built;
            defaults to ``DEFAULT_CAPABILITIES``.
    """

    # Keyed by (resolved path, id of the capability registry); a schema is
    # only reused by loaders compiling against the same registry.
    _cache: ClassVar[dict[tuple[str, int], ObjectSchema]] = {}
    _logger: ClassVar[logging.Logger] = logging.getLogger(__name__)

    def __init__(self, capabilities: Optional[CapabilityRegistry] = None) -> None:
        self.capabilities = capabilities

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the schema cache (useful in tests)."""
        cls._cache.clear()

    def load(self, path: Path) -> ObjectSchema:
        """Load a schema from a YAML or JSON file.

        Raises:
            FileNotFoundError: If the file does not exist.
            TypeError: If the document root is not a mapping.
            yaml.YAMLError: If the file cannot be parsed.
            StructuralValidationError: If the document has the wrong shape.
            SchemaAuthoringError: If a type uses an illegal kind or constraint.
        """
        path = Path(path)
        key = str(path.resolve())
        capabilities = self.capabilities or DEFAULT_CAPABILITIES
        cache_key = (key, id(capabilities))
        cached = self._cache.get(cache_key)
        if cached is not None and cached.capabilities is capabilities:
            self._logger.debug("%s cache hit: %s", type(self).__name__, key)
            return cached

        if not path.exists():
            raise FileNotFoundError(f"Schema file not found: {path}")

        with open(path) as fh:
            raw = yaml.safe_load(fh)

        if not isinstance(raw, dict):
            raise TypeError(
                f"Expected mapping at root of {path}, "
                f"got {type(raw).__name__}"
            )

        schema = self._build(raw)
        self._cache[cache_key] = schema
        self._log_loaded(schema, key)
        return schema

    def load_from_string(self, text: str) -> ObjectSchema:
        """Load a schema from a YAML/JSON string (not cached).

        Raises:
            TypeError: If the document root is not a mapping.
        """
        raw = yaml.safe_load(text)
        if not isinstance(raw, dict):
            raise TypeError(
                f"Expected mapping, got {type(raw).__name__}"
            )
        return self._build(raw)

    def load_directory(
        self, path: Path, registry: "ObjectSchemaRegistry"
    ) -> list[ObjectSchema]:
        """Load every schema file in ``path`` (non-recursive) and register it.

        Files are processed in name order, so for two files declaring the
        same ``namespace/version`` the later name wins.
        """
        path = Path(path)
        if not path.is_dir():
            raise NotADirectoryError(f"Schema directory not found: {path}")
        schemas = []
        for file in sorted(path.iterdir()):
            if file.is_file() and file.suffix.lower() in SCHEMA_SUFFIXES:
                schemas.append(registry.register_schema(self.load(file)))
        self._logger.debug("Loaded %d schema(s) from %s", len(schemas), path)
        return schemas

    def _build(self, raw: dict[str, Any]) -> ObjectSchema:
        return ObjectSchema(raw, capabilities=self.capabilities)

    def _log_loaded(self, schema: ObjectSchema, key: str) -> None:
        self._logger.debug(
            "Loaded schema %s from %s: types=%d, external_refs=%d",
            schema.key,
            key,
            len(schema.types),
            len(extract_schema_dependencies(schema)),
        )
