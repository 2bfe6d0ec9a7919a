"""
Identity metadata attached to every ObjectSchema.

The metadata is composed into the schema rather than inherited: an
``IdentityFactory`` is called once at construction and the result is
stored on ``ObjectSchema.identity``.  Callers that mint ids elsewhere
(a database sequence, a remote registry) pass their own factory.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

IdentityFactory = Callable[[str], "IdentityMetadata"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IdentityMetadata(BaseModel):
    """Unique id and timestamps of an entity."""

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    entity_type: str = Field(..., min_length=1, alias="entityType")
    created_on: datetime = Field(..., alias="createdOn")
    updated_on: datetime = Field(..., alias="updatedOn")

    def touched(self) -> "IdentityMetadata":
        """Return a copy with ``updated_on`` set to now."""
        return self.model_copy(update={"updated_on": _utcnow()})


def default_identity_factory(entity_type: str) -> IdentityMetadata:
    now = _utcnow()
    return IdentityMetadata(
        id=uuid.uuid4().hex,
        entity_type=entity_type,
        created_on=now,
        updated_on=now,
    )


def rehydrate_identity(
    entity_type: str,
    data: Mapping[str, Any],
    factory: Optional[IdentityFactory] = None,
) -> IdentityMetadata:
    """Rebuild identity from ``id``/``createdOn``/``updatedOn`` if present.

    Missing timestamps default to now; a missing id means the entity is
    new and ``factory`` mints a fresh identity.
    """
    if not data.get("id"):
        return (factory or default_identity_factory)(entity_type)
    now = _utcnow()
    created_on = data.get("createdOn") or now
    return IdentityMetadata(
        id=data["id"],
        entity_type=entity_type,
        created_on=created_on,
        updated_on=data.get("updatedOn") or created_on,
    )
