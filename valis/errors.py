"""
Error types for VALIS.

Every error is a local validation failure raised before any mutation is
applied, so callers can report it verbatim and the landscape is left unchanged.
"""

from typing import Optional


class LandscapeError(Exception):
    """Base class for all landscape validation errors."""


class UnknownEntity(LandscapeError):
    """Raised when an entity id does not exist in the registry."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Unknown entity: {entity_id}")


class InvalidSponsor(LandscapeError):
    """Raised when a sponsor does not exist or cannot sponsor the entity."""

    def __init__(self, sponsor_id: str, reason: Optional[str] = None):
        self.sponsor_id = sponsor_id
        message = f"Invalid sponsor: {sponsor_id}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class CycleDetected(InvalidSponsor):
    """Raised when a sponsorship would make an entity its own ancestor."""

    def __init__(self, entity_id: str, sponsor_id: str):
        self.entity_id = entity_id
        super().__init__(sponsor_id, f"{entity_id} is already an ancestor of {sponsor_id}")


class DuplicateRoot(LandscapeError):
    """Raised when a second entity tries to take the Root state."""

    def __init__(self, current_root: str):
        self.current_root = current_root
        super().__init__(f"Root state is already held by {current_root}")


class InvalidTemporalRange(LandscapeError):
    """Raised when a temporal range ends before it starts."""


class InvalidEntityName(LandscapeError):
    """Raised when an entity name is empty."""


class InvalidLabel(LandscapeError):
    """Raised when a relationship or event label is empty."""


class HandleTaken(LandscapeError):
    """Raised when a handle already identifies another entity."""

    def __init__(self, kind: str, value: str, owner: str):
        self.kind = kind
        self.value = value
        self.owner = owner
        super().__init__(f"Handle {kind}:{value} is already used by {owner}")


class SelfRelationship(LandscapeError):
    """Raised when a relationship would connect an entity to itself."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Entity {entity_id} cannot be related to itself")


class RelationshipNotFound(LandscapeError):
    """Raised when disconnecting an edge that does not exist."""

    def __init__(self, source: str, target: str, label: str):
        self.source = source
        self.target = target
        self.label = label
        super().__init__(f"No relationship {source} -[{label}]-> {target}")


class UnknownActor(LandscapeError):
    """Raised when an event references an entity that does not exist."""

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"Event actor does not exist: {entity_id}")


class InitializationError(LandscapeError):
    """Raised when initializing a landscape that already holds entities."""
