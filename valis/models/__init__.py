"""Data models for VALIS."""

from .temporal import TemporalRange, RelState, RelStateKind
from .entities import Entity, EntityKind, Relationship, new_entity_id
from .events import Event, EventKind, Actor, ActorRole

__all__ = [
    "TemporalRange",
    "RelState",
    "RelStateKind",
    "Entity",
    "EntityKind",
    "Relationship",
    "new_entity_id",
    "Event",
    "EventKind",
    "Actor",
    "ActorRole"
]
