"""
VALIS: a personal landscape of entities, relationships and events.

Keeps track of people, objects and projects, who is responsible for them,
how they relate, what happened and what should happen next.
"""

__version__ = "0.1.0"
__author__ = "VALIS Project"

# Import main components
from .errors import LandscapeError
from .models import Entity, EntityKind, Event, EventKind, Actor, ActorRole, RelState, RelStateKind, Relationship
from .ledger import Landscape, HealthStatus, Direction
from .database import DatabaseManager

__all__ = [
    "LandscapeError",
    "Entity",
    "EntityKind",
    "Event",
    "EventKind",
    "Actor",
    "ActorRole",
    "RelState",
    "RelStateKind",
    "Relationship",
    "Landscape",
    "HealthStatus",
    "Direction",
    "DatabaseManager"
]
