"""Core landscape: registry, relationship graph, event log and health evaluator."""

from .event_log import EventLog
from .registry import EntityRegistry, EntityQuery
from .graph import RelationshipGraph, Direction
from .health import HealthEvaluator, HealthStatus, EditType, action_status
from .landscape import Landscape

__all__ = [
    "EventLog",
    "EntityRegistry",
    "EntityQuery",
    "RelationshipGraph",
    "Direction",
    "HealthEvaluator",
    "HealthStatus",
    "EditType",
    "action_status",
    "Landscape"
]
