"""
Relationship graph for VALIS.

Directed, labeled edges between entities. Unlike sponsorship the graph has
no cycle restriction: it is an arbitrary directed multigraph in which distinct
labels between the same pair of entities are distinct edges. A mutual
relationship is a single edge flagged as bidirectional.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from ..errors import RelationshipNotFound, SelfRelationship, UnknownEntity
from ..models import Actor, ActorRole, Entity, Event, Relationship
from .event_log import check_label
from .registry import EntityRegistry

logger = logging.getLogger(__name__)

EdgeKey = Tuple[str, str, str]


class Direction(str, Enum):
    """Which edges to follow from an entity."""

    OUTGOING = "outgoing"
    INCOMING = "incoming"
    BOTH = "both"


class RelationshipGraph:
    """
    Labeled edges between registered entities.
    """

    def __init__(self, registry: EntityRegistry):
        """
        Initialize an empty graph.

        Args:
            registry: Registry holding the entities the edges connect
        """
        self.registry = registry
        self._edges: Dict[EdgeKey, Relationship] = {}

    def __len__(self) -> int:
        return len(self._edges)

    def edges(self) -> List[Relationship]:
        """All edges, in insertion order."""
        return list(self._edges.values())

    def get(self, source: str, target: str, label: str) -> Optional[Relationship]:
        """
        Find an edge; a bidirectional edge matches either orientation.
        """
        edge = self._edges.get((source, target, label))
        if edge is not None:
            return edge
        reverse = self._edges.get((target, source, label))
        if reverse is not None and reverse.bidirectional:
            return reverse
        return None

    def connect(
        self,
        source: str,
        target: str,
        label: str,
        bidirectional: bool = False,
        at: Optional[datetime] = None
    ) -> Relationship:
        """
        Connect two entities with a labeled edge.

        Connecting an identical (source, target, label) triple again is a
        no-op returning the existing edge. A bidirectional edge is also
        returned when connecting its endpoints the other way round.

        Returns:
            The new or existing relationship
        """
        label = check_label(label)
        self._check_endpoints(source, target)
        existing = self.get(source, target, label)
        if existing is not None:
            logger.debug(f"Relationship {source} -[{label}]-> {target} already exists")
            return existing

        edge = Relationship(source=source, target=target, label=label, bidirectional=bidirectional)
        self._edges[edge.key] = edge
        self._emit("connected", edge, at)
        return edge

    def disconnect(self, source: str, target: str, label: str, at: Optional[datetime] = None) -> Relationship:
        """
        Remove an edge; past events referencing the endpoints are untouched.

        Raises RelationshipNotFound when no matching edge exists.
        """
        edge = self.get(source, target, label.strip())
        if edge is None:
            raise RelationshipNotFound(source, target, label)
        del self._edges[edge.key]
        self._emit("disconnected", edge, at)
        return edge

    def neighbors(self, entity_id: str, direction: Direction = Direction.BOTH) -> List[Tuple[Entity, str]]:
        """
        Entities connected to an entity, with the connecting label.

        Bidirectional edges are followed from either end whatever the direction.

        Args:
            entity_id: The entity to start from
            direction: Follow outgoing edges, incoming edges, or both

        Returns:
            List of (entity, label) pairs in edge insertion order
        """
        if not self.registry.exists(entity_id):
            raise UnknownEntity(entity_id)
        direction = Direction(direction)

        results = []
        for edge in self._edges.values():
            if not edge.touches(entity_id):
                continue
            outgoing = edge.source == entity_id
            other = edge.target if outgoing else edge.source
            if edge.bidirectional or direction == Direction.BOTH:
                follow = True
            elif direction == Direction.OUTGOING:
                follow = outgoing
            else:
                follow = not outgoing
            if follow:
                results.append((self.registry.get(other), edge.label))
        return results

    def relationships_of(self, entity_id: str) -> List[Relationship]:
        """Every edge touching an entity."""
        return [edge for edge in self._edges.values() if edge.touches(entity_id)]

    def restore(self, edges: Iterable[Relationship]) -> int:
        """Load persisted edges without emitting events."""
        count = 0
        for edge in edges:
            self._check_endpoints(edge.source, edge.target)
            if self.get(edge.source, edge.target, edge.label) is not None:
                raise ValueError(f"Duplicate relationship: {edge.key}")
            self._edges[edge.key] = edge
            count += 1
        return count

    def _check_endpoints(self, source: str, target: str) -> None:
        if source == target:
            raise SelfRelationship(source)
        for entity_id in (source, target):
            if not self.registry.exists(entity_id):
                raise UnknownEntity(entity_id)

    def _emit(self, label: str, edge: Relationship, at: Optional[datetime]) -> Event:
        at = at or self.registry.clock()
        recorder = self.registry.recorder_id or edge.source
        arrow = "<->" if edge.bidirectional else "->"
        event = Event.log(
            label,
            [
                Actor(entity_id=recorder, role=ActorRole.RECORDED_BY),
                Actor(entity_id=edge.source, role=ActorRole.SUBJECT),
                Actor(entity_id=edge.target, role=ActorRole.BACKGROUND)
            ],
            at,
            f"{edge.source} -[{edge.label}]{arrow} {edge.target}"
        )
        return self.registry.event_log.append(event)
