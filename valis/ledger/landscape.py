"""
Landscape facade for VALIS.

Wires the entity registry, the relationship graph, the event log and the
health evaluator around a single clock, and adds the collaborator-level
commands: initialization, interaction recording, agenda and search.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, List, Optional, Tuple, Union

from rapidfuzz import fuzz

from ..errors import InitializationError
from ..models import Actor, ActorRole, Entity, EntityKind, Event, EventKind, RelState, RelStateKind, Relationship
from ..models.events import REVIEW_LABEL
from .event_log import EventLog, check_label
from .graph import Direction, RelationshipGraph
from .health import (
    DEFAULT_AVOIDANCE_LIMIT,
    DEFAULT_GRACE_PERIOD,
    DEFAULT_STALE_AFTER_DAYS,
    EditType,
    HealthEvaluator,
    HealthStatus,
)
from .registry import EntityQuery, EntityRegistry

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_THRESHOLD = 80


class Landscape:
    """
    A temporally-aware graph of entities with its event log.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], datetime]] = None,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        avoidance_limit: int = DEFAULT_AVOIDANCE_LIMIT,
        stale_after_days: int = DEFAULT_STALE_AFTER_DAYS,
        search_threshold: int = DEFAULT_SEARCH_THRESHOLD
    ):
        """
        Initialize an empty landscape.

        Args:
            clock: Returns the current time, used to timestamp events
                   (datetime.now by default); health checks never use it
            grace_period: How late an action can be before it is overdue
            avoidance_limit: Consecutive postponements that mark an entity as avoided
            stale_after_days: Days without review or update that mark an entity as stale
            search_threshold: Minimum fuzzy score (0-100) for search hits
        """
        self.clock = clock or datetime.now
        self.grace_period = grace_period
        self.avoidance_limit = avoidance_limit
        self.stale_after_days = stale_after_days
        self.search_threshold = search_threshold
        self._build()

    def _build(self) -> None:
        self.event_log = EventLog(lambda entity_id: self.registry.exists(entity_id))
        self.registry = EntityRegistry(self.event_log, self.clock)
        self.graph = RelationshipGraph(self.registry)
        self.evaluator = HealthEvaluator(
            self.registry,
            self.graph,
            grace_period=self.grace_period,
            avoidance_limit=self.avoidance_limit,
            stale_after_days=self.stale_after_days
        )

    @classmethod
    def from_config(cls, config, clock: Optional[Callable[[], datetime]] = None) -> "Landscape":
        """Build an empty landscape with thresholds taken from a ConfigManager."""
        return cls(
            clock=clock,
            grace_period=config.grace_period,
            avoidance_limit=config.avoidance_limit,
            stale_after_days=config.stale_after_days,
            search_threshold=config.search_threshold
        )

    def is_empty(self) -> bool:
        return len(self.registry) == 0

    @property
    def recorder_id(self) -> Optional[str]:
        return self.registry.recorder_id

    def init(self, owner_name: str, root_name: str) -> Tuple[Entity, Entity]:
        """
        Set up an empty landscape with its principal and its anchor.

        The owner is a person credited with recording every later event; the
        root is the Root-state entity sponsored by the owner.

        Returns:
            The (owner, root) pair
        """
        if not self.is_empty():
            raise InitializationError("The landscape already holds entities")
        owner = self.registry.create(owner_name, EntityKind.PERSON)
        self.registry.recorder_id = owner.id
        root = self.registry.create(root_name, EntityKind.ABSTRACT, sponsor=owner.id, rel_state=RelState.root())
        logger.info(f"Initialized landscape '{root.name}' owned by '{owner.name}'")
        return owner, root

    # Entity registry

    def create(
        self,
        name: str,
        kind: EntityKind,
        sponsor: Optional[str] = None,
        rel_state: Optional[RelState] = None,
        at: Optional[datetime] = None
    ) -> Entity:
        return self.registry.create(name, kind, sponsor=sponsor, rel_state=rel_state, at=at)

    def set_sponsor(self, entity_id: str, sponsor_id: Optional[str], at: Optional[datetime] = None) -> Entity:
        return self.registry.set_sponsor(entity_id, sponsor_id, at=at)

    def transition_state(
        self,
        entity_id: str,
        new_state: RelStateKind,
        since: Optional[date] = None,
        until: Optional[date] = None,
        at: Optional[datetime] = None
    ) -> Entity:
        return self.registry.transition_state(entity_id, new_state, since=since, until=until, at=at)

    def schedule_action(
        self,
        entity_id: str,
        note: Optional[str] = None,
        date: Optional[date] = None,
        at: Optional[datetime] = None
    ) -> Entity:
        return self.registry.schedule_action(entity_id, note=note, date=date, at=at)

    def lookup(self, entity_id: str) -> Optional[Entity]:
        return self.registry.lookup(entity_id)

    def find_by_name(self, name: str) -> EntityQuery:
        return self.registry.find_by_name(name)

    def entities(self) -> List[Entity]:
        return list(self.registry.all())

    # Relationship graph

    def connect(
        self,
        source: str,
        target: str,
        label: str,
        bidirectional: bool = False,
        at: Optional[datetime] = None
    ) -> Relationship:
        return self.graph.connect(source, target, label, bidirectional=bidirectional, at=at)

    def disconnect(self, source: str, target: str, label: str, at: Optional[datetime] = None) -> Relationship:
        return self.graph.disconnect(source, target, label, at=at)

    def neighbors(self, entity_id: str, direction: Direction = Direction.BOTH) -> List[Tuple[Entity, str]]:
        return self.graph.neighbors(entity_id, direction)

    # Event log

    def record(
        self,
        label: str,
        actors: List[Actor],
        payload: str = "",
        kind: EventKind = EventKind.LOG,
        at: Optional[datetime] = None
    ) -> Event:
        """
        Record an interaction involving one or more entities.

        Args:
            label: What happened (e.g. 'meeting', 'call')
            actors: Participants with their roles
            payload: Free-form notes
            kind: Log or Action
            at: When it happened; may be in the past

        Returns:
            The stored event
        """
        label = check_label(label)
        event = Event(timestamp=at or self.clock(), kind=kind, label=label, actors=actors, payload=payload)
        return self.event_log.append(event)

    def review(self, entity_id: str, note: str = "", at: Optional[datetime] = None) -> Event:
        """Record that an entity has been reviewed, resetting its staleness."""
        self.registry.get(entity_id)
        recorder = self.registry.recorder_id or entity_id
        return self.record(
            REVIEW_LABEL,
            [
                Actor(entity_id=recorder, role=ActorRole.RECORDED_BY),
                Actor(entity_id=entity_id, role=ActorRole.SUBJECT)
            ],
            payload=note,
            at=at
        )

    def query(self, **filters) -> List[Event]:
        """Query the event log; see EventLog.query for the filters."""
        return self.event_log.query(**filters)

    # Health

    def health(self, now: Union[date, datetime]) -> dict:
        """Mapping from entity id to HealthStatus as of `now`."""
        return self.evaluator.evaluate(now)

    def delays(self, now: Union[date, datetime]) -> List[Event]:
        return self.evaluator.synthesize_delays(now)

    def materialize_delays(self, now: Union[date, datetime]) -> List[Event]:
        """Append the synthesized Delay events to the log and return them."""
        stored = [self.event_log.append(event) for event in self.evaluator.synthesize_delays(now)]
        if stored:
            logger.info(f"Materialized {len(stored)} delay events")
        return stored

    def propose_edits(self, now: Union[date, datetime]) -> List[Tuple[EditType, Entity]]:
        return self.evaluator.propose_edits(now)

    # Agenda and search

    def agenda(self, since: date, until: date) -> List[Entity]:
        """Entities whose next action falls in [since, until), soonest first."""
        hits = [e for e in self.registry.all() if e.action_within_range(since, until)]
        return sorted(hits, key=lambda e: (e.next_action_date, e.name))

    def agenda_until(self, until: date) -> List[Entity]:
        """Entities whose next action is due before `until`, soonest first."""
        hits = [e for e in self.registry.all() if e.action_within(until)]
        return sorted(hits, key=lambda e: (e.next_action_date, e.name))

    def search(self, pattern: str) -> List[Entity]:
        """
        Fuzzy search over names, tags and handle values.

        Returns:
            Matching entities, best match first
        """
        pattern = pattern.strip().lower()
        if not pattern:
            return []
        scored = []
        for entity in self.registry.all():
            text = " ".join([entity.name] + entity.tags + list(entity.handles.values())).lower()
            score = fuzz.partial_ratio(pattern, text)
            if score >= self.search_threshold:
                scored.append((score, entity))
        scored.sort(key=lambda pair: (-pair[0], pair[1].name))
        return [entity for _, entity in scored]

    # Persistence support

    def restore(
        self,
        entities: Iterable[Entity],
        relationships: Iterable[Relationship],
        events: Iterable[Event],
        recorder_id: Optional[str] = None
    ) -> None:
        """
        Rebuild an empty landscape from persisted records.

        Every invariant is re-checked while loading.
        """
        if not self.is_empty():
            raise InitializationError("Cannot restore into a non-empty landscape")
        try:
            self.registry.restore(entities)
            self.graph.restore(relationships)
            self.event_log.restore(events)
            if recorder_id is not None:
                self.registry.recorder_id = recorder_id
        except Exception:
            self._build()
            raise
        logger.info(
            f"Restored {len(self.registry)} entities, {len(self.graph)} relationships "
            f"and {len(self.event_log)} events"
        )
