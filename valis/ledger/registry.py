"""
Entity registry for VALIS.

The registry owns every entity of the landscape. It enforces identity and
handle uniqueness, keeps the sponsorship relation a forest (at most one
sponsor per entity, no cycles) and lets at most one entity hold the Root
state. Every state-affecting mutation appends an event to the event log.
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from ..errors import (
    CycleDetected,
    DuplicateRoot,
    HandleTaken,
    InvalidEntityName,
    InvalidSponsor,
    UnknownEntity,
)
from ..models import Actor, ActorRole, Entity, EntityKind, Event, RelState, RelStateKind
from ..models.events import POSTPONED_LABEL, RESOLVED_LABEL, SCHEDULED_LABEL
from .event_log import EventLog

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class EntityQuery:
    """
    A lazy, finite and restartable sequence of entities.

    Each iteration scans the registry afresh and yields copies of the
    matching entities.
    """

    def __init__(self, source: Callable[[], Iterable[Entity]], predicate: Callable[[Entity], bool]):
        self._source = source
        self._predicate = predicate

    def __iter__(self) -> Iterator[Entity]:
        for entity in self._source():
            if self._predicate(entity):
                yield entity.model_copy(deep=True)

    def first(self) -> Optional[Entity]:
        return next(iter(self), None)


class EntityRegistry:
    """
    Owns all entities and enforces the landscape invariants.
    """

    def __init__(self, event_log: EventLog, clock: Clock):
        """
        Initialize an empty registry.

        Args:
            event_log: Log receiving an event for every mutation
            clock: Returns the current time; used only to timestamp events
        """
        self.event_log = event_log
        self.clock = clock
        self._entities: Dict[str, Entity] = {}
        # sponsor id -> ids of the sponsored entities
        self._children: Dict[str, Set[str]] = {}
        # (handle kind, handle value) -> entity id
        self._handles: Dict[Tuple[str, str], str] = {}
        self._root_id: Optional[str] = None
        self._recorder_id: Optional[str] = None

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    # Queries

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def lookup(self, entity_id: str) -> Optional[Entity]:
        """
        Retrieve an entity by id.

        Returns:
            A copy of the entity if found, None otherwise
        """
        entity = self._entities.get(entity_id)
        return entity.model_copy(deep=True) if entity else None

    def get(self, entity_id: str) -> Entity:
        """Retrieve an entity by id, raising UnknownEntity when missing."""
        entity = self.lookup(entity_id)
        if entity is None:
            raise UnknownEntity(entity_id)
        return entity

    def all(self) -> EntityQuery:
        """All entities, in creation order."""
        return EntityQuery(self._snapshot, lambda entity: True)

    def find_by_name(self, name: str) -> EntityQuery:
        """
        Entities whose name matches, ignoring case and surrounding spaces.

        Names are not unique, so this returns a lazy sequence.
        """
        wanted = name.strip().casefold()
        return EntityQuery(self._snapshot, lambda entity: entity.name.strip().casefold() == wanted)

    def get_by_handle(self, kind: str, value: str) -> Optional[Entity]:
        entity_id = self._handles.get(self._handle_key(kind, value))
        return self.lookup(entity_id) if entity_id else None

    def sponsored_by(self, sponsor_id: str) -> List[Entity]:
        """Entities directly sponsored by an entity, sorted by name."""
        self._require(sponsor_id)
        children = [self._entities[child_id] for child_id in self._children.get(sponsor_id, ())]
        return [child.model_copy(deep=True) for child in sorted(children, key=lambda e: (e.name, e.id))]

    def sponsor_chain(self, entity_id: str) -> List[str]:
        """Ids of the sponsors of an entity, nearest first."""
        chain = []
        current = self._require(entity_id).sponsor
        while current is not None and len(chain) < len(self._entities):
            chain.append(current)
            current = self._entities[current].sponsor
        return chain

    def root(self) -> Optional[Entity]:
        """The entity holding the Root state, if any."""
        return self.lookup(self._root_id) if self._root_id else None

    @property
    def recorder_id(self) -> Optional[str]:
        """Entity credited with RecordedBy on the events the registry emits."""
        return self._recorder_id

    @recorder_id.setter
    def recorder_id(self, entity_id: Optional[str]) -> None:
        if entity_id is not None:
            self._require(entity_id)
        self._recorder_id = entity_id

    # Mutations

    def create(
        self,
        name: str,
        kind: EntityKind,
        sponsor: Optional[str] = None,
        rel_state: Optional[RelState] = None,
        at: Optional[datetime] = None
    ) -> Entity:
        """
        Create a new entity.

        Args:
            name: Human-readable label, must not be empty
            kind: The kind of entity
            sponsor: Optional id of the responsible entity
            rel_state: Initial state, Active since the creation day by default
            at: When the creation happened, the clock's time by default

        Returns:
            A copy of the new entity
        """
        at = at or self.clock()
        name = self._check_name(name)
        rel_state = rel_state or RelState.active(at.date())
        entity = Entity(
            name=name,
            kind=kind,
            sponsor=sponsor,
            rel_state=rel_state,
            created_on=at.date(),
            updated_on=at.date()
        )
        if sponsor is not None:
            self._check_sponsor(entity.id, sponsor)
        if rel_state.is_root:
            self._check_root(entity.id)

        self._insert(entity)
        self._emit_log(
            "created", entity.id, at,
            f"{kind.value} '{name}' created as {rel_state}"
            + (f", sponsored by {sponsor}" if sponsor else "")
        )
        logger.info(f"Created {kind.value} entity '{name}' ({entity.id})")
        return entity.model_copy(deep=True)

    def set_sponsor(self, entity_id: str, sponsor_id: Optional[str], at: Optional[datetime] = None) -> Entity:
        """
        Attach an entity to a sponsor, or detach it with sponsor_id=None.
        """
        at = at or self.clock()
        entity = self._require(entity_id)
        if sponsor_id is not None:
            self._check_sponsor(entity_id, sponsor_id)
        old_sponsor = entity.sponsor
        if old_sponsor == sponsor_id:
            return entity.model_copy(deep=True)

        updated = self._replace(entity, {"sponsor": sponsor_id}, at)
        self._emit_log("sponsor_changed", entity_id, at, f"sponsor {old_sponsor or '-'} -> {sponsor_id or '-'}")
        return updated

    def transition_state(
        self,
        entity_id: str,
        new_state: RelStateKind,
        since: Optional[date] = None,
        until: Optional[date] = None,
        at: Optional[datetime] = None
    ) -> Entity:
        """
        Move an entity to a new lifecycle state.

        Args:
            entity_id: The entity to update
            new_state: Target lifecycle tag
            since: Start of the state, the event day by default (not for Root)
            until: Optional end of the state (not for Root)
            at: When the transition was recorded

        Returns:
            A copy of the updated entity
        """
        at = at or self.clock()
        entity = self._require(entity_id)
        if new_state != RelStateKind.ROOT and since is None:
            since = at.date()
        state = RelState.build(new_state, since, until)
        if state.is_root:
            self._check_root(entity_id)

        old_state = entity.rel_state
        updated = self._replace(entity, {"rel_state": state}, at)
        if state.is_root:
            self._root_id = entity_id
        elif self._root_id == entity_id:
            self._root_id = None
        self._emit_log("state_changed", entity_id, at, f"{old_state} -> {state}")
        return updated

    def schedule_action(
        self,
        entity_id: str,
        note: Optional[str] = None,
        date: Optional[date] = None,
        at: Optional[datetime] = None
    ) -> Entity:
        """
        Set the next action of an entity; with neither note nor date, clear it.
        """
        at = at or self.clock()
        entity = self._require(entity_id)
        if note is None and date is None and not entity.has_next_action:
            return entity.model_copy(deep=True)
        old_date = entity.next_action_date
        updated = self._replace(entity, {"next_action_note": note, "next_action_date": date}, at)

        actors = self._actors(entity_id)
        if note is None and date is None:
            self.event_log.append(Event.log(RESOLVED_LABEL, actors, at, entity.next_action_note or ""))
            return updated

        if old_date is not None and date is not None and date > old_date:
            label = POSTPONED_LABEL
        else:
            label = SCHEDULED_LABEL
        payload = f"{date or 'no date'}: {note or ''}".rstrip(": ")
        self.event_log.append(Event.action(label, actors, at, payload))
        return updated

    def rename(self, entity_id: str, name: str, at: Optional[datetime] = None) -> Entity:
        at = at or self.clock()
        entity = self._require(entity_id)
        name = self._check_name(name)
        old_name = entity.name
        updated = self._replace(entity, {"name": name}, at)
        self._emit_log("renamed", entity_id, at, f"'{old_name}' -> '{name}'")
        return updated

    def describe(self, entity_id: str, description: str, at: Optional[datetime] = None) -> Entity:
        at = at or self.clock()
        entity = self._require(entity_id)
        updated = self._replace(entity, {"description": description}, at)
        self._emit_log("described", entity_id, at, description)
        return updated

    def tag(self, entity_id: str, label: str, at: Optional[datetime] = None) -> Entity:
        at = at or self.clock()
        entity = self._require(entity_id)
        label = label.strip()
        if not label or label in entity.tags:
            return entity.model_copy(deep=True)
        updated = self._replace(entity, {"tags": sorted(entity.tags + [label])}, at)
        self._emit_log("tagged", entity_id, at, label)
        return updated

    def untag(self, entity_id: str, label: str, at: Optional[datetime] = None) -> Entity:
        at = at or self.clock()
        entity = self._require(entity_id)
        if label not in entity.tags:
            return entity.model_copy(deep=True)
        updated = self._replace(entity, {"tags": [t for t in entity.tags if t != label]}, at)
        self._emit_log("untagged", entity_id, at, label)
        return updated

    def set_handle(self, entity_id: str, kind: str, value: str, at: Optional[datetime] = None) -> Entity:
        """
        Set an external identifier (e.g. an email address) on an entity.

        Raises HandleTaken if the same handle identifies another entity.
        """
        at = at or self.clock()
        entity = self._require(entity_id)
        key = self._handle_key(kind, value)
        owner = self._handles.get(key)
        if owner is not None and owner != entity_id:
            raise HandleTaken(kind, value, owner)

        handles = dict(entity.handles)
        old_value = handles.get(kind)
        if old_value == value:
            return entity.model_copy(deep=True)
        handles[kind] = value
        updated = self._replace(entity, {"handles": handles}, at)
        if old_value is not None:
            self._handles.pop(self._handle_key(kind, old_value), None)
        self._handles[key] = entity_id
        self._emit_log("handle_set", entity_id, at, f"{kind}:{value}")
        return updated

    def remove_handle(self, entity_id: str, kind: str, at: Optional[datetime] = None) -> Entity:
        at = at or self.clock()
        entity = self._require(entity_id)
        if kind not in entity.handles:
            return entity.model_copy(deep=True)
        handles = dict(entity.handles)
        value = handles.pop(kind)
        updated = self._replace(entity, {"handles": handles}, at)
        self._handles.pop(self._handle_key(kind, value), None)
        self._emit_log("handle_removed", entity_id, at, f"{kind}:{value}")
        return updated

    def restore(self, entities: Iterable[Entity]) -> int:
        """
        Load persisted entities without emitting events.

        Every invariant is re-checked; on failure the registry is left empty.
        """
        loaded = list(entities)
        try:
            for entity in loaded:
                if entity.id in self._entities:
                    raise ValueError(f"Duplicate entity id: {entity.id}")
                self._check_name(entity.name)
                for kind, value in entity.handles.items():
                    owner = self._handles.get(self._handle_key(kind, value))
                    if owner is not None:
                        raise HandleTaken(kind, value, owner)
                if entity.rel_state.is_root:
                    self._check_root(entity.id)
                self._insert(entity.model_copy(deep=True), index_sponsor=False)
            for entity in loaded:
                if entity.sponsor is not None:
                    self._check_sponsor(entity.id, entity.sponsor)
                    self._children.setdefault(entity.sponsor, set()).add(entity.id)
        except Exception:
            self._clear()
            raise
        return len(loaded)

    # Internals

    def _snapshot(self) -> List[Entity]:
        return list(self._entities.values())

    def _require(self, entity_id: str) -> Entity:
        entity = self._entities.get(entity_id)
        if entity is None:
            raise UnknownEntity(entity_id)
        return entity

    @staticmethod
    def _check_name(name: str) -> str:
        if name is None or not name.strip():
            raise InvalidEntityName("Entity name must not be empty")
        return name.strip()

    @staticmethod
    def _handle_key(kind: str, value: str) -> Tuple[str, str]:
        return (kind.strip().lower(), value.strip().lower())

    def _check_sponsor(self, entity_id: str, sponsor_id: str) -> None:
        """
        Check that sponsor_id exists and is not entity_id or one of its descendants.

        Walks the sponsor chain upward from the proposed sponsor; the walk is
        bounded by the registry size.
        """
        if sponsor_id not in self._entities:
            raise InvalidSponsor(sponsor_id, "unknown entity")
        current: Optional[str] = sponsor_id
        steps = 0
        while current is not None:
            if current == entity_id:
                raise CycleDetected(entity_id, sponsor_id)
            steps += 1
            if steps > len(self._entities):
                raise CycleDetected(entity_id, sponsor_id)
            parent = self._entities.get(current)
            current = parent.sponsor if parent else None

    def _check_root(self, entity_id: str) -> None:
        if self._root_id is not None and self._root_id != entity_id:
            raise DuplicateRoot(self._root_id)

    def _insert(self, entity: Entity, index_sponsor: bool = True) -> None:
        self._entities[entity.id] = entity
        if index_sponsor and entity.sponsor is not None:
            self._children.setdefault(entity.sponsor, set()).add(entity.id)
        for kind, value in entity.handles.items():
            self._handles[self._handle_key(kind, value)] = entity.id
        if entity.rel_state.is_root:
            self._root_id = entity.id

    def _replace(self, entity: Entity, changes: dict, at: datetime) -> Entity:
        changes = dict(changes, updated_on=max(entity.updated_on, at.date()))
        updated = entity.model_copy(update=changes, deep=True)
        if updated.sponsor != entity.sponsor:
            if entity.sponsor is not None:
                self._children.get(entity.sponsor, set()).discard(entity.id)
            if updated.sponsor is not None:
                self._children.setdefault(updated.sponsor, set()).add(entity.id)
        self._entities[entity.id] = updated
        return updated.model_copy(deep=True)

    def _clear(self) -> None:
        self._entities.clear()
        self._children.clear()
        self._handles.clear()
        self._root_id = None
        self._recorder_id = None

    def _actors(self, subject_id: str) -> List[Actor]:
        recorder = self._recorder_id or subject_id
        return [
            Actor(entity_id=recorder, role=ActorRole.RECORDED_BY),
            Actor(entity_id=subject_id, role=ActorRole.SUBJECT)
        ]

    def _emit_log(self, label: str, subject_id: str, at: datetime, payload: str) -> Event:
        return self.event_log.append(Event.log(label, self._actors(subject_id), at, payload))
