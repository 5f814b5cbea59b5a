"""
Event log for VALIS.

Append-only sequence of events. Insertion order defines the canonical
timeline: ids are assigned on append, strictly increasing, and no entry is
ever rewritten, reordered or removed.
"""

import logging
from datetime import date, datetime
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from ..errors import InvalidLabel, UnknownActor
from ..models import ActorRole, Event, EventKind

logger = logging.getLogger(__name__)

TimeBound = Union[date, datetime]


def _as_datetime(bound: TimeBound, end: bool = False) -> datetime:
    # A plain date bound covers the whole day
    if isinstance(bound, datetime):
        return bound
    if end:
        return datetime.combine(bound, datetime.max.time())
    return datetime.combine(bound, datetime.min.time())


def check_label(label: str) -> str:
    """Strip a relationship or event label, raising InvalidLabel when empty."""
    if label is None or not label.strip():
        raise InvalidLabel("Label must not be empty")
    return label.strip()


class EventLog:
    """
    Append-only log of events, indexed by participating entity.
    """

    def __init__(self, entity_exists: Callable[[str], bool]):
        """
        Initialize an empty event log.

        Args:
            entity_exists: Predicate telling whether an entity id is known
        """
        self._entity_exists = entity_exists
        self._entries: List[Event] = []
        self._last_id = 0
        # entity id -> positions in _entries, ascending
        self._by_entity: Dict[str, List[int]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._entries))

    @property
    def last_id(self) -> int:
        """Id of the most recent event, 0 when the log is empty."""
        return self._last_id

    def validate_actors(self, event: Event) -> None:
        """Raise UnknownActor for the first actor that does not exist."""
        for actor in event.actors:
            if not self._entity_exists(actor.entity_id):
                raise UnknownActor(actor.entity_id)

    def append(self, event: Event) -> Event:
        """
        Append an event to the log.

        This is the only write operation. Any id already set on the event is
        replaced by the next monotonic id.

        Args:
            event: The event to record

        Returns:
            The stored event, carrying its assigned id
        """
        self.validate_actors(event)
        stored = event.model_copy(update={"id": self._last_id + 1})
        self._store(stored)
        logger.debug(f"Appended event {stored.id} ({stored.kind.value}:{stored.label})")
        return stored

    def restore(self, events: Iterable[Event]) -> int:
        """
        Reload previously persisted events, keeping their ids.

        Args:
            events: Events in id order, as returned by a previous session

        Returns:
            Number of events restored
        """
        count = 0
        for event in events:
            if event.id is None or event.id <= self._last_id:
                raise ValueError(
                    f"Events must be restored in strictly increasing id order "
                    f"(got {event.id} after {self._last_id})"
                )
            self.validate_actors(event)
            self._store(event)
            count += 1
        return count

    def _store(self, event: Event) -> None:
        position = len(self._entries)
        self._entries.append(event)
        self._last_id = event.id
        for entity_id in event.entity_ids():
            self._by_entity.setdefault(entity_id, []).append(position)

    def get(self, event_id: int) -> Optional[Event]:
        """Retrieve an event by id."""
        # ids are not necessarily dense after a restore
        for event in self._entries:
            if event.id == event_id:
                return event
        return None

    def since_id(self, event_id: int) -> List[Event]:
        """
        Events appended after a given id, in id order.

        Used by persistence to write only new entries.
        """
        return [event for event in self._entries if event.id > event_id]

    def query(
        self,
        entity_id: Optional[str] = None,
        role: Optional[ActorRole] = None,
        kind: Optional[EventKind] = None,
        label: Optional[str] = None,
        since: Optional[TimeBound] = None,
        until: Optional[TimeBound] = None
    ) -> List[Event]:
        """
        Retrieve events matching every given filter, in ascending id order.

        Args:
            entity_id: Only events involving this entity
            role: Only events with an actor in this role (for entity_id when given)
            kind: Only events of this kind
            label: Only events with this label
            since: Only events with timestamp >= since
            until: Only events with timestamp <= until (a date covers the whole day)

        Returns:
            List of matching events
        """
        if entity_id is not None:
            candidates = [self._entries[i] for i in self._by_entity.get(entity_id, [])]
        else:
            candidates = self._entries

        lower = _as_datetime(since) if since is not None else None
        upper = _as_datetime(until, end=True) if until is not None else None

        results = []
        for event in candidates:
            if entity_id is not None and not event.involves(entity_id, role):
                continue
            if entity_id is None and role is not None and not event.has_role(role):
                continue
            if kind is not None and event.kind != kind:
                continue
            if label is not None and event.label != label:
                continue
            if lower is not None and event.timestamp < lower:
                continue
            if upper is not None and event.timestamp > upper:
                continue
            results.append(event)
        return results

    def latest(self, entity_id: str, kind: Optional[EventKind] = None, label: Optional[str] = None) -> Optional[Event]:
        """Most recently appended event for an entity matching the filters."""
        matches = self.query(entity_id=entity_id, kind=kind, label=label)
        return matches[-1] if matches else None
