"""
Health evaluator for VALIS.

Derives the status of every entity's next action from the entity state, the
event log and an explicit reference date. Nothing here reads a wall clock or
mutates the landscape: identical inputs always give identical outputs.
"""

from datetime import date, datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from ..models import Actor, ActorRole, Entity, Event, EventKind
from ..models.events import DELAY_LABEL, POSTPONED_LABEL, REVIEW_LABEL, SCHEDULED_LABEL
from .event_log import EventLog
from .graph import RelationshipGraph
from .registry import EntityRegistry

DEFAULT_GRACE_PERIOD = timedelta(days=7)
DEFAULT_AVOIDANCE_LIMIT = 5
DEFAULT_STALE_AFTER_DAYS = 180
INCOMPLETE_THRESHOLD = 9


class HealthStatus(str, Enum):
    """How overdue an entity's next action is."""

    ON_TRACK = "on_track"
    DELAYED = "delayed"
    OVERDUE = "overdue"


class EditType(str, Enum):
    """Why an entity deserves a review."""

    AVOIDED = "avoided"
    STALE = "stale"
    INCOMPLETE = "incomplete"


def _as_date(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def action_status(entity: Entity, now: date, grace_period: timedelta = DEFAULT_GRACE_PERIOD) -> Optional[HealthStatus]:
    """
    Classify the next action of a single entity.

    Returns:
        The status, or None when the entity is exempt (no date, Root,
        Former or Disabled)
    """
    if entity.next_action_date is None or not entity.rel_state.is_current:
        return None
    due = entity.next_action_date
    if due >= now:
        return HealthStatus.ON_TRACK
    if now - due <= grace_period:
        return HealthStatus.DELAYED
    return HealthStatus.OVERDUE


class HealthEvaluator:
    """
    Read-side projection over the registry, the graph and the event log.
    """

    def __init__(
        self,
        registry: EntityRegistry,
        graph: RelationshipGraph,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        avoidance_limit: int = DEFAULT_AVOIDANCE_LIMIT,
        stale_after_days: int = DEFAULT_STALE_AFTER_DAYS
    ):
        """
        Initialize the evaluator.

        Args:
            registry: Source of entity state (and of the event log)
            graph: Relationship graph, used to judge completeness
            grace_period: How late an action can be before it is overdue
            avoidance_limit: Consecutive postponements that mark an entity as avoided
            stale_after_days: Days without review or update that mark an entity as stale
        """
        self.registry = registry
        self.graph = graph
        self.grace_period = grace_period
        self.avoidance_limit = avoidance_limit
        self.stale_after_days = stale_after_days

    @property
    def event_log(self) -> EventLog:
        return self.registry.event_log

    def evaluate(self, now: Union[date, datetime]) -> Dict[str, HealthStatus]:
        """
        Compute the status of every entity with a scheduled action.

        Args:
            now: Reference date

        Returns:
            Mapping from entity id to status; exempt entities are absent
        """
        today = _as_date(now)
        statuses = {}
        for entity in self.registry.all():
            status = action_status(entity, today, self.grace_period)
            if status is not None:
                statuses[entity.id] = status
        return statuses

    def synthesize_delays(self, now: Union[date, datetime]) -> List[Event]:
        """
        Build Delay events for every late action, without storing them.

        Actions whose delay has already been materialized in the log for the
        same due date are skipped.

        Returns:
            Unstored events (id is None), ordered as the registry
        """
        today = _as_date(now)
        timestamp = datetime.combine(today, datetime.min.time())
        delays = []
        for entity in self.registry.all():
            status = action_status(entity, today, self.grace_period)
            if status not in (HealthStatus.DELAYED, HealthStatus.OVERDUE):
                continue
            due = entity.next_action_date.isoformat()
            recorded = self.event_log.query(entity_id=entity.id, kind=EventKind.ACTION, label=DELAY_LABEL)
            if any(event.payload.startswith(due) for event in recorded):
                continue
            late_days = (today - entity.next_action_date).days
            recorder = self.registry.recorder_id or entity.id
            delays.append(Event.action(
                DELAY_LABEL,
                [
                    Actor(entity_id=recorder, role=ActorRole.RECORDED_BY),
                    Actor(entity_id=entity.id, role=ActorRole.SUBJECT)
                ],
                timestamp,
                f"{due}: {entity.next_action_note or ''} ({late_days} days late, {status.value})"
            ))
        return delays

    def propose_edits(self, now: Union[date, datetime]) -> List[Tuple[EditType, Entity]]:
        """
        Find entities that deserve attention.

        An entity is reported for a single reason, checked in this order:

        1. avoided: its last `avoidance_limit` schedule actions were all postponements
        2. stale: no review event and no update for `stale_after_days` days
        3. incomplete: most optional fields are missing

        Only Active and Passive entities are considered.
        """
        today = _as_date(now)
        stale_before = today - timedelta(days=self.stale_after_days)
        proposals = []

        for entity in self.registry.all():
            if not entity.rel_state.is_current:
                continue

            if self._is_avoided(entity):
                proposals.append((EditType.AVOIDED, entity))
                continue

            last_review = self.event_log.latest(entity.id, label=REVIEW_LABEL)
            last_update = entity.updated_on
            if last_review is not None:
                last_update = max(last_update, last_review.timestamp.date())
            if last_update < stale_before:
                proposals.append((EditType.STALE, entity))
                continue

            if self._completeness(entity) < INCOMPLETE_THRESHOLD:
                proposals.append((EditType.INCOMPLETE, entity))
        return proposals

    def _is_avoided(self, entity: Entity) -> bool:
        actions = [
            event for event in self.event_log.query(entity_id=entity.id, kind=EventKind.ACTION)
            if event.label in (SCHEDULED_LABEL, POSTPONED_LABEL)
        ]
        postponed = 0
        for event in reversed(actions):
            if event.label != POSTPONED_LABEL:
                break
            postponed += 1
            if postponed >= self.avoidance_limit:
                return True
        return False

    def _completeness(self, entity: Entity) -> int:
        # Every field but the name has a weight
        score = 15
        if entity.sponsor is None:
            score -= 5
        if not entity.description:
            score -= 1
        if not entity.handles:
            score -= 3
        if not entity.tags:
            score -= 3
        if entity.updated_on == entity.created_on:
            score -= 1
        if not self.graph.relationships_of(entity.id):
            score -= 2
        return score
