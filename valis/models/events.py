"""
Event models for VALIS.

Events are immutable, timestamped records of an occurrence involving one or
more entities, each taking part through a role.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Whether an event audits a change or tracks a follow-up action."""

    LOG = "log"
    ACTION = "action"


class ActorRole(str, Enum):
    """How an entity takes part in an event."""

    RECORDED_BY = "recorded_by"
    SUBJECT = "subject"
    LEAD = "lead"
    STARRING = "starring"
    BACKGROUND = "background"


# Labels emitted by the landscape itself
DELAY_LABEL = "delay"
REVIEW_LABEL = "review"
POSTPONED_LABEL = "postponed"
SCHEDULED_LABEL = "scheduled"
RESOLVED_LABEL = "resolved"


class Actor(BaseModel):
    """
    An (entity, role) pair attached to an event.
    """

    model_config = ConfigDict(frozen=True)

    entity_id: str = Field(
        ...,
        description="Id of the participating entity"
    )

    role: ActorRole = Field(
        ...,
        description="The role the entity plays in the event"
    )


class Event(BaseModel):
    """
    An append-only record in the event log.
    """

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = Field(
        None,
        description="Monotonic id assigned by the event log; None until appended"
    )

    timestamp: datetime = Field(
        ...,
        description="When the event occurred (may be backdated)"
    )

    kind: EventKind = Field(
        ...,
        description="Log or Action"
    )

    label: str = Field(
        ...,
        min_length=1,
        description="Log message or action sub-kind (e.g. 'created', 'scheduled', 'delay')"
    )

    actors: Tuple[Actor, ...] = Field(
        ...,
        min_length=1,
        description="Ordered participants; at least one is required"
    )

    payload: str = Field(
        "",
        description="Free-form description or notes"
    )

    @classmethod
    def log(cls, label: str, actors: Sequence[Actor], timestamp: datetime, payload: str = "") -> "Event":
        return cls(timestamp=timestamp, kind=EventKind.LOG, label=label, actors=actors, payload=payload)

    @classmethod
    def action(cls, label: str, actors: Sequence[Actor], timestamp: datetime, payload: str = "") -> "Event":
        return cls(timestamp=timestamp, kind=EventKind.ACTION, label=label, actors=actors, payload=payload)

    @property
    def is_log(self) -> bool:
        return self.kind == EventKind.LOG

    @property
    def is_delay(self) -> bool:
        return self.kind == EventKind.ACTION and self.label == DELAY_LABEL

    def entity_ids(self) -> List[str]:
        """Ids of the participating entities, in actor order, without repeats."""
        seen: List[str] = []
        for actor in self.actors:
            if actor.entity_id not in seen:
                seen.append(actor.entity_id)
        return seen

    def involves(self, entity_id: str, role: Optional[ActorRole] = None) -> bool:
        """Check whether an entity takes part, optionally in a given role."""
        return any(
            actor.entity_id == entity_id and (role is None or actor.role == role)
            for actor in self.actors
        )

    def has_role(self, role: ActorRole) -> bool:
        return any(actor.role == role for actor in self.actors)
