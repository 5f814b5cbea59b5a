"""
Entity models for VALIS.

This module defines the entities tracked in the landscape and the labeled
relationships connecting them.
"""

import uuid
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .temporal import RelState


def new_entity_id() -> str:
    """Generate a fresh entity identifier."""
    return uuid.uuid4().hex


class EntityKind(str, Enum):
    """What an entity is; fixed at creation."""

    PERSON = "person"
    OBJECT = "object"
    ABSTRACT = "abstract"


class Entity(BaseModel):
    """
    Represents a tracked entity (person, object, project, organization, etc.).
    """

    id: str = Field(
        default_factory=new_entity_id,
        frozen=True,
        description="Stable unique identifier, immutable after creation"
    )

    name: str = Field(
        ...,
        min_length=1,
        description="Human-readable label"
    )

    kind: EntityKind = Field(
        ...,
        frozen=True,
        description="The kind of entity; changing it is not supported"
    )

    sponsor: Optional[str] = Field(
        None,
        description="Id of the entity responsible for this one"
    )

    rel_state: RelState = Field(
        ...,
        description="Current lifecycle status"
    )

    next_action_note: Optional[str] = Field(
        None,
        description="What should happen next"
    )

    next_action_date: Optional[date] = Field(
        None,
        description="When the next action is due"
    )

    description: str = Field(
        "",
        description="Free-form notes about the entity"
    )

    tags: List[str] = Field(
        default_factory=list,
        description="Sorted unique labels"
    )

    handles: Dict[str, str] = Field(
        default_factory=dict,
        description="External identifiers by kind (e.g. 'email' -> 'bob@acme.com')"
    )

    created_on: date = Field(
        ...,
        description="Day the entity was created"
    )

    updated_on: date = Field(
        ...,
        description="Day the entity was last changed"
    )

    @property
    def has_next_action(self) -> bool:
        return self.next_action_note is not None or self.next_action_date is not None

    def action_within(self, until: date) -> bool:
        """Check whether the next action is due strictly before a day."""
        return self.next_action_date is not None and self.next_action_date < until

    def action_within_range(self, since: date, until: date) -> bool:
        """Check whether the next action is due in [since, until)."""
        return self.next_action_date is not None and since <= self.next_action_date < until


class Relationship(BaseModel):
    """
    A labeled edge between two entities, independent of sponsorship.
    """

    model_config = ConfigDict(frozen=True)

    source: str = Field(
        ...,
        description="Id of the entity the edge starts from"
    )

    target: str = Field(
        ...,
        description="Id of the entity the edge points to"
    )

    label: str = Field(
        ...,
        min_length=1,
        description="Relationship type (e.g. 'fatherOf', 'foundedBy', 'employee')"
    )

    bidirectional: bool = Field(
        False,
        description="Whether the relationship holds in both directions"
    )

    @property
    def key(self) -> tuple:
        return (self.source, self.target, self.label)

    def touches(self, entity_id: str) -> bool:
        return entity_id in (self.source, self.target)
