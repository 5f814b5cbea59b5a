"""
Temporal data models for VALIS.

This module defines the validated date range carried by every stateful
record and the lifecycle state of an entity.
"""

from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import InvalidTemporalRange


class TemporalRange(BaseModel):
    """
    A validated (since, until?) date pair.
    """

    model_config = ConfigDict(frozen=True)

    since: date = Field(
        ...,
        description="First day of the range"
    )

    until: Optional[date] = Field(
        None,
        description="Last day of the range, open-ended when missing"
    )

    @model_validator(mode="after")
    def _check_order(self) -> "TemporalRange":
        if self.until is not None and self.until < self.since:
            raise ValueError(f"range ends ({self.until}) before it starts ({self.since})")
        return self

    @classmethod
    def of(cls, since: date, until: Optional[date] = None) -> "TemporalRange":
        """
        Build a range, raising InvalidTemporalRange when until < since.

        Args:
            since: First day of the range
            until: Optional last day of the range

        Returns:
            The validated range
        """
        if until is not None and until < since:
            raise InvalidTemporalRange(f"Range ends ({until}) before it starts ({since})")
        return cls(since=since, until=until)

    def contains(self, day: date) -> bool:
        """Check whether a day falls within the range (bounds included)."""
        if day < self.since:
            return False
        return self.until is None or day <= self.until

    def __str__(self) -> str:
        return f"{self.since}..{self.until or ''}"


class RelStateKind(str, Enum):
    """Lifecycle status tags of an entity."""

    ROOT = "root"
    ACTIVE = "active"
    PASSIVE = "passive"
    FORMER = "former"
    DISABLED = "disabled"


class RelState(BaseModel):
    """
    Lifecycle state of an entity.

    A tag plus an optional range: Root carries no range, every other tag
    carries exactly one.
    """

    model_config = ConfigDict(frozen=True)

    kind: RelStateKind = Field(
        ...,
        description="The lifecycle tag"
    )

    range: Optional[TemporalRange] = Field(
        None,
        description="When the state started and, optionally, ended"
    )

    @model_validator(mode="after")
    def _check_range(self) -> "RelState":
        if self.kind == RelStateKind.ROOT and self.range is not None:
            raise ValueError("the root state carries no temporal range")
        if self.kind != RelStateKind.ROOT and self.range is None:
            raise ValueError(f"the {self.kind.value} state requires a temporal range")
        return self

    @classmethod
    def root(cls) -> "RelState":
        return cls(kind=RelStateKind.ROOT)

    @classmethod
    def active(cls, since: date, until: Optional[date] = None) -> "RelState":
        return cls(kind=RelStateKind.ACTIVE, range=TemporalRange.of(since, until))

    @classmethod
    def passive(cls, since: date, until: Optional[date] = None) -> "RelState":
        return cls(kind=RelStateKind.PASSIVE, range=TemporalRange.of(since, until))

    @classmethod
    def former(cls, since: date, until: Optional[date] = None) -> "RelState":
        return cls(kind=RelStateKind.FORMER, range=TemporalRange.of(since, until))

    @classmethod
    def disabled(cls, since: date, until: Optional[date] = None) -> "RelState":
        return cls(kind=RelStateKind.DISABLED, range=TemporalRange.of(since, until))

    @classmethod
    def build(
        cls,
        kind: RelStateKind,
        since: Optional[date] = None,
        until: Optional[date] = None
    ) -> "RelState":
        """
        Build a state from a tag and optional dates.

        Raises InvalidTemporalRange for a reversed range, for a range given to
        the Root state, or for a missing start date on any other state.
        """
        if kind == RelStateKind.ROOT:
            if since is not None or until is not None:
                raise InvalidTemporalRange("The root state carries no temporal range")
            return cls.root()
        if since is None:
            raise InvalidTemporalRange(f"The {kind.value} state requires a start date")
        return cls(kind=kind, range=TemporalRange.of(since, until))

    @property
    def is_root(self) -> bool:
        return self.kind == RelStateKind.ROOT

    @property
    def is_current(self) -> bool:
        """Active and Passive entities are the ones still being followed up."""
        return self.kind in (RelStateKind.ACTIVE, RelStateKind.PASSIVE)

    def __str__(self) -> str:
        if self.range is None:
            return self.kind.value.title()
        return f"{self.kind.value.title()}({self.range})"
