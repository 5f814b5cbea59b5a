"""
Tests for health evaluation, delay synthesis and review proposals.
"""

from datetime import date, datetime, timedelta

import pytest

from valis.ledger import EditType, HealthStatus, Landscape, action_status
from valis.models import EntityKind, EventKind, RelStateKind
from tests.helpers import TickingClock


@pytest.fixture
def strict_landscape():
    return Landscape(clock=TickingClock(), grace_period=timedelta(days=5))


def test_overdue_after_grace_period(strict_landscape):
    """An action late by more than the grace period is overdue."""
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.schedule_action(e.id, note="call", date=date(2024, 1, 1))

    assert strict_landscape.health(date(2024, 1, 10)) == {e.id: HealthStatus.OVERDUE}


@pytest.mark.parametrize("now, expected", [
    (date(2023, 12, 31), HealthStatus.ON_TRACK),
    (date(2024, 1, 1), HealthStatus.ON_TRACK),
    (date(2024, 1, 2), HealthStatus.DELAYED),
    (date(2024, 1, 6), HealthStatus.DELAYED),
    (date(2024, 1, 7), HealthStatus.OVERDUE),
])
def test_status_boundaries(strict_landscape, now, expected):
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.schedule_action(e.id, date=date(2024, 1, 1))

    assert strict_landscape.health(now)[e.id] == expected


def test_datetime_reference_is_truncated(strict_landscape):
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.schedule_action(e.id, date=date(2024, 1, 1))

    assert strict_landscape.health(datetime(2024, 1, 1, 23, 59))[e.id] == HealthStatus.ON_TRACK


@pytest.mark.parametrize("state", [RelStateKind.FORMER, RelStateKind.DISABLED])
def test_inactive_entities_are_exempt(strict_landscape, state):
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.schedule_action(e.id, date=date(2024, 1, 1))
    strict_landscape.transition_state(e.id, state)

    assert strict_landscape.health(date(2025, 1, 1)) == {}


def test_root_and_undated_entities_are_exempt(strict_landscape):
    _, root = strict_landscape.init("Owner", "World")
    strict_landscape.schedule_action(root.id, date=date(2024, 1, 1))
    other = strict_landscape.create("Other", EntityKind.OBJECT)
    strict_landscape.schedule_action(other.id, note="someday")

    assert strict_landscape.health(date(2025, 1, 1)) == {}


def test_passive_entities_are_evaluated(strict_landscape):
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.transition_state(e.id, RelStateKind.PASSIVE)
    strict_landscape.schedule_action(e.id, date=date(2024, 1, 1))

    assert action_status(strict_landscape.lookup(e.id), date(2024, 1, 3), timedelta(days=5)) == HealthStatus.DELAYED


def test_evaluation_is_pure(strict_landscape):
    """Evaluating twice gives the same answer and leaves the log alone."""
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.schedule_action(e.id, date=date(2024, 1, 1))
    events_before = list(strict_landscape.event_log)

    first = strict_landscape.health(date(2024, 1, 10))
    strict_landscape.delays(date(2024, 1, 10))
    strict_landscape.propose_edits(date(2024, 1, 10))

    assert strict_landscape.health(date(2024, 1, 10)) == first
    assert list(strict_landscape.event_log) == events_before


def test_synthesized_delays(strict_landscape):
    late = strict_landscape.create("Late", EntityKind.PERSON)
    fine = strict_landscape.create("Fine", EntityKind.PERSON)
    strict_landscape.schedule_action(late.id, note="call", date=date(2024, 1, 1))
    strict_landscape.schedule_action(fine.id, note="call", date=date(2024, 2, 1))

    delays = strict_landscape.delays(date(2024, 1, 3))

    assert len(delays) == 1
    delay = delays[0]
    assert delay.id is None
    assert delay.kind == EventKind.ACTION
    assert delay.is_delay
    assert delay.timestamp == datetime(2024, 1, 3)
    assert delay.involves(late.id)
    assert delay.payload.startswith("2024-01-01")


def test_materialized_delays_are_not_repeated(strict_landscape):
    e = strict_landscape.create("E", EntityKind.PERSON)
    strict_landscape.schedule_action(e.id, note="call", date=date(2024, 1, 1))

    stored = strict_landscape.materialize_delays(date(2024, 1, 3))
    assert [event.id for event in stored] == [strict_landscape.event_log.last_id]
    assert strict_landscape.materialize_delays(date(2024, 1, 4)) == []

    # A new due date is a new delay
    strict_landscape.schedule_action(e.id, note="call", date=date(2024, 1, 5))
    assert len(strict_landscape.delays(date(2024, 1, 8))) == 1


def test_avoided_entities(landscape):
    e = landscape.create("Dentist", EntityKind.PERSON)
    landscape.schedule_action(e.id, note="book", date=date(2024, 1, 10))
    for day in range(11, 16):
        landscape.schedule_action(e.id, note="book", date=date(2024, 1, day))

    proposals = landscape.propose_edits(date(2024, 1, 20))
    assert (EditType.AVOIDED, landscape.lookup(e.id)) in proposals

    # Bringing the date forward breaks the streak
    landscape.schedule_action(e.id, note="book", date=date(2024, 1, 12))
    assert all(edit != EditType.AVOIDED for edit, _ in landscape.propose_edits(date(2024, 1, 20)))


def test_stale_entities(landscape):
    e = landscape.create("Old friend", EntityKind.PERSON)

    proposals = dict((entity.id, edit) for edit, entity in landscape.propose_edits(date(2024, 8, 1)))
    assert proposals[e.id] == EditType.STALE

    landscape.review(e.id, note="still in touch", at=datetime(2024, 7, 1, 12))
    proposals = dict((entity.id, edit) for edit, entity in landscape.propose_edits(date(2024, 8, 1)))
    assert proposals[e.id] == EditType.INCOMPLETE


def test_complete_entities_are_not_proposed(landscape):
    owner, _ = landscape.init("Owner", "World")
    e = landscape.create("Alice", EntityKind.PERSON, sponsor=owner.id)
    landscape.registry.describe(e.id, "colleague", at=datetime(2024, 1, 2))
    landscape.registry.tag(e.id, "work")
    landscape.registry.set_handle(e.id, "email", "alice@acme.com")
    landscape.connect(e.id, owner.id, "colleague")

    reported = [entity.id for _, entity in landscape.propose_edits(date(2024, 1, 3))]
    assert e.id not in reported
    assert owner.id in reported


def test_inactive_entities_are_not_proposed(landscape):
    e = landscape.create("Gone", EntityKind.PERSON)
    landscape.transition_state(e.id, RelStateKind.FORMER)

    assert landscape.propose_edits(date(2030, 1, 1)) == []
