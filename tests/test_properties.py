"""
Property tests for landscape invariants.
"""

from datetime import date, timedelta

from hypothesis import given, settings, strategies as st
from hypothesis.strategies import composite

from valis.errors import CycleDetected
from valis.ledger import Landscape
from valis.models import EntityKind
from tests.helpers import TickingClock


@composite
def sponsor_moves(draw):
    """A number of entities and a sequence of (entity, sponsor) index pairs."""
    size = draw(st.integers(min_value=1, max_value=8))
    index = st.integers(min_value=0, max_value=size - 1)
    moves = draw(st.lists(st.tuples(index, st.one_of(st.none(), index)), max_size=30))
    return size, moves


@composite
def scheduled_dates(draw):
    return draw(st.lists(
        st.dates(min_value=date(2020, 1, 1), max_value=date(2026, 1, 1)),
        min_size=1,
        max_size=10
    ))


def build(size):
    landscape = Landscape(clock=TickingClock())
    ids = [landscape.create(f"E{i}", EntityKind.PERSON).id for i in range(size)]
    return landscape, ids


@settings(max_examples=50)
@given(sponsor_moves())
def test_sponsorship_stays_acyclic(case):
    size, moves = case
    landscape, ids = build(size)

    for entity, sponsor in moves:
        try:
            landscape.set_sponsor(ids[entity], ids[sponsor] if sponsor is not None else None)
        except CycleDetected:
            pass

    # Every sponsor chain ends without revisiting an entity
    for entity_id in ids:
        chain = landscape.registry.sponsor_chain(entity_id)
        assert entity_id not in chain
        assert len(chain) == len(set(chain))
        if chain:
            assert landscape.lookup(chain[-1]).sponsor is None


@settings(max_examples=50)
@given(st.lists(st.tuples(st.integers(0, 3), st.integers(0, 3), st.sampled_from(["a", "b"])), max_size=20))
def test_connect_is_idempotent(edges):
    landscape, ids = build(4)
    distinct = set()

    for source, target, label in edges:
        if source == target:
            continue
        landscape.connect(ids[source], ids[target], label)
        distinct.add((source, target, label))

    assert len(landscape.graph) == len(distinct)
    assert len(landscape.query(label="connected")) == len(distinct)


@settings(max_examples=50)
@given(scheduled_dates())
def test_event_ids_ascend(dates):
    landscape, ids = build(2)
    for due in dates:
        landscape.schedule_action(ids[0], note="call", date=due)

    event_ids = [event.id for event in landscape.query()]
    assert event_ids == sorted(event_ids)
    assert len(set(event_ids)) == len(event_ids)


@settings(max_examples=50)
@given(scheduled_dates(), st.dates(min_value=date(2020, 1, 1), max_value=date(2027, 1, 1)))
def test_health_is_pure(dates, now):
    landscape, ids = build(len(dates))
    for entity_id, due in zip(ids, dates):
        landscape.schedule_action(entity_id, date=due)
    log_size = len(landscape.event_log)

    first = landscape.health(now)
    assert landscape.health(now) == first
    assert len(landscape.event_log) == log_size

    # Moving the reference date forward never improves a status
    order = ["on_track", "delayed", "overdue"]
    later = landscape.health(now + timedelta(days=3))
    for entity_id, status in first.items():
        assert order.index(later[entity_id].value) >= order.index(status.value)
