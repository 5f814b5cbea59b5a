"""
Tests for the relationship graph.
"""

import unittest

from valis.errors import InvalidLabel, RelationshipNotFound, SelfRelationship, UnknownEntity
from valis.ledger import Direction, Landscape
from valis.models import ActorRole, EntityKind
from tests.helpers import TickingClock


class TestRelationshipGraph(unittest.TestCase):
    """Test connecting, disconnecting and traversing entities."""

    def setUp(self):
        self.landscape = Landscape(clock=TickingClock())
        self.bob = self.landscape.create("Bob", EntityKind.PERSON)
        self.acme = self.landscape.create("Acme", EntityKind.ABSTRACT)
        self.alice = self.landscape.create("Alice", EntityKind.PERSON)

    def test_connect_is_idempotent(self):
        """Test connecting the same triple twice keeps a single edge and event."""
        first = self.landscape.connect(self.bob.id, self.acme.id, "employee")
        second = self.landscape.connect(self.bob.id, self.acme.id, "employee")

        self.assertEqual(first, second)
        self.assertEqual(len(self.landscape.graph), 1)
        self.assertEqual(len(self.landscape.query(label="connected")), 1)

    def test_distinct_labels_are_distinct_edges(self):
        """Test two labels between the same pair give two edges."""
        self.landscape.connect(self.bob.id, self.acme.id, "employee")
        self.landscape.connect(self.bob.id, self.acme.id, "shareholder")

        labels = sorted(label for _, label in self.landscape.neighbors(self.bob.id, Direction.OUTGOING))
        self.assertEqual(labels, ["employee", "shareholder"])

    def test_connect_event_actors(self):
        """Test the connected event names source and target."""
        self.landscape.connect(self.bob.id, self.acme.id, "employee")
        event = self.landscape.event_log.latest(self.acme.id)

        self.assertEqual(event.label, "connected")
        self.assertTrue(event.involves(self.bob.id, ActorRole.SUBJECT))
        self.assertTrue(event.involves(self.acme.id, ActorRole.BACKGROUND))
        self.assertIn("employee", event.payload)

    def test_self_relationship(self):
        """Test an entity cannot be related to itself."""
        with self.assertRaises(SelfRelationship):
            self.landscape.connect(self.bob.id, self.bob.id, "friend")
        self.assertEqual(len(self.landscape.graph), 0)

    def test_unknown_endpoint(self):
        """Test both endpoints must exist."""
        with self.assertRaises(UnknownEntity):
            self.landscape.connect(self.bob.id, "missing", "friend")
        with self.assertRaises(UnknownEntity):
            self.landscape.connect("missing", self.bob.id, "friend")
        with self.assertRaises(UnknownEntity):
            self.landscape.neighbors("missing")

    def test_disconnect_keeps_history(self):
        """Test removing an edge leaves earlier events in place."""
        self.landscape.connect(self.bob.id, self.acme.id, "employee")
        events_before = self.landscape.query(entity_id=self.acme.id)

        self.landscape.disconnect(self.bob.id, self.acme.id, "employee")

        self.assertEqual(self.landscape.neighbors(self.bob.id), [])
        events_after = self.landscape.query(entity_id=self.acme.id)
        self.assertEqual(events_after[:len(events_before)], events_before)
        self.assertEqual(events_after[-1].label, "disconnected")

        with self.assertRaises(RelationshipNotFound):
            self.landscape.disconnect(self.bob.id, self.acme.id, "employee")

    def test_neighbors_by_direction(self):
        """Test outgoing, incoming and combined traversal."""
        self.landscape.connect(self.bob.id, self.acme.id, "employee")
        self.landscape.connect(self.alice.id, self.bob.id, "manager")

        outgoing = [(e.id, label) for e, label in self.landscape.neighbors(self.bob.id, Direction.OUTGOING)]
        incoming = [(e.id, label) for e, label in self.landscape.neighbors(self.bob.id, Direction.INCOMING)]
        both = [(e.id, label) for e, label in self.landscape.neighbors(self.bob.id, Direction.BOTH)]

        self.assertEqual(outgoing, [(self.acme.id, "employee")])
        self.assertEqual(incoming, [(self.alice.id, "manager")])
        self.assertEqual(both, [(self.acme.id, "employee"), (self.alice.id, "manager")])

    def test_bidirectional_edge(self):
        """Test a mutual edge is followed from either end."""
        self.landscape.connect(self.bob.id, self.alice.id, "friend", bidirectional=True)

        from_alice = self.landscape.neighbors(self.alice.id, Direction.OUTGOING)
        self.assertEqual([(e.id, label) for e, label in from_alice], [(self.bob.id, "friend")])
        from_bob = self.landscape.neighbors(self.bob.id, Direction.INCOMING)
        self.assertEqual([(e.id, label) for e, label in from_bob], [(self.alice.id, "friend")])

    def test_mutual_edge_is_stored_once(self):
        """Test connecting a mutual relationship from the other end reuses the edge."""
        first = self.landscape.connect(self.bob.id, self.alice.id, "friend", bidirectional=True)
        second = self.landscape.connect(self.alice.id, self.bob.id, "friend", bidirectional=True)

        self.assertEqual(first, second)
        self.assertEqual(len(self.landscape.graph), 1)
        self.assertEqual(len(self.landscape.query(label="connected")), 1)
        self.assertEqual(
            [(e.id, label) for e, label in self.landscape.neighbors(self.bob.id)],
            [(self.alice.id, "friend")]
        )
        self.assertEqual(self.landscape.graph.get(self.alice.id, self.bob.id, "friend"), first)

        self.landscape.disconnect(self.alice.id, self.bob.id, "friend")
        self.assertEqual(len(self.landscape.graph), 0)

    def test_one_way_edges_are_not_reversed(self):
        """Test a one-way edge does not match the opposite direction."""
        self.landscape.connect(self.bob.id, self.alice.id, "manager")

        self.assertIsNone(self.landscape.graph.get(self.alice.id, self.bob.id, "manager"))
        with self.assertRaises(RelationshipNotFound):
            self.landscape.disconnect(self.alice.id, self.bob.id, "manager")

        self.landscape.connect(self.alice.id, self.bob.id, "manager")
        self.assertEqual(len(self.landscape.graph), 2)

    def test_empty_label(self):
        """Test labels must not be blank."""
        for label in ("", "   "):
            with self.assertRaises(InvalidLabel):
                self.landscape.connect(self.bob.id, self.alice.id, label)
        self.assertEqual(len(self.landscape.graph), 0)

    def test_label_is_stripped(self):
        """Test surrounding spaces do not make a new label."""
        edge = self.landscape.connect(self.bob.id, self.acme.id, " employee ")
        self.assertEqual(edge.label, "employee")
        self.assertEqual(self.landscape.connect(self.bob.id, self.acme.id, "employee"), edge)

    def test_cycles_allowed(self):
        """Test the graph accepts cycles, unlike sponsorship."""
        self.landscape.connect(self.bob.id, self.alice.id, "knows")
        self.landscape.connect(self.alice.id, self.acme.id, "knows")
        self.landscape.connect(self.acme.id, self.bob.id, "knows")
        self.assertEqual(len(self.landscape.graph), 3)

    def test_relationships_are_independent_of_sponsorship(self):
        """Test relationships do not touch the sponsor forest."""
        self.landscape.set_sponsor(self.alice.id, self.bob.id)
        self.landscape.connect(self.alice.id, self.bob.id, "mentor")

        self.assertEqual(self.landscape.lookup(self.alice.id).sponsor, self.bob.id)
        self.assertIsNone(self.landscape.lookup(self.bob.id).sponsor)


if __name__ == '__main__':
    unittest.main()
