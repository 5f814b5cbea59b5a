"""
Database manager for VALIS.

This module persists a landscape in DuckDB. Entities and relationships are
rewritten on every save, while the event log is append-only on disk too:
only events newer than the last stored one are inserted.
"""

import duckdb
import logging
from typing import List, Optional

from ..ledger import Landscape
from ..models import Entity, Event, Relationship

RECORDER_KEY = "recorder_id"


class DatabaseManager:
    """
    Manages the DuckDB database holding a landscape.
    """

    def __init__(self, db_path: str = "valis.db"):
        """
        Initialize the database manager.

        Args:
            db_path: Path to the DuckDB database file
        """
        self.db_path = db_path
        self.connection = None

    def connect(self):
        """Establish connection to the database."""
        self.connection = duckdb.connect(self.db_path)

    def disconnect(self):
        """Close the database connection."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()

    def _require_connection(self):
        if not self.connection:
            raise RuntimeError("Database connection not established")
        return self.connection

    def initialize_database(self):
        """
        Create all necessary tables if they don't exist.
        """
        connection = self._require_connection()

        connection.execute("""
            CREATE TABLE IF NOT EXISTS entities (
                entity_id VARCHAR PRIMARY KEY,
                position INTEGER NOT NULL,
                name VARCHAR NOT NULL,
                kind VARCHAR NOT NULL,
                data TEXT NOT NULL
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS relationships (
                source VARCHAR NOT NULL,
                target VARCHAR NOT NULL,
                label VARCHAR NOT NULL,
                position INTEGER NOT NULL,
                bidirectional BOOLEAN NOT NULL,
                PRIMARY KEY (source, target, label)
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS events (
                event_id BIGINT PRIMARY KEY,
                occurred_at TIMESTAMP NOT NULL,
                kind VARCHAR NOT NULL,
                label VARCHAR NOT NULL,
                data TEXT NOT NULL
            )
        """)

        connection.execute("""
            CREATE TABLE IF NOT EXISTS meta (
                key VARCHAR PRIMARY KEY,
                value VARCHAR
            )
        """)

    def last_event_id(self) -> int:
        """
        Id of the most recent stored event.

        Returns:
            The id, or 0 when no event is stored
        """
        connection = self._require_connection()
        result = connection.execute("SELECT MAX(event_id) FROM events").fetchone()
        return result[0] if result and result[0] is not None else 0

    def save(self, landscape: Landscape) -> int:
        """
        Save a landscape in a single transaction.

        Args:
            landscape: The landscape to persist

        Returns:
            Number of new events written
        """
        connection = self._require_connection()
        new_events = landscape.event_log.since_id(self.last_event_id())

        connection.begin()
        try:
            connection.execute("DELETE FROM entities")
            entity_rows = [
                [entity.id, position, entity.name, entity.kind.value, entity.model_dump_json()]
                for position, entity in enumerate(landscape.entities())
            ]
            if entity_rows:
                connection.executemany("""
                    INSERT INTO entities (entity_id, position, name, kind, data)
                    VALUES (?, ?, ?, ?, ?)
                """, entity_rows)

            connection.execute("DELETE FROM relationships")
            edge_rows = [
                [edge.source, edge.target, edge.label, position, edge.bidirectional]
                for position, edge in enumerate(landscape.graph.edges())
            ]
            if edge_rows:
                connection.executemany("""
                    INSERT INTO relationships (source, target, label, position, bidirectional)
                    VALUES (?, ?, ?, ?, ?)
                """, edge_rows)

            event_rows = [
                [event.id, event.timestamp, event.kind.value, event.label, event.model_dump_json()]
                for event in new_events
            ]
            if event_rows:
                connection.executemany("""
                    INSERT INTO events (event_id, occurred_at, kind, label, data)
                    VALUES (?, ?, ?, ?, ?)
                """, event_rows)

            connection.execute("DELETE FROM meta WHERE key = ?", [RECORDER_KEY])
            connection.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?)",
                [RECORDER_KEY, landscape.recorder_id]
            )
            connection.commit()
        except Exception:
            connection.rollback()
            logging.error(f"Failed to save landscape to {self.db_path}; transaction rolled back")
            raise

        logging.info(
            f"Saved {len(entity_rows)} entities, {len(edge_rows)} relationships "
            f"and {len(event_rows)} new events"
        )
        return len(event_rows)

    def load_entities(self) -> List[Entity]:
        connection = self._require_connection()
        rows = connection.execute("SELECT data FROM entities ORDER BY position").fetchall()
        return [Entity.model_validate_json(row[0]) for row in rows]

    def load_relationships(self) -> List[Relationship]:
        connection = self._require_connection()
        rows = connection.execute("""
            SELECT source, target, label, bidirectional
            FROM relationships
            ORDER BY position
        """).fetchall()
        return [
            Relationship(source=row[0], target=row[1], label=row[2], bidirectional=row[3])
            for row in rows
        ]

    def load_events(self, after_id: int = 0) -> List[Event]:
        """
        Load stored events in id order.

        Args:
            after_id: Only events with a greater id

        Returns:
            List of events
        """
        connection = self._require_connection()
        rows = connection.execute(
            "SELECT data FROM events WHERE event_id > ? ORDER BY event_id",
            [after_id]
        ).fetchall()
        return [Event.model_validate_json(row[0]) for row in rows]

    def get_meta(self, key: str) -> Optional[str]:
        connection = self._require_connection()
        result = connection.execute("SELECT value FROM meta WHERE key = ?", [key]).fetchone()
        return result[0] if result else None

    def load(self, landscape: Optional[Landscape] = None) -> Landscape:
        """
        Load the stored landscape.

        Args:
            landscape: Empty landscape to fill (a default one when omitted)

        Returns:
            The restored landscape
        """
        landscape = landscape or Landscape()
        landscape.restore(
            self.load_entities(),
            self.load_relationships(),
            self.load_events(),
            recorder_id=self.get_meta(RECORDER_KEY)
        )
        return landscape
