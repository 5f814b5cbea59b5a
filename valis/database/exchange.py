"""
JSON-lines export and import of a landscape.

Each line is one JSON object tagged by "type": a leading "meta" record, then
"entity", "relationship" and "event" records. Events keep their ids, so the
log order survives the round trip.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..ledger import Landscape
from ..models import Entity, Event, Relationship


def export_jsonl(landscape: Landscape, path: Union[str, Path]) -> int:
    """
    Write a landscape to a JSON-lines file.

    Args:
        landscape: The landscape to export
        path: Destination file

    Returns:
        Number of records written
    """
    records = [{"type": "meta", "recorder_id": landscape.recorder_id}]
    records.extend({"type": "entity", "data": e.model_dump(mode="json")} for e in landscape.entities())
    records.extend({"type": "relationship", "data": r.model_dump(mode="json")} for r in landscape.graph.edges())
    records.extend({"type": "event", "data": e.model_dump(mode="json")} for e in landscape.event_log)

    with open(path, 'w', encoding='utf-8') as f:
        for record in records:
            f.write(json.dumps(record, ensure_ascii=False))
            f.write("\n")

    logging.info(f"Exported {len(records)} records to {path}")
    return len(records)


def import_jsonl(path: Union[str, Path], landscape: Optional[Landscape] = None) -> Landscape:
    """
    Read a landscape from a JSON-lines file.

    Args:
        path: Source file produced by export_jsonl
        landscape: Empty landscape to fill (a default one when omitted)

    Returns:
        The restored landscape
    """
    entities, relationships, events = [], [], []
    recorder_id = None

    with open(path, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, 1):
            if not line.strip():
                continue
            record = json.loads(line)
            record_type = record.get("type")
            if record_type == "meta":
                recorder_id = record.get("recorder_id")
            elif record_type == "entity":
                entities.append(Entity.model_validate(record["data"]))
            elif record_type == "relationship":
                relationships.append(Relationship.model_validate(record["data"]))
            elif record_type == "event":
                events.append(Event.model_validate(record["data"]))
            else:
                raise ValueError(f"{path}:{line_number}: unknown record type {record_type!r}")

    landscape = landscape or Landscape()
    landscape.restore(entities, relationships, events, recorder_id=recorder_id)
    logging.info(f"Imported {len(entities)} entities and {len(events)} events from {path}")
    return landscape
