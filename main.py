#!/usr/bin/env python3
"""
VALIS - Personal Landscape Tracker

Main entry point for VALIS. Each command loads the landscape from the
database, runs one operation on it, saves it back and prints the result.
"""

import logging
import sys
import argparse
from datetime import date
from typing import List, Optional

from valis.config import config
from valis.database import DatabaseManager, export_jsonl, import_jsonl
from valis.errors import LandscapeError, UnknownEntity
from valis.ledger import Direction, Landscape
from valis.models import Entity, EntityKind, RelState, RelStateKind
from valis.utils import TimeWindow, date_from_str, human_date


def setup_logging():
    """Configure logging for the application."""
    level = getattr(logging, config.get("logging.level", "INFO").upper())
    format_str = config.get("logging.format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    log_file = config.log_filename

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_file)
        ]
    )


def parse_date(value: str) -> date:
    """argparse type for dates in any supported format."""
    parsed = date_from_str(value)
    if parsed is None:
        raise argparse.ArgumentTypeError(f"invalid date: {value!r}")
    return parsed


def resolve_entity(landscape: Landscape, reference: str) -> Entity:
    """
    Find an entity by id or by (unique) name.

    Args:
        landscape: The landscape to search
        reference: An entity id or name

    Returns:
        The matching entity
    """
    entity = landscape.lookup(reference)
    if entity:
        return entity
    matches = list(landscape.find_by_name(reference))
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        ids = ", ".join(match.id for match in matches)
        raise LandscapeError(f"Name '{reference}' is ambiguous, use one of: {ids}")
    raise UnknownEntity(reference)


def format_entity(entity: Entity) -> str:
    """One-line summary of an entity."""
    line = f"{entity.id}  {entity.name} [{entity.kind.value}] {entity.rel_state}"
    if entity.next_action_date or entity.next_action_note:
        due = human_date(entity.next_action_date) if entity.next_action_date else "-"
        line += f"  next: {due} {entity.next_action_note or ''}".rstrip()
    return line


def cmd_init(landscape: Landscape, args) -> None:
    owner, root = landscape.init(args.owner, args.root)
    print(format_entity(owner))
    print(format_entity(root))


def cmd_add(landscape: Landscape, args) -> None:
    sponsor = resolve_entity(landscape, args.sponsor).id if args.sponsor else landscape.recorder_id
    rel_state = RelState.root() if args.root else None
    entity = landscape.create(args.name, EntityKind(args.kind), sponsor=sponsor, rel_state=rel_state)
    print(format_entity(entity))


def cmd_sponsor(landscape: Landscape, args) -> None:
    entity = resolve_entity(landscape, args.entity)
    sponsor = resolve_entity(landscape, args.sponsor).id if args.sponsor else None
    print(format_entity(landscape.set_sponsor(entity.id, sponsor)))


def cmd_state(landscape: Landscape, args) -> None:
    entity = resolve_entity(landscape, args.entity)
    updated = landscape.transition_state(entity.id, RelStateKind(args.state), since=args.since, until=args.until)
    print(format_entity(updated))


def cmd_schedule(landscape: Landscape, args) -> None:
    entity = resolve_entity(landscape, args.entity)
    print(format_entity(landscape.schedule_action(entity.id, note=args.note, date=args.date)))


def cmd_connect(landscape: Landscape, args) -> None:
    source = resolve_entity(landscape, args.source)
    target = resolve_entity(landscape, args.target)
    edge = landscape.connect(source.id, target.id, args.label, bidirectional=args.mutual)
    arrow = "<->" if edge.bidirectional else "->"
    print(f"{source.name} -[{edge.label}]{arrow} {target.name}")


def cmd_disconnect(landscape: Landscape, args) -> None:
    source = resolve_entity(landscape, args.source)
    target = resolve_entity(landscape, args.target)
    landscape.disconnect(source.id, target.id, args.label)
    print(f"{source.name} -[{args.label}]- {target.name} removed")


def cmd_show(landscape: Landscape, args) -> None:
    entity = resolve_entity(landscape, args.entity)
    print(format_entity(entity))
    if entity.sponsor:
        print(f"  sponsor: {landscape.lookup(entity.sponsor).name}")
    if entity.description:
        print(f"  description: {entity.description}")
    if entity.tags:
        print(f"  tags: {', '.join(entity.tags)}")
    for kind, value in sorted(entity.handles.items()):
        print(f"  {kind}: {value}")
    for child in landscape.registry.sponsored_by(entity.id):
        print(f"  sponsors: {child.name}")
    for other, label in landscape.neighbors(entity.id, Direction.BOTH):
        print(f"  {label}: {other.name}")


def cmd_events(landscape: Landscape, args) -> None:
    entity_id = resolve_entity(landscape, args.entity).id if args.entity else None
    for event in landscape.query(entity_id=entity_id, label=args.label, since=args.since, until=args.until):
        print(f"#{event.id} {event.timestamp:%Y-%m-%d %H:%M} {event.kind.value}:{event.label} {event.payload}")


def cmd_health(landscape: Landscape, args) -> None:
    now = args.date or date.today()
    for entity_id, status in landscape.health(now).items():
        print(f"{status.value:<9} {format_entity(landscape.lookup(entity_id))}")


def cmd_delays(landscape: Landscape, args) -> None:
    now = args.date or date.today()
    delays = landscape.materialize_delays(now) if args.materialize else landscape.delays(now)
    for event in delays:
        subject = landscape.lookup(event.actors[-1].entity_id)
        print(f"{subject.name}: {event.payload}")


def cmd_agenda(landscape: Landscape, args) -> None:
    start = args.date or date.today()
    window = args.window or TimeWindow.parse(config.agenda_window)
    since, until = window.range(start)
    for entity in landscape.agenda(since, until):
        print(format_entity(entity))


def cmd_review(landscape: Landscape, args) -> None:
    if args.entity:
        entity = resolve_entity(landscape, args.entity)
        landscape.review(entity.id, note=args.note or "")
        print(f"{entity.name} reviewed")
        return
    now = args.date or date.today()
    for edit_type, entity in landscape.propose_edits(now):
        print(f"{edit_type.value:<10} {format_entity(entity)}")


def cmd_search(landscape: Landscape, args) -> None:
    for entity in landscape.search(" ".join(args.pattern)):
        print(format_entity(entity))


def cmd_export(landscape: Landscape, args) -> None:
    count = export_jsonl(landscape, args.path or config.export_filename)
    print(f"{count} records exported")


COMMANDS = {
    "init": cmd_init,
    "add": cmd_add,
    "sponsor": cmd_sponsor,
    "state": cmd_state,
    "schedule": cmd_schedule,
    "connect": cmd_connect,
    "disconnect": cmd_disconnect,
    "show": cmd_show,
    "events": cmd_events,
    "health": cmd_health,
    "delays": cmd_delays,
    "agenda": cmd_agenda,
    "review": cmd_review,
    "search": cmd_search,
    "export": cmd_export,
}


def parse_arguments(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="VALIS - Personal Landscape Tracker",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py init "Bob" "Acme"                       # Create owner and root entity
  python main.py add "Alice" --kind person               # Add an entity sponsored by the owner
  python main.py schedule Alice --note call --date 01.02.2024
  python main.py connect Alice Acme employee             # Relate two entities
  python main.py health --date 2024-02-10                # Show on-track/delayed/overdue actions
  python main.py agenda --window 2w                      # Next actions in the next two weeks
        """
    )

    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help=f"Path to the database file (default: {config.database_filename})"
    )

    parser.add_argument(
        "--version",
        action="version",
        version="VALIS 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("init", help="Create the owner and the root entity")
    p.add_argument("owner", help="Name of the owner (a person)")
    p.add_argument("root", help="Name of the root entity")

    p = subparsers.add_parser("add", help="Add an entity")
    p.add_argument("name")
    p.add_argument("--kind", choices=[k.value for k in EntityKind], default=EntityKind.PERSON.value)
    p.add_argument("--sponsor", help="Sponsor name or id (default: the owner)")
    p.add_argument("--root", action="store_true", help="Create the entity in the Root state")

    p = subparsers.add_parser("sponsor", help="Change or remove the sponsor of an entity")
    p.add_argument("entity")
    p.add_argument("sponsor", nargs="?", help="New sponsor; omit to detach")

    p = subparsers.add_parser("state", help="Change the lifecycle state of an entity")
    p.add_argument("entity")
    p.add_argument("state", choices=[s.value for s in RelStateKind])
    p.add_argument("--since", type=parse_date)
    p.add_argument("--until", type=parse_date)

    p = subparsers.add_parser("schedule", help="Set the next action (no options clears it)")
    p.add_argument("entity")
    p.add_argument("--note")
    p.add_argument("--date", type=parse_date)

    p = subparsers.add_parser("connect", help="Relate two entities")
    p.add_argument("source")
    p.add_argument("target")
    p.add_argument("label")
    p.add_argument("--mutual", action="store_true", help="The relationship holds both ways")

    p = subparsers.add_parser("disconnect", help="Remove a relationship")
    p.add_argument("source")
    p.add_argument("target")
    p.add_argument("label")

    p = subparsers.add_parser("show", help="Show an entity with its surroundings")
    p.add_argument("entity")

    p = subparsers.add_parser("events", help="List recorded events")
    p.add_argument("entity", nargs="?")
    p.add_argument("--label")
    p.add_argument("--since", type=parse_date)
    p.add_argument("--until", type=parse_date)

    p = subparsers.add_parser("health", help="Status of every scheduled action")
    p.add_argument("--date", type=parse_date, help="Reference date (default: today)")

    p = subparsers.add_parser("delays", help="Late actions as delay events")
    p.add_argument("--date", type=parse_date, help="Reference date (default: today)")
    p.add_argument("--materialize", action="store_true", help="Store the delay events in the log")

    p = subparsers.add_parser("agenda", help="Next actions within a time window")
    p.add_argument("--window", type=TimeWindow.parse, help="e.g. 3d, 2w, 1m, 1y")
    p.add_argument("--date", type=parse_date, help="Start of the window (default: today)")

    p = subparsers.add_parser("review", help="Propose entities to review, or mark one as reviewed")
    p.add_argument("entity", nargs="?")
    p.add_argument("--note")
    p.add_argument("--date", type=parse_date, help="Reference date (default: today)")

    p = subparsers.add_parser("search", help="Fuzzy search entities")
    p.add_argument("pattern", nargs="+")

    p = subparsers.add_parser("export", help="Export the landscape as JSON lines")
    p.add_argument("path", nargs="?")

    p = subparsers.add_parser("import", help="Replace the landscape with a JSON-lines export")
    p.add_argument("path")

    return parser.parse_args(argv)


def run_command(args) -> None:
    """
    Load the landscape, run one command and save the result.
    """
    with DatabaseManager(args.db or config.database_filename) as db:
        db.initialize_database()

        if args.command == "import":
            if db.last_event_id() or db.load_entities():
                raise LandscapeError("Refusing to import into a non-empty database")
            landscape = import_jsonl(args.path, Landscape.from_config(config))
            db.save(landscape)
            print(f"{len(landscape.registry)} entities imported")
            return

        landscape = db.load(Landscape.from_config(config))
        COMMANDS[args.command](landscape, args)
        db.save(landscape)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_arguments(argv)
    setup_logging()

    try:
        run_command(args)
    except LandscapeError as e:
        logging.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
