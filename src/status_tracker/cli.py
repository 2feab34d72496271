"""Command-line interface for the status tracker."""

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from status_tracker.config import StorageBackend, get_settings
from status_tracker.container import Container
from status_tracker.domain.status import Status, StatusHistory
from status_tracker.exceptions import StatusTrackerError
from status_tracker.logging_config import configure_logging, log_context
from status_tracker.repositories.documents import history_to_document, status_to_document


def get_default_db_path() -> Path:
    """Get the default database path in user's home directory."""
    return Path.home() / ".status_tracker" / "status.db"


def resolve_db_path(database: str | None) -> Path:
    """The --database argument, else a configured sqlite_path, else the default."""
    if database:
        return Path(database)
    settings = get_settings()
    if "sqlite_path" in settings.model_fields_set:
        return settings.sqlite_path
    return get_default_db_path()


def build_container(database: str | None) -> Container:
    """Container for the configured backend, SQLite at the resolved path."""
    settings = get_settings()
    if database or settings.storage_backend == StorageBackend.SQLITE:
        settings = settings.model_copy(
            update={
                "storage_backend": StorageBackend.SQLITE,
                "sqlite_path": resolve_db_path(database),
            }
        )
    return Container(settings)


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def _status_payload(status: Status) -> dict[str, Any]:
    return status_to_document(status)


def _history_payload(entry: StatusHistory) -> dict[str, Any]:
    return history_to_document(entry)


def _parse_fields(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    fields = json.loads(raw)
    if not isinstance(fields, dict):
        raise ValueError("--fields must be a JSON object")
    return fields


def _run(args: argparse.Namespace, action) -> int:
    container = build_container(args.database)
    try:
        return action(container)
    except StatusTrackerError as e:
        print(f"Error: {e.message}")
        return 1
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    finally:
        container.close()


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize a new database."""
    db_path = resolve_db_path(args.database)

    if db_path.exists() and not args.force:
        print(f"Database already exists at {db_path}")
        print("Use --force to reinitialize (WARNING: will delete existing data)")
        return 1

    if db_path.exists() and args.force:
        db_path.unlink()

    container = build_container(str(db_path))
    try:
        container.storage
    finally:
        container.close()

    print(f"Initialized database at {db_path}")
    return 0


def cmd_create(args: argparse.Namespace) -> int:
    """Create a status."""

    def action(container: Container) -> int:
        fields = _parse_fields(args.fields)
        flag_values = {
            "client_id": args.client_id,
            "tracking_id": args.tracking_id,
            "source_id": args.source_id,
            "status_type": args.status_type,
            "current_stage": args.stage,
            "status_summary": args.summary,
            "advisor_id": args.advisor_id,
            "created_by": args.created_by,
        }
        fields.update({k: v for k, v in flag_values.items() if v is not None})
        status = container.status_store.create(fields)
        _print_json(_status_payload(status))
        return 0

    return _run(args, action)


def cmd_get(args: argparse.Namespace) -> int:
    """Look up a status by ID, tracking ID or source ID."""

    def action(container: Container) -> int:
        store = container.status_store
        if args.tracking_id:
            status = store.get_by_tracking_id(args.tracking_id)
        elif args.source_id:
            status = store.get_by_source_id(args.source_id)
        else:
            status = store.get_by_id(args.id)
        _print_json(_status_payload(status))
        return 0

    return _run(args, action)


def cmd_update(args: argparse.Namespace) -> int:
    """Apply a sparse update to a status."""

    def action(container: Container) -> int:
        fields = _parse_fields(args.fields)
        if args.stage is not None:
            fields["current_stage"] = args.stage
        if args.summary is not None:
            fields["status_summary"] = args.summary
        if args.reason is not None:
            fields["change_reason"] = args.reason
        status = container.status_store.update(
            args.status_id,
            fields,
            updated_by=args.by,
            expected_version=args.expected_version,
        )
        _print_json(_status_payload(status))
        return 0

    return _run(args, action)


def cmd_history(args: argparse.Namespace) -> int:
    """Show the change history of a status."""

    def action(container: Container) -> int:
        entries = container.status_store.get_history(args.status_id)
        _print_json([_history_payload(entry) for entry in entries])
        return 0

    return _run(args, action)


def cmd_list_client(args: argparse.Namespace) -> int:
    """List a client's statuses, oldest first."""

    def action(container: Container) -> int:
        statuses = container.status_store.list_by_client(
            args.client_id, status_type=args.status_type
        )
        _print_json([_status_payload(s) for s in statuses])
        return 0

    return _run(args, action)


def cmd_search(args: argparse.Namespace) -> int:
    """Search statuses by exact filters and text."""

    def action(container: Container) -> int:
        criteria = {
            "client_id": args.client_id,
            "advisor_id": args.advisor_id,
            "status_type": args.status_type,
            "priority": args.priority,
            "category": args.category,
            "current_stage": args.stage,
            "text_search": args.text,
        }
        statuses = container.search_engine.search(
            {k: v for k, v in criteria.items() if v is not None}
        )
        _print_json([_status_payload(s) for s in statuses])
        return 0

    return _run(args, action)


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    print("Status Tracker v0.1.0")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="status-tracker",
        description="Status Tracker - client workflow status records with audit history",
    )
    parser.add_argument(
        "--database",
        "-d",
        help="Path to SQLite database file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    init_parser = subparsers.add_parser("init", help="Initialize a new database")
    init_parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force reinitialization (deletes existing data)",
    )
    init_parser.set_defaults(func=cmd_init)

    create_parser = subparsers.add_parser("create", help="Create a status")
    create_parser.add_argument("--client-id", help="Owning client ID")
    create_parser.add_argument("--tracking-id", help="Explicit tracking ID")
    create_parser.add_argument("--source-id", help="ID in the originating system")
    create_parser.add_argument("--type", dest="status_type", help="Status type")
    create_parser.add_argument("--stage", help="Initial stage (default: initiated)")
    create_parser.add_argument("--summary", help="Status summary")
    create_parser.add_argument("--advisor-id", help="Advisor ID")
    create_parser.add_argument("--created-by", help="Creating user")
    create_parser.add_argument("--fields", help="Additional fields as a JSON object")
    create_parser.set_defaults(func=cmd_create)

    get_parser = subparsers.add_parser("get", help="Get a status")
    key_group = get_parser.add_mutually_exclusive_group(required=True)
    key_group.add_argument("--id", help="Status ID")
    key_group.add_argument("--tracking-id", help="Tracking ID")
    key_group.add_argument("--source-id", help="Source system ID")
    get_parser.set_defaults(func=cmd_get)

    update_parser = subparsers.add_parser("update", help="Update a status")
    update_parser.add_argument("status_id", help="Status ID")
    update_parser.add_argument("--by", required=True, help="Updating user")
    update_parser.add_argument(
        "--expected-version", type=int, default=None, help="Fail unless at this version"
    )
    update_parser.add_argument("--stage", help="New stage")
    update_parser.add_argument("--summary", help="New summary")
    update_parser.add_argument("--reason", help="Reason recorded in history")
    update_parser.add_argument("--fields", help="Fields to change as a JSON object")
    update_parser.set_defaults(func=cmd_update)

    history_parser = subparsers.add_parser("history", help="Show status history")
    history_parser.add_argument("status_id", help="Status ID")
    history_parser.set_defaults(func=cmd_history)

    list_parser = subparsers.add_parser("list-client", help="List a client's statuses")
    list_parser.add_argument("client_id", help="Client ID")
    list_parser.add_argument("--type", dest="status_type", help="Filter by status type")
    list_parser.set_defaults(func=cmd_list_client)

    search_parser = subparsers.add_parser("search", help="Search statuses")
    search_parser.add_argument("--client-id", help="Filter by client")
    search_parser.add_argument("--advisor-id", help="Filter by advisor")
    search_parser.add_argument("--type", dest="status_type", help="Filter by status type")
    search_parser.add_argument("--priority", help="Filter by priority")
    search_parser.add_argument("--category", help="Filter by category")
    search_parser.add_argument("--stage", help="Filter by current stage")
    search_parser.add_argument("--text", help="Case-insensitive substring search")
    search_parser.set_defaults(func=cmd_search)

    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging()
    with log_context(command=args.command):
        return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
