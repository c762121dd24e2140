"""
Construct OS Command Line Interface

Provides command-line access to the local workspace: status, backups,
import/export, cloud sync, configuration and the reference sync endpoint.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from constructos.core.config import ConfigStore, ConstructSettings, get_settings
from constructos.core.workspace import Workspace
from constructos.main import run_sync_server, setup_logging
from constructos.persistence.errors import SnapshotError

# CLI key -> (config section, field name)
CONFIG_KEYS = {
    "passphrase": ("security", "passphrase"),
    "cloud-enabled": ("security", "cloud_enabled"),
    "cloud-endpoint": ("security", "cloud_endpoint"),
    "cloud-token": ("security", "cloud_token"),
    "sync-timeout": ("security", "sync_timeout"),
    "backup-interval": ("backup", "interval_minutes"),
    "backup-retention": ("backup", "retention"),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="constructos",
        description="Construct OS - local-first workshop data CLI",
    )
    parser.add_argument("--data-dir", type=Path, help="Data directory (default: $CONSTRUCTOS_DATA_DIR or ./data)")
    parser.add_argument("--log-level", help="Log level")
    parser.add_argument("--log-format", choices=["json", "console"], help="Log format")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Status command
    subparsers.add_parser("status", help="Show workspace status")

    # Backup commands
    backup_parser = subparsers.add_parser("backup", help="Backup operations")
    backup_sub = backup_parser.add_subparsers(dest="backup_command")

    backup_create = backup_sub.add_parser("create", help="Back up the current data")
    backup_create.add_argument("--label", help="Backup label")

    backup_sub.add_parser("list", help="List backups, newest first")

    backup_restore = backup_sub.add_parser("restore", help="Restore a backup")
    backup_restore.add_argument("backup_id", help="Backup id")

    backup_delete = backup_sub.add_parser("delete", help="Delete a backup")
    backup_delete.add_argument("backup_id", help="Backup id")

    backup_prune = backup_sub.add_parser("prune", help="Delete backups beyond retention")
    backup_prune.add_argument("--retention", type=int, help="Backups to keep (default: configured retention)")

    # Import/export commands
    export_parser = subparsers.add_parser("export", help="Export all data as JSON")
    export_parser.add_argument("path", help="Output file, or - for stdout")

    import_parser = subparsers.add_parser("import", help="Import collections from a JSON file")
    import_parser.add_argument("path", type=Path, help="Input file")

    # Sync command
    subparsers.add_parser("sync", help="Push the current data to the cloud endpoint")

    # Config commands
    config_parser = subparsers.add_parser("config", help="Configuration")
    config_sub = config_parser.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Show configuration")
    config_set = config_sub.add_parser("set", help="Change a setting")
    config_set.add_argument("key", choices=sorted(CONFIG_KEYS), help="Setting name")
    config_set.add_argument("value", help="New value")

    # Server command
    serve_parser = subparsers.add_parser("serve", help="Run the reference sync endpoint")
    serve_parser.add_argument("--host", help="Host to bind to")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument("--storage", type=Path, help="Payload file (default: in memory)")
    serve_parser.add_argument("--token", help="Required bearer token")

    return parser


def _settings_from_args(args: argparse.Namespace) -> ConstructSettings:
    overrides: dict[str, Any] = {}
    if args.data_dir:
        overrides["data_dir"] = args.data_dir
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    if args.log_format:
        overrides["log_format"] = args.log_format
    if not overrides:
        return get_settings()
    return ConstructSettings(**overrides)


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = _settings_from_args(args)
    except ValidationError as e:
        print(f"Error: invalid option: {e}", file=sys.stderr)
        return 1
    setup_logging(settings.log_level.value, settings.log_format)

    if args.command == "serve":
        run_sync_server(
            host=args.host,
            port=args.port,
            storage_path=args.storage,
            token=args.token,
            settings=settings,
        )
        return 0

    if args.command == "config":
        return cmd_config(settings, args, parser)

    if args.command == "backup" and args.backup_command is None:
        parser.parse_args(["backup", "--help"])

    try:
        return asyncio.run(dispatch(settings, args))
    except SnapshotError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


async def dispatch(settings: ConstructSettings, args: argparse.Namespace) -> int:
    """Run a workspace command."""
    async with Workspace(settings) as workspace:
        if args.command == "status":
            print(json.dumps(await workspace.get_status(), indent=2))

        elif args.command == "backup":
            await cmd_backup(workspace, args)

        elif args.command == "export":
            data = workspace.reconciler.export_data()
            if args.path == "-":
                sys.stdout.write(data.decode("utf-8") + "\n")
            else:
                Path(args.path).write_bytes(data)
                print(f"Exported {workspace.reconciler.snapshot.counts()} to {args.path}")

        elif args.command == "import":
            replaced = await workspace.reconciler.import_data(args.path.read_bytes())
            if replaced:
                print(f"Imported: {', '.join(replaced)}")
            else:
                print("Nothing to import")

        elif args.command == "sync":
            print(await workspace.reconciler.sync_now())

    return 0


async def cmd_backup(workspace: Workspace, args: argparse.Namespace) -> None:
    """Backup subcommands."""
    backups = workspace.backups

    if args.backup_command == "create":
        backup_id = await backups.create_backup(label=args.label)
        print(backup_id)

    elif args.backup_command == "list":
        summaries = await backups.list_backups()
        if not summaries:
            print("No backups")
        for summary in summaries:
            print(
                f"{summary.id}  {summary.created.isoformat(timespec='seconds')}  "
                f"{'encrypted' if summary.encrypted else 'plain':9}  "
                f"{summary.size:>8}  {summary.label or ''}"
            )

    elif args.backup_command == "restore":
        snapshot = await backups.restore_backup(args.backup_id)
        print(f"Restored {args.backup_id}: {snapshot.counts()}")

    elif args.backup_command == "delete":
        if await backups.delete_backup(args.backup_id):
            print(f"Deleted {args.backup_id}")
        else:
            print(f"Backup {args.backup_id} not found")

    elif args.backup_command == "prune":
        retention = args.retention
        if retention is None:
            retention = workspace.config_store.load_backup_settings().retention
        try:
            deleted = await workspace.store.prune(retention)
        except ValueError as e:
            raise SnapshotError(str(e)) from e
        print(f"Deleted {len(deleted)} backup(s)")


def cmd_config(settings: ConstructSettings, args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    """Show or change the local configuration."""
    config_store = ConfigStore(settings.resolved_config_path)

    if args.config_command == "show":
        security = config_store.load_security().model_dump(by_alias=True)
        security["passphrase"] = "********"
        if security.get("cloudToken"):
            security["cloudToken"] = "********"
        backup = config_store.load_backup_settings().model_dump(by_alias=True)
        print(json.dumps({"security": security, "backup": backup}, indent=2))
        return 0

    if args.config_command == "set":
        section, field = CONFIG_KEYS[args.key]
        try:
            if section == "security":
                config_store.update_security(**{field: args.value})
            else:
                config_store.update_backup_settings(**{field: args.value})
        except ValidationError as e:
            print(f"Error: invalid value for {args.key}: {e.errors()[0]['msg']}", file=sys.stderr)
            return 1
        print(f"{args.key} updated")
        return 0

    parser.parse_args(["config", "--help"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
