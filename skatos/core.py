#!/usr/bin/env python3
# core.py - skatos command handlers: store entries and derive .env / export output

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .completions import SHELLS, CompletingParser, generate
from .config import SkatosConfig
from .constants import (
    DEFAULT_BACKUP_FILE,
    DEFAULT_DATABASE,
    DEFAULT_ENV_FILE,
    ERROR_DATABASE_NOT_FOUND,
    FILE_MODE,
)
from .exceptions import DatabaseNotFoundError, SkatosError, StoreIOError
from .models import Entry
from .persistence import StoreFile
from .projection import (
    entries_to_backup,
    entries_to_env,
    entries_to_exports,
    filter_by_prefix,
    parse_backup,
    restore_entries,
    write_preview,
)
from .storage import SkatosStore
from .styling import OutputStyle, StyledFormatter, get_style
from .validation import PathValidator

logger = logging.getLogger(__name__)


def _configure_logging(args: argparse.Namespace, style: OutputStyle) -> None:
    """Send log records to stderr through the styled formatter."""
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    else:
        level = logging.WARNING

    root = logging.getLogger()
    # main() configures twice (before and after config.ini); keep one handler
    for existing in root.handlers[:]:
        if isinstance(existing.formatter, StyledFormatter):
            root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(StyledFormatter(style))
    root.addHandler(handler)
    root.setLevel(level)


def _handle_error(error: SkatosError) -> None:
    """Handle errors with appropriate messaging. Let the CLI decide exit codes."""
    logger.error("%s Error: %s", type(error).__name__, error)
    if error.original_exception is not None:
        logger.error("  Original error: %s", error.original_exception)
    # Re-raise to let the CLI layer map to exit codes
    raise error


def _open_store(config: SkatosConfig) -> SkatosStore:
    store_file = StoreFile(
        config.store_path,
        lock_timeout=config.lock_timeout,
        stale_lock_age=config.stale_lock_age,
    )
    return SkatosStore(store_file)


def _write_output_file(path: str, content: str) -> Path:
    """Write content to path, creating it owner-readable only."""
    target = PathValidator.validate_output_path(path)
    try:
        fd = os.open(target, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise StoreIOError("Failed to write file", str(target), e)
    logger.debug("Wrote %d bytes to %s", len(content.encode("utf-8")), target)
    return target


def _read_input_file(path: str) -> str:
    source = PathValidator.validate_input_path(path)
    try:
        return source.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise StoreIOError("Failed to read file", str(source), e)


def _create_argument_parser() -> CompletingParser:
    """Create and configure the argument parser."""
    from . import __version__

    parser = CompletingParser(
        prog="skatos",
        description="Manage a namespaced key/value store and generate environment files from it",
        epilog='Example: eval "$(skatos export)"',
    )

    verbosity = parser.add_mutually_exclusive_group()
    parser.remember(
        verbosity.add_argument(
            "--quiet",
            action="store_true",
            help="Reduce logging output (only errors)",
        )
    )
    parser.remember(
        verbosity.add_argument(
            "--verbose",
            action="store_true",
            help="Increase logging verbosity (debug details)",
        )
    )

    parser.add_argument(
        "--home",
        metavar="PATH",
        help="Store directory (default: $SKATOS_HOME, then the user config directory)",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
        help="Show program's version number and exit",
    )

    subparsers = parser.add_subparsers(dest="command")

    env_parser = parser.add_command(
        subparsers,
        "env",
        help="Generate .env file from all entries",
        description="Write every entry to a .env file, keys normalized to VARIABLE_NAMES",
    )
    env_parser.add_argument(
        "-o",
        "--output",
        metavar="PATH",
        help=f"Output file (default: {DEFAULT_ENV_FILE})",
    )
    env_parser.add_argument(
        "-f", "--filter", metavar="PREFIX", help="Only keys starting with PREFIX"
    )

    env_db_parser = parser.add_command(
        subparsers,
        "env-from-db",
        help="Generate .env file from one database",
        description="Write the entries of a single database to a .env file",
    )
    env_db_parser.add_argument("database", metavar="DATABASE", help="Database name")
    env_db_parser.add_argument(
        "-o",
        "--output",
        metavar="PATH",
        help=f"Output file (default: {DEFAULT_ENV_FILE})",
    )

    preview_parser = parser.add_command(
        subparsers,
        "preview",
        help="Preview environment variables without writing a file",
    )
    preview_parser.add_argument(
        "-f", "--filter", metavar="PREFIX", help="Only keys starting with PREFIX"
    )

    export_parser = parser.add_command(
        subparsers,
        "export",
        help="Print shell export lines",
        description="Print POSIX sh export lines, suitable for eval",
    )
    export_parser.add_argument(
        "-d", "--database", metavar="DATABASE", help="Only entries of DATABASE"
    )
    export_parser.add_argument(
        "-f", "--filter", metavar="PREFIX", help="Only keys starting with PREFIX"
    )

    set_parser = parser.add_command(subparsers, "set", help="Set a key-value pair")
    set_parser.add_argument("key", metavar="KEY", help="Key name")
    set_parser.add_argument("value", metavar="VALUE", help="Value")
    set_parser.add_argument(
        "-d",
        "--database",
        metavar="DATABASE",
        default=DEFAULT_DATABASE,
        help=f"Target database (default: {DEFAULT_DATABASE})",
    )

    get_parser = parser.add_command(subparsers, "get", help="Get a value")
    get_parser.add_argument("key", metavar="KEY", help="Key name")
    get_parser.add_argument(
        "-d",
        "--database",
        metavar="DATABASE",
        default=DEFAULT_DATABASE,
        help=f"Database to read (default: {DEFAULT_DATABASE})",
    )

    list_parser = parser.add_command(subparsers, "list", help="List all entries")
    list_parser.add_argument(
        "-d", "--database", metavar="DATABASE", help="Only entries of DATABASE"
    )

    keys_parser = parser.add_command(subparsers, "keys", help="List all keys")
    keys_parser.add_argument(
        "-d", "--database", metavar="DATABASE", help="Only keys of DATABASE"
    )

    parser.add_command(subparsers, "dbs", help="List all databases")

    delete_parser = parser.add_command(subparsers, "delete", help="Delete a key")
    delete_parser.add_argument("key", metavar="KEY", help="Key name")
    delete_parser.add_argument(
        "-d",
        "--database",
        metavar="DATABASE",
        default=DEFAULT_DATABASE,
        help=f"Database to delete from (default: {DEFAULT_DATABASE})",
    )

    backup_parser = parser.add_command(
        subparsers, "backup", help="Backup all data to a JSON file"
    )
    backup_parser.add_argument(
        "-o",
        "--output",
        metavar="PATH",
        help=f"Output file (default: {DEFAULT_BACKUP_FILE})",
    )

    restore_parser = parser.add_command(
        subparsers,
        "restore",
        help="Restore data from a JSON file",
        description="Restore entries from a backup; everything goes to the default database",
    )
    restore_parser.add_argument("input", metavar="PATH", help="Input JSON file path")
    restore_parser.add_argument(
        "--keep-databases",
        action="store_true",
        help="Restore each entry into the database recorded in the backup",
    )

    parser.add_command(subparsers, "import", help="Import entries from the skate CLI")

    completions_parser = parser.add_command(
        subparsers, "completions", help="Print a shell completion script"
    )
    completions_parser.add_argument("shell", choices=SHELLS, help="Target shell")

    return parser


# ----------------------------------------------------------------------
# Command handlers
# ----------------------------------------------------------------------


def _print(text: str = "") -> None:
    print(text, file=sys.stdout)


def _cmd_env(
    store: SkatosStore, style: OutputStyle, *, output: str, prefix: Optional[str]
) -> None:
    entries = filter_by_prefix(store.list(), prefix)
    target = _write_output_file(output, entries_to_env(entries))
    _print(
        f"{style.success('Generated')} {style.count(len(entries))} "
        f"environment variables to {style.path(str(target))}"
    )


def _cmd_env_from_db(
    store: SkatosStore, style: OutputStyle, *, database: str, output: str
) -> None:
    if not store.has_database(database):
        raise DatabaseNotFoundError(ERROR_DATABASE_NOT_FOUND.format(database=database))
    entries = store.list(database)
    target = _write_output_file(output, entries_to_env(entries))
    _print(
        f"{style.success('Generated')} {style.count(len(entries))} "
        f"environment variables from database {style.database(database)} "
        f"to {style.path(str(target))}"
    )


def _cmd_preview(store: SkatosStore, style: OutputStyle, *, prefix: Optional[str]) -> None:
    entries = filter_by_prefix(store.list(), prefix)
    if not entries:
        _print(style.info("No entries found"))
        return
    _print(style.header("Preview of environment variables:"))
    write_preview(entries, sys.stdout)


def _cmd_export(
    store: SkatosStore, *, database: Optional[str], prefix: Optional[str]
) -> None:
    entries = filter_by_prefix(store.list(database), prefix)
    text = entries_to_exports(entries)
    if text:
        _print(text)


def _cmd_set(store: SkatosStore, style: OutputStyle, *, key: str, value: str, database: str) -> None:
    store.set(key, value, database)
    _print(f"{style.success('Set')} {style.key(key)} in {style.database(database)}")


def _cmd_get(store: SkatosStore, style: OutputStyle, *, key: str, database: str) -> None:
    value = store.get(key, database)
    if value is None:
        print(
            style.warning(f"Key '{key}' not found in database '{database}'"),
            file=sys.stderr,
        )
        return
    _print(value)


def _cmd_list(store: SkatosStore, style: OutputStyle, *, database: Optional[str]) -> None:
    for entry in store.list(database):
        _print(f"{style.key(entry.key)}\t{style.value(entry.value)}")


def _cmd_keys(store: SkatosStore, style: OutputStyle, *, database: Optional[str]) -> None:
    for key in store.list_keys(database):
        _print(style.key(key))


def _cmd_dbs(store: SkatosStore, style: OutputStyle) -> None:
    for name in store.list_databases():
        _print(style.database(name))


def _cmd_delete(store: SkatosStore, style: OutputStyle, *, key: str, database: str) -> None:
    if store.delete(key, database):
        _print(f"{style.success('Deleted')} {style.key(key)}")
    else:
        _print(style.info(f"Key '{key}' not found in database '{database}'"))


def _cmd_backup(store: SkatosStore, style: OutputStyle, *, output: str) -> None:
    entries: List[Entry] = store.list()
    target = _write_output_file(output, entries_to_backup(entries))
    _print(
        f"{style.success('Backed up')} {style.count(len(entries))} entries "
        f"to {style.path(str(target))}"
    )


def _cmd_restore(
    store: SkatosStore, style: OutputStyle, *, source: str, keep_databases: bool
) -> None:
    items = parse_backup(_read_input_file(source), keep_databases=keep_databases)
    result = restore_entries(store, items)
    _print(
        f"{style.success('Restored')} {style.count(result.restored)} entries "
        f"from {style.path(source)}"
    )
    if result.skipped:
        logger.warning("Skipped %d invalid entries", result.skipped)


def _cmd_import(store: SkatosStore, style: OutputStyle) -> None:
    result = store.import_from_skate()
    _print(
        f"{style.success('Imported')} {style.count(result.imported)} entries from skate"
    )
    if result.skipped:
        logger.warning("Skipped %d lines of skate output", result.skipped)


def _dispatch(
    args: argparse.Namespace,
    parser: CompletingParser,
    config: SkatosConfig,
    style: OutputStyle,
) -> None:
    command = args.command

    if command == "completions":
        sys.stdout.write(generate(parser, args.shell))
        return

    store = _open_store(config)

    if command == "env":
        _cmd_env(store, style, output=args.output or config.env_file, prefix=args.filter)
    elif command == "env-from-db":
        _cmd_env_from_db(
            store, style, database=args.database, output=args.output or config.env_file
        )
    elif command == "preview":
        _cmd_preview(store, style, prefix=args.filter)
    elif command == "export":
        _cmd_export(store, database=args.database, prefix=args.filter)
    elif command == "set":
        _cmd_set(store, style, key=args.key, value=args.value, database=args.database)
    elif command == "get":
        _cmd_get(store, style, key=args.key, database=args.database)
    elif command == "list":
        _cmd_list(store, style, database=args.database)
    elif command == "keys":
        _cmd_keys(store, style, database=args.database)
    elif command == "dbs":
        _cmd_dbs(store, style)
    elif command == "delete":
        _cmd_delete(store, style, key=args.key, database=args.database)
    elif command == "backup":
        _cmd_backup(store, style, output=args.output or config.backup_file)
    elif command == "restore":
        _cmd_restore(
            store, style, source=args.input, keep_databases=args.keep_databases
        )
    elif command == "import":
        _cmd_import(store, style)


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Parse arguments, load configuration and run the requested command."""
    parser = _create_argument_parser()
    args = parser.parse_args(argv)

    color = "never" if args.no_color else "auto"
    _configure_logging(args, get_style(sys.stderr, color))

    if not getattr(args, "command", None):
        parser.print_help()
        return

    try:
        config = SkatosConfig.load(home_override=args.home)
        if args.no_color:
            config.color = "never"
        # Re-style stderr now that config.ini may have set a color preference
        _configure_logging(args, get_style(sys.stderr, config.color))
        _dispatch(args, parser, config, get_style(sys.stdout, config.color))
    except SkatosError as e:
        _handle_error(e)


if __name__ == "__main__":
    main()
