"""
Projections of stored entries into .env text, shell exports and JSON backups.

All functions here are pure over the entries they are given, except
``restore_entries`` which writes through a SkatosStore.
"""

import json
import logging
from typing import IO, Any, Iterable, List, Optional, Sequence

from .constants import DEFAULT_DATABASE, ERROR_BACKUP_INVALID_JSON, ERROR_BACKUP_NOT_ARRAY
from .exceptions import BackupFormatError
from .models import Entry, RestoreResult

logger = logging.getLogger(__name__)

ENV_QUOTE_TRIGGERS = (" ", "\n", '"')
SHELL_QUOTE_ESCAPE = "'\\''"


def normalize_key(key: str) -> str:
    """
    Turn a stored key into an environment variable name.

    ASCII letters are uppercased, '-' and ' ' become '_', everything else
    is kept as is.
    """
    chars = []
    for char in key:
        if "a" <= char <= "z":
            chars.append(chr(ord(char) - 32))
        elif char in ("-", " "):
            chars.append("_")
        else:
            chars.append(char)
    return "".join(chars)


def filter_by_prefix(entries: Iterable[Entry], prefix: Optional[str]) -> List[Entry]:
    """Keep entries whose original (not normalized) key starts with prefix."""
    if not prefix:
        return list(entries)
    return [entry for entry in entries if entry.key.startswith(prefix)]


def _collapse(entries: Iterable[Entry]) -> dict:
    # Later entries win when two keys normalize to the same name.
    projected: dict = {}
    for entry in entries:
        name = normalize_key(entry.key)
        if name in projected:
            logger.debug("Key %r overrides an earlier entry for %s", entry.key, name)
        projected[name] = entry.value
    return projected


def quote_env_value(value: str) -> str:
    """Double-quote a value when it holds a space, newline or double quote."""
    if not any(trigger in value for trigger in ENV_QUOTE_TRIGGERS):
        return value
    return '"' + value.replace('"', '\\"') + '"'


def entries_to_env(entries: Iterable[Entry]) -> str:
    """Render ``KEY=VALUE`` lines joined by newlines, without a trailing newline."""
    return "\n".join(
        f"{name}={quote_env_value(value)}" for name, value in _collapse(entries).items()
    )


def shell_quote(value: str) -> str:
    """
    Single-quote a value for POSIX sh.

    Unlike shlex.quote the result is always quoted, so every export line
    has the same shape.
    """
    return "'" + value.replace("'", SHELL_QUOTE_ESCAPE) + "'"


def entries_to_exports(entries: Iterable[Entry]) -> str:
    """Render ``export KEY='VALUE'`` lines joined by newlines."""
    return "\n".join(
        f"export {name}={shell_quote(value)}" for name, value in _collapse(entries).items()
    )


def write_preview(entries: Sequence[Entry], sink: IO[str]) -> int:
    """Write the .env text for entries to sink and return the number of entries."""
    text = entries_to_env(entries)
    if text:
        sink.write(text + "\n")
    return len(entries)


# ----------------------------------------------------------------------
# JSON backup / restore
# ----------------------------------------------------------------------


def entries_to_backup(entries: Iterable[Entry]) -> str:
    """Serialize entries as a pretty-printed JSON array of objects."""
    payload = [
        {"key": entry.key, "value": entry.value, "database": entry.database}
        for entry in entries
    ]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def parse_backup(text: str, keep_databases: bool = False) -> List[Any]:
    """
    Parse backup text into a list of Entry objects (or raw items that are not
    valid entry objects, so callers can count them as skipped).

    Args:
        text: Backup file content
        keep_databases: Honour the per-entry "database" field instead of
            sending everything to the default database

    Raises:
        BackupFormatError: If the text is not JSON or not an array
    """
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise BackupFormatError(ERROR_BACKUP_INVALID_JSON.format(error=e), e)
    if not isinstance(raw, list):
        raise BackupFormatError(ERROR_BACKUP_NOT_ARRAY)

    items: List[Any] = []
    for item in raw:
        if (
            isinstance(item, dict)
            and isinstance(item.get("key"), str)
            and isinstance(item.get("value"), str)
        ):
            database = DEFAULT_DATABASE
            if keep_databases and isinstance(item.get("database"), str):
                database = item["database"]
            items.append(Entry(key=item["key"], value=item["value"], database=database))
        else:
            items.append(item)
    return items


def restore_entries(store, items: Iterable[Any]) -> RestoreResult:
    """
    Write parsed backup items through the store.

    Items that are not entries, or whose set fails validation, are skipped.
    """
    result = RestoreResult()
    entries = []
    for item in items:
        if isinstance(item, Entry):
            entries.append(item)
        else:
            logger.warning("Skipping malformed backup item: %r", item)
            result.skipped += 1
    stored, skipped = store.set_many(entries)
    result.restored = stored
    result.skipped += skipped
    return result
