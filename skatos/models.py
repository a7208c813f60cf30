"""Value types shared by the storage and projection layers."""

from __future__ import annotations

from dataclasses import dataclass

from .constants import DEFAULT_DATABASE


@dataclass(frozen=True)
class Entry:
    """A stored key/value pair and the database that holds it."""

    key: str
    value: str
    database: str = DEFAULT_DATABASE

    def sort_key(self) -> tuple[str, str]:
        return (self.key, self.database)


@dataclass
class ImportResult:
    """Outcome of a legacy import run."""

    imported: int = 0
    skipped: int = 0


@dataclass
class RestoreResult:
    """Outcome of restoring a JSON backup."""

    restored: int = 0
    skipped: int = 0
