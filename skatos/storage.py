import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from skatos.constants import DEFAULT_DATABASE
from skatos.exceptions import ValidationError
from skatos.legacy import SkateCLI, UnparsedLine
from skatos.models import Entry, ImportResult
from skatos.persistence import StoreDocument, StoreFile
from skatos.validation import NameValidator, ValueValidator

logger = logging.getLogger(__name__)


class SkatosStore:
    """
    Storage engine over the persistent store file.

    This class provides a unified interface for:
    - Setting, reading and deleting entries within named databases
    - Ordered listings of entries, keys and databases
    - Importing entries from the external skate CLI

    Every public call re-reads the store file, so a long-lived instance
    observes writes made by other processes.
    """

    def __init__(
        self,
        store_file: Union[StoreFile, Path, str],
        legacy: Optional[SkateCLI] = None,
    ):
        """
        Initialize the store.

        Args:
            store_file: StoreFile instance or path to store.json
            legacy: Optional adapter for the skate binary (dependency injection)
        """
        if not isinstance(store_file, StoreFile):
            store_file = StoreFile(store_file)
        self.store_file = store_file
        self._legacy = legacy or SkateCLI()

    @property
    def path(self) -> Path:
        return self.store_file.path

    @staticmethod
    def _database(db: Optional[str]) -> str:
        return NameValidator.validate_database(db if db is not None else DEFAULT_DATABASE)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def set(self, key: str, value: str, db: Optional[str] = None) -> None:
        """
        Insert or replace an entry.

        Raises:
            InvalidNameError: If key or database name is invalid
            ValueTooLargeError: If value exceeds the size limit
        """
        key = NameValidator.validate_key(key)
        database = self._database(db)
        value = ValueValidator.validate_value(value)

        with self.store_file.transaction() as doc:
            doc.databases.setdefault(database, {})[key] = value
        logger.debug("Set %s in database %s", key, database)

    def delete(self, key: str, db: Optional[str] = None) -> bool:
        """Remove an entry. Returns False when there was nothing to remove."""
        database = self._database(db)
        removed = False
        with self.store_file.transaction() as doc:
            entries = doc.databases.get(database)
            if entries is not None and key in entries:
                del entries[key]
                removed = True
                if not entries:
                    del doc.databases[database]
        logger.debug("Delete %s from %s: %s", key, database, removed)
        return removed

    def set_many(self, entries: Iterable[Entry]) -> tuple[int, int]:
        """
        Apply a batch of entries under a single lock.

        Entries that fail validation are skipped and logged.

        Returns:
            tuple: (stored, skipped)
        """
        stored = skipped = 0
        with self.store_file.transaction() as doc:
            for entry in entries:
                try:
                    key = NameValidator.validate_key(entry.key)
                    database = self._database(entry.database)
                    value = ValueValidator.validate_value(entry.value)
                except ValidationError as e:
                    logger.warning("Skipping entry %r: %s", entry.key, e)
                    skipped += 1
                    continue
                doc.databases.setdefault(database, {})[key] = value
                stored += 1
        return stored, skipped

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load(self) -> StoreDocument:
        return self.store_file.load()

    def get(self, key: str, db: Optional[str] = None) -> Optional[str]:
        """Return the stored value, or None when the key is absent."""
        database = self._database(db)
        return self._load().databases.get(database, {}).get(key)

    def list(self, db: Optional[str] = None) -> List[Entry]:
        """
        List entries ordered by key, then database.

        Args:
            db: Restrict to one database; None lists every database
        """
        doc = self._load()
        if db is None:
            names = list(doc.databases)
        else:
            names = [self._database(db)]

        entries = [
            Entry(key=key, value=value, database=name)
            for name in names
            for key, value in doc.databases.get(name, {}).items()
        ]
        return sorted(entries, key=Entry.sort_key)

    def list_keys(self, db: Optional[str] = None) -> List[str]:
        """List keys in order. A key present in several databases appears once."""
        seen: dict[str, None] = {}
        for entry in self.list(db):
            seen.setdefault(entry.key, None)
        return list(seen)

    def list_databases(self) -> List[str]:
        """List the databases that currently hold at least one entry."""
        doc = self._load()
        return sorted(name for name, entries in doc.databases.items() if entries)

    def has_database(self, db: str) -> bool:
        return self._database(db) in self.list_databases()

    # ------------------------------------------------------------------
    # Legacy import
    # ------------------------------------------------------------------

    def import_from_skate(self) -> ImportResult:
        """
        Copy every entry listed by ``skate list`` into this store.

        Raises:
            LegacyToolMissingError: If skate is not on PATH
            LegacyToolError: If skate fails
        """
        result = ImportResult()
        parsed: List[Entry] = []
        for item in self._legacy.entries():
            if isinstance(item, UnparsedLine):
                logger.warning("Skipping skate output line %d: %s", item.lineno, item.reason)
                result.skipped += 1
                continue
            parsed.append(item)

        stored, skipped = self.set_many(parsed)
        result.imported = stored
        result.skipped += skipped
        logger.info(
            "Imported %d entries from skate (%d skipped)", result.imported, result.skipped
        )
        return result
