"""
On-disk persistence for the skatos store.

The whole store lives in a single JSON document::

    {"databases": {"<db>": {"<key>": "<value>"}}, "version": 1}

Every access happens under an advisory ``flock`` on a sibling ``store.lock``
file: shared for reads, exclusive for read-modify-write. The lock file holds
the pid of its last acquirer. New content is written to ``store.json.tmp``
and renamed over ``store.json`` so readers only ever see a complete
document.
"""

from __future__ import annotations

import contextlib
import fcntl
import json
import logging
import os
import time
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from .constants import (
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_STALE_LOCK_AGE,
    DIR_MODE,
    ERROR_CORRUPT_LAYOUT,
    ERROR_CORRUPT_STORE,
    ERROR_LOCK_TIMEOUT,
    ERROR_STALE_LOCK,
    FILE_MODE,
    LOCK_FILENAME,
    LOCK_POLL_INTERVAL,
    STORE_FORMAT_VERSION,
    TMP_SUFFIX,
)
from .exceptions import CorruptStoreError, LockTimeoutError, StoreIOError

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)


class StoreDocument:
    """In-memory form of store.json. Unknown top-level fields are carried through."""

    def __init__(
        self,
        databases: Optional[dict[str, dict[str, str]]] = None,
        version: int = STORE_FORMAT_VERSION,
        extra: Optional[dict[str, Any]] = None,
    ) -> None:
        self.databases: dict[str, dict[str, str]] = databases or {}
        self.version = version
        self.extra: dict[str, Any] = extra or {}

    @classmethod
    def from_json(cls, raw: Any, path: Path) -> StoreDocument:
        """Build a document from decoded JSON, checking the layout."""

        def _bad(detail: str) -> CorruptStoreError:
            return CorruptStoreError(ERROR_CORRUPT_LAYOUT.format(path=path, detail=detail))

        if not isinstance(raw, dict):
            raise _bad("top level is not an object")

        extra = {k: v for k, v in raw.items() if k not in ("databases", "version")}

        version = raw.get("version", STORE_FORMAT_VERSION)
        if not isinstance(version, int) or isinstance(version, bool):
            raise _bad("'version' is not an integer")
        if version > STORE_FORMAT_VERSION:
            logger.warning(
                "Store %s has format version %d; this skatos understands %d",
                path,
                version,
                STORE_FORMAT_VERSION,
            )

        databases_raw = raw.get("databases", {})
        if not isinstance(databases_raw, dict):
            raise _bad("'databases' is not an object")

        databases: dict[str, dict[str, str]] = {}
        for db_name, entries in databases_raw.items():
            if not isinstance(entries, dict):
                raise _bad(f"database '{db_name}' is not an object")
            for key, value in entries.items():
                if not isinstance(value, str):
                    raise _bad(f"value of '{key}' in '{db_name}' is not a string")
            if entries:
                databases[db_name] = dict(entries)

        return cls(databases=databases, version=version, extra=extra)

    def to_json(self) -> dict[str, Any]:
        doc: dict[str, Any] = dict(self.extra)
        doc["databases"] = {
            name: dict(sorted(entries.items()))
            for name, entries in sorted(self.databases.items())
            if entries
        }
        doc["version"] = self.version
        return doc


def _ensure_dir(path: Path) -> None:
    """Create path and any missing parents with owner-only permissions."""
    missing = []
    current = path
    while not current.exists():
        missing.append(current)
        if current.parent == current:
            break
        current = current.parent

    for directory in reversed(missing):
        try:
            os.mkdir(directory, DIR_MODE)
        except FileExistsError:
            continue
        except OSError as e:
            raise StoreIOError("Failed to create directory", str(directory), e)
        if os.name == "posix":
            # mkdir honours the umask, so apply the mode explicitly
            os.chmod(directory, DIR_MODE)
        logger.debug("Created directory %s", directory)


class StoreFile:
    """
    Load/flush primitives for store.json.

    Args:
        path: Location of store.json
        lock_timeout: Seconds to wait for the lock before LockTimeoutError
        stale_lock_age: Seconds after which a lock file whose recorded owner
            is no longer running is considered abandoned and is replaced
    """

    def __init__(
        self,
        path: Path | str,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        stale_lock_age: float = DEFAULT_STALE_LOCK_AGE,
    ) -> None:
        self.path = Path(path)
        self.lock_path = self.path.parent / LOCK_FILENAME
        self.tmp_path = self.path.with_name(self.path.name + TMP_SUFFIX)
        self.lock_timeout = lock_timeout
        self.stale_lock_age = stale_lock_age

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def _open_lock_file(self) -> int:
        try:
            return os.open(self.lock_path, os.O_RDWR | os.O_CREAT, FILE_MODE)
        except OSError as e:
            raise StoreIOError("Failed to open lock file", str(self.lock_path), e)

    def _lock_age(self, fd: int) -> float:
        try:
            return time.time() - os.fstat(fd).st_mtime
        except OSError:
            return 0.0

    def _is_current(self, fd: int) -> bool:
        """True while fd still refers to the file at lock_path."""
        try:
            return os.fstat(fd).st_ino == os.stat(self.lock_path).st_ino
        except FileNotFoundError:
            return False

    def _record_owner(self, fd: int) -> None:
        # The pid also refreshes mtime, which marks the last live acquirer
        with contextlib.suppress(OSError):
            os.ftruncate(fd, 0)
            os.pwrite(fd, f"{os.getpid()}\n".encode("ascii"), 0)

    @staticmethod
    def _owner_pid(fd: int) -> Optional[int]:
        try:
            raw = os.pread(fd, 32, 0)
        except OSError:
            return None
        try:
            return int(raw.decode("ascii").strip())
        except (UnicodeDecodeError, ValueError):
            return None

    def _owner_is_dead(self, fd: int) -> bool:
        """
        True only when the recorded owner pid names no running process.

        A lock file without a readable pid is never considered abandoned.
        """
        pid = self._owner_pid(fd)
        if pid is None or pid <= 0 or pid == os.getpid():
            return False
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return True
        except PermissionError:
            return False
        return False

    def _break_stale_lock(self, fd: int, age: float) -> int:
        """Replace an abandoned lock file with a fresh one and return its descriptor."""
        logger.warning(ERROR_STALE_LOCK.format(path=self.lock_path, age=age))
        os.close(fd)
        with contextlib.suppress(FileNotFoundError):
            os.unlink(self.lock_path)
        return self._open_lock_file()

    def _is_stale(self, fd: int) -> bool:
        return self._lock_age(fd) > self.stale_lock_age and self._owner_is_dead(fd)

    @contextlib.contextmanager
    def lock(self, exclusive: bool = True) -> Iterator[None]:
        """
        Hold the advisory lock on store.lock for the duration of the block.

        A lock is only broken when it has been untouched for stale_lock_age
        and the pid recorded in it no longer runs. A live holder is never
        pre-empted; waiting for it ends in LockTimeoutError.

        Raises:
            LockTimeoutError: If the lock is not acquired within lock_timeout
        """
        _ensure_dir(self.path.parent)
        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fd = self._open_lock_file()
        deadline = time.monotonic() + self.lock_timeout
        stale_checked = False
        try:
            while True:
                try:
                    fcntl.flock(fd, mode | fcntl.LOCK_NB)
                except BlockingIOError:
                    pass
                except OSError as e:
                    raise StoreIOError("Failed to lock", str(self.lock_path), e)
                else:
                    if self._is_current(fd):
                        break
                    # The file was replaced while we waited on it
                    logger.debug("Lock file %s was replaced, reopening", self.lock_path)
                    os.close(fd)
                    fd = self._open_lock_file()
                    continue

                if time.monotonic() >= deadline:
                    if not stale_checked and self._is_stale(fd):
                        stale_checked = True
                        fd = self._break_stale_lock(fd, self._lock_age(fd))
                        deadline = time.monotonic() + self.lock_timeout
                        continue
                    raise LockTimeoutError(
                        ERROR_LOCK_TIMEOUT.format(
                            path=self.lock_path, timeout=self.lock_timeout
                        )
                    )
                time.sleep(LOCK_POLL_INTERVAL)

            self._record_owner(fd)
            logger.debug(
                "Acquired %s lock on %s", "exclusive" if exclusive else "shared", self.lock_path
            )
            yield
        finally:
            with contextlib.suppress(OSError):
                fcntl.flock(fd, fcntl.LOCK_UN)
            with contextlib.suppress(OSError):
                os.close(fd)

    # ------------------------------------------------------------------
    # Load / flush
    # ------------------------------------------------------------------

    def _read_unlocked(self) -> StoreDocument:
        try:
            with self.path.open(encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError:
            return StoreDocument()
        except UnicodeDecodeError as e:
            raise CorruptStoreError(ERROR_CORRUPT_STORE.format(path=self.path), e)
        except OSError as e:
            raise StoreIOError("Failed to read store", str(self.path), e)

        if not text.strip():
            return StoreDocument()
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            raise CorruptStoreError(ERROR_CORRUPT_STORE.format(path=self.path), e)
        return StoreDocument.from_json(raw, self.path)

    def _write_unlocked(self, document: StoreDocument) -> None:
        payload = json.dumps(document.to_json(), indent=2, ensure_ascii=False) + "\n"
        try:
            fd = os.open(
                self.tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, FILE_MODE
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(self.tmp_path, self.path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(self.tmp_path)
            raise StoreIOError("Failed to write store", str(self.path), e)
        logger.debug("Flushed %d database(s) to %s", len(document.databases), self.path)

    def load(self) -> StoreDocument:
        """Load the store under a shared lock. A missing store reads as empty."""
        if not self.path.parent.exists():
            return StoreDocument()
        with self.lock(exclusive=False):
            return self._read_unlocked()

    def flush(self, document: StoreDocument) -> None:
        """Replace the store with document under an exclusive lock."""
        with self.lock(exclusive=True):
            self._write_unlocked(document)

    @contextlib.contextmanager
    def transaction(self) -> Iterator[StoreDocument]:
        """
        Read-modify-write under one exclusive lock.

        The yielded document is flushed when the block exits normally and
        changed it; if the block raises, the file on disk is left untouched.
        """
        with self.lock(exclusive=True):
            document = self._read_unlocked()
            before = document.to_json()
            yield document
            if document.to_json() != before:
                self._write_unlocked(document)
