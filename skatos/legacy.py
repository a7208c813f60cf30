"""
Adapter for the external ``skate`` key/value CLI.

Only ``skate list`` is used: its output is ``qualified_key<TAB>value`` per
line, where a qualified key is ``key@database``.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import TYPE_CHECKING, Callable, Optional, Union

from .constants import (
    DEFAULT_DATABASE,
    ERROR_LEGACY_FAILED,
    ERROR_LEGACY_MISSING,
    LEGACY_TOOL,
    QUALIFIER,
)
from .exceptions import LegacyToolError, LegacyToolMissingError
from .models import Entry

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]


class UnparsedLine:
    """A line of ``skate list`` output that could not be turned into an entry."""

    def __init__(self, lineno: int, text: str, reason: str) -> None:
        self.lineno = lineno
        self.text = text
        self.reason = reason

    def __repr__(self) -> str:
        return f"UnparsedLine({self.lineno}, {self.reason!r})"


def split_qualified_key(qualified: str) -> tuple[str, str]:
    """
    Split ``key@database`` on the last '@'.

    A missing or empty database part maps to the default database.
    """
    key, sep, database = qualified.rpartition(QUALIFIER)
    if not sep:
        return qualified, DEFAULT_DATABASE
    return key, database or DEFAULT_DATABASE


def parse_list_line(lineno: int, line: str) -> Union[Entry, UnparsedLine]:
    """Parse one ``qualified_key<TAB>value`` line."""
    qualified, sep, value = line.partition("\t")
    if not sep:
        return UnparsedLine(lineno, line, "no tab separator")
    key, database = split_qualified_key(qualified)
    if not key:
        return UnparsedLine(lineno, line, "empty key")
    return Entry(key=key, value=value, database=database)


class SkateCLI:
    """
    Runs the external skate binary and parses its listing.

    Args:
        binary: Name or path of the executable to look up on PATH
        runner: subprocess.run compatible callable (dependency injection for tests)
        which: shutil.which compatible callable
    """

    def __init__(
        self,
        binary: str = LEGACY_TOOL,
        runner: Optional[Runner] = None,
        which: Optional[Callable[[str], Optional[str]]] = None,
    ) -> None:
        self.binary = binary
        self._runner = runner or subprocess.run
        self._which = which or shutil.which

    def locate(self) -> str:
        """Return the resolved executable path or raise LegacyToolMissingError."""
        path = self._which(self.binary)
        if not path:
            raise LegacyToolMissingError(ERROR_LEGACY_MISSING.format(tool=self.binary))
        return path

    def list_output(self) -> str:
        """
        Run ``skate list`` to completion and return its decoded stdout.

        Raises:
            LegacyToolMissingError: If the binary is not on PATH
            LegacyToolError: If the process cannot be started, exits non-zero
                or prints something other than UTF-8
        """
        executable = self.locate()
        logger.debug("Running %s list", executable)
        try:
            proc = self._runner(
                [executable, "list"],
                capture_output=True,
                check=False,
            )
        except OSError as e:
            raise LegacyToolError(f"Failed to run '{self.binary}'", executable, e)

        if proc.returncode != 0:
            stderr = (proc.stderr or b"").decode("utf-8", errors="replace").strip()
            raise LegacyToolError(
                ERROR_LEGACY_FAILED.format(
                    tool=self.binary, status=proc.returncode, stderr=stderr
                )
            )
        try:
            return (proc.stdout or b"").decode("utf-8")
        except UnicodeDecodeError as e:
            raise LegacyToolError(f"'{self.binary} list' printed invalid UTF-8", None, e)

    def entries(self) -> Iterator[Union[Entry, UnparsedLine]]:
        """
        Yield parsed entries lazily.

        The subprocess has already exited and been reaped by the time the
        first item is produced.
        """
        output = self.list_output()
        return self._parse(output)

    @staticmethod
    def _parse(output: str) -> Iterator[Union[Entry, UnparsedLine]]:
        for lineno, line in enumerate(output.split("\n"), start=1):
            if not line.strip():
                continue
            yield parse_list_line(lineno, line)
