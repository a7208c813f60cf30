"""
Custom exceptions for skatos - namespaced key/value store and .env generator
"""

from typing import Optional

from .constants import (
    EXIT_CORRUPT_STORE,
    EXIT_FAILURE,
    EXIT_INVALID_ARGS,
    EXIT_LEGACY_TOOL_MISSING,
)


class SkatosError(Exception):
    """Base exception for skatos errors."""

    exit_code = EXIT_FAILURE

    def __init__(self, message: str, original_exception: Optional[Exception] = None):
        """
        Initialize skatos error.

        Args:
            message: Error message
            original_exception: Original exception that caused this error
        """
        self.message = message
        self.original_exception = original_exception
        super().__init__(self.message)


class ConfigError(SkatosError):
    """Configuration-related errors."""


class ValidationError(SkatosError):
    """Input validation errors."""

    exit_code = EXIT_INVALID_ARGS


class InvalidNameError(ValidationError):
    """Raised when a key or database name is rejected."""
    pass


class ValueTooLargeError(ValidationError):
    """Raised when a value exceeds the size limit."""
    pass


class BackupFormatError(ValidationError):
    """Raised when a backup file cannot be read as an entry array."""
    pass


class StoreError(SkatosError):
    """Store-related errors."""


class StoreIOError(StoreError):
    """Filesystem or subprocess I/O failure."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        original_exception: Optional[Exception] = None,
    ):
        """
        Initialize I/O error.

        Args:
            message: Error message
            path: Offending file path, appended to the message when given
            original_exception: Original exception that caused this error
        """
        self.path = path
        if path is not None:
            message = f"{message}: {path}"
        super().__init__(message, original_exception)


class CorruptStoreError(StoreError):
    """Raised when the store file cannot be decoded."""

    exit_code = EXIT_CORRUPT_STORE


class LockTimeoutError(StoreError):
    """Raised when the store lock cannot be acquired in time."""
    pass


class DatabaseNotFoundError(StoreError):
    """Raised when a command requires a database that holds no entries."""
    pass


class LegacyToolError(StoreIOError):
    """Raised when the external skate binary fails."""
    pass


class LegacyToolMissingError(SkatosError):
    """Raised when the external skate binary is not on PATH."""

    exit_code = EXIT_LEGACY_TOOL_MISSING
