"""
Input validation for skatos - namespaced key/value store and .env generator
"""

import logging
from pathlib import Path
from typing import Optional

from .constants import (
    ERROR_KEY_NOT_PRINTABLE,
    ERROR_NAME_EMPTY,
    ERROR_NAME_NUL,
    ERROR_NAME_QUALIFIER,
    ERROR_NAME_TOO_LONG,
    ERROR_VALUE_EMPTY,
    ERROR_VALUE_NOT_STRING,
    ERROR_VALUE_TOO_LARGE,
    MAX_NAME_BYTES,
    MAX_VALUE_BYTES,
    QUALIFIER,
)
from .exceptions import InvalidNameError, ValidationError, ValueTooLargeError

logger = logging.getLogger(__name__)

ERROR_PATH_MUST_BE_STRING = "Path must be a non-empty string"
ERROR_PATH_IS_DIRECTORY = "Path is a directory: {path}"
ERROR_FILE_NOT_FOUND = "File not found: {path}"
ERROR_INVALID_PATH = "Invalid path: {error}"
ERROR_NOT_UTF8 = "{field} is not valid UTF-8"


class BaseValidator:
    """Base class for validators with common validation logic."""

    @staticmethod
    def validate_non_empty_string(value: Optional[str], field_name: str) -> str:
        """Validate that a value is a non-empty string."""
        if not value or not isinstance(value, str):
            raise InvalidNameError(ERROR_NAME_EMPTY.format(field=field_name))
        return value

    @staticmethod
    def validate_byte_length(value: str, max_bytes: int, field_name: str) -> str:
        """Validate that the UTF-8 encoding of a string fits in max_bytes."""
        try:
            size = len(value.encode("utf-8"))
        except UnicodeEncodeError:
            raise InvalidNameError(ERROR_NOT_UTF8.format(field=field_name))
        if size > max_bytes:
            raise InvalidNameError(
                ERROR_NAME_TOO_LONG.format(field=field_name, limit=max_bytes)
            )
        return value

    @staticmethod
    def validate_no_reserved_chars(value: str, field_name: str) -> str:
        """Reject the qualifier character and NUL."""
        if QUALIFIER in value:
            raise InvalidNameError(
                ERROR_NAME_QUALIFIER.format(field=field_name, name=value)
            )
        if "\x00" in value:
            raise InvalidNameError(ERROR_NAME_NUL.format(field=field_name))
        return value


class NameValidator(BaseValidator):
    """Validates key and database names."""

    @staticmethod
    def validate_key(key: Optional[str]) -> str:
        """
        Validate an entry key.

        Args:
            key: Key to validate

        Returns:
            The key, unchanged (keys are case-sensitive and never stripped)

        Raises:
            InvalidNameError: If the key is empty, too long, non-printable
                or contains '@' / NUL
        """
        validated = BaseValidator.validate_non_empty_string(key, "Key")
        BaseValidator.validate_no_reserved_chars(validated, "Key")
        if not validated.isprintable():
            raise InvalidNameError(ERROR_KEY_NOT_PRINTABLE.format(name=validated))
        return BaseValidator.validate_byte_length(validated, MAX_NAME_BYTES, "Key")

    @staticmethod
    def validate_database(database: Optional[str]) -> str:
        """Validate a database name with the same rules as keys, minus printability."""
        validated = BaseValidator.validate_non_empty_string(database, "Database name")
        BaseValidator.validate_no_reserved_chars(validated, "Database name")
        return BaseValidator.validate_byte_length(
            validated, MAX_NAME_BYTES, "Database name"
        )


class ValueValidator:
    """Validates stored values."""

    @staticmethod
    def validate_value(value: Optional[str]) -> str:
        """
        Validate an entry value.

        Values are opaque: any non-empty text is accepted, only the encoded
        size is bounded.

        Raises:
            ValidationError: If value is not a string or is empty
            ValueTooLargeError: If value exceeds MAX_VALUE_BYTES
        """
        if not isinstance(value, str):
            raise ValidationError(ERROR_VALUE_NOT_STRING)
        if not value:
            raise ValidationError(ERROR_VALUE_EMPTY)
        try:
            size = len(value.encode("utf-8"))
        except UnicodeEncodeError:
            raise ValidationError(ERROR_NOT_UTF8.format(field="Value"))
        if size > MAX_VALUE_BYTES:
            raise ValueTooLargeError(
                ERROR_VALUE_TOO_LARGE.format(size=size, limit=MAX_VALUE_BYTES)
            )
        return value


class PathValidator:
    """Validates file paths given on the command line."""

    @staticmethod
    def validate_output_path(path: Optional[str]) -> Path:
        """
        Validate a path that is about to be written.

        Args:
            path: Output file path

        Returns:
            Expanded Path object

        Raises:
            ValidationError: If path is empty or names a directory
        """
        if not path or not isinstance(path, str):
            raise ValidationError(ERROR_PATH_MUST_BE_STRING)
        try:
            expanded = Path(path).expanduser()
        except RuntimeError as e:
            raise ValidationError(ERROR_INVALID_PATH.format(error=e))
        if expanded.is_dir():
            raise ValidationError(ERROR_PATH_IS_DIRECTORY.format(path=expanded))
        return expanded

    @staticmethod
    def validate_input_path(path: Optional[str]) -> Path:
        """Validate a path that must exist as a regular file."""
        if not path or not isinstance(path, str):
            raise ValidationError(ERROR_PATH_MUST_BE_STRING)
        try:
            expanded = Path(path).expanduser()
        except RuntimeError as e:
            raise ValidationError(ERROR_INVALID_PATH.format(error=e))
        if not expanded.is_file():
            logger.debug("Input path %s is missing or not a regular file", expanded)
            raise ValidationError(ERROR_FILE_NOT_FOUND.format(path=expanded))
        return expanded
