#!/usr/bin/env python3
"""
Shared constants used across skatos modules.

This module contains file names, limits and error messages to avoid
circular imports between modules.
"""

# Store layout
STORE_DIRNAME = "skatos"
LEGACY_HOME_DIRNAME = ".skatos"
STORE_FILENAME = "store.json"
LOCK_FILENAME = "store.lock"
TMP_SUFFIX = ".tmp"
CONFIG_FILENAME = "config.ini"
STORE_FORMAT_VERSION = 1

# Environment variables
ENV_HOME = "SKATOS_HOME"
ENV_XDG_CONFIG_HOME = "XDG_CONFIG_HOME"
ENV_NO_COLOR = "NO_COLOR"

# Databases
DEFAULT_DATABASE = "default"
QUALIFIER = "@"

# Limits
MAX_NAME_BYTES = 512
MAX_VALUE_BYTES = 1024 * 1024
DEFAULT_LOCK_TIMEOUT = 5.0
DEFAULT_STALE_LOCK_AGE = 60.0
LOCK_POLL_INTERVAL = 0.05

# Permissions
DIR_MODE = 0o700
FILE_MODE = 0o600

# CLI defaults
DEFAULT_ENV_FILE = ".env"
DEFAULT_BACKUP_FILE = "skatos_backup.json"
LEGACY_TOOL = "skate"

# Exit codes
EXIT_FAILURE = 1
EXIT_INVALID_ARGS = 2
EXIT_CORRUPT_STORE = 3
EXIT_LEGACY_TOOL_MISSING = 4

# Error messages
ERROR_NAME_EMPTY = "{field} must be a non-empty string"
ERROR_NAME_QUALIFIER = "{field} must not contain '@': {name!r}"
ERROR_NAME_NUL = "{field} must not contain NUL characters"
ERROR_NAME_TOO_LONG = "{field} too long (max {limit} bytes)"
ERROR_KEY_NOT_PRINTABLE = "Key contains non-printable characters: {name!r}"
ERROR_VALUE_TOO_LARGE = "Value too large ({size} bytes, max {limit} bytes)"
ERROR_VALUE_NOT_STRING = "Value must be a string"
ERROR_VALUE_EMPTY = "Value must be a non-empty string"
ERROR_CORRUPT_STORE = "Store file '{path}' is not valid JSON"
ERROR_CORRUPT_LAYOUT = "Store file '{path}' has an unexpected layout: {detail}"
ERROR_LOCK_TIMEOUT = "Could not lock '{path}' within {timeout:g}s"
ERROR_STALE_LOCK = "Removing stale lock '{path}' (untouched for {age:.0f}s)"
ERROR_LEGACY_MISSING = "'{tool}' was not found on PATH"
ERROR_LEGACY_FAILED = "'{tool} list' exited with status {status}: {stderr}"
ERROR_DATABASE_NOT_FOUND = "Database '{database}' not found"
ERROR_BACKUP_NOT_ARRAY = "Backup file must contain a JSON array of entries"
ERROR_BACKUP_INVALID_JSON = "Backup is not valid JSON: {error}"
ERROR_CONFIG_PARSE = "Failed to parse config file '{path}': {error}"
ERROR_CONFIG_VALUE = "Invalid value for '{option}' in [{section}]: {value!r}"
