"""Store location and optional config.ini handling."""

import configparser
import logging
import os
import sys
from pathlib import Path
from typing import Mapping, Optional

from .constants import (
    CONFIG_FILENAME,
    DEFAULT_BACKUP_FILE,
    DEFAULT_ENV_FILE,
    DEFAULT_LOCK_TIMEOUT,
    DEFAULT_STALE_LOCK_AGE,
    ENV_HOME,
    ENV_NO_COLOR,
    ENV_XDG_CONFIG_HOME,
    ERROR_CONFIG_PARSE,
    ERROR_CONFIG_VALUE,
    LEGACY_HOME_DIRNAME,
    STORE_DIRNAME,
    STORE_FILENAME,
)
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

STORE_SECTION = "store"
OUTPUT_SECTION = "output"
COLOR_CHOICES = ("auto", "always", "never")


def _platform_config_dir(environ: Mapping[str, str]) -> Optional[Path]:
    """Return the host's per-user configuration directory, if it can be determined."""
    if sys.platform == "win32":
        appdata = environ.get("APPDATA")
        return Path(appdata) if appdata else None
    home = Path(environ["HOME"]) if environ.get("HOME") else Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support"
    return home / ".config"


def resolve_store_dir(
    environ: Optional[Mapping[str, str]] = None, override: Optional[str] = None
) -> Path:
    """
    Resolve the directory that holds store.json.

    Order:
    1. explicit override (the --home flag)
    2. $SKATOS_HOME
    3. $XDG_CONFIG_HOME/skatos
    4. the platform configuration directory, when it exists
    5. ~/.skatos
    """
    env = os.environ if environ is None else environ

    if override:
        return Path(override).expanduser()

    home_override = env.get(ENV_HOME)
    if home_override:
        return Path(home_override).expanduser()

    xdg = env.get(ENV_XDG_CONFIG_HOME)
    if xdg:
        return Path(xdg).expanduser() / STORE_DIRNAME

    platform_dir = _platform_config_dir(env)
    if platform_dir is not None and platform_dir.is_dir():
        return platform_dir / STORE_DIRNAME

    home = Path(env["HOME"]) if env.get("HOME") else Path.home()
    return home / LEGACY_HOME_DIRNAME


class SkatosConfig:
    """Class to manage the store location and config.ini settings."""

    def __init__(self, home: Path):
        """Initialize with the resolved store directory."""
        self.home = Path(home)
        self.lock_timeout = DEFAULT_LOCK_TIMEOUT
        self.stale_lock_age = DEFAULT_STALE_LOCK_AGE
        self.color = "auto"
        self.env_file = DEFAULT_ENV_FILE
        self.backup_file = DEFAULT_BACKUP_FILE

    @property
    def store_path(self) -> Path:
        return self.home / STORE_FILENAME

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILENAME

    @classmethod
    def load(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        home_override: Optional[str] = None,
    ) -> "SkatosConfig":
        """Resolve the store directory and apply config.ini when present."""
        env = os.environ if environ is None else environ
        config = cls(resolve_store_dir(env, home_override))
        config.read_config_file()
        if env.get(ENV_NO_COLOR):
            config.color = "never"
        logger.debug("Using store directory %s", config.home)
        return config

    def _make_case_preserving_config(self) -> configparser.ConfigParser:
        """Create a ConfigParser that preserves option case."""

        class _CasePreservingConfig(configparser.ConfigParser):
            def optionxform(self, optionstr: str) -> str:  # type: ignore[override]
                return optionstr

        return _CasePreservingConfig(inline_comment_prefixes=(";", "#"))

    def read_config_file(self) -> None:
        """
        Read config.ini from the store directory.

        A missing file leaves the defaults in place.

        Raises:
            ConfigError: If the file cannot be parsed or holds invalid values
        """
        path = self.config_path
        if not path.is_file():
            return

        parser = self._make_case_preserving_config()
        try:
            parser.read(path, encoding="utf-8")
        except (configparser.Error, UnicodeDecodeError) as e:
            raise ConfigError(ERROR_CONFIG_PARSE.format(path=path, error=e), e)

        if parser.has_section(STORE_SECTION):
            section = parser[STORE_SECTION]
            self.lock_timeout = self._positive_float(
                section, "lock_timeout", self.lock_timeout
            )
            self.stale_lock_age = self._positive_float(
                section, "stale_lock_age", self.stale_lock_age
            )

        if parser.has_section(OUTPUT_SECTION):
            section = parser[OUTPUT_SECTION]
            color = section.get("color", self.color).strip().lower()
            if color not in COLOR_CHOICES:
                raise ConfigError(
                    ERROR_CONFIG_VALUE.format(
                        option="color", section=OUTPUT_SECTION, value=color
                    )
                )
            self.color = color
            self.env_file = section.get("env_file", self.env_file).strip() or self.env_file
            self.backup_file = (
                section.get("backup_file", self.backup_file).strip()
                or self.backup_file
            )
        logger.debug("Loaded settings from %s", path)

    @staticmethod
    def _positive_float(
        section: configparser.SectionProxy, option: str, default: float
    ) -> float:
        raw = section.get(option)
        if raw is None:
            return default
        try:
            value = float(raw)
        except ValueError as e:
            raise ConfigError(
                ERROR_CONFIG_VALUE.format(
                    option=option, section=section.name, value=raw
                ),
                e,
            )
        if value <= 0:
            raise ConfigError(
                ERROR_CONFIG_VALUE.format(option=option, section=section.name, value=raw)
            )
        return value
