"""
Tests for store location and config.ini
"""

import textwrap
import pytest
from pathlib import Path
from unittest.mock import patch

from skatos.config import SkatosConfig, resolve_store_dir
from skatos.exceptions import ConfigError


class TestResolveStoreDir:
    """Test the store directory resolution order"""

    def test_override_wins(self, tmp_path: Path):
        env = {"SKATOS_HOME": str(tmp_path / "env"), "HOME": str(tmp_path)}
        assert resolve_store_dir(env, str(tmp_path / "flag")) == tmp_path / "flag"

    def test_skatos_home(self, tmp_path: Path):
        env = {"SKATOS_HOME": str(tmp_path / "env"), "XDG_CONFIG_HOME": str(tmp_path / "xdg")}
        assert resolve_store_dir(env) == tmp_path / "env"

    def test_xdg_config_home(self, tmp_path: Path):
        env = {"XDG_CONFIG_HOME": str(tmp_path / "xdg"), "HOME": str(tmp_path)}
        assert resolve_store_dir(env) == tmp_path / "xdg" / "skatos"

    @patch("skatos.config.sys.platform", "linux")
    def test_platform_config_dir(self, tmp_path: Path):
        (tmp_path / ".config").mkdir()
        assert resolve_store_dir({"HOME": str(tmp_path)}) == tmp_path / ".config" / "skatos"

    @patch("skatos.config.sys.platform", "linux")
    def test_fallback_home_dot_dir(self, tmp_path: Path):
        assert resolve_store_dir({"HOME": str(tmp_path)}) == tmp_path / ".skatos"


class TestSkatosConfig:
    """Test SkatosConfig settings"""

    def _write(self, home: Path, content: str) -> None:
        home.mkdir(parents=True, exist_ok=True)
        (home / "config.ini").write_text(textwrap.dedent(content).strip())

    def test_defaults(self, tmp_path: Path):
        config = SkatosConfig.load({"SKATOS_HOME": str(tmp_path)})
        assert config.home == tmp_path
        assert config.store_path == tmp_path / "store.json"
        assert config.lock_timeout == 5.0
        assert config.stale_lock_age == 60.0
        assert config.color == "auto"
        assert config.env_file == ".env"
        assert config.backup_file == "skatos_backup.json"

    def test_config_file_values(self, tmp_path: Path):
        self._write(
            tmp_path,
            """
            [store]
            lock_timeout = 1.5   ; seconds
            stale_lock_age = 30

            [output]
            color = never
            env_file = .env.local
            backup_file = backup.json
            """,
        )
        config = SkatosConfig.load({"SKATOS_HOME": str(tmp_path)})
        assert config.lock_timeout == 1.5
        assert config.stale_lock_age == 30.0
        assert config.color == "never"
        assert config.env_file == ".env.local"
        assert config.backup_file == "backup.json"

    def test_no_color_env(self, tmp_path: Path):
        self._write(tmp_path, "[output]\ncolor = always")
        config = SkatosConfig.load({"SKATOS_HOME": str(tmp_path), "NO_COLOR": "1"})
        assert config.color == "never"

    def test_invalid_color(self, tmp_path: Path):
        self._write(tmp_path, "[output]\ncolor = rainbow")
        with pytest.raises(ConfigError, match="Invalid value for 'color'"):
            SkatosConfig.load({"SKATOS_HOME": str(tmp_path)})

    def test_invalid_timeout(self, tmp_path: Path):
        self._write(tmp_path, "[store]\nlock_timeout = soon")
        with pytest.raises(ConfigError, match="lock_timeout"):
            SkatosConfig.load({"SKATOS_HOME": str(tmp_path)})

    def test_negative_timeout(self, tmp_path: Path):
        self._write(tmp_path, "[store]\nlock_timeout = -1")
        with pytest.raises(ConfigError):
            SkatosConfig.load({"SKATOS_HOME": str(tmp_path)})

    def test_parse_error(self, tmp_path: Path):
        self._write(tmp_path, "[store\nlock_timeout = 1")
        with pytest.raises(ConfigError, match="Failed to parse config file"):
            SkatosConfig.load({"SKATOS_HOME": str(tmp_path)})
