"""
Tests for the skate CLI adapter
"""

import os
import subprocess
import textwrap
import pytest
from pathlib import Path
from unittest.mock import Mock

from skatos.exceptions import LegacyToolError, LegacyToolMissingError
from skatos.legacy import SkateCLI, UnparsedLine, parse_list_line, split_qualified_key
from skatos.models import Entry
from skatos.storage import SkatosStore


def _completed(stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0):
    return subprocess.CompletedProcess(
        args=["skate", "list"], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestParsing:
    """Test qualified key and line parsing"""

    def test_split_qualified_key(self):
        assert split_qualified_key("token@work") == ("token", "work")
        assert split_qualified_key("token") == ("token", "default")
        assert split_qualified_key("token@") == ("token", "default")

    def test_split_on_last_qualifier(self):
        assert split_qualified_key("me@example.com@mail") == ("me@example.com", "mail")

    def test_parse_line(self):
        assert parse_list_line(1, "api@work\tsecret value") == Entry(
            "api", "secret value", "work"
        )

    def test_value_keeps_tabs(self):
        assert parse_list_line(1, "k\ta\tb").value == "a\tb"

    def test_parse_line_without_tab(self):
        item = parse_list_line(7, "just-a-key")
        assert isinstance(item, UnparsedLine)
        assert item.lineno == 7

    def test_parse_line_empty_key(self):
        assert isinstance(parse_list_line(1, "@work\tvalue"), UnparsedLine)


class TestSkateCLI:
    """Test SkateCLI with injected runner"""

    def test_missing_binary(self):
        cli = SkateCLI(which=lambda name: None)
        with pytest.raises(LegacyToolMissingError, match="'skate' was not found on PATH"):
            list(cli.entries())

    def test_entries(self):
        runner = Mock(return_value=_completed(b"a\t1\nb@work\t2\n\nnot-parsable\n"))
        cli = SkateCLI(runner=runner, which=lambda name: "/usr/bin/skate")

        items = list(cli.entries())

        runner.assert_called_once_with(
            ["/usr/bin/skate", "list"], capture_output=True, check=False
        )
        assert items[:2] == [Entry("a", "1"), Entry("b", "2", "work")]
        assert isinstance(items[2], UnparsedLine)
        assert len(items) == 3

    def test_nonzero_exit(self):
        runner = Mock(return_value=_completed(stderr=b"no such db", returncode=1))
        cli = SkateCLI(runner=runner, which=lambda name: "/usr/bin/skate")
        with pytest.raises(LegacyToolError, match="exited with status 1: no such db"):
            cli.list_output()

    def test_spawn_failure(self):
        runner = Mock(side_effect=PermissionError("denied"))
        cli = SkateCLI(runner=runner, which=lambda name: "/usr/bin/skate")
        with pytest.raises(LegacyToolError, match="Failed to run 'skate'"):
            cli.list_output()

    def test_invalid_utf8(self):
        runner = Mock(return_value=_completed(b"k\t\xff\xfe"))
        cli = SkateCLI(runner=runner, which=lambda name: "/usr/bin/skate")
        with pytest.raises(LegacyToolError, match="invalid UTF-8"):
            cli.list_output()


@pytest.mark.skipif(os.name != "posix", reason="uses a shell script as fake skate")
class TestImportWithFakeBinary:
    """Run a real subprocess found on PATH"""

    def test_import_from_fake_skate(self, tmp_path: Path, monkeypatch, store_path):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        fake = bin_dir / "skate"
        fake.write_text(
            textwrap.dedent(
                """\
                #!/bin/sh
                printf 'api-key\\tabc\\n'
                printf 'db-url@work\\tpostgres://x\\n'
                printf 'broken line\\n'
                """
            )
        )
        fake.chmod(0o755)
        monkeypatch.setenv("PATH", str(bin_dir))

        store = SkatosStore(store_path)
        result = store.import_from_skate()

        assert result.imported == 2
        assert result.skipped == 1
        assert store.get("api-key") == "abc"
        assert store.get("db-url", "work") == "postgres://x"

    def test_import_without_skate_on_path(self, tmp_path: Path, monkeypatch, store_path):
        monkeypatch.setenv("PATH", str(tmp_path / "empty"))
        with pytest.raises(LegacyToolMissingError):
            SkatosStore(store_path).import_from_skate()
