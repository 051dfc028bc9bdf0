"""Unit tests for the lskysync command-line interface."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import httpx
import pytest
from click.testing import CliRunner
from loguru import logger

from lskysync import __version__
from lskysync.cli import app
from lskysync.cli.console import reset_consoles
from lskysync.client import LskyClient
from lskysync.config import PacingConfig

API_URL = "https://img.example.com/api/v1"


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """Write a config pointing at the fake host, with file logging off."""
    path = tmp_path / "lskysync.json"
    path.write_text(
        json.dumps(
            {
                "server": {"url": API_URL, "email": "me@example.com", "password": "secret"},
                "log": {"dir": None},
            }
        )
    )
    return path


@pytest.fixture(autouse=True)
def fake_host(fake_server, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Route every CLI client to the fake host."""

    def make_client(config: Any, pacing: Any = None, on_token_refreshed: Any = None) -> LskyClient:
        return LskyClient(
            config,
            PacingConfig(list_page_delay=0, delete_delay=0),
            on_token_refreshed=on_token_refreshed,
            http_client=httpx.AsyncClient(transport=fake_server.transport()),
        )

    monkeypatch.setattr("lskysync.cli.main.LskyClient", make_client)
    monkeypatch.delenv("LSKYSYNC_LOG_DIR", raising=False)
    reset_consoles()
    yield
    reset_consoles()
    # Console sink points at the runner's captured stream
    logger.remove()


def _invoke(runner: CliRunner, config_file: Path, vault_dir: Path, *args: str, **kwargs: Any):
    return runner.invoke(
        app, ["--config", str(config_file), "--vault", str(vault_dir), *args], **kwargs
    )


class TestGlobalOptions:
    """Tests for the root command."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"lskysync {__version__}" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("login", "upload", "download", "cleanup", "used", "config"):
            assert command in result.output

    def test_invalid_config_file(self, runner: CliRunner, tmp_path: Path, vault_dir: Path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"pacing": {"delete_delay": "soon"}}))

        result = _invoke(runner, bad, vault_dir, "used")

        assert result.exit_code == 2
        assert "Invalid configuration" in result.output


class TestLogin:
    """Tests for the login command."""

    def test_token_persisted(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "login")

        assert result.exit_code == 0, result.output
        assert "Logged in" in result.output
        saved = json.loads(config_file.read_text())
        assert saved["server"]["token"] == "token-1"
        assert saved["server"]["password"] == "secret"

    def test_bad_credentials(self, runner: CliRunner, config_file: Path, vault_dir: Path, fake_server) -> None:
        fake_server.password = "other"

        result = _invoke(runner, config_file, vault_dir, "login")

        assert result.exit_code == 1
        assert "Invalid credentials" in result.output
        assert "token" not in json.loads(config_file.read_text())["server"]


class TestUpload:
    """Tests for the upload command."""

    @pytest.fixture
    def note(self, vault_dir: Path) -> Path:
        (vault_dir / "pic.png").write_bytes(b"png")
        path = vault_dir / "day.md"
        path.write_text("![p](pic.png)\n")
        return path

    def test_upload(self, runner: CliRunner, config_file: Path, vault_dir: Path, note: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "upload", "day.md")

        assert result.exit_code == 0, result.output
        assert "Uploaded 1/1" in result.output
        assert "https://img.example.com/i/day-" in note.read_text()

    def test_partial_failure_exits_1(
        self, runner: CliRunner, config_file: Path, vault_dir: Path, note: Path
    ) -> None:
        note.write_text("![p](pic.png)\n![q](gone.png)\n")

        result = _invoke(runner, config_file, vault_dir, "upload", str(note))

        assert result.exit_code == 1
        assert "gone.png" in result.output
        assert "upload: 1 failed, 1 succeeded" in result.output

    def test_note_outside_vault(
        self, runner: CliRunner, config_file: Path, vault_dir: Path, tmp_path: Path
    ) -> None:
        outside = tmp_path / "outside.md"
        outside.write_text("x")

        result = _invoke(runner, config_file, vault_dir, "upload", str(outside))

        assert result.exit_code == 2
        assert "outside the vault" in result.output

    def test_missing_note(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "upload", "nope.md")

        assert result.exit_code == 2
        assert "Note not found" in result.output


class TestDownload:
    """Tests for the download command."""

    def test_all(self, runner: CliRunner, config_file: Path, vault_dir: Path, fake_server) -> None:
        url = fake_server.add_image("a.png", b"A")["links"]["url"]
        (vault_dir / "n.md").write_text(f"![a]({url})")

        result = _invoke(runner, config_file, vault_dir, "download", "--all")

        assert result.exit_code == 0, result.output
        assert (vault_dir / "n.md").read_text() == "![[a.png]]"
        assert (vault_dir / "n" / "a.png").read_bytes() == b"A"

    def test_requires_note_or_all(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "download")

        assert result.exit_code == 2
        assert "either a NOTE or --all" in result.output

    def test_all_reports_undecodable_note(
        self, runner: CliRunner, config_file: Path, vault_dir: Path, fake_server
    ) -> None:
        url = fake_server.add_image("a.png", b"A")["links"]["url"]
        (vault_dir / "bad.md").write_bytes(b"\xe9\xff")
        (vault_dir / "n.md").write_text(f"![a]({url})")

        result = _invoke(runner, config_file, vault_dir, "download", "--all")

        assert result.exit_code == 1
        assert "bad.md" in result.output
        assert "Downloaded 1 images (1 failed)" in result.output
        assert (vault_dir / "n" / "a.png").read_bytes() == b"A"


class TestCleanup:
    """Tests for the cleanup command."""

    @pytest.fixture
    def orphan(self, vault_dir: Path, fake_server) -> str:
        used = fake_server.add_image("used.png")["links"]["url"]
        orphan = fake_server.add_image("orphan.png")["links"]["url"]
        (vault_dir / "n.md").write_text(f"![u]({used})")
        return orphan

    def test_yes_deletes(self, runner: CliRunner, config_file: Path, vault_dir: Path, fake_server, orphan: str) -> None:
        result = _invoke(runner, config_file, vault_dir, "cleanup", "--yes")

        assert result.exit_code == 0, result.output
        assert orphan in result.output
        assert "Deleted 1/1" in result.output
        assert [i["name"] for i in fake_server.images.values()] == ["used.png"]

    def test_declined(self, runner: CliRunner, config_file: Path, vault_dir: Path, fake_server, orphan: str) -> None:
        result = _invoke(runner, config_file, vault_dir, "cleanup", input="n\n")

        assert result.exit_code == 0, result.output
        assert "cancelled" in result.output
        assert len(fake_server.images) == 2

    def test_confirm_start_declined(
        self, runner: CliRunner, config_file: Path, vault_dir: Path, fake_server, orphan: str
    ) -> None:
        data = json.loads(config_file.read_text())
        data["cleanup"] = {"confirm_start": True}
        config_file.write_text(json.dumps(data))

        result = _invoke(runner, config_file, vault_dir, "cleanup", input="n\n")

        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert fake_server.requests == []


class TestUsed:
    """Tests for the used command."""

    def test_lists_referenced_urls(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        (vault_dir / "a.md").write_text("![x](https://img.example.com/i/1.png) ![y](local.png)")
        (vault_dir / "b.md").write_text("<img src='https://img.example.com/i/2.png'>")

        result = _invoke(runner, config_file, vault_dir, "used")

        assert result.exit_code == 0, result.output
        assert "https://img.example.com/i/1.png" in result.output
        assert "https://img.example.com/i/2.png" in result.output
        assert "local.png" not in result.output
        assert "2 host images" in result.output


class TestConfigCommands:
    """Tests for the config command group."""

    def test_get(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "config", "get", "server.url")

        assert result.exit_code == 0
        assert API_URL in result.output

    def test_get_masks_password(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "config", "get", "server.password")

        assert result.exit_code == 0
        assert "secret" not in result.output

    def test_list_masks_password(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "config", "list")

        assert result.exit_code == 0
        assert "delete_delay" in result.output
        assert "secret" not in result.output

    def test_set_persists(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "config", "set", "pacing.delete_delay", "0.5")

        assert result.exit_code == 0, result.output
        assert json.loads(config_file.read_text())["pacing"] == {"delete_delay": 0.5}

    def test_set_invalid_value(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        before = config_file.read_text()

        result = _invoke(runner, config_file, vault_dir, "config", "set", "pacing.delete_delay", "-1")

        assert result.exit_code == 1
        assert config_file.read_text() == before

    def test_set_unknown_key(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "config", "set", "server.nope", "1")

        assert result.exit_code == 1
        assert "Unknown configuration key" in result.output

    def test_path(self, runner: CliRunner, config_file: Path, vault_dir: Path) -> None:
        result = _invoke(runner, config_file, vault_dir, "config", "path")

        assert result.exit_code == 0
        assert "Currently using" in result.output


def test_used_with_undecodable_note_exits_cleanly(
    runner: CliRunner, config_file: Path, vault_dir: Path
) -> None:
    (vault_dir / "bad.md").write_bytes(b"\xe9\xff")

    result = _invoke(runner, config_file, vault_dir, "used")

    assert result.exit_code == 1
    assert "Cannot read note bad.md" in result.output
    assert not isinstance(result.exception, UnicodeDecodeError)
