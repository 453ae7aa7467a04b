from __future__ import annotations

import logging
from pathlib import Path

import pytest

from estatesync import app, settings


@pytest.fixture
def json_workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setattr(settings, "STORAGE_BACKEND", "json")
    monkeypatch.setattr(settings, "STORAGE_PATH", str(tmp_path / "data.json"))
    monkeypatch.setattr(settings, "CHUNK_SIZE", 10)
    monkeypatch.setattr(settings, "LOGGING", {})
    return tmp_path


def test_upload_then_stats_then_clear(json_workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export = json_workspace / "WhatsApp Chat with Marina.txt"
    export.write_text("x" * 25, encoding="utf-8")

    assert app.main(["--user", "u1", "upload", str(export)]) == 0
    assert "3 tasks (whatsapp, Marina)" in capsys.readouterr().out

    assert app.main(["--user", "u1", "stats"]) == 0
    assert "0/3 done" in capsys.readouterr().out

    assert app.main(["--user", "u2", "stats"]) == 0
    assert "0/0 done" in capsys.readouterr().out

    assert app.main(["--user", "u1", "clear"]) == 0
    capsys.readouterr()
    assert app.main(["--user", "u1", "stats"]) == 0
    assert "0/0 done" in capsys.readouterr().out


def test_broken_upload_is_skipped(json_workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    broken = json_workspace / "result.json"
    broken.write_text("{oops", encoding="utf-8")

    assert app.main(["upload", str(broken)]) == 1
    assert "Skipped" in capsys.readouterr().err


def test_run_task_with_unknown_id(json_workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert app.main(["run-task", "task-missing"]) == 1
    assert "Unknown task" in capsys.readouterr().err


def test_redacting_formatter_masks_secrets() -> None:
    formatter = app._RedactingFormatter(["sk-secret"], fmt="%(message)s")
    record = logging.LogRecord("x", logging.INFO, __file__, 1, "key=%s", ("sk-secret",), None)
    assert formatter.format(record) == "key=***"


def test_users_lists_stored_keys(json_workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    export = json_workspace / "WhatsApp Chat with Marina.txt"
    export.write_text("hello", encoding="utf-8")
    app.main(["--user", "alice", "upload", str(export)])
    app.main(["--user", "bob", "upload", str(export)])
    app.main(["--user", "alice", "clear"])
    capsys.readouterr()

    assert app.main(["users"]) == 0
    out = capsys.readouterr().out
    assert out.strip().splitlines()[-1] == "bob"
    assert "alice" not in out
