from __future__ import annotations

from pathlib import Path

import pytest

import ai


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(ai, "_PROMPT_LOG_PATH", tmp_path / "prompt.log")
    monkeypatch.setattr(ai, "_CONNECTION_LOG_PATH", tmp_path / "connection.log")
