from __future__ import annotations

import asyncio
import http.client
from pathlib import Path

import ai
from commands import (
    PURPOSE_DEBUG_LOG,
    FileLoaded,
    FileLoadFailed,
    FileSaved,
    FileSaveFailed,
    Generate,
    GenerationFinished,
    GenerationTick,
    ReadFile,
    ResetStatus,
    StatusReset,
    Tick,
    WriteFile,
)


def test_read_file_success(tmp_path: Path) -> None:
    path = tmp_path / "words.txt"
    path.write_text("bank = river edge\n", encoding="utf-8")
    result = asyncio.run(ReadFile(str(path)).execute())
    assert result == FileLoaded("bank = river edge\n", str(path))


def test_read_file_failure_is_an_event(tmp_path: Path) -> None:
    result = asyncio.run(ReadFile(str(tmp_path / "missing.txt")).execute())
    assert isinstance(result, FileLoadFailed)
    assert result.path.endswith("missing.txt")


def test_write_file_success_and_failure(tmp_path: Path) -> None:
    target = tmp_path / "out.txt"
    result = asyncio.run(WriteFile(str(target), "questions", PURPOSE_DEBUG_LOG).execute())
    assert result == FileSaved(str(target), PURPOSE_DEBUG_LOG)
    assert target.read_text(encoding="utf-8") == "questions"

    failed = asyncio.run(WriteFile(str(tmp_path / "nope" / "out.txt"), "x").execute())
    assert isinstance(failed, FileSaveFailed)


def test_generate_success(monkeypatch) -> None:
    calls: list[tuple[str, str, str, str]] = []

    def fake_generate(credential, model, instructions, payload):
        calls.append((credential, model, instructions, payload))
        return "1. question"

    monkeypatch.setattr(ai, "generate", fake_generate)
    command = Generate(4, "sk-test", "gpt-5", "rules", "words")
    result = asyncio.run(command.execute())
    assert result == GenerationFinished(4, text="1. question")
    assert calls == [("sk-test", "gpt-5", "rules", "words")]
    assert "sk-test" not in repr(command)


def test_generate_failure_carries_message(monkeypatch) -> None:
    def fake_generate(credential, model, instructions, payload):
        raise ai.ApiError("rate limited", "rate_limit")

    monkeypatch.setattr(ai, "generate", fake_generate)
    result = asyncio.run(Generate(1, "sk-test", "gpt-5", "rules", "words").execute())
    assert isinstance(result, GenerationFinished)
    assert not result.ok
    assert result.error == "API error: rate limited (rate_limit)"


def test_timers_fire_once() -> None:
    assert asyncio.run(Tick(9, delay=0).execute()) == GenerationTick(9)
    assert asyncio.run(ResetStatus(0, status_id=5).execute()) == StatusReset(5)


def test_generate_reports_broken_transport_as_failure(monkeypatch) -> None:
    def fake_urlopen(http_request, timeout):
        raise http.client.IncompleteRead(b"partial")

    monkeypatch.setattr(ai.request, "urlopen", fake_urlopen)
    result = asyncio.run(Generate(2, "sk-test", "gpt-5", "rules", "words").execute())
    assert isinstance(result, GenerationFinished)
    assert result.request_id == 2
    assert not result.ok
    assert "IncompleteRead" in result.error
