"""Deferred side effects issued by the controller.

Each command captures its arguments at creation time and, when executed,
resolves to exactly one completion event. Expected failures (file errors,
backend errors) come back as failure events; nothing here touches the
session.
"""

from __future__ import annotations

import asyncio
import threading
from contextlib import suppress
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

import ai
from settings import ERROR_STATUS_SECONDS, GENERATION_TICK_SECONDS, SUCCESS_STATUS_SECONDS

PURPOSE_OUTPUT = "output"
PURPOSE_DEBUG_LOG = "debug_log"


@dataclass(frozen=True)
class FileLoaded:
    content: str
    path: str


@dataclass(frozen=True)
class FileLoadFailed:
    path: str
    error: str


@dataclass(frozen=True)
class FileSaved:
    path: str
    purpose: str = PURPOSE_OUTPUT


@dataclass(frozen=True)
class FileSaveFailed:
    path: str
    error: str
    purpose: str = PURPOSE_OUTPUT


@dataclass(frozen=True)
class GenerationFinished:
    request_id: int
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class GenerationTick:
    request_id: int


@dataclass(frozen=True)
class StatusReset:
    status_id: int = 0


Completion = Union[
    FileLoaded,
    FileLoadFailed,
    FileSaved,
    FileSaveFailed,
    GenerationFinished,
    GenerationTick,
    StatusReset,
]


def _settle(future: asyncio.Future, result: Any, exc: Optional[BaseException]) -> None:
    if future.done():
        return
    if exc is not None:
        future.set_exception(exc)
    else:
        future.set_result(result)


async def _run_detached(func: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking call on a daemon thread so quitting never waits on it."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def worker() -> None:
        try:
            result = func(*args)
        except BaseException as exc:
            outcome: tuple[Any, Optional[BaseException]] = (None, exc)
        else:
            outcome = (result, None)
        # The loop is gone once the app has exited.
        with suppress(RuntimeError):
            loop.call_soon_threadsafe(_settle, future, *outcome)

    threading.Thread(target=worker, name="vocaquiz-generate", daemon=True).start()
    return await future


class Command:
    async def execute(self) -> Completion:
        raise NotImplementedError


@dataclass(frozen=True)
class ReadFile(Command):
    path: str

    async def execute(self) -> Completion:
        try:
            content = await asyncio.to_thread(Path(self.path).read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return FileLoadFailed(self.path, str(exc))
        return FileLoaded(content, self.path)


@dataclass(frozen=True)
class WriteFile(Command):
    path: str
    content: str
    purpose: str = PURPOSE_OUTPUT

    async def execute(self) -> Completion:
        try:
            await asyncio.to_thread(Path(self.path).write_text, self.content, encoding="utf-8")
        except OSError as exc:
            return FileSaveFailed(self.path, str(exc), self.purpose)
        return FileSaved(self.path, self.purpose)


@dataclass(frozen=True)
class Generate(Command):
    request_id: int
    credential: str
    model: str
    instructions: str
    payload: str

    async def execute(self) -> Completion:
        try:
            text = await _run_detached(
                ai.generate, self.credential, self.model, self.instructions, self.payload
            )
        except ai.GenerationError as exc:
            return GenerationFinished(self.request_id, error=str(exc))
        return GenerationFinished(self.request_id, text=text)

    def __repr__(self) -> str:
        # Keep the credential and prompt bodies out of debug output.
        return f"Generate(request_id={self.request_id}, model={self.model!r})"


@dataclass(frozen=True)
class Tick(Command):
    request_id: int
    delay: float = GENERATION_TICK_SECONDS

    async def execute(self) -> Completion:
        await asyncio.sleep(self.delay)
        return GenerationTick(self.request_id)


@dataclass(frozen=True)
class ResetStatus(Command):
    delay: float
    status_id: int = 0

    async def execute(self) -> Completion:
        await asyncio.sleep(self.delay)
        return StatusReset(self.status_id)


def reset_after_success(status_id: int = 0) -> ResetStatus:
    return ResetStatus(SUCCESS_STATUS_SECONDS, status_id)


def reset_after_error(status_id: int = 0) -> ResetStatus:
    return ResetStatus(ERROR_STATUS_SECONDS, status_id)
