"""Session state machine.

``SessionController.handle`` is the only place the session is mutated. It
runs synchronously, one event at a time, and answers with the commands the
caller should start. Completion events of those commands come back through
``handle`` as well, in whatever order they finish.
"""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Deque, List, Optional, Union

from commands import (
    PURPOSE_DEBUG_LOG,
    Command,
    Completion,
    FileLoaded,
    FileLoadFailed,
    FileSaved,
    FileSaveFailed,
    Generate,
    GenerationFinished,
    GenerationTick,
    ReadFile,
    StatusReset,
    Tick,
    WriteFile,
    reset_after_error,
    reset_after_success,
)
from prompts import GENERATION_MODELS, HIGH_COST_TAG, QUESTION_TYPES, build_prompts, needs_sentence_count
from session import INPUT, OUTPUT, Mode, Session
from settings import DEBUG_LOG_PATH, VOCAB_EXTENSION
from vocab_models import VocabEntry
from vocab_parser import parse_vocabulary

_EVENT_LOG_LIMIT = 1000


@dataclass(frozen=True)
class BufferEdited:
    index: int
    text: str


@dataclass(frozen=True)
class FocusNext:
    pass


@dataclass(frozen=True)
class FocusBuffer:
    index: int


@dataclass(frozen=True)
class Undo:
    pass


@dataclass(frozen=True)
class Redo:
    pass


@dataclass(frozen=True)
class OpenFileRequested:
    pass


@dataclass(frozen=True)
class SaveRequested:
    pass


@dataclass(frozen=True)
class GenerateRequested:
    pass


@dataclass(frozen=True)
class DumpDebugLog:
    pass


@dataclass(frozen=True)
class FileChosen:
    path: str


@dataclass(frozen=True)
class OptionChosen:
    option_id: str


@dataclass(frozen=True)
class EntrySubmitted:
    text: str


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Quit:
    pass


InputEvent = Union[
    BufferEdited,
    FocusNext,
    FocusBuffer,
    Undo,
    Redo,
    OpenFileRequested,
    SaveRequested,
    GenerateRequested,
    DumpDebugLog,
    FileChosen,
    OptionChosen,
    EntrySubmitted,
    Cancel,
    Quit,
]
Event = Union[InputEvent, Completion]

def default_save_name(loaded_file_path: Optional[str]) -> str:
    original_name = "result"
    if loaded_file_path:
        original_name = Path(loaded_file_path).name.removesuffix(VOCAB_EXTENSION)
    return f"{original_name}_problem.txt"


def _describe(event: object) -> str:
    if isinstance(event, GenerationFinished):
        if event.error is not None:
            return f"GenerationFinished(request_id={event.request_id}) with ERROR: {event.error}"
        return f"GenerationFinished(request_id={event.request_id}) with text"
    if isinstance(event, FileLoaded):
        return f"FileLoaded(path={event.path!r}, {len(event.content)} chars)"
    if isinstance(event, BufferEdited):
        return f"BufferEdited(index={event.index}, {len(event.text)} chars)"
    return repr(event)


class SessionController:
    def __init__(
        self,
        session: Session,
        *,
        shuffle: Callable[[List[VocabEntry]], None] = random.shuffle,
    ) -> None:
        self.session = session
        self._shuffle = shuffle
        self._event_log: Deque[str] = deque(maxlen=_EVENT_LOG_LIMIT)
        self._last_request_id = 0
        self._status_id = 0

    # ------------------------------------------------------------------ log

    def _log(self, line: str) -> None:
        timestamp = datetime.now().isoformat(timespec="seconds")
        self._event_log.append(f"[{timestamp}] {line}")

    def event_log_text(self) -> str:
        return "\n".join(self._event_log) + ("\n" if self._event_log else "")

    # -------------------------------------------------------------- status

    def _show(self, message: str) -> None:
        self._status_id += 1
        self.session.status_message = message

    def _success(self, message: str) -> List[Command]:
        self._show(message)
        return [reset_after_success(self._status_id)]

    def _failure(self, message: str) -> List[Command]:
        self._show(message)
        return [reset_after_error(self._status_id)]

    def _on_status_reset(self, event: StatusReset) -> List[Command]:
        # A newer message has replaced the one this reset was scheduled for.
        if event.status_id != self._status_id:
            return []
        self.session.status_message = self.session.default_status_message
        return []

    # ------------------------------------------------------------ dispatch

    def handle(self, event: Event) -> List[Command]:
        self._log(f"Received event: {_describe(event)}")
        if isinstance(event, Quit):
            self.session.quit_requested = True
            return []
        if self.session.last_error is not None:
            return []

        if isinstance(event, (FileLoaded, FileLoadFailed)):
            return self._on_file_read(event)
        if isinstance(event, (FileSaved, FileSaveFailed)):
            return self._on_file_written(event)
        if isinstance(event, GenerationFinished):
            return self._on_generation_finished(event)
        if isinstance(event, GenerationTick):
            return self._on_tick(event)
        if isinstance(event, StatusReset):
            return self._on_status_reset(event)

        mode = self.session.mode
        if mode is Mode.EDITING:
            return self._handle_editing(event)
        if mode is Mode.FILE_PICKING:
            return self._handle_file_picking(event)
        if mode is Mode.SAVE_PATH_ENTRY:
            return self._handle_save_path(event)
        if mode in (Mode.MODEL_SELECTION, Mode.QUESTION_TYPE_SELECTION):
            return self._handle_selection(event)
        if mode is Mode.SENTENCE_COUNT_ENTRY:
            return self._handle_sentence_count(event)
        return []

    def fail(self, exc: BaseException) -> None:
        """Record an unrecoverable error; only quitting is possible afterwards."""
        self.session.last_error = f"{type(exc).__name__}: {exc}"
        self.session.is_generating = False
        self._log(f"FATAL: {self.session.last_error}")

    # ------------------------------------------------------------- editing

    def _handle_editing(self, event: Event) -> List[Command]:
        session = self.session
        if isinstance(event, BufferEdited):
            self._apply_edit(event.index, event.text)
            return []
        if isinstance(event, FocusNext):
            session.focused = (session.focused + 1) % len(session.buffers)
            return []
        if isinstance(event, FocusBuffer):
            if event.index in (INPUT, OUTPUT):
                session.focused = event.index
            return []
        if isinstance(event, Undo):
            index = session.focused
            restored = session.history[index].undo(session.buffers[index])
            if restored is not None:
                session.buffers[index] = restored
            return []
        if isinstance(event, Redo):
            index = session.focused
            restored = session.history[index].redo(session.buffers[index])
            if restored is not None:
                session.buffers[index] = restored
            return []
        if isinstance(event, OpenFileRequested):
            session.mode = Mode.FILE_PICKING
            self._show(f"Select a {VOCAB_EXTENSION} file to load. Esc: cancel")
            return []
        if isinstance(event, SaveRequested):
            session.mode = Mode.SAVE_PATH_ENTRY
            session.entry_text = default_save_name(session.loaded_file_path)
            self._show("Enter file path to save.")
            return []
        if isinstance(event, GenerateRequested):
            return self._begin_generation_setup()
        if isinstance(event, DumpDebugLog):
            self._show(f"Writing {DEBUG_LOG_PATH}...")
            return [WriteFile(str(DEBUG_LOG_PATH), self.event_log_text(), PURPOSE_DEBUG_LOG)]
        return []

    def _apply_edit(self, index: int, text: str) -> None:
        if index not in (INPUT, OUTPUT):
            return
        previous = self.session.buffers[index]
        if text == previous:
            return
        self.session.history[index].record(previous)
        self.session.buffers[index] = text

    def _replace_buffer(self, index: int, text: str) -> None:
        # Loads and generated output are undoable like any other change.
        self._apply_edit(index, text)

    # ---------------------------------------------------------- file modes

    def _handle_file_picking(self, event: Event) -> List[Command]:
        if isinstance(event, Cancel):
            self.session.mode = Mode.EDITING
            return self._success("File selection cancelled.")
        if isinstance(event, FileChosen):
            self._show(f"Loading '{Path(event.path).name}'...")
            return [ReadFile(event.path)]
        return []

    def _on_file_read(self, event: Union[FileLoaded, FileLoadFailed]) -> List[Command]:
        session = self.session
        if session.mode is Mode.FILE_PICKING:
            session.mode = Mode.EDITING
        if isinstance(event, FileLoadFailed):
            return self._failure(f"Error loading '{Path(event.path).name}': {event.error}")
        self._replace_buffer(INPUT, event.content)
        session.loaded_file_path = event.path
        return self._success(f"Loaded '{Path(event.path).name}'")

    def _handle_save_path(self, event: Event) -> List[Command]:
        session = self.session
        if isinstance(event, Cancel):
            session.mode = Mode.EDITING
            return self._success("Cancelled save.")
        if isinstance(event, EntrySubmitted):
            path = event.text
            if not path.strip():
                return []
            session.mode = Mode.EDITING
            self._show("Saving...")
            return [WriteFile(path, session.buffers[OUTPUT])]
        return []

    def _on_file_written(self, event: Union[FileSaved, FileSaveFailed]) -> List[Command]:
        if event.purpose == PURPOSE_DEBUG_LOG:
            if isinstance(event, FileSaveFailed):
                return self._failure(f"Error writing {DEBUG_LOG_PATH}: {event.error}")
            return self._success(f"{DEBUG_LOG_PATH} written successfully.")
        if self.session.mode is Mode.SAVE_PATH_ENTRY:
            self.session.mode = Mode.EDITING
        if isinstance(event, FileSaveFailed):
            return self._failure(f"Error saving '{Path(event.path).name}': {event.error}")
        return self._success(f"Saved to '{Path(event.path).name}'")

    # ----------------------------------------------------- generation setup

    def _begin_generation_setup(self) -> List[Command]:
        session = self.session
        if session.is_generating:
            return self._failure("Generation already in progress.")
        if not session.buffers[INPUT].strip():
            return self._failure("Cannot generate: Input vocabulary is empty.")
        if not parse_vocabulary(session.buffers[INPUT]):
            return self._failure("Cannot generate: no 'word = meaning' lines found.")
        if not session.credential:
            return self._failure("Cannot generate: API Key is not configured in api.json.")
        session.selected_model = None
        session.selected_question_type = None
        session.mode = Mode.MODEL_SELECTION
        self._show("Select a model.")
        return []

    def _cancel_generation_setup(self) -> List[Command]:
        session = self.session
        if session.mode is Mode.MODEL_SELECTION:
            session.selected_model = None
        elif session.mode is Mode.QUESTION_TYPE_SELECTION:
            session.selected_question_type = None
        session.is_generating = False
        session.mode = Mode.EDITING
        return self._success("Cancelled generation.")

    def _handle_selection(self, event: Event) -> List[Command]:
        session = self.session
        if isinstance(event, Cancel):
            return self._cancel_generation_setup()
        if not isinstance(event, OptionChosen):
            return []
        if session.mode is Mode.MODEL_SELECTION:
            model = next((item for item in GENERATION_MODELS if item.id == event.option_id), None)
            if model is None:
                return []
            session.selected_model = model.id
            session.mode = Mode.QUESTION_TYPE_SELECTION
            if model.description == HIGH_COST_TAG:
                self._show("Warning: High cost model selected!")
            else:
                self._show("Select a question type.")
            return []
        if not any(item.id == event.option_id for item in QUESTION_TYPES):
            return []
        session.selected_question_type = event.option_id
        if needs_sentence_count(event.option_id):
            session.mode = Mode.SENTENCE_COUNT_ENTRY
            session.entry_text = session.sentence_count
            self._show("Enter number of sentences.")
            return []
        return self._start_generation(1)

    def _handle_sentence_count(self, event: Event) -> List[Command]:
        session = self.session
        if isinstance(event, Cancel):
            return self._cancel_generation_setup()
        if not isinstance(event, EntrySubmitted):
            return []
        value = event.text.strip()
        if not value.isdecimal() or int(value) < 1:
            session.entry_text = value
            return self._failure("Sentence count must be a positive whole number.")
        session.sentence_count = value
        return self._start_generation(int(value))

    def _start_generation(self, sentence_count: int) -> List[Command]:
        session = self.session
        entries = parse_vocabulary(session.buffers[INPUT])
        # Reshuffled on every request so the same entries don't always lead.
        self._shuffle(entries)
        instructions, payload = build_prompts(
            entries, session.selected_question_type or "", sentence_count
        )
        self._log(f"PROMPT_SYSTEM: {instructions}")
        self._log(f"PROMPT_USER: {payload}")

        self._last_request_id += 1
        request_id = self._last_request_id
        session.active_request_id = request_id
        session.mode = Mode.EDITING
        session.is_generating = True
        session.elapsed_seconds = 0
        self._show("Generating...")
        return [
            Generate(
                request_id,
                session.credential,
                session.selected_model or "",
                instructions,
                payload,
            ),
            Tick(request_id),
        ]

    # ------------------------------------------------------ generation run

    def _is_current(self, request_id: int) -> bool:
        return self.session.is_generating and request_id == self.session.active_request_id

    def _on_generation_finished(self, event: GenerationFinished) -> List[Command]:
        session = self.session
        if not self._is_current(event.request_id):
            self._log(f"Discarded stale generation result {event.request_id}")
            return []
        session.is_generating = False
        session.mode = Mode.EDITING
        if not event.ok:
            return self._failure(f"Generation Error: {event.error}")
        self._replace_buffer(OUTPUT, event.text or "")
        return self._success("Generation complete!")

    def _on_tick(self, event: GenerationTick) -> List[Command]:
        if not self._is_current(event.request_id):
            return []
        self.session.elapsed_seconds += 1
        self._show(f"Generating... ({self.session.elapsed_seconds}s)")
        return [Tick(event.request_id)]
