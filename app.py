from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.message import Message
from textual.screen import ModalScreen, Screen
from textual.widgets import DirectoryTree, Footer, Header, Input, OptionList, Static, TextArea
from textual.widgets.option_list import Option
from rich.text import Text

import ai
from commands import Command, Completion, ReadFile
from controller import (
    BufferEdited,
    Cancel,
    DumpDebugLog,
    EntrySubmitted,
    Event,
    FileChosen,
    FocusBuffer,
    FocusNext,
    GenerateRequested,
    OpenFileRequested,
    OptionChosen,
    Quit,
    Redo,
    SaveRequested,
    SessionController,
    Undo,
)
from prompts import GENERATION_MODELS, QUESTION_TYPES, ChoiceItem
from session import INPUT, OUTPUT, Mode, Session
from settings import UIStyle, VOCAB_EXTENSION, load_api_key
from vocab_models import VocabEntry


class SessionEvent(Message):
    """Carries a controller event through the app's message queue."""

    def __init__(self, event: Event) -> None:
        super().__init__()
        self.event = event


class CommandCrashed(Message):
    def __init__(self, command: Command, error: BaseException) -> None:
        super().__init__()
        self.command = command
        self.error = error


class BufferTextArea(TextArea):
    """TextArea bound to one of the session buffers."""

    def __init__(self, buffer_index: int, **kwargs: object) -> None:
        super().__init__(**kwargs)
        self.buffer_index = buffer_index

    def on_focus(self, event: events.Focus) -> None:
        self.app.submit(FocusBuffer(self.buffer_index))


class ModeScreen(ModalScreen[None]):
    """Modal shown while the session is in one of the non-editing modes."""

    def __init__(self, status: str = "") -> None:
        super().__init__()
        self._status = status

    def status_line(self) -> Static:
        return Static(self._status, id="mode-status", classes="mode-status")

    def show_status(self, message: str) -> None:
        self._status = message
        if self.is_mounted:
            self.query_one("#mode-status", Static).update(message)


class ChoiceScreen(ModeScreen):
    """Modal list used for both the model and the question type selection."""

    DEFAULT_CSS = """
    ChoiceScreen {
        align: center middle;
    }

    #choice-panel {
        min-width: 50;
        max-width: 80;
        height: auto;
        background: $panel;
        border: round $secondary;
        padding: 1 2 1 2;
        box-sizing: border-box;
    }

    #choice-title {
        content-align: center middle;
        text-style: bold;
        padding-bottom: 1;
    }

    #choice-list {
        border: none;
        background: $surface;
        padding: 0;
        height: auto;
        max-height: 12;
    }

    #choice-list > .option-list--option-highlighted {
        background: $accent;
        color: $text;
        text-style: bold;
    }

    #choice-hint, .mode-status {
        padding-top: 1;
        color: $text-muted;
    }
    """

    def __init__(self, title: str, items: Iterable[ChoiceItem], status: str = "") -> None:
        super().__init__(status)
        self._title = title
        self._items = list(items)

    def compose(self) -> ComposeResult:
        with Vertical(id="choice-panel"):
            yield Static(self._title, id="choice-title")
            yield OptionList(
                *[Option(self._option_label(item), id=item.id) for item in self._items],
                id="choice-list",
            )
            yield self.status_line()
            yield Static("Enter: select | Esc: cancel", id="choice-hint")

    @staticmethod
    def _option_label(item: ChoiceItem) -> Text:
        label = Text(item.title)
        if item.description:
            label.append(f"  {item.description}", style="dim italic")
        return label

    def on_mount(self) -> None:
        option_list = self.query_one("#choice-list", OptionList)
        option_list.focus()
        option_list.highlighted = 0 if option_list.option_count else None

    def on_option_list_option_selected(self, event: OptionList.OptionSelected) -> None:
        event.stop()
        selected = event.option_id or str(event.option.prompt)
        self.app.submit(OptionChosen(selected))

    def on_key(self, event: events.Key) -> None:
        option_list = self.query_one("#choice-list", OptionList)
        if event.key == "escape":
            event.stop()
            self.app.submit(Cancel())
        elif event.character in ("w", "ㅈ"):
            event.stop()
            option_list.action_cursor_up()
        elif event.character in ("s", "ㄴ"):
            event.stop()
            option_list.action_cursor_down()


class EntryScreen(ModeScreen):
    """Single-line prompt for the save path and the sentence count."""

    DEFAULT_CSS = """
    EntryScreen {
        align: center middle;
        background: transparent;
    }

    #entry-panel {
        width: 84;
        height: auto;
        background: $panel;
        border: round $secondary;
        padding: 1 2;
    }

    #entry-field {
        border: round $secondary;
        background: $surface;
    }

    #entry-hint, .mode-status {
        color: $text-muted;
    }
    """

    def __init__(
        self,
        prompt: str,
        initial_value: str,
        *,
        placeholder: str = "",
        max_length: int = 0,
        status: str = "",
    ) -> None:
        super().__init__(status)
        self._prompt = prompt
        self._initial_value = initial_value
        self._placeholder = placeholder
        self._max_length = max_length

    def compose(self) -> ComposeResult:
        with Vertical(id="entry-panel"):
            yield Static(self._prompt, id="entry-prompt")
            yield Input(
                value=self._initial_value,
                placeholder=self._placeholder,
                max_length=self._max_length,
                id="entry-field",
            )
            yield self.status_line()
            yield Static("Enter: confirm | Esc: cancel", id="entry-hint")

    def on_mount(self) -> None:
        self.query_one("#entry-field", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        event.stop()
        self.app.submit(EntrySubmitted(event.value))

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            self.app.submit(Cancel())


class VocabDirectoryTree(DirectoryTree):
    """Directory browser that only lists folders and vocabulary files."""

    def filter_paths(self, paths: Iterable[Path]) -> Iterable[Path]:
        return [
            path
            for path in paths
            if not path.name.startswith(".")
            and (path.is_dir() or path.suffix == VOCAB_EXTENSION)
        ]


class FilePickerScreen(ModeScreen):
    DEFAULT_CSS = """
    FilePickerScreen {
        align: center middle;
    }

    #picker-panel {
        width: 90%;
        height: 80%;
        background: $panel;
        border: round $secondary;
        padding: 0 1;
    }

    #picker-tree {
        height: 1fr;
    }
    """

    def __init__(self, start_dir: Path, status: str = "") -> None:
        super().__init__(status)
        self._start_dir = start_dir

    def compose(self) -> ComposeResult:
        with Vertical(id="picker-panel"):
            yield Static(f"Open vocabulary ({VOCAB_EXTENSION})", id="picker-title")
            yield VocabDirectoryTree(self._start_dir, id="picker-tree")
            yield self.status_line()
            yield Static("Enter: open | Esc: cancel", id="picker-hint")

    def on_mount(self) -> None:
        self.query_one("#picker-tree", VocabDirectoryTree).focus()

    def on_directory_tree_file_selected(self, event: DirectoryTree.FileSelected) -> None:
        event.stop()
        self.app.submit(FileChosen(str(event.path)))

    def on_key(self, event: events.Key) -> None:
        if event.key == "escape":
            event.stop()
            self.app.submit(Cancel())


class ErrorScreen(Screen[None]):
    def __init__(self, message: str) -> None:
        super().__init__()
        self._message = message

    def compose(self) -> ComposeResult:
        yield Static(f"\nError: {self._message}\n\nPress ctrl+c to exit.", id="error-text")


def _working_directory() -> Path:
    try:
        return Path.cwd()
    except OSError:
        return Path("/")


class VocabQuizApp(App[None]):
    """Two-pane vocabulary editor that turns word lists into quiz questions."""

    TITLE = "vocaquiz"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+c", "quit_session", "Quit", priority=True),
        Binding("ctrl+o", "open", "Load", priority=True),
        Binding("ctrl+s", "save", "Save", priority=True),
        Binding("ctrl+g", "generate", "Generate", priority=True),
        Binding("ctrl+z", "undo", "Undo", show=False, priority=True),
        Binding("ctrl+y", "redo", "Redo", show=False, priority=True),
        Binding("tab", "focus_next_buffer", "Switch Panes", show=False, priority=True),
        Binding("f2", "dump_debug_log", "(debug.log)", show=False),
    ]

    def __init__(
        self,
        initial_path: str | Path | None = None,
        *,
        credential: str | None = None,
        style: UIStyle | None = None,
        shuffle: Callable[[List[VocabEntry]], None] = random.shuffle,
    ) -> None:
        super().__init__()
        ai.reset_prompt_log()
        ai.reset_connection_log()
        if credential is None:
            credential, problem = load_api_key()
            if problem:
                ai.log_connection_event("CONFIG", "-", problem)
        self.ui_style = style or UIStyle()
        self.CSS = self.ui_style.to_css()
        self.session = Session(credential=credential)
        self.controller = SessionController(self.session, shuffle=shuffle)
        self._initial_load_path: Optional[Path] = (
            Path(initial_path).expanduser() if initial_path else None
        )
        self._editors: list[BufferTextArea] = []
        self._loaded_label: Optional[Static] = None
        self._status_line: Optional[Static] = None
        self._rendered_buffers = ["", ""]
        self._mode_screen: Optional[tuple[Mode, ModeScreen]] = None
        self._error_shown = False
        self._pending: set[asyncio.Task[Completion]] = set()

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Static("", id="loaded-file")
        with Horizontal(id="editor-panes"):
            yield BufferTextArea(
                INPUT,
                id="input-buffer",
                classes="vocab-buffer",
                placeholder="Load a vocabulary file or type 'word = meaning' here.",
                show_line_numbers=self.ui_style.show_line_numbers,
                soft_wrap=True,
            )
            yield BufferTextArea(
                OUTPUT,
                id="output-buffer",
                classes="vocab-buffer",
                placeholder="Generated questions will appear here.",
                show_line_numbers=self.ui_style.show_line_numbers,
                soft_wrap=True,
            )
        yield Static(self.session.status_message, id="status-line")
        yield Footer()

    def on_mount(self) -> None:
        self._editors = [
            self.query_one("#input-buffer", BufferTextArea),
            self.query_one("#output-buffer", BufferTextArea),
        ]
        self._loaded_label = self.query_one("#loaded-file", Static)
        self._status_line = self.query_one("#status-line", Static)
        self._editors[self.session.focused].focus()
        if self._initial_load_path:
            self._start_command(ReadFile(str(self._initial_load_path)))
        self.render_session()

    # ---------------------------------------------------------- event flow

    def submit(self, event: Event) -> None:
        """Queue an event for the controller; safe to call from any widget."""
        self.post_message(SessionEvent(event))

    def on_session_event(self, message: SessionEvent) -> None:
        self._dispatch(message.event)

    def on_command_crashed(self, message: CommandCrashed) -> None:
        self.controller.fail(message.error)
        self.render_session()

    def _dispatch(self, event: Event) -> None:
        try:
            commands = self.controller.handle(event)
        except Exception as exc:  # pragma: no cover - defensive programming
            self.controller.fail(exc)
            commands = []
        for command in commands:
            self._start_command(command)
        if self.session.quit_requested:
            self.exit()
            return
        self.render_session()

    def _start_command(self, command: Command) -> None:
        task: asyncio.Task[Completion] = asyncio.create_task(command.execute())
        self._pending.add(task)

        def _on_done(completed: asyncio.Task[Completion]) -> None:
            self._pending.discard(completed)
            if completed.cancelled():
                return
            exc = completed.exception()
            if exc is not None:
                self.post_message(CommandCrashed(command, exc))
                return
            self.post_message(SessionEvent(completed.result()))

        task.add_done_callback(_on_done)

    def on_text_area_changed(self, event: TextArea.Changed) -> None:
        area = event.text_area
        if isinstance(area, BufferTextArea):
            self._dispatch(BufferEdited(area.buffer_index, area.text))

    # ------------------------------------------------------------- actions

    def action_quit_session(self) -> None:
        self._dispatch(Quit())

    def action_open(self) -> None:
        self._dispatch(OpenFileRequested())

    def action_save(self) -> None:
        self._dispatch(SaveRequested())

    def action_generate(self) -> None:
        self._dispatch(GenerateRequested())

    def action_undo(self) -> None:
        self._dispatch(Undo())

    def action_redo(self) -> None:
        self._dispatch(Redo())

    def action_focus_next_buffer(self) -> None:
        self._dispatch(FocusNext())

    def action_dump_debug_log(self) -> None:
        self._dispatch(DumpDebugLog())

    # ----------------------------------------------------------- rendering

    def _build_mode_screen(self, mode: Mode) -> ModeScreen:
        session = self.session
        status = session.status_message
        if mode is Mode.FILE_PICKING:
            return FilePickerScreen(_working_directory(), status)
        if mode is Mode.SAVE_PATH_ENTRY:
            return EntryScreen(
                "Save file as:",
                session.entry_text,
                placeholder="Save file as...",
                max_length=256,
                status=status,
            )
        if mode is Mode.MODEL_SELECTION:
            return ChoiceScreen("Select a Model", GENERATION_MODELS, status)
        if mode is Mode.QUESTION_TYPE_SELECTION:
            return ChoiceScreen("Select Question Type", QUESTION_TYPES, status)
        if mode is Mode.SENTENCE_COUNT_ENTRY:
            return EntryScreen(
                "Enter number of sentences:",
                session.entry_text,
                placeholder="2",
                max_length=2,
                status=status,
            )
        raise ValueError(f"no screen for mode {mode}")

    def _sync_mode_screen(self) -> None:
        desired = self.session.mode
        shown = self._mode_screen[0] if self._mode_screen else Mode.EDITING
        if shown is desired:
            return
        if self._mode_screen is not None:
            _, screen = self._mode_screen
            self._mode_screen = None
            if self.screen is screen:
                self.pop_screen()
        if desired is not Mode.EDITING:
            screen = self._build_mode_screen(desired)
            self._mode_screen = (desired, screen)
            self.push_screen(screen)

    def _sync_buffers(self) -> None:
        for index, editor in enumerate(self._editors):
            value = self.session.buffers[index]
            if value == self._rendered_buffers[index]:
                continue
            if editor.text != value:
                editor.load_text(value)
            self._rendered_buffers[index] = value

    def render_session(self) -> None:
        session = self.session
        if session.last_error is not None:
            if not self._error_shown:
                self._error_shown = True
                self.push_screen(ErrorScreen(session.last_error))
            return
        if not self._editors or self._loaded_label is None or self._status_line is None:
            return
        self._sync_mode_screen()
        self._sync_buffers()
        if session.mode is Mode.EDITING:
            target = self._editors[session.focused]
            if self.focused is not target:
                target.focus()
        elif self._mode_screen is not None:
            self._mode_screen[1].show_status(session.status_message)
        loaded = session.loaded_file_path
        self._loaded_label.update(f"Loaded File: {Path(loaded).name}" if loaded else "")
        self._status_line.update(session.status_message)
        self.sub_title = f"Model: {session.selected_model}" if session.selected_model else ""


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    initial_path = args[0] if args else None
    VocabQuizApp(initial_path).run()


if __name__ == "__main__":
    main()
