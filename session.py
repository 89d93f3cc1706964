from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Optional

from settings import DEFAULT_STATUS, UNDO_LIMIT
from prompts import DEFAULT_SENTENCE_COUNT

INPUT = 0
OUTPUT = 1


class Mode(Enum):
    EDITING = "editing"
    FILE_PICKING = "file_picking"
    SAVE_PATH_ENTRY = "save_path_entry"
    MODEL_SELECTION = "model_selection"
    QUESTION_TYPE_SELECTION = "question_type_selection"
    SENTENCE_COUNT_ENTRY = "sentence_count_entry"


class UndoHistory:
    """Undo/redo snapshots for one buffer, capped at ``limit`` entries each."""

    def __init__(self, limit: int = UNDO_LIMIT) -> None:
        self._undo: Deque[str] = deque(maxlen=limit)
        self._redo: Deque[str] = deque(maxlen=limit)

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def record(self, previous: str) -> None:
        self._undo.append(previous)
        self._redo.clear()

    def undo(self, current: str) -> Optional[str]:
        if not self._undo:
            return None
        restored = self._undo.pop()
        self._redo.append(current)
        return restored

    def redo(self, current: str) -> Optional[str]:
        if not self._redo:
            return None
        restored = self._redo.pop()
        self._undo.append(current)
        return restored


@dataclass
class Session:
    credential: str = ""
    mode: Mode = Mode.EDITING
    buffers: List[str] = field(default_factory=lambda: ["", ""])
    focused: int = INPUT
    history: List[UndoHistory] = field(default_factory=lambda: [UndoHistory(), UndoHistory()])
    loaded_file_path: Optional[str] = None
    selected_model: Optional[str] = None
    selected_question_type: Optional[str] = None
    sentence_count: str = DEFAULT_SENTENCE_COUNT
    # Text of the path / count field while one of the entry modes is active.
    entry_text: str = ""
    is_generating: bool = False
    elapsed_seconds: int = 0
    active_request_id: int = 0
    status_message: str = DEFAULT_STATUS
    default_status_message: str = DEFAULT_STATUS
    last_error: Optional[str] = None
    quit_requested: bool = False
