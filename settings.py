import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

API_CONFIG_PATH = Path("api.json")
API_KEY_FIELD = "chatgpt_api_key"
DEBUG_LOG_PATH = Path("debug.log")

SUCCESS_STATUS_SECONDS = 2.0
ERROR_STATUS_SECONDS = 4.0
GENERATION_TICK_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 130
TEMPERATURE = 1.0

UNDO_LIMIT = 200
VOCAB_EXTENSION = ".txt"

DEFAULT_STATUS = (
    "Ctrl+O: Load | Ctrl+S: Save | Ctrl+G: Generate | Tab: Switch Panes | "
    "Ctrl+Z/Ctrl+Y: Undo/Redo | Ctrl+C: Quit"
)


@dataclass(frozen=True)
class UIStyle:
    """Presentation constants handed to the app at construction time."""

    focused_border: str = "round #5f5fd7"
    blurred_border: str = "solid #585858"
    help_color: str = "#626262"
    margin: str = "1 2"
    show_line_numbers: bool = True

    def to_css(self) -> str:
        return f"""
    #editor-panes {{
        height: 1fr;
        margin: {self.margin};
    }}

    .vocab-buffer {{
        width: 1fr;
        border: {self.blurred_border};
    }}

    .vocab-buffer:focus {{
        border: {self.focused_border};
    }}

    #loaded-file {{
        margin: 0 2;
        height: auto;
    }}

    #status-line {{
        margin: 0 2;
        height: 1;
        color: {self.help_color};
    }}
    """


def load_api_key(path: Path = API_CONFIG_PATH) -> tuple[str, Optional[str]]:
    """Read the backend credential; returns ``(key, error)``.

    Any problem degrades to an empty key with a short reason instead of
    raising, so the editor still starts without generation.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        return "", f"cannot read {path}: {exc}"
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        return "", f"invalid JSON in {path}: {exc}"
    if not isinstance(data, dict):
        return "", f"{path} must contain a JSON object"
    key = data.get(API_KEY_FIELD, "")
    if not isinstance(key, str):
        return "", f"{API_KEY_FIELD} in {path} must be a string"
    return key.strip(), None
