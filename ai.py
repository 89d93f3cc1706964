import http.client
import json
import socket
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional
from urllib import error, request

from settings import REQUEST_TIMEOUT_SECONDS, TEMPERATURE

OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
_PROMPT_LOG_PATH = Path("prompt.log")
_prompt_log_lock = threading.Lock()
_CONNECTION_LOG_PATH = Path("connection.log")
_connection_log_lock = threading.Lock()


class GenerationError(Exception):
    """Base class for every way a generation request can fail."""


class MissingCredentialError(GenerationError):
    def __init__(self) -> None:
        super().__init__("OpenAI API key is not configured. Check api.json.")


class TransportError(GenerationError):
    pass


class GenerationTimeout(TransportError):
    pass


class ApiError(GenerationError):
    def __init__(self, message: str, type_: str = "", code: str = "") -> None:
        self.message = message
        self.type = type_
        self.code = code
        super().__init__(f"API error: {message} ({type_})")


class InvalidResponseError(GenerationError):
    def __init__(self, detail: str, raw: str) -> None:
        self.raw = raw
        super().__init__(f"Invalid response JSON: {detail}. Response: {raw}")


class EmptyResponseError(GenerationError):
    def __init__(self) -> None:
        super().__init__("The API returned an empty response.")


def reset_prompt_log() -> None:
    with _prompt_log_lock:
        _PROMPT_LOG_PATH.write_text("", encoding="utf-8")


def reset_connection_log() -> None:
    with _connection_log_lock:
        _CONNECTION_LOG_PATH.write_text("", encoding="utf-8")


def _log_prompt_exchange(
    model: str,
    instructions: str,
    payload: str,
    response_raw: str | None,
    error_text: str | None,
) -> None:
    prompt_timestamp = datetime.now().isoformat(timespec="seconds")
    response_text = (response_raw or "").strip()
    with _prompt_log_lock:
        size = _PROMPT_LOG_PATH.stat().st_size if _PROMPT_LOG_PATH.exists() else 0
        with _PROMPT_LOG_PATH.open("a", encoding="utf-8") as log:
            if size:
                log.write("=====\n")
            log.write(f"vocaquiz [{prompt_timestamp}] Instructions:\n")
            log.write("------------------------------------------------------------\n")
            log.write(f"{instructions.strip() or '<empty instructions>'}\n")
            log.write("------------------------------------------------------------\n")
            log.write(f"{payload.strip() or '<empty payload>'}\n")
            log.write("============================================================\n")
            response_timestamp = datetime.now().isoformat(timespec="seconds")
            log.write(f"{model} [{response_timestamp}] Response:\n")
            log.write("------------------------------------------------------------\n")
            if error_text:
                log.write(f"<error> {error_text}\n")
            elif response_text:
                log.write(f"{response_text}\n")
            else:
                log.write("<empty>\n")
            log.write("============================================================\n")


def log_connection_event(status: str, model: str, detail: str | None = None) -> None:
    timestamp = datetime.now().isoformat(timespec="seconds")
    message = detail.strip() if detail else ""
    line = f"{timestamp}\t{status.upper()}\t{model}"
    if message:
        line = f"{line}\t{message}"
    with _connection_log_lock:
        with _CONNECTION_LOG_PATH.open("a", encoding="utf-8") as log:
            log.write(line + "\n")


def _request_body(model: str, instructions: str, payload: str) -> dict:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": instructions},
            {"role": "user", "content": payload},
        ],
        "temperature": TEMPERATURE,
    }


def _api_error_from(parsed: object) -> Optional[ApiError]:
    if not isinstance(parsed, dict):
        return None
    details = parsed.get("error")
    if not isinstance(details, dict):
        return None
    return ApiError(
        str(details.get("message") or ""),
        str(details.get("type") or ""),
        str(details.get("code") or ""),
    )


def _post_chat(api_key: str, body: dict) -> str:
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    data = json.dumps(body).encode("utf-8")
    http_request = request.Request(
        OPENAI_API_URL,
        data=data,
        headers=headers,
        method="POST",
    )
    try:
        with request.urlopen(http_request, timeout=REQUEST_TIMEOUT_SECONDS) as response:
            raw_bytes = response.read()
    except error.HTTPError as exc:
        raw = ""
        if exc.fp:
            try:
                raw = exc.read().decode("utf-8", errors="replace")
            except (OSError, http.client.HTTPException):
                raw = ""
        try:
            api_error = _api_error_from(json.loads(raw))
        except json.JSONDecodeError:
            api_error = None
        if api_error is not None:
            raise api_error from exc
        raise TransportError(f"ChatGPT API request failed: HTTP {exc.code}") from exc
    except (TimeoutError, socket.timeout) as exc:
        raise GenerationTimeout(
            f"ChatGPT API request timed out after {REQUEST_TIMEOUT_SECONDS}s"
        ) from exc
    except error.URLError as exc:
        if isinstance(exc.reason, (TimeoutError, socket.timeout)):
            raise GenerationTimeout(
                f"ChatGPT API request timed out after {REQUEST_TIMEOUT_SECONDS}s"
            ) from exc
        raise TransportError(f"ChatGPT API request failed: {exc.reason}") from exc
    except OSError as exc:
        raise TransportError(f"ChatGPT API request failed: {exc}") from exc
    except http.client.HTTPException as exc:
        raise TransportError(f"ChatGPT API request failed: {exc!r}") from exc
    try:
        return raw_bytes.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidResponseError(
            f"body is not UTF-8 ({exc.reason})", raw_bytes.decode("utf-8", errors="replace")
        ) from exc


def _extract_text(raw_payload: str) -> str:
    try:
        parsed = json.loads(raw_payload)
    except json.JSONDecodeError as exc:
        raise InvalidResponseError(str(exc), raw_payload) from exc
    api_error = _api_error_from(parsed)
    if api_error is not None:
        raise api_error
    if not isinstance(parsed, dict):
        raise InvalidResponseError("expected a JSON object", raw_payload)
    try:
        choices = parsed.get("choices") or []
        content = choices[0]["message"].get("content") if choices else None
    except (KeyError, TypeError, AttributeError, IndexError) as exc:
        raise InvalidResponseError(f"unexpected structure ({exc})", raw_payload) from exc
    if not content:
        raise EmptyResponseError()
    if not isinstance(content, str):
        raise InvalidResponseError("unexpected structure (content is not a string)", raw_payload)
    return content


def generate(api_key: str, model: str, instructions: str, payload: str) -> str:
    """Send one chat completion request and return the generated text.

    Exactly one HTTP call is made; every failure surfaces as a
    ``GenerationError`` subclass so callers can tell them apart.
    """
    if not api_key:
        raise MissingCredentialError()

    raw_payload: Optional[str] = None
    try:
        raw_payload = _post_chat(api_key, _request_body(model, instructions, payload))
        text = _extract_text(raw_payload)
    except GenerationError as exc:
        log_connection_event("FAIL", model, str(exc))
        _log_prompt_exchange(model, instructions, payload, raw_payload, str(exc))
        raise
    log_connection_event("SUCCESS", model)
    _log_prompt_exchange(model, instructions, payload, raw_payload, None)
    return text
