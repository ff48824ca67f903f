"""
Debug logging sink.

The transport client, the conversation loop and the tool executor all take a
DebugLogBase at construction time. The default NullDebugLog drops everything,
so a missing sink never turns into an error.

Usage:
    ```python
    log = open_debug_log(project_root)   # FileDebugLog or NullDebugLog
    client = LLMClient(settings, log=log)
    ...
    log.close()
    ```
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Union

from rich.console import Console

DEBUG_LOG_FILENAME: str = ".axon-debug.log"
MAX_BODY_LOG_CHARS: int = 10_000
MAX_RESULT_LOG_CHARS: int = 5_000


def truncate(text: str, limit: int) -> str:
    """Cut text to limit characters, marking the cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + "\n... (truncated)"


class DebugLogBase(ABC):
    """
    Abstract interface for the debug log. Subclasses only implement write();
    the structured helpers are shared.
    """

    @abstractmethod
    def write(self, msg: str) -> None:
        """Record one line."""
        pass

    def log(self, msg: str) -> None:
        self.write(msg)

    def request(self, method: str, url: str, body: Union[str, bytes, dict, None] = None) -> None:
        """Log an outbound HTTP request with a size-capped body."""
        self.write(f">>> REQUEST: {method} {url}")
        if body:
            if isinstance(body, dict):
                body = json.dumps(body, ensure_ascii=False)
            elif isinstance(body, bytes):
                body = body.decode("utf-8", errors="replace")
            self.write(f">>> BODY:\n{truncate(body, MAX_BODY_LOG_CHARS)}")

    def response(self, status_code: int, body: str = "") -> None:
        """Log an HTTP response with a size-capped body."""
        self.write(f"<<< RESPONSE: Status {status_code}")
        if body:
            self.write(f"<<< BODY:\n{truncate(body, MAX_BODY_LOG_CHARS)}")

    def tool_call(self, name: str, args: Any, result: str = "", error: Optional[BaseException] = None) -> None:
        """Log one tool invocation and its outcome."""
        if not isinstance(args, str):
            args = json.dumps(args, ensure_ascii=False, default=str)
        self.write(f"🔧 TOOL CALL: {name}")
        self.write(f"   Args: {args}")
        if error is not None:
            self.write(f"   Error: {error}")
        else:
            self.write(f"   Result: {truncate(result, MAX_RESULT_LOG_CHARS)}")

    def close(self) -> None:
        pass


class NullDebugLog(DebugLogBase):
    """Discards everything."""

    def write(self, msg: str) -> None:
        pass


class FileDebugLog(DebugLogBase):
    """
    Writes timestamped lines to a file through a dedicated logging.Logger.
    """

    def __init__(self, log_file: Union[str, Path]) -> None:
        """
        Args:
            log_file: Path of the log file, opened in append mode.

        Raises:
            OSError: If the file cannot be opened.
        """
        self.log_file = Path(log_file)
        self.logger = logging.getLogger(f"axon.debug.{self.log_file}")
        self.logger.setLevel(logging.DEBUG)
        self.logger.handlers.clear()
        handler = logging.FileHandler(self.log_file, mode="a", encoding="utf-8")
        handler.setFormatter(logging.Formatter("[%(asctime)s] %(message)s"))
        self.logger.addHandler(handler)
        self.logger.propagate = False
        self.write("=== AXON Debug Log Started ===")

    def write(self, msg: str) -> None:
        self.logger.debug(msg)
        for handler in self.logger.handlers:
            handler.flush()

    def close(self) -> None:
        if not self.logger.handlers:
            return
        self.write("=== AXON Debug Log Ended ===\n")
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)


class LoglistDebugLog(DebugLogBase):
    """Keeps the logged lines in memory so callers can inspect them."""

    def __init__(self) -> None:
        self.lines: List[str] = []

    def write(self, msg: str) -> None:
        self.lines.append(msg)

    def contains(self, fragment: str) -> bool:
        return any(fragment in line for line in self.lines)


def debug_log_enabled() -> bool:
    return os.getenv("AXON_DEBUG_LOG", "").lower() in ("1", "true")


def open_debug_log(project_root: Union[str, Path], console: Optional[Console] = None) -> DebugLogBase:
    """
    Open the file log when AXON_DEBUG_LOG is set, otherwise return the no-op sink.
    """
    if not debug_log_enabled():
        return NullDebugLog()
    try:
        return FileDebugLog(Path(project_root) / DEBUG_LOG_FILENAME)
    except OSError as e:
        (console or Console(stderr=True)).print(f"[yellow]⚠ Failed to initialize debug logger: {e}[/yellow]")
        return NullDebugLog()
