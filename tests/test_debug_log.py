"""Tests for the debug log sinks."""

import io

from rich.console import Console

from axon.debug_log import (
    DEBUG_LOG_FILENAME,
    MAX_BODY_LOG_CHARS,
    FileDebugLog,
    LoglistDebugLog,
    NullDebugLog,
    open_debug_log,
    truncate,
)


class TestTruncate:

    def test_short_text(self):
        assert truncate("abc", 5) == "abc"

    def test_long_text(self):
        assert truncate("abcdef", 3) == "abc\n... (truncated)"


class TestLoglistDebugLog:

    def test_request_body_is_capped(self):
        log = LoglistDebugLog()
        log.request("POST", "http://x/v1/chat/completions", {"content": "x" * (MAX_BODY_LOG_CHARS * 2)})
        assert log.lines[0] == ">>> REQUEST: POST http://x/v1/chat/completions"
        assert log.lines[1].endswith("... (truncated)")
        assert len(log.lines[1]) < MAX_BODY_LOG_CHARS + 50

    def test_response(self):
        log = LoglistDebugLog()
        log.response(200)
        assert log.lines == ["<<< RESPONSE: Status 200"]

    def test_tool_call_error(self):
        log = LoglistDebugLog()
        log.tool_call("read_file", {"path": "a.go"}, error=ValueError("boom"))
        assert log.lines == ["🔧 TOOL CALL: read_file", '   Args: {"path": "a.go"}', "   Error: boom"]


class TestNullDebugLog:

    def test_everything_is_a_no_op(self):
        log = NullDebugLog()
        log.log("x")
        log.request("GET", "http://x")
        log.tool_call("grep", {}, result="[]")
        log.close()


class TestFileDebugLog:

    def test_writes_timestamped_lines(self, tmp_path):
        log = FileDebugLog(tmp_path / "debug.log")
        log.log("hello")
        log.close()
        text = (tmp_path / "debug.log").read_text(encoding="utf-8")
        assert "=== AXON Debug Log Started ===" in text
        assert "] hello" in text
        assert "=== AXON Debug Log Ended ===" in text

    def test_close_twice(self, tmp_path):
        log = FileDebugLog(tmp_path / "debug.log")
        log.close()
        log.close()


class TestOpenDebugLog:

    def test_disabled_by_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AXON_DEBUG_LOG", raising=False)
        assert isinstance(open_debug_log(tmp_path), NullDebugLog)

    def test_enabled(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AXON_DEBUG_LOG", "true")
        log = open_debug_log(tmp_path)
        try:
            assert isinstance(log, FileDebugLog)
        finally:
            log.close()
        assert (tmp_path / DEBUG_LOG_FILENAME).exists()

    def test_open_failure_falls_back(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AXON_DEBUG_LOG", "1")
        console = Console(file=io.StringIO())
        log = open_debug_log(tmp_path / "missing-dir", console)
        assert isinstance(log, NullDebugLog)
        assert "Failed to initialize debug logger" in console.file.getvalue()
