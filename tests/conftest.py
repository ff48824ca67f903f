"""Shared fixtures: a scratch project and an in-memory debug log."""

import pytest

from axon.debug_log import LoglistDebugLog


@pytest.fixture
def project(tmp_path):
    """A small project tree."""
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "main.go").write_text(
        "package main\n\ntype Server struct {\n}\n\nfunc main() {\n\tStart()\n}\n\nfunc Start() {\n}\n"
    )
    (tmp_path / "src" / "util.py").write_text(
        "class Helper:\n    def run(self):\n        pass\n\n\ndef helper_function():\n    return 1\n"
    )
    (tmp_path / "README.md").write_text("# Demo\n\nline three\nline four\n")
    (tmp_path / "node_modules").mkdir()
    (tmp_path / "node_modules" / "lib.js").write_text("function ignored() {}\n")
    return tmp_path


@pytest.fixture
def debug_log():
    return LoglistDebugLog()
