"""Tests for the project index and symbol extraction."""

import pytest

from axon.config import DEFAULT_IGNORE
from axon.errors import ToolError
from axon.indexer import ProjectIndex, extract_symbols


def symbols_of(tmp_path, filename, source):
    path = tmp_path / filename
    path.write_text(source)
    return [(s.name, s.type) for s in extract_symbols(path)]


class TestExtractSymbols:

    def test_go(self, tmp_path):
        source = (
            "package api\n"
            "type Handler interface {\n}\n"
            "type Server struct {\n}\n"
            "func (s *Server) Serve() error {\n}\n"
            "func New() *Server {\n}\n"
        )
        assert symbols_of(tmp_path, "api.go", source) == [
            ("Handler", "interface"), ("Server", "struct"), ("Serve", "function"), ("New", "function"),
        ]

    def test_php(self, tmp_path):
        source = "<?php\nfinal class UserController\n{\n    public static function index()\n    {\n    }\n}\n"
        assert symbols_of(tmp_path, "UserController.php", source) == [
            ("UserController", "class"), ("index", "function"),
        ]

    def test_javascript(self, tmp_path):
        source = (
            "export default class App {}\n"
            "export async function load() {}\n"
            "const handler = async (req) => {}\n"
        )
        assert symbols_of(tmp_path, "app.ts", source) == [
            ("App", "class"), ("load", "function"), ("handler", "function"),
        ]

    def test_python(self, tmp_path):
        source = "class Repo:\n    async def fetch(self):\n        pass\n"
        assert symbols_of(tmp_path, "repo.py", source) == [("Repo", "class"), ("fetch", "function")]

    def test_rust(self, tmp_path):
        source = "pub struct Config {}\npub trait Store {}\nimpl Store for Config {}\npub fn load() {}\n"
        assert symbols_of(tmp_path, "lib.rs", source) == [
            ("Config", "struct"), ("Store", "interface"), ("Store", "impl"), ("load", "function"),
        ]

    def test_c_skips_control_flow(self, tmp_path):
        source = "struct point {\n};\nint add(int a, int b) {\n    return a + b;\n}\n"
        assert symbols_of(tmp_path, "math.c", source) == [("point", "struct"), ("add", "function")]

    def test_shell_skips_comments(self, tmp_path):
        source = "#!/bin/sh\n# fake() {\nfunction deploy {\n}\ncleanup() {\n}\n"
        assert symbols_of(tmp_path, "run.sh", source) == [("deploy", "function"), ("cleanup", "function")]

    def test_unknown_extension(self, tmp_path):
        assert symbols_of(tmp_path, "notes.txt", "def looks_like_python():\n") == []

    def test_missing_file(self, tmp_path):
        assert extract_symbols(tmp_path / "gone.py") == []


class TestProjectIndex:

    @pytest.fixture
    def index(self, project):
        index = ProjectIndex(project, DEFAULT_IGNORE)
        index.index_project()
        return index

    def test_file_paths(self, index):
        assert index.get_all_file_paths() == ["README.md", "src/main.go", "src/util.py"]

    def test_ignored_directories_are_skipped(self, index):
        assert index.get_file_info("node_modules") is None
        assert index.get_file_info("node_modules/lib.js") is None

    def test_file_info(self, index):
        info = index.get_file_info("src/util.py")
        assert info.extension == ".py"
        assert info.classes == ["Helper"]
        assert info.functions == ["run", "helper_function"]
        assert info.size > 0

    def test_directory_entry(self, index):
        assert index.get_file_info("src").is_dir is True

    def test_tree(self, index):
        root = index.get_tree("")
        assert list(root.children) == ["src"]
        assert root.files == ["README.md"]
        assert index.get_tree("src").files == ["src/main.go", "src/util.py"]
        assert index.get_tree("/src/").path == "src"

    def test_tree_missing_path(self, index):
        with pytest.raises(ToolError, match="path not found"):
            index.get_tree("lib")

    def test_file_symbols(self, index):
        assert [s.name for s in index.get_file_symbols("src/main.go")] == ["Server", "main", "Start"]

    def test_file_symbols_missing(self, index):
        with pytest.raises(ToolError, match="file not found in index"):
            index.get_file_symbols("src/other.go")

    def test_reindex_starts_fresh(self, index, project):
        (project / "src" / "util.py").unlink()
        index.index_project()
        assert "src/util.py" not in index.get_all_file_paths()
