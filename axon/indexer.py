"""
Project index: one walk over the project tree at startup, plus regex-based
symbol extraction for common languages. The index is read-only once built.
"""

import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Tuple, Union

from pydantic import BaseModel, Field

from .config import should_ignore
from .errors import ToolError
from .fsctx import get_file_extension, relative_path


class Symbol(BaseModel):
    name: str
    type: str  # class, struct, interface, impl, function, method
    line: int
    signature: str = ""


class FileInfo(BaseModel):
    path: str
    size: int = 0
    extension: str = ""
    is_dir: bool = False
    classes: List[str] = Field(default_factory=list)
    functions: List[str] = Field(default_factory=list)
    symbols: List[Symbol] = Field(default_factory=list)


class TreeNode(BaseModel):
    name: str
    path: str = ""
    is_dir: bool = True
    children: Dict[str, "TreeNode"] = Field(default_factory=dict)
    files: List[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Symbol patterns per language
# -----------------------------------------------------------------------------

_IDENT = r"[A-Za-z_][A-Za-z0-9_]*"

# Each entry is (pattern, symbol type). The symbol name is the last non-empty group.
SYMBOL_PATTERNS: Dict[str, List[Tuple[Pattern[str], str]]] = {
    "go": [
        (re.compile(rf"^\s*func\s+(\([^)]+\)\s+)?({_IDENT})"), "function"),
        (re.compile(rf"^\s*type\s+({_IDENT})\s+struct\b"), "struct"),
        (re.compile(rf"^\s*type\s+({_IDENT})\s+interface\b"), "interface"),
    ],
    "php": [
        (re.compile(rf"^\s*(?:abstract\s+|final\s+)?class\s+({_IDENT})"), "class"),
        (re.compile(rf"^\s*(?:(?:public|private|protected|static)\s+)*function\s+({_IDENT})"), "function"),
    ],
    "javascript": [
        (re.compile(r"^\s*(?:export\s+)?(?:default\s+)?class\s+([A-Za-z_$][A-Za-z0-9_$]*)"), "class"),
        (re.compile(r"^\s*(?:export\s+)?(?:async\s+)?function\s*\*?\s*([A-Za-z_$][A-Za-z0-9_$]*)"), "function"),
        (re.compile(r"^\s*(?:export\s+)?(?:const|let|var)\s+([A-Za-z_$][A-Za-z0-9_$]*)\s*=\s*(?:async\s*)?\("), "function"),
    ],
    "c": [
        (re.compile(rf"^\s*struct\s+({_IDENT})"), "struct"),
        (re.compile(rf"^\s*class\s+({_IDENT})"), "class"),
        (re.compile(rf"^\s*(?:static\s+|inline\s+)?(?:{_IDENT}[\s*&]+)+({_IDENT})\s*\("), "function"),
    ],
    "lua": [
        (re.compile(rf"^\s*(?:local\s+)?function\s+({_IDENT}(?:[.:]{_IDENT})*)"), "function"),
        (re.compile(rf"^\s*(?:local\s+)?({_IDENT}(?:\.{_IDENT})*)\s*=\s*function\s*\("), "function"),
    ],
    "python": [
        (re.compile(rf"^\s*class\s+({_IDENT})"), "class"),
        (re.compile(rf"^\s*(?:async\s+)?def\s+({_IDENT})"), "function"),
    ],
    "java": [
        (re.compile(rf"^\s*(?:(?:public|private|protected|abstract|final|static)\s+)*(?:class|interface|enum)\s+({_IDENT})"), "class"),
        (re.compile(rf"^\s*(?:(?:public|private|protected|static|abstract|final|synchronized)\s+)+(?:[A-Za-z_][A-Za-z0-9_.<>\[\],]*\s+)?({_IDENT})\s*\("), "method"),
    ],
    "ruby": [
        (re.compile(rf"^\s*(?:class|module)\s+({_IDENT}(?:::{_IDENT})*)"), "class"),
        (re.compile(rf"^\s*def\s+(?:self\.)?({_IDENT}[?!=]?)"), "function"),
    ],
    "rust": [
        (re.compile(rf"^\s*(?:pub(?:\([^)]*\))?\s+)?struct\s+({_IDENT})"), "struct"),
        (re.compile(rf"^\s*(?:pub(?:\([^)]*\))?\s+)?trait\s+({_IDENT})"), "interface"),
        (re.compile(rf"^\s*impl(?:<[^>]*>)?\s+(?:{_IDENT}::)*({_IDENT})"), "impl"),
        (re.compile(rf"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:async\s+)?fn\s+({_IDENT})"), "function"),
    ],
    "shell": [
        (re.compile(rf"^\s*function\s+({_IDENT})"), "function"),
        (re.compile(rf"^\s*({_IDENT})\s*\(\)\s*\{{?"), "function"),
    ],
}

PARSER_BY_EXTENSION: Dict[str, str] = {
    ".go": "go",
    ".php": "php",
    ".js": "javascript", ".jsx": "javascript", ".ts": "javascript", ".tsx": "javascript",
    ".c": "c", ".cpp": "c", ".cc": "c", ".cxx": "c", ".h": "c", ".hpp": "c",
    ".lua": "lua",
    ".py": "python",
    ".java": "java",
    ".rb": "ruby",
    ".rs": "rust",
    ".sh": "shell", ".bash": "shell", ".zsh": "shell",
}

# Control-flow keywords that look like calls to the C and Java patterns.
_NOT_FUNCTIONS = {"if", "for", "while", "switch", "return", "catch", "sizeof", "else", "new"}

CLASS_LIKE = {"class", "struct", "interface"}
FUNCTION_LIKE = {"function", "method"}


def extract_symbols(path: Union[str, Path]) -> List[Symbol]:
    """
    Extract symbols from a code file. Unknown file types and unreadable files
    yield an empty list.
    """
    language = PARSER_BY_EXTENSION.get(get_file_extension(path))
    if language is None:
        return []
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            lines = f.read().splitlines()
    except OSError:
        return []

    patterns = SYMBOL_PATTERNS[language]
    symbols: List[Symbol] = []
    for line_num, line in enumerate(lines, start=1):
        if language == "shell" and line.strip().startswith("#"):
            continue
        for pattern, symbol_type in patterns:
            match = pattern.match(line)
            if not match:
                continue
            name = [g for g in match.groups() if g][-1]
            if symbol_type in FUNCTION_LIKE and name in _NOT_FUNCTIONS:
                continue
            symbols.append(Symbol(name=name, type=symbol_type, line=line_num, signature=line.strip()))
            break
    return symbols


class ProjectIndex:
    """
    Files, symbols and the directory tree of one project, keyed by
    project-relative paths with forward slashes.
    """

    def __init__(self, project_root: Union[str, Path], ignore_patterns: Optional[List[str]] = None) -> None:
        self.project_root = Path(project_root)
        self.ignore_patterns = list(ignore_patterns or [])
        self.files: Dict[str, FileInfo] = {}
        self.tree = TreeNode(name=self.project_root.name, path="")

    def index_project(self) -> None:
        """Walk the project once, skipping ignored paths."""
        self.files = {}
        self.tree = TreeNode(name=self.project_root.name, path="")

        for dirpath, dirnames, filenames in os.walk(self.project_root):
            rel_dir = relative_path(self.project_root, dirpath)

            kept_dirs = []
            for d in sorted(dirnames):
                rel = f"{rel_dir}/{d}".lstrip("/")
                if should_ignore(rel + "/", self.ignore_patterns):
                    continue
                kept_dirs.append(d)
                self._add(rel, FileInfo(path=rel, is_dir=True))
            dirnames[:] = kept_dirs

            for filename in sorted(filenames):
                rel = f"{rel_dir}/{filename}".lstrip("/")
                if should_ignore(rel, self.ignore_patterns):
                    continue
                full_path = os.path.join(dirpath, filename)
                try:
                    size = os.path.getsize(full_path)
                except OSError:
                    continue
                info = FileInfo(path=rel, size=size, extension=get_file_extension(filename))
                symbols = extract_symbols(full_path)
                if symbols:
                    info.symbols = symbols
                    info.classes = [s.name for s in symbols if s.type in CLASS_LIKE]
                    info.functions = [s.name for s in symbols if s.type in FUNCTION_LIKE]
                self._add(rel, info)

    def _add(self, path: str, info: FileInfo) -> None:
        self.files[path] = info
        parts = path.split("/")
        current = self.tree
        for i, part in enumerate(parts[:-1]):
            if part not in current.children:
                current.children[part] = TreeNode(name=part, path="/".join(parts[:i + 1]))
            current = current.children[part]
        if info.is_dir:
            if parts[-1] not in current.children:
                current.children[parts[-1]] = TreeNode(name=parts[-1], path=path)
        else:
            current.files.append(path)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_tree(self, path: str = "") -> TreeNode:
        if path in ("", ".", "/"):
            return self.tree
        current = self.tree
        for part in path.strip("/").split("/"):
            if not part:
                continue
            if part not in current.children:
                raise ToolError(f"path not found: {path}")
            current = current.children[part]
        return current

    def get_file_symbols(self, path: str) -> List[Symbol]:
        info = self.files.get(path)
        if info is None:
            raise ToolError(f"file not found in index: {path}")
        return info.symbols

    def get_all_file_paths(self) -> List[str]:
        return sorted(p for p, info in self.files.items() if not info.is_dir)

    def get_file_info(self, path: str) -> Optional[FileInfo]:
        return self.files.get(path)
