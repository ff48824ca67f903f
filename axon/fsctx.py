"""
File context helpers shared by the slash commands and the tool executor.

All paths are resolved against the project root. Resolution is purely
lexical, so a path that escapes the root is rejected before anything touches
the filesystem.
"""

import os
from pathlib import Path
from typing import List, Optional, Tuple, Union

from thefuzz import fuzz

from .config import should_ignore
from .errors import PathOutsideRootError, ToolError

MAX_FILE_SIZE: int = 200 * 1024  # 200KB
MIN_SUGGESTION_SCORE: int = 80

LANGUAGE_BY_EXTENSION = {
    ".go": "go",
    ".php": "php",
    ".js": "javascript",
    ".ts": "typescript",
    ".jsx": "javascript",
    ".tsx": "typescript",
    ".sh": "bash",
    ".bash": "bash",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".json": "json",
    ".md": "markdown",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
    ".dockerfile": "dockerfile",
    ".rb": "ruby",
    ".py": "python",
    ".java": "java",
    ".c": "c",
    ".cpp": "cpp",
    ".h": "c",
    ".hpp": "cpp",
    ".rs": "rust",
    ".lua": "lua",
}


def resolve_path(project_root: Union[str, Path], path: str) -> Path:
    """
    Resolve a relative or absolute path inside the project root.

    Args:
        project_root: Absolute project root.
        path: Path supplied by the user or the model.

    Returns:
        The normalized absolute path.

    Raises:
        PathOutsideRootError: If the path would land outside the root.
    """
    root = os.path.normpath(os.path.abspath(str(project_root)))
    candidate = path if os.path.isabs(path) else os.path.join(root, path)
    resolved = os.path.normpath(candidate)
    if resolved != root and os.path.commonpath([root, resolved]) != root:
        raise PathOutsideRootError(path)
    return Path(resolved)


def relative_path(project_root: Union[str, Path], full_path: Union[str, Path]) -> str:
    """Project-relative path with forward slashes ("" for the root itself)."""
    rel = os.path.relpath(str(full_path), str(project_root))
    if rel == ".":
        return ""
    return rel.replace("\\", "/")


def read_file(project_root: Union[str, Path], path: str) -> Tuple[str, bool]:
    """
    Read a file, keeping at most MAX_FILE_SIZE bytes.

    Returns:
        Tuple of (content, truncated).

    Raises:
        ToolError: If the file is missing, a directory, or unreadable.
    """
    full_path = resolve_path(project_root, path)
    if not full_path.exists():
        raise ToolError(f"file not found: {path}")
    if full_path.is_dir():
        raise ToolError("path is a directory, not a file")
    try:
        with open(full_path, "rb") as f:
            data = f.read(MAX_FILE_SIZE + 1)
    except OSError as e:
        raise ToolError(f"failed to read file: {e}") from e

    truncated = len(data) > MAX_FILE_SIZE
    if truncated:
        data = data[:MAX_FILE_SIZE]
    return data.decode("utf-8", errors="replace"), truncated


def read_file_range(project_root: Union[str, Path], path: str, start_line: int, end_line: int) -> str:
    """
    Read lines start_line..end_line (1-based, inclusive).

    A start below 1 is clamped to 1 and an end past the last line is clamped
    to the last line.

    Raises:
        ToolError: If the file cannot be read or start_line > end_line.
    """
    full_path = resolve_path(project_root, path)
    try:
        text = full_path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        raise ToolError(f"failed to read file: {e}") from e

    lines = text.split("\n")
    start_line = max(start_line, 1)
    end_line = min(end_line, len(lines))
    if start_line > end_line:
        raise ToolError(f"invalid range: start line {start_line} is after end line {end_line}")
    return "\n".join(lines[start_line - 1:end_line])


def write_file(project_root: Union[str, Path], path: str, content: str) -> Path:
    """Write content to a file, creating parent directories as needed."""
    full_path = resolve_path(project_root, path)
    try:
        full_path.parent.mkdir(parents=True, exist_ok=True)
        with open(full_path, "w", encoding="utf-8") as f:
            f.write(content)
    except OSError as e:
        raise ToolError(f"failed to write file: {e}") from e
    return full_path


def get_file_extension(path: Union[str, Path]) -> str:
    """
    Lower-cased extension including the dot. Dotfiles such as .gitignore have
    no extension.
    """
    base = os.path.basename(str(path))
    if base.startswith(".") and "." not in base[1:]:
        return ""
    return os.path.splitext(base)[1].lower()


def language_for_extension(ext: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(ext, "text")


def suggest_similar_path(
    project_root: Union[str, Path],
    path: str,
    ignore_patterns: Optional[List[str]] = None,
    min_score: int = MIN_SUGGESTION_SCORE,
) -> Optional[str]:
    """
    Find the project file whose name best matches a path that does not exist.

    Returns:
        The project-relative path of the best match, or None if nothing
        scores at least min_score.
    """
    root = Path(project_root)
    wanted = os.path.basename(path).lower()
    if not wanted:
        return None

    best_match: Optional[str] = None
    highest_score = 0
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = relative_path(root, dirpath)
        dirnames[:] = [
            d for d in dirnames
            if not d.startswith(".") and not should_ignore(f"{rel_dir}/{d}/".lstrip("/"), ignore_patterns or [])
        ]
        for filename in filenames:
            score = fuzz.ratio(wanted, filename.lower())
            if score > highest_score:
                highest_score = score
                best_match = f"{rel_dir}/{filename}".lstrip("/")

    if highest_score >= min_score:
        return best_match
    return None
