"""
Tool executor: runs one named tool against the project and returns a JSON
string for the model.

Read-only tools run straight away. Mutating tools check that their targets
are inside the project root and not ignored, then ask the user; a declined
prompt is a normal "cancelled" result. Every failure is raised as ToolError so
the conversation loop can hand it back to the model.
"""

import fnmatch
import json
import os
import shutil
import stat
import subprocess
import time
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, List, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from . import fsctx
from .config import should_ignore
from .debug_log import DebugLogBase, NullDebugLog
from .errors import ToolError
from .indexer import ProjectIndex

ConfirmFn = Callable[[str, str], bool]

EXECUTE_TIMEOUT: int = 120  # seconds
DEPENDENCY_PREVIEW_LINES: int = 10

CANCELLED_RESULT: str = json.dumps({"cancelled": True, "message": "User cancelled the operation"})

DEPENDENCY_FILES: Dict[str, str] = {
    "package.json": "npm/node",
    "go.mod": "go",
    "composer.json": "php/composer",
    "requirements.txt": "python/pip",
    "pyproject.toml": "python",
    "Cargo.toml": "rust/cargo",
    "Gemfile": "ruby/bundler",
    "pom.xml": "java/maven",
    "build.gradle": "java/gradle",
}

LANGUAGE_NAMES: Dict[str, str] = {
    ".go": "Go", ".php": "PHP", ".js": "JavaScript", ".ts": "TypeScript",
    ".jsx": "JavaScript", ".tsx": "TypeScript", ".c": "C", ".cpp": "C++",
    ".h": "C/C++", ".hpp": "C++", ".lua": "Lua", ".py": "Python",
    ".java": "Java", ".rb": "Ruby", ".rs": "Rust", ".swift": "Swift",
    ".kt": "Kotlin", ".scala": "Scala", ".cs": "C#", ".dart": "Dart",
    ".sh": "Shell", ".bash": "Shell", ".zsh": "Shell",
}


# -----------------------------------------------------------------------------
# Argument records
# -----------------------------------------------------------------------------

class ToolArgs(BaseModel):
    """Base for tool argument records. `required` fields must be present and non-empty."""

    required: ClassVar[Tuple[str, ...]] = ()
    # Required fields that may legitimately be an empty string.
    allow_empty: ClassVar[Tuple[str, ...]] = ()


class PathArgs(ToolArgs):
    required = ("path",)
    path: Optional[str] = None


class OptionalPathArgs(ToolArgs):
    path: Optional[str] = None


class LineRangeArgs(ToolArgs):
    required = ("path", "start_line", "end_line")
    path: Optional[str] = None
    start_line: Optional[int] = None
    end_line: Optional[int] = None


class PatternArgs(ToolArgs):
    required = ("pattern",)
    pattern: Optional[str] = None
    path: Optional[str] = None


class ExtensionArgs(ToolArgs):
    required = ("extension",)
    extension: Optional[str] = None
    path: Optional[str] = None


class SymbolArgs(ToolArgs):
    required = ("symbol",)
    symbol: Optional[str] = None
    path: Optional[str] = None


class FileContentArgs(ToolArgs):
    required = ("path", "content")
    allow_empty = ("content",)
    path: Optional[str] = None
    content: Optional[str] = None


class StringReplaceArgs(ToolArgs):
    required = ("path", "old_string", "new_string")
    allow_empty = ("new_string",)
    path: Optional[str] = None
    old_string: Optional[str] = None
    new_string: Optional[str] = None


class SourceDestinationArgs(ToolArgs):
    required = ("source", "destination")
    source: Optional[str] = None
    destination: Optional[str] = None


class ExecuteArgs(ToolArgs):
    required = ("command",)
    command: Optional[str] = None
    description: Optional[str] = None


A = TypeVar("A", bound=ToolArgs)


def parse_args(record: Type[A], args: Dict[str, Any]) -> A:
    """
    Decode the generic argument map into a typed record.

    Raises:
        ToolError: If a field has the wrong type or a required field is
            missing or empty.
    """
    try:
        parsed = record.model_validate(args)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(loc) for loc in first["loc"]) or "arguments"
        raise ToolError(f"invalid {field} argument: {first['msg']}") from e

    for field in record.required:
        value = getattr(parsed, field)
        if value is None or (value == "" and field not in record.allow_empty):
            raise ToolError(f"{field} argument is required")
    return parsed


def _to_json(result: Any) -> str:
    return json.dumps(result, ensure_ascii=False)


# -----------------------------------------------------------------------------
# Executor
# -----------------------------------------------------------------------------

class ToolExecutor:
    """
    Dispatches tool calls by name.

    Args:
        project_root: Root every path argument is resolved against.
        ignore_patterns: Paths mutating tools refuse to touch and searches skip.
        index: Project index for tree and symbol lookups.
        confirm: Called with (action, description) before any mutation;
            returns True to proceed. Without one, every mutation is declined.
        log: Debug log receiving every tool call.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        ignore_patterns: Optional[List[str]] = None,
        index: Optional[ProjectIndex] = None,
        confirm: Optional[ConfirmFn] = None,
        log: Optional[DebugLogBase] = None,
    ) -> None:
        self.project_root = Path(project_root).absolute()
        self.ignore_patterns = list(ignore_patterns or [])
        self.index = index
        self.confirm = confirm or (lambda action, description: False)
        self.log = log or NullDebugLog()
        self._handlers: Dict[str, Callable[[Dict[str, Any]], str]] = {
            "read_file": self._read_file,
            "read_file_lines": self._read_file_lines,
            "list_directory": self._list_directory,
            "get_tree_list": self._get_tree_list,
            "grep": self._grep,
            "find_files": self._find_files,
            "find_files_by_extension": self._find_files_by_extension,
            "get_file_symbols": self._get_file_symbols,
            "search_symbols": self._search_symbols,
            "find_symbol_references": self._find_symbol_references,
            "get_file_info": self._get_file_info,
            "get_project_stats": self._get_project_stats,
            "find_dependencies": self._find_dependencies,
            "git_status": self._git_status,
            "git_diff": self._git_diff,
            "write_file": self._write_file,
            "create_file": self._create_file,
            "update_file": self._update_file,
            "string_replace": self._string_replace,
            "create_directory": self._create_directory,
            "delete_file": self._delete_file,
            "delete_directory": self._delete_directory,
            "move_file": self._move_file,
            "copy_file": self._copy_file,
            "execute": self._execute,
        }

    def known_tools(self) -> List[str]:
        return list(self._handlers)

    def execute(self, name: str, args: Dict[str, Any]) -> str:
        """
        Run one tool.

        Args:
            name: Tool name as advertised in the catalog.
            args: Decoded JSON arguments.

        Returns:
            JSON text describing the result.

        Raises:
            ToolError: On any failure the model should be told about.
        """
        handler = self._handlers.get(name)
        try:
            if handler is None:
                raise ToolError(f"unknown tool: {name}")
            result = handler(args)
        except ToolError as e:
            self.log.tool_call(name, args, error=e)
            raise
        except OSError as e:
            self.log.tool_call(name, args, error=e)
            raise ToolError(str(e)) from e
        self.log.tool_call(name, args, result=result)
        return result

    # -------------------------------------------------------------------------
    # Path helpers
    # -------------------------------------------------------------------------

    def _resolve(self, path: str) -> Path:
        return fsctx.resolve_path(self.project_root, path)

    def _rel(self, full_path: Path) -> str:
        return fsctx.relative_path(self.project_root, full_path)

    def _resolve_search_path(self, path: Optional[str]) -> Path:
        if not path:
            return self.project_root
        full_path = self._resolve(path)
        if not full_path.exists():
            raise ToolError(f"path not found: {path}")
        return full_path

    def _mutation_target(self, path: str) -> Path:
        """Resolve a path a mutating tool will touch, refusing ignored paths."""
        full_path = self._resolve(path)
        rel = self._rel(full_path)
        if rel and should_ignore(rel, self.ignore_patterns):
            raise ToolError(f"path '{path}' is in the ignore list")
        return full_path

    def _not_found(self, path: str, what: str = "file") -> ToolError:
        suggestion = fsctx.suggest_similar_path(self.project_root, path, self.ignore_patterns)
        if suggestion:
            return ToolError(f"{what} not found: {path} (did you mean '{suggestion}'?)")
        return ToolError(f"{what} not found: {path}")

    def _require_index(self) -> ProjectIndex:
        if self.index is None:
            raise ToolError("project index not available")
        return self.index

    def _walk(self, start: Path):
        """Yield (full_path, rel_path) for every non-ignored file under start."""
        for dirpath, dirnames, filenames in os.walk(start):
            rel_dir = self._rel(Path(dirpath))
            dirnames[:] = sorted(
                d for d in dirnames
                if not should_ignore(f"{rel_dir}/{d}/".lstrip("/"), self.ignore_patterns)
            )
            for filename in sorted(filenames):
                rel = f"{rel_dir}/{filename}".lstrip("/")
                if should_ignore(rel, self.ignore_patterns):
                    continue
                yield Path(dirpath) / filename, rel

    def _search(self, pattern: str, search_path: Path, whole_word: bool = False) -> List[str]:
        """
        Run ripgrep (or grep when rg is missing) from the project root.
        Exit code 1 means no matches.
        """
        target = self._rel(search_path) or "."
        if shutil.which("rg"):
            cmd = ["rg", "-n", "--color", "never"]
            if whole_word:
                cmd.append("-w")
            cmd += ["-e", pattern, target]
        else:
            cmd = ["grep", "-rn", "--color=never"]
            if whole_word:
                cmd.append("-w")
            cmd += ["-e", pattern, target]

        try:
            proc = subprocess.run(
                cmd, cwd=self.project_root, capture_output=True, encoding="utf-8", errors="replace",
            )
        except FileNotFoundError as e:
            raise ToolError(f"search command failed: {e}") from e

        if proc.returncode == 1:
            return []
        if proc.returncode != 0:
            raise ToolError(f"search command failed (exit {proc.returncode}): {proc.stderr.strip()}")
        return [line for line in proc.stdout.splitlines() if line.strip()]

    def _run_git(self, *git_args: str) -> str:
        if not (self.project_root / ".git").exists():
            raise ToolError("not a git repository")
        try:
            proc = subprocess.run(
                ["git", "-C", str(self.project_root), *git_args],
                capture_output=True, encoding="utf-8", errors="replace", check=True,
            )
        except FileNotFoundError as e:
            raise ToolError(f"git is not installed: {e}") from e
        except subprocess.CalledProcessError as e:
            raise ToolError(f"git {git_args[0]} failed: {e.stderr.strip() or e}") from e
        return proc.stdout

    # -------------------------------------------------------------------------
    # Read-only tools
    # -------------------------------------------------------------------------

    def _read_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(PathArgs, args)
        if not self._resolve(a.path).exists():
            raise self._not_found(a.path)
        content, truncated = fsctx.read_file(self.project_root, a.path)
        return _to_json({"path": a.path, "content": content, "truncated": truncated})

    def _read_file_lines(self, args: Dict[str, Any]) -> str:
        a = parse_args(LineRangeArgs, args)
        if not self._resolve(a.path).is_file():
            raise self._not_found(a.path)
        content = fsctx.read_file_range(self.project_root, a.path, a.start_line, a.end_line)
        return _to_json({"path": a.path, "start_line": a.start_line, "end_line": a.end_line, "content": content})

    def _list_directory(self, args: Dict[str, Any]) -> str:
        a = parse_args(OptionalPathArgs, args)
        full_path = self._resolve(a.path or "")
        if not full_path.is_dir():
            raise self._not_found(a.path or "", what="directory")

        files: List[Dict[str, Any]] = []
        dirs: List[str] = []
        for entry in sorted(full_path.iterdir(), key=lambda p: p.name):
            rel = self._rel(entry)
            if entry.is_dir():
                if should_ignore(rel + "/", self.ignore_patterns):
                    continue
                dirs.append(entry.name)
            else:
                if should_ignore(rel, self.ignore_patterns):
                    continue
                files.append({"name": entry.name, "size": entry.stat().st_size})
        return _to_json({"path": a.path or "", "files": files, "dirs": dirs})

    def _get_tree_list(self, args: Dict[str, Any]) -> str:
        a = parse_args(OptionalPathArgs, args)
        index = self._require_index()
        rel = self._rel(self._resolve(a.path or ""))
        node = index.get_tree(rel)
        return _to_json(node.model_dump())

    def _grep(self, args: Dict[str, Any]) -> str:
        a = parse_args(PatternArgs, args)
        search_path = self._resolve_search_path(a.path)
        matches = self._search(a.pattern, search_path)
        return _to_json({"pattern": a.pattern, "path": a.path or "", "matches": matches, "count": len(matches)})

    def _find_files(self, args: Dict[str, Any]) -> str:
        a = parse_args(PatternArgs, args)
        search_path = self._resolve_search_path(a.path)
        matches = [
            rel for full_path, rel in self._walk(search_path)
            if fnmatch.fnmatch(full_path.name, a.pattern) or fnmatch.fnmatch(rel, a.pattern)
        ]
        return _to_json({"pattern": a.pattern, "path": a.path or "", "matches": matches, "count": len(matches)})

    def _find_files_by_extension(self, args: Dict[str, Any]) -> str:
        a = parse_args(ExtensionArgs, args)
        extension = a.extension.lower()
        if not extension.startswith("."):
            extension = "." + extension
        search_path = self._resolve_search_path(a.path)
        matches = [
            rel for full_path, rel in self._walk(search_path)
            if fsctx.get_file_extension(full_path) == extension
        ]
        return _to_json({"extension": extension, "path": a.path or "", "matches": matches, "count": len(matches)})

    def _get_file_symbols(self, args: Dict[str, Any]) -> str:
        a = parse_args(PathArgs, args)
        index = self._require_index()
        rel = self._rel(self._resolve(a.path))
        symbols = index.get_file_symbols(rel)
        return _to_json({
            "path": rel,
            "symbols": [s.model_dump() for s in symbols],
            "count": len(symbols),
        })

    def _search_symbols(self, args: Dict[str, Any]) -> str:
        a = parse_args(SymbolArgs, args)
        index = self._require_index()
        prefix = self._rel(self._resolve(a.path)) if a.path else ""
        wanted = a.symbol.lower()

        results: List[Dict[str, Any]] = []
        for path in index.get_all_file_paths():
            if prefix and not (path == prefix or path.startswith(prefix.rstrip("/") + "/")):
                continue
            info = index.get_file_info(path)
            if info is None:
                continue
            for sym in info.symbols:
                if wanted in sym.name.lower():
                    results.append({
                        "file": path,
                        "symbol": sym.name,
                        "type": sym.type,
                        "line": sym.line,
                        "signature": sym.signature,
                    })
        return _to_json({"symbol": a.symbol, "path": a.path or "", "matches": results, "count": len(results)})

    def _find_symbol_references(self, args: Dict[str, Any]) -> str:
        a = parse_args(SymbolArgs, args)
        search_path = self._resolve_search_path(a.path)
        results: List[Dict[str, Any]] = []
        for match in self._search(a.symbol, search_path, whole_word=True):
            parts = match.split(":", 2)
            if len(parts) != 3 or not parts[1].isdigit():
                continue
            file_path, line_num, content = parts
            results.append({
                "file": file_path.replace("\\", "/").removeprefix("./"),
                "line": int(line_num),
                "content": content.strip(),
            })
        return _to_json({"symbol": a.symbol, "path": a.path or "", "matches": results, "count": len(results)})

    def _get_file_info(self, args: Dict[str, Any]) -> str:
        a = parse_args(PathArgs, args)
        full_path = self._resolve(a.path)
        if not full_path.exists():
            raise self._not_found(a.path)
        info = full_path.stat()
        line_count = 0
        if full_path.is_file():
            with open(full_path, "rb") as f:
                data = f.read()
            line_count = data.count(b"\n") + (1 if data and not data.endswith(b"\n") else 0)
        return _to_json({
            "path": a.path,
            "name": full_path.name,
            "size": info.st_size,
            "is_dir": full_path.is_dir(),
            "mode": stat.filemode(info.st_mode),
            "modified_time": time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(info.st_mtime)),
            "extension": fsctx.get_file_extension(full_path),
            "line_count": line_count,
        })

    def _get_project_stats(self, args: Dict[str, Any]) -> str:
        index = self._require_index()
        total_files = 0
        total_dirs = 0
        total_size = 0
        code_lines = 0
        extensions: Dict[str, int] = {}
        languages: Dict[str, int] = {}

        for info in index.files.values():
            if info.is_dir:
                total_dirs += 1
                continue
            total_files += 1
            total_size += info.size
            if info.extension:
                extensions[info.extension] = extensions.get(info.extension, 0) + 1
            language = LANGUAGE_NAMES.get(info.extension)
            if language:
                languages[language] = languages.get(language, 0) + 1
                try:
                    with open(self.project_root / info.path, "rb") as f:
                        code_lines += f.read().count(b"\n") + 1
                except OSError:
                    continue

        return _to_json({
            "files": total_files,
            "directories": total_dirs,
            "total_size": total_size,
            "code_lines": code_lines,
            "extensions": extensions,
            "languages": languages,
            "indexed_files": len(index.files),
        })

    def _find_dependencies(self, args: Dict[str, Any]) -> str:
        found: Dict[str, Any] = {}
        for file_name, manager in DEPENDENCY_FILES.items():
            if not (self.project_root / file_name).is_file():
                continue
            content, _ = fsctx.read_file(self.project_root, file_name)
            found[file_name] = {
                "manager": manager,
                "path": file_name,
                "content_preview": content.split("\n")[:DEPENDENCY_PREVIEW_LINES],
            }
        return _to_json({"dependency_files": found, "count": len(found)})

    def _git_status(self, args: Dict[str, Any]) -> str:
        output = self._run_git("status", "--porcelain")
        modified: List[str] = []
        added: List[str] = []
        deleted: List[str] = []
        untracked: List[str] = []
        for line in output.splitlines():
            if len(line) < 3:
                continue
            status, file_path = line[:2], line[3:].strip()
            if status.startswith("?"):
                untracked.append(file_path)
                continue
            if "M" in status:
                modified.append(file_path)
            if "A" in status:
                added.append(file_path)
            if "D" in status:
                deleted.append(file_path)
        return _to_json({
            "modified": modified,
            "added": added,
            "deleted": deleted,
            "untracked": untracked,
            "total": len(modified) + len(added) + len(deleted) + len(untracked),
        })

    def _git_diff(self, args: Dict[str, Any]) -> str:
        a = parse_args(OptionalPathArgs, args)
        git_args = ["diff"]
        if a.path:
            git_args += ["--", self._rel(self._resolve(a.path)) or "."]
        diff = self._run_git(*git_args).strip() or "No changes"
        return _to_json({"path": a.path or "", "diff": diff})

    # -------------------------------------------------------------------------
    # Mutating tools
    # -------------------------------------------------------------------------

    def _write_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(FileContentArgs, args)
        full_path = self._mutation_target(a.path)
        if full_path.is_dir():
            raise ToolError("path is a directory, not a file")
        description = f"File: {a.path}\nSize: {len(a.content)} characters"
        if full_path.exists():
            description += "\n⚠️  The existing file will be overwritten"
        if not self.confirm("Write file", description):
            return CANCELLED_RESULT
        fsctx.write_file(self.project_root, a.path, a.content)
        return _to_json({"path": a.path, "success": True, "bytes_written": len(a.content.encode("utf-8")),
                         "message": "File written successfully"})

    def _create_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(FileContentArgs, args)
        full_path = self._mutation_target(a.path)
        if full_path.exists():
            raise ToolError(f"file already exists: {a.path}")
        if not self.confirm("Create file", f"File: {a.path}\nSize: {len(a.content)} characters"):
            return CANCELLED_RESULT
        fsctx.write_file(self.project_root, a.path, a.content)
        return _to_json({"path": a.path, "success": True, "message": "File created successfully"})

    def _update_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(FileContentArgs, args)
        full_path = self._mutation_target(a.path)
        if not full_path.exists():
            raise self._not_found(a.path)
        if full_path.is_dir():
            raise ToolError("path is a directory, not a file")
        old_size = full_path.stat().st_size
        description = f"File: {a.path}\nOld size: {old_size} bytes\nNew size: {len(a.content)} characters"
        if not self.confirm("Update file", description):
            return CANCELLED_RESULT
        fsctx.write_file(self.project_root, a.path, a.content)
        return _to_json({"path": a.path, "success": True, "message": "File updated successfully"})

    def _string_replace(self, args: Dict[str, Any]) -> str:
        a = parse_args(StringReplaceArgs, args)
        full_path = self._mutation_target(a.path)
        if not full_path.is_file():
            raise self._not_found(a.path)
        try:
            content = full_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ToolError(f"{a.path} is not a UTF-8 text file") from e
        count = content.count(a.old_string)
        if count == 0:
            raise ToolError(f"string not found in {a.path}")

        description = (
            f"File: {a.path}\nOccurrences: {count}\n"
            f"Replace: {_preview(a.old_string)}\nWith: {_preview(a.new_string)}"
        )
        if not self.confirm("Replace text", description):
            return CANCELLED_RESULT
        fsctx.write_file(self.project_root, a.path, content.replace(a.old_string, a.new_string))
        return _to_json({"path": a.path, "success": True, "replacements": count,
                         "message": f"Replaced {count} occurrence(s)"})

    def _create_directory(self, args: Dict[str, Any]) -> str:
        a = parse_args(PathArgs, args)
        full_path = self._mutation_target(a.path)
        if full_path.exists() and not full_path.is_dir():
            raise ToolError(f"a file already exists at {a.path}")
        if not self.confirm("Create directory", f"Directory: {a.path}"):
            return CANCELLED_RESULT
        full_path.mkdir(parents=True, exist_ok=True)
        return _to_json({"path": a.path, "success": True, "message": "Directory created successfully"})

    def _delete_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(PathArgs, args)
        full_path = self._mutation_target(a.path)
        if not full_path.exists():
            raise ToolError(f"file does not exist: {a.path}")
        if full_path.is_dir():
            raise ToolError("path is a directory, use delete_directory instead")
        if not self.confirm("Delete file", f"File: {a.path}\n⚠️  This action cannot be undone!"):
            return CANCELLED_RESULT
        full_path.unlink()
        return _to_json({"path": a.path, "success": True, "message": "File deleted successfully"})

    def _delete_directory(self, args: Dict[str, Any]) -> str:
        a = parse_args(PathArgs, args)
        full_path = self._mutation_target(a.path)
        if full_path == self.project_root:
            raise ToolError("refusing to delete the project root")
        if not full_path.is_dir():
            raise ToolError(f"directory does not exist: {a.path}")
        description = f"Directory: {a.path}\n⚠️  The directory and all its contents will be deleted. This action cannot be undone!"
        if not self.confirm("Delete directory", description):
            return CANCELLED_RESULT
        shutil.rmtree(full_path)
        return _to_json({"path": a.path, "success": True, "message": "Directory deleted successfully"})

    def _move_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(SourceDestinationArgs, args)
        source = self._mutation_target(a.source)
        destination = self._mutation_target(a.destination)
        if not source.exists():
            raise self._not_found(a.source)
        if destination.exists():
            raise ToolError(f"destination already exists: {a.destination}")
        if not self.confirm("Move file", f"From: {a.source}\nTo: {a.destination}"):
            return CANCELLED_RESULT
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(destination))
        return _to_json({"source": a.source, "destination": a.destination, "success": True,
                         "message": "File moved successfully"})

    def _copy_file(self, args: Dict[str, Any]) -> str:
        a = parse_args(SourceDestinationArgs, args)
        source = self._mutation_target(a.source)
        destination = self._mutation_target(a.destination)
        if not source.is_file():
            raise self._not_found(a.source)
        description = f"From: {a.source}\nTo: {a.destination}"
        if destination.exists():
            description += "\n⚠️  The destination will be overwritten"
        if not self.confirm("Copy file", description):
            return CANCELLED_RESULT
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, destination)
        return _to_json({"source": a.source, "destination": a.destination, "success": True,
                         "message": "File copied successfully"})

    def _execute(self, args: Dict[str, Any]) -> str:
        a = parse_args(ExecuteArgs, args)
        description = f"Command: {a.command}"
        if a.description:
            description += f"\nPurpose: {a.description}"
        description += f"\nWorking directory: {self.project_root}\n⚠️  Shell commands can modify your system"
        if not self.confirm("Execute command", description):
            return CANCELLED_RESULT
        try:
            proc = subprocess.run(
                a.command, shell=True, cwd=self.project_root,
                capture_output=True, encoding="utf-8", errors="replace",
                timeout=EXECUTE_TIMEOUT,
            )
        except subprocess.TimeoutExpired as e:
            raise ToolError(f"command timed out after {EXECUTE_TIMEOUT} seconds") from e
        return _to_json({
            "command": a.command,
            "stdout": proc.stdout,
            "stderr": proc.stderr,
            "exit_code": proc.returncode,
        })


def _preview(text: str, limit: int = 200) -> str:
    """Single-line preview of text for confirmation prompts."""
    flat = text.replace("\n", "\\n")
    if len(flat) > limit:
        return flat[:limit] + "..."
    return flat
