"""
Tool catalog advertised to the model.

The schemas are only used for advertising; each handler in the executor
validates its own required arguments.
"""

from typing import Any, Dict, FrozenSet, List

tools: List[Dict[str, Any]] = [
    # Reading and navigation
    {
        "type": "function",
        "function": {
            "name": "read_file",
            "description": "Read the contents of a file. Path is relative to project root.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Path to the file relative to project root"}},
                "required": ["path"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "read_file_lines",
            "description": "Read specific lines from a file. Useful for reading a code section.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path to the file relative to project root"},
                    "start_line": {"type": "integer", "description": "First line to read (1-based)"},
                    "end_line": {"type": "integer", "description": "Last line to read (inclusive)"}
                },
                "required": ["path", "start_line", "end_line"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "list_directory",
            "description": "List files and directories in a directory. Path is relative to project root. If path is empty, lists project root.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Directory path relative to project root"}},
                "required": []
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "get_tree_list",
            "description": "Get a tree view of files and directories starting from a given path. Excludes ignored files and folders. Use an empty path for the project root.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Directory path relative to project root"}},
                "required": []
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "grep",
            "description": "Search for a pattern in files. Searches recursively from the given path (defaults to project root).",
            "parameters": {
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Regular expression to search for"},
                    "path": {"type": "string", "description": "Directory or file to search in"}
                },
                "required": ["pattern"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "find_files",
            "description": "Find files by name pattern (glob pattern). Searches recursively from the given path (defaults to project root).",
            "parameters": {
                "type": "object",
                "properties": {
                    "pattern": {"type": "string", "description": "Glob pattern such as '*.go' or 'test_*'"},
                    "path": {"type": "string", "description": "Directory to search in"}
                },
                "required": ["pattern"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "find_files_by_extension",
            "description": "Find all files with a specific extension. Searches recursively from the given path (defaults to project root).",
            "parameters": {
                "type": "object",
                "properties": {
                    "extension": {"type": "string", "description": "File extension, with or without the leading dot"},
                    "path": {"type": "string", "description": "Directory to search in"}
                },
                "required": ["extension"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "get_file_symbols",
            "description": "Get a list of classes, functions, and other symbols from a code file. Path is relative to project root.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Path to the file relative to project root"}},
                "required": ["path"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "search_symbols",
            "description": "Search for a symbol (class, function, variable name) across the project. Returns the files where the symbol is defined.",
            "parameters": {
                "type": "object",
                "properties": {
                    "symbol": {"type": "string", "description": "Symbol name or part of it"},
                    "path": {"type": "string", "description": "Restrict the search to this directory"}
                },
                "required": ["symbol"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "find_symbol_references",
            "description": "Find all places where a symbol (class, function, variable) is used or referenced in the project.",
            "parameters": {
                "type": "object",
                "properties": {
                    "symbol": {"type": "string", "description": "Exact symbol name"},
                    "path": {"type": "string", "description": "Restrict the search to this directory"}
                },
                "required": ["symbol"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "get_file_info",
            "description": "Get detailed information about a file: size, modification time, permissions, line count, etc.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Path relative to project root"}},
                "required": ["path"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "get_project_stats",
            "description": "Get project statistics: file count, lines of code, languages used, etc.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        }
    },
    {
        "type": "function",
        "function": {
            "name": "find_dependencies",
            "description": "Find and list project dependencies from package.json, go.mod, composer.json, requirements.txt, Cargo.toml, etc.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        }
    },
    {
        "type": "function",
        "function": {
            "name": "git_status",
            "description": "Get git repository status. Returns modified, added, deleted, and untracked files. Works only if project is a git repository.",
            "parameters": {"type": "object", "properties": {}, "required": []},
        }
    },
    {
        "type": "function",
        "function": {
            "name": "git_diff",
            "description": "Get git diff for a file or directory. Returns changes made. Works only if project is a git repository.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "File or directory to diff (defaults to the whole project)"}},
                "required": []
            },
        }
    },
    # Mutations (each one asks the user first)
    {
        "type": "function",
        "function": {
            "name": "write_file",
            "description": "Write content to a file. Creates the file if it doesn't exist, overwrites if it does. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path to the file relative to project root"},
                    "content": {"type": "string", "description": "Full file content"}
                },
                "required": ["path", "content"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "create_file",
            "description": "Create a new file with content. Fails if the file already exists. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path to the file relative to project root"},
                    "content": {"type": "string", "description": "Full file content"}
                },
                "required": ["path", "content"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "update_file",
            "description": "Update an existing file by replacing its entire content. Fails if the file doesn't exist. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path to the file relative to project root"},
                    "content": {"type": "string", "description": "New file content"}
                },
                "required": ["path", "content"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "string_replace",
            "description": "Replace all occurrences of a string in a file. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "path": {"type": "string", "description": "Path to the file relative to project root"},
                    "old_string": {"type": "string", "description": "Exact text to replace"},
                    "new_string": {"type": "string", "description": "Replacement text"}
                },
                "required": ["path", "old_string", "new_string"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "create_directory",
            "description": "Create a directory, including missing parents. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Directory path relative to project root"}},
                "required": ["path"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "delete_file",
            "description": "Delete a file. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Path to the file relative to project root"}},
                "required": ["path"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "delete_directory",
            "description": "Delete a directory and all its contents. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {"path": {"type": "string", "description": "Directory path relative to project root"}},
                "required": ["path"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "move_file",
            "description": "Move or rename a file. Paths are relative to project root. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "Current path"},
                    "destination": {"type": "string", "description": "New path"}
                },
                "required": ["source", "destination"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "copy_file",
            "description": "Copy a file to a new location. Creates the destination directory if needed. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "File to copy"},
                    "destination": {"type": "string", "description": "Target path"}
                },
                "required": ["source", "destination"]
            },
        }
    },
    {
        "type": "function",
        "function": {
            "name": "execute",
            "description": "Execute a shell command in the project root directory. Returns stdout, stderr, and exit code. Requires user confirmation.",
            "parameters": {
                "type": "object",
                "properties": {
                    "command": {"type": "string", "description": "Shell command to run"},
                    "description": {"type": "string", "description": "Short explanation of what the command does"}
                },
                "required": ["command"]
            },
        }
    },
]

MUTATING_TOOLS: FrozenSet[str] = frozenset({
    "write_file", "create_file", "update_file", "string_replace",
    "create_directory", "delete_file", "delete_directory",
    "move_file", "copy_file", "execute",
})


def tool_names() -> List[str]:
    return [t["function"]["name"] for t in tools]


def required_arguments(name: str) -> List[str]:
    """Required argument names advertised for a tool ([] for unknown tools)."""
    for t in tools:
        if t["function"]["name"] == name:
            return list(t["function"]["parameters"].get("required", []))
    return []
