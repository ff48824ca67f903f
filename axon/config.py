"""
Project root discovery and configuration loading.

Settings come from defaults, then `.axon.yml` / `.axon.yaml` in the project
root, then environment variables (a `.env` file is honoured through
python-dotenv).
"""

import fnmatch
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

CONFIG_FILENAMES = (".axon.yml", ".axon.yaml")

DEFAULT_BASE_URL: str = "http://127.0.0.1:8080"
DEFAULT_MODEL: str = "qwen2.5-coder-3b"
DEFAULT_TEMPERATURE: float = 0.15
DEFAULT_SERVER_MODEL: str = "Qwen/Qwen2.5-Coder-3B-Instruct-GGUF:Q4_K_M"
DEFAULT_IGNORE: List[str] = ["vendor/", "node_modules/", "storage/", ".git/"]

# Local servers accept any key, but the client library insists on one.
PLACEHOLDER_API_KEY: str = "sk-no-key-required"


class LLMSettings(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = 0
    stream: bool = True
    api_key: str = PLACEHOLDER_API_KEY
    timeout: float = 120.0


class ServerSettings(BaseModel):
    auto_start: bool = True
    server_path: str = ""
    model: str = DEFAULT_SERVER_MODEL


class ContextSettings(BaseModel):
    ignore: List[str] = Field(default_factory=list)


class AxonConfig(BaseModel):
    llm: LLMSettings = Field(default_factory=LLMSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)


def find_project_root(start_dir: Union[str, Path]) -> Path:
    """
    Walk upwards from start_dir looking for a .git directory or an AXON
    config file.

    Args:
        start_dir: Directory to start from.

    Returns:
        The first directory that qualifies, or the absolute start_dir when
        nothing is found before the filesystem root.
    """
    start = Path(start_dir).absolute()
    current = start
    while True:
        if (current / ".git").is_dir():
            return current
        if any((current / name).exists() for name in CONFIG_FILENAMES):
            return current
        if current.parent == current:
            return start
        current = current.parent


def _read_config_file(project_root: Path) -> Dict[str, Any]:
    for name in CONFIG_FILENAMES:
        path = project_root / name
        if not path.is_file():
            continue
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigError(f"failed to parse {name}: {e}") from e
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"failed to parse {name}: top level must be a mapping")
        return data
    return {}


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes")


def _apply_env_overrides(config: AxonConfig) -> None:
    if base_url := os.getenv("AXON_LLM_BASE_URL"):
        config.llm.base_url = base_url
    if model := os.getenv("AXON_LLM_MODEL"):
        config.llm.model = model
    if temperature := os.getenv("AXON_LLM_TEMPERATURE"):
        try:
            config.llm.temperature = float(temperature)
        except ValueError:
            pass
    if max_tokens := os.getenv("AXON_LLM_MAX_TOKENS"):
        try:
            config.llm.max_tokens = int(max_tokens)
        except ValueError:
            pass
    if stream := os.getenv("AXON_LLM_STREAM"):
        config.llm.stream = _env_flag(stream)
    if api_key := os.getenv("AXON_LLM_API_KEY"):
        config.llm.api_key = api_key

    if auto_start := os.getenv("AXON_SERVER_AUTO_START"):
        config.server.auto_start = _env_flag(auto_start)
    if server_path := os.getenv("AXON_SERVER_PATH"):
        config.server.server_path = server_path
    if server_model := os.getenv("AXON_SERVER_MODEL"):
        config.server.model = server_model


def load_config(project_root: Union[str, Path]) -> AxonConfig:
    """
    Load the configuration for a project.

    Args:
        project_root: Directory holding the optional config file.

    Returns:
        The merged configuration.

    Raises:
        ConfigError: If the config file is malformed.
    """
    root = Path(project_root)
    load_dotenv(root / ".env")
    data = _read_config_file(root)
    try:
        config = AxonConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e

    _apply_env_overrides(config)

    if not config.context.ignore:
        config.context.ignore = list(DEFAULT_IGNORE)
    return config


def should_ignore(path: str, patterns: List[str]) -> bool:
    """
    Check a project-relative path against the ignore patterns.

    A pattern matches when the path starts with it, when the basename
    glob-matches it, or when the path contains it anywhere.
    """
    normalized = path.replace("\\", "/")
    basename = normalized.rstrip("/").rsplit("/", 1)[-1]
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        if normalized.startswith(pattern):
            return True
        if fnmatch.fnmatch(basename, pattern):
            return True
        if pattern in normalized:
            return True
    return False


def debug_enabled() -> bool:
    return os.getenv("AXON_DEBUG") == "1"


def config_summary(config: AxonConfig, project_root: Optional[Path] = None) -> Dict[str, str]:
    """Key facts about the active configuration, for the welcome banner."""
    summary = {
        "LLM server": config.llm.base_url,
        "Model": config.llm.model,
        "Streaming": "on" if config.llm.stream else "off",
    }
    if project_root is not None:
        summary = {"Project root": str(project_root), **summary}
    return summary
