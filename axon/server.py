"""
llama-server lifecycle: detect a running server, start one in the background,
wait for it to become healthy, and stop it on exit.
"""

import subprocess
import threading
import time
from typing import Callable, List, Optional, Tuple

import httpx
from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .errors import ServerStartError

DEFAULT_SERVER_BINARY: str = "llama-server"
HEALTH_TIMEOUT: float = 2.0
STARTUP_TIMEOUT: float = 5 * 60
POLL_INTERVAL: float = 2.0
STATUS_INTERVAL: float = 10.0
STOP_TIMEOUT: float = 5.0

# Verbose llama-server lines hidden unless debugging.
SKIP_OUTPUT_PATTERNS: List[str] = [
    "slot update_slots",
    "slot launch_slot_",
    "slot get_availabl",
    "params_from_",
    "chat format:",
    "sampler chain:",
    "processing task",
    "prompt processing progress",
    "n_tokens =",
    "memory_seq_rm",
    "batch.n_tokens",
]


def check_running(base_url: str, timeout: float = HEALTH_TIMEOUT) -> bool:
    """
    Probe `{base_url}/v1/models`. Any answer below 500 counts as running.
    """
    try:
        response = httpx.get(f"{base_url.rstrip('/')}/v1/models", timeout=timeout)
    except httpx.HTTPError:
        return False
    return response.status_code < 500


def should_show_output(line: str, debug: bool = False) -> bool:
    if debug:
        return True
    lower = line.lower()
    return not any(pattern in lower for pattern in SKIP_OUTPUT_PATTERNS)


class LlamaServer:
    """
    A llama-server child process.

    Args:
        server_path: Binary to run; empty means llama-server from PATH.
        base_url: URL the server will answer on.
        model: Hugging Face model reference passed to -hf.
        debug: Show all server output.
        console: Where progress is printed (stderr by default).
    """

    def __init__(
        self,
        server_path: str,
        base_url: str,
        model: str,
        debug: bool = False,
        console: Optional[Console] = None,
    ) -> None:
        self.server_path = server_path or DEFAULT_SERVER_BINARY
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.debug = debug
        self.console = console or Console(stderr=True)
        self.process: Optional[subprocess.Popen] = None
        self._ready = threading.Event()
        self._output_thread: Optional[threading.Thread] = None

    @property
    def command(self) -> List[str]:
        # --jinja enables the chat template that supports tool calling
        return [self.server_path, "-hf", self.model, "--jinja"]

    def is_running(self) -> bool:
        return check_running(self.base_url)

    def start(self) -> bool:
        """
        Start the server unless one already answers at base_url.

        Returns:
            True if a new process was started, False if a server was
            already running.

        Raises:
            ServerStartError: If the process cannot be spawned or never
                becomes healthy.
        """
        if self.is_running():
            self.console.print(f"[blue]LLM server appears to be already running at {self.base_url}[/blue]")
            return False

        self.console.print("[bold blue]Starting llama-server...[/bold blue]")
        self.console.print("[yellow]Note: If this is the first time using this model, it will be downloaded.[/yellow]")
        self.console.print("[yellow]This may take several minutes depending on model size and internet speed.[/yellow]\n")

        try:
            self.process = subprocess.Popen(
                self.command,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise ServerStartError(f"failed to start {self.server_path}: {e}") from e

        self._ready.clear()
        self._output_thread = threading.Thread(target=self._pump_output, daemon=True)
        self._output_thread.start()

        self.console.print("[yellow]Waiting for server to be ready...[/yellow]")
        self.console.print("[yellow](This may take a while if downloading the model)[/yellow]\n")
        try:
            self.wait_for_ready(STARTUP_TIMEOUT)
        except ServerStartError:
            self.stop()
            raise

        self._ready.set()
        self.console.print(f"[bold green]LLM server is ready at {self.base_url}[/bold green]")
        return True

    def _pump_output(self) -> None:
        """Echo filtered server output until ready, then drain it silently."""
        if self.process is None or self.process.stdout is None:
            return
        for line in self.process.stdout:
            if self._ready.is_set() and not self.debug:
                continue
            line = line.rstrip("\n")
            if should_show_output(line, self.debug):
                self.console.print(line, markup=False, highlight=False)

    def wait_for_ready(
        self,
        timeout: float,
        poll_interval: float = POLL_INTERVAL,
        status_interval: float = STATUS_INTERVAL,
    ) -> None:
        """
        Poll the health endpoint until it answers or the deadline passes.

        Raises:
            ServerStartError: On timeout or if the process exits first.
        """
        start_time = time.monotonic()
        last_status = start_time
        while True:
            time.sleep(poll_interval)
            now = time.monotonic()

            if self.process is not None and self.process.poll() is not None:
                raise ServerStartError(f"llama-server exited with code {self.process.returncode}")
            if self.is_running():
                return
            if now - start_time >= timeout:
                raise ServerStartError(
                    f"server failed to become ready: timeout waiting for server (waited {int(now - start_time)}s)"
                )
            if now - last_status >= status_interval:
                self.console.print(f"[yellow][Still waiting... {int(now - start_time)}s elapsed][/yellow]")
                last_status = now

    def stop(self) -> None:
        """SIGTERM, wait up to STOP_TIMEOUT seconds, then kill."""
        if self.process is None or self.process.poll() is not None:
            return
        self.console.print("\n[bold yellow]Stopping llama-server...[/bold yellow]")
        self.process.terminate()
        try:
            self.process.wait(timeout=STOP_TIMEOUT)
            self.console.print("[bold green]llama-server stopped[/bold green]")
        except subprocess.TimeoutExpired:
            self.process.kill()
            self.process.wait()
            self.console.print("[bold green]llama-server force stopped[/bold green]")


# -----------------------------------------------------------------------------
# Model catalog
# -----------------------------------------------------------------------------

class ModelSize(BaseModel):
    name: str
    model_id: str
    description: str
    size: str


class ModelFamily(BaseModel):
    name: str
    description: str
    sizes: List[ModelSize]
    default_size: int = 0


MODEL_FAMILIES: List[ModelFamily] = [
    ModelFamily(
        name="Qwen2.5-Coder",
        description="Alibaba's coding model, excellent for code generation and understanding",
        default_size=1,
        sizes=[
            ModelSize(name="1.5B", model_id="Qwen/Qwen2.5-Coder-1.5B-Instruct-GGUF:Q4_K_M", description="Smallest, fastest", size="~1GB"),
            ModelSize(name="3B", model_id="Qwen/Qwen2.5-Coder-3B-Instruct-GGUF:Q4_K_M", description="Smaller, faster", size="~2GB"),
            ModelSize(name="7B", model_id="bartowski/Qwen2.5-Coder-7B-Instruct-GGUF:Q4_K_M", description="Larger, better quality", size="~4GB"),
            ModelSize(name="32B", model_id="bartowski/Qwen2.5-Coder-32B-Instruct-GGUF:Q4_K_M", description="Largest, best quality", size="~18GB"),
        ],
    ),
    ModelFamily(
        name="DeepSeek Coder",
        description="DeepSeek's specialized coding model, great for complex code tasks",
        sizes=[
            ModelSize(name="1.3B", model_id="bartowski/DeepSeek-Coder-1.3B-Instruct-GGUF:Q4_K_M", description="Smallest, fastest", size="~1GB"),
            ModelSize(name="6.7B", model_id="bartowski/DeepSeek-Coder-6.7B-Instruct-GGUF:Q4_K_M", description="Good balance", size="~4GB"),
            ModelSize(name="33B", model_id="bartowski/DeepSeek-Coder-33B-Instruct-GGUF:Q4_K_M", description="Largest, best quality", size="~18GB"),
        ],
    ),
    ModelFamily(
        name="CodeLlama",
        description="Meta's coding model based on Llama, good general-purpose coding",
        sizes=[
            ModelSize(name="7B", model_id="bartowski/CodeLlama-7B-Instruct-GGUF:Q4_K_M", description="Good balance", size="~4GB"),
            ModelSize(name="13B", model_id="bartowski/CodeLlama-13B-Instruct-GGUF:Q4_K_M", description="Larger, better quality", size="~7GB"),
            ModelSize(name="34B", model_id="bartowski/CodeLlama-34B-Instruct-GGUF:Q4_K_M", description="Largest, best quality", size="~18GB"),
        ],
    ),
    ModelFamily(
        name="StarCoder",
        description="BigCode's StarCoder, trained on permissively licensed code",
        sizes=[
            ModelSize(name="3B", model_id="bartowski/starcoder2-3b-GGUF:Q4_K_M", description="Smaller, faster", size="~2GB"),
            ModelSize(name="7B", model_id="bartowski/starcoder2-7b-GGUF:Q4_K_M", description="Good balance", size="~4GB"),
            ModelSize(name="15B", model_id="bartowski/starcoder2-15b-GGUF:Q4_K_M", description="Larger, better quality", size="~8GB"),
        ],
    ),
]


def _choose(console: Console, prompt_fn: Callable[[str], str], title: str, rows: List[List[str]], default: int) -> int:
    table = Table(title=title, show_header=True, header_style="bold bright_blue")
    table.add_column("#", style="bright_cyan")
    for header in ("Name", "Details"):
        table.add_column(header, style="white")
    for i, row in enumerate(rows, start=1):
        marker = " [default]" if i - 1 == default else ""
        table.add_row(str(i), row[0] + marker, row[1])
    console.print(table)

    while True:
        choice = prompt_fn(f"Enter your choice (1-{len(rows)}, or Enter for default): ").strip()
        if not choice:
            return default
        if choice.isdigit() and 1 <= int(choice) <= len(rows):
            return int(choice) - 1
        console.print(f"[red]✗ Invalid choice: {choice}[/red]")


def _default_choice(model_id: Optional[str]) -> Tuple[int, Optional[int]]:
    """Family and size index of a catalog model, or the catalog defaults."""
    for family_index, family in enumerate(MODEL_FAMILIES):
        for size_index, size in enumerate(family.sizes):
            if size.model_id == model_id:
                return family_index, size_index
    return 0, None


def select_model(console: Console, prompt_fn: Callable[[str], str], default_model: Optional[str] = None) -> str:
    """
    Ask the user for a model family and then a size.

    Args:
        console: Console for the choice tables.
        prompt_fn: Reads one line of input.
        default_model: Model id preselected when the user just presses Enter.
            One that is not in the catalog is offered as an extra row.

    Returns:
        The selected model id for llama-server's -hf flag.
    """
    default_family, default_size = _default_choice(default_model)
    rows = [[f.name, f.description] for f in MODEL_FAMILIES]
    # A configured model outside the catalog gets its own row, preselected.
    configured_row = bool(default_model) and default_size is None
    if configured_row:
        rows.append(["Configured model", escape(default_model)])
        default_family = len(MODEL_FAMILIES)
    family_index = _choose(
        console, prompt_fn,
        "No LLM server detected. Please select a model family:",
        rows,
        default_family,
    )
    if configured_row and family_index == len(MODEL_FAMILIES):
        console.print(f"[bold green]Selected: {escape(default_model)}[/bold green]\n")
        return default_model
    family = MODEL_FAMILIES[family_index]
    if default_size is None or family_index != default_family:
        default_size = family.default_size
    size_index = _choose(
        console, prompt_fn,
        f"Selected: {family.name} - Please select a size:",
        [[s.name, f"{s.description}, {s.size}"] for s in family.sizes],
        default_size,
    )
    size = family.sizes[size_index]
    console.print(f"[bold green]Selected: {family.name} {size.name}[/bold green]\n")
    return size.model_id
