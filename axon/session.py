"""
Interactive shell: prompt loop, slash commands, live markdown output and the
confirmation prompt used by mutating tools.
"""

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.styles import Style as PromptStyle
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text

from . import fsctx
from .config import AxonConfig, config_summary
from .conversation import Conversation
from .errors import MaxIterationsExceeded, ToolArgumentError, ToolError, TransportError
from .models import ToolCall

PromptFn = Callable[[str], str]

ESTIMATED_MAX_TOKENS: int = 32_768  # typical local context window
CONTEXT_WARNING_THRESHOLD: float = 0.8
MAX_TOOL_OUTPUT_PREVIEW: int = 600

RANGE_PATTERN = re.compile(r"^(\d+):(\d+)$")

PROMPT_STYLE = PromptStyle.from_dict({
    'prompt': '#0066ff bold',
    'completion-menu.completion': 'bg:#1e3a8a fg:#ffffff',
    'completion-menu.completion.current': 'bg:#3b82f6 fg:#ffffff bold',
})


def create_prompt_session() -> PromptSession:
    return PromptSession(style=PROMPT_STYLE)


# -----------------------------------------------------------------------------
# Confirmation
# -----------------------------------------------------------------------------

def is_affirmative(answer: str) -> bool:
    """Empty input (bare Enter), y and yes all accept."""
    return answer.strip().lower() in ("", "y", "yes")


def confirm_action(console: Console, prompt_fn: PromptFn, action: str, description: str) -> bool:
    """
    Show what a mutating tool is about to do and ask the user.

    Args:
        console: Console for the action panel.
        prompt_fn: Reads one line of user input.
        action: Short action name, e.g. "Delete file".
        description: Details shown in the panel.

    Returns:
        True if the user accepted.
    """
    console.print(Panel(
        f"[bold yellow]{action}[/bold yellow]\n\n{description}",
        title="🚨 Confirmation Required",
        border_style="red",
        expand=False,
    ))
    try:
        answer = prompt_fn("🔵 Proceed? (Y/n): ")
    except (EOFError, KeyboardInterrupt):
        # Ctrl+D / Ctrl+C at the prompt declines this action only
        answer = "n"
    if is_affirmative(answer):
        return True
    console.print("[red]Operation cancelled by user.[/red]")
    return False


# -----------------------------------------------------------------------------
# Live markdown
# -----------------------------------------------------------------------------

class MarkdownStream:
    """
    Chunk callback that renders the streamed answer as live markdown.

    Each model round gets its own live region; stop() closes the current one
    so panels and prompts can be printed in between.
    """

    def __init__(self, console: Console, title: str = "🤖 AXON:") -> None:
        self.console = console
        self.title = title
        self.buffer = ""
        self.received_any = False
        self._live: Optional[Live] = None

    def __call__(self, chunk: str) -> None:
        if self._live is None:
            self.console.print(f"\n[bold bright_magenta]{self.title}[/bold bright_magenta]")
            self.buffer = ""
            self._live = Live(Markdown(""), console=self.console, refresh_per_second=8)
            self._live.start()
        self.buffer += chunk
        self.received_any = True
        self._live.update(Markdown(self.buffer))

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------

class Session:
    """
    REPL bound to one conversation.

    Args:
        conversation: The conversation driven by this shell.
        project_root: Root for /file and /explain.
        config: Active configuration, shown in the banner.
        console: Output console.
        prompt_fn: Reads one line of input; defaults to a prompt_toolkit session.
    """

    def __init__(
        self,
        conversation: Conversation,
        project_root: Path,
        config: AxonConfig,
        console: Optional[Console] = None,
        prompt_fn: Optional[PromptFn] = None,
    ) -> None:
        self.conversation = conversation
        self.project_root = Path(project_root)
        self.config = config
        self.console = console or Console()
        if prompt_fn is None:
            prompt_fn = create_prompt_session().prompt
        self.prompt_fn = prompt_fn
        self.running = True
        self._stream: Optional[MarkdownStream] = None

        self.conversation.on_tool_call = self.show_tool_call
        self.conversation.on_tool_result = self.show_tool_result

        self._handlers: List[Callable[[str], bool]] = [
            self.try_handle_exit_command,
            self.try_handle_clear_command,
            self.try_handle_help_command,
            self.try_handle_file_command,
            self.try_handle_explain_command,
            self.try_handle_context_command,
        ]

    def confirm(self, action: str, description: str) -> bool:
        """Confirmation callback handed to the tool executor."""
        if self._stream is not None:
            self._stream.stop()
        return confirm_action(self.console, self.prompt_fn, action, description)

    # -------------------------------------------------------------------------
    # Tool call display
    # -------------------------------------------------------------------------

    def show_tool_call(self, call: ToolCall, args: Dict[str, Any]) -> None:
        if self._stream is not None:
            self._stream.stop()
        self.console.print(Panel(
            f"[bold blue]Calling:[/bold blue] {escape(call.function.name)}\n"
            f"[bold blue]Args:[/bold blue] {escape(json.dumps(args, ensure_ascii=False))}",
            title="🛠️ Function Call", border_style="yellow", expand=False
        ))

    def show_tool_result(self, call: ToolCall, output: str) -> None:
        preview = output
        if len(preview) > MAX_TOOL_OUTPUT_PREVIEW:
            preview = preview[:MAX_TOOL_OUTPUT_PREVIEW] + " ..."
        border = "red" if output.startswith("Error:") else "green"
        self.console.print(Panel(
            Text(preview), title=f"↪️ Output of {escape(call.function.name)}", border_style=border, expand=False,
        ))

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    def try_handle_exit_command(self, user_input: str) -> bool:
        if user_input.strip().lower() in ("/exit", "/quit", "/q"):
            self.console.print("[bold blue]👋 Goodbye![/bold blue]")
            self.running = False
            return True
        return False

    def try_handle_clear_command(self, user_input: str) -> bool:
        if user_input.strip().lower() in ("/clear", "/reset"):
            self.conversation.reset()
            self.console.print("[green]✓ Conversation history cleared.[/green]")
            return True
        return False

    def try_handle_help_command(self, user_input: str) -> bool:
        if user_input.strip().lower() in ("/help", "/h"):
            self.print_help()
            return True
        return False

    def try_handle_file_command(self, user_input: str) -> bool:
        parts = user_input.split()
        if not parts or parts[0] != "/file":
            return False
        if len(parts) < 2:
            self.console.print("[red]Usage:[/red] /file <path>")
            return True

        file_path = parts[1]
        try:
            content, truncated = fsctx.read_file(self.project_root, file_path)
        except ToolError as e:
            self.console.print(f"[red]✗ Error reading file:[/red] {escape(str(e))}")
            return True

        note = " (truncated to 200KB)" if truncated else ""
        language = fsctx.language_for_extension(fsctx.get_file_extension(file_path))
        self.console.print(Panel(
            Syntax(content, language, line_numbers=True),
            title=f"📄 {file_path}{note}", border_style="blue",
        ))
        return True

    def try_handle_explain_command(self, user_input: str) -> bool:
        parts = user_input.split()
        if not parts or parts[0] != "/explain":
            return False
        if len(parts) < 2:
            self.console.print("[red]Usage:[/red] /explain <path> [start:end]")
            return True

        file_path = parts[1]
        try:
            if len(parts) > 2:
                match = RANGE_PATTERN.match(parts[2])
                if not match:
                    self.console.print(f"[red]✗ Invalid range format:[/red] {escape(parts[2])} (expected start:end)")
                    return True
                content = fsctx.read_file_range(self.project_root, file_path, int(match.group(1)), int(match.group(2)))
            else:
                content, truncated = fsctx.read_file(self.project_root, file_path)
                if truncated:
                    self.console.print("[yellow]⚠ File truncated to first 200KB[/yellow]")
        except ToolError as e:
            self.console.print(f"[red]✗ Error reading file:[/red] {escape(str(e))}")
            return True

        language = fsctx.language_for_extension(fsctx.get_file_extension(file_path))
        prompt = (
            "Explain the following code, focusing on what it does and potential issues:\n\n"
            f"File: {file_path}\n```{language}\n{content}\n```"
        )
        try:
            with self.console.status("[bold yellow]AXON is thinking...[/bold yellow]", spinner="dots"):
                answer = self.conversation.ask_once(prompt)
        except TransportError as e:
            self.console.print(f"[red]✗ Error:[/red] {escape(str(e))}")
            return True

        self.console.print("\n[bold bright_magenta]🤖 AXON:[/bold bright_magenta]")
        self.console.print(Markdown(answer))
        return True

    def try_handle_context_command(self, user_input: str) -> bool:
        if user_input.strip().lower() != "/context":
            return False

        total_tokens, breakdown = self.conversation.token_usage()
        usage = total_tokens / ESTIMATED_MAX_TOKENS * 100

        context_table = Table(title="📊 Context Usage Statistics", show_header=True, header_style="bold bright_blue")
        context_table.add_column("Metric", style="bright_cyan")
        context_table.add_column("Value", style="white")
        context_table.add_row("Total Messages", str(len(self.conversation.history)))
        context_table.add_row("Estimated Tokens", f"{total_tokens:,} ({usage:.1f}% of {ESTIMATED_MAX_TOKENS:,})")
        self.console.print(context_table)

        breakdown_table = Table(title="📋 Token Breakdown by Role", show_header=True, header_style="bold bright_blue", border_style="blue")
        breakdown_table.add_column("Role", style="bright_cyan")
        breakdown_table.add_column("Tokens", style="white")
        for role, tokens in breakdown.items():
            if tokens > 0:
                breakdown_table.add_row(role.capitalize(), f"{tokens:,}")
        self.console.print(breakdown_table)

        if usage >= CONTEXT_WARNING_THRESHOLD * 100:
            self.console.print("[yellow]💡 Context is getting large. Use /clear to start fresh.[/yellow]")
        return True

    def handle_command(self, user_input: str) -> bool:
        """Run a slash command. Unknown commands return False and go to the model."""
        return any(handler(user_input) for handler in self._handlers)

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def print_welcome(self) -> None:
        lines = [
            "[bold bright_blue]🚀 AXON - Code Assistant[/bold bright_blue]",
            "",
        ]
        for key, value in config_summary(self.config, self.project_root).items():
            lines.append(f"[bold blue]{key}:[/bold blue] {value}")
        lines += ["", "[dim]Type your questions below. Use /help for commands. Ctrl+D or /exit to quit.[/dim]"]
        self.console.print(Panel.fit("\n".join(lines), border_style="bright_blue"))

    def print_help(self) -> None:
        help_table = Table(title="📝 Available Commands", show_header=True, header_style="bold bright_blue")
        help_table.add_column("Command", style="bright_cyan")
        help_table.add_column("Description", style="white")
        help_table.add_row("/help, /h", "Show this help")
        help_table.add_row("/clear, /reset", "Clear conversation history")
        help_table.add_row("/file <path>", "Display a file's contents")
        help_table.add_row("/explain <path>", "Explain code in a file")
        help_table.add_row("/explain <path> <start:end>", "Explain a specific line range")
        help_table.add_row("/context", "Show context usage statistics")
        help_table.add_row("/exit, /quit, /q", "Exit AXON")
        self.console.print(help_table)
        self.console.print("\n[dim]You can also just type questions naturally![/dim]")

    # -------------------------------------------------------------------------
    # Main loop
    # -------------------------------------------------------------------------

    def ask(self, user_input: str) -> Optional[str]:
        """Run one conversation turn and render it. Returns the answer, or None on failure."""
        self.console.print("\n[yellow]AXON is thinking...[/yellow]")
        stream = MarkdownStream(self.console) if self.conversation.stream else None
        self._stream = stream
        try:
            answer = self.conversation.ask(user_input, on_chunk=stream)
        except MaxIterationsExceeded as e:
            self._end_stream()
            self.console.print(f"\n[red]✗ {escape(str(e))}[/red]")
            self.console.print("[yellow]The model kept calling tools without answering. Try rephrasing the request.[/yellow]")
            return None
        except TransportError as e:
            self._end_stream()
            if e.partial_text:
                self.console.print("\n[yellow]⚠ The response above is partial; the connection failed mid-stream.[/yellow]")
            self.console.print(f"\n[red]✗ Error:[/red] {escape(str(e))}")
            return None
        except ToolArgumentError as e:
            self._end_stream()
            self.console.print(f"\n[red]✗ Error:[/red] {escape(str(e))}")
            return None
        except KeyboardInterrupt:
            self._end_stream()
            self.console.print("\n[yellow]⚠ Interrupted. The turn was discarded.[/yellow]")
            return None

        self._end_stream()
        if stream is None or not stream.received_any:
            self.console.print("\n[bold bright_magenta]🤖 AXON:[/bold bright_magenta]")
            self.console.print(Markdown(answer))
        return answer

    def _end_stream(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream = None

    def run(self) -> None:
        self.print_welcome()
        while self.running:
            try:
                user_input = self.prompt_fn("🔵 You: ").strip()
            except KeyboardInterrupt:
                self.console.print("\n[yellow]⚠ Interrupted. Ctrl+D or /exit to quit.[/yellow]")
                continue
            except EOFError:
                self.console.print("[blue]👋 Goodbye! (EOF)[/blue]")
                break

            if not user_input:
                continue
            if user_input.startswith("/") and self.handle_command(user_input):
                continue
            self.ask(user_input)
