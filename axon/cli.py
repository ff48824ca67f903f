"""Entry point for the `axon` console script."""

import argparse
import os
import signal
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from . import __version__
from .client import LLMClient
from .config import config_summary, debug_enabled, find_project_root, load_config
from .conversation import Conversation
from .debug_log import open_debug_log
from .errors import ConfigError, ServerStartError
from .executor import ToolExecutor
from .indexer import ProjectIndex
from .server import LlamaServer, check_running, select_model
from .session import Session, create_prompt_session

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="axon",
        description="Interactive code assistant backed by a local llama-server.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--no-server", action="store_true",
        help="never start llama-server, even if none is running",
    )
    parser.add_argument(
        "--no-stream", action="store_true",
        help="wait for complete responses instead of streaming them",
    )
    return parser


def debug(msg: str) -> None:
    if debug_enabled():
        console.print(f"[dim][DEBUG] {msg}[/dim]")


def _exit_on_signal(signum, frame) -> None:
    raise SystemExit(128 + signum)


def install_signal_handlers() -> None:
    """Turn SIGTERM (and SIGHUP where it exists) into SystemExit so cleanup runs."""
    signal.signal(signal.SIGTERM, _exit_on_signal)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _exit_on_signal)


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    project_root = find_project_root(os.getcwd())
    log = open_debug_log(project_root, console)
    log.log(f"AXON started in {project_root}")

    server: Optional[LlamaServer] = None
    client: Optional[LLMClient] = None
    try:
        try:
            config = load_config(project_root)
        except ConfigError as e:
            console.print(f"[bold red]✗ Failed to load config:[/bold red] {escape(str(e))}")
            sys.exit(1)
        if args.no_stream:
            config.llm.stream = False
        for key, value in config_summary(config, project_root).items():
            debug(f"{key}: {value}")

        prompt_session = create_prompt_session()

        if check_running(config.llm.base_url):
            console.print(f"[bold green]LLM server is already running at {config.llm.base_url}[/bold green]")
        elif config.server.auto_start and not args.no_server:
            model = select_model(console, prompt_session.prompt, config.server.model)
            server = LlamaServer(
                config.server.server_path, config.llm.base_url, model,
                debug=debug_enabled(), console=console,
            )
            install_signal_handlers()
            try:
                server.start()
            except ServerStartError as e:
                console.print(f"[bold red]✗ Failed to start llama-server:[/bold red] {escape(str(e))}")
                console.print("[yellow]Tip:[/yellow] disable auto-start with AXON_SERVER_AUTO_START=0")
                console.print("   or configure a server path in .axon.yml")
                sys.exit(1)
        else:
            console.print("[bold yellow]LLM server is not running and auto-start is disabled.[/bold yellow]")
            console.print("   Please start llama-server manually or enable auto-start in config.")
            sys.exit(1)

        with console.status("[bold blue]Indexing project...[/bold blue]", spinner="dots"):
            index = ProjectIndex(project_root, config.context.ignore)
            index.index_project()
        console.print(f"[green]✓ Indexed {len(index.get_all_file_paths())} files[/green]")

        client = LLMClient(config.llm, log=log)
        executor = ToolExecutor(project_root, config.context.ignore, index=index, log=log)
        conversation = Conversation(client, executor, stream=config.llm.stream, log=log)
        session = Session(conversation, Path(project_root), config, console, prompt_session.prompt)
        executor.confirm = session.confirm

        session.run()
    finally:
        if client is not None:
            client.close()
        if server is not None:
            server.stop()
        log.close()


if __name__ == "__main__":
    main()
