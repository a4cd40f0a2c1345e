"""CLI commands for evalbridge.

The CLI plays the editor's part: it hands one piece of code to a running
interpreter session and reports the outcome.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path

import typer
from rich.console import Console

from evalbridge import __logo__, __version__
from evalbridge.cli.console_host import ConsoleEditorHost
from evalbridge.cli.shared.logging_utils import configure_cli_logging
from evalbridge.client import EvalClient
from evalbridge.config.access import get_config
from evalbridge.config.loader import convert_to_camel, get_config_path, save_config
from evalbridge.config.schema import Config
from evalbridge.protocol.types import EvalResult, FailureReport
from evalbridge.session.contracts import SourceSelection
from evalbridge.utils.exceptions import EvalBridgeError

app = typer.Typer(
    name="evalbridge",
    help=f"{__logo__} evalbridge - evaluate code in a running Julia session",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Inspect and initialize configuration")
app.add_typer(config_app, name="config")

console = Console()

EXIT_FAILED = 1
EXIT_BRIDGE_ERROR = 2

SendFn = Callable[[EvalClient, Callable[[EvalResult], None], Callable[[FailureReport], None]], Awaitable[str]]


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} evalbridge v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(None, "--version", "-v", callback=_version_callback, is_eager=True),
):
    """evalbridge - send code to a Julia evaluation server."""


def _load(config_path: Path | None) -> Config:
    try:
        return get_config(config_path=config_path)
    except ValueError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(EXIT_BRIDGE_ERROR)


async def _run_request(
    config: Config,
    host: ConsoleEditorHost,
    send: SendFn,
    *,
    address: tuple[str | None, int | None],
    timeout: float,
) -> int:
    loop = asyncio.get_running_loop()
    done: asyncio.Future[int] = loop.create_future()

    def _on_success(result: EvalResult) -> None:
        if result.value is not None:
            console.print(result.value, markup=False, highlight=False)
        else:
            console.print("[green]✓[/green] done")
        if not done.done():
            done.set_result(0)

    def _on_failure(report: FailureReport) -> None:
        if not done.done():
            done.set_result(EXIT_FAILED)

    client = EvalClient(config, editor=host, host=address[0], port=address[1])
    try:
        request_id = await send(client, _on_success, _on_failure)
        console.print(f"[dim]request {request_id}[/dim]")
        return await asyncio.wait_for(done, timeout)
    except asyncio.TimeoutError:
        console.print(f"[red]No response within {timeout}s[/red]")
        return EXIT_BRIDGE_ERROR
    finally:
        await client.manager.close_all()


def _execute(config: Config, host: ConsoleEditorHost, send: SendFn, *, address, timeout: float) -> None:
    try:
        code = asyncio.run(_run_request(config, host, send, address=address, timeout=timeout))
    except EvalBridgeError as exc:
        console.print(f"[red]Error:[/red] {exc.message}")
        raise typer.Exit(EXIT_BRIDGE_ERROR)
    if code:
        raise typer.Exit(code)


@app.command("eval")
def eval_command(
    code: str = typer.Argument(..., help="Code to evaluate"),
    ns: list[str] = typer.Option(None, "--ns", "-n", help="Namespace path element, outermost first (repeatable)"),
    staged: bool = typer.Option(None, "--staged/--inline", help="Force staging through a scratch file (default: auto)"),
    host: str = typer.Option(None, "--host", help="Evaluation server host"),
    port: int = typer.Option(None, "--port", "-p", help="Evaluation server port"),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait for the response"),
    config_path: Path = typer.Option(None, "--config", help="Config file path"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show evalbridge runtime logs"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Debug logging to stderr"),
):
    """Evaluate a code fragment in a namespace."""
    configure_cli_logging("eval", logs=logs, debug=debug)
    config = _load(config_path)
    host_ = ConsoleEditorHost(console, SourceSelection(namespace=ns or None, text=code))

    async def _send(client: EvalClient, on_success, on_failure) -> str:
        if staged is None:
            return await client.send_selection("cli", on_success=on_success, on_failure=on_failure)
        sender = client.send_text_staged if staged else client.send_text
        return await sender(ns or None, code, origin="cli", on_success=on_success, on_failure=on_failure)

    _execute(config, host_, _send, address=(host, port), timeout=timeout)


@app.command("eval-file")
def eval_file_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Source file to load"),
    ns: list[str] = typer.Option(None, "--ns", "-n", help="Namespace path element (repeatable)"),
    host: str = typer.Option(None, "--host", help="Evaluation server host"),
    port: int = typer.Option(None, "--port", "-p", help="Evaluation server port"),
    timeout: float = typer.Option(60.0, "--timeout", help="Seconds to wait for the response"),
    config_path: Path = typer.Option(None, "--config", help="Config file path"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show evalbridge runtime logs"),
):
    """Load and evaluate a source file."""
    configure_cli_logging("eval", logs=logs, debug=False)
    config = _load(config_path)

    async def _send(client: EvalClient, on_success, on_failure) -> str:
        return await client.send_file(ns or None, path, origin="cli", on_success=on_success, on_failure=on_failure)

    _execute(config, ConsoleEditorHost(console), _send, address=(host, port), timeout=timeout)


@app.command("activate")
def activate_command(
    project: Path = typer.Argument(..., help="Project directory to activate"),
    host: str = typer.Option(None, "--host", help="Evaluation server host"),
    port: int = typer.Option(None, "--port", "-p", help="Evaluation server port"),
    timeout: float = typer.Option(60.0, "--timeout", help="Seconds to wait for the response"),
    config_path: Path = typer.Option(None, "--config", help="Config file path"),
):
    """Activate a project environment in the interpreter."""
    config = _load(config_path)

    async def _send(client: EvalClient, on_success, on_failure) -> str:
        return await client.activate_project_context(
            project, origin="cli", on_success=on_success, on_failure=on_failure
        )

    _execute(config, ConsoleEditorHost(console), _send, address=(host, port), timeout=timeout)


@config_app.command("show")
def config_show(
    config_path: Path = typer.Option(None, "--config", help="Config file path"),
) -> None:
    """Print the effective configuration."""
    config = _load(config_path)
    console.print(json.dumps(convert_to_camel(config.model_dump()), indent=2, ensure_ascii=False))


@config_app.command("init")
def config_init(
    config_path: Path = typer.Option(None, "--config", help="Config file path"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write a default configuration file."""
    path = config_path or get_config_path()
    if path.exists() and not force:
        console.print(f"[yellow]Config already exists:[/yellow] {path}")
        raise typer.Exit(1)
    save_config(Config(), path)
    console.print(f"[green]✓[/green] Wrote {path}")


if __name__ == "__main__":
    app()
