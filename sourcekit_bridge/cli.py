"""sourcekit-bridge CLI entry point."""

import asyncio
import sys
from typing import Any, Dict

import click

from sourcekit_bridge import __version__
from sourcekit_bridge.config import BridgeConfig
from sourcekit_bridge.exceptions import BridgeError
from sourcekit_bridge.logger import configure_logging, setup_logger
from sourcekit_bridge.lsp.session import LspSession
from sourcekit_bridge.tools import ToolResponse, ToolService

logger = setup_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="sourcekit-bridge")
@click.option(
    "--workspace",
    "-w",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Workspace root (defaults to SOURCEKIT_WORKSPACE_ROOT or the current directory)",
)
@click.option("--lsp-path", default=None, help="Language server executable")
@click.option(
    "--build-arg",
    "build_args",
    multiple=True,
    help="Extra argument for the language server (repeatable)",
)
@click.option("--timeout", type=float, default=None, help="Per-request timeout in seconds")
@click.option("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ...)")
@click.option(
    "--env-file", type=click.Path(exists=True, dir_okay=False), default=None, help=".env file to load"
)
@click.pass_context
def cli(ctx, workspace, lsp_path, build_args, timeout, log_level, env_file):
    """Bridge between MCP tool calls and sourcekit-lsp.

    Logs go to stderr; stdout is reserved for protocol output.
    """
    configure_logging(log_level.upper() if log_level else None, force=True)
    try:
        ctx.obj = BridgeConfig.from_env(
            dotenv_path=env_file,
            workspace_root=workspace,
            executable=lsp_path,
            extra_args=list(build_args) or None,
            request_timeout_seconds=timeout,
        )
    except BridgeError as e:
        raise click.ClickException(str(e)) from e


@cli.command()
@click.pass_obj
def serve(config: BridgeConfig):
    """Run the MCP server on stdio.

    Examples:

        sourcekit-bridge serve

        sourcekit-bridge --workspace ~/projects/App --lsp-path /usr/bin/sourcekit-lsp serve
    """
    from sourcekit_bridge.server import BridgeServer

    try:
        asyncio.run(BridgeServer(config).run())
    except BridgeError as e:
        logger.error("Failed to start server: {}", e)
        sys.exit(1)


async def _run_tool(config: BridgeConfig, tool_name: str, arguments: Dict[str, Any]) -> ToolResponse:
    async with LspSession(config.server_config(), config.workspace_root) as session:
        service = ToolService(session, diagnostics_settle_seconds=config.diagnostics_settle_seconds)
        return await service.call(tool_name, arguments)


def _invoke(config: BridgeConfig, tool_name: str, arguments: Dict[str, Any]) -> None:
    try:
        response = asyncio.run(_run_tool(config, tool_name, arguments))
    except BridgeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(response.text)
    if response.error:
        sys.exit(1)


@cli.command()
@click.argument("file", type=click.Path())
@click.argument("line", type=int)
@click.argument("column", type=int)
@click.pass_obj
def hover(config: BridgeConfig, file: str, line: int, column: int):
    """Show type information for the symbol at FILE:LINE:COLUMN (1-based)."""
    _invoke(config, "swift-hover", {"file": file, "line": line, "column": column})


@cli.command()
@click.argument("file", type=click.Path())
@click.argument("line", type=int)
@click.argument("column", type=int)
@click.pass_obj
def definition(config: BridgeConfig, file: str, line: int, column: int):
    """Find where the symbol at FILE:LINE:COLUMN is defined."""
    _invoke(config, "swift-definition", {"file": file, "line": line, "column": column})


@cli.command()
@click.argument("file", type=click.Path())
@click.argument("line", type=int)
@click.argument("column", type=int)
@click.option(
    "--declaration/--no-declaration",
    default=True,
    help="Include the declaration itself in the results",
)
@click.pass_obj
def references(config: BridgeConfig, file: str, line: int, column: int, declaration: bool):
    """List references to the symbol at FILE:LINE:COLUMN."""
    _invoke(
        config,
        "swift-references",
        {"file": file, "line": line, "column": column, "include_declaration": declaration},
    )


@cli.command()
@click.argument("query")
@click.pass_obj
def symbols(config: BridgeConfig, query: str):
    """Search workspace symbols matching QUERY."""
    _invoke(config, "swift-symbols", {"query": query})


@cli.command()
@click.argument("file", type=click.Path())
@click.pass_obj
def diagnostics(config: BridgeConfig, file: str):
    """Print compiler diagnostics for FILE."""
    _invoke(config, "swift-diagnostics", {"file": file})


def main():
    cli()


if __name__ == "__main__":
    main()
