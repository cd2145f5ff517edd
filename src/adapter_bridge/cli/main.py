"""
Main CLI entry point for Adapter Bridge.

This module provides the command-line interface for fetching SaaS
configuration and inspecting adapter resource definitions.
"""

import sys
from pathlib import Path

import click
from dotenv import load_dotenv

from adapter_bridge import __version__
from adapter_bridge.cli.commands import fetch as fetch_commands
from adapter_bridge.cli.commands import schemas as schemas_commands
from adapter_bridge.cli.context import AdapterContext
from adapter_bridge.utils.logging import configure_logging, get_logger

# Load environment variables from .env file
load_dotenv()

logger = get_logger(__name__)


@click.group()
@click.version_option(version=__version__, prog_name="adapter-bridge")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
    envvar="ADAPTER_BRIDGE_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Set console logging level (overrides the config file; default WARNING)",
    envvar="ADAPTER_BRIDGE_LOG_LEVEL",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    help="Also write JSON logs to this file",
    envvar="ADAPTER_BRIDGE_LOG_FILE",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Path | None,
    log_level: str | None,
    log_file: Path | None,
) -> None:
    """Adapter Bridge - fetch and deploy SaaS configuration.

    Examples:

        # List the resource kinds of an adapter
        adapter-bridge schemas list --adapter zendesk

        # Validate resource definition overrides
        adapter-bridge schemas validate --adapter jira --definitions overrides.yaml

        # Fetch records into a directory
        adapter-bridge --config zendesk.yaml fetch --output records/
    """
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    configure_logging(level=log_level or "WARNING", log_file=str(log_file) if log_file else None)

    ctx.obj = AdapterContext(
        config_path=config,
        log_level=log_level,
        log_file=log_file,
    )

    logger.debug(
        "cli_initialized",
        config=str(config) if config else None,
        log_level=log_level,
    )


cli.add_command(schemas_commands.schemas_group)
cli.add_command(fetch_commands.fetch)


def main() -> int:
    """Main entry point for CLI."""
    try:
        cli(standalone_mode=False)
        return 0
    except click.exceptions.Exit as e:
        return e.exit_code
    except click.ClickException as e:
        e.show()
        return e.exit_code
    except Exception as e:
        logger.error("unexpected_error", error=str(e), exc_info=True)
        click.echo(f"Error: {e}", err=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
