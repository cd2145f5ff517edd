"""
Decorators for CLI commands.

This module provides decorators for error handling, context passing,
and configuration loading.
"""

import functools
from collections.abc import Callable

import click

from adapter_bridge.cli.context import AdapterContext
from adapter_bridge.client.exceptions import APIError, AuthenticationError, ConfigurationError
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)


def pass_context(f: Callable) -> Callable:
    """
    Decorator to pass AdapterContext to command function.

    Usage:
        @click.command()
        @pass_context
        def my_command(ctx: AdapterContext):
            print(ctx.config)
    """

    @click.pass_context
    @functools.wraps(f)
    def wrapper(click_ctx: click.Context, *args, **kwargs):
        adapter_ctx: AdapterContext = click_ctx.obj
        return f(adapter_ctx, *args, **kwargs)

    return wrapper


def handle_errors(f: Callable) -> Callable:
    """
    Decorator to handle common errors in CLI commands.

    Exit codes:
        0: Success
        1: General error
        2: Configuration error
        3: Authentication error
        4: API error
    """

    @functools.wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)

        except (click.exceptions.Exit, click.ClickException):
            raise

        except ConfigurationError as e:
            logger.error("configuration_error", error=str(e))
            click.echo(f"Configuration Error: {e}", err=True)
            raise click.exceptions.Exit(2) from e

        except AuthenticationError as e:
            logger.error("authentication_error", error=str(e))
            click.echo(f"Authentication Error: {e}", err=True)
            click.echo("\nPlease verify the service token in the configuration file.", err=True)
            raise click.exceptions.Exit(3) from e

        except APIError as e:
            logger.error("api_error", error=str(e))
            click.echo(f"API Error: {e}", err=True)
            raise click.exceptions.Exit(4) from e

        except Exception as e:
            logger.error("unexpected_error", error=str(e), exc_info=True)
            click.echo(f"Unexpected Error: {e}", err=True)
            raise click.exceptions.Exit(1) from e

    return wrapper


def requires_config(f: Callable) -> Callable:
    """
    Decorator to ensure configuration is loaded.

    Exits with code 2 when no configuration file was given or it is invalid.
    """

    @functools.wraps(f)
    def wrapper(ctx: AdapterContext, *args, **kwargs):
        if ctx.config_path is None:
            click.echo(
                "Error: Configuration file required. Use --config option or set "
                "ADAPTER_BRIDGE_CONFIG.",
                err=True,
            )
            raise click.exceptions.Exit(2)

        try:
            _ = ctx.config
        except Exception as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            raise click.exceptions.Exit(2) from e

        return f(ctx, *args, **kwargs)

    return wrapper
