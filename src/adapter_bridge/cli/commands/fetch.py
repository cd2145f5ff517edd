"""Fetch CLI command."""

import asyncio
from pathlib import Path

import click

from adapter_bridge.adapter import Adapter
from adapter_bridge.adapters import get_adapter
from adapter_bridge.cli.context import AdapterContext
from adapter_bridge.cli.decorators import handle_errors, pass_context, requires_config
from adapter_bridge.cli.utils import echo_info, echo_success, echo_warning, format_count, write_records
from adapter_bridge.mapping.fetch import FetchResult


@click.command(name="fetch")
@click.option(
    "--output",
    "-o",
    type=click.Path(file_okay=False, path_type=Path),
    default="records/",
    help="Output directory for fetched records (default: records/)",
)
@click.option(
    "--kind",
    "-k",
    "kinds",
    multiple=True,
    help="Kind to fetch (repeatable; default: the configured kinds)",
)
@pass_context
@requires_config
@handle_errors
def fetch(ctx: AdapterContext, output: Path, kinds: tuple[str, ...]) -> None:
    """Fetch configuration records from the service and write them as JSON.

    Examples:

        adapter-bridge --config zendesk.yaml fetch --output records/

        adapter-bridge --config jira.yaml fetch -k Workflow -k Field
    """
    config = ctx.config
    if kinds:
        config.fetch.include_types = list(kinds)

    async def run_fetch() -> FetchResult:
        async with ctx.create_client() as client:
            adapter = Adapter(get_adapter(config.adapter), config, client)
            return await adapter.fetch()

    result = asyncio.run(run_fetch())

    written = write_records(result.records, output)
    echo_success(f"Fetched {format_count(written)} records into {output}")

    for kind, error in result.failed_kinds.items():
        echo_warning(f"{kind}: {error}")
    if result.failed_kinds:
        echo_info("Some kinds failed; see the log for details")
