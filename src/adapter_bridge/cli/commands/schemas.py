"""Resource schema CLI commands."""

from pathlib import Path

import click

from adapter_bridge.adapters import ADAPTERS, get_adapter
from adapter_bridge.cli.context import AdapterContext
from adapter_bridge.cli.decorators import handle_errors, pass_context
from adapter_bridge.cli.utils import echo_success, print_table
from adapter_bridge.elements import ACTIONS
from adapter_bridge.resources import ResourceRegistry, load_definitions_from_yaml, load_registry


def _load_registry(
    ctx: AdapterContext, adapter_name: str | None, definitions: Path | None
) -> tuple[str, ResourceRegistry]:
    """Registry of the named adapter, or of the configured one."""
    overrides = {}
    if adapter_name is None:
        if ctx.config_path is None:
            raise click.UsageError("Pass --adapter or --config to select an adapter")
        adapter_name = ctx.config.adapter
        overrides = ctx.config.load_definition_overrides()

    if definitions is not None:
        overrides = load_definitions_from_yaml(definitions)

    definition = get_adapter(adapter_name)
    return definition.name, load_registry(definition.resources, overrides)


@click.group(name="schemas")
def schemas_group():
    """Inspect and validate resource schemas."""


_adapter_option = click.option(
    "--adapter",
    "-a",
    "adapter_name",
    type=click.Choice(sorted(ADAPTERS), case_sensitive=False),
    help="Adapter to inspect (default: the configured adapter)",
)
_definitions_option = click.option(
    "--definitions",
    "-d",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file overriding resource definitions",
)


@schemas_group.command(name="list")
@_adapter_option
@_definitions_option
@pass_context
@handle_errors
def list_schemas(ctx: AdapterContext, adapter_name: str | None, definitions: Path | None) -> None:
    """List the resource kinds of an adapter and their deploy operations.

    Examples:

        adapter-bridge schemas list --adapter zendesk
    """
    name, registry = _load_registry(ctx, adapter_name, definitions)

    rows = []
    for kind in registry.kinds():
        schema = registry.lookup(kind)
        operations = [action for action in ACTIONS if action in schema.deploy_requests]
        rows.append(
            [
                kind,
                schema.url or "-",
                ", ".join(schema.id_fields),
                ", ".join(s.kind for s in schema.standalone_fields) or "-",
                ", ".join(operations) or "-",
            ]
        )

    print_table(
        f"{name} resources",
        ["Kind", "Listing URL", "Id fields", "Standalone kinds", "Deploy"],
        rows,
    )


@schemas_group.command(name="validate")
@_adapter_option
@_definitions_option
@pass_context
@handle_errors
def validate_schemas(
    ctx: AdapterContext, adapter_name: str | None, definitions: Path | None
) -> None:
    """Load and validate an adapter's resource definitions.

    Exits with code 2 when a definition is invalid.

    Examples:

        adapter-bridge schemas validate --adapter jira --definitions overrides.yaml
    """
    name, registry = _load_registry(ctx, adapter_name, definitions)
    echo_success(f"{name}: {len(registry)} resource definitions are valid")
