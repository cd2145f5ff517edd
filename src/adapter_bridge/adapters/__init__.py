"""Service adapter definitions."""

from adapter_bridge.adapter import AdapterDefinition
from adapter_bridge.adapters import jira, salesforce, zendesk
from adapter_bridge.client.exceptions import ConfigurationError

ADAPTERS: dict[str, AdapterDefinition] = {
    zendesk.DEFINITION.name: zendesk.DEFINITION,
    jira.DEFINITION.name: jira.DEFINITION,
    salesforce.DEFINITION.name: salesforce.DEFINITION,
}


def get_adapter(name: str) -> AdapterDefinition:
    """Get an adapter definition by name.

    Raises:
        ConfigurationError: If no adapter has that name
    """
    try:
        return ADAPTERS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown adapter '{name}'. Available: {', '.join(sorted(ADAPTERS))}"
        ) from None


__all__ = ["ADAPTERS", "get_adapter"]
