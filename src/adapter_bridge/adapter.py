"""Adapter pipeline wiring the fetch and deploy stages together.

An ``AdapterDefinition`` is the static description of one service: its
resource tables, pre-render transforms, filters and reference resolver.
``Adapter`` binds a definition to a configuration and an HTTP client and
runs the stages in order:

- fetch: fetch mapping, fetch filters, then reference resolution
- deploy: change validators, then the deploy coordinator
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.config import AdapterConfig
from adapter_bridge.elements import Change, DeployOutcome, Record, get_change_data
from adapter_bridge.mapping.coordinator import DeployCoordinator, DeployFilter
from adapter_bridge.mapping.deploy import DeployMapper, RecordTransform
from adapter_bridge.mapping.fetch import FetchMapper, FetchResult, ResourceFetcher
from adapter_bridge.mapping.order import OrderedCollectionFilter
from adapter_bridge.mapping.references import ReferenceResolver
from adapter_bridge.resources import ResourceRegistry, load_registry
from adapter_bridge.utils.logging import get_logger
from adapter_bridge.validation.change_validators import (
    ChangeValidator,
    deploy_not_supported_validator,
    run_change_validators,
    unsupported_operation_validator,
)

logger = get_logger(__name__)


@runtime_checkable
class FetchFilter(Protocol):
    """A filter that augments the fetched records in place."""

    def on_fetch(self, records: list[Record]) -> list[Record]: ...


FetchHook = Callable[[BaseAPIClient, list[Record]], Awaitable[list[Record]]]


@dataclass(frozen=True)
class AdapterDefinition:
    """Static description of one service adapter.

    Attributes:
        name: Adapter name, used as the first part of every element id
        resources: Resource definition tables, keyed by kind
        transforms: Kind -> pre-render transforms for deploy
        create_filters: Builds the fetch/deploy filters for an adapter
        create_reference_resolver: Builds the reference resolver, if any
        fetch_hook: Async step run on the fetched records before filters
        supports_deploy: False for read-only adapters
    """

    name: str
    resources: Mapping[str, Mapping[str, Any]]
    transforms: Mapping[str, Sequence[RecordTransform]] = field(default_factory=dict)
    create_filters: Callable[["Adapter"], list[Any]] | None = None
    create_reference_resolver: Callable[[], ReferenceResolver] | None = None
    fetch_hook: FetchHook | None = None
    supports_deploy: bool = True


class Adapter:
    """A configured adapter bound to an HTTP client."""

    def __init__(
        self,
        definition: AdapterDefinition,
        config: AdapterConfig,
        client: BaseAPIClient,
        cancel_event: asyncio.Event | None = None,
    ):
        """Initialize adapter.

        Args:
            definition: Adapter definition
            config: Adapter configuration
            client: HTTP client for the service
            cancel_event: Set by the caller to cancel a running deploy

        Raises:
            ConfigurationError: If the resource definitions are invalid
        """
        self.definition = definition
        self.config = config
        self.client = client
        self.cancel_event = cancel_event

        self.registry: ResourceRegistry = load_registry(
            definition.resources, config.load_definition_overrides()
        )
        self.fetch_mapper = FetchMapper(definition.name, self.registry)
        self.fetcher = ResourceFetcher(
            client, self.fetch_mapper, max_concurrent=config.performance.max_concurrent_kinds
        )
        self.deploy_mapper = DeployMapper(self.registry, definition.transforms)

        self.filters = definition.create_filters(self) if definition.create_filters else []
        self.reference_resolver = (
            definition.create_reference_resolver()
            if definition.create_reference_resolver
            else None
        )

        logger.info(
            "adapter_initialized",
            adapter=definition.name,
            kinds=len(self.registry),
            filters=len(self.filters),
        )

    @property
    def name(self) -> str:
        return self.definition.name

    async def fetch(self, reference_universe: Iterable[Record] | None = None) -> FetchResult:
        """Fetch the configured kinds and resolve references between them.

        Args:
            reference_universe: Extra records references may point at; the
                fetched records are always part of it
        """
        result = await self.fetcher.fetch_all(self.config.fetch.include_types)

        if self.definition.fetch_hook is not None:
            result.records = await self.definition.fetch_hook(self.client, result.records)

        for fetch_filter in self.filters:
            if isinstance(fetch_filter, FetchFilter):
                fetch_filter.on_fetch(result.records)

        if self.reference_resolver is not None:
            universe = None
            if reference_universe is not None:
                universe = [*reference_universe, *result.records]
            self.reference_resolver.on_fetch(result.records, universe)

        return result

    def change_validators(self) -> list[ChangeValidator]:
        if not self.definition.supports_deploy:
            return [deploy_not_supported_validator(self.name)]
        handled_kinds = [
            f.spec.order_kind for f in self.filters if isinstance(f, OrderedCollectionFilter)
        ]
        return [unsupported_operation_validator(self.registry, handled_kinds)]

    async def deploy(self, changes: Sequence[Change]) -> DeployOutcome:
        """Validate and deploy ``changes``.

        Changes blocked by a validator are reported as failed; the rest go
        through the deploy coordinator.
        """
        valid, errors = run_change_validators(changes, self.change_validators())
        valid_ids = {get_change_data(change).elem_id for change in valid}
        blocked = [change for change in changes if get_change_data(change).elem_id not in valid_ids]

        coordinator = DeployCoordinator(
            self.registry,
            self.deploy_mapper,
            self.client,
            special_deployers=[f for f in self.filters if isinstance(f, DeployFilter)],
            max_concurrent=self.config.deploy.max_concurrent,
            cancel_event=self.cancel_event,
        )
        outcome = await coordinator.deploy(valid)

        outcome.deploy_result.failed_changes.extend(blocked)
        outcome.deploy_result.errors.extend(errors)
        return outcome
