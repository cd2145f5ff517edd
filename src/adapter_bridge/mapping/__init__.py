"""Fetch, reference resolution and deploy stages."""

from adapter_bridge.mapping.coordinator import DeployCoordinator, DeployFilter
from adapter_bridge.mapping.deploy import DeployMapper, WireRequest
from adapter_bridge.mapping.fetch import FetchMapper, FetchResult, ResourceFetcher
from adapter_bridge.mapping.order import OrderedCollectionFilter, OrderSpec, create_order_type_name
from adapter_bridge.mapping.references import (
    ReferenceIndex,
    ReferenceResolver,
    get_lookup_name,
    restore_references,
)

__all__ = [
    "DeployCoordinator",
    "DeployFilter",
    "DeployMapper",
    "FetchMapper",
    "FetchResult",
    "OrderSpec",
    "OrderedCollectionFilter",
    "ReferenceIndex",
    "ReferenceResolver",
    "ResourceFetcher",
    "WireRequest",
    "create_order_type_name",
    "get_lookup_name",
    "restore_references",
]
