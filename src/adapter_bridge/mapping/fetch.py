"""Fetch mapping: raw service payloads to normalized records.

``FetchMapper`` is pure - it turns an already-fetched page into records.
``ResourceFetcher`` drives the HTTP client: it paginates each kind's
listing endpoint, validates every page's shape and hands the data to the
mapper.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import (
    AdapterBridgeError,
    ConfigurationError,
    MalformedServiceResponseError,
)
from adapter_bridge.elements import PARENT, ElemID, Record, ReferenceExpression
from adapter_bridge.resources import ResourceRegistry, ResourceSchema
from adapter_bridge.utils.logging import get_logger
from adapter_bridge.utils.values import (
    NAME_SEPARATOR,
    get_path,
    is_empty,
    to_identifier,
    value_type_name,
)
from adapter_bridge.validation.response_validator import validate_page

logger = get_logger(__name__)

RECORDS_FOLDER = "Records"
CHILD_NAME_SEPARATOR = "__"


class FetchMapper:
    """Maps raw listing payloads to records using the resource registry."""

    def __init__(self, adapter: str, registry: ResourceRegistry):
        self.adapter = adapter
        self.registry = registry

    def map(self, kind: str, raw_payload: Any, start_index: int = 0) -> list[Record]:
        """Map one raw payload of ``kind`` to records.

        The data envelope is read at the schema's ``data_field``; a single
        object there is treated as a one-item collection. Standalone
        children are emitted right after their parent.

        Args:
            kind: Resource kind of the payload
            raw_payload: Decoded response body
            start_index: Offset used for fallback names across pages

        Returns:
            Parent and child records, flattened

        Raises:
            ResourceNotFound: If ``kind`` is not registered
        """
        schema = self.registry.lookup(kind)
        entries = get_path(raw_payload, schema.data_field)
        return self.map_entries(schema, entries, start_index=start_index)

    def map_entries(
        self, schema: ResourceSchema, entries: Any, start_index: int = 0
    ) -> list[Record]:
        """Map an already extracted data envelope."""
        records: list[Record] = []
        for index, item in enumerate(_as_items(entries), start=start_index):
            if not isinstance(item, dict):
                logger.warning(
                    "skipping_non_mapping_entry",
                    kind=schema.kind,
                    index=index,
                    value_type=value_type_name(item),
                )
                continue
            records.extend(self._map_item(schema, item, index))
        return records

    def _map_item(
        self,
        schema: ResourceSchema,
        item: dict[str, Any],
        index: int,
        parent: Record | None = None,
    ) -> list[Record]:
        value = self._omit_fields(schema, item)
        self._check_enums(schema, value)

        name, natural_key = self._compute_name(schema, value, index)
        if parent is not None:
            name = f"{parent.name}{CHILD_NAME_SEPARATOR}{name}"

        record = Record(
            elem_id=ElemID.instance(self.adapter, schema.kind, name),
            value=value,
            natural_key=natural_key,
            path=(self.adapter, RECORDS_FOLDER, schema.kind, self._file_name(schema, value, name)),
        )
        if parent is not None:
            record.annotations[PARENT] = [ReferenceExpression(parent.elem_id, parent)]

        children: list[Record] = []
        for standalone in schema.standalone_fields:
            nested = value.get(standalone.field_name)
            if is_empty(nested):
                continue

            child_schema = self.registry.lookup(standalone.kind)
            refs = []
            for child_index, child_item in enumerate(_as_items(nested)):
                if not isinstance(child_item, dict):
                    refs.append(child_item)
                    continue
                mapped = self._map_item(child_schema, child_item, child_index, parent=record)
                # mapped[0] is the direct child; the rest are its own descendants
                refs.append(ReferenceExpression(mapped[0].elem_id, mapped[0]))
                children.extend(mapped)

            value[standalone.field_name] = refs if isinstance(nested, list) else refs[0]

        return [record, *children]

    @staticmethod
    def _omit_fields(schema: ResourceSchema, item: dict[str, Any]) -> dict[str, Any]:
        value = dict(item)
        for rule in schema.fields_to_omit:
            if rule.field_name not in value:
                continue
            if rule.field_type is None or value_type_name(value[rule.field_name]) == rule.field_type:
                del value[rule.field_name]
        return value

    @staticmethod
    def _check_enums(schema: ResourceSchema, value: dict[str, Any]) -> None:
        for field_name, allowed in schema.enum_restrictions.items():
            field_value = value.get(field_name)
            if field_value is not None and field_value not in allowed:
                logger.warning(
                    "enum_restriction_violated",
                    kind=schema.kind,
                    field=field_name,
                    value=field_value,
                    allowed=list(allowed),
                )

    @staticmethod
    def _id_values(fields: Iterable[str], value: dict[str, Any]) -> list[str]:
        values = []
        for path in fields:
            field_value = get_path(value, path)
            if not is_empty(field_value) and not isinstance(field_value, (dict, list)):
                values.append(str(field_value))
        return values

    def _compute_name(
        self, schema: ResourceSchema, value: dict[str, Any], index: int
    ) -> tuple[str, str | None]:
        id_values = self._id_values(schema.id_fields, value)
        if not id_values:
            logger.debug("record_without_identifier", kind=schema.kind, index=index)
            return f"unnamed_{index}", None
        return to_identifier(NAME_SEPARATOR.join(id_values)), id_values[0]

    def _file_name(self, schema: ResourceSchema, value: dict[str, Any], name: str) -> str:
        if schema.file_name_fields:
            file_values = self._id_values(schema.file_name_fields, value)
            if file_values:
                return to_identifier(NAME_SEPARATOR.join(file_values))
        return name


def _as_items(entries: Any) -> list[Any]:
    if entries is None:
        return []
    if isinstance(entries, list):
        return entries
    return [entries]


@dataclass
class FetchResult:
    """Records of all fetched kinds plus the kinds that failed, with reasons."""

    records: list[Record] = field(default_factory=list)
    failed_kinds: dict[str, str] = field(default_factory=dict)


class ResourceFetcher:
    """Fetches resource kinds through the HTTP client and maps them.

    Kinds are fetched concurrently; pages of one kind are read in order.
    """

    def __init__(self, client: BaseAPIClient, mapper: FetchMapper, max_concurrent: int = 5):
        """Initialize fetcher.

        Args:
            client: HTTP client used for listing requests
            mapper: Fetch mapper (carries the registry)
            max_concurrent: Maximum number of kinds fetched at once
        """
        self.client = client
        self.mapper = mapper
        self.max_concurrent = max_concurrent

    @property
    def registry(self) -> ResourceRegistry:
        return self.mapper.registry

    async def fetch_kind(self, kind: str) -> list[Record]:
        """Fetch and map every page of one kind.

        A malformed page empties the result for this kind and logs a
        warning; HTTP errors propagate to the caller.
        """
        schema = self.registry.lookup(kind)
        if not schema.url:
            logger.debug("kind_has_no_listing_endpoint", kind=kind)
            return []

        records: list[Record] = []
        item_count = 0
        try:
            async for page in self.client.paginate(schema.url, schema.paginate_field):
                entries = validate_page(schema, page)
                mapped = self.mapper.map_entries(schema, entries, start_index=item_count)
                item_count += len(_as_items(entries))
                records.extend(mapped)
        except MalformedServiceResponseError as e:
            logger.warning("malformed_service_response", kind=kind, error=str(e))
            return []

        logger.info("kind_fetched", kind=kind, records=len(records))
        return records

    async def fetch_all(self, kinds: Iterable[str] | None = None) -> FetchResult:
        """Fetch several kinds concurrently.

        Args:
            kinds: Kinds to fetch (default: every kind with a listing endpoint)

        Returns:
            FetchResult with records in the order of ``kinds``
        """
        kinds = list(kinds) if kinds is not None else self.registry.fetchable_kinds()
        semaphore = asyncio.Semaphore(self.max_concurrent)
        result = FetchResult()

        async def fetch_with_semaphore(kind: str) -> list[Record]:
            async with semaphore:
                try:
                    return await self.fetch_kind(kind)
                except ConfigurationError:
                    raise
                except AdapterBridgeError as e:
                    logger.error("kind_fetch_failed", kind=kind, error=str(e))
                    result.failed_kinds[kind] = str(e)
                    return []

        per_kind = await asyncio.gather(*(fetch_with_semaphore(kind) for kind in kinds))
        for records in per_kind:
            result.records.extend(records)

        logger.info(
            "fetch_completed",
            kinds=len(kinds),
            records=len(result.records),
            failed=len(result.failed_kinds),
        )
        return result
