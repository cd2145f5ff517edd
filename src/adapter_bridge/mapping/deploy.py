"""Deploy mapping: changes to wire requests.

The inverse of the fetch mapper. A change's record is cloned, passed
through the adapter's pre-render transforms, has its standalone children
nested back in place and its references restored, and is then rendered
through the deploy request template of its kind and action.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import MissingUrlParameterError, UnsupportedOperationError
from adapter_bridge.elements import (
    PARENT,
    Addition,
    Change,
    ElementsSource,
    Record,
    ReferenceExpression,
    Removal,
    get_change_data,
)
from adapter_bridge.mapping.references import DEFAULT_SEPARATOR, get_lookup_name, restore_references
from adapter_bridge.resources import URL_PARAM_PATTERN, DeployRequest, ResourceRegistry, ResourceSchema
from adapter_bridge.utils.logging import get_logger
from adapter_bridge.utils.values import get_path, is_primitive

logger = get_logger(__name__)

RecordTransform = Callable[[Record], Record]

PARENT_PREFIX = f"{PARENT}."


@dataclass
class WireRequest:
    """A rendered HTTP request."""

    method: str
    url: str
    data: Any = None


class DeployMapper:
    """Renders changes through the registry's deploy request templates."""

    def __init__(
        self,
        registry: ResourceRegistry,
        transforms: Mapping[str, Sequence[RecordTransform]] | None = None,
        elements_source: ElementsSource | None = None,
        separator: str = DEFAULT_SEPARATOR,
    ):
        """Initialize deploy mapper.

        Args:
            registry: Resource registry holding the deploy templates
            transforms: Kind -> transforms applied, in order, to a clone of
                the record before rendering
            elements_source: Used to dereference references that carry no
                target record
            separator: Separator of compound field names
        """
        self.registry = registry
        self.transforms = dict(transforms or {})
        self.elements_source = elements_source
        self.separator = separator

    def _lookup_name(self, reference: ReferenceExpression) -> Any:
        reference.resolve(self.elements_source)
        return get_lookup_name(reference, self.separator)

    def restore(self, value: Any) -> Any:
        """Copy of ``value`` with references replaced by their service values."""
        return restore_references(value, self._lookup_name)

    def get_request(self, change: Change) -> tuple[ResourceSchema, DeployRequest]:
        """Template for the change's kind and action.

        Raises:
            UnsupportedOperationError: If none is configured
        """
        record = get_change_data(change)
        schema = self.registry.get(record.kind)
        request = schema.get_deploy_request(change.action) if schema is not None else None
        if schema is None or request is None:
            raise UnsupportedOperationError(record.kind, change.action)
        return schema, request

    def render(self, change: Change) -> WireRequest:
        """Render one change into a wire request.

        Raises:
            UnsupportedOperationError: If no template exists for the change
            MissingUrlParameterError: If a URL placeholder has no scalar value
        """
        schema, request = self.get_request(change)

        record = get_change_data(change).clone()
        for transform in self.transforms.get(record.kind, ()):
            record = transform(record)

        body = restore_references(self._nest_standalone(schema, record.value), self._lookup_name)
        url = self._render_url(request, record, body)
        method = request.method.upper()

        if isinstance(change, Removal):
            return WireRequest(method=method, url=url)

        for field_name in request.fields_to_ignore:
            body.pop(field_name, None)

        if request.deploy_as_field:
            body = {request.deploy_as_field: body}

        return WireRequest(method=method, url=url, data=body)

    def _nest_standalone(self, schema: ResourceSchema, value: dict[str, Any]) -> dict[str, Any]:
        """Replace standalone child references with the children's bodies."""
        body = dict(value)
        for standalone in schema.standalone_fields:
            if standalone.field_name not in body:
                continue
            child_schema = self.registry.lookup(standalone.kind)
            nested = body[standalone.field_name]
            if isinstance(nested, list):
                body[standalone.field_name] = [
                    self._nest_child(child_schema, item) for item in nested
                ]
            else:
                body[standalone.field_name] = self._nest_child(child_schema, nested)
        return body

    def _nest_child(self, schema: ResourceSchema, item: Any) -> Any:
        if not isinstance(item, ReferenceExpression):
            return item
        target = item.resolve(self.elements_source)
        if not isinstance(target, Record):
            logger.debug("standalone_child_not_found", elem_id=item.elem_id.full_name)
            return item
        return self._nest_standalone(schema, target.value)

    def _render_url(self, request: DeployRequest, record: Record, body: dict[str, Any]) -> str:
        def substitute(match) -> str:
            param = match.group(1)
            value = self._url_value(request.source_field(param), record, body)
            if not is_primitive(value):
                raise MissingUrlParameterError(param, request.url)
            return str(value)

        return URL_PARAM_PATTERN.sub(substitute, request.url)

    def _url_value(self, source: str, record: Record, body: dict[str, Any]) -> Any:
        if not source.startswith(PARENT_PREFIX):
            return get_path(body, source)

        parents = record.annotations.get(PARENT) or []
        if not parents or not isinstance(parents[0], ReferenceExpression):
            return None
        parent = parents[0].resolve(self.elements_source)
        if not isinstance(parent, Record):
            return None
        return get_path(parent.value, source[len(PARENT_PREFIX):])

    async def deploy_change(self, change: Change, client: BaseAPIClient) -> Any:
        """Render ``change``, send it and return the response body.

        For additions the service id found in the response is written back
        to the change's record.
        """
        wire = self.render(change)
        response = await client.request(wire.method, wire.url, json_data=wire.data)

        record = get_change_data(change)
        logger.info(
            "change_deployed",
            elem_id=record.elem_id.full_name,
            action=change.action,
            method=wire.method,
            url=wire.url,
            status=response.status,
        )

        if isinstance(change, Addition):
            self._write_back_service_id(change, response.data)
        return response.data

    def _write_back_service_id(self, change: Addition, data: Any) -> None:
        schema, request = self.get_request(change)
        if request.deploy_as_field and isinstance(data, dict):
            data = data.get(request.deploy_as_field, data)
        if not isinstance(data, dict):
            return
        service_id = data.get(schema.service_id_field)
        if service_id is not None:
            change.after.value[schema.service_id_field] = service_id
