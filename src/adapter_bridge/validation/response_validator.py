"""Response-shape validation for service responses.

Responses are checked before they reach the fetch mapper so that a
malformed page costs one resource kind its results instead of crashing
the whole fetch.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from adapter_bridge.client.exceptions import MalformedServiceResponseError
from adapter_bridge.resources import ResourceSchema
from adapter_bridge.utils.logging import get_logger
from adapter_bridge.utils.values import get_path

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_ENVELOPE_ADAPTER: TypeAdapter = TypeAdapter(dict[str, Any] | list[dict[str, Any]])


def validate_page(schema: ResourceSchema, payload: Any) -> Any:
    """Check that a listing page holds a mapping or a list of mappings.

    Args:
        schema: Schema of the kind being fetched
        payload: Decoded page body

    Returns:
        The data envelope found at ``schema.data_field``

    Raises:
        MalformedServiceResponseError: If the envelope is missing or has the
            wrong shape
    """
    data = get_path(payload, schema.data_field)
    if data is None:
        raise MalformedServiceResponseError(
            schema.kind, f"field '{schema.data_field}' not found in response"
        )

    try:
        return _ENVELOPE_ADAPTER.validate_python(data)
    except ValidationError as e:
        raise MalformedServiceResponseError(schema.kind, str(e)) from e


def validate_response(model: type[ModelT], payload: Any, context: str) -> ModelT | None:
    """Validate a response against a pydantic model.

    Returns:
        The parsed model, or None (with a warning logged) if invalid
    """
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        logger.warning(
            "unexpected_service_response",
            context=context,
            error_count=e.error_count(),
            errors=str(e),
        )
        return None
