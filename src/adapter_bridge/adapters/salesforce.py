"""Salesforce adapter definition.

Objects are read through the REST describe API into type records whose
``fields`` carry the field annotations. Reference annotations on those
fields are resolved into references to other object and metadata types.
Deploy goes through the metadata API, which this adapter does not cover.
"""

import asyncio
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from adapter_bridge.adapter import AdapterDefinition
from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import APIError, NetworkError
from adapter_bridge.elements import ElemID, Record
from adapter_bridge.mapping.references import ReferenceResolver
from adapter_bridge.utils.logging import get_logger
from adapter_bridge.validation.response_validator import validate_response

logger = get_logger(__name__)

SALESFORCE = "salesforce"
API_VERSION = "59.0"

CUSTOM_OBJECT = "CustomObject"
SOBJECT_TYPE_NAME = "sobject"
API_NAME_SEPARATOR = "."

# Type annotations
METADATA_TYPE = "metadataType"
API_NAME = "apiName"
LABEL = "label"

# Field annotations
REFERENCE_TO = "referenceTo"
FOREIGN_KEY_DOMAIN = "foreignKeyDomain"
SUMMARIZED_FIELD = "summarizedField"
SUMMARY_FOREIGN_KEY = "summaryForeignKey"
CONTROLLING_FIELD = "controllingField"
FIELD = "field"
VALUE_FIELD = "valueField"

TYPE_REFERENCE_ANNOTATIONS = (REFERENCE_TO, FOREIGN_KEY_DOMAIN)
FIELD_REFERENCE_ANNOTATIONS = (
    SUMMARIZED_FIELD,
    SUMMARY_FOREIGN_KEY,
    CONTROLLING_FIELD,
    FIELD,
    VALUE_FIELD,
)

# Describe keys copied onto field annotations as they are
_DESCRIBE_FIELD_KEYS = ("type", "length", "nillable", "unique", "externalId")

SOBJECTS_URL = f"/services/data/v{API_VERSION}/sobjects"

RESOURCES = {
    SOBJECT_TYPE_NAME: {
        "url": SOBJECTS_URL,
        "data_field": "sobjects",
        "id_fields": ["name"],
        "fields_to_omit": [{"field_name": "urls", "field_type": "map"}],
    },
}


class SObjectDescribe(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    label: str | None = None
    describe_fields: list[dict[str, Any]] = Field(default_factory=list, alias="fields")


def is_metadata_type_or_custom_object(record: Record) -> bool:
    """Object-type records describing a metadata type or a custom object."""
    return record.elem_id.id_type == "type" and METADATA_TYPE in record.annotations


def metadata_type_record(name: str, fields: dict[str, dict[str, Any]] | None = None) -> Record:
    """Type record for a metadata type such as ``ApexClass``."""
    return Record(
        elem_id=ElemID(SALESFORCE, name),
        kind=name,
        natural_key=name,
        annotations={METADATA_TYPE: name, API_NAME: name},
        fields=fields or {},
        path=(SALESFORCE, "Types", name),
    )


def _field_annotations(object_name: str, describe_field: dict[str, Any]) -> dict[str, Any]:
    annotations: dict[str, Any] = {
        API_NAME: f"{object_name}{API_NAME_SEPARATOR}{describe_field['name']}",
        LABEL: describe_field.get("label"),
    }
    for key in _DESCRIBE_FIELD_KEYS:
        if key in describe_field:
            annotations[key] = describe_field[key]

    if describe_field.get("referenceTo"):
        annotations[REFERENCE_TO] = list(describe_field["referenceTo"])
    if describe_field.get("controllerName"):
        annotations[CONTROLLING_FIELD] = (
            f"{object_name}{API_NAME_SEPARATOR}{describe_field['controllerName']}"
        )
    return annotations


def object_record_from_describe(describe: dict[str, Any]) -> Record:
    """Build a custom object type record from an sobject describe response."""
    name = describe["name"]
    return Record(
        elem_id=ElemID(SALESFORCE, name),
        kind=CUSTOM_OBJECT,
        natural_key=name,
        annotations={
            METADATA_TYPE: CUSTOM_OBJECT,
            API_NAME: name,
            LABEL: describe.get("label"),
        },
        fields={
            field["name"]: _field_annotations(name, field)
            for field in describe.get("fields") or []
            if isinstance(field, dict) and field.get("name")
        },
        path=(SALESFORCE, "Objects", name),
    )


async def fetch_object_records(client: BaseAPIClient, records: list[Record]) -> list[Record]:
    """Replace the fetched sobject list entries with described object records.

    An object whose describe call fails, or whose describe body lacks the
    object name, is skipped with a warning.
    """
    sobjects = [record for record in records if record.kind == SOBJECT_TYPE_NAME]
    others = [record for record in records if record.kind != SOBJECT_TYPE_NAME]

    async def describe(sobject: Record) -> Record | None:
        name = sobject.value["name"]
        try:
            response = await client.get_single_page(f"{SOBJECTS_URL}/{name}/describe")
        except (APIError, NetworkError) as e:
            logger.warning("object_describe_failed", object=name, error=str(e))
            return None
        parsed = validate_response(SObjectDescribe, response.data, context=name)
        if parsed is None:
            return None
        return object_record_from_describe(parsed.model_dump(by_alias=True))

    described = await asyncio.gather(*(describe(sobject) for sobject in sobjects))
    objects = [record for record in described if record is not None]

    logger.info("objects_described", requested=len(sobjects), described=len(objects))
    return [*others, *objects]


def create_reference_resolver() -> ReferenceResolver:
    return ReferenceResolver(
        SALESFORCE,
        type_annotations=TYPE_REFERENCE_ANNOTATIONS,
        field_annotations=FIELD_REFERENCE_ANNOTATIONS,
        predicate=is_metadata_type_or_custom_object,
        generic_object_kind=CUSTOM_OBJECT,
        separator=API_NAME_SEPARATOR,
    )


DEFINITION = AdapterDefinition(
    name=SALESFORCE,
    resources=RESOURCES,
    create_reference_resolver=create_reference_resolver,
    fetch_hook=fetch_object_records,
    supports_deploy=False,
)
