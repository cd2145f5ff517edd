"""Zendesk Support adapter definition.

Automations are ordered server-side; their order is fetched as a hidden
``automation_order`` record and deployed through ``update_many``.
"""

from typing import TYPE_CHECKING

from adapter_bridge.adapter import AdapterDefinition
from adapter_bridge.mapping.order import OrderedCollectionFilter, OrderSpec

if TYPE_CHECKING:
    from adapter_bridge.adapter import Adapter

ZENDESK = "zendesk"

AUTOMATION_TYPE_NAME = "automation"
TICKET_FIELD_OPTION_TYPE_NAME = "ticket_field__custom_field_options"

AUTOMATION_ORDER = OrderSpec(
    kind=AUTOMATION_TYPE_NAME,
    envelope_field="automations",
    order_field="automations",
    id_field="id",
    position_field="position",
    secondary_sort_field="title",
)

_TIMESTAMPS = [{"field_name": "created_at"}, {"field_name": "updated_at"}]


def _crud(collection: str, envelope: str, id_param: str) -> dict:
    item_url = f"/api/v2/{collection}/{{{id_param}}}"
    return {
        "add": {"url": f"/api/v2/{collection}", "method": "post", "deploy_as_field": envelope},
        "modify": {
            "url": item_url,
            "method": "put",
            "deploy_as_field": envelope,
            "url_params_to_fields": {id_param: "id"},
        },
        "remove": {"url": item_url, "method": "delete", "url_params_to_fields": {id_param: "id"}},
    }


RESOURCES = {
    AUTOMATION_TYPE_NAME: {
        "url": "/api/v2/automations",
        "paginate_field": "next_page",
        "data_field": "automations",
        "id_fields": ["title"],
        "fields_to_omit": _TIMESTAMPS,
        "deploy_requests": _crud("automations", "automation", "automationId"),
    },
    "trigger": {
        "url": "/api/v2/triggers",
        "paginate_field": "next_page",
        "data_field": "triggers",
        "id_fields": ["title"],
        "fields_to_omit": _TIMESTAMPS,
        "deploy_requests": _crud("triggers", "trigger", "triggerId"),
    },
    "macro": {
        "url": "/api/v2/macros",
        "paginate_field": "next_page",
        "data_field": "macros",
        "id_fields": ["title"],
        "fields_to_omit": [*_TIMESTAMPS, {"field_name": "usage_7d", "field_type": "number"}],
        "deploy_requests": _crud("macros", "macro", "macroId"),
    },
    "ticket_field": {
        "url": "/api/v2/ticket_fields",
        "paginate_field": "next_page",
        "data_field": "ticket_fields",
        "id_fields": ["title", "type"],
        "file_name_fields": ["title"],
        "fields_to_omit": _TIMESTAMPS,
        "standalone_fields": {"custom_field_options": TICKET_FIELD_OPTION_TYPE_NAME},
        "enum_restrictions": {
            "type": [
                "checkbox",
                "date",
                "decimal",
                "integer",
                "lookup",
                "multiselect",
                "partialcreditcard",
                "regexp",
                "tagger",
                "text",
                "textarea",
            ],
        },
        "deploy_requests": _crud("ticket_fields", "ticket_field", "ticketFieldId"),
    },
    TICKET_FIELD_OPTION_TYPE_NAME: {
        "id_fields": ["value"],
        "deploy_requests": {
            "add": {
                "url": "/api/v2/ticket_fields/{ticket_field_id}/options",
                "method": "post",
                "deploy_as_field": "custom_field_option",
                "url_params_to_fields": {"ticket_field_id": "_parent.id"},
            },
            "modify": {
                "url": "/api/v2/ticket_fields/{ticket_field_id}/options",
                "method": "post",
                "deploy_as_field": "custom_field_option",
                "url_params_to_fields": {"ticket_field_id": "_parent.id"},
            },
            "remove": {
                "url": "/api/v2/ticket_fields/{ticket_field_id}/options/{option_id}",
                "method": "delete",
                "url_params_to_fields": {"ticket_field_id": "_parent.id", "option_id": "id"},
            },
        },
    },
    AUTOMATION_ORDER.order_kind: {
        "deploy_requests": {
            "modify": {"url": "/api/v2/automations/update_many", "method": "put"},
        },
    },
}


def create_filters(adapter: "Adapter") -> list:
    return [
        OrderedCollectionFilter(
            adapter.name,
            AUTOMATION_ORDER,
            adapter.deploy_mapper,
            adapter.client,
            hide_types=adapter.config.fetch.hide_types,
        ),
    ]


DEFINITION = AdapterDefinition(
    name=ZENDESK,
    resources=RESOURCES,
    create_filters=create_filters,
)
