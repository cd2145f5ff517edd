"""Jira adapter definition.

Workflow additions need more than the generic deploy: Jira always adds a
CREATE_ISSUES permission validator to the initial transition, and the
created workflow's entity id and transition ids are only available from
a follow-up search request. Transition triggers are attached through a
separate endpoint once those transition ids are known.
"""

import asyncio
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from adapter_bridge.adapter import AdapterDefinition
from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import ConfigurationError, MissingTransitionIdError
from adapter_bridge.elements import (
    Addition,
    Change,
    ChangeError,
    DeployResult,
    Record,
    get_change_data,
)
from adapter_bridge.mapping.deploy import DeployMapper
from adapter_bridge.utils.logging import get_logger
from adapter_bridge.validation.response_validator import validate_response

if TYPE_CHECKING:
    from adapter_bridge.adapter import Adapter

logger = get_logger(__name__)

JIRA = "jira"

WORKFLOW_TYPE_NAME = "Workflow"
FIELD_CONTEXT_TYPE_NAME = "CustomFieldContext"

WORKFLOW_SEARCH_URL = "/rest/api/3/workflow/search"
TRIGGER_CONFIG_URL = "/rest/triggers/1.0/workflow/config"

INITIAL_VALIDATOR = {
    "type": "PermissionValidator",
    "configuration": {"permissionKey": "CREATE_ISSUES"},
}

RESOURCES = {
    WORKFLOW_TYPE_NAME: {
        "url": "/rest/api/3/workflow/search?expand=transitions,statuses",
        "paginate_field": "nextPage",
        "data_field": "values",
        "id_fields": ["name"],
        "service_id_field": "entityId",
        "deploy_requests": {
            "add": {
                "url": "/rest/api/3/workflow",
                "method": "post",
                "fields_to_ignore": ["triggers"],
            },
            "remove": {"url": "/rest/api/3/workflow/{entityId}", "method": "delete"},
        },
    },
    "Board": {
        "url": "/rest/agile/1.0/board",
        "data_field": "values",
        "id_fields": ["name"],
        "fields_to_omit": [{"field_name": "self"}],
        "enum_restrictions": {"type": ["scrum", "kanban", "simple"]},
        "deploy_requests": {
            "add": {"url": "/rest/agile/1.0/board", "method": "post"},
            "remove": {
                "url": "/rest/agile/1.0/board/{boardId}",
                "method": "delete",
                "url_params_to_fields": {"boardId": "id"},
            },
        },
    },
    "Field": {
        "url": "/rest/api/3/field/search?expand=contexts",
        "paginate_field": "nextPage",
        "data_field": "values",
        "id_fields": ["name"],
        "standalone_fields": {"contexts": FIELD_CONTEXT_TYPE_NAME},
        "deploy_requests": {
            "add": {
                "url": "/rest/api/3/field",
                "method": "post",
                "fields_to_ignore": ["contexts"],
            },
            "modify": {
                "url": "/rest/api/3/field/{fieldId}",
                "method": "put",
                "url_params_to_fields": {"fieldId": "id"},
                "fields_to_ignore": ["contexts"],
            },
            "remove": {
                "url": "/rest/api/3/field/{fieldId}",
                "method": "delete",
                "url_params_to_fields": {"fieldId": "id"},
            },
        },
    },
    FIELD_CONTEXT_TYPE_NAME: {
        "id_fields": ["name"],
        "deploy_requests": {
            "add": {
                "url": "/rest/api/3/field/{fieldId}/context",
                "method": "post",
                "url_params_to_fields": {"fieldId": "_parent.id"},
            },
            "modify": {
                "url": "/rest/api/3/field/{fieldId}/context/{contextId}",
                "method": "put",
                "url_params_to_fields": {"fieldId": "_parent.id", "contextId": "id"},
            },
            "remove": {
                "url": "/rest/api/3/field/{fieldId}/context/{contextId}",
                "method": "delete",
                "url_params_to_fields": {"fieldId": "_parent.id", "contextId": "id"},
            },
        },
    },
}


# ============================================
# Fetch hook
# ============================================


async def lift_workflow_ids(client: BaseAPIClient, records: list[Record]) -> list[Record]:
    """Replace the nested ``id: {name, entityId}`` of workflows with a top-level ``entityId``."""
    for record in records:
        if record.kind != WORKFLOW_TYPE_NAME:
            continue
        ids = record.value.get("id")
        if isinstance(ids, dict) and "entityId" in ids:
            record.value["entityId"] = ids["entityId"]
            del record.value["id"]
    return records


# ============================================
# Pre-render transforms
# ============================================


def remove_create_issue_permission_validator(record: Record) -> Record:
    """Drop the last CREATE_ISSUES permission validator of each initial transition.

    Jira adds one on creation; keeping ours would create a duplicate.
    """
    for transition in record.value.get("transitions") or []:
        if not isinstance(transition, dict) or transition.get("type") != "initial":
            continue
        validators = (transition.get("rules") or {}).get("validators")
        if not validators:
            continue
        matches = [i for i, validator in enumerate(validators) if validator == INITIAL_VALIDATOR]
        if matches:
            del validators[matches[-1]]
    return record


def remove_transition_triggers(record: Record) -> Record:
    """Drop transition triggers from the create body; they are deployed afterwards."""
    for transition in record.value.get("transitions") or []:
        if isinstance(transition, dict) and isinstance(transition.get("rules"), dict):
            transition["rules"].pop("triggers", None)
    return record


# ============================================
# Workflow deploy
# ============================================


class WorkflowIds(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    entity_id: str = Field(alias="entityId")


class WorkflowTransition(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str | int
    name: str


class WorkflowSearchValue(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: WorkflowIds
    transitions: list[WorkflowTransition] = Field(default_factory=list)


class WorkflowSearchResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    values: list[WorkflowSearchValue] = Field(min_length=1, max_length=1)


class WorkflowDeployFilter:
    """Deploys workflow additions and fills in their service ids."""

    def __init__(self, deploy_mapper: DeployMapper, client: BaseAPIClient):
        self.deploy_mapper = deploy_mapper
        self.client = client

    @staticmethod
    def is_relevant(change: Change) -> bool:
        return isinstance(change, Addition) and change.after.kind == WORKFLOW_TYPE_NAME

    async def get_workflow_from_service(self, workflow_name: str) -> WorkflowSearchValue | None:
        response = await self.client.get_single_page(
            WORKFLOW_SEARCH_URL,
            params={"expand": "transitions", "workflowName": workflow_name},
        )
        parsed = validate_response(WorkflowSearchResponse, response.data, context=workflow_name)
        return parsed.values[0] if parsed is not None else None

    async def deploy_triggers(self, value: dict[str, Any]) -> None:
        """Attach each transition's triggers by the transition's service id."""
        workflow_name = value["name"]
        transition_ids = value.get("transitionIds") or {}
        targets = []
        for transition in value.get("transitions") or []:
            triggers = (transition.get("rules") or {}).get("triggers") or []
            if not triggers:
                continue
            transition_id = transition_ids.get(transition.get("name"))
            if transition_id is None:
                raise MissingTransitionIdError(workflow_name, transition.get("name"))
            targets.extend((transition_id, trigger) for trigger in triggers)

        await asyncio.gather(
            *(
                self.client.request(
                    "PUT",
                    TRIGGER_CONFIG_URL,
                    params={"workflowName": workflow_name, "actionId": transition_id},
                    json_data={
                        "definitionConfig": self.deploy_mapper.restore(
                            trigger.get("configuration") or {}
                        ),
                        "triggerDefinitionId": trigger.get("key"),
                    },
                )
                for transition_id, trigger in targets
            )
        )

    async def deploy_workflow(self, change: Addition) -> None:
        await self.deploy_mapper.deploy_change(change, self.client)

        value = change.after.value
        workflow = await self.get_workflow_from_service(value["name"])
        if workflow is not None:
            value["entityId"] = workflow.id.entity_id
            value["transitionIds"] = {
                transition.name: transition.id for transition in workflow.transitions
            }

        await self.deploy_triggers(value)

    async def deploy(self, changes: Sequence[Change]) -> tuple[DeployResult, list[Change]]:
        relevant = [change for change in changes if self.is_relevant(change)]
        leftovers = [change for change in changes if not self.is_relevant(change)]
        result = DeployResult()

        outcomes = await asyncio.gather(
            *(self.deploy_workflow(change) for change in relevant), return_exceptions=True
        )
        for change, outcome in zip(relevant, outcomes):
            if outcome is None:
                result.applied_changes.append(change)
                continue
            if isinstance(outcome, ConfigurationError) or not isinstance(outcome, Exception):
                raise outcome

            elem_id = get_change_data(change).elem_id
            logger.error("workflow_deploy_failed", elem_id=elem_id.full_name, error=str(outcome))
            result.failed_changes.append(change)
            result.errors.append(ChangeError.from_exception(elem_id, outcome))

        return result, leftovers


def create_filters(adapter: "Adapter") -> list[Any]:
    return [WorkflowDeployFilter(adapter.deploy_mapper, adapter.client)]


DEFINITION = AdapterDefinition(
    name=JIRA,
    resources=RESOURCES,
    transforms={
        WORKFLOW_TYPE_NAME: [remove_create_issue_permission_validator, remove_transition_triggers]
    },
    create_filters=create_filters,
    fetch_hook=lift_workflow_ids,
)
