"""Tests for the adapter pipeline and the service adapter definitions."""

import asyncio
import copy

import pytest

from adapter_bridge.adapter import Adapter
from adapter_bridge.adapters import get_adapter, jira, salesforce, zendesk
from adapter_bridge.client.exceptions import ConfigurationError, NotFoundError, ServerError
from adapter_bridge.elements import HIDDEN, Addition, ElemID, Modification, Record, ReferenceExpression, Removal
from conftest import RecordingClient, make_config

AUTOMATIONS = {
    "automations": [
        {"id": 11, "title": "a", "position": 1, "created_at": "2024-01-01"},
        {"id": 22, "title": "b", "position": 2, "created_at": "2024-01-01"},
        {"id": 33, "title": "c", "position": 3, "created_at": "2024-01-01"},
    ],
    "next_page": None,
}


class TestGetAdapter:
    def test_known(self):
        assert get_adapter("Zendesk") is zendesk.DEFINITION

    def test_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown adapter"):
            get_adapter("hubspot")


class TestZendeskAdapter:
    """Test fetch and deploy through the Zendesk definition."""

    async def test_fetch_adds_hidden_order(self):
        client = RecordingClient(pages={"/api/v2/automations": [AUTOMATIONS]})
        adapter = Adapter(zendesk.DEFINITION, make_config("zendesk"), client)

        result = await adapter.fetch()

        kinds = [record.kind for record in result.records]
        assert kinds == ["automation"] * 3 + ["automation_order"]
        assert all("created_at" not in record.value for record in result.records)
        order = result.records[-1]
        assert order.annotations[HIDDEN] is True
        assert result.failed_kinds == {}

    async def test_include_types(self):
        client = RecordingClient(pages={"/api/v2/automations": [AUTOMATIONS]})
        config = make_config("zendesk", fetch={"include_types": ["trigger"]})

        result = await Adapter(zendesk.DEFINITION, config, client).fetch()

        assert result.records == []
        assert [endpoint for _, endpoint, _ in client.requests] == ["/api/v2/triggers"]

    async def test_reorder_deploy(self):
        client = RecordingClient(pages={"/api/v2/automations": [AUTOMATIONS]})
        adapter = Adapter(zendesk.DEFINITION, make_config("zendesk"), client)
        records = (await adapter.fetch()).records
        before = records[-1]
        after = before.clone()
        refs = after.value["automations"]
        after.value["automations"] = [refs[1], refs[2], refs[0]]

        outcome = await adapter.deploy([Modification(before, after)])

        assert outcome.applied_changes and not outcome.failed_changes
        assert client.requests[-1] == (
            "PUT",
            "/api/v2/automations/update_many",
            {
                "automations": [
                    {"id": 22, "position": 1},
                    {"id": 33, "position": 2},
                    {"id": 11, "position": 3},
                ]
            },
        )

    async def test_unsupported_change_blocked(self):
        client = RecordingClient()
        adapter = Adapter(zendesk.DEFINITION, make_config("zendesk"), client)
        change = Addition(Record(ElemID.instance("zendesk", "brand", "b")))

        outcome = await adapter.deploy([change])

        assert outcome.failed_changes == [change]
        assert outcome.errors[0].message == "add operation is not supported for brand"
        assert client.requests == []

    async def test_ticket_field_option_addition(self):
        field = {
            "id": 5,
            "title": "Priority",
            "type": "tagger",
            "custom_field_options": [{"id": 1, "name": "Low", "value": "low"}],
        }
        client = RecordingClient(
            pages={"/api/v2/ticket_fields": [{"ticket_fields": [field]}]},
            responses={
                ("POST", "/api/v2/ticket_fields/5/options"): {
                    "custom_field_option": {"id": 900, "value": "mid"}
                }
            },
        )
        adapter = Adapter(
            zendesk.DEFINITION,
            make_config("zendesk", fetch={"include_types": ["ticket_field"]}),
            client,
        )
        parent, child = (await adapter.fetch()).records
        new_option = child.clone()
        new_option.elem_id = ElemID.instance("zendesk", child.kind, "Priority_tagger__mid")
        new_option.value = {"name": "Mid", "value": "mid"}
        change = Addition(new_option)

        outcome = await adapter.deploy([change])

        assert outcome.applied_changes == [change]
        assert client.requests[-1] == (
            "POST",
            "/api/v2/ticket_fields/5/options",
            {"custom_field_option": {"name": "Mid", "value": "mid"}},
        )
        assert new_option.value["id"] == 900


class TestJiraAdapter:
    """Test the Jira workflow flow."""

    WORKFLOW = {
        "name": "Software",
        "triggers": [{"id": "t"}],
        "transitions": [
            {
                "name": "Create",
                "type": "initial",
                "rules": {
                    "validators": [
                        {"type": "FieldRequired"},
                        dict(jira.INITIAL_VALIDATOR),
                    ]
                },
            }
        ],
    }

    async def test_lift_workflow_ids(self):
        record = Record(
            ElemID.instance("jira", "Workflow", "w"),
            value={"id": {"name": "w", "entityId": "e-1"}, "name": "w"},
        )

        [lifted] = await jira.lift_workflow_ids(RecordingClient(), [record])

        assert lifted.value == {"entityId": "e-1", "name": "w"}

    def test_remove_create_issue_permission_validator(self):
        record = Record(ElemID.instance("jira", "Workflow", "w"), value=self._workflow())

        jira.remove_create_issue_permission_validator(record)

        validators = record.value["transitions"][0]["rules"]["validators"]
        assert validators == [{"type": "FieldRequired"}]

    def _workflow(self):
        return copy.deepcopy(self.WORKFLOW)

    async def test_workflow_addition(self):
        client = RecordingClient(
            responses={
                ("GET", jira.WORKFLOW_SEARCH_URL): {
                    "values": [
                        {
                            "id": {"name": "Software", "entityId": "abc-123"},
                            "transitions": [{"id": "1", "name": "Create"}],
                        }
                    ]
                }
            }
        )
        adapter = Adapter(jira.DEFINITION, make_config("jira"), client)
        record = Record(ElemID.instance("jira", "Workflow", "Software"), value=self._workflow())
        change = Addition(record)

        outcome = await adapter.deploy([change])

        assert outcome.applied_changes == [change]
        method, url, body = client.requests[0]
        assert (method, url) == ("POST", "/rest/api/3/workflow")
        assert "triggers" not in body
        assert body["transitions"][0]["rules"]["validators"] == [{"type": "FieldRequired"}]
        # The change's record is not touched by the transform
        assert len(record.value["transitions"][0]["rules"]["validators"]) == 2
        assert client.params[1] == {"expand": "transitions", "workflowName": "Software"}
        assert record.value["entityId"] == "abc-123"
        assert record.value["transitionIds"] == {"Create": "1"}

    def _workflow_with_trigger(self):
        workflow = self._workflow()
        workflow["transitions"][0]["rules"]["triggers"] = [
            {"key": "branch-created-trigger", "configuration": {"scope": "all"}}
        ]
        return workflow

    async def test_transition_triggers_deployed_after_create(self):
        client = RecordingClient(
            responses={
                ("GET", jira.WORKFLOW_SEARCH_URL): {
                    "values": [
                        {
                            "id": {"name": "Software", "entityId": "abc-123"},
                            "transitions": [{"id": "1", "name": "Create"}],
                        }
                    ]
                }
            }
        )
        adapter = Adapter(jira.DEFINITION, make_config("jira"), client)
        record = Record(
            ElemID.instance("jira", "Workflow", "Software"), value=self._workflow_with_trigger()
        )

        outcome = await adapter.deploy([Addition(record)])

        assert len(outcome.applied_changes) == 1
        _, _, create_body = client.requests[0]
        assert "triggers" not in create_body["transitions"][0]["rules"]
        assert client.requests[-1] == (
            "PUT",
            jira.TRIGGER_CONFIG_URL,
            {"definitionConfig": {"scope": "all"}, "triggerDefinitionId": "branch-created-trigger"},
        )
        assert client.params[-1] == {"workflowName": "Software", "actionId": "1"}

    async def test_trigger_without_transition_id_fails_change(self):
        client = RecordingClient(responses={("GET", jira.WORKFLOW_SEARCH_URL): {"values": []}})
        adapter = Adapter(jira.DEFINITION, make_config("jira"), client)
        record = Record(
            ElemID.instance("jira", "Workflow", "Software"), value=self._workflow_with_trigger()
        )

        outcome = await adapter.deploy([Addition(record)])

        assert len(outcome.failed_changes) == 1
        assert "Create" in outcome.errors[0].message
        assert all(method != "PUT" for method, _, _ in client.requests)

    async def test_workflow_search_unexpected_shape(self):
        client = RecordingClient(responses={("GET", jira.WORKFLOW_SEARCH_URL): {"values": []}})
        adapter = Adapter(jira.DEFINITION, make_config("jira"), client)
        record = Record(ElemID.instance("jira", "Workflow", "Software"), value=self._workflow())

        outcome = await adapter.deploy([Addition(record)])

        assert len(outcome.applied_changes) == 1
        assert "entityId" not in record.value

    async def test_workflow_failure_isolated(self):
        client = RecordingClient(
            responses={("POST", "/rest/api/3/workflow"): ServerError("Server error", status_code=500)}
        )
        adapter = Adapter(jira.DEFINITION, make_config("jira"), client)
        record = Record(ElemID.instance("jira", "Workflow", "Software"), value=self._workflow())
        removal = Removal(
            Record(ElemID.instance("jira", "Workflow", "Old"), value={"name": "Old", "entityId": "e-9"})
        )

        outcome = await adapter.deploy([Addition(record), removal])

        assert len(outcome.failed_changes) == 1
        assert outcome.applied_changes == [removal]
        assert client.requests[-1] == ("DELETE", "/rest/api/3/workflow/e-9", None)

    async def test_field_context_url_from_parent(self):
        field = {
            "id": "customfield_10000",
            "name": "Team",
            "contexts": [{"id": "10100", "name": "Default"}],
        }
        client = RecordingClient(
            pages={"/rest/api/3/field/search?expand=contexts": [{"values": [field]}]}
        )
        adapter = Adapter(
            jira.DEFINITION, make_config("jira", fetch={"include_types": ["Field"]}), client
        )
        parent, context = (await adapter.fetch()).records

        outcome = await adapter.deploy([Removal(context)])

        assert outcome.applied_changes
        assert client.requests[-1] == (
            "DELETE",
            "/rest/api/3/field/customfield_10000/context/10100",
            None,
        )


class TestSalesforceAdapter:
    """Test the read-only Salesforce flow."""

    ACCOUNT = {
        "name": "Account",
        "label": "Account",
        "fields": [
            {"name": "OwnerId", "type": "reference", "referenceTo": ["User"]},
            {"name": "Industry", "type": "picklist"},
            {"name": "Sub__c", "type": "picklist", "controllerName": "Industry"},
            {"name": "Vendor__c", "type": "reference", "referenceTo": ["Vendor__c"]},
        ],
    }

    def _client(self, extra_responses=None):
        return RecordingClient(
            pages={
                salesforce.SOBJECTS_URL: [
                    {
                        "sobjects": [
                            {"name": "Account", "urls": {"describe": "/x"}},
                            {"name": "User", "urls": {"describe": "/y"}},
                        ]
                    }
                ]
            },
            responses={
                ("GET", f"{salesforce.SOBJECTS_URL}/Account/describe"): self.ACCOUNT,
                ("GET", f"{salesforce.SOBJECTS_URL}/User/describe"): {"name": "User", "fields": []},
                **(extra_responses or {}),
            },
        )

    async def test_fetch_resolves_references(self):
        adapter = Adapter(salesforce.DEFINITION, make_config("salesforce"), self._client())

        result = await adapter.fetch()

        account, user = result.records
        assert account.elem_id == ElemID("salesforce", "Account")
        assert account.fields["OwnerId"]["referenceTo"] == [ReferenceExpression(user.elem_id)]
        assert account.fields["Sub__c"]["controllingField"] == ReferenceExpression(
            ElemID("salesforce", "Account", "field", ("Industry",))
        )
        # Vendor__c is not among the fetched objects
        assert account.fields["Vendor__c"]["referenceTo"] == ["Vendor__c"]

    async def test_reference_universe(self):
        adapter = Adapter(salesforce.DEFINITION, make_config("salesforce"), self._client())
        vendor = salesforce.object_record_from_describe({"name": "Vendor__c"})

        result = await adapter.fetch(reference_universe=[vendor])

        account = result.records[0]
        assert account.fields["Vendor__c"]["referenceTo"] == [ReferenceExpression(vendor.elem_id)]
        assert vendor not in result.records

    async def test_describe_failure_skips_object(self):
        describe_user = ("GET", f"{salesforce.SOBJECTS_URL}/User/describe")
        client = self._client({describe_user: NotFoundError("Resource not found", status_code=404)})
        adapter = Adapter(salesforce.DEFINITION, make_config("salesforce"), client)

        result = await adapter.fetch()

        assert [record.name for record in result.records] == ["Account"]
        assert result.records[0].fields["OwnerId"]["referenceTo"] == ["User"]

    async def test_describe_without_name_skips_object(self):
        describe_user = ("GET", f"{salesforce.SOBJECTS_URL}/User/describe")
        client = self._client({describe_user: {"error": "oops"}})
        adapter = Adapter(salesforce.DEFINITION, make_config("salesforce"), client)

        result = await adapter.fetch()

        assert [record.name for record in result.records] == ["Account"]

    async def test_deploy_not_supported(self):
        client = self._client()
        adapter = Adapter(salesforce.DEFINITION, make_config("salesforce"), client)
        changes = [
            Addition(salesforce.metadata_type_record("ApexClass")),
            Removal(salesforce.object_record_from_describe({"name": "Vendor__c"})),
        ]

        outcome = await adapter.deploy(changes)

        assert outcome.failed_changes == changes
        assert [error.message for error in outcome.errors] == [
            "Deploy is not supported in adapter salesforce."
        ] * 2
        assert client.requests == []


async def test_cancel_event_passed_to_coordinator():
    cancel_event = asyncio.Event()
    cancel_event.set()
    client = RecordingClient()
    adapter = Adapter(zendesk.DEFINITION, make_config("zendesk"), client, cancel_event=cancel_event)
    change = Removal(Record(ElemID.instance("zendesk", "macro", "m"), value={"id": 1}))

    outcome = await adapter.deploy([change])

    assert outcome.failed_changes == [change]
    assert client.requests == []
