"""Tests for deploy mapping."""

import pytest

from adapter_bridge.client.exceptions import MissingUrlParameterError, UnsupportedOperationError
from adapter_bridge.elements import (
    Addition,
    ElemID,
    ElementsSource,
    Modification,
    Record,
    ReferenceExpression,
    Removal,
)
from adapter_bridge.mapping.deploy import DeployMapper, WireRequest
from adapter_bridge.mapping.fetch import FetchMapper
from adapter_bridge.resources import load_registry
from conftest import RecordingClient

TICKET_FIELD = {
    "id": 5,
    "title": "Priority",
    "type": "tagger",
    "custom_field_options": [
        {"id": 101, "name": "Low", "value": "low"},
        {"id": 102, "name": "High", "value": "high"},
    ],
}


@pytest.fixture
def fetched(zendesk_registry):
    return FetchMapper("zendesk", zendesk_registry).map(
        "ticket_field", {"ticket_fields": [TICKET_FIELD]}
    )


@pytest.fixture
def deploy_mapper(zendesk_registry):
    return DeployMapper(zendesk_registry)


def _automation(value):
    return Record(ElemID.instance("zendesk", "automation", "a"), value=value)


class TestRender:
    """Test rendering changes into wire requests."""

    def test_modification(self, deploy_mapper):
        wire = deploy_mapper.render(Modification(_automation({"id": 9}), _automation({"id": 9, "title": "A"})))

        assert wire == WireRequest(
            method="PUT",
            url="/api/v2/automations/9",
            data={"automation": {"id": 9, "title": "A"}},
        )

    def test_addition_without_id(self, deploy_mapper):
        wire = deploy_mapper.render(Addition(_automation({"title": "A"})))

        assert wire.method == "POST"
        assert wire.url == "/api/v2/automations"

    def test_removal_has_no_body(self, deploy_mapper):
        wire = deploy_mapper.render(Removal(_automation({"id": 9, "title": "A"})))

        assert wire == WireRequest(method="DELETE", url="/api/v2/automations/9")

    def test_missing_url_parameter(self, deploy_mapper):
        with pytest.raises(MissingUrlParameterError, match="automationId"):
            deploy_mapper.render(Removal(_automation({"title": "A"})))

    def test_non_scalar_url_parameter(self, deploy_mapper):
        with pytest.raises(MissingUrlParameterError):
            deploy_mapper.render(Removal(_automation({"id": {"nested": 1}})))

    def test_unsupported_operation(self, deploy_mapper):
        record = Record(ElemID.instance("zendesk", "brand", "b"))

        with pytest.raises(UnsupportedOperationError):
            deploy_mapper.render(Addition(record))

    def test_fields_to_ignore(self):
        registry = load_registry(
            {"group": {"deploy_requests": {"add": {"url": "/g", "method": "post", "fields_to_ignore": ["id"]}}}}
        )
        record = Record(ElemID.instance("x", "group", "g"), value={"id": 1, "name": "g"})

        assert DeployMapper(registry).render(Addition(record)).data == {"name": "g"}

    def test_references_restored(self, deploy_mapper):
        target = Record(ElemID.instance("zendesk", "group", "Support"), natural_key="Support")
        record = _automation({"id": 9, "group": ReferenceExpression(target.elem_id, target)})

        wire = deploy_mapper.render(Modification(record, record))

        assert wire.data == {"automation": {"id": 9, "group": "Support"}}
        # The change's record keeps its reference
        assert isinstance(record.value["group"], ReferenceExpression)

    def test_reference_resolved_through_elements_source(self, zendesk_registry):
        target = Record(ElemID.instance("zendesk", "group", "Support"), natural_key="Support")
        record = _automation({"id": 9, "group": ReferenceExpression(target.elem_id)})
        mapper = DeployMapper(zendesk_registry, elements_source=ElementsSource([target]))

        assert mapper.render(Addition(record)).data["automation"]["group"] == "Support"

    def test_transforms_run_on_clone(self, zendesk_registry):
        def drop_title(record):
            record.value.pop("title")
            return record

        mapper = DeployMapper(zendesk_registry, transforms={"automation": [drop_title]})
        record = _automation({"id": 9, "title": "A"})

        wire = mapper.render(Modification(record, record))

        assert wire.data == {"automation": {"id": 9}}
        assert record.value["title"] == "A"


class TestStandaloneDeploy:
    """Test re-nesting and parent-sourced URLs."""

    def test_round_trip(self, fetched, deploy_mapper, zendesk_registry):
        parent = fetched[0]

        wire = deploy_mapper.render(Modification(parent, parent))
        body = wire.data["ticket_field"]
        refetched = FetchMapper("zendesk", zendesk_registry).map(
            "ticket_field", {"ticket_fields": [body]}
        )

        assert body == TICKET_FIELD
        assert wire.url == "/api/v2/ticket_fields/5"
        assert refetched == fetched

    def test_child_url_from_parent(self, fetched, deploy_mapper):
        child = fetched[1]

        wire = deploy_mapper.render(Addition(child))

        assert wire.url == "/api/v2/ticket_fields/5/options"
        assert wire.data == {"custom_field_option": {"id": 101, "name": "Low", "value": "low"}}

    def test_child_removal(self, fetched, deploy_mapper):
        wire = deploy_mapper.render(Removal(fetched[2]))
        assert wire == WireRequest(method="DELETE", url="/api/v2/ticket_fields/5/options/102")

    def test_child_without_parent(self, deploy_mapper):
        orphan = Record(
            ElemID.instance("zendesk", "ticket_field__custom_field_options", "x"),
            value={"value": "x"},
        )

        with pytest.raises(MissingUrlParameterError, match="ticket_field_id"):
            deploy_mapper.render(Addition(orphan))


class TestDeployChange:
    """Test sending rendered changes."""

    async def test_addition_writes_back_service_id(self, deploy_mapper):
        client = RecordingClient(
            responses={("POST", "/api/v2/automations"): {"automation": {"id": 77, "title": "A"}}}
        )
        change = Addition(_automation({"title": "A"}))

        await deploy_mapper.deploy_change(change, client)

        assert client.requests == [("POST", "/api/v2/automations", {"automation": {"title": "A"}})]
        assert change.after.value["id"] == 77

    async def test_modification_does_not_write_back(self, deploy_mapper):
        client = RecordingClient(
            responses={("PUT", "/api/v2/automations/9"): {"automation": {"id": 10}}}
        )
        record = _automation({"id": 9})

        await deploy_mapper.deploy_change(Modification(record, record), client)

        assert record.value["id"] == 9
