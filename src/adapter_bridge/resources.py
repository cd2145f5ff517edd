"""Resource schema definitions - the declarative side of every adapter.

Each resource kind is described by a ``ResourceSchema``: how to list it,
where the data sits in the response, which fields identify it, which
fields to drop, which nested fields become records of their own, and how
to deploy additions, modifications and removals back to the service.

Schemas are loaded once when an adapter is created and are read-only
afterwards. Loading validates every deploy template and fails fast with
``ConfigurationError``.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from adapter_bridge.client.exceptions import ConfigurationError
from adapter_bridge.elements import ACTIONS
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)

HTTP_METHODS = ("get", "post", "put", "patch", "delete")

FIELD_TYPES = ("string", "number", "boolean", "list", "map")

URL_PARAM_PATTERN = re.compile(r"\{([A-Za-z_][A-Za-z0-9_.]*)\}")


class ResourceNotFound(KeyError):
    """Raised by ``ResourceRegistry.lookup`` for an unknown kind."""


@dataclass(frozen=True)
class FieldToOmit:
    """A field stripped from fetched records, optionally only for one value type."""

    field_name: str
    field_type: str | None = None


@dataclass(frozen=True)
class StandaloneField:
    """A nested field promoted to independent records of ``kind``."""

    field_name: str
    kind: str


@dataclass(frozen=True)
class DeployRequest:
    """Request template for one deploy action."""

    url: str
    method: str
    deploy_as_field: str | None = None
    url_params_to_fields: Mapping[str, str] = field(default_factory=dict)
    fields_to_ignore: tuple[str, ...] = ()

    @property
    def url_params(self) -> list[str]:
        return URL_PARAM_PATTERN.findall(self.url)

    def source_field(self, param: str) -> str:
        return self.url_params_to_fields.get(param, param)


@dataclass(frozen=True)
class ResourceSchema:
    """Declarative rules for one resource kind."""

    kind: str
    url: str | None = None
    paginate_field: str | None = None
    data_field: str | None = None
    id_fields: tuple[str, ...] = ("name",)
    file_name_fields: tuple[str, ...] = ()
    fields_to_omit: tuple[FieldToOmit, ...] = ()
    standalone_fields: tuple[StandaloneField, ...] = ()
    enum_restrictions: Mapping[str, tuple[Any, ...]] = field(default_factory=dict)
    service_id_field: str = "id"
    deploy_requests: Mapping[str, DeployRequest] = field(default_factory=dict)

    def standalone_kind(self, field_name: str) -> str | None:
        for standalone in self.standalone_fields:
            if standalone.field_name == field_name:
                return standalone.kind
        return None

    def get_deploy_request(self, action: str) -> DeployRequest | None:
        return self.deploy_requests.get(action)


class ResourceRegistry:
    """Read-only lookup of resource schemas by kind."""

    def __init__(self, schemas: Iterable[ResourceSchema]):
        self._schemas: dict[str, ResourceSchema] = {}
        for schema in schemas:
            if schema.kind in self._schemas:
                raise ConfigurationError(f"Duplicate resource definition for '{schema.kind}'")
            self._schemas[schema.kind] = schema
        self._validate()

    def _validate(self) -> None:
        """Fail fast on templates that can never render."""
        for schema in self._schemas.values():
            declared = set(schema.id_fields) | {schema.service_id_field}

            for standalone in schema.standalone_fields:
                if standalone.kind not in self._schemas:
                    raise ConfigurationError(
                        f"{schema.kind}.{standalone.field_name} refers to unknown kind "
                        f"'{standalone.kind}'"
                    )

            for action, request in schema.deploy_requests.items():
                if action not in ACTIONS:
                    raise ConfigurationError(
                        f"{schema.kind}: unknown deploy action '{action}'"
                    )
                if request.method.lower() not in HTTP_METHODS:
                    raise ConfigurationError(
                        f"{schema.kind}.{action}: unsupported HTTP method '{request.method}'"
                    )
                for param in request.url_params:
                    if param not in request.url_params_to_fields and param not in declared:
                        raise ConfigurationError(
                            f"{schema.kind}.{action}: URL placeholder '{{{param}}}' in "
                            f"'{request.url}' has no declared source field"
                        )

    def lookup(self, kind: str) -> ResourceSchema:
        """Get the schema for a kind.

        Raises:
            ResourceNotFound: If no schema is registered for the kind
        """
        try:
            return self._schemas[kind]
        except KeyError:
            raise ResourceNotFound(kind) from None

    def get(self, kind: str) -> ResourceSchema | None:
        return self._schemas.get(kind)

    def has_deploy_request(self, kind: str, action: str) -> bool:
        schema = self._schemas.get(kind)
        return schema is not None and action in schema.deploy_requests

    def kinds(self) -> list[str]:
        return list(self._schemas)

    def fetchable_kinds(self) -> list[str]:
        """Kinds with their own listing endpoint (standalone-only kinds have none)."""
        return [kind for kind, schema in self._schemas.items() if schema.url]

    def __contains__(self, kind: object) -> bool:
        return kind in self._schemas

    def __len__(self) -> int:
        return len(self._schemas)


# ============================================
# Loading from definition tables
# ============================================


def _parse_deploy_request(kind: str, action: str, data: Mapping[str, Any]) -> DeployRequest:
    try:
        return DeployRequest(
            url=data["url"],
            method=data["method"],
            deploy_as_field=data.get("deploy_as_field"),
            url_params_to_fields=dict(data.get("url_params_to_fields") or {}),
            fields_to_ignore=tuple(data.get("fields_to_ignore") or ()),
        )
    except KeyError as e:
        raise ConfigurationError(f"{kind}.{action}: missing required key {e}") from e


def parse_schema(kind: str, data: Mapping[str, Any]) -> ResourceSchema:
    """Build one ``ResourceSchema`` from its definition-table entry."""
    fields_to_omit = []
    for entry in data.get("fields_to_omit") or ():
        if isinstance(entry, str):
            fields_to_omit.append(FieldToOmit(entry))
            continue
        field_type = entry.get("field_type")
        if field_type is not None and field_type not in FIELD_TYPES:
            raise ConfigurationError(f"{kind}: unknown field type '{field_type}' to omit")
        fields_to_omit.append(FieldToOmit(entry["field_name"], field_type))

    standalone_fields = tuple(
        StandaloneField(name, nested_kind)
        for name, nested_kind in (data.get("standalone_fields") or {}).items()
    )

    return ResourceSchema(
        kind=kind,
        url=data.get("url"),
        paginate_field=data.get("paginate_field"),
        data_field=data.get("data_field"),
        id_fields=tuple(data.get("id_fields") or ("name",)),
        file_name_fields=tuple(data.get("file_name_fields") or ()),
        fields_to_omit=tuple(fields_to_omit),
        standalone_fields=standalone_fields,
        enum_restrictions={
            name: tuple(values)
            for name, values in (data.get("enum_restrictions") or {}).items()
        },
        service_id_field=data.get("service_id_field", "id"),
        deploy_requests={
            action: _parse_deploy_request(kind, action, request)
            for action, request in (data.get("deploy_requests") or {}).items()
        },
    )


def load_registry(
    definitions: Mapping[str, Mapping[str, Any]],
    overrides: Mapping[str, Mapping[str, Any]] | None = None,
) -> ResourceRegistry:
    """Build a registry from definition tables.

    Args:
        definitions: Kind -> definition entry
        overrides: Optional entries replacing (per top-level key) the
            matching definition entries

    Returns:
        Validated ResourceRegistry

    Raises:
        ConfigurationError: If any definition is malformed
    """
    merged: dict[str, dict[str, Any]] = {kind: dict(entry) for kind, entry in definitions.items()}
    for kind, entry in (overrides or {}).items():
        merged.setdefault(kind, {}).update(entry)

    registry = ResourceRegistry(parse_schema(kind, entry) for kind, entry in merged.items())
    logger.debug("resource_registry_loaded", kinds=len(registry))
    return registry


def load_definitions_from_yaml(path: str | Path) -> dict[str, dict[str, Any]]:
    """Read definition tables from a YAML file.

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Resource definitions file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Resource definitions in {path} must be a mapping")
    return data.get("resources", data)
