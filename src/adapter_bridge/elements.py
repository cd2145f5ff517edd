"""Element model shared by the fetch and deploy stages.

Records are untyped key/value bodies addressed by an ``ElemID``. A
``ReferenceExpression`` points at another record by id only; the target's
lifetime belongs to the enclosing record set.
"""

import copy
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

ID_TYPES = ("type", "instance", "field", "attr", "annotation")

Severity = Literal["Info", "Warning", "Error"]

# Record annotation keys
HIDDEN = "_hidden"
PARENT = "_parent"


@dataclass(frozen=True)
class ElemID:
    """Stable identifier of a record.

    Full names look like ``zendesk.automation.instance.notify_agents`` or
    ``salesforce.Account.field.OwnerId``.
    """

    adapter: str
    type_name: str
    id_type: str = "type"
    name_parts: tuple[str, ...] = ()

    CONFIG_NAME: ClassVar[str] = "_config"

    def __post_init__(self) -> None:
        if self.id_type not in ID_TYPES:
            raise ValueError(f"Invalid id type '{self.id_type}'")

    @classmethod
    def instance(cls, adapter: str, type_name: str, name: str) -> "ElemID":
        return cls(adapter, type_name, "instance", (name,))

    @classmethod
    def from_full_name(cls, full_name: str) -> "ElemID":
        parts = full_name.split(".")
        if len(parts) < 2:
            raise ValueError(f"Invalid element id '{full_name}'")
        if len(parts) == 2:
            return cls(parts[0], parts[1])
        return cls(parts[0], parts[1], parts[2], tuple(parts[3:]))

    @property
    def name(self) -> str:
        return self.name_parts[-1] if self.name_parts else self.type_name

    @property
    def full_name(self) -> str:
        parts = [self.adapter, self.type_name]
        if self.id_type != "type" or self.name_parts:
            parts.append(self.id_type)
        parts.extend(self.name_parts)
        return ".".join(parts)

    @property
    def is_config(self) -> bool:
        return self.id_type == "instance" and self.name == self.CONFIG_NAME

    def create_nested_id(self, *names: str) -> "ElemID":
        return ElemID(self.adapter, self.type_name, self.id_type, self.name_parts + names)

    def __str__(self) -> str:
        return self.full_name


@dataclass
class Record:
    """A fetched configuration object.

    Attributes:
        elem_id: Stable identifier, assigned once
        value: Field values (strings, numbers, booleans, mappings,
            sequences or references)
        kind: Resource kind; defaults to the id's type name
        natural_key: Human-meaningful key used for cross-reference lookup
        annotations: Record-level annotations (hidden flag, parent, ...)
        fields: Field name to field annotations, for object-type records
        path: File path segments the record is written under
    """

    elem_id: ElemID
    value: dict[str, Any] = field(default_factory=dict)
    kind: str = ""
    natural_key: str | None = None
    annotations: dict[str, Any] = field(default_factory=dict)
    fields: dict[str, dict[str, Any]] = field(default_factory=dict)
    path: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if not self.kind:
            self.kind = self.elem_id.type_name

    @property
    def name(self) -> str:
        return self.elem_id.name

    def clone(self) -> "Record":
        """Deep copy; references inside keep pointing at the same targets."""
        return copy.deepcopy(self)


@dataclass(eq=False)
class ReferenceExpression:
    """A resolved pointer to another record, carried by id.

    ``value`` optionally holds the target record for display and for
    rendering; equality and hashing use the id only.
    """

    elem_id: ElemID
    value: Any = None

    def resolve(self, source: "ElementsSource | None" = None) -> Any:
        """Return the target record, looking it up in ``source`` if needed."""
        if self.value is None and source is not None:
            self.value = source.get(self.elem_id)
        return self.value

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ReferenceExpression) and other.elem_id == self.elem_id

    def __hash__(self) -> int:
        return hash(self.elem_id)

    def __deepcopy__(self, memo: dict) -> "ReferenceExpression":
        return ReferenceExpression(self.elem_id, self.value)

    def __repr__(self) -> str:
        return f"ReferenceExpression({self.elem_id.full_name})"


class ElementsSource:
    """Read-only lookup of records by id over a record set."""

    def __init__(self, records: Iterable[Record] = ()):
        self._records: dict[str, Record] = {}
        for record in records:
            self._records[record.elem_id.full_name] = record

    def get(self, elem_id: ElemID) -> Record | None:
        return self._records.get(elem_id.full_name)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records.values())

    def __len__(self) -> int:
        return len(self._records)


# ============================================
# Changes
# ============================================


@dataclass
class Addition:
    after: Record
    action: ClassVar[str] = "add"


@dataclass
class Modification:
    before: Record
    after: Record
    action: ClassVar[str] = "modify"


@dataclass
class Removal:
    before: Record
    action: ClassVar[str] = "remove"


Change = Addition | Modification | Removal

ACTIONS = ("add", "modify", "remove")


def get_change_data(change: Change) -> Record:
    """Return the post-change record, or the pre-change record for removals."""
    if isinstance(change, Removal):
        return change.before
    return change.after


# ============================================
# Deploy results
# ============================================


@dataclass
class ChangeError:
    """A user-visible failure attached to one element."""

    elem_id: ElemID
    severity: Severity
    message: str
    detailed_message: str = ""

    @classmethod
    def from_exception(cls, elem_id: ElemID, error: Exception) -> "ChangeError":
        """Error record for a failed change; severity comes from the exception type."""
        return cls(elem_id=elem_id, severity=getattr(error, "severity", "Error"), message=str(error))

    def to_dict(self) -> dict[str, str]:
        return {
            "elem_id": self.elem_id.full_name,
            "severity": self.severity,
            "message": self.message,
            "detailed_message": self.detailed_message or self.message,
        }


@dataclass
class DeployResult:
    applied_changes: list[Change] = field(default_factory=list)
    failed_changes: list[Change] = field(default_factory=list)
    errors: list[ChangeError] = field(default_factory=list)

    def extend(self, other: "DeployResult") -> None:
        self.applied_changes.extend(other.applied_changes)
        self.failed_changes.extend(other.failed_changes)
        self.errors.extend(other.errors)


@dataclass
class DeployOutcome:
    """What a deploy stage hands downstream."""

    leftover_changes: list[Change] = field(default_factory=list)
    deploy_result: DeployResult = field(default_factory=DeployResult)

    @property
    def applied_changes(self) -> list[Change]:
        return self.deploy_result.applied_changes

    @property
    def failed_changes(self) -> list[Change]:
        return self.deploy_result.failed_changes

    @property
    def errors(self) -> list[ChangeError]:
        return self.deploy_result.errors
