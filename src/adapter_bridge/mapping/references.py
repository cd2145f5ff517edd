"""Cross-reference resolution between fetched records.

On fetch, string annotations that name other records are rewritten into
``ReferenceExpression``s:

- the type pass looks up type or object names in a ``ReferenceIndex``,
  falling back to the generic object kind when the name is not a type;
- the field pass turns ``Container.member`` strings into field references
  directly from their parts.

On deploy, ``restore_references`` renders every reference back into the
string it was resolved from.
"""

from collections.abc import Callable, Iterable, Sequence
from typing import Any

from adapter_bridge.elements import ElemID, Record, ReferenceExpression
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SEPARATOR = "."

RecordPredicate = Callable[[Record], bool]
LookupName = Callable[[ReferenceExpression], Any]


def _natural_key(record: Record) -> str | None:
    return record.natural_key


class ReferenceIndex:
    """``(kind, natural key) -> record`` lookup, built once per fetch pass.

    Duplicate keys within a kind keep the last record seen; collisions are
    counted and logged at debug level.
    """

    def __init__(self) -> None:
        self._entries: dict[tuple[str, str], Record] = {}
        self.collisions = 0

    @classmethod
    def build(
        cls,
        records: Iterable[Record],
        predicate: RecordPredicate | None = None,
        key: Callable[[Record], str | None] = _natural_key,
    ) -> "ReferenceIndex":
        index = cls()
        for record in records:
            if predicate is not None and not predicate(record):
                continue
            natural_key = key(record)
            if natural_key is None:
                continue
            index.add(record.kind, natural_key, record)

        logger.debug("reference_index_built", entries=len(index), collisions=index.collisions)
        return index

    def add(self, kind: str, natural_key: str, record: Record) -> None:
        existing = self._entries.get((kind, natural_key))
        if existing is not None and existing.elem_id != record.elem_id:
            self.collisions += 1
            logger.debug(
                "reference_index_collision",
                kind=kind,
                natural_key=natural_key,
                replaced=existing.elem_id.full_name,
                kept=record.elem_id.full_name,
            )
        self._entries[(kind, natural_key)] = record

    def lookup(self, kind: str, natural_key: str) -> Record | None:
        return self._entries.get((kind, natural_key))

    def get(self, kind: str, natural_key: str) -> ElemID | None:
        record = self.lookup(kind, natural_key)
        return record.elem_id if record is not None else None

    def __len__(self) -> int:
        return len(self._entries)


class ReferenceResolver:
    """Resolves reference annotations of records that pass ``predicate``.

    Both passes are idempotent: values that are already references, and
    strings with no match, are left as they are.
    """

    def __init__(
        self,
        adapter: str,
        type_annotations: Sequence[str] = (),
        field_annotations: Sequence[str] = (),
        predicate: RecordPredicate | None = None,
        generic_object_kind: str | None = None,
        separator: str = DEFAULT_SEPARATOR,
    ):
        """Initialize reference resolver.

        Args:
            adapter: Adapter name used for synthesized field ids
            type_annotations: Annotations holding type or object names
            field_annotations: Annotations holding ``Container.member`` strings
            predicate: Selects the records to scan (default: all)
            generic_object_kind: Kind retried when a name is not found as a type
            separator: Separator of compound field names
        """
        self.adapter = adapter
        self.type_annotations = tuple(type_annotations)
        self.field_annotations = tuple(field_annotations)
        self.predicate = predicate
        self.generic_object_kind = generic_object_kind
        self.separator = separator

    def _selected(self, records: Iterable[Record]) -> list[Record]:
        if self.predicate is None:
            return list(records)
        return [record for record in records if self.predicate(record)]

    def on_fetch(
        self, records: list[Record], reference_universe: Iterable[Record] | None = None
    ) -> list[Record]:
        """Resolve references in place, type pass first.

        Args:
            records: Records returned to the caller
            reference_universe: Records used to build the index; may be
                wider than ``records`` (default: ``records``)

        Returns:
            The same list, with annotations rewritten
        """
        universe = records if reference_universe is None else reference_universe
        index = ReferenceIndex.build(universe, self.predicate)
        self.resolve_type_references(records, index)
        self.resolve_field_references(records)
        return records

    # --------------------------------------------
    # Type pass
    # --------------------------------------------

    def resolve_type_references(self, records: Iterable[Record], index: ReferenceIndex) -> None:
        for record in self._selected(records):
            for annotations in _annotation_targets(record):
                for name in self.type_annotations:
                    if name in annotations:
                        annotations[name] = self._resolve_type_value(
                            annotations[name], index, record, name
                        )

    def _resolve_type_value(
        self, value: Any, index: ReferenceIndex, record: Record, annotation: str
    ) -> Any:
        if isinstance(value, list):
            return [self._resolve_type_value(v, index, record, annotation) for v in value]
        if not isinstance(value, str):
            return value

        target = index.lookup(value, value)
        if target is None and self.generic_object_kind is not None:
            target = index.lookup(self.generic_object_kind, value)

        if target is None:
            logger.debug(
                "unresolved_reference",
                elem_id=record.elem_id.full_name,
                annotation=annotation,
                value=value,
            )
            return value
        return ReferenceExpression(target.elem_id, target)

    # --------------------------------------------
    # Field pass
    # --------------------------------------------

    def resolve_field_references(self, records: Iterable[Record]) -> None:
        for record in self._selected(records):
            for annotations in _annotation_targets(record):
                for name in self.field_annotations:
                    if name in annotations:
                        annotations[name] = self._resolve_field_value(
                            annotations[name], record, name
                        )

    def _resolve_field_value(self, value: Any, record: Record, annotation: str) -> Any:
        if isinstance(value, list):
            return [self._resolve_field_value(v, record, annotation) for v in value]
        if not isinstance(value, str):
            return value

        parts = value.split(self.separator)
        if len(parts) != 2 or not all(parts):
            logger.debug(
                "unresolved_field_reference",
                elem_id=record.elem_id.full_name,
                annotation=annotation,
                value=value,
            )
            return value

        container, member = parts
        return ReferenceExpression(ElemID(self.adapter, container, "field", (member,)))

    # --------------------------------------------
    # Reverse direction
    # --------------------------------------------

    def get_lookup_name(self, reference: ReferenceExpression) -> Any:
        return get_lookup_name(reference, self.separator)

    def restore_record(self, record: Record) -> Record:
        """Clone ``record`` with every annotation reference turned back into a string."""
        restored = record.clone()
        restored.annotations = restore_references(restored.annotations, self.get_lookup_name)
        restored.fields = restore_references(restored.fields, self.get_lookup_name)
        return restored


def _annotation_targets(record: Record) -> list[dict[str, Any]]:
    """Record-level annotations followed by each field's annotations."""
    return [record.annotations, *record.fields.values()]


def get_lookup_name(reference: ReferenceExpression, separator: str = DEFAULT_SEPARATOR) -> Any:
    """Wire string for a reference.

    Field ids render as ``Container.member``; a target record renders as
    its natural key; a type id renders as the type name.
    """
    elem_id = reference.elem_id
    if elem_id.id_type == "field":
        return separator.join((elem_id.type_name, *elem_id.name_parts))

    target = reference.value
    if isinstance(target, Record):
        return target.natural_key if target.natural_key is not None else target.name

    if elem_id.id_type == "type":
        return elem_id.type_name
    return elem_id.name


def restore_references(value: Any, lookup_name: LookupName = get_lookup_name) -> Any:
    """Return a copy of ``value`` with references replaced by their wire strings."""
    if isinstance(value, ReferenceExpression):
        return lookup_name(value)
    if isinstance(value, dict):
        return {key: restore_references(item, lookup_name) for key, item in value.items()}
    if isinstance(value, list):
        return [restore_references(item, lookup_name) for item in value]
    return value
