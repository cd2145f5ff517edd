"""Ordered collections: relative order of same-kind records as one record.

Some services keep execution order as a server-side attribute (for
example the position of automations). On fetch the members are sorted
and a single hidden ``<kind>_order`` record is added that references
them in order. On deploy a modification of that record is sent as one
request carrying ``{id, position}`` pairs for the new order.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import (
    AdapterBridgeError,
    ConfigurationError,
    InvalidMemberIdentifierError,
    InvalidOrderChangeBatchError,
)
from adapter_bridge.elements import (
    HIDDEN,
    Change,
    ChangeError,
    DeployResult,
    ElemID,
    ElementsSource,
    Modification,
    Record,
    ReferenceExpression,
    get_change_data,
)
from adapter_bridge.mapping.deploy import DeployMapper
from adapter_bridge.mapping.fetch import RECORDS_FOLDER
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)

ORDER_TYPE_SUFFIX = "_order"


def create_order_type_name(kind: str) -> str:
    return f"{kind}{ORDER_TYPE_SUFFIX}"


@dataclass(frozen=True)
class OrderSpec:
    """Where the order lives on members and how it is deployed.

    Attributes:
        kind: Member kind
        envelope_field: Payload field holding the ``{id, position}`` list
        order_field: Field of the order record listing the members
        id_field: Member field holding the service id
        position_field: Member field holding the current position
        secondary_sort_field: Tie-breaker for equal positions
    """

    kind: str
    envelope_field: str
    order_field: str = "order"
    id_field: str = "id"
    position_field: str = "position"
    secondary_sort_field: str = "title"

    @property
    def order_kind(self) -> str:
        return create_order_type_name(self.kind)


class OrderedCollectionFilter:
    """Builds the order record on fetch and deploys changes to it."""

    def __init__(
        self,
        adapter: str,
        spec: OrderSpec,
        deploy_mapper: DeployMapper,
        client: BaseAPIClient,
        hide_types: bool = True,
        elements_source: ElementsSource | None = None,
    ):
        self.adapter = adapter
        self.spec = spec
        self.deploy_mapper = deploy_mapper
        self.client = client
        self.hide_types = hide_types
        self.elements_source = elements_source

    def _sort_key(self, record: Record) -> tuple:
        position = record.value.get(self.spec.position_field)
        secondary = record.value.get(self.spec.secondary_sort_field)
        return (
            position is None,
            position if position is not None else 0,
            "" if secondary is None else str(secondary),
        )

    def on_fetch(self, records: list[Record]) -> list[Record]:
        """Append the order record for ``spec.kind`` members, if there are any."""
        members = sorted(
            (record for record in records if record.kind == self.spec.kind),
            key=self._sort_key,
        )
        if not members:
            logger.debug("no_ordered_members", kind=self.spec.kind)
            return records

        order_kind = self.spec.order_kind
        order = Record(
            elem_id=ElemID.instance(self.adapter, order_kind, ElemID.CONFIG_NAME),
            value={
                self.spec.order_field: [
                    ReferenceExpression(member.elem_id, member) for member in members
                ]
            },
            path=(self.adapter, RECORDS_FOLDER, order_kind, order_kind),
        )
        if self.hide_types:
            order.annotations[HIDDEN] = True

        records.append(order)
        return records

    def _member_id(self, item: Any) -> Any:
        if isinstance(item, ReferenceExpression):
            target = item.resolve(self.elements_source)
            if not isinstance(target, Record):
                raise InvalidMemberIdentifierError(
                    f"Order member {item.elem_id.full_name} could not be found"
                )
            return target.value.get(self.spec.id_field)
        return item

    def _member_ids(self, record: Record) -> list[int]:
        ids = []
        for item in record.value.get(self.spec.order_field) or []:
            member_id = self._member_id(item)
            if not isinstance(member_id, int) or isinstance(member_id, bool):
                raise InvalidMemberIdentifierError(
                    f"Order member id {member_id!r} of {record.elem_id.full_name} "
                    f"is not an integer"
                )
            ids.append(member_id)
        return ids

    def compute_positions(self, before: Record, after: Record) -> list[dict[str, int]]:
        """Position of every member in ``after``, numbered densely from 1.

        Members only present in ``before`` drop out of the ordering.

        Raises:
            InvalidMemberIdentifierError: If an ``after`` member id is not an int
        """
        after_ids = self._member_ids(after)
        removed = {
            item.elem_id if isinstance(item, ReferenceExpression) else item
            for item in before.value.get(self.spec.order_field) or []
        } - {
            item.elem_id if isinstance(item, ReferenceExpression) else item
            for item in after.value.get(self.spec.order_field) or []
        }
        if removed:
            logger.debug("order_members_removed", kind=self.spec.kind, count=len(removed))

        return [
            {self.spec.id_field: member_id, self.spec.position_field: position}
            for position, member_id in enumerate(after_ids, start=1)
        ]

    async def deploy(self, changes: Sequence[Change]) -> tuple[DeployResult, list[Change]]:
        """Deploy the order change, leaving every other change untouched.

        Returns:
            Result of the order deploy and the leftover changes
        """
        order_kind = self.spec.order_kind
        relevant = [c for c in changes if get_change_data(c).kind == order_kind]
        leftovers = [c for c in changes if get_change_data(c).kind != order_kind]
        if not relevant:
            return DeployResult(), leftovers

        if len(relevant) != 1 or not isinstance(relevant[0], Modification):
            error = InvalidOrderChangeBatchError(
                f"{order_kind} must be deployed as a single modification, "
                f"got {len(relevant)} change(s)"
            )
            logger.error("invalid_order_change_batch", kind=order_kind, changes=len(relevant))
            return (
                DeployResult(
                    failed_changes=list(relevant),
                    errors=[
                        ChangeError.from_exception(get_change_data(relevant[0]).elem_id, error)
                    ],
                ),
                leftovers,
            )

        change = relevant[0]
        try:
            positions = self.compute_positions(change.before, change.after)
            rendered = change.after.clone()
            rendered.value = {self.spec.envelope_field: positions}
            await self.deploy_mapper.deploy_change(
                Modification(change.before, rendered), self.client
            )
        except ConfigurationError:
            raise
        except AdapterBridgeError as e:
            logger.error(
                "order_deploy_failed",
                elem_id=change.after.elem_id.full_name,
                error=str(e),
            )
            return (
                DeployResult(
                    failed_changes=[change],
                    errors=[ChangeError.from_exception(change.after.elem_id, e)],
                ),
                leftovers,
            )

        logger.info("order_deployed", kind=self.spec.kind, members=len(positions))
        return DeployResult(applied_changes=[change]), leftovers

