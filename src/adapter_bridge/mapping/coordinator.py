"""Batch deploy coordination.

Splits an incoming change set between special deployers (ordered
collections, adapter-specific flows), the generic deploy mapper, and
leftovers that none of them handle. Every change ends up in exactly one
of applied, failed or leftover.
"""

import asyncio
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from adapter_bridge.client.base_client import BaseAPIClient
from adapter_bridge.client.exceptions import ConfigurationError, DeployCancelledError
from adapter_bridge.elements import (
    Change,
    ChangeError,
    DeployOutcome,
    DeployResult,
    get_change_data,
)
from adapter_bridge.mapping.deploy import DeployMapper
from adapter_bridge.resources import ResourceRegistry
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)


@runtime_checkable
class DeployFilter(Protocol):
    """A deployer that takes the changes it handles and passes the rest on."""

    async def deploy(self, changes: Sequence[Change]) -> tuple[DeployResult, list[Change]]:
        """Deploy relevant changes.

        Returns:
            Result for the handled changes and the leftover changes
        """
        ...


class DeployCoordinator:
    """Deploys a change set with per-change failure isolation.

    Changes are deployed concurrently, limited by a semaphore. Setting
    ``cancel_event`` stops new changes from starting; changes already in
    flight are allowed to finish.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        deploy_mapper: DeployMapper,
        client: BaseAPIClient,
        special_deployers: Sequence[DeployFilter] = (),
        max_concurrent: int = 10,
        cancel_event: asyncio.Event | None = None,
    ):
        """Initialize deploy coordinator.

        Args:
            registry: Resource registry deciding which changes apply
            deploy_mapper: Renders and sends applicable changes
            client: HTTP client
            special_deployers: Run first, in order, each on the previous
                one's leftovers
            max_concurrent: Maximum number of changes deployed at once
            cancel_event: Set by the caller to cancel the deploy
        """
        self.registry = registry
        self.deploy_mapper = deploy_mapper
        self.client = client
        self.special_deployers = list(special_deployers)
        self.max_concurrent = max_concurrent
        self.cancel_event = cancel_event

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def is_applicable(self, change: Change) -> bool:
        return self.registry.has_deploy_request(get_change_data(change).kind, change.action)

    async def deploy(self, changes: Sequence[Change]) -> DeployOutcome:
        """Deploy ``changes``.

        Returns:
            DeployOutcome with applied, failed and leftover changes and the
            errors of the failed ones
        """
        result = DeployResult()
        remaining = list(changes)

        for deployer in self.special_deployers:
            if self.cancelled:
                break
            special_result, remaining = await deployer.deploy(remaining)
            result.extend(special_result)

        applicable = [change for change in remaining if self.is_applicable(change)]
        leftovers = [change for change in remaining if not self.is_applicable(change)]

        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def deploy_with_semaphore(change: Change) -> ChangeError | None:
            """Deploy a single change with semaphore control."""
            elem_id = get_change_data(change).elem_id

            async with semaphore:
                # Changes waiting on the semaphore have not started yet
                if self.cancelled:
                    cancelled = DeployCancelledError("Deploy cancelled before change started")
                    return ChangeError.from_exception(elem_id, cancelled)

                try:
                    await self.deploy_mapper.deploy_change(change, self.client)
                    return None
                except ConfigurationError:
                    raise
                except Exception as e:
                    logger.error(
                        "change_deploy_failed",
                        elem_id=elem_id.full_name,
                        action=change.action,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    return ChangeError.from_exception(elem_id, e)

        outcomes = await asyncio.gather(*(deploy_with_semaphore(c) for c in applicable))

        for change, error in zip(applicable, outcomes):
            if error is None:
                result.applied_changes.append(change)
            else:
                result.failed_changes.append(change)
                result.errors.append(error)

        logger.info(
            "deploy_completed",
            total=len(changes),
            applied=len(result.applied_changes),
            failed=len(result.failed_changes),
            leftover=len(leftovers),
            cancelled=self.cancelled,
        )
        return DeployOutcome(leftover_changes=leftovers, deploy_result=result)
