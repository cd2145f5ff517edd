"""Change validators run before deploy.

A change validator takes the full change set and returns the errors it
finds. ``run_change_validators`` splits the changes into the ones that
may be deployed and the errors that block the rest.
"""

from collections.abc import Callable, Sequence

from adapter_bridge.elements import Change, ChangeError, get_change_data
from adapter_bridge.resources import ResourceRegistry
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)

ChangeValidator = Callable[[Sequence[Change]], list[ChangeError]]


def deploy_not_supported_validator(adapter: str) -> ChangeValidator:
    """Validator for adapters that cannot deploy at all: every change is an error."""

    def validate(changes: Sequence[Change]) -> list[ChangeError]:
        message = f"Deploy is not supported in adapter {adapter}."
        return [
            ChangeError(
                elem_id=get_change_data(change).elem_id,
                severity="Error",
                message=message,
                detailed_message=message,
            )
            for change in changes
        ]

    return validate


def unsupported_operation_validator(
    registry: ResourceRegistry, handled_kinds: Sequence[str] = ()
) -> ChangeValidator:
    """Validator reporting changes with no deploy template for their kind and action.

    Args:
        registry: Resource registry with the deploy templates
        handled_kinds: Kinds deployed by special deployers, never reported
    """

    def validate(changes: Sequence[Change]) -> list[ChangeError]:
        errors = []
        for change in changes:
            record = get_change_data(change)
            if record.kind in handled_kinds:
                continue
            if not registry.has_deploy_request(record.kind, change.action):
                errors.append(
                    ChangeError(
                        elem_id=record.elem_id,
                        severity="Error",
                        message=f"{change.action} operation is not supported for {record.kind}",
                    )
                )
        return errors

    return validate


def run_change_validators(
    changes: Sequence[Change], validators: Sequence[ChangeValidator]
) -> tuple[list[Change], list[ChangeError]]:
    """Run every validator over ``changes``.

    Changes with an ``Error`` severity error are removed; warnings do not
    block deploy.

    Returns:
        Tuple of (valid changes, all errors)
    """
    errors: list[ChangeError] = []
    for validator in validators:
        errors.extend(validator(changes))

    blocked = {error.elem_id for error in errors if error.severity == "Error"}
    valid = [change for change in changes if get_change_data(change).elem_id not in blocked]

    if errors:
        logger.warning(
            "change_validation_failed",
            total=len(changes),
            blocked=len(changes) - len(valid),
            errors=len(errors),
        )
    return valid, errors
