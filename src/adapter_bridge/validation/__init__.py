"""Validation of service responses and of changes before deploy."""

from adapter_bridge.validation.change_validators import (
    ChangeValidator,
    deploy_not_supported_validator,
    run_change_validators,
    unsupported_operation_validator,
)
from adapter_bridge.validation.response_validator import validate_page, validate_response

__all__ = [
    "ChangeValidator",
    "deploy_not_supported_validator",
    "run_change_validators",
    "unsupported_operation_validator",
    "validate_page",
    "validate_response",
]
