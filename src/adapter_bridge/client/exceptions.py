"""Custom exceptions for Adapter Bridge.

This module defines exception classes for the error conditions that can
occur while talking to a service API, loading resource definitions, and
deploying individual changes.
"""


class AdapterBridgeError(Exception):
    """Base exception for all Adapter Bridge errors."""

    pass


class APIError(AdapterBridgeError):
    """Base class for API-related errors."""

    def __init__(self, message: str, status_code: int | None = None, response: dict | None = None):
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
        """
        self.message = message
        self.status_code = status_code
        self.response = response
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format error message with status code and response."""
        msg = self.message
        if self.status_code:
            msg = f"[{self.status_code}] {msg}"
        if self.response:
            msg = f"{msg}: {self.response}"
        return msg


class AuthenticationError(APIError):
    """Raised when authentication fails (401 Unauthorized)."""

    pass


class AuthorizationError(APIError):
    """Raised when authorization fails (403 Forbidden)."""

    pass


class NotFoundError(APIError):
    """Raised when a resource is not found (404 Not Found)."""

    pass


class ConflictError(APIError):
    """Raised when a resource conflict occurs (409 Conflict)."""

    pass


class RateLimitError(APIError):
    """Raised when API rate limit is exceeded (429 Too Many Requests)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response: dict | None = None,
        retry_after: int | None = None,
    ):
        """Initialize rate limit error.

        Args:
            message: Error message
            status_code: HTTP status code
            response: API response body
            retry_after: Seconds to wait before retrying (from Retry-After header)
        """
        super().__init__(message, status_code, response)
        self.retry_after = retry_after


class ServerError(APIError):
    """Raised when server returns 5xx error."""

    pass


class NetworkError(AdapterBridgeError):
    """Raised when network-related errors occur (timeouts, connection failures)."""

    pass


class ConfigurationError(AdapterBridgeError):
    """Raised when configuration or resource definitions are invalid.

    Always fatal: raised at load time, never retried.
    """

    pass


class MalformedServiceResponseError(AdapterBridgeError):
    """Raised when a response body does not have the declared shape."""

    def __init__(self, kind: str, message: str):
        self.kind = kind
        super().__init__(f"Malformed response for {kind}: {message}")


class DeployError(AdapterBridgeError):
    """Base class for recoverable, per-change deploy failures.

    The coordinator converts these into change errors; they never abort
    sibling changes.
    """

    severity = "Error"


class UnsupportedOperationError(DeployError):
    """Raised when no deploy request is configured for a (kind, action) pair."""

    def __init__(self, kind: str, action: str):
        self.kind = kind
        self.action = action
        super().__init__(f"{action} operation is not supported for {kind}")


class MissingUrlParameterError(DeployError):
    """Raised when a URL placeholder cannot be filled from the record."""

    def __init__(self, param: str, url: str):
        self.param = param
        self.url = url
        super().__init__(f"Missing or non-scalar value for URL parameter '{param}' in {url}")


class InvalidMemberIdentifierError(DeployError):
    """Raised when an ordered-collection member id has the wrong type."""

    pass


class InvalidOrderChangeBatchError(DeployError):
    """Raised when an order change batch is not a single modification."""

    pass


class DeployCancelledError(DeployError):
    """Raised for changes that were not started because deploy was cancelled."""

    severity = "Warning"


class MissingTransitionIdError(DeployError):
    """Raised when a workflow transition with triggers has no service id."""

    def __init__(self, workflow: str, transition: str):
        self.workflow = workflow
        self.transition = transition
        super().__init__(
            f"Could not find the id of transition '{transition}' in workflow {workflow}"
        )
