"""Base HTTP client for Adapter Bridge.

This module provides the async HTTP collaborator used by the fetch and
deploy stages: connection pooling, rate limiting, error mapping, request
logging and page-following pagination. The mapping core only supplies
request shapes and consumes response bodies.
"""

import asyncio
import time
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import httpx

from adapter_bridge.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    MalformedServiceResponseError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from adapter_bridge.utils.logging import (
    get_logger,
    log_api_request,
    sanitize_payload,
    should_log_payloads,
    truncate_payload,
)
from adapter_bridge.utils.retry import retry_api_call_short
from adapter_bridge.utils.values import get_path

logger = get_logger(__name__)

# Guard against services that keep returning a next-page link
MAX_PAGES = 1000


@dataclass
class Response:
    """Status code and decoded body of a service response."""

    status: int
    data: Any


class BaseAPIClient:
    """Async HTTP client with rate limiting and error mapping.

    This client provides:
    - Connection pooling
    - Rate limiting
    - Request/response logging
    - Mapping of error statuses to exception types
    - Pagination by following a next-page field
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        verify_ssl: bool = True,
        timeout: int = 30,
        rate_limit: int = 20,
        max_connections: int | None = None,
        max_keepalive_connections: int | None = None,
        log_payloads: bool = False,
        max_payload_size: int = 10000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            base_url: Base URL for API requests
            token: Bearer token (omitted from headers when None)
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            rate_limit: Maximum requests per second (0 disables limiting)
            max_connections: Maximum number of connections in pool (default: 50)
            max_keepalive_connections: Maximum keep-alive connections (default: 20)
            log_payloads: Enable request/response payload logging at DEBUG level
            max_payload_size: Maximum payload size (chars) to log before truncation
            transport: Optional httpx transport (used for mocking)
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.verify_ssl = verify_ssl

        self.log_payloads = log_payloads
        self.max_payload_size = max_payload_size

        self.rate_limit = rate_limit
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0
        self._min_request_interval = 1.0 / rate_limit if rate_limit > 0 else 0

        if max_connections is None:
            max_connections = 50
        if max_keepalive_connections is None:
            max_keepalive_connections = 20

        self.client = httpx.AsyncClient(
            headers=self._build_headers(),
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            verify=verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

        logger.info(
            "client_initialized",
            base_url=self.base_url,
            rate_limit=rate_limit,
            max_connections=max_connections,
        )

    def _build_headers(self) -> dict[str, str]:
        """Build HTTP headers for requests."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _build_url(self, endpoint: str) -> str:
        """Build full URL from an endpoint path or absolute next-page URL."""
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return urljoin(f"{self.base_url}/", endpoint.lstrip("/"))

    async def _rate_limit_wait(self) -> None:
        """Implement rate limiting by waiting if necessary."""
        if self._min_request_interval > 0:
            async with self._rate_limit_lock:
                now = time.time()
                time_since_last = now - self._last_request_time

                if time_since_last < self._min_request_interval:
                    await asyncio.sleep(self._min_request_interval - time_since_last)

                self._last_request_time = time.time()

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Raise the exception matching an error response.

        Raises:
            AuthenticationError: For 401 responses
            AuthorizationError: For 403 responses
            NotFoundError: For 404 responses
            ConflictError: For 409 responses
            RateLimitError: For 429 responses
            ServerError: For 5xx responses
            APIError: For other error responses
        """
        status_code = response.status_code

        try:
            error_data = response.json()
        except ValueError:
            error_data = {"detail": response.text}

        if isinstance(error_data, list):
            error_message = (
                ", ".join(str(item) for item in error_data) if error_data else "Unknown error"
            )
            error_data = {"detail": error_message, "_raw_list": error_data}
        elif isinstance(error_data, dict):
            error_message = error_data.get(
                "detail", error_data.get("message", error_data.get("error", "Unknown error"))
            )
        else:
            error_message = str(error_data)
            error_data = {"detail": error_message}

        if status_code == 401:
            raise AuthenticationError(
                message="Authentication failed", status_code=status_code, response=error_data
            )
        elif status_code == 403:
            raise AuthorizationError(
                message="Authorization failed", status_code=status_code, response=error_data
            )
        elif status_code == 404:
            raise NotFoundError(
                message="Resource not found", status_code=status_code, response=error_data
            )
        elif status_code == 409:
            raise ConflictError(
                message="Resource conflict", status_code=status_code, response=error_data
            )
        elif status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                message="Rate limit exceeded",
                status_code=status_code,
                response=error_data,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        elif 500 <= status_code < 600:
            raise ServerError(
                message=f"Server error: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        else:
            raise APIError(
                message=f"API error: {error_message}",
                status_code=status_code,
                response=error_data,
            )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: Any = None,
        **kwargs: Any,
    ) -> Response:
        """Make an HTTP request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            endpoint: API endpoint path or absolute URL
            params: Query parameters
            json_data: JSON request body
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response with status code and decoded JSON body

        Raises:
            NetworkError: For network-related errors
            MalformedServiceResponseError: For a success body that is not JSON
            Various APIError subclasses: For API errors
        """
        url = self._build_url(endpoint)

        await self._rate_limit_wait()

        if should_log_payloads(logger, self.log_payloads) and json_data is not None:
            logger.debug(
                "api_request_payload",
                method=method,
                url=url,
                payload=truncate_payload(sanitize_payload(json_data), self.max_payload_size),
            )

        start_time = time.time()

        try:
            response = await self.client.request(
                method=method, url=url, params=params, json=json_data, **kwargs
            )
        except httpx.TimeoutException as e:
            logger.error("timeout_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Request timeout: {str(e)}") from e
        except httpx.NetworkError as e:
            logger.error("network_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {str(e)}") from e

        log_api_request(
            logger,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
        )

        if response.status_code >= 400:
            self._handle_error_response(response)

        try:
            data = response.json() if response.text else {}
        except ValueError as e:
            logger.warning(
                "non_json_response",
                method=method,
                url=url,
                status_code=response.status_code,
                body=response.text[:200],
            )
            raise MalformedServiceResponseError(endpoint, "response body is not JSON") from e

        if should_log_payloads(logger, self.log_payloads):
            logger.debug(
                "api_response_payload",
                method=method,
                url=url,
                status_code=response.status_code,
                payload=truncate_payload(sanitize_payload(data), self.max_payload_size),
            )

        return Response(status=response.status_code, data=data)

    @retry_api_call_short
    async def get_single_page(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> Response:
        """GET one page; retried on network, server and rate-limit errors."""
        return await self.request("GET", endpoint, params=params)

    async def paginate(
        self,
        endpoint: str,
        paginate_field: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> AsyncGenerator[Any, None]:
        """Yield raw response pages from a listing endpoint.

        After each page the value at ``paginate_field`` (dotted path) is
        read; a URL or path there is requested next. Pagination stops when
        the field is missing or empty, or when ``paginate_field`` is None.

        Args:
            endpoint: Listing endpoint path
            paginate_field: Dotted path of the next-page link in each page
            params: Query parameters for the first request

        Yields:
            Decoded page bodies
        """
        next_endpoint: str | None = endpoint
        query_params = params.copy() if params else None
        seen: set[str] = set()
        page = 0

        while next_endpoint and page < MAX_PAGES:
            seen.add(next_endpoint)
            response = await self.get_single_page(next_endpoint, params=query_params)
            page += 1

            logger.debug("page_fetched", endpoint=endpoint, page=page)
            yield response.data

            if paginate_field is None:
                break

            next_link = get_path(response.data, paginate_field)
            if not isinstance(next_link, str) or not next_link or next_link in seen:
                break

            next_endpoint = next_link
            # Next-page links carry their own query string
            query_params = None

        logger.debug("pagination_complete", endpoint=endpoint, total_pages=page)

    async def get(
        self, endpoint: str, params: dict[str, Any] | None = None, **kwargs: Any
    ) -> Response:
        """Make a GET request."""
        return await self.request("GET", endpoint, params=params, **kwargs)

    async def post(self, endpoint: str, json_data: Any = None, **kwargs: Any) -> Response:
        """Make a POST request."""
        return await self.request("POST", endpoint, json_data=json_data, **kwargs)

    async def put(self, endpoint: str, json_data: Any = None, **kwargs: Any) -> Response:
        """Make a PUT request."""
        return await self.request("PUT", endpoint, json_data=json_data, **kwargs)

    async def patch(self, endpoint: str, json_data: Any = None, **kwargs: Any) -> Response:
        """Make a PATCH request."""
        return await self.request("PATCH", endpoint, json_data=json_data, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> Response:
        """Make a DELETE request."""
        return await self.request("DELETE", endpoint, **kwargs)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.info("client_closed", base_url=self.base_url)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
