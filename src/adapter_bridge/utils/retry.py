"""Retry decorators using tenacity.

Retries belong to the HTTP collaborator only; the mapping core never
retries a request itself.
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from adapter_bridge.client.exceptions import NetworkError, RateLimitError, ServerError
from adapter_bridge.utils.logging import get_logger

logger = get_logger(__name__)

RequestFunc = TypeVar("RequestFunc", bound=Callable[..., Awaitable[Any]])

TRANSIENT_ERRORS = (NetworkError, ServerError, RateLimitError)


def retry_with_backoff(
    max_attempts: int = 5,
    min_wait: int = 2,
    max_wait: int = 60,
    retry_on_exceptions: tuple[type[Exception], ...] = TRANSIENT_ERRORS,
) -> Callable[[RequestFunc], RequestFunc]:
    """Retry an async request with jittered exponential backoff.

    Args:
        max_attempts: Attempts before the last error is re-raised
        min_wait: Minimum wait between attempts, in seconds
        max_wait: Maximum wait between attempts, in seconds
        retry_on_exceptions: Errors worth another attempt
    """

    def decorator(func: RequestFunc) -> RequestFunc:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_random_exponential(multiplier=1, min=min_wait, max=max_wait),
                retry=retry_if_exception_type(retry_on_exceptions),
                reraise=True,
            ):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    if number > 1:
                        logger.info(
                            "request_retry",
                            function=func.__name__,
                            attempt=number,
                            max_attempts=max_attempts,
                        )
                    return await func(*args, **kwargs)

        return wrapper  # type: ignore[return-value]

    return decorator


# Page requests give up sooner than the default
retry_api_call_short = retry_with_backoff(max_attempts=3, min_wait=1, max_wait=10)
