"""
Timeout race, retry backoff and run identifiers shared by agents and workflows.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Awaitable, Optional

from .errors import AgentError, ErrorCode
from .types import BackoffStrategy, RetryConfig

logger = logging.getLogger(__name__)


async def run_with_timeout(
    awaitable: Awaitable[Any],
    timeout: Optional[float],
    message: str = "Execution timeout",
) -> Any:
    """
    Race an awaitable against a timer.

    Whichever settles first decides the outcome. When the timer wins the work
    is abandoned, not cancelled: it keeps running in the background and its
    eventual result or exception is discarded. Callers relying on the work
    stopping must cancel it cooperatively themselves.

    Args:
        awaitable: Work to run
        timeout: Seconds before giving up (None waits forever)
        message: Message of the TIMEOUT error

    Returns:
        The awaitable's result, unmodified

    Raises:
        AgentError: With code TIMEOUT when the timer fires first
        Exception: Whatever the work raised, when it settles first
    """
    task = asyncio.ensure_future(awaitable)

    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    task.add_done_callback(_discard_abandoned)
    raise AgentError(message, ErrorCode.TIMEOUT, {"timeout": timeout})


def _discard_abandoned(task: asyncio.Future) -> None:
    """Retrieve the outcome of work that lost a timeout race."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.debug(f"Abandoned task finished with error after timeout: {exc!r}")
    else:
        logger.debug("Abandoned task finished after timeout; result discarded")


def calculate_retry_delay(attempt: int, retry: RetryConfig) -> float:
    """
    Compute the delay before the next attempt.

    Args:
        attempt: 1-based number of the attempt that just failed
        retry: Retry configuration

    Returns:
        Delay in seconds
    """
    if retry.backoff == BackoffStrategy.EXPONENTIAL:
        delay = retry.delay * (2 ** (attempt - 1))
        if retry.max_delay is not None:
            return min(delay, retry.max_delay)
        return delay
    return retry.delay


def generate_context_id(name: str) -> str:
    """Build a run identifier unique per execution."""
    return f"{name}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
