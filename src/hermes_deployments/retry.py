"""Bounded retry and polling helpers for hermes-deployments library."""

import logging
import threading
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .exceptions import DeploymentCancelledError
from .types import PollingPolicy, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def retrying(
    policy: RetryPolicy, exceptions: Tuple[Type[BaseException], ...]
) -> Retrying:
    """
    Build a tenacity retry controller for transient failures.

    Usage:
        for attempt in retrying(policy, (TransportError,)):
            with attempt:
                ...

    Args:
        policy: Attempt ceiling and exponential backoff bounds
        exceptions: Exception types worth another attempt

    Returns:
        Retrying that re-raises the last exception once the ceiling is reached
    """
    return Retrying(
        retry=retry_if_exception_type(exceptions),
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.initial_backoff, max=policy.max_backoff),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


def raise_if_cancelled(cancel_event: Optional[threading.Event], what: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise DeploymentCancelledError(f"Cancelled while {what}")


def poll(
    check: Callable[[], Optional[T]],
    policy: PollingPolicy,
    timeout_error: Type[Exception],
    what: str,
    cancel_event: Optional[threading.Event] = None,
) -> T:
    """
    Call check() at a fixed interval until it returns something other than None.

    Stops at whichever comes first: policy.max_attempts calls or policy.timeout
    seconds. The wait between calls returns early when cancel_event is set.

    Args:
        check: Probe returning None while the operation is still in progress
        policy: Interval, deadline and attempt ceiling
        timeout_error: Exception type raised when the budget runs out
        what: Description used in log and error messages
        cancel_event: Caller's cancellation signal

    Returns:
        First non-None value returned by check()

    Raises:
        DeploymentCancelledError: If cancel_event is set
        timeout_error: If the budget runs out
    """
    deadline = time.monotonic() + policy.timeout
    attempt = 0

    for attempt in range(1, policy.max_attempts + 1):
        raise_if_cancelled(cancel_event, what)

        result = check()
        if result is not None:
            return result

        if attempt == policy.max_attempts or time.monotonic() >= deadline:
            break

        logger.debug("Still %s (poll %d/%d)", what, attempt, policy.max_attempts)
        if cancel_event is not None:
            cancel_event.wait(policy.interval)
        else:
            time.sleep(policy.interval)

    raise_if_cancelled(cancel_event, what)
    raise timeout_error(
        f"Gave up {what} after {attempt} polls ({policy.timeout:.0f}s budget)"
    )
