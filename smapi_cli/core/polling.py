"""
Completion polling and retry.

Two loops share one shape (PENDING -> PENDING | READY | FAILED):

- ``retry_call`` re-issues a call that failed with a retryable error. The
  rate-limit policy retries HTTP 429 only; the withdrawal policy waits much
  longer and retries anything but HTTP 200.
- ``poll_until`` re-issues a status check until the response carries a
  terminal status for the target.

Errors are values here: both loops return a ``PollOutcome`` and running out
of attempts leaves it PENDING instead of raising.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from smapi_cli.core.client import APIError
from smapi_cli.core.types import PollOutcome, PollState, PollTarget
from smapi_cli.logging_config import get_logger

logger = get_logger(__name__)


def on_status(*statuses: int) -> Callable[[APIError], bool]:
    """Retry only errors with one of the given statuses."""
    wanted = frozenset(statuses)
    return lambda error: error.status in wanted


def unless_status(status: int) -> Callable[[APIError], bool]:
    """Retry every error whose status is not exactly ``status``."""
    return lambda error: error.status != status


def never(_error: APIError) -> bool:
    return False


def rate_limited(error: APIError) -> bool:
    return error.is_rate_limited


@dataclass(frozen=True)
class RetryPolicy:
    """Fixed-interval retry configuration.

    Args:
        interval: Seconds to sleep before each retry
        max_attempts: Total number of calls allowed, the first one included
        retryable: Decides whether an error is worth another attempt

    """

    interval: float
    max_attempts: int = 10
    retryable: Callable[[APIError], bool] = field(default=never, compare=False)

    def __post_init__(self) -> None:
        if self.interval < 0:
            raise ValueError("interval must not be negative")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


BUILD_POLL_POLICY = RetryPolicy(interval=10.0, max_attempts=10)
RATE_LIMIT_POLICY = RetryPolicy(interval=10.0, max_attempts=10, retryable=rate_limited)
WITHDRAWAL_POLICY = RetryPolicy(interval=60.0, max_attempts=10, retryable=unless_status(200))


def retry_call(
    call: Callable[[], Any],
    policy: RetryPolicy = RATE_LIMIT_POLICY,
    name: str = "operation",
) -> PollOutcome:
    """
    Issue ``call`` and retry it while it fails with a retryable error.

    The call is re-issued unchanged after sleeping ``policy.interval``.

    Returns:
        READY with the response on success, FAILED with the error when the
        error is not retryable, PENDING with the last error when the
        attempt budget runs out

    """
    attempts = 0
    while True:
        attempts += 1
        try:
            response = call()
        except APIError as error:
            if not policy.retryable(error):
                logger.warning(
                    "operation_failed", operation=name, status=error.status, message=error.message, attempts=attempts
                )
                return PollOutcome(PollState.FAILED, error=error, attempts=attempts)
            if attempts >= policy.max_attempts:
                logger.warning(
                    "retry_budget_exhausted", operation=name, status=error.status, attempts=attempts
                )
                return PollOutcome(PollState.PENDING, error=error, attempts=attempts)
            logger.info(
                "operation_retry_scheduled",
                operation=name,
                status=error.status,
                message=error.message,
                sleep_seconds=policy.interval,
            )
            time.sleep(policy.interval)
            continue
        return PollOutcome(PollState.READY, response=response, attempts=attempts)


def poll_until(
    check: Callable[[], Any],
    target: PollTarget,
    policy: RetryPolicy = BUILD_POLL_POLICY,
    rate_limit: RetryPolicy = RATE_LIMIT_POLICY,
) -> PollOutcome:
    """
    Re-issue a status check until ``target`` reaches a terminal status.

    Each check goes through ``retry_call`` with ``rate_limit``, whose budget
    is separate from ``policy.max_attempts``.

    Returns:
        READY or FAILED once the status is terminal, FAILED with the error
        if a check fails, PENDING with the last response when
        ``policy.max_attempts`` checks did not reach a terminal status

    """
    response: Any = None
    status: str | None = None
    for attempt in range(1, policy.max_attempts + 1):
        outcome = retry_call(check, rate_limit, name=f"{target.name} status")
        if outcome.state is not PollState.READY:
            outcome.attempts = attempt
            return outcome

        response = outcome.response
        status = target.status_of(response)
        state = target.classify(status)
        if state is PollState.READY:
            logger.info("poll_ready", target=target.name, status=status, attempts=attempt)
            return PollOutcome(state, response=response, attempts=attempt, status=status)
        if state is PollState.FAILED:
            logger.warning("poll_failed", target=target.name, status=status, attempts=attempt)
            return PollOutcome(state, response=response, attempts=attempt, status=status)

        if attempt < policy.max_attempts:
            logger.info(
                "poll_pending", target=target.name, status=status, attempt=attempt, sleep_seconds=policy.interval
            )
            time.sleep(policy.interval)

    logger.warning("poll_budget_exhausted", target=target.name, status=status, attempts=policy.max_attempts)
    return PollOutcome(PollState.PENDING, response=response, attempts=policy.max_attempts, status=status)
