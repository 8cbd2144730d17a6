"""
Bounded-time polling of eventually-consistent state.

Everything the harness waits on (the proxy binding its port, the discovery
backend answering its liveness check, a deployment converging, a route
becoming visible) is observed by repeatedly calling an idempotent
operation until a predicate holds or a deadline passes.

Errors raised by the operation are never fatal here: a refused connection
simply means "not yet". Only the caller decides whether a timeout fails
the test.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

import requests

from .errors import PollTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 0.1
DEFAULT_REQUEST_TIMEOUT = 5.0

ResponseCondition = Callable[[requests.Response], bool]


class PollStatus(Enum):
    """Final state of a bounded wait."""

    SUCCESS = "success"
    TIMEOUT = "timeout"
    TRANSPORT_ERROR = "transport_error"


@dataclass
class PollOutcome:
    """
    Result of one bounded-time predicate evaluation.

    TRANSPORT_ERROR is reported when the deadline passed and the final
    attempt raised; TIMEOUT when the final attempt returned a result that
    did not satisfy the predicate.
    """

    status: PollStatus
    attempts: int
    elapsed: float
    last_result: Any = None
    last_error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status is PollStatus.SUCCESS

    def describe(self) -> str:
        if self.last_error is not None:
            return f"last error: {self.last_error!r}"
        if isinstance(self.last_result, requests.Response):
            return f"last status: {self.last_result.status_code}"
        return f"last result: {self.last_result!r}"


def poll_until(
    operation: Callable[[], Any],
    predicate: Callable[[Any], bool],
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> PollOutcome:
    """
    Invoke operation until predicate(result) holds or timeout elapses.

    At least one attempt is always made. An attempt succeeds only if it
    completes within the timeout; no attempt is started after the deadline.

    Args:
        operation: Idempotent callable producing the observed value
        predicate: Success condition over the operation's result
        timeout: Total time budget in seconds
        interval: Fixed delay between attempts in seconds
        clock: Monotonic time source
        sleep: Delay function

    Returns:
        PollOutcome describing success or the last observed failure

    Raises:
        ValueError: If timeout is negative or interval is not positive
    """
    if timeout < 0:
        raise ValueError("Timeout must not be negative")
    if interval <= 0:
        raise ValueError("Interval must be positive")

    start = clock()
    deadline = start + timeout
    attempts = 0
    last_result = None
    last_error = None

    while True:
        attempts += 1
        satisfied = False
        try:
            last_result = operation()
            last_error = None
            satisfied = bool(predicate(last_result))
        except Exception as e:
            last_error = e
            logger.debug(f"Attempt {attempts} failed: {e!r}")

        now = clock()
        elapsed = now - start
        if satisfied and elapsed <= timeout:
            return PollOutcome(PollStatus.SUCCESS, attempts, elapsed, last_result)

        remaining = deadline - now
        if satisfied or remaining <= 0:
            break
        sleep(min(interval, remaining))
        if clock() > deadline:
            break

    status = PollStatus.TRANSPORT_ERROR if last_error is not None else PollStatus.TIMEOUT
    return PollOutcome(status, attempts, clock() - start, last_result, last_error)


def wait_until(
    operation: Callable[[], Any],
    predicate: Callable[[Any], bool],
    timeout: float,
    interval: float = DEFAULT_INTERVAL,
    description: str = "condition",
    **kwargs: Any,
) -> Any:
    """Like poll_until, but return the satisfying result or raise PollTimeoutError."""
    outcome = poll_until(operation, predicate, timeout, interval, **kwargs)
    if not outcome.succeeded:
        raise PollTimeoutError(
            f"Timed out after {timeout}s waiting for {description} "
            f"({outcome.attempts} attempts, {outcome.describe()})",
            outcome,
        )
    return outcome.last_result


def status_code_is(status_code: int) -> ResponseCondition:
    """Condition satisfied when the response carries the given status code."""

    def condition(response: requests.Response) -> bool:
        return response.status_code == status_code

    condition.__name__ = f"status_code_is({status_code})"
    return condition


def body_contains(text: str) -> ResponseCondition:
    """Condition satisfied when the response body contains text."""

    def condition(response: requests.Response) -> bool:
        return text in response.text

    condition.__name__ = f"body_contains({text!r})"
    return condition


def get_request(
    url: str,
    timeout: float,
    *conditions: ResponseCondition,
    interval: float = DEFAULT_INTERVAL,
    session: Optional[requests.Session] = None,
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> requests.Response:
    """
    Poll GET url until every condition holds on the response.

    Connection errors and other request exceptions count as "not yet".

    Returns:
        The first response satisfying all conditions

    Raises:
        PollTimeoutError: If no such response arrives within timeout
    """
    http = session or requests

    def operation() -> requests.Response:
        return http.get(url, timeout=request_timeout)

    def predicate(response: requests.Response) -> bool:
        return all(condition(response) for condition in conditions)

    names = ", ".join(getattr(c, "__name__", repr(c)) for c in conditions) or "any response"
    return wait_until(
        operation,
        predicate,
        timeout,
        interval,
        description=f"GET {url} [{names}]",
    )
