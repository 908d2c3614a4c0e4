"""Fixed-interval polling shared by the deploy and test stages.

Salesforce offers no push notification for deploy or test completion, so
both stages query a status endpoint, sleep, and query again. The loop is
synchronous and bounded by an optional deadline.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from apexci.core.errors import PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def poll_until(
    fetch: Callable[[], T],
    is_done: Callable[[T], bool],
    *,
    poll_interval: float = 5,
    timeout: float | None = None,
    on_poll: Callable[[T], None] | None = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    what: str = "operation",
) -> T:
    """
    Block until `is_done(fetch())` is true and return the last fetched value.

    The first query happens immediately; if it is already done the function
    returns without sleeping.

    Args:
        fetch: Queries the current state.
        is_done: Decides whether the state is terminal.
        poll_interval: Seconds to wait between queries.
        timeout: Seconds after which PollTimeoutError is raised. None polls
            indefinitely.
        on_poll: Called with every non-terminal state before sleeping.
        sleep: Sleep function (injectable for tests).
        clock: Monotonic clock (injectable for tests).
        what: Label used in log and error messages.

    Raises:
        PollTimeoutError: If the deadline passes before a terminal state.
    """
    if poll_interval < 0:
        raise ValueError("poll_interval must be >= 0")

    deadline = clock() + timeout if timeout else None
    attempt = 0

    while True:
        attempt += 1
        state = fetch()
        if is_done(state):
            logger.debug("%s finished after %d poll(s)", what, attempt)
            return state

        if on_poll is not None:
            on_poll(state)

        if deadline is not None and clock() + poll_interval > deadline:
            raise PollTimeoutError(
                f"Timed out waiting for {what} after {timeout:g} seconds"
            )

        logger.debug("%s still in progress, sleeping %ss", what, poll_interval)
        sleep(poll_interval)
