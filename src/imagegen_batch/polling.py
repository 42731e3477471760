from __future__ import annotations

import time
from typing import Callable, TypeVar

from tenacity import RetryError, Retrying, retry_if_result, stop_after_attempt, wait_fixed

from .errors import PollTimeoutError

T = TypeVar("T")


def poll_until(
    check: Callable[[], T],
    is_terminal: Callable[[T], bool],
    *,
    interval: float,
    max_attempts: int,
    description: str = "job",
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call ``check`` until ``is_terminal`` accepts its result.

    Exceptions raised by ``check`` propagate immediately; only non-terminal
    results are retried. Raises :class:`PollTimeoutError` once ``max_attempts``
    checks have returned a non-terminal status.
    """
    retrying = Retrying(
        retry=retry_if_result(lambda result: not is_terminal(result)),
        wait=wait_fixed(interval),
        stop=stop_after_attempt(max_attempts),
        sleep=sleep,
    )
    try:
        return retrying(check)
    except RetryError as exc:
        raise PollTimeoutError(
            f"{description} did not reach a terminal status after {max_attempts} polls"
        ) from exc
