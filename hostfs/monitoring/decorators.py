# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import operator
import time
from functools import wraps
from itertools import accumulate, chain, islice, repeat
from typing import Callable, Generator, Iterable, TypeVar, Union

from typing_extensions import ParamSpec

logger = logging.getLogger(__name__)


class Retry(Exception):
    """Raised if a retry should be attempted."""


class OutOfRetries(Exception):
    """Raised if there are no retries remaining."""


TOut_co = TypeVar("TOut_co", covariant=True)
P = ParamSpec("P")


def exponential_backoff(
    *, initial: int = 10, base: int = 2
) -> Generator[int, None, None]:
    yield from accumulate(repeat(base), func=operator.mul, initial=initial)


def retry(
    *,
    retry_schedule_factory: Callable[[], Iterable[int]] = lambda: islice(
        exponential_backoff(), 2
    ),
    sleep: Callable[[Union[float, int]], None] = time.sleep,
) -> Callable[[Callable[P, TOut_co]], Callable[P, TOut_co]]:
    """Call a function until it stops raising `Retry` or the schedule runs out.

    Exceptions not derived from `Retry` propagate to the caller immediately.

    Parameters:
        retry_schedule_factory: Produces the seconds to sleep before each retry. The
            function is called at most once more than the length of the schedule.
        sleep: Invoked with each entry of the schedule before retrying.

    Raises:
        OutOfRetries when the retry schedule is exhausted.
    """

    def decorator(f: Callable[P, TOut_co]) -> Callable[P, TOut_co]:
        @wraps(f)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> TOut_co:
            # None marks the last try
            retry_schedule = chain(retry_schedule_factory(), [None])
            for try_idx, sleep_sec in enumerate(retry_schedule):
                logger.debug(f"Try {try_idx} (zero-indexed)")
                try:
                    return f(*args, **kwargs)
                except Retry as e:
                    logger.debug("Got retryable exception.", exc_info=True)
                    if sleep_sec is None:
                        raise OutOfRetries() from e
                    sleep(sleep_sec)
            raise AssertionError(
                "Illegal state. The schedule always has a last entry, which returns or raises."
            )

        return wrapper

    return decorator
