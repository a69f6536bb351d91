# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import time
from typing import Protocol


class Clock(Protocol):
    """An object that can tell and pass time."""

    def unixtime(self) -> int:
        """Get the current unixtime."""

    def monotonic(self) -> float:
        """Get the current time. Only differences between two calls are meaningful:
        they are the seconds that passed between the calls.
        """

    def sleep(self, duration_sec: float) -> None:
        """Block until the given duration has passed."""


class ClockImpl:
    def unixtime(self) -> int:
        return int(time.time())

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, duration_sec: float) -> None:
        time.sleep(duration_sec)
