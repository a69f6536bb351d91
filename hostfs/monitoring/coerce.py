# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from typing import Any, Dict

from typeguard import typechecked


@typechecked
def ensure_dict(x: Any) -> Dict[str, Any]:
    return x


UINT64_MAX = 2**64 - 1


def parse_uint64(s: str) -> int:
    """Parse a kernel style unsigned 64 bit decimal counter.

    Unlike `int`, signs, underscores and non-ASCII digits are rejected.

    >>> parse_uint64("18446744073709551615")
    18446744073709551615
    >>> parse_uint64("+5")
    Traceback (most recent call last):
    ...
    ValueError: '+5' is not an unsigned decimal integer
    """
    if not (s.isascii() and s.isdigit()):
        raise ValueError(f"{s!r} is not an unsigned decimal integer")
    value = int(s)
    if value > UINT64_MAX:
        raise ValueError(f"{s} does not fit in 64 bits")
    return value
