# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Packed device numbers (`st_dev`, `st_rdev`).

The layout is Linux's "new" dev_t encoding restricted to 12 bits of major and
20 bits of minor:

    bits  0-7   minor, low byte
    bits  8-19  major
    bits 20-31  minor, high bits

>>> major(0x0801), minor(0x0801)
(8, 1)
>>> mkdev(8, 17)
2065
"""


def major(dev: int) -> int:
    return (dev >> 8) & 0xFFF


def minor(dev: int) -> int:
    return (dev & 0xFF) | ((dev >> 12) & 0xFFF00)


def mkdev(major: int, minor: int) -> int:
    return (minor & 0xFF) | ((major & 0xFFF) << 8) | ((minor & ~0xFF) << 12)
