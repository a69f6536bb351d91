# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass


@dataclass(frozen=True)
class Partition:
    mountpoint: str
    major: int
    minor: int
    fs_type: str
    # in 512-byte sectors; only known for device-mapper thin pools
    block_size: int = 0
