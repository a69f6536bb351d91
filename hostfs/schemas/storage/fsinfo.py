# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass, field
from typing import List, Optional

from hostfs.schemas.storage.fs import Fs


@dataclass
class FsInfoPayload:
    collection_unixtime: int
    hostname: str
    fs: Fs
    mountpoint: Optional[str] = None
    labels: List[str] = field(default_factory=list)
