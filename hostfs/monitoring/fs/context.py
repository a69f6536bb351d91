# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import os
from dataclasses import dataclass, field
from typing import Collection, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class DockerContext:
    root: Optional[str] = None
    driver: Optional[str] = None
    driver_status: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class FsContext:
    """Host specific knobs for partition discovery.

    `extra_mountpoints` are kept even when they are backed by a pseudo filesystem,
    e.g. a container storage root on tmpfs. The docker root is always treated as if
    it were listed there.
    """

    root_dir: str = "/"
    docker: DockerContext = field(default_factory=DockerContext)
    extra_mountpoints: FrozenSet[str] = frozenset()

    @property
    def whitelisted_mountpoints(self) -> Collection[str]:
        """Normalized, so they compare equal to mountinfo paths."""
        mountpoints = set(self.extra_mountpoints)
        if self.docker.root is not None:
            mountpoints.add(self.docker.root)
        return {os.path.normpath(m) for m in mountpoints}


def parse_driver_status(items: Collection[str]) -> Dict[str, str]:
    """Parse `KEY=VALUE` items as given on the command line.

    >>> parse_driver_status(["Pool Name=docker-pool", "Data file="])
    {'Pool Name': 'docker-pool', 'Data file': ''}
    """
    status = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep:
            raise ValueError(f"Expected KEY=VALUE, but got {item!r}")
        status[key.strip()] = value.strip()
    return status
