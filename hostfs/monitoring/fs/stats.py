# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
import subprocess
import threading
from typing import Dict, Mapping, Optional, Protocol

from hostfs.monitoring.fs.client import FsClient
from hostfs.monitoring.fs.constants import SECTOR_SIZE
from hostfs.monitoring.fs.devicemapper import parse_thin_pool_status
from hostfs.monitoring.fs.errors import FsInfoError, StatError
from hostfs.schemas.storage.fs import FsStats, FsType
from hostfs.schemas.storage.partition import Partition

logger = logging.getLogger(__name__)


class FsStatsCache(Protocol):
    def fs_stats(self, device: str, partition: Partition) -> FsStats:
        """Get the statistics of the filesystem of `device` mounted as described by
        `partition`. Raises StatError on failure.
        """

    def clear(self) -> None: ...


class Statter(Protocol):
    """Computes statistics for one kind of filesystem."""

    def stat(self, device: str, partition: Partition) -> FsStats: ...


class ZfsStatter(Statter):
    """The device of a ZFS mount is the dataset name. ZFS has no fixed inode table."""

    def __init__(self, client: FsClient):
        self.client = client

    def stat(self, device: str, partition: Partition) -> FsStats:
        values = self.client.zfs_get(device, ["used", "available"])
        if len(values) != 2:
            raise StatError(f"Expected used and available of {device}, got {values}")
        used, available = (int(v) for v in values)
        return FsStats(
            type=FsType.ZFS,
            capacity=used + available,
            free=available,
            available=available,
            inodes=0,
            inodes_free=0,
        )


class DeviceMapperStatter(Statter):
    """Thin pool usage, counted in data blocks of `partition.block_size` sectors."""

    def __init__(self, client: FsClient):
        self.client = client

    def stat(self, device: str, partition: Partition) -> FsStats:
        pool = os.path.basename(device)
        status = parse_thin_pool_status(self.client.dmsetup_status(pool))
        block_bytes = partition.block_size * SECTOR_SIZE
        free = (status.total_data_blocks - status.used_data_blocks) * block_bytes
        return FsStats(
            type=FsType.DEVICE_MAPPER,
            capacity=status.total_data_blocks * block_bytes,
            free=free,
            available=free,
            inodes=0,
            inodes_free=0,
        )


class VfsStatter(Statter):
    def __init__(self, client: FsClient):
        self.client = client

    def stat(self, device: str, partition: Partition) -> FsStats:
        st = self.client.statvfs(partition.mountpoint)
        return FsStats(
            type=FsType.VFS,
            capacity=st.f_blocks * st.f_frsize,
            free=st.f_bfree * st.f_frsize,
            available=st.f_bavail * st.f_frsize,
            inodes=st.f_files,
            inodes_free=st.f_ffree,
        )


def default_statters(client: FsClient) -> Dict[str, Statter]:
    return {
        FsType.ZFS.value: ZfsStatter(client),
        FsType.DEVICE_MAPPER.value: DeviceMapperStatter(client),
    }


class FsStatsCacheImpl(FsStatsCache):
    """Caches statistics per device until `clear` is called.

    Partitions whose fs type has no entry in `statters` use `fallback`.
    """

    def __init__(
        self,
        client: FsClient,
        *,
        statters: Optional[Mapping[str, Statter]] = None,
        fallback: Optional[Statter] = None,
    ):
        self.statters = default_statters(client) if statters is None else statters
        self.fallback = VfsStatter(client) if fallback is None else fallback
        self._cache: Dict[str, FsStats] = {}
        # bumped by `clear`, so results computed before a clear are not cached
        self._generation = 0
        self._lock = threading.Lock()

    def fs_stats(self, device: str, partition: Partition) -> FsStats:
        with self._lock:
            cached = self._cache.get(device)
            generation = self._generation
        if cached is not None:
            return cached

        statter = self.statters.get(partition.fs_type, self.fallback)
        try:
            stats = statter.stat(device, partition)
        except StatError:
            raise
        except (
            FsInfoError,
            OSError,
            RuntimeError,
            ValueError,
            subprocess.SubprocessError,
        ) as e:
            raise StatError(
                f"Could not get {partition.fs_type} stats of {device} mounted on '{partition.mountpoint}': {e}"
            ) from e

        with self._lock:
            if generation == self._generation:
                self._cache[device] = stats
        return stats

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._generation += 1
