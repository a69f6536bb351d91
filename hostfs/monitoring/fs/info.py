# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
from dataclasses import replace
from typing import Callable, Collection, List, Optional, Protocol

from hostfs.monitoring.fs.client import FsCliClient, FsClient
from hostfs.monitoring.fs.constants import DISKSTATS_PATH
from hostfs.monitoring.fs.context import FsContext
from hostfs.monitoring.fs.devnum import major, minor
from hostfs.monitoring.fs.diskstats import get_disk_stats_map
from hostfs.monitoring.fs.errors import StatError
from hostfs.monitoring.fs.partitions import PartitionCache, PartitionCacheImpl
from hostfs.monitoring.fs.stats import FsStatsCache, FsStatsCacheImpl
from hostfs.monitoring.fs.usage import get_dir_usage
from hostfs.schemas.storage.fs import DeviceInfo, Fs
from hostfs.schemas.storage.partition import Partition

logger = logging.getLogger(__name__)

PartitionFilter = Callable[[str, Partition], bool]


class FsInfo(Protocol):
    def refresh_cache(self, strict: bool = False) -> None:
        """Rediscover partitions. Failures are logged and the previous partitions are
        kept, unless `strict`, in which case the exception propagates.
        """

    def clear_cache(self) -> None:
        """Forget cached filesystem statistics."""

    def get_global_fs_info(self, with_io_stats: bool) -> List[Fs]:
        """Capacity and free space, in bytes, of all the filesystems on the host."""

    def get_fs_info_for_mounts(
        self, mount_set: Collection[str], with_io_stats: bool
    ) -> List[Fs]:
        """Capacity and free space, in bytes, of the filesystems mounted at the given
        mountpoints.
        """

    def get_fs_info_for_devices(
        self, device_set: Collection[str], with_io_stats: bool
    ) -> List[Fs]:
        """Capacity and free space, in bytes, of the given devices."""

    def get_dir_usage(self, dir: str, timeout_secs: float) -> int:
        """Number of bytes occupied by `dir`."""

    def get_dir_fs_device(self, dir: str) -> DeviceInfo:
        """The block device info of the filesystem on which `dir` resides."""

    def get_device_for_label(self, label: str) -> str: ...

    def get_labels_for_device(self, device: str) -> List[str]: ...

    def get_mountpoint_for_device(self, device: str) -> str: ...


class RealFsInfo(FsInfo):
    def __init__(
        self,
        context: FsContext,
        *,
        client: Optional[FsClient] = None,
        partition_cache: Optional[PartitionCache] = None,
        fs_stats_cache: Optional[FsStatsCache] = None,
        diskstats_path: str = DISKSTATS_PATH,
        strict: bool = False,
    ):
        """The partition cache is refreshed right away, see `refresh_cache` for
        `strict`.
        """
        self.client = FsCliClient() if client is None else client
        self.partition_cache = (
            PartitionCacheImpl(context, self.client)
            if partition_cache is None
            else partition_cache
        )
        self.fs_stats_cache = (
            FsStatsCacheImpl(self.client) if fs_stats_cache is None else fs_stats_cache
        )
        self.diskstats_path = diskstats_path

        self.refresh_cache(strict=strict)
        logger.info("Listing filesystem partitions:")
        self.partition_cache.apply_over_partitions(
            lambda device, partition: logger.info(f"{device}: {partition}")
        )

    def refresh_cache(self, strict: bool = False) -> None:
        try:
            self.partition_cache.refresh()
        except Exception:
            if strict:
                raise
            logger.warning("Failed to refresh partition cache", exc_info=True)

    def clear_cache(self) -> None:
        self.fs_stats_cache.clear()

    def get_device_for_label(self, label: str) -> str:
        return self.partition_cache.device_name_for_label(label)

    def get_labels_for_device(self, device: str) -> List[str]:
        labels: List[str] = []

        def collect(label: str, device_for_label: str) -> None:
            if device == device_for_label:
                labels.append(label)

        self.partition_cache.apply_over_labels(collect)
        return labels

    def get_mountpoint_for_device(self, device: str) -> str:
        return self.partition_cache.partition_for_device(device).mountpoint

    def _get_filtered_fs_info(
        self, keep: PartitionFilter, with_io_stats: bool
    ) -> List[Fs]:
        filesystems: List[Fs] = []

        def stat_partition(device: str, partition: Partition) -> None:
            if not keep(device, partition):
                return
            try:
                stats = self.fs_stats_cache.fs_stats(device, partition)
            except StatError:
                # move on to the next filesystem
                logger.error(f"Stat fs for {device!r} failed", exc_info=True)
                return
            filesystems.append(
                Fs(
                    device_info=DeviceInfo(
                        device=device, major=partition.major, minor=partition.minor
                    ),
                    type=stats.type,
                    capacity=stats.capacity,
                    free=stats.free,
                    available=stats.available,
                    inodes=stats.inodes,
                    inodes_free=stats.inodes_free,
                )
            )

        self.partition_cache.apply_over_partitions(stat_partition)

        if not with_io_stats:
            return filesystems

        # TODO: ecryptfs and overlay filesystems should report the disk stats of
        # the lower layer's device instead of being left without any.
        disk_stats_map = get_disk_stats_map(self.diskstats_path)
        return [
            replace(fs, disk_stats=disk_stats_map.get(fs.device_info.device))
            for fs in filesystems
        ]

    def get_global_fs_info(self, with_io_stats: bool) -> List[Fs]:
        return self._get_filtered_fs_info(lambda _d, _p: True, with_io_stats)

    def get_fs_info_for_mounts(
        self, mount_set: Collection[str], with_io_stats: bool
    ) -> List[Fs]:
        return self._get_filtered_fs_info(
            lambda _, partition: partition.mountpoint in mount_set, with_io_stats
        )

    def get_fs_info_for_devices(
        self, device_set: Collection[str], with_io_stats: bool
    ) -> List[Fs]:
        return self._get_filtered_fs_info(
            lambda device, _: device in device_set, with_io_stats
        )

    def get_dir_fs_device(self, dir: str) -> DeviceInfo:
        try:
            dev = self.client.stat_dev(dir)
        except OSError as e:
            raise StatError(f"stat failed on {dir} with error: {e}") from e
        return self.partition_cache.device_info_for_major_minor(major(dev), minor(dev))

    def get_dir_usage(self, dir: str, timeout_secs: float) -> int:
        return get_dir_usage(dir, timeout_secs)
