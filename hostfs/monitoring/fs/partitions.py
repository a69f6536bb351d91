# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Collection, Dict, Mapping, Optional, Protocol, Tuple

from hostfs.monitoring.fs.client import FsClient
from hostfs.monitoring.fs.constants import (
    DEV_DIR,
    DEV_MAPPER_DIR,
    DOCKER_DRIVER_DEVICE_MAPPER,
    DOCKER_DRIVER_STATUS_POOL_NAME,
    LABEL_DOCKER_IMAGES,
    LABEL_SYSTEM_ROOT,
    PARTITION_REGEX,
)
from hostfs.monitoring.fs.context import FsContext
from hostfs.monitoring.fs.devicemapper import parse_thin_pool_table
from hostfs.monitoring.fs.devnum import major, minor
from hostfs.monitoring.fs.errors import FsInfoError, NotFoundError
from hostfs.schemas.storage.fs import DeviceInfo, FsType
from hostfs.schemas.storage.mount import MountInfo
from hostfs.schemas.storage.partition import Partition

logger = logging.getLogger(__name__)

MajorMinor = Tuple[int, int]


class PartitionCache(Protocol):
    """Monitoring relevant partitions of the host, indexed by device, major/minor
    and label.
    """

    def refresh(self) -> None:
        """Rediscover partitions and labels. On failure the previous state is kept and
        the exception propagates.
        """

    def clear(self) -> None: ...

    def partition_for_device(self, device: str) -> Partition:
        """Raises NotFoundError if `device` is not cached."""

    def device_info_for_major_minor(self, major: int, minor: int) -> DeviceInfo:
        """Raises NotFoundError if no cached device has the given numbers."""

    def apply_over_partitions(self, f: Callable[[str, Partition], None]) -> None:
        """Call `f` on every (device, partition). The first exception `f` raises stops
        the iteration and propagates.
        """

    def device_name_for_label(self, label: str) -> str:
        """Raises NotFoundError if `label` is not cached."""

    def apply_over_labels(self, f: Callable[[str, str], None]) -> None:
        """Call `f` on every (label, device). The first exception `f` raises stops
        the iteration and propagates.
        """


@dataclass(frozen=True)
class Snapshot:
    partitions: Mapping[str, Partition]
    labels: Mapping[str, str]
    devices_by_major_minor: Mapping[MajorMinor, DeviceInfo]


EMPTY_SNAPSHOT = Snapshot(
    partitions=MappingProxyType({}),
    labels=MappingProxyType({}),
    devices_by_major_minor=MappingProxyType({}),
)


class PartitionCacheImpl(PartitionCache):
    """Readers always see one complete snapshot. `refresh` builds the next snapshot
    off to the side and publishes it with a single assignment.
    """

    def __init__(self, context: FsContext, client: FsClient):
        self.context = context
        self.client = client
        self._snapshot = EMPTY_SNAPSHOT
        self._refresh_lock = threading.Lock()

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def refresh(self) -> None:
        with self._refresh_lock:
            snapshot = self._build_snapshot()
            self._snapshot = snapshot
        logger.debug(
            f"Refreshed partition cache: {len(snapshot.partitions)} partitions, {len(snapshot.labels)} labels"
        )

    def clear(self) -> None:
        with self._refresh_lock:
            self._snapshot = EMPTY_SNAPSHOT

    def partition_for_device(self, device: str) -> Partition:
        try:
            return self._snapshot.partitions[device]
        except KeyError:
            raise NotFoundError(f"partition for device {device!r} not found") from None

    def device_info_for_major_minor(self, major: int, minor: int) -> DeviceInfo:
        try:
            return self._snapshot.devices_by_major_minor[(major, minor)]
        except KeyError:
            raise NotFoundError(
                f"device with major:minor {major}:{minor} not found"
            ) from None

    def apply_over_partitions(self, f: Callable[[str, Partition], None]) -> None:
        for device, partition in self._snapshot.partitions.items():
            f(device, partition)

    def device_name_for_label(self, label: str) -> str:
        try:
            return self._snapshot.labels[label]
        except KeyError:
            raise NotFoundError(f"device for label {label!r} not found") from None

    def apply_over_labels(self, f: Callable[[str, str], None]) -> None:
        for label, device in self._snapshot.labels.items():
            f(label, device)

    def _build_snapshot(self) -> Snapshot:
        partitions, resolved_devices = self._discover_partitions()
        thin_pool_device = self._add_thin_pool(partitions)

        devices_by_major_minor: Dict[MajorMinor, DeviceInfo] = {}
        for device, partition in partitions.items():
            key = (partition.major, partition.minor)
            if (taken := devices_by_major_minor.get(key)) is not None:
                logger.warning(
                    f"{device} has the same major:minor {key[0]}:{key[1]} as {taken.device}; keeping {taken.device}"
                )
                continue
            devices_by_major_minor[key] = DeviceInfo(
                device=device, major=partition.major, minor=partition.minor
            )

        labels: Dict[str, str] = {}
        for label, target in self.client.get_label_links().items():
            labels[label] = resolved_devices.get(target, target)
        self._add_dir_label(
            labels, LABEL_SYSTEM_ROOT, self.context.root_dir, devices_by_major_minor
        )
        if thin_pool_device is not None:
            labels[LABEL_DOCKER_IMAGES] = thin_pool_device
        elif self.context.docker.root is not None:
            self._add_dir_label(
                labels,
                LABEL_DOCKER_IMAGES,
                self.context.docker.root,
                devices_by_major_minor,
            )

        return Snapshot(
            partitions=MappingProxyType(partitions),
            labels=MappingProxyType(labels),
            devices_by_major_minor=MappingProxyType(devices_by_major_minor),
        )

    def _discover_partitions(self) -> Tuple[Dict[str, Partition], Dict[str, str]]:
        """Return the partitions keyed by mount source, and a mapping of resolved
        device node to mount source.
        """
        whitelist = self.context.whitelisted_mountpoints
        partitions: Dict[str, Partition] = {}
        resolved_devices: Dict[str, str] = {}
        for mount in self.client.get_all_mount_info():
            source = mount.mount_source
            if source in partitions:
                # bind mounts of a device we already have
                continue
            fs_type = self._fs_type_if_relevant(mount, whitelist, resolved_devices)
            if fs_type is None:
                continue
            mount_major, mount_minor = mount.major_minor
            partitions[source] = Partition(
                mountpoint=mount.mount_point.as_posix(),
                major=mount_major,
                minor=mount_minor,
                fs_type=fs_type,
            )
        return partitions, resolved_devices

    def _fs_type_if_relevant(
        self,
        mount: MountInfo,
        whitelist: Collection[str],
        resolved_devices: Dict[str, str],
    ) -> Optional[str]:
        if mount.filesystem_type == FsType.ZFS.value:
            return FsType.ZFS.value
        if mount.mount_point.as_posix() in whitelist:
            return mount.filesystem_type
        source = mount.mount_source
        if not source.startswith(DEV_DIR + "/"):
            return None
        resolved = self.client.resolve_device(source)
        if not PARTITION_REGEX.match(os.path.basename(resolved)):
            return None
        resolved_devices[resolved] = source
        return mount.filesystem_type

    def _add_thin_pool(self, partitions: Dict[str, Partition]) -> Optional[str]:
        docker = self.context.docker
        if docker.driver != DOCKER_DRIVER_DEVICE_MAPPER:
            return None
        pool = docker.driver_status.get(DOCKER_DRIVER_STATUS_POOL_NAME)
        if not pool:
            logger.warning(
                f"docker storage driver is {DOCKER_DRIVER_DEVICE_MAPPER} but the driver status has no '{DOCKER_DRIVER_STATUS_POOL_NAME}'"
            )
            return None
        try:
            table = parse_thin_pool_table(self.client.dmsetup_table(pool))
        except (FsInfoError, RuntimeError, OSError, subprocess.SubprocessError):
            logger.warning(
                f"Could not get docker devicemapper thin pool {pool!r}", exc_info=True
            )
            return None
        device = os.path.join(DEV_MAPPER_DIR, pool)
        partitions[device] = Partition(
            mountpoint="",
            major=table.major,
            minor=table.minor,
            fs_type=FsType.DEVICE_MAPPER.value,
            block_size=table.data_block_size,
        )
        return device

    def _add_dir_label(
        self,
        labels: Dict[str, str],
        label: str,
        dir: str,
        devices_by_major_minor: Mapping[MajorMinor, DeviceInfo],
    ) -> None:
        try:
            dev = self.client.stat_dev(dir)
        except OSError:
            logger.warning(f"Could not stat {dir} for label '{label}'", exc_info=True)
            return
        device_info = devices_by_major_minor.get((major(dev), minor(dev)))
        if device_info is None:
            logger.warning(
                f"{dir} is not on a known partition ({major(dev)}:{minor(dev)}); not labelling it '{label}'"
            )
            return
        labels[label] = device_info.device
