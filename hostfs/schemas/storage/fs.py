# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Optional, Union


class FsType(str, Enum):
    """Filesystem tags which select how capacity and inode numbers are computed.

    Anything which is not a ZFS dataset or a device-mapper thin pool is reported as
    `VFS`, i.e. the numbers come from `statvfs(3)` on the mountpoint.
    """

    ZFS = "zfs"
    DEVICE_MAPPER = "devicemapper"
    VFS = "vfs"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DeviceInfo:
    device: str
    major: int
    minor: int


@dataclass(frozen=True)
class DiskStats:
    """Counters of one line of /proc/diskstats.

    https://www.kernel.org/doc/Documentation/ABI/testing/procfs-diskstats
    """

    reads_completed: int
    reads_merged: int
    sectors_read: int
    read_time: int
    writes_completed: int
    writes_merged: int
    sectors_written: int
    write_time: int
    io_in_progress: int
    io_time: int
    weighted_io_time: int


class FsStats(NamedTuple):
    type: Union[FsType, str]
    capacity: int
    free: int
    available: int
    inodes: int
    inodes_free: int


@dataclass(frozen=True)
class Fs:
    """Capacity, inode and (optionally) I/O statistics of a single filesystem.

    Sizes are in bytes.
    """

    device_info: DeviceInfo
    type: Union[FsType, str]
    capacity: int
    free: int
    available: int
    inodes: int
    inodes_free: int
    disk_stats: Optional[DiskStats] = None
