# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Protocol

from hostfs.monitoring.fs.constants import DISK_BY_LABEL_DIR, MOUNTINFO_PATH
from hostfs.monitoring.utils.shell import _gen_lines, _popen
from hostfs.schemas.storage.mount import MountInfo

logger = logging.getLogger(__name__)

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")
_HEX_ESCAPE = re.compile(r"\\x([0-9a-fA-F]{2})")


def _unescape_octal(s: str) -> str:
    """The kernel escapes space, tab, newline and backslash in mountinfo as \\ooo."""
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), s)


def _unescape_hex(s: str) -> str:
    """udev escapes unsafe characters of /dev/disk/by-label names as \\xhh."""
    return _HEX_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), s)


def as_mount_info(line: str) -> MountInfo:
    mount_info = line.split()
    separator_idx = mount_info.index("-")
    return MountInfo(
        mount_id=int(mount_info[0]),
        parent_id=int(mount_info[1]),
        device_id=mount_info[2],
        root=Path(_unescape_octal(mount_info[3])),
        mount_point=Path(_unescape_octal(mount_info[4])),
        mount_options=mount_info[5].split(","),
        optional_fields=mount_info[6:separator_idx],
        filesystem_type=mount_info[separator_idx + 1],
        mount_source=_unescape_octal(mount_info[separator_idx + 2]),
        super_options=mount_info[separator_idx + 3].split(","),
    )


class FsClient(Protocol):
    """A low-level client for the host state filesystem information is built from."""

    def get_all_mount_info(self) -> Iterable[MountInfo]:
        """Get /proc/self/mountinfo data"""

    def get_label_links(self) -> Dict[str, str]:
        """Get a mapping of filesystem label to the device path the label points at."""

    def resolve_device(self, path: str) -> str:
        """Resolve symlinks such as /dev/mapper/<name> to the device node."""

    def stat_dev(self, path: str) -> int:
        """Get `st_dev` of `path`. Raises OSError on failure."""

    def statvfs(self, path: str) -> os.statvfs_result:
        """Raises OSError on failure."""

    def dmsetup_table(self, name: str) -> str:
        """Get the `dmsetup table` line of a device-mapper device.

        If an error occurs during execution, subprocess.CalledProcessError or
        RuntimeError should be raised.
        """

    def dmsetup_status(self, name: str) -> str:
        """Get the `dmsetup status` line of a device-mapper device.

        If an error occurs during execution, subprocess.CalledProcessError or
        RuntimeError should be raised.
        """

    def zfs_get(self, dataset: str, properties: List[str]) -> List[str]:
        """Get the parsable (bytes) values of `properties` of a ZFS dataset, in order.

        If an error occurs during execution, subprocess.CalledProcessError or
        RuntimeError should be raised.
        """


class FsCliClient(FsClient):
    def __init__(
        self,
        *,
        mountinfo_path: str = MOUNTINFO_PATH,
        by_label_dir: str = DISK_BY_LABEL_DIR,
        popen: Callable[[List[str]], "subprocess.Popen[str]"] = _popen,
    ):
        self.mountinfo_path = mountinfo_path
        self.by_label_dir = by_label_dir
        self.__popen = popen

    def get_all_mount_info(self) -> Iterable[MountInfo]:
        # mountpoints are raw bytes, only whitespace and backslash are escaped
        with open(
            self.mountinfo_path, "r", encoding="utf-8", errors="surrogateescape"
        ) as file:
            for line in file:
                if line.strip():
                    yield as_mount_info(line)

    def get_label_links(self) -> Dict[str, str]:
        try:
            names = os.listdir(self.by_label_dir)
        except FileNotFoundError:
            logger.debug(f"{self.by_label_dir} does not exist, no labels to read")
            return {}
        labels = {}
        for name in sorted(names):
            link = os.path.join(self.by_label_dir, name)
            labels[_unescape_hex(name)] = os.path.realpath(link)
        return labels

    def resolve_device(self, path: str) -> str:
        return os.path.realpath(path)

    def stat_dev(self, path: str) -> int:
        return os.stat(path).st_dev

    def statvfs(self, path: str) -> os.statvfs_result:
        return os.statvfs(path)

    def dmsetup_table(self, name: str) -> str:
        return "\n".join(_gen_lines(self.__popen(["dmsetup", "table", name])))

    def dmsetup_status(self, name: str) -> str:
        return "\n".join(_gen_lines(self.__popen(["dmsetup", "status", name])))

    def zfs_get(self, dataset: str, properties: List[str]) -> List[str]:
        cmd = ["zfs", "get", "-Hp", "-o", "value", ",".join(properties), dataset]
        return [line.strip() for line in _gen_lines(self.__popen(cmd))]
