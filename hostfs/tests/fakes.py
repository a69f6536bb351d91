# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import io
import subprocess
from collections import Counter
from dataclasses import dataclass, field
from importlib import resources
from typing import Dict, List, Mapping, NamedTuple, Optional

from hostfs.exporters import registry
from hostfs.monitoring.click import FsInfoOptions
from hostfs.monitoring.clock import Clock
from hostfs.monitoring.fs.client import as_mount_info
from hostfs.monitoring.fs.errors import ProcessError
from hostfs.monitoring.fs.info import FsInfo, RealFsInfo
from hostfs.monitoring.sink.protocol import SinkImpl
from hostfs.monitoring.sink.utils import Factory
from hostfs.schemas.storage.mount import MountInfo
from hostfs.tests import data


def read_data(name: str) -> str:
    return resources.files(data).joinpath(name).read_text()


def sample_mounts(name: str = "sample-proc-self-mountinfo.txt") -> List[MountInfo]:
    return [as_mount_info(line) for line in read_data(name).splitlines() if line]


@dataclass
class FakeClock:
    __current_time: float = field(init=False, default=0.0)
    __current_unixtime: int = field(init=False, default=1668197951)

    def unixtime(self) -> int:
        return self.__current_unixtime

    def monotonic(self) -> float:
        return self.__current_time

    def sleep(self, duration_sec: float) -> None:
        self.__current_time += max(0.0, duration_sec)


class FakeStatvfs(NamedTuple):
    f_frsize: int
    f_blocks: int
    f_bfree: int
    f_bavail: int
    f_files: int
    f_ffree: int


def _not_found(path: str) -> FileNotFoundError:
    return FileNotFoundError(2, "No such file or directory", path)


@dataclass
class FakeFsClient:
    mounts: List[MountInfo] = field(default_factory=sample_mounts)
    mount_error: Optional[Exception] = None
    label_links: Dict[str, str] = field(default_factory=dict)
    symlinks: Dict[str, str] = field(
        default_factory=lambda: {"/dev/mapper/vg0-srv": "/dev/dm-2"}
    )
    st_devs: Dict[str, int] = field(default_factory=dict)
    statvfs_results: Dict[str, FakeStatvfs] = field(default_factory=dict)
    dmsetup_tables: Dict[str, str] = field(default_factory=dict)
    dmsetup_statuses: Dict[str, str] = field(default_factory=dict)
    zfs_values: Dict[str, List[str]] = field(default_factory=dict)
    calls: Counter = field(default_factory=Counter)

    def get_all_mount_info(self) -> List[MountInfo]:
        self.calls["get_all_mount_info"] += 1
        if self.mount_error is not None:
            raise self.mount_error
        return list(self.mounts)

    def get_label_links(self) -> Dict[str, str]:
        return dict(self.label_links)

    def resolve_device(self, path: str) -> str:
        return self.symlinks.get(path, path)

    def stat_dev(self, path: str) -> int:
        try:
            return self.st_devs[path]
        except KeyError:
            raise _not_found(path) from None

    def statvfs(self, path: str) -> FakeStatvfs:
        self.calls["statvfs"] += 1
        try:
            return self.statvfs_results[path]
        except KeyError:
            raise _not_found(path) from None

    def dmsetup_table(self, name: str) -> str:
        try:
            return self.dmsetup_tables[name]
        except KeyError:
            raise subprocess.CalledProcessError(1, ["dmsetup", "table", name]) from None

    def dmsetup_status(self, name: str) -> str:
        try:
            return self.dmsetup_statuses[name]
        except KeyError:
            raise subprocess.CalledProcessError(
                1, ["dmsetup", "status", name]
            ) from None

    def zfs_get(self, dataset: str, properties: List[str]) -> List[str]:
        self.calls["zfs_get"] += 1
        try:
            return self.zfs_values[dataset]
        except KeyError:
            raise subprocess.CalledProcessError(1, ["zfs", "get", dataset]) from None


class FakeProcess:
    """Enough of `subprocess.Popen` for the shell helpers.

    If `hang`, `communicate` times out until the process is killed.
    """

    def __init__(
        self,
        args: List[str],
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        hang: bool = False,
    ):
        self.args = args
        self.stdout = io.StringIO(stdout)
        self.stderr = io.StringIO(stderr)
        self._returncode = returncode
        self.returncode: Optional[int] = None
        self.hang = hang
        self.killed = False

    def __enter__(self) -> "FakeProcess":
        return self

    def __exit__(self, *exc: object) -> None:
        pass

    def kill(self) -> None:
        self.killed = True

    def wait(self, timeout: Optional[float] = None) -> int:
        if self.hang and not self.killed:
            raise subprocess.TimeoutExpired(self.args, timeout or 0)
        self.returncode = -9 if self.killed else self._returncode
        return self.returncode

    def communicate(self, timeout: Optional[float] = None) -> tuple:
        self.wait(timeout)
        return self.stdout.read(), self.stderr.read()


@dataclass
class FakeCliObject:
    client: FakeFsClient = field(default_factory=FakeFsClient)
    clock: Clock = field(default_factory=FakeClock)
    registry: Mapping[str, Factory[SinkImpl]] = field(default_factory=lambda: registry)
    usage: Dict[str, int] = field(default_factory=dict)

    def hostname(self) -> str:
        return "host0"

    def fs_info(self, options: FsInfoOptions, strict: bool = False) -> FsInfo:
        return RealFsInfo(
            options.context,
            client=self.client,
            diskstats_path=options.diskstats_path,
            strict=strict,
        )

    def dir_usage(self, dir: str, timeout_secs: float) -> int:
        try:
            return self.usage[dir]
        except KeyError:
            raise ProcessError(f"du command failed on {dir}") from None
