# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import socket
from dataclasses import dataclass, field
from typing import Mapping, Protocol, runtime_checkable

from hostfs.exporters import registry
from hostfs.monitoring.click import FsInfoOptions
from hostfs.monitoring.clock import Clock, ClockImpl
from hostfs.monitoring.fs.client import FsCliClient
from hostfs.monitoring.fs.info import FsInfo, RealFsInfo
from hostfs.monitoring.fs.usage import get_dir_usage
from hostfs.monitoring.sink.protocol import SinkImpl
from hostfs.monitoring.sink.utils import Factory

# collectors and query commands log under this name so that records of the
# hostfs.* module loggers end up in the same place
LOGGER_NAME = "hostfs"


@runtime_checkable
class CliObject(Protocol):
    @property
    def clock(self) -> Clock: ...

    @property
    def registry(self) -> Mapping[str, Factory[SinkImpl]]: ...

    def hostname(self) -> str: ...

    def fs_info(self, options: FsInfoOptions, strict: bool = False) -> FsInfo: ...

    def dir_usage(self, dir: str, timeout_secs: float) -> int: ...


@dataclass
class CliObjectImpl:
    clock: Clock = field(default_factory=ClockImpl)
    registry: Mapping[str, Factory[SinkImpl]] = field(default_factory=lambda: registry)

    def hostname(self) -> str:
        return socket.gethostname()

    def fs_info(self, options: FsInfoOptions, strict: bool = False) -> FsInfo:
        return RealFsInfo(
            options.context,
            client=FsCliClient(mountinfo_path=options.mountinfo_path),
            diskstats_path=options.diskstats_path,
            strict=strict,
        )

    def dir_usage(self, dir: str, timeout_secs: float) -> int:
        return get_dir_usage(dir, timeout_secs)


# constructed at module-scope because printing sink documentation relies on the object
default_obj: CliObject = CliObjectImpl()
