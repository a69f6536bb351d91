# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Exceptions raised by the filesystem information layer.

A failure to stat a single filesystem while enumerating many of them is not an
exception at all: it is logged and the filesystem is left out of the results.
"""


class FsInfoError(Exception):
    """Base class for all filesystem information errors."""


class NotFoundError(FsInfoError, LookupError):
    """A device, major/minor pair or label is not in the partition cache."""


class ParseError(FsInfoError, ValueError):
    pass


class DiskStatsParseError(ParseError):
    pass


class DirUsageParseError(ParseError):
    pass


class PreconditionError(FsInfoError, ValueError):
    pass


class StatError(FsInfoError):
    """A stat-like call failed for a directory or a filesystem."""


class ProcessError(FsInfoError):
    """An external command could not be run or exited unsuccessfully."""


class DirUsageTimeoutError(ProcessError):
    """The usage command did not finish in time and was killed."""

    def __init__(self, dir: str, timeout_secs: float):
        super().__init__(
            f"du command on {dir} did not finish within {timeout_secs} seconds and was killed"
        )
        self.dir = dir
        self.timeout_secs = timeout_secs
