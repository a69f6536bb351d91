# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import subprocess
from typing import Callable, List

from hostfs.monitoring.coerce import parse_uint64
from hostfs.monitoring.fs.constants import DU_NICENESS
from hostfs.monitoring.fs.errors import (
    DirUsageParseError,
    DirUsageTimeoutError,
    PreconditionError,
    ProcessError,
)
from hostfs.monitoring.utils.shell import _popen

logger = logging.getLogger(__name__)


def du_command(dir: str) -> List[str]:
    return ["nice", "-n", str(DU_NICENESS), "du", "-s", dir]


def parse_du_output(stdout: str) -> int:
    """Return the bytes reported by `du -s`, whose first field is in KiB.

    >>> parse_du_output("1024\\t/var/lib/docker\\n")
    1048576
    """
    fields = stdout.split()
    if not fields:
        raise DirUsageParseError("du printed nothing to stdout")
    try:
        usage_in_kb = parse_uint64(fields[0])
    except ValueError as e:
        raise DirUsageParseError(f"cannot parse 'du' output {stdout!r}") from e
    return usage_in_kb * 1024


def get_dir_usage(
    dir: str,
    timeout_secs: float,
    *,
    popen: Callable[[List[str]], "subprocess.Popen[str]"] = _popen,
) -> int:
    """Return the number of bytes used by `dir`, measured by `du` at low priority.

    If `du` has not exited after `timeout_secs`, it is killed and reaped.

    Raises:
        PreconditionError if `dir` is empty; nothing is run in this case.
        DirUsageTimeoutError if the command was killed because of the timeout.
        ProcessError if the command could not be started or exited with a
            non-zero code.
        DirUsageParseError if the output could not be understood.
    """
    if not dir:
        raise PreconditionError("invalid directory")
    cmd = du_command(dir)
    try:
        p = popen(cmd)
    except (OSError, RuntimeError) as e:
        raise ProcessError(f"failed to exec du - {e}") from e

    with p:
        try:
            stdout, stderr = p.communicate(timeout=timeout_secs)
        except subprocess.TimeoutExpired as e:
            logger.info(f"killing cmd {cmd} due to timeout({timeout_secs}s)")
            p.kill()
            p.communicate()
            raise DirUsageTimeoutError(dir, timeout_secs) from e

    if p.returncode != 0:
        raise ProcessError(
            f"du command failed on {dir} with output stdout: {stdout}, stderr: {stderr} - exit code {p.returncode}"
        )
    return parse_du_output(stdout)
