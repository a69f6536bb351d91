# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
from typing import Dict, Iterable, List

from hostfs.monitoring.coerce import parse_uint64
from hostfs.monitoring.fs.constants import (
    DEV_DIR,
    DISKSTATS_DEVICE_NAME_IDX,
    DISKSTATS_NUM_FIELDS,
    DISKSTATS_PATH,
    PARTITION_REGEX,
)
from hostfs.monitoring.fs.errors import DiskStatsParseError
from hostfs.schemas.storage.fs import DiskStats

logger = logging.getLogger(__name__)


def _parse_counters(words: List[str], line: str) -> List[int]:
    counters = []
    for word in words:
        try:
            counters.append(parse_uint64(word))
        except ValueError as e:
            raise DiskStatsParseError(f"Could not parse '{word}' in line: '{line}'") from e
    return counters


def parse_disk_stats(lines: Iterable[str]) -> Dict[str, DiskStats]:
    """Parse lines in the format of /proc/diskstats, e.g.

       8      50 sdd2 40 0 280 223 7 0 22 108 0 330 330

    Only devices matching `PARTITION_REGEX` are kept; their keys are absolute device
    paths, e.g. `/dev/sdd2`. Newer kernels append discard and flush counters, which
    are ignored.

    Raises:
        DiskStatsParseError if a kept line has fewer than 11 counters or a counter
            is not an unsigned 64 bit decimal integer.
    """
    disk_stats_map: Dict[str, DiskStats] = {}
    for line in lines:
        words = line.split()
        if len(words) <= DISKSTATS_DEVICE_NAME_IDX:
            continue
        device_name = words[DISKSTATS_DEVICE_NAME_IDX]
        if not PARTITION_REGEX.match(device_name):
            continue
        counters = _parse_counters(words[DISKSTATS_DEVICE_NAME_IDX + 1 :], line)
        if len(counters) < DISKSTATS_NUM_FIELDS:
            raise DiskStatsParseError(
                f"Could not parse all {DISKSTATS_NUM_FIELDS} columns of diskstats line: '{line}'"
            )
        disk_stats_map[os.path.join(DEV_DIR, device_name)] = DiskStats(
            *counters[:DISKSTATS_NUM_FIELDS]
        )
    return disk_stats_map


def get_disk_stats_map(path: str = DISKSTATS_PATH) -> Dict[str, DiskStats]:
    """Read per-device I/O counters from `path`.

    A missing file is not an error: hosts without the feature get an empty mapping.
    """
    try:
        with open(path, "r") as file:
            return parse_disk_stats(file)
    except FileNotFoundError:
        logger.info(
            f"not collecting filesystem statistics because file {path!r} was not available"
        )
        return {}
