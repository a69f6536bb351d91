# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Parsers for `dmsetup` output of device-mapper thin pools.

See https://docs.kernel.org/admin-guide/device-mapper/thin-provisioning.html
"""
from typing import NamedTuple

from hostfs.monitoring.fs.errors import ParseError

THIN_POOL_TARGET = "thin-pool"


class ThinPoolTable(NamedTuple):
    major: int
    minor: int
    # in 512-byte sectors
    data_block_size: int


class ThinPoolStatus(NamedTuple):
    used_data_blocks: int
    total_data_blocks: int


def _thin_pool_fields(line: str, min_fields: int) -> list[str]:
    fields = line.split()
    if len(fields) < min_fields or fields[2] != THIN_POOL_TARGET:
        raise ParseError(f"Not a {THIN_POOL_TARGET} line: '{line}'")
    return fields


def parse_thin_pool_table(line: str) -> ThinPoolTable:
    """Parse `dmsetup table <pool>`:

        <start> <length> thin-pool <metadata dev> <data dev> <data block size> ...

    The major/minor are those of the metadata device.

    >>> parse_thin_pool_table("0 209715200 thin-pool 253:0 253:1 128 32768 1 skip_block_zeroing")
    ThinPoolTable(major=253, minor=0, data_block_size=128)
    """
    fields = _thin_pool_fields(line, 6)
    try:
        major, minor = (int(n) for n in fields[3].split(":"))
        return ThinPoolTable(major=major, minor=minor, data_block_size=int(fields[5]))
    except ValueError as e:
        raise ParseError(f"Could not parse {THIN_POOL_TARGET} table: '{line}'") from e


def parse_thin_pool_status(line: str) -> ThinPoolStatus:
    """Parse `dmsetup status <pool>`:

        <start> <length> thin-pool <transaction id> <used>/<total metadata blocks>
            <used>/<total data blocks> ...

    >>> parse_thin_pool_status("0 75497472 thin-pool 65 327/524288 14092/589824 - rw no_discard_passdown")
    ThinPoolStatus(used_data_blocks=14092, total_data_blocks=589824)
    """
    fields = _thin_pool_fields(line, 6)
    try:
        used, total = (int(n) for n in fields[5].split("/"))
    except ValueError as e:
        raise ParseError(f"Could not parse {THIN_POOL_TARGET} status: '{line}'") from e
    if used > total:
        raise ParseError(f"Used data blocks exceed the total: '{line}'")
    return ThinPoolStatus(used_data_blocks=used, total_data_blocks=total)
