# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import pytest

from hostfs.monitoring.fs.errors import StatError
from hostfs.monitoring.fs.stats import FsStatsCacheImpl, Statter
from hostfs.schemas.storage.fs import FsStats, FsType
from hostfs.schemas.storage.partition import Partition
from hostfs.tests.fakes import FakeFsClient, FakeStatvfs

DATA = Partition(mountpoint="/data", major=8, minor=17, fs_type="xfs")
TANK = Partition(mountpoint="/tank", major=0, minor=45, fs_type="zfs")
POOL = Partition(
    mountpoint="", major=253, minor=0, fs_type="devicemapper", block_size=128
)


def test_vfs() -> None:
    client = FakeFsClient(
        statvfs_results={
            "/data": FakeStatvfs(
                f_frsize=4096,
                f_blocks=1000,
                f_bfree=400,
                f_bavail=300,
                f_files=100,
                f_ffree=40,
            )
        }
    )

    stats = FsStatsCacheImpl(client).fs_stats("/dev/sdb1", DATA)

    assert stats == FsStats(
        type=FsType.VFS,
        capacity=4096000,
        free=1638400,
        available=1228800,
        inodes=100,
        inodes_free=40,
    )


def test_zfs() -> None:
    client = FakeFsClient(zfs_values={"tank": ["100", "900"]})

    stats = FsStatsCacheImpl(client).fs_stats("tank", TANK)

    assert stats == FsStats(
        type=FsType.ZFS,
        capacity=1000,
        free=900,
        available=900,
        inodes=0,
        inodes_free=0,
    )


def test_devicemapper() -> None:
    client = FakeFsClient(
        dmsetup_statuses={
            "docker-pool": "0 75497472 thin-pool 65 327/524288 14092/589824 - rw no_discard_passdown"
        }
    )

    stats = FsStatsCacheImpl(client).fs_stats("/dev/mapper/docker-pool", POOL)

    block_bytes = 128 * 512
    assert stats == FsStats(
        type=FsType.DEVICE_MAPPER,
        capacity=589824 * block_bytes,
        free=(589824 - 14092) * block_bytes,
        available=(589824 - 14092) * block_bytes,
        inodes=0,
        inodes_free=0,
    )


@pytest.mark.parametrize(
    "client, device, partition",
    [
        (FakeFsClient(), "/dev/sdb1", DATA),
        (FakeFsClient(), "tank", TANK),
        (FakeFsClient(zfs_values={"tank": ["100"]}), "tank", TANK),
        (FakeFsClient(zfs_values={"tank": ["-", "900"]}), "tank", TANK),
        (FakeFsClient(), "/dev/mapper/docker-pool", POOL),
        (
            FakeFsClient(dmsetup_statuses={"docker-pool": "0 1 linear 8:16 0"}),
            "/dev/mapper/docker-pool",
            POOL,
        ),
    ],
)
def test_failures_are_stat_errors(
    client: FakeFsClient, device: str, partition: Partition
) -> None:
    with pytest.raises(StatError):
        FsStatsCacheImpl(client).fs_stats(device, partition)


def test_cached_until_cleared() -> None:
    client = FakeFsClient(zfs_values={"tank": ["100", "900"]})
    cache = FsStatsCacheImpl(client)

    first = cache.fs_stats("tank", TANK)
    client.zfs_values["tank"] = ["500", "500"]
    second = cache.fs_stats("tank", TANK)

    assert first == second
    assert client.calls["zfs_get"] == 1

    cache.clear()

    assert cache.fs_stats("tank", TANK).free == 500
    assert client.calls["zfs_get"] == 2


def test_failures_are_not_cached() -> None:
    client = FakeFsClient()
    cache = FsStatsCacheImpl(client)

    with pytest.raises(StatError):
        cache.fs_stats("tank", TANK)
    client.zfs_values["tank"] = ["1", "2"]

    assert cache.fs_stats("tank", TANK).capacity == 3


def test_custom_statter_for_fs_type() -> None:
    class Fixed(Statter):
        def stat(self, device: str, partition: Partition) -> FsStats:
            return FsStats("ext4", 1, 1, 1, 1, 1)

    cache = FsStatsCacheImpl(FakeFsClient(), statters={"xfs": Fixed()})

    assert cache.fs_stats("/dev/sdb1", DATA).type == "ext4"
    # not in the registry, so the fallback is used and fails on the fake
    with pytest.raises(StatError):
        cache.fs_stats("tank", TANK)


def test_clear_during_stat_is_not_undone() -> None:
    calls = []

    class ClearedMidway(Statter):
        def stat(self, device: str, partition: Partition) -> FsStats:
            calls.append(device)
            # another thread clears while this result is being computed
            cache.clear()
            return FsStats("vfs", len(calls), 0, 0, 0, 0)

    cache = FsStatsCacheImpl(FakeFsClient(), fallback=ClearedMidway())

    assert cache.fs_stats("/dev/sdb1", DATA).capacity == 1
    assert cache.fs_stats("/dev/sdb1", DATA).capacity == 2
    assert calls == ["/dev/sdb1", "/dev/sdb1"]
