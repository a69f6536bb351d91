# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import os
import subprocess
from pathlib import Path
from typing import List

import pytest

from hostfs.monitoring.fs.client import as_mount_info, FsCliClient
from hostfs.schemas.storage.mount import MountInfo
from hostfs.tests.fakes import FakeProcess, read_data
from typeguard import typechecked


@pytest.mark.parametrize(
    "value, expected",
    [
        (
            "30 22 8:17 / /data rw,relatime shared:20 - xfs /dev/sdb1 rw,attr2,inode64,noquota",
            MountInfo(
                mount_id=30,
                parent_id=22,
                device_id="8:17",
                root=Path("/"),
                mount_point=Path("/data"),
                mount_options=["rw", "relatime"],
                optional_fields=["shared:20"],
                filesystem_type="xfs",
                mount_source="/dev/sdb1",
                super_options=["rw", "attr2", "inode64", "noquota"],
            ),
        ),
        (
            "60 22 0:50 / /mnt/scratch\\040space rw,relatime - tmpfs tmpfs rw,size=1048576k",
            MountInfo(
                mount_id=60,
                parent_id=22,
                device_id="0:50",
                root=Path("/"),
                mount_point=Path("/mnt/scratch space"),
                mount_options=["rw", "relatime"],
                optional_fields=[],
                filesystem_type="tmpfs",
                mount_source="tmpfs",
                super_options=["rw", "size=1048576k"],
            ),
        ),
    ],
)
@typechecked
def test_as_mount_info(value: str, expected: MountInfo) -> None:
    assert as_mount_info(value) == expected


def test_mount_info_major_minor() -> None:
    mount = as_mount_info(
        "40 22 253:2 / /srv rw,relatime shared:25 - ext4 /dev/mapper/vg0-srv rw"
    )

    assert mount.major_minor == (253, 2)


def test_get_all_mount_info(tmp_path: Path) -> None:
    path = tmp_path / "mountinfo"
    path.write_text(read_data("sample-proc-self-mountinfo.txt") + "\n")
    client = FsCliClient(mountinfo_path=str(path))

    mounts = list(client.get_all_mount_info())

    assert len(mounts) == 10
    assert mounts[0].mount_source == "/dev/sda1"


def test_get_all_mount_info_non_utf8_mountpoint(tmp_path: Path) -> None:
    path = tmp_path / "mountinfo"
    path.write_bytes(
        b"70 22 8:33 / /mnt/\xff rw,relatime - ext4 /dev/sdc1 rw\n"
        b"30 22 8:17 / /data rw,relatime - xfs /dev/sdb1 rw\n"
    )
    client = FsCliClient(mountinfo_path=str(path))

    mounts = list(client.get_all_mount_info())

    assert [m.mount_source for m in mounts] == ["/dev/sdc1", "/dev/sdb1"]
    # the same str os.listdir would return for that directory
    assert mounts[0].mount_point == Path("/mnt/\udcff")
    assert os.fsencode(mounts[0].mount_point) == b"/mnt/\xff"


def test_get_label_links(tmp_path: Path) -> None:
    devices = tmp_path / "dev"
    by_label = tmp_path / "by-label"
    devices.mkdir()
    by_label.mkdir()
    (devices / "sdb1").touch()
    os.symlink("../dev/sdb1", by_label / "DATA")
    os.symlink(devices / "sdb1", by_label / "my\\x20data")

    client = FsCliClient(by_label_dir=str(by_label))

    assert client.get_label_links() == {
        "DATA": os.path.realpath(devices / "sdb1"),
        "my data": os.path.realpath(devices / "sdb1"),
    }


def test_get_label_links_without_labels(tmp_path: Path) -> None:
    client = FsCliClient(by_label_dir=str(tmp_path / "does_not_exist"))

    assert client.get_label_links() == {}


def test_zfs_get() -> None:
    cmds: List[List[str]] = []

    def popen(cmd: List[str]) -> FakeProcess:
        cmds.append(cmd)
        return FakeProcess(cmd, stdout="1024\n4096\n")

    client = FsCliClient(popen=popen)  # type: ignore[arg-type]

    assert client.zfs_get("tank/data", ["used", "available"]) == ["1024", "4096"]
    assert cmds == [
        ["zfs", "get", "-Hp", "-o", "value", "used,available", "tank/data"]
    ]


def test_dmsetup_failure() -> None:
    def popen(cmd: List[str]) -> FakeProcess:
        return FakeProcess(cmd, stderr="Device does not exist.", returncode=1)

    client = FsCliClient(popen=popen)  # type: ignore[arg-type]

    with pytest.raises(subprocess.CalledProcessError) as exc_info:
        client.dmsetup_status("docker-pool")

    assert exc_info.value.stderr == "Device does not exist."
