# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from pathlib import Path

import pytest

from hostfs.tests.fakes import read_data


def pytest_configure(config: "pytest.Config") -> None:
    config.addinivalue_line("markers", "slow: the test takes some time to run")


@pytest.fixture
def diskstats_path(tmp_path: Path) -> Path:
    path = tmp_path / "diskstats"
    path.write_text(read_data("sample-proc-diskstats.txt"))
    return path
