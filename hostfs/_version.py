# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)


def get_version() -> str:
    if "__file__" in globals():
        root = Path(__file__).absolute().parent
        try:
            return (root / "version.txt").read_text().strip()
        except OSError:
            logger.info("Could not find version.txt file", exc_info=True)

    env_version = os.environ.get("HOSTFS_VERSION")
    if env_version is not None:
        return env_version

    # a missing version must not prevent the commands from running
    return "unknown"


__version__ = get_version()
