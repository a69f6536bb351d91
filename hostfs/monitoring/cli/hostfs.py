# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""A single entrypoint into the hostfs commands.

This file is intentionally lightweight and should not include any complex logic.
"""

import click

from hostfs._version import __version__
from hostfs.monitoring.cli import device, du, fsinfo
from hostfs.monitoring.click import DaemonGroup, detach_option, toml_config_option


@click.group(cls=DaemonGroup, epilog=f"hostfs Version: {__version__}")
@toml_config_option("hostfs")
@detach_option
@click.version_option(__version__)
def main(detach: bool) -> None:
    """Host filesystem information. Capacity, usage and I/O statistics of the block
    devices backing the host's filesystems.
    """


main.add_command(fsinfo.main, name="fsinfo")
main.add_command(du.main, name="du")
main.add_command(device.main, name="device")

if __name__ == "__main__":
    main()
