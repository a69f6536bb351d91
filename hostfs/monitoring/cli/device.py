# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
from dataclasses import asdict
from typing import Any, Dict, Literal, Optional

import click
from hostfs.monitoring.cli.common import CliObject, default_obj, LOGGER_NAME
from hostfs.monitoring.click import (
    fs_info_options,
    FsInfoOptions,
    log_folder_option,
    log_level_option,
)
from hostfs.monitoring.fs.errors import FsInfoError
from hostfs.monitoring.fs.info import FsInfo
from hostfs.monitoring.itertools import json_dumps_compact
from hostfs.monitoring.utils.monitor import init_logger
from typeguard import typechecked


def describe_device(fs_info: FsInfo, device: str) -> Dict[str, Any]:
    return {
        "device": device,
        "mountpoint": fs_info.get_mountpoint_for_device(device),
        "labels": fs_info.get_labels_for_device(device),
    }


@click.command(context_settings={"obj": default_obj})
@click.option("--dir", "dir", default=None, help="Find the device holding this directory.")
@click.option("--label", default=None, help="Find the device with this label, e.g. root.")
@click.option(
    "--device",
    default=None,
    help="Show the mountpoint and labels of this device, e.g. /dev/sda1.",
)
@log_level_option
@log_folder_option
@fs_info_options
@click.pass_obj
@typechecked
def main(
    obj: CliObject,
    dir: Optional[str],
    label: Optional[str],
    device: Optional[str],
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    log_folder: str,
    fs_info_options: FsInfoOptions,
) -> None:
    """Look up a block device by directory, label or name and print it as JSON."""
    if sum(x is not None for x in (dir, label, device)) != 1:
        raise click.UsageError("Exactly one of --dir, --label, --device is required.")

    logger, _ = init_logger(
        logger_name=LOGGER_NAME,
        log_dir=os.path.join(log_folder, LOGGER_NAME + "_logs"),
        log_name="device.log",
        log_level=getattr(logging, log_level),
    )

    # partitions must be known for any lookup to succeed
    try:
        fs_info = obj.fs_info(fs_info_options, strict=True)
    except (FsInfoError, OSError) as e:
        logger.error("Could not discover partitions", exc_info=True)
        raise click.ClickException(f"Could not discover partitions: {e}") from e

    result: Dict[str, Any]
    try:
        if dir is not None:
            result = asdict(fs_info.get_dir_fs_device(dir))
        elif label is not None:
            result = {"label": label, "device": fs_info.get_device_for_label(label)}
        else:
            assert device is not None
            result = describe_device(fs_info, device)
    except FsInfoError as e:
        logger.info(f"Lookup failed: {e}")
        raise click.ClickException(str(e)) from e

    click.echo(json_dumps_compact(result))
