# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
from typing import Collection, List, Literal

import click
from hostfs.monitoring.cli.common import CliObject, default_obj, LOGGER_NAME
from hostfs.monitoring.click import (
    chunk_size_option,
    click_default_cmd,
    dry_run_option,
    fs_info_options,
    FsInfoOptions,
    interval_option,
    log_folder_option,
    log_level_option,
    once_option,
    retries_option,
    sink_option,
    sink_opts_option,
    stdout_option,
)
from hostfs.monitoring.clock import Clock
from hostfs.monitoring.fs.errors import NotFoundError
from hostfs.monitoring.fs.info import FsInfo
from hostfs.monitoring.sink.protocol import (
    DataIdentifier,
    DataType,
    SinkAdditionalParams,
)
from hostfs.monitoring.utils.monitor import CollectionTask, run_data_collection_loop
from hostfs.schemas.storage.fsinfo import FsInfoPayload
from typeguard import typechecked


def collect_fsinfo(
    fs_info: FsInfo,
    clock: Clock,
    hostname: str,
    mounts: Collection[str],
    devices: Collection[str],
    with_io_stats: bool,
    logger: logging.Logger,
) -> List[FsInfoPayload]:
    """Do one round of collection: rediscover partitions, drop the cached
    statistics and report every selected filesystem.
    """
    fs_info.refresh_cache()
    fs_info.clear_cache()

    if mounts:
        filesystems = fs_info.get_fs_info_for_mounts(set(mounts), with_io_stats)
    elif devices:
        filesystems = fs_info.get_fs_info_for_devices(set(devices), with_io_stats)
    else:
        filesystems = fs_info.get_global_fs_info(with_io_stats)

    collection_unixtime = clock.unixtime()
    payloads = []
    for fs in filesystems:
        device = fs.device_info.device
        try:
            mountpoint = fs_info.get_mountpoint_for_device(device)
        except NotFoundError:
            logger.warning(f"No mountpoint known for {device}")
            mountpoint = None
        payloads.append(
            FsInfoPayload(
                collection_unixtime=collection_unixtime,
                hostname=hostname,
                fs=fs,
                mountpoint=mountpoint,
                labels=fs_info.get_labels_for_device(device),
            )
        )
    logger.info(f"Collected {len(payloads)} filesystem(s)")
    return payloads


@click_default_cmd(context_settings={"obj": default_obj})
@sink_option
@sink_opts_option
@log_level_option
@log_folder_option
@stdout_option
@interval_option(default=60)
@once_option
@dry_run_option
@retries_option
@chunk_size_option
@click.option(
    "--mount",
    "mounts",
    multiple=True,
    help="Only report the filesystem mounted here. May be repeated.",
)
@click.option(
    "--device",
    "devices",
    multiple=True,
    help="Only report the filesystem of this device, e.g. /dev/sda1. May be repeated.",
)
@click.option(
    "--with-io-stats",
    is_flag=True,
    default=False,
    help="Attach the disk I/O counters of each device.",
)
@fs_info_options
@click.pass_obj
@typechecked
def main(
    obj: CliObject,
    sink: str,
    sink_opts: Collection[str],
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    log_folder: str,
    stdout: bool,
    interval: int,
    once: bool,
    dry_run: bool,
    retries: int,
    chunk_size: int,
    mounts: Collection[str],
    devices: Collection[str],
    with_io_stats: bool,
    fs_info_options: FsInfoOptions,
) -> None:
    """
    Collects capacity, free space and inode counts of the host filesystems and sends
    them to sink.
    """
    if mounts and devices:
        raise click.UsageError("--mount and --device are mutually exclusive.")

    fs_info = obj.fs_info(fs_info_options)
    hostname = obj.hostname()

    def _collect_fsinfo(interval: int, logger: logging.Logger) -> List[FsInfoPayload]:
        return collect_fsinfo(
            fs_info=fs_info,
            clock=obj.clock,
            hostname=hostname,
            mounts=mounts,
            devices=devices,
            with_io_stats=with_io_stats,
            logger=logger,
        )

    data_collection_tasks: List[CollectionTask] = [
        (
            _collect_fsinfo,
            SinkAdditionalParams(
                data_type=DataType.METRIC, data_identifier=DataIdentifier.FSINFO
            ),
        ),
    ]

    run_data_collection_loop(
        logger_name=LOGGER_NAME,
        log_folder=log_folder,
        stdout=stdout,
        log_level=log_level,
        clock=obj.clock,
        once=once,
        interval=interval,
        data_collection_tasks=data_collection_tasks,
        sink=sink,
        sink_opts=sink_opts,
        retries=retries,
        chunk_size=chunk_size,
        dry_run=dry_run,
        registry=obj.registry,
    )
