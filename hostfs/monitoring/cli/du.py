# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
from typing import Literal

import click
from hostfs.monitoring.cli.common import CliObject, default_obj, LOGGER_NAME
from hostfs.monitoring.click import log_folder_option, log_level_option, timeout_option
from hostfs.monitoring.fs.errors import DirUsageTimeoutError, FsInfoError
from hostfs.monitoring.utils.monitor import init_logger
from typeguard import typechecked


@click.command(context_settings={"obj": default_obj})
@click.argument("dir")
@timeout_option(default=60)
@log_level_option
@log_folder_option
@click.pass_obj
@typechecked
def main(
    obj: CliObject,
    dir: str,
    timeout_secs: float,
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    log_folder: str,
) -> None:
    """Print the number of bytes occupied by DIR, as reported by `du`."""
    logger, _ = init_logger(
        logger_name=LOGGER_NAME,
        log_dir=os.path.join(log_folder, LOGGER_NAME + "_logs"),
        log_name="du.log",
        log_level=getattr(logging, log_level),
    )
    try:
        usage = obj.dir_usage(dir, timeout_secs)
    except DirUsageTimeoutError as e:
        logger.warning(str(e))
        raise click.ClickException(str(e)) from e
    except FsInfoError as e:
        logger.error(f"Could not get usage of {dir!r}", exc_info=True)
        raise click.ClickException(str(e)) from e

    logger.info(f"{dir}: {usage} bytes")
    click.echo(usage)
