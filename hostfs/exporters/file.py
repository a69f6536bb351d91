# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import json
import logging
import os
from dataclasses import asdict
from typing import Dict, Optional

from hostfs.exporters import register
from hostfs.monitoring.dataclass_utils import remove_none_dict_factory
from hostfs.monitoring.sink.protocol import DataIdentifier, SinkAdditionalParams

from hostfs.monitoring.utils.monitor import init_logger
from hostfs.schemas.log import Log


@register("file")
class File:
    """Append data to a file, one JSON object per line.

    `fsinfo_file_path` receives filesystem records; `file_path` receives anything
    else and is the fallback for filesystem records.
    """

    def __init__(
        self,
        *,
        file_path: Optional[str] = None,
        fsinfo_file_path: Optional[str] = None,
    ):
        if file_path is None and fsinfo_file_path is None:
            raise ValueError(
                "When using the file sink at least one of file_path or fsinfo_file_path needs to be specified. See hostfs fsinfo --help"
            )

        self.loggers: Dict[DataIdentifier, logging.Logger] = {}
        for identifier, path in [
            (DataIdentifier.GENERIC, file_path),
            (DataIdentifier.FSINFO, fsinfo_file_path),
        ]:
            if path is None:
                continue
            self.loggers[identifier], _ = init_logger(
                logger_name=__name__ + path,
                log_dir=os.path.dirname(path),
                log_name=os.path.basename(path),
                log_formatter=None,
            )
            # records are data, not diagnostics of the collector
            self.loggers[identifier].propagate = False

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        identifier = additional_params.data_identifier or DataIdentifier.GENERIC
        logger = self.loggers.get(identifier) or self.loggers.get(
            DataIdentifier.GENERIC
        )
        if logger is None:
            raise AssertionError(
                f"The file sink has no file configured for {identifier}. See hostfs fsinfo --help"
            )
        for payload in data.message:
            logger.info(json.dumps(asdict(payload, dict_factory=remove_none_dict_factory)))
