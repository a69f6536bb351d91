# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass
from enum import auto, Enum
from typing import Optional, Protocol, runtime_checkable

from hostfs.schemas.log import Log


class DataType(Enum):
    LOG = auto()
    METRIC = auto()


class DataIdentifier(Enum):
    FSINFO = auto()
    GENERIC = auto()


@dataclass
class SinkAdditionalParams:
    """Sinks may use this information as needed, useful to send collection specific data."""

    data_type: Optional[DataType] = None
    data_identifier: Optional[DataIdentifier] = None


class SinkWrite(Protocol):
    def __call__(self, data: Log, additional_params: SinkAdditionalParams) -> None: ...


@runtime_checkable
class SinkImpl(Protocol):
    """A destination for data."""

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        """Publish one batch of records. `hostfs fsinfo --help` lists the sinks."""
