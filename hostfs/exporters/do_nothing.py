# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from hostfs.exporters import register
from hostfs.monitoring.sink.protocol import SinkAdditionalParams
from hostfs.schemas.log import Log


@register("do_nothing")
class DoNothing:
    """Discard everything. Useful to exercise collection without publishing."""

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        pass
