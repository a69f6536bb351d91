# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import textwrap
from dataclasses import dataclass
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Collection, Optional, Type, TypeVar, Union

import click

import daemon
import tomli
from hostfs.exporters import registry

from hostfs.monitoring.coerce import ensure_dict
from hostfs.monitoring.fs.constants import DISKSTATS_PATH, MOUNTINFO_PATH
from hostfs.monitoring.fs.context import DockerContext, FsContext, parse_driver_status
from hostfs.monitoring.sink.utils import format_registry_docs
from typeguard import typechecked
from typing_extensions import ParamSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")
FC = TypeVar("FC", bound=Union[Callable[..., Any], click.Command])


class DaemonGroup(click.Group):
    def invoke(self, ctx: click.Context) -> None:
        detach = ctx.params.get("detach", False)
        if detach:
            with daemon.DaemonContext():
                return super().invoke(ctx)
        else:
            return super().invoke(ctx)


detach_option = click.option(
    "--detach",
    "-d",
    is_flag=True,
    default=False,
    help="Detach from the terminal and keep running in the background.",
)


class IntWithSISymbol(click.ParamType):
    name = "integer_si"
    _symbol_map = {"k": 1000, "M": 1_000_000}

    def convert(
        self, value: Any, param: Optional[click.Parameter], ctx: Optional[click.Context]
    ) -> int:
        if isinstance(value, int):
            return value
        multiplier = 1
        extracted_value = value
        if value and not value[-1].isdigit():
            if value[-1] not in self._symbol_map:
                allowed = ", ".join(self._symbol_map.keys())
                self.fail(
                    f"Unrecognized SI symbol '{value[-1]}'. Allowed symbols are: {allowed}",
                    param,
                    ctx,
                )
            multiplier = self._symbol_map[value[-1]]
            extracted_value = value[:-1]
        try:
            return int(extracted_value) * multiplier
        except ValueError:
            self.fail(f"{value!r} is not a valid integer", param, ctx)


sink_option = click.option(
    "--sink",
    default="stdout",
    help="The sink where data should be published.",
)

sink_opts_option = click.option(
    "-o",
    "--sink-opt",
    "sink_opts",
    multiple=True,
    help="Sink instantiation customization using OmegaConf dot-list syntax. See [1]",
)

log_level_option = click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="INFO",
    show_default=True,
    help="Logging verbosity level.",
)

log_folder_option = click.option(
    "--log-folder",
    type=click.Path(file_okay=False),
    default="/var/log",
    help="The directory where logs will be stored.",
)

stdout_option = click.option(
    "--stdout",
    is_flag=True,
    default=False,
    help="Whether to display logs to stdout.",
)

once_option = click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Do only one round of data collection and publishing",
)

retries_option = click.option(
    "--retries",
    type=click.IntRange(min=0),
    default=2,
    show_default=True,
    help="The maximum number of times to retry writing to sink before failing.",
)

dry_run_option = click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    help="Print data to STDOUT as JSON instead of writing to the sink.",
)

chunk_size_option = click.option(
    "--chunk-size",
    type=IntWithSISymbol(),
    default="1M",
    show_default=True,
    help=(
        "The maximum size in bytes of each chunk when writing data to sink. "
        "Recognizes a subset of SI symbols for multiples for shorthand, e.g. 1k for "
        "1000, 1M for 1,000,000. Pass 0 to disable chunking."
    ),
)


def interval_option(default: int) -> Callable[[FC], FC]:
    return click.option(
        "--interval",
        type=click.IntRange(min=0),
        default=default,
        show_default=True,
        help="The interval in seconds for collecting data.",
    )


def timeout_option(default: float) -> Callable[[FC], FC]:
    return click.option(
        "--timeout",
        "timeout_secs",
        type=click.FloatRange(min=0, min_open=True),
        default=default,
        show_default=True,
        help="Seconds to wait for the command before killing it.",
    )


def click_default_cmd(
    epilog: str = "",
    cls: Type[click.Command] = click.Command,
    context_settings: Optional[dict[str, Any]] = None,
) -> Callable[[Callable[..., T]], click.Command]:
    """`click.command` whose help ends with the documentation of every sink."""
    return click.command(
        cls=cls,
        context_settings=context_settings,
        epilog=f"\b{epilog}\nSink documentation:\n\n"
        + textwrap.indent(
            format_registry_docs(registry),
            prefix=" " * 2,
            predicate=lambda _: True,
        )
        + "\b\nReferences:\n"
        + "  [1]: https://omegaconf.readthedocs.io/en/2.2_branch/usage.html#from-a-dot-list",
    )


_Tv = TypeVar("_Tv")
_ClickCallback = Callable[[click.Context, click.Parameter, _Tv], None]


def _set_default_map(name: str) -> _ClickCallback[Path]:
    @typechecked
    def cb(ctx: click.Context, param: click.Parameter, path: Path) -> None:
        if not path.exists() or path == Path("/dev/null"):
            return

        logger.info(f"Reading config from {path}...")
        with path.open("rb") as f:
            try:
                conf = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise click.BadParameter(
                    f"{path} does not contain valid TOML.",
                    ctx=ctx,
                    param=param,
                ) from e
        try:
            default_map = ensure_dict(conf[name])
        except KeyError as e:
            raise click.BadParameter(
                f"'{name}' is not a top-level table name in {path}. Valid names: {list(conf.keys())}",
                ctx=ctx,
                param=param,
            ) from e
        logger.info(f"Loaded table '{name}'.")

        ctx.default_map = {**(ctx.default_map or {}), **default_map}

    return cb


_P = ParamSpec("_P")
_R = TypeVar("_R")


def toml_config_option(
    name: str,
    *,
    default_config_path: Union[str, Path] = "/etc/hostfs/config.toml",
) -> Callable[[Callable[_P, _R]], Callable[_P, _R]]:
    """Load default option values from table `name` of a TOML config file, given by
    a `--config` option. A non-existent path or `/dev/null` is treated as an empty
    table.

    Precedence (lowest to highest):
    * `default` argument to `click.option`
    * the context's `default_map` setting
    * the value in the config file
    * value passed at the command line

    On a command group, subtables configure the subcommands, e.g. `[hostfs.fsinfo]`.
    """

    def decorator(f: Callable[_P, _R]) -> Callable[_P, _R]:
        return click.option(
            "--config",
            type=click.Path(dir_okay=False, path_type=Path),
            callback=_set_default_map(name),
            default=default_config_path,
            show_default=True,
            is_eager=True,
            expose_value=False,
            help=(
                f"Load option values from table '{name}' in the given TOML config file. "
                "A non-existent path or '/dev/null' are ignored and treated as empty tables."
            ),
        )(f)

    return decorator


@dataclass(frozen=True)
class FsInfoOptions:
    context: FsContext
    mountinfo_path: str = MOUNTINFO_PATH
    diskstats_path: str = DISKSTATS_PATH


def fs_info_options(f: Callable[..., _R]) -> Callable[..., _R]:
    """Add the options describing the host to `f`, which receives them bundled as a
    single `fs_info_options` keyword argument.
    """

    @click.option(
        "--root-dir",
        default="/",
        show_default=True,
        help="Directory whose device is labelled 'root'.",
    )
    @click.option(
        "--docker-root",
        default=None,
        help="Docker root directory. Its device is labelled 'docker-images' and its mountpoint is always reported.",
    )
    @click.option(
        "--docker-driver",
        default=None,
        help="Docker storage driver, e.g. devicemapper, overlay2.",
    )
    @click.option(
        "--docker-driver-status",
        multiple=True,
        help="KEY=VALUE pairs of the docker storage driver status, e.g. 'Pool Name=docker-pool'.",
    )
    @click.option(
        "--extra-mountpoint",
        "extra_mountpoints",
        multiple=True,
        help="Mountpoint to report even if it is not backed by a block device.",
    )
    @click.option(
        "--mountinfo-path",
        default=MOUNTINFO_PATH,
        show_default=True,
        help="Where to read the mount table from.",
    )
    @click.option(
        "--diskstats-path",
        default=DISKSTATS_PATH,
        show_default=True,
        help="Where to read disk I/O statistics from.",
    )
    @wraps(f)
    def wrapper(
        *args: Any,
        root_dir: str,
        docker_root: Optional[str],
        docker_driver: Optional[str],
        docker_driver_status: Collection[str],
        extra_mountpoints: Collection[str],
        mountinfo_path: str,
        diskstats_path: str,
        **kwargs: Any,
    ) -> _R:
        try:
            driver_status = parse_driver_status(docker_driver_status)
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="--docker-driver-status") from e
        options = FsInfoOptions(
            context=FsContext(
                root_dir=root_dir,
                docker=DockerContext(
                    root=docker_root, driver=docker_driver, driver_status=driver_status
                ),
                extra_mountpoints=frozenset(extra_mountpoints),
            ),
            mountinfo_path=mountinfo_path,
            diskstats_path=diskstats_path,
        )
        return f(*args, fs_info_options=options, **kwargs)

    return wrapper
