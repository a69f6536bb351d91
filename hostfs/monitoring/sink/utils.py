# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Shared utilities for setting up and writing to sinks"""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
import sys
import textwrap
import traceback
from functools import partial
from itertools import islice
from types import ModuleType
from typing import (
    Callable,
    Dict,
    Iterable,
    Mapping,
    MutableMapping,
    Type,
    TYPE_CHECKING,
    TypeVar,
)

import click
from hostfs.monitoring.decorators import exponential_backoff, OutOfRetries, retry
from hostfs.monitoring.itertools import chunk_by_json_size, json_dumps_dataclass
from hostfs.monitoring.sink.protocol import SinkAdditionalParams, SinkWrite

from hostfs.schemas.log import Log

if TYPE_CHECKING:
    from _typeshed import DataclassInstance


logger = logging.getLogger(__name__)


def discover(module: ModuleType) -> Dict[str, ModuleType]:
    """Import every submodule of the package `module`, so that plugins register
    themselves.

    See https://packaging.python.org/en/latest/guides/creating-and-discovering-plugins/#using-namespace-packages
    """
    try:
        path = module.__path__
    except AttributeError as e:
        raise RuntimeError(f"{module.__name__} is not a package") from e

    logger.debug(f"Discovering plugins in package {path}")
    modules = {}
    for _, name, ispkg in pkgutil.iter_modules(path, module.__name__ + "."):
        logger.debug(f"Discovered {name} {ispkg}")
        modules[name] = importlib.import_module(name)
    return modules


T = TypeVar("T")
Factory = Callable[..., T]
ClassDecorator = Callable[[Type[T]], Type[T]]
Register = Callable[[str], ClassDecorator[T]]

T_co = TypeVar("T_co", covariant=True)


def make_register(registry: MutableMapping[str, Factory[T_co]]) -> Register[T_co]:
    """Make a `register(name)` class decorator which stores the decorated class in
    `registry` under `name`.

    >>> registry = {}
    >>> register = make_register(registry)
    >>> @register("impl")
    ... class Impl:
    ...   pass
    ...
    >>> registry["impl"] is Impl
    True
    """

    def register(name: str) -> ClassDecorator[T_co]:
        def decorator(cls: Type[T_co]) -> Type[T_co]:
            if (factory := registry.get(name)) is not None:
                raise RuntimeError(f"'{name}' is already registered to {factory}")
            registry[name] = cls
            logger.debug(f"Registered '{name}' to {cls.__name__}")
            return cls

        return decorator

    return register


def format_registry_docs(registry: Mapping[str, Factory]) -> str:
    """Document each registered factory: its name, signature and docstring, sorted
    by name.
    """
    indent = " " * 2
    parts = []
    for name, factory in sorted(registry.items(), key=lambda i: i[0]):
        parts.append("\b")
        parts.append(f"{name} - (from module: '{factory.__module__}')")
        parts.append(f"{indent}Signature: {inspect.signature(factory)}")
        parts.append(
            textwrap.indent(
                factory.__doc__ or "No documentation found.",
                prefix=indent,
                predicate=lambda _: True,
            )
        )
        parts.append("")
    return "\n".join(parts)


def print_tb(verbose: bool) -> None:
    if not verbose:
        return

    exc_info = sys.exc_info()
    assert all(
        i is not None for i in exc_info
    ), "Can only be called in an exception handler"
    traceback.print_exception(*exc_info)


def write_to_sink_with_retries(
    write: SinkWrite,
    sink: str,
    records: Iterable[DataclassInstance],
    chunk_size: int,
    retries: int,
    verbose: bool,
    log_time: int,
    additional_params: SinkAdditionalParams,
) -> None:
    retryable_write = retry(
        retry_schedule_factory=lambda: islice(exponential_backoff(), retries)
    )(partial(write, additional_params=additional_params))

    try:
        if chunk_size > 0:
            for chunk in chunk_by_json_size(records, chunk_size, json_dumps_dataclass):
                retryable_write(Log(ts=log_time, message=chunk))
        else:
            retryable_write(Log(ts=log_time, message=records))
    except OutOfRetries as e:
        print_tb(verbose)
        raise click.ClickException(
            f"Failed even after retrying {retries} times. Please try again later."
        ) from e
    except ValueError as e:
        print_tb(verbose)
        raise click.UsageError(str(e)) from e
