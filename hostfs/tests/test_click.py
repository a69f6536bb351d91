# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Union

import click
import pytest
from click.testing import CliRunner

from hostfs.monitoring.click import (
    fs_info_options,
    FsInfoOptions,
    IntWithSISymbol,
    toml_config_option,
)
from hostfs.monitoring.fs.context import DockerContext, FsContext
from typeguard import typechecked


def _write_contents(path: Path, contents: str) -> Path:
    with path.open("w") as f:
        f.write(contents)
    return path


FnGetArgs = Callable[[Path, str], Sequence[str]]


def _case_different_config() -> Tuple[FnGetArgs, str]:
    return (
        lambda p, name: [
            "--config",
            str(
                _write_contents(
                    p / "other_config",
                    f"""
                    [{name}]
                    foo = "baz"
                    """,
                )
            ),
        ],
        "baz\nNone\n",
    )


class TestTomlConfigOption:
    @staticmethod
    @pytest.mark.parametrize(
        "get_args, expected_stdout",
        [
            # passing no args should use the value in the default config
            ([], "hello, world!\nNone\n"),
            # the command line overrides the config
            (["--foo", "bar"], "bar\nNone\n"),
            _case_different_config(),
            # nonexistent config should be ignored and treated as an empty table
            (
                lambda p, name: ["--config", str(p / "does_not_exist")],
                "foo default\nNone\n",
            ),
            (["--config", "/dev/null"], "foo default\nNone\n"),
        ],
    )
    @typechecked
    def test_uses_correct_value(
        tmp_path: Path,
        get_args: Union[Sequence[str], FnGetArgs],
        expected_stdout: str,
    ) -> None:
        name = "main"
        config_path = _write_contents(
            tmp_path / "config.toml",
            f"""
            [{name}]
            foo = "hello, world!"
            not_an_option = 42

            [not-{name}]
            foo = "oops"
            """,
        )
        runner = CliRunner()
        args = get_args(tmp_path, name) if callable(get_args) else get_args

        @click.command()
        @toml_config_option(name, default_config_path=config_path)
        @click.option("--foo", default="foo default")
        @click.option("--missing-in-config", type=int)
        def main(foo: Optional[str], missing_in_config: Optional[int]) -> None:
            print(foo)
            print(missing_in_config)

        r = runner.invoke(main, args, catch_exceptions=False)

        assert r.exit_code == 0
        assert r.stdout == expected_stdout

    @staticmethod
    def test_invalid_toml_errors(tmp_path: Path) -> None:
        config_path = _write_contents(tmp_path / "not_toml", "]] oops")
        runner = CliRunner()

        @click.command()
        @toml_config_option("main", default_config_path="/dev/null")
        @click.option("--foo")
        def main(foo: Optional[str]) -> None:
            print(foo)

        r = runner.invoke(main, ["--config", str(config_path)], catch_exceptions=False)

        assert r.exit_code != 0
        assert f"{config_path} does not contain valid TOML." in r.output

    @staticmethod
    def test_missing_table_errors(tmp_path: Path) -> None:
        config_path = _write_contents(
            tmp_path / "config.toml",
            """
            [not-main]
            hello = "world"
            """,
        )
        runner = CliRunner()

        @click.command()
        @toml_config_option("main", default_config_path=config_path)
        @click.option("--foo")
        def main(foo: Optional[str]) -> None:
            print(foo)

        r = runner.invoke(main, catch_exceptions=False)

        assert r.exit_code != 0
        assert "'main' is not a top-level table name" in r.output

    @staticmethod
    def test_config_propagates_to_subcommands(tmp_path: Path) -> None:
        name = "hostfs"
        config_path = _write_contents(
            tmp_path / "config.toml",
            f"""
            [{name}.du]
            timeout_secs = 2.5
            """,
        )
        runner = CliRunner()

        @click.group()
        @toml_config_option(name, default_config_path=config_path)
        def parent() -> None:
            pass

        @parent.command()
        @click.option("--timeout", "timeout_secs", type=float, default=60.0)
        def du(timeout_secs: float) -> None:
            print(timeout_secs)

        r = runner.invoke(parent, ["du"], catch_exceptions=False)

        assert r.exit_code == 0
        assert r.stdout == "2.5\n"


class TestFsInfoOptions:
    @staticmethod
    def _command() -> click.Command:
        @click.command()
        @fs_info_options
        def main(fs_info_options: FsInfoOptions) -> None:
            print(repr(fs_info_options))

        return main

    @staticmethod
    def test_defaults() -> None:
        r = CliRunner().invoke(TestFsInfoOptions._command(), [], catch_exceptions=False)

        assert r.exit_code == 0
        assert r.stdout.strip() == repr(FsInfoOptions(context=FsContext()))

    @staticmethod
    def test_docker_and_extra_mountpoints() -> None:
        r = CliRunner().invoke(
            TestFsInfoOptions._command(),
            [
                "--docker-root",
                "/var/lib/docker",
                "--docker-driver",
                "devicemapper",
                "--docker-driver-status",
                "Pool Name=docker-pool",
                "--extra-mountpoint",
                "/scratch",
                "--diskstats-path",
                "/tmp/diskstats",
            ],
            catch_exceptions=False,
        )

        expected = FsInfoOptions(
            context=FsContext(
                docker=DockerContext(
                    root="/var/lib/docker",
                    driver="devicemapper",
                    driver_status={"Pool Name": "docker-pool"},
                ),
                extra_mountpoints=frozenset({"/scratch"}),
            ),
            diskstats_path="/tmp/diskstats",
        )
        assert r.exit_code == 0
        assert r.stdout.strip() == repr(expected)

    @staticmethod
    def test_invalid_driver_status() -> None:
        r = CliRunner().invoke(
            TestFsInfoOptions._command(), ["--docker-driver-status", "Pool Name"]
        )

        assert r.exit_code == 2
        assert "Expected KEY=VALUE" in r.output


@pytest.mark.parametrize(
    "value, expected",
    [("0", 0), ("1000", 1000), ("1k", 1000), ("2M", 2_000_000), (7, 7)],
)
def test_int_with_si_symbol(value: Union[str, int], expected: int) -> None:
    assert IntWithSISymbol().convert(value, None, None) == expected


@pytest.mark.parametrize("value", ["1G", "k", "one"])
def test_int_with_si_symbol_invalid(value: str) -> None:
    with pytest.raises(click.BadParameter):
        IntWithSISymbol().convert(value, None, None)
