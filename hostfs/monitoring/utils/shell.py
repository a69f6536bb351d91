# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import os
import subprocess

from typing import IO, Iterable, List, Optional


def _popen(cmd: List[str], stdin: Optional[IO[str]] = None) -> "subprocess.Popen[str]":
    try:
        return subprocess.Popen(
            cmd,
            text=True,
            # output may echo paths which are not valid UTF-8
            encoding="utf-8",
            errors="surrogateescape",
            stdin=stdin,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as e:
        path = os.environ.get("PATH", "")
        raise RuntimeError(
            f"Could not find executable '{cmd[0]}'. Current PATH: {path}"
        ) from e


def _gen_lines(p: "subprocess.Popen[str]", timeout_secs: float = 5) -> Iterable[str]:
    """Yield the lines `p` writes to stdout, then wait for it to exit.

    Raises:
        subprocess.CalledProcessError if the command exited with a non-zero exit code.
        subprocess.TimeoutExpired if the command did not exit `timeout_secs` after
            closing its stdout. The process is killed in this case.
    """
    with p:
        stdout = p.stdout
        assert stdout is not None, "Stdout should be piped"
        for line in stdout:
            yield line.rstrip("\n")
        try:
            rc = p.wait(timeout=timeout_secs)
        except subprocess.TimeoutExpired:
            p.kill()
            raise
        if rc != 0:
            stderr = p.stderr.read() if p.stderr is not None else None
            raise subprocess.CalledProcessError(rc, p.args, stderr=stderr)
