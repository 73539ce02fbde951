from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence


def sh_join(args: Sequence[str]) -> str:
    return shlex.join(list(args))


def env_pairs_to_mapping(entries: Iterable[str]) -> dict[str, str]:
    """
    Turn `KEY=value` entries into a mapping for a child process.

    Entries are applied in order, so a later duplicate key replaces an
    earlier one. Entries without `=` are skipped.
    """
    out: dict[str, str] = {}
    for entry in entries:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            continue
        out[key] = value
    return out


@dataclass(frozen=True)
class RunResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    def __init__(self, *, dry_run: bool, logger) -> None:
        self._dry_run = dry_run
        self._logger = logger

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def run(
        self,
        args: Iterable[str],
        *,
        env: Mapping[str, str] | None = None,
        inherit_env: bool = True,
    ) -> RunResult:
        argv = list(args)

        # Keep low-level process logs at DEBUG so high-level output can stay
        # "one line per script".
        self._logger.debug("RUN %s", sh_join(argv))
        if self._dry_run:
            return RunResult(args=argv, returncode=0, stdout="", stderr="")

        child_env = None
        if env is not None:
            child_env = dict(os.environ) if inherit_env else {}
            child_env.update(dict(env))
        elif not inherit_env:
            child_env = {}

        # Scripts may print arbitrary bytes; undecodable ones become U+FFFD.
        cp = subprocess.run(
            argv,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            env=child_env,
        )
        return RunResult(
            args=argv,
            returncode=cp.returncode,
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
        )
