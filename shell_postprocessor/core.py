from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol

from shell_postprocessor.artifact import Artifact
from shell_postprocessor.ui import Ui
from shell_postprocessor.util import CommandRunner


class PostProcessor(Protocol):
    def configure(self, *raws: Any) -> None: ...

    def post_process(self, ui: Ui, artifact: Artifact) -> tuple[Artifact, bool]: ...


@dataclass(frozen=True)
class Options:
    dry_run: bool


@dataclass(frozen=True)
class Context:
    logger: logging.Logger
    runner: CommandRunner
    options: Options


def build_context(*, options: Options, logger: logging.Logger) -> Context:
    runner = CommandRunner(dry_run=options.dry_run, logger=logger)
    return Context(logger=logger, runner=runner, options=options)
