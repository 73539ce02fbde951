from __future__ import annotations

import logging
from typing import Protocol


class Ui(Protocol):
    def say(self, message: str) -> None: ...

    def message(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingUi:
    """Ui that writes through a logger, for running outside an orchestrator."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def say(self, message: str) -> None:
        self._logger.info("==> %s", message)

    def message(self, message: str) -> None:
        for line in message.rstrip("\n").splitlines():
            self._logger.info("    %s", line)

    def error(self, message: str) -> None:
        self._logger.error("%s", message)
