from __future__ import annotations

from typing import Iterable


class PostProcessorError(Exception):
    """Base class for everything this package raises on purpose."""


class ConfigurationError(PostProcessorError, ValueError):
    """
    Every validation problem found while configuring, reported at once.

    `errors` keeps the messages in the order they were detected.
    """

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        if not self.errors:
            raise ValueError("ConfigurationError requires at least one error")
        super().__init__(self._format())

    def _format(self) -> str:
        points = "\n".join(f"* {e}" for e in self.errors)
        return f"{len(self.errors)} error(s) occurred:\n\n{points}"


class ScriptExecutionError(PostProcessorError, RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        script: str | None = None,
        file: str | None = None,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.script = script
        self.file = file
        self.returncode = returncode
        self.stderr = stderr


class TemplateError(PostProcessorError, ValueError):
    pass
