"""
Post-processor that runs shell scripts against every file of a build artifact.

Plugin authors and hosts should only need the names exported here.
"""

from shell_postprocessor.artifact import Artifact, FileArtifact
from shell_postprocessor.config import Config, decode_config
from shell_postprocessor.core import Context, Options, PostProcessor
from shell_postprocessor.errors import (
    ConfigurationError,
    PostProcessorError,
    ScriptExecutionError,
    TemplateError,
)
from shell_postprocessor.postprocessor import ShellPostProcessor
from shell_postprocessor.ui import LoggingUi, Ui

__all__ = [
    "Artifact",
    "FileArtifact",
    "Config",
    "decode_config",
    "Context",
    "Options",
    "PostProcessor",
    "ConfigurationError",
    "PostProcessorError",
    "ScriptExecutionError",
    "TemplateError",
    "ShellPostProcessor",
    "LoggingUi",
    "Ui",
]
