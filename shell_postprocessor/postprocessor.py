from __future__ import annotations

import logging
import os
import tempfile
from contextlib import ExitStack, contextmanager
from typing import Any, Iterator, Mapping, Sequence

from shell_postprocessor import template
from shell_postprocessor.artifact import Artifact, FileArtifact
from shell_postprocessor.config import Config, decode_config
from shell_postprocessor.errors import PostProcessorError, ScriptExecutionError, TemplateError
from shell_postprocessor.ui import Ui
from shell_postprocessor.util import CommandRunner, env_pairs_to_mapping

# Scripts are always handed to this interpreter; the inline shebang only
# ends up in the generated file.
SHELL = "/bin/sh"


def render_inline_script(shebang: str, commands: Sequence[str]) -> str:
    return f"#!{shebang}\n" + "".join(f"{command}\n" for command in commands)


@contextmanager
def inline_script(shebang: str, commands: Sequence[str]) -> Iterator[str]:
    """Write inline commands to a temporary script; the file is removed on exit."""
    try:
        tf = tempfile.NamedTemporaryFile(
            "w", prefix="packer-shell", suffix=".sh", delete=False, encoding="utf-8"
        )
    except OSError as e:
        raise ScriptExecutionError(f"Error preparing shell script: {e}") from e

    path = tf.name
    try:
        try:
            with tf:
                tf.write(render_inline_script(shebang, commands))
                tf.flush()
        except OSError as e:
            raise ScriptExecutionError(f"Error preparing shell script: {e}", script=path) from e
        yield path
    finally:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass


def build_environment(cfg: Config) -> list[str]:
    return [
        f"PACKER_BUILD_NAME={cfg.packer_build_name}",
        f"PACKER_BUILDER_TYPE={cfg.packer_builder_type}",
        *cfg.environment_vars,
    ]


class ShellPostProcessor:
    """
    Runs shell scripts against every file of an artifact.

    configure() may be called again to replace the configuration; a failed
    configure keeps the previous one. post_process() runs file-major: every
    script for the first file, then every script for the next, and stops at
    the first failure.
    """

    def __init__(
        self,
        *,
        runner: CommandRunner | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger("shell-postprocessor")
        self._runner = runner or CommandRunner(dry_run=False, logger=self._logger)
        self._config: Config | None = None

    @property
    def config(self) -> Config:
        if self._config is None:
            raise RuntimeError("post-processor is not configured")
        return self._config

    def configure(self, *raws: Mapping[str, Any] | None) -> None:
        self._config = decode_config(*raws)

    def post_process(self, ui: Ui, artifact: Artifact) -> tuple[Artifact, bool]:
        cfg = self.config
        keep = cfg.keep_input_artifact

        with ExitStack() as stack:
            scripts = list(cfg.scripts)
            if cfg.inline:
                scripts.append(stack.enter_context(inline_script(cfg.inline_shebang, cfg.inline)))

            env = env_pairs_to_mapping(build_environment(cfg))
            for file in artifact.files():
                for path in scripts:
                    self._run_script(ui, path, file, env)

        return self._output_artifact(cfg, artifact), keep

    def _run_script(self, ui: Ui, path: str, file: str, env: Mapping[str, str]) -> None:
        ui.say(f"Process with shell script: {path}")

        self._logger.debug("Opening %s for reading", path)
        try:
            with open(path, "rb"):
                pass
        except OSError as e:
            raise ScriptExecutionError(
                f"Error opening shell script: {e}", script=path, file=file
            ) from e

        ui.message(f"Executing script with artifact: {file}")
        try:
            res = self._runner.run([SHELL, path, file], env=env, inherit_env=False)
        except OSError as e:
            raise ScriptExecutionError(
                f"Unable to execute script {path}: {e}", script=path, file=file
            ) from e

        if res.stdout:
            ui.message(res.stdout)
        if res.returncode != 0:
            raise ScriptExecutionError(
                f"Unable to execute script {path} on {file} (exit status {res.returncode}): {res.stderr}",
                script=path,
                file=file,
                returncode=res.returncode,
                stderr=res.stderr,
            )
        if res.stderr.strip():
            self._logger.debug("script stderr:\n%s", res.stderr.rstrip())

    def _output_artifact(self, cfg: Config, artifact: Artifact) -> Artifact:
        if not cfg.target:
            return FileArtifact.from_artifact(artifact)

        ctx = cfg.template_context().with_data(
            {
                "ArtifactId": artifact.id(),
                "BuildName": cfg.packer_build_name,
                "Provider": artifact.id(),
            }
        )
        try:
            path = template.render(cfg.target, ctx)
        except TemplateError as e:
            raise PostProcessorError(f"Error rendering target template: {e}") from e
        if not os.path.exists(path):
            self._logger.warning("Target %s does not exist after running scripts", path)
        return FileArtifact.box(provider=artifact.id(), builder_id=artifact.builder_id(), path=path)
