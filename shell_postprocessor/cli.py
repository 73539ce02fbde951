from __future__ import annotations

import argparse
import logging
from pathlib import Path

from shell_postprocessor.artifact import FileArtifact
from shell_postprocessor.config_loader import LoadedConfig, load_config_file
from shell_postprocessor.core import Options, build_context
from shell_postprocessor.errors import ConfigurationError, PostProcessorError
from shell_postprocessor.pipeline import ChainStep, run_chains
from shell_postprocessor.registry import PostProcessorRegistry, builtin_plugins
from shell_postprocessor.ui import LoggingUi


def _setup_logger(verbose: bool) -> logging.Logger:
    logger = logging.getLogger("shell-postprocessor")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.handlers[:] = [handler]
    logger.propagate = False
    return logger


def _parse_var(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key, val


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="shell-postprocessor")
    parser.add_argument(
        "--config",
        action="append",
        type=Path,
        required=True,
        help="File with post-processor definitions (*.json, *.toml, *.yaml, *.yml). "
        "Can be specified multiple times; chains run in the order given.",
    )
    parser.add_argument(
        "--file",
        action="append",
        default=[],
        help="A file of the input artifact. Can be specified multiple times.",
    )
    parser.add_argument("--builder-id", default="local", help="Builder id of the input artifact.")
    parser.add_argument("--artifact-id", default="local", help="Id (provider) of the input artifact.")
    parser.add_argument("--build-name", default="", help="Exposed as PACKER_BUILD_NAME and {{ build_name }}.")
    parser.add_argument("--builder-type", default="", help="Exposed as PACKER_BUILDER_TYPE and {{ build_type }}.")
    parser.add_argument(
        "--var",
        action="append",
        type=_parse_var,
        default=[],
        help="User variable KEY=VALUE for {{ user `KEY` }}. Overrides template variables.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log what would run but do not execute scripts.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose logs.",
    )
    args = parser.parse_args(argv)

    logger = _setup_logger(args.verbose)
    ctx = build_context(options=Options(dry_run=bool(args.dry_run)), logger=logger)
    ui = LoggingUi(logger)

    loaded: list[LoadedConfig] = []
    for path in args.config:
        if not path.exists():
            logger.error("Config file not found: %s", path)
            return 2
        try:
            loaded.append(load_config_file(path))
        except ValueError as e:
            logger.error("Failed to load config @ %s: %s", path, e)
            return 2

    user_variables: dict[str, str] = {}
    for cfg in loaded:
        user_variables.update(cfg.variables)
    user_variables.update(dict(args.var))

    build = {
        "packer_build_name": args.build_name,
        "packer_builder_type": args.builder_type,
        "packer_user_variables": user_variables,
    }

    registry = PostProcessorRegistry(builtin_plugins())
    logger.debug("Registered post-processor types: %s", ", ".join(registry.registered_types))

    # Configure everything before running anything.
    chains: list[list[ChainStep]] = []
    for cfg in loaded:
        desc = cfg.description or cfg.path.as_posix()
        logger.info("# %s (%d chains)", desc, len(cfg.chains))
        for i, chain in enumerate(cfg.chains, start=1):
            steps: list[ChainStep] = []
            for j, raw in enumerate(chain, start=1):
                where = f"{cfg.path} (post-processor {i}, step {j})"
                try:
                    pp = registry.from_dict(raw, ctx, build=build)
                except ConfigurationError as e:
                    logger.error("Invalid configuration in %s:", where)
                    for err in e.errors:
                        logger.error("* %s", err)
                    return 2
                except (ValueError, RuntimeError) as e:
                    logger.error("Invalid post-processor in %s: %s", where, e)
                    return 2
                steps.append(ChainStep(type=raw["type"], post_processor=pp))
            chains.append(steps)

    artifact = FileArtifact.from_files(
        args.file,
        builder_id=args.builder_id,
        artifact_id=args.artifact_id,
    )
    try:
        results = run_chains(chains, artifact, ui, logger)
    except (PostProcessorError, OSError) as e:
        ui.error(str(e))
        return 1

    for result in results:
        logger.info("Artifact: %s", result)
        for f in result.files():
            logger.info("└─ %s", f)
    logger.info("Done.")
    return 0
