from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from shell_postprocessor.artifact import Artifact
from shell_postprocessor.core import PostProcessor
from shell_postprocessor.ui import Ui


@dataclass(frozen=True)
class ChainStep:
    type: str
    post_processor: PostProcessor


def _overlaps(artifact: Artifact, files: Iterable[str]) -> bool:
    return not set(artifact.files()).isdisjoint(files)


def _discard(artifact: Artifact, *, protected: set[str], ui: Ui, logger: logging.Logger) -> None:
    if _overlaps(artifact, protected):
        logger.debug("Not deleting %s: its files are still referenced", artifact)
        return
    ui.say(f"Deleting intermediate artifact: {artifact}")
    artifact.destroy()


def run_chain(
    steps: Sequence[ChainStep],
    artifact: Artifact,
    ui: Ui,
    logger: logging.Logger,
) -> tuple[Artifact, bool]:
    """
    Feed `artifact` through each step in order.

    Returns the final artifact and whether the first step asked to keep its
    input. Intermediate artifacts a later step does not keep are destroyed
    here; what happens to `artifact` itself is left to the caller.
    """
    current = artifact
    keep_input = True
    for i, step in enumerate(steps):
        ui.say(f"Running post-processor: {step.type}")
        result, keep = step.post_processor.post_process(ui, current)
        if i == 0:
            keep_input = keep
        elif not keep:
            protected = set(artifact.files()) | set(result.files())
            _discard(current, protected=protected, ui=ui, logger=logger)
        current = result
    return current, keep_input


def run_chains(
    chains: Sequence[Sequence[ChainStep]],
    artifact: Artifact,
    ui: Ui,
    logger: logging.Logger,
) -> list[Artifact]:
    """
    Run every chain against the same input artifact.

    The input artifact is destroyed only when no chain asked to keep it and
    none of the results still references its files.
    """
    results: list[Artifact] = []
    keep_builder = not chains
    for chain in chains:
        result, keep = run_chain(chain, artifact, ui, logger)
        results.append(result)
        keep_builder = keep_builder or keep

    if not keep_builder:
        referenced: set[str] = set()
        for r in results:
            referenced.update(r.files())
        if _overlaps(artifact, referenced):
            logger.info("Keeping %s: a post-processor passed its files through", artifact)
        else:
            ui.say(f"Deleting original artifact: {artifact}")
            artifact.destroy()
    return results
