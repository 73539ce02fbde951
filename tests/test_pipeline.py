"""Tests for running post-processor chains."""

import os

from shell_postprocessor.artifact import FileArtifact
from shell_postprocessor.pipeline import ChainStep, run_chain, run_chains


class FakePostProcessor:
    def __init__(self, make_result, keep):
        self._make_result = make_result
        self._keep = keep
        self.inputs = []

    def configure(self, *raws):
        pass

    def post_process(self, ui, artifact):
        self.inputs.append(artifact)
        return self._make_result(artifact), self._keep


def _pass_through(keep):
    return FakePostProcessor(FileArtifact.from_artifact, keep)


def _new_file(path, keep):
    def make(artifact):
        with open(path, "w", encoding="utf-8") as f:
            f.write("new")
        return FileArtifact.box(provider=artifact.id(), builder_id=artifact.builder_id(), path=path)

    return FakePostProcessor(make, keep)


def _builder_artifact(files):
    return FileArtifact.from_files(files, builder_id="b", artifact_id="p")


class TestRunChain:
    def test_steps_see_previous_result(self, tmp_path, ui, logger, artifact_files):
        out = str(tmp_path / "out.box")
        first = _new_file(out, keep=True)
        second = _pass_through(keep=True)
        artifact = _builder_artifact(artifact_files)

        result, keep = run_chain(
            [ChainStep("a", first), ChainStep("b", second)], artifact, ui, logger
        )

        assert first.inputs == [artifact]
        assert second.inputs[0].files() == [out]
        assert result.files() == [out]
        assert keep is True
        assert ui.said == ["Running post-processor: a", "Running post-processor: b"]

    def test_intermediate_artifact_discarded(self, tmp_path, ui, logger, artifact_files):
        mid = str(tmp_path / "mid.box")
        final = str(tmp_path / "final.box")
        steps = [ChainStep("a", _new_file(mid, keep=True)), ChainStep("b", _new_file(final, keep=False))]

        run_chain(steps, _builder_artifact(artifact_files), ui, logger)

        assert not os.path.exists(mid)
        assert os.path.exists(final)
        assert all(os.path.exists(f) for f in artifact_files)

    def test_pass_through_never_destroys_builder_files(self, tmp_path, ui, logger, artifact_files):
        final = str(tmp_path / "final.box")
        steps = [ChainStep("a", _pass_through(keep=False)), ChainStep("b", _new_file(final, keep=False))]

        run_chain(steps, _builder_artifact(artifact_files), ui, logger)

        assert all(os.path.exists(f) for f in artifact_files)


class TestRunChains:
    def test_input_destroyed_when_nobody_keeps_it(self, tmp_path, ui, logger, artifact_files):
        out = str(tmp_path / "out.box")
        results = run_chains(
            [[ChainStep("a", _new_file(out, keep=False))]], _builder_artifact(artifact_files), ui, logger
        )
        assert [r.files() for r in results] == [[out]]
        assert not any(os.path.exists(f) for f in artifact_files)

    def test_input_kept_when_one_chain_keeps_it(self, tmp_path, ui, logger, artifact_files):
        chains = [
            [ChainStep("a", _new_file(str(tmp_path / "one.box"), keep=False))],
            [ChainStep("b", _new_file(str(tmp_path / "two.box"), keep=True))],
        ]
        results = run_chains(chains, _builder_artifact(artifact_files), ui, logger)
        assert len(results) == 2
        assert all(os.path.exists(f) for f in artifact_files)

    def test_pass_through_result_protects_input(self, ui, logger, artifact_files):
        run_chains([[ChainStep("a", _pass_through(keep=False))]], _builder_artifact(artifact_files), ui, logger)
        assert all(os.path.exists(f) for f in artifact_files)

    def test_no_chains(self, ui, logger, artifact_files):
        assert run_chains([], _builder_artifact(artifact_files), ui, logger) == []
        assert all(os.path.exists(f) for f in artifact_files)
