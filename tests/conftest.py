"""Shared fixtures: script files on disk and a Ui that records what it was told."""

import logging
import stat
from pathlib import Path

import pytest


class RecordingUi:
    def __init__(self):
        self.said = []
        self.messages = []
        self.errors = []

    def say(self, message):
        self.said.append(message)

    def message(self, message):
        self.messages.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def ui():
    return RecordingUi()


@pytest.fixture
def logger():
    return logging.getLogger("pipeline-test")


@pytest.fixture
def write_script(tmp_path):
    """Write a shell script under tmp_path and return its path as a string."""

    def _write(name: str, body: str) -> str:
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body.rstrip("\n") + "\n", encoding="utf-8")
        path.chmod(path.stat().st_mode | stat.S_IXUSR)
        return str(path)

    return _write


@pytest.fixture
def artifact_files(tmp_path):
    """Two files standing in for a builder's output."""
    files = []
    for name in ("first.box", "second.box"):
        p = tmp_path / name
        p.write_text(name, encoding="utf-8")
        files.append(str(p))
    return files


def read_lines(path: Path) -> list:
    if not path.exists():
        return []
    return path.read_text(encoding="utf-8").splitlines()
