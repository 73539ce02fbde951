from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Protocol, Sequence


class Artifact(Protocol):
    """
    What the orchestrator hands between stages.

    `__str__` is the human readable description.
    """

    def builder_id(self) -> str: ...

    def files(self) -> list[str]: ...

    def id(self) -> str: ...

    def state(self, name: str) -> Any | None: ...

    def destroy(self) -> None: ...


@dataclass(frozen=True)
class FileArtifact:
    paths: tuple[str, ...]
    builder: str
    provider: str
    description: str = ""
    state_data: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def box(cls, *, provider: str, builder_id: str, path: str) -> "FileArtifact":
        return cls(
            paths=(path,),
            builder=builder_id,
            provider=provider,
            description=f"'{provider}' provider box: {path}",
        )

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> "FileArtifact":
        return cls(
            paths=tuple(artifact.files()),
            builder=artifact.builder_id(),
            provider=artifact.id(),
            description=str(artifact),
        )

    @classmethod
    def from_files(
        cls,
        files: Sequence[str],
        *,
        builder_id: str,
        artifact_id: str,
        description: str | None = None,
    ) -> "FileArtifact":
        paths = tuple(str(f) for f in files)
        if description is None:
            description = f"{artifact_id} artifact: " + ", ".join(paths)
        return cls(paths=paths, builder=builder_id, provider=artifact_id, description=description)

    def builder_id(self) -> str:
        return self.builder

    def files(self) -> list[str]:
        return list(self.paths)

    def id(self) -> str:
        return self.provider

    def state(self, name: str) -> Any | None:
        return self.state_data.get(name)

    def destroy(self) -> None:
        for path in self.paths:
            try:
                os.remove(path)
            except FileNotFoundError:
                continue

    def __str__(self) -> str:
        return self.description
