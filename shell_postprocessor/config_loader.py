from __future__ import annotations

import json
from dataclasses import dataclass, field
from json import JSONDecodeError
from pathlib import Path
from typing import Any

# Template sections that belong to other stages and are ignored here.
_IGNORED_SECTIONS = {
    "builders",
    "provisioners",
    "min_packer_version",
    "sensitive-variables",
}
_CHAIN_KEYS = ("post-processors", "post_processors", "post-processor")


@dataclass(frozen=True)
class LoadedConfig:
    path: Path
    description: str | None
    # Each chain is an ordered list of post-processor definitions.
    chains: list[list[dict[str, Any]]]
    variables: dict[str, str] = field(default_factory=dict)


def _require_definition(value: Any, *, what: str) -> dict[str, Any]:
    if isinstance(value, str):
        if not value:
            raise ValueError(f"{what} must not be an empty type name")
        return {"type": value}
    if isinstance(value, dict):
        kind = value.get("type")
        if not isinstance(kind, str) or not kind:
            raise ValueError(f"{what} requires 'type'")
        return dict(value)
    raise ValueError(f"{what} must be a type name or a table")


def _as_chain(entry: Any, *, what: str) -> list[dict[str, Any]]:
    if isinstance(entry, list):
        if not entry:
            raise ValueError(f"{what} must not be an empty sequence")
        return [_require_definition(x, what=f"{what} step {j}") for j, x in enumerate(entry, start=1)]
    return [_require_definition(entry, what=what)]


def _chains_from_entries(entries: Any) -> list[list[dict[str, Any]]]:
    if isinstance(entries, dict):
        entries = [entries]
    if not isinstance(entries, list):
        raise ValueError("'post-processors' must be a list")
    return [_as_chain(e, what=f"post-processor {i}") for i, e in enumerate(entries, start=1)]


def _variables(obj: dict[str, Any]) -> dict[str, str]:
    raw = obj.get("variables")
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError("'variables' must be a table if present")
    return {str(k): "" if v is None else str(v) for k, v in raw.items()}


def _normalize_top_level(obj: Any) -> tuple[str | None, list[list[dict[str, Any]]], dict[str, str]]:
    if isinstance(obj, list):
        return None, _chains_from_entries(obj), {}
    if isinstance(obj, dict):
        description = obj.get("description")
        if description is not None and not isinstance(description, str):
            raise ValueError("'description' must be a string if present")

        # Style A: a single definition ({"type": "shell", ...}).
        if "type" in obj:
            definition = {k: v for k, v in obj.items() if k != "description"}
            return description, [[_require_definition(definition, what="post-processor")]], {}

        # Style B: template-like document with a post-processors section.
        present = [k for k in _CHAIN_KEYS if k in obj]
        if len(present) > 1:
            raise ValueError(f"Use only one of {', '.join(present)}")
        if present:
            extra_keys = set(obj.keys()) - {"description", "variables", present[0]} - _IGNORED_SECTIONS
            if extra_keys:
                extra = ", ".join(sorted(extra_keys))
                raise ValueError(f"Unsupported top-level keys: {extra}")
            return description, _chains_from_entries(obj[present[0]]), _variables(obj)
    raise ValueError("Config must be a list of post-processors or {post-processors: [...]}.")


def _load_json(text: str, path: Path) -> Any:
    try:
        return json.loads(text)
    except JSONDecodeError as e:
        raise ValueError(
            f"Invalid JSON in {path} at line {e.lineno}, column {e.colno}: {e.msg}"
        ) from e


def _load_toml(text: str, path: Path) -> Any:
    # TOML parsing is in stdlib as of Python 3.11. On older Pythons, allow tomli if installed.
    try:
        import tomllib  # type: ignore
    except ImportError:  # pragma: no cover
        try:
            import tomli as tomllib  # type: ignore
        except ImportError as e:
            raise ValueError(
                "TOML config support requires Python 3.11+ (tomllib) or 'tomli' installed. "
                f"Failed to import TOML parser for {path}."
            ) from e
    try:
        return tomllib.loads(text)
    except Exception as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def _load_yaml(text: str, path: Path) -> Any:
    import yaml

    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None and hasattr(mark, "line") and hasattr(mark, "column"):
            line = int(mark.line) + 1
            col = int(mark.column) + 1
            raise ValueError(f"Invalid YAML in {path} at line {line}, column {col}: {e}") from e
        raise ValueError(f"Invalid YAML in {path}: {e}") from e


def load_config_file(path: Path) -> LoadedConfig:
    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    if suffix == ".json":
        raw = _load_json(text, path)
    elif suffix == ".toml":
        raw = _load_toml(text, path)
    elif suffix in (".yaml", ".yml"):
        raw = _load_yaml(text, path)
    else:
        raise ValueError(
            f"Unsupported config format for {path} (expected .json, .toml, .yaml, .yml)."
        )

    try:
        description, chains, variables = _normalize_top_level(raw)
    except ValueError as e:
        raise ValueError(f"{path}: {e}") from e
    return LoadedConfig(path=path, description=description, chains=chains, variables=variables)
