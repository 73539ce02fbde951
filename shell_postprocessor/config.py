from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from shell_postprocessor import template
from shell_postprocessor.errors import ConfigurationError, TemplateError
from shell_postprocessor.template import TemplateContext

DEFAULT_SHEBANG = "/bin/sh"

_STR_KEYS = {"inline_shebang", "script", "target", "packer_build_name", "packer_builder_type"}
_LIST_KEYS = {"inline", "scripts", "environment_vars"}
_BOOL_KEYS = {"keep_input_artifact", "packer_debug", "packer_force"}
_MAP_KEYS = {"packer_user_variables"}
KNOWN_KEYS = frozenset(_STR_KEYS | _LIST_KEYS | _BOOL_KEYS | _MAP_KEYS)


@dataclass
class Config:
    # Commands run in a single shell script, one line each.
    inline: list[str] | None = None
    inline_shebang: str = ""
    script: str = ""
    scripts: list[str] = field(default_factory=list)
    # KEY=value entries exported to every script.
    environment_vars: list[str] = field(default_factory=list)
    # Output path template; empty means the input artifact is passed through.
    target: str = ""
    keep_input_artifact: bool = False

    # Supplied by the orchestrator for the current build.
    packer_build_name: str = ""
    packer_builder_type: str = ""
    packer_debug: bool = False
    packer_force: bool = False
    packer_user_variables: dict[str, str] = field(default_factory=dict)

    def template_context(self) -> TemplateContext:
        return TemplateContext(
            build_name=self.packer_build_name,
            build_type=self.packer_builder_type,
            user_variables=dict(self.packer_user_variables),
        )


def merge_fragments(raws: Iterable[Mapping[str, Any] | None], errs: list[str]) -> dict[str, Any]:
    """Later fragments override keys of earlier ones."""
    merged: dict[str, Any] = {}
    for i, raw in enumerate(raws):
        if raw is None:
            continue
        if not isinstance(raw, Mapping):
            errs.append(f"Configuration fragment {i} must be a mapping, got {type(raw).__name__}")
            continue
        merged.update(raw)
    return merged


def _decode_value(key: str, value: Any, errs: list[str]) -> tuple[bool, Any]:
    if key in _STR_KEYS:
        if value is None:
            return True, ""
        if not isinstance(value, str):
            errs.append(f"'{key}' must be a string")
            return False, None
        return True, value
    if key in _BOOL_KEYS:
        if not isinstance(value, bool):
            errs.append(f"'{key}' must be a boolean")
            return False, None
        return True, value
    if key in _LIST_KEYS:
        if value is None:
            return True, None if key == "inline" else []
        if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
            errs.append(f"'{key}' must be a list of strings")
            return False, None
        return True, list(value)
    # _MAP_KEYS
    if value is None:
        return True, {}
    if not isinstance(value, Mapping):
        errs.append(f"'{key}' must be a mapping of strings")
        return False, None
    return True, {str(k): str(v) for k, v in value.items()}


def _render_fields(cfg: Config, ctx: TemplateContext, errs: list[str]) -> None:
    for name in ("inline_shebang", "script"):
        try:
            setattr(cfg, name, template.render(getattr(cfg, name), ctx))
        except TemplateError as e:
            errs.append(f"Error processing {name}: {e}")

    for name in ("inline", "scripts", "environment_vars"):
        values = getattr(cfg, name)
        if values is None:
            continue
        rendered: list[str] = []
        for i, elem in enumerate(values):
            try:
                rendered.append(template.render(elem, ctx))
            except TemplateError as e:
                errs.append(f"Error processing {name}[{i}]: {e}")
                rendered.append(elem)
        setattr(cfg, name, rendered)


def decode_config(*raws: Mapping[str, Any] | None) -> Config:
    """
    Merge raw configuration fragments and validate the result.

    Every problem is collected; a single ConfigurationError carrying all of
    them is raised at the end. The returned Config has templates rendered,
    except `target`, which needs artifact data and is only checked for syntax.
    """
    errs: list[str] = []
    merged = merge_fragments(raws, errs)

    cfg = Config()
    for key, value in merged.items():
        if key not in KNOWN_KEYS:
            errs.append(f"Unknown configuration key: {key!r}")
            continue
        ok, decoded = _decode_value(key, value, errs)
        if ok:
            setattr(cfg, key, decoded)

    if not cfg.inline_shebang:
        cfg.inline_shebang = DEFAULT_SHEBANG

    if cfg.script and cfg.scripts:
        errs.append("'script' and 'scripts' are mutually exclusive; specify only one of them.")

    if cfg.script:
        cfg.scripts = [cfg.script]

    _render_fields(cfg, cfg.template_context(), errs)

    try:
        template.validate(cfg.target)
    except TemplateError as e:
        errs.append(f"Error parsing target template: {e}")

    has_inline = bool(cfg.inline)
    if not cfg.scripts and not has_inline:
        errs.append(
            "Either a script file or an inline script is required: "
            "you must specify one of 'inline', 'script' or 'scripts'."
        )
    elif cfg.scripts and has_inline:
        errs.append(
            "'inline' and 'script'/'scripts' are mutually exclusive; "
            "specify a script file or an inline script, not both."
        )

    for path in cfg.scripts:
        try:
            os.stat(path)
        except OSError as e:
            errs.append(f"Bad script '{path}': {e}")

    # Catch entries such as '=foo' or 'foobar'.
    for kv in cfg.environment_vars:
        key, sep, _value = kv.partition("=")
        if not sep or not key:
            errs.append(f"Environment variable not in format 'key=value': {kv}")

    if errs:
        raise ConfigurationError(errs)
    return cfg
