from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Protocol

from shell_postprocessor.core import Context, PostProcessor
from shell_postprocessor.postprocessor import SHELL, ShellPostProcessor


class PostProcessorPlugin(Protocol):
    """
    Creates post-processors for one `type` name.

    A plugin must:
    - declare the type name it handles
    - report whether it can run in this environment
    - build an unconfigured post-processor
    """

    name: str
    type: str

    def is_available(self, ctx: Context) -> tuple[bool, str | None]: ...

    def create(self, ctx: Context) -> PostProcessor: ...


@dataclass(frozen=True)
class ShellPostProcessorPlugin:
    name: str = "builtin.post-processor.shell"
    type: str = "shell"

    def is_available(self, ctx: Context) -> tuple[bool, str | None]:
        if ctx.runner.dry_run:
            return True, None
        if not os.access(SHELL, os.X_OK):
            return False, f"`{SHELL}` is not executable"
        return True, None

    def create(self, ctx: Context) -> PostProcessor:
        return ShellPostProcessor(runner=ctx.runner, logger=ctx.logger)


def builtin_plugins() -> list[PostProcessorPlugin]:
    return [ShellPostProcessorPlugin()]


class PostProcessorRegistry:
    """
    Type-name keyed factory. The chain runner does not know about concrete post-processors.
    """

    def __init__(self, plugins: Iterable[PostProcessorPlugin]) -> None:
        by_type: dict[str, PostProcessorPlugin] = {}
        for plugin in plugins:
            if not getattr(plugin, "name", None):
                raise ValueError("Plugin is missing required attribute 'name'")
            kind = getattr(plugin, "type", None)
            if not isinstance(kind, str) or not kind:
                raise ValueError(f"Plugin {plugin.name} returned invalid type: {kind!r}")
            if kind in by_type:
                other = by_type[kind]
                raise ValueError(f"Duplicate post-processor type {kind}: {other.name} and {plugin.name}")
            by_type[kind] = plugin
        self._by_type = by_type

    @property
    def registered_types(self) -> list[str]:
        return sorted(self._by_type)

    def plugin_for(self, kind: str) -> PostProcessorPlugin:
        plugin = self._by_type.get(kind)
        if plugin is None:
            known = ", ".join(self.registered_types) if self._by_type else "(none)"
            raise ValueError(f"Unknown post-processor type: {kind} (known: {known})")
        return plugin

    def from_dict(
        self,
        raw: Mapping[str, Any],
        ctx: Context,
        *,
        build: Mapping[str, Any] | None = None,
    ) -> PostProcessor:
        kind = raw.get("type")
        if not isinstance(kind, str) or not kind:
            raise ValueError("Post-processor definition missing 'type'")

        plugin = self.plugin_for(kind)
        ok, reason = plugin.is_available(ctx)
        if not ok:
            msg = reason or "plugin is not available in this environment"
            raise RuntimeError(f"Post-processor {kind} is unavailable: {msg}")

        definition = {k: v for k, v in raw.items() if k != "type"}
        pp = plugin.create(ctx)
        pp.configure(build, definition)
        return pp
