"""
Build-scoped rendering of `{{ ... }}` actions in configuration strings.

Supported inside an action:
    {{ build_name }}            function call
    {{ user "region" }}         function with a quoted argument
    {{ .ArtifactId }}           field from TemplateContext.data
    {{ build_name | upper }}    pipeline, previous result becomes the last argument

Text outside actions is copied verbatim.

`isotime` takes a Go reference-time layout ("2006-01-02T15:04:05Z07:00").
Zero-padded, named, `_2`, `002`, fractional-second and zone elements are
understood; the unpadded single-digit forms ("1", "2", "3", ...) are not.
"""

from __future__ import annotations

import os
import re
import time
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from shell_postprocessor.errors import TemplateError

# Captured once so every `timestamp`/`isotime` within one run agrees.
_INIT_TIME = time.time()

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", '"': '"', "\\": "\\"}

# Go reference-time layout elements. A prefix must come after every longer
# element it would shadow. Times are always UTC, so zone elements are constant.
_GO_LAYOUT: list[tuple[str, Callable[[datetime], str]]] = [
    ("January", lambda t: t.strftime("%B")),
    ("Monday", lambda t: t.strftime("%A")),
    ("Z07:00", lambda t: "Z"),
    ("Z0700", lambda t: "Z"),
    ("-07:00", lambda t: "+00:00"),
    ("-0700", lambda t: "+0000"),
    (".000000000", lambda t: f".{t.microsecond * 1000:09d}"),
    (".000000", lambda t: f".{t.microsecond:06d}"),
    (".000", lambda t: f".{t.microsecond // 1000:03d}"),
    ("2006", lambda t: f"{t.year:04d}"),
    ("002", lambda t: f"{t.timetuple().tm_yday:03d}"),
    ("_2", lambda t: f"{t.day:>2}"),
    ("MST", lambda t: "UTC"),
    ("Mon", lambda t: t.strftime("%a")),
    ("Jan", lambda t: t.strftime("%b")),
    ("06", lambda t: f"{t.year % 100:02d}"),
    ("01", lambda t: f"{t.month:02d}"),
    ("02", lambda t: f"{t.day:02d}"),
    ("15", lambda t: f"{t.hour:02d}"),
    ("03", lambda t: f"{(t.hour % 12) or 12:02d}"),
    ("04", lambda t: f"{t.minute:02d}"),
    ("05", lambda t: f"{t.second:02d}"),
    ("PM", lambda t: "PM" if t.hour >= 12 else "AM"),
]

_RFC3339 = "2006-01-02T15:04:05Z07:00"


@dataclass(frozen=True)
class TemplateContext:
    build_name: str = ""
    build_type: str = ""
    user_variables: Mapping[str, str] = field(default_factory=dict)
    data: Mapping[str, Any] | None = None
    enable_env: bool = False
    template_dir: str | None = None

    def with_data(self, data: Mapping[str, Any]) -> "TemplateContext":
        return replace(self, data=dict(data))


def _format_go_layout(t: datetime, layout: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(layout):
        for go, fmt in _GO_LAYOUT:
            if layout.startswith(go, i):
                out.append(fmt(t))
                i += len(go)
                break
        else:
            out.append(layout[i])
            i += 1
    return "".join(out)


def _fn_build_name(ctx: TemplateContext) -> str:
    return ctx.build_name


def _fn_build_type(ctx: TemplateContext) -> str:
    return ctx.build_type


def _fn_user(ctx: TemplateContext, name: str) -> str:
    return str(ctx.user_variables.get(name, ""))


def _fn_env(ctx: TemplateContext, name: str) -> str:
    if not ctx.enable_env:
        raise TemplateError("env vars are not allowed here")
    return os.environ.get(name, "")


def _fn_timestamp(ctx: TemplateContext) -> str:
    return str(int(_INIT_TIME))


def _fn_isotime(ctx: TemplateContext, layout: str | None = None) -> str:
    now = datetime.fromtimestamp(_INIT_TIME, tz=timezone.utc)
    return _format_go_layout(now, _RFC3339 if layout is None else layout)


def _fn_uuid(ctx: TemplateContext) -> str:
    return str(uuid.uuid4())


def _fn_pwd(ctx: TemplateContext) -> str:
    return os.getcwd()


def _fn_template_dir(ctx: TemplateContext) -> str:
    if not ctx.template_dir:
        raise TemplateError("template path not available")
    return ctx.template_dir


def _fn_upper(ctx: TemplateContext, value: str) -> str:
    return value.upper()


def _fn_lower(ctx: TemplateContext, value: str) -> str:
    return value.lower()


# name -> (callable, min args, max args)
_FUNCS: dict[str, tuple[Callable[..., str], int, int]] = {
    "build_name": (_fn_build_name, 0, 0),
    "build_type": (_fn_build_type, 0, 0),
    "user": (_fn_user, 1, 1),
    "env": (_fn_env, 1, 1),
    "timestamp": (_fn_timestamp, 0, 0),
    "isotime": (_fn_isotime, 0, 1),
    "uuid": (_fn_uuid, 0, 0),
    "pwd": (_fn_pwd, 0, 0),
    "template_dir": (_fn_template_dir, 0, 0),
    "upper": (_fn_upper, 1, 1),
    "lower": (_fn_lower, 1, 1),
}


@dataclass(frozen=True)
class _Token:
    kind: str  # ident | field | string
    value: str


@dataclass(frozen=True)
class _Action:
    pipeline: tuple[tuple[_Token, ...], ...]
    source: str


def _tokenize(body: str, *, where: str) -> list[_Token | None]:
    # None marks a pipe.
    tokens: list[_Token | None] = []
    i = 0
    n = len(body)
    while i < n:
        ch = body[i]
        if ch.isspace():
            i += 1
            continue
        if ch == "|":
            tokens.append(None)
            i += 1
            continue
        if ch == '"':
            j = i + 1
            buf: list[str] = []
            while j < n and body[j] != '"':
                if body[j] == "\\" and j + 1 < n:
                    buf.append(_ESCAPES.get(body[j + 1], body[j + 1]))
                    j += 2
                    continue
                buf.append(body[j])
                j += 1
            if j >= n:
                raise TemplateError(f"unterminated quoted string in {where}")
            tokens.append(_Token("string", "".join(buf)))
            i = j + 1
            continue
        if ch == "`":
            j = body.find("`", i + 1)
            if j < 0:
                raise TemplateError(f"unterminated raw string in {where}")
            tokens.append(_Token("string", body[i + 1 : j]))
            i = j + 1
            continue
        if ch == ".":
            m = _IDENT_RE.match(body, i + 1)
            if not m:
                raise TemplateError(f"bad field reference in {where}")
            tokens.append(_Token("field", m.group(0)))
            i = m.end()
            continue
        m = _IDENT_RE.match(body, i)
        if m:
            tokens.append(_Token("ident", m.group(0)))
            i = m.end()
            continue
        raise TemplateError(f"unexpected {ch!r} in {where}")
    return tokens


def _check_command(cmd: tuple[_Token, ...], *, where: str) -> None:
    head, args = cmd[0], cmd[1:]
    if head.kind != "ident":
        if args:
            raise TemplateError(f"can't give argument to non-function {head.value!r} in {where}")
        return
    if head.value not in _FUNCS:
        raise TemplateError(f'function "{head.value}" not defined in {where}')
    for a in args:
        if a.kind == "ident" and a.value not in _FUNCS:
            raise TemplateError(f'function "{a.value}" not defined in {where}')


def _parse_action(body: str, *, where: str) -> _Action:
    tokens = _tokenize(body, where=where)
    if not tokens:
        raise TemplateError(f"missing value for command in {where}")

    pipeline: list[tuple[_Token, ...]] = []
    current: list[_Token] = []
    for tok in tokens:
        if tok is None:
            if not current:
                raise TemplateError(f"missing command in pipeline in {where}")
            pipeline.append(tuple(current))
            current = []
            continue
        current.append(tok)
    if not current:
        raise TemplateError(f"missing command in pipeline in {where}")
    pipeline.append(tuple(current))

    for cmd in pipeline:
        _check_command(cmd, where=where)
    return _Action(pipeline=tuple(pipeline), source=body)


def _find_action_end(template: str, start: int) -> int:
    """Index of the `}}` closing the action opened at `start`, skipping quoted text."""
    where = f"action at offset {start}"
    i = start + 2
    n = len(template)
    while i < n:
        ch = template[i]
        if ch == '"':
            i += 1
            while i < n and template[i] != '"':
                i += 2 if template[i] == "\\" else 1
            if i >= n:
                raise TemplateError(f"unterminated quoted string in {where}")
        elif ch == "`":
            i = template.find("`", i + 1)
            if i < 0:
                raise TemplateError(f"unterminated raw string in {where}")
        elif template.startswith("}}", i):
            return i
        i += 1
    raise TemplateError(f"unclosed action starting at offset {start}")


def _parse(template: str) -> list[Any]:
    nodes: list[Any] = []
    pos = 0
    while True:
        start = template.find("{{", pos)
        if start < 0:
            if pos < len(template):
                nodes.append(template[pos:])
            return nodes
        if start > pos:
            nodes.append(template[pos:start])
        end = _find_action_end(template, start)
        where = f"action at offset {start}"
        nodes.append(_parse_action(template[start + 2 : end], where=where))
        pos = end + 2


def _call(name: str, args: list[str], ctx: TemplateContext) -> str:
    fn, lo, hi = _FUNCS[name]
    if not lo <= len(args) <= hi:
        raise TemplateError(f"wrong number of args for {name}: want {lo}..{hi}, got {len(args)}")
    return fn(ctx, *args)


def _eval_arg(tok: _Token, ctx: TemplateContext) -> str:
    if tok.kind == "string":
        return tok.value
    if tok.kind == "field":
        if ctx.data is None or tok.value not in ctx.data:
            raise TemplateError(f"can't evaluate field {tok.value}")
        return str(ctx.data[tok.value])
    return _call(tok.value, [], ctx)


def _eval_action(action: _Action, ctx: TemplateContext) -> str:
    prev: str | None = None
    for cmd in action.pipeline:
        head, rest = cmd[0], cmd[1:]
        args = [_eval_arg(a, ctx) for a in rest]
        if prev is not None:
            args.append(prev)
        if head.kind != "ident":
            if args:
                raise TemplateError(f"can't give argument to non-function {head.value!r}")
            prev = _eval_arg(head, ctx)
        else:
            prev = _call(head.value, args, ctx)
    return prev or ""


def validate(template: str, ctx: TemplateContext | None = None) -> None:
    """Parse without evaluating. Raises TemplateError on malformed input."""
    _parse(template)


def render(template: str, ctx: TemplateContext) -> str:
    out: list[str] = []
    for node in _parse(template):
        if isinstance(node, _Action):
            out.append(_eval_action(node, ctx))
        else:
            out.append(node)
    return "".join(out)
