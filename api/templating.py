"""Template variable substitution for query text and serialized payloads.

Supported references: ``$name``, ``${name}``, ``${name:format}``, ``[[name]]``
and ``[[name:format]]``. References to unknown variables are left untouched.
"""

from __future__ import annotations

import re
from typing import Callable

VariableValue = str | int | float | list[str]

_VARIABLE_RE = re.compile(
    r"\$(\w+)"
    r"|\[\[(\w+)(?::(\w+))?\]\]"
    r"|\$\{(\w+)(?::(\w+))?\}"
)

_LUCENE_SPECIAL_RE = re.compile(r'([!*+\-=<>\s&|()\[\]{}^~?:\\/"])')


def lucene_escape(value: str) -> str:
    """Backslash-escape Lucene query syntax characters."""
    return _LUCENE_SPECIAL_RE.sub(r"\\\1", value)


def _format_lucene(value: VariableValue) -> str:
    if isinstance(value, list):
        if not value:
            return "__empty__"
        quoted = [f'"{lucene_escape(str(v))}"' for v in value]
        return "(" + " OR ".join(quoted) + ")"
    return lucene_escape(str(value))


def _format_glob(value: VariableValue) -> str:
    if isinstance(value, list):
        if len(value) == 1:
            return str(value[0])
        return "{" + ",".join(str(v) for v in value) + "}"
    return str(value)


def _format_csv(value: VariableValue) -> str:
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _format_pipe(value: VariableValue) -> str:
    if isinstance(value, list):
        return "|".join(str(v) for v in value)
    return str(value)


def _format_raw(value: VariableValue) -> str:
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _format_regex(value: VariableValue) -> str:
    if isinstance(value, list):
        if len(value) == 1:
            return re.escape(str(value[0]))
        return "(" + "|".join(re.escape(str(v)) for v in value) + ")"
    return re.escape(str(value))


def _format_distributed(value: VariableValue, name: str) -> str:
    """``a,name=b,name=c`` for multi-values."""
    if isinstance(value, list):
        return ",".join(str(v) if i == 0 else f"{name}={v}" for i, v in enumerate(value))
    return str(value)


_FORMATTERS: dict[str, Callable[[VariableValue], str]] = {
    "lucene": _format_lucene,
    "glob": _format_glob,
    "csv": _format_csv,
    "pipe": _format_pipe,
    "raw": _format_raw,
    "regex": _format_regex,
}


class TemplateVariables:
    """A read-only set of variable values for one query cycle."""

    def __init__(self, variables: dict[str, VariableValue] | None = None):
        self._variables = dict(variables or {})

    def __contains__(self, name: str) -> bool:
        return name in self._variables

    def with_values(self, extra: dict[str, VariableValue]) -> TemplateVariables:
        """Return a copy with additional (or overriding) values."""
        return TemplateVariables({**self._variables, **extra})

    def replace(self, target: str | None, fmt: str | None = None) -> str:
        """Substitute every known variable reference in ``target``.

        ``fmt`` applies to references that do not name their own format.
        """
        if not target:
            return target or ""

        def _substitute(match: re.Match) -> str:
            name = match.group(1) or match.group(2) or match.group(4)
            explicit_fmt = match.group(3) or match.group(5)
            if name not in self._variables:
                return match.group(0)
            return _format_value(self._variables[name], explicit_fmt or fmt, name)

        return _VARIABLE_RE.sub(_substitute, target)


def _format_value(value: VariableValue, fmt: str | None, name: str) -> str:
    if fmt == "distributed":
        return _format_distributed(value, name)
    # Unrecognised formats render as glob.
    return _FORMATTERS.get(fmt or "glob", _format_glob)(value)
