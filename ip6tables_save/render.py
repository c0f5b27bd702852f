"""Rule rendering into ip6tables-save rule lines."""
from __future__ import annotations

from typing import Iterable

from .model import RuleEntry, SaveError

_NEEDS_QUOTES = set(" \t\"\\'")


def quote_arg(arg: str) -> str:
    if arg and not any(char in _NEEDS_QUOTES for char in arg):
        return arg
    escaped = arg.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def join_args(args: Iterable[str]) -> str:
    return " ".join(quote_arg(arg) for arg in args)


def render_rule(rule: RuleEntry, chain: str, counters: bool = False) -> str:
    """Render ``rule`` as one ``-A <chain> ...`` line, optionally prefixed by its counters."""
    line = f"-A {chain}"
    if rule.args:
        line = f"{line} {join_args(rule.args)}"
    if counters:
        line = f"{rule.counters.bracket()} {line}"
    if "\n" in line or "\r" in line:
        raise SaveError(f"Rendered rule contains a line break: {rule.summary()}")
    return line
