"""Chain walking and rule emission over an open table handle."""
from __future__ import annotations

import logging
from typing import Callable, Iterator, List

from .engine import TableHandle
from .model import ChainView, RuleEntry
from .render import render_rule

logger = logging.getLogger(__name__)

Renderer = Callable[[RuleEntry, str, bool], str]


def walk_chains(handle: TableHandle) -> List[ChainView]:
    """Materialize the chain list once so both emission passes see the same order."""
    views: List[ChainView] = []
    for name in handle.chain_names():
        if handle.is_builtin(name):
            policy, counters = handle.get_policy(name)
            views.append(ChainView(name=name, is_builtin=True, policy=policy, counters=counters))
        else:
            views.append(ChainView(name=name, is_builtin=False))
    logger.debug("Table %s has %d chain(s)", handle.name, len(views))
    return views


def emit_rules(
    handle: TableHandle,
    chain: ChainView,
    counters: bool,
    renderer: Renderer = render_rule,
) -> Iterator[str]:
    for rule in handle.rules(chain.name):
        yield renderer(rule, chain.name, counters)
