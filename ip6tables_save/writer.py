"""Save-format writer: drives table enumeration, chain walking and rule emission."""
from __future__ import annotations

import logging
import sys
import time
from typing import Callable, List, Optional, TextIO

from .engine import RulesetEngine, TableHandle
from .model import BinaryNotImplementedError, SaveConfig
from .render import render_rule
from .tables import enumerate_tables
from .walker import Renderer, emit_rules, walk_chains

logger = logging.getLogger(__name__)


class SaveWriter:
    """Stream one ``*table ... COMMIT`` block per selected table to ``out``.

    Lines are written as they are produced; nothing already written is
    retracted when a later table fails.
    """

    def __init__(
        self,
        engine: RulesetEngine,
        config: SaveConfig = SaveConfig(),
        out: Optional[TextIO] = None,
        renderer: Renderer = render_rule,
        clock: Callable[[], float] = time.time,
    ):
        self.engine = engine
        self.config = config
        self.out = out if out is not None else sys.stdout
        self.renderer = renderer
        self.clock = clock

    def write(self, requested: Optional[str] = None) -> List[str]:
        """Write every selected table and return their names in emission order."""
        names = enumerate_tables(requested, self.engine.table_names)
        for name in names:
            self.write_table(name)
        return names

    def write_table(self, name: str) -> None:
        with self.engine.open(name) as handle:
            logger.debug("Opened table %s", name)
            if self.config.binary:
                raise BinaryNotImplementedError("Binary NYI")
            self._write_block(handle)

    def _write_block(self, handle: TableHandle) -> None:
        config = self.config
        self._line(
            f"# Generated by {config.program_name} v{config.version} on {self._timestamp()}"
        )
        self._line(f"*{handle.name}")

        # Declare every chain before any rule so jump targets resolve on reload.
        chains = walk_chains(handle)
        for chain in chains:
            self._line(chain.declaration())

        rule_count = 0
        for chain in chains:
            for line in emit_rules(handle, chain, config.counters, self.renderer):
                self._line(line)
                rule_count += 1

        self._line("COMMIT")
        self._line(f"# Completed on {self._timestamp()}")
        logger.info("Saved table %s: %d chain(s), %d rule(s)", handle.name, len(chains), rule_count)

    def _timestamp(self) -> str:
        return time.ctime(self.clock())

    def _line(self, text: str) -> None:
        self.out.write(text + "\n")


def save_tables(
    engine: RulesetEngine,
    requested: Optional[str] = None,
    config: SaveConfig = SaveConfig(),
    out: Optional[TextIO] = None,
) -> List[str]:
    return SaveWriter(engine, config=config, out=out).write(requested)
