"""Live ruleset engine backed by the ip6tables command."""
from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Dict, Iterator, List, Sequence, Tuple

from .engine import RulesetEngine, TableHandle
from .model import (
    ChainData,
    Counters,
    EngineError,
    Policy,
    RuleEntry,
    TableData,
    TableNotFoundError,
)
from .snapshot import split_counter_option
from .tables import TABLE_NAMES_PATH, read_table_names

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "ip6tables"

_MISSING_TABLE_MARKER = "does not exist"


def parse_rule_specs(table: str, text: str) -> TableData:
    """Build a table from ``ip6tables -S -v`` output.

    ``-P`` lines declare built-in chains, ``-N`` lines user-defined chains and
    ``-A`` lines rules; ``-c <packets> <bytes>`` carries the counters.
    """
    data = TableData(name=table)
    chains: Dict[str, ChainData] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            tokens = shlex.split(line)
        except ValueError as exc:
            raise EngineError(f"Cannot split ip6tables output line {line!r}: {exc}") from exc
        if len(tokens) < 2:
            raise EngineError(f"Unexpected ip6tables output line: {line}")
        command, chain_name, *rest = tokens
        rest, counters = split_counter_option(rest)
        counters = counters or Counters.zero()
        if command == "-P":
            if not rest:
                raise EngineError(f"Policy line without a policy: {line}")
            try:
                policy = Policy.from_token(rest[0])
            except ValueError as exc:
                raise EngineError(str(exc)) from exc
            chain = ChainData(name=chain_name, builtin=True, policy=policy, counters=counters)
        elif command == "-N":
            chain = ChainData(name=chain_name, builtin=False)
        elif command == "-A":
            if chain_name not in chains:
                raise EngineError(f"Rule for undeclared chain {chain_name}: {line}")
            chains[chain_name].add_rule(RuleEntry(chain=chain_name, args=tuple(rest), counters=counters))
            continue
        else:
            raise EngineError(f"Unexpected ip6tables output line: {line}")
        if chain_name in chains:
            raise EngineError(f"Chain {chain_name} reported twice")
        chains[chain_name] = chain
        data.add_chain(chain)
    return data


class CommandTable(TableHandle):
    """Table contents read once at open time; walks are served from that copy."""

    def __init__(self, table: TableData):
        super().__init__(table.name)
        self._table = table
        self._chains = table.chain_map()

    def chain_names(self) -> Iterator[str]:
        return iter([chain.name for chain in self._table.chains])

    def is_builtin(self, chain: str) -> bool:
        return self._chain(chain).builtin

    def get_policy(self, chain: str) -> Tuple[Policy, Counters]:
        data = self._chain(chain)
        if data.policy is None:
            raise EngineError(f"Chain {chain} is not a built-in chain")
        return data.policy, data.counters

    def rules(self, chain: str) -> Iterator[RuleEntry]:
        return iter(list(self._chain(chain).rules))

    def _chain(self, chain: str) -> ChainData:
        try:
            return self._chains[chain]
        except KeyError:
            raise EngineError(f"Chain {chain} does not exist in table {self.name}") from None

    def _release(self) -> None:
        self._chains = {}


class CommandEngine(RulesetEngine):
    def __init__(
        self,
        command: str = DEFAULT_COMMAND,
        names_file: Path = TABLE_NAMES_PATH,
    ):
        self.command = command
        self.names_file = Path(names_file)

    def table_names(self) -> List[str]:
        return read_table_names(self.names_file)

    def open(self, name: str) -> TableHandle:
        output = self._run(["-t", name, "-S", "-v"])
        return CommandTable(parse_rule_specs(name, output))

    def _run(self, args: Sequence[str]) -> str:
        argv = [self.command, *args]
        logger.debug("Running %s", " ".join(shlex.quote(arg) for arg in argv))
        try:
            result = subprocess.run(argv, capture_output=True, text=True, errors="surrogateescape")
        except OSError as exc:
            raise EngineError(f"Can't initialize: {self.command}: {exc.strerror or exc}") from exc
        if result.returncode != 0:
            message = result.stderr.strip() or f"{self.command} exited with status {result.returncode}"
            if _MISSING_TABLE_MARKER in message:
                raise TableNotFoundError(f"Can't initialize: {message}")
            raise EngineError(f"Can't initialize: {message}")
        return result.stdout
