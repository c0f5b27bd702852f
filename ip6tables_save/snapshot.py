"""In-memory ruleset engine loaded from ip6tables-save text."""
from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from .engine import RulesetEngine, TableHandle
from .model import (
    ChainData,
    Counters,
    Policy,
    RuleEntry,
    SnapshotError,
    TableData,
    TableNotFoundError,
)

logger = logging.getLogger(__name__)


def read_snapshot_file(path: Path) -> "SnapshotEngine":
    """Load a file containing ip6tables-save contents."""
    try:
        text = Path(path).read_text()
    except OSError as exc:
        raise SnapshotError(f"Unable to read {path}: {exc.strerror or exc}") from exc
    except UnicodeDecodeError as exc:
        raise SnapshotError(f"{path} is not valid UTF-8: {exc}") from exc
    return SnapshotEngine(parse_save_text(text))


def parse_save_text(text: str) -> List[TableData]:
    tables: Dict[str, TableData] = {}
    current: Optional[TableData] = None

    for lineno, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("*"):
            if current is not None:
                raise SnapshotError(f"Table {current.name} is missing COMMIT", lineno)
            name = line[1:].strip()
            if not name:
                raise SnapshotError("Empty table name", lineno)
            if name in tables:
                raise SnapshotError(f"Table {name} appears twice", lineno)
            current = TableData(name=name)
            tables[name] = current
            continue
        if current is None:
            raise SnapshotError(f"Line outside of a table block: {line}", lineno)
        if line == "COMMIT":
            current = None
            continue
        if line.startswith(":"):
            chain = _parse_chain_def(line, lineno)
            if chain.name in current.chain_map():
                raise SnapshotError(f"Chain {chain.name} declared twice", lineno)
            current.add_chain(chain)
            continue
        rule = _parse_rule(line, lineno)
        chain_data = current.chain_map().get(rule.chain)
        if chain_data is None:
            raise SnapshotError(f"Rule references unknown chain {rule.chain}: {line}", lineno)
        chain_data.add_rule(rule)

    if current is not None:
        raise SnapshotError(f"Table {current.name} is missing COMMIT")
    return list(tables.values())


def _parse_chain_def(line: str, lineno: int) -> ChainData:
    # Format: :CHAIN POLICY [packet:byte]
    try:
        name, policy_token, *rest = line[1:].split()
    except ValueError as exc:
        raise SnapshotError(f"Invalid chain definition: {line}", lineno) from exc
    counters = Counters.zero()
    if rest:
        try:
            counters = Counters.from_bracket(rest[0])
        except ValueError as exc:
            raise SnapshotError(str(exc), lineno) from exc
    if policy_token == "-":
        return ChainData(name=name, builtin=False)
    try:
        policy = Policy.from_token(policy_token)
    except ValueError as exc:
        raise SnapshotError(str(exc), lineno) from exc
    return ChainData(name=name, builtin=True, policy=policy, counters=counters)


def _parse_rule(line: str, lineno: int) -> RuleEntry:
    counters = Counters.zero()
    if line.startswith("["):
        bracket, _, line = line.partition(" ")
        try:
            counters = Counters.from_bracket(bracket)
        except ValueError as exc:
            raise SnapshotError(str(exc), lineno) from exc
    try:
        tokens = shlex.split(line)
    except ValueError as exc:
        raise SnapshotError(f"Cannot split rule line: {exc}", lineno) from exc
    if len(tokens) < 2 or tokens[0] not in {"-A", "--append"}:
        raise SnapshotError(f"Unsupported line: {line}", lineno)
    _, chain_name, *args = tokens
    # A "-c packets bytes" option overrides the bracket prefix.
    args, option_counters = split_counter_option(args)
    if option_counters is not None:
        counters = option_counters
    return RuleEntry(chain=chain_name, args=tuple(args), counters=counters)


def split_counter_option(args: List[str]) -> Tuple[List[str], Optional[Counters]]:
    """Remove the first ``-c <packets> <bytes>`` triple from ``args``."""
    for i, token in enumerate(args[:-2]):
        if token in {"-c", "--set-counters"} and args[i + 1].isdigit() and args[i + 2].isdigit():
            counters = Counters.from_tokens(args[i + 1], args[i + 2])
            return args[:i] + args[i + 3 :], counters
    return list(args), None


class SnapshotTable(TableHandle):
    def __init__(self, table: TableData):
        super().__init__(table.name)
        self._chains = table.chain_map()

    def chain_names(self) -> Iterator[str]:
        return iter(list(self._chains))

    def is_builtin(self, chain: str) -> bool:
        return self._chain(chain).builtin

    def get_policy(self, chain: str) -> Tuple[Policy, Counters]:
        data = self._chain(chain)
        if not data.builtin or data.policy is None:
            raise SnapshotError(f"Chain {chain} has no policy")
        return data.policy, data.counters

    def rules(self, chain: str) -> Iterator[RuleEntry]:
        return iter(list(self._chain(chain).rules))

    def _chain(self, chain: str) -> ChainData:
        try:
            return self._chains[chain]
        except KeyError:
            raise SnapshotError(f"Unknown chain {chain} in table {self.name}") from None


class SnapshotEngine(RulesetEngine):
    """Serve tables parsed from a saved ruleset, in file order."""

    def __init__(self, tables: List[TableData]):
        self._tables = {table.name: table for table in tables}

    @classmethod
    def from_text(cls, text: str) -> "SnapshotEngine":
        return cls(parse_save_text(text))

    def table_names(self) -> List[str]:
        return list(self._tables)

    def open(self, name: str) -> TableHandle:
        table = self._tables.get(name)
        if table is None:
            raise TableNotFoundError(
                f"Can't initialize: Table does not exist (do you need to insmod?): {name}"
            )
        logger.debug("Opening snapshot table %s", name)
        return SnapshotTable(table)
