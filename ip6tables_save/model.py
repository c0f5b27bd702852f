"""Data structures shared by the save stack."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from . import __version__

U64_MAX = 2**64 - 1
TABLE_MAXNAMELEN = 32


class SaveError(RuntimeError):
    """Fatal condition for the whole run."""


class EngineError(SaveError):
    pass


class TableNotFoundError(EngineError):
    pass


class TableListingError(SaveError):
    pass


class BinaryNotImplementedError(SaveError):
    pass


class SnapshotError(SaveError):
    def __init__(self, message: str, lineno: Optional[int] = None):
        if lineno is not None:
            message = f"line {lineno}: {message}"
        super().__init__(message)
        self.lineno = lineno


class Policy(Enum):
    ACCEPT = "ACCEPT"
    DROP = "DROP"
    QUEUE = "QUEUE"
    RETURN = "RETURN"

    @classmethod
    def from_token(cls, token: str) -> "Policy":
        try:
            return cls(token.upper())
        except ValueError:
            raise ValueError(f"Unsupported policy token: {token}") from None


@dataclass(frozen=True)
class Counters:
    packets: int = 0
    bytes: int = 0

    def __post_init__(self) -> None:
        for label, value in (("packet", self.packets), ("byte", self.bytes)):
            if not 0 <= value <= U64_MAX:
                raise ValueError(f"{label} counter out of range: {value}")

    @staticmethod
    def zero() -> "Counters":
        return Counters(0, 0)

    @classmethod
    def from_tokens(cls, packets: str, bytes_: str) -> "Counters":
        if not (packets.isdigit() and bytes_.isdigit()):
            raise ValueError(f"Counters must be decimal integers: {packets}:{bytes_}")
        return cls(int(packets), int(bytes_))

    @classmethod
    def from_bracket(cls, text: str) -> "Counters":
        # Format: [packets:bytes]
        if not (text.startswith("[") and text.endswith("]")) or ":" not in text:
            raise ValueError(f"Invalid counters: {text}")
        packets, bytes_ = text[1:-1].split(":", 1)
        return cls.from_tokens(packets, bytes_)

    def bracket(self) -> str:
        return f"[{self.packets}:{self.bytes}]"


@dataclass(frozen=True)
class ChainView:
    name: str
    is_builtin: bool
    policy: Optional[Policy] = None
    counters: Counters = field(default_factory=Counters.zero)

    def declaration(self) -> str:
        if self.is_builtin and self.policy is not None:
            return f":{self.name} {self.policy.value} {self.counters.bracket()}"
        # User-defined chains have no policy counters.
        return f":{self.name} - [0:0]"


@dataclass(frozen=True)
class RuleEntry:
    chain: str
    args: tuple[str, ...]
    counters: Counters = field(default_factory=Counters.zero)

    def summary(self) -> str:
        return f"{self.chain}: {' '.join(self.args) or '(empty)'}"


@dataclass(frozen=True)
class SaveConfig:
    """Options selected once at startup and threaded through the writer."""

    counters: bool = False
    binary: bool = False
    program_name: str = "ip6tables-save"
    version: str = __version__


@dataclass
class ChainData:
    name: str
    builtin: bool
    policy: Optional[Policy] = None
    counters: Counters = field(default_factory=Counters.zero)
    rules: List[RuleEntry] = field(default_factory=list)

    def add_rule(self, rule: RuleEntry) -> None:
        self.rules.append(rule)


@dataclass
class TableData:
    name: str
    chains: List[ChainData] = field(default_factory=list)

    def chain_map(self) -> dict[str, ChainData]:
        return {chain.name: chain for chain in self.chains}

    def add_chain(self, chain: ChainData) -> None:
        self.chains.append(chain)
