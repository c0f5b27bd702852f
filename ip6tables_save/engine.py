"""Boundary to the ruleset-query engine that owns tables, chains and rules."""
from __future__ import annotations

import abc
import logging
from typing import Iterator, List, Tuple

from .model import Counters, Policy, RuleEntry

logger = logging.getLogger(__name__)


class TableHandle(abc.ABC):
    """An open table. Released exactly once, also when used as a context manager."""

    def __init__(self, name: str):
        self.name = name
        self._closed = False

    @abc.abstractmethod
    def chain_names(self) -> Iterator[str]:
        """Chain names in engine-native order; every call restarts the walk."""

    @abc.abstractmethod
    def is_builtin(self, chain: str) -> bool:
        ...

    @abc.abstractmethod
    def get_policy(self, chain: str) -> Tuple[Policy, Counters]:
        ...

    @abc.abstractmethod
    def rules(self, chain: str) -> Iterator[RuleEntry]:
        ...

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()
        logger.debug("Closed table %s", self.name)

    def _release(self) -> None:
        pass

    def __enter__(self) -> "TableHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RulesetEngine(abc.ABC):
    @abc.abstractmethod
    def open(self, name: str) -> TableHandle:
        """Open ``name`` or raise TableNotFoundError / EngineError."""

    @abc.abstractmethod
    def table_names(self) -> List[str]:
        """Every table currently registered, in the order the source reports."""
