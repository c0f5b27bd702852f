"""ip6tables-save public API surface."""

__version__ = "1.0.0"

from .engine import RulesetEngine, TableHandle
from .kernel import CommandEngine
from .model import ChainView, Counters, Policy, RuleEntry, SaveConfig, SaveError
from .snapshot import SnapshotEngine, parse_save_text, read_snapshot_file
from .writer import SaveWriter, save_tables

__all__ = [
    "ChainView",
    "CommandEngine",
    "Counters",
    "Policy",
    "RuleEntry",
    "RulesetEngine",
    "SaveConfig",
    "SaveError",
    "SaveWriter",
    "SnapshotEngine",
    "TableHandle",
    "parse_save_text",
    "read_snapshot_file",
    "save_tables",
]
