"""Table discovery: the kernel's table-name listing and the enumerator over it."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .model import TABLE_MAXNAMELEN, TableListingError

TABLE_NAMES_PATH = Path("/proc/net/ip6_tables_names")


def read_table_names(path: Path = TABLE_NAMES_PATH) -> List[str]:
    """Read one table name per newline-terminated line."""
    try:
        text = Path(path).read_text()
    except OSError as exc:
        reason = exc.strerror or os.strerror(exc.errno or 0)
        raise TableListingError(f"Unable to open {path}: {reason}") from exc
    except UnicodeDecodeError as exc:
        raise TableListingError(f"Badly formed tablename in {path}: {exc}") from exc
    return parse_table_names(text)


def parse_table_names(text: str) -> List[str]:
    *names, tail = text.split("\n")
    for name in names:
        if len(name) >= TABLE_MAXNAMELEN:
            raise TableListingError(f"Badly formed tablename `{name}'")
    if tail:
        # Last line has no newline terminator.
        raise TableListingError(f"Badly formed tablename `{tail}'")
    return names


def enumerate_tables(
    requested: Optional[str],
    source: Callable[[], Iterable[str]],
) -> List[str]:
    """Return the requested table unchecked, or every name the source reports."""
    if requested is not None:
        return [requested]
    return list(source())
