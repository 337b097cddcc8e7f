"""
Override dictionary - pre-supplied exact translations

Entries bypass the completion service entirely when a cell matches one
exactly, and are offered as hints in prompts when they occur inside a
longer text.
"""
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .exceptions import OverrideFileError

logger = logging.getLogger(__name__)

OVERRIDE_SEPARATOR = "–"  # en dash: "key – value"


def normalize_key(text: str) -> str:
    """Dedup and lookup unit: trimmed, lowercase text."""
    return text.strip().lower()


class OverrideTable:
    """Immutable, case-insensitive lookup table.

    Built once and shared by every reader afterwards; nothing mutates it
    after construction.
    """

    def __init__(self, entries: Optional[Mapping[str, str]] = None):
        normalized: Dict[str, str] = {}
        for key, value in (entries or {}).items():
            normalized[normalize_key(key)] = value.strip()
        self._entries: Mapping[str, str] = MappingProxyType(normalized)
        self._sorted_keys: Tuple[str, ...] = tuple(sorted(normalized))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return normalize_key(key) in self._entries

    def lookup(self, key: str) -> Optional[str]:
        return self._entries.get(normalize_key(key))

    def hints(self, key: str) -> Tuple[Tuple[str, str], ...]:
        """Every entry whose key occurs inside ``key``, ascending key order."""
        key = normalize_key(key)
        return tuple(
            (subkey, self._entries[subkey])
            for subkey in self._sorted_keys
            if subkey in key
        )

    def items(self) -> Iterable[Tuple[str, str]]:
        return ((key, self._entries[key]) for key in self._sorted_keys)


def parse_override_lines(lines: Iterable[str], path: Path,
                         separator: str = OVERRIDE_SEPARATOR) -> Dict[str, str]:
    """Parse ``key – value`` lines. The first bad line aborts with its number."""
    entries: Dict[str, str] = {}
    for index, line in enumerate(lines):
        line = line.rstrip("\r\n")
        if separator not in line:
            raise OverrideFileError(path, "Invalid entry", line_number=index + 1)
        key, value = line.split(separator, 1)
        entries[normalize_key(key)] = value.strip()
    return entries


def load_overrides(path: Path, separator: str = OVERRIDE_SEPARATOR) -> OverrideTable:
    """Load the override dictionary file into an immutable table."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            entries = parse_override_lines(f, path, separator)
    except OSError as e:
        raise OverrideFileError(path, f"Cannot read override file: {e}") from e
    except UnicodeDecodeError as e:
        raise OverrideFileError(path, f"Override file is not valid UTF-8: {e}") from e

    table = OverrideTable(entries)
    logger.info(f"📖 Loaded {len(table)} override entries from {path}")
    return table
