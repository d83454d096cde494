"""
Parsing of ffprobe's flat ``key=value`` output.

``ffprobe -of default=noprint_wrappers=1`` prints one ``key=value`` line per
requested stream entry. This module turns that text into an immutable
`ProbeRecord` and looks fields up by key. A lookup prefers an exact key match
and otherwise takes the first key containing the requested name, so callers may
pass a prefix. Missing fields, empty values and empty input all yield ``None``.
"""
from collections.abc import Mapping
from typing import Iterator, Optional, Tuple, Union

_QUOTES = str.maketrans("", "", "\"'")


class ProbeRecord(Mapping):
    """Ordered, read-only mapping of probe field names to raw string values."""

    __slots__ = ("_items", "_index")

    def __init__(self, items: Tuple[Tuple[str, str], ...] = ()):
        index = {}
        for key, value in items:
            # First occurrence of a key wins, as with a line scan.
            index.setdefault(key, value)
        self._index = index
        self._items = tuple(index.items())

    def __getitem__(self, key: str) -> str:
        return self._index[key]

    def __iter__(self) -> Iterator[str]:
        return (key for key, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"ProbeRecord({dict(self._items)!r})"

    def find(self, field_key: str) -> Optional[str]:
        """Return the value for ``field_key`` or None when absent or empty."""
        if not field_key:
            return None
        value = self._index.get(field_key)
        if value is None:
            for key, candidate in self._items:
                if field_key in key:
                    value = candidate
                    break
        return value or None


def parse_probe_text(probe_text: str) -> ProbeRecord:
    """Parse flat ``key=value`` probe text into a `ProbeRecord`."""
    items = []
    for line in (probe_text or "").splitlines():
        if "=" not in line:
            continue
        key, _, value = line.partition("=")
        key = key.strip()
        if not key:
            continue
        items.append((key, value.translate(_QUOTES).strip()))
    return ProbeRecord(tuple(items))


def as_record(probe: Union[str, ProbeRecord, None]) -> ProbeRecord:
    """Accept raw probe text or an already parsed record."""
    if isinstance(probe, ProbeRecord):
        return probe
    return parse_probe_text(probe or "")


def extract_field(probe_text: Union[str, ProbeRecord, None], field_key: str) -> Optional[str]:
    """Extract a field's value from probe text; None is the uniform not-found result."""
    return as_record(probe_text).find(field_key)
