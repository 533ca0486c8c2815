"""
chartkit.repository.index — Chart repository index (index.yaml).

    apiVersion: v1
    generated: 2018-01-01T00:00:00Z
    entries:
      redis:
        - name: redis
          version: 1.1.0
          urls: [https://charts.example.com/redis-1.1.0.tgz]
          created: 2018-01-01T00:00:00Z
          digest: 1a2b...
        - name: redis
          version: 1.0.0
          ...

Entries for one name are kept highest version first. Versions that do
not parse sort after all parseable ones (in reverse text order among
themselves). Two entries are equal when name and version are equal.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, BinaryIO, Iterable

from chartkit.chart.model import Metadata, decode_mapping
from chartkit.errors import decode_error
from chartkit.utils import parse_version


class IndexEntry:
    """One published version of a chart."""

    def __init__(self, metadata: Metadata, urls: Iterable[str] = (),
                 created: Any = None, removed: bool = False, digest: str = ""):
        self.metadata = metadata
        # insertion-ordered and de-duplicated
        self.urls: list[str] = list(dict.fromkeys(u for u in urls if u))
        self.created = created
        self.removed = removed
        self.digest = digest

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IndexEntry:
        if not isinstance(data, dict):
            raise decode_error(f"index entry must be a mapping, got {type(data).__name__}")
        urls = data.get("urls") or []
        if not isinstance(urls, list):
            raise decode_error("index entry urls must be a list")
        return cls(
            metadata=Metadata.from_dict(data),
            urls=[str(u) for u in urls if u is not None],
            created=data.get("created"),
            removed=bool(data.get("removed", False)),
            digest=str(data.get("digest") or ""),
        )

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    @property
    def first_url(self) -> str | None:
        return self.urls[0] if self.urls else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexEntry):
            return NotImplemented
        return (self.name, self.version) == (other.name, other.version)

    def __hash__(self) -> int:
        return hash((self.name, self.version))

    def __repr__(self) -> str:
        return f"IndexEntry({self.name!r}, {self.version!r})"


def sort_entries(entries: Iterable[IndexEntry]) -> list[IndexEntry]:
    """De-duplicate by (name, version), keeping the first, and sort descending."""
    unique = list(dict.fromkeys(entries))
    parsed = []
    unparsed = []
    for entry in unique:
        version = parse_version(entry.version)
        if version is None:
            unparsed.append(entry)
        else:
            parsed.append((version, entry))
    parsed.sort(key=lambda pair: pair[0], reverse=True)
    unparsed.sort(key=lambda e: e.version, reverse=True)
    return [e for _, e in parsed] + unparsed


class Index:
    """Parsed index.yaml: chart name → entries, highest version first."""

    def __init__(self, entries: dict[str, Iterable[IndexEntry]] | None = None,
                 generated: Any = None, api_version: str = "v1"):
        self.generated = generated
        self.api_version = api_version
        self.entries: dict[str, list[IndexEntry]] = {
            name: sort_entries(group) for name, group in sorted((entries or {}).items())
        }

    @classmethod
    def load(cls, source: str | bytes | BinaryIO) -> Index:
        """Parse index YAML from text, bytes or a binary stream.

        Raises:
            ChartError(DECODE_ERROR): not YAML, or not shaped like an index
        """
        if hasattr(source, "read"):
            source = source.read()
        data = decode_mapping(source, "index.yaml")
        raw_entries = data.get("entries") or {}
        if not isinstance(raw_entries, dict):
            raise decode_error("index.yaml: entries must be a mapping")

        entries: dict[str, list[IndexEntry]] = {}
        for name, items in raw_entries.items():
            if not items:
                continue
            if not isinstance(items, list):
                raise decode_error(f"index.yaml: entries for {name} must be a list")
            entries[str(name)] = [IndexEntry.from_dict(item) for item in items if item]
        return cls(
            entries,
            generated=data.get("generated"),
            api_version=str(data.get("apiVersion") or "v1"),
        )

    @classmethod
    def load_from(cls, path: str | Path) -> Index:
        with open(path, "rb") as f:
            return cls.load(f)

    def get_entry(self, name: str, version: str | None = None) -> IndexEntry | None:
        """Highest version of ``name`` when ``version`` is None, else the exact match."""
        group = self.entries.get(name)
        if not group:
            return None
        if version is None:
            return group[0]
        for entry in group:
            if entry.version == version:
                return entry
        return None

    def merge(self, other: Index) -> Index:
        """Add ``other``'s entries; existing (name, version) pairs are kept."""
        for name, group in other.entries.items():
            self.entries[name] = sort_entries([*self.entries.get(name, []), *group])
        self.entries = dict(sorted(self.entries.items()))
        if other.generated is not None:
            self.generated = other.generated
        return self

    def __contains__(self, name: str) -> bool:
        return name in self.entries

    def __len__(self) -> int:
        return sum(len(group) for group in self.entries.values())
