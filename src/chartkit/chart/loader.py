"""
chartkit.chart.loader — Build a chart tree from path-named byte streams.

Entries are (path, stream) pairs rooted at ``<chart-name>/``. Each path
is walked component by component:

    wordpress/Chart.yaml                          → metadata
    wordpress/values.yaml                         → values
    wordpress/templates/deploy.yaml               → template "templates/deploy.yaml"
    wordpress/charts/mariadb/Chart.yaml           → subchart "mariadb", metadata
    wordpress/charts/mariadb/charts/x/values.yaml → sub-subchart "x", values
    wordpress/charts/redis-1.0.0.tgz              → nested archive, loaded recursively
    wordpress/charts/redis-1.0.0.tgz.prov         → file "charts/redis-1.0.0.tgz.prov"
    wordpress/charts/_helpers/...                 → skipped ('.' and '_' prefixes)
    wordpress/README.md                           → file "README.md"

The loader only reads streams. Whoever produced them closes them.
"""

from __future__ import annotations

import bisect
import io
import logging
from typing import BinaryIO, Iterable, Union

from chartkit.chart.model import (
    Chart,
    ConfigValues,
    Metadata,
    NamedBlob,
    Template,
    decode_mapping,
    decode_text,
)
from chartkit.errors import malformed

logger = logging.getLogger(__name__)

CHART_FILE = "Chart.yaml"
VALUES_FILE = "values.yaml"
TEMPLATES_PREFIX = "templates/"
CHARTS_DIR = "charts"

Stream = Union[BinaryIO, bytes]
Entry = tuple[str, Stream]

_FILE, _ARCHIVE, _SKIP = "file", "archive", "skip"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# PATH CLASSIFICATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _walk(comps: list[str]) -> tuple[list[int], str, str]:
    """Classify a split path.

    Returns (subchart_ends, kind, rel): ``comps[:end]`` is the prefix of
    each enclosing subchart, outermost first; ``rel`` is the entry's
    name relative to its innermost chart.
    """
    ends: list[int] = []
    i = 1
    while len(comps) - i >= 2 and comps[i] == CHARTS_DIR:
        child = comps[i + 1]
        if comps[-1].endswith(".prov"):
            break
        if child.startswith((".", "_")):
            return ends, _SKIP, ""
        if len(comps) - i == 2:
            if child.endswith(".tgz"):
                return ends, _ARCHIVE, "/".join(comps[i:])
            break
        i += 2
        ends.append(i)
    return ends, _FILE, "/".join(comps[i:])


def _components(path: str) -> tuple[str, list[str]] | None:
    lead = "/" if path.startswith("/") else ""
    comps = path.lstrip("/").split("/")
    if len(comps) < 2 or not all(comps):
        return None
    return lead, comps


def _is_template(rel: str) -> bool:
    return rel.startswith(TEMPLATES_PREFIX) and len(rel) > len(TEMPLATES_PREFIX)


def subchart_paths(path: str) -> list[str]:
    """Prefixes of every subchart enclosing ``path``, outermost first.

    >>> subchart_paths("wordpress/charts/mariadb/charts/frobnicator/templates/foo.yaml")
    ['wordpress/charts/mariadb', 'wordpress/charts/mariadb/charts/frobnicator']
    """
    split = _components(path)
    if split is None:
        return []
    lead, comps = split
    ends, _, _ = _walk(comps)
    return [lead + "/".join(comps[:end]) for end in ends]


def template_file_name(path: str) -> str | None:
    """Template name relative to the owning chart, or None."""
    split = _components(path)
    if split is None:
        return None
    _, kind, rel = _walk(split[1])
    if kind == _FILE and _is_template(rel):
        return rel
    return None


def ordinary_file_name(path: str) -> str | None:
    """File name on the root chart for a plain top-level file, or None."""
    split = _components(path)
    if split is None:
        return None
    ends, kind, rel = _walk(split[1])
    if ends or kind != _FILE or _is_template(rel) or rel in (CHART_FILE, VALUES_FILE):
        return None
    return rel


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BUILDERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _order(key: str) -> tuple[int, str]:
    return len(key), key


class _Builders:
    """Charts under construction, keyed by path below the root.

    The root chart is keyed by "". Keys are kept sorted by (length,
    text), so a chart's parent is always found among its predecessors.
    """

    def __init__(self, root: Chart):
        self._charts: dict[str, Chart] = {"": root}
        self._keys: list[tuple[int, str]] = [_order("")]

    @property
    def root(self) -> Chart:
        return self._charts[""]

    def get(self, key: str) -> Chart:
        chart = self._charts.get(key)
        if chart is None:
            chart = Chart(metadata=Metadata(name=key.rsplit("/", 1)[-1]))
            self.parent_of(key).dependencies.append(chart)
            self._charts[key] = chart
            bisect.insort(self._keys, _order(key))
        return chart

    def parent_of(self, key: str) -> Chart:
        pos = bisect.bisect_left(self._keys, _order(key))
        for _, candidate in reversed(self._keys[:pos]):
            if candidate == "" or key.startswith(candidate + "/" + CHARTS_DIR + "/"):
                return self._charts[candidate]
        return self.root


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# LOADER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _read(stream: Stream) -> bytes:
    if isinstance(stream, (bytes, bytearray)):
        return bytes(stream)
    return stream.read()


class ChartLoader:
    """Turns (path, stream) entries into a Chart tree.

    Usage:
        chart = ChartLoader().load(tar_entries(fileobj))
    """

    def load(self, entries: Iterable[Entry], parent: Chart | None = None) -> Chart:
        """Build the chart; attach it to ``parent`` when one is given.

        Raises:
            ChartError(MALFORMED_ENTRY): empty, absolute or rootless path
            ChartError(DECODE_ERROR): Chart.yaml or values.yaml does not parse
        """
        builders: _Builders | None = None

        for path, stream in entries:
            if not path:
                raise malformed("empty entry path")
            if path.startswith("/"):
                raise malformed(f"absolute entry path: {path}")
            comps = path.split("/")
            if len(comps) < 2:
                raise malformed(f"entry is not inside a chart directory: {path}")
            if not all(comps):
                raise malformed(f"empty path component: {path}")

            if builders is None:
                builders = _Builders(Chart(metadata=Metadata(name=comps[0])))

            ends, kind, rel = _walk(comps)
            owner = builders.root
            for end in ends:
                owner = builders.get("/".join(comps[1:end]))

            if kind == _SKIP:
                logger.debug("skipping %s", path)
                continue
            data = _read(stream)
            if kind == _ARCHIVE:
                self._load_archive(path, data, owner)
            else:
                self._add(owner, rel, data)

        if builders is None:
            raise malformed("no entries")
        root = builders.root
        if parent is not None:
            parent.dependencies.append(root)
        return root

    def _load_archive(self, path: str, data: bytes, owner: Chart) -> None:
        from chartkit.chart.sources import tar_entries

        logger.debug("loading nested archive %s", path)
        self.load(tar_entries(io.BytesIO(data)), parent=owner)

    def _add(self, chart: Chart, rel: str, data: bytes) -> None:
        if rel == CHART_FILE:
            chart.metadata.update(decode_mapping(data, rel))
        elif rel == VALUES_FILE:
            values = ConfigValues(decode_text(data, rel))
            values.as_dict()
            chart.values = values
        elif _is_template(rel):
            chart.templates.append(Template(rel, data))
        else:
            chart.files.append(NamedBlob(rel, data))


def load(entries: Iterable[Entry], parent: Chart | None = None) -> Chart:
    return ChartLoader().load(entries, parent)
