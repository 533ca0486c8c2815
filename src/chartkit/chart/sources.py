"""
chartkit.chart.sources — Entry streams from archives, directories and URLs.

    tar_entries(fileobj)      gzip/plain tar        → (path, stream), ...
    zip_entries(fileobj)      zip                   → (path, stream), ...
    directory_entries(path)   chart dir, .helmignore → (path, stream), ...

Each generator closes an entry's stream as soon as the consumer asks for
the next one (or stops iterating). A stream that fails to close does not
stop the others; the first failure is raised once iteration ends.

UrlChartLoader picks an adapter from a URL or path:

    file path / file://   directory → directory_entries, *.zip → zip, else tar
    http(s)://            fetched with requests, then zip or tar
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import tarfile
import zipfile
from pathlib import Path
from typing import Any, BinaryIO, Iterator
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from chartkit.chart.ignore import HELMIGNORE, HelmIgnore
from chartkit.chart.loader import ChartLoader, Entry
from chartkit.chart.model import Chart
from chartkit.errors import ChartError, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class Closer:
    """Closes every resource handed to it, remembering the first failure."""

    def __init__(self):
        self.errors: list[Exception] = []

    def close(self, resource: Any, name: str = "") -> None:
        try:
            resource.close()
        except Exception as e:
            logger.warning("failed to close %s: %s", name or resource, e)
            self.errors.append(e)

    def raise_first(self) -> None:
        if self.errors:
            first = self.errors[0]
            raise ChartError(ErrorKind.RESOURCE_ERROR, f"close failed: {first}") from first


def _entry_name(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return name


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ARCHIVES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def tar_entries(fileobj: BinaryIO) -> Iterator[Entry]:
    """Regular files of a (possibly compressed) tar stream."""
    closer = Closer()
    try:
        with tarfile.open(fileobj=fileobj, mode="r:*") as tar:
            for member in tar:
                if not member.isfile():
                    continue
                stream = tar.extractfile(member)
                if stream is None:
                    continue
                try:
                    yield _entry_name(member.name), stream
                finally:
                    closer.close(stream, member.name)
    except tarfile.TarError as e:
        raise ChartError(ErrorKind.RESOURCE_ERROR, f"cannot read tar archive: {e}") from e
    closer.raise_first()


def zip_entries(fileobj: BinaryIO) -> Iterator[Entry]:
    """Files of a zip archive."""
    closer = Closer()
    try:
        with zipfile.ZipFile(fileobj) as zf:
            for info in zf.infolist():
                if info.is_dir():
                    continue
                stream = zf.open(info)
                try:
                    yield _entry_name(info.filename), stream
                finally:
                    closer.close(stream, info.filename)
    except zipfile.BadZipFile as e:
        raise ChartError(ErrorKind.RESOURCE_ERROR, f"cannot read zip archive: {e}") from e
    closer.raise_first()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# DIRECTORIES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def directory_entries(path: str | Path) -> Iterator[Entry]:
    """Files of a chart directory, minus anything .helmignore excludes.

    Entries are named ``<dir-name>/<relative path>`` and walked in sorted
    order. Ignored directories are not descended into.
    """
    root = Path(path).resolve()
    if not root.is_dir():
        raise ChartError(ErrorKind.RESOURCE_ERROR, f"not a directory: {root}")

    ignore_file = root / HELMIGNORE
    if ignore_file.is_file():
        ignore = HelmIgnore.from_file(ignore_file, root)
    else:
        ignore = HelmIgnore(root=root)

    closer = Closer()
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else rel_dir + "/"

        kept = []
        for d in sorted(dirnames):
            if ignore.matches(prefix + d, is_dir=True):
                logger.debug("ignoring directory %s%s", prefix, d)
                continue
            kept.append(d)
        dirnames[:] = kept

        for name in sorted(filenames):
            rel = prefix + name
            if ignore.matches(rel, is_dir=False):
                logger.debug("ignoring %s", rel)
                continue
            stream = open(os.path.join(dirpath, name), "rb")
            try:
                yield f"{root.name}/{rel}", stream
            finally:
                closer.close(stream, rel)
    closer.raise_first()


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# LOADERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _load(entries: Iterator[Entry], parent: Chart | None) -> Chart:
    with contextlib.closing(entries):
        return ChartLoader().load(entries, parent)


def load_tar(source: str | Path | BinaryIO, parent: Chart | None = None) -> Chart:
    if isinstance(source, (str, Path)):
        with open(source, "rb") as f:
            return _load(tar_entries(f), parent)
    return _load(tar_entries(source), parent)


def load_zip(source: str | Path | BinaryIO, parent: Chart | None = None) -> Chart:
    if isinstance(source, (str, Path)):
        with open(source, "rb") as f:
            return _load(zip_entries(f), parent)
    return _load(zip_entries(source), parent)


def load_directory(path: str | Path, parent: Chart | None = None) -> Chart:
    return _load(directory_entries(path), parent)


class UrlChartLoader:
    """Load charts from paths, ``file://`` URLs and ``http(s)://`` URLs.

    Streams opened while loading stay registered until ``close()``,
    which closes all of them even if some fail.

    Usage:
        with UrlChartLoader(timeout=30) as loader:
            chart = loader.load("https://charts.example.com/redis-1.0.0.tgz")
    """

    def __init__(self, timeout: float | None = DEFAULT_TIMEOUT):
        self.timeout = timeout
        self._resources: list[tuple[str, Any]] = []

    def load(self, url: str | Path) -> Chart:
        url = str(url)
        parsed = urlparse(url)
        scheme = parsed.scheme.lower()

        if scheme in ("http", "https"):
            return self._load_stream(self._fetch(url), parsed.path, url)
        if scheme == "file":
            path = Path(url2pathname(parsed.path))
        elif scheme == "" or len(scheme) == 1:
            # no scheme, or a Windows drive letter
            path = Path(url)
        else:
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"unsupported URL scheme: {url}")

        if path.is_dir():
            return load_directory(path)
        if not path.is_file():
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"chart not found: {path}")
        stream = open(path, "rb")
        self._register(str(path), stream)
        return self._load_stream(stream, path.name, str(path))

    def _fetch(self, url: str) -> BinaryIO:
        logger.info("fetching %s", url)
        try:
            response = requests.get(url, timeout=self.timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ChartError(ErrorKind.RESOURCE_ERROR, f"cannot fetch {url}: {e}") from e
        self._register(url, response)
        return io.BytesIO(response.content)

    def _load_stream(self, stream: BinaryIO, name: str, label: str) -> Chart:
        if name.lower().endswith(".zip"):
            entries = zip_entries(stream)
        else:
            entries = tar_entries(stream)
        self._register(label + "#entries", entries)
        return ChartLoader().load(entries)

    def _register(self, name: str, resource: Any) -> None:
        self._resources.append((name, resource))

    def close(self) -> None:
        """Close every registered resource; raise the first failure."""
        closer = Closer()
        resources, self._resources = self._resources, []
        for name, resource in reversed(resources):
            closer.close(resource, name)
        closer.raise_first()

    def __enter__(self) -> UrlChartLoader:
        return self

    def __exit__(self, *exc) -> None:
        self.close()
