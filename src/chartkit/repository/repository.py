"""
chartkit.repository.repository — A single chart repository.

Resolve flow:
    repo.resolve("redis", "1.0.0")
      → <archive cache>/redis-1.0.0.tgz exists?  load it
      → otherwise refresh index.yaml → entry → first URL
      → download to a temp file → move into the archive cache → load it

The index is cached as ``<index cache>/<name>-index.yaml`` and only
downloaded when that file is missing or a download is forced.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import urljoin

import requests

from chartkit.chart.model import Chart
from chartkit.chart.sources import DEFAULT_TIMEOUT, load_tar
from chartkit.errors import ChartError, ErrorKind
from chartkit.repository.index import Index

logger = logging.getLogger(__name__)

INDEX_FILE = "index.yaml"


class ChartRepository:
    """An index.yaml-backed chart repository with a local cache.

    Args:
        name: Repository name (also names the cached index file)
        url: Base URL; the index lives at ``<url>/index.yaml``
        archive_cache_dir: Where downloaded chart tarballs are kept
        index_cache_dir: Where the index copy is kept
        cached_index_path: Index copy location; relative paths are taken
            relative to ``index_cache_dir``
        timeout: Seconds per HTTP request
    """

    def __init__(self, name: str, url: str,
                 archive_cache_dir: str | Path,
                 index_cache_dir: str | Path,
                 cached_index_path: str | Path | None = None,
                 timeout: float | None = DEFAULT_TIMEOUT):
        if not name:
            raise ValueError("repository name is required")
        if not url:
            raise ValueError(f"repository '{name}' has no URL")
        self.name = name
        self.url = url
        self.archive_cache_dir = Path(archive_cache_dir)
        self.index_cache_dir = Path(index_cache_dir)
        cached = Path(cached_index_path) if cached_index_path else Path(f"{name}-index.yaml")
        if not cached.is_absolute():
            cached = self.index_cache_dir / cached
        self.cached_index_path = cached
        self.timeout = timeout
        self._index: Index | None = None

    @property
    def base_url(self) -> str:
        return self.url if self.url.endswith("/") else self.url + "/"

    @property
    def index_url(self) -> str:
        return urljoin(self.base_url, INDEX_FILE)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # INDEX
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def get_index(self, force_download: bool = False) -> Index:
        if force_download or self._index is None:
            if force_download or self.is_cached_index_expired():
                self.download_index()
            self._index = self.load_index()
        return self._index

    def is_cached_index_expired(self) -> bool:
        return not self.cached_index_path.is_file()

    def clear_index(self) -> Index | None:
        previous, self._index = self._index, None
        return previous

    def load_index(self) -> Index:
        return Index.load_from(self.cached_index_path)

    def download_index(self, path: str | Path | None = None) -> Path:
        """Fetch index.yaml and atomically replace the cached copy."""
        target = Path(path) if path else self.cached_index_path
        if not target.is_absolute():
            target = self.index_cache_dir / target
        return self._download(self.index_url, target)

    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    # CHARTS
    # ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
    def get_cached_chart_path(self, name: str, version: str | None = None) -> Path | None:
        """Local tarball for ``name``/``version``, downloading it if needed.

        With no version, the highest indexed version is used. Returns
        None when the index does not know the chart.
        """
        if version is None:
            entry = self.get_index().get_entry(name)
            if entry is None:
                return None
            version = entry.version

        cached = self.archive_cache_dir / f"{name}-{version}.tgz"
        if cached.is_file():
            return cached

        entry = self.get_index(force_download=True).get_entry(name, version)
        if entry is None or entry.first_url is None:
            return None
        return self._download(urljoin(self.base_url, entry.first_url), cached)

    def resolve(self, name: str, version: str | None = None) -> Chart | None:
        """Load ``name`` at ``version`` (or latest) from this repository.

        Raises:
            ChartError(RESOLVE_ERROR): the index or chart could not be fetched or read
        """
        try:
            path = self.get_cached_chart_path(name, version)
        except OSError as e:
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"{self.name}/{name}: {e}") from e
        except ChartError as e:
            if e.kind == ErrorKind.RESOLVE_ERROR:
                raise
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"{self.name}/{name}: {e}") from e
        if path is None or not path.is_file():
            return None
        return load_tar(path)

    def _download(self, url: str, target: Path) -> Path:
        logger.info("downloading %s", url)
        try:
            response = requests.get(url, timeout=self.timeout, allow_redirects=True)
            response.raise_for_status()
        except requests.RequestException as e:
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"cannot download {url}: {e}") from e

        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}-")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(response.content)
            os.replace(tmp, target)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("saved %s to %s", url, target)
        return target

    def __repr__(self) -> str:
        return f"ChartRepository({self.name!r}, {self.url!r})"
