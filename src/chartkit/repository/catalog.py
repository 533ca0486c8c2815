"""
chartkit.repository.catalog — repositories.yaml and "repo/chart" references.

    repositories:
      - name: stable
        url: https://kubernetes-charts.storage.googleapis.com
        cache: stable-index.yaml          # relative → <home>/repository/cache

    catalog = RepositoryCatalog.from_yaml(text, home)
    chart = catalog.resolve("stable/redis", "1.0.0")
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from chartkit.chart.model import Chart, decode_mapping
from chartkit.chart.sources import DEFAULT_TIMEOUT
from chartkit.config import HelmHome
from chartkit.errors import ChartError, ErrorKind, decode_error
from chartkit.repository.repository import ChartRepository


class RepositoryCatalog:
    """Named chart repositories."""

    def __init__(self, repositories: list[ChartRepository] | None = None):
        self._repositories: dict[str, ChartRepository] = {}
        for repo in repositories or []:
            self._repositories[repo.name] = repo

    @classmethod
    def from_yaml(cls, text: str | bytes, home: HelmHome,
                  timeout: float | None = DEFAULT_TIMEOUT) -> RepositoryCatalog:
        data = decode_mapping(text, "repositories.yaml")
        items = data.get("repositories") or []
        if not isinstance(items, list):
            raise decode_error("repositories.yaml: repositories must be a list")

        repositories = []
        for item in items:
            if not isinstance(item, dict):
                raise decode_error("repositories.yaml: each repository must be a mapping")
            name = item.get("name")
            url = item.get("url")
            if not name or not url:
                raise decode_error(f"repositories.yaml: repository needs name and url: {item!r}")
            repositories.append(ChartRepository(
                name=str(name),
                url=str(url),
                archive_cache_dir=home.archive_cache_dir,
                index_cache_dir=home.index_cache_dir,
                cached_index_path=item.get("cache") or None,
                timeout=timeout,
            ))
        return cls(repositories)

    @classmethod
    def from_home(cls, home: HelmHome, timeout: float | None = DEFAULT_TIMEOUT) -> RepositoryCatalog:
        path = home.repositories_file
        if not path.is_file():
            return cls()
        return cls.from_yaml(Path(path).read_bytes(), home, timeout=timeout)

    def get(self, name: str) -> ChartRepository | None:
        return self._repositories.get(name)

    def __iter__(self) -> Iterator[ChartRepository]:
        return iter(self._repositories.values())

    def __len__(self) -> int:
        return len(self._repositories)

    def resolve(self, reference: str, version: str | None = None) -> Chart | None:
        """Load ``repo/chart`` at ``version`` (latest when None).

        Raises:
            ChartError(RESOLVE_ERROR): malformed reference or unknown repository
        """
        repo_name, sep, chart_name = reference.partition("/")
        if not sep or not repo_name or not chart_name:
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"expected <repo>/<chart>, got '{reference}'")
        repo = self.get(repo_name)
        if repo is None:
            raise ChartError(ErrorKind.RESOLVE_ERROR, f"unknown repository '{repo_name}'")
        return repo.resolve(chart_name, version)
