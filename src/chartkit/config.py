"""
chartkit.config — Helm home directory.

    ~/.helm/
      ├── cache/archive/               downloaded chart tarballs
      ├── plugins/
      ├── repository/
      │     ├── cache/                 <repo>-index.yaml copies
      │     ├── local/
      │     └── repositories.yaml      repository catalog
      └── starters/

Library code receives a HelmHome (or plain directories). Only the CLI
calls resolve_home(), which is the one place the environment is read.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

HELM_HOME_ENV = "HELM_HOME"

_SKELETON = (
    "cache/archive",
    "plugins",
    "repository/cache",
    "repository/local",
    "starters",
)


@dataclass(frozen=True)
class HelmHome:
    path: Path

    @property
    def archive_cache_dir(self) -> Path:
        return self.path / "cache" / "archive"

    @property
    def index_cache_dir(self) -> Path:
        return self.path / "repository" / "cache"

    @property
    def repositories_file(self) -> Path:
        return self.path / "repository" / "repositories.yaml"

    def reify(self) -> Path:
        """Create the directory skeleton (existing directories are fine)."""
        for sub in _SKELETON:
            (self.path / sub).mkdir(mode=0o755, parents=True, exist_ok=True)
        return self.path


def resolve_home(explicit: str | Path | None = None,
                 environ: Mapping[str, str] | None = None) -> HelmHome:
    """Pick the home directory: ``explicit``, then $HELM_HOME, then ~/.helm."""
    if explicit:
        return HelmHome(Path(explicit).expanduser())
    env = os.environ if environ is None else environ
    value = env.get(HELM_HOME_ENV)
    if value:
        return HelmHome(Path(value).expanduser())
    return HelmHome(Path.home() / ".helm")
