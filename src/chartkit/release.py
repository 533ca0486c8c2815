"""
chartkit.release — Hand resolved charts to a release service.

The service itself (the RPC client) lives elsewhere; anything with
``install_release`` / ``update_release`` methods will do:

    manager = ReleaseManager(service)
    manager.install("./wordpress", name="blog", values_yaml="replicas: 2")

Before the call the chart's requirements are processed against the
override values, so the service only ever sees enabled subcharts.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from chartkit.chart.model import Chart, decode_mapping
from chartkit.chart.requirements import process_requirements
from chartkit.chart.sources import DEFAULT_TIMEOUT, UrlChartLoader

RELEASE_NAME_PATTERN = re.compile(
    r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?(\.[a-z0-9]([-a-z0-9]*[a-z0-9])?)*$"
)
DEFAULT_NAMESPACE = "default"


@dataclass
class ReleaseRequest:
    chart: Chart
    values_yaml: str = ""
    name: str = ""
    namespace: str = DEFAULT_NAMESPACE


class ReleaseService(Protocol):
    def install_release(self, request: ReleaseRequest) -> Any: ...

    def update_release(self, request: ReleaseRequest) -> Any: ...


def validate_release_name(name: str) -> None:
    """An empty name is allowed (the service picks one)."""
    if name and not RELEASE_NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid release name: {name}; must match {RELEASE_NAME_PATTERN.pattern}"
        )


class ReleaseManager:
    """Loads, resolves and submits charts to a ReleaseService."""

    def __init__(self, service: ReleaseService, namespace: str = DEFAULT_NAMESPACE,
                 timeout: float | None = DEFAULT_TIMEOUT):
        self.service = service
        self.namespace = namespace or DEFAULT_NAMESPACE
        self.timeout = timeout

    def install(self, source: Chart | str | Path, values_yaml: str = "",
                name: str = "", namespace: str = "") -> Any:
        request = self._request(source, values_yaml, name, namespace)
        return self.service.install_release(request)

    def update(self, source: Chart | str | Path, values_yaml: str = "",
               name: str = "", namespace: str = "") -> Any:
        request = self._request(source, values_yaml, name, namespace)
        return self.service.update_release(request)

    def _request(self, source: Chart | str | Path, values_yaml: str,
                 name: str, namespace: str) -> ReleaseRequest:
        validate_release_name(name)
        chart = self._load(source)
        overrides = decode_mapping(values_yaml or "", "values")
        process_requirements(chart, overrides)
        return ReleaseRequest(
            chart=chart,
            values_yaml=values_yaml or "",
            name=name,
            namespace=namespace or self.namespace,
        )

    def _load(self, source: Chart | str | Path) -> Chart:
        if isinstance(source, Chart):
            return source
        with UrlChartLoader(timeout=self.timeout) as loader:
            return loader.load(source)
