"""
chartkit.chart.writer — Serialize a chart tree.

The inverse of the loader. ``ChartWriter.write`` walks the tree and calls
one hook per piece; ``ArchiveChartWriter`` turns those calls into entry
paths:

    wordpress/Chart.yaml
    wordpress/values.yaml                       (only if non-empty)
    wordpress/templates/...
    wordpress/<file>
    wordpress/charts/mariadb/Chart.yaml         (subcharts, recursively)

``TarChartWriter`` stores the entries in a gzip tarball and
``package_chart`` names that tarball ``<name>-<version>.tgz``.
"""

from __future__ import annotations

import io
import os
import tarfile
import tempfile
import time
from pathlib import Path
from typing import BinaryIO

import yaml

from chartkit.chart.loader import CHART_FILE, CHARTS_DIR, VALUES_FILE
from chartkit.chart.model import Chart, ConfigValues, Metadata, NamedBlob, Template


class ChartWriter:
    """Tree traversal; subclasses decide where each piece goes."""

    def write(self, chart: Chart, parent: Chart | None = None) -> None:
        """Write ``chart`` (and its subcharts) as a child of ``parent``.

        Raises:
            ValueError: ``chart`` is its own parent
            ChartError(MISSING_METADATA): a chart in the tree lacks name or version
        """
        if chart is None:
            raise ValueError("chart is required")
        if parent is chart:
            raise ValueError(f"chart '{chart.name}' cannot be its own parent")
        if parent is None:
            for node in chart.walk():
                node.require_identity()
        else:
            chart.require_identity()

        self.begin_write(parent, chart)
        self.write_metadata(chart.metadata)
        if chart.values:
            self.write_values(chart.values)
        for template in chart.templates:
            self.write_template(template)
        for blob in chart.files:
            self.write_file(blob)
        for sub in chart.dependencies:
            self.write(sub, chart)
        self.end_write(parent, chart)

    def begin_write(self, parent: Chart | None, chart: Chart) -> None:
        pass

    def end_write(self, parent: Chart | None, chart: Chart) -> None:
        pass

    def write_metadata(self, metadata: Metadata) -> None:
        raise NotImplementedError

    def write_values(self, values: ConfigValues) -> None:
        raise NotImplementedError

    def write_template(self, template: Template) -> None:
        raise NotImplementedError

    def write_file(self, blob: NamedBlob) -> None:
        raise NotImplementedError


class ArchiveChartWriter(ChartWriter):
    """Maps every piece to an entry path below the current chart directory."""

    def __init__(self):
        self.path = ""

    def begin_write(self, parent: Chart | None, chart: Chart) -> None:
        if parent is None:
            self.path = f"{chart.name}/"
        else:
            self.path = f"{self.path}{CHARTS_DIR}/{chart.name}/"

    def end_write(self, parent: Chart | None, chart: Chart) -> None:
        if parent is None:
            self.path = ""
            return
        marker = f"/{CHARTS_DIR}/"
        self.path = self.path[: self.path.rstrip("/").rfind(marker) + 1]

    def write_metadata(self, metadata: Metadata) -> None:
        text = yaml.safe_dump(metadata.to_dict(), default_flow_style=False)
        self.write_entry(CHART_FILE, text.encode("utf-8"))

    def write_values(self, values: ConfigValues) -> None:
        self.write_entry(VALUES_FILE, values.raw.encode("utf-8"))

    def write_template(self, template: Template) -> None:
        self.write_entry(template.name, template.data)

    def write_file(self, blob: NamedBlob) -> None:
        self.write_entry(blob.name, blob.data)

    def write_entry(self, name: str, data: bytes) -> None:
        """Store ``data`` at ``self.path + name``."""
        raise NotImplementedError


class TarChartWriter(ArchiveChartWriter):
    """Writes entries to a gzip-compressed tar stream.

    Usage:
        with open("wordpress-1.0.0.tgz", "wb") as f, TarChartWriter(f) as w:
            w.write(chart)
    """

    def __init__(self, fileobj: BinaryIO):
        super().__init__()
        self._tar = tarfile.open(fileobj=fileobj, mode="w:gz")

    def write_entry(self, name: str, data: bytes) -> None:
        info = tarfile.TarInfo(self.path + name)
        info.size = len(data)
        info.mtime = int(time.time())
        info.mode = 0o644
        self._tar.addfile(info, io.BytesIO(data))

    def close(self) -> None:
        self._tar.close()

    def __enter__(self) -> TarChartWriter:
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def package_chart(chart: Chart, dest_dir: str | Path = ".") -> Path:
    """Write ``chart`` to ``<dest_dir>/<name>-<version>.tgz``."""
    chart.require_identity()
    dest = Path(dest_dir)
    dest.mkdir(parents=True, exist_ok=True)
    target = dest / f"{chart.name}-{chart.version}.tgz"

    fd, tmp = tempfile.mkstemp(dir=dest, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f, TarChartWriter(f) as writer:
            writer.write(chart)
        os.replace(tmp, target)
    except BaseException:
        os.unlink(tmp)
        raise
    return target
