"""
chartkit — Helm chart loading and values resolution.

Load a chart from a tarball, zip, directory or URL, decide which
subcharts are enabled, and compute the values handed to rendering.
"""

from chartkit.chart.model import Chart, ConfigValues, Metadata, NamedBlob, Template
from chartkit.chart.loader import ChartLoader
from chartkit.chart.sources import UrlChartLoader, load_directory, load_tar, load_zip
from chartkit.chart.values import coalesce_maps, coalesce_values, merge_override_values
from chartkit.chart.requirements import process_requirements, resolve_values
from chartkit.chart.writer import TarChartWriter, package_chart
from chartkit.errors import ChartError, ErrorKind

__version__ = "0.1.0"

__all__ = [
    # model
    "Chart",
    "ConfigValues",
    "Metadata",
    "NamedBlob",
    "Template",
    # loading
    "ChartLoader",
    "UrlChartLoader",
    "load_directory",
    "load_tar",
    "load_zip",
    # values
    "coalesce_maps",
    "coalesce_values",
    "merge_override_values",
    "process_requirements",
    "resolve_values",
    # writing
    "TarChartWriter",
    "package_chart",
    # errors
    "ChartError",
    "ErrorKind",
]
