"""chartkit.cli.package_cmd — chartkit package command."""

import sys

import click

from chartkit.chart.sources import load_directory
from chartkit.chart.writer import package_chart
from chartkit.errors import ChartError


@click.command("package")
@click.argument("chart_dir", type=click.Path(exists=True, file_okay=False))
@click.option("-d", "--destination", default=".", show_default=True,
              help="Directory to write the archive to")
def package_cmd(chart_dir, destination):
    """Package a chart directory into <name>-<version>.tgz."""
    try:
        chart = load_directory(chart_dir)
        path = package_chart(chart, destination)
    except ChartError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Packaged {chart.name} {chart.version} → {path}")
