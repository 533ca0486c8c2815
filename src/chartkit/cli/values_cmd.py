"""chartkit.cli.values_cmd — chartkit values command."""

import sys

import click
import yaml

from chartkit.chart.requirements import resolve_values
from chartkit.chart.sources import UrlChartLoader
from chartkit.chart.values import merge_override_values
from chartkit.errors import ChartError


@click.command("values")
@click.argument("source")
@click.option("-f", "--values", "value_files", multiple=True,
              help="Values file (multiple allowed, later wins)")
@click.option("--set", "set_args", multiple=True,
              help="Value override (key=value)")
@click.option("-o", "--output", default=None,
              help="Output file (default: stdout)")
@click.option("--timeout", type=float, default=10, show_default=True,
              help="HTTP timeout in seconds")
def values_cmd(source, value_files, set_args, output, timeout):
    """Print the fully resolved values of a chart."""
    try:
        overrides = merge_override_values(list(value_files), list(set_args))
    except (FileNotFoundError, ValueError, ChartError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    try:
        with UrlChartLoader(timeout=timeout) as loader:
            chart = loader.load(source)
        values = resolve_values(chart, overrides)
    except ChartError as e:
        click.echo(f"Error: {e}", err=True)
        if e.missing:
            for dep in e.missing:
                click.echo(f"  missing: {dep}", err=True)
        sys.exit(1)

    text = yaml.safe_dump(values, default_flow_style=False, sort_keys=False)
    if output:
        with open(output, "w") as f:
            f.write(text)
        click.echo(f"Written to {output}", err=True)
    else:
        click.echo(text, nl=False)
