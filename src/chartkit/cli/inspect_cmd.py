"""chartkit.cli.inspect_cmd — chartkit inspect command."""

import sys

import click

from chartkit.chart.requirements import Requirements, check_dependencies
from chartkit.chart.sources import UrlChartLoader
from chartkit.errors import ChartError


@click.command("inspect")
@click.argument("source")
@click.option("--timeout", type=float, default=10, show_default=True,
              help="HTTP timeout in seconds")
def inspect_cmd(source, timeout):
    """Show a chart's metadata, contents and subcharts."""
    try:
        with UrlChartLoader(timeout=timeout) as loader:
            chart = loader.load(source)
        requirements = Requirements.from_chart(chart)
        missing = check_dependencies(chart, requirements)
    except ChartError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    md = chart.metadata
    click.echo(f"Name:        {md.name}")
    click.echo(f"Version:     {md.version or '-'}")
    if md.app_version:
        click.echo(f"App version: {md.app_version}")
    if md.description:
        click.echo(f"Description: {md.description}")
    click.echo(f"Templates:   {len(chart.templates)}")
    click.echo(f"Files:       {len(chart.files)}")

    if chart.dependencies:
        click.echo("\nSubcharts:")
        _echo_tree(chart, 1)

    if requirements is not None and len(requirements):
        click.echo("\nRequirements:")
        for dep in requirements:
            extra = []
            if dep.condition:
                extra.append(f"condition: {dep.condition}")
            if dep.tags:
                extra.append(f"tags: {','.join(dep.tags)}")
            suffix = f" ({'; '.join(extra)})" if extra else ""
            mark = "missing" if dep in missing else "ok"
            click.echo(f"  {dep} [{mark}]{suffix}")


def _echo_tree(chart, depth):
    for sub in chart.dependencies:
        click.echo(f"{'  ' * depth}{sub.name} {sub.version}")
        _echo_tree(sub, depth + 1)
