"""
chartkit.cli — CLI entry point.

Commands:
  chartkit inspect <source>                    — Chart tree and requirements
  chartkit values <source> [-f FILE] [--set]   — Resolved values as YAML
  chartkit package <dir> [-d DEST]             — Write <name>-<version>.tgz
  chartkit fetch <repo>/<chart> [--version]    — Download into the archive cache
"""

import logging

import click

from chartkit.cli.inspect_cmd import inspect_cmd
from chartkit.cli.values_cmd import values_cmd
from chartkit.cli.package_cmd import package_cmd
from chartkit.cli.fetch_cmd import fetch_cmd


@click.group()
@click.version_option(package_name="chartkit")
@click.option("-v", "--verbose", count=True, help="More logging (-v info, -vv debug)")
def main(verbose):
    """chartkit — Helm chart loader and values resolver."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


main.add_command(inspect_cmd, "inspect")
main.add_command(values_cmd, "values")
main.add_command(package_cmd, "package")
main.add_command(fetch_cmd, "fetch")
