"""chartkit.cli.fetch_cmd — chartkit fetch command."""

import shutil
import sys
from pathlib import Path

import click

from chartkit.config import resolve_home
from chartkit.errors import ChartError
from chartkit.repository.catalog import RepositoryCatalog


@click.command("fetch")
@click.argument("reference")
@click.option("--version", "chart_version", default=None,
              help="Exact chart version (default: latest)")
@click.option("--home", default=None, envvar="HELM_HOME",
              help="Helm home directory (default: $HELM_HOME or ~/.helm)")
@click.option("-d", "--destination", default=None,
              help="Copy the archive into this directory")
@click.option("--timeout", type=float, default=10, show_default=True,
              help="HTTP timeout in seconds")
def fetch_cmd(reference, chart_version, home, destination, timeout):
    """Download REPO/CHART into the local archive cache."""
    repo_name, _, chart_name = reference.partition("/")
    if not repo_name or not chart_name:
        click.echo(f"Error: expected <repo>/<chart>, got '{reference}'", err=True)
        sys.exit(1)

    helm_home = resolve_home(home)
    helm_home.reify()
    try:
        catalog = RepositoryCatalog.from_home(helm_home, timeout=timeout)
        repo = catalog.get(repo_name)
        if repo is None:
            click.echo(f"Error: Repository '{repo_name}' not found in "
                       f"{helm_home.repositories_file}", err=True)
            sys.exit(1)
        path = repo.get_cached_chart_path(chart_name, chart_version)
    except (ChartError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if path is None:
        wanted = f"{chart_name} {chart_version}" if chart_version else chart_name
        click.echo(f"Error: Chart '{wanted}' not found in repository '{repo_name}'.", err=True)
        sys.exit(1)

    if destination:
        dest = Path(destination)
        dest.mkdir(parents=True, exist_ok=True)
        path = Path(shutil.copy2(path, dest / path.name))
    click.echo(str(path))
