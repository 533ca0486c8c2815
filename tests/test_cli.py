"""
tests/test_cli.py — CLI tests.

Tests commands using Click CliRunner.
"""

import os
import sys
from unittest.mock import MagicMock, patch

import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from click.testing import CliRunner

from chartkit.cli import main
from chartkit.chart.sources import load_tar
from conftest import build_tgz

runner = CliRunner()


@pytest.fixture
def wordpress_path(tmp_path, wordpress_tgz):
    path = tmp_path / "wordpress-1.0.0.tgz"
    path.write_bytes(wordpress_tgz)
    return str(path)


@pytest.fixture
def helm_home(tmp_path):
    home = tmp_path / "helm"
    (home / "repository").mkdir(parents=True)
    (home / "repository" / "repositories.yaml").write_text(
        "repositories:\n"
        "  - name: stable\n"
        "    url: https://charts.example.com\n"
    )
    return home


class TestInspect:
    def test_inspect(self, wordpress_path):
        result = runner.invoke(main, ["inspect", wordpress_path])
        assert result.exit_code == 0
        assert "Name:        wordpress" in result.output
        assert "Version:     1.0.0" in result.output
        assert "Description: Blog" in result.output
        assert "Templates:   2" in result.output
        assert "  mariadb 7.0.0\n" in result.output
        assert "mariadb 7.0.0 [ok] (condition: mariadb.enabled)" in result.output

    def test_inspect_directory(self, wordpress_dir):
        result = runner.invoke(main, ["inspect", str(wordpress_dir)])
        assert result.exit_code == 0
        assert "Name:        wordpress" in result.output

    def test_inspect_missing_requirement(self, tmp_path):
        path = tmp_path / "app.tgz"
        path.write_bytes(build_tgz({
            "app/Chart.yaml": "name: app\nversion: 1.0.0\n",
            "app/requirements.yaml": "dependencies:\n  - name: redis\n    version: 1.0.0\n",
        }))
        result = runner.invoke(main, ["inspect", str(path)])
        assert result.exit_code == 0
        assert "redis 1.0.0 [missing]" in result.output

    def test_inspect_not_found(self, tmp_path):
        result = runner.invoke(main, ["inspect", str(tmp_path / "nope.tgz")])
        assert result.exit_code == 1
        assert "resolve-error" in result.output


class TestValues:
    def test_values_default(self, wordpress_path):
        result = runner.invoke(main, ["values", wordpress_path])
        assert result.exit_code == 0
        values = yaml.safe_load(result.stdout)
        assert values["replicas"] == 1
        assert values["mariadb"]["port"] == 3306

    def test_values_with_set(self, wordpress_path):
        result = runner.invoke(main, [
            "values", wordpress_path,
            "--set", "replicas=5",
            "--set", "mariadb.port=3307",
        ])
        assert result.exit_code == 0
        values = yaml.safe_load(result.stdout)
        assert values["replicas"] == 5
        assert values["mariadb"]["port"] == 3307

    def test_values_with_file(self, wordpress_path, tmp_path):
        f = tmp_path / "override.yaml"
        f.write_text("replicas: 7\n")
        result = runner.invoke(main, ["values", wordpress_path, "-f", str(f), "--set", "replicas=9"])
        assert result.exit_code == 0
        assert yaml.safe_load(result.stdout)["replicas"] == 9

    def test_values_disable_subchart(self, wordpress_path):
        result = runner.invoke(main, ["values", wordpress_path, "--set", "mariadb.enabled=false"])
        assert result.exit_code == 0
        assert yaml.safe_load(result.stdout)["mariadb"] == {"enabled": False}

    def test_values_to_file(self, wordpress_path, tmp_path):
        out = tmp_path / "out.yaml"
        result = runner.invoke(main, ["values", wordpress_path, "-o", str(out)])
        assert result.exit_code == 0
        assert yaml.safe_load(out.read_text())["replicas"] == 1

    def test_bad_set(self, wordpress_path):
        result = runner.invoke(main, ["values", wordpress_path, "--set", "novalue"])
        assert result.exit_code == 1
        assert "Invalid --set format" in result.output

    def test_chart_not_utf8(self, tmp_path):
        path = tmp_path / "app.tgz"
        path.write_bytes(build_tgz({
            "app/Chart.yaml": "name: app\nversion: 1.0.0\n",
            "app/values.yaml": b"greeting: \xff\xfe\n",
        }))
        result = runner.invoke(main, ["values", str(path)])
        assert result.exit_code == 1
        assert "decode-error" in result.output

    def test_missing_values_file(self, wordpress_path, tmp_path):
        result = runner.invoke(main, ["values", wordpress_path, "-f", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "Values file not found" in result.output

    def test_missing_dependencies(self, tmp_path):
        path = tmp_path / "app.tgz"
        path.write_bytes(build_tgz({
            "app/Chart.yaml": "name: app\nversion: 1.0.0\n",
            "app/requirements.yaml": "dependencies:\n  - name: redis\n    version: 1.0.0\n",
        }))
        result = runner.invoke(main, ["values", str(path)])
        assert result.exit_code == 1
        assert "missing: redis 1.0.0" in result.output


class TestPackage:
    def test_package(self, wordpress_dir, tmp_path):
        dest = tmp_path / "dist"
        result = runner.invoke(main, ["package", str(wordpress_dir), "-d", str(dest)])
        assert result.exit_code == 0
        assert "Packaged wordpress 1.0.0" in result.output
        chart = load_tar(dest / "wordpress-1.0.0.tgz")
        assert [d.name for d in chart.dependencies] == ["mariadb"]

    def test_package_without_version(self, tmp_path):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "Chart.yaml").write_text("name: app\n")
        result = runner.invoke(main, ["package", str(tmp_path / "app"), "-d", str(tmp_path)])
        assert result.exit_code == 1
        assert "missing-metadata" in result.output


class TestFetch:
    def test_bad_reference(self, helm_home):
        result = runner.invoke(main, ["fetch", "redis", "--home", str(helm_home)])
        assert result.exit_code == 1
        assert "expected <repo>/<chart>" in result.output

    def test_unknown_repository(self, helm_home):
        result = runner.invoke(main, ["fetch", "incubator/redis", "--home", str(helm_home)])
        assert result.exit_code == 1
        assert "Repository 'incubator' not found" in result.output

    def test_cached_archive(self, helm_home):
        archive = helm_home / "cache" / "archive"
        archive.mkdir(parents=True)
        (archive / "redis-1.0.0.tgz").write_bytes(b"cached")

        result = runner.invoke(main, [
            "fetch", "stable/redis", "--version", "1.0.0", "--home", str(helm_home),
        ])
        assert result.exit_code == 0
        assert result.stdout.strip() == str(archive / "redis-1.0.0.tgz")

    def test_download_latest(self, helm_home, tmp_path):
        index = (
            "entries:\n"
            "  redis:\n"
            "    - {name: redis, version: 1.0.0, urls: [redis-1.0.0.tgz]}\n"
            "    - {name: redis, version: 2.0.0, urls: [redis-2.0.0.tgz]}\n"
        ).encode()
        routes = {
            "https://charts.example.com/index.yaml": index,
            "https://charts.example.com/redis-2.0.0.tgz": b"tarball",
        }
        with patch("chartkit.repository.repository.requests.get",
                   side_effect=lambda url, **kw: MagicMock(content=routes[url])):
            result = runner.invoke(main, [
                "fetch", "stable/redis", "--home", str(helm_home), "-d", str(tmp_path / "out"),
            ])
        assert result.exit_code == 0
        assert (tmp_path / "out" / "redis-2.0.0.tgz").read_bytes() == b"tarball"
        assert (helm_home / "repository" / "cache" / "stable-index.yaml").is_file()

    def test_unknown_chart(self, helm_home):
        cache = helm_home / "repository" / "cache"
        cache.mkdir(parents=True)
        (cache / "stable-index.yaml").write_text("entries: {}\n")
        result = runner.invoke(main, ["fetch", "stable/nope", "--home", str(helm_home)])
        assert result.exit_code == 1
        assert "Chart 'nope' not found" in result.output


def test_version():
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output
