"""
tests/conftest.py — Shared chart fixtures.

Archives are built in memory from {path: content} dicts.
"""

import io
import tarfile
import zipfile

import pytest


def build_tgz(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode() if isinstance(content, str) else content
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def build_zip(files):
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


def write_tree(root, files):
    """Create files under ``root`` from a {relative path: content} dict."""
    for name, content in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
    return root


WORDPRESS = {
    "wordpress/Chart.yaml": "name: wordpress\nversion: 1.0.0\ndescription: Blog\n",
    "wordpress/values.yaml": "replicas: 1\nmariadb:\n  enabled: true\n",
    "wordpress/templates/deploy.yaml": "kind: Deployment\n",
    "wordpress/templates/_helpers.tpl": "{{/* helpers */}}\n",
    "wordpress/README.md": "# wordpress\n",
    "wordpress/requirements.yaml": (
        "dependencies:\n"
        "  - name: mariadb\n"
        "    version: 7.0.0\n"
        "    condition: mariadb.enabled\n"
    ),
    "wordpress/charts/mariadb/Chart.yaml": "name: mariadb\nversion: 7.0.0\n",
    "wordpress/charts/mariadb/values.yaml": "port: 3306\n",
    "wordpress/charts/mariadb/templates/svc.yaml": "kind: Service\n",
}


@pytest.fixture
def wordpress_files():
    return dict(WORDPRESS)


@pytest.fixture
def wordpress_tgz():
    return build_tgz(WORDPRESS)


@pytest.fixture
def wordpress_dir(tmp_path):
    files = {k.split("/", 1)[1]: v for k, v in WORDPRESS.items()}
    return write_tree(tmp_path / "wordpress", files)
