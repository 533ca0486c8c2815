"""
tests/test_values.py — Value trees and coalescing.

MapTree paths, coalesce_maps precedence, globals, whole-tree coalescing,
user override parsing.
"""

import os
import sys

import pytest
import yaml

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from chartkit.chart.maptree import MapTree, new_map_chain
from chartkit.chart.model import Chart, ConfigValues, Metadata
from chartkit.chart.values import (
    coalesce_globals,
    coalesce_maps,
    coalesce_values,
    load_values_file,
    merge_override_values,
    parse_set_values,
)
from chartkit.errors import ChartError, ErrorKind


def chart(name, values="", deps=()):
    return Chart(
        metadata=Metadata(name=name, version="1.0.0"),
        values=ConfigValues(values),
        dependencies=list(deps),
    )


# ─────────────────────────────────────────────
# MAP TREE
# ─────────────────────────────────────────────
class TestMapTree:
    def test_put_then_get(self):
        data = {}
        tree = MapTree(data)
        tree.put("a.b.c", 3)
        assert tree.get("a.b.c") == 3
        assert data == {"a": {"b": {"c": 3}}}

    def test_put_keeps_siblings(self):
        data = {"a": {"x": 1}}
        MapTree(data).put("a.b", 2)
        assert data == {"a": {"x": 1, "b": 2}}

    def test_put_returns_previous(self):
        tree = MapTree({"a": {"b": 1}})
        assert tree.put("a.b", 2) == 1
        assert tree.put("a.c", 3) is None

    def test_put_replaces_scalar_on_the_way(self):
        data = {"a": "scalar"}
        MapTree(data).put("a.b", 1)
        assert data == {"a": {"b": 1}}

    def test_get_missing(self):
        tree = MapTree({"a": {"b": 1}})
        assert tree.get("a.c") is None
        assert tree.get("a.b.c") is None
        assert tree.get("") is None

    def test_get_type_filter(self):
        tree = MapTree({"a": {"b": 1, "m": {"x": 1}}})
        assert tree.get("a.b", str) is None
        assert tree.get("a.b", int) == 1
        assert tree.get_map("a.m") == {"x": 1}
        assert tree.get_map("a.b") is None

    def test_new_map_chain(self):
        assert new_map_chain("a.b", 1) == {"a": {"b": 1}}
        data = {"x": 1}
        assert new_map_chain(".", data) is data
        assert new_map_chain("", data) is None


# ─────────────────────────────────────────────
# COALESCE MAPS
# ─────────────────────────────────────────────
class TestCoalesceMaps:
    def test_nested_merge(self):
        result = coalesce_maps({"k": {"a": 1}}, {"k": {"b": 2}})
        assert result == {"k": {"a": 1, "b": 2}}

    def test_target_wins_on_scalars(self):
        result = coalesce_maps({"a": 1, "b": [1, 2]}, {"a": 2, "b": [3]})
        assert result == {"a": 2, "b": [3]}

    def test_source_only_keys_copied(self):
        result = coalesce_maps({"new": {"deep": True}}, {"old": 1})
        assert result == {"old": 1, "new": {"deep": True}}

    def test_returns_target_in_place(self):
        target = {"a": 1}
        assert coalesce_maps({"b": 2}, target) is target
        assert target == {"a": 1, "b": 2}

    def test_null_source_is_identity(self):
        target = {"a": {"b": 1}}
        assert coalesce_maps(None, target) is target
        assert target == {"a": {"b": 1}}

    def test_null_target_never_returns_none(self):
        assert coalesce_maps(None, None) == {}
        assert coalesce_maps({"a": 1}, None) == {"a": 1}

    def test_idempotent(self):
        source = {"k": {"a": 1, "n": {"x": 1}}, "s": "v"}
        once = coalesce_maps(source, {"k": {"b": 2}, "s": "t"})
        twice = coalesce_maps(source, yaml.safe_load(yaml.safe_dump(once)))
        assert twice == once

    def test_table_not_replaced_by_scalar(self):
        target = {"k": {"a": 1}}
        coalesce_maps({"k": "scalar"}, target)
        assert target == {"k": {"a": 1}}

    def test_scalar_not_replaced_by_table(self):
        target = {"k": "scalar"}
        coalesce_maps({"k": {"a": 1}}, target)
        assert target == {"k": "scalar"}


# ─────────────────────────────────────────────
# GLOBALS
# ─────────────────────────────────────────────
class TestCoalesceGlobals:
    def test_parent_globals_win(self):
        source = {"global": {"a": 1, "m": {"x": 1}}}
        target = {"global": {"a": 2, "m": {"y": 2}, "own": True}}
        coalesce_globals(source, target)
        assert target["global"] == {"a": 1, "m": {"x": 1, "y": 2}, "own": True}

    def test_creates_global_map(self):
        target = {}
        coalesce_globals({"global": {"env": "prod"}}, target)
        assert target == {"global": {"env": "prod"}}

    def test_deep_copies(self):
        source = {"global": {"m": {"x": 1}}}
        target = {}
        coalesce_globals(source, target)
        target["global"]["m"]["x"] = 99
        assert source["global"]["m"]["x"] == 1

    def test_no_source_globals(self):
        target = {"a": 1}
        coalesce_globals({}, target)
        assert target == {"a": 1, "global": {}}


# ─────────────────────────────────────────────
# COALESCE VALUES
# ─────────────────────────────────────────────
class TestCoalesceValues:
    def test_defaults_only(self):
        c = chart("app", "replicas: 1\nimage: nginx\n")
        assert coalesce_values(c) == {"replicas": 1, "image": "nginx"}

    def test_overrides_beat_defaults(self):
        c = chart("app", "replicas: 1\nimage: nginx\n")
        assert coalesce_values(c, {"replicas": 3}) == {"replicas": 3, "image": "nginx"}

    def test_subchart_values_nested(self):
        sub = chart("sub", "replicas: 1\nimage: nginx\n")
        parent = chart("parent", "name: parent\nglobal:\n  env: prod\nsub:\n  replicas: 3\n", [sub])
        overrides = {"sub": {"image": "custom"}}

        result = coalesce_values(parent, overrides)

        assert result["name"] == "parent"
        assert result["sub"] == {"image": "custom", "replicas": 3, "global": {"env": "prod"}}
        assert overrides == {"sub": {"image": "custom"}}

    def test_globals_do_not_leak_between_siblings(self):
        a = chart("a", "global:\n  onlya: true\n")
        b = chart("b")
        parent = chart("parent", "global:\n  g: 1\n", [a, b])

        result = coalesce_values(parent)

        assert result["a"]["global"] == {"g": 1, "onlya": True}
        assert result["b"]["global"] == {"g": 1}
        assert result["global"] == {"g": 1}

    def test_grandchild_receives_globals(self):
        gc = chart("gc", "x: 1\n")
        sub = chart("sub", "", [gc])
        parent = chart("parent", "global:\n  region: eu\n", [sub])
        result = coalesce_values(parent)
        assert result["sub"]["gc"]["global"] == {"region": "eu"}
        assert result["sub"]["gc"]["x"] == 1

    def test_chart_defaults_untouched(self):
        c = chart("app", "m:\n  a: 1\n")
        result = coalesce_values(c, {"m": {"b": 2}})
        result["m"]["a"] = 99
        assert c.values.as_dict() == {"m": {"a": 1}}

    def test_non_map_subchart_values(self):
        parent = chart("parent", "", [chart("sub", "a: 1\n")])
        with pytest.raises(ChartError) as exc:
            coalesce_values(parent, {"sub": "oops"})
        assert exc.value.kind == ErrorKind.DECODE_ERROR


# ─────────────────────────────────────────────
# USER OVERRIDES
# ─────────────────────────────────────────────
class TestSetValues:
    def test_nested(self):
        assert parse_set_values(["replicas=3", "postgresql.storage=50Gi"]) == {
            "replicas": 3,
            "postgresql": {"storage": "50Gi"},
        }

    def test_coercion(self):
        result = parse_set_values(["a=true", "b=false", "c=null", "d=1.5", "e=x=y"])
        assert result == {"a": True, "b": False, "c": None, "d": 1.5, "e": "x=y"}

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_set_values(["novalue"])
        with pytest.raises(ValueError):
            parse_set_values(["=1"])

    @pytest.mark.parametrize("arg", ["a..b=1", ".a=1", "a.=1"])
    def test_empty_path_segment(self, arg):
        with pytest.raises(ValueError, match="empty key"):
            parse_set_values([arg])

    def test_later_path_extends_or_replaces(self):
        result = parse_set_values(["db=off", "db.port=3307", "db.auth.user=wp", "db.port=3308"])
        assert result == {"db": {"port": 3308, "auth": {"user": "wp"}}}


class TestOverrideValues:
    def test_files_then_set(self, tmp_path):
        f1 = tmp_path / "a.yaml"
        f1.write_text("a: 1\nb:\n  x: 1\n")
        f2 = tmp_path / "b.yaml"
        f2.write_text("b:\n  y: 2\n")

        result = merge_override_values([f1, f2], ["a=5"])
        assert result == {"a": 5, "b": {"x": 1, "y": 2}}

    def test_later_file_wins(self, tmp_path):
        f1 = tmp_path / "a.yaml"
        f1.write_text("a: 1\n")
        f2 = tmp_path / "b.yaml"
        f2.write_text("a: 2\n")
        assert merge_override_values([f1, f2], []) == {"a": 2}

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_values_file(tmp_path / "nope.yaml")

    def test_invalid_utf8(self, tmp_path):
        f = tmp_path / "latin1.yaml"
        f.write_bytes(b"name: caf\xe9\n")
        with pytest.raises(ChartError) as exc:
            load_values_file(f)
        assert exc.value.kind == ErrorKind.DECODE_ERROR

    def test_bad_yaml(self, tmp_path):
        f = tmp_path / "bad.yaml"
        f.write_text("a: [\n")
        with pytest.raises(ChartError) as exc:
            load_values_file(f)
        assert exc.value.kind == ErrorKind.DECODE_ERROR
