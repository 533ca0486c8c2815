"""
chartkit.chart.values — Values coalescing.

Value precedence (same as Helm):
  values.yaml (chart) → -f values.yaml → -f values2.yaml → --set key=val

Coalescing merges a *source* tree into a *target* tree in place. The
target is authoritative: a key already present in the target keeps its
value, keys only in the source are copied over, and maps present on
both sides are merged recursively. Overrides are therefore passed as
the target and chart defaults as the source.

The reserved ``global`` map flows from a parent chart into each
subchart's values before the subchart is coalesced.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

from chartkit.chart.maptree import MapTree
from chartkit.chart.model import Chart, decode_mapping
from chartkit.errors import decode_error

logger = logging.getLogger(__name__)

GLOBAL_KEY = "global"


def coalesce_maps(source: dict[str, Any] | None,
                  target: dict[str, Any] | None) -> dict[str, Any]:
    """Merge ``source`` into ``target``; target wins. Returns ``target``.

    >>> coalesce_maps({"k": {"a": 1}, "x": 1}, {"k": {"b": 2}, "x": 2})
    {'k': {'b': 2, 'a': 1}, 'x': 2}
    """
    if target is None:
        target = {}
    if not source:
        return target
    for key, value in source.items():
        if key not in target:
            target[key] = value
            continue
        existing = target[key]
        if isinstance(value, dict):
            if isinstance(existing, dict):
                coalesce_maps(value, existing)
            elif existing is not None:
                logger.warning("cannot overwrite table with non table for %s (%r)", key, existing)
        elif isinstance(existing, dict):
            logger.warning("destination for %s is a table; ignoring non-table value %r", key, value)
    return target


def coalesce_globals(source: dict[str, Any], target: dict[str, Any]) -> dict[str, Any]:
    """Copy ``source['global']`` into ``target['global']``.

    Globals travel top-down: where both sides define a key, the parent's
    (source) value wins, nested maps are merged. Each target receives
    its own deep copy, so siblings never share global maps.
    """
    target_globals = target.get(GLOBAL_KEY)
    if target_globals is None:
        target_globals = {}
        target[GLOBAL_KEY] = target_globals
    elif not isinstance(target_globals, dict):
        logger.warning("global values are not a map: %r", target_globals)
        return target

    source_globals = source.get(GLOBAL_KEY)
    if not isinstance(source_globals, dict):
        return target

    for key, value in source_globals.items():
        value = copy.deepcopy(value)
        existing = target_globals.get(key)
        if isinstance(value, dict):
            if isinstance(existing, dict):
                # reversed: the parent's copy is the target here
                coalesce_maps(existing, value)
            elif existing is not None:
                logger.warning("global %s: cannot merge table into %r", key, existing)
        elif isinstance(existing, dict):
            logger.warning("global %s is a table; ignoring non-table value %r", key, value)
            continue
        target_globals[key] = value
    return target


def coalesce_values(chart: Chart, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Compute the coalesced values of a whole chart tree.

    ``overrides`` is not modified. Subchart values end up nested under
    each subchart's name.
    """
    target = copy.deepcopy(overrides) if overrides else {}
    return _coalesce(chart, target)


def _coalesce(chart: Chart, target: dict[str, Any]) -> dict[str, Any]:
    coalesce_maps(chart.values.as_dict(), target)
    return _coalesce_dependencies(chart, target)


def _coalesce_dependencies(chart: Chart, target: dict[str, Any]) -> dict[str, Any]:
    for sub in chart.dependencies:
        name = sub.metadata.name
        if not name:
            continue
        sub_values = target.get(name)
        if sub_values is None:
            sub_values = {}
            target[name] = sub_values
        elif not isinstance(sub_values, dict):
            raise decode_error(f"type mismatch on {name}: values must be a map, got {sub_values!r}")
        coalesce_globals(target, sub_values)
        target[name] = _coalesce(sub, sub_values)
    return target


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# USER-SUPPLIED VALUES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def load_values_file(path: str | Path) -> dict[str, Any]:
    """Read a YAML values file."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Values file not found: {p}")
    return decode_mapping(p.read_bytes(), str(p))


_SET_LITERALS = {"true": True, "false": False, "null": None}


def parse_set_values(set_args: list[str]) -> dict[str, Any]:
    """Build an override tree from ``--set path=value`` arguments.

    Each path is a dotted value path written through MapTree.put, so later
    arguments extend or replace what earlier ones built. Only the first
    ``=`` separates path from value.

    >>> parse_set_values(["mariadb.port=3307", "mariadb.auth.user=wp", "tag=a=b"])
    {'mariadb': {'port': 3307, 'auth': {'user': 'wp'}}, 'tag': 'a=b'}
    """
    result: dict[str, Any] = {}
    tree = MapTree(result)
    for arg in set_args:
        path, sep, text = arg.partition("=")
        if not sep:
            raise ValueError(f"Invalid --set format: '{arg}' (expected key=value)")
        if not path or "" in path.split("."):
            raise ValueError(f"Invalid --set format: '{arg}' (empty key)")
        tree.put(path, _scalar(text))
    return result


def _scalar(text: str) -> Any:
    """Type a --set value: booleans, null and numbers; anything else stays text.

    >>> [_scalar(t) for t in ("TRUE", "null", "3", "0.5", "50Gi")]
    [True, None, 3, 0.5, '50Gi']
    """
    lowered = text.lower()
    if lowered in _SET_LITERALS:
        return _SET_LITERALS[lowered]
    for number in (int, float):
        try:
            return number(text)
        except ValueError:
            continue
    return text


def _overlay(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    # A later layer is the authoritative target.
    return coalesce_maps(base, copy.deepcopy(override))


def merge_override_values(
    value_files: list[str | Path],
    set_args: list[str],
) -> dict[str, Any]:
    """Build the user-supplied override tree.

    Precedence (low to high):
      value_files (in order) → set_args
    """
    result: dict[str, Any] = {}
    for vf in value_files:
        result = _overlay(result, load_values_file(vf))
    if set_args:
        result = _overlay(result, parse_set_values(set_args))
    return result
