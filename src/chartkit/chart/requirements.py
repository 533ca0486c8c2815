"""
chartkit.chart.requirements — Dependency enable/disable, aliasing and import-values.

A chart declares its subcharts in a ``requirements.yaml`` file:

    dependencies:
      - name: mariadb
        version: 7.3.1
        repository: https://charts.example.com
        condition: mariadb.enabled,global.mariadb.enabled
        tags: [database]
        alias: db
        import-values:
          - data                              # exports.data → parent root
          - child: primary.config
            parent: dbconfig

Processing a chart (process_requirements):

    1. match every declared dependency against charts/ (exact name + version)
    2. attach aliased copies of the matched subcharts
    3. coalesce values with the caller's overrides
    4. enable everything, then apply tags, then conditions
    5. prune disabled subcharts
    6. recurse into each survivor with the parent's merged values
    7. import-values, bottom-up over the whole tree (top-level call only)
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass, field
from typing import Any

from chartkit.chart.maptree import MapTree, new_map_chain
from chartkit.chart.model import FIELD_CONVERTERS, Chart, ConfigValues, Metadata, decode_mapping
from chartkit.chart.values import coalesce_maps, coalesce_values
from chartkit.errors import ChartError, ErrorKind, decode_error

logger = logging.getLogger(__name__)

REQUIREMENTS_FILE = "requirements.yaml"

_CONDITION_SPLIT = re.compile(r"\s*,\s*")


@dataclass
class Dependency:
    """One entry of requirements.yaml.

    Attributes:
        name: Chart name; rewritten to ``alias`` once the alias is applied
        version: Exact version string the bundled subchart must carry
        condition: Comma-separated dotted value paths
        tags: Tag names looked up under ``values['tags']``
        enabled: Computed during processing, never read from YAML
        import_values: Bare strings or ``{child, parent}`` maps
    """

    name: str = ""
    version: str = ""
    repository: str = ""
    condition: str = ""
    tags: list[str] = field(default_factory=list)
    enabled: bool = True
    import_values: list[Any] = field(default_factory=list)
    alias: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        if not isinstance(data, dict):
            raise decode_error(f"{REQUIREMENTS_FILE}: each dependency must be a mapping")
        dep = cls()
        for key, attr, kind in DEPENDENCY_FIELDS:
            value = data.get(key)
            if value is None:
                continue
            if kind == "import-values":
                if not isinstance(value, list):
                    raise decode_error(f"{key}: expected a list, got {type(value).__name__}")
                value = list(value)
            else:
                value = FIELD_CONVERTERS[kind](key, value)
            setattr(dep, attr, value)
        return dep

    @property
    def values_key(self) -> str:
        """Key the subchart's values live under in the parent."""
        return self.alias or self.name

    def identifies(self, metadata: Metadata | None) -> bool:
        return (
            metadata is not None
            and metadata.name == self.name
            and metadata.version == self.version
        )

    def process_tags(self, values: dict[str, Any] | None) -> None:
        """Adjust ``enabled`` from ``values['tags']``.

        A false tag with no true tag disables. With no false tag, enabled
        becomes "some tag was true", so tags missing from the map disable
        too. A false tag alongside a true one leaves ``enabled`` untouched.
        """
        if not values or not self.tags:
            return
        tag_values = values.get("tags")
        if not isinstance(tag_values, dict):
            return
        has_true = has_false = False
        for tag in self.tags:
            value = tag_values.get(tag)
            if value is True:
                has_true = True
            elif value is False:
                has_false = True
            elif value is not None:
                logger.warning("%s: tag %r is not a boolean (%r); ignored", self, tag, value)
        if has_false:
            if not has_true:
                self.enabled = False
        else:
            self.enabled = has_true

    def process_conditions(self, values: dict[str, Any] | None) -> None:
        """Adjust ``enabled`` from the first condition path that is set.

        A non-boolean value there ends the lookup without changing ``enabled``.
        """
        if not values or not self.condition:
            return
        tree = MapTree(values)
        has_true = has_false = False
        for path in _CONDITION_SPLIT.split(self.condition.strip()):
            if not path:
                continue
            value = tree.get(path)
            if value is None:
                continue
            if isinstance(value, bool):
                if value:
                    has_true = True
                else:
                    has_false = True
                break
            logger.warning("%s: condition path %s is not a boolean (%r)", self, path, value)
            break
        if has_false and not has_true:
            self.enabled = False
        elif has_true:
            self.enabled = True

    def __str__(self) -> str:
        alias = f" ({self.alias})" if self.alias else ""
        return f"{self.name}{alias} {self.version}".rstrip()


# (requirements.yaml key, Dependency attribute, converter)
DEPENDENCY_FIELDS: list[tuple[str, str, str]] = [
    ("name", "name", "str"),
    ("version", "version", "str"),
    ("repository", "repository", "str"),
    ("condition", "condition", "str"),
    ("tags", "tags", "tags"),
    ("import-values", "import_values", "import-values"),
    ("alias", "alias", "str"),
]


@dataclass
class Requirements:
    dependencies: list[Dependency] = field(default_factory=list)

    @classmethod
    def from_yaml(cls, text: str | bytes) -> Requirements:
        data = decode_mapping(text, REQUIREMENTS_FILE)
        deps = data.get("dependencies") or []
        if not isinstance(deps, list):
            raise decode_error(f"{REQUIREMENTS_FILE}: dependencies must be a list")
        return cls([Dependency.from_dict(d) for d in deps if d is not None])

    @classmethod
    def from_chart(cls, chart: Chart) -> Requirements | None:
        """Parse the chart's requirements.yaml; None when it has none."""
        blob = chart.find_file(REQUIREMENTS_FILE)
        if blob is None:
            return None
        return cls.from_yaml(blob.data)

    def __iter__(self):
        return iter(self.dependencies)

    def __len__(self) -> int:
        return len(self.dependencies)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# VALIDATION
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def _bundles(dep: Dependency, sub: Chart) -> bool:
    # Also accept a subchart already renamed to the alias by an earlier pass.
    if dep.identifies(sub.metadata):
        return True
    return bool(dep.alias) and sub.metadata.name == dep.alias and sub.metadata.version == dep.version


def check_dependencies(chart: Chart, requirements: Requirements | None = None) -> list[Dependency]:
    """Return every declared dependency with no matching bundled subchart."""
    if requirements is None:
        requirements = Requirements.from_chart(chart)
    if requirements is None:
        return []
    return [
        dep for dep in requirements
        if not any(_bundles(dep, sub) for sub in chart.dependencies)
    ]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ENABLE / DISABLE
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def process_requirements(
    chart: Chart,
    overrides: dict[str, Any] | None = None,
    import_values: bool = True,
) -> Chart:
    """Apply requirements.yaml to ``chart`` and, recursively, its subcharts.

    The chart's dependency list is replaced: disabled subcharts are
    removed, aliased ones are attached under their alias. Subcharts not
    named by any requirement are kept.

    Raises:
        ChartError(MISSING_DEPENDENCIES): a requirement matches no subchart;
            the top-level call leaves the tree as it found it
    """
    if not import_values:
        return _process_chart(chart, overrides)

    # Only dependency lists are rewritten in place; aliased subcharts are copies.
    saved = [(node, list(node.dependencies)) for node in chart.walk()]
    try:
        _process_chart(chart, overrides)
    except ChartError as e:
        if e.kind == ErrorKind.MISSING_DEPENDENCIES:
            for node, deps in saved:
                node.dependencies = deps
        raise
    return process_import_values(chart)


def _process_chart(chart: Chart, overrides: dict[str, Any] | None) -> Chart:
    requirements = Requirements.from_chart(chart)
    merged: dict[str, Any] | None = None

    if requirements is not None and len(requirements):
        missing = check_dependencies(chart, requirements)
        if missing:
            raise ChartError(ErrorKind.MISSING_DEPENDENCIES, missing=missing)

        chart.dependencies = _apply_aliases(chart, requirements)
        merged = coalesce_values(chart, overrides)

        for dep in requirements:
            dep.enabled = True
        for dep in requirements:
            dep.process_tags(merged)
        for dep in requirements:
            dep.process_conditions(merged)

        disabled = {dep.values_key for dep in requirements if not dep.enabled}
        for name in sorted(disabled):
            logger.debug("%s: disabling subchart %s", chart.name, name)
        chart.dependencies = [
            sub for sub in chart.dependencies if sub.metadata.name not in disabled
        ]

    if chart.dependencies:
        if merged is None:
            merged = coalesce_values(chart, overrides)
        for sub in chart.dependencies:
            _process_chart(sub, merged)
    return chart


def _apply_aliases(chart: Chart, requirements: Requirements) -> list[Chart]:
    """Build the new subchart list: unmentioned subcharts, then one per requirement."""
    subcharts = list(chart.dependencies)
    mentioned = [
        sub for sub in subcharts
        if any(_bundles(dep, sub) for dep in requirements)
    ]
    result = [sub for sub in subcharts if not any(sub is m for m in mentioned)]

    for dep in requirements:
        match = next((sub for sub in mentioned if _bundles(dep, sub)), None)
        if match is None:
            continue
        if dep.alias:
            match = copy.deepcopy(match)
            match.metadata.name = dep.alias
            dep.name = dep.alias
        result.append(match)
    return result


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# IMPORT-VALUES
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def normalize_import_values(import_values: list[Any]) -> list[dict[str, str]]:
    """Rewrite bare strings as ``{child: exports.<s>, parent: "."}``.

    >>> normalize_import_values(["data", {"child": "a", "parent": "b"}])
    [{'child': 'exports.data', 'parent': '.'}, {'child': 'a', 'parent': 'b'}]
    """
    result = []
    for entry in import_values:
        if isinstance(entry, str):
            result.append({"child": f"exports.{entry}", "parent": "."})
        elif isinstance(entry, dict):
            result.append({
                "child": str(entry.get("child") or ""),
                "parent": str(entry.get("parent") or ""),
            })
        else:
            raise decode_error(f"import-values: unsupported entry {entry!r}")
    return result


def process_import_values(chart: Chart) -> Chart:
    """Run import-values for every chart in the tree, deepest first."""
    for node in reversed(list(chart.walk())):
        _import_values(node)
    return chart


def _import_values(chart: Chart) -> None:
    requirements = Requirements.from_chart(chart)
    if requirements is None or not any(dep.import_values for dep in requirements):
        return

    merged = coalesce_values(chart)
    tree = MapTree(merged)
    imported: dict[str, Any] = {}

    for dep in requirements:
        if not dep.import_values:
            continue
        for raw, entry in zip(dep.import_values, normalize_import_values(dep.import_values)):
            child_path = f"{dep.values_key}.{entry['child']}"
            child_values = tree.get_map(child_path)
            if child_values is None:
                logger.warning("%s: import-values %s not found", chart.name, child_path)
                continue
            child_values = copy.deepcopy(child_values)
            if isinstance(raw, str):
                coalesce_maps(child_values, imported)
            else:
                coalesce_maps(new_map_chain(entry["parent"], child_values), merged)
        dep.import_values = normalize_import_values(dep.import_values)

    chart.values = ConfigValues.from_dict(coalesce_maps(merged, imported))


def resolve_values(chart: Chart, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Process requirements, then return the fully coalesced values."""
    process_requirements(chart, overrides)
    return coalesce_values(chart, overrides)
