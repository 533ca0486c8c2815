"""
chartkit.chart.model — In-memory chart tree.

    Chart
      ├── metadata: Metadata        (Chart.yaml)
      ├── values: ConfigValues      (values.yaml, raw text kept verbatim)
      ├── templates: [Template]     (templates/**)
      ├── files: [NamedBlob]        (everything else, by relative name)
      └── dependencies: [Chart]     (charts/<name>/..., charts/<name>.tgz)

Chart.yaml keys are mapped onto Metadata through an explicit field
table (METADATA_FIELDS); unknown keys are dropped.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Iterator

import yaml

from chartkit.errors import ChartError, ErrorKind, decode_error


@dataclass
class Maintainer:
    name: str = ""
    email: str = ""

    def to_dict(self) -> dict[str, str]:
        return {k: v for k, v in (("name", self.name), ("email", self.email)) if v}


@dataclass
class Metadata:
    """Chart metadata (Chart.yaml)."""
    name: str = ""
    version: str = ""
    api_version: str = ""
    app_version: str = ""
    description: str = ""
    icon: str = ""
    engine: str = ""
    home: str = ""
    sources: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    maintainers: list[Maintainer] = field(default_factory=list)
    condition: str = ""
    tags: list[str] = field(default_factory=list)
    deprecated: bool = False
    tiller_version: str = ""
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Metadata:
        md = cls()
        md.update(data)
        return md

    def update(self, data: dict[str, Any] | None) -> None:
        """Copy recognised Chart.yaml keys from ``data`` onto this object."""
        if not data:
            return
        if not isinstance(data, dict):
            raise decode_error(f"chart metadata must be a mapping, got {type(data).__name__}")
        for key, attr, kind in METADATA_FIELDS:
            if key not in data or data[key] is None:
                continue
            setattr(self, attr, FIELD_CONVERTERS[kind](key, data[key]))

    def to_dict(self) -> dict[str, Any]:
        """Chart.yaml mapping; empty and false fields are omitted."""
        out: dict[str, Any] = {}
        for key, attr, kind in METADATA_FIELDS:
            value = getattr(self, attr)
            if not value:
                continue
            if kind == "maintainers":
                value = [m.to_dict() for m in value]
            elif kind == "tags":
                value = ",".join(value)
            elif isinstance(value, (list, dict)):
                value = copy.copy(value)
            out[key] = value
        return dict(sorted(out.items()))


def _to_str(key: str, value: Any) -> str:
    # Chart.yaml versions like 1.0 decode as floats.
    if isinstance(value, bool) or isinstance(value, (dict, list)):
        raise decode_error(f"{key}: expected a string, got {type(value).__name__}")
    return str(value)


def _to_str_list(key: str, value: Any) -> list[str]:
    if not isinstance(value, list):
        raise decode_error(f"{key}: expected a list, got {type(value).__name__}")
    return [_to_str(key, v) for v in value if v is not None]


def _to_tags(key: str, value: Any) -> list[str]:
    if isinstance(value, str):
        return [t.strip() for t in value.split(",") if t.strip()]
    return _to_str_list(key, value)


def _to_bool(key: str, value: Any) -> bool:
    return str(value).lower() == "true"


def _to_maintainers(key: str, value: Any) -> list[Maintainer]:
    if not isinstance(value, list):
        raise decode_error(f"{key}: expected a list, got {type(value).__name__}")
    result = []
    for item in value:
        if item is None:
            continue
        if not isinstance(item, dict):
            raise decode_error(f"{key}: each maintainer must be a mapping")
        result.append(Maintainer(
            name=_to_str("maintainers.name", item.get("name") or ""),
            email=_to_str("maintainers.email", item.get("email") or ""),
        ))
    return result


def _to_annotations(key: str, value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        raise decode_error(f"{key}: expected a mapping, got {type(value).__name__}")
    return {str(k): _to_str(key, v) for k, v in value.items() if v is not None}


FIELD_CONVERTERS = {
    "str": _to_str,
    "list": _to_str_list,
    "tags": _to_tags,
    "bool": _to_bool,
    "maintainers": _to_maintainers,
    "annotations": _to_annotations,
}

# (Chart.yaml key, Metadata attribute, converter)
METADATA_FIELDS: list[tuple[str, str, str]] = [
    ("name", "name", "str"),
    ("version", "version", "str"),
    ("apiVersion", "api_version", "str"),
    ("appVersion", "app_version", "str"),
    ("description", "description", "str"),
    ("icon", "icon", "str"),
    ("engine", "engine", "str"),
    ("home", "home", "str"),
    ("sources", "sources", "list"),
    ("keywords", "keywords", "list"),
    ("maintainers", "maintainers", "maintainers"),
    ("condition", "condition", "str"),
    ("tags", "tags", "tags"),
    ("deprecated", "deprecated", "bool"),
    ("tillerVersion", "tiller_version", "str"),
    ("annotations", "annotations", "annotations"),
]


@dataclass
class Template:
    name: str
    data: bytes = b""

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")


@dataclass
class NamedBlob:
    """An arbitrary chart file, named relative to the chart root."""
    name: str
    data: bytes = b""

    @property
    def text(self) -> str:
        return self.data.decode("utf-8")


class ConfigValues:
    """values.yaml: the raw text plus its decoded mapping.

    The text is decoded at most once. ``as_dict()`` hands out a deep copy
    so that coalescing never writes into the chart's own defaults.
    """

    def __init__(self, raw: str = ""):
        self.raw = raw or ""
        self._parsed: dict[str, Any] | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ConfigValues:
        if not data:
            return cls("")
        cv = cls(to_yaml(data))
        cv._parsed = copy.deepcopy(data)
        return cv

    def as_dict(self) -> dict[str, Any]:
        if self._parsed is None:
            self._parsed = decode_mapping(self.raw, "values.yaml")
        return copy.deepcopy(self._parsed)

    def __bool__(self) -> bool:
        return bool(self.raw.strip())

    def __eq__(self, other: object) -> bool:
        return isinstance(other, ConfigValues) and other.raw == self.raw

    def __repr__(self) -> str:
        return f"ConfigValues({self.raw!r})"


@dataclass
class Chart:
    metadata: Metadata = field(default_factory=Metadata)
    values: ConfigValues = field(default_factory=ConfigValues)
    templates: list[Template] = field(default_factory=list)
    files: list[NamedBlob] = field(default_factory=list)
    dependencies: list[Chart] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    def walk(self) -> Iterator[Chart]:
        """Pre-order traversal: this chart, then each subchart tree."""
        yield self
        for dep in self.dependencies:
            yield from dep.walk()

    def find_file(self, name: str) -> NamedBlob | None:
        for f in self.files:
            if f.name == name:
                return f
        return None

    def require_identity(self) -> None:
        if not self.metadata.name:
            raise ChartError(ErrorKind.MISSING_METADATA, "chart has no name")
        if not self.metadata.version:
            raise ChartError(
                ErrorKind.MISSING_METADATA,
                f"chart '{self.metadata.name}' has no version",
            )


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# YAML
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
def decode_text(data: str | bytes, source: str = "document") -> str:
    """UTF-8 text of ``data``; invalid bytes are a DECODE_ERROR."""
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise decode_error(f"{source}: not valid UTF-8 ({e})") from e


def decode_yaml(text: str | bytes, source: str = "document") -> Any:
    text = decode_text(text, source)
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise decode_error(f"{source}: {e}") from e


def decode_mapping(text: str | bytes, source: str = "document") -> dict[str, Any]:
    """Decode YAML that must be a mapping (an empty document is {})."""
    data = decode_yaml(text, source)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise decode_error(f"{source}: expected a mapping, got {type(data).__name__}")
    return data


def to_yaml(data: Any) -> str:
    if not data:
        return ""
    return yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
