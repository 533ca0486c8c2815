"""
chartkit.chart.ignore — .helmignore rules.

Supported grammar, one rule per line:

  # comment            ignored, as are blank lines
  !pattern             negate the rule
  pattern/             only matches directories
  name.txt             no slash: matched against the basename
  dir/name.txt         slash: matched against the whole relative path
  /name.txt            leading slash: anchored at the chart root
  * ?  [a-z]           glob wildcards (never cross a '/')

``**`` is not supported. Every matcher starts with the rule
``templates/.?*`` so that dotfiles under templates/ are never loaded.
"""

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from chartkit.errors import ChartError, ErrorKind

HELMIGNORE = ".helmignore"
DEFAULT_RULES = ("templates/.?*",)

# Regex metacharacters that have no glob meaning and must be taken literally.
_LITERAL = set(".+(){}|$^")


@dataclass(frozen=True)
class Rule:
    pattern: re.Pattern
    negate: bool = False
    require_dir: bool = False
    basename: bool = False

    def test(self, path: str, is_dir: bool) -> bool:
        candidate = path.rsplit("/", 1)[-1] if self.basename else path
        matched = (not self.require_dir or is_dir) and bool(self.pattern.fullmatch(candidate))
        return not matched if self.negate else matched


def _unsupported(line: str, why: str) -> ChartError:
    return ChartError(ErrorKind.UNSUPPORTED_PATTERN, f"{why}: {line!r}")


def compile_rule(line: str) -> Rule | None:
    """Compile one .helmignore line; None for blanks and comments."""
    original = line
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    if "**" in line:
        raise _unsupported(original, "double-star (**) syntax is not supported")

    negate = False
    if line.startswith("!"):
        if len(line) == 1:
            raise _unsupported(original, "bare negation")
        negate = True
        line = line[1:]

    require_dir = False
    if line.endswith("/"):
        if len(line) == 1:
            raise _unsupported(original, "bare slash")
        require_dir = True
        line = line[:-1]

    slash = line.find("/")
    basename = slash < 0
    if slash == 0:
        line = line[1:]

    regex = []
    i = 0
    while i < len(line):
        c = line[i]
        if c == "*":
            regex.append("[^/]*")
        elif c == "?":
            regex.append("[^/]")
        elif c == "\\":
            if i + 1 == len(line):
                raise _unsupported(original, "trailing escape")
            i += 1
            regex.append(re.escape(line[i]))
        elif c in _LITERAL:
            regex.append("\\" + c)
        else:
            regex.append(c)
        i += 1
    try:
        pattern = re.compile("".join(regex))
    except re.error as e:
        raise _unsupported(original, f"invalid pattern ({e})") from e
    return Rule(pattern, negate=negate, require_dir=require_dir, basename=basename)


class HelmIgnore:
    """A thread-safe, growable set of ignore rules.

    Args:
        patterns: Initial rule lines
        root: Directory that relative candidates are checked against when
            ``matches()`` has to decide whether a path is a directory
    """

    def __init__(self, patterns: Iterable[str] = (), root: str | Path | None = None):
        self.root = Path(root) if root is not None else None
        self._lock = threading.Lock()
        self._rules: list[Rule] = []
        self.add_patterns(DEFAULT_RULES)
        self.add_patterns(patterns)

    @classmethod
    def from_file(cls, path: str | Path, root: str | Path | None = None) -> HelmIgnore:
        p = Path(path)
        with open(p, encoding="utf-8") as f:
            lines = f.read().splitlines()
        return cls(lines, root=root if root is not None else p.parent)

    def add_pattern(self, line: str) -> None:
        self.add_patterns([line])

    def add_patterns(self, lines: Iterable[str]) -> None:
        compiled = [r for r in (compile_rule(line) for line in lines if line) if r is not None]
        with self._lock:
            self._rules.extend(compiled)

    @property
    def rules(self) -> list[Rule]:
        with self._lock:
            return list(self._rules)

    def matches(self, path: str | Path, is_dir: bool | None = None) -> bool:
        """True if any rule ignores ``path`` (relative to the chart root)."""
        text = str(path).replace(os.sep, "/")
        if text in ("", ".", "./"):
            return False
        if text.endswith("/"):
            text = text.rstrip("/")
            if is_dir is None:
                is_dir = True
        if is_dir is None:
            candidate = self.root / text if self.root is not None else Path(text)
            is_dir = candidate.is_dir()
        return any(rule.test(text, is_dir) for rule in self.rules)

    __call__ = matches
