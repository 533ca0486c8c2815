"""
chartkit.errors — Error kinds.

Every failure raised by chartkit is a ChartError tagged with an ErrorKind.
Callers branch on ``error.kind`` instead of on exception subclasses:

  MALFORMED_ENTRY       bad archive entry / path grammar      (aborts)
  MISSING_METADATA      chart without name or version         (aborts)
  DECODE_ERROR          YAML that does not parse / bad types  (aborts)
  MISSING_DEPENDENCIES  requirements not found in charts/     (batched)
  UNSUPPORTED_PATTERN   .helmignore rule we cannot compile
  RESOURCE_ERROR        stream read / close failure
  RESOLVE_ERROR         repository or index lookup failure
"""

from __future__ import annotations

import enum
from typing import Any


class ErrorKind(enum.Enum):
    MALFORMED_ENTRY = "malformed-entry"
    MISSING_METADATA = "missing-metadata"
    MISSING_DEPENDENCIES = "missing-dependencies"
    DECODE_ERROR = "decode-error"
    UNSUPPORTED_PATTERN = "unsupported-pattern"
    RESOURCE_ERROR = "resource-error"
    RESOLVE_ERROR = "resolve-error"


_ABORTING = frozenset({
    ErrorKind.MALFORMED_ENTRY,
    ErrorKind.MISSING_METADATA,
    ErrorKind.DECODE_ERROR,
})


class ChartError(Exception):
    """A chartkit failure.

    Attributes:
        kind: What went wrong (ErrorKind)
        missing: Unmatched dependencies, for MISSING_DEPENDENCIES
    """

    def __init__(self, kind: ErrorKind, message: str = "",
                 missing: list[Any] | None = None):
        self.kind = kind
        self.missing = list(missing or [])
        if not message and self.missing:
            message = "missing dependencies: " + ", ".join(str(d) for d in self.missing)
        super().__init__(message or kind.value)

    @property
    def aborts(self) -> bool:
        """True for structural errors that invalidate the whole operation."""
        return self.kind in _ABORTING

    def __str__(self) -> str:
        return f"[{self.kind.value}] {super().__str__()}"


def malformed(message: str) -> ChartError:
    return ChartError(ErrorKind.MALFORMED_ENTRY, message)


def decode_error(message: str) -> ChartError:
    return ChartError(ErrorKind.DECODE_ERROR, message)
