from __future__ import annotations
from typing import Optional


class DocStoreError(Exception):
    """Base class for all errors raised by the document store."""


class IOCorruptionError(DocStoreError):
    """
    A log line could not be decoded. The whole load fails; no partial log is exposed.
    """
    def __init__(self, msg: str, *, line_no: Optional[int] = None, line: Optional[str] = None) -> None:
        if line_no is not None:
            msg = f"line {line_no}: {msg}"
        super().__init__(msg)
        self.line_no = line_no
        self.line = line


class ValidationError(DocStoreError, ValueError):
    """Record, query, projection or sort spec has an invalid shape."""


class IncomparableTypesError(DocStoreError, TypeError):
    """Ordering requested between values of different kinds (e.g. number vs string)."""
    def __init__(self, left_kind: str, right_kind: str) -> None:
        super().__init__(f"cannot order {left_kind} against {right_kind}")
        self.left_kind = left_kind
        self.right_kind = right_kind
