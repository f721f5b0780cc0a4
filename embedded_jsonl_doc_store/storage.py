from __future__ import annotations
import enum
import json
import logging
import os
import tempfile
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Optional, Tuple

from .errors import IOCorruptionError
from .progress import Progress
from .utils import canonical_json

log = logging.getLogger(__name__)

# Emit an open.scan progress event every N parsed lines
SCAN_REPORT_EVERY = 1000


class EntryStatus(str, enum.Enum):
    ACTIVE = "E"
    DELETED = "D"


@dataclass(frozen=True)
class Entry:
    """
    Unit of the log: a record plus its lifecycle status.
    ACTIVE -> DELETED is the only transition.
    """
    status: EntryStatus
    value: Dict[str, Any]

    @property
    def active(self) -> bool:
        return self.status is EntryStatus.ACTIVE

    def deleted(self) -> "Entry":
        return replace(self, status=EntryStatus.DELETED)


Log = Tuple[Entry, ...]


def encode_entry(entry: Entry) -> str:
    return entry.status.value + canonical_json(entry.value)


def decode_line(line: str, line_no: Optional[int] = None) -> Entry:
    """
    Parse `<status-char><json-object>`. Any defect raises IOCorruptionError.
    """
    tag, payload = line[:1], line[1:]
    try:
        status = EntryStatus(tag)
    except ValueError:
        raise IOCorruptionError(f"unknown status tag {tag!r}", line_no=line_no, line=line) from None
    try:
        value = json.loads(payload)
    except json.JSONDecodeError as e:
        raise IOCorruptionError(f"bad record encoding: {e.msg}", line_no=line_no, line=line) from e
    if not isinstance(value, dict):
        raise IOCorruptionError("record is not a JSON object", line_no=line_no, line=line)
    return Entry(status, value)


class FileStorage:
    """
    Line-oriented log file: each non-blank line is `E{...}` (active) or `D{...}` (deleted).
    Line order is creation order.
    """
    def __init__(self, path: str, encoding: str = "utf-8") -> None:
        self.path = path
        self.encoding = encoding

    def load(self, progress: Optional[Progress] = None) -> Log:
        """
        Read and decode the whole file. Fails as a whole: a missing file raises OSError,
        a single malformed line raises IOCorruptionError.
        """
        progress = progress or Progress()
        with open(self.path, "r", encoding=self.encoding, newline="") as f:
            text = f.read()
        # Split on "\n" only: U+2028 and friends may legally appear inside JSON strings
        lines = text.split("\n")
        total = len(lines)
        entries = []
        for i, raw in enumerate(lines, 1):
            line = raw.rstrip("\r")
            if line.strip():
                entries.append(decode_line(line, i))
            if progress.enabled and i % SCAN_REPORT_EVERY == 0:
                progress.ratio("open.scan", i, total)
        progress.ratio("open.scan", total, total)
        log.debug("loaded %d entries from %s", len(entries), self.path)
        return tuple(entries)

    def append_entry(self, entry: Entry) -> None:
        """
        Append one line, creating the file if needed. fsync before returning.
        """
        data = encode_entry(entry) + "\n"
        if self._needs_leading_newline():
            data = "\n" + data
        with open(self.path, "a", encoding=self.encoding, newline="") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())

    def rewrite(self, entries: Iterable[Entry]) -> None:
        """
        Write all entries to a temp file next to the log and atomically replace it.
        """
        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(prefix=".tmp-", suffix=".jsonl", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding=self.encoding, newline="") as f:
                for entry in entries:
                    f.write(encode_entry(entry))
                    f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            self.replace_file(tmp_path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def replace_file(self, tmp_path: str) -> None:
        os.replace(tmp_path, self.path)
        if hasattr(os, "O_DIRECTORY"):
            dir_fd = os.open(os.path.dirname(os.path.abspath(self.path)), os.O_RDONLY | os.O_DIRECTORY)
            try:
                os.fsync(dir_fd)
            finally:
                os.close(dir_fd)

    def _needs_leading_newline(self) -> bool:
        try:
            with open(self.path, "rb") as f:
                f.seek(0, os.SEEK_END)
                if f.tell() == 0:
                    return False
                f.seek(-1, os.SEEK_END)
                return f.read(1) != b"\n"
        except FileNotFoundError:
            return False
