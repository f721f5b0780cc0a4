from __future__ import annotations
import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from .errors import DocStoreError, ValidationError
from .matcher import matches
from .pipeline import parse_projection, parse_sort, project, sort_records
from .progress import Progress, ProgressCallback
from .query import Query, parse_query
from .storage import Entry, EntryStatus, FileStorage, Log
from .utils import canonical_json, is_identifier, is_number

log = logging.getLogger(__name__)

Step = Callable[[Log], Awaitable[Log]]


def _active_values(entries: Log) -> List[Dict[str, Any]]:
    return [e.value for e in entries if e.active]


def _id_key(v: Any) -> Tuple[str, Any]:
    # 1 and 1.0 are the same identifier; True is not 1
    if is_number(v):
        return ("n", v)
    return ("j", canonical_json(v))


class Database:
    """
    Embedded document store over a `E{...}` / `D{...}` line log.

    The log is loaded lazily on the first operation and then kept in memory. Every
    operation attaches to one ordered chain of asyncio tasks, so state transitions apply
    in the order the operations were issued. A handle is bound to the event loop it is
    first used on.

    With persist=True inserts are appended to the file and deletes rewrite it atomically;
    by default mutations stay in memory and a new handle sees the file as it was.
    """
    def __init__(
        self,
        path: str,
        full_text_fields: Iterable[str] = (),
        *,
        persist: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> None:
        self.path = path
        self.full_text_fields = frozenset(full_text_fields)
        self.persist = persist
        self._fs = FileStorage(path)
        self._progress = Progress(on_progress)
        self._tail: Optional[asyncio.Future] = None

    # ----- chain -----

    def _head(self) -> asyncio.Future:
        if self._tail is None:
            self._tail = asyncio.ensure_future(self._load())
        return self._tail

    def _chain(self, step: Step) -> asyncio.Future:
        """
        Install `step` as the new tail. Must be called before the caller's first await.
        """
        prev = self._head()

        async def run() -> Log:
            return await step(await prev)

        self._tail = asyncio.ensure_future(run())
        return self._tail

    async def _load(self) -> Log:
        self._progress.emit("open.start", 0, self.path)
        try:
            scan = self._progress.threadsafe(asyncio.get_running_loop())
            entries = await asyncio.to_thread(self._fs.load, scan)
        except Exception:
            log.exception("failed to load %s", self.path)
            raise
        self._progress.emit("open.done", 100, f"{len(entries)} entries")
        log.info("opened %s: %d entries", self.path, len(entries))
        return entries

    # ----- reads -----

    def _select(self, query: Query, records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [r for r in records if matches(query, r, self.full_text_fields)]

    async def find(
        self,
        query: Any,
        *,
        projection: Any = None,
        sort: Any = None,
    ) -> List[Dict[str, Any]]:
        """
        Active records matching `query`, sorted then projected. Results are copies.
        """
        q = parse_query(query)
        fields = parse_projection(projection)
        order = parse_sort(sort)
        # Reads observe the tail without replacing it, so a failing read leaves the chain intact
        entries = await asyncio.shield(self._head())
        selected = sort_records(self._select(q, _active_values(entries)), order)
        return [project(copy.deepcopy(r), fields) for r in selected]

    async def snapshot(self) -> Log:
        """All entries, active and deleted, as of this point in the chain. Values are copies."""
        entries = await asyncio.shield(self._head())
        return tuple(Entry(e.status, copy.deepcopy(e.value)) for e in entries)

    # ----- mutations -----

    async def insert(self, record: Dict[str, Any]) -> None:
        if not isinstance(record, dict):
            raise ValidationError(f"record must be a dict, got {type(record).__name__}")
        if not is_identifier(record.get("_id")):
            raise ValidationError("record requires a numeric '_id'")
        entry = Entry(EntryStatus.ACTIVE, copy.deepcopy(record))

        async def step(entries: Log) -> Log:
            if self.persist:
                await asyncio.to_thread(self._fs.append_entry, entry)
                self._progress.emit("persist.append", 100, self.path)
            log.debug("insert _id=%r", entry.value["_id"])
            self._progress.emit("insert.done", 100, f"_id={entry.value['_id']!r}")
            return entries + (entry,)

        await asyncio.shield(self._chain(step))

    async def delete(self, query: Any) -> int:
        """
        Soft-delete: flip every entry whose `_id` is among the matching active records.
        Returns the number of entries flipped. A query rejected during evaluation fails this
        call only; the state passes through unchanged.
        """
        q = parse_query(query)
        flipped = 0
        rejected: Optional[DocStoreError] = None

        async def step(entries: Log) -> Log:
            nonlocal flipped, rejected
            self._progress.emit("delete.start", 0)
            try:
                selected = self._select(q, _active_values(entries))
            except DocStoreError as e:
                log.debug("delete query rejected: %s", e)
                rejected = e
                return entries
            ids = {_id_key(r["_id"]) for r in selected if "_id" in r}
            out = []
            for e in entries:
                if e.active and "_id" in e.value and _id_key(e.value["_id"]) in ids:
                    out.append(e.deleted())
                    flipped += 1
                else:
                    out.append(e)
            nxt = tuple(out)
            if self.persist and flipped:
                await asyncio.to_thread(self._fs.rewrite, nxt)
                self._progress.emit("persist.rewrite", 100, self.path)
            log.debug("delete flipped %d entries", flipped)
            self._progress.emit("delete.done", 100, f"{flipped} deleted")
            return nxt

        await asyncio.shield(self._chain(step))
        if rejected is not None:
            raise rejected
        return flipped
