from __future__ import annotations
import asyncio
from typing import Any, Callable, Dict, Optional

ProgressCallback = Callable[[Dict[str, Any]], None]


class Progress:
    """
    Thin wrapper over the user `on_progress` callback.
    Events are dicts: {"phase": "open.scan", "pct": 40, "msg": "..."}.
    """
    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._cb = callback

    @property
    def enabled(self) -> bool:
        return self._cb is not None

    def emit(self, phase: str, pct: int = 100, msg: str = "", **extra: Any) -> None:
        if self._cb is None:
            return
        evt: Dict[str, Any] = {"phase": phase, "pct": max(0, min(100, int(pct))), "msg": msg}
        evt.update(extra)
        self._cb(evt)

    def threadsafe(self, loop: asyncio.AbstractEventLoop) -> "Progress":
        """
        Progress for worker threads: events are handed to `loop` and delivered there, in order.
        """
        if self._cb is None:
            return Progress()
        cb = self._cb
        return Progress(lambda evt: loop.call_soon_threadsafe(cb, evt))

    def ratio(self, phase: str, done: int, total: int, msg: str = "") -> None:
        pct = 100 if total <= 0 else (done * 100) // total
        self.emit(phase, pct, msg, done=done, total=total)
