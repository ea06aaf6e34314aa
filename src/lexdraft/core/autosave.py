"""Debounced, coalescing autosave for manual draft edits.

Edits are merged into one pending change and written after a quiet period with
no further edits. At most one write is in flight; anything submitted while it
runs is carried by the next write. ``flush``/``close`` write pending edits
immediately so a graceful exit loses nothing.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from lexdraft.errors import PersistenceFailure
from lexdraft.types import DraftEdit

logger = logging.getLogger(__name__)

SaveFn = Callable[[DraftEdit], Awaitable[Any]]


def merge_edits(older: DraftEdit | None, newer: DraftEdit) -> DraftEdit:
    """Later fields win; a newer content representation replaces any older one."""
    if older is None:
        return newer
    values = older.model_dump()
    if newer.has_content:
        values.update(tree=None, markup=None, plain_text=None)
    values.update(newer.model_dump(exclude_none=True))
    return DraftEdit.model_validate(values)


class Autosaver:
    def __init__(self, save: SaveFn, *, quiet_period: float = 2.0):
        self._save = save
        self.quiet_period = quiet_period
        self._pending: DraftEdit | None = None
        self._timer: asyncio.Task[None] | None = None
        self._writing: asyncio.Task[bool] | None = None
        self._closed = False
        self.writes = 0
        self.last_error: str = ""

    @property
    def dirty(self) -> bool:
        return self._pending is not None

    @property
    def in_flight(self) -> bool:
        return self._writing is not None

    def submit(self, edit: DraftEdit) -> None:
        if self._closed:
            raise RuntimeError("autosaver is closed")
        self._pending = merge_edits(self._pending, edit)
        self._schedule()

    def _schedule(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = asyncio.create_task(self._quiet_then_write())

    async def _quiet_then_write(self) -> None:
        await asyncio.sleep(self.quiet_period)
        self._timer = None
        if self._writing is None:
            self._writing = asyncio.create_task(self._write())

    async def _write(self) -> bool:
        edit, self._pending = self._pending, None
        try:
            if edit is None:
                return True
            self.writes += 1
            await self._save(edit)
            self.last_error = ""
            return True
        except Exception as exc:
            # Keep the unsaved edit so the next write retries it.
            logger.exception("Autosave write failed")
            self._pending = merge_edits(edit, self._pending) if self._pending is not None else edit
            self.last_error = str(exc)
            return False
        finally:
            self._writing = None
            if self._pending is not None and self._timer is None and not self._closed and not self.last_error:
                self._schedule()

    async def flush(self) -> None:
        """Write any pending edit now, after the in-flight write (if any) settles."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._writing is not None:
            await self._writing
        if self._pending is None:
            return
        self._writing = asyncio.create_task(self._write())
        if not await self._writing:
            raise PersistenceFailure(f"autosave could not persist pending edits: {self.last_error}")

    async def close(self) -> None:
        try:
            await self.flush()
        finally:
            self._closed = True
