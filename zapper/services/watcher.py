"""Per-session auto-refresh of a displayed position."""
from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterator

from ..interfaces.notifier import ChatTransport
from ..ledger import PositionLedger
from ..models import Position
from .market import MarketService
from .presenter import RenderedView, render_closed, render_position

logger = logging.getLogger(__name__)

Renderer = Callable[[Position, int, int], Awaitable[RenderedView]]

TICK_SKIPPED = "skipped"
TICK_CLOSED = "closed"
TICK_UPDATED = "updated"
TICK_UNCHANGED = "unchanged"


def position_renderer(market: MarketService) -> Renderer:
    async def render(position: Position, index: int, total: int) -> RenderedView:
        snapshot = await market.snapshot(position)
        return render_position(snapshot, index, total)

    return render


@dataclass
class WatcherHandle:
    session_id: str
    position_index: int
    message_id: Any
    task: asyncio.Task

    def cancel(self) -> None:
        self.task.cancel()


class RefreshWatcher:
    """Owns the watcher-per-session map and the in-flight flow set.

    At most one handle exists per session; ``start`` replaces any previous
    one. Ticks are suppressed while the session has an interactive flow in
    progress so an auto-refresh never interleaves with the flow's own renders.
    """

    def __init__(
        self,
        ledger: PositionLedger,
        render: Renderer,
        transport: ChatTransport,
        interval_seconds: float = 10.0,
    ) -> None:
        self._ledger = ledger
        self._render = render
        self._transport = transport
        self._interval = interval_seconds
        self._handles: dict[str, WatcherHandle] = {}
        self._in_flight: set[str] = set()
        self._last_emitted: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def active_sessions(self) -> list[str]:
        return [s for s, h in self._handles.items() if not h.task.done()]

    def is_watching(self, session_id: str) -> bool:
        handle = self._handles.get(session_id)
        return handle is not None and not handle.task.done()

    def handle(self, session_id: str) -> WatcherHandle | None:
        return self._handles.get(session_id)

    def begin_flow(self, session_id: str) -> None:
        self._in_flight.add(session_id)

    def end_flow(self, session_id: str) -> None:
        self._in_flight.discard(session_id)

    def in_flow(self, session_id: str) -> bool:
        return session_id in self._in_flight

    @contextmanager
    def flow(self, session_id: str) -> Iterator[None]:
        """Mark ``session_id`` busy with an interactive flow for the block's duration."""
        self.begin_flow(session_id)
        try:
            yield
        finally:
            self.end_flow(session_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, session_id: str, position_index: int, message_id: Any = None) -> WatcherHandle:
        self.stop(session_id)
        task = asyncio.create_task(
            self._run(session_id, position_index, message_id),
            name=f"watcher:{session_id}",
        )
        handle = WatcherHandle(
            session_id=session_id,
            position_index=position_index,
            message_id=message_id,
            task=task,
        )
        self._handles[session_id] = handle
        logger.info("Started watcher for session %s (position %d)", session_id, position_index)
        return handle

    def stop(self, session_id: str) -> bool:
        """Cancel the session's watcher; returns False when there was none."""
        handle = self._handles.pop(session_id, None)
        self._last_emitted.pop(session_id, None)
        if handle is None:
            return False
        handle.cancel()
        logger.info("Stopped watcher for session %s", session_id)
        return True

    async def stop_all(self) -> None:
        handles = list(self._handles.values())
        for session_id in list(self._handles):
            self.stop(session_id)
        for handle in handles:
            try:
                await handle.task
            except asyncio.CancelledError:
                pass

    async def show(self, session_id: str, position_index: int, message_id: Any = None) -> Any:
        """Render a position now, then keep it fresh. Returns the message id used."""
        self.stop(session_id)
        positions = self._ledger.list()
        if not 0 <= position_index < len(positions):
            view = RenderedView(text="You have no open positions.")
            await self._emit(session_id, message_id, view)
            return message_id

        view = await self._render(positions[position_index], position_index, len(positions))
        sent = await self._emit(session_id, message_id, view)
        message_id = message_id if message_id is not None else sent
        self.start(session_id, position_index, message_id)
        self._last_emitted[session_id] = view.fingerprint()
        return message_id

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    async def tick(self, session_id: str, position_index: int, message_id: Any = None) -> str:
        if session_id in self._in_flight:
            logger.debug("Session %s has a flow in progress; skipping refresh", session_id)
            return TICK_SKIPPED

        positions = self._ledger.list()
        if not 0 <= position_index < len(positions):
            await self._emit(session_id, message_id, render_closed())
            return TICK_CLOSED

        view = await self._render(positions[position_index], position_index, len(positions))
        fingerprint = view.fingerprint()
        if self._last_emitted.get(session_id) == fingerprint:
            return TICK_UNCHANGED

        await self._emit(session_id, message_id, view)
        self._last_emitted[session_id] = fingerprint
        return TICK_UPDATED

    async def _run(self, session_id: str, position_index: int, message_id: Any) -> None:
        while True:
            await asyncio.sleep(self._interval)
            handle = self._handles.get(session_id)
            if handle is not None:
                message_id = handle.message_id
            try:
                outcome = await self.tick(session_id, position_index, message_id)
            except Exception as e:
                logger.error("Auto-refresh failed for position in session %s: %s", session_id, e)
                continue

            if outcome == TICK_CLOSED:
                logger.info("Position %d closed; watcher for %s finished", position_index, session_id)
                current = self._handles.get(session_id)
                if current is not None and current.task is asyncio.current_task():
                    del self._handles[session_id]
                    self._last_emitted.pop(session_id, None)
                return

    async def _emit(self, session_id: str, message_id: Any, view: RenderedView) -> Any:
        if message_id is None:
            sent = await self._transport.send_message(session_id, view.text, view.keyboard)
            handle = self._handles.get(session_id)
            if handle is not None and handle.message_id is None:
                handle.message_id = sent
            return sent
        await self._transport.edit_message(session_id, message_id, view.text, view.keyboard)
        return message_id
