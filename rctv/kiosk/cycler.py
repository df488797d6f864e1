"""Kiosk cycler: shows playlist entries one after another until paused."""

import asyncio
import logging
from typing import Optional, Protocol

from .playlist import PlaylistEntry, PlaylistError
from .surface import KioskSurface

logger = logging.getLogger(__name__)


class PlaylistSource(Protocol):
    """Anything that can produce the current playlist."""

    async def fetch(self) -> list[PlaylistEntry]: ...


class KioskCycler:
    """Fetches the playlist and displays each entry for its dwell time.

    The playlist is fetched again after every pass and never cached. All
    waits (dwell, fetch backoff, empty-playlist wait) end early as soon as
    the cycler is paused or closed. ``pause``, ``resume`` and ``close`` must
    be called from the event loop running ``run``.
    """

    def __init__(
        self,
        playlist: PlaylistSource,
        surface: KioskSurface,
        fetch_backoff: float = 5.0,
        empty_playlist_wait: float = 10.0,
    ) -> None:
        self.playlist = playlist
        self.surface = surface
        self.fetch_backoff = fetch_backoff
        self.empty_playlist_wait = empty_playlist_wait
        self.logger = logging.getLogger(f"{__name__}.KioskCycler")

        self._paused = False
        self._closed = False
        self._interrupt = asyncio.Event()
        self._resumed = asyncio.Event()
        self._resumed.set()
        self._current_entry: Optional[PlaylistEntry] = None
        self._cycle_count = 0

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def current_entry(self) -> Optional[PlaylistEntry]:
        return self._current_entry

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    def pause(self) -> None:
        """Stop advancing and cut short any wait in progress."""
        if self._paused:
            return
        self.logger.info("Pausing kiosk cycler")
        self._paused = True
        self._resumed.clear()
        self._interrupt.set()

    def resume(self) -> None:
        """Start cycling again from a fresh playlist fetch."""
        if not self._paused:
            return
        self.logger.info("Resuming kiosk cycler")
        self._paused = False
        self._interrupt.clear()
        self._resumed.set()

    def close(self) -> None:
        """Make ``run`` return."""
        self._closed = True
        self._interrupt.set()
        self._resumed.set()

    async def run(self) -> None:
        """Cycle through the playlist until closed."""
        self.logger.info("Kiosk cycler started")
        while not self._closed:
            if self._paused:
                await self._resumed.wait()
                continue
            await self._run_cycle()
        self._current_entry = None
        self.logger.info("Kiosk cycler stopped")

    async def _run_cycle(self) -> None:
        try:
            entries = await self.playlist.fetch()
        except PlaylistError as e:
            self.logger.warning(f"Playlist fetch failed, retrying in {self.fetch_backoff}s: {e.message}")
            await self._wait(self.fetch_backoff)
            return

        if not self._should_continue():
            return

        if not entries:
            self.logger.info(f"Playlist is empty, checking again in {self.empty_playlist_wait}s")
            await self._wait(self.empty_playlist_wait)
            return

        self._cycle_count += 1
        self.logger.debug(f"Starting playlist pass {self._cycle_count} with {len(entries)} entries")

        for entry in entries:
            if not self._should_continue():
                return
            self._current_entry = entry
            self.logger.info(f"Showing {entry.target} for {entry.dwell_seconds}s")
            try:
                await self.surface.display(entry.target)
            except Exception:
                self.logger.exception(f"Failed to display {entry.target}")
            if not await self._wait(entry.dwell_seconds):
                return

    def _should_continue(self) -> bool:
        return not self._paused and not self._closed

    async def _wait(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless interrupted.

        Returns:
            True if the full time elapsed, False if paused or closed meanwhile
        """
        if self._interrupt.is_set():
            return False
        try:
            await asyncio.wait_for(self._interrupt.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False
