import asyncio
import logging

from .errors import ApiError, GeolocationError, SessionClosed

logger = logging.getLogger("aero.device.updater")

FLUSH_INTERVAL = 10.0
WATCH_RETRY_DELAY = 2.0


class LocationUpdater:
    """
    Keeps the session row fed while sharing.

    Two tasks: `_watch` records every fix the geolocator reports, `_flush_loop`
    writes only the latest one every `flush_interval` seconds. A tick with no
    fix yet is skipped. If the backend says the session is over the updater
    stops itself and reports the reason through `on_closed`.
    """

    def __init__(self, api, geolocator, session_id, flush_interval=FLUSH_INTERVAL,
                 retry_delay=WATCH_RETRY_DELAY, on_closed=None):
        self.api = api
        self.geolocator = geolocator
        self.session_id = session_id
        self.flush_interval = flush_interval
        self.retry_delay = retry_delay
        self.on_closed = on_closed
        self.latest = None
        self.flushes = 0
        self._watch_task = None
        self._flush_task = None

    @property
    def running(self) -> bool:
        return any(t is not None and not t.done() for t in (self._watch_task, self._flush_task))

    def start(self):
        if self.running:
            return
        self._watch_task = asyncio.create_task(self._watch())
        self._flush_task = asyncio.create_task(self._flush_loop())
        logger.info("Location updates started for session %s", self.session_id)

    async def _watch(self):
        while True:
            try:
                async for position in self.geolocator.watch():
                    self.latest = position
            except GeolocationError as exc:
                # keep sharing the last fix
                logger.warning("Location error: %s", exc)
            await asyncio.sleep(self.retry_delay)

    async def _flush_loop(self):
        while True:
            await asyncio.sleep(self.flush_interval)
            await self.flush()

    async def flush(self) -> bool:
        position = self.latest
        if position is None:
            return False
        try:
            await self.api.update_position(
                self.session_id, position.latitude, position.longitude, position.accuracy,
            )
        except SessionClosed as exc:
            logger.info("Session %s closed by the server (%s)", self.session_id, exc.reason)
            self.stop()
            if self.on_closed is not None:
                self.on_closed(exc.reason)
            return False
        except ApiError as exc:
            logger.warning("Position update failed for session %s: %s", self.session_id, exc)
            return False
        self.flushes += 1
        return True

    def stop(self):
        """Cancel the watch and the flush timer. Synchronous: nothing flushes after this returns."""
        for task in (self._watch_task, self._flush_task):
            if task is not None and not task.done():
                task.cancel()
        if self._watch_task or self._flush_task:
            logger.info("Location updates stopped for session %s", self.session_id)
        self._watch_task = self._flush_task = None

    async def aclose(self):
        tasks = [t for t in (self._watch_task, self._flush_task) if t is not None]
        self.stop()
        await asyncio.gather(*tasks, return_exceptions=True)
