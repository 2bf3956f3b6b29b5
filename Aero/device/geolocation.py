import asyncio
import time
from dataclasses import dataclass, field
from typing import Optional

from .errors import GeolocationError, LocationUnavailable

# explicit bound instead of the platform default
LOCATE_TIMEOUT = 15.0


@dataclass(frozen=True)
class Position:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    timestamp: float = field(default_factory=time.time)


class Geolocator:
    """Source of device positions."""

    async def current_position(self) -> Position:
        raise NotImplementedError

    async def watch(self):
        """Async iterator of fixes; raises GeolocationError when the sensor fails."""
        raise NotImplementedError
        yield


class FixedGeolocator(Geolocator):
    """Always reports the same fix. Handy for desktops and demos."""

    def __init__(self, position: Position, interval=5.0):
        self.position = position
        self.interval = interval

    async def current_position(self):
        return self.position

    async def watch(self):
        while True:
            yield self.position
            await asyncio.sleep(self.interval)


class QueueGeolocator(Geolocator):
    """Fixes (or GeolocationErrors) pushed from elsewhere, e.g. a platform bridge."""

    def __init__(self):
        self.queue = asyncio.Queue()

    def push(self, item):
        self.queue.put_nowait(item)

    async def _next(self):
        item = await self.queue.get()
        if isinstance(item, Exception):
            raise item
        return item

    async def current_position(self):
        return await self._next()

    async def watch(self):
        while True:
            yield await self._next()


async def locate(geolocator: Geolocator, timeout=LOCATE_TIMEOUT) -> Position:
    try:
        return await asyncio.wait_for(geolocator.current_position(), timeout)
    except asyncio.TimeoutError:
        raise LocationUnavailable(f"No location fix within {timeout:g}s")
    except GeolocationError as exc:
        raise LocationUnavailable(str(exc)) from exc
