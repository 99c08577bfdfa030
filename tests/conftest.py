"""Dobles de prueba compartidos: reloj, scheduler manual y sesión HTTP."""

import itertools
from typing import Callable, Optional

import pytest

from dwc_player.sync_engine import Scheduler, TimerHandle


class ManualHandle(TimerHandle):
    def __init__(self, due_ms: int, seq: int, callback: Callable[[], None], interval_ms: Optional[int]):
        self.due_ms = due_ms
        self.seq = seq
        self.callback = callback
        self.interval_ms = interval_ms
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def active(self) -> bool:
        return not self.cancelled and not self.fired


class ManualScheduler(Scheduler):
    """Scheduler con tiempo virtual que solo avanza con advance()."""

    def __init__(self):
        self.now_ms = 0
        self.handles: list[ManualHandle] = []
        self._seq = itertools.count()

    def call_repeatedly(self, interval_ms, callback):
        handle = ManualHandle(self.now_ms + interval_ms, next(self._seq), callback, interval_ms)
        self.handles.append(handle)
        return handle

    def call_later(self, delay_ms, callback):
        handle = ManualHandle(self.now_ms + delay_ms, next(self._seq), callback, None)
        self.handles.append(handle)
        return handle

    def active_handles(self) -> list[ManualHandle]:
        return [h for h in self.handles if h.active]

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while True:
            due = [h for h in self.handles if h.active and h.due_ms <= target]
            if not due:
                break
            handle = min(due, key=lambda h: (h.due_ms, h.seq))
            self.now_ms = handle.due_ms
            if handle.interval_ms is None:
                handle.fired = True
            else:
                handle.due_ms += handle.interval_ms
            handle.callback()
        self.now_ms = target


class FakeClock:
    """Reloj de reproducción controlado por el test."""

    def __init__(self, position: float = 0.0, playing: bool = True):
        self.position = position
        self.playing = playing
        self.seeks: list[float] = []

    def position_seconds(self) -> float:
        return self.position

    def is_playing(self) -> bool:
        return self.playing

    def seek(self, seconds: float) -> None:
        self.seeks.append(seconds)
        self.position = seconds


class FakeResponse:
    """Respuesta con la forma de aiohttp.ClientResponse usada como context manager."""

    def __init__(self, status=200, json_data=None, text="", headers=None, exc=None):
        self.status = status
        self._json = json_data
        self._text = text
        self.headers = headers or {}
        self._exc = exc

    async def __aenter__(self):
        if self._exc is not None:
            raise self._exc
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def json(self, **kwargs):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    async def text(self):
        return self._text


class FakeSession:
    """
    Sesión HTTP falsa.

    routes mapea url (o (método, url)) a una FakeResponse o a una lista
    de respuestas que se consumen en orden (la última se repite).
    """

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls: list[tuple[str, str, dict]] = []
        self.closed = False

    def _respond(self, method: str, url: str, kwargs: dict) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        route = self.routes.get((method, url), self.routes.get(url))
        if route is None:
            return FakeResponse(status=404)
        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]
        return route

    def get(self, url, **kwargs):
        return self._respond("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._respond("POST", url, kwargs)

    def calls_to(self, url: str) -> list[tuple[str, str, dict]]:
        return [c for c in self.calls if c[1] == url]

    async def close(self):
        self.closed = True


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def clock():
    return FakeClock()
