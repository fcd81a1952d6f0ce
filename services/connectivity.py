"""
Connectivity monitoring for the offline queue.

The monitor is the single source of "are we online" for the process. It is
fed by a signal source:

  * ``ManualSignalSource`` - the embedding application (or a test) reports
    online / offline / app-visible transitions directly.
  * ``ProbeSignalSource`` - a background asyncio task that periodically opens
    a TCP connection to the API host and reports reachability changes.

A source that cannot tell whether the network is up makes the monitor assume
ONLINE; this fallback is logged when it happens.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, List, Optional, Set
from urllib.parse import urlparse


logger = logging.getLogger(__name__)

Callback = Callable[[], Any]


class ConnectivityState(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class SignalSource:
    """Base class for platform connectivity signals."""

    def __init__(self) -> None:
        self._online_handlers: List[Callback] = []
        self._offline_handlers: List[Callback] = []
        self._visible_handlers: List[Callback] = []

    def initial_state(self) -> Optional[bool]:
        """Return the platform's current view, or ``None`` if it cannot tell."""
        return None

    def listen(
        self,
        on_online: Callback,
        on_offline: Callback,
        on_visible: Callback,
    ) -> Callable[[], None]:
        self._online_handlers.append(on_online)
        self._offline_handlers.append(on_offline)
        self._visible_handlers.append(on_visible)

        def unlisten() -> None:
            for handlers, handler in (
                (self._online_handlers, on_online),
                (self._offline_handlers, on_offline),
                (self._visible_handlers, on_visible),
            ):
                if handler in handlers:
                    handlers.remove(handler)

        return unlisten

    def _emit(self, handlers: List[Callback]) -> None:
        for handler in list(handlers):
            handler()


class ManualSignalSource(SignalSource):
    """Signal source driven explicitly by the host application."""

    def __init__(self, online: Optional[bool] = None) -> None:
        super().__init__()
        self._online = online

    def initial_state(self) -> Optional[bool]:
        return self._online

    def go_online(self) -> None:
        self._online = True
        self._emit(self._online_handlers)

    def go_offline(self) -> None:
        self._online = False
        self._emit(self._offline_handlers)

    def become_visible(self) -> None:
        self._emit(self._visible_handlers)


class ProbeSignalSource(SignalSource):
    """Reports reachability of ``host:port`` by periodic TCP connects."""

    def __init__(
        self,
        host: str,
        port: int = 443,
        *,
        interval: float = 30.0,
        timeout: float = 5.0,
    ) -> None:
        super().__init__()
        self.host = host
        self.port = port
        self.interval = interval
        self.timeout = timeout
        self._online: Optional[bool] = None
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "ProbeSignalSource":
        parsed = urlparse(url)
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        return cls(parsed.hostname or "", port, **kwargs)

    def initial_state(self) -> Optional[bool]:
        return self._online

    async def probe(self) -> bool:
        if not self.host:
            return False
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), self.timeout
            )
        except (OSError, asyncio.TimeoutError):
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass
        return True

    async def check(self) -> bool:
        online = await self.probe()
        previous = self._online
        self._online = online
        if previous is not None and previous != online:
            logger.info("Probe of %s:%s reports %s", self.host, self.port, "online" if online else "offline")
            self._emit(self._online_handlers if online else self._offline_handlers)
        return online

    async def start(self) -> None:
        if self._task is not None:
            return
        await self.check()
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.check()


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class ConnectivityMonitor:
    def __init__(
        self,
        source: Optional[SignalSource] = None,
        *,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._source = source or SignalSource()
        # Coroutine callbacks run on this loop when a signal arrives off-loop.
        self._loop = loop or _running_loop()
        initial = self._source.initial_state()
        if initial is None:
            logger.info("No connectivity signal available, assuming online")
            initial = True
        self._state = ConnectivityState.ONLINE if initial else ConnectivityState.OFFLINE
        self._on_online: List[Callback] = []
        self._on_offline: List[Callback] = []
        self._on_foreground: List[Callback] = []
        self._pending: Set[asyncio.Future] = set()
        self._unlisten = self._source.listen(
            self._handle_online, self._handle_offline, self._handle_visible
        )

    def current_state(self) -> ConnectivityState:
        return self._state

    @property
    def is_online(self) -> bool:
        return self._state is ConnectivityState.ONLINE

    # ----- subscriptions -----
    def on_transition_to_online(self, callback: Callback) -> Callable[[], None]:
        return self._register(self._on_online, callback)

    def on_transition_to_offline(self, callback: Callback) -> Callable[[], None]:
        return self._register(self._on_offline, callback)

    def on_foreground(self, callback: Callback) -> Callable[[], None]:
        return self._register(self._on_foreground, callback)

    @staticmethod
    def _register(bucket: List[Callback], callback: Callback) -> Callable[[], None]:
        bucket.append(callback)

        def unsubscribe() -> None:
            if callback in bucket:
                bucket.remove(callback)

        return unsubscribe

    # ----- signal handlers -----
    def _handle_online(self) -> None:
        if self._state is ConnectivityState.ONLINE:
            return
        logger.info("Device came online")
        self._state = ConnectivityState.ONLINE
        self._fire(self._on_online)

    def _handle_offline(self) -> None:
        if self._state is ConnectivityState.OFFLINE:
            return
        logger.info("Device went offline")
        self._state = ConnectivityState.OFFLINE
        self._fire(self._on_offline)

    def _handle_visible(self) -> None:
        if self._state is ConnectivityState.ONLINE:
            self._fire(self._on_foreground)

    def _fire(self, callbacks: List[Callback]) -> None:
        for callback in list(callbacks):
            result = callback()
            if inspect.isawaitable(result):
                self._dispatch(result)

    def _dispatch(self, awaitable) -> None:
        if _running_loop() is not None:
            self._schedule(awaitable)
            return
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._schedule, awaitable)
            return
        if inspect.iscoroutine(awaitable):
            awaitable.close()
        raise RuntimeError(
            "Connectivity signal with coroutine callbacks emitted outside an event loop; "
            "construct the monitor on the loop or pass loop="
        )

    def _schedule(self, awaitable) -> None:
        future = asyncio.ensure_future(awaitable)
        self._pending.add(future)
        future.add_done_callback(self._finished)

    def _finished(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Connectivity callback failed: %s", exc)

    async def wait_idle(self) -> None:
        """Wait until callbacks scheduled by past transitions have finished."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def close(self) -> None:
        self._unlisten()


__all__ = [
    "ConnectivityMonitor",
    "ConnectivityState",
    "ManualSignalSource",
    "ProbeSignalSource",
    "SignalSource",
]
