"""Publish/subscribe of the current sync status."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, List, Optional

from models.sync_status import SyncStatus


logger = logging.getLogger(__name__)

StatusListener = Callable[[SyncStatus], None]


class StatusBroadcaster:
    def __init__(self, initial: Optional[SyncStatus] = None) -> None:
        self._status = initial or SyncStatus()
        self._listeners: List[StatusListener] = []

    def current_status(self) -> SyncStatus:
        return self._status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register ``listener`` and deliver the current status to it right away."""

        self._listeners.append(listener)
        self._deliver(listener, self._status)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, **changes) -> SyncStatus:
        """Apply ``changes`` to the status and broadcast it once."""

        if changes:
            self._status = replace(self._status, **changes)
        status = self._status
        for listener in list(self._listeners):
            self._deliver(listener, status)
        return status

    @staticmethod
    def _deliver(listener: StatusListener, status: SyncStatus) -> None:
        try:
            listener(status)
        except Exception:
            logger.exception("Sync status listener %r failed", listener)


__all__ = ["StatusBroadcaster", "StatusListener"]
