# src/kubestrap/observers/dispatcher.py
from __future__ import annotations
import logging
from typing import List, Optional, Protocol
from .events import BaseEvent

log = logging.getLogger("kubestrap")


class Observer(Protocol):
    """Anything that wants run and step events. `notify` is called in emit order."""

    def notify(self, event: BaseEvent) -> None: ...


class EventBus:
    def __init__(self, observers: Optional[List[Observer]] = None):
        self._observers = observers or []

    def emit(self, event: BaseEvent) -> None:
        for ob in self._observers:
            try:
                ob.notify(event)
            except Exception as exc:
                # observers must not break a run
                log.debug("observer %s failed on %s: %s", type(ob).__name__, type(event).__name__, exc)
