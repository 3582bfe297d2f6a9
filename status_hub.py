from __future__ import annotations

import logging
import os
import threading
from typing import List, Protocol, Set

from errors import CapacityExceeded, DeliveryFailure
from models.event_models import ChangeEvent, InitEvent
from state_store import StateStore, now_ms

log = logging.getLogger("trashbot-hub.hub")

MAX_OBSERVERS = int(os.getenv("MAX_OBSERVERS", "64"))


class Observer(Protocol):
    def deliver(self, frame: str) -> None: ...
    def close(self) -> None: ...


class BroadcastHub:
    """Hub WS : registre borné d'observateurs + diffusion des événements d'état."""

    def __init__(self, store: StateStore, capacity: int = MAX_OBSERVERS) -> None:
        self.store = store
        self.capacity = capacity
        self._lock = threading.Lock()
        self.activeObservers: Set[Observer] = set()

    def __len__(self) -> int:
        with self._lock:
            return len(self.activeObservers)

    def register(self, observer: Observer) -> None:
        """
        Ajoute un observateur et lui envoie aussitôt `init` avec un snapshot frais.
        Lève CapacityExceeded si le registre est plein (rien n'est envoyé).
        """
        with self._lock:
            if observer in self.activeObservers:
                return
            if len(self.activeObservers) >= self.capacity:
                raise CapacityExceeded(self.capacity)
            # Snapshot pris sous le verrou : aucune publication ne peut s'intercaler
            # entre l'état de `init` et l'entrée dans le registre.
            init = InitEvent(ts_ms=now_ms(), state=self.store.snapshot())
            observer.deliver(init.model_dump_json())
            self.activeObservers.add(observer)
            count = len(self.activeObservers)
        log.info(f"observer registered ({count}/{self.capacity})")

    def unregister(self, observer: Observer) -> None:
        with self._lock:
            if observer not in self.activeObservers:
                return
            self.activeObservers.discard(observer)
            count = len(self.activeObservers)
        log.info(f"observer unregistered ({count}/{self.capacity})")

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = tuple(self.activeObservers)
        if not targets:
            return

        frame = event.model_dump_json()
        dead: List[Observer] = []
        for observer in targets:
            try:
                observer.deliver(frame)
            except DeliveryFailure as e:
                log.warning(f"delivery failed, dropping observer: {e}")
                dead.append(observer)
        for observer in dead:
            self.unregister(observer)
            observer.close()
