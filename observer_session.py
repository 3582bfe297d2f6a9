from __future__ import annotations

import asyncio
import enum
import logging
import os
from typing import Any

from errors import CapacityExceeded, DeliveryFailure

log = logging.getLogger("trashbot-hub.observer")

OBSERVER_QUEUE_SIZE = int(os.getenv("OBSERVER_QUEUE_SIZE", "256"))


class SessionState(str, enum.Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    CLOSED = "closed"


class ObserverSession:
    """
    Connexion WS push-only.

    `deliver()` ne fait qu'empiler la trame (jamais d'await côté hub) ; une tâche
    d'écriture dédiée vide la file vers le socket, dans l'ordre d'arrivée.
    """

    def __init__(self, websocket: Any, queue_size: int = OBSERVER_QUEUE_SIZE) -> None:
        self.websocket = websocket
        self.state: SessionState = SessionState.CONNECTING
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._closed = asyncio.Event()

    def deliver(self, frame: str) -> None:
        if self.state is SessionState.CLOSED:
            raise DeliveryFailure("session closed")
        try:
            self._outbox.put_nowait(frame)
        except asyncio.QueueFull:
            raise DeliveryFailure(f"outbound queue full ({self._outbox.maxsize})")

    def attach(self, hub: Any) -> None:
        """Enregistre la session (init mis en file) ; registre plein → Closed puis CapacityExceeded."""
        try:
            hub.register(self)
        except CapacityExceeded:
            self.close()
            raise

    def close(self) -> None:
        self.state = SessionState.CLOSED
        self._closed.set()

    async def _writer(self) -> None:
        while True:
            frame = await self._outbox.get()
            try:
                await self.websocket.send_text(frame)
            except Exception as e:
                log.warning(f"send failed: {e}")
                return

    async def _reader(self) -> None:
        # Canal push-only : tout message entrant est ignoré
        while True:
            message = await self.websocket.receive()
            if message.get("type") == "websocket.disconnect":
                return

    async def run(self) -> None:
        """Active → Closed : rend la main sur déconnexion, échec d'écriture ou close()."""
        if self.state is SessionState.CLOSED:
            return
        self.state = SessionState.ACTIVE
        tasks = [
            asyncio.create_task(self._writer()),
            asyncio.create_task(self._reader()),
            asyncio.create_task(self._closed.wait()),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for t in done:
                if not t.cancelled() and t.exception() is not None:
                    log.info(f"session ended: {t.exception()!r}")
        finally:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            self.close()

