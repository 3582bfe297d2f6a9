from __future__ import annotations

import copy
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from models.state_models import ArmState, StateDocument, VisionState

log = logging.getLogger("trashbot-hub.state")

ARM_ERROR_STATUS = "error"


def now_ms() -> int:
    return int(time.time() * 1000)


class StateStore:
    """
    Document d'état partagé (vision + bras + compteurs), source de vérité du hub.

    Toutes les lectures/écritures passent par un seul verrou. Le document interne
    est un modèle figé remplacé à chaque mutation ; `snapshot()` renvoie une copie
    profonde, donc les appelants ne tiennent jamais de référence vivante.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None) -> None:
        self._clock = clock or now_ms
        self._lock = threading.Lock()
        self._doc: StateDocument = StateDocument(last_update_ms=self._clock())

    def _now(self) -> int:
        # last_update_ms ne recule jamais, même si l'horloge système recule
        return max(self._clock(), self._doc.last_update_ms)

    def initialize(self) -> None:
        with self._lock:
            self._doc = StateDocument(last_update_ms=self._clock())
        log.info("state initialized")

    def apply_vision_report(self, payload: Dict[str, Any]) -> StateDocument:
        latest = copy.deepcopy(payload)
        recyclable = bool(latest.get("recyclable"))
        with self._lock:
            now = self._now()
            counts = self._doc.counts
            self._doc = self._doc.model_copy(update={
                "last_update_ms": now,
                "vision": VisionState(online=True, last_seen_ms=now, latest=latest),
                "counts": counts.model_copy(update={
                    "total": counts.total + 1,
                    "recyclable": counts.recyclable + (1 if recyclable else 0),
                    "trash": counts.trash + (0 if recyclable else 1),
                }),
            })
            return self._doc.model_copy(deep=True)

    def apply_arm_report(self, payload: Dict[str, Any]) -> StateDocument:
        latest = copy.deepcopy(payload)
        reported = latest.get("status")
        if not isinstance(reported, str):
            reported = None
        with self._lock:
            now = self._now()
            arm = self._doc.arm
            counts = self._doc.counts
            self._doc = self._doc.model_copy(update={
                "last_update_ms": now,
                "arm": ArmState(
                    online=True,
                    last_seen_ms=now,
                    status=reported if reported is not None else arm.status,
                    latest=latest,
                ),
                "counts": counts.model_copy(update={
                    "errors": counts.errors + (1 if reported == ARM_ERROR_STATUS else 0),
                }),
            })
            return self._doc.model_copy(deep=True)

    def snapshot(self) -> StateDocument:
        with self._lock:
            return self._doc.model_copy(deep=True)

