import os
import logging

from fastapi import APIRouter, Request

from api.ingest import get_hub, get_store, ingest_lock, read_json_object
from models.event_models import ChangeEvent
from models.ingest_models import IngestAck

router: APIRouter = APIRouter()
log = logging.getLogger("trashbot-hub.vision")

VISION_MAX_BODY_BYTES = int(os.getenv("VISION_MAX_BODY_BYTES", "4096"))

@router.post("/detection", response_model=IngestAck, response_model_exclude_none=True)
async def detection(request: Request):
    """Rapport du sous-système vision : met à jour l'état puis diffuse `vision_update`."""
    payload = await read_json_object(request, VISION_MAX_BODY_BYTES)

    store, hub = get_store(request), get_hub(request)
    with ingest_lock:
        snapshot = store.apply_vision_report(payload)
        hub.publish(ChangeEvent(
            type="vision_update",
            ts_ms=snapshot.last_update_ms,
            state=snapshot,
            payload=snapshot.vision.latest,
        ))

    c = snapshot.counts
    log.info(f"detection recyclable={bool(payload.get('recyclable'))} -> total={c.total} "
             f"rec={c.recyclable} trash={c.trash}")
    return {"ok": True}
