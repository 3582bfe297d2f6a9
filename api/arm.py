import os
import logging

from fastapi import APIRouter, Request

from api.ingest import get_hub, get_store, ingest_lock, read_json_object
from models.event_models import ChangeEvent
from models.ingest_models import IngestAck
from state_store import ARM_ERROR_STATUS

router: APIRouter = APIRouter()
log = logging.getLogger("trashbot-hub.arm")

ARM_MAX_BODY_BYTES = int(os.getenv("ARM_MAX_BODY_BYTES", "2048"))

@router.post("/status", response_model=IngestAck, response_model_exclude_none=True)
async def arm_status(request: Request):
    payload = await read_json_object(request, ARM_MAX_BODY_BYTES)

    store, hub = get_store(request), get_hub(request)
    with ingest_lock:
        snapshot = store.apply_arm_report(payload)
        hub.publish(ChangeEvent(
            type="arm_update",
            ts_ms=snapshot.last_update_ms,
            state=snapshot,
            payload=snapshot.arm.latest,
        ))

    if payload.get("status") == ARM_ERROR_STATUS:
        log.warning(f"arm reported error (errors={snapshot.counts.errors})")
    else:
        log.info(f"arm status={snapshot.arm.status}")
    return {"ok": True}
