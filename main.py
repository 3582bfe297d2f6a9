from fastapi import FastAPI, Request, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.websockets import WebSocketState
import logging
import time

from api import arm, vision
from errors import CapacityExceeded, IngestError
from logging_setup import setup_logging
from lifespan import lifespan
from models.state_models import StateDocument
from observer_session import ObserverSession
from state_store import StateStore
from status_hub import BroadcastHub

logger = setup_logging()

app = FastAPI(title="TrashBot Hub", lifespan=lifespan)

# Source de vérité + hub WS, accessibles aux routers via request.app.state
app.state.stateStore = StateStore()
app.state.statusHub = BroadcastHub(app.state.stateStore)

app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.websocket("/ws")
async def ws_observer(websocket: WebSocket) -> None:
    hub: BroadcastHub = websocket.app.state.statusHub
    session = ObserverSession(websocket)
    try:
        # init est mis en file dès l'enregistrement, envoyé après accept()
        session.attach(hub)
    except CapacityExceeded as e:
        logger.warning(f"WS observer rejected: {e}")
        await websocket.close(code=1013)
        return

    try:
        await websocket.accept()
        await session.run()
    finally:
        hub.unregister(session)
        session.close()
        if websocket.client_state is WebSocketState.CONNECTED and websocket.application_state is WebSocketState.CONNECTED:
            await websocket.close()


# -------------------- Erreurs --------------------
@app.exception_handler(IngestError)
async def ingest_error_handler(request: Request, exc: IngestError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} rejected: {exc.message} ({exc})")
    return JSONResponse(status_code=400, content={"ok": False, "error": exc.message})


# -------------------- Middleware --------------------
@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    """Une ligne par requête producteur/lecteur ; 4xx en WARNING (rapport rejeté)."""
    t0 = time.perf_counter()
    peer = request.client.host if request.client else "?"
    route = f"{request.method} {request.url.path}"
    size = request.headers.get("content-length", "chunked")
    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(f"{route} from {peer} crashed after {(time.perf_counter() - t0) * 1000:.1f}ms: {e}")
        raise
    level = logging.WARNING if 400 <= response.status_code < 500 else logging.INFO
    logger.log(level, f"{route} from {peer} -> {response.status_code} "
                      f"in {(time.perf_counter() - t0) * 1000:.1f}ms (body={size})")
    return response

# -------------------- Routes --------------------
app.include_router(vision.router, prefix="/vision", tags=["Vision"])
app.include_router(arm.router,    prefix="/arm",    tags=["Arm"])

@app.get("/state", response_model=StateDocument)
def get_state(request: Request):
    return request.app.state.stateStore.snapshot()
