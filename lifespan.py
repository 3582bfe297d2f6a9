from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI

logger = logging.getLogger("trashbot-hub")

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("== TrashBot hub starting ==")
    app.state.stateStore.initialize()
    logger.info(
        f"startup: observers capacity={app.state.statusHub.capacity} "
        f"connected={len(app.state.statusHub)}"
    )

    # yield => lance le serveur
    yield

    logger.info(f"== TrashBot hub stopping (observers={len(app.state.statusHub)}) ==")
