import logging
import os

from fastapi import FastAPI

from api import state
from api.backend import BackendAPI
from api.dependencies import USE_POSTGRES, build_repository
from api.routers import commands, ops
from storage import db

# Logging configuration
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(message)s"
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Planner AI command engine")
app.include_router(commands.router)
app.include_router(ops.router)


@app.on_event("startup")
async def startup() -> None:
    if USE_POSTGRES:
        await db.init_db_pool()
        await db.init_schema()

    state.repository = build_repository()
    state.backend = BackendAPI(state.repository)
    logger.info(f"Command engine ready ({type(state.repository).__name__})")


@app.on_event("shutdown")
async def shutdown() -> None:
    if USE_POSTGRES:
        await db.close_db_pool()
    state.backend = None
    state.repository = None
