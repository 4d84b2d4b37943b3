import logging
import os

from api import state
from api.backend import BackendAPI
from storage.memory_repository import InMemoryRepository
from storage.postgres_repository import PostgresRepository
from storage.repository import PlannerRepository

logger = logging.getLogger(__name__)

# Configuration
REPOSITORY_BACKEND = os.getenv("REPOSITORY_BACKEND", "memory").strip().lower()
USE_POSTGRES = REPOSITORY_BACKEND == "postgres"


def build_repository() -> PlannerRepository:
    if USE_POSTGRES:
        return PostgresRepository()
    if REPOSITORY_BACKEND != "memory":
        logger.warning(f"Unknown REPOSITORY_BACKEND {REPOSITORY_BACKEND!r}, using in-memory repository")
    return InMemoryRepository()


def get_repository() -> PlannerRepository:
    if state.repository is None:
        state.repository = build_repository()
    return state.repository


def get_backend() -> BackendAPI:
    if state.backend is None:
        state.backend = BackendAPI(get_repository())
    return state.backend
