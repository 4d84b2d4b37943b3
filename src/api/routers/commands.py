import logging
import os
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field, field_validator

from api.backend import BackendAPI
from api.dependencies import get_backend
from api.metrics import REQUEST_LATENCY_SECONDS, REQUESTS_TOTAL
from planner_ai.commands import UserContext

router = APIRouter(prefix="/nl")
logger = logging.getLogger(__name__)

DEFAULT_USER_ID = os.getenv("DEFAULT_USER_ID", "default")


class CommandIn(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)
    entities: Optional[Dict[str, Any]] = None
    confirmed: bool = False

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, v: str) -> str:
        v2 = v.strip()
        if not v2:
            raise ValueError("text must not be blank")
        return v2


class ParseIn(BaseModel):
    text: str = Field(..., min_length=1, max_length=1000)
    entities: Optional[Dict[str, Any]] = None


@router.post("/process")
async def process_command(
    payload: CommandIn,
    x_user_id: Optional[str] = Header(None),
    backend: BackendAPI = Depends(get_backend),
) -> dict:
    """
    Interpret a sentence and execute it when confident (or confirmed).
    Engine failures come back as ``result.success == false``, never as HTTP errors.
    """
    start = time.time()
    user = UserContext(user_id=(x_user_id or "").strip() or DEFAULT_USER_ID)
    logger.info(f"Received command from {user.user_id}: {payload.text[:50]}")

    result = await backend.interpret(
        payload.text,
        user,
        provided=payload.entities,
        confirmed=payload.confirmed,
    )
    data = result.data or {}
    executed = not data.get("requires_confirmation", False)

    if not executed:
        status = "needs_confirmation"
    else:
        status = "executed" if result.success else "failed"
    REQUESTS_TOTAL.labels(endpoint="/nl/process", status=status).inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint="/nl/process").observe(time.time() - start)

    return {
        "success": True,
        "data": {
            "parsed": data.get("command"),
            "executed": executed,
            "result": result.model_dump(mode="json"),
        },
    }


@router.post("/parse")
async def parse_command(payload: ParseIn, backend: BackendAPI = Depends(get_backend)) -> dict:
    start = time.time()
    command = backend.parse(payload.text, payload.entities)

    REQUESTS_TOTAL.labels(endpoint="/nl/parse", status="parsed").inc()
    REQUEST_LATENCY_SECONDS.labels(endpoint="/nl/parse").observe(time.time() - start)
    return {
        "success": True,
        "data": {
            "parsed": command.model_dump(mode="json"),
            "auto_executable": command.auto_executable,
        },
    }
