from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.adapters.store import AbstractKeyValueStore, StoreError
from app.api.dependencies import get_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check() -> dict:
    """Liveness check.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}


@router.get("/health/ready")
def readiness_check(store: AbstractKeyValueStore = Depends(get_store)) -> JSONResponse:
    """Readiness check: verifies the key-value store answers.

    Returns 503 with status "degraded" while the store is unreachable. The
    service still runs in that state; retrievals are admitted (fail open) but
    reads and writes report ``store_unavailable``.
    """

    try:
        store.ping()
    except StoreError as exc:
        logger.warning("health.store_unavailable", extra={"error_msg": str(exc)})
        return JSONResponse(status_code=503, content={"status": "degraded"})

    return JSONResponse(status_code=200, content={"status": "ok"})
