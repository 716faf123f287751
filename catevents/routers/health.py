# catevents/routers/health.py
"""
System health check endpoint.
Reports the document store and the event media directory; either failing
marks the service as degraded.
"""

import os
import shutil
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from catevents.config import Settings, get_settings
from catevents.database import get_db
from catevents.services.document_store import DocumentStore
from catevents.services.ingestion import EVENTS_COLLECTION
from catevents.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def _check_database(db: Session) -> dict:
    try:
        return {"database": "ok", "events": DocumentStore(db).count(EVENTS_COLLECTION)}
    except SQLAlchemyError as e:
        logger.warning(f"[HEALTH] Database check failed: {e}")
        return {"database": f"error: {e}"}


def _check_event_path(event_path: str) -> dict:
    if not os.path.isdir(event_path):
        return {"event_path": "missing"}
    if not os.access(event_path, os.W_OK):
        return {"event_path": "read-only"}
    return {"event_path": "ok", "free_bytes": shutil.disk_usage(event_path).free}


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db), app_settings: Settings = Depends(get_settings)):
    """
    Returns:
    - Database connectivity and the number of stored events
    - Whether the event media directory exists and is writable, with free space
    """
    result = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **_check_database(db),
        **_check_event_path(app_settings.EVENT_PATH),
    }
    if result["database"] != "ok" or result["event_path"] != "ok":
        result["status"] = "degraded"
    return result
