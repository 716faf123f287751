# catevents/routers/events.py
"""
Event bundle endpoints.
POST /events                      — upload an event bundle ZIP.
GET  /events                      — list all events, oldest start first.
GET  /events/{event_id}           — a single event.
GET  /events/{event_id}/{subpath} — extracted media of an event.
"""

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from catevents.config import Settings, get_settings
from catevents.database import get_db
from catevents.errors import DocumentNotFoundError
from catevents.schemas.event_data import EventRecord
from catevents.services.document_store import DocumentStore
from catevents.services.ingestion import EVENTS_COLLECTION, EventIngestor, derive_object_id
from catevents.services.reference_rewriter import RequestOrigin, fill_references
from catevents.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


def get_store(db: Session = Depends(get_db)) -> DocumentStore:
    return DocumentStore(db)


def get_ingestor(store: DocumentStore = Depends(get_store),
                 app_settings: Settings = Depends(get_settings)) -> EventIngestor:
    return EventIngestor(store=store, settings=app_settings)


def _origin(request: Request, app_settings: Settings, path: str) -> RequestOrigin:
    host = request.headers.get("host") or request.url.netloc
    return RequestOrigin(scheme=app_settings.SERVER_SCHEME, host=host, path=path)


def _child_path(request: Request, event_id: str) -> str:
    """URL of an event below a collection URL, e.g. /api/v1/events -> /api/v1/events/{id}."""
    return f"{request.url.path.rstrip('/')}/{event_id}"


def _render(record: EventRecord, origin: RequestOrigin) -> dict:
    # Plain dict: re-validating the model would drop the derived refs
    return fill_references(record, origin).model_dump(mode="json")


def _content_length(request: Request):
    raw = request.headers.get("content-length")
    return int(raw) if raw and raw.isdigit() else None


@router.post("/events", status_code=201,
             summary="Create an event from an event bundle ZIP")
async def create_event(
    request: Request,
    name: str = "",
    tags: list[str] = Query(default=[]),
    ingestor: EventIngestor = Depends(get_ingestor),
    app_settings: Settings = Depends(get_settings),
):
    """Errors: 400 bad document, 409 duplicate event, 413 too large, 500 otherwise."""
    client = request.client.host if request.client else "unknown"
    content_length = _content_length(request)
    logger.info(f"Event upload from {client} | {content_length} bytes")

    record = await ingestor.ingest(request.stream(), content_length, app_settings.EVENT_PATH,
                                   name=name, tags=tags)
    return _render(record, _origin(request, app_settings, _child_path(request, record.id)))


@router.get("/events", summary="List all events")
def list_events(request: Request, store: DocumentStore = Depends(get_store),
                app_settings: Settings = Depends(get_settings)):
    records = [EventRecord.from_document(doc) for doc in store.list_documents(EVENTS_COLLECTION)]
    records.sort(key=lambda r: (r.data.start is None, r.data.start))
    return [_render(r, _origin(request, app_settings, _child_path(request, r.id))) for r in records]


@router.get("/events/{event_id}", summary="Get an event")
def get_event(event_id: str, request: Request, store: DocumentStore = Depends(get_store),
              app_settings: Settings = Depends(get_settings)):
    object_id = derive_object_id(event_id)
    try:
        record = EventRecord.from_document(store.find_by_id(EVENTS_COLLECTION, object_id))
    except DocumentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Event '{event_id}' could not be found")
    return _render(record, _origin(request, app_settings, request.url.path))


@router.get("/events/{event_id}/{subpath:path}", summary="Get static files for an event such as images")
def event_static_files(event_id: str, subpath: str, app_settings: Settings = Depends(get_settings)):
    event_dir = (Path(app_settings.EVENT_PATH) / derive_object_id(event_id)).resolve()
    full_path = (event_dir / subpath).resolve()
    logger.debug(f"GET {full_path}")
    if not full_path.is_relative_to(event_dir) or not full_path.is_file():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(full_path)
