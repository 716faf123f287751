# tests/conftest.py
"""Shared fixtures: event documents, bundle archives, an in-memory store."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import io
import json
import zipfile

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catevents.config import Settings
from catevents.database import create_tables
from catevents.services.document_store import DocumentStore

DECLARED_ID = "5a0b6cf1e4b0c2a3d4e5f6017c8d9e0f1a2b3c4d"
OBJECT_ID = DECLARED_ID[:24]


def event_document(**overrides) -> dict:
    doc = {
        "id": DECLARED_ID,
        "event_json_version": "1.0",
        "version": "0.6.2",
        "git_hash": "a" * 40,
        "git_hash_short": "aaaaaaa",
        "git_tainted": 0,
        "state": "keep_open",
        "prev_state": "waiting",
        "catcierge_type": "haar",
        "description": "Cat went in",
        "start": "2018-01-02T15:04:05.123456+02:00",
        "end": "2018-01-02T15:04:09.5+0200",
        "time_generated": "2018-01-02 15:04:10",
        "timezone": "CET",
        "timezone_utc_offset": "+0200",
        "rootpath": "/home/catcierge/events",
        "match_group_count": 2,
        "match_group_direction": "in",
        "match_group_max_count": 4,
        "match_group_success": 1,
        "matches": [
            {
                "id": "m1",
                "description": "Lock",
                "direction": "in",
                "filename": "1.png",
                "path": "img/1.png",
                "result": 0.93,
                "success": 1,
                "time": "2018-01-02T15:04:06.000000001+02:00",
                "is_false_positive": False,
                "step_count": 2,
                "steps": [
                    {"active": 1, "description": "Original", "filename": "s0.png", "name": "orig",
                     "path": "img/steps/s0.png"},
                    {"active": 1, "description": "Threshold", "filename": "s1.png", "name": "thr",
                     "path": "img/steps/s1.png"},
                ],
            },
            {
                "id": "m2",
                "description": "Prey",
                "direction": "in",
                "filename": "2.png",
                "path": "img/2.png",
                "result": 0.12,
                "success": 0,
                "time": "2018-01-02T15:04:07+0200",
                "is_false_positive": True,
                "step_count": 0,
                "steps": [],
            },
        ],
        "settings": {
            "haar_matcher": {"cascade": "catcierge.xml", "in_direction": "right", "prey_steps": 2},
            "lockout_time": 30,
            "lockout_error_delay": 3.0,
            "matcher": "haar",
            "ok_matches_needed": 2,
        },
    }
    doc.update(overrides)
    return doc


def build_bundle(document, prefix: str = "", media=None, extra_entries=None,
                 compression: int = zipfile.ZIP_STORED) -> bytes:
    """ZIP with event.json (+ media) under an optional wrapper directory."""
    media = {"img/1.png": b"png-1", "img/2.png": b"png-2",
             "img/steps/s0.png": b"s0", "img/steps/s1.png": b"s1"} if media is None else media
    root = f"{prefix}/" if prefix else ""
    raw = document if isinstance(document, (bytes, str)) else json.dumps(document)
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=compression) as zf:
        if prefix:
            zf.writestr(root, "")
        for name, content in media.items():
            zf.writestr(root + name, content)
        zf.writestr(root + "event.json", raw)
        for name, content in (extra_entries or {}).items():
            zf.writestr(name, content)
    return buf.getvalue()


async def chunked(data: bytes, size: int = 1024):
    for i in range(0, len(data), size):
        yield data[i:i + size]


@pytest.fixture
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    create_tables(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def store(db_session):
    return DocumentStore(db_session)


@pytest.fixture
def app_settings(tmp_path):
    return Settings(EVENT_PATH=str(tmp_path / "events"), MAX_EVENT_SIZE=64 * 1024, SERVER_SCHEME="http")
