# tests/test_record_decoder.py
"""Unit tests for header-only and full decoding of event documents."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import json
from datetime import timezone

import pytest
from catevents.errors import HeaderError, SchemaError, TimestampFormatError, VersionError
from catevents.schemas.event_data import EventRecord, Header
from catevents.services.record_decoder import decode_full, decode_header_only, is_supported
from conftest import DECLARED_ID, OBJECT_ID, event_document


def encode(doc) -> bytes:
    return json.dumps(doc).encode()


def truncated_after_header() -> bytes:
    header_fields = {k: v for k, v in event_document().items() if k in Header.model_fields}
    return encode(header_fields)[:-1] + b', "matches": [ {{{'


class TestHeaderOnly:
    def test_reads_header_fields(self):
        header = decode_header_only(encode(event_document()))
        assert header.id == DECLARED_ID
        assert header.event_json_version == "1.0"
        assert header.git_hash_short == "aaaaaaa"

    def test_ignores_corrupt_body(self):
        doc = event_document(matches="definitely not a list", start="not a time", settings=[1, 2])
        header = decode_header_only(encode(doc))
        assert header.id == DECLARED_ID
        assert is_supported(header)

    def test_ignores_truncated_body(self):
        header = decode_header_only(truncated_after_header())
        assert header.id == DECLARED_ID
        assert header.event_json_version == "1.0"
        assert header.git_tainted == 0

    def test_header_fields_in_any_order(self):
        raw = b'{"state": "waiting", "event_json_version": "1.0", "matches": [], "id": "abc"}'
        header = decode_header_only(raw)
        assert header.id == "abc"
        assert header.event_json_version == "1.0"

    @pytest.mark.parametrize("raw", [b"{not json", b"[1, 2, 3]", b"\xff\xfe", b'{"id": 42}',
                                     b"", b'{"id": ', b"{1: 2}"])
    def test_unparseable_header(self, raw):
        with pytest.raises(HeaderError):
            decode_header_only(raw)


class TestIsSupported:
    def test_only_version_one(self):
        assert is_supported(Header(id="x", event_json_version="1.0"))
        assert not is_supported(Header(id="x", event_json_version="2.0"))
        assert not is_supported(Header(id="x", event_json_version="1"))
        assert not is_supported(Header(id="x"))


class TestFullDecode:
    def test_decodes_nested_records_in_order(self):
        data = decode_full(encode(event_document()))
        assert [m.id for m in data.matches] == ["m1", "m2"]
        assert [s.name for s in data.matches[0].steps] == ["orig", "thr"]
        assert data.matches[0].path == "img/1.png"
        assert data.matches[1].is_false_positive is True
        assert data.settings.haar_matcher.cascade == "catcierge.xml"
        assert data.settings.lockout_time == 30

    def test_all_timestamp_layouts(self):
        data = decode_full(encode(event_document()))
        assert data.start.utcoffset().total_seconds() == 7200
        assert data.end.microsecond == 500000
        assert data.time_generated.tzinfo == timezone.utc

    def test_unsupported_version_fails_before_body(self):
        doc = event_document(event_json_version="2.0", matches="garbage")
        with pytest.raises(VersionError) as exc_info:
            decode_full(encode(doc))
        assert exc_info.value.event_id == DECLARED_ID
        assert exc_info.value.version == "2.0"

    def test_missing_version_is_unsupported(self):
        doc = event_document()
        del doc["event_json_version"]
        with pytest.raises(VersionError):
            decode_full(encode(doc))

    def test_bad_timestamp_is_schema_error(self):
        with pytest.raises(SchemaError) as exc_info:
            decode_full(encode(event_document(start="02/01/2018")))
        err = exc_info.value
        assert err.event_id == DECLARED_ID
        assert err.version == "1.0"
        assert "02/01/2018" in str(err.cause)

    @pytest.mark.parametrize("field, value", [("start", 1514905445), ("end", 0), ("time_generated", 1.5),
                                              ("start", True), ("end", ["2018-01-02 15:04:05"])])
    def test_non_string_timestamp_is_schema_error(self, field, value):
        with pytest.raises(SchemaError) as exc_info:
            decode_full(encode(event_document(**{field: value})))
        assert repr(value) in str(exc_info.value.cause)

    def test_numeric_match_time_is_schema_error(self):
        doc = event_document()
        doc["matches"][1]["time"] = 1514905447
        with pytest.raises(SchemaError):
            decode_full(encode(doc))

    def test_missing_timestamp_stays_empty(self):
        doc = event_document(end=None)
        del doc["start"]
        data = decode_full(encode(doc))
        assert data.start is None
        assert data.end is None

    def test_truncated_body_is_schema_error(self):
        with pytest.raises(SchemaError) as exc_info:
            decode_full(truncated_after_header())
        assert exc_info.value.event_id == DECLARED_ID
        assert exc_info.value.version == "1.0"

    def test_wrong_structure_is_schema_error(self):
        with pytest.raises(SchemaError):
            decode_full(encode(event_document(matches={"id": "m1"})))

    @pytest.mark.parametrize("path", ["/etc/passwd", "../../evil.png", "img/../../x.png", "C:/evil.png"])
    def test_unsafe_media_paths_rejected(self, path):
        doc = event_document()
        doc["matches"][0]["path"] = path
        with pytest.raises(SchemaError):
            decode_full(encode(doc))

    def test_incoming_refs_discarded(self):
        doc = event_document()
        doc["matches"][0]["ref"] = "http://attacker/x.png"
        doc["matches"][0]["steps"][0]["ref"] = "http://attacker/y.png"
        data = decode_full(encode(doc))
        assert data.matches[0].ref is None
        assert data.matches[0].steps[0].ref is None


class TestEventRecordDocument:
    def test_document_never_contains_refs(self):
        record = EventRecord(id=OBJECT_ID, data=decode_full(encode(event_document())))
        record.data.matches[0].ref = "http://host/a"
        record.data.matches[0].steps[1].ref = "http://host/b"

        document = record.to_document()
        assert "ref" not in document["data"]["matches"][0]
        assert all("ref" not in step for step in document["data"]["matches"][0]["steps"])

    def test_document_round_trip(self):
        record = EventRecord(id=OBJECT_ID, name="evening", tags=["prey"],
                             data=decode_full(encode(event_document())))
        restored = EventRecord.from_document(record.to_document())
        assert restored.model_dump() == record.model_dump()
        assert restored.data.start == record.data.start
        assert [m.id for m in restored.data.matches] == ["m1", "m2"]
