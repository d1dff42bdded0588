"""Tests for Firestore trigger envelope decoding."""

import pytest

from petly.domain.errors import MalformedEventError
from petly.triggers.firestore_values import (
    decode_fields,
    decode_value,
    normalize_document_path,
    parse_envelope,
)


class TestDecodeValue:
    @pytest.mark.parametrize(
        "typed,expected",
        [
            ({"stringValue": "Rex"}, "Rex"),
            ({"integerValue": "42"}, 42),
            ({"doubleValue": 1.5}, 1.5),
            ({"booleanValue": True}, True),
            ({"nullValue": None}, None),
            ({"timestampValue": "2026-03-01T12:00:00Z"}, "2026-03-01T12:00:00Z"),
            ({"referenceValue": "projects/p/databases/d/documents/users/u1"},
             "projects/p/databases/d/documents/users/u1"),
            ({"bytesValue": "aGk="}, b"hi"),
        ],
    )
    def test_scalars(self, typed, expected):
        assert decode_value(typed) == expected

    def test_geo_point(self):
        value = decode_value({"geoPointValue": {"latitude": -23.5, "longitude": -46.6}})
        assert value == {"latitude": -23.5, "longitude": -46.6}

    def test_nested_map_and_array(self):
        fields = {
            "participants": {
                "arrayValue": {"values": [{"stringValue": "a"}, {"stringValue": "b"}]}
            },
            "context": {
                "mapValue": {"fields": {"animalId": {"stringValue": "rex"}}}
            },
            "empty": {"arrayValue": {}},
        }
        assert decode_fields(fields) == {
            "participants": ["a", "b"],
            "context": {"animalId": "rex"},
            "empty": [],
        }

    @pytest.mark.parametrize(
        "bad",
        [
            {},
            {"weirdValue": 1},
            {"integerValue": "x"},
            {"stringValue": "a", "nullValue": None},
            {"mapValue": "oops"},
            {"mapValue": {"fields": ["a"]}},
            {"arrayValue": ["a"]},
            {"arrayValue": {"values": {"stringValue": "a"}}},
            {"geoPointValue": "0,0"},
            {"geoPointValue": {"latitude": "north"}},
        ],
    )
    def test_invalid_values(self, bad):
        with pytest.raises(MalformedEventError):
            decode_value(bad)


class TestParseEnvelope:
    def test_typed_value_envelope(self):
        event = parse_envelope(
            {
                "document": "chats/c1",
                "eventId": "evt-1",
                "value": {"fields": {"lastMessage": {"stringValue": "hi"}}},
            }
        )
        assert event.document_path == "chats/c1"
        assert event.event_id == "evt-1"
        assert event.data == {"lastMessage": "hi"}

    def test_plain_data_envelope(self):
        event = parse_envelope({"document": "adoptionIntents/i1", "data": {"status": "pending"}})
        assert event.data == {"status": "pending"}
        assert event.event_id is None

    def test_path_from_value_name(self):
        event = parse_envelope(
            {
                "value": {
                    "name": "projects/p/databases/(default)/documents/chats/c1/messages/m1",
                    "fields": {},
                }
            }
        )
        assert event.document_path == "chats/c1/messages/m1"

    def test_normalize_document_path(self):
        assert normalize_document_path("/chats/c1/") == "chats/c1"

    @pytest.mark.parametrize(
        "payload",
        [
            [],
            {"data": {}},
            {"document": "chats/c1"},
            {"document": "", "data": {}},
        ],
    )
    def test_malformed(self, payload):
        with pytest.raises(MalformedEventError):
            parse_envelope(payload)
