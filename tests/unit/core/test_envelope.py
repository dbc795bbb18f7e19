"""Tests for the .litl envelope codec and #import= links."""

from __future__ import annotations

import base64
import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from riskregister.envelope import (
    APP_ID,
    DEFAULT_TITLE,
    Dataset,
    ParseError,
    decode_envelope,
    decode_import_fragment,
    encode_envelope,
    encode_import_fragment,
)
from tests.helpers import sample_dataset


def _sorted(dataset: Dataset) -> dict:
    return {
        key: sorted(getattr(dataset, key), key=lambda record: json.dumps(record, sort_keys=True))
        for key in ("items", "hazards", "objectives")
    }


class TestEncode:
    def test_envelope_shape(self):
        payload = json.loads(encode_envelope(sample_dataset()))

        assert payload["litlVersion"] == 1
        assert payload["appId"] == APP_ID
        assert payload["title"] == DEFAULT_TITLE
        assert set(payload["data"]) == {"items", "hazards", "objectives"}

    def test_round_trip(self):
        dataset = sample_dataset()

        decoded, title = decode_envelope(encode_envelope(dataset, title="Valley Register"))

        assert decoded == dataset
        assert title == "Valley Register"


records = st.dictionaries(
    st.sampled_from(["id", "title", "hazardId", "notes"]),
    st.one_of(st.integers(min_value=0, max_value=10_000), st.text(max_size=20), st.none()),
    max_size=4,
)


@given(
    st.lists(records, max_size=8),
    st.lists(records, max_size=8),
    st.lists(records, max_size=8),
)
@settings(max_examples=50)
def test_round_trip_ignores_array_order(items, hazards, objectives):
    dataset = Dataset(items=items, hazards=hazards, objectives=objectives)
    shuffled = Dataset(items=list(reversed(items)), hazards=hazards, objectives=list(reversed(objectives)))

    decoded, _ = decode_envelope(encode_envelope(shuffled))

    assert _sorted(decoded) == _sorted(dataset)


class TestDecode:
    def test_legacy_top_level_shape(self):
        raw = json.dumps({"items": [{"id": 1}], "hazards": [{"id": 2, "title": "Fire"}]})

        dataset, title = decode_envelope(raw)

        assert dataset.items == [{"id": 1}]
        assert dataset.hazards == [{"id": 2, "title": "Fire"}]
        assert dataset.objectives == []
        assert title is None

    def test_bare_item_list(self):
        dataset, _ = decode_envelope(b'[{"id": 1}, {"id": 2}]')

        assert [item["id"] for item in dataset.items] == [1, 2]

    def test_non_list_fields_default_to_empty(self):
        dataset, _ = decode_envelope(b'{"data": {"items": "oops", "hazards": null, "objectives": [1, {"id": 3}]}}')

        assert dataset.items == []
        assert dataset.hazards == []
        assert dataset.objectives == [{"id": 3}]

    def test_null_payload_is_empty(self):
        dataset, _ = decode_envelope(b"null")

        assert dataset.is_empty()

    @pytest.mark.parametrize("raw", [b"{not json", b"", b'"just a string"', b"42"])
    def test_malformed_input(self, raw):
        with pytest.raises(ParseError):
            decode_envelope(raw)

    def test_too_many_items(self):
        raw = json.dumps({"items": [{"id": n} for n in range(1, 12)]})

        with pytest.raises(ParseError, match="Too many items"):
            decode_envelope(raw, max_items=10)

    def test_too_many_hazards(self):
        raw = json.dumps({"hazards": [{"id": n} for n in range(1, 5)]})

        with pytest.raises(ParseError, match="Too many hazards"):
            decode_envelope(raw, max_hazards=3)

    def test_payload_size_guard(self):
        with pytest.raises(ParseError, match="too large"):
            decode_envelope(b'{"items": []}', max_bytes=4)


class TestImportFragment:
    def test_round_trip(self):
        dataset = sample_dataset()

        fragment = encode_import_fragment(dataset)

        assert fragment.startswith("#import=")
        assert decode_import_fragment(fragment) == dataset

    def test_missing_padding_is_tolerated(self):
        encoded = base64.b64encode(b'{"items": [{"id": 1}]}').decode("ascii").rstrip("=")

        dataset = decode_import_fragment(f"import={encoded}")

        assert dataset.items == [{"id": 1}]

    def test_items_array_payload(self):
        encoded = base64.b64encode(b'[{"id": 7}]').decode("ascii")

        assert decode_import_fragment(f"#import={encoded}").items == [{"id": 7}]

    def test_not_an_import_link(self):
        with pytest.raises(ParseError):
            decode_import_fragment("#section-2")

    def test_garbage_payload(self):
        with pytest.raises(ParseError):
            decode_import_fragment("#import=@@@@")

    def test_oversized_import_is_rejected(self):
        payload = json.dumps({"items": [{"id": n} for n in range(1, 6)]}).encode()
        fragment = "#import=" + base64.b64encode(payload).decode("ascii")

        with pytest.raises(ParseError):
            decode_import_fragment(fragment, max_items=4)
