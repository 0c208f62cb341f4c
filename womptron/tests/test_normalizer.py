"""
Tests for raw feed record -> Womp normalization.
"""
from datetime import timedelta

import pytest

from womptron.core.custom_types import MalformedRecordError
from womptron.feed.normalizer import normalize_womp, parse_created_at

from conftest import NOW, make_record


def test_normalize_piggybank_record():
    womp = normalize_womp(make_record(80643, 5, content="nice @spammer"))

    assert womp.id == 80643
    assert womp.content == "nice spammer"
    assert womp.location == "PIGGYBANK"
    assert womp.author == "0x889b4…57c8b"
    assert womp.permalink == "https://voxels.com/play?coords=E@247W,337N,5.5U"
    assert womp.media_url.startswith("https://media.crvox.com/womps/")
    assert womp.created_at == NOW - timedelta(seconds=5)


def test_author_name_preferred_over_address():
    womp = normalize_womp(make_record(1, 5, author_name="AdoraTokyo"))
    assert womp.author == "AdoraTokyo"


def test_location_falls_back_to_parcel_address():
    womp = normalize_womp(make_record(1, 5, parcel_name=None, parcel_address="25 Boots Crossing"))
    assert womp.location == "25 Boots Crossing"


def test_mentions_stripped_from_location_too():
    womp = normalize_womp(make_record(1, 5, parcel_name="@Spam Tower"))
    assert womp.location == "Spam Tower"


def test_content_trimmed_then_truncated():
    womp = normalize_womp(make_record(1, 5, content="   " + "a" * 200 + "   "), max_length=140)
    assert len(womp.content) == 140
    assert womp.content.endswith("…")
    assert not womp.content.startswith(" ")


def test_null_content_becomes_empty_string():
    womp = normalize_womp(make_record(1, 5, content=None))
    assert womp.content == ""


def test_custom_permalink_template():
    womp = normalize_womp(
        make_record(1, 5, coords="N@1E,2N"),
        permalink_template="https://example.org/p?c={coords}",
    )
    assert womp.permalink == "https://example.org/p?c=N@1E,2N"


@pytest.mark.parametrize(
    "fields",
    [
        {"image_url": None},
        {"image_url": "/relative/womp.jpg"},
        {"coords": None},
        {"coords": ""},
        {"coords": "E@247W, 337N"},
        {"created_at": None},
        {"created_at": "yesterday-ish"},
        {"id": None},
        {"id": "abc"},
        {"author": None, "author_name": None},
        {"parcel_name": None, "parcel_address": None},
        {"content": 42},
    ],
)
def test_malformed_records_raise(fields):
    with pytest.raises(MalformedRecordError):
        normalize_womp(make_record(7, 5, **fields))


def test_malformed_error_carries_record_id():
    with pytest.raises(MalformedRecordError) as exc:
        normalize_womp(make_record(4242, 5, image_url=None))
    assert exc.value.record_id == 4242


def test_non_mapping_record_is_malformed():
    with pytest.raises(MalformedRecordError):
        normalize_womp(["not", "a", "record"])


@pytest.mark.parametrize("length", [2, 10, 140])
def test_well_formed_records_respect_content_length(length):
    for content in ["", "x", "@" * 300, "word " * 100, "ü" * (length + 1)]:
        womp = normalize_womp(make_record(1, 5, content=content), max_length=length)
        assert len(womp.content) <= length
        assert womp.permalink


def test_parse_created_at_naive_is_utc():
    dt = parse_created_at("2025-08-29T18:53:42.645")
    assert dt.tzinfo is not None
    assert dt.utcoffset() == timedelta(0)
