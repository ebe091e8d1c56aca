import pytest

from feedrelay.errors import ValidationError
from feedrelay.ingestion.payload_validator import validate_envelope, validate_manual_submission


def _item(guid: str, **overrides):
    item = {"guid": guid, "title": f"Post {guid}", "link": f"https://www.instagram.com/p/{guid}/"}
    item.update(overrides)
    return item


def test_valid_envelope_is_parsed():
    payload = {
        "feed": {"id": "feed-1", "title": "Shop feed"},
        "items": [
            _item("A1", pubDate="Wed, 01 May 2024 12:00:00 GMT", enclosure={"url": "https://cdn/x.jpg", "type": "image/jpeg"}),
            _item("B2", enclosures=[{"url": "https://cdn/y.mp4", "mediaType": "video/mp4"}]),
        ],
    }

    envelope = validate_envelope(payload)

    assert envelope.source_feed_id == "feed-1"
    assert envelope.source_feed_title == "Shop feed"
    assert [item.guid for item in envelope.items] == ["A1", "B2"]
    assert envelope.items[0].published_at == "Wed, 01 May 2024 12:00:00 GMT"
    assert envelope.items[0].enclosures[0].media_type == "image/jpeg"
    assert envelope.items[1].enclosures[0].media_type == "video/mp4"


def test_camel_case_feed_keys_are_accepted():
    envelope = validate_envelope({"sourceFeedId": "f", "sourceFeedTitle": "T", "items": []})

    assert envelope.source_feed_id == "f"
    assert envelope.items == []


@pytest.mark.parametrize("payload, field", [
    ([], "body"),
    ("items", "body"),
    ({}, "items"),
    ({"items": {"guid": "x"}}, "items"),
    ({"items": ["not-an-object"]}, "items[0]"),
])
def test_envelope_shape_errors_name_the_field(payload, field):
    with pytest.raises(ValidationError) as exc_info:
        validate_envelope(payload)
    assert exc_info.value.field == field
    assert exc_info.value.status_code == 400


def test_second_item_missing_guid_rejects_whole_envelope():
    item = _item("B2")
    del item["guid"]

    with pytest.raises(ValidationError) as exc_info:
        validate_envelope({"items": [_item("A1"), item]})

    assert exc_info.value.field == "items[1].guid"


@pytest.mark.parametrize("name", ["title", "link", "guid"])
def test_blank_required_fields_are_rejected(name):
    with pytest.raises(ValidationError) as exc_info:
        validate_envelope({"items": [_item("A1", **{name: "   "})]})
    assert exc_info.value.field == f"items[0].{name}"


def test_enclosure_without_url_is_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_envelope({"items": [_item("A1", enclosures=[{"type": "image/jpeg"}])]})
    assert exc_info.value.field == "items[0].enclosures[0].url"


def test_manual_submission_is_parsed():
    submission = validate_manual_submission({
        "instagram_url": "https://www.instagram.com/p/ABC123DEF/",
        "caption": "Test",
        "image_url": "https://cdn.example.com/a.jpg",
        "post_type": "carousel",
        "guild_id": "123456789012345678",
    })

    assert submission.url == "https://www.instagram.com/p/ABC123DEF/"
    assert submission.caption == "Test"
    assert submission.image_url == "https://cdn.example.com/a.jpg"
    assert submission.video_url is None
    assert submission.post_type == "carousel"
    assert submission.guild_id == 123456789012345678


def test_manual_submission_defaults_post_type():
    submission = validate_manual_submission({"instagram_url": "https://example.com/p/X/", "caption": "c"})
    assert submission.post_type == "image"
    assert submission.guild_id is None


@pytest.mark.parametrize("payload, field", [
    ({"caption": "c"}, "instagram_url"),
    ({"instagram_url": "https://example.com/p/X/"}, "caption"),
    ({"instagram_url": "http://example.com/p/X/", "caption": "c"}, "instagram_url"),
    ({"instagram_url": "https://example.com/reel/X/", "caption": "c"}, "instagram_url"),
    ({"instagram_url": "https://example.com/p/X/", "caption": "c", "image_url": "ftp://x/y.jpg"}, "image_url"),
    ({"instagram_url": "https://example.com/p/X/", "caption": "c", "video_url": 5}, "video_url"),
    ({"instagram_url": "https://example.com/p/X/", "caption": "c", "post_type": "story"}, "post_type"),
    ({"instagram_url": "https://example.com/p/X/", "caption": "c", "guild_id": "abc"}, "guild_id"),
])
def test_manual_submission_errors_name_the_field(payload, field):
    with pytest.raises(ValidationError) as exc_info:
        validate_manual_submission(payload)
    assert exc_info.value.field == field


def test_manual_submission_domain_allow_list():
    payload = {"instagram_url": "https://evil.example/p/X/", "caption": "c"}

    with pytest.raises(ValidationError):
        validate_manual_submission(payload, ["instagram.com", "www.instagram.com"])

    assert validate_manual_submission(payload, []).url == "https://evil.example/p/X/"
