"""
Tests for the Twitter transport and the post text formatter.
"""
import httpx
import pytest
import tweepy
from unittest.mock import AsyncMock, MagicMock

from womptron.core.config import PublisherSettings
from womptron.transport.tweet_formatter import alt_text_for, format_tweet
from womptron.transport.twitter import TwitterPublisher

from conftest import make_womp

CREDS = dict(consumer_key="ck", consumer_secret="cs", access_token="at", access_token_secret="ats")


def _http(status=200, content=b"\xff\xd8jpeg"):
    http = MagicMock()

    async def _get(url):
        return httpx.Response(status, content=content, request=httpx.Request("GET", url))

    http.get = AsyncMock(side_effect=_get)
    http.aclose = AsyncMock()
    return http


def _publisher(http=None, api=None, client=None, **settings):
    api = api or MagicMock()
    api.media_upload.return_value = MagicMock(media_id_string="777")
    client = client or MagicMock()
    client.create_tweet.return_value = MagicMock(data={"id": "555", "text": "..."})
    pub = TwitterPublisher(PublisherSettings(**{**CREDS, **settings}), http=http or _http(), api=api, client=client)
    return pub, api, client


def test_format_tweet():
    w = make_womp(1, content="Pig Station elements")
    assert format_tweet(w) == (
        "“Pig Station elements” - at PIGGYBANK - by AdoraTokyo "
        "https://voxels.com/play?coords=E@247W,337N,5.5U"
    )


def test_alt_text_is_trimmed_content():
    assert alt_text_for(make_womp(1, content="  hi  ")) == "hi"
    assert alt_text_for(make_womp(1, content="   ")) == ""


@pytest.mark.asyncio
async def test_publish_uploads_image_then_posts():
    pub, api, client = _publisher()
    womp = make_womp(80643, content="nice")

    result = await pub.publish(womp)

    assert result.ok and not result.dry_run
    assert result.post_id == "555"
    assert result.media_id == "777"
    pub._http.get.assert_awaited_once_with(womp.media_url)
    _, kwargs = api.media_upload.call_args
    assert kwargs["filename"] == "80643.jpg"
    assert kwargs["file"].read() == b"\xff\xd8jpeg"
    api.create_media_metadata.assert_called_once_with("777", "nice")
    client.create_tweet.assert_called_once_with(text=format_tweet(womp), media_ids=["777"])


@pytest.mark.asyncio
async def test_no_alt_text_for_empty_content():
    pub, api, client = _publisher()

    result = await pub.publish(make_womp(1, content=""))

    assert result.ok
    api.create_media_metadata.assert_not_called()
    client.create_tweet.assert_called_once()


@pytest.mark.asyncio
async def test_image_download_failure_reports_not_ok(log_records):
    pub, api, client = _publisher(http=_http(status=404))

    result = await pub.publish(make_womp(9))

    assert not result.ok
    assert result.error
    api.media_upload.assert_not_called()
    client.create_tweet.assert_not_called()
    errors = [r for r in log_records if r["level"].name == "ERROR"]
    assert "#9" in errors[0]["message"]
    assert errors[0]["exception"] is not None


@pytest.mark.asyncio
async def test_api_rejection_reports_not_ok():
    pub, api, client = _publisher()
    client.create_tweet.side_effect = tweepy.TweepyException("duplicate content")

    result = await pub.publish(make_womp(3))

    assert not result.ok
    assert result.media_id == "777"
    assert "duplicate content" in result.error


@pytest.mark.asyncio
async def test_unexpected_errors_propagate_to_the_drain():
    pub, api, client = _publisher()
    api.media_upload.side_effect = KeyError("media_id_string")

    with pytest.raises(KeyError):
        await pub.publish(make_womp(4))


@pytest.mark.asyncio
async def test_dry_run_logs_without_calling_apis(log_records):
    http = _http()
    pub = TwitterPublisher(PublisherSettings(dry_run=True), http=http)

    result = await pub.publish(make_womp(12, content="gm"))

    assert result.ok and result.dry_run
    assert result.post_id is None
    http.get.assert_not_called()
    assert any("[Twitter dry-run]" in r["message"] and "“gm”" in r["message"] for r in log_records)

    await pub.aclose()
    http.aclose.assert_awaited_once()
