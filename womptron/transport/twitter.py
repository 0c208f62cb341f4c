"""
Twitter Transport for Womp Posts

This module publishes a normalized `Womp` as a post with its image attached:
download the image, upload it as media, attach alt text when the womp has
content, then create the post. It also supports a "dry-run" mode that only
logs the post text.

Design Principles:
- Decoupling: The publisher only knows how to turn a `Womp` into a post. It
  has no idea about polling, queueing or pacing.
- Resilience: Failures are logged with their traceback and reported as a
  failed `PublishResult`; `publish` does not retry.
- Testability: The tweepy clients and the HTTP client are injectable.
"""

import asyncio
import io
from typing import Optional

import httpx
import tweepy
from loguru import logger

from womptron.core.config import PublisherSettings
from womptron.core.custom_types import PublishResult, Womp
from .tweet_formatter import alt_text_for, format_tweet


class TwitterPublisher:
    def __init__(
        self,
        settings: PublisherSettings,
        http: Optional[httpx.AsyncClient] = None,
        api: Optional[tweepy.API] = None,
        client: Optional[tweepy.Client] = None,
        timeout: float = 10.0,
    ):
        self.dry_run = settings.dry_run
        self._http = http or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._api = api
        self._client = client
        if not self.dry_run:
            if self._api is None:
                # media upload and alt text still live on the v1.1 API
                auth = tweepy.OAuth1UserHandler(
                    settings.consumer_key,
                    settings.consumer_secret,
                    settings.access_token,
                    settings.access_token_secret,
                )
                self._api = tweepy.API(auth)
            if self._client is None:
                self._client = tweepy.Client(
                    consumer_key=settings.consumer_key,
                    consumer_secret=settings.consumer_secret,
                    access_token=settings.access_token,
                    access_token_secret=settings.access_token_secret,
                )

    async def _download_image(self, womp: Womp) -> bytes:
        response = await self._http.get(womp.media_url)
        response.raise_for_status()
        return response.content

    async def _upload_media(self, womp: Womp, image: bytes) -> str:
        media = await asyncio.to_thread(
            self._api.media_upload, filename=f"{womp.id}.jpg", file=io.BytesIO(image)
        )
        return str(media.media_id_string)

    async def publish(self, womp: Womp) -> PublishResult:
        """
        Post one womp.

        Args:
            womp: The normalized womp to announce.

        Returns:
            A `PublishResult`; `ok` is False when any step failed.
        """
        text = format_tweet(womp)
        if self.dry_run:
            logger.info(f"[Twitter dry-run] Tweet not sent for womp #{womp.id}: {text}")
            return PublishResult(womp_id=womp.id, ok=True, dry_run=True)

        media_id = None
        try:
            image = await self._download_image(womp)
            media_id = await self._upload_media(womp, image)

            alt_text = alt_text_for(womp)
            if alt_text:
                await asyncio.to_thread(self._api.create_media_metadata, media_id, alt_text)

            response = await asyncio.to_thread(self._client.create_tweet, text=text, media_ids=[media_id])
        except (httpx.HTTPError, tweepy.TweepyException) as e:
            logger.exception(f"[Twitter] Error tweeting womp #{womp.id}: {e!r}")
            return PublishResult(womp_id=womp.id, ok=False, media_id=media_id, error=repr(e))

        data = getattr(response, "data", None) or {}
        post_id = str(data["id"]) if "id" in data else None
        logger.info(f"[Womptron] Tweeted womp #{womp.id}: {text}")
        return PublishResult(womp_id=womp.id, ok=True, post_id=post_id, media_id=media_id)

    async def aclose(self) -> None:
        await self._http.aclose()
