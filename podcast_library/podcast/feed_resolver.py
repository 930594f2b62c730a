"""Resolve podcast directory page URLs to their syndication feed URLs.

Apple Podcasts show pages embed the show's RSS URL in page data as
``"feedUrl":"https:\\/\\/example.com\\/feed.xml"``. Any other URL is assumed
to already be a feed URL.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)


class FeedResolver:
    """Rewrites podcast directory URLs into feed URLs.

    Resolution never fails: on any error the original URL is returned and
    the feed parser reports the problem when it cannot read the document.

    Example:
        async with httpx.AsyncClient() as client:
            resolver = FeedResolver(client)
            feed_url = await resolver.resolve(
                "https://podcasts.apple.com/us/podcast/example/id123"
            )
    """

    DIRECTORY_DOMAIN = "podcasts.apple.com"
    FEED_URL_MARKER = '"feedUrl":"'

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    @classmethod
    def is_directory_url(cls, url: str) -> bool:
        return cls.DIRECTORY_DOMAIN in url.lower()

    @classmethod
    def extract_feed_url(cls, page: str) -> Optional[str]:
        """Pull the feed URL out of a directory page body.

        Returns:
            The unescaped feed URL, or None if the marker is missing or
            the quoted value is unterminated.
        """
        start = page.find(cls.FEED_URL_MARKER)
        if start == -1:
            return None

        start += len(cls.FEED_URL_MARKER)
        end = page.find('"', start)
        if end == -1:
            return None

        return page[start:end].replace("\\/", "/")

    async def resolve(self, url: str) -> str:
        if not self.is_directory_url(url):
            return url

        logger.info(f"Detected Apple Podcasts URL, resolving to RSS feed: {url}")

        try:
            response = await self.http_client.get(url)
            response.raise_for_status()
            page = response.text
        except Exception as e:
            logger.error(f"Error resolving Apple Podcasts URL, using original URL: {e}")
            return url

        feed_url = self.extract_feed_url(page)
        if not feed_url:
            logger.warning("Could not find RSS feed URL in Apple Podcasts page, using original URL")
            return url

        logger.info(f"Resolved Apple Podcasts URL to RSS feed: {feed_url}")
        return feed_url
