"""Link preview fetcher.

Fetches a page with httpx, reads its OpenGraph tags with BeautifulSoup
(falling back to ``<title>`` and ``<meta name="description">``) and keeps
the most recent results in a bounded LRU cache.
"""
import logging
from collections import OrderedDict
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup
from pydantic import BaseModel

logger = logging.getLogger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; PiperLinkPreview/1.0)"


class LinkPreview(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    domain: str


class PreviewError(Exception):
    """The target page could not be fetched."""


def is_previewable(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _meta(soup: BeautifulSoup, **attrs) -> Optional[str]:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    content = tag.get("content")
    return content.strip() if content else None


def parse_preview(html: str, url: str) -> LinkPreview:
    """Extract preview fields from an HTML document fetched from ``url``."""
    soup = BeautifulSoup(html, "html.parser")

    title = _meta(soup, property="og:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip()
    description = _meta(soup, property="og:description") or _meta(soup, name="description")
    image = _meta(soup, property="og:image")
    if image:
        image = urljoin(url, image)

    return LinkPreview(
        title=title or None,
        description=description,
        image=image,
        domain=urlparse(url).netloc,
    )


class LinkPreviewService:
    """Fetches and caches link previews.

    Args:
        cache_size: Maximum number of URLs kept in the LRU cache.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass ``httpx.MockTransport``).
    """

    def __init__(
        self,
        cache_size: int = 100,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.cache_size = cache_size
        self._cache: "OrderedDict[str, LinkPreview]" = OrderedDict()
        self._client = httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        )

    def cached(self, url: str) -> Optional[LinkPreview]:
        preview = self._cache.get(url)
        if preview is not None:
            self._cache.move_to_end(url)
        return preview

    def _remember(self, url: str, preview: LinkPreview) -> None:
        self._cache[url] = preview
        self._cache.move_to_end(url)
        while len(self._cache) > self.cache_size:
            self._cache.popitem(last=False)

    async def fetch(self, url: str) -> LinkPreview:
        """Return the preview for ``url``, from cache when possible.

        Raises:
            ValueError: If ``url`` is not an absolute http(s) URL.
            PreviewError: If the page cannot be fetched.
        """
        if not is_previewable(url):
            raise ValueError(f"Not an http(s) URL: {url!r}")

        preview = self.cached(url)
        if preview is not None:
            return preview

        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.info(f"[Preview] Fetch failed for {url}: {e}")
            raise PreviewError(str(e)) from e

        preview = parse_preview(response.text, str(response.url))
        self._remember(url, preview)
        logger.debug(f"[Preview] Cached {url} ({len(self._cache)}/{self.cache_size})")
        return preview

    async def aclose(self) -> None:
        await self._client.aclose()
