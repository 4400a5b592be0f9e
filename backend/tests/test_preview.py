"""Tests for link previews with a mocked HTTP transport."""
import httpx
import pytest

from piper.preview.service import LinkPreviewService, PreviewError, parse_preview

ARTICLE = """
<html><head>
  <title>Fallback title</title>
  <meta property="og:title" content="Piper 1.0 released">
  <meta property="og:description" content="Realtime chat, now with voice.">
  <meta property="og:image" content="/img/banner.png">
</head><body></body></html>
"""

PLAIN = """
<html><head>
  <title> Plain page </title>
  <meta name="description" content="Nothing fancy">
</head></html>
"""


class TestParsePreview:
    def test_open_graph_tags(self):
        preview = parse_preview(ARTICLE, "https://example.com/news/1")
        assert preview.title == "Piper 1.0 released"
        assert preview.description == "Realtime chat, now with voice."
        assert preview.image == "https://example.com/img/banner.png"
        assert preview.domain == "example.com"

    def test_falls_back_to_title_and_description(self):
        preview = parse_preview(PLAIN, "http://plain.test/")
        assert preview.title == "Plain page"
        assert preview.description == "Nothing fancy"
        assert preview.image is None


class TestLinkPreviewService:
    def make_service(self, handler, cache_size=100):
        return LinkPreviewService(cache_size=cache_size, transport=httpx.MockTransport(handler))

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self):
        calls = []

        def handler(request):
            calls.append(str(request.url))
            return httpx.Response(200, text=ARTICLE)

        service = self.make_service(handler)
        first = await service.fetch("https://example.com/news/1")
        second = await service.fetch("https://example.com/news/1")
        await service.aclose()

        assert first == second
        assert calls == ["https://example.com/news/1"]

    @pytest.mark.asyncio
    async def test_cache_is_bounded_lru(self):
        service = self.make_service(lambda request: httpx.Response(200, text=PLAIN), cache_size=2)
        await service.fetch("https://a.test/")
        await service.fetch("https://b.test/")
        await service.fetch("https://a.test/")
        await service.fetch("https://c.test/")
        await service.aclose()

        assert service.cached("https://a.test/") is not None
        assert service.cached("https://b.test/") is None
        assert service.cached("https://c.test/") is not None

    @pytest.mark.asyncio
    async def test_rejects_non_http_urls(self):
        service = self.make_service(lambda request: httpx.Response(200, text=PLAIN))
        with pytest.raises(ValueError):
            await service.fetch("ftp://files.test/readme")
        with pytest.raises(ValueError):
            await service.fetch("javascript:alert(1)")
        await service.aclose()

    @pytest.mark.asyncio
    async def test_http_error_raises_preview_error(self):
        service = self.make_service(lambda request: httpx.Response(404))
        with pytest.raises(PreviewError):
            await service.fetch("https://missing.test/")
        assert service.cached("https://missing.test/") is None
        await service.aclose()

    @pytest.mark.asyncio
    async def test_network_error_raises_preview_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = self.make_service(handler)
        with pytest.raises(PreviewError):
            await service.fetch("https://down.test/")
        await service.aclose()


class TestPreviewRoute:
    def test_route_uses_app_service(self, api_client):
        api_client.app.state.previews = LinkPreviewService(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text=ARTICLE))
        )
        response = api_client.get("/api/preview", params={"url": "https://example.com/news/1"})
        assert response.status_code == 200
        assert response.json() == {
            "title": "Piper 1.0 released",
            "description": "Realtime chat, now with voice.",
            "image": "https://example.com/img/banner.png",
            "domain": "example.com",
        }

    def test_bad_scheme(self, api_client):
        response = api_client.get("/api/preview", params={"url": "file:///etc/passwd"})
        assert response.status_code == 400

    def test_upstream_failure(self, api_client):
        api_client.app.state.previews = LinkPreviewService(
            transport=httpx.MockTransport(lambda request: httpx.Response(500))
        )
        response = api_client.get("/api/preview", params={"url": "https://broken.test/"})
        assert response.status_code == 502
