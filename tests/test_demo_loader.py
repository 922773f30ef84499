"""
Tests for the demo document loader.

Local roots use tmp_path; URL roots use an aiohttp TestServer.
"""

import json
from typing import Any

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from story_session_storage import DemoDocumentLoader
from story_session_storage.exceptions import DemoFetchError

from conftest import DEMO_DOCUMENT


def _write(root, relative: str, data: Any) -> None:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(data if isinstance(data, str) else json.dumps(data))


@pytest.fixture
async def demo_server():
    """HTTP server returning JSON for the paths registered in ``routes``."""
    routes: dict[str, Any] = {}

    async def handler(request: web.Request) -> web.Response:
        if request.path not in routes:
            raise web.HTTPNotFound()
        return web.json_response(routes[request.path])

    app = web.Application()
    app.router.add_get("/{tail:.*}", handler)
    server = TestServer(app)
    await server.start_server()
    yield server, routes
    await server.close()


class TestCandidates:
    """Tests for candidate locations."""

    def test_conventional_path_only(self, tmp_path):
        loader = DemoDocumentLoader(tmp_path)
        assert loader.candidates() == [str(tmp_path / "projects/__demo__/story.json")]

    def test_base_path_fallback_comes_second(self):
        loader = DemoDocumentLoader("https://example.org/", base_path="/editor/")
        assert loader.candidates() == [
            "https://example.org/projects/__demo__/story.json",
            "https://example.org/editor/projects/__demo__/story.json",
        ]

    def test_custom_project_dir(self, tmp_path):
        loader = DemoDocumentLoader(tmp_path, project_dir="sampler")
        assert loader.candidates()[0].endswith("projects/sampler/story.json")


class TestLocalFetch:
    """Tests for reading the demo from a directory."""

    @pytest.mark.asyncio
    async def test_fetch(self, demo_root):
        document = await DemoDocumentLoader(demo_root).fetch()

        assert document.page_title == DEMO_DOCUMENT["pageTitle"]
        assert document.blocks == DEMO_DOCUMENT["blocks"]

    async def test_falls_back_to_base_path(self, tmp_path):
        _write(tmp_path, "editor/projects/__demo__/story.json", DEMO_DOCUMENT)

        document = await DemoDocumentLoader(tmp_path, base_path="editor").fetch()

        assert document.page_title == DEMO_DOCUMENT["pageTitle"]

    async def test_missing_everywhere(self, tmp_path):
        loader = DemoDocumentLoader(tmp_path, base_path="editor")

        with pytest.raises(DemoFetchError) as exc_info:
            await loader.fetch()

        assert exc_info.value.location == loader.candidates()[-1]

    @pytest.mark.parametrize(
        "content",
        [
            "not json",
            json.dumps(["a", "list"]),
            json.dumps({"blocks": []}),
            json.dumps({"pageTitle": "No blocks"}),
        ],
    )
    async def test_invalid_documents(self, tmp_path, content):
        _write(tmp_path, "projects/__demo__/story.json", content)

        with pytest.raises(DemoFetchError):
            await DemoDocumentLoader(tmp_path).fetch()

    async def test_invalid_primary_uses_fallback(self, tmp_path):
        _write(tmp_path, "projects/__demo__/story.json", {"blocks": []})
        _write(tmp_path, "editor/projects/__demo__/story.json", DEMO_DOCUMENT)

        document = await DemoDocumentLoader(tmp_path, base_path="editor").fetch()

        assert document.page_title == DEMO_DOCUMENT["pageTitle"]


class TestHttpFetch:
    """Tests for fetching the demo over HTTP."""

    @pytest.mark.asyncio
    async def test_fetch(self, demo_server):
        server, routes = demo_server
        routes["/projects/__demo__/story.json"] = DEMO_DOCUMENT

        document = await DemoDocumentLoader(str(server.make_url("/"))).fetch()

        assert document.page_title == DEMO_DOCUMENT["pageTitle"]

    async def test_falls_back_to_base_path(self, demo_server):
        server, routes = demo_server
        routes["/editor/projects/__demo__/story.json"] = DEMO_DOCUMENT

        loader = DemoDocumentLoader(str(server.make_url("/")), base_path="/editor")
        document = await loader.fetch()

        assert document.blocks == DEMO_DOCUMENT["blocks"]

    async def test_not_found(self, demo_server):
        server, _ = demo_server

        with pytest.raises(DemoFetchError) as exc_info:
            await DemoDocumentLoader(str(server.make_url("/"))).fetch()

        assert "404" in exc_info.value.details["cause"]
