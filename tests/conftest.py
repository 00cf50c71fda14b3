# File: tests/conftest.py
from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, Union

import pytest
import pytest_asyncio
from aiohttp import web

from webdl.crawler.models import PageRef
from webdl.crawler.selector import Selectors

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]
PageBody = Union[str, bytes, Handler]
RequestLog = List[Tuple[str, Optional[str]]]


def make_app(pages: Dict[str, PageBody], log: RequestLog) -> web.Application:
    """Serve *pages* (path → HTML text, raw bytes or handler); unknown paths are 404."""

    async def handle(request: web.Request) -> web.StreamResponse:
        log.append((request.path, request.headers.get("Referer")))
        body = pages.get(request.path)
        if body is None:
            return web.Response(status=404, text="not found")
        if callable(body):
            return await body(request)
        if isinstance(body, bytes):
            return web.Response(body=body, content_type="application/octet-stream")
        return web.Response(text=body, content_type="text/html")

    app = web.Application()
    app.router.add_route("GET", "/{tail:.*}", handle)
    return app


@pytest_asyncio.fixture
async def serve(unused_tcp_port_factory):
    """Start a throw-away HTTP server: ``base, log = await serve({...})``."""
    runners: List[web.AppRunner] = []

    async def _serve(pages: Dict[str, PageBody]) -> Tuple[str, RequestLog]:
        log: RequestLog = []
        runner = web.AppRunner(make_app(pages, log))
        await runner.setup()
        port = unused_tcp_port_factory()
        await web.TCPSite(runner, "127.0.0.1", port).start()
        runners.append(runner)
        return f"http://127.0.0.1:{port}", log

    yield _serve
    for runner in runners:
        await runner.cleanup()


class Recorder:
    """Collects everything the crawler hands to its collaborators."""

    def __init__(self, wanted: bool = True) -> None:
        self.wanted = wanted
        self.asked: List[PageRef] = []
        self.downloads: Dict[str, bytes] = {}
        self.download_refs: List[PageRef] = []
        self.prints: List[Tuple[PageRef, List[List[str]]]] = []
        self.progress: List[Tuple[Optional[BaseException], int, int]] = []

    def predicate(self, ref: PageRef) -> bool:
        self.asked.append(ref)
        return self.wanted

    async def sink(self, ref: PageRef, stream) -> None:
        self.download_refs.append(ref)
        self.downloads[ref.url] = await stream.read()

    def print_sink(self, ref: PageRef, rows: List[List[str]]) -> None:
        self.prints.append((ref, rows))

    def progress_sink(self, error: Optional[BaseException], completed: int, total: int) -> None:
        self.progress.append((error, completed, total))

    @property
    def errors(self) -> List[BaseException]:
        return [e for e, _, _ in self.progress if e is not None]

    def callbacks(self) -> dict:
        return dict(
            download_predicate=self.predicate,
            download_sink=self.sink,
            print_sink=self.print_sink,
            progress_sink=self.progress_sink,
        )


@pytest.fixture()
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture()
def link_selectors() -> Selectors:
    return Selectors.from_strings(links=["a[href]"], downloads=["img[src]"], titles=["h1"])


@pytest.fixture(autouse=True)
def restore_webdl_logger():
    """The CLI reconfigures the ``webdl`` logger; undo that after every test."""
    lg = logging.getLogger("webdl")
    handlers, level, propagate = list(lg.handlers), lg.level, lg.propagate
    yield
    for handler in list(lg.handlers):
        if handler not in handlers:
            handler.close()
    lg.handlers[:] = handlers
    lg.setLevel(level)
    lg.propagate = propagate
