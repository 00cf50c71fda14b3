# File: tests/test_engine.py
import json

import pytest

from webdl.config import WebdlConfig
from webdl.engine import Engine, ProgressPrinter
from webdl.errors import CrawlCancelled
from webdl.report import PrintCollector, render_json
from webdl.storage import TMP_SUFFIX

SITE = {
    "/": '<h1>Home</h1><a href="/album">album</a><span class="k">name</span><span class="v">home</span>',
    "/album": '<h1>Summer  Album</h1><img src="/img/one.jpg"><img src="/img/two.png">',
    "/img/one.jpg": b"ONE",
    "/img/two.png": b"TWO",
}


class Echo:
    def __init__(self):
        self.out = []

    def __call__(self, message="", nl=True, **kw):
        self.out.append(message)


def config_for(base, tmp_path, **kw):
    return WebdlConfig(
        urls=[f"{base}/"],
        links=["a[href]"],
        downloads=["img[src]"],
        titles=["h1"],
        prints=[".k, .v"],
        directory=tmp_path,
        no_progress=True,
        retry_times=0,
        **kw,
    )


@pytest.mark.asyncio()
async def test_engine_downloads_and_prints(serve, tmp_path):
    base, _ = await serve(SITE)
    echo = Echo()
    stats = await Engine(config_for(base, tmp_path), echo=echo).run()

    assert stats.pages == 2
    assert stats.downloads == 2
    album_dir = tmp_path / "000000 - Summer Album"
    assert (album_dir / "000000 - one.jpg").read_bytes() == b"ONE"
    assert (album_dir / "000001 - two.png").read_bytes() == b"TWO"
    assert echo.out == ["0\tname\n1\thome\n"]
    assert list(tmp_path.rglob(f"*{TMP_SUFFIX}")) == []


@pytest.mark.asyncio()
async def test_engine_second_run_skips_existing(serve, tmp_path):
    base, log = await serve(SITE)
    await Engine(config_for(base, tmp_path), echo=Echo()).run()
    log.clear()
    stats = await Engine(config_for(base, tmp_path), echo=Echo()).run()

    assert stats.downloads == 0
    assert not any(path.startswith("/img/") for path, _ in log)


@pytest.mark.asyncio()
async def test_engine_dry_run(serve, tmp_path):
    base, log = await serve(SITE)
    echo = Echo()
    stats = await Engine(config_for(base, tmp_path, dry_run=True), echo=echo).run()

    assert stats.downloads == 0
    assert sum("Download:" in line for line in echo.out) == 2
    assert not any(path.startswith("/img/") for path, _ in log)
    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio()
async def test_engine_collects_prints_for_json(serve, tmp_path):
    base, _ = await serve(SITE)
    collector = PrintCollector()
    echo = Echo()
    await Engine(config_for(base, tmp_path, dry_run=True), collector=collector, echo=echo).run()

    [entry] = collector.entries
    assert entry.url == f"{base}/"
    assert entry.title == "Home"
    assert entry.rows == [["name", "home"]]

    out = render_json(collector.entries, tmp_path / "report" / "prints.json")
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data == [{"url": f"{base}/", "referer": "", "title": "Home", "rows": [["name", "home"]]}]


@pytest.mark.asyncio()
async def test_engine_template_error_aborts(serve, tmp_path):
    base, _ = await serve(SITE)
    cfg = config_for(base, tmp_path, download_format="{{ missing_field }}")
    with pytest.raises(Exception, match="missing_field"):
        await Engine(cfg, echo=Echo()).run()


@pytest.mark.asyncio()
async def test_engine_cancel_via_crawler(serve, tmp_path):
    base, _ = await serve(SITE)
    engine = Engine(config_for(base, tmp_path), echo=Echo())

    def cancel_on_print(ref, rows):
        engine.crawler.cancel()

    engine.print_rows = cancel_on_print
    with pytest.raises(CrawlCancelled):
        await engine.run()


def test_progress_printer(capsys):
    printer = ProgressPrinter(line_mode=True)
    printer(None, 1, 4)
    printer(None, 0, 0)
    assert capsys.readouterr().err == "1/4 [25%]\n0/0 [100%]\n"


def test_progress_printer_disabled(capsys):
    printer = ProgressPrinter(enabled=False)
    printer(None, 1, 4)
    printer.finish()
    assert capsys.readouterr().err == ""


@pytest.mark.asyncio()
async def test_engine_escaping_download_is_a_task_failure(serve, tmp_path):
    base, _ = await serve(
        {
            "/": '<h1>Home</h1><img src="/img/..%2F..%2Fevil.png"><img src="/img/ok.png">',
            "/img/ok.png": b"OK",
        }
    )
    out = tmp_path / "a" / "out"
    cfg = config_for(base, out, download_format="{{ name }}.{{ ext }}")
    stats = await Engine(cfg, echo=Echo()).run()

    assert stats.downloads == 1
    assert stats.failed == 1
    assert (out / "ok.png").read_bytes() == b"OK"
    assert list(tmp_path.rglob("evil.png")) == []
