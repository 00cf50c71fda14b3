# File: webdl/engine.py
"""webdl.engine: wires configuration, templates and storage to the crawler."""

from __future__ import annotations

import asyncio
import signal
from typing import Callable, List, Optional

import click

from webdl.config import WebdlConfig
from webdl.crawler.crawler import Crawler
from webdl.crawler.fetcher import Fetcher
from webdl.crawler.models import CrawlStats, PageRef
from webdl.logger import logger
from webdl.report import PrintCollector
from webdl.storage import DownloadStore
from webdl.templating import TemplateRenderer

__all__ = ["Engine", "ProgressPrinter"]

_STOP_SIGNALS = tuple(
    sig for sig in (getattr(signal, name, None) for name in ("SIGTERM", "SIGHUP", "SIGQUIT")) if sig
)


class ProgressPrinter:
    """Progress sink writing ``done/total [pct%]`` to stderr."""

    def __init__(self, *, enabled: bool = True, line_mode: bool = False) -> None:
        self.enabled = enabled
        self.line_mode = line_mode
        self._dirty = False

    def __call__(self, error: Optional[BaseException], completed: int, total: int) -> None:
        if error is not None:
            if self._dirty:
                click.echo(err=True)
                self._dirty = False
            logger.warning("%s", error)
            return
        if not self.enabled:
            return
        pct = max(0, int(100 * completed / total)) if total else 100
        if self.line_mode:
            click.echo(f"{completed}/{total} [{pct}%]", err=True)
            return
        click.echo(f"\r\033[K{completed}/{total} [{pct}%]", err=True, nl=False)
        self._dirty = True

    def finish(self) -> None:
        if self._dirty:
            click.echo(err=True)
            self._dirty = False


class Engine:
    """Facade for the CLI and tests: build the collaborators and run one crawl."""

    def __init__(
        self,
        config: WebdlConfig,
        *,
        collector: Optional[PrintCollector] = None,
        echo: Callable[..., None] = click.echo,
    ) -> None:
        self.config = config
        self.collector = collector
        self.echo = echo
        self.renderer: TemplateRenderer = config.renderer()
        self.store = DownloadStore(
            config.directory,
            self.renderer,
            dry_run=config.dry_run,
            echo=echo,
        )
        self.progress = ProgressPrinter(enabled=not config.no_progress, line_mode=config.dry_run)
        self.crawler: Optional[Crawler] = None

    def print_rows(self, ref: PageRef, rows: List[List[str]]) -> None:
        if self.collector is not None:
            self.collector(ref, rows)
            return
        self.echo(self.renderer.print_rows(ref, rows), nl=False)

    async def run(self) -> CrawlStats:
        cfg = self.config
        selectors = cfg.selectors()
        logger.info("Crawling %d URL(s) into %s", len(cfg.urls), cfg.directory)
        async with Fetcher(
            user_agent=cfg.user_agent,
            timeout=cfg.timeout,
            retry_times=cfg.retry_times,
            retry_backoff=cfg.retry_backoff,
        ) as fetcher:
            self.crawler = Crawler(
                fetcher,
                selectors,
                concurrency=cfg.concurrency,
                download_predicate=self.store.should_download,
                download_sink=self.store.save,
                print_sink=self.print_rows,
                progress_sink=self.progress,
                progress_interval=cfg.progress_interval,
                reverse_links=cfg.reverse_links,
                reverse_downloads=cfg.reverse_downloads,
            )
            installed = self._install_signal_handlers(self.crawler)
            try:
                return await self.crawler.run(cfg.urls)
            finally:
                self._remove_signal_handlers(installed)
                self.progress.finish()
                self.store.cleanup()

    def start(self) -> CrawlStats:
        """Run the crawl on a fresh event loop."""
        return asyncio.run(self.run())

    @staticmethod
    def _install_signal_handlers(crawler: Crawler) -> List[signal.Signals]:
        loop = asyncio.get_running_loop()
        installed = []
        for sig in _STOP_SIGNALS:
            try:
                loop.add_signal_handler(sig, crawler.cancel)
            except (NotImplementedError, RuntimeError, ValueError):
                continue
            installed.append(sig)
        return installed

    @staticmethod
    def _remove_signal_handlers(installed: List[signal.Signals]) -> None:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)
