# === FILE: webdl/crawler/crawler.py ===
"""
Recursive crawl engine.

A fixed pool of worker coroutines pulls :class:`Task` objects from a bounded
queue. Page tasks are fetched and run through the extractor; the links and
downloads found become new tasks, pushed by detached feeder tasks so that a
full queue never blocks a worker. Every URL is processed at most once.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Set
from urllib.parse import urlsplit

from aiohttp import ClientError, StreamReader

from webdl.crawler.extractor import extract
from webdl.crawler.fetcher import DEFAULT_USER_AGENT, Fetcher
from webdl.crawler.models import CrawlStats, Page, PageRef, Task, VisitedSet
from webdl.crawler.selector import Selectors
from webdl.errors import CrawlCancelled, ExtractError, FetchError, InvalidSeedError

__all__ = (
    "Crawler",
    "crawl",
    "DownloadPredicate",
    "DownloadSink",
    "PrintSink",
    "ProgressSink",
)

DownloadPredicate = Callable[[PageRef], bool]
DownloadSink = Callable[[PageRef, StreamReader], Awaitable[None]]
PrintSink = Callable[[PageRef, List[List[str]]], None]
ProgressSink = Callable[[Optional[BaseException], int, int], None]

_TASK_ERRORS = (FetchError, ExtractError, ClientError, asyncio.TimeoutError)

logger = logging.getLogger("webdl.crawler")


def _seed_refs(seeds: Sequence[str]) -> List[PageRef]:
    refs: List[PageRef] = []
    for index, url in enumerate(seeds):
        try:
            parts = urlsplit(url)
            parts.port
        except ValueError as exc:
            raise InvalidSeedError(url, str(exc)) from exc
        if not parts.scheme or not parts.netloc:
            raise InvalidSeedError(url, "missing scheme or host")
        refs.append(PageRef(url=url, index=index))
    return refs


class Crawler:
    """Crawls from a set of seed URLs according to a :class:`Selectors` set.

    Collaborators:

    * ``download_predicate(ref) -> bool`` – whether a found download is fetched.
    * ``await download_sink(ref, stream)`` – persists a download; raising only
      fails that one download.
    * ``print_sink(ref, rows)`` – receives the print table of a page.
    * ``progress_sink(error, completed, total)`` – progress ticks and task errors.

    An exception raised by the predicate, the print sink or the progress sink
    aborts the whole run, as does :meth:`cancel`.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        selectors: Selectors,
        *,
        concurrency: int = 8,
        download_predicate: Optional[DownloadPredicate] = None,
        download_sink: Optional[DownloadSink] = None,
        print_sink: Optional[PrintSink] = None,
        progress_sink: Optional[ProgressSink] = None,
        progress_interval: float = 0.05,
        reverse_links: bool = False,
        reverse_downloads: bool = False,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.fetcher = fetcher
        self.selectors = selectors.validate()
        self.concurrency = concurrency
        self.download_predicate = download_predicate
        self.download_sink = download_sink
        self.print_sink = print_sink
        self.progress_sink = progress_sink
        self.progress_interval = progress_interval
        self.reverse_links = reverse_links
        self.reverse_downloads = reverse_downloads

        self.visited = VisitedSet()
        self.stats = CrawlStats()
        self._outstanding = 0
        self._error: Optional[BaseException] = None
        self._finished: Optional[asyncio.Event] = None
        self._queue: Optional[asyncio.Queue[Task]] = None
        self._feeders: Set[asyncio.Task] = set()
        self._last_progress = float("-inf")

    @property
    def outstanding(self) -> int:
        return self._outstanding

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    async def run(self, seeds: Sequence[str]) -> CrawlStats:
        """Crawl until every reachable task is done; raise the first fatal error."""
        refs = _seed_refs(seeds)

        self.visited = VisitedSet()
        self.stats = CrawlStats(total=len(refs))
        self._outstanding = len(refs)
        self._error = None
        self._finished = asyncio.Event()
        self._last_progress = float("-inf")
        self._queue = asyncio.Queue(maxsize=self.concurrency)

        logger.info("Crawl started: %d seed(s), %d worker(s)", len(refs), self.concurrency)
        start = time.monotonic()
        if not refs:
            self._finished.set()

        workers = [
            asyncio.create_task(self._worker(self._queue), name=f"webdl-worker-{i}")
            for i in range(self.concurrency)
        ]
        if refs:
            self._spawn([Task(ref) for ref in refs])
        try:
            await self._finished.wait()
        finally:
            pending = [*workers, *self._feeders]
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self._feeders.clear()
            self.stats.visited = len(self.visited)
            self._report(None, force=True)

        if self._error is not None:
            logger.error("Crawl aborted: %s", self._error)
            raise self._error

        duration = time.monotonic() - start
        logger.info(
            "Crawl finished: %d page(s), %d download(s), %d failed in %.2f s",
            self.stats.pages,
            self.stats.downloads,
            self.stats.failed,
            duration,
        )
        return self.stats

    def cancel(self, error: Optional[BaseException] = None) -> None:
        """Stop the running crawl; the first recorded error is what :meth:`run` raises."""
        if self._error is None:
            self._error = error if error is not None else CrawlCancelled("crawl cancelled")
        if self._finished is not None:
            self._finished.set()

    # ------------------------------------------------------------------ #
    # Workers                                                            #
    # ------------------------------------------------------------------ #

    async def _worker(self, queue: asyncio.Queue[Task]) -> None:
        while True:
            task = await queue.get()
            try:
                if self._error is not None:
                    return
                await self._process(task)
            except Exception as exc:
                logger.exception("Worker crashed on %s", task.ref.url)
                self.cancel(exc)
                return
            finally:
                queue.task_done()

    async def _process(self, task: Task) -> None:
        ref = task.ref
        if not self.visited.add(ref.url):
            self.stats.skipped += 1
            self._complete(None)
            return

        if task.download:
            error = await self._download(ref)
        else:
            error = await self._crawl_page(ref)

        if error is not None:
            self.stats.failed += 1
            logger.debug("Task failed for %s: %s", ref.url, error)
        self._complete(error)

    async def _download(self, ref: PageRef) -> Optional[BaseException]:
        if self.download_predicate is None or self.download_sink is None:
            self.stats.skipped += 1
            return None
        try:
            wanted = self.download_predicate(ref)
        except Exception as exc:
            self.cancel(exc)
            return None
        if not wanted:
            self.stats.skipped += 1
            return None

        try:
            async with self.fetcher.stream(ref) as body:
                await self.download_sink(ref, body)
        except Exception as exc:
            return exc
        self.stats.downloads += 1
        return None

    async def _crawl_page(self, ref: PageRef) -> Optional[BaseException]:
        try:
            body = await self.fetcher.read(ref)
            page = extract(body, ref, self.selectors)
        except _TASK_ERRORS as exc:
            return exc

        self.stats.pages += 1
        children = len(page.links) + len(page.downloads)
        self._outstanding += children
        self.stats.total += children

        if page.prints and self.print_sink is not None:
            try:
                self.print_sink(page.ref, page.prints)
            except Exception as exc:
                self.cancel(exc)
                return None

        if children:
            self._spawn(self._children(page))
        return None

    def _children(self, page: Page) -> List[Task]:
        parent = page.ref
        tasks: List[Task] = []
        count = len(page.downloads)
        for i, url in enumerate(page.downloads):
            index = count - i - 1 if self.reverse_downloads else i
            ref = PageRef(url=url, parent=parent, title=parent.title, index=index)
            tasks.append(Task(ref, download=True))
        count = len(page.links)
        for i, url in enumerate(page.links):
            index = count - i - 1 if self.reverse_links else i
            tasks.append(Task(PageRef(url=url, parent=parent, index=index)))
        return tasks

    # ------------------------------------------------------------------ #
    # Frontier & progress                                                #
    # ------------------------------------------------------------------ #

    def _spawn(self, tasks: List[Task]) -> None:
        feeder = asyncio.create_task(self._feed(tasks), name="webdl-feeder")
        self._feeders.add(feeder)
        feeder.add_done_callback(self._feeders.discard)

    async def _feed(self, tasks: List[Task]) -> None:
        assert self._queue is not None
        for task in tasks:
            await self._queue.put(task)

    def _complete(self, error: Optional[BaseException]) -> None:
        self._outstanding -= 1
        self.stats.completed += 1
        self._report(error)
        if self._outstanding == 0 and self._finished is not None:
            self._finished.set()

    def _report(self, error: Optional[BaseException], force: bool = False) -> None:
        if self.progress_sink is None or isinstance(error, (asyncio.CancelledError, CrawlCancelled)):
            return
        now = time.monotonic()
        if not (force or error is not None or now - self._last_progress >= self.progress_interval):
            return
        self._last_progress = now
        try:
            self.progress_sink(error, self.stats.completed, self.stats.total)
        except Exception as exc:
            self.cancel(exc)


async def crawl(
    seeds: Sequence[str],
    selectors: Selectors,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float = 30.0,
    retry_times: int = 0,
    retry_backoff: float = 0.5,
    **options,
) -> CrawlStats:
    """Open a :class:`Fetcher` and run a :class:`Crawler` with *options* on *seeds*."""
    async with Fetcher(
        user_agent=user_agent,
        timeout=timeout,
        retry_times=retry_times,
        retry_backoff=retry_backoff,
    ) as fetcher:
        return await Crawler(fetcher, selectors, **options).run(seeds)
