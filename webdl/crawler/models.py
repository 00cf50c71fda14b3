# webdl/crawler/models.py
"""
Data models for the webdl crawler.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Set

__all__ = ("SelectorClause", "PageRef", "Page", "Task", "VisitedSet", "CrawlStats")


@dataclass(frozen=True, slots=True)
class SelectorClause:
    """One CSS query plus the attribute to read (``None`` → element text)."""

    query: str
    attribute: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PageRef:
    """Where a task points to and how it was reached.

    ``parent`` is the page the URL was discovered on. Nodes are immutable and
    shared by all children of a page, so the chain only ever points backwards.
    """

    url: str
    parent: Optional[PageRef] = None
    title: str = ""
    index: int = 0

    @property
    def referer(self) -> str:
        return self.parent.url if self.parent is not None else ""

    @property
    def depth(self) -> int:
        depth, node = 0, self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth


@dataclass(slots=True)
class Page:
    """Everything extracted from one fetched HTML page."""

    ref: PageRef
    links: List[str] = field(default_factory=list)
    downloads: List[str] = field(default_factory=list)
    prints: List[List[str]] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Task:
    """A unit of work in the frontier: crawl a page, or download a resource."""

    ref: PageRef
    download: bool = False


class VisitedSet:
    """URLs already claimed by a worker, keyed by their literal string."""

    __slots__ = ("_urls",)

    def __init__(self) -> None:
        self._urls: Set[str] = set()

    def add(self, url: str) -> bool:
        """Insert *url*; return False if it was already present.

        There is no ``await`` between the membership test and the insert, so
        on the event loop this is a single indivisible step.
        """
        if url in self._urls:
            return False
        self._urls.add(url)
        return True

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __len__(self) -> int:
        return len(self._urls)


@dataclass(slots=True)
class CrawlStats:
    """Counters collected during one :meth:`Crawler.run`."""

    pages: int = 0
    downloads: int = 0
    failed: int = 0
    skipped: int = 0
    completed: int = 0
    total: int = 0
    visited: int = 0
