# File: webdl/crawler/__init__.py
"""webdl.crawler: the recursive crawl/extract engine."""

from .crawler import Crawler, crawl
from .extractor import extract, parse_document
from .fetcher import DEFAULT_USER_AGENT, Fetcher
from .href import resolve
from .models import CrawlStats, Page, PageRef, SelectorClause, Task, VisitedSet
from .selector import Selectors, parse_clause_list, parse_group

__all__ = [
    "Crawler",
    "crawl",
    "extract",
    "parse_document",
    "Fetcher",
    "DEFAULT_USER_AGENT",
    "resolve",
    "CrawlStats",
    "Page",
    "PageRef",
    "SelectorClause",
    "Task",
    "VisitedSet",
    "Selectors",
    "parse_group",
    "parse_clause_list",
]
