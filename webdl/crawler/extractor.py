# webdl/crawler/extractor.py
"""
Apply a :class:`~webdl.crawler.selector.Selectors` set to a parsed HTML document.
"""
from __future__ import annotations

import re
from typing import Iterator, List, Tuple, Union

import soupsieve
from bs4 import BeautifulSoup
from bs4.builder import ParserRejectedMarkup
from bs4.element import Tag

from webdl.crawler.href import resolve
from webdl.crawler.models import Page, PageRef
from webdl.crawler.selector import SelectorGroup, Selectors
from webdl.errors import ExtractError, InvalidHref

__all__ = ("extract", "parse_document")

Document = Union[BeautifulSoup, str, bytes]

_MULTISPACE_RE = re.compile(r"\s+")


def parse_document(markup: Union[str, bytes]) -> BeautifulSoup:
    try:
        return BeautifulSoup(markup, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ExtractError(f"unparseable document: {exc}") from exc


def _value(tag: Tag, attribute: str | None) -> str | None:
    if attribute is None:
        return tag.get_text()
    value = tag.get(attribute)
    if value is None:
        return None
    # multi-valued attributes (class, rel, ...) come back as lists
    if isinstance(value, list):
        return " ".join(value)
    return str(value)


def _matches(soup: BeautifulSoup, group: SelectorGroup) -> Iterator[Tuple[int, str]]:
    """Yield ``(clause_index, value)`` for every match, clause by clause."""
    for column, clause in enumerate(group):
        try:
            tags = soup.select(clause.query)
        except soupsieve.SelectorSyntaxError as exc:
            raise ExtractError(f"invalid selector {clause.query!r}: {exc}") from exc
        for tag in tags:
            value = _value(tag, clause.attribute)
            if value is not None:
                yield column, value


def _collect_urls(base: str, soup: BeautifulSoup, group: SelectorGroup) -> List[str]:
    urls: List[str] = []
    for _, value in _matches(soup, group):
        try:
            urls.append(resolve(base, value.strip()))
        except InvalidHref:
            continue
    return urls


def _title(soup: BeautifulSoup, group: SelectorGroup) -> str:
    for _, value in _matches(soup, group):
        title = _MULTISPACE_RE.sub(" ", value).strip()
        if title:
            return title
    return ""


def _print_rows(soup: BeautifulSoup, group: SelectorGroup) -> List[List[str]]:
    """Zip the clauses of *group* by match ordinal: k-th match of clause i → rows[k][i]."""
    rows: List[List[str]] = []
    seen = [0] * len(group)
    for column, value in _matches(soup, group):
        row = seen[column]
        seen[column] += 1
        if row == len(rows):
            rows.append([""] * len(group))
        rows[row][column] = value
    return rows


def extract(document: Document, ref: PageRef, selectors: Selectors) -> Page:
    """
    Run *selectors* against *document* (fetched from ``ref.url``).

    Link and download values are resolved against the page URL; values that
    do not resolve are dropped. The returned page's ``ref`` carries the title.
    """
    soup = document if isinstance(document, BeautifulSoup) else parse_document(document)

    page = Page(ref=ref)
    page.links = _collect_urls(ref.url, soup, selectors.links)
    page.downloads = _collect_urls(ref.url, soup, selectors.downloads)
    title = _title(soup, selectors.titles)
    if title:
        page.ref = PageRef(url=ref.url, parent=ref.parent, title=title, index=ref.index)
    page.prints = _print_rows(soup, selectors.prints)
    return page
