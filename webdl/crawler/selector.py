# webdl/crawler/selector.py
"""
Parsing of compound selector expressions such as ``".content a[href], img[src]"``.

Each comma separated clause is a CSS query optionally followed by
``[attribute]``; the attribute names what to read from every matched element.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple

import soupsieve

from webdl.crawler.models import SelectorClause
from webdl.errors import InvalidSelector

__all__ = ("SelectorGroup", "Selectors", "parse_group", "parse_clause_list")

SelectorGroup = Tuple[SelectorClause, ...]

_ATTR_RE = re.compile(r"\[\s*([A-Za-z_][\w:.-]*)\s*\]$")
_CLOSING = {"(": ")", "[": "]"}


def _split_top_level(raw: str) -> List[str]:
    """Split on commas that are not nested in brackets, parens or quotes."""
    parts: List[str] = []
    stack: List[str] = []
    quote = ""
    start = 0
    for i, ch in enumerate(raw):
        if quote:
            if ch == quote:
                quote = ""
        elif ch in "\"'":
            quote = ch
        elif ch in _CLOSING:
            stack.append(_CLOSING[ch])
        elif stack and ch == stack[-1]:
            stack.pop()
        elif ch == "," and not stack:
            parts.append(raw[start:i])
            start = i + 1
    parts.append(raw[start:])
    return parts


def _parse_clause(text: str) -> SelectorClause:
    m = _ATTR_RE.search(text)
    if m is None or m.start() == 0:
        return SelectorClause(query=text)
    return SelectorClause(query=text[: m.start()].rstrip(), attribute=m.group(1))


def parse_group(raw: str) -> SelectorGroup:
    """Parse one raw selector string into its ordered clauses; empty clauses are dropped."""
    clauses = []
    for part in _split_top_level(raw):
        part = part.strip()
        if part:
            clauses.append(_parse_clause(part))
    return tuple(clauses)


def parse_clause_list(raw_list: Iterable[str]) -> SelectorGroup:
    """Parse every string of *raw_list* and concatenate the clauses in order."""
    clauses: List[SelectorClause] = []
    for raw in raw_list:
        clauses.extend(parse_group(raw))
    return tuple(clauses)


@dataclass(frozen=True, slots=True)
class Selectors:
    """The four selector groups a crawl is driven by."""

    links: SelectorGroup = ()
    downloads: SelectorGroup = ()
    titles: SelectorGroup = ()
    prints: SelectorGroup = ()

    @classmethod
    def from_strings(
        cls,
        *,
        links: Iterable[str] = (),
        downloads: Iterable[str] = (),
        titles: Iterable[str] = (),
        prints: Iterable[str] = (),
    ) -> Selectors:
        return cls(
            links=parse_clause_list(links),
            downloads=parse_clause_list(downloads),
            titles=parse_clause_list(titles),
            prints=parse_clause_list(prints),
        )

    def clauses(self) -> Iterable[SelectorClause]:
        for group in (self.links, self.downloads, self.titles, self.prints):
            yield from group

    def validate(self) -> Selectors:
        """Compile every query once so syntax errors surface before crawling."""
        for clause in self.clauses():
            try:
                soupsieve.compile(clause.query)
            except soupsieve.SelectorSyntaxError as exc:
                raise InvalidSelector(clause.query, str(exc).splitlines()[0]) from exc
        return self
