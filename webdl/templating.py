# File: webdl/templating.py
"""webdl.templating: Jinja2 rendering of download destinations and print output."""

from __future__ import annotations

import posixpath
import re
from dataclasses import asdict, dataclass, field
from typing import Any, List
from urllib.parse import unquote, urlsplit

from jinja2 import Environment, StrictUndefined, Template

from webdl.crawler.href import resolve
from webdl.crawler.models import PageRef
from webdl.errors import InvalidHref

__all__ = [
    "DEFAULT_DOWNLOAD_FORMAT",
    "DEFAULT_PRINT_FORMAT",
    "TemplateData",
    "TemplateRenderer",
    "make_environment",
    "alphanum",
    "safe_path",
    "href",
]

DEFAULT_DOWNLOAD_FORMAT = (
    '{{ "%06d"|format(page_index) }} - {{ title|alphanum }}/'
    '{{ "%06d"|format(index) }} - {{ name|alphanum }}.{{ ext|alphanum }}'
)
DEFAULT_PRINT_FORMAT = (
    "{% for row in data %}{% for value in row %}"
    "{{ loop.index0 }}{{ tab }}{{ value }}{{ nl }}"
    "{% endfor %}{% endfor %}"
)

_ALPHANUM_RE = re.compile(r"[^a-z0-9\-_ ]+", re.IGNORECASE)
_SLASH_RE = re.compile(r"^\.\.+|\\+|/+|\.\.+$")


def alphanum(value: Any) -> str:
    """Replace every run of unsafe characters with ``-``."""
    return _ALPHANUM_RE.sub("-", str(value)).strip("-")


def safe_path(value: Any) -> str:
    """Less strict than :func:`alphanum`: only path separators and ``..`` go."""
    return _SLASH_RE.sub("-", str(value)).strip("-")


def href(base: str, ref: str) -> str:
    try:
        return resolve(base, ref)
    except InvalidHref:
        return "https://invalid-href.url"


@dataclass(slots=True)
class TemplateData:
    """Fields available to the download and print templates."""

    url: str
    referer: str = ""
    index: int = 0
    page_index: int = 0
    title: str = ""
    name: str = ""
    ext: str = ""
    data: List[List[str]] = field(default_factory=list)

    @classmethod
    def from_ref(cls, ref: PageRef) -> TemplateData:
        filename = unquote(posixpath.basename(urlsplit(ref.url).path)).strip()
        name, dot, ext = filename.rpartition(".")
        if not dot:
            name, ext = filename, ""
        parent = ref.parent
        return cls(
            url=ref.url,
            referer=parent.url if parent else "",
            index=ref.index,
            page_index=parent.index if parent else 0,
            title=(parent.title if parent else "").strip(),
            name=name,
            ext=ext,
        )


def make_environment() -> Environment:
    env = Environment(
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.filters["alphanum"] = alphanum
    env.filters["path"] = safe_path
    env.globals["href"] = href
    env.globals["nl"] = "\n"
    env.globals["tab"] = "\t"
    return env


class TemplateRenderer:
    """Compiled download/print templates. Syntax errors raise at construction."""

    def __init__(
        self,
        download_format: str = DEFAULT_DOWNLOAD_FORMAT,
        print_format: str = DEFAULT_PRINT_FORMAT,
    ) -> None:
        env = make_environment()
        self.download_template: Template = env.from_string(download_format)
        self.print_template: Template = env.from_string(print_format)

    def download_path(self, ref: PageRef) -> str:
        return self.download_template.render(**asdict(TemplateData.from_ref(ref))).strip()

    def print_rows(self, ref: PageRef, rows: List[List[str]]) -> str:
        data = TemplateData.from_ref(ref)
        data.data = rows
        # a printed page is the "current page", not a download found on it
        data.title = ref.title
        data.page_index = ref.index
        return self.print_template.render(**asdict(data))
