# File: webdl/report.py
"""webdl.report: JSON report of every print table collected during a crawl."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import List, Union

from webdl.crawler.models import PageRef

__all__ = ["PrintEntry", "PrintCollector", "render_json"]


@dataclass(slots=True)
class PrintEntry:
    """Print rows of one page."""

    url: str
    referer: str
    title: str
    rows: List[List[str]] = field(default_factory=list)


class PrintCollector:
    """Print sink that keeps the tables instead of writing them out."""

    def __init__(self) -> None:
        self.entries: List[PrintEntry] = []

    def __call__(self, ref: PageRef, rows: List[List[str]]) -> None:
        self.entries.append(
            PrintEntry(url=ref.url, referer=ref.referer, title=ref.title, rows=[list(r) for r in rows])
        )


def render_json(entries: List[PrintEntry], output_path: Union[Path, str]) -> Path:
    """
    Write *entries* as a JSON array to *output_path*.

    :param entries: collected print tables
    :param output_path: path to the JSON file
    :return: Path of the saved file
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", encoding="utf-8") as f:
        json.dump([asdict(e) for e in entries], f, ensure_ascii=False, indent=2)

    return output
