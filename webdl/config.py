# === FILE: webdl/config.py ===
"""
Loading and validation of webdl configuration.
Pydantic describes the schema; YAML and JSON files are accepted.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, List, Union

import yaml
from jinja2 import TemplateSyntaxError
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from webdl.crawler.fetcher import DEFAULT_USER_AGENT
from webdl.crawler.selector import Selectors
from webdl.errors import ConfigError
from webdl.templating import DEFAULT_DOWNLOAD_FORMAT, DEFAULT_PRINT_FORMAT, TemplateRenderer

__all__ = ["WebdlConfig", "load_config", "DEFAULT_CONFIG_PATH"]


class WebdlConfig(BaseModel):
    """Settings for one crawl."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    urls: List[str] = Field(default_factory=list, description="Seed URLs.")
    links: List[str] = Field(default_factory=list, description="Selectors for links to follow.")
    downloads: List[str] = Field(default_factory=list, description="Selectors for downloads.")
    prints: List[str] = Field(default_factory=list, description="Selectors printed to stdout.")
    titles: List[str] = Field(default_factory=list, description="Selectors for the page title.")

    concurrency: int = Field(8, ge=1, description="Number of concurrent workers.")
    user_agent: str = Field(DEFAULT_USER_AGENT, min_length=1, description="User-Agent header.")
    timeout: float = Field(30.0, gt=0, description="Timeout per request (seconds).")
    retry_times: int = Field(2, ge=0, description="Retries on 429/5xx and connection errors.")
    retry_backoff: float = Field(0.5, ge=0, description="Base of the exponential backoff (seconds).")
    progress_interval: float = Field(0.05, ge=0, description="Minimum seconds between progress ticks.")

    reverse_links: bool = Field(False, description="Number pages found on a page in reverse.")
    reverse_downloads: bool = Field(False, description="Number downloads found on a page in reverse.")

    directory: Path = Field(Path("."), description="Destination directory.")
    download_format: str = Field(DEFAULT_DOWNLOAD_FORMAT, description="Jinja2 template of download paths.")
    print_format: str = Field(DEFAULT_PRINT_FORMAT, description="Jinja2 template of printed rows.")

    dry_run: bool = Field(False, description="Print what would be downloaded instead.")
    no_progress: bool = Field(False, description="Do not report progress.")

    @field_validator("urls", "links", "downloads", "prints", "titles", mode="before")
    @classmethod
    def _wrap_single(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode="after")
    def _check_templates(self) -> WebdlConfig:
        try:
            TemplateRenderer(self.download_format, self.print_format)
        except TemplateSyntaxError as exc:
            raise ValueError(f"invalid template: {exc}") from exc
        return self

    def selectors(self) -> Selectors:
        """Parse and validate the four selector lists."""
        return Selectors.from_strings(
            links=self.links,
            downloads=self.downloads,
            titles=self.titles,
            prints=self.prints,
        ).validate()

    def renderer(self) -> TemplateRenderer:
        return TemplateRenderer(self.download_format, self.print_format)

    def with_overrides(self, **overrides: Any) -> WebdlConfig:
        """Return a validated copy with every non-None / non-empty override applied."""
        data = self.model_dump()
        for key, value in overrides.items():
            if value is None or value == () or value == []:
                continue
            data[key] = list(value) if isinstance(value, tuple) else value
        return WebdlConfig(**data)


DEFAULT_CONFIG_PATH = Path("webdl.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of YAML must be a mapping, got {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Top level of JSON must be a mapping, got {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> WebdlConfig:
    """
    Read YAML or JSON and return a validated WebdlConfig.
    Without a path, ``webdl.yaml`` in the working directory is used when it
    exists; otherwise the defaults apply.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.is_file():
            return WebdlConfig()
        path_obj = DEFAULT_CONFIG_PATH
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ConfigError(f"Unsupported config format: {suffix}")

    return WebdlConfig(**data)

