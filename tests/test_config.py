# File: tests/test_config.py
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from webdl.config import WebdlConfig, load_config
from webdl.crawler.models import SelectorClause
from webdl.errors import ConfigError, InvalidSelector


def write_file(tmp_path: Path, content: str, suffix: str) -> Path:
    path = tmp_path / f"config{suffix}"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "content,suffix,expect_exc",
    [
        ("urls: ['https://example.com/']\nlinks: 'a[href]'", ".yaml", None),
        (json.dumps({"urls": ["https://example.com/"], "links": ["a[href]"]}), ".json", None),
        ("concurrency: 0", ".yaml", ValidationError),
        ("unknown_key: 1", ".yaml", ValidationError),
        ("download_format: '{{ name'", ".yaml", ValidationError),
        ("not: a: mapping", ".yaml", ConfigError),
        ("- a\n- b", ".yaml", TypeError),
        ("{broken", ".json", ConfigError),
        ("a = 1", ".toml", ConfigError),
    ],
)
def test_load_config_variants(tmp_path, content, suffix, expect_exc):
    cfg_path = write_file(tmp_path, content, suffix)
    if expect_exc:
        with pytest.raises(expect_exc):
            load_config(cfg_path)
    else:
        cfg = load_config(cfg_path)
        assert isinstance(cfg, WebdlConfig)
        assert cfg.urls == ["https://example.com/"]
        assert cfg.selectors().links == (SelectorClause("a", "href"),)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_load_config_default(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_config(None) == WebdlConfig()
    Path("webdl.yaml").write_text("concurrency: 3\n", encoding="utf-8")
    assert load_config(None).concurrency == 3


def test_defaults():
    cfg = WebdlConfig()
    assert cfg.concurrency == 8
    assert cfg.directory == Path(".")
    assert not cfg.dry_run


def test_with_overrides_skips_unset_values():
    cfg = WebdlConfig(concurrency=3, links=["a[href]"])
    new = cfg.with_overrides(concurrency=None, links=(), downloads=("img[src]",), dry_run=True)
    assert new.concurrency == 3
    assert new.links == ["a[href]"]
    assert new.downloads == ["img[src]"]
    assert new.dry_run is True
    assert cfg.dry_run is False


def test_invalid_selector_surfaces_from_selectors():
    with pytest.raises(InvalidSelector):
        WebdlConfig(links=["a[href"]).selectors()
