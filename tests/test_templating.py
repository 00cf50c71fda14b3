# File: tests/test_templating.py
import pytest
from jinja2 import TemplateSyntaxError, UndefinedError

from webdl.crawler.models import PageRef
from webdl.templating import TemplateData, TemplateRenderer, alphanum, href, safe_path

PAGE = PageRef(url="https://x.test/gallery/", title="My: Holiday / 2020", index=4)
DOWNLOAD = PageRef(url="https://x.test/img/beach%20day.jpeg?size=big", parent=PAGE, title=PAGE.title, index=7)


def test_template_data_from_download_ref():
    data = TemplateData.from_ref(DOWNLOAD)
    assert data.url == DOWNLOAD.url
    assert data.referer == PAGE.url
    assert data.index == 7
    assert data.page_index == 4
    assert data.title == "My: Holiday / 2020"
    assert (data.name, data.ext) == ("beach day", "jpeg")


def test_template_data_without_extension_or_parent():
    data = TemplateData.from_ref(PageRef(url="https://x.test/files/README"))
    assert (data.name, data.ext, data.referer, data.page_index) == ("README", "", "", 0)


def test_filters():
    assert alphanum("My: Holiday / 2020") == "My- Holiday - 2020"
    assert alphanum("../../etc") == "etc"
    assert safe_path("../a/b\\c..") == "a-b-c"
    assert href("https://x.test/a/b", "c") == "https://x.test/a/c"
    assert href("https://x.test/", "http://[::1") == "https://invalid-href.url"


def test_default_download_path():
    renderer = TemplateRenderer()
    assert renderer.download_path(DOWNLOAD) == "000004 - My- Holiday - 2020/000007 - beach day.jpeg"


def test_custom_download_path():
    renderer = TemplateRenderer(download_format="{{ name|alphanum }}-{{ index }}.{{ ext }}")
    assert renderer.download_path(DOWNLOAD) == "beach day-7.jpeg"


def test_default_print_format():
    renderer = TemplateRenderer()
    out = renderer.print_rows(PAGE, [["a", "b"], ["c", ""]])
    assert out == "0\ta\n1\tb\n0\tc\n1\t\n"


def test_print_format_sees_page_fields():
    renderer = TemplateRenderer(print_format="{{ title }}|{{ page_index }}|{{ data|length }}{{ nl }}")
    assert renderer.print_rows(PAGE, [["a"]]) == "My: Holiday / 2020|4|1\n"


def test_print_format_href_global():
    renderer = TemplateRenderer(print_format="{% for row in data %}{{ href(url, row[0]) }}{{ nl }}{% endfor %}")
    assert renderer.print_rows(PAGE, [["/x"], ["y"]]) == "https://x.test/x\nhttps://x.test/gallery/y\n"


def test_syntax_error_at_construction():
    with pytest.raises(TemplateSyntaxError):
        TemplateRenderer(download_format="{{ name")


def test_unknown_field_raises():
    renderer = TemplateRenderer(download_format="{{ nope }}")
    with pytest.raises(UndefinedError):
        renderer.download_path(DOWNLOAD)
