"""Template rendering tests."""

import pytest
from pydantic import BaseModel

from stepwright.errors import TemplateResolutionError
from stepwright.templates import referenced_names, render, resolve_reference, to_text


class Page(BaseModel):
    url: str
    rank: int


NAMESPACE = {
    "query": "best running shoes",
    "domain": "example.com",
    "fetch": {"pages": [{"url": "a.com", "rank": 1}, {"url": "b.com", "rank": 2}]},
    "count": 3,
    "page": Page(url="c.com", rank=7),
}


def test_whole_placeholder_returns_raw_value():
    assert render("{{ fetch }}", NAMESPACE) == NAMESPACE["fetch"]
    assert render("{{count}}", NAMESPACE) == 3
    assert render("{{ fetch.pages.1.url }}", NAMESPACE) == "b.com"


def test_embedded_placeholders_are_rendered_as_text():
    rendered = render("Top {{ count }} for {{ query }}: {{ fetch.pages.0 }}", NAMESPACE)
    assert rendered == 'Top 3 for best running shoes: {"url": "a.com", "rank": 1}'


def test_render_walks_nested_structures():
    template = {
        "domain": "{{ domain }}",
        "urls": ["{{ fetch.pages.0.url }}", "{{ fetch.pages.1.url }}"],
        "limit": 10,
        "note": None,
    }
    assert render(template, NAMESPACE) == {
        "domain": "example.com",
        "urls": ["a.com", "b.com"],
        "limit": 10,
        "note": None,
    }


def test_attribute_lookup_on_models():
    assert resolve_reference("page.rank", NAMESPACE) == 7
    assert render("see {{ page }}", NAMESPACE) == 'see {"url": "c.com", "rank": 7}'


def test_unknown_root_raises():
    with pytest.raises(TemplateResolutionError) as exc_info:
        render("Summarize {{ missing }}", NAMESPACE)
    assert exc_info.value.reference == "missing"
    assert "'missing' is not defined" in str(exc_info.value)


@pytest.mark.parametrize(
    "reference",
    ["fetch.nothing", "fetch.pages.5", "fetch.pages.first", "page.__class__", "count.real.x"],
)
def test_unresolvable_paths_raise(reference):
    with pytest.raises(TemplateResolutionError):
        resolve_reference(reference, NAMESPACE)


def test_text_without_placeholders_is_unchanged():
    assert render("plain text", {}) == "plain text"
    assert render("", {}) == ""
    assert render(42, {}) == 42


def test_to_text():
    assert to_text("héllo") == "héllo"
    assert to_text({"a": [1, 2]}) == '{"a": [1, 2]}'
    assert to_text(None) == "null"
    assert to_text(Page(url="x", rank=1)) == '{"url": "x", "rank": 1}'


def test_referenced_names_in_first_seen_order():
    template = {
        "a": "{{ fetch.pages }} and {{ query }}",
        "b": ["{{ fetch }}", "{{ domain }}"],
    }
    assert referenced_names(template) == ["fetch", "query", "domain"]
    assert referenced_names("no refs") == []
