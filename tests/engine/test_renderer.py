from datetime import date
from xml.etree import ElementTree

import pytest

from quire.core.assembler import assemble
from quire.core.config import SiteSettings
from quire.core.exceptions import UnresolvedReferenceError
from quire.core.types import CollectionKind
from quire.engine.renderer import Renderer
from tests.helpers.content import make_post, make_project

ATOM = "{http://www.w3.org/2005/Atom}"


@pytest.fixture
def collections():
    return assemble(
        [
            make_post("older", day=date(2025, 6, 1), tags=["Python"], body="Older post."),
            make_post(
                "newer",
                day=date(2026, 2, 25),
                tags=["python", "Site News"],
                related=["projects/quire"],
                body="Built with [[projects/quire]]. See also [[older|the old post]].",
            ),
            make_project("quire", order=5, body="The *builder*."),
            make_project("notes", order=1),
            make_project("later", order=7),
        ]
    )


def page(result, path):
    return result.pages[path].decode("utf-8")


def test_renders_every_page(collections):
    result = Renderer(SiteSettings()).render(collections)

    assert list(result.pages) == [
        "feed.xml",
        "index.html",
        "posts/index.html",
        "posts/newer/index.html",
        "posts/older/index.html",
        "projects/index.html",
        "projects/later/index.html",
        "projects/notes/index.html",
        "projects/quire/index.html",
        "tags/index.html",
        "tags/python/index.html",
        "tags/site-news/index.html",
    ]


def test_rendering_is_deterministic(collections):
    first = Renderer(SiteSettings(), max_workers=1).render(collections)
    second = Renderer(SiteSettings(), max_workers=8).render(collections)

    assert dict(first.pages) == dict(second.pages)


def test_listings_follow_collection_order(collections):
    result = Renderer(SiteSettings()).render(collections)

    posts = page(result, "posts/index.html")
    assert posts.index("/posts/newer/") < posts.index("/posts/older/")

    projects = page(result, "projects/index.html")
    positions = [projects.index(f"/projects/{slug}/") for slug in ("notes", "quire", "later")]
    assert positions == sorted(positions)


def test_item_page_contains_rendered_body_and_references(collections):
    result = Renderer(SiteSettings()).render(collections)
    newer = page(result, "posts/newer/index.html")

    assert '<a href="/projects/quire/">Quire</a>' in newer
    assert '<a href="/posts/older/">the old post</a>' in newer
    assert '<aside class="related">' in newer
    assert 'href="/tags/site-news/"' in newer

    quire = page(result, "projects/quire/index.html")
    assert "<em>builder</em>" in quire
    assert "https://github.com/example/quire" in quire


def test_result_collections_carry_html(collections):
    result = Renderer(SiteSettings()).render(collections)

    quire = result.collections[CollectionKind.PROJECT].get("quire")
    assert quire.rendered_html == "<p>The <em>builder</em>.</p>"
    assert collections[CollectionKind.PROJECT].get("quire").rendered_html == ""


def test_tags_group_case_insensitively(collections):
    result = Renderer(SiteSettings()).render(collections)

    python = page(result, "tags/python/index.html")
    assert python.index("/posts/newer/") < python.index("/posts/older/")
    assert "(2)" in page(result, "tags/index.html")


def test_titles_are_escaped():
    collections = assemble([make_post("xss", title="<script>alert(1)</script>")])
    result = Renderer(SiteSettings()).render(collections)

    text = page(result, "posts/xss/index.html")
    assert "<script>" not in text
    assert "&lt;script&gt;" in text


def test_base_path_prefixes_internal_links(collections):
    result = Renderer(SiteSettings(base_path="/blog/")).render(collections)

    assert 'href="/blog/posts/newer/"' in page(result, "index.html")
    assert 'href="/blog/projects/quire/"' in page(result, "posts/newer/index.html")


def test_home_page_limits_latest_posts(collections):
    result = Renderer(SiteSettings(home_posts=1)).render(collections)
    home = page(result, "index.html")

    assert "/posts/newer/" in home
    assert "/posts/older/" not in home
    assert "All posts" in home


def test_stylesheets_from_static_assets(collections):
    result = Renderer(SiteSettings(), assets=["static/css/site.css", "static/logo.png"]).render(collections)

    assert '<link rel="stylesheet" href="/static/css/site.css">' in page(result, "index.html")


def test_injected_markdown_renderer(collections):
    calls = []

    def fake_markdown(text):
        calls.append(text)
        return "<p>FAKE</p>"

    result = Renderer(SiteSettings(), markdown=fake_markdown).render(collections)

    assert len(calls) == 5
    assert "Built with [Quire](/projects/quire/)." in "".join(calls)
    assert "<p>FAKE</p>" in page(result, "projects/notes/index.html")


def test_unresolved_reference_fails_the_render():
    collections = assemble([make_post("lonely", body="See [[projects/ghost]].")])

    with pytest.raises(UnresolvedReferenceError) as excinfo:
        Renderer(SiteSettings()).render(collections)
    assert excinfo.value.slug == "lonely"


def test_broken_internal_link_fails_the_render():
    collections = assemble([make_post("linky", body="A [dead link](/posts/ghost/).")])

    with pytest.raises(UnresolvedReferenceError) as excinfo:
        Renderer(SiteSettings()).render(collections)
    assert excinfo.value.page == "posts/linky/index.html"


def test_empty_site_still_renders_index_pages():
    result = Renderer(SiteSettings()).render(assemble([]))

    assert set(result.pages) == {
        "feed.xml",
        "index.html",
        "posts/index.html",
        "projects/index.html",
        "tags/index.html",
    }
    assert "Nothing here yet." in page(result, "posts/index.html")


def test_feed_lists_posts_newest_first(collections):
    site = SiteSettings(title="Field Notes", base_url="https://notes.example.org", author="Ada")
    feed = ElementTree.fromstring(Renderer(site).render(collections).pages["feed.xml"])

    assert feed.find(f"{ATOM}title").text == "Field Notes"
    assert feed.find(f"{ATOM}updated").text == "2026-02-25T00:00:00Z"
    assert feed.find(f"{ATOM}author/{ATOM}name").text == "Ada"
    entries = feed.findall(f"{ATOM}entry")
    assert [entry.find(f"{ATOM}id").text for entry in entries] == [
        "https://notes.example.org/posts/newer/",
        "https://notes.example.org/posts/older/",
    ]
    assert entries[0].find(f"{ATOM}content").get("type") == "html"


def test_html_in_code_samples_renders():
    body = "Use `<img src='/logo.png'>` for images.\n\n```html\n<a href='/nowhere/'>x</a>\n```"
    result = Renderer(SiteSettings()).render(assemble([make_post("html-tips", body=body)]))

    text = page(result, "posts/html-tips/index.html")
    assert "&lt;img src='/logo.png'&gt;" in text
