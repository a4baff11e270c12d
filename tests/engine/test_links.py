import pytest

from quire.core.exceptions import UnresolvedReferenceError
from quire.engine.links import extract_links, find_broken_links, is_internal_link, resolve_link, verify_links


@pytest.mark.parametrize(
    "url, expected",
    [
        ("/posts/", True),
        ("../hello/", True),
        ("feed.xml", True),
        ("#top", False),
        ("//cdn.example.org/x.js", False),
        ("https://github.com/example/quire", False),
        ("mailto:me@example.org", False),
    ],
)
def test_is_internal_link(url, expected):
    assert is_internal_link(url) is expected


@pytest.mark.parametrize(
    "page, url, base_path, expected",
    [
        ("index.html", "/", "/", "index.html"),
        ("index.html", "/posts/", "/", "posts/index.html"),
        ("index.html", "/posts", "/", "posts"),
        ("index.html", "/feed.xml", "/", "feed.xml"),
        ("posts/a/index.html", "../b/", "/", "posts/b/index.html"),
        ("posts/a/index.html", "/posts/b/#comments", "/", "posts/b/index.html"),
        ("posts/a/index.html", "?page=2", "/", "posts/a/index.html"),
        ("index.html", "/blog/posts/", "/blog/", "posts/index.html"),
        ("index.html", "/blog", "/blog/", "index.html"),
        ("index.html", "/other/", "/blog/", None),
        ("index.html", "../../outside/", "/", None),
        ("index.html", "/tags/caf%C3%A9/", "/", "tags/café/index.html"),
    ],
)
def test_resolve_link(page, url, base_path, expected):
    assert resolve_link(page, url, base_path) == expected


def test_find_broken_links():
    pages = {
        "index.html": b'<a href="/posts/">Posts</a> <a href="/missing/">Gone</a>',
        "posts/index.html": b'<a href="/">Home</a> <link href="/static/site.css"> <img src="/static/none.png">',
        "feed.xml": b'<link href="/nowhere/"/>',
    }

    broken = find_broken_links(pages, "/", assets=["static/site.css"])

    assert broken == [("index.html", "/missing/"), ("posts/index.html", "/static/none.png")]


def test_links_without_trailing_slash_resolve_to_directories():
    pages = {"index.html": b'<a href="/posts">Posts</a>', "posts/index.html": b""}
    assert find_broken_links(pages) == []


def test_escaped_urls_are_unescaped():
    pages = {"index.html": b'<a href="/posts/?a=1&amp;b=2">Posts</a>', "posts/index.html": b""}
    assert find_broken_links(pages) == []


def test_verify_links_raises_for_first_broken_link():
    pages = {
        "b.html": b'<a href="/zzz/">x</a>',
        "a.html": b'<a href="/nope/">x</a>',
    }

    with pytest.raises(UnresolvedReferenceError) as excinfo:
        verify_links(pages)

    assert excinfo.value.target == "/nope/"
    assert excinfo.value.page == "a.html"


def test_verify_links_accepts_a_consistent_site():
    pages = {
        "index.html": b'<a href="/posts/hello/">Hello</a><a href="https://example.org">x</a>',
        "posts/hello/index.html": b'<a href="../../">Home</a>',
    }
    verify_links(pages)


def test_markup_shown_as_text_is_not_a_link():
    pages = {
        "index.html": (
            b"<p>Use <code>&lt;img src='/logo.png'&gt;</code> for images.</p>"
            b"<pre><code>&lt;a href='/nowhere/'&gt;x&lt;/a&gt;</code></pre>"
        ),
    }
    assert find_broken_links(pages) == []


def test_extract_links_reads_element_attributes_in_order():
    text = "<a href='/a/'>a</a><img src=\"/b.png\"><p>href='/c/'</p><a>no target</a>"
    assert list(extract_links(text)) == ["/a/", "/b.png"]
    assert list(extract_links("  ")) == []
