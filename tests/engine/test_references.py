import pytest

from quire.core.assembler import SiteIndex, assemble
from quire.core.exceptions import UnresolvedReferenceError
from quire.core.types import CollectionKind
from quire.engine.references import parse_target, related_items, resolve, substitute_references
from tests.helpers.content import make_post as post
from tests.helpers.content import make_project as project


def url_for(item):
    return f"/{item.route}"


def index_of(*items):
    return SiteIndex.build(assemble(items))


@pytest.mark.parametrize(
    "target, expected",
    [
        ("hello", (CollectionKind.POST, "hello")),
        ("posts/hello", (CollectionKind.POST, "hello")),
        ("projects/quire", (CollectionKind.PROJECT, "quire")),
        ("/projects/quire/", (CollectionKind.PROJECT, "quire")),
        (" hello ", (CollectionKind.POST, "hello")),
        ("drafts/hello", (CollectionKind.POST, "drafts/hello")),
    ],
)
def test_parse_target(target, expected):
    assert parse_target(target, CollectionKind.POST) == expected


def test_bare_slug_uses_the_source_collection():
    source = project("alpha", body="See [[beta]].")
    index = index_of(source, project("beta"), post("beta"))

    assert resolve("beta", source, index).kind == CollectionKind.PROJECT


def test_substitutes_references_with_links():
    source = post("intro", body="Read [[next-steps]] and [[projects/quire|the builder]].")
    index = index_of(source, post("next-steps"), project("quire"))

    body = substitute_references(source, index, url_for)

    assert body == "Read [Next Steps](/posts/next-steps/) and [the builder](/projects/quire/)."


def test_labels_are_escaped():
    source = post("intro", body="[[odd]]")
    index = index_of(source, post("odd", title="A [bracketed] title"))

    assert substitute_references(source, index, url_for) == r"[A \[bracketed\] title](/posts/odd/)"


def test_code_is_left_alone():
    body = "\n".join(
        [
            "Inline `[[missing]]` stays.",
            "```",
            "[[also-missing]]",
            "```",
            "~~~python",
            "print('[[nope]]')",
            "~~~",
            "But [[target]] is linked.",
        ]
    )
    source = post("intro", body=body)
    index = index_of(source, post("target"))

    result = substitute_references(source, index, url_for).split("\n")

    assert result[0] == "Inline `[[missing]]` stays."
    assert result[2] == "[[also-missing]]"
    assert result[5] == "print('[[nope]]')"
    assert result[7] == "But [Target](/posts/target/) is linked."


def test_unresolved_reference_names_target_and_source():
    source = post("intro", body="See [[projects/ghost]].")

    with pytest.raises(UnresolvedReferenceError) as excinfo:
        substitute_references(source, index_of(source), url_for)

    error = excinfo.value
    assert error.target == "projects/ghost"
    assert error.slug == "intro"
    assert error.page == "posts/intro/index.html"
    assert error.error_kind == "UnresolvedReference"


def test_related_items_keep_declared_order():
    source = post("intro", related=["projects/quire", "later"])
    index = index_of(source, post("later"), project("quire"))

    assert [(item.kind, item.slug) for item in related_items(source, index)] == [
        (CollectionKind.PROJECT, "quire"),
        (CollectionKind.POST, "later"),
    ]


def test_unknown_related_item_is_an_error():
    source = post("intro", related=["ghost"])
    with pytest.raises(UnresolvedReferenceError, match="ghost"):
        related_items(source, index_of(source))
