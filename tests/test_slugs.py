"""Tests for slug resolution and collection slugs."""

import pytest

from src.ingest import slugs


def test_known_slug_resolves_to_fragment():
    assert slugs.resolve("fiction-books") == "collections/fiction-books"
    assert slugs.resolve("crime-mystery") == "collections/crime-and-mystery-books"
    assert slugs.resolve("baby-toddler") == "pages/baby-and-toddler-books"


def test_unknown_slug_passes_through():
    assert slugs.resolve("collections/poetry-books") == "collections/poetry-books"


def test_resolve_is_deterministic():
    for slug in list(slugs.SLUG_MAPPING) + ["unmapped"]:
        assert slugs.resolve(slug) == slugs.resolve(slug)


def test_mapping_is_read_only():
    with pytest.raises(TypeError):
        slugs.SLUG_MAPPING["new"] = "collections/new"


def test_fiction_root_clause_excludes_non_fiction():
    clause = str(slugs.category_lookup_clause("collections/fiction-books").compile(
        compile_kwargs={"literal_binds": True}
    ))
    assert "fiction-books" in clause
    assert "NOT" in clause.upper()
    assert "non-fiction" in clause


def test_other_fragments_use_plain_contains():
    clause = str(slugs.category_lookup_clause("collections/romance-books").compile(
        compile_kwargs={"literal_binds": True}
    ))
    assert "NOT" not in clause.upper()


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Non-Fiction Bestsellers", "non-fiction-books"),
        ("Fiction Bestsellers", "fiction-books"),
        ("Children's Favourites", "childrens-books"),
        ("Rare & Collectible", "rare-books"),
        ("Staff Picks 2024", "staff-picks-2024"),
    ],
)
def test_collection_slug(title, expected):
    assert slugs.collection_slug(title) == expected


def test_lookup_escapes_like_wildcards():
    clause = slugs.category_lookup_clause("100%_off")
    compiled = clause.compile()
    assert "ESCAPE" in str(compiled).upper()
    assert "100/%/_off" in compiled.params.values()
