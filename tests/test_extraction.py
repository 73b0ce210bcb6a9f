"""Tests for rule-driven extraction against fixture markup."""

from src.ingest.extraction import ExtractionEngine
from src.ingest.records import RawCard, RawNavLink, RawSpecification
from src.ingest.rules import REQUESTED_SPEC_KEYS
from tests.fakes import card_html


engine = ExtractionEngine()


def page(body: str) -> str:
    return f"<html><body>{body}</body></html>"


class TestExtractCards:
    def test_reads_fields(self):
        cards = engine.extract_cards(page(card_html("The Hobbit", "£4.99", author="J. R. R. Tolkien")))

        assert len(cards) == 1
        card = cards[0]
        assert card.title == "The Hobbit"
        assert card.price == "£4.99"
        assert card.author == "J. R. R. Tolkien"
        assert card.image == "https://img.example/the-hobbit.jpg"

    def test_author_defaults_to_unknown(self):
        cards = engine.extract_cards(page(card_html("Emma", "£2.50")))
        assert cards[0].author == "Unknown"

    def test_duplicates_first_occurrence_wins(self):
        html = page(
            card_html("Emma", "£2.50", author="Jane Austen")
            + card_html("EMMA ", "£ 2.50", author="Someone Else")
            + card_html("Emma", "£3.50")
        )
        cards = engine.extract_cards(html)

        assert [(c.title, c.price) for c in cards] == [("Emma", "£2.50"), ("Emma", "£3.50")]
        assert cards[0].author == "Jane Austen"

    def test_hidden_cards_skipped(self):
        html = page(
            card_html("Visible", "£1.00")
            + card_html("Zero Size", "£1.00", extra='data-zero-size="1"')
            + card_html("Styled", "£1.00", extra='style="display: none"')
        )
        assert [c.title for c in engine.extract_cards(html)] == ["Visible"]

    def test_aria_hidden_card_kept(self):
        html = page(card_html("Screen Reader Quiet", "£1.00", extra='aria-hidden="true"'))
        assert [c.title for c in engine.extract_cards(html)] == ["Screen Reader Quiet"]

    def test_price_recovered_from_card_text(self):
        html = page('<div class="card"><h3>Dune</h3><p>Now only £2.99 while stocks last</p></div>')
        assert engine.extract_cards(html)[0].price == "£2.99"

    def test_background_image_fallback(self):
        html = page(
            '<div class="card" style="background-image: url(\'https://img.example/bg.jpg\')">'
            '<h3>Dune</h3><span class="price">£2.99</span></div>'
        )
        assert engine.extract_cards(html)[0].image == "https://img.example/bg.jpg"

    def test_card_without_price_or_title_discarded(self):
        html = page(
            '<div class="card"><h3>No Price Here</h3></div>'
            '<div class="card"><span class="price">£5.00</span></div>'
        )
        assert engine.extract_cards(html) == []

    def test_empty_markup(self):
        assert engine.extract_cards("") == []


class TestRawRecords:
    def test_raw_card_requires_title_and_price(self):
        assert RawCard(title="  ", price="£1").normalize() is None
        assert RawCard(title="Emma", price=None).normalize() is None
        assert RawCard(title=" Emma\n", price=" £1 ").normalize().title == "Emma"

    def test_raw_nav_link_requires_parent_and_href(self):
        assert RawNavLink(parent_name="Fiction", href=None).normalize() is None
        assert RawNavLink(parent_name="", href="/x").normalize() is None
        link = RawNavLink(parent_name="Fiction", child_name=" ", href="/x").normalize()
        assert link.child_name is None

    def test_raw_specification_strips_label_colon(self):
        assert RawSpecification(label="Publisher:", value=" Penguin ").normalize() == ("Publisher", "Penguin")
        assert RawSpecification(label="Publisher", value="").normalize() is None


class TestNavigationAndSearch:
    def test_nav_links(self):
        html = page(
            '<a data-menu_category="Fiction Books" href="/en-gb/collections/fiction-books">F</a>'
            '<a data-menu_category="Fiction Books" data-menu_subcategory="Fantasy" href="/f">x</a>'
            '<a href="/plain">ignored</a>'
        )
        links = engine.extract_nav_links(html)

        assert [(l.parent_name, l.child_name) for l in links] == [
            ("Fiction Books", None),
            ("Fiction Books", "Fantasy"),
        ]

    def test_find_product_href_first_match_wins(self):
        html = page(
            '<div class="card"><a href="/p/other">Something Else</a></div>'
            '<div class="card"><a href="/p/dune-deluxe">Dune Deluxe Edition</a></div>'
            '<div class="card"><a href="/p/dune">Dune</a></div>'
        )
        assert engine.find_product_href(html, "dune") == "/p/dune-deluxe"

    def test_find_product_href_contained_by_query(self):
        html = page('<div class="card"><a href="/p/dune">Dune</a></div>')
        assert engine.find_product_href(html, "Dune by Frank Herbert") == "/p/dune"

    def test_find_product_href_no_match(self):
        html = page('<div class="card"><a href="/p/emma">Emma</a></div>')
        assert engine.find_product_href(html, "Dune") is None


class TestBestsellerSections:
    def test_sections_merge_by_heading(self):
        html = page(
            '<div class="related-products"><h2>Fiction Bestsellers</h2>'
            '<div class="card"><h3>Dune</h3><span class="price">£3.00</span>'
            '<span class="pill">Sale</span></div></div>'
            '<div class="related-products"><h2>Fiction Bestsellers</h2>'
            '<div class="card"><h3>Emma</h3><span class="price">£2.00</span></div></div>'
            '<div class="collection-bestsellers">'
            '<div class="card"><h3>Matilda</h3><span class="price">£1.00</span></div></div>'
            '<div class="related-products"><h2>Empty</h2></div>'
        )
        sections = engine.extract_bestseller_sections(html)

        assert [s.title for s in sections] == ["Fiction Bestsellers", "Bestsellers"]
        fiction = sections[0]
        assert [p.title for p in fiction.products] == ["Dune", "Emma"]
        assert fiction.products[0].promo == "Sale"
        assert fiction.products[1].promo is None
        assert fiction.products[0].author == "Unknown"


PRODUCT_PAGE = page(
    '<h1 class="product__title">Dune</h1>'
    '<div class="outer-accordion"><div class="accordion-head">Summary</div>'
    '<div class="panel"><p>A short blurb.</p></div></div>'
    '<div class="outer-accordion"><div class="accordion-head">Summary of the book</div>'
    '<div class="panel"><p>Set on the desert planet Arrakis, Dune is the story of Paul Atreides.</p></div></div>'
    '<div class="outer-accordion"><div class="accordion-head">Reviews</div>'
    '<div class="panel"><p>A masterpiece of science fiction writing.</p><p>Great!</p></div></div>'
    '<table class="additional-info-table">'
    "<tr><th>Publisher:</th><td>Hodder</td></tr>"
    "<tr><th>ISBN 13</th><td>9780340960196</td></tr>"
    "</table>"
    "<dl><dt>Binding Type</dt><dd>Paperback</dd><dt>Publisher</dt><dd>Other Press</dd></dl>"
    "<p>ISBN 10: 0340960191</p>"
    "<p>Year published: 2006</p>"
    "<p>604 pages</p>"
    '<div class="algolia-related-products-container">'
    '<div class="card"><h3>Children of Dune</h3><div class="price">£4.00</div><img src="https://img.example/cod.jpg"></div>'
    '<div class="card"><h3>No Price</h3></div>'
    "</div>"
)


class TestDeepExtract:
    def test_full_product_page(self):
        details = engine.deep_extract(PRODUCT_PAGE)

        assert details.summary == "Set on the desert planet Arrakis, Dune is the story of Paul Atreides."
        assert details.reviews == [{"text": "A masterpiece of science fiction writing."}]
        assert details.condition == "Pre-owned"

        specs = details.specifications
        assert specs["Publisher"] == "Hodder"
        assert specs["ISBN 13"] == "9780340960196"
        assert specs["ISBN 10"] == "0340960191"
        assert specs["Binding Type"] == "Paperback"
        assert specs["Year published"] == "2006"
        assert specs["Number of pages"] == "604"
        assert specs["Title"] == "Dune"
        assert specs["Author"] == ""

        assert [(r.title, r.price, r.image) for r in details.recommendations] == [
            ("Children of Dune", "£4.00", "https://img.example/cod.jpg")
        ]

    def test_all_requested_keys_present(self):
        for html in (PRODUCT_PAGE, page("<p>nothing here</p>"), ""):
            specs = engine.deep_extract(html).specifications
            assert all(key in specs for key in REQUESTED_SPEC_KEYS)

    def test_fallbacks(self):
        html = page(
            '<div class="product__description"><p>Fallback blurb</p></div>'
            '<span data-condition>Very Good</span>'
            '<div class="outer-accordion"><div class="accordion-head">Reviews</div>'
            '<div class="panel"><p>Loved it so much</p><p>Would read again</p></div></div>'
        )
        details = engine.deep_extract(html)

        assert details.summary == "Fallback blurb"
        assert details.condition == "Very Good"
        assert details.reviews == [{"text": "Loved it so much Would read again"}]

    def test_isbn_normalized_and_short_isbn10_rejected(self):
        specs = engine.extract_specifications(page("<p>ISBN: 978-0-340-96019-6</p>"))

        assert specs["ISBN 13"] == "9780340960196"
        assert "ISBN 10" not in specs

    def test_cover_note_and_note_kept_apart(self):
        specs = engine.extract_specifications(
            page("<p>Cover note: Slight wear to spine</p><p>Note: Signed by the author</p>")
        )

        assert specs["Cover note"] == "Slight wear to spine"
        assert specs["Note"] == "Signed by the author"

    def test_inline_markup_stays_on_one_line(self):
        details = engine.deep_extract(
            page(
                '<div class="outer-accordion"><div class="accordion-head">Reviews</div>'
                '<div class="panel"><p>An <em>absolutely</em> wonderful read, I could not put it down.</p>'
                "<p>Second copy<br>arrived in <b>excellent</b> condition, thank you</p></div></div>"
                "<p>Note: Signed by <a href='/authors/herbert'>Frank Herbert</a> on the title page</p>"
            )
        )

        assert details.reviews == [
            {"text": "An absolutely wonderful read, I could not put it down."},
            {"text": "arrived in excellent condition, thank you"},
        ]
        assert details.specifications["Note"] == "Signed by Frank Herbert on the title page"

    def test_table_value_beats_page_text(self):
        specs = engine.extract_specifications(
            page(
                '<div class="product-details__item"><span class="label">Year published</span>'
                '<span class="value">1965</span></div><p>Published 2006</p>'
            )
        )
        assert specs["Year published"] == "1965"
