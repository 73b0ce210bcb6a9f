"""Extraction engine: rule-driven parsing of rendered catalog markup.

The browser layer hands over serialized DOM snapshots; everything here works
on that HTML with selectolax, so the same rules run against live pages and
against fixture markup in tests.
"""

import logging
import re
from typing import Iterable, List, Optional

from selectolax.parser import HTMLParser, Node

from src.ingest.records import (
    DEFAULT_CONDITION,
    AccordionSection,
    BestsellerSection,
    ProductData,
    ProductDetails,
    RawCard,
    RawNavLink,
    RawSpecification,
    norm_text,
)
from src.ingest.rules import (
    REQUESTED_SPEC_KEYS,
    RULES_V1,
    CardRules,
    ExtractionRules,
)

logger = logging.getLogger(__name__)

_STYLE_HIDDEN_RE = re.compile(r"display\s*:\s*none|visibility\s*:\s*hidden", re.I)


def _node_text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return norm_text(node.text())


def _first_text(root: Node, selectors: Iterable[str]) -> str:
    """Text of the first selector (in order) that matches with non-empty text."""
    for selector in selectors:
        text = _node_text(root.css_first(selector))
        if text:
            return text
    return ""


# Elements that start a new line in rendered text; everything else flows inline
BLOCK_TAGS = frozenset({
    "address", "article", "aside", "blockquote", "dd", "details", "div", "dl",
    "dt", "fieldset", "figcaption", "figure", "footer", "form", "h1", "h2",
    "h3", "h4", "h5", "h6", "header", "hr", "li", "main", "nav", "ol", "p",
    "pre", "section", "summary", "table", "tbody", "td", "tfoot", "th",
    "thead", "tr", "ul",
})
SKIPPED_TAGS = frozenset({"script", "style", "template", "noscript"})


def _collect_text(node: Node, parts: List[str]):
    for child in node.iter(include_text=True):
        tag = child.tag
        if tag == "-text":
            parts.append(re.sub(r"\s+", " ", child.text(deep=False) or ""))
        elif tag == "br":
            parts.append("\n")
        elif tag in SKIPPED_TAGS or tag.startswith(("_", "-")):
            continue
        elif tag in BLOCK_TAGS:
            parts.append("\n")
            _collect_text(child, parts)
            parts.append("\n")
        else:
            _collect_text(child, parts)


def _text_lines(node: Node) -> List[str]:
    """Approximate innerText lines: breaks at block elements and <br> only."""
    parts: List[str] = []
    _collect_text(node, parts)
    return [line for line in (norm_text(part) for part in "".join(parts).split("\n")) if line]


def _attr(node: Optional[Node], name: str) -> str:
    if node is None:
        return ""
    return (node.attributes.get(name) or "").strip()


class ExtractionEngine:
    """Typed extraction operations over a versioned rule table."""

    def __init__(self, rules: ExtractionRules = RULES_V1):
        self.rules = rules

    # ------------------------------------------------------------------
    # Cards
    # ------------------------------------------------------------------

    def is_hidden(self, node: Node) -> bool:
        """True for cards flagged zero-size by the browser or styled out of view."""
        for selector in self.rules.hidden_selectors:
            if node.css_matches(selector):
                return True
        return bool(_STYLE_HIDDEN_RE.search(_attr(node, "style")))

    def read_card(self, card: Node, card_rules: CardRules) -> RawCard:
        """Read one tile into a RawCard without judging it."""
        title = _first_text(card, card_rules.title_selectors)

        price = _first_text(card, card_rules.price_selectors)
        if not price:
            found = self.rules.price_regex.search(card.text() or "")
            if found:
                price = found.group(0).strip()

        img = card.css_first(card_rules.image_selector)
        image = _attr(img, "src") or _attr(img, "data-src")
        if not image:
            bg = self.rules.background_image_regex.search(_attr(card, "style"))
            if bg:
                image = bg.group(1)

        return RawCard(
            title=title,
            price=price,
            author=_first_text(card, card_rules.author_selectors) if card_rules.author_selectors else None,
            image=image,
            promo=_first_text(card, card_rules.promo_selectors) if card_rules.promo_selectors else None,
        )

    def cards_in(self, root: Node, card_rules: CardRules) -> List[ProductData]:
        """Extract, validate and dedup product tiles under a node.

        First occurrence of a (title, price) key wins.
        """
        products: List[ProductData] = []
        seen: set[str] = set()

        for card in root.css(", ".join(card_rules.item_selectors)):
            if self.is_hidden(card):
                continue
            try:
                product = self.read_card(card, card_rules).normalize()
            except Exception as e:
                logger.debug(f"Failed to read card: {e}")
                continue
            if product is None or product.key in seen:
                continue
            seen.add(product.key)
            products.append(product)

        return products

    def extract_cards(self, html: str, card_rules: Optional[CardRules] = None) -> List[ProductData]:
        """Extract listing cards from a category page snapshot."""
        parser = HTMLParser(html or "")
        if parser.root is None:
            return []
        return self.cards_in(parser.root, card_rules or self.rules.listing_cards)

    # ------------------------------------------------------------------
    # Navigation, bestsellers, search
    # ------------------------------------------------------------------

    def extract_nav_links(self, html: str) -> List[RawNavLink]:
        """All anchors that carry a parent category attribute."""
        parser = HTMLParser(html or "")
        return [
            RawNavLink(
                parent_name=anchor.attributes.get(self.rules.nav_parent_attr),
                child_name=anchor.attributes.get(self.rules.nav_child_attr),
                href=anchor.attributes.get("href"),
            )
            for anchor in parser.css(self.rules.nav_anchor)
        ]

    def extract_bestseller_sections(self, html: str) -> List[BestsellerSection]:
        """Homepage recommendation containers with their cards.

        Containers sharing a heading are merged into one section.
        """
        parser = HTMLParser(html or "")
        sections: dict[str, BestsellerSection] = {}

        for container in parser.css(self.rules.bestseller_containers):
            title = _node_text(container.css_first(self.rules.bestseller_heading)) or "Bestsellers"
            products = self.cards_in(container, self.rules.bestseller_cards)
            if not products:
                continue

            section = sections.setdefault(title, BestsellerSection(title=title))
            known = {p.key for p in section.products}
            section.products.extend(p for p in products if p.key not in known)

        return list(sections.values())

    def find_product_href(self, html: str, query: str) -> Optional[str]:
        """First result anchor whose text equals, contains or is contained by the query."""
        needle = (query or "").strip().lower()
        if not needle:
            return None

        parser = HTMLParser(html or "")
        for anchor in parser.css(self.rules.search_result_anchors):
            text = _node_text(anchor).lower()
            if not text:
                continue
            if text == needle or needle in text or text in needle:
                href = _attr(anchor, "href")
                if href:
                    return href
        return None

    # ------------------------------------------------------------------
    # Product page
    # ------------------------------------------------------------------

    def extract_accordion_sections(self, html_or_parser) -> List[AccordionSection]:
        parser = self._parser(html_or_parser)
        sections = []
        for accordion in parser.css(self.rules.accordion):
            heading = _node_text(accordion.css_first(self.rules.accordion_heading)).lower()
            panel = accordion.css_first(self.rules.accordion_panel)
            if not heading or panel is None:
                continue
            lines = _text_lines(panel)
            text = " ".join(lines)
            if not text:
                continue
            sections.append(AccordionSection(heading=heading, text=text, lines=lines))
        return sections

    def _spec_rows(self, parser: HTMLParser) -> Iterable[RawSpecification]:
        for row in parser.css(self.rules.spec_rows):
            yield RawSpecification(
                label=_first_text(row, self.rules.spec_row_labels),
                value=_first_text(row, self.rules.spec_row_values),
            )

    def _definition_pairs(self, parser: HTMLParser) -> Iterable[RawSpecification]:
        for dl in parser.css("dl"):
            for dt in dl.css("dt"):
                sibling = dt.next
                while sibling is not None and sibling.tag in ("-text", "_comment", "-comment"):
                    sibling = sibling.next
                if sibling is None or sibling.tag != "dd":
                    continue
                yield RawSpecification(label=dt.text(), value=sibling.text())

    def _page_text(self, parser: HTMLParser) -> str:
        """Body text with one normalized line per text block."""
        body = parser.body or parser.root
        if body is None:
            return ""
        return "\n".join(_text_lines(body))

    def _heuristic_specs(self, parser: HTMLParser) -> dict[str, str]:
        specs: dict[str, str] = {}
        body = self._page_text(parser)

        for rule in self.rules.spec_patterns:
            if rule.key in specs:
                continue
            for match in rule.pattern.finditer(body):
                value = match.group(1).strip()
                if rule.digits_only:
                    value = re.sub(r"\D", "", value)
                if rule.required_length and len(value) != rule.required_length:
                    continue
                if value:
                    specs[rule.key] = norm_text(value)
                    break

        title = _first_text(parser.root, self.rules.title_selectors) if parser.root else ""
        if title:
            specs["Title"] = title
        author = _first_text(parser.root, self.rules.author_selectors) if parser.root else ""
        if author:
            specs["Author"] = author
        return specs

    def extract_specifications(self, html_or_parser) -> dict[str, str]:
        """Merge specification sources; later sources only fill missing keys.

        Order: spec table rows, then dt/dd pairs, then page-text heuristics.
        """
        parser = self._parser(html_or_parser)
        specs: dict[str, str] = {}

        for raw in list(self._spec_rows(parser)) + list(self._definition_pairs(parser)):
            pair = raw.normalize()
            if pair and pair[0] not in specs:
                specs[pair[0]] = pair[1]

        for key, value in self._heuristic_specs(parser).items():
            specs.setdefault(key, value)

        return specs

    def deep_extract(self, html: str) -> ProductDetails:
        """Extract summary, reviews, condition, specifications and recommendations."""
        parser = HTMLParser(html or "")
        details = ProductDetails()

        for section in self.extract_accordion_sections(parser):
            if "summary" in section.heading:
                if len(section.text) > len(details.summary):
                    details.summary = section.text
            elif "review" in section.heading:
                entries = [line for line in section.lines if len(line) > self.rules.review_min_line_length]
                if not entries and len(section.text) > self.rules.review_min_panel_length:
                    entries = [section.text]
                details.reviews.extend({"text": entry} for entry in entries)

        if not details.summary:
            for selector in self.rules.summary_fallbacks:
                node = parser.css_first(selector)
                if node is not None:
                    details.summary = " ".join(_text_lines(node))
                    break

        condition = _node_text(parser.css_first(self.rules.condition))

        specs = self.extract_specifications(parser)
        for key in REQUESTED_SPEC_KEYS:
            specs.setdefault(key, "")
        details.specifications = specs
        details.condition = condition or specs.get("Condition") or DEFAULT_CONDITION

        if parser.root is not None:
            details.recommendations = self.cards_in(parser.root, self.rules.recommendation_cards)

        return details

    @staticmethod
    def _parser(html_or_parser) -> HTMLParser:
        if isinstance(html_or_parser, HTMLParser):
            return html_or_parser
        return HTMLParser(html_or_parser or "")


# Global engine instance
extraction_engine = ExtractionEngine()
