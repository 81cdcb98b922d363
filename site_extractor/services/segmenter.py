import logging
import re
from typing import Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from site_extractor.models.schemas import CONTENT_MODELS, Section, StyleHints
from site_extractor.services.colors import is_dark_color
from site_extractor.services.html_utils import absolutize, extract_jsonld_faqs, soupify
from site_extractor.services.section_content import (
    DESCRIBED_TYPES, EXTRACTORS, classes_of, paragraphs, text_of,
)

logger = logging.getLogger(__name__)

CANDIDATE_SELECTORS = [
    "section",
    "main > div",
    '[class*="section"]',
    '[class*="container"] > div',
    "[id]",
]
MIN_CANDIDATE_WEIGHT = 100

# checked top to bottom against class and id words, first hit wins
KEYWORD_TABLE: List[Tuple[str, Tuple[str, ...]]] = [
    ("hero", ("hero", "banner", "jumbotron", "masthead", "intro")),
    ("services", ("service",)),
    ("benefits", ("benefit",)),
    ("features", ("feature", "capability", "capabilities", "what-we")),
    ("testimonials", ("testimonial", "review", "quote", "feedback", "customer-say", "customers-say")),
    ("pricing", ("pricing", "price", "plan", "package", "subscription")),
    ("faq", ("faq", "question", "accordion", "help")),
    ("about", ("about", "story", "stories", "history", "who-we", "mission")),
    ("team", ("team", "staff", "people", "member", "founder")),
    ("process", ("process", "step", "how-it-work", "workflow")),
    ("portfolio", ("portfolio", "showcase")),
    ("gallery", ("gallery", "work", "project")),
    ("stats", ("stat", "statistic", "number", "counter", "metric", "achievement")),
    ("cta", ("cta", "call-to-action", "get-started", "contact", "signup")),
    ("clients", ("client", "customer-logo")),
    ("logoCloud", ("logo", "partner", "brand", "trusted")),
    ("form", ("form", "newsletter", "subscribe")),
    ("location", ("location", "map", "address", "find-us", "visit")),
]

TEXT_FALLBACKS: List[Tuple[str, Tuple[str, ...]]] = [
    ("faq", ("faq", "preguntas frecuentes", "frequently asked")),
    ("testimonials", ("testimonios", "testimonials", "what our")),
    ("team", ("equipo", "team", "our people")),
]

PRICE_MARKERS = ("$", "€", "£", "/mes", "/month", "/mo")
DARK_CLASS_HINTS = ("dark", "bg-black", "bg-gray-9")
BG_RE = re.compile(r"background(?:-color)?\s*:\s*([^;]+)", re.I)
CAMEL_RE = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
WORD_SPLIT_RE = re.compile(r"[^a-z0-9]+")

# whole words only, with an optional plural, so `transform` is not a form
KEYWORD_PATTERNS: List[Tuple[str, re.Pattern]] = [
    (section_type, re.compile("|".join(rf"-{re.escape(k)}(?:s|es)?-" for k in keywords)))
    for section_type, keywords in KEYWORD_TABLE
]


def marker_names(el: Tag) -> List[str]:
    """Each class name and the id as `-word-word-`, split on case, dashes and underscores."""
    classes = el.get("class") or []
    if isinstance(classes, str):
        classes = classes.split()
    names = list(classes) + ([el["id"]] if el.get("id") else [])
    out = []
    for name in names:
        words = WORD_SPLIT_RE.split(CAMEL_RE.sub("-", name).lower())
        joined = "-".join(w for w in words if w)
        if joined:
            out.append(f"-{joined}-")
    return out


def keyword_type(el: Tag) -> Optional[str]:
    names = marker_names(el)
    for section_type, pattern in KEYWORD_PATTERNS:
        if any(pattern.search(n) for n in names):
            return section_type
    return None


def _card_count(el: Tag) -> int:
    return len(el.select('[class*="card"]'))


def _early_h1(el: Tag, index: int) -> bool:
    return index < 3 and el.find("h1") is not None


def _has_quotes(el: Tag, index: int) -> bool:
    return el.select_one('blockquote, [class*="quote"]') is not None


def _priced_cards(el: Tag, index: int) -> bool:
    text = el.get_text().lower()
    return any(m in text for m in PRICE_MARKERS) and _card_count(el) >= 3


def _has_form_controls(el: Tag, index: int) -> bool:
    return el.find(["form", "input", "textarea"]) is not None


def _has_counters(el: Tag, index: int) -> bool:
    return len(el.select('[class*="stat"], [class*="counter"]')) >= 2


def _logo_strip(el: Tag, index: int) -> bool:
    return len(el.find_all("img")) >= 4 and _card_count(el) < 3 and len(el.find_all(["h2", "h3"])) <= 1


def _cards_under_h2(el: Tag, index: int) -> bool:
    return _card_count(el) >= 3 and el.find("h2") is not None


HEURISTICS: List[Tuple[Callable[[Tag, int], bool], str]] = [
    (_early_h1, "hero"),
    (_has_quotes, "testimonials"),
    (_priced_cards, "pricing"),
    (_has_form_controls, "form"),
    (_has_counters, "stats"),
    (_logo_strip, "logoCloud"),
    (_cards_under_h2, "features"),
]


def classify(el: Tag, index: int) -> str:
    """Section type for one candidate block; `index` is its rank among content candidates."""
    section_type = keyword_type(el)
    if section_type is not None:
        return section_type
    for predicate, section_type in HEURISTICS:
        if predicate(el, index):
            return section_type
    text = el.get_text(" ").lower()
    for section_type, keywords in TEXT_FALLBACKS:
        if any(k in text for k in keywords):
            return section_type
    return "unknown"


def content_weight(el: Tag) -> float:
    children = len(el.find_all(True, recursive=False))
    return children * 50 + len(el.get_text()) * 0.5 + len(el.find_all("img")) * 100


def has_significant_content(el: Tag) -> bool:
    return (
        len(el.get_text().strip()) > 50
        or el.find("img") is not None
        or el.find(["h1", "h2", "h3", "h4"]) is not None
    )


def in_landmark(el: Tag) -> bool:
    return el.name in ("header", "footer") or el.find_parent(["header", "footer"]) is not None


def style_hints(el: Tag) -> StyleHints:
    style = el.get("style") or ""
    classes = classes_of(el)
    m = BG_RE.search(style)
    bg = m.group(1).strip() if m else None
    dark = any(h in classes for h in DARK_CLASS_HINTS) or (bg is not None and is_dark_color(bg))
    return StyleHints(
        background_color=bg,
        has_dark_bg=dark,
        has_gradient="gradient" in style.lower() or "gradient" in classes,
    )


class _SegmentRun:
    """State for one segmentation call: node positions, JSON-LD, section drafts."""

    def __init__(self, soup: BeautifulSoup, base_url: Optional[str]):
        self.soup = soup
        self.base_url = base_url
        self.positions: Dict[int, int] = {id(tag): i for i, tag in enumerate(soup.find_all(True))}
        self.jsonld_faqs = extract_jsonld_faqs(soup)

    def url(self, href: Optional[str]) -> Optional[str]:
        if not href:
            return None
        return absolutize(self.base_url, href) if self.base_url else href.strip()

    def position(self, tag: Optional[Tag]) -> int:
        return self.positions.get(id(tag), -1) if tag is not None else -1

    def title_block(self, el: Tag) -> dict:
        heading = el.find("h1") or el.find("h2") or el.find("h3")
        if heading is None:
            return {}
        title = text_of(heading) or None
        subtitle = ""
        nxt = heading.find_next_sibling()
        if nxt is not None and nxt.name == "p":
            subtitle = text_of(nxt)
        elif heading.parent is not None:
            subtitle = text_of(heading.parent.find("p"))
        if not subtitle or len(subtitle) >= 300 or subtitle == title:
            subtitle = None
        return {"title": title, "subtitle": subtitle}

    def variant(self, el: Tag, section_type: str) -> str:
        if section_type == "hero":
            img = el.find("img")
            if img is None:
                return "centered"
            heading = el.find(["h1", "h2", "h3"])
            return "split-right" if heading is not None and self.position(img) < self.position(heading) else "split-left"
        if section_type == "features":
            columns = len(el.select('[class*="grid"], [class*="col"]'))
            if columns >= 4:
                return "grid"
            if columns == 3:
                return "cards3d"
            if el.select_one('[class*="alternate"]') is not None:
                return "alternating"
            return "bento"
        if section_type == "testimonials":
            if el.select_one('[class*="carousel"], [class*="slider"]') is not None:
                return "carousel"
            if el.select_one('[class*="masonry"]') is not None:
                return "masonry"
            if el.select_one('[class*="featured"]') is not None:
                return "featured"
            return "grid"
        if section_type == "pricing":
            if el.select_one('[class*="comparison"]') is not None:
                return "comparison"
            if el.select_one('[class*="horizontal"]') is not None:
                return "horizontal"
            return "cards"
        return "default"

    def draft(self, el: Tag, section_type: str) -> dict:
        base = {} if section_type in ("header", "footer") else self.title_block(el)
        fields = EXTRACTORS[section_type](el, self)
        if section_type in DESCRIBED_TYPES:
            fields["description"] = paragraphs(el, skip=base.get("subtitle"))
        content = CONTENT_MODELS[section_type](**base, **fields)
        return {
            "section_type": section_type,
            "variant": self.variant(el, section_type),
            "content": content,
            "style_hints": style_hints(el),
        }

    def finish(self, header: Optional[dict], body: List[dict], footer: Optional[dict]) -> List[Section]:
        ordered = ([header] if header else []) + body + ([footer] if footer else [])
        counts: Dict[str, int] = {}
        sections = []
        for order, draft in enumerate(ordered):
            kind = draft["section_type"]
            counts[kind] = counts.get(kind, 0) + 1
            sections.append(Section(id=f"{kind}-{counts[kind]}", order=order, **draft))
        return sections


def header_landmark(soup: BeautifulSoup) -> Optional[Tag]:
    header = soup.find("header")
    if header is not None:
        return header
    for nav in soup.find_all("nav"):
        if nav.find_parent("footer") is None:
            return nav.parent if nav.parent is not None and nav.parent.name not in ("body", "html", "[document]") else nav
    return None


def find_candidates(soup: BeautifulSoup, run: _SegmentRun) -> List[Tag]:
    seen = set()
    found = []
    for selector in CANDIDATE_SELECTORS:
        for el in soup.select(selector):
            if id(el) in seen or el.name in ("html", "body"):
                continue
            seen.add(id(el))
            if content_weight(el) > MIN_CANDIDATE_WEIGHT:
                found.append(el)
    found.sort(key=run.position)
    # a block named for a section type is never a layout container; otherwise a block
    # wrapping two or more <section>s or named blocks gives way to what it wraps
    structural = {id(el) for el in found if el.name == "section" or keyword_type(el) is not None}
    kept = []
    for el in found:
        if keyword_type(el) is None and sum(1 for d in el.find_all(True) if id(d) in structural) >= 2:
            continue
        kept.append(el)
    return kept


def _content_sections(run: _SegmentRun, header_el: Optional[Tag] = None) -> List[dict]:
    drafts = []
    emitted = {id(header_el)} if header_el is not None else set()
    index = 0
    for el in find_candidates(run.soup, run):
        if in_landmark(el) or el is header_el:
            continue
        if any(id(parent) in emitted for parent in el.parents):
            continue
        section_type = classify(el, index)
        index += 1
        logger.debug("candidate <%s class=%r id=%r> -> %s", el.name, classes_of(el), el.get("id"), section_type)
        if section_type == "unknown" and not has_significant_content(el):
            continue
        drafts.append(run.draft(el, section_type))
        emitted.add(id(el))
    return drafts


def _heuristic_sections(run: _SegmentRun) -> List[dict]:
    drafts = []
    h1 = run.soup.find("h1")
    if h1 is not None:
        block = h1.find_parent(["section", "div"])
        if block is not None and not in_landmark(block):
            drafts.append(run.draft(block, "hero"))
    for h2 in run.soup.find_all("h2"):
        block = h2.find_parent(["section", "div"])
        if block is None or in_landmark(block):
            continue
        section_type = classify(block, len(drafts))
        drafts.append(run.draft(block, "features" if section_type == "unknown" else section_type))
    return drafts


def dedupe(drafts: List[dict]) -> List[dict]:
    seen = set()
    out = []
    for draft in drafts:
        key = (draft["section_type"], draft["content"].title or "")
        if key in seen:
            continue
        seen.add(key)
        out.append(draft)
    return out


def segment(html: str, base_url: Optional[str] = None) -> List[Section]:
    """Split a document into ordered, typed sections.

    Header comes first and footer last when the page has them. Malformed or
    sparse markup yields fewer sections, never an error.
    """
    soup = soupify(html or "")
    run = _SegmentRun(soup, base_url)

    header_el = header_landmark(soup)
    header = run.draft(header_el, "header") if header_el is not None else None

    body = _content_sections(run, header_el)
    if not body:
        logger.info("no candidate sections matched, falling back to heading scan")
        body = _heuristic_sections(run)
    body = dedupe(body)

    footer_el = soup.find("footer")
    footer = run.draft(footer_el, "footer") if footer_el is not None else None

    sections = run.finish(header, body, footer)
    logger.info("segmented %d sections: %s", len(sections), ", ".join(s.section_type for s in sections))
    return sections
