"""Per-section-type content extractors.

Each extractor takes the section element plus the run context and returns the
type-specific fields of that section's content model. `EXTRACTORS` maps a
section type to its extractor.
"""

import re
from typing import Callable, Dict, List, Optional

from bs4 import Tag

from site_extractor.models.schemas import (
    CallToAction, ContentItem, FaqItem, FormField, NavLink, ProcessStep, SocialLink,
    StatItem, Testimonial,
)
from site_extractor.services.html_utils import img_src, social_platform
from site_extractor.services.normalizer import clean_text, truncate, unique_keep_order

CTA_SELECTOR = 'a[class*="btn"], a[class*="button"], button, a[class*="cta"]'
PRICE_RE = re.compile(r"[\$€£]?\s?\d+(?:[.,]\d+)?")
COPYRIGHT_RE = re.compile(r"(?:©|\(c\)|copyright).*?\d{4}.*?(?:\.|$)", re.I)
ROLE_SPLIT_RE = re.compile(r"\s*(?:,|\bat\b|\ben\b|@|\||·|-)\s+", re.I)
STAR_SELECTOR = '[class*="star"], svg'
FOOTER_LINK_CAP = 12


def text_of(tag: Optional[Tag]) -> str:
    if tag is None:
        return ""
    return clean_text(tag.get_text(" ", strip=True)) or ""


def first_text(tag: Tag, selector: str) -> str:
    return text_of(tag.select_one(selector))


def classes_of(tag: Tag) -> str:
    classes = tag.get("class") or []
    if isinstance(classes, str):
        return classes.lower()
    return " ".join(classes).lower()


def cta_style(tag: Tag, default: str = "primary") -> str:
    classes = classes_of(tag)
    if "outline" in classes or "ghost" in classes:
        return "outline"
    if "secondary" in classes:
        return "secondary"
    if "primary" in classes:
        return "primary"
    return default


def item_nodes(el: Tag, selector: str, title_selector: str) -> List[Tag]:
    """Card-like descendants, skipping containers that wrap two or more titled cards."""
    nodes = el.select(selector)
    titled = {id(n) for n in nodes if n.select_one(title_selector) is not None}
    kept = []
    for node in nodes:
        inner = sum(1 for d in node.find_all(True) if id(d) in titled)
        if inner < 2:
            kept.append(node)
    return kept


def collect_ctas(el: Tag, ctx, limit: int = 2, max_len: int = 50, default_style: str = "primary") -> List[CallToAction]:
    ctas, seen = [], set()
    for node in el.select(CTA_SELECTOR):
        text = text_of(node)
        if not text or len(text) >= max_len or text.lower() in seen:
            continue
        seen.add(text.lower())
        href = ctx.url(node.get("href")) or "#"
        ctas.append(CallToAction(text=text, href=href, style=cta_style(node, default_style)))
        if len(ctas) >= limit:
            break
    return ctas


def collect_images(el: Tag, ctx, limit: int) -> List[str]:
    urls = []
    for img in el.find_all("img"):
        src = img_src(img)
        url = ctx.url(src) if src and not src.startswith("data:") else None
        if url:
            urls.append(url)
    return unique_keep_order(urls)[:limit]


def paragraphs(el: Tag, skip: Optional[str] = None, limit: int = 2) -> Optional[str]:
    texts = [text_of(p) for p in el.find_all("p")]
    texts = [t for t in texts if t and t != skip][:limit]
    return truncate(" ".join(texts), 500) if texts else None


# ---- extractors ----

def hero(el: Tag, ctx) -> dict:
    first = el.find("img")
    url = ctx.url(img_src(first)) if first is not None else None
    return {"ctas": collect_ctas(el, ctx), "images": [url] if url else []}


def features(el: Tag, ctx) -> dict:
    items, seen = [], set()
    title_sel = "h3, h4, h5, strong"
    for card in item_nodes(el, '[class*="card"], [class*="feature"], [class*="item"], [class*="col"]', title_sel):
        title = first_text(card, title_sel)
        if not title or len(title) >= 100 or title in seen:
            continue
        seen.add(title)
        icon_el = card.select_one('svg, [class*="icon"], i')
        icon = classes_of(icon_el) if icon_el is not None else ""
        image = card.find("img")
        link = card.find("a", href=True)
        items.append(ContentItem(
            title=title,
            description=truncate(first_text(card, "p"), 500) or None,
            icon=icon or None,
            image=ctx.url(img_src(image)) if image is not None and img_src(image) else None,
            link=ctx.url(link["href"]) if link is not None else None,
        ))
    return {"items": items[:8]}


def split_role(role: str):
    if not role:
        return None, None
    parts = ROLE_SPLIT_RE.split(role, maxsplit=1)
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0].strip(), parts[1].strip()
    return role, None


def star_rating(node: Tag) -> Optional[int]:
    stars = [s for s in node.select(STAR_SELECTOR) if s.select_one(STAR_SELECTOR) is None]
    count = len(stars) or node.get_text().count("★")
    return count if 0 < count <= 5 else None


def testimonials(el: Tag, ctx) -> dict:
    out, seen = [], set()
    selector = '[class*="testimonial"], [class*="review"], blockquote, [class*="quote"]'
    for node in item_nodes(el, selector, "p, blockquote"):
        quote = first_text(node, "p, blockquote") or text_of(node)
        quote = quote.replace("“", '"').replace("”", '"').strip()
        if not (20 < len(quote) < 1000) or quote in seen:
            continue
        seen.add(quote)
        author = first_text(node, '[class*="name"], [class*="author"], strong, cite')
        role, company = split_role(first_text(node, '[class*="role"], [class*="position"], [class*="title"]'))
        if role and role == author:
            role, company = None, None
        avatar = node.find("img")
        out.append(Testimonial(
            quote=quote,
            author=author,
            role=role,
            company=company,
            avatar=ctx.url(img_src(avatar)) if avatar is not None and img_src(avatar) else None,
            rating=star_rating(node),
        ))
    return {"testimonials": out[:6]}


def pricing(el: Tag, ctx) -> dict:
    plans, seen = [], set()
    title_sel = 'h3, h4, [class*="name"]'
    for plan in item_nodes(el, '[class*="pricing"], [class*="plan"], [class*="card"]', title_sel):
        title = first_text(plan, title_sel)
        price_text = first_text(plan, '[class*="price"], [class*="amount"]')
        match = PRICE_RE.search(price_text)
        price = match.group(0).replace(" ", "") if match else price_text
        if not title and not price:
            continue
        key = (title, price)
        if key in seen:
            continue
        seen.add(key)
        bullets = [text_of(li) for li in plan.select('li, [class*="feature"]')]
        bullets = unique_keep_order([b for b in bullets if b and len(b) < 100])[:8]
        plans.append(ContentItem(
            title=title or "Plan",
            price=price or None,
            description=" • ".join(bullets) or None,
            features=bullets,
        ))
    return {"items": plans[:4]}


def faq(el: Tag, ctx) -> dict:
    faqs, seen = [], set()
    q_sel = 'summary, [class*="question"], h3, h4, button'
    for node in item_nodes(el, 'details, [class*="accordion"], [class*="faq-item"], [class*="question"]', q_sel):
        question = first_text(node, q_sel)
        answer = first_text(node, '[class*="answer"], p, [class*="content"]')
        if not answer:
            divs = node.find_all("div")
            answer = text_of(divs[-1]) if divs else ""
        if not question or not answer or len(question) >= 200 or answer == question or question in seen:
            continue
        seen.add(question)
        faqs.append(FaqItem(question=question, answer=truncate(answer, 1000)))
    if not faqs:
        faqs = [FaqItem(question=f["question"], answer=truncate(f["answer"], 1000)) for f in ctx.jsonld_faqs]
    return {"faqs": faqs[:10]}


def stats(el: Tag, ctx) -> dict:
    out, seen = [], set()
    value_sel = '[class*="value"], [class*="number"], strong, span'
    for node in item_nodes(el, '[class*="stat"], [class*="counter"], [class*="number"]', value_sel):
        value = first_text(node, value_sel)
        if not value:
            strings = list(node.stripped_strings)
            value = strings[0] if strings else ""
        value = re.sub(r"\s+", "", value)
        if not re.search(r"\d", value) or value in seen:
            continue
        seen.add(value)
        label = first_text(node, '[class*="label"], [class*="title"], p')
        out.append(StatItem(value=value, label=label))
    return {"stats": out[:6]}


def logos(el: Tag, ctx) -> dict:
    return {"images": collect_images(el, ctx, 12)}


def team(el: Tag, ctx) -> dict:
    members, seen = [], set()
    name_sel = 'h3, h4, [class*="name"]'
    for node in item_nodes(el, '[class*="member"], [class*="team"], [class*="card"]', name_sel):
        name = first_text(node, name_sel)
        if not name or name in seen:
            continue
        seen.add(name)
        role = first_text(node, '[class*="role"], [class*="position"], [class*="title"], p')
        photo = node.find("img")
        members.append(ContentItem(
            title=name,
            description=role if role and role != name else None,
            image=ctx.url(img_src(photo)) if photo is not None and img_src(photo) else None,
        ))
    return {"items": members[:8]}


def gallery(el: Tag, ctx) -> dict:
    items, seen = [], set()
    for node in item_nodes(el, '[class*="project"], [class*="work"]', 'h3, h4, [class*="title"]'):
        title = first_text(node, 'h3, h4, [class*="title"]')
        image = node.find("img")
        image_url = ctx.url(img_src(image)) if image is not None and img_src(image) else None
        if not title and not image_url:
            continue
        key = title or image_url
        if key in seen:
            continue
        seen.add(key)
        items.append(ContentItem(
            title=title or "Project",
            description=first_text(node, 'p, [class*="description"]') or None,
            image=image_url,
        ))
    return {"images": collect_images(el, ctx, 12), "items": items[:8]}


def cta(el: Tag, ctx) -> dict:
    return {"ctas": collect_ctas(el, ctx)}


def _field_label(scope: Tag, field: Tag) -> str:
    field_id = field.get("id")
    if field_id:
        label = scope.find("label", attrs={"for": field_id})
        if label is not None:
            return text_of(label)
    prev = field.find_previous_sibling()
    if prev is not None and prev.name == "label":
        return text_of(prev)
    wrapper = field.find_parent("label")
    if wrapper is not None:
        return text_of(wrapper)
    return field.get("placeholder") or ""


def form(el: Tag, ctx) -> dict:
    fields = []
    for field in el.find_all(["input", "textarea", "select"]):
        ftype = field.get("type", "text") if field.name == "input" else field.name
        if ftype in ("hidden", "submit", "button", "reset"):
            continue
        name = field.get("name") or field.get("placeholder") or ""
        label = _field_label(el, field)
        if not name and not label:
            continue
        fields.append(FormField(name=name or label, type=ftype, label=label or None))
    ctas = []
    for button in el.select('button, input[type="submit"]'):
        text = text_of(button) or button.get("value") or ""
        if text:
            ctas.append(CallToAction(text=text, href="#", style=cta_style(button)))
    return {"fields": fields[:10], "ctas": ctas[:2]}


def process(el: Tag, ctx) -> dict:
    steps, seen = [], set()
    title_sel = 'h3, h4, [class*="title"]'
    for node in item_nodes(el, '[class*="step"], [class*="process"], [class*="timeline"]', title_sel):
        title = first_text(node, title_sel)
        if not title or title in seen:
            continue
        seen.add(title)
        number = first_text(node, '[class*="number"], [class*="step"]') or str(len(steps) + 1)
        steps.append(ProcessStep(
            number=number,
            title=title,
            description=first_text(node, 'p, [class*="description"]') or None,
        ))
    return {"steps": steps[:6]}


def prose(el: Tag, ctx) -> dict:
    """About, location and unrecognised blocks: leading paragraphs plus images."""
    return {"images": collect_images(el, ctx, 4)}


def header(el: Tag, ctx) -> dict:
    logo = el.find("img")
    navigation, seen = [], set()
    for a in el.find_all("a"):
        label = text_of(a)
        if not label or len(label) >= 30 or "logo" in label.lower() or label in seen:
            continue
        seen.add(label)
        navigation.append(NavLink(label=label, href=ctx.url(a.get("href")) or "#"))
    return {
        "logo": ctx.url(img_src(logo)) if logo is not None and img_src(logo) else None,
        "navigation": navigation[:8],
        "ctas": collect_ctas(el, ctx, max_len=30, default_style="outline"),
    }


def footer(el: Tag, ctx) -> dict:
    navigation, social = [], []
    for a in el.find_all("a"):
        label = text_of(a)
        href = a.get("href") or "#"
        url = ctx.url(href)
        platform = social_platform(href, label)
        if platform:
            if url:
                social.append(SocialLink(platform=platform, url=url))
        elif label and len(label) < 50:
            navigation.append(NavLink(label=label, href=url or "#"))
    match = COPYRIGHT_RE.search(text_of(el))
    logo = el.find("img")
    return {
        "navigation": navigation[:FOOTER_LINK_CAP],
        "social_links": social[:FOOTER_LINK_CAP],
        "copyright": match.group(0).strip() if match else None,
        "logo": ctx.url(img_src(logo)) if logo is not None and img_src(logo) else None,
    }


EXTRACTORS: Dict[str, Callable[[Tag, object], dict]] = {
    "header": header,
    "hero": hero,
    "features": features,
    "services": features,
    "benefits": features,
    "testimonials": testimonials,
    "pricing": pricing,
    "faq": faq,
    "stats": stats,
    "logoCloud": logos,
    "clients": logos,
    "team": team,
    "gallery": gallery,
    "portfolio": gallery,
    "cta": cta,
    "form": form,
    "process": process,
    "about": prose,
    "location": prose,
    "unknown": prose,
    "footer": footer,
}

# section types whose content carries a prose description
DESCRIBED_TYPES = {"about", "location", "unknown"}
