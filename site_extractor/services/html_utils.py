import json, re
from bs4 import BeautifulSoup, Comment, Tag
from typing import List, Optional, Dict
from urllib.parse import urljoin

SOCIAL_PLATFORMS = ["facebook", "twitter", "instagram", "linkedin", "youtube", "tiktok"]

# x.com counts as twitter
SOCIAL_PATTERNS = {
    "facebook": re.compile(r"(facebook|fb)\.com", re.I),
    "twitter": re.compile(r"(twitter\.com|//(www\.)?x\.com)", re.I),
    "instagram": re.compile(r"instagram\.com", re.I),
    "linkedin": re.compile(r"linkedin\.com", re.I),
    "youtube": re.compile(r"(youtube\.com|youtu\.be)", re.I),
    "tiktok": re.compile(r"tiktok\.com", re.I),
}

CSS_URL_RE = re.compile(r"url\(\s*['\"]?([^'\")]+)['\"]?\s*\)", re.I)

def soupify(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "lxml")

def absolutize(base: str, href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    href = href.strip()
    if href.startswith("data:") or href.startswith("javascript:"):
        return href
    if href.startswith("//"):
        href = "https:" + href
    try:
        return urljoin(base, href)
    except ValueError:
        # malformed, e.g. an unclosed IPv6 bracket
        return None

def img_src(img: Tag) -> Optional[str]:
    """Image URL, honouring the common lazy-loading attributes."""
    for attr in ("src", "data-src", "data-lazy-src"):
        val = img.get(attr)
        if val and not val.strip().startswith("data:"):
            return val.strip()
    srcset = img.get("srcset") or img.get("data-srcset")
    if srcset:
        first = srcset.split(",")[0].strip().split(" ")[0]
        if first:
            return first
    val = img.get("src")
    return val.strip() if val else None

def social_platform(href: str, label: str = "") -> Optional[str]:
    for platform, pat in SOCIAL_PATTERNS.items():
        if pat.search(href or ""):
            return platform
    label = (label or "").lower()
    for platform in SOCIAL_PLATFORMS:
        if platform in label:
            return platform
    return None

def css_urls(style: str) -> List[str]:
    return [m.group(1).strip() for m in CSS_URL_RE.finditer(style or "")]

def page_title(soup: BeautifulSoup) -> Optional[str]:
    if soup.title and soup.title.text and soup.title.text.strip():
        return soup.title.text.strip()
    for prop in ("og:site_name", "og:title"):
        meta = soup.find("meta", attrs={"property": prop})
        if meta and meta.get("content"):
            return meta["content"].strip()
    return None

def page_description(soup: BeautifulSoup) -> Optional[str]:
    meta = soup.find("meta", attrs={"name": "description"})
    if meta and meta.get("content"):
        return meta["content"].strip()
    meta = soup.find("meta", attrs={"property": "og:description"})
    if meta and meta.get("content"):
        return meta["content"].strip()
    return None

def page_language(soup: BeautifulSoup) -> Optional[str]:
    html = soup.find("html")
    if html and html.get("lang"):
        return html["lang"].strip().lower()
    return None

def extract_jsonld_faqs(soup: BeautifulSoup) -> List[Dict[str, str]]:
    faqs = []
    for tag in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(tag.string or "{}")
        except json.JSONDecodeError:
            continue
        # single object, list, or @graph wrapper
        blocks = data if isinstance(data, list) else data.get("@graph", [data]) if isinstance(data, dict) else []
        for obj in blocks:
            if not isinstance(obj, dict) or obj.get("@type") != "FAQPage":
                continue
            entities = obj.get("mainEntity") or []
            # schema.org allows a lone Question in place of a list
            if isinstance(entities, dict):
                entities = [entities]
            if not isinstance(entities, list):
                continue
            for item in entities:
                if not isinstance(item, dict):
                    continue
                q = item.get("name") or item.get("question")
                a_obj = item.get("acceptedAnswer") or {}
                if isinstance(a_obj, list):
                    a_obj = a_obj[0] if a_obj else {}
                a = a_obj.get("text") if isinstance(a_obj, dict) else None
                if isinstance(q, str) and isinstance(a, str) and q.strip() and a.strip():
                    faqs.append({"question": q.strip(), "answer": a.strip()})
    return faqs

def visible_text(soup: BeautifulSoup, limit: int = 5000) -> str:
    body = soup.body or soup
    parts = []
    for s in body.find_all(string=True):
        if isinstance(s, Comment) or (s.parent is not None and s.parent.name in ("script", "style", "noscript", "template")):
            continue
        t = s.strip()
        if t:
            parts.append(t)
    return " ".join(parts)[:limit]
