"""Design token extraction: colour palette, typography and corner rounding.

The browser only gathers raw tallies (`COLLECT_COLORS_JS`, `COLLECT_TYPOGRAPHY_JS`);
`build_palette` and `build_typography` turn them into tokens. When no browser is
available, `static_samples` derives the same tallies from the fetched HTML.
"""

import asyncio
import logging
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote_plus

import cssutils

from site_extractor.config import settings
from site_extractor.exceptions import RenderError
from site_extractor.models.schemas import ColorPalette, DesignTokens, HeadingSizes, Typography
from site_extractor.services.colors import is_dark_color, is_opaque, luminance, normalize_color, parse_color, to_hex
from site_extractor.services.html_utils import absolutize, soupify
from site_extractor.services.normalizer import unique_keep_order
from site_extractor.services.renderer import PageRenderer

logger = logging.getLogger(__name__)
cssutils.log.setLevel(logging.CRITICAL)

DEFAULT_PRIMARY = "#3b82f6"
DEFAULT_SECONDARY = "#64748b"
DEFAULT_BACKGROUND = "#ffffff"
DEFAULT_FOREGROUND = "#000000"
DEFAULT_RADIUS = "8px"
BLACK_AND_WHITE = {"#000000", "#ffffff"}

# conventional custom-property names, most specific first
PRIMARY_VARS = ["--primary", "--color-primary", "--primary-color", "--brand", "--brand-primary", "--brand-color", "--theme-primary"]
SECONDARY_VARS = ["--secondary", "--color-secondary", "--secondary-color", "--brand-secondary", "--theme-secondary"]
ACCENT_VARS = ["--accent", "--color-accent", "--accent-color", "--brand-accent", "--theme-accent"]
MAX_CSS_VARIABLES = 50

FONT_URL_RE = re.compile(r"fonts\.googleapis\.com|fonts\.bunny\.net|use\.typekit\.net|fonts\.com|/fonts?/", re.I)
ROOT_SELECTORS = {":root", "html", "body"}

COLLECT_COLORS_JS = """() => {
  const tally = (map, key) => { if (key) map[key] = (map[key] || 0) + 1; };
  const blank = v => !v || v === 'transparent' || v === 'rgba(0, 0, 0, 0)';
  const out = {backgrounds: {}, texts: {}, buttons: {}, links: {}, gradients: [], radii: {}, variables: {}, root: {}};
  const buttonLike = /btn|button|cta/;
  document.querySelectorAll('*').forEach(el => {
    const cs = getComputedStyle(el);
    const tag = el.tagName.toLowerCase();
    const cls = (typeof el.className === 'string' ? el.className : '').toLowerCase();
    const isButton = tag === 'button' || el.getAttribute('role') === 'button' || buttonLike.test(cls);
    if (!blank(cs.backgroundColor)) tally(out.backgrounds, cs.backgroundColor);
    tally(out.texts, cs.color);
    if (isButton && !blank(cs.backgroundColor)) tally(out.buttons, cs.backgroundColor);
    if (tag === 'a') tally(out.links, cs.color);
    if (cs.backgroundImage && cs.backgroundImage.includes('gradient') && out.gradients.length < 20) {
      out.gradients.push(cs.backgroundImage);
    }
    if ((isButton || /card/.test(cls)) && cs.borderRadius && cs.borderRadius !== '0px') {
      tally(out.radii, cs.borderRadius);
    }
  });
  const body = getComputedStyle(document.body);
  const root = getComputedStyle(document.documentElement);
  out.root = {
    background: blank(body.backgroundColor) ? root.backgroundColor : body.backgroundColor,
    color: body.color || root.color,
  };
  const grab = style => {
    for (let i = 0; i < style.length; i++) {
      const name = style[i];
      if (name.startsWith('--')) out.variables[name] = style.getPropertyValue(name).trim();
    }
  };
  grab(root);
  for (const sheet of Array.from(document.styleSheets)) {
    let rules;
    try { rules = sheet.cssRules; } catch (e) { continue; }
    for (const rule of Array.from(rules || [])) {
      if (rule.selectorText && /(^|,)\\s*(:root|html|body)\\s*(,|$)/.test(rule.selectorText)) grab(rule.style);
    }
  }
  return out;
}"""

COLLECT_TYPOGRAPHY_JS = """() => {
  const pick = el => {
    if (!el) return null;
    const cs = getComputedStyle(el);
    return {family: cs.fontFamily, size: cs.fontSize, weight: cs.fontWeight,
            lineHeight: cs.lineHeight, letterSpacing: cs.letterSpacing};
  };
  const headings = {};
  ['h1', 'h2', 'h3', 'h4'].forEach(level => { headings[level] = pick(document.querySelector(level)); });
  const fontUrls = [];
  document.querySelectorAll('link[href]').forEach(link => {
    const rel = (link.getAttribute('rel') || '').toLowerCase();
    if (rel.includes('stylesheet') || link.getAttribute('as') === 'style') fontUrls.push(link.href);
  });
  for (const sheet of Array.from(document.styleSheets)) {
    let rules;
    try { rules = sheet.cssRules; } catch (e) { continue; }
    for (const rule of Array.from(rules || [])) {
      if (rule.type === CSSRule.IMPORT_RULE && rule.href) fontUrls.push(new URL(rule.href, sheet.href || location.href).href);
    }
  }
  return {body: pick(document.body), headings, fontUrls};
}"""


def _tally(raw: Optional[Dict[str, int]], exclude: Iterable[str] = ()) -> Counter:
    counts: Counter = Counter()
    skip = set(exclude)
    for value, n in (raw or {}).items():
        if not is_opaque(value):
            continue
        color = normalize_color(value)
        if color and color not in skip:
            counts[color] += int(n)
    return counts


def _resolve_variable(variables: Dict[str, str], name: str, depth: int = 0) -> Optional[str]:
    value = (variables.get(name) or "").strip()
    m = re.match(r"var\(\s*(--[\w-]+)", value)
    if m and depth < 3:
        return _resolve_variable(variables, m.group(1), depth + 1)
    rgba = parse_color(value)
    return to_hex(rgba) if rgba is not None and rgba[3] > 0 else None


def _first_variable(variables: Dict[str, str], names: List[str]) -> Optional[str]:
    for name in names:
        color = _resolve_variable(variables, name)
        if color:
            return color
    return None


def build_palette(samples: dict) -> ColorPalette:
    """Palette from raw colour tallies.

    `samples` carries `backgrounds`, `texts`, `buttons` and `links` (colour -> count),
    `root` (`background`/`color`), `gradients` and `variables` (custom property -> value).
    """
    backgrounds = _tally(samples.get("backgrounds"))
    texts = _tally(samples.get("texts"))
    buttons = _tally(samples.get("buttons"), exclude=BLACK_AND_WHITE)
    links = _tally(samples.get("links"))
    root = samples.get("root") or {}

    background = normalize_color(root.get("background")) if is_opaque(root.get("background")) else None
    background = background or DEFAULT_BACKGROUND
    foreground = normalize_color(root.get("color")) or DEFAULT_FOREGROUND

    overall = backgrounds + texts
    ranked = [c for c, _ in overall.most_common()]

    if buttons:
        primary = buttons.most_common(1)[0][0]
    else:
        primary = next((c for c in ranked if 0.2 < luminance(c) < 0.8), DEFAULT_PRIMARY)
    secondary = next((c for c in ranked if c not in {primary, background, foreground}), DEFAULT_SECONDARY)
    accent = next((c for c, _ in links.most_common() if c != foreground), primary)

    variables = {k: v for k, v in (samples.get("variables") or {}).items() if k.startswith("--")}
    primary = _first_variable(variables, PRIMARY_VARS) or primary
    secondary = _first_variable(variables, SECONDARY_VARS) or secondary
    accent = _first_variable(variables, ACCENT_VARS) or accent

    main = {primary, secondary, accent, background, foreground}
    additional = [c for c in ranked if c not in main][:5]
    gradients = unique_keep_order(list(samples.get("gradients") or []))[:5]
    color_vars = {k: v for k, v in variables.items() if _resolve_variable(variables, k)}
    dark = is_dark_color(background)

    return ColorPalette(
        primary=primary,
        secondary=secondary,
        accent=accent,
        background=background,
        foreground=foreground,
        muted="#9ca3af" if dark else "#6b7280",
        border="#374151" if dark else "#e5e7eb",
        has_gradients=bool(gradients),
        gradients=gradients,
        additional_colors=additional,
        css_variables=dict(list(color_vars.items())[:MAX_CSS_VARIABLES]),
    )


def primary_family(stack: Optional[str]) -> Optional[str]:
    if not stack:
        return None
    first = stack.split(",")[0].strip().strip("'\"")
    return first or None


def build_typography(samples: dict) -> Typography:
    body = samples.get("body") or {}
    headings = samples.get("headings") or {}
    levels = [lvl for lvl in ("h1", "h2", "h3", "h4") if headings.get(lvl)]
    lead = headings[levels[0]] if levels else {}

    body_font = primary_family(body.get("family")) or "Inter"
    sizes = {lvl: headings[lvl]["size"] for lvl in levels if headings[lvl].get("size")}
    font_urls = [u for u in samples.get("fontUrls") or [] if u and FONT_URL_RE.search(u)]

    return Typography(
        heading_font=primary_family(lead.get("family")) or body_font,
        body_font=body_font,
        heading_weight=str(lead.get("weight") or "700"),
        body_weight=str(body.get("weight") or "400"),
        heading_sizes=HeadingSizes(**sizes),
        body_size=body.get("size") or "16px",
        line_height=body.get("lineHeight") or "1.5",
        letter_spacing=body.get("letterSpacing") or "normal",
        font_urls=unique_keep_order(font_urls),
    )


def pick_radius(radii: Optional[Dict[str, int]]) -> str:
    counts = Counter({k: int(v) for k, v in (radii or {}).items() if k and k != "0px"})
    return counts.most_common(1)[0][0] if counts else DEFAULT_RADIUS


def _no_fetch(url):
    return None


# @import targets are recorded, never downloaded
_css_parser = cssutils.CSSParser(raiseExceptions=False, fetcher=_no_fetch, parseComments=False, validate=False)


def _targets_root(rule) -> bool:
    return any(part.strip().lower() in ROOT_SELECTORS for part in rule.selectorText.split(","))


def static_samples(html: str, base_url: Optional[str] = None) -> dict:
    """Colour and typography tallies read from markup and inline CSS only."""
    soup = soupify(html or "")
    sheet = _css_parser.parseString("\n".join(tag.get_text() for tag in soup.find_all("style")))
    variables: Dict[str, str] = {}
    root: Dict[str, str] = {}
    body_family = None

    declarations = []
    imports = []
    for rule in sheet:
        if rule.type == rule.IMPORT_RULE and rule.href:
            imports.append(rule.href)
        elif rule.type == rule.STYLE_RULE and _targets_root(rule):
            declarations.append(rule.style)
    body = soup.find("body")
    if body is not None and body.get("style"):
        declarations.append(_css_parser.parseStyle(body["style"]))

    for style in declarations:
        for prop in style:
            name, value = prop.name.strip().lower(), prop.value.strip()
            first = value.split()[0] if value else ""
            if name.startswith("--"):
                variables[name] = value
            elif name in ("background", "background-color") and is_opaque(first):
                root["background"] = first
            elif name == "color" and value:
                root["color"] = value
            elif name == "font-family" and value:
                body_family = value

    buttons: Dict[str, int] = {}
    theme = soup.find("meta", attrs={"name": "theme-color"})
    if theme is not None and parse_color(theme.get("content")):
        buttons[theme["content"]] = 1

    font_urls = []
    for href in [link["href"] for link in soup.find_all("link", href=True)] + imports:
        url = absolutize(base_url, href) if base_url else href
        if url:
            font_urls.append(url)

    return {
        "backgrounds": {},
        "texts": {},
        "buttons": buttons,
        "links": {},
        "gradients": [],
        "radii": {},
        "variables": variables,
        "root": root,
        "body": {"family": body_family} if body_family else {},
        "headings": {},
        "fontUrls": font_urls,
    }


def tokens_from_samples(colors: dict, typography: dict, source: str = "rendered") -> DesignTokens:
    return DesignTokens(
        colors=build_palette(colors),
        typography=build_typography(typography),
        border_radius=pick_radius(colors.get("radii")),
        source=source,
    )


def fallback_tokens(html: Optional[str] = None, base_url: Optional[str] = None) -> DesignTokens:
    """Tokens without a browser: static evidence from the HTML, else the defaults."""
    samples = static_samples(html or "", base_url)
    has_evidence = bool(samples["variables"] or samples["root"] or samples["buttons"] or samples["body"])
    return tokens_from_samples(samples, samples, source="static" if has_evidence else "default")


class DesignTokenExtractor:
    def __init__(self, renderer: Optional[PageRenderer] = None, timeout_secs: Optional[float] = None):
        self.renderer = renderer or PageRenderer()
        self.timeout_secs = timeout_secs or settings.RENDER_TIMEOUT_SECS

    async def extract(self, page) -> DesignTokens:
        """Read tokens from an already rendered page."""
        colors = await page.evaluate(COLLECT_COLORS_JS)
        typography = await page.evaluate(COLLECT_TYPOGRAPHY_JS)
        tokens = tokens_from_samples(colors or {}, typography or {})
        logger.info(
            "tokens: primary=%s secondary=%s accent=%s bg=%s fonts=%s/%s",
            tokens.colors.primary, tokens.colors.secondary, tokens.colors.accent,
            tokens.colors.background, tokens.typography.heading_font, tokens.typography.body_font,
        )
        return tokens

    async def _render_and_extract(self, url: str) -> DesignTokens:
        async with self.renderer.open(url) as page:
            return await self.extract(page)

    async def extract_from_url(self, url: str) -> DesignTokens:
        try:
            return await asyncio.wait_for(self._render_and_extract(url), timeout=self.timeout_secs)
        except asyncio.TimeoutError as e:
            raise RenderError(f"rendering {url} timed out after {self.timeout_secs}s") from e


def css_variables_block(palette: ColorPalette, typography: Typography, border_radius: str = DEFAULT_RADIUS) -> str:
    lines = [
        f"  --color-primary: {palette.primary};",
        f"  --color-secondary: {palette.secondary};",
        f"  --color-accent: {palette.accent};",
        f"  --color-background: {palette.background};",
        f"  --color-foreground: {palette.foreground};",
        f"  --color-muted: {palette.muted};",
        f"  --color-border: {palette.border};",
        f"  --font-heading: '{typography.heading_font}', sans-serif;",
        f"  --font-body: '{typography.body_font}', sans-serif;",
        f"  --radius: {border_radius};",
    ]
    return ":root {\n" + "\n".join(lines) + "\n}"


def google_fonts_link(typography: Typography) -> str:
    families = unique_keep_order([typography.heading_font, typography.body_font])
    params = "&".join(f"family={quote_plus(f)}:wght@400;500;600;700" for f in families)
    return f'<link href="https://fonts.googleapis.com/css2?{params}&display=swap" rel="stylesheet">'
