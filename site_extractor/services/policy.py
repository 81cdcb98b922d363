"""Fidelity policy: request text -> cloning tier -> facet config -> generation brief.

Tiers are data. `TIER_FACETS` says what each tier propagates and `TIER_PROFILES`
carries the wording used in the brief; adding a tier means adding rows here.
"""

import logging
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from site_extractor.models.schemas import (
    CloningConfig, CloningOverrides, CloningTier, ExtractionResult, Section,
)
from site_extractor.services.colors import color_variants, has_good_contrast, normalize_color
from site_extractor.services.tokens import css_variables_block, google_fonts_link

logger = logging.getLogger(__name__)

# checked in this order; the first tier with a hit wins, inspiration otherwise
TIER_KEYWORDS: List[tuple] = [
    ("exact", (
        "copia exacta", "exact copy", "idéntic", "identical", "100%", "igual",
        "mismo diseño", "same design", "réplica exacta", "exact replica",
        "clonar exactamente", "clone exactly", "copiar todo", "copy everything",
    )),
    ("replica", (
        "réplica", "replica", "similar", "parecid", "como esta", "like this",
        "estilo de", "style of", "basado en", "based on", "inspirado en",
        "inspired by", "clonar", "clone", "copiar", "copy", "clona",
    )),
]
DEFAULT_TIER = "inspiration"

FACETS = ("copy_colors", "copy_typography", "copy_structure", "copy_content", "copy_images", "copy_animations")

TIER_FACETS: Dict[str, Dict[str, bool]] = {
    "inspiration": {
        "copy_colors": True, "copy_typography": True, "copy_structure": True,
        "copy_content": False, "copy_images": False, "copy_animations": False,
    },
    "replica": {f: True for f in FACETS},
    "exact": {f: True for f in FACETS},
}

PALETTE_ROLES = ("primary", "secondary", "accent", "background", "foreground", "muted", "border")


class TierProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    goal: str
    summary: str
    whats_copied: List[str]
    whats_new: List[str]
    content_mode: str  # generate | adapt | verbatim
    image_mode: str  # generate | reference
    rules: List[str]


TIER_PROFILES: Dict[str, TierProfile] = {
    "inspiration": TierProfile(
        name="INSPIRATION",
        goal="Build a landing page INSPIRED by the source site: reuse its colours and overall structure with entirely new content.",
        summary="Colours and structure are used as a reference; all content is new.",
        whats_copied=["Colour palette", "Typography", "Section structure", "Overall visual style"],
        whats_new=["All text content", "Generated images", "CTA copy"],
        content_mode="generate",
        image_mode="generate",
        rules=[
            "USE the exact colours provided",
            "KEEP the section structure",
            "GENERATE new, relevant content",
            "DO NOT copy text from the source",
        ],
    ),
    "replica": TierProfile(
        name="VISUAL REPLICA",
        goal="Build a landing page VISUALLY SIMILAR to the source site, keeping its design and adapting the content to the user's business.",
        summary="The visual design is replicated and the content is adapted to the user's business.",
        whats_copied=["Colour palette", "Typography", "Exact structure", "Image style", "Content tone"],
        whats_new=["Content adapted to the business", "Similar images", "Contact details"],
        content_mode="adapt",
        image_mode="generate",
        rules=[
            "USE the exact colours provided",
            "REPLICATE the section structure exactly",
            "ADAPT the content while keeping its style",
            "USE images of a similar style",
        ],
    ),
    "exact": TierProfile(
        name="EXACT COPY",
        goal="Build a landing page IDENTICAL to the source site, replicating its design, structure and visual style exactly.",
        summary="The site is reproduced as it is, including its content and images.",
        whats_copied=["Everything: colours, typography, structure", "Exact text content", "Original images", "Animations and effects"],
        whats_new=["Contact details only when supplied"],
        content_mode="verbatim",
        image_mode="reference",
        rules=[
            "USE the EXACT colours provided",
            "REPLICATE the structure EXACTLY",
            "COPY the source text verbatim",
            "USE the downloaded original images",
            "KEEP the same visual style pixel for pixel",
        ],
    ),
}

LANGUAGE_NAMES = {"es": "Spanish", "en": "English"}
DEFAULT_SECTION_ORDER = ["header", "hero", "features", "cta", "footer"]

BUSINESS_NAME_RE = re.compile(
    r"\b(?i:for|called|named|para|llamad[oa])\s+[\"'“]?"
    r"((?:[A-ZÁÉÍÓÚÑ0-9][\w&'’.-]*)(?:\s+(?:&\s+)?[A-ZÁÉÍÓÚÑ0-9][\w&'’.-]*)*)"
)


def detect_tier(text: Optional[str]) -> CloningTier:
    lowered = (text or "").lower()
    for tier, keywords in TIER_KEYWORDS:
        if any(kw in lowered for kw in keywords):
            return tier
    return DEFAULT_TIER


def infer_business_name(text: Optional[str]) -> Optional[str]:
    m = BUSINESS_NAME_RE.search(text or "")
    if not m:
        return None
    return m.group(1).strip().rstrip(".'\"”") or None


def _clean_color_overrides(overrides: Dict[str, str]) -> Dict[str, str]:
    cleaned = {}
    for role, value in overrides.items():
        color = normalize_color(value)
        if role in PALETTE_ROLES and color:
            cleaned[role] = color
        else:
            logger.warning("ignoring colour override %s=%r", role, value)
    return cleaned


def build_config(tier: CloningTier, overrides: Optional[CloningOverrides] = None) -> CloningConfig:
    values = dict(TIER_FACETS[tier])
    if overrides is not None:
        data = overrides.model_dump(exclude_none=True)
        values.update({k: v for k, v in data.items() if k in FACETS})
        for key in ("business_name", "business_description", "custom_content"):
            if key in data:
                values[key] = data[key]
        values["color_overrides"] = _clean_color_overrides(data.get("color_overrides") or {})
    return CloningConfig(tier=tier, **values)


def analyze_request(text: Optional[str], overrides: Optional[CloningOverrides] = None) -> CloningConfig:
    tier = detect_tier(text)
    overrides = overrides.model_copy() if overrides is not None else CloningOverrides()
    if not overrides.business_name:
        overrides.business_name = infer_business_name(text)
    config = build_config(tier, overrides)
    logger.info("request tier=%s business=%s", tier, config.business_name)
    return config


def tier_summary(tier: CloningTier) -> Dict[str, object]:
    profile = TIER_PROFILES[tier]
    return {
        "name": profile.name,
        "description": profile.summary,
        "whats_copied": list(profile.whats_copied),
        "whats_new": list(profile.whats_new),
    }


def section_order(sections: List[Section]) -> List[str]:
    order: List[str] = []
    for section in sorted(sections, key=lambda s: s.order):
        if section.content.is_populated() and section.section_type not in order:
            order.append(section.section_type)
    return order or list(DEFAULT_SECTION_ORDER)


def _verbatim_lines(sections: List[Section]) -> List[str]:
    lines = []
    for section in sections:
        c = section.content
        label = section.section_type
        if c.title:
            lines.append(f'- {label} title: "{c.title}"')
        if c.subtitle:
            lines.append(f'- {label} subtitle: "{c.subtitle}"')
        for item in getattr(c, "items", []):
            detail = f": {item.description}" if item.description else ""
            price = f" ({item.price})" if item.price else ""
            lines.append(f"  - {item.title}{price}{detail}")
        for t in getattr(c, "testimonials", []):
            lines.append(f'  - "{t.quote}" ({t.author or "anonymous"})')
        for f in getattr(c, "faqs", []):
            lines.append(f"  - Q: {f.question} A: {f.answer}")
        for s in getattr(c, "stats", []):
            lines.append(f"  - {s.value} {s.label}".rstrip())
        for cta in getattr(c, "ctas", []):
            lines.append(f'  - button "{cta.text}"')
    return lines


def build_brief(tier: CloningTier, data: ExtractionResult, config: CloningConfig) -> str:
    """Section-headed generation brief for the downstream content generator."""
    profile = TIER_PROFILES[tier]
    palette = data.colors.model_copy(update=config.color_overrides)
    hero = next((s.content for s in data.sections if s.section_type == "hero"), None)
    parts: List[str] = []

    parts.append(f"## CLONING TIER: {profile.name}")
    parts.append("")
    parts.append(f"**Goal:** {profile.goal}")
    summary = tier_summary(tier)
    parts.append(f"- Copied: {', '.join(summary['whats_copied'])}")
    parts.append(f"- New: {', '.join(summary['whats_new'])}")
    parts.append("")
    parts.append(f"**Source URL:** {data.source_url}")
    parts.append(f"**Source title:** {data.title or '(none)'}")
    parts.append("")

    if config.business_name or config.business_description or config.custom_content:
        parts.append("### BUSINESS")
        if config.business_name:
            parts.append(f"- Name: {config.business_name}")
        if config.business_description:
            parts.append(f"- Description: {config.business_description}")
        custom = config.custom_content
        if custom is not None:
            if custom.hero_title:
                parts.append(f'- Hero title: "{custom.hero_title}"')
            if custom.hero_subtitle:
                parts.append(f'- Hero subtitle: "{custom.hero_subtitle}"')
            for item in custom.features:
                parts.append(f"- Feature: {item.title}" + (f": {item.description}" if item.description else ""))
        parts.append("")

    if data.industry.detected:
        parts.append("### INDUSTRY")
        parts.append(f"- {data.industry.label} (confidence: {data.industry.confidence})")
        parts.append("")

    if config.copy_colors:
        parts.append("### COLOURS (MANDATORY)")
        parts.append("```")
        for role in PALETTE_ROLES:
            parts.append(f"{role.capitalize()}: {getattr(palette, role)}")
        parts.append("```")
        if palette.primary.startswith("#"):
            shades = color_variants(palette.primary)
            parts.append("Primary shades: " + ", ".join(f"{k} {v}" for k, v in shades.items()))
        if not has_good_contrast(palette.foreground, palette.background):
            parts.append("- Foreground/background contrast is below WCAG AA; darken or lighten the text colour.")
        parts.append("")
        parts.append("CSS variables:")
        parts.append("```css")
        parts.append(css_variables_block(palette, data.typography, data.border_radius))
        parts.append("```")
        parts.append("")

    if config.copy_typography:
        t = data.typography
        parts.append("### TYPOGRAPHY")
        parts.append(f"- Heading font: {t.heading_font} ({t.heading_weight})")
        parts.append(f"- Body font: {t.body_font} ({t.body_weight}, {t.body_size}, line height {t.line_height})")
        parts.append(f"- Heading sizes: h1 {t.heading_sizes.h1}, h2 {t.heading_sizes.h2}, h3 {t.heading_sizes.h3}, h4 {t.heading_sizes.h4}")
        if t.font_urls:
            parts.append("- Source font stylesheets: " + ", ".join(t.font_urls[:3]))
        else:
            parts.append(f"- Load fonts with: {google_fonts_link(t)}")
        parts.append("")

    if config.copy_structure:
        parts.append("### SECTION STRUCTURE")
        parts.append("Keep this section order:")
        parts.extend(f"{i}. {name}" for i, name in enumerate(section_order(data.sections), 1))
        parts.append("")

    if profile.content_mode == "verbatim" and config.copy_content:
        parts.append("### CONTENT (COPY EXACTLY)")
        parts.extend(_verbatim_lines(data.sections) or ["- No source text was extracted."])
    elif profile.content_mode == "adapt" and config.copy_content:
        parts.append("### CONTENT")
        parts.append("Adapt the source content to the user's business:")
        if hero is not None and hero.title:
            parts.append(f'- Source hero: "{hero.title}"')
        parts.append("- Keep the tone and style of the source content")
        parts.append("- Rewrite the copy for the user's specific business")
    else:
        parts.append("### CONTENT")
        parts.append("**IMPORTANT:** Write NEW, ORIGINAL content for the user's business.")
        parts.append("DO NOT copy content from the source site.")
        parts.append("Use its structure and colours as a reference only.")
    parts.append("")

    stored = data.assets.all_assets()
    parts.append("### IMAGES")
    if profile.image_mode == "reference" and config.copy_images and stored:
        parts.append("Use the downloaded original images:")
        parts.extend(f"- {a.category}: {a.stored_url}" for a in stored[:10])
    else:
        parts.append("Generate new images in a style similar to the source.")
        roles = [name for name, found in (
            ("logo", data.assets.logo is not None),
            ("hero", bool(data.assets.hero_images)),
            ("gallery", bool(data.assets.gallery_images)),
            ("background", bool(data.assets.background_images)),
            ("client logos", bool(data.assets.client_logos)),
        ) if found]
        if roles:
            parts.append("Image roles found on the source: " + ", ".join(roles))
    parts.append("")

    parts.append("### VISUAL STYLE")
    parts.append(f"- Mode: {'Dark' if palette.is_dark else 'Light'}")
    parts.append(f"- Gradients: {'Yes' if palette.has_gradients else 'No'}")
    parts.append(f"- Border radius: {data.border_radius}")
    parts.append("")

    language = LANGUAGE_NAMES.get(data.language.language, data.language.language)
    parts.append("### LANGUAGE")
    parts.append(f"**ALL content MUST be written in {language}.**")
    parts.append("")

    parts.append("### CRITICAL RULES")
    parts.extend(f"{i}. {rule}" for i, rule in enumerate(profile.rules, 1))

    return "\n".join(parts)
