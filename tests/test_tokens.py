import asyncio
from contextlib import asynccontextmanager

import pytest

from site_extractor.exceptions import RenderError
from site_extractor.services.tokens import (
    COLLECT_COLORS_JS, DesignTokenExtractor, build_palette, build_typography, fallback_tokens, pick_radius,
)

RENDERED_COLORS = {
    "backgrounds": {"rgb(17, 24, 39)": 40, "rgb(31, 41, 55)": 12, "rgb(37, 99, 235)": 6},
    "texts": {"rgb(243, 244, 246)": 80, "rgb(156, 163, 175)": 20},
    "buttons": {"rgb(37, 99, 235)": 6, "rgb(255, 255, 255)": 9},
    "links": {"rgb(96, 165, 250)": 14},
    "gradients": ["linear-gradient(90deg, rgb(37, 99, 235), rgb(147, 51, 234))"],
    "radii": {"12px": 8, "4px": 2},
    "variables": {},
    "root": {"background": "rgb(17, 24, 39)", "color": "rgb(243, 244, 246)"},
}

RENDERED_TYPOGRAPHY = {
    "body": {"family": '"Open Sans", Arial, sans-serif', "size": "17px", "weight": "400",
             "lineHeight": "27px", "letterSpacing": "normal"},
    "headings": {"h1": {"family": "Montserrat, sans-serif", "size": "56px", "weight": "800"}, "h2": None},
    "fontUrls": ["https://fonts.googleapis.com/css2?family=Montserrat", "https://acme.test/app.css"],
}


class FakePage:
    def __init__(self, colors, typography):
        self.colors = colors
        self.typography = typography
        self.scripts = []

    async def evaluate(self, script):
        self.scripts.append(script)
        return self.colors if script == COLLECT_COLORS_JS else self.typography


class FakeRenderer:
    def __init__(self, page=None, delay=0.0, error=None):
        self.page = page
        self.delay = delay
        self.error = error

    @asynccontextmanager
    async def open(self, url):
        if self.error is not None:
            raise self.error
        await asyncio.sleep(self.delay)
        yield self.page


def test_palette_from_rendered_tallies():
    palette = build_palette(RENDERED_COLORS)

    assert palette.background == "#111827"
    assert palette.foreground == "#f3f4f6"
    assert palette.primary == "#2563eb"  # white button fills are ignored
    assert palette.accent == "#60a5fa"
    assert palette.secondary not in {palette.primary, palette.background, palette.foreground}
    assert palette.is_dark
    assert (palette.muted, palette.border) == ("#9ca3af", "#374151")
    assert palette.has_gradients and len(palette.gradients) == 1


def test_palette_defaults_without_evidence():
    palette = build_palette({})

    assert (palette.primary, palette.secondary) == ("#3b82f6", "#64748b")
    assert (palette.background, palette.foreground) == ("#ffffff", "#000000")
    assert palette.accent == palette.primary
    assert not palette.is_dark
    assert (palette.muted, palette.border) == ("#6b7280", "#e5e7eb")


def test_custom_properties_win_and_resolve_var_chains():
    samples = dict(RENDERED_COLORS, variables={"--primary": "var(--brand)", "--brand": "#ff5500", "--spacing": "4px"})
    palette = build_palette(samples)

    assert palette.primary == "#ff5500"
    assert set(palette.css_variables) == {"--primary", "--brand"}


def test_additional_colours_capped_at_five():
    backgrounds = {f"rgb({i * 20}, {i * 10}, 90)": 10 - i for i in range(10)}
    palette = build_palette({"backgrounds": backgrounds})
    assert len(palette.additional_colors) <= 5


def test_typography_from_rendered_samples():
    t = build_typography(RENDERED_TYPOGRAPHY)

    assert (t.heading_font, t.body_font) == ("Montserrat", "Open Sans")
    assert (t.heading_weight, t.body_weight) == ("800", "400")
    assert t.heading_sizes.h1 == "56px"
    assert t.heading_sizes.h2 == "36px"
    assert t.line_height == "27px"
    assert t.font_urls == ["https://fonts.googleapis.com/css2?family=Montserrat"]


def test_typography_defaults():
    t = build_typography({})
    assert (t.heading_font, t.body_font, t.heading_weight, t.body_weight) == ("Inter", "Inter", "700", "400")
    assert (t.heading_sizes.h1, t.heading_sizes.h4) == ("48px", "20px")


def test_pick_radius():
    assert pick_radius({"0px": 30, "12px": 3, "4px": 1}) == "12px"
    assert pick_radius(None) == "8px"


def test_static_fallback_reads_inline_css():
    html = """
    <html><head>
      <style>:root { --primary: #e11d48; } body { background: #0f172a; color: #f8fafc; font-family: 'Lato', sans-serif; }</style>
      <link rel="stylesheet" href="https://fonts.googleapis.com/css2?family=Lato">
    </head><body></body></html>
    """
    tokens = fallback_tokens(html, "https://acme.test/")

    assert tokens.source == "static"
    assert tokens.colors.primary == "#e11d48"
    assert tokens.colors.background == "#0f172a"
    assert tokens.colors.is_dark
    assert tokens.typography.body_font == "Lato"
    assert tokens.typography.font_urls == ["https://fonts.googleapis.com/css2?family=Lato"]


def test_static_fallback_survives_comments_and_reads_imports():
    html = """
    <html><head><style>
      @import url("https://fonts.googleapis.com/css2?family=Merriweather");
      /* brand tokens */
      :root { --primary: #e11d48; --accent: #0ea5e9; }
      .card:hover { color: red; }
      html, body { background-color: #111111; /* page */ color: #eeeeee; }
    </style></head><body></body></html>
    """
    tokens = fallback_tokens(html, "https://acme.test/")

    assert tokens.colors.primary == "#e11d48"
    assert tokens.colors.accent == "#0ea5e9"
    assert tokens.colors.background == "#111111"
    assert tokens.colors.is_dark
    assert tokens.typography.font_urls == ["https://fonts.googleapis.com/css2?family=Merriweather"]


def test_fallback_without_evidence_uses_defaults():
    tokens = fallback_tokens("<html><body><p>hello</p></body></html>")

    assert tokens.source == "default"
    assert tokens.colors.primary == "#3b82f6"
    assert tokens.typography.heading_font == "Inter"
    assert tokens.border_radius == "8px"


def test_extract_from_rendered_page():
    page = FakePage(RENDERED_COLORS, RENDERED_TYPOGRAPHY)
    extractor = DesignTokenExtractor(renderer=FakeRenderer(page), timeout_secs=5)

    tokens = asyncio.run(extractor.extract_from_url("https://acme.test/"))

    assert tokens.source == "rendered"
    assert tokens.colors.primary == "#2563eb"
    assert tokens.typography.heading_font == "Montserrat"
    assert tokens.border_radius == "12px"
    assert len(page.scripts) == 2


def test_render_timeout_becomes_render_error():
    extractor = DesignTokenExtractor(renderer=FakeRenderer(FakePage({}, {}), delay=1.0), timeout_secs=0.01)

    with pytest.raises(RenderError):
        asyncio.run(extractor.extract_from_url("https://acme.test/"))


def test_renderer_failure_propagates_as_render_error():
    extractor = DesignTokenExtractor(renderer=FakeRenderer(error=RenderError("browser crashed")), timeout_secs=5)

    with pytest.raises(RenderError, match="browser crashed"):
        asyncio.run(extractor.extract_from_url("https://acme.test/"))
