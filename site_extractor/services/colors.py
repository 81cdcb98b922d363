"""Colour parsing and math shared by the token extractor, the segmenter and the models.

Everything here is pure: strings in, strings or numbers out.
"""

import re
from typing import Dict, Optional, Tuple

RGBA = Tuple[int, int, int, float]

NAMED_COLORS: Dict[str, str] = {
    "black": "#000000",
    "white": "#ffffff",
    "red": "#ff0000",
    "green": "#008000",
    "blue": "#0000ff",
    "yellow": "#ffff00",
    "orange": "#ffa500",
    "purple": "#800080",
    "pink": "#ffc0cb",
    "gray": "#808080",
    "grey": "#808080",
    "silver": "#c0c0c0",
    "navy": "#000080",
    "teal": "#008080",
    "maroon": "#800000",
    "olive": "#808000",
    "lime": "#00ff00",
    "aqua": "#00ffff",
    "cyan": "#00ffff",
    "fuchsia": "#ff00ff",
    "magenta": "#ff00ff",
    "indigo": "#4b0082",
    "gold": "#ffd700",
    "beige": "#f5f5dc",
    "ivory": "#fffff0",
    "whitesmoke": "#f5f5f5",
}

DARK_NAME_HINTS = ("black", "dark", "navy", "slate", "gray-8", "gray-9")

_RGB_RE = re.compile(r"rgba?\(([^)]+)\)")
_HSL_RE = re.compile(r"hsla?\(([^)]+)\)")
_HEX_RE = re.compile(r"#([0-9a-f]{3,8})\b")
_BARE_HSL_RE = re.compile(r"^(-?[\d.]+)(?:deg)?\s+([\d.]+)%\s+([\d.]+)%$")
_FUNCTION_RE = re.compile(r"^[a-z-]+\(.*\)$", re.S)


def _alpha(part: str) -> float:
    part = part.strip()
    if part.endswith("%"):
        return float(part[:-1]) / 100.0
    return float(part)


def hsl_to_rgb(h: float, s: float, l: float) -> Tuple[int, int, int]:
    """h in degrees, s and l in 0..1."""
    h = (h % 360) / 360.0

    def hue(p: float, q: float, t: float) -> float:
        t %= 1.0
        if t < 1 / 6:
            return p + (q - p) * 6 * t
        if t < 1 / 2:
            return q
        if t < 2 / 3:
            return p + (q - p) * (2 / 3 - t) * 6
        return p

    if s == 0:
        v = round(l * 255)
        return v, v, v
    q = l * (1 + s) if l < 0.5 else l + s - l * s
    p = 2 * l - q
    return (
        round(hue(p, q, h + 1 / 3) * 255),
        round(hue(p, q, h) * 255),
        round(hue(p, q, h - 1 / 3) * 255),
    )


def parse_color(value: Optional[str]) -> Optional[RGBA]:
    if not value:
        return None
    value = value.strip().lower()
    if value in {"transparent", "none", "inherit", "initial", "currentcolor"}:
        return None
    if value in NAMED_COLORS:
        value = NAMED_COLORS[value]

    rgb_match = _RGB_RE.match(value)
    if rgb_match:
        parts = [p for p in re.split(r"[\s,/]+", rgb_match.group(1).strip()) if p]
        if len(parts) >= 3:
            try:
                channels = []
                for p in parts[:3]:
                    channels.append(round(float(p[:-1]) * 2.55) if p.endswith("%") else int(float(p)))
                a = _alpha(parts[3]) if len(parts) > 3 else 1.0
            except ValueError:
                return None
            r, g, b = (max(0, min(255, c)) for c in channels)
            return r, g, b, a
        return None

    hsl_match = _HSL_RE.match(value)
    bare = _BARE_HSL_RE.match(value)
    if hsl_match or bare:
        if bare:
            parts = list(bare.groups())
        else:
            parts = [p for p in re.split(r"[\s,/]+", hsl_match.group(1).strip()) if p]
        if len(parts) < 3:
            return None
        try:
            h = float(parts[0].replace("deg", ""))
            s = float(parts[1].rstrip("%")) / 100.0
            l = float(parts[2].rstrip("%")) / 100.0
            a = _alpha(parts[3]) if len(parts) > 3 else 1.0
        except ValueError:
            return None
        r, g, b = hsl_to_rgb(h, s, l)
        return r, g, b, a

    hex_match = _HEX_RE.match(value)
    if hex_match:
        h = hex_match.group(1)
        if len(h) in {3, 4}:
            r = int(h[0] * 2, 16)
            g = int(h[1] * 2, 16)
            b = int(h[2] * 2, 16)
            a = int(h[3] * 2, 16) / 255.0 if len(h) == 4 else 1.0
            return r, g, b, a
        if len(h) in {6, 8}:
            r = int(h[0:2], 16)
            g = int(h[2:4], 16)
            b = int(h[4:6], 16)
            a = int(h[6:8], 16) / 255.0 if len(h) == 8 else 1.0
            return r, g, b, a
    return None


def to_hex(rgba: RGBA) -> str:
    r, g, b, _ = rgba
    return "#{:02x}{:02x}{:02x}".format(r, g, b)


def normalize_color(value: Optional[str]) -> Optional[str]:
    """`#rrggbb` when resolvable, the raw CSS function when not, None for non-colours."""
    rgba = parse_color(value)
    if rgba is not None:
        return to_hex(rgba)
    if value and _FUNCTION_RE.match(value.strip().lower()):
        return value.strip()
    return None


def is_opaque(value: Optional[str]) -> bool:
    rgba = parse_color(value)
    return rgba is not None and rgba[3] > 0


def luminance(color: Optional[str]) -> float:
    """Perceptual luminance in 0..1. Unresolvable colours sit at the midpoint."""
    rgba = parse_color(color)
    if rgba is None:
        return 0.5
    r, g, b, _ = rgba
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255.0


def is_dark_color(color: Optional[str]) -> bool:
    if color and parse_color(color) is None:
        lowered = color.lower()
        return any(hint in lowered for hint in DARK_NAME_HINTS)
    return luminance(color) < 0.5


def relative_luminance(rgba: RGBA) -> float:
    def channel(c: int) -> float:
        c = c / 255.0
        return c / 12.92 if c <= 0.03928 else ((c + 0.055) / 1.055) ** 2.4

    return 0.2126 * channel(rgba[0]) + 0.7152 * channel(rgba[1]) + 0.0722 * channel(rgba[2])


def contrast_ratio(first: str, second: str) -> float:
    a, b = parse_color(first), parse_color(second)
    if a is None or b is None:
        return 1.0
    lighter = max(relative_luminance(a), relative_luminance(b))
    darker = min(relative_luminance(a), relative_luminance(b))
    return (lighter + 0.05) / (darker + 0.05)


def has_good_contrast(first: str, second: str) -> bool:
    # WCAG AA for body text
    return contrast_ratio(first, second) >= 4.5


def hex_to_hsl(color: str) -> Tuple[int, int, int]:
    rgba = parse_color(color)
    if rgba is None:
        raise ValueError(f"not a colour: {color!r}")
    r, g, b = (c / 255.0 for c in rgba[:3])
    maxc, minc = max(r, g, b), min(r, g, b)
    l = (maxc + minc) / 2.0
    h = s = 0.0
    if maxc != minc:
        d = maxc - minc
        s = d / (2.0 - maxc - minc) if l > 0.5 else d / (maxc + minc)
        if maxc == r:
            h = ((g - b) / d + (6 if g < b else 0)) / 6
        elif maxc == g:
            h = ((b - r) / d + 2) / 6
        else:
            h = ((r - g) / d + 4) / 6
    return round(h * 360), round(s * 100), round(l * 100)


def hsl_to_hex(h: int, s: int, l: int) -> str:
    r, g, b = hsl_to_rgb(h, s / 100.0, l / 100.0)
    return to_hex((r, g, b, 1.0))


def color_variants(color: str) -> Dict[str, str]:
    h, s, l = hex_to_hsl(color)
    return {
        "lighter": hsl_to_hex(h, s, min(95, l + 30)),
        "light": hsl_to_hex(h, s, min(85, l + 15)),
        "base": normalize_color(color) or color,
        "dark": hsl_to_hex(h, s, max(15, l - 15)),
        "darker": hsl_to_hex(h, s, max(5, l - 30)),
    }
