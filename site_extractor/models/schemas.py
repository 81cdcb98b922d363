from typing import Dict, List, Literal, Optional, Tuple, Type, get_args

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny, computed_field, model_validator

from site_extractor.services.colors import is_dark_color

SectionType = Literal[
    "header", "hero", "logoCloud", "features", "services", "about", "process",
    "stats", "testimonials", "pricing", "faq", "gallery", "team", "portfolio",
    "clients", "benefits", "location", "cta", "form", "footer", "unknown",
]
SECTION_TYPES: Tuple[str, ...] = get_args(SectionType)

AssetCategory = Literal["image", "logo", "icon", "font", "background"]
CloningTier = Literal["inspiration", "replica", "exact"]
TIERS: Tuple[str, ...] = get_args(CloningTier)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class NavLink(_Frozen):
    label: str
    href: str


class CallToAction(_Frozen):
    text: str
    href: str = "#"
    style: Literal["primary", "secondary", "outline"] = "primary"


class ContentItem(_Frozen):
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    image: Optional[str] = None
    price: Optional[str] = None
    link: Optional[str] = None
    features: List[str] = []


class Testimonial(_Frozen):
    quote: str
    author: str = ""
    role: Optional[str] = None
    company: Optional[str] = None
    avatar: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=1, le=5)


class FaqItem(_Frozen):
    question: str
    answer: str


class StatItem(_Frozen):
    value: str
    label: str


class SocialLink(_Frozen):
    platform: str
    url: str


class FormField(_Frozen):
    name: str
    type: str = "text"
    label: Optional[str] = None


class ProcessStep(_Frozen):
    number: str
    title: str
    description: Optional[str] = None


# ---- per-section content shapes ----

class SectionContent(_Frozen):
    title: Optional[str] = None
    subtitle: Optional[str] = None
    description: Optional[str] = None

    def is_populated(self) -> bool:
        return any(bool(v) for v in self.model_dump().values())


class HeaderContent(SectionContent):
    logo: Optional[str] = None
    navigation: List[NavLink] = []
    ctas: List[CallToAction] = []


class HeroContent(SectionContent):
    ctas: List[CallToAction] = []
    images: List[str] = []


class ItemsContent(SectionContent):
    """Features, services, benefits, about, location and unrecognised blocks."""
    items: List[ContentItem] = []
    images: List[str] = []


class TeamContent(SectionContent):
    items: List[ContentItem] = []


class PricingContent(SectionContent):
    items: List[ContentItem] = []


class TestimonialsContent(SectionContent):
    testimonials: List[Testimonial] = []


class FaqContent(SectionContent):
    faqs: List[FaqItem] = []


class StatsContent(SectionContent):
    stats: List[StatItem] = []


class LogoCloudContent(SectionContent):
    images: List[str] = []


class GalleryContent(SectionContent):
    images: List[str] = []
    items: List[ContentItem] = []


class CtaContent(SectionContent):
    ctas: List[CallToAction] = []


class FormContent(SectionContent):
    fields: List[FormField] = []
    ctas: List[CallToAction] = []


class ProcessContent(SectionContent):
    steps: List[ProcessStep] = []


class FooterContent(SectionContent):
    logo: Optional[str] = None
    navigation: List[NavLink] = []
    social_links: List[SocialLink] = []
    copyright: Optional[str] = None


CONTENT_MODELS: Dict[str, Type[SectionContent]] = {
    "header": HeaderContent,
    "hero": HeroContent,
    "logoCloud": LogoCloudContent,
    "clients": LogoCloudContent,
    "features": ItemsContent,
    "services": ItemsContent,
    "benefits": ItemsContent,
    "about": ItemsContent,
    "location": ItemsContent,
    "unknown": ItemsContent,
    "team": TeamContent,
    "process": ProcessContent,
    "stats": StatsContent,
    "testimonials": TestimonialsContent,
    "pricing": PricingContent,
    "faq": FaqContent,
    "gallery": GalleryContent,
    "portfolio": GalleryContent,
    "cta": CtaContent,
    "form": FormContent,
    "footer": FooterContent,
}


class StyleHints(_Frozen):
    background_color: Optional[str] = None
    has_dark_bg: bool = False
    has_gradient: bool = False


class Section(_Frozen):
    id: str
    section_type: SectionType
    order: int = Field(ge=0)
    variant: str = "default"
    content: SerializeAsAny[SectionContent]
    style_hints: StyleHints = StyleHints()

    @model_validator(mode="before")
    @classmethod
    def _coerce_content(cls, data):
        if isinstance(data, dict):
            model = CONTENT_MODELS.get(data.get("section_type"))
            content = data.get("content")
            if model is not None and isinstance(content, dict):
                data = {**data, "content": model.model_validate(content)}
        return data

    @model_validator(mode="after")
    def _content_matches_type(self):
        expected = CONTENT_MODELS[self.section_type]
        if type(self.content) is not expected:
            raise ValueError(
                f"{self.section_type} section needs {expected.__name__}, got {type(self.content).__name__}"
            )
        return self


# ---- design tokens ----

class ColorPalette(_Frozen):
    primary: str
    secondary: str
    accent: str
    background: str
    foreground: str
    muted: str
    border: str
    has_gradients: bool = False
    gradients: List[str] = []
    additional_colors: List[str] = Field(default=[], max_length=5)
    css_variables: Dict[str, str] = {}

    @computed_field
    @property
    def is_dark(self) -> bool:
        return is_dark_color(self.background)


class HeadingSizes(_Frozen):
    h1: str = "48px"
    h2: str = "36px"
    h3: str = "24px"
    h4: str = "20px"


class Typography(_Frozen):
    heading_font: str = "Inter"
    body_font: str = "Inter"
    heading_weight: str = "700"
    body_weight: str = "400"
    heading_sizes: HeadingSizes = HeadingSizes()
    body_size: str = "16px"
    line_height: str = "1.5"
    letter_spacing: str = "normal"
    font_urls: List[str] = []


class DesignTokens(_Frozen):
    colors: ColorPalette
    typography: Typography
    border_radius: str = "8px"
    source: Literal["rendered", "static", "default"] = "rendered"


# ---- assets ----

class Asset(_Frozen):
    original_url: str
    stored_url: str
    local_path: str
    category: AssetCategory
    filename: str
    mime_type: str
    size_bytes: int = Field(ge=0)


class AssetRequest(_Frozen):
    url: str
    category: AssetCategory


class AssetFailure(_Frozen):
    url: str
    reason: str


class AssetDownloadResult(_Frozen):
    assets: List[Asset] = []
    errors: List[AssetFailure] = []

    @computed_field
    @property
    def success(self) -> bool:
        return not self.errors

    @computed_field
    @property
    def total_bytes(self) -> int:
        return sum(a.size_bytes for a in self.assets)


class DownloadedAssets(_Frozen):
    logo: Optional[Asset] = None
    hero_images: List[Asset] = []
    gallery_images: List[Asset] = []
    background_images: List[Asset] = []
    client_logos: List[Asset] = []
    errors: List[AssetFailure] = []

    def all_assets(self) -> List[Asset]:
        found = [self.logo] if self.logo else []
        return found + self.hero_images + self.gallery_images + self.background_images + self.client_logos


class AssetCandidates(_Frozen):
    """Asset URLs found in a document, per role, before anything is downloaded."""
    logo: Optional[str] = None
    hero_images: List[str] = []
    gallery_images: List[str] = []
    background_images: List[str] = []
    client_logos: List[str] = []


class StoredFile(_Frozen):
    filename: str
    stored_url: str
    size_bytes: int


# ---- cloning policy ----

class CustomContent(_Frozen):
    hero_title: Optional[str] = None
    hero_subtitle: Optional[str] = None
    features: List[ContentItem] = []


class CloningOverrides(BaseModel):
    """Caller-supplied adjustments applied on top of a tier profile."""
    copy_colors: Optional[bool] = None
    copy_typography: Optional[bool] = None
    copy_structure: Optional[bool] = None
    copy_content: Optional[bool] = None
    copy_images: Optional[bool] = None
    copy_animations: Optional[bool] = None
    business_name: Optional[str] = None
    business_description: Optional[str] = None
    color_overrides: Dict[str, str] = {}
    custom_content: Optional[CustomContent] = None


class CloningConfig(_Frozen):
    tier: CloningTier
    copy_colors: bool
    copy_typography: bool
    copy_structure: bool
    copy_content: bool
    copy_images: bool
    copy_animations: bool
    business_name: Optional[str] = None
    business_description: Optional[str] = None
    color_overrides: Dict[str, str] = {}
    custom_content: Optional[CustomContent] = None


class IndustryDetection(_Frozen):
    detected: bool
    industry: Optional[str] = None
    label: Optional[str] = None
    confidence: Literal["high", "medium", "low"] = "low"
    matched_keywords: List[str] = []


class LanguageDetection(_Frozen):
    language: Literal["es", "en"]
    confidence: float = Field(ge=0.0, le=1.0)
    spanish_score: int = 0
    english_score: int = 0


# ---- fetch / orchestration ----

class FetchedPage(_Frozen):
    url: str
    final_url: str
    status_code: int
    html: str
    title: Optional[str] = None
    description: Optional[str] = None
    language: Optional[str] = None


class ExtractionResult(_Frozen):
    source_url: str
    title: Optional[str] = None
    description: Optional[str] = None
    colors: ColorPalette
    typography: Typography
    border_radius: str = "8px"
    sections: List[Section] = []
    assets: DownloadedAssets = DownloadedAssets()
    industry: IndustryDetection
    language: LanguageDetection
    cloning_config: CloningConfig
    brief: str = ""
    notes: List[str] = []


class ExtractRequest(BaseModel):
    url: str = Field(min_length=1)
    message: str = ""
    project_id: Optional[str] = None
    overrides: Optional[CloningOverrides] = None
