"""Keyword-table classifiers for industry and content language."""

import re
from typing import Dict, List, Optional, Tuple

from site_extractor.models.schemas import IndustryDetection, LanguageDetection

# id, label, keywords (es + en)
INDUSTRIES: List[Tuple[str, str, Tuple[str, ...]]] = [
    ("restaurant", "Restaurant", ("restaurant", "restaurante", "menu", "menú", "chef", "cuisine", "cocina", "reservation", "reserva", "dining")),
    ("cafe", "Café & Bakery", ("cafe", "café", "coffee", "bakery", "panadería", "pastelería", "espresso", "barista")),
    ("dental", "Dental Clinic", ("dental", "dentist", "dentista", "odontología", "orthodontics", "ortodoncia", "teeth", "dientes")),
    ("health", "Health & Medical", ("clinic", "clínica", "medical", "médico", "doctor", "health", "salud", "patient", "paciente")),
    ("fitness", "Gym & Fitness", ("gym", "gimnasio", "fitness", "workout", "entrenamiento", "personal trainer", "crossfit", "yoga")),
    ("beauty", "Beauty & Spa", ("salon", "salón", "spa", "beauty", "belleza", "hair", "peluquería", "nails", "uñas", "makeup")),
    ("legal", "Law Firm", ("law firm", "lawyer", "abogado", "attorney", "legal", "bufete", "despacho")),
    ("real_estate", "Real Estate", ("real estate", "inmobiliaria", "property", "propiedad", "homes for sale", "apartments", "departamentos")),
    ("saas", "SaaS & Software", ("saas", "software", "platform", "plataforma", "api", "dashboard", "integrations", "free trial", "prueba gratis")),
    ("ecommerce", "E-commerce", ("shop", "tienda", "store", "cart", "carrito", "checkout", "free shipping", "envío gratis", "products", "productos")),
    ("agency", "Agency & Studio", ("agency", "agencia", "studio", "estudio", "branding", "marketing", "design agency", "creative")),
    ("education", "Education", ("course", "curso", "academy", "academia", "school", "escuela", "students", "estudiantes", "learning")),
    ("travel", "Travel & Hospitality", ("hotel", "travel", "viajes", "tour", "booking", "resort", "hostel", "vacation", "vacaciones")),
    ("photography", "Photography", ("photography", "fotografía", "photographer", "fotógrafo", "portfolio", "wedding photos")),
    ("construction", "Construction", ("construction", "construcción", "contractor", "remodeling", "remodelación", "roofing", "plumbing")),
]

# generic category words, enough for a low-confidence guess
CATEGORY_HINTS: Dict[str, Tuple[str, ...]] = {
    "restaurant": ("food", "comida", "eat", "pizza", "sushi", "tacos", "burger"),
    "health": ("care", "therapy", "terapia", "wellness", "bienestar"),
    "saas": ("app", "cloud", "automation", "automatización", "startup"),
    "ecommerce": ("buy", "comprar", "sale", "oferta", "price", "precio"),
    "agency": ("consulting", "consultoría", "services", "servicios"),
}

SPANISH_INDICATORS = {
    "el", "la", "los", "las", "un", "una", "unos", "unas",
    "de", "del", "en", "con", "para", "por", "sobre", "entre", "hacia", "desde",
    "crea", "crear", "genera", "generar", "hazme", "haz", "quiero", "necesito",
    "diseña", "diseñar", "construye", "construir", "desarrolla", "desarrollar",
    "página", "pagina", "sitio", "empresa", "negocio",
    "restaurante", "clínica", "clinica", "tienda", "agencia", "estudio",
    "profesional", "moderna", "moderno", "elegante", "minimalista",
    "que", "como", "porque", "aunque", "pero", "también", "tambien",
    "sección", "seccion", "secciones", "testimonios", "precios", "servicios",
    "contacto", "formulario", "llamada", "acción", "accion",
    "nuestro", "nuestros", "nuestra", "nosotros", "más", "mas", "es", "son", "y",
}
ENGLISH_INDICATORS = {
    "the", "a", "an",
    "of", "in", "with", "for", "on", "about", "between", "from", "to",
    "create", "generate", "make", "build", "design", "develop", "want", "need",
    "page", "website", "site", "business", "company", "restaurant", "clinic",
    "store", "agency", "studio",
    "professional", "modern", "elegant", "minimalist", "clean",
    "that", "which", "because", "although", "but", "also", "however",
    "section", "sections", "testimonials", "pricing", "services", "contact",
    "form", "call", "action", "features",
    "our", "we", "your", "you", "more", "is", "are", "and",
}
SPANISH_CHARS_RE = re.compile(r"[áéíóúüñ¿¡]", re.I)
WORD_RE = re.compile(r"[a-záéíóúüñ]+", re.I)


def _words(text: str) -> List[str]:
    return WORD_RE.findall(text.lower())


def _contains(text: str, keyword: str) -> bool:
    return re.search(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", text) is not None


def detect_industry(text: Optional[str]) -> IndustryDetection:
    lowered = (text or "").lower()
    if not lowered.strip():
        return IndustryDetection(detected=False)

    best: Optional[Tuple[int, str, str, List[str]]] = None
    for industry_id, label, keywords in INDUSTRIES:
        hits = [kw for kw in keywords if _contains(lowered, kw)]
        if hits and (best is None or len(hits) > best[0]):
            best = (len(hits), industry_id, label, hits)
    if best is not None:
        count, industry_id, label, hits = best
        return IndustryDetection(
            detected=True, industry=industry_id, label=label,
            confidence="high" if count >= 2 else "medium", matched_keywords=hits,
        )

    # partial words: "restaurantes", "dentistas", "gyms"
    words = set(_words(lowered))
    for industry_id, label, keywords in INDUSTRIES:
        partial = [kw for kw in keywords if " " not in kw and len(kw) >= 5 and any(w.startswith(kw) for w in words)]
        if partial:
            return IndustryDetection(detected=True, industry=industry_id, label=label, confidence="low", matched_keywords=partial)

    for industry_id, hints in CATEGORY_HINTS.items():
        hits = [h for h in hints if h in words]
        if hits:
            label = next(lbl for iid, lbl, _ in INDUSTRIES if iid == industry_id)
            return IndustryDetection(detected=True, industry=industry_id, label=label, confidence="low", matched_keywords=hits)

    return IndustryDetection(detected=False)


def detect_language(text: Optional[str], declared: Optional[str] = None) -> LanguageDetection:
    """Spanish vs English. A declared `es`/`en` document language wins outright."""
    text = text or ""
    words = _words(text)
    spanish = sum(1 for w in words if w in SPANISH_INDICATORS)
    english = sum(1 for w in words if w in ENGLISH_INDICATORS)
    if SPANISH_CHARS_RE.search(text):
        spanish += 3

    primary = (declared or "").split("-")[0].strip().lower()
    if primary in ("es", "en"):
        return LanguageDetection(language=primary, confidence=1.0, spanish_score=spanish, english_score=english)

    total = spanish + english
    confidence = abs(spanish - english) / total if total else 0.0
    return LanguageDetection(
        language="es" if spanish >= english else "en",
        confidence=confidence,
        spanish_score=spanish,
        english_score=english,
    )
