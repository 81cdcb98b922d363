import asyncio, hashlib, httpx, logging, re, tldextract
from pathlib import PurePosixPath
from typing import Dict, Iterable, List, Optional
from urllib.parse import urldefrag, urlparse
from site_extractor.config import settings
from site_extractor.exceptions import AssetError, InvalidProjectError
from site_extractor.models.schemas import (
    Asset, AssetCandidates, AssetDownloadResult, AssetFailure, AssetRequest, DownloadedAssets, StoredFile,
)
from site_extractor.services.html_utils import absolutize, css_urls, img_src, soupify
from site_extractor.services.normalizer import unique_keep_order
from site_extractor.services.storage import AssetStorage

logger = logging.getLogger(__name__)

IMAGE_TYPES = ("image/",)
ALLOWED_MIME = {
    "image": IMAGE_TYPES,
    "logo": IMAGE_TYPES,
    "background": IMAGE_TYPES,
    "icon": IMAGE_TYPES,
    "font": ("font/", "application/font-", "application/x-font-", "application/vnd.ms-fontobject"),
}

KNOWN_EXTENSIONS = {
    ".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".avif", ".ico", ".bmp",
    ".woff", ".woff2", ".ttf", ".otf", ".eot",
}

PLACEHOLDER_DOMAINS = {
    "placeholder.com", "placehold.co", "placehold.it", "dummyimage.com",
    "placekitten.com", "fakeimg.pl", "lorempixel.com",
}

LOGO_SELECTORS = [
    'header img[class*="logo"]',
    'nav img[class*="logo"]',
    '.logo img',
    'a[class*="logo"] img',
    '[class*="logo"] img',
    'img[alt*="logo" i]',
    'header img',
]
HERO_SELECTOR = '[class*="hero"] img, [id*="hero"] img, [class*="banner"] img, [class*="jumbotron"] img'
GALLERY_SELECTOR = (
    '[class*="gallery"] img, [class*="portfolio"] img, [class*="project"] img, '
    '[class*="showcase"] img, [class*="work"] img'
)
CLIENT_SELECTOR = (
    '[class*="client"] img, [class*="partner"] img, [class*="logos"] img, '
    '[class*="brand"] img, [class*="trusted"] img, [class*="customer"] img'
)
CSS_BACKGROUND_RE = re.compile(r"background(?:-image)?\s*:[^;{}]*", re.I)

# bundled public-suffix snapshot, no network lookups
_tld = tldextract.TLDExtract(suffix_list_urls=())

def _domain(url: str) -> str:
    ext = _tld(url)
    return ".".join(x for x in [ext.domain, ext.suffix] if x).lower()

def is_placeholder(url: str) -> bool:
    return "placeholder" in url.lower() or _domain(url) in PLACEHOLDER_DOMAINS

def normalize_asset_url(url: Optional[str], base_url: Optional[str] = None) -> str:
    """Absolute, fragment-free URL, or AssetError when the reference cannot be fetched."""
    raw = (url or "").strip()
    if not raw:
        raise AssetError(raw, "empty URL")
    if raw.lower().startswith("data:"):
        raise AssetError(raw[:64], "inline data URI")
    if base_url:
        resolved = absolutize(base_url, raw)
        if resolved is None:
            raise AssetError(raw, "malformed URL")
        raw = resolved
    elif raw.startswith("//"):
        raw = "https:" + raw
    try:
        raw, _ = urldefrag(raw)
        parsed = urlparse(raw)
    except ValueError as e:
        raise AssetError(raw, f"malformed URL: {e}") from e
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise AssetError(raw, "not an http(s) URL")
    if is_placeholder(raw):
        raise AssetError(raw, "placeholder image host")
    return raw

def mime_allowed(category: str, mime_type: str) -> bool:
    return bool(mime_type) and any(mime_type.startswith(p) for p in ALLOWED_MIME.get(category, ()))

def extension_for(url: str) -> str:
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix in KNOWN_EXTENSIONS:
        return ".jpg" if suffix == ".jpeg" else suffix
    return ".bin"

def asset_filename(url: str, category: str) -> str:
    """`{category}-{hash}{ext}`, derived from category and URL alone."""
    digest = hashlib.sha256(f"{category}\n{url}".encode("utf-8")).hexdigest()[:16]
    return f"{category}-{digest}{extension_for(url)}"

def build_url_map(assets: Iterable[Asset]) -> Dict[str, str]:
    return {a.original_url: a.stored_url for a in assets}

def rewrite_urls(text: str, url_map: Dict[str, str]) -> str:
    if not text or not url_map:
        return text
    # longest first so a URL never shadows one it is a prefix of
    pattern = re.compile("|".join(re.escape(u) for u in sorted(url_map, key=len, reverse=True)))
    return pattern.sub(lambda m: url_map[m.group(0)], text)

def discover_assets(html: str, base_url: str) -> AssetCandidates:
    soup = soupify(html or "")

    def urls(nodes, limit: int) -> List[str]:
        found = []
        for img in nodes:
            src = img_src(img)
            url = absolutize(base_url, src) if src and not src.startswith("data:") else None
            if url:
                found.append(url)
        return unique_keep_order(found)[:limit]

    logo = None
    for selector in LOGO_SELECTORS:
        hit = urls(soup.select(selector), 1)
        if hit:
            logo = hit[0]
            break

    backgrounds = []
    for el in soup.find_all(style=True):
        for m in CSS_BACKGROUND_RE.finditer(el["style"]):
            backgrounds.extend(css_urls(m.group(0)))
    for style in soup.find_all("style"):
        for m in CSS_BACKGROUND_RE.finditer(style.get_text()):
            backgrounds.extend(css_urls(m.group(0)))
    backgrounds = unique_keep_order(
        [u for u in (absolutize(base_url, b) for b in backgrounds if not b.startswith("data:")) if u]
    )[:settings.MAX_BACKGROUND_IMAGES]

    clients = [u for u in urls(soup.select(CLIENT_SELECTOR), settings.MAX_CLIENT_LOGOS + 1) if u != logo]
    return AssetCandidates(
        logo=logo,
        hero_images=urls(soup.select(HERO_SELECTOR), settings.MAX_HERO_IMAGES),
        gallery_images=urls(soup.select(GALLERY_SELECTOR), settings.MAX_GALLERY_IMAGES),
        background_images=backgrounds,
        client_logos=clients[:settings.MAX_CLIENT_LOGOS],
    )

class AssetPipeline:
    def __init__(
        self,
        storage: Optional[AssetStorage] = None,
        client: Optional[httpx.AsyncClient] = None,
        batch_size: Optional[int] = None,
        max_bytes: Optional[int] = None,
    ):
        self.storage = storage or AssetStorage()
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": settings.USER_AGENT, "Accept": "image/*,font/*,*/*;q=0.8"},
            timeout=settings.ASSET_TIMEOUT_SECS,
            follow_redirects=True
        )
        self.batch_size = batch_size or settings.ASSET_BATCH_SIZE
        self.max_bytes = max_bytes or settings.ASSET_MAX_BYTES
        # bounds in-flight fetches across concurrently running categories
        self._slots = asyncio.Semaphore(self.batch_size)

    async def close(self):
        await self.client.aclose()

    async def _fetch(self, url: str, category: str):
        async with self._slots:
            try:
                async with self.client.stream("GET", url) as r:
                    if r.status_code >= 400:
                        raise AssetError(url, f"HTTP {r.status_code}")
                    mime = r.headers.get("content-type", "").split(";")[0].strip().lower()
                    if not mime_allowed(category, mime):
                        raise AssetError(url, f"content type {mime or 'missing'} not allowed for {category}")
                    declared = r.headers.get("content-length", "")
                    if declared.isdigit() and int(declared) > self.max_bytes:
                        raise AssetError(url, f"{declared} bytes exceeds the {self.max_bytes} byte cap")
                    chunks, size = [], 0
                    async for chunk in r.aiter_bytes():
                        size += len(chunk)
                        if size > self.max_bytes:
                            raise AssetError(url, f"body exceeds the {self.max_bytes} byte cap")
                        chunks.append(chunk)
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                raise AssetError(url, f"{type(e).__name__}: {e}") from e
        if not size:
            raise AssetError(url, "empty response body")
        return b"".join(chunks), mime

    async def download_one(self, request: AssetRequest, project_id: str) -> Asset:
        url = normalize_asset_url(request.url)
        data, mime = await self._fetch(url, request.category)
        filename = asset_filename(url, request.category)
        loop = asyncio.get_running_loop()
        path = await loop.run_in_executor(None, self.storage.write, project_id, filename, data)
        return Asset(
            original_url=request.url,
            stored_url=self.storage.stored_url(project_id, filename),
            local_path=str(path),
            category=request.category,
            filename=filename,
            mime_type=mime,
            size_bytes=len(data),
        )

    async def download_many(self, requests: Iterable[AssetRequest], project_id: str) -> AssetDownloadResult:
        """Fetch and store every request, batch by batch.

        A failing asset becomes an entry in `errors`; only an invalid project id or a
        filesystem error is raised.
        """
        self.storage.validate_project_id(project_id)
        pending = list(requests)
        assets: List[Asset] = []
        errors: List[AssetFailure] = []
        for start in range(0, len(pending), self.batch_size):
            batch = pending[start:start + self.batch_size]
            results = await asyncio.gather(
                *(self.download_one(req, project_id) for req in batch), return_exceptions=True
            )
            for req, res in zip(batch, results):
                if isinstance(res, Asset):
                    assets.append(res)
                elif isinstance(res, AssetError):
                    logger.warning("asset %s skipped: %s", req.url, res.reason)
                    errors.append(AssetFailure(url=req.url, reason=res.reason))
                elif isinstance(res, (OSError, InvalidProjectError)) or not isinstance(res, Exception):
                    raise res
                else:
                    logger.warning("asset %s failed unexpectedly: %r", req.url, res)
                    errors.append(AssetFailure(url=req.url, reason=f"{type(res).__name__}: {res}"))
        if pending:
            logger.info("project %s: stored %d/%d assets", project_id, len(assets), len(pending))
        return AssetDownloadResult(assets=assets, errors=errors)

    async def _download_category(self, urls: Iterable[str], category: str, cap: int, project_id: str) -> AssetDownloadResult:
        requests = [AssetRequest(url=u, category=category) for u in list(urls)[:cap]]
        return await self.download_many(requests, project_id)

    async def download_logo(self, url: str, project_id: str) -> Optional[Asset]:
        result = await self._download_category([url], "logo", 1, project_id)
        return result.assets[0] if result.assets else None

    async def download_hero_images(self, urls: Iterable[str], project_id: str) -> AssetDownloadResult:
        return await self._download_category(urls, "image", settings.MAX_HERO_IMAGES, project_id)

    async def download_gallery_images(self, urls: Iterable[str], project_id: str) -> AssetDownloadResult:
        return await self._download_category(urls, "image", settings.MAX_GALLERY_IMAGES, project_id)

    async def download_client_logos(self, urls: Iterable[str], project_id: str) -> AssetDownloadResult:
        return await self._download_category(urls, "logo", settings.MAX_CLIENT_LOGOS, project_id)

    async def download_background_images(self, urls: Iterable[str], project_id: str) -> AssetDownloadResult:
        return await self._download_category(urls, "background", settings.MAX_BACKGROUND_IMAGES, project_id)

    async def extract_and_download_all(self, html: str, base_url: str, project_id: str) -> DownloadedAssets:
        self.storage.validate_project_id(project_id)
        found = discover_assets(html, base_url)
        logo, hero, gallery, backgrounds, clients = await asyncio.gather(
            self._download_category([found.logo] if found.logo else [], "logo", 1, project_id),
            self.download_hero_images(found.hero_images, project_id),
            self.download_gallery_images(found.gallery_images, project_id),
            self.download_background_images(found.background_images, project_id),
            self.download_client_logos(found.client_logos, project_id),
        )
        errors = logo.errors + hero.errors + gallery.errors + backgrounds.errors + clients.errors
        return DownloadedAssets(
            logo=logo.assets[0] if logo.assets else None,
            hero_images=hero.assets,
            gallery_images=gallery.assets,
            background_images=backgrounds.assets,
            client_logos=clients.assets,
            errors=errors,
        )

    def list_project_assets(self, project_id: str) -> List[StoredFile]:
        return self.storage.list_assets(project_id)

    def cleanup_project(self, project_id: str) -> int:
        return self.storage.cleanup(project_id)
