import httpx, logging, re
from typing import Optional
from site_extractor.config import settings
from site_extractor.exceptions import FetchError
from site_extractor.models.schemas import FetchedPage
from site_extractor.services.html_utils import soupify, page_title, page_description, page_language

logger = logging.getLogger(__name__)

HTML_TYPES = ("text/html", "application/xhtml+xml")

def normalize_url(url: str) -> str:
    url = url.strip()
    if not re.match(r"^https?://", url, re.I):
        url = "https://" + url
    return url

class Fetcher:
    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self.client = client or httpx.AsyncClient(
            headers={"User-Agent": settings.USER_AGENT, "Accept": "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"},
            timeout=settings.TIMEOUT_SECS,
            follow_redirects=True
        )

    async def close(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def fetch_page(self, url: str) -> FetchedPage:
        url = normalize_url(url)
        try:
            r = await self.client.get(url)
        except httpx.RequestError as e:
            raise FetchError(url, reason=f"{type(e).__name__}: {e}") from e
        if r.status_code >= 400:
            raise FetchError(url, status=r.status_code)
        ctype = r.headers.get("content-type", "").lower()
        # servers that omit the header still get parsed
        if ctype and not any(t in ctype for t in HTML_TYPES):
            raise FetchError(url, status=r.status_code, reason=f"not an HTML document ({ctype.split(';')[0]})")

        html = r.text
        soup = soupify(html)
        page = FetchedPage(
            url=url,
            final_url=str(r.url),
            status_code=r.status_code,
            html=html,
            title=page_title(soup),
            description=page_description(soup),
            language=page_language(soup),
        )
        logger.info("fetched %s (%d, %d bytes)", page.final_url, r.status_code, len(html))
        return page
