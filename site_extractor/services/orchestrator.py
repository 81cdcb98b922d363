import asyncio, logging, uuid
from typing import List, Optional, Tuple
from site_extractor.config import settings
from site_extractor.exceptions import RenderError
from site_extractor.models.schemas import (
    CloningOverrides, DesignTokens, DownloadedAssets, ExtractionResult, FetchedPage, Section,
)
from site_extractor.services.assets import AssetPipeline, build_url_map, rewrite_urls
from site_extractor.services.classifiers import detect_industry, detect_language
from site_extractor.services.fetcher import Fetcher
from site_extractor.services.html_utils import soupify, visible_text
from site_extractor.services.policy import analyze_request, build_brief
from site_extractor.services.segmenter import segment
from site_extractor.services.tokens import DesignTokenExtractor, fallback_tokens

logger = logging.getLogger(__name__)

class ExtractionOrchestrator:
    """Runs fetch -> (segment || tokens) -> assets -> classifiers -> policy for one URL.

    Only FetchError (and an unusable project id) escapes `extract`; every other
    failure degrades the result and is recorded in `notes`.
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        token_extractor: Optional[DesignTokenExtractor] = None,
        assets: Optional[AssetPipeline] = None,
        render_enabled: Optional[bool] = None,
    ):
        self.fetcher = fetcher or Fetcher()
        self.token_extractor = token_extractor or DesignTokenExtractor()
        self.assets = assets or AssetPipeline()
        self.render_enabled = settings.RENDER_ENABLED if render_enabled is None else render_enabled

    async def close(self):
        await self.fetcher.close()
        await self.assets.close()

    async def _tokens(self, page: FetchedPage) -> Tuple[DesignTokens, List[str]]:
        if not self.render_enabled:
            return fallback_tokens(page.html, page.final_url), ["Rendering is disabled; design tokens come from static HTML."]
        try:
            return await self.token_extractor.extract_from_url(page.final_url), []
        except RenderError as e:
            logger.warning("token extraction degraded for %s: %s", page.final_url, e)
            tokens = fallback_tokens(page.html, page.final_url)
            return tokens, [f"Colours and typography were derived from {tokens.source} fallbacks because the page could not be rendered."]

    async def _assets(self, page: FetchedPage, project_id: str) -> Tuple[DownloadedAssets, List[str]]:
        try:
            downloaded = await self.assets.extract_and_download_all(page.html, page.final_url, project_id)
        except OSError as e:
            logger.error("asset storage failed for project %s: %s", project_id, e)
            return DownloadedAssets(), [f"Assets could not be stored ({e.__class__.__name__}); continuing without them."]
        notes = []
        if downloaded.errors:
            notes.append(f"{len(downloaded.errors)} asset(s) could not be downloaded.")
        return downloaded, notes

    async def extract(
        self,
        url: str,
        user_text: str = "",
        project_id: Optional[str] = None,
        overrides: Optional[CloningOverrides] = None,
    ) -> ExtractionResult:
        project_id = project_id or uuid.uuid4().hex[:12]
        self.assets.storage.validate_project_id(project_id)

        page = await self.fetcher.fetch_page(url)
        loop = asyncio.get_running_loop()
        sections, (tokens, notes) = await asyncio.gather(
            loop.run_in_executor(None, segment, page.html, page.final_url),
            self._tokens(page),
        )
        logger.info("%s: %d sections, tokens from %s", page.final_url, len(sections), tokens.source)

        downloaded, asset_notes = await self._assets(page, project_id)
        notes.extend(asset_notes)

        config = analyze_request(user_text, overrides)
        if config.copy_images and downloaded.all_assets():
            url_map = build_url_map(downloaded.all_assets())
            sections = [Section.model_validate_json(rewrite_urls(s.model_dump_json(), url_map)) for s in sections]

        signals = [user_text, page.title or "", page.description or ""]
        signals.extend(s.content.title or "" for s in sections)
        industry = detect_industry(" ".join(signals))
        language = detect_language(visible_text(soupify(page.html)), declared=page.language)

        draft = ExtractionResult(
            source_url=page.final_url,
            title=page.title,
            description=page.description,
            colors=tokens.colors,
            typography=tokens.typography,
            border_radius=tokens.border_radius,
            sections=sections,
            assets=downloaded,
            industry=industry,
            language=language,
            cloning_config=config,
            notes=notes,
        )
        result = draft.model_copy(update={"brief": build_brief(config.tier, draft, config)})
        logger.info(
            "extraction of %s done: tier=%s sections=%d assets=%d asset_errors=%d",
            page.final_url, config.tier, len(sections), len(downloaded.all_assets()), len(downloaded.errors),
        )
        return result
