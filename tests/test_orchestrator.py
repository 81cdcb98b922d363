import asyncio

import pytest

from site_extractor.exceptions import FetchError, InvalidProjectError, RenderError
from site_extractor.models.schemas import FetchedPage
from site_extractor.services.assets import AssetPipeline
from site_extractor.services.orchestrator import ExtractionOrchestrator
from site_extractor.services.storage import AssetStorage
from site_extractor.services.tokens import tokens_from_samples

from conftest import BASE_URL, LANDING_HTML, image_handler, mock_client


class FakeFetcher:
    def __init__(self, html=LANDING_HTML, error=None):
        self.html = html
        self.error = error
        self.calls = []
        self.closed = False

    async def fetch_page(self, url):
        self.calls.append(url)
        if self.error is not None:
            raise self.error
        return FetchedPage(url=url, final_url=BASE_URL, status_code=200, html=self.html,
                           title="Acme Studio", description="Landing pages for growing teams", language="en")

    async def close(self):
        self.closed = True


class FakeTokenExtractor:
    def __init__(self, tokens=None, error=None):
        self.tokens = tokens
        self.error = error

    async def extract_from_url(self, url):
        if self.error is not None:
            raise self.error
        return self.tokens


def make_orchestrator(tmp_path, fetcher=None, token_extractor=None, render_enabled=True):
    assets = AssetPipeline(storage=AssetStorage(tmp_path, "/cloned-assets"), client=mock_client(image_handler))
    return ExtractionOrchestrator(
        fetcher=fetcher or FakeFetcher(),
        token_extractor=token_extractor or FakeTokenExtractor(error=RenderError("no browser")),
        assets=assets,
        render_enabled=render_enabled,
    )


def run_extract(orchestrator, *args, **kwargs):
    async def run():
        try:
            return await orchestrator.extract(*args, **kwargs)
        finally:
            await orchestrator.close()
    return asyncio.run(run())


def test_end_to_end_with_render_fallback(tmp_path):
    result = run_extract(make_orchestrator(tmp_path), BASE_URL, "a landing page for Acme Coffee", project_id="demo")

    assert result.source_url == BASE_URL
    assert [s.section_type for s in result.sections] == ["header", "hero", "features", "footer"]
    # static CSS evidence in the page feeds the fallback palette
    assert result.colors.primary == "#2563eb"
    assert any("could not be rendered" in n for n in result.notes)
    assert result.cloning_config.tier == "inspiration"
    assert result.cloning_config.business_name == "Acme Coffee"
    assert result.language.language == "en"
    assert result.assets.logo is not None
    assert result.assets.logo.stored_url.startswith("/cloned-assets/demo/")
    assert result.brief.startswith("## CLONING TIER: INSPIRATION")
    assert "- Name: Acme Coffee" in result.brief
    # inspiration does not copy images, so section URLs stay on the source host
    assert result.sections[1].content.images == ["https://acme.test/img/hero.png"]


def test_rendered_tokens_are_used_when_available(tmp_path):
    tokens = tokens_from_samples({"root": {"background": "#000000", "color": "#ffffff"},
                                  "buttons": {"#e11d48": 3}}, {})
    orchestrator = make_orchestrator(tmp_path, token_extractor=FakeTokenExtractor(tokens=tokens))

    result = run_extract(orchestrator, BASE_URL, project_id="rendered")

    assert result.colors.primary == "#e11d48"
    assert result.colors.is_dark
    assert result.notes == []


def test_exact_tier_points_sections_at_stored_assets(tmp_path):
    result = run_extract(make_orchestrator(tmp_path), BASE_URL, "copia exacta de esta web", project_id="exact-1")

    assert result.cloning_config.tier == "exact"
    hero, header = result.sections[1], result.sections[0]
    assert hero.content.images[0].startswith("/cloned-assets/exact-1/image-")
    assert header.content.logo.startswith("/cloned-assets/exact-1/logo-")
    assert "### CONTENT (COPY EXACTLY)" in result.brief
    assert "/cloned-assets/exact-1/" in result.brief


def test_disabled_rendering_notes_static_tokens(tmp_path):
    result = run_extract(make_orchestrator(tmp_path, render_enabled=False), BASE_URL, project_id="static")
    assert result.notes == ["Rendering is disabled; design tokens come from static HTML."]


def test_asset_failures_are_noted_not_raised(tmp_path):
    html = LANDING_HTML.replace("/img/hero.png", "/img/missing-hero.png")
    result = run_extract(make_orchestrator(tmp_path, fetcher=FakeFetcher(html=html)), BASE_URL, project_id="flaky")

    assert result.assets.hero_images == []
    assert [e.url for e in result.assets.errors] == ["https://acme.test/img/missing-hero.png"]
    assert "1 asset(s) could not be downloaded." in result.notes


def test_project_id_generated_when_missing(tmp_path):
    result = run_extract(make_orchestrator(tmp_path), BASE_URL)
    project_id = result.assets.logo.stored_url.split("/")[2]
    assert len(project_id) == 12


def test_fetch_failure_aborts(tmp_path):
    fetcher = FakeFetcher(error=FetchError(BASE_URL, status=503))
    with pytest.raises(FetchError):
        run_extract(make_orchestrator(tmp_path, fetcher=fetcher), BASE_URL, project_id="down")
    assert fetcher.closed


def test_invalid_project_id_checked_before_fetching(tmp_path):
    fetcher = FakeFetcher()
    with pytest.raises(InvalidProjectError):
        run_extract(make_orchestrator(tmp_path, fetcher=fetcher), BASE_URL, project_id="no spaces allowed")
    assert fetcher.calls == []


def test_odd_markup_never_aborts_a_run(tmp_path):
    jsonld = ('<script type="application/ld+json">{"@type": "FAQPage", "mainEntity": '
              '{"@type": "Question", "name": "Open on Sundays?", "acceptedAnswer": {"text": "From 10 to 2."}}}</script>')
    html = (LANDING_HTML
            .replace("</head>", jsonld + "</head>")
            .replace('<img src="/img/hero.png"', '<img src="http://[::1/hero.png"><img src="/img/hero.png"'))

    result = run_extract(make_orchestrator(tmp_path, fetcher=FakeFetcher(html=html)), BASE_URL, project_id="odd")

    assert [s.section_type for s in result.sections] == ["header", "hero", "features", "footer"]
    assert result.assets.logo is not None
    assert result.assets.errors == []
