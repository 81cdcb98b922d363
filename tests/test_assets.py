import asyncio

import httpx
import pytest

from site_extractor.exceptions import AssetError, InvalidProjectError
from site_extractor.models.schemas import AssetRequest
from site_extractor.services.assets import (
    AssetPipeline, asset_filename, build_url_map, discover_assets, extension_for, normalize_asset_url, rewrite_urls,
)
from site_extractor.services.storage import AssetStorage

from conftest import BASE_URL, PNG_BYTES, image_handler, mock_client


def make_pipeline(tmp_path, handler=image_handler, **kwargs):
    storage = AssetStorage(tmp_path, "/cloned-assets")
    return AssetPipeline(storage=storage, client=mock_client(handler), **kwargs)


def test_one_good_png_and_one_404(tmp_path):
    async def run():
        pipeline = make_pipeline(tmp_path)
        try:
            return await pipeline.download_many([
                AssetRequest(url="https://cdn.acme.test/img/logo.png", category="logo"),
                AssetRequest(url="https://cdn.acme.test/img/missing.png", category="image"),
            ], "proj-1")
        finally:
            await pipeline.close()

    result = asyncio.run(run())

    assert len(result.assets) == 1
    assert len(result.errors) == 1
    assert result.errors[0].url == "https://cdn.acme.test/img/missing.png"
    assert result.errors[0].reason == "HTTP 404"
    assert not result.success

    asset = result.assets[0]
    assert asset.stored_url.startswith("/cloned-assets/proj-1/")
    assert asset.mime_type == "image/png"
    assert asset.size_bytes == len(PNG_BYTES) == result.total_bytes
    assert (tmp_path / "proj-1" / asset.filename).read_bytes() == PNG_BYTES


def test_partial_failures_never_raise(tmp_path):
    urls = [f"https://cdn.acme.test/{i}.png" for i in range(7)] + [
        "https://cdn.acme.test/missing-a.png",
        "data:image/png;base64,AAAA",
        "https://via.placeholder.com/300",
    ]

    async def run():
        pipeline = make_pipeline(tmp_path, batch_size=3)
        try:
            return await pipeline.download_many([AssetRequest(url=u, category="image") for u in urls], "batchy")
        finally:
            await pipeline.close()

    result = asyncio.run(run())

    assert len(result.assets) == 7
    assert len(result.errors) == 3


def test_malformed_url_is_one_error_not_a_crash(tmp_path):
    async def run():
        pipeline = make_pipeline(tmp_path)
        try:
            return await pipeline.download_many([
                AssetRequest(url="https://cdn.acme.test/ok.png", category="image"),
                AssetRequest(url="http://[::1/bad.png", category="image"),
            ], "odd-urls")
        finally:
            await pipeline.close()

    result = asyncio.run(run())

    assert len(result.assets) == 1
    assert [e.url for e in result.errors] == ["http://[::1/bad.png"]
    assert result.errors[0].reason.startswith("malformed URL")


def test_fetches_run_in_bounded_batches(tmp_path):
    state = {"in_flight": 0, "peak": 0}
    in_flight_at_start = []

    async def handler(request):
        in_flight_at_start.append(state["in_flight"])
        state["in_flight"] += 1
        state["peak"] = max(state["peak"], state["in_flight"])
        await asyncio.sleep(0.05)
        state["in_flight"] -= 1
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})

    async def run():
        pipeline = make_pipeline(tmp_path, handler)
        try:
            requests = [AssetRequest(url=f"https://cdn.acme.test/{i}.png", category="image") for i in range(12)]
            return pipeline.batch_size, await pipeline.download_many(requests, "bounded")
        finally:
            await pipeline.close()

    batch_size, result = asyncio.run(run())

    assert batch_size == 5
    assert len(result.assets) == 12
    assert state["peak"] == batch_size
    # each batch starts only once the previous one has drained
    assert in_flight_at_start[5] == 0
    assert in_flight_at_start[10] == 0


def test_same_url_twice_gives_same_stored_url(tmp_path):
    request = AssetRequest(url="https://cdn.acme.test/hero.png", category="image")

    async def run():
        pipeline = make_pipeline(tmp_path)
        try:
            first = await pipeline.download_one(request, "demo")
            second = await pipeline.download_one(request, "demo")
            return first, second
        finally:
            await pipeline.close()

    first, second = asyncio.run(run())

    assert first.stored_url == second.stored_url
    assert len(list((tmp_path / "demo").iterdir())) == 1


def test_filename_is_pure_function_of_url_and_category():
    url = "https://cdn.acme.test/a/b/photo.JPEG?v=3"

    assert asset_filename(url, "image") == asset_filename(url, "image")
    assert asset_filename(url, "image") != asset_filename(url, "background")
    assert asset_filename(url, "image").startswith("image-")
    assert asset_filename(url, "image").endswith(".jpg")


def test_extension_comes_from_the_url_alone():
    assert extension_for("https://cdn.acme.test/img/logo.PNG") == ".png"
    assert extension_for("https://cdn.acme.test/render?id=4") == ".bin"
    assert extension_for("https://cdn.acme.test/blob") == ".bin"


def test_extensionless_url_keeps_its_name_whatever_the_response(tmp_path):
    url = "https://cdn.acme.test/render?id=4"

    def handler(request):
        mime = "image/webp" if request.headers.get("x-round") == "1" else "image/png"
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": mime})

    async def run():
        pipeline = make_pipeline(tmp_path, handler)
        try:
            first = await pipeline.download_one(AssetRequest(url=url, category="image"), "names")
            pipeline.client.headers["x-round"] = "1"
            second = await pipeline.download_one(AssetRequest(url=url, category="image"), "names")
            return first, second
        finally:
            await pipeline.close()

    first, second = asyncio.run(run())

    assert first.filename == second.filename == asset_filename(url, "image")
    assert (first.mime_type, second.mime_type) == ("image/png", "image/webp")


def test_normalize_rejects_unfetchable_urls():
    assert normalize_asset_url("/img/a.png#frag", BASE_URL) == "https://acme.test/img/a.png"
    assert normalize_asset_url("//cdn.acme.test/x.png") == "https://cdn.acme.test/x.png"
    for bad in ("", "data:image/gif;base64,R0lGOD", "ftp://acme.test/a.png",
                "https://placehold.co/600x400", "https://dummyimage.com/300", "https://cdn.test/placeholder.png"):
        with pytest.raises(AssetError):
            normalize_asset_url(bad)


def test_size_cap_and_mime_checks(tmp_path):
    def handler(request):
        if request.url.path.endswith("big.png"):
            return httpx.Response(200, content=b"x" * 64, headers={"content-type": "image/png"})
        return httpx.Response(200, content=b"<html></html>", headers={"content-type": "text/html"})

    async def run():
        pipeline = make_pipeline(tmp_path, handler, max_bytes=32)
        try:
            return await pipeline.download_many([
                AssetRequest(url="https://cdn.acme.test/big.png", category="image"),
                AssetRequest(url="https://cdn.acme.test/page.png", category="image"),
            ], "caps")
        finally:
            await pipeline.close()

    result = asyncio.run(run())

    assert result.assets == []
    reasons = {e.url.rsplit("/", 1)[-1]: e.reason for e in result.errors}
    assert "cap" in reasons["big.png"]
    assert "text/html" in reasons["page.png"]


def test_font_mime_allow_list(tmp_path):
    def handler(request):
        return httpx.Response(200, content=b"wOF2" * 4, headers={"content-type": "application/font-woff"})

    async def run():
        pipeline = make_pipeline(tmp_path, handler)
        try:
            return await pipeline.download_many([AssetRequest(url="https://cdn.acme.test/f", category="font")], "fonts")
        finally:
            await pipeline.close()

    result = asyncio.run(run())
    assert [a.filename.rsplit(".", 1)[-1] for a in result.assets] == ["woff"]


def test_invalid_project_id_is_a_hard_failure(tmp_path):
    async def run():
        pipeline = make_pipeline(tmp_path)
        try:
            await pipeline.download_many([AssetRequest(url="https://cdn.acme.test/a.png", category="image")], "../etc")
        finally:
            await pipeline.close()

    with pytest.raises(InvalidProjectError):
        asyncio.run(run())


def test_rewrite_urls_replaces_every_occurrence(tmp_path):
    async def run():
        pipeline = make_pipeline(tmp_path)
        try:
            return await pipeline.download_many([
                AssetRequest(url="https://cdn.acme.test/hero.png", category="image"),
                AssetRequest(url="https://cdn.acme.test/hero.png?w=2000", category="image"),
            ], "rw")
        finally:
            await pipeline.close()

    result = asyncio.run(run())
    url_map = build_url_map(result.assets)
    text = (
        '<img src="https://cdn.acme.test/hero.png"> <img src="https://cdn.acme.test/hero.png?w=2000"> '
        "see https://cdn.acme.test/hero.png again; https://other.test/keep.png stays"
    )
    out = rewrite_urls(text, url_map)

    plain, sized = url_map["https://cdn.acme.test/hero.png"], url_map["https://cdn.acme.test/hero.png?w=2000"]
    assert plain != sized
    assert out.count(plain) == 2
    assert out.count(sized) == 1
    assert "https://cdn.acme.test/hero.png" not in out
    assert "https://other.test/keep.png stays" in out
    assert rewrite_urls(text, {}) == text


def test_discover_assets(landing_html):
    found = discover_assets(landing_html, BASE_URL)

    assert found.logo == "https://acme.test/img/logo.png"
    assert found.hero_images == ["https://acme.test/img/hero.png"]
    assert found.gallery_images == []
    assert found.client_logos == []


def test_discover_background_images():
    html = """
    <html><head><style>.hero { background-image: url('/bg/hero.jpg'); }</style></head>
    <body><div style="background: #000 url(/bg/band.png) no-repeat"></div>
    <div style="background-image: url(data:image/png;base64,AAAA)"></div></body></html>
    """
    found = discover_assets(html, BASE_URL)
    assert found.background_images == ["https://acme.test/bg/band.png", "https://acme.test/bg/hero.jpg"]


def test_discover_skips_malformed_references():
    html = """
    <body><section class="hero"><img src="http://[::1/broken.png"><img src="/img/hero.png"></section>
    <div style="background-image: url('http://[::1/bg.png')"></div></body>
    """
    found = discover_assets(html, BASE_URL)

    assert found.hero_images == ["https://acme.test/img/hero.png"]
    assert found.background_images == []


def test_extract_and_download_all(tmp_path, landing_html):
    async def run():
        pipeline = make_pipeline(tmp_path)
        try:
            downloaded = await pipeline.extract_and_download_all(landing_html, BASE_URL, "landing")
            logo = await pipeline.download_logo("https://acme.test/img/logo.png", "landing")
            return downloaded, logo
        finally:
            await pipeline.close()

    downloaded, logo = asyncio.run(run())

    assert downloaded.logo is not None
    assert downloaded.logo.category == "logo"
    assert downloaded.logo.original_url == "https://acme.test/img/logo.png"
    assert len(downloaded.hero_images) == 1
    assert downloaded.errors == []
    assert logo.stored_url == downloaded.logo.stored_url
    assert len(downloaded.all_assets()) == 2


def test_storage_list_and_cleanup(tmp_path):
    storage = AssetStorage(tmp_path, "/cloned-assets/")
    storage.write("site-7", "image-b.png", b"bb")
    storage.write("site-7", "image-a.png", b"a")
    storage.write("site-7", "image-a.png", b"a")

    files = storage.list_assets("site-7")
    assert [(f.filename, f.stored_url, f.size_bytes) for f in files] == [
        ("image-a.png", "/cloned-assets/site-7/image-a.png", 1),
        ("image-b.png", "/cloned-assets/site-7/image-b.png", 2),
    ]
    assert storage.cleanup("site-7") == 2
    assert storage.list_assets("site-7") == []
    assert storage.cleanup("site-7") == 0

    with pytest.raises(ValueError):
        storage.write("site-7", "../escape.png", b"x")
    with pytest.raises(InvalidProjectError):
        storage.list_assets("bad/id")
