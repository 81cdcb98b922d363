import httpx
import pytest

BASE_URL = "https://acme.test/"

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 56

LANDING_HTML = """<!doctype html>
<html lang="en">
<head>
  <title>Acme Studio</title>
  <meta name="description" content="Landing pages for growing teams">
  <style>
    :root { --primary: #2563eb; }
    body { background-color: #ffffff; color: #111827; font-family: "Poppins", sans-serif; }
  </style>
</head>
<body>
  <header>
    <a href="/"><img class="logo" src="/img/logo.png" alt="Acme logo"></a>
    <nav>
      <a href="/about">About</a>
      <a href="/services">Services</a>
      <a href="/contact">Contact</a>
    </nav>
  </header>
  <section class="hero">
    <h1>Build faster with Acme</h1>
    <p>We design and ship landing pages for growing teams.</p>
    <a class="btn btn-primary" href="/start">Get started</a>
    <img src="/img/hero.png" alt="Product screenshot">
  </section>
  <section class="features">
    <h2>Why teams choose us</h2>
    <div class="card"><h3>Fast delivery</h3><p>Pages ship in days, not weeks.</p></div>
    <div class="card"><h3>Clean design</h3><p>Every layout follows a consistent grid.</p></div>
    <div class="card"><h3>Friendly support</h3><p>Talk to a real designer whenever you need one.</p></div>
  </section>
  <footer>
    <p>© 2024 Acme Studio. All rights reserved.</p>
    <a href="https://twitter.com/acme">Twitter</a>
    <a href="https://www.instagram.com/acme">Instagram</a>
  </footer>
</body>
</html>
"""


def image_handler(request: httpx.Request) -> httpx.Response:
    """Serves a small PNG for every path except ones containing "missing"."""
    if "missing" in request.url.path:
        return httpx.Response(404, text="not found")
    return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


@pytest.fixture
def landing_html():
    return LANDING_HTML
