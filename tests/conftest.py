"""Shared fixtures: a simulated deployment served through httpx.MockTransport."""

import json
import random
from typing import Callable, Dict, Optional, Set

import httpx
import pytest

from deploy_validator.services.url_sampler import UrlSampleSet
from deploy_validator.services.validators.base import ValidationContext
from deploy_validator.utils.config import Settings

SITE = "https://site.test"
CDN = "https://res.cloudinary.com/demo/image/upload/otogi"
LOCALES = ["en", "ja"]
OG_LOCALE = {"en": "en_US", "ja": "ja_JP"}


def good_page(locale: str = "en", path: str = "/en/") -> str:
    hreflang = "\n".join(
        f'<link rel="alternate" hreflang="{code}" href="https://otogidb.com/{code}/">'
        for code in LOCALES + ["x-default"]
    )
    return f"""<!DOCTYPE html>
<html lang="{locale}">
<head>
<meta charset="utf-8">
<title>Card Database | OtogiDB</title>
<meta name="description" content="Browse every card with stats, skills and artwork.">
<link rel="canonical" href="https://otogidb.com{path}">
<meta property="og:type" content="website">
<meta property="og:url" content="https://otogidb.com{path}">
<meta property="og:title" content="Card Database">
<meta property="og:description" content="Browse every card.">
<meta property="og:image" content="https://otogidb.com/og.png">
<meta property="og:site_name" content="OtogiDB">
<meta property="og:locale" content="{OG_LOCALE[locale]}">
<meta name="twitter:card" content="summary_large_image">
<meta name="twitter:title" content="Card Database">
<meta name="twitter:description" content="Browse every card.">
<meta name="twitter:image" content="https://otogidb.com/og.png">
{hreflang}
<link rel="modulepreload" href="/_astro/chunk.js">
<script type="application/ld+json">{{"@context": "https://schema.org", "@type": "WebSite"}}</script>
</head>
<body>
<a href="#main" class="skip-link">Skip to main content</a>
<nav>
<a href="/{locale}/">Home</a>
<a href="/{locale}/blog">Blog</a>
<a href="/{locale}/about">About</a>
<a href="/{locale}/cards">All cards</a>
<a href="https://twitter.com/otogidb">Twitter</a>
<a href="mailto:hello@otogidb.com">Mail</a>
</nav>
<main id="main">
<h1>Card Database</h1>
<h2>Featured</h2>
<img src="https://otogidb.com/featured.png" alt="Featured card">
<label for="q">Search</label>
<input type="text" id="q" name="q">
<button type="submit">Go</button>
<p>Every card, every stat, every skill, kept up to date after each game update.</p>
</main>
<script type="module" src="/_astro/app.js"></script>
</body>
</html>"""


def not_found_page(locale: str = "en") -> str:
    return f"""<!DOCTYPE html>
<html lang="{locale}">
<head><meta charset="utf-8"><title>404 | OtogiDB</title></head>
<body>
<main>
<h1>Card not found</h1>
<p>The card you are looking for doesn't exist or has been removed from the database.</p>
<p>Check the card id or browse the full list of cards instead.</p>
<p>Card pages are regenerated after every game update, so links shared before
a maintenance window may point to cards that were renamed or merged.</p>
<a href="/{locale}/">Back to the card list</a>
</main>
</body>
</html>"""


CARD_INDEX = {
    "version": "2026.10.01",
    "total_cards": 900,
    "cards": {
        str(i): {"id": str(i), "name": f"Card {i}", "playable": True, "stats": {"max_atk": 1000 + i}}
        for i in range(1, 901)
    },
}

ENTRY_REDIRECTS = {"/": "/en/", "/search": "/en/search", "/blog": "/en/blog"}


class SiteSimulator:
    """
    Request handler for a healthy deployment.

    `overrides` maps a path (or absolute URL) to a Response or a callable
    taking the request; it wins over the default routes.
    """

    def __init__(self, overrides: Optional[Dict[str, object]] = None, broken_images: Optional[Set[str]] = None):
        self.overrides = dict(overrides or {})
        self.broken_images = set(broken_images or ())
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        path = request.url.path

        for key in (url, path):
            if key in self.overrides:
                override = self.overrides[key]
                return override(request) if callable(override) else override

        if request.url.host == "res.cloudinary.com":
            if url in self.broken_images:
                return httpx.Response(404)
            return httpx.Response(200, headers={"content-type": "image/webp"})

        if path in ENTRY_REDIRECTS:
            return httpx.Response(302, headers={"location": ENTRY_REDIRECTS[path]})

        if path.endswith("/cards/nonexistent-card-12345"):
            return httpx.Response(404, html=not_found_page(path.split("/")[1]))

        if path.startswith("/_astro/"):
            return httpx.Response(
                200,
                content=b"export const x = 1;",
                headers={"content-type": "application/javascript"},
            )

        if path in ("/data/cards_index.json", "/data/ja/cards_index.json"):
            return httpx.Response(200, json=CARD_INDEX)

        locale = path.split("/")[1] if path.count("/") >= 1 else ""
        if locale in LOCALES:
            return httpx.Response(200, html=good_page(locale, path))

        return httpx.Response(404, html=not_found_page())


def write_inventory(path, playable: int = 100, unplayable: int = 3):
    cards = {}
    for i in range(1, playable + unplayable + 1):
        cards[str(i)] = {
            "id": i,
            "asset_id": f"a{i}",
            "name": f"Card {i}",
            "playable": i <= playable,
            "image_urls": {"hd": f"{CDN}/hd/{i}.webp", "android": f"{CDN}/android/{i}.webp"},
        }
    path.write_text(json.dumps({
        "version": "2026.10.01",
        "total_cards": len(cards),
        "cloudinary_base_url": CDN,
        "cards": cards,
    }))
    return path


async def no_sleep(seconds):
    return None


@pytest.fixture
def inventory_file(tmp_path):
    return write_inventory(tmp_path / "cards.json")


@pytest.fixture
def make_settings(inventory_file) -> Callable[..., Settings]:
    def factory(**overrides) -> Settings:
        values = dict(
            VALIDATION_URL=SITE,
            INVENTORY_PATH=str(inventory_file),
            LOCALES=LOCALES,
            CARDS_PER_LOCALE=3,
            IMAGE_COUNT=5,
            VALIDATION_TIMEOUT=2000,
            VALIDATION_CONCURRENCY=4,
            SKIP_CATEGORIES=[],
            GITHUB_SHA="0123456789abcdef",
            GITHUB_OUTPUT=None,
            REPORT_JSON_PATH=None,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return factory


@pytest.fixture
def rng():
    return random.Random(1234)


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


def make_context(settings: Settings, client: httpx.AsyncClient, samples: Optional[UrlSampleSet] = None) -> ValidationContext:
    return ValidationContext.from_settings(settings, client, samples or UrlSampleSet(), sleep=no_sleep)
