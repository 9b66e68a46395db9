"""
URL sampler.

Builds a stratified sample of site URLs from the build-time inventory:
card pages per locale, one list page per locale, blog and static pages,
and absolute CDN image URLs.
"""

import json
import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, TypeVar, Union

from deploy_validator.models.inventory import Card, CardInventory
from deploy_validator.models.validation import SampleCategory, UrlSample

logger = logging.getLogger(__name__)

T = TypeVar("T")

BLOG_PAGES = ["/blog", "/updates"]
STATIC_PAGES = ["/search", "/about", "/privacy"]


@dataclass
class SamplerOptions:
    inventory_path: Union[str, Path]
    locales: Sequence[str]
    cards_per_locale: int = 10
    image_count: int = 50
    rng: Optional[random.Random] = None


@dataclass
class UrlSampleSet:
    """Page and image samples for one run."""
    pages: List[UrlSample] = field(default_factory=list)
    images: List[UrlSample] = field(default_factory=list)

    def by_category(self, category: SampleCategory) -> List[UrlSample]:
        return [s for s in self.pages if s.category == category]

    @property
    def page_urls(self) -> List[str]:
        return [s.url for s in self.pages]


def load_inventory(path: Union[str, Path]) -> CardInventory:
    """
    Load the content inventory.

    Raises:
        FileNotFoundError: If the inventory file does not exist
        pydantic.ValidationError: If the document does not match the schema
    """
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return CardInventory.model_validate(data)


def sample(items: Sequence[T], n: int, rng: Optional[random.Random] = None) -> List[T]:
    """Shuffle a copy of items and take the first n."""
    rng = rng or random.Random()
    shuffled = list(items)
    rng.shuffle(shuffled)
    return shuffled[:max(0, min(n, len(shuffled)))]


def generate_card_urls(
    cards: Sequence[Card],
    locales: Sequence[str],
    per_locale: int,
    rng: Optional[random.Random] = None
) -> List[UrlSample]:
    samples = []
    for locale in locales:
        for card in sample(cards, per_locale, rng):
            samples.append(UrlSample(
                url=f"/{locale}/cards/{card.id}",
                category=SampleCategory.CARD,
                locale=locale,
            ))
    return samples


def generate_list_urls(locales: Sequence[str]) -> List[UrlSample]:
    return [
        UrlSample(url=f"/{locale}/", category=SampleCategory.LIST, locale=locale)
        for locale in locales
    ]


def generate_blog_urls(locales: Sequence[str]) -> List[UrlSample]:
    return [
        UrlSample(url=f"/{locale}{page}", category=SampleCategory.BLOG, locale=locale)
        for page in BLOG_PAGES
        for locale in locales
    ]


def generate_static_urls(locales: Sequence[str]) -> List[UrlSample]:
    return [
        UrlSample(url=f"/{locale}{page}", category=SampleCategory.STATIC, locale=locale)
        for locale in locales
        for page in STATIC_PAGES
    ]


def generate_image_urls(
    cards: Sequence[Card],
    count: int,
    rng: Optional[random.Random] = None
) -> List[UrlSample]:
    with_images = [card for card in cards if card.hd_image]
    return [
        UrlSample(url=card.hd_image, category=SampleCategory.IMAGE)
        for card in sample(with_images, count, rng)
    ]


def generate_url_samples(options: SamplerOptions) -> UrlSampleSet:
    """
    Generate the URL samples for a validation run.

    A missing or malformed inventory propagates to the caller.
    """
    inventory = load_inventory(options.inventory_path)
    playable = inventory.playable_cards()
    logger.info(f"Loaded {len(playable)} playable cards from {options.inventory_path}")

    card_urls = generate_card_urls(playable, options.locales, options.cards_per_locale, options.rng)
    list_urls = generate_list_urls(options.locales)
    blog_urls = generate_blog_urls(options.locales)
    static_urls = generate_static_urls(options.locales)
    images = generate_image_urls(playable, options.image_count, options.rng)

    pages = card_urls + list_urls + blog_urls + static_urls

    logger.info(f"Generated {len(pages)} page URLs, {len(images)} image URLs")
    logger.info(
        f"  card={len(card_urls)} ({options.cards_per_locale} x {len(options.locales)} locales) "
        f"list={len(list_urls)} blog={len(blog_urls)} static={len(static_urls)}"
    )

    return UrlSampleSet(pages=pages, images=images)
