"""
SEO tag checks.

Each rule pairs a tag pattern with an optional value check. A missing
required tag reports "Missing"; a present tag with a bad value reports the
specific issue.
"""

import re
from dataclasses import dataclass
from typing import Callable, List, Optional
from urllib.parse import urlparse

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import SampleCategory, SubCheck, UrlSample
from deploy_validator.services.validators.base import ValidationContext
from deploy_validator.services.validators.page_checks import PageCheckValidator
from deploy_validator.utils.config import Settings

MAX_TITLE_LENGTH = 70
MAX_DESCRIPTION_LENGTH = 160

OG_TYPES = ("website", "article")
OG_LOCALES = ("en_US", "ja_JP", "ko_KR", "zh_CN", "zh_TW", "es_ES")
TWITTER_CARDS = ("summary", "summary_large_image", "app", "player")

HREFLANG_RE = re.compile(r"<link\s+rel=\"alternate\"\s+hreflang=\"([^\"]+)\"", re.IGNORECASE)

# (value, settings) -> issue or None
ValueCheck = Callable[[str, Settings], Optional[str]]


@dataclass(frozen=True)
class SeoRule:
    name: str
    pattern: re.Pattern
    check: Optional[ValueCheck] = None


def _meta(attr: str, key: str) -> re.Pattern:
    return re.compile(rf"<meta\s+{attr}=\"{re.escape(key)}\"\s+content=\"([^\"]*)\"", re.IGNORECASE)


def _max_length(label: str, limit: int) -> ValueCheck:
    def check(value: str, settings: Settings) -> Optional[str]:
        if not value.strip():
            return f"Empty {label}"
        if len(value) > limit:
            return f"{label.capitalize()} too long ({len(value)} chars, max {limit})"
        return None
    return check


def _one_of(label: str, allowed) -> ValueCheck:
    def check(value: str, settings: Settings) -> Optional[str]:
        return None if value in allowed else f"Invalid {label}: {value}"
    return check


def _https(label: str) -> ValueCheck:
    def check(value: str, settings: Settings) -> Optional[str]:
        return None if value.startswith("https://") else f"{label} must be absolute HTTPS URL"
    return check


def _canonical(value: str, settings: Settings) -> Optional[str]:
    expected = urlparse(settings.CANONICAL_ORIGIN)
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        return "Invalid canonical URL format"
    if parsed.scheme != expected.scheme or parsed.hostname != expected.hostname:
        return f"Canonical URL should be {settings.CANONICAL_ORIGIN}"
    return None


def _site_name(value: str, settings: Settings) -> Optional[str]:
    if value != settings.SITE_NAME:
        return f"Expected '{settings.SITE_NAME}', got '{value}'"
    return None


def _non_empty(value: str, settings: Settings) -> Optional[str]:
    return None if value.strip() else "Empty"


SEO_RULES = (
    SeoRule("has title", re.compile(r"<title[^>]*>([^<]*)</title>", re.IGNORECASE),
            _max_length("title", MAX_TITLE_LENGTH)),
    SeoRule("has meta description", _meta("name", "description"),
            _max_length("description", MAX_DESCRIPTION_LENGTH)),
    SeoRule("has canonical URL",
            re.compile(r"<link\s+rel=\"canonical\"\s+href=\"([^\"]+)\"", re.IGNORECASE),
            _canonical),
    SeoRule("has og:type", _meta("property", "og:type"), _one_of("og:type", OG_TYPES)),
    SeoRule("has og:url", _meta("property", "og:url"), _non_empty),
    SeoRule("has og:title", _meta("property", "og:title"), _non_empty),
    SeoRule("has og:description", _meta("property", "og:description"), _non_empty),
    SeoRule("has og:image", _meta("property", "og:image"), _https("OG image")),
    SeoRule("has og:site_name", _meta("property", "og:site_name"), _site_name),
    SeoRule("has og:locale", _meta("property", "og:locale"), _one_of("og:locale", OG_LOCALES)),
    SeoRule("has twitter:card", _meta("name", "twitter:card"), _one_of("twitter:card", TWITTER_CARDS)),
    SeoRule("has twitter:title", _meta("name", "twitter:title"), _non_empty),
    SeoRule("has twitter:description", _meta("name", "twitter:description"), _non_empty),
    SeoRule("has twitter:image", _meta("name", "twitter:image"), _https("Twitter image")),
)


def check_hreflang(html: str, locale_count: int) -> SubCheck:
    found = len(HREFLANG_RE.findall(html))
    expected = locale_count + 1  # x-default
    return SubCheck(
        name="has hreflang tags",
        passed=found >= expected,
        count=found,
        detail=None if found >= expected else f"Only {found} hreflang tags (expected {expected})",
    )


def check_seo(html: str, settings: Settings, is_card_page: bool = False) -> List[SubCheck]:
    checks = []
    for rule in SEO_RULES:
        match = rule.pattern.search(html)
        if not match:
            checks.append(SubCheck(name=rule.name, passed=False, detail="Missing"))
            continue
        issue = rule.check(match.group(1), settings) if rule.check else None
        checks.append(SubCheck(name=rule.name, passed=issue is None, detail=issue))

    if is_card_page:
        checks.append(check_hreflang(html, len(settings.LOCALES)))

    return checks


class SeoValidator(PageCheckValidator):
    category = "seo_checks"
    display_name = "SEO Tags"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="SEO Tags")
    remediation = "Check the SEO head component: title, description, canonical, Open Graph and Twitter tags"

    def run_checks(self, html: str, sample: UrlSample, ctx: ValidationContext) -> List[SubCheck]:
        return check_seo(html, ctx.settings, is_card_page=sample.category == SampleCategory.CARD)
