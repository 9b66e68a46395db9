"""HTML sanity: the served document is a complete, rendered HTML page."""

import re
from typing import List

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import SubCheck, UrlSample
from deploy_validator.services.validators.base import ValidationContext
from deploy_validator.services.validators.page_checks import PageCheckValidator

MIN_DOCUMENT_BYTES = 500

DOCTYPE_RE = re.compile(r"^\s*<!doctype\s+html", re.IGNORECASE)
HTML_OPEN_RE = re.compile(r"<html[\s>]", re.IGNORECASE)
HTML_CLOSE_RE = re.compile(r"</html>\s*$", re.IGNORECASE)
HEAD_RE = re.compile(r"<head[\s>]", re.IGNORECASE)
BODY_RE = re.compile(r"<body[\s>]", re.IGNORECASE)
CHARSET_RE = re.compile(
    r"<meta\s+[^>]*charset=[\"']?[\w-]+|<meta\s+http-equiv=[\"']content-type[\"'][^>]*charset=",
    re.IGNORECASE,
)

SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*>[\s\S]*?</\1>", re.IGNORECASE)

# Template output that reached the browser without being rendered
UNRENDERED_MARKERS = ("{{", "}}", "[object Object]", "undefined</", ">NaN<")


def check_html(html: str) -> List[SubCheck]:
    visible = SCRIPT_STYLE_RE.sub("", html)
    found = [marker for marker in UNRENDERED_MARKERS if marker in visible]
    size = len(html.encode("utf-8"))

    return [
        SubCheck(name="has doctype", passed=bool(DOCTYPE_RE.search(html))),
        SubCheck(name="has html root", passed=bool(HTML_OPEN_RE.search(html))),
        SubCheck(name="has head", passed=bool(HEAD_RE.search(html))),
        SubCheck(name="has body", passed=bool(BODY_RE.search(html))),
        SubCheck(
            name="document is complete",
            passed=bool(HTML_CLOSE_RE.search(html)),
            detail=None if HTML_CLOSE_RE.search(html) else "Missing closing </html>",
        ),
        SubCheck(name="declares charset", passed=bool(CHARSET_RE.search(html))),
        SubCheck(
            name="no unrendered placeholders",
            passed=not found,
            count=len(found),
            detail=f"Found {', '.join(found)}" if found else None,
        ),
        SubCheck(
            name="plausible size",
            passed=size >= MIN_DOCUMENT_BYTES,
            count=size,
            detail=None if size >= MIN_DOCUMENT_BYTES else f"Only {size} bytes",
        ),
    ]


class HtmlSanityValidator(PageCheckValidator):
    category = "html_checks"
    display_name = "HTML Sanity"
    default_threshold = ThresholdConfig(min_pass_rate=1.0, is_hard_failure=True, display_name="HTML Sanity")
    remediation = "Inspect the build output for truncated or unrendered HTML documents"

    def run_checks(self, html: str, sample: UrlSample, ctx: ValidationContext) -> List[SubCheck]:
        return check_html(html)
