"""
Accessibility checks on raw markup.

These are structural heuristics (no rendering, no browser): alt text,
heading hierarchy, document language, labelled controls, landmarks.
"""

import re
from typing import List

from deploy_validator.models.thresholds import ThresholdConfig
from deploy_validator.models.validation import SubCheck, UrlSample
from deploy_validator.services.validators.base import ValidationContext
from deploy_validator.services.validators.page_checks import PageCheckValidator

IMG_RE = re.compile(r"<img\s+[^>]*>", re.IGNORECASE)
HEADING_RE = re.compile(r"<h([1-6])[\s>]", re.IGNORECASE)
LANG_RE = re.compile(r"<html[^>]*\s+lang=\"([^\"]+)\"", re.IGNORECASE)
BUTTON_RE = re.compile(r"<button[^>]*>([\s\S]*?)</button>", re.IGNORECASE)
INPUT_RE = re.compile(r"<input\b[^>]*>", re.IGNORECASE)
INPUT_TYPE_RE = re.compile(r"\stype=[\"']([^\"']+)[\"']", re.IGNORECASE)
ALT_RE = re.compile(r"\salt=", re.IGNORECASE)
ID_RE = re.compile(r"\sid=\"([^\"]+)\"")
TAG_RE = re.compile(r"<[^>]+>")
MAIN_RE = re.compile(r"<main[\s>]|role=\"main\"", re.IGNORECASE)
SKIP_LINK_RE = re.compile(r"skip[- ]?(to[- ]?)?(main|content|nav)", re.IGNORECASE)
NAV_RE = re.compile(r"<nav[\s>]|role=\"navigation\"", re.IGNORECASE)

UNLABELED_INPUT_TYPES = ("hidden", "button", "submit", "image", "reset")


def check_image_alt(html: str) -> SubCheck:
    imgs = IMG_RE.findall(html)
    # Empty alt is valid for decorative images
    missing = sum(1 for img in imgs if not ALT_RE.search(img))
    return SubCheck(
        name="images have alt attributes",
        passed=missing == 0,
        count=len(imgs) - missing,
        detail=f"{missing}/{len(imgs)} images missing alt" if missing else None,
    )


def check_heading_hierarchy(html: str) -> SubCheck:
    name = "proper heading hierarchy"
    levels = [int(level) for level in HEADING_RE.findall(html)]

    if not levels:
        return SubCheck(name=name, passed=True, detail="No headings found")

    h1_count = levels.count(1)
    if h1_count == 0:
        return SubCheck(name=name, passed=False, detail="Missing h1 element")
    if h1_count > 1:
        return SubCheck(name=name, passed=False, detail=f"Multiple h1 elements ({h1_count})")

    used = sorted(set(levels))
    for lower, higher in zip(used, used[1:]):
        if higher - lower > 1:
            return SubCheck(
                name=name,
                passed=False,
                detail=f"Skipped heading level: h{lower} to h{higher}",
            )

    return SubCheck(name=name, passed=True, count=len(levels))


def check_lang(html: str) -> SubCheck:
    match = LANG_RE.search(html)
    return SubCheck(
        name="html has lang attribute",
        passed=bool(match),
        detail=f'lang="{match.group(1)}"' if match else "Missing lang attribute",
    )


def check_buttons(html: str) -> SubCheck:
    buttons = list(BUTTON_RE.finditer(html))
    empty = 0
    for button in buttons:
        tag = button.group(0)
        text = TAG_RE.sub("", button.group(1)).strip()
        labelled = "aria-label" in tag or "aria-labelledby" in tag or "title=" in tag
        if not text and not labelled:
            empty += 1
    return SubCheck(
        name="buttons have accessible text",
        passed=empty == 0,
        count=len(buttons),
        detail=f"{empty} buttons without accessible text" if empty else None,
    )


def input_type(tag: str) -> str:
    match = INPUT_TYPE_RE.search(tag)
    # HTML default
    return match.group(1).lower() if match else "text"


def check_form_labels(html: str) -> SubCheck:
    inputs = [tag for tag in INPUT_RE.findall(html) if input_type(tag) not in UNLABELED_INPUT_TYPES]
    unlabeled = 0
    for tag in inputs:
        if "aria-label" in tag or "aria-labelledby" in tag or "placeholder=" in tag:
            continue
        id_match = ID_RE.search(tag)
        if id_match and re.search(
            rf"<label[^>]*for=\"{re.escape(id_match.group(1))}\"", html, re.IGNORECASE
        ):
            continue
        unlabeled += 1
    return SubCheck(
        name="form inputs have labels",
        passed=unlabeled == 0,
        count=len(inputs),
        detail=f"{unlabeled} inputs without labels" if unlabeled else None,
    )


def check_main_landmark(html: str) -> SubCheck:
    has_main = bool(MAIN_RE.search(html))
    return SubCheck(
        name="has main landmark",
        passed=has_main,
        detail=None if has_main else 'Missing <main> element or role="main"',
    )


def check_navigation(html: str) -> SubCheck:
    has_skip = bool(SKIP_LINK_RE.search(html))
    has_nav = bool(NAV_RE.search(html))
    if has_skip:
        detail = "Has skip link"
    elif has_nav:
        detail = "Has navigation"
    else:
        detail = "No skip link or nav"
    return SubCheck(name="has skip link or navigation", passed=has_skip or has_nav, detail=detail)


A11Y_CHECKS = (
    check_image_alt,
    check_heading_hierarchy,
    check_lang,
    check_buttons,
    check_form_labels,
    check_main_landmark,
    check_navigation,
)


def check_accessibility(html: str) -> List[SubCheck]:
    return [check(html) for check in A11Y_CHECKS]


class AccessibilityValidator(PageCheckValidator):
    category = "accessibility_checks"
    display_name = "Accessibility"
    default_threshold = ThresholdConfig(min_pass_rate=0.95, is_hard_failure=False, display_name="Accessibility")
    remediation = "Add alt text, labels and landmarks; keep a single h1 without skipped heading levels"

    def run_checks(self, html: str, sample: UrlSample, ctx: ValidationContext) -> List[SubCheck]:
        return check_accessibility(html)
