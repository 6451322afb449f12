"""Resolve a natural-language target description to a concrete page element.

Strategies are tried in a fixed order and the first visible (and, for click
targets, enabled) match wins. Later strategies are never consulted once one
succeeds, so new heuristics are appended at the end of the chain.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from playwright.async_api import Error as PlaywrightError

from webpilot.core.errors import ElementResolutionError, VisibilityError

CLICKABLE_SELECTOR = (
    'a, button, input, textarea, select, [role="button"], [role="link"], '
    '[role="menuitem"], [role="tab"], [onclick], [tabindex]'
)

INPUT_TYPE_KEYWORDS: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...]], ...] = (
    (("search", "find", "query"), ('input[type="search"]',)),
    (("password", "pass", "pwd"), ('input[type="password"]',)),
    (("email", "e-mail", "mail"), ('input[type="email"]', 'input[name*="email" i]')),
    (
        ("username", "login", "user"),
        ('input[autocomplete="username"]', 'input[name*="user" i]', 'input[name*="login" i]'),
    ),
)

CLASS_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("login", "signin", "sign in", "log in"), "login"),
    (("close", "cancel"), "close"),
    (("search",), "search"),
    (("submit",), "submit"),
    (("menu",), "menu"),
    (("cart", "basket"), "cart"),
)

DATA_ATTRIBUTES: Tuple[str, ...] = (
    "data-testid",
    "data-qa",
    "data-test",
    "data-id",
    "data-action",
    "data-target",
    "data-role",
)

ROLE_KEYWORDS: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("search",), "searchbox"),
    (("button",), "button"),
    (("link",), "link"),
    (("menu",), "menu"),
    (("checkbox", "check box"), "checkbox"),
    (("dialog", "modal", "popup"), "dialog"),
    (("tab",), "tab"),
)

FORM_KEYWORDS: Tuple[str, ...] = ("form", "submit", "send")
FORM_SELECTORS: Tuple[str, ...] = (
    'form button[type="submit"]',
    'form input[type="submit"]',
    'button[type="submit"]',
    "form button",
)

GENERIC_ATTRIBUTES: Tuple[str, ...] = ("title", "aria-label", "placeholder", "value")


def quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _regex_literal(value: str) -> str:
    return re.escape(value).replace("/", r"\/")


def _matching(table: Sequence[Tuple[Tuple[str, ...], Any]], description: str) -> List[Any]:
    lowered = description.lower()
    return [outcome for keywords, outcome in table if any(k in lowered for k in keywords)]


@dataclass
class Lookup:
    locator: Optional[Any] = None
    saw_hidden: bool = False


async def first_usable(locator: Any, *, require_enabled: bool, limit: int) -> Lookup:
    """First visible (and enabled, if required) element behind ``locator``."""
    lookup = Lookup()
    try:
        count = await locator.count()
    except PlaywrightError:
        return lookup
    for i in range(min(count, limit)):
        candidate = locator.nth(i)
        try:
            if not await candidate.is_visible():
                lookup.saw_hidden = True
                continue
            if require_enabled and not await candidate.is_enabled():
                continue
        except PlaywrightError:
            continue
        lookup.locator = candidate
        return lookup
    return lookup


class ResolveStrategy:
    name = "strategy"

    def selectors(self, description: str) -> List[str]:
        return []

    async def try_resolve(
        self,
        page: Any,
        description: str,
        *,
        require_enabled: bool = True,
        limit: int = 10,
    ) -> Lookup:
        result = Lookup()
        for selector in self.selectors(description):
            lookup = await first_usable(page.locator(selector), require_enabled=require_enabled, limit=limit)
            result.saw_hidden = result.saw_hidden or lookup.saw_hidden
            if lookup.locator is not None:
                result.locator = lookup.locator
                return result
        return result


class ExactTextStrategy(ResolveStrategy):
    name = "exact_text"

    def selectors(self, description: str) -> List[str]:
        return [f"text={quote(description)}"]


class PartialTextStrategy(ResolveStrategy):
    name = "partial_text"

    def selectors(self, description: str) -> List[str]:
        return [f"text=/{_regex_literal(description)}/i"]


class PlaceholderStrategy(ResolveStrategy):
    name = "placeholder"

    def selectors(self, description: str) -> List[str]:
        return [f"[placeholder*={quote(description)} i]"]


class AriaLabelStrategy(ResolveStrategy):
    name = "aria_label"

    def selectors(self, description: str) -> List[str]:
        q = quote(description)
        return [f"[aria-label*={q} i]", f"[aria-labelledby*={q} i]"]


class ButtonStrategy(ResolveStrategy):
    name = "button"

    def selectors(self, description: str) -> List[str]:
        q = quote(description)
        return [
            f"button:has-text({q})",
            f'[role="button"]:has-text({q})',
            f'input[type="submit"][value*={q} i]',
            f'input[type="button"][value*={q} i]',
            f'input[type="reset"][value*={q} i]',
        ]


class LinkStrategy(ResolveStrategy):
    name = "link"

    def selectors(self, description: str) -> List[str]:
        lowered = description.lower()
        slug = lowered.replace(" ", "-")
        selectors = [f"a:has-text({quote(description)})", f"a[href*={quote(lowered)} i]"]
        if slug != lowered:
            selectors.append(f"a[href*={quote(slug)} i]")
        return selectors


class InputTypeStrategy(ResolveStrategy):
    name = "input_type"

    def selectors(self, description: str) -> List[str]:
        return [sel for group in _matching(INPUT_TYPE_KEYWORDS, description) for sel in group]


class ClassKeywordStrategy(ResolveStrategy):
    name = "css_class"

    def selectors(self, description: str) -> List[str]:
        return [f"[class*={quote(fragment)} i]" for fragment in _matching(CLASS_KEYWORDS, description)]


class DataAttributeStrategy(ResolveStrategy):
    name = "data_attribute"

    def selectors(self, description: str) -> List[str]:
        normalized = quote(description.lower().replace(" ", "-"))
        return [f"[{attr}*={normalized} i]" for attr in DATA_ATTRIBUTES]


class RoleStrategy(ResolveStrategy):
    name = "aria_role"

    def selectors(self, description: str) -> List[str]:
        return [f'[role="{role}"]' for role in _matching(ROLE_KEYWORDS, description)]


class FormStrategy(ResolveStrategy):
    name = "form"

    def selectors(self, description: str) -> List[str]:
        lowered = description.lower()
        if not any(k in lowered for k in FORM_KEYWORDS):
            return []
        return list(FORM_SELECTORS)


class GenericClickableStrategy(ResolveStrategy):
    """Last resort: scan every conventionally clickable element."""

    name = "generic"

    def __init__(self, scan_limit: int = 200, read_timeout_ms: float = 1000) -> None:
        self.scan_limit = scan_limit
        # Bound on each read; candidates can detach after count().
        self.read_timeout_ms = read_timeout_ms

    async def try_resolve(
        self,
        page: Any,
        description: str,
        *,
        require_enabled: bool = True,
        limit: int = 10,
    ) -> Lookup:
        result = Lookup()
        needle = description.lower()
        locator = page.locator(CLICKABLE_SELECTOR)
        try:
            count = await locator.count()
        except PlaywrightError:
            return result
        for i in range(min(count, self.scan_limit)):
            candidate = locator.nth(i)
            try:
                if not await self._matches(candidate, needle):
                    continue
                if not await candidate.is_visible():
                    result.saw_hidden = True
                    continue
                if require_enabled and not await candidate.is_enabled():
                    continue
            except PlaywrightError:
                continue
            result.locator = candidate
            return result
        return result

    async def _matches(self, candidate: Any, needle: str) -> bool:
        text = (await candidate.inner_text(timeout=self.read_timeout_ms) or "").strip().lower()
        if needle in text:
            return True
        for attr in GENERIC_ATTRIBUTES:
            value = await candidate.get_attribute(attr, timeout=self.read_timeout_ms)
            if value and needle in value.lower():
                return True
        return False


def default_strategies() -> List[ResolveStrategy]:
    return [
        ExactTextStrategy(),
        PartialTextStrategy(),
        PlaceholderStrategy(),
        AriaLabelStrategy(),
        ButtonStrategy(),
        LinkStrategy(),
        InputTypeStrategy(),
        ClassKeywordStrategy(),
        DataAttributeStrategy(),
        RoleStrategy(),
        FormStrategy(),
        GenericClickableStrategy(),
    ]


@dataclass
class Resolution:
    locator: Any
    strategy: str


class ElementResolver:
    def __init__(self, strategies: Optional[Sequence[ResolveStrategy]] = None, *, candidate_limit: int = 10) -> None:
        self.strategies: List[ResolveStrategy] = list(strategies) if strategies is not None else default_strategies()
        self.candidate_limit = candidate_limit

    async def resolve(self, page: Any, description: str, *, require_enabled: bool = True) -> Resolution:
        description = (description or "").strip()
        if not description:
            raise ElementResolutionError(description, "empty target description")
        saw_hidden = False
        for strategy in self.strategies:
            lookup = await strategy.try_resolve(
                page,
                description,
                require_enabled=require_enabled,
                limit=self.candidate_limit,
            )
            if lookup.locator is not None:
                return Resolution(lookup.locator, strategy.name)
            saw_hidden = saw_hidden or lookup.saw_hidden
        if saw_hidden:
            raise VisibilityError(description)
        raise ElementResolutionError(description)
