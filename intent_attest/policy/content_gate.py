"""
Content policy gate for campaign captions.

This module implements a pure, testable policy engine that validates caption
text and injects mandatory promotional content. Validation never raises: it
returns a structured result and the caller decides whether to reject the
content or let the author amend it.

Policy Rules:
- caption length must not exceed max_caption_length (default 280)
- caption must not contain any forbidden claim (case-insensitive substring);
  every matching claim is reported, in list order

Injection (idempotent):
- each mandatory mention is appended if absent
- each mandatory hashtag is appended if absent
- links for recognized target dApps are appended if absent

Configuration:
- CONTENT_FORBIDDEN_CLAIMS, CONTENT_MANDATORY_MENTIONS and
  CONTENT_MANDATORY_HASHTAGS are comma-separated lists. The resulting
  ContentPolicyConfig is immutable and rebuilt only when the settings cache
  is cleared.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..config import DEFAULT_DAPP_LINKS, parse_csv

DEFAULT_MAX_CAPTION_LENGTH = 280

SECTION_SEPARATOR = "\n\n"
LINK_SEPARATOR = " | "


class ContentPolicyConfig(BaseModel):
    """Immutable reference data for the content policy."""

    model_config = ConfigDict(frozen=True)

    forbidden_claims: Tuple[str, ...] = ()
    mandatory_mentions: Tuple[str, ...] = ()
    mandatory_hashtags: Tuple[str, ...] = ()
    dapp_links: Tuple[Tuple[str, str], ...] = ()
    max_caption_length: int = Field(default=DEFAULT_MAX_CAPTION_LENGTH, ge=1)

    def link_for(self, dapp: str) -> str | None:
        key = _normalize_dapp_key(dapp)
        for name, url in self.dapp_links:
            if name == key:
                return url
        return None


class ContentValidationResult(BaseModel):
    """Outcome of validating a caption."""

    valid: bool
    violations: List[str] = []


def _normalize_dapp_key(dapp: str) -> str:
    """Canonicalize a dApp identifier: trimmed, lowercase, spaces as underscores."""
    return "_".join(dapp.strip().lower().split())


def _contains(text: str, token: str) -> bool:
    return token.lower() in text.lower()


def build_policy_config(
    forbidden_claims: str,
    mandatory_mentions: str,
    mandatory_hashtags: str,
    max_caption_length: int = DEFAULT_MAX_CAPTION_LENGTH,
    dapp_links: Dict[str, str] | None = None,
) -> ContentPolicyConfig:
    """Materialize comma-separated settings values into a frozen config."""
    links = DEFAULT_DAPP_LINKS if dapp_links is None else dapp_links
    return ContentPolicyConfig(
        forbidden_claims=tuple(c.lower() for c in parse_csv(forbidden_claims)),
        mandatory_mentions=tuple(parse_csv(mandatory_mentions)),
        mandatory_hashtags=tuple(parse_csv(mandatory_hashtags)),
        dapp_links=tuple((_normalize_dapp_key(k), v) for k, v in links.items()),
        max_caption_length=max_caption_length,
    )


class ContentPolicy:
    """Validates captions and injects mandatory content."""

    def __init__(self, config: ContentPolicyConfig):
        self.config = config

    def length_violation(self, text: str) -> str | None:
        if len(text) > self.config.max_caption_length:
            return f"caption exceeds {self.config.max_caption_length} characters"
        return None

    def validate(self, text: str) -> ContentValidationResult:
        """
        Check a caption against the policy.

        Returns:
            ContentValidationResult with every violation found
        """
        violations: List[str] = []

        too_long = self.length_violation(text)
        if too_long:
            violations.append(too_long)

        lowered = text.lower()
        for claim in self.config.forbidden_claims:
            if claim in lowered:
                violations.append(claim)

        return ContentValidationResult(valid=not violations, violations=violations)

    def inject_mandatory_content(self, text: str, target_dapps: Iterable[str]) -> str:
        """
        Append mandatory mentions, hashtags and dApp links that are missing.

        Applying this to its own output returns the output unchanged.
        """
        result = text.strip()

        for mention in self.config.mandatory_mentions:
            if not _contains(result, mention):
                result = _append(result, mention)

        for hashtag in self.config.mandatory_hashtags:
            if not _contains(result, hashtag):
                result = _append(result, hashtag)

        links: List[str] = []
        for dapp in target_dapps:
            url = self.config.link_for(dapp)
            if url and url not in links and not _contains(result, url):
                links.append(url)
        if links:
            result = _append(result, LINK_SEPARATOR.join(links))

        return result


def _append(text: str, section: str) -> str:
    if not text:
        return section
    return f"{text}{SECTION_SEPARATOR}{section}"


def get_content_policy() -> ContentPolicy:
    """
    Build the content policy from application settings.

    Lazy-loads settings to avoid circular imports. The config is rebuilt
    from whatever get_settings() currently returns.
    """
    from ..config import get_settings

    settings = get_settings()
    return ContentPolicy(
        build_policy_config(
            forbidden_claims=settings.content_forbidden_claims,
            mandatory_mentions=settings.content_mandatory_mentions,
            mandatory_hashtags=settings.content_mandatory_hashtags,
            max_caption_length=settings.content_max_caption_length,
        )
    )
