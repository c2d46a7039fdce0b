"""SKILL.md quality gates.

Gates are accumulated, not short-circuited, so an operator sees every
reason a descriptor was rejected. Only a failed fetch or an empty body
stops early.
"""

import logging
import re

from skill_indexer.core.cache import ValidationCache, cache_key
from skill_indexer.core.frontmatter import parse_frontmatter
from skill_indexer.core.gateway import GitHubGateway
from skill_indexer.models import (
    ApiError,
    DescriptorMetadata,
    GatewayError,
    ValidationResult,
)

logger = logging.getLogger("skill-indexer.validator")

HEADING_RE = re.compile(r"^#\s+.+", re.MULTILINE)


def check_descriptor(
    content: str,
    strict: bool = True,
    min_content_length: int = 100,
    min_description_length: int = 20,
) -> ValidationResult:
    """Run the content gates on an already-fetched descriptor."""
    errors: list[str] = []

    if not content or not content.strip():
        return ValidationResult(valid=False, errors=["SKILL.md is empty"])

    if len(content) < min_content_length:
        errors.append(
            f"SKILL.md too short ({len(content)} chars, minimum {min_content_length})"
        )

    if not HEADING_RE.search(content):
        errors.append("SKILL.md missing heading (needs a markdown # Title)")

    metadata: DescriptorMetadata | None = None
    frontmatter = parse_frontmatter(content)

    if frontmatter is not None:
        metadata = DescriptorMetadata()

        name = frontmatter.get("name")
        if isinstance(name, str) and name.strip():
            metadata.name = name.strip()
        elif strict:
            errors.append('Frontmatter missing required "name" field')

        description = frontmatter.get("description")
        if isinstance(description, str):
            desc = description.strip()
            if len(desc) >= min_description_length:
                metadata.description = desc
            elif strict:
                errors.append(
                    f'Frontmatter "description" too short '
                    f"({len(desc)} chars, minimum {min_description_length})"
                )
        elif strict:
            errors.append('Frontmatter missing required "description" field')

        author = frontmatter.get("author")
        if isinstance(author, str) and author.strip():
            metadata.author = author.strip()

        triggers = frontmatter.get("triggers") or frontmatter.get("trigger_phrases")
        if isinstance(triggers, list):
            metadata.triggers = [t for t in triggers if isinstance(t, str) and t]
    elif strict:
        errors.append("SKILL.md missing frontmatter (leading --- YAML block)")

    return ValidationResult(valid=not errors, errors=errors, metadata=metadata)


class DescriptorValidator:
    """Fetches SKILL.md by raw URL and caches the verdict for the run."""

    def __init__(
        self,
        gateway: GitHubGateway,
        cache: ValidationCache,
        strict: bool = True,
        min_content_length: int = 100,
    ):
        self.gateway = gateway
        self.cache = cache
        self.strict = strict
        self.min_content_length = min_content_length

    async def validate(
        self, owner: str, repo: str, branch: str, path: str | None = None
    ) -> ValidationResult:
        cached = self.cache.get(owner, repo, branch, path)
        if cached is not None:
            return cached

        result = await self._fetch_and_check(owner, repo, branch, path)
        self.cache.set(owner, repo, branch, path, result)

        if not result.valid:
            logger.info(
                "SKILL.md validation failed for %s: %s",
                cache_key(owner, repo, branch, path),
                ", ".join(result.errors),
            )
        return result

    async def is_installable(
        self, owner: str, repo: str, branch: str, path: str | None = None
    ) -> bool:
        return (await self.validate(owner, repo, branch, path)).valid

    def cached(
        self, owner: str, repo: str, branch: str, path: str | None = None
    ) -> ValidationResult | None:
        """Result already computed this run, without fetching."""
        return self.cache.get(owner, repo, branch, path)

    async def _fetch_and_check(
        self, owner: str, repo: str, branch: str, path: str | None
    ) -> ValidationResult:
        content = await self.gateway.get_text(self.gateway.raw_url(owner, repo, branch, path))

        if isinstance(content, GatewayError):
            if isinstance(content, ApiError) and content.status_code is None:
                reason = f"Failed to fetch SKILL.md: {content.detail or 'Unknown'}"
            else:
                reason = f"SKILL.md not found (HTTP {content.status_code})"
            return ValidationResult(valid=False, errors=[reason])

        return check_descriptor(
            content,
            strict=self.strict,
            min_content_length=self.min_content_length,
            min_description_length=self.gateway.settings.min_description_length,
        )
