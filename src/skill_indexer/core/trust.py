"""Trust tier and quality score for indexed skills.

Trusted publishers bypass the formula: their packages are verified and get
the publisher's configured base score. Everything else is scored from
GitHub popularity signals:

    quality = (star_component + fork_component + 25) / 100

with either a linear component formula (saturates at 500 stars / 125
forks) or a logarithmic one (spreads the long tail). The choice is an
explicit argument so both are testable without touching the environment.
"""

import logging
import math
import re
from datetime import datetime, timezone

from skill_indexer.models import CandidateRepository, DescriptorMetadata, SkillRecord, TrustTier

logger = logging.getLogger("skill-indexer.trust")

OFFICIAL_TOPIC = "claude-code-official"
COMMUNITY_MIN_STARS = 50
EXPERIMENTAL_MIN_STARS = 5

STAR_CAP = 50.0
FORK_CAP = 25.0
BASELINE = 25.0


def linear_components(stars: int, forks: int) -> tuple[float, float]:
    return min(stars / 10, STAR_CAP), min(forks / 5, FORK_CAP)


def log_components(stars: int, forks: int) -> tuple[float, float]:
    return (
        min(math.log10(max(stars, 0) + 1) * 15, STAR_CAP),
        min(math.log10(max(forks, 0) + 1) * 10, FORK_CAP),
    )


def quality_score(stars: int, forks: int, use_log_scale: bool = False) -> float:
    """Popularity-derived score in [0, 1]."""
    stars, forks = max(stars, 0), max(forks, 0)
    if use_log_scale:
        star_part, fork_part = log_components(stars, forks)
    else:
        star_part, fork_part = linear_components(stars, forks)
    return (star_part + fork_part + BASELINE) / 100


def trust_tier(stars: int, topics: list[str]) -> TrustTier:
    if OFFICIAL_TOPIC in topics:
        return "verified"
    if stars >= COMMUNITY_MIN_STARS:
        return "community"
    if stars >= EXPERIMENTAL_MIN_STARS:
        return "experimental"
    return "unknown"


def merge_tags(topics: list[str], triggers: list[str]) -> list[str]:
    """Topics plus trigger phrases as slugs, first occurrence wins."""
    slugs = [re.sub(r"\s+", "-", t.strip().lower()) for t in triggers if t.strip()]
    return list(dict.fromkeys([*topics, *slugs]))


def score_candidate(
    repo: CandidateRepository,
    metadata: DescriptorMetadata | None = None,
    use_log_scale: bool = False,
    indexed_at: str | None = None,
) -> SkillRecord:
    """Turn a validated candidate into the record that gets persisted."""
    if repo.publisher is not None:
        score = repo.publisher.base_quality_score
        tier: TrustTier = "verified"
        logger.debug(
            "HIGH-TRUST: %s publisher=%s -> score=%s",
            repo.full_name,
            repo.publisher.full_name,
            score,
        )
    else:
        score = quality_score(repo.stars, repo.forks, use_log_scale)
        tier = trust_tier(repo.stars, repo.topics)
        logger.debug(
            "COMMUNITY (%s): %s stars=%d forks=%d -> score=%.4f",
            "log" if use_log_scale else "linear",
            repo.full_name,
            repo.stars,
            repo.forks,
            score,
        )

    metadata = metadata or DescriptorMetadata()
    return SkillRecord(
        name=metadata.name or repo.name,
        description=metadata.description or repo.description,
        author=metadata.author or repo.owner,
        repo_url=repo.url,
        quality_score=round(score, 6),
        trust_tier=tier,
        tags=merge_tags(repo.topics, metadata.triggers),
        stars=repo.stars,
        installable=repo.installable,
        indexed_at=indexed_at or datetime.now(timezone.utc).isoformat(),
    )
