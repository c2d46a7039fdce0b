"""Idempotent sync of scored candidates into the skill store."""

import logging
from collections import Counter
from collections.abc import Callable

from skill_indexer.config import read_log_scale_flag
from skill_indexer.core.categories import categorize
from skill_indexer.core.store import SkillStore
from skill_indexer.core.trust import score_candidate
from skill_indexer.core.validator import DescriptorValidator
from skill_indexer.models import CandidateRepository, RunResult, SkillRecord

logger = logging.getLogger("skill-indexer.reconciler")


class Reconciler:
    """Upserts validated candidates keyed on repo_url and tallies outcomes.

    Inserts and updates are told apart by one batched existence read taken
    before any write, so re-running an unchanged batch counts only updates.
    """

    def __init__(
        self,
        store: SkillStore | None,
        validator: DescriptorValidator,
        log_scale_flag: Callable[[], bool] = read_log_scale_flag,
    ):
        self.store = store
        self.validator = validator
        self.log_scale_flag = log_scale_flag

    def build_record(self, candidate: CandidateRepository) -> SkillRecord:
        validation = self.validator.cached(
            candidate.owner,
            candidate.repo_name,
            candidate.default_branch,
            candidate.skill_path,
        )
        metadata = validation.metadata if validation else None
        # Flag is re-read per record so a mid-run change takes effect
        return score_candidate(candidate, metadata, use_log_scale=self.log_scale_flag())

    async def reconcile(
        self,
        candidates: list[CandidateRepository],
        result: RunResult,
        topics: list[str],
        request_id: str = "",
    ) -> RunResult:
        persistable = [c for c in candidates if c.installable]
        skipped = len(candidates) - len(persistable)
        if skipped:
            logger.info("Skipping %d candidates without a valid SKILL.md", skipped)

        if result.dry_run:
            # Preview counts every discovered candidate as an insert
            result.indexed = len(candidates)
            logger.info("Dry run: %d candidates, %d installable", result.indexed, len(persistable))
            return result

        if not persistable or self.store is None:
            return result

        records = [(c, self.build_record(c)) for c in persistable]
        urls = [record.repo_url for _, record in records]

        existing = await self.store.existing_urls(urls)

        written: list[SkillRecord] = []
        high_trust = 0
        community_scores: list[float] = []

        for candidate, record in records:
            if candidate.publisher is not None:
                high_trust += 1
            else:
                community_scores.append(record.quality_score)

            try:
                await self.store.upsert_skill(record)
            except Exception as e:
                result.errors.append(f"Failed to upsert {candidate.full_name}: {e}")
                result.failed += 1
                logger.warning("Upsert failed for %s: %s", record.repo_url, e)
                continue

            written.append(record)
            if record.repo_url in existing:
                result.updated += 1
            else:
                result.indexed += 1

        category_counts = await self.assign_categories(written)

        logger.info("Community skills (used formula): %d", len(community_scores))
        logger.info("High-trust skills (bypassed formula): %d", high_trust)
        if community_scores:
            logger.info(
                "Community score range: %.4f - %.4f (avg: %.4f)",
                min(community_scores),
                max(community_scores),
                sum(community_scores) / len(community_scores),
            )
        logger.info("Inserts: %d, Updates: %d, Failed: %d", result.indexed, result.updated, result.failed)

        await self.write_audit_log(
            result,
            topics,
            request_id,
            score_distribution=_distribution(high_trust, community_scores),
            category_counts=category_counts,
        )
        return result

    async def assign_categories(self, records: list[SkillRecord]) -> dict[str, int]:
        """Categorise records that have no categories yet. Returns per-category counts."""
        counts: Counter[str] = Counter()
        if not records:
            return {}

        try:
            known = await self.store.categories_for([r.repo_url for r in records])
        except Exception as e:
            logger.warning("Could not read existing categories: %s", e)
            return {}

        for record in records:
            if known.get(record.repo_url):
                continue
            categories = categorize(record.tags, record.description)
            if not categories:
                counts["uncategorized"] += 1
                continue
            try:
                await self.store.add_categories(record.repo_url, categories)
            except Exception as e:
                logger.warning("Failed to categorise %s: %s", record.repo_url, e)
                continue
            counts.update(categories)

        return dict(counts)

    async def write_audit_log(
        self,
        result: RunResult,
        topics: list[str],
        request_id: str,
        score_distribution: dict,
        category_counts: dict[str, int],
    ) -> None:
        try:
            await self.store.insert_audit_log(
                event_type="indexer:run",
                action="index",
                result="success" if result.failed == 0 else "partial",
                details={
                    "request_id": request_id,
                    "topics": topics,
                    "found": result.found,
                    "indexed": result.indexed,
                    "updated": result.updated,
                    "failed": result.failed,
                    "dry_run": result.dry_run,
                    "score_distribution": score_distribution,
                    "categorization": category_counts,
                },
            )
        except Exception as e:
            # Telemetry only; the run result is already final
            logger.warning("Failed to write audit log: %s", e)


def _distribution(high_trust: int, scores: list[float]) -> dict:
    dist: dict = {"high_trust": high_trust, "community": len(scores)}
    if scores:
        dist.update(
            min=round(min(scores), 4),
            max=round(max(scores), 4),
            avg=round(sum(scores) / len(scores), 4),
        )
    return dist
