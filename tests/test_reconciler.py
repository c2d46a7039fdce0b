"""Reconciler tests against a real SQLite catalog."""

import asyncio
import tempfile
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from fakes import audit_logs, count_skills, get_skill
from skill_indexer.core.cache import ValidationCache
from skill_indexer.core.reconciler import Reconciler
from skill_indexer.core.store import SkillStore
from skill_indexer.core.validator import DescriptorValidator
from skill_indexer.models import (
    CandidateRepository,
    DescriptorMetadata,
    RunResult,
    SkillRecord,
    TrustedPublisher,
    ValidationResult,
)

TOPICS = ["claude-code-skill"]


def _candidate(name: str, installable: bool = True, **overrides) -> CandidateRepository:
    values = {
        "owner": "octo",
        "name": name,
        "repo": name,
        "full_name": f"octo/{name}",
        "description": f"{name} helps you write unit tests",
        "url": f"https://github.com/octo/{name}",
        "stars": 80,
        "forks": 4,
        "topics": ["claude-code-skill"],
        "installable": installable,
    }
    values.update(overrides)
    return CandidateRepository(**values)


def _validator() -> DescriptorValidator:
    # Only the run cache is consulted while reconciling; nothing is fetched
    return DescriptorValidator(gateway=None, cache=ValidationCache())


def _run(scenario):
    """Run scenario(store) against a fresh on-disk catalog."""

    async def wrapper(tmp: str):
        store = SkillStore(f"sqlite+aiosqlite:///{tmp}/skills.db")
        await store.init()
        try:
            return await scenario(store)
        finally:
            await store.dispose()

    with tempfile.TemporaryDirectory() as tmp:
        return asyncio.run(wrapper(tmp))


def test_rerun_counts_updates_only():
    candidates = [_candidate("a"), _candidate("b"), _candidate("c"), _candidate("junk", False)]

    async def scenario(store):
        reconciler = Reconciler(store, _validator(), log_scale_flag=lambda: False)
        first = await reconciler.reconcile(candidates, RunResult(), TOPICS)
        second = await reconciler.reconcile(candidates, RunResult(), TOPICS)
        return first, second, await count_skills(store)

    first, second, count = _run(scenario)
    assert (first.indexed, first.updated, first.failed) == (3, 0, 0)
    assert (second.indexed, second.updated, second.failed) == (0, 3, 0)
    assert count == 3
    print(f"  PASS: first={first.indexed} inserts, second={second.updated} updates")


def test_upsert_replaces_fields():
    async def scenario(store):
        reconciler = Reconciler(store, _validator(), log_scale_flag=lambda: False)
        await reconciler.reconcile([_candidate("a", stars=10)], RunResult(), TOPICS)
        await reconciler.reconcile([_candidate("a", stars=600, forks=200)], RunResult(), TOPICS)
        return await get_skill(store, "https://github.com/octo/a")

    skill = _run(scenario)
    assert skill.stars == 600
    assert skill.trust_tier == "community"
    assert skill.quality_score == pytest.approx(1.0)


def test_dry_run_never_writes():
    """Preview counts every discovered candidate, installable or not."""
    candidates = [_candidate("a"), _candidate("b"), _candidate("junk", False)]

    async def scenario(store):
        result = await Reconciler(store, _validator()).reconcile(
            candidates, RunResult(dry_run=True), TOPICS
        )
        return result, await count_skills(store), await audit_logs(store)

    result, count, audit = _run(scenario)
    assert (result.indexed, result.updated, result.failed) == (3, 0, 0)
    assert count == 0
    assert audit == []


def test_dry_run_without_store():
    result = asyncio.run(
        Reconciler(None, _validator()).reconcile([_candidate("a")], RunResult(dry_run=True), TOPICS)
    )
    assert result.indexed == 1


class FlakyStore(SkillStore):
    """Fails the upsert for one URL."""

    failing_url = "https://github.com/octo/c"

    async def upsert_skill(self, record: SkillRecord) -> None:
        if record.repo_url == self.failing_url:
            raise RuntimeError("database is locked")
        await super().upsert_skill(record)


def test_one_failed_upsert_does_not_abort_batch():
    candidates = [_candidate(n) for n in "abcde"]

    async def scenario(tmp: str):
        store = FlakyStore(f"sqlite+aiosqlite:///{tmp}/skills.db")
        await store.init()
        try:
            result = await Reconciler(store, _validator()).reconcile(candidates, RunResult(), TOPICS)
            return result, await count_skills(store), await audit_logs(store, "indexer:run")
        finally:
            await store.dispose()

    with tempfile.TemporaryDirectory() as tmp:
        result, count, audit = asyncio.run(scenario(tmp))

    assert result.failed == 1
    assert result.errors == ["Failed to upsert octo/c: database is locked"]
    assert result.indexed == 4
    assert count == 4
    assert audit[0].result == "partial"


def test_categories_assigned_only_once():
    async def scenario(store):
        reconciler = Reconciler(store, _validator())
        await reconciler.reconcile([_candidate("a", topics=["pytest"])], RunResult(), TOPICS)
        # Tags changed upstream; existing categories are left alone
        await reconciler.reconcile([_candidate("a", topics=["docker"])], RunResult(), TOPICS)
        return await store.categories_for(["https://github.com/octo/a"])

    categories = _run(scenario)
    assert categories == {"https://github.com/octo/a": {"testing"}}


def test_audit_log_row_per_run():
    publisher = TrustedPublisher(owner="acme", repo="skills", base_quality_score=0.95)
    candidates = [
        _candidate("a", stars=100, forks=10),
        _candidate(
            "pdf",
            owner="acme",
            repo="skills",
            url="https://github.com/acme/skills/tree/main/skills/pdf",
            publisher=publisher,
            topics=[],
            description="Plain text",
        ),
    ]

    async def scenario(store):
        result = RunResult(found=12)
        reconciler = Reconciler(store, _validator(), log_scale_flag=lambda: False)
        await reconciler.reconcile(candidates, result, TOPICS, "req-1")
        return await audit_logs(store, "indexer:run")

    rows = _run(scenario)
    assert len(rows) == 1
    row = rows[0]
    assert row.action == "index"
    assert row.result == "success"
    assert row.actor == "system"
    assert row.details["request_id"] == "req-1"
    assert row.details["topics"] == TOPICS
    assert row.details["found"] == 12
    assert row.details["indexed"] == 2
    assert row.details["score_distribution"]["high_trust"] == 1
    assert row.details["score_distribution"]["community"] == 1
    assert row.details["score_distribution"]["min"] == pytest.approx(0.37)
    assert row.details["categorization"] == {"testing": 1, "uncategorized": 1}


def test_record_uses_cached_metadata_and_flag_per_record():
    validator = _validator()
    validator.cache.set(
        "octo",
        "a",
        "main",
        None,
        ValidationResult(
            valid=True,
            metadata=DescriptorMetadata(name="Alpha", description="Alpha does many things well"),
        ),
    )
    flags = iter([False, True])
    reconciler = Reconciler(None, validator, log_scale_flag=lambda: next(flags))

    linear = reconciler.build_record(_candidate("a", stars=999, forks=9))
    log = reconciler.build_record(_candidate("a", stars=999, forks=9))
    assert linear.name == "Alpha"
    assert linear.description == "Alpha does many things well"
    assert linear.quality_score == pytest.approx(0.768)
    assert log.quality_score == pytest.approx(0.80)
