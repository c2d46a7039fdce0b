"""Run-scoped in-memory cache for SKILL.md validation results."""

import logging

from skill_indexer.models import ValidationResult

logger = logging.getLogger("skill-indexer.cache")


def cache_key(owner: str, repo: str, branch: str, path: str | None = None) -> str:
    """owner/repo/branch[/path], one entry per descriptor location."""
    key = f"{owner}/{repo}/{branch}"
    return f"{key}/{path}" if path else key


class ValidationCache:
    """Validation results for the lifetime of a single run.

    Allocate a new instance per invocation: a result carried over from a
    previous run would hide descriptors that broke or got fixed since.
    """

    def __init__(self):
        self._entries: dict[str, ValidationResult] = {}
        self.hits = 0

    def get(self, owner: str, repo: str, branch: str, path: str | None = None) -> ValidationResult | None:
        result = self._entries.get(cache_key(owner, repo, branch, path))
        if result is not None:
            self.hits += 1
            logger.debug("Cache hit: %s", cache_key(owner, repo, branch, path))
        return result

    def set(
        self,
        owner: str,
        repo: str,
        branch: str,
        path: str | None,
        result: ValidationResult,
    ) -> None:
        self._entries[cache_key(owner, repo, branch, path)] = result

    def clear(self) -> int:
        removed = len(self._entries)
        self._entries.clear()
        self.hits = 0
        return removed

    def stats(self) -> dict:
        valid = sum(1 for r in self._entries.values() if r.valid)
        return {
            "entries": len(self._entries),
            "valid": valid,
            "invalid": len(self._entries) - valid,
            "hits": self.hits,
        }

    def __len__(self) -> int:
        return len(self._entries)
