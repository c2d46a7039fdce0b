"""Repository discovery: trusted publishers first, then topic search.

Both phases share one run-scoped set of seen URLs, so a package already
captured from a trusted publisher is never re-added as a community result.
`max_repos` bounds both phases together; once it is reached, collection
stops but what was already collected still goes on to scoring and sync.
"""

import logging
from datetime import datetime, timezone

from skill_indexer.core.gateway import GitHubGateway
from skill_indexer.core.validator import DescriptorValidator
from skill_indexer.models import (
    CandidateRepository,
    DescriptorMetadata,
    DiscoveryResult,
    GatewayError,
    TrustedPublisher,
)

logger = logging.getLogger("skill-indexer.discovery")

# Directories in publisher repos that never hold a skill package
NON_SKILL_DIRS = frozenset({
    ".github",
    ".claude-plugin",
    "scripts",
    "assets",
    "agents",
    "apps",
    "packages",
    "spec",
    "template",
})

# Root first, then the conventional skills/ folder
PUBLISHER_SCAN_PATHS = ("", "skills")


class RepositoryDiscoverer:
    """Collects candidates for one run."""

    def __init__(
        self,
        gateway: GitHubGateway,
        validator: DescriptorValidator,
        publishers: list[TrustedPublisher],
        max_repos: int = 50,
    ):
        self.gateway = gateway
        self.validator = validator
        self.publishers = publishers
        self.max_repos = max_repos

        self.seen_urls: set[str] = set()
        self.result = DiscoveryResult()

    @property
    def limit_reached(self) -> bool:
        return len(self.result.candidates) >= self.max_repos

    def _add(self, candidate: CandidateRepository) -> bool:
        if self.limit_reached or candidate.url in self.seen_urls:
            return False
        self.seen_urls.add(candidate.url)
        self.result.candidates.append(candidate)
        return True

    async def discover(self, topics: list[str], max_pages: int) -> DiscoveryResult:
        logger.info("Indexing %d trusted publishers...", len(self.publishers))
        for publisher in self.publishers:
            if self.limit_reached:
                logger.info("Reached max_repos limit (%d) during publisher scan", self.max_repos)
                break
            for candidate in await self.scan_publisher(publisher):
                self._add(candidate)
            await self.gateway.pause()

        from_publishers = len(self.result.candidates)
        logger.info("Found %d skills from trusted publishers", from_publishers)

        for topic in topics:
            if self.limit_reached:
                break
            await self.search_topic(topic, max_pages)

        logger.info(
            "Discovery complete: %d candidates (%d from publishers)",
            len(self.result.candidates),
            from_publishers,
        )
        return self.result

    # ─── Phase 1: trusted publishers ───────────────────────────────────────

    async def scan_publisher(self, publisher: TrustedPublisher) -> list[CandidateRepository]:
        """Every valid package directory (and a valid root) of one publisher repo."""
        owner, repo = publisher.owner, publisher.repo
        found: list[CandidateRepository] = []

        repo_data = await self.gateway.get_repository(owner, repo)
        if isinstance(repo_data, GatewayError):
            self.result.errors.append(
                f"Failed to fetch {owner}/{repo}: {repo_data.status_code or repo_data.message}"
            )
            return found
        if not isinstance(repo_data, dict):
            self.result.errors.append(f"Unexpected repository response for {owner}/{repo}")
            return found

        branch = repo_data.get("default_branch") or "main"

        for base_path in PUBLISHER_SCAN_PATHS:
            listing = await self.gateway.list_directory(owner, repo, base_path)
            if isinstance(listing, GatewayError):
                # skills/ is optional
                if base_path and listing.status_code == 404:
                    continue
                self.result.errors.append(
                    f"Failed to fetch contents for {owner}/{repo}/{base_path}: "
                    f"{listing.status_code or listing.message}"
                )
                continue
            if not isinstance(listing, list):
                continue

            for item in listing:
                if item.get("type") != "dir":
                    continue
                dir_name = item.get("name", "")
                if dir_name in NON_SKILL_DIRS:
                    continue
                if publisher.excludes(dir_name):
                    logger.info("Skipping excluded skill: %s/%s", publisher.full_name, dir_name)
                    continue

                skill_path = f"{base_path}/{dir_name}" if base_path else dir_name
                validation = await self.validator.validate(owner, repo, branch, skill_path)
                if validation.valid:
                    found.append(_publisher_candidate(
                        publisher, repo_data, branch, skill_path, dir_name, validation.metadata
                    ))
                await self.gateway.pause(short=True)

        root = await self.validator.validate(owner, repo, branch)
        if root.valid and not publisher.excludes(repo):
            found.append(_publisher_candidate(publisher, repo_data, branch, None, repo, root.metadata))

        return found

    # ─── Phase 2: topic search ─────────────────────────────────────────────

    async def search_topic(self, topic: str, max_pages: int) -> None:
        per_page = self.gateway.settings.search_per_page

        for page in range(1, max_pages + 1):
            if self.limit_reached:
                logger.info("Reached max_repos limit (%d), stopping collection", self.max_repos)
                return

            result = await self.gateway.search_repositories(topic, page)
            if result.error is not None:
                self.result.errors.append(f"[{topic}] {result.error.message}")
                self.result.failed += 1
                return

            # NOTE: `found` is the largest single-topic total_count, not the
            # sum across topics, so it undercounts when topics are disjoint.
            # Kept as-is until someone confirms the sum is what callers want.
            self.result.found = max(self.result.found, result.total)

            for repo in result.repos:
                if self.limit_reached:
                    return
                if repo.url in self.seen_urls:
                    continue
                repo.installable = await self.validator.is_installable(
                    repo.owner, repo.repo_name, repo.default_branch
                )
                self._add(repo)
                await self.gateway.pause(short=True)

            if len(result.repos) < per_page:
                return

            await self.gateway.pause()


def _publisher_candidate(
    publisher: TrustedPublisher,
    repo_data: dict,
    branch: str,
    skill_path: str | None,
    fallback_name: str,
    metadata: DescriptorMetadata | None,
) -> CandidateRepository:
    owner, repo = publisher.owner, publisher.repo
    name = (metadata.name if metadata else None) or fallback_name

    if skill_path:
        url = f"https://github.com/{owner}/{repo}/tree/{branch}/{skill_path}"
        description = (
            (metadata.description if metadata else None)
            or f"{fallback_name} skill from {owner}"
        )
    else:
        url = f"https://github.com/{owner}/{repo}"
        description = (
            (metadata.description if metadata else None)
            or repo_data.get("description")
            or f"{repo} skill"
        )

    return CandidateRepository(
        owner=owner,
        name=name,
        repo=repo,
        full_name=f"{owner}/{name}",
        description=description,
        url=url,
        stars=repo_data.get("stargazers_count", 0) or 0,
        forks=repo_data.get("forks_count", 0) or 0,
        topics=repo_data.get("topics") or [],
        updated_at=datetime.now(timezone.utc).isoformat(),
        default_branch=branch,
        installable=True,
        skill_path=skill_path,
        publisher=publisher,
    )
