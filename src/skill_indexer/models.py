"""Data models for the skill indexer."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TrustTier = Literal["verified", "community", "experimental", "unknown"]


class TrustedPublisher(BaseModel):
    """Curated allow-list entry; its packages are always verified."""

    owner: str
    repo: str
    base_quality_score: float = Field(default=0.9, ge=0.0, le=1.0)
    exclude: list[str] = Field(default_factory=list)  # subdirectory names to skip

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def excludes(self, name: str) -> bool:
        return name in self.exclude


class DescriptorMetadata(BaseModel):
    """Subset of SKILL.md frontmatter kept after validation."""

    name: str | None = None
    description: str | None = None  # only kept when >= 20 chars
    author: str | None = None
    triggers: list[str] = Field(default_factory=list)


class ValidationResult(BaseModel):
    """Outcome of validating one SKILL.md path."""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    metadata: DescriptorMetadata | None = None


class CandidateRepository(BaseModel):
    """A repository (or package subdirectory) found during one run."""

    owner: str
    name: str
    full_name: str
    description: str | None = None
    url: str  # canonical URL, the dedup and persistence key
    stars: int = 0
    forks: int = 0
    topics: list[str] = Field(default_factory=list)
    default_branch: str = "main"
    updated_at: str = ""
    installable: bool = False

    # Location of SKILL.md inside the repo (None = root) and trust origin
    repo: str = ""
    skill_path: str | None = None
    publisher: TrustedPublisher | None = None

    @property
    def repo_name(self) -> str:
        """Actual GitHub repository name (differs from `name` for packages)."""
        return self.repo or self.name


class SkillRecord(BaseModel):
    """The durable catalog entry, keyed on repo_url."""

    name: str
    description: str | None = None
    author: str
    repo_url: str
    quality_score: float = Field(ge=0.0, le=1.0)
    trust_tier: TrustTier = "unknown"
    tags: list[str] = Field(default_factory=list)
    stars: int = 0
    installable: bool = False
    indexed_at: str = ""


class RateLimitError(BaseModel):
    """403 from GitHub with rate-limit headers."""

    kind: Literal["rate_limit"] = "rate_limit"
    status_code: int = 403
    remaining: str | None = None
    reset: str | None = None

    @property
    def message(self) -> str:
        return (
            f"GitHub rate limit exceeded. Remaining: {self.remaining}, "
            f"Reset: {self.reset}"
        )


class ApiError(BaseModel):
    """Any other non-2xx response or transport failure."""

    kind: Literal["api"] = "api"
    status_code: int | None = None
    detail: str = ""

    @property
    def message(self) -> str:
        if self.status_code is None:
            return f"Network error: {self.detail or 'Unknown'}"
        return f"GitHub API error: {self.status_code}"


GatewayError = RateLimitError | ApiError


class SearchPage(BaseModel):
    """One page of topic search results."""

    repos: list[CandidateRepository] = Field(default_factory=list)
    total: int = 0
    error: RateLimitError | ApiError | None = None


class DiscoveryResult(BaseModel):
    """Everything both discovery phases produced for one run."""

    candidates: list[CandidateRepository] = Field(default_factory=list)
    found: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)


class RunResult(BaseModel):
    """Per-invocation counters returned to the caller."""

    model_config = ConfigDict(populate_by_name=True)

    found: int = 0
    indexed: int = 0
    updated: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)
    dry_run: bool = Field(default=False, serialization_alias="dryRun")


class IndexerRequest(BaseModel):
    """Optional invocation body; every field falls back to configuration."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    topics: list[str] | None = None
    max_pages: int | None = Field(default=None, alias="maxPages", ge=0)  # 0 = default
    dry_run: bool = Field(default=False, alias="dryRun")
    strict_validation: bool = Field(default=True, alias="strictValidation")
    min_content_length: int | None = Field(default=None, alias="minContentLength", ge=0)
    max_repos: int | None = Field(default=None, alias="maxRepos", ge=0)
