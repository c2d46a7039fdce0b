"""Configuration for the skill indexer."""

import logging
from pathlib import Path

import yaml
from pydantic import AliasChoices, Field, ValidationError
from pydantic_settings import BaseSettings

from skill_indexer.models import TrustedPublisher

logger = logging.getLogger("skill-indexer.config")

_PACKAGE_DIR = Path(__file__).parent


class Settings(BaseSettings):
    """Indexer configuration loaded from environment and .env file."""

    # GitHub App identity (installation token exchange)
    github_app_id: str = Field(
        default="",
        validation_alias=AliasChoices("GITHUB_APP_ID", "SKILL_INDEXER_GITHUB_APP_ID"),
    )
    github_app_installation_id: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GITHUB_APP_INSTALLATION_ID", "SKILL_INDEXER_GITHUB_APP_INSTALLATION_ID"
        ),
    )
    # PEM, PEM with literal \n escapes, or base64 of the whole PEM
    github_app_private_key: str = Field(
        default="",
        validation_alias=AliasChoices(
            "GITHUB_APP_PRIVATE_KEY", "SKILL_INDEXER_GITHUB_APP_PRIVATE_KEY"
        ),
    )

    # Static fallback token (loaded from env / .env, never committed)
    github_token: str = Field(
        default="",
        validation_alias=AliasChoices("GITHUB_TOKEN", "SKILL_INDEXER_GITHUB_TOKEN"),
    )

    # Quality score formula: logarithmic when true, linear otherwise
    log_quality_score: str = Field(
        default="",
        validation_alias=AliasChoices(
            "SKILLSMITH_LOG_QUALITY_SCORE", "SKILL_INDEXER_LOG_QUALITY_SCORE"
        ),
    )

    # Endpoints
    api_base_url: str = "https://api.github.com"
    raw_base_url: str = "https://raw.githubusercontent.com"
    user_agent: str = "skillsmith-indexer/1.0"
    request_timeout: float = 30.0

    # Pacing (seconds)
    api_delay: float = 0.15
    check_delay: float = 0.05

    # Discovery defaults
    default_topics: list[str] = [
        "claude-code-skill",
        "claude-code",
        "anthropic-claude",
        "claude-skill",
    ]
    default_max_pages: int = 5
    max_pages_cap: int = 10
    default_max_repos: int = 50
    search_per_page: int = 30

    # Descriptor validation
    descriptor_filename: str = "SKILL.md"
    min_content_length: int = 100
    min_description_length: int = 20

    # Storage
    database_url: str = "sqlite+aiosqlite:///skills.db"

    trusted_publishers_file: Path = _PACKAGE_DIR / "trusted_publishers.yaml"

    model_config = {
        "env_prefix": "SKILL_INDEXER_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
        "populate_by_name": True,
    }

    @property
    def has_app_credentials(self) -> bool:
        return bool(
            self.github_app_id
            and self.github_app_installation_id
            and self.github_app_private_key
        )

    @property
    def use_log_scale(self) -> bool:
        """Robust flag parse: trimmed, case-insensitive 'true'."""
        return self.log_quality_score.strip().lower() == "true"


def read_log_scale_flag() -> bool:
    """Read the scoring formula flag from the current environment.

    Builds a fresh Settings so a flag flipped mid-run is honoured on the
    next scoring call.
    """
    flag = Settings().use_log_scale
    logger.debug("Quality score flag parsed=%s", flag)
    return flag


def load_trusted_publishers(path: Path | None = None) -> list[TrustedPublisher]:
    """Load the trusted publisher allow-list from YAML."""
    path = path or settings.trusted_publishers_file
    try:
        data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load trusted publishers from %s: %s", path, e)
        return []

    entries = data.get("publishers", []) if isinstance(data, dict) else data
    publishers: list[TrustedPublisher] = []
    for entry in entries or []:
        try:
            publishers.append(TrustedPublisher.model_validate(entry))
        except ValidationError as e:
            logger.warning("Skipping malformed trusted publisher entry %r: %s", entry, e)
    return publishers


settings = Settings()
