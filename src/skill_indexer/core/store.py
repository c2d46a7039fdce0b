"""Persistent skill catalog (SQLAlchemy async ORM).

The indexer only ever upserts skills keyed on repo_url, adds categories,
and appends audit rows. Removing a skill is an administrative action
outside this package.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Float, Integer, String, Text, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from skill_indexer.models import SkillRecord

logger = logging.getLogger("skill-indexer.store")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Skill(Base):
    """One catalog entry per canonical repository URL."""

    __tablename__ = "skills"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(255))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    author: Mapped[str] = mapped_column(String(255), index=True)
    repo_url: Mapped[str] = mapped_column(String(512), unique=True, index=True)
    quality_score: Mapped[float] = mapped_column(Float, default=0.0)
    trust_tier: Mapped[str] = mapped_column(String(16), default="unknown", index=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    stars: Mapped[int] = mapped_column(Integer, default=0)
    installable: Mapped[bool] = mapped_column(Boolean, default=False)
    indexed_at: Mapped[str] = mapped_column(String(40), default=_now)

    created_at: Mapped[str] = mapped_column(String(40), default=_now)


class SkillCategory(Base):
    """Skill/category membership, keyed by the skill's repo_url."""

    __tablename__ = "skill_categories"

    repo_url: Mapped[str] = mapped_column(String(512), primary_key=True)
    category: Mapped[str] = mapped_column(String(32), primary_key=True)


class AuditLog(Base):
    """Append-only run telemetry."""

    __tablename__ = "audit_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_type: Mapped[str] = mapped_column(String(64), index=True)
    actor: Mapped[str] = mapped_column(String(64), default="system")
    action: Mapped[str] = mapped_column(String(64))
    result: Mapped[str] = mapped_column(String(16))
    details: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    timestamp: Mapped[str] = mapped_column(String(40), default=_now)


class SkillStore:
    """Catalog access for one run. Owns its engine; call dispose() when done."""

    def __init__(self, database_url: str, engine: AsyncEngine | None = None):
        self.database_url = database_url
        self.engine = engine or create_async_engine(database_url)
        self.sessions = async_sessionmaker(self.engine, expire_on_commit=False)

    async def init(self) -> None:
        """Create tables if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()

    def _insert(self, table):
        if self.engine.dialect.name == "postgresql":
            return postgresql.insert(table)
        return sqlite.insert(table)

    async def existing_urls(self, urls: list[str]) -> set[str]:
        """Which of these URLs already have a row, in one query."""
        if not urls:
            return set()
        async with self.sessions() as session:
            rows = await session.execute(select(Skill.repo_url).where(Skill.repo_url.in_(urls)))
            return set(rows.scalars().all())

    async def upsert_skill(self, record: SkillRecord) -> None:
        """Insert, or replace every indexed field of the row with this repo_url."""
        values = record.model_dump()
        stmt = self._insert(Skill.__table__).values(id=str(uuid.uuid4()), created_at=_now(), **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["repo_url"],
            set_={key: stmt.excluded[key] for key in values if key != "repo_url"},
        )
        async with self.sessions() as session:
            await session.execute(stmt)
            await session.commit()
        logger.debug("Upserted %s (%s, %.4f)", record.repo_url, record.trust_tier, record.quality_score)

    async def categories_for(self, urls: list[str]) -> dict[str, set[str]]:
        if not urls:
            return {}
        async with self.sessions() as session:
            rows = await session.execute(
                select(SkillCategory.repo_url, SkillCategory.category).where(
                    SkillCategory.repo_url.in_(urls)
                )
            )
            found: dict[str, set[str]] = {}
            for repo_url, category in rows.all():
                found.setdefault(repo_url, set()).add(category)
            return found

    async def add_categories(self, repo_url: str, categories: list[str]) -> None:
        if not categories:
            return
        stmt = self._insert(SkillCategory.__table__).values(
            [{"repo_url": repo_url, "category": c} for c in categories]
        )
        stmt = stmt.on_conflict_do_nothing(
            index_elements=["repo_url", "category"]
        )
        async with self.sessions() as session:
            await session.execute(stmt)
            await session.commit()

    async def insert_audit_log(
        self,
        event_type: str,
        action: str,
        result: str,
        details: dict[str, Any],
        actor: str = "system",
    ) -> None:
        async with self.sessions() as session:
            session.add(
                AuditLog(
                    event_type=event_type,
                    actor=actor,
                    action=action,
                    result=result,
                    details=details,
                )
            )
            await session.commit()
