"""Indexer run: discovery -> validation -> scoring -> sync, one pass per call."""

import logging
import uuid
from datetime import datetime, timezone

import httpx
from pydantic import ValidationError

from skill_indexer.config import Settings, load_trusted_publishers, read_log_scale_flag
from skill_indexer.config import settings as default_settings
from skill_indexer.core.auth import CredentialManager
from skill_indexer.core.cache import ValidationCache
from skill_indexer.core.discovery import RepositoryDiscoverer
from skill_indexer.core.gateway import GitHubGateway
from skill_indexer.core.reconciler import Reconciler
from skill_indexer.core.store import SkillStore
from skill_indexer.core.validator import DescriptorValidator
from skill_indexer.models import IndexerRequest, RunResult, TrustedPublisher, ValidationResult

logger = logging.getLogger("skill-indexer.indexer")


def _error(message: str, status: int, request_id: str, **extra) -> dict:
    return {"error": message, "status": status, "request_id": request_id, **extra}


async def run_indexer(
    body: dict | None = None,
    *,
    settings: Settings | None = None,
    store: SkillStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    publishers: list[TrustedPublisher] | None = None,
    request_id: str | None = None,
) -> dict:
    """Run one indexing pass and return the response payload.

    Never raises: unexpected failures come back as an internal error with
    the request id so they can be matched to the logs.
    """
    settings = settings or default_settings
    request_id = request_id or str(uuid.uuid4())
    logger.info("Indexer invocation %s", request_id)

    try:
        request = IndexerRequest.model_validate(body or {})
    except ValidationError as e:
        return _error("Invalid request body", 400, request_id, details=e.errors(include_url=False))

    try:
        return await _run(request, settings, store, transport, publishers, request_id)
    except Exception:
        logger.exception("Indexer error (request %s)", request_id)
        return _error("Internal server error", 500, request_id)


async def _run(
    request: IndexerRequest,
    settings: Settings,
    store: SkillStore | None,
    transport: httpx.AsyncBaseTransport | None,
    publishers: list[TrustedPublisher] | None,
    request_id: str,
) -> dict:
    topics = request.topics or list(settings.default_topics)
    max_pages = min(request.max_pages or settings.default_max_pages, settings.max_pages_cap)
    max_repos = settings.default_max_repos if request.max_repos is None else request.max_repos
    min_length = (
        settings.min_content_length
        if request.min_content_length is None
        else request.min_content_length
    )
    if publishers is None:
        publishers = load_trusted_publishers(settings.trusted_publishers_file)

    # The shared module-level settings re-read the scoring flag from the
    # environment on every record; injected settings are authoritative.
    log_scale_flag = (
        read_log_scale_flag
        if settings is default_settings
        else (lambda: settings.use_log_scale)
    )

    result = RunResult(dry_run=request.dry_run)

    # Fresh per invocation: validation cache and dedup set never outlive a run
    cache = ValidationCache()
    owns_store = store is None and not request.dry_run

    async with httpx.AsyncClient(timeout=settings.request_timeout, transport=transport) as client:
        credentials = CredentialManager(settings, client)
        gateway = GitHubGateway(settings, client, credentials)
        validator = DescriptorValidator(
            gateway, cache, strict=request.strict_validation, min_content_length=min_length
        )
        discoverer = RepositoryDiscoverer(gateway, validator, publishers, max_repos=max_repos)

        discovery = await discoverer.discover(topics, max_pages)
        result.found = discovery.found
        result.failed = discovery.failed
        result.errors.extend(discovery.errors)

        if owns_store:
            store = SkillStore(settings.database_url)
            await store.init()
        try:
            reconciler = Reconciler(
                None if request.dry_run else store, validator, log_scale_flag=log_scale_flag
            )
            await reconciler.reconcile(discovery.candidates, result, topics, request_id)
        finally:
            if owns_store and store is not None:
                await store.dispose()

    logger.info("Validation cache: %s", cache.stats())

    return {
        "data": {
            **result.model_dump(by_alias=True),
            "repositories_found": len(discovery.candidates),
        },
        "meta": {
            "topics": topics,
            "max_pages": max_pages,
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    }


async def validate_descriptor(
    owner: str,
    repo: str,
    branch: str = "main",
    path: str | None = None,
    strict: bool = True,
    min_content_length: int | None = None,
    *,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ValidationResult:
    """Validate a single SKILL.md location outside of a full run."""
    settings = settings or default_settings
    async with httpx.AsyncClient(timeout=settings.request_timeout, transport=transport) as client:
        gateway = GitHubGateway(settings, client, CredentialManager(settings, client))
        validator = DescriptorValidator(
            gateway,
            ValidationCache(),
            strict=strict,
            min_content_length=(
                settings.min_content_length if min_content_length is None else min_content_length
            ),
        )
        return await validator.validate(owner, repo, branch, path)
