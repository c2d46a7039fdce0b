"""GitHub HTTP gateway: authenticated calls that report errors as values.

Never retries: a 403 becomes a RateLimitError, any other non-2xx an
ApiError, and the caller decides what to abandon.
"""

import asyncio
import logging
from urllib.parse import quote

import httpx

from skill_indexer.config import Settings
from skill_indexer.core.auth import CredentialManager
from skill_indexer.models import (
    ApiError,
    CandidateRepository,
    GatewayError,
    RateLimitError,
    SearchPage,
)

logger = logging.getLogger("skill-indexer.gateway")


class GitHubGateway:
    """Thin wrapper over one httpx.AsyncClient shared for the whole run."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        credentials: CredentialManager,
    ):
        self.settings = settings
        self.client = client
        self.credentials = credentials

    async def pause(self, short: bool = False) -> None:
        """Fixed inter-request delay to stay under GitHub's abuse threshold."""
        delay = self.settings.check_delay if short else self.settings.api_delay
        if delay > 0:
            await asyncio.sleep(delay)

    async def _send(
        self, method: str, url: str, params: dict | None = None
    ) -> httpx.Response | GatewayError:
        headers = await self.credentials.get_auth_headers()
        try:
            resp = await self.client.request(method, url, params=params, headers=headers)
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, url, e)
            return ApiError(detail=str(e) or type(e).__name__)

        if resp.status_code == 403:
            error = RateLimitError(
                remaining=resp.headers.get("X-RateLimit-Remaining"),
                reset=resp.headers.get("X-RateLimit-Reset"),
            )
            logger.warning("%s %s: %s", method, url, error.message)
            return error
        if not resp.is_success:
            logger.debug("%s %s -> %d", method, url, resp.status_code)
            return ApiError(status_code=resp.status_code)
        return resp

    async def get_json(
        self, url: str, params: dict | None = None
    ) -> dict | list | GatewayError:
        resp = await self._send("GET", url, params)
        if not isinstance(resp, httpx.Response):
            return resp
        try:
            return resp.json()
        except ValueError as e:
            return ApiError(status_code=resp.status_code, detail=f"Invalid JSON: {e}")

    async def get_text(self, url: str) -> str | GatewayError:
        resp = await self._send("GET", url)
        if not isinstance(resp, httpx.Response):
            return resp
        return resp.text

    # ─── GitHub endpoints ──────────────────────────────────────────────────

    def repo_url(self, owner: str, repo: str) -> str:
        return f"{self.settings.api_base_url}/repos/{owner}/{repo}"

    def raw_url(self, owner: str, repo: str, branch: str, path: str | None = None) -> str:
        filename = self.settings.descriptor_filename
        location = f"{branch}/{path}/{filename}" if path else f"{branch}/{filename}"
        return f"{self.settings.raw_base_url}/{owner}/{repo}/{location}"

    async def get_repository(self, owner: str, repo: str) -> dict | GatewayError:
        return await self.get_json(self.repo_url(owner, repo))

    async def list_directory(
        self, owner: str, repo: str, path: str = ""
    ) -> list | dict | GatewayError:
        url = f"{self.repo_url(owner, repo)}/contents"
        if path:
            url = f"{url}/{path}"
        return await self.get_json(url)

    async def search_repositories(self, topic: str, page: int) -> SearchPage:
        """One page of repositories tagged with a topic, most stars first."""
        per_page = self.settings.search_per_page
        data = await self.get_json(
            f"{self.settings.api_base_url}/search/repositories",
            params={
                "q": f"topic:{topic}",
                "per_page": per_page,
                "page": page,
                "sort": "stars",
                "order": "desc",
            },
        )
        if isinstance(data, GatewayError):
            return SearchPage(error=data)
        if not isinstance(data, dict):
            return SearchPage(error=ApiError(detail="Unexpected search response"))

        repos = [_repo_from_item(item) for item in data.get("items", [])]
        return SearchPage(repos=repos, total=data.get("total_count", 0))


def _repo_from_item(item: dict) -> CandidateRepository:
    """Map a /search/repositories item onto a candidate."""
    owner = (item.get("owner") or {}).get("login", "")
    name = item.get("name", "")
    full_name = item.get("full_name") or f"{owner}/{name}"
    return CandidateRepository(
        owner=owner,
        name=name,
        repo=name,
        full_name=full_name,
        description=item.get("description"),
        url=item.get("html_url") or f"https://github.com/{quote(full_name)}",
        stars=item.get("stargazers_count", 0) or 0,
        forks=item.get("forks_count", 0) or 0,
        topics=item.get("topics") or [],
        updated_at=item.get("updated_at", "") or "",
        default_branch=item.get("default_branch") or "main",
        installable=False,
    )
