"""skill-indexer MCP server and scheduled entry point.

Provides 2 tools for catalog operators:
- run_indexer: One discovery -> validation -> scoring -> sync pass
- validate_descriptor: Check a single SKILL.md location against the quality gates

`skill-indexer-run` runs a single pass for cron / CI schedulers.
"""

import asyncio
import json
import logging
import sys

from mcp.server.fastmcp import FastMCP

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

mcp = FastMCP(
    "skill-indexer",
    instructions=(
        "Skill Indexer refreshes the skill catalog from GitHub. "
        "Use run_indexer with dry_run=true to preview what a pass would write, "
        "then without it to sync. Trusted publishers are scanned first and always "
        "verified; topic search results are tiered by stars. "
        "Use validate_descriptor to see why a specific SKILL.md is rejected."
    ),
)


def request_body(
    topics: str = "",
    max_pages: int | None = None,
    dry_run: bool = False,
    strict_validation: bool = True,
    min_content_length: int | None = None,
    max_repos: int | None = None,
) -> dict:
    """Indexer request body from tool arguments. Unset knobs fall back to Settings."""
    body: dict = {"dryRun": dry_run, "strictValidation": strict_validation}
    topic_list = [t.strip() for t in topics.split(",") if t.strip()]
    if topic_list:
        body["topics"] = topic_list
    if max_pages is not None:
        body["maxPages"] = max_pages
    if min_content_length is not None:
        body["minContentLength"] = min_content_length
    if max_repos is not None:
        body["maxRepos"] = max_repos
    return body


@mcp.tool()
async def run_indexer(
    topics: str = "",
    max_pages: int | None = None,
    dry_run: bool = False,
    strict_validation: bool = True,
    min_content_length: int | None = None,
    max_repos: int | None = None,
) -> str:
    """Run one indexing pass over trusted publishers and GitHub topics.

    Args:
        topics: Comma-separated GitHub topics (empty = configured defaults)
        max_pages: Pages per topic, 30 repos each (capped at 10; default from config)
        dry_run: Report what would be written without touching the store
        strict_validation: Require frontmatter with name and a 20+ char description
        min_content_length: Minimum SKILL.md length in characters (default from config)
        max_repos: Candidate budget across both discovery phases (default from config)
    """
    from skill_indexer.tools.indexer import run_indexer as _run

    body = request_body(
        topics, max_pages, dry_run, strict_validation, min_content_length, max_repos
    )
    result = await _run(body)
    return json.dumps(result, indent=2)


@mcp.tool()
async def validate_descriptor(
    owner: str,
    repo: str,
    branch: str = "main",
    path: str = "",
    strict: bool = True,
) -> str:
    """Validate one SKILL.md and list every gate it fails.

    Args:
        owner: Repository owner
        repo: Repository name
        branch: Branch holding the descriptor
        path: Subdirectory containing SKILL.md (empty = repository root)
        strict: Require frontmatter with name and description
    """
    from skill_indexer.tools.indexer import validate_descriptor as _validate

    result = await _validate(owner, repo, branch, path or None, strict)
    return json.dumps(result.model_dump(), indent=2)


def main():
    """Entry point for the MCP server."""
    mcp.run(transport="stdio")


def run_once():
    """Entry point for scheduled runs. Optional JSON body on stdin."""
    from skill_indexer.tools.indexer import run_indexer as _run

    body = {}
    if not sys.stdin.isatty():
        raw = sys.stdin.read().strip()
        if raw:
            try:
                body = json.loads(raw)
            except json.JSONDecodeError as e:
                print(json.dumps({"error": f"Invalid JSON body: {e}", "status": 400}))
                sys.exit(2)

    result = asyncio.run(_run(body))
    print(json.dumps(result, indent=2))
    sys.exit(1 if "error" in result else 0)


if __name__ == "__main__":
    main()
