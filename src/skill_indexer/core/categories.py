"""Keyword categorisation for indexed skills.

A skill can land in zero, one, or several categories. Tags match by exact
(lower-cased) membership; descriptions match by phrase substring, so that
short keywords such as "ci" or "rag" never fire inside unrelated words.
"""

CATEGORIES = (
    "security",
    "testing",
    "devops",
    "documentation",
    "productivity",
    "development",
)

TAG_KEYWORDS: dict[str, frozenset[str]] = {
    "security": frozenset({
        "security", "pentest", "pentesting", "ctf", "vulnerability", "owasp",
        "audit", "fuzzing", "secrets", "appsec", "threat-modeling",
    }),
    "testing": frozenset({
        "testing", "test", "tests", "tdd", "jest", "vitest", "pytest", "e2e",
        "playwright", "cypress", "unit-testing", "integration-testing", "qa",
    }),
    "devops": frozenset({
        "devops", "docker", "kubernetes", "k8s", "ci", "cd", "ci-cd",
        "github-actions", "terraform", "deploy", "deployment", "infrastructure",
        "helm", "aws", "gcp", "azure",
    }),
    "documentation": frozenset({
        "documentation", "docs", "markdown", "readme", "technical-writing",
        "docstrings", "api-docs",
    }),
    "productivity": frozenset({
        "productivity", "automation", "cli", "workflow", "ai-assistant",
        "chatbot", "rag", "orchestration", "ai-tools", "planning", "memory",
    }),
    "development": frozenset({
        "development", "coding", "code", "programming", "framework", "refactor",
        "refactoring", "debugging", "claude", "anthropic", "llm", "ai-agent",
        "agentic-ai", "cursor", "codex", "claude-code", "mcp", "mcp-server",
        "model-context-protocol",
    }),
}

DESCRIPTION_PHRASES: dict[str, tuple[str, ...]] = {
    "security": ("security", "vulnerabilit", "penetration test", "owasp"),
    "testing": ("unit test", "test suite", "end-to-end test", "e2e test", "testing"),
    "devops": ("docker", "kubernetes", "ci/cd", "github actions", "deployment pipeline"),
    "documentation": ("documentation", "readme", "technical writing"),
    "productivity": ("ai assistant", "productivity", "workflow automation"),
    "development": (
        "claude code",
        "large language model",
        "code review",
        "refactor",
        "mcp server",
        "model context protocol",
    ),
}


def categorize(tags: list[str], description: str | None = None) -> list[str]:
    """Return matching categories in canonical order."""
    tag_set = {t.strip().lower() for t in tags if t}
    text = (description or "").lower()

    matched: list[str] = []
    for category in CATEGORIES:
        if tag_set & TAG_KEYWORDS[category]:
            matched.append(category)
        elif text and any(p in text for p in DESCRIPTION_PHRASES[category]):
            matched.append(category)
    return matched
