"""Descriptor tests: frontmatter parser, quality gates, fetch + run-scoped cache."""

import asyncio
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import httpx

from fakes import FakeGitHub, make_settings, skill_md
from skill_indexer.core.auth import CredentialManager
from skill_indexer.core.cache import ValidationCache, cache_key
from skill_indexer.core.frontmatter import parse_frontmatter
from skill_indexer.core.gateway import GitHubGateway
from skill_indexer.core.validator import DescriptorValidator, check_descriptor


def test_parse_scalars_lists_and_inline_arrays():
    """Parser should handle the documented subset and strip quotes."""
    content = (
        "---\n"
        "name: 'pdf-tools'\n"
        'description: "Extract text and tables from PDF files"\n'
        "# a comment\n"
        "\n"
        "tags: [pdf, 'parser', \"docs\"]\n"
        "triggers:\n"
        "  - parse a pdf\n"
        "  - \"extract tables\"\n"
        "version: 1.2.0\n"
        "---\n"
        "# PDF tools\n"
    )
    fm = parse_frontmatter(content)
    assert fm is not None
    assert fm["name"] == "pdf-tools"
    assert fm["description"] == "Extract text and tables from PDF files"
    assert fm["tags"] == ["pdf", "parser", "docs"]
    assert fm["triggers"] == ["parse a pdf", "extract tables"]
    assert fm["version"] == "1.2.0"


def test_parse_requires_leading_block():
    assert parse_frontmatter("# Title\n---\nname: x\n---\n") is None
    assert parse_frontmatter("no frontmatter at all") is None


def test_parse_crlf_and_empty_key():
    fm = parse_frontmatter("---\r\nname: win\r\ntriggers:\r\n---\r\n# Win\r\n")
    assert fm == {"name": "win", "triggers": []}


def test_list_items_without_key_are_ignored():
    fm = parse_frontmatter("---\n  - orphan\nname: x\n---\n")
    assert fm == {"name": "x"}


def test_one_char_descriptor_fails_every_content_gate():
    """'x' under strict validation: too short, no heading, no frontmatter."""
    result = check_descriptor("x", strict=True, min_content_length=100)
    assert result.valid is False
    joined = " | ".join(result.errors)
    assert "too short" in joined
    assert "missing heading" in joined
    assert "missing frontmatter" in joined
    assert len(result.errors) == 3


def test_minimal_valid_descriptor():
    content = "---\nname: foo\ndescription: this description has twenty chars\n---\n# Foo\nbody"
    result = check_descriptor(content, strict=True, min_content_length=10)
    assert result.valid is True, result.errors
    assert result.metadata.name == "foo"
    assert result.metadata.description == "this description has twenty chars"


def test_metadata_round_trip():
    """Whatever name/description go in come back out unchanged."""
    cases = [
        ("a", "x" * 20),
        ("code-review", "Reviews pull requests for style and bugs"),
        ("Deploy Helper", "Walks you through a kubernetes deployment: safely"),
        ("émoji-✓", "Unicode descriptions should survive parsing intact"),
    ]
    for name, description in cases:
        content = skill_md(name, description)
        result = check_descriptor(content)
        assert result.valid is True, (name, result.errors)
        assert result.metadata.name == name
        assert result.metadata.description == description


def test_strict_frontmatter_field_errors():
    body = "\n# Title\n" + "Body text. " * 12
    result = check_descriptor("---\nauthor: me\n---" + body)
    assert 'Frontmatter missing required "name" field' in result.errors
    assert 'Frontmatter missing required "description" field' in result.errors
    assert result.metadata.author == "me"

    result = check_descriptor("---\nname: ok\ndescription: too brief\n---" + body)
    assert result.valid is False
    assert any('"description" too short (9 chars, minimum 20)' in e for e in result.errors)
    assert result.metadata.description is None


def test_non_strict_uses_content_gates_only():
    content = "# Just a readme\n\n" + "Plenty of content here. " * 6
    assert check_descriptor(content, strict=True).valid is False
    assert check_descriptor(content, strict=False).valid is True

    bad_frontmatter = "---\nname: x\ndescription: short\n---\n" + content
    result = check_descriptor(bad_frontmatter, strict=False)
    assert result.valid is True
    assert result.metadata.description is None


def test_empty_content_short_circuits():
    result = check_descriptor("   \n  ")
    assert result.valid is False
    assert result.errors == ["SKILL.md is empty"]


def test_trigger_phrases_alias():
    content = skill_md("t").replace("---\n# t", "trigger_phrases: [run tests, check ci]\n---\n# t")
    result = check_descriptor(content)
    assert result.valid, result.errors
    assert result.metadata.triggers == ["run tests", "check ci"]


def _validator(github: FakeGitHub, **kwargs) -> tuple[DescriptorValidator, httpx.AsyncClient]:
    settings = make_settings()
    client = httpx.AsyncClient(transport=github.transport())
    gateway = GitHubGateway(settings, client, CredentialManager(settings, client))
    return DescriptorValidator(gateway, ValidationCache(), **kwargs), client


def test_validator_fetches_each_path_once():
    github = FakeGitHub()
    github.raw["acme/tools/main/skills/lint/SKILL.md"] = skill_md("lint")

    async def scenario():
        validator, client = _validator(github)
        async with client:
            first = await validator.validate("acme", "tools", "main", "skills/lint")
            second = await validator.validate("acme", "tools", "main", "skills/lint")
            missing = await validator.validate("acme", "tools", "main")
        return validator, first, second, missing

    validator, first, second, missing = asyncio.run(scenario())
    assert first.valid and second is first
    assert github.count("/skills/lint/SKILL.md") == 1
    assert missing.valid is False
    assert missing.errors == ["SKILL.md not found (HTTP 404)"]
    assert validator.cache.stats()["entries"] == 2
    print(f"  PASS: cache stats={validator.cache.stats()}")


def test_validator_reports_network_failure():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        settings = make_settings()
        async with httpx.AsyncClient(transport=httpx.MockTransport(boom)) as client:
            gateway = GitHubGateway(settings, client, CredentialManager(settings, client))
            validator = DescriptorValidator(gateway, ValidationCache())
            return await validator.validate("acme", "tools", "main")

    result = asyncio.run(scenario())
    assert result.valid is False
    assert result.errors[0].startswith("Failed to fetch SKILL.md:")


def test_cache_key_and_fresh_instances():
    assert cache_key("o", "r", "main") == "o/r/main"
    assert cache_key("o", "r", "main", "skills/x") == "o/r/main/skills/x"
    assert len(ValidationCache()) == 0
