"""Restricted SKILL.md frontmatter parser.

Understands only what skill descriptors use in practice:

    ---
    name: my-skill
    description: "Quoted or bare scalar"
    tags: [a, b, c]
    triggers:
      - first phrase
      - second phrase
    ---

Anything else (nested mappings, multi-line scalars, anchors) is ignored
line by line rather than rejected, so gate errors stay about presence and
length, not syntax.
"""

import re

FRONTMATTER_RE = re.compile(r"\A---\r?\n(.*?)\r?\n---", re.DOTALL)
_LIST_ITEM_RE = re.compile(r"^\s+-\s+")
_KEY_VALUE_RE = re.compile(r"^(\w+):\s*(.*)$")
_INLINE_ARRAY_RE = re.compile(r"^\[(.*)\]$")
_LINE_SPLIT_RE = re.compile(r"\r?\n")

Frontmatter = dict[str, str | list[str]]


def _unquote(value: str) -> str:
    """Drop one leading and one trailing quote character."""
    return re.sub(r"""^["']|["']$""", "", value)


def parse_frontmatter(content: str) -> Frontmatter | None:
    """Parse the leading --- block. Returns None when there is none."""
    match = FRONTMATTER_RE.match(content)
    if not match:
        return None

    result: Frontmatter = {}
    current_key: str | None = None

    for line in _LINE_SPLIT_RE.split(match.group(1)):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue

        if current_key and _LIST_ITEM_RE.match(line):
            value = _unquote(_LIST_ITEM_RE.sub("", line, count=1).strip())
            items = result.get(current_key)
            if not isinstance(items, list):
                items = []
                result[current_key] = items
            items.append(value)
            continue

        kv = _KEY_VALUE_RE.match(line)
        if not kv:
            continue

        key, raw_value = kv.group(1), kv.group(2)
        current_key = key

        # Empty value: a block list probably follows
        if not raw_value.strip():
            result[key] = []
            continue

        inline = _INLINE_ARRAY_RE.match(raw_value.strip())
        if inline:
            result[key] = [_unquote(v.strip()) for v in inline.group(1).split(",")]
            current_key = None
            continue

        result[key] = _unquote(raw_value.strip())
        current_key = None

    return result
