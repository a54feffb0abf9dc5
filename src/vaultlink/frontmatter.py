"""Frontmatter building utilities for generated notes.

This module serializes a flat mapping to a YAML frontmatter block, keeping
the output readable (block-style lists, quoting only where YAML needs it).
"""

from __future__ import annotations

from typing import Any

import yaml


def _yaml_quote_if_needed(value: str) -> str:
    """Quote a string value if it contains YAML special characters.

    Uses PyYAML to determine if quoting is needed by testing if the value
    roundtrips correctly through YAML parsing. Characters like `: `, `#`,
    and leading `*`, `&`, `%`, `@`, etc. require quoting.
    """
    test_yaml = f"key: {value}"
    try:
        parsed = yaml.safe_load(test_yaml)
        if isinstance(parsed, dict) and parsed.get("key") == value:
            return value  # Roundtrips safely, no quoting needed
    except yaml.YAMLError:
        pass
    # Need quoting - let PyYAML figure out proper escaping
    dumped = yaml.safe_dump({"key": value}, default_flow_style=False, allow_unicode=True).strip()
    # Returns 'key: VALUE' or "key: 'VALUE'" - extract the value part
    return dumped[5:]


def _format_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return _yaml_quote_if_needed(str(value))


def _format_yaml_list(items: list[Any]) -> str:
    """Format a list as YAML list items with indentation.

    Returns:
        Multi-line string with "  - item" format, no trailing newline.
    """
    return "\n".join(f"  - {_format_scalar(item)}" for item in items)


def build_frontmatter(data: dict[str, Any]) -> str:
    """Build a YAML frontmatter block from a flat mapping.

    ``None`` values and nested mappings are left out; empty lists are
    written as ``[]``.

    Returns:
        Complete frontmatter string including --- delimiters and trailing newlines.
    """
    parts = ["---"]
    for key, value in data.items():
        if value is None or isinstance(value, dict):
            continue
        if isinstance(value, (list, tuple)):
            if not value:
                parts.append(f"{key}: []")
                continue
            parts.append(f"{key}:")
            parts.append(_format_yaml_list(list(value)))
        else:
            parts.append(f"{key}: {_format_scalar(value)}")

    parts.append("---\n\n")
    return "\n".join(parts)
