"""Naming helpers shared by the renderers."""
import json
import re

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_name(name: str) -> str:
    """Turn a table, layout or portal name into a valid identifier.

    ``Orders::Line Items`` becomes ``Orders__Line_Items``; a leading digit
    gets an underscore prefix. The mapping is pure, so the same input always
    produces the same file and symbol name.
    """
    sanitized = _INVALID_CHARS.sub("_", name)
    if not sanitized:
        return "_"
    if sanitized[0].isdigit():
        return f"_{sanitized}"
    return sanitized


def ts_string(value: str) -> str:
    """Double-quoted TypeScript string literal."""
    return json.dumps(value, ensure_ascii=False)


def ts_union(values) -> str:
    return " | ".join(ts_string(v) for v in values)


GENERATED_HEADER = """/**
 * Generated by typegen. DO NOT EDIT.
 * This file is rewritten on every run; put customizations in the matching
 * file one directory up.
 */
"""

OVERRIDE_HEADER = """/**
 * Created once by typegen and never overwritten.
 * Edit freely to customize the generated schema.
 */
"""


def indent(lines, level: int = 1):
    pad = "  " * level
    return [f"{pad}{line}" if line else line for line in lines]
