"""Carry hand-added builder calls over from a previously generated table file.

Generated field definitions look like::

    "Email": textField().notNull().entityId("FMFID:12").inputValidator(emailSchema),

Everything the generator owns (the base builder and the standard chain
methods) is regenerated from metadata; any other chained call is treated as a
user customization and appended to the fresh chain. The scanner is
best-effort: it understands quotes, template literals, comments and nested
brackets, which is enough for the files this tool writes and the edits
people make to them.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

log = logging.getLogger(__name__)

STANDARD_METHODS = {"primaryKey", "readOnly", "notNull", "entityId", "comment"}
STANDARD_CALL_PREFIXES = (".primaryKey()", ".readOnly()", ".notNull()", ".entityId(", ".comment(")

_OCCURRENCE_RE = re.compile(r"export\s+const\s+([A-Za-z_$][\w$]*)\s*=\s*fmTableOccurrence\s*\(")
_IMPORT_RE = re.compile(r"^import\b[^;]*?from\s+['\"]([^'\"]+)['\"];?", re.MULTILINE)
_ENTITY_ID_RE = re.compile(r"\.entityId\(\s*(['\"])(.*?)\1\s*\)")
_IDENT_RE = re.compile(r"[A-Za-z0-9_$]")
_BASE_BUILDER_RE = re.compile(r"[A-Za-z_$][\w$]*\(\)(\.outputValidator\(z\.coerce\.boolean\(\)\))?")


@dataclass(frozen=True)
class ExistingField:
    field_name: str
    chain: str
    entity_id: Optional[str] = None


@dataclass
class ExistingImport:
    module: str
    text: str
    # base name -> full specifier, e.g. "textField" -> "textField as tf"
    specifiers: Dict[str, str] = field(default_factory=dict)
    type_only: bool = False


@dataclass
class ExistingTable:
    var_name: str
    entity_set_name: str
    fields: Dict[str, ExistingField] = field(default_factory=dict)
    fields_by_entity_id: Dict[str, ExistingField] = field(default_factory=dict)
    imports: List[ExistingImport] = field(default_factory=list)

    @property
    def import_aliases(self) -> Dict[str, str]:
        aliases = {}
        for imp in self.imports:
            # a type-only binding cannot stand in for a builder call
            if imp.type_only:
                continue
            for base, spec in imp.specifiers.items():
                if " as " in spec:
                    aliases[base] = spec.split(" as ", 1)[1].strip()
        return aliases

    def match(self, field_name: str, entity_id: Optional[str]) -> Tuple[Optional[ExistingField], bool]:
        """Find the existing definition for a field, by entity id first and then by name.

        The second value is True when the match came from the entity id.
        """
        if entity_id and entity_id in self.fields_by_entity_id:
            return self.fields_by_entity_id[entity_id], True
        return self.fields.get(field_name), False


def _skip_string(text: str, i: int) -> int:
    quote = text[i]
    i += 1
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if ch == quote:
            return i + 1
        if quote == "`" and text.startswith("${", i):
            i = _skip_group(text, i + 1)
            continue
        i += 1
    return i


def _skip_comment(text: str, i: int) -> int:
    if text.startswith("//", i):
        end = text.find("\n", i)
        return len(text) if end == -1 else end + 1
    end = text.find("*/", i + 2)
    return len(text) if end == -1 else end + 2


def _is_comment(text: str, i: int) -> bool:
    return text.startswith("//", i) or text.startswith("/*", i)


def _skip_group(text: str, i: int) -> int:
    """Return the index just past the bracket group opening at ``i``."""
    depth = 0
    while i < len(text):
        ch = text[i]
        if ch in "'\"`":
            i = _skip_string(text, i)
            continue
        if _is_comment(text, i):
            i = _skip_comment(text, i)
            continue
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return i


def _skip_angles(text: str, i: int) -> int:
    depth = 0
    while i < len(text):
        ch = text[i]
        if ch in "'\"`":
            i = _skip_string(text, i)
            continue
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
            if depth == 0:
                return i + 1
        i += 1
    return i


def split_top_level(text: str, sep: str = ",") -> List[str]:
    parts = []
    start = i = 0
    while i < len(text):
        ch = text[i]
        if ch in "'\"`":
            i = _skip_string(text, i)
            continue
        if _is_comment(text, i):
            i = _skip_comment(text, i)
            continue
        if ch in "([{":
            i = _skip_group(text, i)
            continue
        if ch == sep:
            parts.append(text[start:i])
            start = i + 1
        i += 1
    parts.append(text[start:])
    return [p.strip() for p in parts if p.strip()]


def _strip_leading_comments(text: str) -> str:
    text = text.strip()
    while _is_comment(text, 0):
        text = text[_skip_comment(text, 0):].strip()
    return text


def _string_value(literal: str) -> str:
    literal = literal.strip()
    if literal[:1] == '"':
        try:
            return json.loads(literal)
        except ValueError:
            pass
    return literal[1:-1] if literal[:1] in "'\"`" else literal


def _split_entry(entry: str) -> Optional[Tuple[str, str]]:
    entry = _strip_leading_comments(entry)
    if not entry:
        return None
    if entry[0] in "'\"":
        end = _skip_string(entry, 0)
        key = _string_value(entry[:end])
    else:
        match = re.match(r"[A-Za-z_$][\w$]*", entry)
        if not match:
            return None
        end = match.end()
        key = match.group(0)
    rest = entry[end:].lstrip()
    if not rest.startswith(":"):
        # shorthand or spread, nothing generated looks like this
        return None
    return key, rest[1:].strip()


def extract_customizations(chain: str, base_end: int = 0) -> str:
    """Return the non-standard chained calls found after ``base_end``."""
    tail = chain[max(0, min(base_end, len(chain))):]
    kept: List[str] = []
    i = 0
    while i < len(tail):
        dot = tail.find(".", i)
        if dot == -1:
            break
        j = dot + 1
        if j >= len(tail) or not _IDENT_RE.match(tail[j]):
            i = j
            continue
        name_start = j
        while j < len(tail) and _IDENT_RE.match(tail[j]):
            j += 1
        method = tail[name_start:j]
        while j < len(tail) and tail[j].isspace():
            j += 1
        if j < len(tail) and tail[j] == "<":
            j = _skip_angles(tail, j)
            while j < len(tail) and tail[j].isspace():
                j += 1
        if j < len(tail) and tail[j] == "(":
            end = _skip_group(tail, j)
        else:
            # property access, keep up to the next dot
            next_dot = tail.find(".", j)
            end = len(tail) if next_dot == -1 else next_dot
        if method not in STANDARD_METHODS:
            kept.append(tail[dot:end])
        i = end
    return "".join(kept)


def preserve_customizations(existing: Optional[ExistingField], new_chain: str) -> str:
    """Append the user calls from ``existing`` to a freshly generated chain."""
    if existing is None:
        return new_chain
    base_end = len(new_chain)
    for prefix in STANDARD_CALL_PREFIXES:
        idx = new_chain.find(prefix)
        if idx != -1 and idx < base_end:
            base_end = idx
    base = new_chain[:base_end]
    if existing.chain.startswith(base):
        existing_base_end = len(base)
    else:
        # the field's type changed; skip whatever builder was generated before
        old_base = _BASE_BUILDER_RE.match(existing.chain)
        existing_base_end = old_base.end() if old_base else 0
    return new_chain + extract_customizations(existing.chain, existing_base_end)


def _parse_imports(text: str) -> List[ExistingImport]:
    imports = []
    for match in _IMPORT_RE.finditer(text):
        statement = match.group(0).strip()
        specifiers: Dict[str, str] = {}
        braces = re.search(r"\{([^}]*)\}", statement)
        if braces:
            for spec in (s.strip() for s in braces.group(1).split(",")):
                if not spec:
                    continue
                base = spec[5:].strip() if spec.startswith("type ") else spec
                specifiers[base.split(" as ", 1)[0].strip()] = spec
        imports.append(ExistingImport(
            module=match.group(1),
            text=statement,
            specifiers=specifiers,
            type_only=statement.startswith("import type"),
        ))
    return imports


def parse_existing_table(text: str) -> Optional[ExistingTable]:
    """Parse a generated table file; returns None when it holds no table occurrence."""
    match = _OCCURRENCE_RE.search(text)
    if not match:
        return None
    open_paren = match.end() - 1
    close = _skip_group(text, open_paren)
    args = split_top_level(text[open_paren + 1:close - 1])
    if len(args) < 2 or not args[1].startswith("{"):
        return None

    table = ExistingTable(
        var_name=match.group(1),
        entity_set_name=_string_value(args[0]),
        imports=_parse_imports(text[:match.start()]),
    )
    for entry in split_top_level(args[1][1:-1]):
        parsed = _split_entry(entry)
        if parsed is None:
            continue
        name, chain = parsed
        id_match = _ENTITY_ID_RE.search(chain)
        existing = ExistingField(field_name=name, chain=chain, entity_id=id_match.group(2) if id_match else None)
        table.fields[name] = existing
        if existing.entity_id:
            table.fields_by_entity_id[existing.entity_id] = existing
    return table


def removed_fields_block(removed: List[ExistingField]) -> List[str]:
    if not removed:
        return []
    rule = "// " + "=" * 76
    lines = [rule, "// Removed fields (not found in metadata)", rule]
    for f in removed:
        note = f" (was matched by entityId {f.entity_id})" if f.entity_id else ""
        lines.append(f"// @removed: Field not found in metadata{note}")
        chain = " ".join(f.chain.split())
        lines.append(f"// {json.dumps(f.field_name, ensure_ascii=False)}: {chain},")
        lines.append("")
    return lines
