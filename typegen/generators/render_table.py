"""Rendering for table-metadata targets (``fmTableOccurrence`` definitions)."""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

from typegen.generators.preserve import ExistingImport, ExistingTable, preserve_customizations, removed_fields_block
from typegen.generators.resolver import ResolvedTable
from typegen.generators.type_mapper import base_category, describe_type_map
from typegen.generators.utils import GENERATED_HEADER, OVERRIDE_HEADER, indent, ts_string
from typegen.metadata.model import EntityModel, EntityType

FMODATA_MODULE = "@proofkit/fmodata"
ZOD_MODULE = "zod/v4"

FIELD_BUILDERS = {
    "text": "textField()",
    "number": "numberField()",
    "boolean": "numberField().outputValidator(z.coerce.boolean())",
    "date": "dateField()",
    "timestamp": "timestampField()",
    "container": "containerField()",
}
DEFAULT_BUILDER = "textField()"
BUILDER_NAMES = ["textField", "numberField", "dateField", "timestampField", "containerField"]

_NAMED_IMPORT_RE = re.compile(r"^import\s*\{")


@dataclass
class RenderedTable:
    var_name: str
    content: str
    used_builders: Set[str] = field(default_factory=set)
    needs_zod: bool = False
    removed: List[str] = field(default_factory=list)


def field_builder(category: str) -> str:
    """Builder expression for a category; passthrough labels fall back to text."""
    return FIELD_BUILDERS.get(base_category(category) or "", DEFAULT_BUILDER)


def _apply_aliases(builder: str, aliases: Dict[str, str]) -> str:
    for name in BUILDER_NAMES:
        alias = aliases.get(name)
        if alias:
            builder = re.sub(rf"\b{name}\(", f"{alias}(", builder)
    return builder


def _navigation_paths(entity_type: EntityType, model: EntityModel) -> List[str]:
    paths = []
    for nav in entity_type.navigation:
        target = nav.target_type
        if target.startswith("Collection(") and target.endswith(")"):
            target = target[len("Collection("):-1]
        entity_set = model.entity_set_for_type(target.rsplit(".", 1)[-1])
        if entity_set:
            paths.append(entity_set)
    return paths


def _imports(used: Set[str], needs_zod: bool, existing: Optional[ExistingTable]) -> List[str]:
    required = {FMODATA_MODULE: ["fmTableOccurrence"] + [n for n in BUILDER_NAMES if n in used]}
    if needs_zod:
        required[ZOD_MODULE] = ["z"]
    if existing is None:
        return [f'import {{ {", ".join(sorted(names))} }} from "{module}";' for module, names in required.items()]

    aliases = existing.import_aliases
    # every named value import of a required module folds into one statement
    merged: Dict[str, Dict[str, str]] = {}
    for imp in existing.imports:
        if imp.module in required and _is_named_value_import(imp):
            merged.setdefault(imp.module, {}).update(imp.specifiers)

    lines = []
    emitted = set()
    for imp in existing.imports:
        if imp.module not in merged or not _is_named_value_import(imp):
            # user import, kept as written
            lines.append(imp.text if imp.text.endswith(";") else imp.text + ";")
            continue
        if imp.module in emitted:
            continue
        emitted.add(imp.module)
        specs = merged[imp.module]
        for name in required[imp.module]:
            if name not in specs:
                specs[name] = f"{name} as {aliases[name]}" if name in aliases else name
        lines.append(f'import {{ {", ".join(sorted(specs.values()))} }} from "{imp.module}";')
    for module, names in required.items():
        if module not in emitted:
            specs = [f"{n} as {aliases[n]}" if n in aliases else n for n in names]
            lines.append(f'import {{ {", ".join(sorted(specs))} }} from "{module}";')
    return lines


def _is_named_value_import(imp: ExistingImport) -> bool:
    return not imp.type_only and bool(_NAMED_IMPORT_RE.match(imp.text))


def render_table_file(
    entity_set_name: str,
    entity_type: EntityType,
    resolved: ResolvedTable,
    model: EntityModel,
    existing: Optional[ExistingTable] = None,
) -> RenderedTable:
    policy = resolved.policy
    aliases = existing.import_aliases if existing else {}
    used: Set[str] = set()
    needs_zod = False
    field_lines = []
    matched = set()

    for decision in resolved.included:
        prop = entity_type.property(decision.field_name)
        entity_id = None if policy.reduce_metadata else prop.field_id
        builder = field_builder(decision.category)
        used.add(builder.split("(", 1)[0])
        needs_zod = needs_zod or "z.coerce" in builder

        name = decision.output_name
        existing_field = None
        if existing is not None:
            existing_field, by_id = existing.match(decision.field_name, prop.field_id)
            if existing_field is not None:
                matched.add(existing_field.field_name)
                if by_id and not policy.always_override_field_names:
                    name = existing_field.field_name

        chain = _apply_aliases(builder, aliases)
        if decision.primary_key:
            chain += ".primaryKey()"
        if decision.read_only:
            chain += ".readOnly()"
        # primaryKey() already implies not null
        if not decision.nullable and not decision.primary_key:
            chain += ".notNull()"
        if entity_id:
            chain += f".entityId({ts_string(entity_id)})"
        if prop.comment and not policy.reduce_metadata:
            chain += f".comment({ts_string(prop.comment)})"
        chain = preserve_customizations(existing_field, chain)
        field_lines.append(f"{ts_string(name)}: {chain},")

    removed = []
    if existing is not None:
        # an existing definition survives when any metadata field still matches it
        current_ids = {p.field_id for p in entity_type.properties if p.field_id}
        current_names = set(entity_type.field_names)
        removed = [
            f for f in existing.fields.values()
            if f.field_name not in matched
            and f.field_name not in current_names
            and not (f.entity_id and f.entity_id in current_ids)
        ]

    options = []
    if entity_type.table_id and not policy.reduce_metadata:
        options.append(f"entityId: {ts_string(entity_type.table_id)},")
    if entity_type.comment and not policy.reduce_metadata:
        options.append(f"comment: {ts_string(entity_type.comment)},")
    nav = ", ".join(ts_string(p) for p in _navigation_paths(entity_type, model))
    options.append(f"navigationPaths: [{nav}],")

    lines = [GENERATED_HEADER]
    lines += _imports(used, needs_zod, existing)
    lines.append("")
    removed_block = removed_fields_block(removed)
    if removed_block:
        lines += removed_block
    lines.append(f"export const {policy.variable_name} = fmTableOccurrence(")
    lines.append(f"  {ts_string(entity_set_name)},")
    lines.append("  {")
    lines += indent(field_lines, 2)
    lines.append("  },")
    lines.append("  {")
    lines += indent(options, 2)
    lines.append("  },")
    lines.append(");")

    return RenderedTable(
        var_name=policy.variable_name,
        content="\n".join(lines) + "\n",
        used_builders=used,
        needs_zod=needs_zod,
        removed=[f.field_name for f in removed],
    )


def render_table_override(var_name: str) -> str:
    lines = [OVERRIDE_HEADER, f'export {{ {var_name} }} from "./generated/{var_name}";']
    return "\n".join(lines) + "\n"


def render_table_index(var_names: Sequence[str]) -> str:
    """Index of all table occurrences, with the type mapping written once at the top."""
    lines = [GENERATED_HEADER, "// Field type mapping used for this output:"]
    lines += [f"//   {raw} -> {category}" for raw, category in describe_type_map()]
    lines.append("")
    lines += [f'export {{ {name} }} from "./{name}";' for name in var_names]
    return "\n".join(lines) + "\n"
