"""Rendering for layout targets: schema, override file and typed client."""
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from typegen.generators.resolver import ResolvedTable
from typegen.generators.type_mapper import FieldCategory
from typegen.generators.utils import GENERATED_HEADER, OVERRIDE_HEADER, indent, sanitize_name, ts_string, ts_union
from typegen.metadata.env import ResolvedEnvNames
from typegen.metadata.model import EntityType

ZOD_VALIDATORS = {"zod", "zod/v4", "zod/v3"}


@dataclass(frozen=True)
class LayoutField:
    name: str
    kind: str  # "string", "fmnumber" or "valueList"
    values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ValueList:
    name: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class PortalSchema:
    name: str
    fields: Tuple[LayoutField, ...]


@dataclass(frozen=True)
class LayoutSchema:
    schema_name: str
    layout_name: str
    fields: Tuple[LayoutField, ...]
    portals: Tuple[PortalSchema, ...] = ()
    value_lists: Tuple[ValueList, ...] = ()
    strict_numbers: bool = False

    @property
    def has_portals(self) -> bool:
        return bool(self.portals)


def schema_kind(validator) -> str:
    """``zod``, ``zod/v3`` or ``ts``; ``zod/v4`` is what plain ``zod`` exports now."""
    if validator in ZOD_VALIDATORS:
        return "zod/v3" if validator == "zod/v3" else "zod"
    return "ts"


def layout_fields(
    resolved: ResolvedTable,
    entity_type: EntityType,
    value_lists: Dict[str, Tuple[str, ...]],
    value_lists_policy: str,
) -> Tuple[LayoutField, ...]:
    fields = []
    for decision in resolved.included:
        prop = entity_type.property(decision.field_name)
        if prop is not None and prop.value_list and value_lists_policy != "ignore":
            values = value_lists.get(prop.value_list, ())
            if value_lists_policy == "allowEmpty":
                values = values + ("",)
            fields.append(LayoutField(decision.output_name, "valueList", values))
        elif decision.category == FieldCategory.NUMBER.value:
            fields.append(LayoutField(decision.output_name, "fmnumber"))
        else:
            fields.append(LayoutField(decision.output_name, "string"))
    return tuple(fields)


def _zod_expr(field: LayoutField, strict_numbers: bool) -> str:
    if field.kind == "fmnumber":
        return "z.coerce.number().nullable().catch(null)" if strict_numbers else "z.union([z.string(), z.number()])"
    if field.kind == "valueList":
        expr = f"z.enum([{', '.join(ts_string(v) for v in field.values)}])"
        if "" in field.values:
            expr += '.catch("")'
        return expr
    return "z.string()"


def _ts_type(field: LayoutField, strict_numbers: bool) -> str:
    if field.kind == "fmnumber":
        return "number | null" if strict_numbers else "string | number"
    if field.kind == "valueList":
        return ts_union(field.values) if field.values else "string"
    return "string"


def _object_zod(name: str, fields: Sequence[LayoutField], strict_numbers: bool) -> List[str]:
    var = sanitize_name(name)
    lines = [f"export const Z{var} = z.object({{"]
    lines += indent([f"{ts_string(f.name)}: {_zod_expr(f, strict_numbers)}," for f in fields])
    lines.append("});")
    lines.append(f"export type T{var} = z.infer<typeof Z{var}>;")
    lines.append("")
    return lines


def _object_ts(name: str, fields: Sequence[LayoutField], strict_numbers: bool) -> List[str]:
    lines = [f"export type T{sanitize_name(name)} = {{"]
    lines += indent([f"{ts_string(f.name)}: {_ts_type(f, strict_numbers)};" for f in fields])
    lines.append("};")
    lines.append("")
    return lines


def _portals_object(schema: LayoutSchema, kind: str) -> List[str]:
    var = sanitize_name(schema.schema_name)
    if kind == "ts":
        lines = [f"export type T{var}Portals = {{"]
        lines += indent([f"{ts_string(p.name)}: T{sanitize_name(p.name)};" for p in schema.portals])
        lines.append("};")
        return lines
    lines = [f"export const Z{var}Portals = {{"]
    lines += indent([f"{ts_string(p.name)}: Z{sanitize_name(p.name)}," for p in schema.portals])
    lines.append("};")
    lines.append(f"export type T{var}Portals = InferZodPortals<typeof Z{var}Portals>;")
    return lines


def _exported_names(schema: LayoutSchema, kind: str) -> List[str]:
    """Schema symbols the override file re-exports, in declaration order."""
    prefix = "T" if kind == "ts" else "Z"
    names = [f"{prefix}{sanitize_name(p.name)}" for p in schema.portals]
    names += [f"{prefix}VL{sanitize_name(vl.name)}" for vl in schema.value_lists if vl.values]
    names.append(f"{prefix}{sanitize_name(schema.schema_name)}")
    return names


def render_schema(schema: LayoutSchema, validator) -> str:
    kind = schema_kind(validator)
    lines = [GENERATED_HEADER]
    if kind != "ts":
        lines.append(f'import {{ z }} from "{kind}";')
        if schema.has_portals:
            lines.append('import type { InferZodPortals } from "@proofkit/fmdapi";')
        lines.append("")

    build = _object_ts if kind == "ts" else _object_zod
    for portal in schema.portals:
        lines += build(portal.name, portal.fields, schema.strict_numbers)

    for vl in schema.value_lists:
        if not vl.values:
            continue
        var = sanitize_name(vl.name)
        if kind == "ts":
            lines.append(f"export type TVL{var} = {ts_union(vl.values)};")
        else:
            lines.append(f"export const ZVL{var} = z.enum([{', '.join(ts_string(v) for v in vl.values)}]);")
            lines.append(f"export type TVL{var} = z.infer<typeof ZVL{var}>;")
        lines.append("")

    lines += build(schema.schema_name, schema.fields, schema.strict_numbers)

    if schema.has_portals:
        lines += _portals_object(schema, kind)
        lines.append("")

    lines.append(f"export const layoutName = {ts_string(schema.layout_name)};")
    return "\n".join(lines) + "\n"


def render_override(schema: LayoutSchema, validator) -> str:
    kind = schema_kind(validator)
    module = sanitize_name(schema.schema_name)
    names = _exported_names(schema, kind)

    lines = [OVERRIDE_HEADER]
    if kind != "ts":
        lines.append(f'import {{ z }} from "{kind}";')
    type_only = "type " if kind == "ts" else ""
    lines.append(f"import {type_only}{{")
    lines += indent([f"{name} as {name}_generated," for name in names])
    lines.append(f'}} from "./generated/{module}";')
    if schema.has_portals and kind != "ts":
        lines.append('import type { InferZodPortals } from "@proofkit/fmdapi";')
    lines.append("")

    for name in names:
        if kind == "ts":
            lines.append(f"export type {name} = {name}_generated;")
        else:
            lines.append(f"export const {name} = {name}_generated;")
            lines.append(f"export type T{name[1:]} = z.infer<typeof {name}>;")
    if schema.has_portals:
        lines.append("")
        lines += _portals_object(schema, kind)
    return "\n".join(lines) + "\n"


def _env_guard(var: str) -> str:
    return f'if (!process.env.{var}) throw new Error("Missing env var: {var}");'


def _adapter(env: ResolvedEnvNames, webviewer_script_name: Optional[str]) -> List[str]:
    if webviewer_script_name:
        return [f"new WebViewerAdapter({{ scriptName: {ts_string(webviewer_script_name)} }})"]
    if env.prefers_api_key:
        return [
            "new OttoAdapter({",
            f"  auth: {{ apiKey: process.env.{env.api_key} as OttoAPIKey }},",
            f"  db: process.env.{env.db},",
            f"  server: process.env.{env.server},",
            "})",
        ]
    return [
        "new FetchAdapter({",
        "  auth: {",
        f"    username: process.env.{env.username},",
        f"    password: process.env.{env.password},",
        "  },",
        f"  db: process.env.{env.db},",
        f"  server: process.env.{env.server},",
        "})",
    ]


def render_client(
    schema: LayoutSchema,
    validator,
    env: ResolvedEnvNames,
    webviewer_script_name: Optional[str] = None,
) -> str:
    kind = schema_kind(validator)
    var = sanitize_name(schema.schema_name)

    lines = [GENERATED_HEADER]
    if webviewer_script_name:
        lines.append('import { DataApi } from "@proofkit/fmdapi";')
        lines.append('import { WebViewerAdapter } from "@proofkit/webviewer/adapter";')
    elif env.prefers_api_key:
        lines.append('import { DataApi, OttoAdapter, type OttoAPIKey } from "@proofkit/fmdapi";')
    else:
        lines.append('import { DataApi, FetchAdapter } from "@proofkit/fmdapi";')

    prefix = "T" if kind == "ts" else "Z"
    imported = [f"{prefix}{var}"]
    if schema.has_portals:
        imported.append(f"{prefix}{var}Portals")
    type_only = "type " if kind == "ts" else ""
    lines.append(f'import {type_only}{{ {", ".join(imported)} }} from "../{var}";')
    lines.append("")

    if not webviewer_script_name:
        guarded = [env.db, env.server]
        guarded += [env.api_key] if env.prefers_api_key else [env.username, env.password]
        lines += [_env_guard(name) for name in guarded]
        lines.append("")

    if kind == "ts":
        generic = f"<T{var}, T{var}Portals>" if schema.has_portals else f"<T{var}>"
    else:
        generic = ""
    adapter = _adapter(env, webviewer_script_name)
    lines.append(f"export const client = DataApi{generic}({{")
    lines.append(f"  adapter: {adapter[0]}")
    lines += indent(adapter[1:])
    lines[-1] += ","
    lines.append(f"  layout: {ts_string(schema.layout_name)},")
    if kind != "ts":
        portal_part = f", portalData: Z{var}Portals" if schema.has_portals else ""
        lines.append(f"  schema: {{ fieldData: Z{var}{portal_part} }},")
    lines.append("});")
    return "\n".join(lines) + "\n"


def render_client_index(entries: Sequence[Tuple[str, str]]) -> str:
    """``entries`` are ``(module_name, export_name)`` pairs in configuration order."""
    lines = [GENERATED_HEADER]
    for module_name, export_name in entries:
        lines.append(f'export {{ client as {export_name} }} from "./{module_name}";')
    return "\n".join(lines) + "\n"
