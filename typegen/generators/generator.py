"""Per-target artifact assembly and emission."""
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from typegen.core.errors import MetadataParseError
from typegen.generators.preserve import parse_existing_table
from typegen.generators.render_layout import (
    LayoutSchema,
    PortalSchema,
    ValueList,
    layout_fields,
    render_client,
    render_client_index,
    render_override,
    render_schema,
)
from typegen.generators.render_table import render_table_file, render_table_index, render_table_override
from typegen.generators.resolver import ResolvedTable, resolve_layout
from typegen.generators.types import GeneratedFile, TargetArtifacts
from typegen.generators.utils import sanitize_name
from typegen.generators.writer import pending_overrides, write_files
from typegen.metadata.env import resolve_env_names
from typegen.metadata.model import EntityModel, EntityType
from typegen.schemas.config import LayoutBlock, LayoutConfig

log = logging.getLogger(__name__)

CLIENT_INDEX_PATH = "client/index.ts"
TABLE_INDEX_PATH = "generated/index.ts"


def layout_module_name(layout: LayoutConfig) -> str:
    return sanitize_name(layout.schema_name)


def layout_generates_client(block: LayoutBlock, layout: LayoutConfig) -> bool:
    return layout.generate_client if layout.generate_client is not None else block.generate_client


def layout_paths(block: LayoutBlock, layout: LayoutConfig) -> List[str]:
    """Every file a layout target may write, relative to the output root."""
    module = layout_module_name(layout)
    paths = [f"generated/{module}.ts", f"{module}.ts"]
    if layout_generates_client(block, layout):
        paths.append(f"client/{module}.ts")
    return paths


def table_paths(var_name: str) -> List[str]:
    return [f"generated/{var_name}.ts", f"{var_name}.ts"]


def build_layout_artifacts(
    block: LayoutBlock,
    layout: LayoutConfig,
    model: EntityModel,
    resolved: ResolvedTable,
) -> TargetArtifacts:
    entity_type = model.entity_types.get(layout.layout_name)
    if entity_type is None:
        raise MetadataParseError(f"Layout metadata has no fields for '{layout.layout_name}'")

    policy = layout.value_lists or "ignore"
    portals = []
    for portal_name, portal_type in model.portals.items():
        portal_resolved = resolve_layout(layout, portal_type)
        portals.append(PortalSchema(
            name=portal_name,
            fields=layout_fields(portal_resolved, portal_type, model.value_lists, policy),
        ))
    value_lists = tuple(ValueList(name, values) for name, values in model.value_lists.items()) if policy != "ignore" else ()

    module = layout_module_name(layout)
    schema = LayoutSchema(
        schema_name=module,
        layout_name=layout.layout_name,
        fields=layout_fields(resolved, entity_type, model.value_lists, policy),
        portals=tuple(portals),
        value_lists=value_lists,
        strict_numbers=bool(layout.strict_numbers),
    )

    artifacts = TargetArtifacts(module_name=module)
    artifacts.files.append(GeneratedFile(f"generated/{module}.ts", render_schema(schema, block.validator)))
    artifacts.override_files.append(GeneratedFile(f"{module}.ts", render_override(schema, block.validator)))
    if layout_generates_client(block, layout):
        env = resolve_env_names(block.env_names)
        client = render_client(schema, block.validator, env, block.webviewer_script_name)
        artifacts.files.append(GeneratedFile(f"client/{module}.ts", client))
        artifacts.export_name = f"{module}{block.client_suffix}"
    else:
        log.info("Skipping client generation for %s because generateClient is false", module)
    return artifacts


def build_table_artifacts(
    table_name: str,
    entity_type: EntityType,
    model: EntityModel,
    resolved: ResolvedTable,
    out_dir: Path,
) -> TargetArtifacts:
    var_name = resolved.policy.variable_name
    generated_path = f"generated/{var_name}.ts"

    existing = None
    previous = out_dir / generated_path
    if previous.is_file():
        try:
            existing = parse_existing_table(previous.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Could not read %s (%s); regenerating from scratch", previous, e)
        else:
            if existing is None:
                log.warning("Could not find a table occurrence in %s; regenerating from scratch", previous)

    rendered = render_table_file(table_name, entity_type, resolved, model, existing)
    if rendered.removed:
        log.info("Fields no longer in metadata for %s: %s", table_name, ", ".join(rendered.removed))

    artifacts = TargetArtifacts(module_name=var_name, export_name=var_name)
    artifacts.files.append(GeneratedFile(generated_path, rendered.content))
    artifacts.override_files.append(GeneratedFile(f"{var_name}.ts", render_table_override(var_name)))
    return artifacts


def emit_target(artifacts: TargetArtifacts, out_dir: Path, reset_overrides: bool = False) -> List[str]:
    """Write a target's generated files and any missing override files as one unit."""
    overrides = pending_overrides(artifacts.override_files, out_dir, reset=reset_overrides)
    return write_files(artifacts.files + overrides, out_dir)


def build_client_index(entries: Sequence[Tuple[str, str]]) -> GeneratedFile:
    return GeneratedFile(CLIENT_INDEX_PATH, render_client_index(entries))


def build_table_index(var_names: Sequence[str]) -> GeneratedFile:
    return GeneratedFile(TABLE_INDEX_PATH, render_table_index(var_names))


def entity_type_for_table(model: EntityModel, table_name: str) -> Optional[EntityType]:
    """The entity type behind a table occurrence, falling back to a same-named type."""
    return model.entity_type_for(table_name) or model.entity_types.get(table_name)

