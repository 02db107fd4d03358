"""Cascade run, table and field configuration into per-field decisions.

Precedence is field > table > run > fixed default. ``TriState.INHERIT`` at
any level means "no opinion" and defers to the next broader level, while an
explicit DISABLED is final.

Every function here is pure: no I/O and no state kept between calls, so an
editor can call it on each keystroke against the current config draft.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from typegen.core.errors import ConfigurationError
from typegen.generators.type_mapper import map_type
from typegen.generators.utils import sanitize_name
from typegen.metadata.model import EntityType
from typegen.schemas.config import FieldConfig, LayoutConfig, TableBlock, TableConfig, TriState

DEFAULT_INCLUDE_ALL_FIELDS = True
DEFAULT_ALWAYS_OVERRIDE_FIELD_NAMES = True
DEFAULT_REDUCE_METADATA = False


@dataclass(frozen=True)
class TablePolicy:
    table_name: str
    variable_name: str
    include_all_fields_by_default: bool
    always_override_field_names: bool
    reduce_metadata: bool


@dataclass(frozen=True)
class EffectiveFieldDecision:
    field_name: str
    included: bool
    category: str
    type_override: Optional[str] = None
    read_only: bool = False
    nullable: bool = True
    primary_key: bool = False
    # identifier used in generated code; renderers may keep an earlier name
    output_name: str = ""


@dataclass(frozen=True)
class ResolvedTable:
    policy: TablePolicy
    decisions: Tuple[EffectiveFieldDecision, ...]

    @property
    def included(self) -> Tuple[EffectiveFieldDecision, ...]:
        return tuple(d for d in self.decisions if d.included)

    @property
    def included_names(self) -> Tuple[str, ...]:
        return tuple(d.field_name for d in self.decisions if d.included)

    def decision(self, field_name: str) -> Optional[EffectiveFieldDecision]:
        for d in self.decisions:
            if d.field_name == field_name:
                return d
        return None


def cascade(*levels: TriState, default: bool) -> bool:
    """First explicit level wins, narrowest first."""
    for level in levels:
        if level.is_set:
            return level is TriState.ENABLED
    return default


def resolve_policy(run: TableBlock, table: Optional[TableConfig], table_name: str) -> TablePolicy:
    t_include = table.include_all_fields_by_default if table else TriState.INHERIT
    t_override = table.always_override_field_names if table else TriState.INHERIT
    t_reduce = table.reduce_metadata if table else TriState.INHERIT
    variable_name = table.variable_name if table and table.variable_name else table_name
    return TablePolicy(
        table_name=table_name,
        variable_name=sanitize_name(variable_name),
        include_all_fields_by_default=cascade(
            t_include, run.include_all_fields_by_default, default=DEFAULT_INCLUDE_ALL_FIELDS
        ),
        always_override_field_names=cascade(
            t_override, run.always_override_field_names, default=DEFAULT_ALWAYS_OVERRIDE_FIELD_NAMES
        ),
        reduce_metadata=cascade(t_reduce, run.reduce_metadata, default=DEFAULT_REDUCE_METADATA),
    )


def _index_field_configs(table: Optional[TableConfig], entity_type: EntityType) -> Dict[str, FieldConfig]:
    if table is None:
        return {}
    known = set(entity_type.field_names)
    indexed: Dict[str, FieldConfig] = {}
    for fc in table.fields:
        if fc.field_name in indexed:
            raise ConfigurationError(
                f"Field '{fc.field_name}' is configured more than once for table '{table.table_name}'"
            )
        if fc.field_name not in known:
            raise ConfigurationError(
                f"Field override '{fc.field_name}' does not exist in table '{table.table_name}'"
            )
        indexed[fc.field_name] = fc
    return indexed


def resolve_table(
    run: TableBlock,
    table: Optional[TableConfig],
    entity_type: EntityType,
    table_name: Optional[str] = None,
) -> ResolvedTable:
    table_name = table_name or (table.table_name if table else entity_type.name)
    policy = resolve_policy(run, table, table_name)
    field_configs = _index_field_configs(table, entity_type)

    decisions = []
    for prop in entity_type.properties:
        fc = field_configs.get(prop.name)
        if fc is not None and fc.exclude is TriState.ENABLED:
            included = False
        elif policy.include_all_fields_by_default:
            included = True
        else:
            # opt-in mode: an entry in the field list is what signals intent
            included = fc is not None

        type_override = fc.type_override if fc is not None else None
        decisions.append(EffectiveFieldDecision(
            field_name=prop.name,
            included=included,
            category=map_type(prop.raw_type, type_override),
            type_override=type_override,
            read_only=prop.read_only,
            nullable=prop.nullable,
            primary_key=entity_type.is_key(prop.name),
            output_name=prop.name,
        ))
    return ResolvedTable(policy=policy, decisions=tuple(decisions))


def resolve_layout(layout: LayoutConfig, entity_type: EntityType) -> ResolvedTable:
    """Layouts have no field-level configuration; every field on the layout is emitted."""
    policy = TablePolicy(
        table_name=layout.layout_name,
        variable_name=sanitize_name(layout.schema_name),
        include_all_fields_by_default=True,
        always_override_field_names=DEFAULT_ALWAYS_OVERRIDE_FIELD_NAMES,
        reduce_metadata=DEFAULT_REDUCE_METADATA,
    )
    decisions = tuple(
        EffectiveFieldDecision(
            field_name=prop.name,
            included=True,
            category=map_type(prop.raw_type),
            read_only=prop.read_only,
            nullable=prop.nullable,
            primary_key=entity_type.is_key(prop.name),
            output_name=prop.name,
        )
        for prop in entity_type.properties
    )
    return ResolvedTable(policy=policy, decisions=decisions)
