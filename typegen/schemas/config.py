"""Pydantic models for the generation configuration document."""
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_serializer,
    model_validator,
)
from pydantic.alias_generators import to_camel


class TriState(str, Enum):
    """A setting that can be on, off, or deferred to the broader scope."""
    INHERIT = "inherit"
    ENABLED = "enabled"
    DISABLED = "disabled"

    @classmethod
    def coerce(cls, value: Any) -> "TriState":
        if isinstance(value, TriState):
            return value
        if value is None:
            return cls.INHERIT
        if value is True:
            return cls.ENABLED
        if value is False:
            return cls.DISABLED
        if isinstance(value, str):
            return cls(value.lower())
        raise ValueError(f"expected true, false or null, got {value!r}")

    @property
    def is_set(self) -> bool:
        return self is not TriState.INHERIT

    def to_optional_bool(self) -> Optional[bool]:
        if self is TriState.INHERIT:
            return None
        return self is TriState.ENABLED


# Loads from null/true/false and dumps back to them. INHERIT dumps as None,
# which ConfigModel then omits, so it never turns into an explicit false.
TriStateField = Annotated[
    TriState,
    BeforeValidator(TriState.coerce),
    PlainSerializer(lambda v: v.to_optional_bool(), return_type=Optional[bool]),
]

ValueListsPolicy = Literal["strict", "allowEmpty", "ignore"]
ValidatorKind = Union[Literal["zod", "zod/v4", "zod/v3"], Literal[False]]
TypeOverride = Literal["text", "number", "boolean", "fmBooleanNumber", "date", "timestamp", "container", "list"]


class ConfigModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    @model_serializer(mode="wrap")
    def _drop_unset(self, handler):
        return {k: v for k, v in handler(self).items() if v is not None}


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and value.strip() == "":
        return None
    return value


EnvVarName = Annotated[Optional[str], BeforeValidator(_blank_to_none)]


class EnvAuthNames(ConfigModel):
    api_key: EnvVarName = None
    username: EnvVarName = None
    password: EnvVarName = None


class EnvNames(ConfigModel):
    """Names (not values) of the environment variables holding connection parameters."""
    server: EnvVarName = None
    db: EnvVarName = None
    auth: Optional[EnvAuthNames] = None

    @field_validator("auth")
    @classmethod
    def _drop_empty_auth(cls, value: Optional[EnvAuthNames]) -> Optional[EnvAuthNames]:
        if value is not None and value.api_key is None and value.username is None and value.password is None:
            return None
        return value


class LayoutConfig(ConfigModel):
    layout_name: str
    schema_name: str
    value_lists: Optional[ValueListsPolicy] = None
    strict_numbers: Optional[bool] = None
    generate_client: Optional[bool] = None


class FieldConfig(ConfigModel):
    field_name: str
    exclude: TriStateField = TriState.INHERIT
    type_override: Optional[TypeOverride] = None


class TableConfig(ConfigModel):
    table_name: str
    variable_name: Optional[str] = None
    fields: List[FieldConfig] = Field(default_factory=list)
    reduce_metadata: TriStateField = TriState.INHERIT
    always_override_field_names: TriStateField = TriState.INHERIT
    include_all_fields_by_default: TriStateField = TriState.INHERIT

    def field_config(self, field_name: str) -> Optional[FieldConfig]:
        for fc in self.fields:
            if fc.field_name == field_name:
                return fc
        return None


class BlockBase(ConfigModel):
    config_name: Optional[str] = None
    env_names: Optional[EnvNames] = None
    path: str = "schema"
    clear_old_files: bool = False


class LayoutBlock(BlockBase):
    type: Literal["fmdapi"] = "fmdapi"
    layouts: List[LayoutConfig] = Field(default_factory=list)
    validator: ValidatorKind = "zod/v4"
    client_suffix: str = "Layout"
    generate_client: bool = True
    webviewer_script_name: Optional[str] = None


class TableBlock(BlockBase):
    """Run-level policy for one table-metadata connection."""
    type: Literal["fmodata"] = "fmodata"
    include_all_fields_by_default: TriStateField = TriState.INHERIT
    always_override_field_names: TriStateField = TriState.INHERIT
    reduce_metadata: TriStateField = TriState.INHERIT
    metadata_path: Optional[str] = None
    tables: List[TableConfig] = Field(default_factory=list)

    def table_config(self, table_name: str) -> Optional[TableConfig]:
        for tc in self.tables:
            if tc.table_name == table_name:
                return tc
        return None


TargetBlock = Annotated[Union[LayoutBlock, TableBlock], Field(discriminator="type")]


def _default_block_type(block: Any) -> Any:
    if isinstance(block, dict) and "type" not in block:
        return {**block, "type": "fmdapi"}
    return block


class TypegenConfig(ConfigModel):
    post_generate_command: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("postGenerateCommand", "formatCommand", "post_generate_command"),
        serialization_alias="postGenerateCommand",
    )
    config: Union[TargetBlock, List[TargetBlock]]

    @model_validator(mode="before")
    @classmethod
    def _backfill_type(cls, data: Any) -> Any:
        # older documents have no discriminator and are always layout blocks
        if isinstance(data, dict) and "config" in data:
            blocks = data["config"]
            if isinstance(blocks, list):
                blocks = [_default_block_type(b) for b in blocks]
            else:
                blocks = _default_block_type(blocks)
            data = {**data, "config": blocks}
        return data

    @property
    def blocks(self) -> List[Union[LayoutBlock, TableBlock]]:
        if isinstance(self.config, list):
            return list(self.config)
        return [self.config]
