from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from typegen.core.workflow import RunSummary
from typegen.schemas.config import TableBlock


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class HealthResponse(ApiModel):
    status: str = "ok"


class ConfigResponse(ApiModel):
    exists: bool
    path: str
    config: Optional[Dict[str, Any]] = None


class SaveConfigResponse(ApiModel):
    success: bool
    path: str


class PreviewField(ApiModel):
    name: str
    type: str = Field("Edm.String", examples=["Edm.String", "Edm.Decimal"])
    nullable: bool = True
    calculated: bool = False
    is_global: bool = Field(False, alias="global")
    read_only: bool = False
    primary_key: bool = False


class PreviewRequest(ApiModel):
    block: TableBlock = Field(default_factory=TableBlock)
    table_name: str
    fields: List[PreviewField]


class FieldDecisionResponse(ApiModel):
    field_name: str
    included: bool
    category: str
    type_override: Optional[str] = None
    read_only: bool
    nullable: bool
    primary_key: bool


class PreviewResponse(ApiModel):
    table_name: str
    variable_name: str
    include_all_fields_by_default: bool
    always_override_field_names: bool
    reduce_metadata: bool
    fields: List[FieldDecisionResponse]
    included_fields: List[str]


class TargetResultResponse(ApiModel):
    connection: str
    target: str
    ok: bool
    stage: str
    files: List[str] = Field(default_factory=list)
    error_kind: Optional[str] = None
    message: str = ""


class GenerateResponse(ApiModel):
    total: int
    success_count: int
    error_count: int
    output_paths: List[str]
    summary: str
    results: List[TargetResultResponse]

    @classmethod
    def from_summary(cls, summary: RunSummary) -> "GenerateResponse":
        return cls(
            total=summary.total,
            success_count=summary.success_count,
            error_count=summary.error_count,
            output_paths=summary.output_paths,
            summary=summary.human_summary(),
            results=[
                TargetResultResponse(
                    connection=r.connection,
                    target=r.target,
                    ok=r.ok,
                    stage=r.stage.value,
                    files=r.files,
                    error_kind=r.error_kind,
                    message=r.message,
                )
                for r in summary.results
            ],
        )
