"""Config document endpoints used by the editor UI."""
import logging
from pathlib import Path
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from typegen.api.deps import get_config_path
from typegen.core.document import dump_document, load_document, parse_document, save_document
from typegen.core.errors import ConfigDocumentError, ConfigurationError
from typegen.generators.resolver import resolve_table
from typegen.metadata.model import EntityType, Property
from typegen.schemas.api import (
    ConfigResponse,
    FieldDecisionResponse,
    PreviewRequest,
    PreviewResponse,
    SaveConfigResponse,
)
from typegen.schemas.config import TypegenConfig

log = logging.getLogger(__name__)

router = APIRouter(prefix="/config")


def _invalid(e: ConfigDocumentError) -> HTTPException:
    return HTTPException(status_code=400, detail={"message": e.message, "issues": e.issues})


@router.get("", response_model=ConfigResponse)
def get_config(path: Path = Depends(get_config_path)):
    if not path.exists():
        return ConfigResponse(exists=False, path=str(path))
    try:
        document = load_document(path)
    except ConfigDocumentError as e:
        raise _invalid(e)
    return ConfigResponse(exists=True, path=str(path), config=dump_document(document))


@router.put("", response_model=SaveConfigResponse)
def save_config(data: Dict[str, Any] = Body(...), path: Path = Depends(get_config_path)):
    try:
        document = parse_document(data)
    except ConfigDocumentError as e:
        raise _invalid(e)
    save_document(path, document)
    log.info("Saved configuration to %s", path)
    return SaveConfigResponse(success=True, path=str(path))


@router.post("/validate", response_model=Dict[str, Any])
def validate_config(data: Dict[str, Any] = Body(...)):
    try:
        document: TypegenConfig = parse_document(data)
    except ConfigDocumentError as e:
        return {"valid": False, "issues": e.issues}
    return {"valid": True, "config": dump_document(document)}


@router.post("/preview", response_model=PreviewResponse)
def preview_table(req: PreviewRequest):
    """Effective field decisions for a table under the given draft configuration."""
    entity_type = EntityType(
        name=req.table_name,
        properties=tuple(
            Property(
                name=f.name,
                raw_type=f.type,
                nullable=f.nullable,
                calculated=f.calculated,
                is_global=f.is_global,
                permission_readonly=f.read_only,
            )
            for f in req.fields
        ),
        key=tuple(f.name for f in req.fields if f.primary_key),
    )
    table = req.block.table_config(req.table_name)
    try:
        resolved = resolve_table(req.block, table, entity_type, req.table_name)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, "kind": e.kind})

    policy = resolved.policy
    return PreviewResponse(
        table_name=policy.table_name,
        variable_name=policy.variable_name,
        include_all_fields_by_default=policy.include_all_fields_by_default,
        always_override_field_names=policy.always_override_field_names,
        reduce_metadata=policy.reduce_metadata,
        fields=[
            FieldDecisionResponse(
                field_name=d.field_name,
                included=d.included,
                category=d.category,
                type_override=d.type_override,
                read_only=d.read_only,
                nullable=d.nullable,
                primary_key=d.primary_key,
            )
            for d in resolved.decisions
        ],
        included_fields=list(resolved.included_names),
    )
