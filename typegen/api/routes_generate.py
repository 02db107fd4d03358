import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from typegen.api.deps import get_config_path, get_engine, get_workdir
from typegen.core.document import load_document
from typegen.core.engine import GenerationEngine, RunContext
from typegen.core.errors import ConfigDocumentError
from typegen.schemas.api import GenerateResponse

log = logging.getLogger(__name__)

router = APIRouter(prefix="/generate")


@router.post("", response_model=GenerateResponse)
def generate(
    reset_overrides: bool = False,
    path: Path = Depends(get_config_path),
    workdir: Path = Depends(get_workdir),
    engine: GenerationEngine = Depends(get_engine),
):
    if not path.exists():
        raise HTTPException(status_code=404, detail=f"Config file {path.name} not found")
    try:
        document = load_document(path)
    except ConfigDocumentError as e:
        raise HTTPException(status_code=400, detail={"message": e.message, "issues": e.issues})

    summary = engine.run(document, RunContext(cwd=workdir, reset_overrides=reset_overrides))
    return GenerateResponse.from_summary(summary)
