"""Reading and writing the configuration document."""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from typegen.core.errors import ConfigDocumentError
from typegen.schemas.config import TypegenConfig

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = ["typegen.config.yaml", "typegen.config.yml", "typegen.config.json"]


def find_config(cwd: Path, preferred: Optional[str] = None) -> Path:
    """Return the first existing config file, or the preferred path when none exists."""
    names = list(dict.fromkeys([preferred] + DEFAULT_CONFIG_PATHS if preferred else DEFAULT_CONFIG_PATHS))
    for name in names:
        candidate = cwd / name
        if candidate.exists():
            return candidate
    return cwd / names[0]


def parse_document(data: Any) -> TypegenConfig:
    """Validate an already-decoded document."""
    if not isinstance(data, dict):
        raise ConfigDocumentError("Configuration document must be a mapping with a 'config' entry")
    try:
        return TypegenConfig.model_validate(data)
    except ValidationError as e:
        issues = [{"path": list(err["loc"]), "message": err["msg"]} for err in e.errors()]
        raise ConfigDocumentError(f"Invalid configuration document: {len(issues)} issue(s)", issues) from e


def load_document(path: Union[str, Path]) -> TypegenConfig:
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigDocumentError(f"Could not read {path}: {e}") from e
    try:
        # YAML is a superset of JSON, so this handles both file flavours
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigDocumentError(f"Could not parse {path.name}: {e}") from e
    log.info("Loaded configuration from %s", path)
    return parse_document(data)


def dump_document(config: TypegenConfig) -> Dict[str, Any]:
    return config.model_dump(mode="json", by_alias=True)


def save_document(path: Union[str, Path], config: TypegenConfig) -> None:
    path = Path(path)
    data = dump_document(config)
    if path.suffix == ".json":
        content = json.dumps(data, indent=2) + "\n"
    else:
        content = yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
