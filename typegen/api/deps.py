from pathlib import Path

from typegen.core.config import settings
from typegen.core.document import find_config
from typegen.core.engine import GenerationEngine


def get_workdir() -> Path:
    return Path.cwd()


def get_config_path() -> Path:
    return find_config(get_workdir(), settings.config_path)


def get_engine() -> GenerationEngine:
    return GenerationEngine(settings)
