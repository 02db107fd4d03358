"""Dataclasses for code emission."""
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class GeneratedFile:
    """Represents a generated file."""
    path: str  # Relative path from the output root
    content: str  # File contents


@dataclass
class TargetArtifacts:
    """Everything one target writes, rendered before anything touches disk."""
    files: List[GeneratedFile] = field(default_factory=list)
    # written only when absent (or when overrides are being reset)
    override_files: List[GeneratedFile] = field(default_factory=list)
    export_name: str = ""
    module_name: str = ""
