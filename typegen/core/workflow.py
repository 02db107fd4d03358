from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

class TargetStage(str, Enum):
    PREPARE = "PREPARE"
    FETCH_METADATA = "FETCH_METADATA"
    PARSE_METADATA = "PARSE_METADATA"
    RESOLVE_CONFIG = "RESOLVE_CONFIG"
    EMIT = "EMIT"
    DONE = "DONE"

@dataclass(frozen=True)
class GenerationResult:
    connection: str
    target: str
    ok: bool
    stage: TargetStage
    files: List[str] = field(default_factory=list)
    error_kind: Optional[str] = None
    message: str = ""

    @property
    def label(self) -> str:
        return f"{self.connection}/{self.target}"


@dataclass
class RunSummary:
    results: List[GenerationResult] = field(default_factory=list)
    output_paths: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def is_noop(self) -> bool:
        return self.total == 0

    @property
    def failures(self) -> List[GenerationResult]:
        return [r for r in self.results if not r.ok]

    @property
    def emitted_files(self) -> List[str]:
        files: List[str] = []
        for r in self.results:
            if r.ok:
                files.extend(r.files)
        return files

    def human_summary(self) -> str:
        if self.is_noop:
            return "nothing to generate (no targets configured)"
        lines = [f"generated {self.success_count} of {self.total} targets"]
        for r in self.failures:
            lines.append(f"  - {r.label}: {r.error_kind}: {r.message}")
        return "\n".join(lines)
