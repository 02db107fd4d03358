from __future__ import annotations

import logging
import shlex
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple, Union

from typegen.core.config import Settings, settings as default_settings
from typegen.core.errors import ConfigurationError, TypegenError, WriteError
from typegen.core.workflow import GenerationResult, RunSummary, TargetStage
from typegen.generators.generator import (
    CLIENT_INDEX_PATH,
    TABLE_INDEX_PATH,
    build_client_index,
    build_layout_artifacts,
    build_table_artifacts,
    build_table_index,
    emit_target,
    entity_type_for_table,
    layout_paths,
    table_paths,
)
from typegen.generators.resolver import resolve_layout, resolve_policy, resolve_table
from typegen.generators.types import TargetArtifacts
from typegen.generators.writer import clear_owned_dirs, write_files
from typegen.metadata.env import get_connection_params
from typegen.metadata.fetcher import HttpMetadataFetcher, MetadataFetcher, read_metadata_file
from typegen.metadata.parser import parse_layout_metadata, parse_odata_metadata
from typegen.schemas.config import LayoutBlock, LayoutConfig, TableBlock, TableConfig, TypegenConfig

log = logging.getLogger(__name__)

Block = Union[LayoutBlock, TableBlock]

# index modules the engine rebuilds after every run
RESERVED_PATHS = frozenset({CLIENT_INDEX_PATH, TABLE_INDEX_PATH})


@dataclass
class RunContext:
    """Request-scoped state for one generation run."""
    cwd: Path = field(default_factory=Path.cwd)
    reset_overrides: bool = False
    # set from another thread (signal handler, API request) to stop scheduling targets
    cancel_event: threading.Event = field(default_factory=threading.Event)


@dataclass(frozen=True)
class Target:
    position: int
    connection: str
    name: str
    block: Block
    out_dir: Path
    paths: Tuple[str, ...]
    layout: Optional[LayoutConfig] = None
    table: Optional[TableConfig] = None

    @property
    def label(self) -> str:
        return f"{self.connection}/{self.name}"


@dataclass
class _Progress:
    """Stage a running target has reached, for error reporting."""
    target: Target
    stage: TargetStage = TargetStage.PREPARE

    @property
    def extra(self) -> Dict[str, str]:
        return {"target": self.target.label, "stage": self.stage.value}

    def enter(self, stage: TargetStage) -> None:
        self.stage = stage
        log.debug("Running stage", extra=self.extra)


def connection_label(block: Block, position: int) -> str:
    return block.config_name or f"{block.type}[{position}]"


class GenerationEngine:
    def __init__(
        self,
        settings: Settings = default_settings,
        fetcher: Optional[MetadataFetcher] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or HttpMetadataFetcher(
            timeout=settings.fetch_timeout_seconds,
            retries=settings.fetch_retries,
        )
        self.environ = environ

    def plan(self, document: TypegenConfig, cwd: Path) -> List[Target]:
        """Expand the document into targets, in configuration order."""
        targets: List[Target] = []
        for block_position, block in enumerate(document.blocks):
            connection = connection_label(block, block_position)
            out_dir = (cwd / block.path).resolve()
            if isinstance(block, LayoutBlock):
                for layout in block.layouts:
                    targets.append(Target(
                        position=len(targets),
                        connection=connection,
                        name=layout.layout_name,
                        block=block,
                        out_dir=out_dir,
                        paths=tuple(layout_paths(block, layout)),
                        layout=layout,
                    ))
            else:
                for table in block.tables:
                    policy = resolve_policy(block, table, table.table_name)
                    targets.append(Target(
                        position=len(targets),
                        connection=connection,
                        name=table.table_name,
                        block=block,
                        out_dir=out_dir,
                        paths=tuple(table_paths(policy.variable_name)),
                        table=table,
                    ))
        return targets

    def find_collisions(self, targets: List[Target]) -> Dict[int, str]:
        """Targets whose output files are already claimed by an earlier target."""
        claimed: Dict[Path, Target] = {}
        collisions: Dict[int, str] = {}
        for target in targets:
            for rel in target.paths:
                if rel in RESERVED_PATHS:
                    collisions.setdefault(
                        target.position, f"Output file {target.out_dir / rel} is reserved for the index module"
                    )
                    continue
                path = target.out_dir / rel
                owner = claimed.get(path)
                if owner is not None and target.position not in collisions:
                    collisions[target.position] = f"Output file {path} is already generated by {owner.label}"
                claimed.setdefault(path, target)
        return collisions

    def run(self, document: TypegenConfig, context: Optional[RunContext] = None) -> RunSummary:
        context = context or RunContext()
        targets = self.plan(document, context.cwd)
        output_paths = list(dict.fromkeys(str(t.out_dir) for t in targets))
        if not targets:
            log.info("No targets configured")
            return RunSummary(results=[], output_paths=output_paths)

        results: Dict[int, GenerationResult] = {}
        artifacts: Dict[int, TargetArtifacts] = {}

        for position, message in self.find_collisions(targets).items():
            target = targets[position]
            log.error(message, extra={"target": target.label, "stage": TargetStage.PREPARE.value})
            results[position] = self._failure(target, TargetStage.PREPARE, ConfigurationError(message))

        self._clear_blocks(targets, results)

        runnable = [t for t in targets if t.position not in results]
        workers = max(1, min(self.settings.max_workers, len(runnable) or 1))
        if workers == 1:
            outcomes = [self._run_target(t, context) for t in runnable]
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="typegen") as pool:
                futures = [pool.submit(self._run_target, t, context) for t in runnable]
                outcomes = [f.result() for f in futures]

        for target, (result, target_artifacts) in zip(runnable, outcomes):
            results[target.position] = result
            if target_artifacts is not None:
                artifacts[target.position] = target_artifacts

        self._write_indexes(targets, artifacts)

        summary = RunSummary(results=[results[t.position] for t in targets], output_paths=output_paths)
        log.info(summary.human_summary().splitlines()[0])
        if document.post_generate_command and summary.success_count > 0:
            self._run_post_generate(document.post_generate_command, context.cwd)
        return summary

    def _clear_blocks(self, targets: List[Target], results: Dict[int, GenerationResult]) -> None:
        cleared = set()
        for target in targets:
            block_id = id(target.block)
            if not target.block.clear_old_files or block_id in cleared:
                continue
            cleared.add(block_id)
            try:
                clear_owned_dirs(target.out_dir)
            except WriteError as e:
                log.error("Could not clear old files: %s", e, extra={"target": target.connection})
                for other in targets:
                    if other.block is target.block and other.position not in results:
                        results[other.position] = self._failure(other, TargetStage.PREPARE, e)

    def _run_target(self, target: Target, context: RunContext) -> Tuple[GenerationResult, Optional[TargetArtifacts]]:
        if context.cancel_event.is_set():
            log.warning("Run cancelled before target started", extra={"target": target.label})
            return GenerationResult(
                connection=target.connection,
                target=target.name,
                ok=False,
                stage=TargetStage.PREPARE,
                error_kind="Cancelled",
                message="run cancelled before this target started",
            ), None

        progress = _Progress(target)
        try:
            if isinstance(target.block, LayoutBlock):
                artifacts, files = self._run_layout(progress, context)
            else:
                artifacts, files = self._run_table(progress, context)
        except TypegenError as e:
            log.error("%s: %s", e.kind, e.message, extra=progress.extra)
            return self._failure(target, progress.stage, e), None
        except Exception as e:
            log.exception("Unexpected error", extra=progress.extra)
            return GenerationResult(
                connection=target.connection,
                target=target.name,
                ok=False,
                stage=progress.stage,
                error_kind="InternalError",
                message=str(e) or e.__class__.__name__,
            ), None

        progress.enter(TargetStage.DONE)
        log.info("Generated %d file(s)", len(files), extra=progress.extra)
        return GenerationResult(
            connection=target.connection,
            target=target.name,
            ok=True,
            stage=TargetStage.DONE,
            files=[str(target.out_dir / f) for f in files],
        ), artifacts

    def _run_layout(self, progress: _Progress, context: RunContext) -> Tuple[TargetArtifacts, List[str]]:
        target = progress.target
        block: LayoutBlock = target.block
        layout = target.layout

        conn = get_connection_params(block.env_names, self.environ)

        progress.enter(TargetStage.FETCH_METADATA)
        payload = self.fetcher.fetch_layout_metadata(conn, layout.layout_name)

        progress.enter(TargetStage.PARSE_METADATA)
        model = parse_layout_metadata(payload, layout.layout_name, layout.value_lists or "ignore")

        progress.enter(TargetStage.RESOLVE_CONFIG)
        resolved = resolve_layout(layout, model.entity_types[layout.layout_name])

        progress.enter(TargetStage.EMIT)
        artifacts = build_layout_artifacts(block, layout, model, resolved)
        return artifacts, emit_target(artifacts, target.out_dir, context.reset_overrides)

    def _run_table(self, progress: _Progress, context: RunContext) -> Tuple[TargetArtifacts, List[str]]:
        target = progress.target
        block: TableBlock = target.block
        table = target.table

        policy = resolve_policy(block, table, table.table_name)

        progress.enter(TargetStage.FETCH_METADATA)
        if block.metadata_path:
            raw = read_metadata_file(context.cwd / block.metadata_path)
        else:
            conn = get_connection_params(block.env_names, self.environ)
            raw = self.fetcher.fetch_table_metadata(conn, table.table_name, policy.reduce_metadata)

        progress.enter(TargetStage.PARSE_METADATA)
        model = parse_odata_metadata(raw)
        entity_type = entity_type_for_table(model, table.table_name)
        if entity_type is None:
            raise ConfigurationError(f"Table '{table.table_name}' is not present in the metadata")

        progress.enter(TargetStage.RESOLVE_CONFIG)
        resolved = resolve_table(block, table, entity_type, table.table_name)

        progress.enter(TargetStage.EMIT)
        artifacts = build_table_artifacts(table.table_name, entity_type, model, resolved, target.out_dir)
        return artifacts, emit_target(artifacts, target.out_dir, context.reset_overrides)

    def _failure(self, target: Target, stage: TargetStage, error: TypegenError) -> GenerationResult:
        return GenerationResult(
            connection=target.connection,
            target=target.name,
            ok=False,
            stage=stage,
            error_kind=error.kind,
            message=error.message,
        )

    def _write_indexes(self, targets: List[Target], artifacts: Dict[int, TargetArtifacts]) -> None:
        """Rebuild index modules from the targets that succeeded, in configuration order."""
        client_entries: Dict[Path, List[Tuple[str, str]]] = {}
        table_names: Dict[Path, List[str]] = {}
        for target in targets:
            a = artifacts.get(target.position)
            if a is None:
                continue
            if isinstance(target.block, LayoutBlock):
                if a.export_name:
                    client_entries.setdefault(target.out_dir, []).append((a.module_name, a.export_name))
            else:
                table_names.setdefault(target.out_dir, []).append(a.module_name)

        for out_dir, entries in client_entries.items():
            self._write_index(out_dir, [build_client_index(entries)])
        for out_dir, names in table_names.items():
            self._write_index(out_dir, [build_table_index(names)])

    def _write_index(self, out_dir: Path, files) -> None:
        try:
            write_files(files, out_dir)
        except WriteError as e:
            log.error("Could not write index module in %s: %s", out_dir, e)

    def _run_post_generate(self, command: str, cwd: Path) -> None:
        args = shlex.split(command)
        if not args:
            log.warning("Post-generate command is empty")
            return
        log.info("Running post-generate command: %s", command)
        try:
            completed = subprocess.run(args, cwd=cwd, capture_output=True, text=True)
        except OSError as e:
            log.warning("Post-generate command failed: %s", e)
            return
        if completed.returncode != 0:
            log.warning(
                "Post-generate command exited with %d: %s",
                completed.returncode,
                (completed.stderr or completed.stdout).strip()[:500],
            )
        else:
            log.info("Post-generate command completed successfully")
