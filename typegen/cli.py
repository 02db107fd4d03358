"""Command-line entry point: ``typegen [generate]`` and ``typegen init``."""
import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from typegen.core.config import settings
from typegen.core.document import find_config, load_document
from typegen.core.engine import GenerationEngine, RunContext
from typegen.core.errors import ConfigDocumentError
from typegen.core.logging import configure_logging

log = logging.getLogger(__name__)

COMMANDS = {"generate", "init"}
ENV_FILES = [".env.local", ".env"]

STARTER_CONFIG = """\
# typegen configuration
# Connection values are read from environment variables; only their names
# belong here. Defaults: FM_SERVER, FM_DATABASE, OTTO_API_KEY or
# FM_USERNAME / FM_PASSWORD.

# postGenerateCommand: npx prettier --write schema

config:
  - type: fmdapi
    path: schema
    clearOldFiles: false
    validator: zod/v4
    layouts:
      # layoutName is the layout in the file, schemaName the generated name
      - layoutName: API_Customers
        schemaName: Customers
        valueLists: ignore
        strictNumbers: false

  # - type: fmodata
  #   path: schema/odata
  #   includeAllFieldsByDefault: true
  #   tables:
  #     - tableName: Orders
  #       fields:
  #         - fieldName: InternalNotes
  #           exclude: true
"""


def load_env(env_file: Optional[str], cwd: Path) -> Optional[Path]:
    candidates = [Path(env_file)] if env_file else [cwd / name for name in ENV_FILES]
    for candidate in candidates:
        if candidate.is_file():
            load_dotenv(candidate, override=False)
            log.info("Loaded environment from %s", candidate)
            return candidate
    if env_file:
        log.warning("Env file %s not found", env_file)
    return None


def init_config(config_path: Path) -> int:
    if config_path.exists():
        print(f"{config_path.name} already exists, leaving it untouched")
        return 0
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(STARTER_CONFIG, encoding="utf-8")
    print(f"Created config file: {config_path}")
    return 0


def run_generate(config_path: Path, reset_overrides: bool, cwd: Path) -> int:
    if not config_path.exists():
        print(f"Could not find {config_path.name}. Run `typegen init` to create one.", file=sys.stderr)
        return 1
    try:
        document = load_document(config_path)
    except ConfigDocumentError as e:
        print(f"Error reading {config_path.name}: {e.message}", file=sys.stderr)
        for issue in e.issues:
            location = ".".join(str(p) for p in issue["path"])
            print(f"  - {location}: {issue['message']}", file=sys.stderr)
        return 1

    engine = GenerationEngine(settings)
    summary = engine.run(document, RunContext(cwd=cwd, reset_overrides=reset_overrides))
    print(summary.human_summary())
    return 1 if summary.error_count else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="typegen", description="Generate typed clients from layout and table metadata")
    sub = parser.add_subparsers(dest="command")

    gen = sub.add_parser("generate", help="Generate code from the config file (default)")
    gen.add_argument("--config", help="Config file path (default: typegen.config.yaml in the current directory)")
    gen.add_argument("--env-file", help="Path to a .env file (default: .env.local or .env)")
    gen.add_argument("--skip-env-check", action="store_true", help="Do not load environment variables from a file")
    gen.add_argument(
        "--reset-overrides",
        action="store_true",
        help="Recreate the override files even if they already exist",
    )

    init = sub.add_parser("init", help="Create a starter config file if none exists")
    init.add_argument("--config", help="Config file path")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv or (argv[0] not in COMMANDS and argv[0] not in {"-h", "--help"}):
        argv.insert(0, "generate")
    args = build_parser().parse_args(argv)

    configure_logging(settings.log_level)
    cwd = Path.cwd()

    if args.command == "init":
        config_path = Path(args.config) if args.config else cwd / settings.config_path
        return init_config(config_path)

    if not args.skip_env_check:
        load_env(args.env_file, cwd)
    config_path = Path(args.config) if args.config else find_config(cwd, settings.config_path)
    return run_generate(config_path, args.reset_overrides, cwd)


if __name__ == "__main__":
    sys.exit(main())
