import argparse
import json
import logging
import sys
from pathlib import Path

from .core.config import PipelineSettings
from .core.pipeline import ContractPipeline, render_pipeline_report
from .core.workspace import load_project


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="contractloom",
        description="ContractLoom - verify and repair IPC/DOM contracts in a generated desktop project",
    )
    parser.add_argument("project_dir", type=str, help="Directory holding the generated files")
    parser.add_argument(
        "--spec",
        type=str,
        default=None,
        help="Contract document (JSON) produced by the design stage"
    )
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Skip the AI repair stage"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate only; never modify files"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    return parser


def main(argv=None) -> int:
    """Main entry point for ContractLoom."""
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    project_dir = Path(args.project_dir)
    if not project_dir.is_dir():
        print(f"error: {project_dir} is not a directory", file=sys.stderr)
        return 2
    if args.spec and not Path(args.spec).is_file():
        print(f"error: spec file {args.spec} not found", file=sys.stderr)
        return 2

    logger.info(f"Verifying {project_dir} (spec={args.spec or 'none'})")
    settings = PipelineSettings.from_config()
    workspace = load_project(project_dir)
    pipeline = ContractPipeline(
        workspace,
        spec=Path(args.spec) if args.spec else None,
        settings=settings,
        use_ai=False if args.no_ai else None,
    )
    report = pipeline.validate_only() if args.dry_run else pipeline.run()

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(render_pipeline_report(report))
    return 0 if report.is_valid else 1


if __name__ == "__main__":
    sys.exit(main())
