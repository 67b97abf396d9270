"""
Command line entry point.

Reads a member CSV, builds the raw model, runs the healing pipeline up
to the requested stage and writes one BDF snapshot per stage next to a
timestamped process log.
"""

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from framemesh.core.constants import MAX_STAGE
from framemesh.fem.bdf_exporter import BdfSnapshotExporter
from framemesh.fem.model_builder import load_and_build
from framemesh.fem.pipeline import HealingPipeline, PipelineOptions
from framemesh.fem.visualization import get_model_statistics

logger = logging.getLogger("framemesh")

LOG_FORMAT = "[%(asctime)s] %(levelname)-7s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def configure_logging(verbose: bool = False) -> List[logging.Handler]:
    """Attach a console handler to the root logger.

    Returns:
        Handlers added, for release_logging.
    """
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.addHandler(console)
    return [console]


def add_process_log(output_dir: Path, base_name: str, handlers: List[logging.Handler]) -> Path:
    """Also log to <base>_ProcessLog_<timestamp>.txt in output_dir.

    Returns:
        Path of the process log file.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = output_dir / f"{base_name}_ProcessLog_{stamp}.txt"
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logging.getLogger().addHandler(file_handler)
    handlers.append(file_handler)
    return log_path


def release_logging(handlers: List[logging.Handler], level: int) -> None:
    """Detach and close handlers added by configure_logging and add_process_log."""
    root = logging.getLogger()
    for handler in handlers:
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="framemesh",
        description="Heal a structural member table into a connected Nastran line model",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Stages:
    0  baseline            4  extend free ends
    1  split on nodes      5  translate disconnected groups
    2  split crossings     6  rigid links
    3  collapse and merge

Examples:
    framemesh members.csv
    framemesh members.csv --target-stage 3 --output-dir out --html
"""
    )
    parser.add_argument("csv", type=Path, help="Member CSV exported from the design model")
    parser.add_argument(
        "--output-dir", "-o",
        type=Path,
        default=None,
        help="Directory for snapshots and the process log (default: next to the CSV)"
    )
    parser.add_argument(
        "--target-stage", "-s",
        type=int,
        default=MAX_STAGE,
        choices=range(MAX_STAGE + 1),
        metavar=f"0-{MAX_STAGE}",
        help="Last pipeline stage to run"
    )
    parser.add_argument(
        "--max-iterations",
        type=int,
        default=10,
        help="Cap for the extension and translation loops"
    )
    parser.add_argument(
        "--html",
        action="store_true",
        help="Also write a Plotly HTML preview per stage"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging and full listings on the target stage"
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Run the CLI; returns the process exit status."""
    args = build_parser().parse_args(argv)
    level = logging.getLogger().level
    handlers = configure_logging(args.verbose)
    try:
        return _run(args, handlers)
    finally:
        release_logging(handlers, level)


def _run(args: argparse.Namespace, handlers: List[logging.Handler]) -> int:
    csv_path: Path = args.csv
    if not csv_path.is_file():
        logger.error(f"Member CSV not found: {csv_path}")
        return 1
    base_name = csv_path.stem
    output_dir: Path = args.output_dir or csv_path.resolve().parent / f"{base_name}_output"

    log_path = add_process_log(output_dir, base_name, handlers)
    logger.info(f"Input: {csv_path}")
    logger.info(f"Output directory: {output_dir}")
    logger.info(f"Process log: {log_path}")

    try:
        context = load_and_build(csv_path)
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    logger.info(f"Raw model statistics: {get_model_statistics(context)}")

    try:
        options = PipelineOptions(max_iterations=args.max_iterations, verbose=args.verbose)
    except ValueError as e:
        logger.error(f"Invalid options: {e}")
        return 1

    exporter = BdfSnapshotExporter(output_dir, base_name, write_html=args.html)
    result = HealingPipeline(context, options, exporter=exporter).run(args.target_stage)
    if not result.success:
        logger.error(f"Pipeline stopped at stage {result.failed_stage}: {result.error}")
        return 1

    logger.info(f"Final model statistics: {get_model_statistics(context)}")
    logger.info(f"Wrote {len(exporter.written)} snapshot file(s) to {output_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
