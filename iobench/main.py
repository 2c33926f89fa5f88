from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .config import (
    DEFAULT_REPORT_FPS,
    BenchmarkConfig,
    BenchmarkConfigError,
    FileSet,
    SplitStrategy,
    WorkMode,
    parse_size,
)
from .controller import BenchmarkController, build_assignments
from .filelists import load_file_list

LOGGER = logging.getLogger("iobench.benchmark")
REPORT_LOGGER_NAME = "iobench.report"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Multi-threaded storage throughput benchmark")
    parser.add_argument("-i", "--infiles", help="List of input filenames (one per line)")
    parser.add_argument("-o", "--outfiles", help="List of output filenames (one per line)")
    parser.add_argument(
        "-j",
        "--jobs",
        default=os.environ.get("IOBENCH_JOBS", "1"),
        help="Number of parallel workers to start",
    )
    parser.add_argument(
        "-s",
        "--workload-split",
        choices=[strategy.value for strategy in SplitStrategy],
        default=os.environ.get("IOBENCH_SPLIT", SplitStrategy.SEPARATE.value),
        help="How files are split between workers",
    )
    parser.add_argument(
        "-r",
        "--randomize-files",
        action="store_true",
        help="Access listed files randomly instead of sequentially",
    )
    parser.add_argument(
        "-m",
        "--mode",
        choices=[mode.value for mode in WorkMode],
        default=os.environ.get("IOBENCH_MODE", WorkMode.READ.value),
        help="Benchmark mode (only read / only write / read and write)",
    )
    parser.add_argument(
        "--write-size",
        default=os.environ.get("IOBENCH_WRITE_SIZE", "10M"),
        help="Size of every file written in --mode=write (e.g. 50K, 10M)",
    )
    parser.add_argument(
        "--report-fps",
        default=os.environ.get("IOBENCH_REPORT_FPS", str(DEFAULT_REPORT_FPS)),
        help="Report rows per second (negative: as often as possible)",
    )
    parser.add_argument("--logfile", help="Also write the report to this file")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print how the files would be split between workers",
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("IOBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


class ReportFormatter(logging.Formatter):
    """Prefixes every report line with a wall-clock stamp; warnings get tagged."""

    def __init__(self) -> None:
        super().__init__("%(asctime)s.%(msecs)03d\t%(message)s", datefmt="%H:%M:%S")

    def formatMessage(self, record: logging.LogRecord) -> str:
        if record.levelno > logging.INFO:
            record.message = f"{record.levelname} {record.message}"
        return super().formatMessage(record)


def configure_report_logger(log_path: Path) -> logging.Logger:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    report_logger = logging.getLogger(REPORT_LOGGER_NAME)
    report_logger.setLevel(logging.INFO)
    report_logger.propagate = False
    close_report_logger(report_logger)

    handler = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    handler.setFormatter(ReportFormatter())
    report_logger.addHandler(handler)
    return report_logger


def close_report_logger(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def _parse_number(value: str, kind: type, label: str):
    try:
        return kind(value)
    except (TypeError, ValueError) as exc:
        raise BenchmarkConfigError(f"{label} must be a number, got {value!r}") from exc


def build_config(args: argparse.Namespace) -> BenchmarkConfig:
    # Values may come from the environment, which argparse does not validate.
    return BenchmarkConfig(
        jobs=_parse_number(args.jobs, int, "--jobs"),
        split=args.workload_split,
        mode=args.mode,
        randomize=args.randomize_files,
        write_size=parse_size(args.write_size),
        report_fps=_parse_number(args.report_fps, float, "--report-fps"),
    )


def load_file_set(args: argparse.Namespace, mode: WorkMode) -> FileSet:
    if not args.infiles and not args.outfiles:
        raise BenchmarkConfigError("Need at least one of [--infiles, --outfiles]")

    infiles: tuple[str, ...] = ()
    outfiles: tuple[str, ...] = ()
    if args.infiles:
        infiles = load_file_list(args.infiles)
        if not mode.reads:
            LOGGER.info("Ignoring --infiles because --mode=%s is set", mode.value)
            infiles = ()
    if args.outfiles:
        outfiles = load_file_list(args.outfiles)
        if not mode.writes:
            LOGGER.info("Ignoring --outfiles because --mode=%s is set", mode.value)
            outfiles = ()
    return FileSet(infiles=infiles, outfiles=outfiles)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = build_config(args)
        file_set = load_file_set(args, config.mode)
        config.check_file_set(file_set)
    except BenchmarkConfigError as exc:
        LOGGER.error("%s", exc)
        return 1

    LOGGER.info("Parsed %d file entries", file_set.size)
    if config.randomize:
        LOGGER.info("Randomizing file order")

    if args.dry_run:
        _print_plan(config, build_assignments(file_set, config))
        return 0

    report_logger = configure_report_logger(Path(args.logfile)) if args.logfile else None
    try:
        controller = BenchmarkController(file_set, config, report_logger=report_logger)
        summary = controller.run()
    finally:
        if report_logger is not None:
            close_report_logger(report_logger)

    if summary.rows:
        LOGGER.debug("Report statistics:\n%s", summary.build_dataframe().describe())
    if summary.interrupted:
        return 130
    return 0


def _print_plan(config: BenchmarkConfig, assignments: list[tuple[int, ...]]) -> None:
    print(f"Mode: {config.mode.value}, split: {config.split.value}, workers: {config.jobs}")
    for idx, indices in enumerate(assignments):
        print(f"  - worker {idx}: {len(indices)} file(s)")


if __name__ == "__main__":
    sys.exit(main())
