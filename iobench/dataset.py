from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from .config import BenchmarkConfigError, parse_size
from .main import setup_logging

LOGGER = logging.getLogger("iobench.dataset")

DEFAULT_LIST_NAME = "test-files.txt"
_CHUNK_SIZE = 4 * 1024 * 1024


def generate_random_files(
    directory: str | Path,
    number_of_files: int,
    file_size: int,
    list_name: str = DEFAULT_LIST_NAME,
) -> list[Path]:
    """Create ``number_of_files`` files of random bytes plus a list file naming them."""

    directory = Path(directory)
    if number_of_files < 0:
        raise BenchmarkConfigError("number of files must be >= 0")
    if file_size < 0:
        raise BenchmarkConfigError("file size must be >= 0")
    if not directory.is_dir() or not os.access(directory, os.W_OK):
        raise BenchmarkConfigError(f"cannot write to this folder: {directory}")

    LOGGER.info("Creating %d random files with size %d bytes each in %s", number_of_files, file_size, directory)
    paths = []
    for file_index in range(number_of_files):
        path = directory / f"{file_index:020d}.bin"
        with open(path, "wb") as handle:
            remaining = file_size
            while remaining > 0:
                chunk = min(remaining, _CHUNK_SIZE)
                handle.write(os.urandom(chunk))
                remaining -= chunk
        paths.append(path)

    paths.sort()
    list_path = directory / list_name
    with open(list_path, "w", encoding="utf-8") as handle:
        handle.writelines(f"{path}\n" for path in paths)
    LOGGER.info("File list written to %s", list_path)
    return paths


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate random files for iobench")
    parser.add_argument("-s", "--file-size", default="10M", help="Size of every file (e.g. 50K, 10M, 2G)")
    parser.add_argument("-n", "--number-of-files", type=int, default=100, help="How many files to create")
    parser.add_argument("-d", "--directory", default=".", help="Where to create the files")
    parser.add_argument("--list-name", default=DEFAULT_LIST_NAME, help="Name of the generated file list")
    parser.add_argument(
        "--log-level",
        default=os.environ.get("IOBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    try:
        file_size = parse_size(args.file_size)
        generate_random_files(args.directory, args.number_of_files, file_size, args.list_name)
    except BenchmarkConfigError as exc:
        LOGGER.error("%s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
