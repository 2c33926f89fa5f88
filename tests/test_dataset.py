from pathlib import Path

import pytest

from iobench.config import BenchmarkConfigError
from iobench.dataset import generate_random_files, main
from iobench.filelists import load_file_list


def test_generate_random_files(tmp_path):
    paths = generate_random_files(tmp_path, 3, 1500)
    assert [path.name for path in paths] == [f"{idx:020d}.bin" for idx in range(3)]
    assert all(path.stat().st_size == 1500 for path in paths)
    assert paths[0].read_bytes() != paths[1].read_bytes()
    assert load_file_list(tmp_path / "test-files.txt") == tuple(str(path) for path in paths)


def test_cli_creates_dataset(tmp_path):
    assert main(["-s", "1K", "-n", "2", "-d", str(tmp_path), "--list-name", "list.txt"]) == 0
    assert len(load_file_list(tmp_path / "list.txt")) == 2


def test_cli_rejects_missing_directory(tmp_path):
    assert main(["-d", str(tmp_path / "nope"), "-n", "1"]) == 1


def test_cli_rejects_bad_size(tmp_path):
    assert main(["-d", str(tmp_path), "-s", "huge"]) == 1


def test_cli_creates_empty_files(tmp_path):
    assert main(["-s", "0", "-n", "2", "-d", str(tmp_path)]) == 0
    paths = load_file_list(tmp_path / "test-files.txt")
    assert [Path(path).stat().st_size for path in paths] == [0, 0]


def test_negative_file_size_is_rejected(tmp_path):
    with pytest.raises(BenchmarkConfigError):
        generate_random_files(tmp_path, 1, -1)
