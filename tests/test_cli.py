"""Tests for CLI interface."""

import json
from datetime import datetime
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from pgcacher.cli import app
from pgcacher.models import FileStatus, ScanConfig
from pgcacher.psutils import ProcessListError

runner = CliRunner()


def make_status(name: str, pages: int, cached: int) -> FileStatus:
    return FileStatus(
        name=name,
        size_bytes=pages * 4096,
        timestamp=datetime(2024, 1, 1),
        mtime=datetime(2024, 1, 1),
        pages=pages,
        cached_pages=cached,
        uncached_pages=pages - cached,
        percent=cached / pages * 100,
    )


@pytest.fixture
def files(tmp_path):
    paths = []
    for name, size in (("big.bin", 5 * 4096), ("small.bin", 100), ("mid.log", 2 * 4096)):
        path = tmp_path / name
        path.write_bytes(b"p" * size)
        path.read_bytes()
        paths.append(str(path))
    return paths


class TestVersion:
    def test_version_flag(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "pgcacher version" in result.stdout


class TestHelp:
    def test_help_flag(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "--least-size" in result.stdout
        assert "--top" in result.stdout


class TestUsage:
    def test_no_files(self):
        result = runner.invoke(app, [])
        assert result.exit_code == 1
        assert "files is null ?" in result.stdout

    def test_not_linux(self, files):
        with patch("pgcacher.cli.sys.platform", "darwin"):
            result = runner.invoke(app, files)
        assert result.exit_code == 1
        assert "only supports running on Linux" in result.stdout

    def test_bad_least_size(self, files):
        result = runner.invoke(app, ["--least-size", "lots", *files])
        assert result.exit_code == 2

    def test_worker_must_be_positive(self, files):
        result = runner.invoke(app, ["--worker", "0", *files])
        assert result.exit_code == 2


class TestExplicitFiles:
    def test_json(self, files):
        result = runner.invoke(app, ["--json", *files])
        assert result.exit_code == 0
        records = json.loads(result.stdout)
        assert sorted(r["filename"] for r in records) == sorted(files)
        assert all(r["status"] == [] for r in records)

    def test_json_pps(self, files):
        result = runner.invoke(app, ["-json", "-pps", files[0]])
        assert result.exit_code == 0
        record = json.loads(result.stdout)[0]
        assert len(record["status"]) == record["pages"] == 5

    def test_duplicates_with_whitespace(self, files):
        result = runner.invoke(app, ["--json", files[0], f" {files[0]} ", f"{files[0]}  "])
        assert result.exit_code == 0
        assert len(json.loads(result.stdout)) == 1

    def test_least_size(self, files):
        result = runner.invoke(app, ["--json", "--least-size", "4KB", *files])
        assert result.exit_code == 0
        names = {r["filename"] for r in json.loads(result.stdout)}
        assert files[1] not in names
        assert len(names) == 2

    def test_exclude_and_include(self, files):
        result = runner.invoke(
            app, ["--json", "--include-files", "*.bin", "--exclude-files", "*small*", *files]
        )
        assert result.exit_code == 0
        assert [r["filename"] for r in json.loads(result.stdout)] == [files[0]]

    def test_bname(self, files):
        result = runner.invoke(app, ["-terse", "-nohdr", "-bname", files[2]])
        assert result.exit_code == 0
        assert result.stdout.startswith("mid.log,8192,")

    def test_terse_header(self, files):
        result = runner.invoke(app, ["--terse", files[0]])
        assert result.exit_code == 0
        assert result.stdout.splitlines()[0] == "name,size,timestamp,mtime,pages,cached,percent"

    def test_default_table(self, files):
        result = runner.invoke(app, files)
        assert result.exit_code == 0
        assert "Sum" in result.stdout
        assert "+" in result.stdout

    def test_missing_file_is_skipped(self, files, tmp_path):
        result = runner.invoke(app, ["--json", files[0], str(tmp_path / "missing")])
        assert result.exit_code == 0
        assert len(json.loads(result.stdout)) == 1

    def test_json_wins_over_other_formats(self, files):
        result = runner.invoke(app, ["--plain", "--unicode", "--terse", "--json", files[0]])
        assert result.exit_code == 0
        assert isinstance(json.loads(result.stdout), list)


class TestPid:
    @patch("pgcacher.cli.resolve_process")
    def test_pid_files(self, mock_resolve, files):
        mock_resolve.return_value = [files[0], files[0], files[2]]
        result = runner.invoke(app, ["-pid", "42", "-worker", "3", "-json"])
        assert result.exit_code == 0
        mock_resolve.assert_called_once_with(42, 3)
        assert len(json.loads(result.stdout)) == 2

    @patch("pgcacher.cli.resolve_process")
    def test_pid_without_files(self, mock_resolve):
        mock_resolve.return_value = []
        result = runner.invoke(app, ["--pid", "42"])
        assert result.exit_code == 1
        assert "files is null ?" in result.stdout


class TestTop:
    @patch("pgcacher.cli.analyze_files")
    @patch("pgcacher.cli.resolve_all_processes")
    def test_top_n(self, mock_all, mock_analyze):
        mock_all.return_value = ["/a", "/b", "/c", "/a"]
        mock_analyze.return_value = [
            make_status("/b", 50, 0),
            make_status("/a", 100, 100),
            make_status("/c", 10, 5),
        ]

        result = runner.invoke(app, ["-top", "2", "-json"])

        assert result.exit_code == 0
        assert [r["filename"] for r in json.loads(result.stdout)] == ["/a", "/c"]
        analyzed, config = mock_analyze.call_args.args
        assert analyzed == {"/a", "/b", "/c"}
        assert isinstance(config, ScanConfig)

    @patch("pgcacher.cli.analyze_files")
    @patch("pgcacher.cli.resolve_all_processes")
    def test_top_zero_keeps_all(self, mock_all, mock_analyze):
        mock_all.return_value = ["/a", "/b"]
        mock_analyze.return_value = [make_status("/a", 1, 1), make_status("/b", 1, 0)]

        result = runner.invoke(app, ["--top", "0", "--json"])

        assert len(json.loads(result.stdout)) == 2

    @patch("pgcacher.cli.resolve_all_processes")
    def test_enumeration_failure(self, mock_all):
        mock_all.side_effect = ProcessListError("failed to get processes: denied")
        result = runner.invoke(app, ["--top", "5"])
        assert result.exit_code == 1
        assert "failed to get processes" in result.stdout

    @patch("pgcacher.cli.resolve_all_processes")
    def test_no_files_found(self, mock_all):
        mock_all.return_value = []
        result = runner.invoke(app, ["--top", "5", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == []
