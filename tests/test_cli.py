"""Tests for the command line entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from tests.helpers import ROADS_PATH
from tilewave.__main__ import main


def write_tileset(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "tiles.json"
    path.write_text(json.dumps(data))
    return path


class TestMain:
    """Tests for main()."""

    def test_prints_grid(self, capsys: pytest.CaptureFixture[str]) -> None:
        """A successful run prints one line per row."""
        code = main([str(ROADS_PATH), "--seed", "3", "--width", "6", "--height", "4"])

        out = capsys.readouterr().out
        assert code == 0
        lines = out.splitlines()
        assert len(lines) == 4
        assert all(len(line.split()) == 6 for line in lines)

    def test_output_is_deterministic(self, capsys: pytest.CaptureFixture[str]) -> None:
        """The same seed prints the same grid."""
        args = [str(ROADS_PATH), "--seed", "fixed", "--width", "5", "--height", "5"]
        main(args)
        first = capsys.readouterr().out
        main(args)
        assert capsys.readouterr().out == first

    def test_columns_are_aligned(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Short ids are padded to the longest id."""
        path = write_tileset(
            tmp_path, {"a": ["i-x"] * 4, "longer": {"sides": ["i-x"] * 4, "weight": 1e9}}
        )
        main([str(path), "--width", "2", "--height", "1", "--seed", "0"])
        assert capsys.readouterr().out == "longer longer\n"

    def test_generation_failure_exits_1(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """An unsatisfiable tile set reports the failure kind."""
        path = write_tileset(
            tmp_path,
            {
                "A": ["i-x", "i-edge", "i-x", "i-wall"],
                "B": ["i-x", "i-stone", "i-x", "i-edge-u_edge"],
            },
        )
        code = main([str(path), "--width", "2", "--height", "1"])

        assert code == 1
        assert "failed: contradiction" in capsys.readouterr().err

    def test_invalid_tileset_exits_2(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Malformed side descriptors are reported as errors."""
        path = write_tileset(tmp_path, {"A": ["i-x", "i-x", "i-x", "bogus"]})
        assert main([str(path)]) == 2
        assert capsys.readouterr().err.startswith("error:")

    def test_missing_file_exits_2(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """A missing tile set file is an input error."""
        assert main([str(tmp_path / "nope.json")]) == 2
        assert "error:" in capsys.readouterr().err

    def test_invalid_size_exits_2(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Non-positive grid sizes are rejected."""
        assert main([str(ROADS_PATH), "--width", "0"]) == 2
        assert "width" in capsys.readouterr().err
