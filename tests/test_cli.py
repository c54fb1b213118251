"""Tests for the command-line interface."""

import json

import pytest

from fusioncore.cli import build_parser, main


@pytest.fixture
def inputs(tmp_path, field_report, emitter_tracks):
    humint = tmp_path / "report.txt"
    humint.write_text(f"Report analysis follows.\n```json\n{json.dumps(field_report)}\n```")
    sigint = tmp_path / "signals.txt"
    sigint.write_text(json.dumps({"tracks": emitter_tracks}))
    return humint, sigint


class TestCli:
    """Test CLI commands."""

    def test_no_command(self):
        assert main([]) == 1

    def test_parser_defaults(self):
        args = build_parser().parse_args(["extract", "out.txt"])
        assert args.type == "unknown"
        assert args.verbose is False

    def test_generate_config(self, tmp_path):
        path = tmp_path / "config.json"
        assert main(["generate-config", "-o", str(path)]) == 0
        assert set(json.loads(path.read_text())) == {"extraction", "correlation", "logging"}

    def test_extract(self, tmp_path):
        source = tmp_path / "response.txt"
        source.write_text('The answer is {"a": 1, "b": [1, 2,],} as requested.')
        output = tmp_path / "out.json"

        assert main(["extract", str(source), "--type", "test", "-o", str(output)]) == 0
        assert json.loads(output.read_text()) == {"a": 1, "b": [1, 2]}

    def test_extract_failure(self, tmp_path):
        source = tmp_path / "response.txt"
        source.write_text("Nothing structured here.")
        assert main(["extract", str(source)]) == 1

    def test_extract_missing_file(self, tmp_path):
        assert main(["extract", str(tmp_path / "missing.txt")]) == 1

    def test_bad_config(self, tmp_path, inputs):
        humint, _ = inputs
        assert main(["extract", str(humint), "-c", str(tmp_path / "missing.json")]) == 1

    def test_fuse_intsum(self, tmp_path, inputs):
        humint, sigint = inputs
        output = tmp_path / "intsum.json"

        code = main(
            ["fuse", "--humint", str(humint), "--sigint", str(sigint), "--format", "intsum", "-o", str(output)]
        )

        assert code == 0
        data = json.loads(output.read_text())
        assert data["type"] == "INTSUM"
        assert len(data["enemy_forces"]) == 1
        assert data["enemy_forces"][0]["multi_source"] is True
        assert len(data["terrain"]) == 1

    def test_fuse_json(self, tmp_path, inputs):
        humint, sigint = inputs
        output = tmp_path / "product.json"

        assert main(["fuse", "--humint", str(humint), "--sigint", str(sigint), "-o", str(output)]) == 0
        data = json.loads(output.read_text())
        assert data["sources"] == {"humint": ["HR-2025-001"], "sigint": ["E-1"]}
        assert len(data["entities"]) == 3

    def test_fuse_without_observations(self, tmp_path):
        empty = tmp_path / "empty.txt"
        empty.write_text("no data")
        assert main(["fuse", "--humint", str(empty)]) == 1
