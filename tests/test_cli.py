import json

import run
from beachmap.pipeline import run as run_pipeline


def test_validate_command_exit_codes(tmp_path, capsys, raw_locations):
    published = tmp_path / "beaches.geojson"
    run_pipeline(raw_locations, top_n=2, output_path=str(published))
    report = tmp_path / "report.txt"

    code = run.main(["validate", "--in", str(published), "--report", str(report)])

    assert code == 0
    assert "Validation passed" in capsys.readouterr().out
    assert report.read_text(encoding="utf-8").endswith("Validation passed")


def test_build_command_writes_artifact(tmp_path, capsys, raw_locations):
    raw = tmp_path / "raw.json"
    raw.write_text(json.dumps(raw_locations), encoding="utf-8")
    out = tmp_path / "public" / "beaches.geojson"

    code = run.main(
        ["build", "--in", str(raw), "--overrides", str(tmp_path / "none.json"), "--out", str(out)]
    )

    assert code == 0
    assert out.exists()


def test_missing_input_reports_error(tmp_path, capsys):
    code = run.main(["transform", "--in", str(tmp_path / "missing.json"), "--out", str(tmp_path / "out.geojson")])

    assert code == 1
    assert "Error: " in capsys.readouterr().err


def test_build_rejects_non_array_input(tmp_path, capsys):
    raw = tmp_path / "raw.json"
    raw.write_text(json.dumps({"locations": []}), encoding="utf-8")
    out = tmp_path / "beaches.geojson"

    code = run.main(["build", "--in", str(raw), "--out", str(out)])

    assert code == 1
    assert "Error: " in capsys.readouterr().err
    assert not out.exists()
