from __future__ import annotations

import json
import runpy

import pytest
from typer.testing import CliRunner

from intent_master import cli

runner = CliRunner()


def _write_snapshot(tmp_path):
    path = tmp_path / "snapshot.json"
    path.write_text(
        json.dumps(
            {
                "loudness": -15.5,
                "truePeak": -5.5,
                "crestFactor": 11.1,
                "stereoWidth": 11.0,
                "phaseCorrelation": 0.99,
                "distortionPercent": 0.06,
                "bands": {"20-60": -18.0, "60-250": -14.0, "250-1k": -19.0},
            }
        ),
        encoding="utf-8",
    )
    return path


def test_derive_prints_clamped_params(tmp_path):
    snapshot_path = _write_snapshot(tmp_path)

    result = runner.invoke(cli.app, ["derive", "--snapshot", str(snapshot_path), "--target", "BEATPORT"])

    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["target"] == "beatport"
    assert report["decision"]["kickSafety"] == "borderline"
    assert report["params"]["gain_db"] == 3.0
    assert report["params"]["target_loudness"] == -8.0
    assert report["params"]["safety_pressure"] is not None


def test_derive_reads_decision_file(tmp_path):
    snapshot_path = _write_snapshot(tmp_path)
    decision_path = tmp_path / "decision.json"
    decision_path.write_text(json.dumps({"stereoIntent": "wide", "confidence": 7}), encoding="utf-8")

    result = runner.invoke(
        cli.app,
        ["derive", "-s", str(snapshot_path), "-d", str(decision_path)],
    )

    assert result.exit_code == 0, result.output
    report = json.loads(result.output)
    assert report["decision"]["stereoIntent"] == "wide"
    assert report["decision"]["confidence"] == 1.0
    assert report["params"]["width_amount"] >= 1.0


def test_derive_rejects_unknown_target(tmp_path):
    snapshot_path = _write_snapshot(tmp_path)

    result = runner.invoke(cli.app, ["derive", "-s", str(snapshot_path), "-t", "soundcloud"])

    assert result.exit_code != 0


def test_derive_rejects_non_object_snapshot(tmp_path):
    path = tmp_path / "list.json"
    path.write_text("[1, 2]", encoding="utf-8")

    result = runner.invoke(cli.app, ["derive", "-s", str(path)])

    assert result.exit_code != 0


def test_targets_lists_each_policy():
    result = runner.invoke(cli.app, ["targets"])

    assert result.exit_code == 0
    assert "spotify: loudness=-14.0 LUFS peak=-1.0 dBTP" in result.output
    assert "beatport: loudness=-8.0 LUFS peak=-0.3 dBTP" in result.output


def test_module_entrypoint_calls_cli_main(monkeypatch):
    called = {"value": False}

    def fake_main():
        called["value"] = True

    monkeypatch.setattr(cli, "main", fake_main)

    with pytest.raises(SystemExit) as exc_info:
        runpy.run_module("intent_master.__main__", run_name="__main__")

    assert called["value"]
    assert exc_info.value.code == 0
