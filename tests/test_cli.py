from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest
from typer.testing import CliRunner

from shiftmetrics.cli.main import app
from shiftmetrics.telemetry import read_jsonl
from tests.helpers import cli_text

runner = CliRunner()


def test_metrics_lists_vocabulary():
    result = runner.invoke(app, ["metrics"])
    assert result.exit_code == 0, result.output
    assert "Milestone metrics" in cli_text(result)


def test_summary_exports(minesite_path: Path, tmp_path: Path):
    out_json = tmp_path / "summary.json"
    out_shifts = tmp_path / "shifts.csv"
    out_daily = tmp_path / "daily.csv"
    result = runner.invoke(
        app,
        [
            "summary",
            str(minesite_path),
            "--subject",
            "1",
            "--out-json",
            str(out_json),
            "--out-shifts",
            str(out_shifts),
            "--out-daily",
            str(out_daily),
        ],
    )
    assert result.exit_code == 0, result.output
    assert "Subject 1: 4 shifts on 3 days" in cli_text(result)

    payload = json.loads(out_json.read_text(encoding="utf-8"))
    best = payload["milestones"]["byMetric"]["Tonnes Hauled"]
    assert best["bestDay"] == {"total": 200.0, "date": "2024-03-01"}
    assert best["bestWeek"]["total"] == 285.0
    assert best["shiftCompare"]["winner"] == "DS"
    assert payload["has_activity_detail"] is False

    shifts = pd.read_csv(out_shifts)
    assert shifts["shift_id"].tolist() == [1, 2, 3, 4]
    daily = pd.read_csv(out_daily)
    assert daily["date"].tolist() == ["2024-03-01", "2024-03-03", "2024-03-10"]
    assert daily["Tonnes Hauled"].tolist() == [200.0, 85.0, 0.0]


def test_network_defaults_to_accepted_connections(minesite_path: Path, tmp_path: Path):
    out_json = tmp_path / "network.json"
    out_timeline = tmp_path / "timeline.csv"
    result = runner.invoke(
        app,
        [
            "network",
            str(minesite_path),
            "--subject",
            "1",
            "--metric",
            "tonnes hauled",
            "--from",
            "2024-03-01",
            "--to",
            "2024-03-05",
            "--out-json",
            str(out_json),
            "--out-timeline",
            str(out_timeline),
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(out_json.read_text(encoding="utf-8"))
    assert payload["metric"] == "Tonnes Hauled"
    assert payload["members"] == [2, 3]
    assert payload["networkBest"] == {"total": 500.0, "date": "2024-03-05", "user_id": 3}
    assert [row["user_id"] for row in payload["ranking"]] == [3, 2, 1]
    timeline = pd.read_csv(out_timeline)
    assert timeline["peer_average"].tolist() == [300.0, 100.0, 0.0, 0.0, 500.0]


def test_network_with_explicit_peer_and_compare(minesite_path: Path, tmp_path: Path):
    out_json = tmp_path / "network.json"
    result = runner.invoke(
        app,
        [
            "network",
            str(minesite_path),
            "--subject",
            "1",
            "--metric",
            "Truck Loads",
            "--peer",
            "2",
            "--peer",
            "3",
            "--compare",
            "2",
            "--rank-by",
            "best",
            "--top",
            "1",
            "--out-json",
            str(out_json),
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(out_json.read_text(encoding="utf-8"))
    assert payload["compare"] == 2
    assert payload["rankBy"] == "best"
    assert [row["user_id"] for row in payload["ranking"]] == [3, 1]


def test_unknown_metric_is_a_usage_error(minesite_path: Path):
    result = runner.invoke(
        app, ["network", str(minesite_path), "--subject", "1", "--metric", "Tonnes Mined"]
    )
    assert result.exit_code == 2


def test_unknown_metric_is_rejected_before_the_store_is_opened(
    minesite_path: Path, monkeypatch: pytest.MonkeyPatch
):
    opened: list[Path] = []

    def fake_open_store(dataset: Path):
        opened.append(dataset)
        raise AssertionError("store opened")

    monkeypatch.setattr("shiftmetrics.cli.main.open_store", fake_open_store)
    result = runner.invoke(
        app, ["network", str(minesite_path), "--subject", "1", "--metric", "Tonnes Mined"]
    )
    assert result.exit_code == 2
    assert opened == []


def test_unknown_metric_against_a_broken_database_is_a_usage_error(tmp_path: Path):
    broken = tmp_path / "broken.db"
    broken.write_text("this is not a database", encoding="utf-8")
    result = runner.invoke(
        app, ["network", str(broken), "--subject", "1", "--metric", "Tonnes Mined"]
    )
    assert result.exit_code == 2
    assert "Store read failed" not in cli_text(result)


def test_malformed_dataset_table_exits_with_one(tmp_path: Path):
    dataset = tmp_path / "site"
    dataset.mkdir()
    (dataset / "dataset.yaml").write_text(
        "data:\n  shifts: shifts.csv\n  activities: activities.csv\n", encoding="utf-8"
    )
    (dataset / "shifts.csv").write_text(
        "id,user_id,date,dn\n1,1,not-a-date,DS\n", encoding="utf-8"
    )
    (dataset / "activities.csv").write_text(
        "shift_id,activity,sub_activity,values\n", encoding="utf-8"
    )
    result = runner.invoke(app, ["summary", str(dataset), "--subject", "1"])
    assert result.exit_code == 1
    assert "Store read failed" in cli_text(result)


def test_unknown_subject_and_bad_range(minesite_path: Path):
    missing = runner.invoke(app, ["summary", str(minesite_path), "--subject", "99"])
    assert missing.exit_code == 2
    inverted = runner.invoke(
        app,
        [
            "summary",
            str(minesite_path),
            "--subject",
            "1",
            "--from",
            "2024-03-05",
            "--to",
            "2024-03-01",
        ],
    )
    assert inverted.exit_code == 2


def test_missing_dataset(tmp_path: Path):
    result = runner.invoke(app, ["series", str(tmp_path / "nope"), "--subject", "1"])
    assert result.exit_code == 2


def test_store_failure_exits_with_one(tmp_path: Path):
    broken = tmp_path / "broken.db"
    broken.write_text("this is not a database", encoding="utf-8")
    result = runner.invoke(app, ["series", str(broken), "--subject", "1"])
    assert result.exit_code == 1
    assert "Store read failed" in cli_text(result)


def test_series_json_and_telemetry(minesite_path: Path, tmp_path: Path):
    out_json = tmp_path / "series.json"
    log_path = tmp_path / "queries.jsonl"
    result = runner.invoke(
        app,
        [
            "--telemetry-log",
            str(log_path),
            "series",
            str(minesite_path),
            "--subject",
            "1",
            "--to",
            "2024-03-03",
            "--out-json",
            str(out_json),
        ],
    )
    assert result.exit_code == 0, result.output
    records = json.loads(out_json.read_text(encoding="utf-8"))
    assert [record["id"] for record in records] == [1, 2, 3]
    assert records[2]["activities"][0]["loads"] == [{"weight": 40}, {"weight": 45}]
    (entry,) = read_jsonl(log_path)
    assert entry["query"] == "self_time_series"
    assert entry["counts"] == {"shifts": 3, "activities": 4}


def test_config_option_extends_routes(engine_yaml: Path, tmp_path: Path):
    dataset = tmp_path / "site"
    dataset.mkdir()
    (dataset / "dataset.yaml").write_text(
        "data:\n  shifts: shifts.csv\n  activities: activities.csv\n", encoding="utf-8"
    )
    (dataset / "shifts.csv").write_text("id,user_id,date,dn\n1,1,2024-03-01,DS\n", encoding="utf-8")
    (dataset / "activities.csv").write_text(
        "shift_id,activity,sub_activity,values\n"
        '1,Haulage,,"{""Loads"": 3, ""Weight"": 20}"\n',
        encoding="utf-8",
    )
    out_json = tmp_path / "summary.json"
    args = ["summary", str(dataset), "--subject", "1", "--out-json", str(out_json)]

    result = runner.invoke(app, ["--config", str(engine_yaml), *args])
    assert result.exit_code == 0, result.output
    payload = json.loads(out_json.read_text(encoding="utf-8"))
    assert payload["rows"][0]["Truck Loads"] == 3.0

    result = runner.invoke(app, args)
    assert result.exit_code == 0, result.output
    payload = json.loads(out_json.read_text(encoding="utf-8"))
    assert payload["rows"][0]["Truck Loads"] == 0.0
