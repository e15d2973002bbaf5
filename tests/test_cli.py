from __future__ import annotations

import json

from guildbattles.cli import main


def test_validate_content(capsys) -> None:
    assert main(["validate-content"]) == 0
    assert "Content OK" in capsys.readouterr().out


def test_simulate_prints_summary(capsys, tmp_path) -> None:
    journal = tmp_path / "sim.jsonl"
    code = main(["simulate", "--players", "3", "--seed", "17", "--max-steps", "300", "--telemetry", str(journal)])
    assert code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["match_id"] == "m1"
    assert summary["seed"] == 17
    assert 0 < summary["steps"] <= 300
    assert set(summary["scores"]) == {"player-1", "player-2", "player-3"}
    assert journal.exists()
