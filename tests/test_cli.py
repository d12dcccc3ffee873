import json

import pytest

from sedsim import cli
from sedsim.core.enums import QuestionType
from sedsim.scenarios.base import Question


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestLoadConfig:

    def test_sections(self, tmp_path):
        path = write_json(tmp_path / "config.json", {
            "simulation": {"noise_enabled": False, "rng_seed": 3, "bogus": 1},
            "scenario": {"tick_period_sec": 0.5},
            "monitor": {"cooldown_sec": 30, "thresholds": {"spo2_warning": 92}},
            "progress_file": "progress.json",
        })
        sim, scenario, monitor, progress = cli.load_config(path)
        assert sim.noise_enabled is False
        assert sim.rng_seed == 3
        assert scenario.tick_period_sec == 0.5
        assert monitor.cooldown_sec == 30
        assert monitor.thresholds.spo2_warning == 92
        assert monitor.thresholds.spo2_critical == 85.0
        assert progress == "progress.json"

    def test_empty_config_uses_defaults(self, tmp_path):
        sim, scenario, monitor, progress = cli.load_config(write_json(tmp_path / "c.json", {}))
        assert sim.noise_enabled
        assert monitor.period_sec == 2.0
        assert progress is None

    def test_rejects_non_object(self, tmp_path):
        with pytest.raises(ValueError):
            cli.load_config(write_json(tmp_path / "c.json", [1, 2]))


class TestPickAnswer:

    def test_numeric_midpoint(self):
        q = Question(QuestionType.NUMERIC_RANGE, "Dose?", ideal_range=(20, 40))
        assert cli.pick_answer(q) == 30.0

    def test_choice_uses_correct_answer(self):
        q = Question(QuestionType.SINGLE_CHOICE, "?", options=["A"], correct_answer="A")
        assert cli.pick_answer(q) == "A"


class TestMain:

    def test_headless_run(self, tmp_path):
        progress = tmp_path / "completed.json"
        config = write_json(tmp_path / "config.json", {
            "simulation": {"noise_enabled": False},
            "progress_file": str(progress),
        })
        cli.main([
            "--duration", "30", "--auto-answer", "--config", config,
            "--record", "--record-dir", str(tmp_path / "rec"),
        ])
        assert list((tmp_path / "rec").glob("*.csv"))

    def test_bad_config_exits(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--config", str(tmp_path / "missing.json"), "--duration", "1"])
        assert exc_info.value.code == 1

    def test_invalid_script_exits(self, tmp_path):
        script = write_json(tmp_path / "bad.json", {"id": "bad", "difficulty": "easy", "steps": []})
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--script", script, "--duration", "1"])
        assert exc_info.value.code == 2
