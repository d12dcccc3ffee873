import csv

import pytest

from sedsim.cli import pick_answer
from sedsim.core.enums import AirwayDevice, EngineStatus, Phase, TriggerType
from sedsim.core.progress import CompletedScenarioStore
from sedsim.core.recorder import TrendRecorder
from sedsim.core.scheduler import QtScheduler
from sedsim.core.session import SimulationSession
from sedsim.core.state import SimulationConfig
from sedsim.scenarios import create_colonoscopy
from sedsim.scenarios.base import Step


@pytest.fixture
def session():
    return SimulationSession(SimulationConfig(noise_enabled=False))


def short_script(make_script, with_late_step=False):
    steps = [Step("hello", Phase.PRE_INDUCTION, TriggerType.ON_START, dialogue=["Hello."])]
    if with_late_step:
        steps.append(Step("late", Phase.RECOVERY, TriggerType.ON_TIME, trigger_time_sec=1000))
    return make_script(steps, script_id="short_case")


class TestSessionWiring:

    def test_tick_order_and_cadence(self, session):
        session.load(create_colonoscopy())
        session.start()
        session.run_for(4)
        assert session.oracle.elapsed == 4.0
        assert session.engine.elapsed == 4.0
        assert session.monitor.now == 4.0

    def test_first_question_and_answer(self, session):
        session.load(create_colonoscopy())
        session.start()
        session.run_for(1)
        pending = session.engine.pending_question
        assert pending.step_id == "step_asa"

        result = session.answer("ASA 1")
        assert result.correct
        assert session.oracle.environment.airway_device is AirwayDevice.NASAL_CANNULA
        assert session.oracle.environment.fio2 == pytest.approx(0.29)

    def test_stop_cancels_all_tasks(self, session):
        session.load(create_colonoscopy())
        session.start()
        session.run_for(3)
        report = session.stop()
        assert report is not None
        assert session.engine.status is EngineStatus.STOPPED
        assert session.scheduler.pending == 0

    def test_start_without_script_schedules_nothing(self, session):
        assert session.start() is False
        assert session.scheduler.pending == 0
        session.run_for(3)
        assert session.oracle.elapsed == 0.0

    def test_second_start_adds_no_timers(self, session):
        session.load(create_colonoscopy())
        assert session.start() is True
        pending = session.scheduler.pending
        assert session.start() is False
        assert session.scheduler.pending == pending

    def test_run_for_requires_manual_scheduler(self):
        session = SimulationSession(scheduler=QtScheduler())
        with pytest.raises(TypeError):
            session.run_for(1)

    def test_auto_answered_colonoscopy(self, session):
        session.load(create_colonoscopy())
        session.start()

        def answer(dt):
            pending = session.engine.pending_question
            if pending is not None:
                session.answer(pick_answer(pending.question))

        session.scheduler.schedule_repeating(1.0, answer)
        session.run_for(60)

        fired = session.engine.runtime.fired
        assert {"step_asa", "step_midazolam", "step_fentanyl", "step_maintenance", "step_end"} <= fired
        assert all(a.correct for a in session.engine.runtime.answers)
        assert session.oracle.drug_states()["midazolam"].ce > 0
        assert session.oracle.drug_states()["fentanyl"].ce > 0

        report = session.stop()
        assert report.overall_grade in {"A", "B", "C", "D", "F"}


class TestCompletion:

    def test_completed_when_all_steps_fired(self, tmp_path, make_script):
        store = CompletedScenarioStore(str(tmp_path / "progress" / "completed.json"))
        session = SimulationSession(SimulationConfig(noise_enabled=False), store=store)
        session.load(short_script(make_script))
        session.start()
        session.run_for(2)
        session.stop()
        assert store.is_completed("short_case")

    def test_not_completed_when_steps_remain(self, tmp_path, make_script):
        store = CompletedScenarioStore(str(tmp_path / "completed.json"))
        session = SimulationSession(SimulationConfig(noise_enabled=False), store=store)
        session.load(short_script(make_script, with_late_step=True))
        session.start()
        session.run_for(2)
        session.stop()
        assert not store.is_completed("short_case")

    def test_store_tolerates_corrupt_file(self, tmp_path):
        path = tmp_path / "completed.json"
        path.write_text("{not json", encoding="utf-8")
        store = CompletedScenarioStore(str(path))
        assert store.load() == set()
        assert store.mark_completed("a") == {"a"}
        assert store.mark_completed("b") == {"a", "b"}
        assert store.is_completed("b")


class TestRecording:

    def test_trend_csv(self, tmp_path, make_script):
        recorder = TrendRecorder(str(tmp_path), sample_interval_sec=1.0, filename="trend.csv")
        session = SimulationSession(SimulationConfig(noise_enabled=False), recorder=recorder)
        session.load(short_script(make_script))
        session.start()
        session.run_for(5)
        session.stop()

        with open(tmp_path / "trend.csv", newline="") as fh:
            rows = list(csv.reader(fh))
        assert rows[0] == recorder.header()
        assert len(rows) == 6
        assert rows[1][0] == "1.0"
        assert "ce_propofol" in rows[0]

    def test_sample_interval(self, tmp_path, oracle):
        recorder = TrendRecorder(str(tmp_path), sample_interval_sec=5.0, filename="sparse.csv")
        recorder.start()
        for _ in range(12):
            recorder.log(oracle.tick())
        recorder.stop()

        with open(tmp_path / "sparse.csv", newline="") as fh:
            rows = list(csv.reader(fh))
        assert [row[0] for row in rows[1:]] == ["1.0", "6.0", "11.0"]

    def test_log_ignored_when_not_recording(self, tmp_path, oracle):
        recorder = TrendRecorder(str(tmp_path), filename="unused.csv")
        recorder.log(oracle.tick())
        assert not (tmp_path / "unused.csv").exists()
