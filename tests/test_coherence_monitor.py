import pytest

from sedsim.core.enums import (
    AlertLevel,
    Direction,
    Operator,
    Parameter,
    Phase,
    QuestionType,
    Severity,
    TriggerType,
)
from sedsim.core.scheduler import ManualScheduler
from sedsim.core.state import MonitorConfig
from sedsim.monitors.coherence import AlertCooldown, VitalCoherenceMonitor, is_covered
from sedsim.scenarios.base import Question, Step, TriggerCondition


def physiology_step(step_id, parameter, operator, threshold):
    return Step(
        step_id, Phase.COMPLICATION, TriggerType.ON_PHYSIOLOGY,
        trigger_condition=TriggerCondition(parameter, operator, threshold),
    )


@pytest.fixture
def monitor(stub_oracle, sink):
    return VitalCoherenceMonitor(stub_oracle, sink)


class TestAlerts:

    def test_quiet_when_normal(self, monitor, sink):
        assert monitor.tick() == []
        assert sink.messages == []

    def test_warning_alert(self, monitor, stub_oracle, sink):
        stub_oracle.set_vitals(spo2=88)
        [alert] = monitor.tick()

        assert alert.parameter is Parameter.SPO2
        assert alert.direction is Direction.LOW
        assert alert.level is AlertLevel.WARNING
        assert sink.messages[-1] == ["WARNING: SpO2 is 88%. Airway management needed."]
        assert sink.highlights[0].severity is Severity.WARNING
        assert sink.phase is Phase.COMPLICATION
        assert stub_oracle.event_log[-1].severity == "warning"

    def test_critical_alert_logged_as_danger(self, monitor, stub_oracle, sink):
        stub_oracle.set_vitals(spo2=80)
        [alert] = monitor.tick()
        assert alert.level is AlertLevel.CRITICAL
        assert sink.messages[-1][0].startswith("CRITICAL: SpO2 has dropped to 80%")
        assert sink.highlights[0].severity is Severity.DANGER
        assert stub_oracle.event_log[-1].type == "alert"
        assert stub_oracle.event_log[-1].severity == "danger"

    def test_check_order(self, monitor, stub_oracle):
        stub_oracle.set_vitals(spo2=80, hr=35, sbp=65)
        alerts = monitor.tick()
        assert [a.parameter for a in alerts] == [Parameter.SPO2, Parameter.HR, Parameter.SBP]

    def test_apnea(self, monitor, stub_oracle, sink):
        stub_oracle.set_vitals(rr=0)
        [alert] = monitor.tick()
        assert alert.level is AlertLevel.CRITICAL
        assert "APNEA" in alert.message

    def test_unresponsive(self, monitor, stub_oracle):
        stub_oracle.depth = 0
        [alert] = monitor.tick()
        assert alert.parameter is Parameter.MOASS

    def test_tachycardia_and_hypercarbia(self, monitor, stub_oracle):
        stub_oracle.set_vitals(hr=130, etco2=85)
        alerts = monitor.tick()
        assert [(a.parameter, a.direction, a.level) for a in alerts] == [
            (Parameter.HR, Direction.HIGH, AlertLevel.WARNING),
            (Parameter.ETCO2, Direction.HIGH, AlertLevel.CRITICAL),
        ]

    def test_asystole_forces_complication(self, monitor, stub_oracle, sink):
        stub_oracle.set_vitals(hr=0)
        monitor.tick()
        assert sink.phase is Phase.COMPLICATION

    def test_custom_thresholds(self, stub_oracle, sink):
        from sedsim.core.constants import CoherenceThresholds

        config = MonitorConfig(thresholds=CoherenceThresholds(spo2_warning=95.0))
        monitor = VitalCoherenceMonitor(stub_oracle, sink, config=config)
        stub_oracle.set_vitals(spo2=93)
        assert len(monitor.tick()) == 1


class TestCooldown:

    def test_one_alert_per_window(self, monitor, stub_oracle):
        stub_oracle.set_vitals(spo2=88)
        alerts = [a for _ in range(8) for a in monitor.tick()]
        assert len(alerts) == 1, "Only one alert per 15 s window"
        assert len(monitor.tick()) == 1, "Window elapsed at t=18"

    def test_escalation_bypasses_cooldown(self, monitor, stub_oracle):
        stub_oracle.set_vitals(spo2=88)
        monitor.tick()
        stub_oracle.set_vitals(spo2=80)
        [alert] = monitor.tick()
        assert alert.level is AlertLevel.CRITICAL
        assert monitor.tick() == [], "Critical repeats still wait for the window"

    def test_no_deescalation_alert(self, monitor, stub_oracle):
        stub_oracle.set_vitals(spo2=80)
        monitor.tick()
        stub_oracle.set_vitals(spo2=88)
        assert monitor.tick() == []

    def test_directions_tracked_separately(self, monitor, stub_oracle):
        stub_oracle.set_vitals(hr=45)
        monitor.tick()
        stub_oracle.set_vitals(hr=130)
        [alert] = monitor.tick()
        assert alert.direction is Direction.HIGH

    def test_cooldown_allows(self):
        cooldown = AlertCooldown(last_alert_time=10.0, last_level=AlertLevel.CRITICAL)
        assert not cooldown.allows(AlertLevel.CRITICAL, 20.0, 15.0)
        assert cooldown.allows(AlertLevel.WARNING, 25.0, 15.0)


class TestCoverage:

    def test_value_within_script_threshold_suppressed(self, stub_oracle, sink, make_script):
        script = make_script([physiology_step("desat", Parameter.SPO2, Operator.LT, 80)])
        monitor = VitalCoherenceMonitor(stub_oracle, sink, script_provider=lambda: script)

        stub_oracle.set_vitals(spo2=84)
        assert monitor.tick() == [], "Script handles SpO2 down to 80"

        stub_oracle.set_vitals(spo2=78)
        [alert] = monitor.tick()
        assert alert.level is AlertLevel.CRITICAL

    def test_other_direction_not_covered(self, make_script):
        script = make_script([physiology_step("tachy", Parameter.HR, Operator.GT, 100)])
        assert not is_covered(script, Parameter.HR, Direction.LOW, 35)
        assert is_covered(script, Parameter.HR, Direction.HIGH, 99)
        assert not is_covered(script, Parameter.HR, Direction.HIGH, 160)

    def test_equality_covers_both_directions(self, make_script):
        script = make_script([physiology_step("apnea", Parameter.RR, Operator.EQ, 0)])
        assert is_covered(script, Parameter.RR, Direction.LOW, 0)
        assert is_covered(script, Parameter.RR, Direction.HIGH, 0)

    def test_most_extreme_threshold_wins(self, make_script):
        script = make_script([
            physiology_step("mild", Parameter.SPO2, Operator.LT, 92),
            physiology_step("severe", Parameter.SPO2, Operator.LT, 82),
        ])
        assert is_covered(script, Parameter.SPO2, Direction.LOW, 84)
        assert not is_covered(script, Parameter.SPO2, Direction.LOW, 80)

    def test_no_script(self):
        assert not is_covered(None, Parameter.SPO2, Direction.LOW, 50)


class TestEngineInteraction:

    def _question_step(self):
        return Step(
            "q", Phase.INDUCTION, TriggerType.ON_START,
            question=Question(
                QuestionType.SINGLE_CHOICE, "Ready?", options=["Yes", "No"],
                correct_answer="Yes", feedback={"Yes": "Good."},
            ),
        )

    def test_critical_alert_preempts_question(self, engine, stub_oracle, sink, make_script, tick):
        monitor = VitalCoherenceMonitor(stub_oracle, sink, scenario=engine)
        engine.load(make_script([self._question_step()]))
        engine.start()
        tick(engine)
        assert engine.pending_question is not None

        stub_oracle.set_vitals(spo2=80)
        monitor.tick()

        assert engine.pending_question is None
        assert sink.pending is None
        assert sink.phase is Phase.COMPLICATION
        assert engine.runtime.phase is Phase.COMPLICATION

    def test_warning_keeps_question(self, engine, stub_oracle, sink, make_script, tick):
        monitor = VitalCoherenceMonitor(stub_oracle, sink, scenario=engine)
        engine.load(make_script([self._question_step()]))
        engine.start()
        tick(engine)

        stub_oracle.set_vitals(spo2=88)
        monitor.tick()
        assert engine.pending_question is not None
        assert engine.runtime.phase is Phase.COMPLICATION
        assert sink.phase is Phase.COMPLICATION

    def test_cardiac_arrest_sets_engine_phase(self, engine, stub_oracle, sink, make_script, tick):
        monitor = VitalCoherenceMonitor(stub_oracle, sink, scenario=engine)
        engine.load(make_script([self._question_step()]))
        engine.start()
        tick(engine)
        assert engine.runtime.phase is Phase.INDUCTION

        stub_oracle.set_vitals(hr=0)
        monitor.tick()
        assert engine.runtime.phase is Phase.COMPLICATION

    def test_monitor_follows_engine_lifecycle(self, stub_oracle, sink, make_script):
        from sedsim.scenarios.engine import ScenarioEngine

        scheduler = ManualScheduler()
        engine = ScenarioEngine(stub_oracle, sink, scheduler=scheduler)
        monitor = VitalCoherenceMonitor(stub_oracle, sink, scenario=engine, scheduler=scheduler)
        engine.attach_monitor(monitor)

        engine.load(make_script([self._question_step()]))
        engine.start()
        assert monitor.running
        scheduler.advance(4)
        assert monitor.now == 4.0

        engine.stop()
        assert not monitor.running
        assert scheduler.pending == 0
