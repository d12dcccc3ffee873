"""
Vital coherence monitor.

An independent, slower watchdog over the live vitals. It alerts on dangerous
values the active script does not handle itself, so that no deterioration
goes unanswered even in a script without a matching on_physiology step.

Per tick the checks run in a fixed order and each deranged
(parameter, direction) may produce one alert, subject to:
- coverage suppression: if the script has on_physiology steps on the same
  (parameter, direction), alert only when the value is beyond the most
  extreme of their thresholds;
- cooldown: one alert per (parameter, direction) per cooldown window, except
  escalation from warning to critical.

Every alert moves the scenario to the complication phase. Critical alerts
also discard a pending question. Both go through the scenario engine when
one is attached, so its runtime phase stays current.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from sedsim.core.enums import AlertLevel, Direction, Parameter, Phase, Severity
from sedsim.core.scheduler import Scheduler, TimerHandle
from sedsim.core.state import MonitorConfig
from sedsim.scenarios.base import ScenarioScript
from sedsim.scenarios.presentation import Highlight, PresentationSink

logger = logging.getLogger(__name__)


class ScenarioControl(Protocol):
    def force_phase(self, phase: Phase): ...

    def dismiss_pending_question(self) -> bool: ...


@dataclass
class AlertCooldown:
    last_alert_time: float
    last_level: AlertLevel

    def allows(self, level: AlertLevel, now: float, window: float) -> bool:
        if now - self.last_alert_time >= window:
            return True
        return self.last_level is AlertLevel.WARNING and level is AlertLevel.CRITICAL


@dataclass(frozen=True)
class Alert:
    parameter: Parameter
    direction: Direction
    level: AlertLevel
    value: float
    message: str
    time: float


@dataclass(frozen=True)
class _Check:
    parameter: Parameter
    direction: Direction
    # (level, predicate, message template), most severe first
    tiers: Tuple[Tuple[AlertLevel, Callable[[float], bool], str], ...]


def _fmt(value: float) -> str:
    return f"{value:g}"


def build_checks(config: MonitorConfig) -> List[_Check]:
    """Ordered checks from the configured thresholds."""
    t = config.thresholds
    C, W = AlertLevel.CRITICAL, AlertLevel.WARNING
    return [
        _Check(Parameter.SPO2, Direction.LOW, (
            (C, lambda v: v < t.spo2_critical,
             "SpO2 has dropped to {v}%! Patient is severely hypoxic. "
             "Increase FiO2, jaw thrust, consider bag-mask ventilation."),
            (W, lambda v: v < t.spo2_warning,
             "SpO2 is {v}%. Airway management needed."),
        )),
        _Check(Parameter.HR, Direction.LOW, (
            (C, lambda v: v < t.hr_low_critical,
             "Severe bradycardia HR {v}. Consider atropine."),
            (W, lambda v: v < t.hr_low_warning,
             "Bradycardia HR {v}. Reassess sedation depth."),
        )),
        _Check(Parameter.HR, Direction.HIGH, (
            (C, lambda v: v > t.hr_high_critical,
             "Tachycardia HR {v}. Assess for cause."),
            (W, lambda v: v > t.hr_high_warning,
             "HR {v}. Check for pain, hypoxia or light sedation."),
        )),
        _Check(Parameter.SBP, Direction.LOW, (
            (C, lambda v: v < t.sbp_critical,
             "Severe hypotension SBP {v}. Fluids and vasopressors needed."),
            (W, lambda v: v < t.sbp_warning,
             "Hypotension SBP {v}. Consider reducing sedative dosing."),
        )),
        _Check(Parameter.RR, Direction.LOW, (
            (C, lambda v: v == 0,
             "APNEA detected. Bag-mask ventilate NOW."),
            (C, lambda v: v < t.rr_critical,
             "Near-apnea. RR {v}. Assist ventilation immediately."),
            (W, lambda v: v < t.rr_warning,
             "Respiratory depression RR {v}. Stimulate and support the airway."),
        )),
        _Check(Parameter.ETCO2, Direction.HIGH, (
            (C, lambda v: v > t.etco2_critical,
             "Severe hypercarbia EtCO2 {v}. Patient in respiratory failure."),
            (W, lambda v: v > t.etco2_warning,
             "Hypercarbia EtCO2 {v}. Ventilation inadequate."),
        )),
        _Check(Parameter.MOASS, Direction.LOW, (
            (C, lambda v: v <= t.moass_critical,
             "Patient is unresponsive (MOASS {v}). Check airway, breathing, circulation."),
        )),
    ]


def is_covered(script: Optional[ScenarioScript], parameter: Parameter,
               direction: Direction, value: float) -> bool:
    """
    Whether the script owns this derangement.

    True when the script has on_physiology steps on the same
    (parameter, direction) and the value is not beyond the most extreme
    of their thresholds.
    """
    if script is None:
        return False
    thresholds = [
        cond.threshold for cond in script.physiology_conditions()
        if cond.parameter is parameter and direction in cond.operator.directions
    ]
    if not thresholds:
        return False
    if direction is Direction.LOW:
        return value >= min(thresholds)
    return value <= max(thresholds)


class VitalCoherenceMonitor:
    """
    Watchdog over the oracle's live snapshot.

    Args:
        oracle: Physiology oracle (reads snapshot(); alerts are added to its event log)
        sink: Presentation sink for alert dialogue, highlights and phase
        scenario: Scenario engine (force_phase, dismiss_pending_question); phase
            goes straight to the sink when None
        script_provider: Returns the active script, or None when none is running
        scheduler: Optional scheduler for the monitor's own timer
        config: MonitorConfig (period, cooldown, thresholds)
    """
    def __init__(
        self,
        oracle,
        sink: PresentationSink,
        scenario: Optional[ScenarioControl] = None,
        script_provider: Optional[Callable[[], Optional[ScenarioScript]]] = None,
        scheduler: Optional[Scheduler] = None,
        config: MonitorConfig = None,
    ):
        self.oracle = oracle
        self.sink = sink
        self.scenario = scenario
        self.script_provider = script_provider or (lambda: None)
        self.scheduler = scheduler
        self.config = config or MonitorConfig()
        self.checks = build_checks(self.config)

        self.now = 0.0
        self.running = False
        self.cooldowns: Dict[Tuple[Parameter, Direction], AlertCooldown] = {}
        self.alerts: List[Alert] = []
        self._timer: Optional[TimerHandle] = None

    def start(self):
        if self.running:
            return
        self.running = True
        self.cooldowns = {}
        if self.scheduler is not None:
            self._timer = self.scheduler.schedule_repeating(self.config.period_sec, self.tick)
        logger.debug("Coherence monitor started (period %.1fs)", self.config.period_sec)

    def stop(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self.running:
            return
        self.running = False
        self.cooldowns = {}
        logger.debug("Coherence monitor stopped")

    def tick(self, dt: float = None) -> List[Alert]:
        """Advance the monitor clock and scan the current snapshot once."""
        self.now += self.config.period_sec if dt is None else dt
        return self.scan()

    def scan(self) -> List[Alert]:
        snapshot = self.oracle.snapshot()
        script = self.script_provider()
        fired = []

        for check in self.checks:
            value = check.parameter.read(snapshot)
            for level, predicate, template in check.tiers:
                if not predicate(value):
                    continue
                if not is_covered(script, check.parameter, check.direction, value):
                    alert = self._maybe_alert(check, level, value, template)
                    if alert is not None:
                        fired.append(alert)
                break

        if snapshot.vitals.hr == 0:
            self._complication()
        return fired

    def _maybe_alert(self, check: _Check, level: AlertLevel, value: float, template: str) -> Optional[Alert]:
        key = (check.parameter, check.direction)
        cooldown = self.cooldowns.get(key)
        if cooldown is not None and not cooldown.allows(level, self.now, self.config.cooldown_sec):
            return None
        self.cooldowns[key] = AlertCooldown(self.now, level)

        message = template.format(v=_fmt(value))
        alert = Alert(check.parameter, check.direction, level, value, message, self.now)
        self.alerts.append(alert)
        self._emit(alert)
        return alert

    def _emit(self, alert: Alert):
        critical = alert.level is AlertLevel.CRITICAL
        prefix = "CRITICAL: " if critical else "WARNING: "
        self.sink.emit_dialogue([prefix + alert.message])
        self.sink.set_highlights([Highlight(
            target_id=alert.parameter.value,
            text=alert.message,
            vital_label=alert.parameter.label,
            vital_value=alert.value,
            severity=Severity.DANGER if critical else Severity.WARNING,
        )])
        self._complication()

        self.oracle.log_event("alert", alert.message, "danger" if critical else "warning")
        logger.warning(alert.message)

        if critical and self.scenario is not None:
            self.scenario.dismiss_pending_question()

    def _complication(self):
        if self.scenario is not None:
            self.scenario.force_phase(Phase.COMPLICATION)
        else:
            self.sink.set_phase(Phase.COMPLICATION)
