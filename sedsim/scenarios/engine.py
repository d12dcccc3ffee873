"""
Scenario state machine.

Runs a ScenarioScript against a physiology oracle: one trigger evaluation per
tick, at most one step fired per tick, question/answer gating and phase
tracking. Output goes to a presentation sink; the engine never renders.

Lifecycle: NOT_LOADED -> LOADED -> RUNNING -> STOPPED. Misuse (start before
load, double start, double stop, answering with nothing pending) is a no-op.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from sedsim.core.constants import SEVERITY_DANGER_MARGIN, SEVERITY_WARNING_MARGIN
from sedsim.core.enums import EngineStatus, Operator, Phase, Severity, SimActionType, TriggerType
from sedsim.core.scheduler import Scheduler, TimerHandle
from sedsim.core.state import ScenarioConfig
from sedsim.core.utils import format_clock
from .base import ScenarioScript, SimAction, Step, TriggerCondition
from .debrief import DebriefSummarizer, ScoredReport
from .presentation import Highlight, PendingQuestion, PresentationSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AnswerResult:
    step_id: str
    answer: object
    feedback_key: str
    correct: bool
    feedback: str


@dataclass
class RuntimeState:
    phase: Optional[Phase] = None
    elapsed: float = 0.0
    fired: Set[str] = field(default_factory=set)
    pending: Optional[PendingQuestion] = None
    sustained: Dict[str, int] = field(default_factory=dict)
    answers: List[AnswerResult] = field(default_factory=list)


def highlight_severity(condition: TriggerCondition, value: float) -> Severity:
    """Severity tier from how far `value` is past the condition's threshold."""
    if condition.operator in (Operator.LT, Operator.LE):
        margin = condition.threshold - value
    elif condition.operator in (Operator.GT, Operator.GE):
        margin = value - condition.threshold
    else:
        margin = abs(value - condition.threshold)
    if margin > SEVERITY_DANGER_MARGIN:
        return Severity.DANGER
    if margin > SEVERITY_WARNING_MARGIN:
        return Severity.WARNING
    return Severity.NORMAL


def _bullets(items) -> str:
    return "\n".join(f"• {item}" for item in items)


class ScenarioEngine:
    """
    Interprets one scenario script at a time.

    Args:
        oracle: Physiology oracle (PhysiologyOracle or compatible)
        sink: Presentation sink receiving dialogue, phase, highlights, questions
        scheduler: Optional scheduler; when given, start() registers the
            engine's own tick and stop() cancels it
        summarizer: Debrief summarizer (defaults to DebriefSummarizer)
        config: ScenarioConfig
    """
    def __init__(
        self,
        oracle,
        sink: PresentationSink,
        scheduler: Optional[Scheduler] = None,
        summarizer=None,
        config: ScenarioConfig = None,
    ):
        self.oracle = oracle
        self.sink = sink
        self.scheduler = scheduler
        self.summarizer = summarizer or DebriefSummarizer()
        self.config = config or ScenarioConfig()

        self.status = EngineStatus.NOT_LOADED
        self.script: Optional[ScenarioScript] = None
        self.runtime = RuntimeState()
        self.monitor = None
        self.speed = 1.0
        self.last_report: Optional[ScoredReport] = None
        self.last_fired: frozenset = frozenset()
        self._timer: Optional[TimerHandle] = None

    def attach_monitor(self, monitor):
        """Monitor started and stopped together with the scenario."""
        self.monitor = monitor

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self.status is EngineStatus.RUNNING

    @property
    def elapsed(self) -> float:
        return self.runtime.elapsed

    @property
    def pending_question(self) -> Optional[PendingQuestion]:
        return self.runtime.pending

    def load(self, script: ScenarioScript):
        """
        Validate and load a script, resetting the oracle to its patient.

        Raises:
            ScriptValidationError: if the script is malformed (nothing changes).
        """
        script.validate()
        if self.status is EngineStatus.RUNNING:
            self._halt()

        self.script = script
        self.runtime = RuntimeState()
        self.last_report = None
        self.last_fired = frozenset()
        self.oracle.reset()
        self.oracle.select_patient(script.patient_archetype)
        self.status = EngineStatus.LOADED

        self.sink.set_pending_question(None)
        self.sink.set_highlights(None)
        self.sink.set_phase(None)
        self.sink.emit_dialogue([
            f"Scenario loaded: {script.title} ({script.difficulty.upper()})",
            script.description,
        ])
        logger.info("Loaded scenario '%s' (%d steps)", script.id, len(script))

    def start(self) -> bool:
        if self.status is not EngineStatus.LOADED:
            logger.debug("start() ignored in state %s", self.status.value)
            return False
        self.status = EngineStatus.RUNNING
        self.sink.emit_dialogue(self.preop_presentation())
        if self.scheduler is not None:
            self._timer = self.scheduler.schedule_repeating(self.config.tick_period_sec, self.tick)
        if self.monitor is not None:
            self.monitor.start()
        logger.info("Scenario '%s' started", self.script.id)
        return True

    def stop(self) -> Optional[ScoredReport]:
        """
        Stop the run and produce the debrief. Idempotent.

        Returns the ScoredReport, or None if nothing was loaded or running.
        """
        if self.status not in (EngineStatus.LOADED, EngineStatus.RUNNING):
            return None
        self._halt()
        self.status = EngineStatus.STOPPED

        self.last_fired = frozenset(self.runtime.fired)
        self.runtime = RuntimeState()
        self.sink.set_pending_question(None)
        self.sink.set_highlights(None)
        self.sink.set_phase(None)

        report = self.summarizer.summarize(self.oracle.event_log, self.oracle.trend_data)
        self.last_report = report
        self.sink.emit_dialogue(self.debrief_lines(report))
        logger.info("Scenario '%s' stopped, grade %s", self.script.id, report.overall_grade)
        return report

    def _halt(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self.monitor is not None:
            self.monitor.stop()

    @property
    def all_steps_fired(self) -> bool:
        """Whether every step fired in the last stopped run."""
        if self.script is None:
            return False
        return all(step.id in self.last_fired for step in self.script.steps)

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    def tick(self, dt: float = 1.0):
        if self.status is not EngineStatus.RUNNING:
            return
        self.runtime.elapsed += dt
        self._evaluate_triggers()

    def _evaluate_triggers(self):
        snapshot = self.oracle.snapshot()
        rt = self.runtime
        self._update_sustained(snapshot)

        for step in self.script.steps:
            if step.id in rt.fired:
                continue
            # Sequential flow waits for the answer; time and physiology do not.
            if rt.pending is not None and step.trigger_type is TriggerType.ON_STEP_COMPLETE:
                continue

            if not self._trigger_met(step):
                continue

            if rt.pending is not None and step.trigger_type in (TriggerType.ON_TIME, TriggerType.ON_PHYSIOLOGY):
                logger.info("Step '%s' preempts pending question '%s'", step.id, rt.pending.step_id)
                self._clear_pending()
            self._fire_step(step, snapshot)
            break

    def _update_sustained(self, snapshot):
        """Count consecutive satisfied ticks for every unfired on_physiology step."""
        rt = self.runtime
        for step in self.script.steps:
            if step.id in rt.fired or step.trigger_type is not TriggerType.ON_PHYSIOLOGY:
                continue
            cond = step.trigger_condition
            if cond.is_met(cond.parameter.read(snapshot)):
                rt.sustained[step.id] = rt.sustained.get(step.id, 0) + 1
            else:
                rt.sustained[step.id] = 0

    def _trigger_met(self, step: Step) -> bool:
        rt = self.runtime
        tt = step.trigger_type
        if tt is TriggerType.ON_START:
            return rt.elapsed <= self.config.on_start_window_sec
        if tt is TriggerType.ON_TIME:
            return rt.elapsed >= step.trigger_time_sec
        if tt is TriggerType.ON_PHYSIOLOGY:
            return rt.sustained.get(step.id, 0) >= step.trigger_condition.sustained_ticks
        return step.after_step_id in rt.fired

    def _fire_step(self, step: Step, snapshot):
        rt = self.runtime
        logger.debug("[%s] firing step '%s'", format_clock(rt.elapsed), step.id)

        if step.highlight:
            text = " ".join(step.dialogue)
            label = value = severity = None
            if step.trigger_type is TriggerType.ON_PHYSIOLOGY:
                cond = step.trigger_condition
                value = cond.parameter.read(snapshot)
                label = cond.parameter.label
                severity = highlight_severity(cond, value)
            self.sink.set_highlights([
                Highlight(target, text, label, value, severity) for target in step.highlight
            ])
        else:
            self.sink.set_highlights(None)

        rt.phase = step.phase
        self.sink.set_phase(step.phase)
        self.sink.emit_dialogue(step.dialogue)
        rt.fired.add(step.id)

        if step.question is None:
            self._close_step(step)
        else:
            rt.pending = PendingQuestion(step.id, step.question)
            self.sink.set_pending_question(rt.pending)

    def _close_step(self, step: Step):
        for action in step.side_effects:
            self.apply_action(action)
        if step.teaching_points:
            self.sink.emit_dialogue(["Teaching Points:\n" + _bullets(step.teaching_points)])

    def _clear_pending(self):
        self.runtime.pending = None
        self.sink.set_pending_question(None)

    # ------------------------------------------------------------------
    # Questions
    # ------------------------------------------------------------------

    def answer_question(self, answer) -> Optional[AnswerResult]:
        """
        Grade the pending question, apply its step's deferred effects and close it.

        Returns None when no question is pending.

        Raises:
            ValueError: for a non-numeric or non-finite answer to a numeric_range
                question (the question stays pending).
        """
        pending = self.runtime.pending
        if pending is None:
            return None
        key, correct, feedback = pending.question.grade(answer)
        result = AnswerResult(pending.step_id, answer, key, correct, feedback)

        self.sink.emit_dialogue([feedback])
        step = self.script.step(pending.step_id)
        self._close_step(step)
        self._clear_pending()
        self.sink.set_highlights(None)
        self.runtime.answers.append(result)
        logger.info("Answer to '%s': %r -> %s", pending.step_id, answer, key)
        return result

    def force_phase(self, phase: Phase):
        """Move the scenario to phase outside the step sequence."""
        if self.runtime.phase is not phase:
            logger.info("Phase forced to %s", phase.value)
        self.runtime.phase = phase
        self.sink.set_phase(phase)

    def dismiss_pending_question(self) -> bool:
        """Discard the pending question without applying its effects."""
        if self.runtime.pending is None:
            return False
        logger.info("Pending question '%s' dismissed", self.runtime.pending.step_id)
        self._clear_pending()
        return True

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def apply_action(self, action: SimAction):
        t = action.type
        if t is SimActionType.ADMINISTER_DRUG:
            self.oracle.administer_drug(action.drug, action.dose)
        elif t is SimActionType.SET_FIO2:
            self.oracle.set_environment(fio2=action.fio2)
        elif t is SimActionType.SET_AIRWAY_DEVICE:
            self.oracle.set_environment(airway_device=action.device)
        elif t is SimActionType.APPLY_INTERVENTION:
            self.oracle.apply_intervention(action.intervention)
        elif t is SimActionType.SELECT_PATIENT:
            self.oracle.select_patient(action.archetype)
        elif t is SimActionType.ADVANCE_TIME:
            self.runtime.elapsed += action.seconds
        elif t is SimActionType.SET_SPEED:
            self.speed = action.speed
            if self.scheduler is not None:
                self.scheduler.set_speed(action.speed)

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def preop_presentation(self) -> List[str]:
        script = self.script
        v = script.preop
        lines = [
            f"Let's begin your scenario: {script.title}",
            f"Pre-op Vignette\nIndication: {v.indication}\nSetting: {v.setting}",
        ]
        if v.history:
            lines.append("History:\n" + _bullets(v.history))
        if v.exam:
            lines.append("Exam:\n" + _bullets(v.exam))
        if v.labs:
            lines.append("Labs:\n" + _bullets(v.labs))
        if v.baseline_monitors:
            lines.append("Baseline Monitors: " + ", ".join(v.baseline_monitors))
        if v.target_sedation_goal:
            lines.append(f"Target Sedation Goal: {v.target_sedation_goal}")
        if script.learning_objectives:
            lines.append("Learning Objectives:\n" + _bullets(script.learning_objectives))
        return lines

    def debrief_lines(self, report: ScoredReport) -> List[str]:
        script = self.script
        lines = [
            f"Scenario Debrief: {script.title}",
            f"Overall Grade: {report.overall_grade}\n"
            f"• Titration Accuracy: {report.titration_accuracy}%\n"
            f"• Complication Response: {report.complication_response}%",
        ]
        if report.strengths:
            lines.append("Strengths:\n" + _bullets(report.strengths))
        if report.improvements:
            lines.append("Areas for Improvement:\n" + _bullets(report.improvements))
        if script.discussion_questions:
            lines.append("Discussion Questions:\n" + _bullets(script.discussion_questions))
        if script.key_takeaways:
            lines.append("Key Takeaways:\n" + _bullets(script.key_takeaways))
        return lines
