"""
Base classes for the scripted scenario system.

Scenarios are data-driven scripts: an ordered list of steps, each with a
trigger, mentor dialogue and optionally a question and side effects on the
simulation. Scripts can be built in Python (see the built-in scenarios) or
loaded from JSON with `load_script`.

Enum-typed fields hold the raw value when it could not be parsed, so that
`validate_script` can report every problem at once.
"""

import json
import math
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sedsim.core.enums import (
    Operator,
    Parameter,
    Phase,
    QuestionType,
    SimActionType,
    TriggerType,
)

DIFFICULTIES = ("easy", "moderate", "hard", "expert")

# Fields each side effect type must carry.
ACTION_FIELDS = {
    SimActionType.ADMINISTER_DRUG: ("drug", "dose"),
    SimActionType.SET_FIO2: ("fio2",),
    SimActionType.SET_AIRWAY_DEVICE: ("device",),
    SimActionType.APPLY_INTERVENTION: ("intervention",),
    SimActionType.SELECT_PATIENT: ("archetype",),
    SimActionType.ADVANCE_TIME: ("seconds",),
    SimActionType.SET_SPEED: ("speed",),
}

FALLBACK_FEEDBACK = {
    "low": "That dose is below the recommended range.",
    "high": "That dose is above the recommended range.",
    "ideal": "Good choice, within the ideal range!",
    "correct": "Correct!",
    "incorrect": "Not quite. Review the teaching points.",
}


class ScriptValidationError(ValueError):
    """A scenario script is malformed. `problems` lists every issue found."""

    def __init__(self, script_id: str, problems: Sequence[str]):
        self.script_id = script_id
        self.problems = list(problems)
        details = "\n".join(f"  - {p}" for p in self.problems)
        super().__init__(f"Scenario '{script_id}' is invalid:\n{details}")


@dataclass
class TriggerCondition:
    """Compare a monitored parameter against a threshold for N consecutive ticks."""
    parameter: Parameter
    operator: Operator
    threshold: float
    sustained_ticks: int = 1

    def is_met(self, value: float) -> bool:
        return self.operator.evaluate(value, self.threshold)


@dataclass
class Question:
    """
    A question that pauses its step until answered.

    Attributes:
        type: single_choice, numeric_range or multi_select
        prompt: Question text
        options: Choices (choice questions only)
        correct_answer: Correct option, or list of options for multi_select
        ideal_range: (low, high) inclusive, numeric_range only
        feedback: Keyed by 'low'/'ideal'/'high' for numeric questions, by
            literal option text for single_choice and by 'correct'/'incorrect'
            for multi_select
    """
    type: QuestionType
    prompt: str
    options: List[str] = field(default_factory=list)
    correct_answer: Any = None
    ideal_range: Optional[Tuple[float, float]] = None
    feedback: Dict[str, str] = field(default_factory=dict)

    def grade(self, answer) -> Tuple[str, bool, str]:
        """
        Grade an answer.

        Returns:
            (feedback_key, correct, feedback_text)

        Raises:
            ValueError: if a numeric_range answer is not a finite number.
        """
        if self.type is QuestionType.NUMERIC_RANGE:
            value = float(answer)
            if not math.isfinite(value):
                raise ValueError(f"Answer must be a finite number, got {answer!r}")
            low, high = self.ideal_range
            if value < low:
                key = "low"
            elif value > high:
                key = "high"
            else:
                key = "ideal"
            return key, key == "ideal", self.feedback.get(key) or FALLBACK_FEEDBACK[key]

        if self.type is QuestionType.MULTI_SELECT:
            chosen = _as_selection(answer)
            correct = chosen == set(_as_selection(self.correct_answer))
            key = "correct" if correct else "incorrect"
            return key, correct, self.feedback.get(key) or FALLBACK_FEEDBACK[key]

        key = str(answer)
        correct = key == str(self.correct_answer)
        fallback = FALLBACK_FEEDBACK["correct" if correct else "incorrect"]
        return key, correct, self.feedback.get(key) or fallback


def _as_selection(answer) -> set:
    if answer is None:
        return set()
    if isinstance(answer, str):
        return {part.strip() for part in answer.split(",") if part.strip()}
    return {str(item) for item in answer}


@dataclass
class SimAction:
    """A side effect a step applies to the simulation."""
    type: SimActionType
    drug: Optional[str] = None
    dose: Optional[float] = None
    fio2: Optional[float] = None
    device: Optional[str] = None
    intervention: Optional[str] = None
    archetype: Optional[str] = None
    seconds: Optional[float] = None
    speed: Optional[float] = None


@dataclass
class Step:
    """
    A single step in a scenario.

    Attributes:
        id: Unique step identifier (e.g., "bolus_question")
        phase: Phase the scenario enters when the step fires
        trigger_type: on_start, on_time, on_physiology or on_step_complete
        dialogue: Mentor lines emitted when the step fires
        trigger_condition: Required for on_physiology
        trigger_time_sec: Required for on_time
        after_step_id: Required for on_step_complete
        question: Optional question; side effects wait for the answer
        side_effects: Simulation actions applied when the step closes
        highlight: UI target ids to highlight
        teaching_points: Shown after the step closes
    """
    id: str
    phase: Phase
    trigger_type: TriggerType
    dialogue: List[str] = field(default_factory=list)
    trigger_condition: Optional[TriggerCondition] = None
    trigger_time_sec: Optional[float] = None
    after_step_id: Optional[str] = None
    question: Optional[Question] = None
    side_effects: List[SimAction] = field(default_factory=list)
    highlight: List[str] = field(default_factory=list)
    teaching_points: List[str] = field(default_factory=list)


@dataclass
class PreopVignette:
    indication: str = ""
    setting: str = ""
    history: List[str] = field(default_factory=list)
    exam: List[str] = field(default_factory=list)
    labs: List[str] = field(default_factory=list)
    baseline_monitors: List[str] = field(default_factory=list)
    target_sedation_goal: str = ""


@dataclass
class ScenarioScript:
    """
    A complete scenario definition.

    Attributes:
        id: Unique scenario identifier (e.g., "easy_colonoscopy")
        title: Display name
        difficulty: easy, moderate, hard or expert
        patient_archetype: Oracle patient archetype selected at load
        description: Brief description of what this scenario teaches
        steps: Ordered steps; scan order is list order
    """
    id: str
    title: str
    difficulty: str
    patient_archetype: str
    description: str
    steps: List[Step] = field(default_factory=list)
    procedure: str = ""
    learning_objectives: List[str] = field(default_factory=list)
    clinical_pearls: List[str] = field(default_factory=list)
    preop: PreopVignette = field(default_factory=PreopVignette)
    discussion_questions: List[str] = field(default_factory=list)
    key_takeaways: List[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.steps)

    def __getitem__(self, idx: int) -> Step:
        return self.steps[idx]

    def step(self, step_id: str) -> Optional[Step]:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def physiology_conditions(self) -> List[TriggerCondition]:
        """Trigger conditions of every on_physiology step."""
        return [
            s.trigger_condition for s in self.steps
            if s.trigger_type is TriggerType.ON_PHYSIOLOGY
            and isinstance(s.trigger_condition, TriggerCondition)
        ]

    def validate(self):
        """Raise ScriptValidationError if the script is malformed."""
        problems = validate_script(self)
        if problems:
            raise ScriptValidationError(self.id, problems)


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _validate_condition(where: str, cond) -> List[str]:
    if not isinstance(cond, TriggerCondition):
        return [f"{where}: on_physiology step needs a trigger_condition"]
    problems = []
    if not isinstance(cond.parameter, Parameter):
        problems.append(f"{where}: unknown parameter '{cond.parameter}'")
    if not isinstance(cond.operator, Operator):
        problems.append(f"{where}: unknown operator '{cond.operator}'")
    if not _is_number(cond.threshold):
        problems.append(f"{where}: threshold must be a number")
    if not isinstance(cond.sustained_ticks, int) or cond.sustained_ticks < 1:
        problems.append(f"{where}: sustained_ticks must be a positive integer")
    return problems


def _validate_question(where: str, q: Question) -> List[str]:
    if not isinstance(q.type, QuestionType):
        return [f"{where}: unknown question type '{q.type}'"]
    problems = []
    if not q.prompt:
        problems.append(f"{where}: question has no prompt")

    if q.type is QuestionType.NUMERIC_RANGE:
        rng = q.ideal_range
        if rng is None or len(rng) != 2 or not all(_is_number(v) for v in rng):
            problems.append(f"{where}: numeric_range question needs ideal_range (low, high)")
        elif rng[0] > rng[1]:
            problems.append(f"{where}: ideal_range low {rng[0]} exceeds high {rng[1]}")
        missing = [k for k in ("low", "ideal", "high") if k not in q.feedback]
        if missing:
            problems.append(f"{where}: numeric_range question missing feedback for {', '.join(missing)}")
        return problems

    if not q.options:
        problems.append(f"{where}: {q.type.value} question has no options")
        return problems

    if q.type is QuestionType.SINGLE_CHOICE:
        answer = str(q.correct_answer) if q.correct_answer is not None else None
        if answer is None or answer not in q.options:
            problems.append(f"{where}: correct answer '{q.correct_answer}' is not one of the options")
        elif answer not in q.feedback:
            problems.append(f"{where}: no feedback for the correct answer '{answer}'")
    else:
        chosen = _as_selection(q.correct_answer)
        if not chosen:
            problems.append(f"{where}: multi_select question has no correct answers")
        stray = sorted(chosen - set(q.options))
        if stray:
            problems.append(f"{where}: correct answers not among options: {', '.join(stray)}")
        if "correct" not in q.feedback:
            problems.append(f"{where}: multi_select question missing 'correct' feedback")
    return problems


def _validate_action(where: str, action: SimAction) -> List[str]:
    if not isinstance(action.type, SimActionType):
        return [f"{where}: unknown side effect type '{action.type}'"]
    problems = []
    for name in ACTION_FIELDS[action.type]:
        if getattr(action, name) is None:
            problems.append(f"{where}: {action.type.value} needs '{name}'")
    if problems:
        return problems

    t = action.type
    if t is SimActionType.ADMINISTER_DRUG and (not _is_number(action.dose) or action.dose <= 0):
        problems.append(f"{where}: dose must be a positive number")
    elif t is SimActionType.SET_FIO2 and (not _is_number(action.fio2) or not 0.21 <= action.fio2 <= 1.0):
        problems.append(f"{where}: fio2 must be between 0.21 and 1.0")
    elif t is SimActionType.ADVANCE_TIME and (not _is_number(action.seconds) or action.seconds < 0):
        problems.append(f"{where}: seconds must be a non-negative number")
    elif t is SimActionType.SET_SPEED and (not _is_number(action.speed) or action.speed <= 0):
        problems.append(f"{where}: speed must be a positive number")
    return problems


def validate_script(script: ScenarioScript) -> List[str]:
    """Return every problem found in a script (empty list when valid)."""
    problems = []
    if not script.id:
        problems.append("script has no id")
    if script.difficulty not in DIFFICULTIES:
        problems.append(f"unknown difficulty '{script.difficulty}'")
    if not script.steps:
        problems.append("script has no steps")

    ids = [s.id for s in script.steps]
    seen = set()
    for step_id in ids:
        if step_id in seen:
            problems.append(f"duplicate step id '{step_id}'")
        seen.add(step_id)

    for step in script.steps:
        where = f"step '{step.id}'"
        if not step.id:
            problems.append("step with empty id")
        if not isinstance(step.phase, Phase):
            problems.append(f"{where}: unknown phase '{step.phase}'")

        tt = step.trigger_type
        if not isinstance(tt, TriggerType):
            problems.append(f"{where}: unknown trigger type '{tt}'")
        elif tt is TriggerType.ON_TIME:
            if not _is_number(step.trigger_time_sec) or step.trigger_time_sec < 0:
                problems.append(f"{where}: on_time step needs a non-negative trigger_time_sec")
        elif tt is TriggerType.ON_PHYSIOLOGY:
            problems.extend(_validate_condition(where, step.trigger_condition))
        elif tt is TriggerType.ON_STEP_COMPLETE:
            if not step.after_step_id:
                problems.append(f"{where}: on_step_complete step needs after_step_id")
            elif step.after_step_id not in seen:
                problems.append(f"{where}: after_step_id '{step.after_step_id}' does not exist")
            elif step.after_step_id == step.id:
                problems.append(f"{where}: step cannot wait on itself")

        if step.question is not None:
            problems.extend(_validate_question(where, step.question))
        for action in step.side_effects:
            problems.extend(_validate_action(where, action))

    return problems


# -----------------------------------------------------------------------------
# JSON loading
# -----------------------------------------------------------------------------

def _enum_or_raw(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _condition_from_dict(data: dict) -> TriggerCondition:
    return TriggerCondition(
        parameter=_enum_or_raw(Parameter, data.get("parameter")),
        operator=_enum_or_raw(Operator, data.get("operator")),
        threshold=data.get("threshold"),
        sustained_ticks=data.get("sustained_ticks", 1),
    )


def _question_from_dict(data: dict) -> Question:
    ideal = data.get("ideal_range")
    return Question(
        type=_enum_or_raw(QuestionType, data.get("type")),
        prompt=data.get("prompt", ""),
        options=list(data.get("options", [])),
        correct_answer=data.get("correct_answer"),
        ideal_range=tuple(ideal) if ideal is not None else None,
        feedback=dict(data.get("feedback", {})),
    )


def _action_from_dict(data: dict) -> SimAction:
    params = {k: v for k, v in data.items() if k != "type"}
    known = {name for names in ACTION_FIELDS.values() for name in names}
    action = SimAction(type=_enum_or_raw(SimActionType, data.get("type")))
    for key, value in params.items():
        if key in known:
            setattr(action, key, value)
    return action


def _step_from_dict(data: dict) -> Step:
    cond = data.get("trigger_condition")
    question = data.get("question")
    return Step(
        id=data.get("id", ""),
        phase=_enum_or_raw(Phase, data.get("phase")),
        trigger_type=_enum_or_raw(TriggerType, data.get("trigger_type")),
        dialogue=list(data.get("dialogue", [])),
        trigger_condition=_condition_from_dict(cond) if cond is not None else None,
        trigger_time_sec=data.get("trigger_time_sec"),
        after_step_id=data.get("after_step_id"),
        question=_question_from_dict(question) if question is not None else None,
        side_effects=[_action_from_dict(a) for a in data.get("side_effects", [])],
        highlight=list(data.get("highlight", [])),
        teaching_points=list(data.get("teaching_points", [])),
    )


PREOP_FIELDS = {f.name for f in fields(PreopVignette)}


def script_from_dict(data: dict) -> ScenarioScript:
    """Build and validate a script from its JSON form."""
    preop = data.get("preop", {})
    debrief = data.get("debrief", {})
    script = ScenarioScript(
        id=data.get("id", ""),
        title=data.get("title", ""),
        difficulty=data.get("difficulty", ""),
        patient_archetype=data.get("patient_archetype", "healthy_adult"),
        description=data.get("description", ""),
        steps=[_step_from_dict(s) for s in data.get("steps", [])],
        procedure=data.get("procedure", ""),
        learning_objectives=list(data.get("learning_objectives", [])),
        clinical_pearls=list(data.get("clinical_pearls", [])),
        preop=PreopVignette(**{k: v for k, v in preop.items() if k in PREOP_FIELDS}),
        discussion_questions=list(debrief.get("discussion_questions", [])),
        key_takeaways=list(debrief.get("key_takeaways", [])),
    )
    script.validate()
    return script


def load_script(path: str) -> ScenarioScript:
    """Load a script from a JSON file."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ScriptValidationError(path, ["top-level JSON value must be an object"])
    return script_from_dict(data)
